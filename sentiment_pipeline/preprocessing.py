"""
Text featurization for sentiment classification.

Handles text cleaning and tokenization, and the TF-IDF mapping from raw text
to fixed-length feature vectors. Word n-grams and space-padded character
n-grams are weighted by scikit-learn vectorizers and joined into one
L2-normalized vector.
"""

import html
import logging
import re
import unicodedata
from typing import Any

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.pipeline import FeatureUnion
from sklearn.preprocessing import normalize

from .errors import InvalidInputError

logger = logging.getLogger("sentiment_pipeline")


TOKEN_RE = re.compile(r"[^\W_]+")
WORD_PREFIX = "w:"
CHAR_PREFIX = "c:"


class TextFeaturizer:
    """
    TF-IDF featurizer over word and character n-grams.

    The vocabularies and IDF weights are learned once by ``fit`` from the
    training texts only; afterwards ``transform`` is a pure function of the
    text and the feature dimension never changes. Word features come first,
    followed by character features.
    """

    STATE_VERSION = 1

    def __init__(
        self,
        word_ngram_range: tuple[int, int] = (1, 2),
        char_ngram_range: tuple[int, int] | None = (3, 3),
        max_features: int = 20000,
        min_word_freq: int = 1,
    ):
        """
        Initialize the featurizer.

        Args:
            word_ngram_range: Inclusive (min, max) word n-gram lengths
            char_ngram_range: Inclusive (min, max) character n-gram lengths,
                or None to disable character n-grams
            max_features: Maximum vocabulary size of each n-gram kind
            min_word_freq: Minimum document frequency of a kept term
        """
        _check_range(word_ngram_range, "word_ngram_range")
        if char_ngram_range is not None:
            _check_range(char_ngram_range, "char_ngram_range")
        if max_features < 1:
            raise ValueError(f"max_features must be positive, got {max_features}")
        if min_word_freq < 1:
            raise ValueError(f"min_word_freq must be positive, got {min_word_freq}")

        self.word_ngram_range = tuple(word_ngram_range)
        self.char_ngram_range = tuple(char_ngram_range) if char_ngram_range is not None else None
        self.max_features = max_features
        self.min_word_freq = min_word_freq

        self.union = self._build_union()
        self.is_fitted = False

    def _word_vectorizer(self, vocabulary: list[str] | None = None) -> TfidfVectorizer:
        return TfidfVectorizer(
            analyzer="word",
            tokenizer=self.tokenize,
            token_pattern=None,
            lowercase=False,
            ngram_range=self.word_ngram_range,
            min_df=self.min_word_freq,
            max_features=self.max_features,
            vocabulary=vocabulary,
            norm=None,
            smooth_idf=True,
        )

    def _char_vectorizer(self, vocabulary: list[str] | None = None) -> TfidfVectorizer:
        return TfidfVectorizer(
            analyzer="char_wb",
            preprocessor=self.clean_text,
            lowercase=False,
            ngram_range=self.char_ngram_range,
            min_df=self.min_word_freq,
            max_features=self.max_features,
            vocabulary=vocabulary,
            norm=None,
            smooth_idf=True,
        )

    def _build_union(
        self,
        word_terms: list[str] | None = None,
        char_terms: list[str] | None = None,
    ) -> FeatureUnion:
        transformers = [("word", self._word_vectorizer(word_terms))]
        if self.char_ngram_range is not None:
            transformers.append(("char", self._char_vectorizer(char_terms)))
        return FeatureUnion(transformers)

    def _vectorizers(self) -> list[tuple[str, str, TfidfVectorizer]]:
        prefixes = {"word": WORD_PREFIX, "char": CHAR_PREFIX}
        return [(name, prefixes[name], vectorizer) for name, vectorizer in self.union.transformer_list]

    def clean_text(self, text: str) -> str:
        """
        Clean and normalize text.

        Unicode letters of any script are kept; markup, URLs, e-mail
        addresses and punctuation are dropped.

        Args:
            text: Raw text string

        Returns:
            Cleaned, lower-cased text
        """
        if not isinstance(text, str):
            return ""

        text = unicodedata.normalize("NFKC", html.unescape(text))

        text = re.sub(r"<[^>]+>", " ", text)

        text = re.sub(r"http\S+|www\S+", " ", text)

        text = re.sub(r"\S+@\S+", " ", text)

        text = text.casefold().replace("ё", "е")

        text = text.replace("n't", " not")

        return " ".join(TOKEN_RE.findall(text))

    def tokenize(self, text: str) -> list[str]:
        return self.clean_text(text).split()

    def extract_terms(self, text: str) -> list[str]:
        """
        Extract all word and character n-gram terms of a text.

        Args:
            text: Raw text string

        Returns:
            List of prefixed terms, with repetitions
        """
        terms = []
        for _, prefix, vectorizer in self._vectorizers():
            analyzer = vectorizer.build_analyzer()
            terms.extend(prefix + term for term in analyzer(text))
        return terms

    def fit(self, texts: list[str]) -> "TextFeaturizer":
        """
        Learn the vocabularies and IDF weights.

        Args:
            texts: Training texts

        Returns:
            Self for chaining

        Raises:
            InvalidInputError: If there are no texts or no terms survive filtering
        """
        if not texts:
            raise InvalidInputError("Cannot fit featurizer on an empty corpus")

        logger.info(f"Building vocabulary from {len(texts)} texts...")

        union = self._build_union()
        try:
            union.fit(list(texts))
        except ValueError as exc:
            raise InvalidInputError(f"No terms left in vocabulary after filtering: {exc}") from exc

        self.union = union
        self.is_fitted = True

        logger.info(f"Final vocabulary size: {self.dimension}")
        return self

    @property
    def vocabulary(self) -> dict[str, int]:
        """Prefixed term -> position in the feature vector."""
        if not self.is_fitted:
            return {}
        result = {}
        offset = 0
        for _, prefix, vectorizer in self._vectorizers():
            for term, idx in vectorizer.vocabulary_.items():
                result[prefix + term] = offset + int(idx)
            offset += len(vectorizer.vocabulary_)
        return result

    @property
    def idf(self) -> np.ndarray:
        """IDF weight per feature, aligned with ``vocabulary``."""
        if not self.is_fitted:
            return np.zeros(0, dtype=np.float64)
        return np.concatenate([vectorizer.idf_ for _, _, vectorizer in self._vectorizers()])

    @property
    def dimension(self) -> int:
        if not self.is_fitted:
            return 0
        return sum(len(vectorizer.vocabulary_) for _, _, vectorizer in self._vectorizers())

    def _transform_matrix(self, texts: list[str]):
        if not self.is_fitted:
            raise RuntimeError("Featurizer must be fitted before transform")

        matrix = normalize(self.union.transform(list(texts)), norm="l2", copy=False).tocsr()
        matrix.sort_indices()
        return matrix

    def transform_sparse(self, text: str) -> tuple[np.ndarray, np.ndarray]:
        """
        Map a text to the non-zero entries of its feature vector.

        Args:
            text: Raw text string

        Returns:
            Tuple of (sorted int64 indices, float32 values); both empty when
            the text has no known terms
        """
        return self.transform_sparse_batch([text])[0]

    def transform_sparse_batch(self, texts: list[str]) -> list[tuple[np.ndarray, np.ndarray]]:
        """Sparse (indices, values) vectors of many texts, in input order."""
        if not texts:
            return []
        matrix = self._transform_matrix(texts)
        vectors = []
        for row in range(matrix.shape[0]):
            start, end = matrix.indptr[row], matrix.indptr[row + 1]
            vectors.append((
                matrix.indices[start:end].astype(np.int64),
                matrix.data[start:end].astype(np.float32),
            ))
        return vectors

    def transform(self, text: str) -> np.ndarray:
        """
        Map a text to its dense feature vector.

        Empty text, or text made only of unknown terms, maps to the zero vector.

        Args:
            text: Raw text string

        Returns:
            float32 array of shape (dimension,)
        """
        return self.transform_batch([text])[0]

    def transform_batch(self, texts: list[str]) -> np.ndarray:
        """
        Map texts to a dense feature matrix.

        Returns:
            float32 array of shape (len(texts), dimension)
        """
        if not texts:
            if not self.is_fitted:
                raise RuntimeError("Featurizer must be fitted before transform")
            return np.zeros((0, self.dimension), dtype=np.float32)
        return self._transform_matrix(texts).toarray().astype(np.float32)

    def get_state(self) -> dict[str, Any]:
        """Return a JSON-serializable snapshot of the fitted featurizer."""
        if not self.is_fitted:
            raise RuntimeError("Featurizer must be fitted before saving")

        state = {
            "state_version": self.STATE_VERSION,
            "word_ngram_range": list(self.word_ngram_range),
            "char_ngram_range": list(self.char_ngram_range) if self.char_ngram_range else None,
            "max_features": self.max_features,
            "min_word_freq": self.min_word_freq,
        }
        for name, _, vectorizer in self._vectorizers():
            vocabulary = vectorizer.vocabulary_
            state[f"{name}_terms"] = sorted(vocabulary, key=vocabulary.get)
            state[f"{name}_idf"] = vectorizer.idf_.tolist()
        return state

    @classmethod
    def from_state(cls, state: dict[str, Any]) -> "TextFeaturizer":
        """
        Rebuild a fitted featurizer from ``get_state`` output.

        Raises:
            ValueError: If the state is inconsistent or of another version
        """
        if not isinstance(state, dict):
            raise ValueError(f"Featurizer state must be a mapping, got {type(state).__name__}")
        if state.get("state_version") != cls.STATE_VERSION:
            raise ValueError(f"Unsupported featurizer state version: {state.get('state_version')}")

        featurizer = cls(
            word_ngram_range=tuple(state["word_ngram_range"]),
            char_ngram_range=tuple(state["char_ngram_range"]) if state["char_ngram_range"] else None,
            max_features=state["max_features"],
            min_word_freq=state["min_word_freq"],
        )
        featurizer.union = featurizer._build_union(
            word_terms=list(state["word_terms"]),
            char_terms=list(state["char_terms"]) if featurizer.char_ngram_range else None,
        )
        for name, _, vectorizer in featurizer._vectorizers():
            # Assigning idf_ checks the fixed vocabulary and its size.
            vectorizer.idf_ = np.array(state[f"{name}_idf"], dtype=np.float64)

        featurizer.is_fitted = True
        return featurizer


def _check_range(value: tuple[int, int], name: str) -> None:
    low, high = value
    if low < 1 or high < low:
        raise ValueError(f"{name} must satisfy 1 <= min <= max, got {value}")
