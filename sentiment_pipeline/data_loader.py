"""
Dataset loading and splitting.

Reads the delimited sentiment corpus into typed records, partitions it into
train/test sets and computes basic statistics.
"""

import logging
import math
from pathlib import Path
from typing import Any, Sequence

import numpy as np
import pandas as pd

from .errors import InvalidInputError, ParseError
from .schemas import LabeledExample

logger = logging.getLogger("sentiment_pipeline")


TRUE_LABELS = frozenset({"1", "true"})
FALSE_LABELS = frozenset({"0", "false"})
EXPECTED_COLUMNS = 2


def parse_label(value: Any) -> bool:
    """
    Parse a boolean-like label.

    Accepts ``0``/``1`` and ``true``/``false`` (case-insensitive, surrounding
    whitespace ignored).

    Raises:
        ParseError: If the value is not a recognised label
    """
    if isinstance(value, bool):
        return value
    if value is None or (isinstance(value, float) and math.isnan(value)):
        raise ParseError("Label is missing")

    normalized = str(value).strip().lower()
    if normalized in TRUE_LABELS:
        return True
    if normalized in FALSE_LABELS:
        return False
    raise ParseError(f"Unparseable label: {value!r}")


def load_examples(
    path: str | Path,
    delimiter: str = ";",
    has_header: bool = True,
) -> list[LabeledExample]:
    """
    Load labeled examples from a delimited text file.

    The file must have exactly two columns: the text and the label. Quoted
    fields may contain the delimiter.

    Args:
        path: Path to the data file
        delimiter: Field separator
        has_header: Whether the first row is a header

    Returns:
        Examples in file order

    Raises:
        FileNotFoundError: If the file does not exist
        ParseError: If the header row is missing, or a row has the wrong
            column count or a bad label
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Data file not found: {path}")

    logger.info(f"Loading examples from {path}")

    try:
        frame = pd.read_csv(
            path,
            sep=delimiter,
            header=None,
            quotechar='"',
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8",
        )
    except pd.errors.EmptyDataError as exc:
        if has_header:
            raise ParseError(f"Data file {path} is empty; expected a header row") from exc
        logger.warning(f"Data file is empty: {path}")
        return []
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise ParseError(f"Malformed data file {path}: {exc}") from exc

    if frame.shape[1] != EXPECTED_COLUMNS:
        raise ParseError(
            f"Expected {EXPECTED_COLUMNS} columns in {path}, found {frame.shape[1]}"
        )

    first_row = 0
    if has_header:
        frame = frame.iloc[1:]
        first_row = 1

    examples = []
    for offset, (text, label) in enumerate(frame.itertuples(index=False, name=None)):
        row_number = first_row + offset + 1
        if not isinstance(text, str):
            raise ParseError(f"Row {row_number}: missing text column")
        try:
            examples.append(LabeledExample(text=text, label=parse_label(label)))
        except ParseError as exc:
            raise ParseError(f"Row {row_number}: {exc}") from exc

    logger.info(f"Loaded {len(examples)} examples")
    return examples


def split_examples(
    examples: Sequence[LabeledExample],
    test_fraction: float = 0.2,
    random_seed: int = 42,
) -> tuple[list[LabeledExample], list[LabeledExample]]:
    """
    Randomly partition examples into disjoint train and test sets.

    Args:
        examples: Examples to split
        test_fraction: Fraction of examples assigned to the test set
        random_seed: Seed of the permutation; the same seed gives the same split

    Returns:
        Tuple of (train, test)
    """
    if not 0.0 < test_fraction < 1.0:
        raise InvalidInputError(f"test_fraction must be in (0, 1), got {test_fraction}")

    rng = np.random.default_rng(random_seed)
    indices = rng.permutation(len(examples))

    n_test = int(len(examples) * test_fraction)
    test = [examples[i] for i in indices[:n_test]]
    train = [examples[i] for i in indices[n_test:]]

    logger.info(f"Split data: {len(train)} train, {len(test)} test")
    return train, test


def get_data_statistics(examples: Sequence[LabeledExample]) -> dict[str, Any]:
    """
    Compute class balance and length statistics.

    Args:
        examples: Loaded examples

    Returns:
        Dictionary with dataset statistics
    """
    if not examples:
        return {"error": "Empty dataset"}

    labels = np.array([example.label for example in examples], dtype=bool)
    word_counts = [len(example.text.split()) for example in examples]
    char_counts = [len(example.text) for example in examples]

    pos_count = int(labels.sum())
    neg_count = len(examples) - pos_count

    return {
        "total_samples": len(examples),
        "positive_samples": pos_count,
        "negative_samples": neg_count,
        "class_balance": {
            "positive_ratio": pos_count / len(examples),
            "negative_ratio": neg_count / len(examples),
        },
        "word_count": {
            "mean": float(np.mean(word_counts)),
            "std": float(np.std(word_counts)),
            "min": int(np.min(word_counts)),
            "max": int(np.max(word_counts)),
            "median": float(np.median(word_counts)),
        },
        "char_count": {
            "mean": float(np.mean(char_counts)),
            "min": int(np.min(char_counts)),
            "max": int(np.max(char_counts)),
        },
    }


def print_data_statistics(stats: dict[str, Any]) -> None:
    """Print dataset statistics from get_data_statistics."""
    print("\n" + "=" * 60)
    print("DATASET STATISTICS")
    print("=" * 60)

    if "error" in stats:
        print(f"\n{stats['error']}")
        print("=" * 60 + "\n")
        return

    balance = stats["class_balance"]
    print(f"\nTotal samples: {stats['total_samples']}")
    print(f"  - Positive: {stats['positive_samples']} ({balance['positive_ratio']:.1%})")
    print(f"  - Negative: {stats['negative_samples']} ({balance['negative_ratio']:.1%})")

    wc = stats["word_count"]
    print("\nWord count statistics:")
    print(f"  - Mean: {wc['mean']:.1f}")
    print(f"  - Std: {wc['std']:.1f}")
    print(f"  - Min: {wc['min']}")
    print(f"  - Max: {wc['max']}")
    print(f"  - Median: {wc['median']:.1f}")

    print("=" * 60 + "\n")
