"""
Linear sentiment classifier and the trained-model bundle.

The classifier is a logistic regression expressed as a single linear layer;
``SentimentModel`` pairs it with the fitted featurizer that produced its
inputs.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import torch
import torch.nn as nn

from .preprocessing import TextFeaturizer

logger = logging.getLogger("sentiment_pipeline")

DECISION_THRESHOLD = 0.5


class LogisticRegressionClassifier(nn.Module):
    """
    Binary logistic regression.

    Maps a feature vector to one logit; the probability of the positive class
    is ``sigmoid(logit)``.
    """

    def __init__(self, n_features: int):
        """
        Args:
            n_features: Length of the input feature vectors
        """
        super().__init__()

        if n_features < 1:
            raise ValueError(f"n_features must be positive, got {n_features}")

        self.n_features = n_features
        self.linear = nn.Linear(n_features, 1)

        self._init_weights()

        logger.info(f"Classifier initialized with {self._count_parameters():,} parameters")

    def _init_weights(self) -> None:
        nn.init.zeros_(self.linear.weight)
        nn.init.zeros_(self.linear.bias)

    def _count_parameters(self) -> int:
        return sum(p.numel() for p in self.parameters())

    def forward(self, features: torch.Tensor) -> torch.Tensor:
        """
        Forward pass.

        Args:
            features: Feature matrix [batch_size, n_features]

        Returns:
            Logits [batch_size]
        """
        return self.linear(features).squeeze(-1)

    def predict_proba(self, features: torch.Tensor) -> torch.Tensor:
        """Positive-class probabilities [batch_size]."""
        with torch.no_grad():
            return torch.sigmoid(self.forward(features))


@dataclass(frozen=True)
class SentimentModel:
    """
    Immutable trained pipeline: fitted featurizer plus classifier weights.

    The classifier is switched to eval mode and its parameters frozen on
    construction, so one instance can be shared by concurrent readers.
    """

    featurizer: TextFeaturizer
    classifier: LogisticRegressionClassifier
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.featurizer.is_fitted:
            raise ValueError("SentimentModel requires a fitted featurizer")
        if self.featurizer.dimension != self.classifier.n_features:
            raise ValueError(
                f"Featurizer dimension ({self.featurizer.dimension}) does not match "
                f"classifier input size ({self.classifier.n_features})"
            )
        self.classifier.eval()
        self.classifier.requires_grad_(False)

    @property
    def n_features(self) -> int:
        return self.classifier.n_features

    def predict_proba(self, texts: list[str]) -> np.ndarray:
        """
        Score texts.

        Args:
            texts: Raw input texts

        Returns:
            float64 array of positive-class probabilities, one per text
        """
        matrix = torch.from_numpy(self.featurizer.transform_batch(texts))
        probabilities = self.classifier.predict_proba(matrix)
        return probabilities.numpy().astype(np.float64)

    def predict_one(self, text: str) -> float:
        """Probability for a single text without batching overhead."""
        vector = torch.from_numpy(self.featurizer.transform(text)).unsqueeze(0)
        return float(self.classifier.predict_proba(vector)[0])
