"""
PyTorch Dataset serving featurized examples to the trainer.
"""

import logging

import numpy as np
import torch
from torch.utils.data import Dataset

from .errors import InvalidInputError
from .preprocessing import TextFeaturizer

logger = logging.getLogger("sentiment_pipeline")


class FeatureDataset(Dataset):
    """
    Dataset of (feature vector, label) pairs.

    Vectors are kept in sparse form and densified per item, so memory stays
    proportional to the number of non-zero features.
    """

    def __init__(
        self,
        features: list[tuple[np.ndarray, np.ndarray]],
        labels: list[bool],
        dimension: int,
    ):
        """
        Args:
            features: Sparse (indices, values) vector per example
            labels: Boolean label per example
            dimension: Length of the dense feature vectors
        """
        if len(features) != len(labels):
            raise InvalidInputError(
                f"Number of feature vectors ({len(features)}) must match "
                f"number of labels ({len(labels)})"
            )

        self.features = features
        self.labels = [bool(label) for label in labels]
        self.dimension = dimension

    @classmethod
    def from_texts(
        cls,
        texts: list[str],
        labels: list[bool],
        featurizer: TextFeaturizer,
    ) -> "FeatureDataset":
        """Featurize raw texts with a fitted featurizer."""
        if len(texts) != len(labels):
            raise InvalidInputError(
                f"Number of texts ({len(texts)}) must match number of labels ({len(labels)})"
            )
        if not featurizer.is_fitted:
            raise RuntimeError("Featurizer must be fitted before creating dataset")

        logger.info(f"Featurizing {len(texts)} samples...")
        features = featurizer.transform_sparse_batch(texts)
        return cls(features, labels, featurizer.dimension)

    @classmethod
    def from_dense(cls, vectors: np.ndarray | list, labels: list[bool]) -> "FeatureDataset":
        """Wrap an already dense (n, dimension) feature matrix."""
        matrix = np.asarray(vectors, dtype=np.float32)
        if matrix.ndim != 2:
            raise InvalidInputError(f"Feature vectors must form a 2-D matrix, got shape {matrix.shape}")

        features = []
        for row in matrix:
            indices = np.flatnonzero(row).astype(np.int64)
            features.append((indices, row[indices]))
        return cls(features, labels, matrix.shape[1])

    def __len__(self) -> int:
        return len(self.labels)

    def __getitem__(self, idx: int) -> dict[str, torch.Tensor]:
        indices, values = self.features[idx]
        vector = torch.zeros(self.dimension, dtype=torch.float32)
        vector[torch.from_numpy(indices)] = torch.from_numpy(values)
        return {
            "features": vector,
            "label": torch.tensor(float(self.labels[idx]), dtype=torch.float32),
        }

    def get_class_balance(self) -> float:
        """Fraction of positive labels."""
        if not self.labels:
            return 0.0
        return sum(self.labels) / len(self.labels)
