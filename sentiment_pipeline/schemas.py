"""
Record types shared across the pipeline.
"""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class LabeledExample:
    """A single labeled row of the training corpus."""

    text: str
    label: bool


@dataclass(frozen=True)
class Prediction:
    """
    Result of scoring one text.

    ``predicted_label`` is the model's binary decision (threshold 0.5) and
    ``sentiment`` the three-way display bucket. Items that failed during batch
    inference carry ``error`` and no label or probability.
    """

    text: str
    predicted_label: bool | None
    probability: float | None
    sentiment: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for tabular output."""
        return {
            "text": self.text,
            "predicted_label": self.predicted_label,
            "probability": round(self.probability, 4) if self.probability is not None else None,
            "sentiment": self.sentiment,
            "error": self.error,
        }


@dataclass(frozen=True)
class EvaluationMetrics:
    """Aggregate quality metrics computed over a held-out set."""

    accuracy: float
    auc: float
    f1: float
    precision: float
    recall: float
    tp: int
    fp: int
    tn: int
    fn: int

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.tn + self.fn

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["total"] = self.total
        return result
