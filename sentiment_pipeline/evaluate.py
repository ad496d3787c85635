"""
Evaluation of a trained sentiment model on held-out examples.
"""

import logging
from typing import Sequence

import numpy as np
from sklearn.metrics import confusion_matrix, roc_auc_score

from .errors import EmptyDatasetError
from .model import DECISION_THRESHOLD, SentimentModel
from .schemas import EvaluationMetrics, LabeledExample

logger = logging.getLogger("sentiment_pipeline")


def compute_metrics(
    labels: Sequence[bool],
    probabilities: Sequence[float],
    threshold: float = DECISION_THRESHOLD,
) -> EvaluationMetrics:
    """
    Compute accuracy, ROC-AUC and F1 from labels and scores.

    A probability strictly above ``threshold`` counts as a positive
    prediction. AUC is undefined when only one class is present; 0.5 is
    reported in that case.
    """
    if len(labels) == 0:
        raise EmptyDatasetError("Cannot evaluate on an empty dataset")
    if len(labels) != len(probabilities):
        raise ValueError(
            f"Number of labels ({len(labels)}) must match "
            f"number of probabilities ({len(probabilities)})"
        )

    y_true = np.asarray(labels, dtype=bool).astype(int)
    y_prob = np.asarray(probabilities, dtype=np.float64)
    y_pred = (y_prob > threshold).astype(int)

    tn, fp, fn, tp = (int(v) for v in confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel())
    total = tp + fp + tn + fn

    precision = tp / (tp + fp) if tp + fp else 0.0
    recall = tp / (tp + fn) if tp + fn else 0.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0

    if len(np.unique(y_true)) < 2:
        logger.warning("Only one class present in evaluation labels; AUC reported as 0.5")
        auc = 0.5
    else:
        auc = float(roc_auc_score(y_true, y_prob))

    return EvaluationMetrics(
        accuracy=(tp + tn) / total,
        auc=auc,
        f1=f1,
        precision=precision,
        recall=recall,
        tp=tp,
        fp=fp,
        tn=tn,
        fn=fn,
    )


def evaluate_model(model: SentimentModel, test_examples: Sequence[LabeledExample]) -> EvaluationMetrics:
    """
    Score held-out examples and compute quality metrics.

    Raises:
        EmptyDatasetError: If there are no test examples
    """
    if not test_examples:
        raise EmptyDatasetError("Cannot evaluate on an empty dataset")

    logger.info(f"Evaluating model accuracy on {len(test_examples)} test samples")

    probabilities = model.predict_proba([example.text for example in test_examples])
    metrics = compute_metrics([example.label for example in test_examples], probabilities)

    logger.info(
        f"Accuracy: {metrics.accuracy:.4f}, AUC: {metrics.auc:.4f}, F1: {metrics.f1:.4f}"
    )
    return metrics


def print_metrics(metrics: EvaluationMetrics) -> None:
    """Print evaluation results."""
    print()
    print("Model quality metrics evaluation")
    print("-" * 32)
    print(f"Accuracy: {metrics.accuracy:.2%}")
    print(f"Auc: {metrics.auc:.2%}")
    print(f"F1Score: {metrics.f1:.2%}")

    print("\nConfusion Matrix:")
    print(f"  TP: {metrics.tp:<6} FP: {metrics.fp}")
    print(f"  FN: {metrics.fn:<6} TN: {metrics.tn}")
    print("=" * 60)
