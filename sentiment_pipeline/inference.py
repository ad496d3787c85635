"""
Inference module for sentiment classification.

Provides an API for scoring single texts and batches, and the three-way
bucketing of probabilities used for display.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Sequence

from .errors import InvalidInputError
from .model import DECISION_THRESHOLD, SentimentModel
from .schemas import Prediction

logger = logging.getLogger("sentiment_pipeline")


POSITIVE_THRESHOLD = 0.6
NEGATIVE_THRESHOLD = 0.4
MAX_TEXT_LENGTH = 50000
ERROR_SENTIMENT = "Error"


def classify(probability: float) -> str:
    """
    Bucket a positive-class probability for display.

    Args:
        probability: Probability that the text is positive

    Returns:
        'Positive' above 0.6, 'Negative' below 0.4, 'Neutral' otherwise
    """
    if probability > POSITIVE_THRESHOLD:
        return "Positive"
    if probability < NEGATIVE_THRESHOLD:
        return "Negative"
    return "Neutral"


def validate_prediction_input(text: Any) -> str:
    """
    Validate and normalize one inference input.

    Bytes are decoded as UTF-8. Empty strings are accepted and score as the
    zero feature vector.

    Args:
        text: Input text

    Returns:
        The input as a string

    Raises:
        InvalidInputError: If the input is unusable
    """
    if text is None:
        raise InvalidInputError("Input text cannot be None")

    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidInputError(f"Input is not valid UTF-8: {exc}") from exc

    if not isinstance(text, str):
        raise InvalidInputError(f"Input must be string, got {type(text).__name__}")

    if len(text) > MAX_TEXT_LENGTH:
        raise InvalidInputError(f"Input text exceeds maximum length ({MAX_TEXT_LENGTH} characters)")

    return text


def _display_text(text: Any) -> str:
    if isinstance(text, str):
        return text
    if isinstance(text, (bytes, bytearray)):
        return bytes(text).decode("utf-8", errors="replace")
    return repr(text)


def _error_prediction(text: Any, error: str) -> Prediction:
    return Prediction(
        text=_display_text(text),
        predicted_label=None,
        probability=None,
        sentiment=ERROR_SENTIMENT,
        error=error,
    )


class SentimentPredictor:
    """
    High-level predictor over a trained model.

    The model is read-only, so batch items are scored independently on a
    thread pool; results always come back in input order.
    """

    def __init__(self, model: SentimentModel, max_workers: int = 4):
        """
        Args:
            model: Trained model
            max_workers: Threads used by predict_batch; 1 scores sequentially
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        self.model = model
        self.max_workers = max_workers

    def predict(self, text: Any) -> Prediction:
        """
        Score a single text.

        Raises:
            InvalidInputError: If input validation fails
        """
        text = validate_prediction_input(text)
        probability = self.model.predict_one(text)

        return Prediction(
            text=text,
            predicted_label=probability > DECISION_THRESHOLD,
            probability=probability,
            sentiment=classify(probability),
        )

    def _predict_isolated(self, text: Any) -> Prediction:
        try:
            return self.predict(text)
        except InvalidInputError as exc:
            logger.warning(f"Skipping invalid batch item: {exc}")
            return _error_prediction(text, str(exc))
        except (RuntimeError, ValueError) as exc:
            logger.error(f"Scoring failed for batch item: {type(exc).__name__}: {exc}")
            return _error_prediction(text, f"{type(exc).__name__}: {exc}")

    def predict_batch(self, texts: Sequence[Any]) -> list[Prediction]:
        """
        Score many texts.

        An invalid item yields a Prediction with ``error`` set instead of
        failing the whole batch.

        Args:
            texts: Input texts

        Returns:
            One Prediction per input, in input order
        """
        if self.max_workers == 1 or len(texts) <= 1:
            return [self._predict_isolated(text) for text in texts]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(self._predict_isolated, texts))


def print_predictions(predictions: Sequence[Prediction], title: str) -> None:
    """Print predictions, one per line."""
    print()
    print(f"=============== {title} ===============")
    print()

    for prediction in predictions:
        if prediction.ok:
            print(
                f"Sentiment: {prediction.text} | Prediction: {prediction.sentiment} "
                f"| Label: {prediction.predicted_label} | Probability: {prediction.probability:.4f}"
            )
        else:
            print(f"Sentiment: {prediction.text} | Prediction: {prediction.sentiment} | Error: {prediction.error}")

    print("=============== End of predictions ===============")
