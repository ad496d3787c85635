"""
Sentiment Pipeline Package

Trains, evaluates, persists and applies a binary text sentiment classifier.
"""
from .model import SentimentModel
from .preprocessing import TextFeaturizer
from .inference import SentimentPredictor, classify
from .pipeline import PipelineState, SentimentPipeline
from .schemas import EvaluationMetrics, LabeledExample, Prediction

__all__ = [
    "SentimentModel",
    "TextFeaturizer",
    "SentimentPredictor",
    "classify",
    "PipelineState",
    "SentimentPipeline",
    "EvaluationMetrics",
    "LabeledExample",
    "Prediction",
]
