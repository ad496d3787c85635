"""
Orchestration of the train / evaluate / persist / predict sequence.

The run is an explicit state machine:

    NO_MODEL -> TRAINING -> EVALUATING -> PERSISTED -> READY
    MODEL_EXISTS -> READY

Any fatal error moves the machine to FAILED and is re-raised. Evaluation
errors are recorded on the run but do not stop persistence.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .config import PipelineConfig
from .data_loader import get_data_statistics, load_examples, split_examples
from .errors import PipelineError, PipelineStateError
from .evaluate import evaluate_model
from .inference import SentimentPredictor
from .model import SentimentModel
from .schemas import EvaluationMetrics, LabeledExample, Prediction
from .store import load_model, model_exists, save_model
from .train import train_model
from .utils import save_config, set_seed

logger = logging.getLogger("sentiment_pipeline")


class PipelineState(str, Enum):
    NO_MODEL = "no_model"
    MODEL_EXISTS = "model_exists"
    TRAINING = "training"
    EVALUATING = "evaluating"
    PERSISTED = "persisted"
    READY = "ready"
    FAILED = "failed"


TRANSITIONS: dict[PipelineState | None, frozenset[PipelineState]] = {
    None: frozenset({PipelineState.NO_MODEL, PipelineState.MODEL_EXISTS}),
    PipelineState.NO_MODEL: frozenset({PipelineState.TRAINING, PipelineState.FAILED}),
    PipelineState.MODEL_EXISTS: frozenset({PipelineState.READY, PipelineState.FAILED}),
    PipelineState.TRAINING: frozenset({PipelineState.EVALUATING, PipelineState.FAILED}),
    PipelineState.EVALUATING: frozenset({PipelineState.PERSISTED, PipelineState.FAILED}),
    PipelineState.PERSISTED: frozenset({PipelineState.READY, PipelineState.FAILED}),
    PipelineState.READY: frozenset({PipelineState.FAILED}),
    PipelineState.FAILED: frozenset(),
}


@dataclass
class PipelineRun:
    """Outcome of one pipeline run."""

    state: PipelineState | None = None
    history: list[PipelineState] = field(default_factory=list)
    trained: bool = False
    model: SentimentModel | None = None
    statistics: dict[str, Any] | None = None
    metrics: EvaluationMetrics | None = None
    evaluation_error: str | None = None
    single_prediction: Prediction | None = None
    batch_predictions: list[Prediction] = field(default_factory=list)


class SentimentPipeline:
    """
    Runs the pipeline for one configuration.

    A persisted model at ``config.paths.model_path`` is loaded read-only and
    never retrained unless ``force_retrain`` is requested.
    """

    def __init__(self, config: PipelineConfig | None = None):
        self.config = config or PipelineConfig()
        self.state: PipelineState | None = None
        self.history: list[PipelineState] = []

    @property
    def model_path(self) -> Path:
        return Path(self.config.paths.model_path)

    @property
    def config_path(self) -> Path:
        """Resolved run configuration saved next to a freshly trained model."""
        return self.model_path.with_name(f"{self.model_path.stem}_config.yaml")

    def initial_state(self, force_retrain: bool = False) -> PipelineState:
        """State the next run starts in."""
        if not force_retrain and model_exists(self.model_path):
            return PipelineState.MODEL_EXISTS
        return PipelineState.NO_MODEL

    def _transition(self, new_state: PipelineState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            current = self.state.value if self.state else "start"
            raise PipelineStateError(f"Illegal transition {current} -> {new_state.value}")
        logger.debug(f"Pipeline state: {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def run(self, force_retrain: bool = False) -> PipelineRun:
        """
        Execute the pipeline to the READY state.

        Args:
            force_retrain: Train a new model even if one is persisted

        Returns:
            The run outcome

        Raises:
            PipelineError, OSError: On any fatal error
        """
        self.state = None
        self.history = []
        run = PipelineRun()

        self._transition(self.initial_state(force_retrain))
        try:
            if self.state is PipelineState.MODEL_EXISTS:
                self._run_existing(run)
            else:
                self._run_training(run)
        except Exception:
            self._transition(PipelineState.FAILED)
            run.state = self.state
            run.history = list(self.history)
            raise

        run.state = self.state
        run.history = list(self.history)
        logger.info("End of process")
        return run

    def _run_existing(self, run: PipelineRun) -> None:
        logger.info(f"Using persisted model at {self.model_path}")
        model = load_model(self.model_path)
        run.model = model

        self._transition(PipelineState.READY)
        self._infer(run, single_model=model, batch_model=model)

    def _run_training(self, run: PipelineRun) -> None:
        config = self.config

        self._transition(PipelineState.TRAINING)
        set_seed(config.training.random_seed)
        train, test = self.load_data(run)
        model = train_model(
            train,
            featurizer_config=config.features,
            training_config=config.training,
            log_dir=config.paths.log_dir,
        )
        run.model = model
        run.trained = True

        self._transition(PipelineState.EVALUATING)
        self._evaluate(run, model, test)

        save_model(model, self.model_path)
        save_config(config.to_dict(), self.config_path)
        self._transition(PipelineState.PERSISTED)

        self._transition(PipelineState.READY)
        self._infer(run, single_model=model, batch_model=load_model(self.model_path))

    def load_data(self, run: PipelineRun) -> tuple[list[LabeledExample], list[LabeledExample]]:
        data = self.config.data
        examples = load_examples(data.path, delimiter=data.delimiter, has_header=data.has_header)
        run.statistics = get_data_statistics(examples)
        return split_examples(
            examples,
            test_fraction=data.test_fraction,
            random_seed=self.config.training.random_seed,
        )

    def _evaluate(self, run: PipelineRun, model: SentimentModel, test: list[LabeledExample]) -> None:
        try:
            run.metrics = evaluate_model(model, test)
        except (PipelineError, ValueError) as exc:
            run.evaluation_error = str(exc)
            logger.error(f"Evaluation failed, continuing without metrics: {exc}")

    def _infer(self, run: PipelineRun, single_model: SentimentModel, batch_model: SentimentModel) -> None:
        inference = self.config.inference

        if inference.sample_text:
            predictor = SentimentPredictor(single_model, max_workers=1)
            run.single_prediction = predictor.predict(inference.sample_text)

        if inference.batch_texts:
            predictor = SentimentPredictor(batch_model, max_workers=inference.max_workers)
            run.batch_predictions = predictor.predict_batch(inference.batch_texts)
