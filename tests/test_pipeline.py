"""
Tests for the pipeline orchestrator.
"""

import pytest

from conftest import write_csv
from sentiment_pipeline.config import PipelineConfig
from sentiment_pipeline.errors import CorruptModelError, PipelineStateError
from sentiment_pipeline.pipeline import PipelineState, SentimentPipeline
from sentiment_pipeline.store import load_model

TRAINING_PATH = [
    PipelineState.NO_MODEL,
    PipelineState.TRAINING,
    PipelineState.EVALUATING,
    PipelineState.PERSISTED,
    PipelineState.READY,
]


class TestFreshRun:
    """Tests for a run without a persisted model."""

    def test_trains_evaluates_and_persists(self, pipeline_config):
        pipeline = SentimentPipeline(pipeline_config)

        run = pipeline.run()

        assert run.state is PipelineState.READY
        assert run.history == TRAINING_PATH
        assert run.trained
        assert pipeline.model_path.is_file()
        assert run.metrics is not None
        assert run.metrics.total == 16
        assert run.evaluation_error is None
        assert run.statistics["total_samples"] == 64

    def test_run_configuration_saved_beside_model(self, pipeline_config):
        pipeline = SentimentPipeline(pipeline_config)

        pipeline.run()

        assert pipeline.config_path == pipeline.model_path.with_name("model_config.yaml")
        assert PipelineConfig.from_yaml(pipeline.config_path) == pipeline_config

    def test_demo_predictions(self, pipeline_config):
        run = SentimentPipeline(pipeline_config).run()

        assert run.single_prediction.text == "This was a very bad steak"
        assert run.single_prediction.predicted_label is False
        assert [p.text for p in run.batch_predictions] == pipeline_config.inference.batch_texts
        assert all(p.ok for p in run.batch_predictions)

    def test_batch_scored_with_persisted_model(self, pipeline_config):
        pipeline = SentimentPipeline(pipeline_config)
        run = pipeline.run()

        reloaded = load_model(pipeline.model_path)
        for prediction in run.batch_predictions:
            assert prediction.probability == reloaded.predict_one(prediction.text)

    def test_evaluation_failure_does_not_block_persistence(self, pipeline_config, tmp_path):
        data_path = write_csv(
            tmp_path / "tiny.csv",
            [("the food is good", "1"), ("the food is bad", "0"), ("great evening", "1")],
        )
        pipeline_config.data.path = str(data_path)
        pipeline_config.data.test_fraction = 0.2
        pipeline = SentimentPipeline(pipeline_config)

        run = pipeline.run()

        assert run.state is PipelineState.READY
        assert run.metrics is None
        assert "empty" in run.evaluation_error
        assert pipeline.model_path.is_file()

    def test_missing_data_fails(self, pipeline_config, tmp_path):
        pipeline_config.data.path = str(tmp_path / "missing.csv")
        pipeline = SentimentPipeline(pipeline_config)

        with pytest.raises(FileNotFoundError):
            pipeline.run()

        assert pipeline.state is PipelineState.FAILED
        assert pipeline.history == [PipelineState.NO_MODEL, PipelineState.TRAINING, PipelineState.FAILED]
        assert not pipeline.model_path.exists()

    def test_unwritable_model_path_fails(self, pipeline_config, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        pipeline_config.paths.model_path = str(blocker / "model.zip")
        pipeline = SentimentPipeline(pipeline_config)

        with pytest.raises(OSError):
            pipeline.run()

        assert pipeline.state is PipelineState.FAILED
        assert PipelineState.PERSISTED not in pipeline.history


class TestExistingModel:
    """Tests for a run with a persisted model."""

    def test_reuses_persisted_model(self, pipeline_config):
        SentimentPipeline(pipeline_config).run()
        pipeline = SentimentPipeline(pipeline_config)
        mtime = pipeline.model_path.stat().st_mtime_ns

        run = pipeline.run()

        assert run.history == [PipelineState.MODEL_EXISTS, PipelineState.READY]
        assert not run.trained
        assert run.metrics is None
        assert run.single_prediction is not None
        assert len(run.batch_predictions) == len(pipeline_config.inference.batch_texts)
        assert pipeline.model_path.stat().st_mtime_ns == mtime

    def test_reuse_does_not_rewrite_configuration(self, pipeline_config):
        pipeline = SentimentPipeline(pipeline_config)
        pipeline.run()
        pipeline.config_path.unlink()

        pipeline.run()

        assert not pipeline.config_path.exists()

    def test_force_retrain(self, pipeline_config):
        pipeline = SentimentPipeline(pipeline_config)
        pipeline.run()

        run = pipeline.run(force_retrain=True)

        assert run.history == TRAINING_PATH
        assert run.trained

    def test_corrupt_model_fails(self, pipeline_config):
        pipeline = SentimentPipeline(pipeline_config)
        pipeline.model_path.parent.mkdir(parents=True)
        pipeline.model_path.write_bytes(b"garbage")

        with pytest.raises(CorruptModelError):
            pipeline.run()

        assert pipeline.history == [PipelineState.MODEL_EXISTS, PipelineState.FAILED]

    def test_initial_state(self, pipeline_config):
        pipeline = SentimentPipeline(pipeline_config)
        assert pipeline.initial_state() is PipelineState.NO_MODEL

        pipeline.run()

        assert pipeline.initial_state() is PipelineState.MODEL_EXISTS
        assert pipeline.initial_state(force_retrain=True) is PipelineState.NO_MODEL


class TestTransitions:
    """Tests for the state machine guard."""

    def test_illegal_transition(self, pipeline_config):
        pipeline = SentimentPipeline(pipeline_config)
        pipeline._transition(PipelineState.NO_MODEL)

        with pytest.raises(PipelineStateError):
            pipeline._transition(PipelineState.READY)

    def test_cannot_start_in_ready(self, pipeline_config):
        with pytest.raises(PipelineStateError):
            SentimentPipeline(pipeline_config)._transition(PipelineState.READY)

    def test_failed_is_terminal(self, pipeline_config):
        pipeline = SentimentPipeline(pipeline_config)
        pipeline._transition(PipelineState.MODEL_EXISTS)
        pipeline._transition(PipelineState.FAILED)

        with pytest.raises(PipelineStateError):
            pipeline._transition(PipelineState.READY)
