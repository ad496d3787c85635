"""
Pytest configuration and fixtures for sentiment pipeline tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sentiment_pipeline.config import (
    DataConfig,
    FeaturizerConfig,
    InferenceConfig,
    PathsConfig,
    PipelineConfig,
    TrainingConfig,
)
from sentiment_pipeline.preprocessing import TextFeaturizer
from sentiment_pipeline.schemas import LabeledExample
from sentiment_pipeline.train import train_model

POSITIVE_WORDS = ["good", "great", "excellent", "wonderful", "tasty", "lovely", "amazing", "fantastic"]
NEGATIVE_WORDS = ["bad", "terrible", "awful", "horrible", "disgusting", "nasty", "poor", "dreadful"]
TEMPLATES = [
    "this was a very {} steak",
    "the service was {}",
    "what a {} evening",
    "the food is {}",
]


def write_csv(path: Path, rows: list[tuple[str, str]], header: str = "SentimentText;Label") -> Path:
    """Write a ';'-separated corpus with quoted text fields."""
    lines = [header] if header is not None else []
    for text, label in rows:
        escaped = text.replace('"', '""')
        lines.append(f'"{escaped}";{label}')
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def sample_texts() -> list[str]:
    """Sample texts for testing."""
    return [
        "Wow... Loved this place.",
        "Crust is not good.",
        "The selection on the menu was great and so were the prices.",
        "Would not go back.",
        "Такая искренняя радость) они заслужили эту победу)))",
        "Настолько неприятных людей я еще не видела",
    ]


@pytest.fixture
def sample_labels() -> list[bool]:
    """Sample labels corresponding to sample_texts."""
    return [True, False, True, False, True, False]


@pytest.fixture
def separable_examples() -> list[LabeledExample]:
    """Examples whose label is fully determined by a sentiment keyword."""
    examples = []
    for template in TEMPLATES:
        for word in POSITIVE_WORDS:
            examples.append(LabeledExample(text=template.format(word), label=True))
        for word in NEGATIVE_WORDS:
            examples.append(LabeledExample(text=template.format(word), label=False))
    return examples


@pytest.fixture
def featurizer(sample_texts) -> TextFeaturizer:
    """Featurizer fitted on sample_texts."""
    return TextFeaturizer(max_features=1000, min_word_freq=1).fit(sample_texts)


@pytest.fixture
def training_config() -> TrainingConfig:
    """Fast, fully converging optimization settings."""
    return TrainingConfig(
        epochs=60,
        batch_size=8,
        learning_rate=0.1,
        weight_decay=0.0,
        early_stopping_patience=5,
        min_delta=0.0,
        random_seed=42,
    )


@pytest.fixture
def trained_model(separable_examples, training_config):
    """Model trained on the separable corpus."""
    return train_model(
        separable_examples,
        featurizer_config=FeaturizerConfig(min_word_freq=1),
        training_config=training_config,
    )


@pytest.fixture
def separable_csv(tmp_path, separable_examples) -> Path:
    """The separable corpus written as a data file."""
    rows = [(example.text, "1" if example.label else "0") for example in separable_examples]
    return write_csv(tmp_path / "sentiment.csv", rows)


@pytest.fixture
def pipeline_config(tmp_path, separable_csv, training_config) -> PipelineConfig:
    """Pipeline configuration rooted in a temporary directory."""
    return PipelineConfig(
        data=DataConfig(path=str(separable_csv), test_fraction=0.25),
        features=FeaturizerConfig(min_word_freq=1),
        training=training_config,
        inference=InferenceConfig(
            max_workers=2,
            sample_text="This was a very bad steak",
            batch_texts=["what a great evening", "the food is awful", ""],
        ),
        paths=PathsConfig(model_path=str(tmp_path / "models" / "model.zip")),
    )
