"""
Typed pipeline configuration.

The configuration is a tree of dataclasses built from a plain mapping (usually
a YAML file) and passed explicitly to every component.
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from .utils import load_config

DEFAULT_SAMPLE_TEXT = "This was a very bad steak"

DEFAULT_BATCH_TEXTS = [
    "очень плохо ужасно ненависть неудача грустно ",
    "СК начал проверку из-за открытия пассажиром аварийного люка самолёта",
    "В центре Курска часть домов осталась без горячей воды",
    "В Курске в ДТП перевернулась ГАЗель",
    "Маск и Безос поздравили Брэнсона с успешным полетом к границе космоса",
    "Настолько неприятных людей я еще не видела",
    "И это почти 10 лет спустя... грустная песенка",
    "Не переношу зубную боль,а к стоматологу даже нет времени записаться",
    "что то жестко лагает по несколько секунд. играть невозможно. танк разбирают за это время(",
    " ненавижу скриншоты и фото в обзоры добавлять",
    "Всегда бы такую погоду как сегодня. мороза нет, ветра нет и только снег падает) красота",
    "Смотрится гораздо красивее купленных нами БКМов... Не правда ли",
    "Смотрится гораздо красивее купленных нами БКМов... ",
    "И сон сегодня ПРИКОЛЬНЫЙ приснился;) , а то вечно кошмарики. ;)",
    "Такая искренняя радость) они заслужили эту победу)))",
    "учебная программа по ритмике для дши",
    "В Японии приняли закон о хранении тайн",
    "сдам комнату в краснодаре в районе схи",
    "В любой непонятной ситуации чисти кэш.",
    "как поэтапно нарисовать кувшин гуашью",
    "маршрут от дома до школы для портфолио",
    "инструкция к применению зеленого кофе",
    "поручику подходит полковник и говорит",
    "сколько каллорий употреблять на сушке",
    "программа для создания проектов кухни",
    "шпаргалки для олимпиады по математике",
    "как правильно заваривать зеленый кофе",
    "поделки из пластиковых бутылок пальма",
    "интерактивный семинар по общей физике",
    "сочинение на тему в гости к египтянину",
]


@dataclass
class DataConfig:
    path: str = "data/sentiment.csv"
    delimiter: str = ";"
    has_header: bool = True
    test_fraction: float = 0.2


@dataclass
class FeaturizerConfig:
    word_ngram_range: tuple[int, int] = (1, 2)
    char_ngram_range: tuple[int, int] | None = (3, 3)
    max_features: int = 20000
    min_word_freq: int = 1


@dataclass
class TrainingConfig:
    epochs: int = 30
    batch_size: int = 32
    learning_rate: float = 0.05
    weight_decay: float = 1e-4
    early_stopping_patience: int = 3
    min_delta: float = 1e-4
    random_seed: int = 42


@dataclass
class InferenceConfig:
    max_workers: int = 4
    sample_text: str | None = DEFAULT_SAMPLE_TEXT
    batch_texts: list[str] = field(default_factory=lambda: list(DEFAULT_BATCH_TEXTS))


@dataclass
class PathsConfig:
    model_path: str = "models/model.zip"
    log_dir: str | None = None


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_file: str | None = None


_SECTIONS = {
    "data": DataConfig,
    "features": FeaturizerConfig,
    "training": TrainingConfig,
    "inference": InferenceConfig,
    "paths": PathsConfig,
    "logging": LoggingConfig,
}

_TUPLE_FIELDS = {"word_ngram_range", "char_ngram_range"}


def _build_section(section_cls: type, values: dict[str, Any] | None, name: str) -> Any:
    values = dict(values or {})
    known = {f.name for f in fields(section_cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown keys in config section '{name}': {', '.join(unknown)}")
    for key in _TUPLE_FIELDS & set(values):
        if values[key] is not None:
            values[key] = tuple(values[key])
    return section_cls(**values)


@dataclass
class PipelineConfig:
    """Complete configuration of a pipeline run."""

    data: DataConfig = field(default_factory=DataConfig)
    features: FeaturizerConfig = field(default_factory=FeaturizerConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "PipelineConfig":
        """
        Build a configuration from a nested mapping.

        Missing sections and keys fall back to defaults; unknown sections or
        keys raise ValueError so that typos do not go unnoticed.
        """
        unknown = sorted(set(raw) - set(_SECTIONS))
        if unknown:
            raise ValueError(f"Unknown config sections: {', '.join(unknown)}")
        return cls(**{
            name: _build_section(section_cls, raw.get(name), name)
            for name, section_cls in _SECTIONS.items()
        })

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "PipelineConfig":
        return cls.from_dict(load_config(config_path))

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        for section in result.values():
            for key in _TUPLE_FIELDS & set(section):
                if section[key] is not None:
                    section[key] = list(section[key])
        return result
