"""
Shared helpers for the sentiment pipeline.

Includes logging setup, YAML configuration I/O, seeding and the small
bookkeeping classes used by the training loop.
"""

import logging
import os
import random
import sys
from pathlib import Path
from typing import Any

import numpy as np
import torch
import yaml

LOGGER_NAME = "sentiment_pipeline"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    log_level: str = "INFO",
    log_file: str | None = None,
    log_format: str | None = None,
) -> logging.Logger:
    """
    Configure the project logger.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a file that receives a copy of the log
        log_format: Optional custom log format

    Returns:
        The configured project logger
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")
    formatter = logging.Formatter(log_format or DEFAULT_LOG_FORMAT)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        ensure_dir(Path(log_file).parent)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def load_config(config_path: str | Path) -> dict[str, Any]:
    """
    Load a configuration mapping from a YAML file.

    Args:
        config_path: Path to the YAML file

    Returns:
        Configuration dictionary (empty for an empty file)

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the document is not a mapping
        yaml.YAMLError: If the file is not valid YAML
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f)

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")
    return config


def save_config(config: dict[str, Any], save_path: str | Path) -> None:
    """Write a configuration mapping as YAML."""
    save_path = Path(save_path)
    ensure_dir(save_path.parent)

    with open(save_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, default_flow_style=False, allow_unicode=True, sort_keys=False)


def set_seed(seed: int) -> None:
    """
    Seed every random number generator the pipeline touches.

    Args:
        seed: Random seed value
    """
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)


def ensure_dir(dir_path: str | Path) -> Path:
    path = Path(dir_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


class AverageMeter:
    """Running, sample-weighted average of a scalar."""

    def __init__(self, name: str = ""):
        self.name = name
        self.reset()

    def reset(self) -> None:
        self.val = 0.0
        self.avg = 0.0
        self.sum = 0.0
        self.count = 0

    def update(self, val: float, n: int = 1) -> None:
        self.val = val
        self.sum += val * n
        self.count += n
        self.avg = self.sum / self.count if self.count > 0 else 0.0


class EarlyStopping:
    """Signals a stop once a loss has not decreased for ``patience`` checks."""

    def __init__(self, patience: int = 3, min_delta: float = 0.0):
        """
        Args:
            patience: Number of non-improving checks tolerated
            min_delta: Minimum decrease that counts as an improvement
        """
        if patience < 1:
            raise ValueError(f"patience must be positive, got {patience}")
        self.patience = patience
        self.min_delta = min_delta
        self.counter = 0
        self.best_value: float | None = None
        self.should_stop = False

    def __call__(self, value: float) -> bool:
        """
        Record a new value.

        Returns:
            True if training should stop
        """
        if self.best_value is None:
            self.best_value = value
            return False

        if value < self.best_value - self.min_delta:
            self.best_value = value
            self.counter = 0
            return False

        self.counter += 1
        if self.counter >= self.patience:
            self.should_stop = True
        return self.should_stop
