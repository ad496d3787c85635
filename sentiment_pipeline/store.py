"""
Persistence of trained models.

A model is stored as one zip archive holding a JSON manifest, the featurizer
state as JSON and the classifier weights as a torch state dict.
"""

import io
import json
import logging
import os
import pickle
import zipfile
import zlib
from datetime import datetime, timezone
from pathlib import Path

import torch

from .errors import CorruptModelError, ModelNotFoundError
from .model import LogisticRegressionClassifier, SentimentModel
from .preprocessing import TextFeaturizer
from .utils import ensure_dir

logger = logging.getLogger("sentiment_pipeline")

FORMAT_NAME = "sentiment-pipeline-model"
FORMAT_VERSION = 1

MANIFEST_FILE = "manifest.json"
FEATURIZER_FILE = "featurizer.json"
CLASSIFIER_FILE = "classifier.pt"


def model_exists(path: str | Path) -> bool:
    return Path(path).is_file()


def save_model(model: SentimentModel, path: str | Path) -> Path:
    """
    Save a trained model, replacing any existing file at ``path``.

    The archive is written to a temporary sibling first and moved into place,
    so a failed save never leaves a truncated model behind.

    Args:
        model: Trained model
        path: Destination archive path

    Returns:
        The destination path

    Raises:
        OSError: If the destination is not writable
    """
    path = Path(path)
    ensure_dir(path.parent)
    tmp_path = path.with_name(f".{path.name}.tmp")

    manifest = {
        "format": FORMAT_NAME,
        "format_version": FORMAT_VERSION,
        "saved_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "n_features": model.n_features,
        "metadata": model.metadata,
    }

    weights = io.BytesIO()
    torch.save(model.classifier.state_dict(), weights)

    try:
        with zipfile.ZipFile(tmp_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(MANIFEST_FILE, json.dumps(manifest, ensure_ascii=False, indent=2))
            archive.writestr(
                FEATURIZER_FILE,
                json.dumps(model.featurizer.get_state(), ensure_ascii=False),
            )
            archive.writestr(CLASSIFIER_FILE, weights.getvalue())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.info(f"The model is saved to {path}")
    return path


def load_model(path: str | Path) -> SentimentModel:
    """
    Load a model saved by ``save_model``.

    Args:
        path: Archive path

    Returns:
        The trained model

    Raises:
        ModelNotFoundError: If there is no file at ``path``
        CorruptModelError: If the archive is unreadable, incomplete or of
            another format version
    """
    path = Path(path)
    if not path.is_file():
        raise ModelNotFoundError(f"No model found at {path}")

    try:
        with zipfile.ZipFile(path, "r") as archive:
            manifest = json.loads(archive.read(MANIFEST_FILE).decode("utf-8"))
            _check_manifest(manifest, path)
            featurizer_state = json.loads(archive.read(FEATURIZER_FILE).decode("utf-8"))
            weights = archive.read(CLASSIFIER_FILE)

        featurizer = TextFeaturizer.from_state(featurizer_state)
        state_dict = torch.load(io.BytesIO(weights), map_location="cpu", weights_only=True)
        classifier = LogisticRegressionClassifier(int(manifest["n_features"]))
        classifier.load_state_dict(state_dict)
        model = SentimentModel(
            featurizer=featurizer,
            classifier=classifier,
            metadata=dict(manifest.get("metadata") or {}),
        )
    except CorruptModelError:
        raise
    except (
        zipfile.BadZipFile,
        KeyError,
        TypeError,
        ValueError,
        RuntimeError,
        EOFError,
        pickle.UnpicklingError,
        zlib.error,
    ) as exc:
        raise CorruptModelError(f"Cannot read model at {path}: {exc}") from exc

    logger.info(f"Model loaded from {path}")
    return model


def _check_manifest(manifest: object, path: Path) -> None:
    if not isinstance(manifest, dict) or manifest.get("format") != FORMAT_NAME:
        raise CorruptModelError(f"{path} is not a sentiment model archive")
    version = manifest.get("format_version")
    if version != FORMAT_VERSION:
        raise CorruptModelError(
            f"Unsupported model format version {version} in {path} (expected {FORMAT_VERSION})"
        )
