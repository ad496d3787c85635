"""
Training of the sentiment classifier.

Fits the featurizer on the training texts, then fits the logistic regression
classifier with mini-batch Adam and L2 weight decay until the training loss
stops improving.
"""

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

import numpy as np
import torch
import torch.nn as nn
from torch.utils.tensorboard import SummaryWriter
from tqdm import tqdm

from .config import FeaturizerConfig, TrainingConfig
from .dataset import FeatureDataset
from .errors import InvalidInputError
from .model import DECISION_THRESHOLD, LogisticRegressionClassifier, SentimentModel
from .preprocessing import TextFeaturizer
from .schemas import LabeledExample
from .utils import AverageMeter, EarlyStopping

logger = logging.getLogger("sentiment_pipeline")


def train_epoch(
    model: LogisticRegressionClassifier,
    train_loader: torch.utils.data.DataLoader,
    criterion: nn.Module,
    optimizer: torch.optim.Optimizer,
) -> dict[str, float]:
    """
    Train for one epoch.

    Args:
        model: Classifier to train
        train_loader: Training data loader
        criterion: Loss function on logits
        optimizer: Optimizer

    Returns:
        Dictionary with the epoch's mean loss and accuracy
    """
    model.train()

    loss_meter = AverageMeter("loss")
    acc_meter = AverageMeter("accuracy")

    progress_bar = tqdm(train_loader, desc="Training", leave=False)

    for batch in progress_bar:
        features = batch["features"]
        labels = batch["label"]

        optimizer.zero_grad()
        logits = model(features)
        loss = criterion(logits, labels)

        loss.backward()
        optimizer.step()

        preds = (torch.sigmoid(logits) > DECISION_THRESHOLD).float()
        acc = (preds == labels).float().mean()

        loss_meter.update(loss.item(), features.size(0))
        acc_meter.update(acc.item(), features.size(0))

        progress_bar.set_postfix({
            "loss": f"{loss_meter.avg:.4f}",
            "acc": f"{acc_meter.avg:.4f}",
        })

    return {
        "loss": loss_meter.avg,
        "accuracy": acc_meter.avg,
    }


def fit_classifier(
    dataset: FeatureDataset,
    config: TrainingConfig | None = None,
    log_dir: str | Path | None = None,
) -> LogisticRegressionClassifier:
    """
    Fit a logistic regression classifier.

    Args:
        dataset: Featurized training examples
        config: Optimization settings
        log_dir: Optional TensorBoard log directory

    Returns:
        Trained classifier in eval mode

    Raises:
        InvalidInputError: If the dataset is empty
    """
    config = config or TrainingConfig()

    if len(dataset) == 0:
        raise InvalidInputError("Cannot train on an empty dataset")
    if config.epochs < 1:
        raise InvalidInputError(f"epochs must be positive, got {config.epochs}")

    torch.manual_seed(config.random_seed)
    generator = torch.Generator().manual_seed(config.random_seed)

    train_loader = torch.utils.data.DataLoader(
        dataset,
        batch_size=config.batch_size,
        shuffle=True,
        generator=generator,
    )

    model = LogisticRegressionClassifier(dataset.dimension)
    criterion = nn.BCEWithLogitsLoss()
    optimizer = torch.optim.Adam(
        model.parameters(),
        lr=config.learning_rate,
        weight_decay=config.weight_decay,
    )
    early_stopping = EarlyStopping(
        patience=config.early_stopping_patience,
        min_delta=config.min_delta,
    )

    writer = SummaryWriter(log_dir=str(log_dir)) if log_dir else None

    logger.info(
        f"Training on {len(dataset)} samples, {dataset.dimension} features, "
        f"{dataset.get_class_balance():.1%} positive"
    )
    start_time = time.time()

    try:
        for epoch in range(1, config.epochs + 1):
            metrics = train_epoch(model, train_loader, criterion, optimizer)

            logger.debug(
                f"Epoch {epoch}/{config.epochs} - "
                f"Loss: {metrics['loss']:.4f}, Acc: {metrics['accuracy']:.4f}"
            )

            if writer is not None:
                writer.add_scalar("Loss/train", metrics["loss"], epoch)
                writer.add_scalar("Accuracy/train", metrics["accuracy"], epoch)

            if early_stopping(metrics["loss"]):
                logger.info(f"Early stopping triggered at epoch {epoch}")
                break
    finally:
        if writer is not None:
            writer.close()

    logger.info(
        f"Training finished in {time.time() - start_time:.2f}s, "
        f"final loss {metrics['loss']:.4f}"
    )

    model.eval()
    return model


def fit(
    feature_vectors: np.ndarray | list,
    labels: Sequence[bool],
    config: TrainingConfig | None = None,
) -> LogisticRegressionClassifier:
    """
    Fit a classifier on dense feature vectors.

    Raises:
        InvalidInputError: If lengths differ or there are no vectors
    """
    if len(feature_vectors) != len(labels):
        raise InvalidInputError(
            f"Number of feature vectors ({len(feature_vectors)}) must match "
            f"number of labels ({len(labels)})"
        )
    if len(labels) == 0:
        raise InvalidInputError("Cannot train on an empty dataset")

    dataset = FeatureDataset.from_dense(feature_vectors, list(labels))
    return fit_classifier(dataset, config)


def build_featurizer(config: FeaturizerConfig | None = None) -> TextFeaturizer:
    config = config or FeaturizerConfig()
    return TextFeaturizer(
        word_ngram_range=config.word_ngram_range,
        char_ngram_range=config.char_ngram_range,
        max_features=config.max_features,
        min_word_freq=config.min_word_freq,
    )


def train_model(
    examples: Sequence[LabeledExample],
    featurizer_config: FeaturizerConfig | None = None,
    training_config: TrainingConfig | None = None,
    log_dir: str | Path | None = None,
) -> SentimentModel:
    """
    Train the full pipeline on labeled examples.

    Args:
        examples: Training examples
        featurizer_config: Featurizer settings
        training_config: Optimization settings
        log_dir: Optional TensorBoard log directory

    Returns:
        Immutable trained model

    Raises:
        InvalidInputError: If there are no examples
    """
    if not examples:
        raise InvalidInputError("Cannot train on an empty dataset")

    logger.info("=" * 60)
    logger.info("Create and train the model")
    logger.info("=" * 60)

    texts = [example.text for example in examples]
    labels = [example.label for example in examples]

    featurizer = build_featurizer(featurizer_config).fit(texts)
    dataset = FeatureDataset.from_texts(texts, labels, featurizer)
    classifier = fit_classifier(dataset, training_config, log_dir=log_dir)

    metadata = {
        "created_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "train_samples": len(examples),
        "positive_samples": int(sum(labels)),
        "n_features": featurizer.dimension,
    }

    logger.info("End of training")
    return SentimentModel(featurizer=featurizer, classifier=classifier, metadata=metadata)
