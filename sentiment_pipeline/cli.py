"""
Command line interface.

Usage:
    python -m sentiment_pipeline run --config configs/pipeline_config.yaml
    python -m sentiment_pipeline run --retrain --text "Great food" --text "Awful service"
    python -m sentiment_pipeline evaluate --model-path models/model.zip --data-path data/test.csv
    python -m sentiment_pipeline predict --input-path comments.csv --output-path preds.csv
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import pandas as pd
import yaml
from tqdm import tqdm

from .config import PipelineConfig
from .data_loader import load_examples, print_data_statistics
from .errors import PipelineError
from .evaluate import evaluate_model, print_metrics
from .inference import SentimentPredictor, print_predictions
from .pipeline import SentimentPipeline
from .store import load_model
from .utils import ensure_dir, setup_logging

logger = logging.getLogger("sentiment_pipeline")

COMMANDS = ("run", "evaluate", "predict")
EXIT_OK = 0
EXIT_FAILURE = 1


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments; ``run`` is the default command."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or (argv[0] not in COMMANDS and argv[0] not in ("-h", "--help")):
        argv.insert(0, "run")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    common.add_argument("--log-file", type=str, default=None, help="Also write the log to this file")

    parser = argparse.ArgumentParser(
        prog="sentiment-pipeline",
        description="Train, evaluate and apply a binary sentiment classifier",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Train (if needed), evaluate, persist and demo the model",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    run_parser.add_argument("--config", type=str, default=None, help="Path to YAML configuration file")
    run_parser.add_argument("--data-path", type=str, default=None, help="Override training data path")
    run_parser.add_argument("--model-path", type=str, default=None, help="Override model archive path")
    run_parser.add_argument("--seed", type=int, default=None, help="Override random seed")
    run_parser.add_argument("--retrain", action="store_true", help="Train even if a model is persisted")
    run_parser.add_argument(
        "--text",
        action="append",
        default=None,
        help="Text for the batch demo (repeatable; replaces configured texts)",
    )

    eval_parser = subparsers.add_parser(
        "evaluate",
        parents=[common],
        help="Evaluate a persisted model on a labeled file",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    eval_parser.add_argument("--model-path", type=str, required=True, help="Model archive path")
    eval_parser.add_argument("--data-path", type=str, required=True, help="Labeled data file")
    eval_parser.add_argument("--delimiter", type=str, default=";", help="Field separator")
    eval_parser.add_argument("--no-header", action="store_true", help="Data file has no header row")
    eval_parser.add_argument("--output", type=str, default=None, help="Write metrics JSON to this file")

    predict_parser = subparsers.add_parser(
        "predict",
        parents=[common],
        help="Batch-predict a delimited file",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    predict_parser.add_argument("--input-path", type=str, required=True, help="Input file with a text column")
    predict_parser.add_argument("--output-path", type=str, required=True, help="Output CSV path")
    predict_parser.add_argument("--model-path", type=str, default="models/model.zip", help="Model archive path")
    predict_parser.add_argument("--text-column", type=str, default="SentimentText", help="Text column name")
    predict_parser.add_argument("--delimiter", type=str, default=";", help="Field separator of the input")
    predict_parser.add_argument("--batch-size", type=int, default=256, help="Texts per progress step")
    predict_parser.add_argument("--workers", type=int, default=4, help="Inference threads")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Load the configuration and apply command line overrides."""
    config = PipelineConfig.from_yaml(args.config) if args.config else PipelineConfig()

    if args.data_path is not None:
        config.data.path = args.data_path
    if args.model_path is not None:
        config.paths.model_path = args.model_path
    if args.seed is not None:
        config.training.random_seed = args.seed
    if args.text:
        config.inference.batch_texts = list(args.text)
    if args.verbose:
        config.logging.level = "DEBUG"
    if args.log_file is not None:
        config.logging.log_file = args.log_file

    return config


def run_command(args: argparse.Namespace) -> int:
    config = build_config(args)
    setup_logging(log_level=config.logging.level, log_file=config.logging.log_file)

    pipeline = SentimentPipeline(config)
    run = pipeline.run(force_retrain=args.retrain)

    if run.trained:
        if run.statistics is not None:
            print_data_statistics(run.statistics)
        if run.metrics is not None:
            print_metrics(run.metrics)
        else:
            print(f"\nEvaluation failed: {run.evaluation_error}")
        print(f"\nThe model is saved to {pipeline.model_path}")

    if run.single_prediction is not None:
        print_predictions(
            [run.single_prediction],
            "Prediction Test of model with a single sample",
        )
    if run.batch_predictions:
        print_predictions(
            run.batch_predictions,
            "Prediction Test of loaded model with multiple samples",
        )

    print()
    print("=============== End of process ===============")
    return EXIT_OK


def evaluate_command(args: argparse.Namespace) -> int:
    setup_logging(log_level="DEBUG" if args.verbose else "INFO", log_file=args.log_file)

    model = load_model(args.model_path)
    examples = load_examples(args.data_path, delimiter=args.delimiter, has_header=not args.no_header)
    metrics = evaluate_model(model, examples)

    print_metrics(metrics)

    if args.output:
        output_path = Path(args.output)
        ensure_dir(output_path.parent)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(metrics.to_dict(), f, indent=2)
        logger.info(f"Metrics saved to {output_path}")
    return EXIT_OK


def predict_command(args: argparse.Namespace) -> int:
    setup_logging(log_level="DEBUG" if args.verbose else "INFO", log_file=args.log_file)

    model = load_model(args.model_path)
    predictor = SentimentPredictor(model, max_workers=args.workers)

    logger.info(f"Loading data from {args.input_path}")
    df = pd.read_csv(args.input_path, sep=args.delimiter, dtype=str, keep_default_na=False)
    if args.text_column not in df.columns:
        raise PipelineError(f"Column '{args.text_column}' not found in {args.input_path}")
    texts = df[args.text_column].tolist()

    logger.info(f"Predicting {len(texts)} samples...")
    predictions = []
    for i in tqdm(range(0, len(texts), args.batch_size), desc="Predicting"):
        predictions.extend(predictor.predict_batch(texts[i:i + args.batch_size]))

    results = pd.DataFrame([
        {
            "predicted_label": p.predicted_label,
            "probability": p.probability,
            "sentiment": p.sentiment,
            "error": p.error or "",
        }
        for p in predictions
    ])
    output_df = pd.concat([df.reset_index(drop=True), results], axis=1)
    ensure_dir(Path(args.output_path).parent)
    output_df.to_csv(args.output_path, index=False)

    counts = results["sentiment"].value_counts().to_dict() if len(results) else {}
    logger.info(f"Done! {counts}")
    logger.info(f"Saved to {args.output_path}")
    return EXIT_OK


HANDLERS = {
    "run": run_command,
    "evaluate": evaluate_command,
    "predict": predict_command,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        return HANDLERS[args.command](args)
    except (PipelineError, OSError, ValueError, yaml.YAMLError) as exc:
        logger.error(f"{type(exc).__name__}: {exc}")
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
