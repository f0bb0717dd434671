#!/usr/bin/env python
"""
CLI script for comparing daily bike demand models.
"""

import argparse
import sys
from pathlib import Path

import pandas as pd
from pydantic import ValidationError

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bike_demand.config import MODEL_TYPES, get_settings, override_settings
from bike_demand.exceptions import BikeDemandError
from bike_demand.ml_pipeline.pipeline import run_pipeline
from bike_demand.ml_pipeline.training import ModelTrainer
from bike_demand.monitoring.logging import setup_logging


def main():
    parser = argparse.ArgumentParser(description="Compare daily bike demand regression models")

    parser.add_argument(
        "--data-file",
        type=str,
        help="Path to the hourly CSV file (default: from settings)",
    )
    parser.add_argument(
        "--models",
        nargs="+",
        choices=MODEL_TYPES,
        help="Model families to compare (default: all)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for splitting, folds and ensembles",
    )
    parser.add_argument(
        "--cv-folds",
        type=int,
        help="Number of cross-validation folds",
    )
    parser.add_argument(
        "--n-jobs",
        type=int,
        help="Parallel workers for tuning",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=5,
        help="Rows to show per tuning leaderboard",
    )
    parser.add_argument(
        "--output",
        type=str,
        help="Save the final model to this path",
    )

    args = parser.parse_args()

    overrides = {
        "data_file": Path(args.data_file) if args.data_file else None,
        "model_types": args.models,
        "seed": args.seed,
        "cv_folds": args.cv_folds,
        "n_jobs": args.n_jobs,
    }
    try:
        settings = override_settings(get_settings(), **overrides)
    except ValidationError as e:
        print(f"Invalid settings: {e}")
        return 1
    setup_logging(settings)

    print("=" * 60)
    print("Daily Bike Demand - Model Comparison")
    print("=" * 60)
    print(f"Data:   {settings.data_file}")
    print(f"Models: {', '.join(settings.model_types)}")
    print(f"Seed:   {settings.seed}")
    print(f"Folds:  {settings.cv_folds}")
    print()

    try:
        result = run_pipeline(settings)
    except BikeDemandError as e:
        print(f"Pipeline failed: {e}")
        return 1

    print(f"Train days: {len(result.split.train)}  Test days: {len(result.split.test)}")

    with pd.option_context("display.width", 120, "display.max_columns", 20):
        for model_type, tuning in result.tuning.items():
            print(f"\nCross-validation ({settings.metric}) - {model_type}")
            print(tuning.show_best(args.top).drop(columns=["metric"]).to_string(index=False))

        print("\nTest set comparison")
        print(result.test_metrics.to_string())

    print(f"\nBest model: {result.best_model_type} {result.best_params}")

    print("\nFinal model feature importance:")
    importance = result.final_model.model.get_feature_importance(top_n=10)
    for name, value in importance.items():
        print(f"  {name:<28} {value:.4f}")

    if args.output:
        path = ModelTrainer().save_model(result.final_model, Path(args.output))
        print(f"\nFinal model saved to {path}")

    print(f"\n{'=' * 60}")
    print("Comparison complete!")
    print(f"{'=' * 60}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
