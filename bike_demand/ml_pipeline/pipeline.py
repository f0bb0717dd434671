"""
End-to-end model comparison: load, split, tune, evaluate, finalize.
"""

from dataclasses import dataclass
from typing import Any, Optional

import pandas as pd
import structlog

from bike_demand.config import Settings, get_settings
from bike_demand.data_pipeline.ingestion import load_daily_dataset
from bike_demand.data_pipeline.schema import TARGET_COLUMN
from bike_demand.data_pipeline.splitting import (
    DataSplit,
    FoldAssignment,
    stratified_folds,
    stratified_split,
)
from bike_demand.ml_pipeline.training import LastFitResult, ModelTrainer
from bike_demand.ml_pipeline.tuning import GridTuner, TuningResult
from bike_demand.ml_pipeline.workflow import ModelWorkflow

logger = structlog.get_logger(__name__)


@dataclass
class PipelineResult:
    """Everything produced by one run of the pipeline."""
    split: DataSplit
    folds: FoldAssignment
    tuning: dict[str, TuningResult]
    last_fits: dict[str, LastFitResult]
    test_metrics: pd.DataFrame
    best_model_type: str
    best_params: dict[str, Any]
    final_model: ModelWorkflow

    @property
    def selected_params(self) -> dict[str, dict[str, Any]]:
        """Hyperparameters chosen by cross-validation, per model family."""
        return {name: fit.params for name, fit in self.last_fits.items()}


def run_pipeline(
    settings: Optional[Settings] = None,
    data: Optional[pd.DataFrame] = None,
) -> PipelineResult:
    """
    Run the whole comparison once.

    Args:
        settings: Pipeline settings (default: environment settings)
        data: Already-loaded daily dataset; read from settings.data_file if None

    Returns:
        PipelineResult with tuning results, test ranking and final model
    """
    settings = settings or get_settings()

    if data is None:
        data = load_daily_dataset(settings.data_file, encoding=settings.raw_encoding)

    logger.info("pipeline_started", days=len(data), models=settings.model_types, seed=settings.seed)

    split = stratified_split(
        data,
        train_fraction=settings.train_fraction,
        strata=settings.strata,
        seed=settings.seed,
    )
    folds = stratified_folds(
        split.train,
        n_folds=settings.cv_folds,
        strata=settings.strata,
        seed=settings.seed,
    )

    trainer = ModelTrainer(
        fixed_params={m: settings.fixed_params(m) for m in settings.model_types},
        seed=settings.seed,
        handle_unknown=settings.handle_unknown,
        model_dir=settings.model_dir,
    )

    tuning: dict[str, TuningResult] = {}
    last_fits: dict[str, LastFitResult] = {}

    for model_type in settings.model_types:
        tuner = GridTuner(
            model_type,
            param_grid=settings.param_grid(model_type),
            fixed_params=settings.fixed_params(model_type),
            metric=settings.metric,
            seed=settings.seed,
            n_jobs=settings.n_jobs,
            handle_unknown=settings.handle_unknown,
        )
        tuning[model_type] = tuner.tune(split.train, folds)
        best = tuning[model_type].select_best()
        logger.info("hyperparameters_selected", model_type=model_type, params=best)

        last_fits[model_type] = trainer.last_fit(split, model_type, best)

    test_metrics = trainer.evaluator.compare_models(
        split.test[TARGET_COLUMN].values,
        {name: fit.predictions for name, fit in last_fits.items()},
        rank_by=settings.metric,
    )
    best_model_type = str(test_metrics.index[0])
    best_params = last_fits[best_model_type].params

    logger.info(
        "best_model_selected",
        model_type=best_model_type,
        params=best_params,
        test_score=float(test_metrics.iloc[0][settings.metric]),
    )

    final_model = trainer.finalize(split, best_model_type, best_params)

    return PipelineResult(
        split=split,
        folds=folds,
        tuning=tuning,
        last_fits=last_fits,
        test_metrics=test_metrics,
        best_model_type=best_model_type,
        best_params=best_params,
        final_model=final_model,
    )
