"""
Model training orchestration for daily bike demand.
Handles the held-out test evaluation and the final refit on all data.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import numpy as np
import structlog

from bike_demand.data_pipeline.schema import TARGET_COLUMN
from bike_demand.data_pipeline.splitting import DataSplit
from bike_demand.ml_pipeline.evaluation import ModelEvaluator
from bike_demand.ml_pipeline.workflow import ModelWorkflow

logger = structlog.get_logger(__name__)


@dataclass
class LastFitResult:
    """A workflow fit on the full training set and scored once on the test set."""
    model_type: str
    params: dict[str, Any]
    workflow: ModelWorkflow
    predictions: np.ndarray
    metrics: dict[str, float]


class ModelTrainer:
    """
    Fits workflows outside of cross-validation.

    ``last_fit`` trains on the whole training set and scores the untouched
    test set; ``finalize`` retrains on train and test together with the
    same hyperparameters.
    """

    def __init__(
        self,
        fixed_params: dict[str, dict[str, Any]] = None,
        seed: int = 123,
        handle_unknown: str = "error",
        target_col: str = TARGET_COLUMN,
        model_dir: Path = None,
    ):
        self.fixed_params = fixed_params or {}
        self.seed = seed
        self.handle_unknown = handle_unknown
        self.target_col = target_col
        self.model_dir = Path(model_dir) if model_dir else None
        self.evaluator = ModelEvaluator()

    def _workflow(self, model_type: str, params: dict[str, Any]) -> ModelWorkflow:
        return ModelWorkflow(
            model_type,
            params=params,
            fixed_params=self.fixed_params.get(model_type, {}),
            seed=self.seed,
            handle_unknown=self.handle_unknown,
            target_col=self.target_col,
        )

    def last_fit(
        self,
        split: DataSplit,
        model_type: str,
        params: dict[str, Any] = None,
    ) -> LastFitResult:
        """
        Fit on split.train and evaluate on split.test.

        Args:
            split: Train/test partition
            model_type: Model family
            params: Selected hyperparameters

        Returns:
            LastFitResult with test-set predictions and metrics
        """
        params = dict(params or {})
        logger.info("last_fit_started", model_type=model_type, params=params)

        workflow = self._workflow(model_type, params).fit(split.train)
        predictions = workflow.predict(split.test)
        metrics = self.evaluator.evaluate(split.test[self.target_col].values, predictions)

        logger.info("last_fit_complete", model_type=model_type, rmse=metrics["rmse"])
        return LastFitResult(
            model_type=model_type,
            params=params,
            workflow=workflow,
            predictions=predictions,
            metrics=metrics,
        )

    def finalize(
        self,
        split: DataSplit,
        model_type: str,
        params: dict[str, Any] = None,
    ) -> ModelWorkflow:
        """Refit on train and test combined; no evaluation is performed."""
        data = split.full()
        logger.info("finalize_started", model_type=model_type, rows=len(data))

        workflow = self._workflow(model_type, dict(params or {})).fit(data)

        logger.info("finalize_complete", model_type=model_type, rows=workflow.n_train)
        return workflow

    def save_model(self, workflow: ModelWorkflow, path: Path = None) -> Path:
        """Save a workflow to path or to a timestamped file in model_dir."""
        if path is None:
            if self.model_dir is None:
                raise ValueError("No path given and no model_dir configured")
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            path = self.model_dir / f"{workflow.model_type}_{timestamp}.pkl"

        return workflow.save(path)
