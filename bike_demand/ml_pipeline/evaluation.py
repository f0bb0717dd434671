"""
Model evaluation metrics for daily bike demand regression.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
import structlog

logger = structlog.get_logger(__name__)


@dataclass
class EvaluationMetrics:
    """Container for evaluation metrics."""
    mae: float
    rmse: float
    mape: float
    r2: float
    max_error: float
    median_absolute_error: float

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "mae": self.mae,
            "rmse": self.rmse,
            "mape": self.mape,
            "r2": self.r2,
            "max_error": self.max_error,
            "median_absolute_error": self.median_absolute_error,
        }


class ModelEvaluator:
    """
    Evaluates regression models with various metrics.

    Metrics computed:
    - MAE: Mean Absolute Error
    - RMSE: Root Mean Square Error
    - MAPE: Mean Absolute Percentage Error
    - R²: Coefficient of Determination
    - Max and median absolute error
    """

    def evaluate(self, y_true: np.ndarray, y_pred: np.ndarray) -> dict:
        """
        Calculate all evaluation metrics.

        Args:
            y_true: True values
            y_pred: Predicted values

        Returns:
            Dictionary of metric names to values
        """
        y_true = np.asarray(y_true, dtype=float).flatten()
        y_pred = np.asarray(y_pred, dtype=float).flatten()

        if len(y_true) != len(y_pred):
            raise ValueError(f"Length mismatch: y_true={len(y_true)}, y_pred={len(y_pred)}")
        if len(y_true) == 0:
            raise ValueError("Cannot evaluate an empty prediction set")

        return EvaluationMetrics(
            mae=self._mae(y_true, y_pred),
            rmse=self._rmse(y_true, y_pred),
            mape=self._mape(y_true, y_pred),
            r2=self._r2(y_true, y_pred),
            max_error=self._max_error(y_true, y_pred),
            median_absolute_error=self._median_absolute_error(y_true, y_pred),
        ).to_dict()

    def score(self, y_true: np.ndarray, y_pred: np.ndarray, metric: str = "rmse") -> float:
        """Single metric, as used by the tuner."""
        scorers = {"rmse": self._rmse, "mae": self._mae}
        if metric not in scorers:
            raise ValueError(f"Unknown metric: {metric}. Available: {list(scorers)}")
        y_true = np.asarray(y_true, dtype=float).flatten()
        y_pred = np.asarray(y_pred, dtype=float).flatten()
        return scorers[metric](y_true, y_pred)

    def _mae(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """Mean Absolute Error."""
        return float(np.mean(np.abs(y_true - y_pred)))

    def _rmse(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """Root Mean Square Error."""
        return float(np.sqrt(np.mean((y_true - y_pred) ** 2)))

    def _mape(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """Mean Absolute Percentage Error."""
        # Avoid division by zero
        mask = y_true != 0
        if not mask.any():
            return float("inf")
        return float(np.mean(np.abs((y_true[mask] - y_pred[mask]) / y_true[mask])) * 100)

    def _r2(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """R-squared (Coefficient of Determination)."""
        ss_res = np.sum((y_true - y_pred) ** 2)
        ss_tot = np.sum((y_true - np.mean(y_true)) ** 2)
        if ss_tot == 0:
            return 0.0
        return float(1 - (ss_res / ss_tot))

    def _max_error(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """Maximum Absolute Error."""
        return float(np.max(np.abs(y_true - y_pred)))

    def _median_absolute_error(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """Median Absolute Error."""
        return float(np.median(np.abs(y_true - y_pred)))

    def compare_models(
        self,
        y_true: np.ndarray,
        predictions: dict[str, np.ndarray],
        rank_by: str = "rmse",
    ) -> pd.DataFrame:
        """
        Compare multiple models on the same test set.

        Args:
            y_true: True values
            predictions: Dictionary mapping model name to predictions
            rank_by: Metric to rank by (lower is better)

        Returns:
            DataFrame comparing all models, best first
        """
        results = []
        for name, y_pred in predictions.items():
            metrics = self.evaluate(y_true, y_pred)
            metrics["model"] = name
            results.append(metrics)

        df = pd.DataFrame(results)
        df = df.set_index("model")

        df[f"{rank_by}_rank"] = df[rank_by].rank(method="first")

        return df.sort_values([rank_by, f"{rank_by}_rank"])
