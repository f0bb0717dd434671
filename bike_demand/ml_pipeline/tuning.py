"""
Cross-validated grid search over one model family.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd
import structlog
from joblib import Parallel, delayed
from sklearn.model_selection import ParameterGrid

from bike_demand.data_pipeline.splitting import FoldAssignment
from bike_demand.exceptions import FitFailureError, TuningDegenerateError, UnseenCategoryError
from bike_demand.ml_pipeline.evaluation import ModelEvaluator
from bike_demand.ml_pipeline.workflow import ModelWorkflow, complexity_key

logger = structlog.get_logger(__name__)

# Mean scores closer than this (relative) count as a tie
TIE_RTOL = 1e-9


@dataclass(frozen=True)
class MetricRecord:
    """Score of one hyperparameter tuple on one fold."""
    model_type: str
    config: int
    params: tuple[tuple[str, Any], ...]
    fold: str
    metric: str
    value: float
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class TuningResult:
    """
    All fold-level scores of a grid search, with aggregation and selection.

    A tuple whose failed folds make up half or more of all folds is not
    eligible for selection.
    """
    model_type: str
    grid: list[dict[str, Any]]
    records: list[MetricRecord]
    n_folds: int
    metric: str = "rmse"
    _summary: Optional[pd.DataFrame] = field(default=None, init=False, repr=False)

    def collect_metrics(self) -> pd.DataFrame:
        """One row per tuple: mean, std_err, successful and failed fold counts."""
        if self._summary is not None:
            return self._summary.copy()

        rows = []
        for config, params in enumerate(self.grid):
            config_records = [r for r in self.records if r.config == config]
            values = np.array([r.value for r in config_records if not r.failed], dtype=float)
            n_failed = sum(r.failed for r in config_records)
            n = len(values)

            rows.append({
                "config": config,
                **params,
                "metric": self.metric,
                "mean": float(values.mean()) if n else np.nan,
                "std_err": float(values.std(ddof=1) / np.sqrt(n)) if n > 1 else np.nan,
                "n": n,
                "n_failed": n_failed,
                "eligible": n > 0 and 2 * n_failed < self.n_folds,
            })

        self._summary = pd.DataFrame(rows)
        return self._summary.copy()

    def show_best(self, n: int = 5) -> pd.DataFrame:
        """Top-n eligible tuples, best first."""
        metrics = self.collect_metrics()
        metrics = metrics[metrics["eligible"]]
        order = sorted(
            metrics.index,
            key=lambda i: (
                metrics.at[i, "mean"],
                complexity_key(self.model_type, self.grid[metrics.at[i, "config"]]),
                metrics.at[i, "config"],
            ),
        )
        return metrics.loc[order].head(n).reset_index(drop=True)

    def select_best(self) -> dict[str, Any]:
        """
        Eligible tuple with the lowest mean score.

        Ties are broken by the simpler model, then by grid order.

        Raises:
            TuningDegenerateError: if no tuple is eligible
        """
        metrics = self.collect_metrics()
        eligible = metrics[metrics["eligible"]]
        if eligible.empty:
            raise TuningDegenerateError(
                f"No eligible hyperparameters for {self.model_type}: "
                f"every tuple failed on at least half of {self.n_folds} folds"
            )

        best_mean = eligible["mean"].min()
        tied = eligible[np.isclose(eligible["mean"], best_mean, rtol=TIE_RTOL, atol=0.0)]
        config = min(
            tied["config"],
            key=lambda c: (complexity_key(self.model_type, self.grid[c]), c),
        )
        return dict(self.grid[config])


def expand_grid(param_grid: dict[str, list[Any]]) -> list[dict[str, Any]]:
    """All combinations of a name -> candidates mapping; {} gives one empty tuple."""
    return list(ParameterGrid(param_grid))


def _fit_and_score(
    train: pd.DataFrame,
    model_type: str,
    config: int,
    params: dict[str, Any],
    fixed_params: dict[str, Any],
    fold: str,
    analysis: np.ndarray,
    assessment: np.ndarray,
    metric: str,
    seed: int,
    handle_unknown: str,
) -> MetricRecord:
    """Fit on the analysis rows of one fold and score the assessment rows."""
    key = tuple(sorted(params.items()))
    try:
        workflow = ModelWorkflow(
            model_type,
            params=params,
            fixed_params=fixed_params,
            seed=seed,
            handle_unknown=handle_unknown,
        ).fit(train.iloc[analysis])
        held_out = train.iloc[assessment]
        predictions = workflow.predict(held_out)
        value = ModelEvaluator().score(held_out[workflow.target_col], predictions, metric)
    except (FitFailureError, UnseenCategoryError) as e:
        return MetricRecord(model_type, config, key, fold, metric, np.nan, error=str(e))

    return MetricRecord(model_type, config, key, fold, metric, value)


class GridTuner:
    """
    Evaluates every tuple of a hyperparameter grid on every fold.

    Each (tuple, fold) fit is independent and read-only over the training
    set, so they run through joblib and are reduced afterwards.
    """

    def __init__(
        self,
        model_type: str,
        param_grid: dict[str, list[Any]] = None,
        fixed_params: dict[str, Any] = None,
        metric: str = "rmse",
        seed: int = 123,
        n_jobs: int = 1,
        handle_unknown: str = "error",
    ):
        """
        Initialize tuner.

        Args:
            model_type: Model family to tune
            param_grid: Candidate values per tuned hyperparameter
            fixed_params: Hyperparameters held constant
            metric: Error metric to minimise
            seed: Seed passed to every stochastic model
            n_jobs: joblib workers
            handle_unknown: Unseen category policy of the transformer
        """
        self.model_type = model_type
        self.grid = expand_grid(param_grid or {})
        self.fixed_params = dict(fixed_params or {})
        self.metric = metric
        self.seed = seed
        self.n_jobs = n_jobs
        self.handle_unknown = handle_unknown

    def tune(self, train: pd.DataFrame, folds: FoldAssignment) -> TuningResult:
        """
        Run the grid search.

        Args:
            train: Training set (predictors and target)
            folds: Fold assignment over the training set's row labels

        Returns:
            TuningResult holding one MetricRecord per (tuple, fold)
        """
        logger.info(
            "tuning_started",
            model_type=self.model_type,
            grid_size=len(self.grid),
            n_folds=folds.n_folds,
            metric=self.metric,
        )

        records = Parallel(n_jobs=self.n_jobs)(
            delayed(_fit_and_score)(
                train,
                self.model_type,
                config,
                params,
                self.fixed_params,
                folds.fold_id(i),
                analysis,
                assessment,
                self.metric,
                self.seed,
                self.handle_unknown,
            )
            for config, params in enumerate(self.grid)
            for i, (analysis, assessment) in enumerate(folds)
        )

        for record in records:
            if record.failed:
                logger.warning(
                    "fold_fit_failed",
                    model_type=self.model_type,
                    params=dict(record.params),
                    fold=record.fold,
                    error=record.error,
                )

        result = TuningResult(
            model_type=self.model_type,
            grid=self.grid,
            records=list(records),
            n_folds=folds.n_folds,
            metric=self.metric,
        )

        summary = result.collect_metrics()
        logger.info(
            "tuning_complete",
            model_type=self.model_type,
            evaluated=len(summary),
            ineligible=int((~summary["eligible"]).sum()),
            best_mean=float(summary.loc[summary["eligible"], "mean"].min())
            if summary["eligible"].any() else None,
        )
        return result
