"""
Sklearn-compatible transformers that turn the daily dataset into model features.
"""

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.utils.validation import check_is_fitted

from bike_demand.data_pipeline.schema import (
    CATEGORICAL_COLUMNS,
    DATE_COLUMN,
    NUMERIC_PREDICTORS,
    TARGET_COLUMN,
)
from bike_demand.exceptions import MalformedInputError, UnseenCategoryError


class WeekendIndicatorTransformer(BaseEstimator, TransformerMixin):
    """
    Replaces the date with a weekday/weekend indicator.

    Stateless: the day of week is derived from the date, turned into a
    two-level ``day_type`` column, and both date and day of week are dropped.
    """

    def __init__(
        self,
        date_col: str = DATE_COLUMN,
        output_col: str = "day_type",
    ):
        self.date_col = date_col
        self.output_col = output_col

    def fit(self, X: pd.DataFrame, y=None):
        """Fit method (no-op for this transformer)."""
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """Derive day_type and drop the date."""
        X = X.copy()
        day_of_week = pd.to_datetime(X[self.date_col]).dt.dayofweek
        X[self.output_col] = np.where(day_of_week >= 5, "weekend", "weekday")
        return X.drop(columns=[self.date_col])

    def get_feature_names_out(self, input_features=None) -> list[str]:
        """Get output feature names."""
        return [self.output_col]


class DailyFeatureTransformer(BaseEstimator, TransformerMixin):
    """
    Encodes and standardises the daily dataset.

    ``fit`` records the categorical levels and the mean / standard deviation
    of every numeric predictor; ``transform`` only ever applies those fitted
    statistics. Categoricals become drop-first dummies named
    ``<column>_<level>``. The target passes through untouched.

    Levels unseen at fit time raise ``UnseenCategoryError`` when
    ``handle_unknown="error"`` and encode as all-zero dummies when
    ``handle_unknown="ignore"``.
    """

    def __init__(
        self,
        date_col: str = DATE_COLUMN,
        target_col: str = TARGET_COLUMN,
        numeric_cols: list[str] = None,
        categorical_cols: list[str] = None,
        handle_unknown: str = "error",
    ):
        self.date_col = date_col
        self.target_col = target_col
        self.numeric_cols = numeric_cols
        self.categorical_cols = categorical_cols
        self.handle_unknown = handle_unknown

    def fit(self, X: pd.DataFrame, y=None):
        """Learn category levels and normalisation statistics from X."""
        if self.handle_unknown not in ("error", "ignore"):
            raise ValueError(
                f"handle_unknown must be 'error' or 'ignore', got {self.handle_unknown!r}"
            )

        X = self._derive(X)
        numeric = self._numeric_cols()

        self.categories_ = {
            col: sorted(X[col].astype(str).unique()) for col in self._categorical_cols()
        }
        self.means_ = X[numeric].mean()
        # Constant columns are only centred
        stds = X[numeric].std(ddof=1)
        self.scales_ = stds.where((stds > 0) & stds.notna(), 1.0)

        self.feature_names_out_ = list(numeric) + [
            self._dummy_name(col, level)
            for col, levels in self.categories_.items()
            for level in levels[1:]
        ]
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """Apply the fitted encoding and normalisation."""
        check_is_fitted(self, "means_")
        X = self._derive(X)
        numeric = self._numeric_cols()

        out = (X[numeric] - self.means_) / self.scales_

        for col, levels in self.categories_.items():
            values = X[col].astype(str)
            unseen = sorted(set(values.unique()) - set(levels))
            if unseen and self.handle_unknown == "error":
                raise UnseenCategoryError(col, unseen)
            for level in levels[1:]:
                out[self._dummy_name(col, level)] = (values == level).astype(float)

        columns = list(self.feature_names_out_)
        if self.target_col in X.columns:
            out[self.target_col] = X[self.target_col]
            columns.append(self.target_col)

        return out[columns]

    def get_feature_names_out(self, input_features=None) -> list[str]:
        """Get output feature names (target excluded)."""
        check_is_fitted(self, "feature_names_out_")
        return list(self.feature_names_out_)

    def _derive(self, X: pd.DataFrame) -> pd.DataFrame:
        """Apply the weekend step and check the expected columns exist."""
        if self.date_col not in X.columns:
            raise MalformedInputError(f"Required column '{self.date_col}' is missing")
        X = WeekendIndicatorTransformer(date_col=self.date_col).transform(X)
        missing = [
            col for col in self._numeric_cols() + self._categorical_cols()
            if col not in X.columns
        ]
        if missing:
            raise MalformedInputError(f"Required columns missing: {missing}")
        return X

    def _numeric_cols(self) -> list[str]:
        return list(self.numeric_cols or NUMERIC_PREDICTORS)

    def _categorical_cols(self) -> list[str]:
        return list(self.categorical_cols or CATEGORICAL_COLUMNS) + ["day_type"]

    @staticmethod
    def _dummy_name(column: str, level: str) -> str:
        return f"{column}_{level.replace(' ', '_')}"
