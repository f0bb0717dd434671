"""
Model definitions for daily bike demand regression.
Wraps the scikit-learn estimators compared by the pipeline.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import numpy as np
import pandas as pd
import structlog
from sklearn.ensemble import BaggingRegressor, RandomForestRegressor
from sklearn.linear_model import Lasso, LinearRegression
from sklearn.tree import DecisionTreeRegressor

from bike_demand.exceptions import FitFailureError

logger = structlog.get_logger(__name__)


class BaseRegressor(ABC):
    """
    Abstract base class for all regression models.

    Hyperparameters use the names of the tuning grids (``penalty``,
    ``tree_depth``, ``mtry``...); each subclass translates them to its
    estimator's arguments in ``_create_model``.
    """

    model_type: str = "base"
    uses_random_state: bool = False

    def __init__(self, name: str = None, **kwargs):
        self.name = name or f"{self.model_type}_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        self.model = None
        self.feature_columns: list[str] = []
        self.is_fitted: bool = False
        self.hyperparameters: dict = kwargs
        self.metadata: dict = {}

    @abstractmethod
    def _create_model(self, y: pd.Series):
        """Create the underlying estimator."""
        pass

    @abstractmethod
    def _raw_importance(self) -> np.ndarray:
        """Per-feature importance in feature_columns order."""
        pass

    @classmethod
    def complexity_key(cls, params: dict) -> tuple:
        """Sort key ordering hyperparameter tuples from simplest to most complex."""
        return ()

    def fit(self, X: pd.DataFrame, y: pd.Series) -> "BaseRegressor":
        """
        Fit the model to training data.

        Raises:
            FitFailureError: if the estimator rejects the data or parameters
        """
        self.feature_columns = list(X.columns)
        self.model = self._create_model(y)

        logger.debug(
            "fitting_model",
            model_type=self.model_type,
            features=len(self.feature_columns),
            samples=len(X),
        )
        try:
            self.model.fit(X, y)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise FitFailureError(f"{self.model_type} fit failed: {e}") from e

        self.is_fitted = True
        self.metadata["feature_importance"] = self.feature_importance()
        return self

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Make predictions."""
        if not self.is_fitted:
            raise ValueError("Model not fitted. Call fit() first.")

        X = X[self.feature_columns]
        return self.model.predict(X)

    def feature_importance(self) -> dict[str, float]:
        """Non-negative importance score per feature."""
        if not self.is_fitted:
            return {}
        importance = np.abs(np.asarray(self._raw_importance(), dtype=float))
        return dict(zip(self.feature_columns, importance.tolist()))

    def get_params(self) -> dict:
        """Hyperparameters in grid naming."""
        return dict(self.hyperparameters)

    def get_feature_importance(self, top_n: int = 20) -> dict:
        """Get top N feature importances."""
        importance = self.metadata.get("feature_importance", {})
        sorted_features = sorted(importance.items(), key=lambda x: x[1], reverse=True)
        return dict(sorted_features[:top_n])


class LinearRegressionModel(BaseRegressor):
    """Ordinary least squares; nothing to tune."""

    model_type = "linear"

    def __init__(self, name: str = None, **kwargs):
        super().__init__(name=name)
        self.hyperparameters = dict(kwargs)

    def _create_model(self, y: pd.Series):
        return LinearRegression(**self.hyperparameters)

    def _raw_importance(self) -> np.ndarray:
        return self.model.coef_


class LassoModel(BaseRegressor):
    """L1-penalised linear regression (elastic net with mixture fixed at 1)."""

    model_type = "lasso"

    def __init__(
        self,
        name: str = None,
        penalty: float = 1.0,
        max_iter: int = 10000,
        **kwargs,
    ):
        super().__init__(name=name)
        self.hyperparameters = {
            "penalty": penalty,
            "max_iter": max_iter,
            **kwargs,
        }

    @classmethod
    def complexity_key(cls, params: dict) -> tuple:
        # A larger penalty zeroes more coefficients
        return (-params.get("penalty", 0.0),)

    def _create_model(self, y: pd.Series):
        params = dict(self.hyperparameters)
        return Lasso(alpha=params.pop("penalty"), **params)

    def _raw_importance(self) -> np.ndarray:
        return self.model.coef_


class _TreeParamsMixin:
    """Shared translation of tree hyperparameters to scikit-learn arguments."""

    @classmethod
    def complexity_key(cls, params: dict) -> tuple:
        # Shallower trees first, then heavier pruning
        return (params.get("tree_depth", 0), -params.get("cost_complexity", 0.0))

    def _tree_kwargs(self, y: pd.Series) -> dict[str, Any]:
        params = self.hyperparameters
        # cost_complexity is relative to the root node error, as in rpart's cp
        root_impurity = float(np.var(np.asarray(y, dtype=float)))
        return {
            "ccp_alpha": params["cost_complexity"] * root_impurity,
            "max_depth": params["tree_depth"],
            "min_samples_leaf": params["min_n"],
        }


class DecisionTreeModel(_TreeParamsMixin, BaseRegressor):
    """Single CART regression tree with cost-complexity pruning."""

    model_type = "decision_tree"
    uses_random_state = True

    def __init__(
        self,
        name: str = None,
        cost_complexity: float = 0.01,
        tree_depth: int = 30,
        min_n: int = 20,
        random_state: int = 123,
    ):
        super().__init__(name=name)
        self.hyperparameters = {
            "cost_complexity": cost_complexity,
            "tree_depth": tree_depth,
            "min_n": min_n,
        }
        self.random_state = random_state

    def _create_model(self, y: pd.Series):
        return DecisionTreeRegressor(random_state=self.random_state, **self._tree_kwargs(y))

    def _raw_importance(self) -> np.ndarray:
        return self.model.feature_importances_


class BaggedTreeModel(_TreeParamsMixin, BaseRegressor):
    """Regression trees fit on bootstrap resamples, predictions averaged."""

    model_type = "bagged_tree"
    uses_random_state = True

    def __init__(
        self,
        name: str = None,
        cost_complexity: float = 0.01,
        tree_depth: int = 30,
        min_n: int = 10,
        n_trees: int = 100,
        random_state: int = 123,
        n_jobs: int = 1,
    ):
        super().__init__(name=name)
        self.hyperparameters = {
            "cost_complexity": cost_complexity,
            "tree_depth": tree_depth,
            "min_n": min_n,
            "n_trees": n_trees,
        }
        self.random_state = random_state
        self.n_jobs = n_jobs

    def _create_model(self, y: pd.Series):
        return BaggingRegressor(
            estimator=DecisionTreeRegressor(**self._tree_kwargs(y)),
            n_estimators=self.hyperparameters["n_trees"],
            bootstrap=True,
            random_state=self.random_state,
            n_jobs=self.n_jobs,
        )

    def _raw_importance(self) -> np.ndarray:
        return np.mean(
            [tree.feature_importances_ for tree in self.model.estimators_],
            axis=0,
        )


class RandomForestModel(BaseRegressor):
    """Random forest: bagged trees with mtry random features tried per split."""

    model_type = "random_forest"
    uses_random_state = True

    def __init__(
        self,
        name: str = None,
        mtry: int = 3,
        min_n: int = 5,
        n_trees: int = 500,
        random_state: int = 123,
        n_jobs: int = 1,
    ):
        super().__init__(name=name)
        self.hyperparameters = {
            "mtry": mtry,
            "min_n": min_n,
            "n_trees": n_trees,
        }
        self.random_state = random_state
        self.n_jobs = n_jobs

    @classmethod
    def complexity_key(cls, params: dict) -> tuple:
        return (params.get("mtry", 0),)

    def _create_model(self, y: pd.Series):
        params = self.hyperparameters
        return RandomForestRegressor(
            n_estimators=params["n_trees"],
            max_features=params["mtry"],
            min_samples_leaf=params["min_n"],
            random_state=self.random_state,
            n_jobs=self.n_jobs,
        )

    def _raw_importance(self) -> np.ndarray:
        return self.model.feature_importances_


# Model registry for easy loading
MODEL_REGISTRY = {
    "linear": LinearRegressionModel,
    "lasso": LassoModel,
    "decision_tree": DecisionTreeModel,
    "bagged_tree": BaggedTreeModel,
    "random_forest": RandomForestModel,
}


def get_model(model_type: str, **kwargs) -> BaseRegressor:
    """Factory function to get a model by type."""
    if model_type not in MODEL_REGISTRY:
        raise ValueError(f"Unknown model type: {model_type}. Available: {list(MODEL_REGISTRY.keys())}")

    return MODEL_REGISTRY[model_type](**kwargs)
