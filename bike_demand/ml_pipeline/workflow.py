"""
A workflow pairs the feature transformer with one model family.
"""

import pickle
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import structlog

from bike_demand.data_pipeline.schema import TARGET_COLUMN
from bike_demand.data_pipeline.transformers import DailyFeatureTransformer
from bike_demand.ml_pipeline.models import MODEL_REGISTRY, BaseRegressor, get_model

logger = structlog.get_logger(__name__)


def complexity_key(model_type: str, params: dict) -> tuple:
    """Order hyperparameter tuples of one family from simplest to most complex."""
    return MODEL_REGISTRY[model_type].complexity_key(params)


class ModelWorkflow:
    """
    Feature transformer + regressor, fit together on one dataset.

    The transformer is fit on exactly the rows passed to ``fit`` and its
    statistics are reused unchanged by ``predict``.
    """

    def __init__(
        self,
        model_type: str,
        params: dict[str, Any] = None,
        fixed_params: dict[str, Any] = None,
        seed: int = 123,
        handle_unknown: str = "error",
        target_col: str = TARGET_COLUMN,
    ):
        if model_type not in MODEL_REGISTRY:
            raise ValueError(f"Unknown model type: {model_type}. Available: {list(MODEL_REGISTRY.keys())}")

        self.model_type = model_type
        self.params = dict(params or {})
        self.fixed_params = dict(fixed_params or {})
        self.seed = seed
        self.handle_unknown = handle_unknown
        self.target_col = target_col

        self.transformer: DailyFeatureTransformer = None
        self.model: BaseRegressor = None
        self.n_train: int = 0

    @property
    def is_fitted(self) -> bool:
        return self.model is not None and self.model.is_fitted

    def fit(self, df: pd.DataFrame) -> "ModelWorkflow":
        """Fit transformer and model on df (predictors and target)."""
        self.transformer = DailyFeatureTransformer(
            target_col=self.target_col,
            handle_unknown=self.handle_unknown,
        )
        features = self.transformer.fit_transform(df)
        X = features.drop(columns=[self.target_col])
        y = features[self.target_col]

        kwargs = {**self.fixed_params, **self.params}
        if MODEL_REGISTRY[self.model_type].uses_random_state:
            kwargs["random_state"] = self.seed

        self.model = get_model(self.model_type, **kwargs)
        self.model.fit(X, y)
        self.n_train = len(df)
        return self

    def predict(self, df: pd.DataFrame) -> np.ndarray:
        """Predict the target for df using the fitted statistics."""
        if not self.is_fitted:
            raise ValueError("Workflow not fitted. Call fit() first.")

        features = self.transformer.transform(df)
        return self.model.predict(features[self.transformer.get_feature_names_out()])

    def feature_importance(self) -> dict[str, float]:
        """Importance per transformed feature."""
        if not self.is_fitted:
            return {}
        return self.model.feature_importance()

    def save(self, path: str | Path) -> Path:
        """Pickle the fitted workflow."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "wb") as f:
            pickle.dump(self, f)

        logger.info("workflow_saved", path=str(path), model_type=self.model_type)
        return path

    @classmethod
    def load(cls, path: str | Path) -> "ModelWorkflow":
        """Load a workflow written by save()."""
        with open(path, "rb") as f:
            workflow = pickle.load(f)

        if not isinstance(workflow, cls):
            raise TypeError(f"{path} does not contain a {cls.__name__}")

        logger.info("workflow_loaded", path=str(path), model_type=workflow.model_type)
        return workflow

    def __repr__(self) -> str:
        return f"ModelWorkflow(model_type={self.model_type!r}, params={self.params!r})"
