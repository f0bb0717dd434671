"""
Configuration management using Pydantic Settings.
Loads from environment variables and .env file.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import numpy as np
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


MODEL_TYPES = ["linear", "lasso", "decision_tree", "bagged_tree", "random_forest"]


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables.

    The instance is frozen: every stochastic step receives ``seed`` from here
    as an explicit argument.
    """

    model_config = SettingsConfigDict(
        env_prefix="BIKE_DEMAND_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        protected_namespaces=("settings_",),
    )

    # Paths
    data_file: Path = Field(
        default=Path("./data/raw/SeoulBikeData.csv"),
        description="Hourly rental CSV file"
    )
    raw_encoding: str = Field(
        default="latin-1",
        description="Text encoding of the raw CSV file"
    )
    model_dir: Path = Field(
        default=Path("./data/models"),
        description="Directory for saved model artifacts"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level"
    )

    # Resampling
    seed: int = Field(default=123, description="Seed for every stochastic step")
    train_fraction: float = Field(
        default=0.75,
        gt=0.0,
        lt=1.0,
        description="Fraction of days assigned to the training set"
    )
    strata: str = Field(default="season", description="Stratification column")
    cv_folds: int = Field(
        default=10,
        ge=2,
        description="Number of cross-validation folds"
    )

    # Tuning
    metric: Literal["rmse", "mae"] = Field(default="rmse", description="Selection metric")
    n_jobs: int = Field(default=1, description="Parallel workers for tuning")
    handle_unknown: Literal["error", "ignore"] = Field(
        default="error",
        description="Policy for categorical levels unseen at fit time"
    )
    model_types: list[str] = Field(
        default_factory=lambda: list(MODEL_TYPES),
        description="Model families to compare"
    )

    # Hyperparameter grids
    lasso_penalty_range: tuple[float, float] = Field(
        default=(-10.0, 0.0),
        description="log10 range of the LASSO penalty"
    )
    lasso_levels: int = Field(default=200, ge=1)
    tree_cost_complexity_range: tuple[float, float] = Field(
        default=(-10.0, -1.0),
        description="log10 range of the cost-complexity threshold"
    )
    tree_cost_complexity_levels: int = Field(default=3, ge=1)
    tree_depths: list[int] = Field(default_factory=lambda: [1, 4, 8, 11, 15])
    forest_mtry: list[int] = Field(default_factory=lambda: list(range(1, 12)))

    # Fixed model options
    tree_min_n: int = Field(default=20, ge=1)
    bagged_min_n: int = Field(default=10, ge=1)
    bagged_n_trees: int = Field(default=100, ge=1)
    forest_min_n: int = Field(default=5, ge=1)
    forest_n_trees: int = Field(default=500, ge=1)

    def param_grid(self, model_type: str) -> dict[str, list[Any]]:
        """Candidate values per tuned hyperparameter for one model family."""
        if model_type == "linear":
            return {}
        if model_type == "lasso":
            low, high = self.lasso_penalty_range
            return {"penalty": list(np.logspace(low, high, self.lasso_levels))}
        if model_type in ("decision_tree", "bagged_tree"):
            low, high = self.tree_cost_complexity_range
            return {
                "cost_complexity": list(
                    np.logspace(low, high, self.tree_cost_complexity_levels)
                ),
                "tree_depth": list(self.tree_depths),
            }
        if model_type == "random_forest":
            return {"mtry": list(self.forest_mtry)}
        raise ValueError(f"Unknown model type: {model_type}. Available: {MODEL_TYPES}")

    def fixed_params(self, model_type: str) -> dict[str, Any]:
        """Hyperparameters held constant during tuning."""
        if model_type == "decision_tree":
            return {"min_n": self.tree_min_n}
        if model_type == "bagged_tree":
            return {"min_n": self.bagged_min_n, "n_trees": self.bagged_n_trees}
        if model_type == "random_forest":
            return {"min_n": self.forest_min_n, "n_trees": self.forest_n_trees}
        return {}

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.model_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def override_settings(settings: Settings, **overrides: Any) -> Settings:
    """
    New settings with some fields replaced; None values are ignored.

    Unlike ``model_copy(update=...)`` the result is validated, so field
    constraints hold for command-line overrides too.

    Raises:
        pydantic.ValidationError: if an override violates a field constraint
    """
    updates = {k: v for k, v in overrides.items() if v is not None}
    return Settings(**{**settings.model_dump(), **updates})
