"""ML Pipeline module for daily bike demand regression."""

from bike_demand.ml_pipeline.models import (
    BaseRegressor,
    LinearRegressionModel,
    LassoModel,
    DecisionTreeModel,
    BaggedTreeModel,
    RandomForestModel,
    get_model,
)
from bike_demand.ml_pipeline.workflow import ModelWorkflow
from bike_demand.ml_pipeline.evaluation import ModelEvaluator
from bike_demand.ml_pipeline.tuning import GridTuner, MetricRecord, TuningResult
from bike_demand.ml_pipeline.training import LastFitResult, ModelTrainer
from bike_demand.ml_pipeline.pipeline import PipelineResult, run_pipeline

__all__ = [
    "BaseRegressor",
    "LinearRegressionModel",
    "LassoModel",
    "DecisionTreeModel",
    "BaggedTreeModel",
    "RandomForestModel",
    "get_model",
    "ModelWorkflow",
    "ModelEvaluator",
    "GridTuner",
    "MetricRecord",
    "TuningResult",
    "LastFitResult",
    "ModelTrainer",
    "PipelineResult",
    "run_pipeline",
]
