"""Data pipeline module for the daily bike rental dataset."""

from bike_demand.data_pipeline.ingestion import (
    aggregate_daily,
    clean_hourly,
    load_daily_dataset,
    read_hourly_csv,
)
from bike_demand.data_pipeline.validation import DataValidator, ValidationResult
from bike_demand.data_pipeline.splitting import (
    DataSplit,
    FoldAssignment,
    stratified_folds,
    stratified_split,
)
from bike_demand.data_pipeline.transformers import (
    DailyFeatureTransformer,
    WeekendIndicatorTransformer,
)

__all__ = [
    "aggregate_daily",
    "clean_hourly",
    "load_daily_dataset",
    "read_hourly_csv",
    "DataValidator",
    "ValidationResult",
    "DataSplit",
    "FoldAssignment",
    "stratified_folds",
    "stratified_split",
    "DailyFeatureTransformer",
    "WeekendIndicatorTransformer",
]
