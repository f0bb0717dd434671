"""Daily bike rental demand: data preparation and regression model comparison."""

__version__ = "0.1.0"
