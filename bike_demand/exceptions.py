"""
Error types raised by the bike demand pipeline.
"""


class BikeDemandError(Exception):
    """Base class for all pipeline errors."""


class MalformedInputError(BikeDemandError, ValueError):
    """Raw input does not match the expected schema or cannot be parsed."""


class UnseenCategoryError(BikeDemandError, ValueError):
    """A categorical level was seen at transform time but not at fit time."""

    def __init__(self, column: str, levels: list[str]):
        self.column = column
        self.levels = levels
        super().__init__(f"Column '{column}' has levels not seen during fit: {levels}")


class FitFailureError(BikeDemandError, RuntimeError):
    """A single model fit raised an error."""


class TuningDegenerateError(BikeDemandError, RuntimeError):
    """No hyperparameter tuple had enough successful folds to be selected."""
