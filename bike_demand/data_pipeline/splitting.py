"""
Stratified train/test splitting and cross-validation fold assignment.

Rows are addressed by position, so datasets with repeated index labels
split the same way as ones with a clean RangeIndex.
"""

from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np
import pandas as pd
import structlog
from sklearn.model_selection import StratifiedKFold, train_test_split

from bike_demand.exceptions import MalformedInputError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, eq=False)
class DataSplit:
    """
    Disjoint train/test partition of a dataset.

    ``train_rows`` and ``test_rows`` are the positions of each subset's rows
    in the input dataset.
    """
    train: pd.DataFrame
    test: pd.DataFrame
    seed: int
    train_fraction: float
    strata: Optional[str] = None
    train_rows: Optional[np.ndarray] = None
    test_rows: Optional[np.ndarray] = None

    def full(self) -> pd.DataFrame:
        """Train and test recombined in the original row order."""
        combined = pd.concat([self.train, self.test])
        if self.train_rows is None or self.test_rows is None:
            return combined.sort_index(kind="stable")
        order = np.argsort(np.concatenate([self.train_rows, self.test_rows]), kind="stable")
        return combined.iloc[order]


@dataclass(frozen=True, eq=False)
class FoldAssignment:
    """
    k-fold partition of a training set.

    ``folds[i]`` is the (analysis, assessment) pair of row positions for
    fold i; every training row is in exactly one assessment set.
    """
    folds: tuple[tuple[np.ndarray, np.ndarray], ...]
    seed: int
    strata: Optional[str] = None

    @property
    def n_folds(self) -> int:
        return len(self.folds)

    def __iter__(self) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        return iter(self.folds)

    def __len__(self) -> int:
        return len(self.folds)

    @staticmethod
    def fold_id(i: int) -> str:
        return f"Fold{i + 1:02d}"


def stratified_split(
    df: pd.DataFrame,
    train_fraction: float = 0.75,
    strata: Optional[str] = "season",
    seed: int = 123,
) -> DataSplit:
    """
    Split a dataset into train and test sets preserving strata proportions.

    Args:
        df: Dataset to split
        train_fraction: Fraction of rows assigned to train
        strata: Column whose level frequencies are preserved, or None
        seed: Random seed; the same seed always yields the same partition

    Returns:
        DataSplit with both subsets in original row order

    Raises:
        MalformedInputError: if the strata cannot be split (e.g. a level
            with a single row)
    """
    if not 0 < train_fraction < 1:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")

    stratify = df[strata].astype(str).to_numpy() if strata else None
    try:
        train_rows, test_rows = train_test_split(
            np.arange(len(df)),
            train_size=train_fraction,
            stratify=stratify,
            random_state=seed,
        )
    except ValueError as e:
        raise MalformedInputError(f"Cannot split {len(df)} rows by '{strata}': {e}") from e

    train_rows = np.sort(train_rows)
    test_rows = np.sort(test_rows)

    split = DataSplit(
        train=df.iloc[train_rows],
        test=df.iloc[test_rows],
        seed=seed,
        train_fraction=train_fraction,
        strata=strata,
        train_rows=train_rows,
        test_rows=test_rows,
    )

    logger.info("data_split", train_size=len(split.train), test_size=len(split.test), seed=seed)
    return split


def stratified_folds(
    train: pd.DataFrame,
    n_folds: int = 10,
    strata: Optional[str] = "season",
    seed: int = 123,
) -> FoldAssignment:
    """
    Assign training rows to k stratified cross-validation folds.

    Args:
        train: Training set
        n_folds: Number of folds (k)
        strata: Column whose level frequencies are preserved per fold
        seed: Random seed for the shuffle

    Returns:
        FoldAssignment with k (analysis, assessment) position pairs
    """
    if n_folds < 2:
        raise ValueError(f"n_folds must be at least 2, got {n_folds}")
    if n_folds > len(train):
        raise ValueError(f"n_folds={n_folds} exceeds the number of rows ({len(train)})")

    labels = train[strata].astype(str).to_numpy() if strata else np.zeros(len(train))
    splitter = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=seed)

    folds = tuple(
        (analysis, assessment)
        for analysis, assessment in splitter.split(np.zeros(len(train)), labels)
    )

    logger.info("folds_assigned", n_folds=n_folds, rows=len(train), seed=seed)
    return FoldAssignment(folds=folds, seed=seed, strata=strata)
