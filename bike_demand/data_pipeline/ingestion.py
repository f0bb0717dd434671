"""
Data ingestion module for the hourly bike rental file.
Reads the raw CSV, cleans it and aggregates it to one row per day.
"""

from pathlib import Path

import pandas as pd
import structlog

from bike_demand.data_pipeline.schema import (
    AVERAGED_COLUMNS,
    DATE_COLUMN,
    DATE_FORMAT,
    FUNCTIONING_COLUMN,
    GROUP_COLUMNS,
    HOLIDAY_LEVELS,
    HOURLY_NUMERIC_COLUMNS,
    RAW_COLUMN_MAP,
    REQUIRED_RAW_COLUMNS,
    SEASONS,
    SUMMED_COLUMNS,
    TARGET_COLUMN,
    normalise_header,
)
from bike_demand.data_pipeline.validation import DataValidator
from bike_demand.exceptions import MalformedInputError

logger = structlog.get_logger(__name__)

_HOLIDAY_VALUES = {
    "holiday": "Holiday",
    "yes": "Holiday",
    "no holiday": "No Holiday",
    "no": "No Holiday",
}
_FUNCTIONING_VALUES = {"yes": True, "no": False}


def read_hourly_csv(file_path: str | Path, encoding: str = "latin-1") -> pd.DataFrame:
    """
    Read the raw hourly file.

    Headers carry unit annotations such as ``°C``; the file is published in a
    single-byte encoding, so it is decoded as latin-1 unless told otherwise.
    """
    logger.info("reading_csv", file_path=str(file_path), encoding=encoding)
    try:
        df = pd.read_csv(file_path, encoding=encoding)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise MalformedInputError(f"Cannot parse {file_path}: {e}") from e

    logger.info("csv_loaded", rows=len(df), columns=len(df.columns))
    return df


def clean_hourly(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalise an hourly frame to the canonical schema.

    Renames headers, parses dates (day/month/year), coerces categorical
    flags and drops non-functioning hours.

    Raises:
        MalformedInputError: if a required column is absent or a value
            cannot be parsed
    """
    df = df.rename(columns=lambda c: RAW_COLUMN_MAP.get(normalise_header(c), c))

    missing = [col for col in REQUIRED_RAW_COLUMNS if col not in df.columns]
    if missing:
        raise MalformedInputError(f"Required columns missing: {missing}")

    df = df[REQUIRED_RAW_COLUMNS].copy()

    try:
        df[DATE_COLUMN] = pd.to_datetime(df[DATE_COLUMN], format=DATE_FORMAT)
    except (ValueError, TypeError) as e:
        raise MalformedInputError(f"Unparseable date: {e}") from e

    for col in HOURLY_NUMERIC_COLUMNS:
        try:
            df[col] = pd.to_numeric(df[col])
        except (ValueError, TypeError) as e:
            raise MalformedInputError(f"Non-numeric values in '{col}': {e}") from e

    df["season"] = _to_category(df["season"].astype(str).str.strip(), "season", SEASONS)
    holiday = df["holiday"].astype(str).str.strip().str.lower().map(_HOLIDAY_VALUES)
    df["holiday"] = _to_category(holiday, "holiday", HOLIDAY_LEVELS, raw=df["holiday"])
    functioning = df[FUNCTIONING_COLUMN].astype(str).str.strip().str.lower().map(_FUNCTIONING_VALUES)
    if functioning.isna().any():
        bad = sorted(df.loc[functioning.isna(), FUNCTIONING_COLUMN].astype(str).unique())
        raise MalformedInputError(f"Unknown values in '{FUNCTIONING_COLUMN}': {bad}")
    df[FUNCTIONING_COLUMN] = functioning.astype(bool)

    initial_len = len(df)
    df = df[df[FUNCTIONING_COLUMN]].drop(columns=[FUNCTIONING_COLUMN])

    logger.info(
        "hourly_cleaned",
        rows=len(df),
        dropped_non_functioning=initial_len - len(df),
    )
    return df


def aggregate_daily(df: pd.DataFrame) -> pd.DataFrame:
    """
    Reduce cleaned hourly rows to one row per date.

    Counts and precipitation are summed, the other covariates averaged.
    """
    agg_map = {col: "sum" for col in SUMMED_COLUMNS}
    agg_map.update({col: "mean" for col in AVERAGED_COLUMNS})

    daily = (
        df.groupby(GROUP_COLUMNS, observed=True, sort=False)
        .agg(agg_map)
        .reset_index()
        .sort_values(DATE_COLUMN)
        .reset_index(drop=True)
    )

    duplicated = daily[DATE_COLUMN].duplicated(keep=False)
    if duplicated.any():
        dates = sorted(daily.loc[duplicated, DATE_COLUMN].dt.strftime("%Y-%m-%d").unique())
        raise MalformedInputError(f"Dates with conflicting season/holiday labels: {dates[:10]}")

    daily[TARGET_COLUMN] = daily[TARGET_COLUMN].astype(int)

    logger.info("daily_aggregated", days=len(daily))
    return daily


def load_daily_dataset(file_path: str | Path, encoding: str = "latin-1") -> pd.DataFrame:
    """
    Load the raw hourly file and return the validated daily dataset.

    Raises:
        MalformedInputError: on schema, parse or validation errors
    """
    daily = aggregate_daily(clean_hourly(read_hourly_csv(file_path, encoding=encoding)))

    result = DataValidator().validate(daily)
    if not result.is_valid:
        messages = [f"{i.column}: {i.message}" for i in result.errors()]
        raise MalformedInputError(f"Daily dataset failed validation: {messages}")

    report = result.to_dict()
    for issue in report["issues"]:
        logger.warning(
            "validation_issue",
            column=issue["column"],
            issue_type=issue["type"],
            severity=issue["severity"],
            issue=issue["message"],
            affected_rows=issue["affected_rows"],
        )

    logger.info("daily_dataset_loaded", issue_count=report["issue_count"], **report["summary"])
    return daily


def _to_category(
    values: pd.Series,
    column: str,
    levels: list[str],
    raw: pd.Series = None,
) -> pd.Series:
    """Convert to a categorical with fixed levels, rejecting anything else."""
    raw = values if raw is None else raw
    unknown = values.isna() | ~values.isin(levels)
    if unknown.any():
        bad = sorted(raw[unknown].astype(str).unique())
        raise MalformedInputError(f"Unknown values in '{column}': {bad}")
    return pd.Categorical(values, categories=levels)
