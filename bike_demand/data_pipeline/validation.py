"""
Data validation module for quality checks on the daily rental dataset.
"""

from dataclasses import dataclass, field
from enum import Enum

import pandas as pd
import structlog

from bike_demand.data_pipeline.schema import (
    AVERAGED_COLUMNS,
    DAILY_COLUMNS,
    DATE_COLUMN,
    HOLIDAY_LEVELS,
    SEASONS,
    SUMMED_COLUMNS,
    TARGET_COLUMN,
)

logger = structlog.get_logger(__name__)


class ValidationSeverity(Enum):
    """Severity levels for validation issues."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class ValidationIssue:
    """A single validation issue."""
    column: str
    issue_type: str
    severity: ValidationSeverity
    message: str
    affected_rows: int = 0
    affected_indices: list = field(default_factory=list)


@dataclass
class ValidationResult:
    """Result of data validation."""
    is_valid: bool
    issues: list[ValidationIssue] = field(default_factory=list)
    summary: dict = field(default_factory=dict)

    def add_issue(self, issue: ValidationIssue) -> None:
        """Add a validation issue."""
        self.issues.append(issue)
        if issue.severity in (ValidationSeverity.ERROR, ValidationSeverity.CRITICAL):
            self.is_valid = False

    def has_critical_issues(self) -> bool:
        """Check if there are any critical issues."""
        return any(i.severity == ValidationSeverity.CRITICAL for i in self.issues)

    def errors(self) -> list[ValidationIssue]:
        """Issues that make the dataset unusable."""
        return [
            i for i in self.issues
            if i.severity in (ValidationSeverity.ERROR, ValidationSeverity.CRITICAL)
        ]

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "is_valid": self.is_valid,
            "issue_count": len(self.issues),
            "issues": [
                {
                    "column": i.column,
                    "type": i.issue_type,
                    "severity": i.severity.value,
                    "message": i.message,
                    "affected_rows": i.affected_rows,
                }
                for i in self.issues
            ],
            "summary": self.summary,
        }


class DataValidator:
    """
    Validates the daily rental dataset before it enters the model pipeline.

    Checks performed:
    - Required columns
    - Missing values
    - Data types
    - Category levels (season, holiday)
    - One row per date
    - Negative counts and precipitation
    - Outliers in the target (IQR method)
    """

    def __init__(
        self,
        date_col: str = DATE_COLUMN,
        target_col: str = TARGET_COLUMN,
        required_columns: list[str] = None,
        outlier_threshold: float = 3.0,  # IQR multiplier
    ):
        self.date_col = date_col
        self.target_col = target_col
        self.required_columns = required_columns or list(DAILY_COLUMNS)
        self.outlier_threshold = outlier_threshold

    def validate(self, df: pd.DataFrame) -> ValidationResult:
        """
        Perform all validation checks on the dataframe.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all issues found
        """
        result = ValidationResult(is_valid=True)

        if df.empty:
            result.add_issue(ValidationIssue(
                column="",
                issue_type="empty_dataframe",
                severity=ValidationSeverity.CRITICAL,
                message="DataFrame is empty",
            ))
            return result

        self._check_required_columns(df, result)
        if result.has_critical_issues():
            return result

        self._check_missing_values(df, result)
        self._check_data_types(df, result)
        self._check_categories(df, result)
        self._check_duplicates(df, result)
        self._check_value_ranges(df, result)
        self._check_outliers(df, result)

        result.summary = self._generate_summary(df)

        logger.info(
            "validation_complete",
            is_valid=result.is_valid,
            issue_count=len(result.issues),
        )

        return result

    def _check_required_columns(self, df: pd.DataFrame, result: ValidationResult) -> None:
        """Check if required columns exist."""
        for col in self.required_columns:
            if col not in df.columns:
                result.add_issue(ValidationIssue(
                    column=col,
                    issue_type="missing_column",
                    severity=ValidationSeverity.CRITICAL,
                    message=f"Required column '{col}' is missing",
                ))

    def _check_missing_values(self, df: pd.DataFrame, result: ValidationResult) -> None:
        """Any missing value is an error: the models cannot impute."""
        for col in self.required_columns:
            missing_count = int(df[col].isna().sum())
            if missing_count > 0:
                missing_pct = (missing_count / len(df)) * 100
                result.add_issue(ValidationIssue(
                    column=col,
                    issue_type="missing_values",
                    severity=ValidationSeverity.ERROR,
                    message=f"{missing_count} missing values ({missing_pct:.1f}%)",
                    affected_rows=missing_count,
                    affected_indices=df[df[col].isna()].index.tolist()[:100],
                ))

    def _check_data_types(self, df: pd.DataFrame, result: ValidationResult) -> None:
        """Check if columns have correct data types."""
        if not pd.api.types.is_datetime64_any_dtype(df[self.date_col]):
            result.add_issue(ValidationIssue(
                column=self.date_col,
                issue_type="invalid_dtype",
                severity=ValidationSeverity.ERROR,
                message=f"Expected datetime, got {df[self.date_col].dtype}",
            ))

        for col in SUMMED_COLUMNS + AVERAGED_COLUMNS:
            if col in df.columns and not pd.api.types.is_numeric_dtype(df[col]):
                result.add_issue(ValidationIssue(
                    column=col,
                    issue_type="invalid_dtype",
                    severity=ValidationSeverity.ERROR,
                    message=f"Expected numeric, got {df[col].dtype}",
                ))

    def _check_categories(self, df: pd.DataFrame, result: ValidationResult) -> None:
        """Check categorical columns only hold known levels."""
        for col, levels in (("season", SEASONS), ("holiday", HOLIDAY_LEVELS)):
            values = df[col].dropna().astype(str)
            unknown = values[~values.isin(levels)]
            if len(unknown) > 0:
                result.add_issue(ValidationIssue(
                    column=col,
                    issue_type="unknown_category",
                    severity=ValidationSeverity.ERROR,
                    message=f"Unknown levels: {sorted(unknown.unique())}",
                    affected_rows=len(unknown),
                    affected_indices=unknown.index.tolist()[:100],
                ))

    def _check_duplicates(self, df: pd.DataFrame, result: ValidationResult) -> None:
        """Each date must appear exactly once."""
        duplicates = df[df.duplicated(subset=[self.date_col], keep=False)]
        if len(duplicates) > 0:
            result.add_issue(ValidationIssue(
                column=self.date_col,
                issue_type="duplicates",
                severity=ValidationSeverity.ERROR,
                message=f"{len(duplicates)} rows share a date",
                affected_rows=len(duplicates),
                affected_indices=duplicates.index.tolist()[:100],
            ))

    def _check_value_ranges(self, df: pd.DataFrame, result: ValidationResult) -> None:
        """Counts and precipitation cannot be negative."""
        for col in SUMMED_COLUMNS:
            if not pd.api.types.is_numeric_dtype(df[col]):
                continue
            negative_count = int((df[col] < 0).sum())
            if negative_count > 0:
                result.add_issue(ValidationIssue(
                    column=col,
                    issue_type="negative_values",
                    severity=ValidationSeverity.ERROR,
                    message=f"{negative_count} negative values detected",
                    affected_rows=negative_count,
                ))

    def _check_outliers(self, df: pd.DataFrame, result: ValidationResult) -> None:
        """Check for outliers in the target using the IQR method."""
        if not pd.api.types.is_numeric_dtype(df[self.target_col]):
            return

        values = df[self.target_col].dropna()
        if len(values) < 10:
            return

        q1 = values.quantile(0.25)
        q3 = values.quantile(0.75)
        iqr = q3 - q1

        lower_bound = q1 - self.outlier_threshold * iqr
        upper_bound = q3 + self.outlier_threshold * iqr

        outliers = df[
            (df[self.target_col] < lower_bound) |
            (df[self.target_col] > upper_bound)
        ]

        if len(outliers) > 0:
            outlier_pct = (len(outliers) / len(df)) * 100
            result.add_issue(ValidationIssue(
                column=self.target_col,
                issue_type="outliers",
                severity=ValidationSeverity.WARNING,
                message=f"{len(outliers)} outliers detected ({outlier_pct:.1f}%). Range: [{lower_bound:.2f}, {upper_bound:.2f}]",
                affected_rows=len(outliers),
                affected_indices=outliers.index.tolist()[:100],
            ))

    def _generate_summary(self, df: pd.DataFrame) -> dict:
        """Generate summary statistics."""
        summary = {
            "total_rows": len(df),
            "date_range": {},
            "target_stats": {},
            "season_counts": df["season"].astype(str).value_counts().to_dict(),
        }

        if pd.api.types.is_datetime64_any_dtype(df[self.date_col]) and not df[self.date_col].isna().all():
            dates = df[self.date_col]
            summary["date_range"] = {
                "start": dates.min().isoformat(),
                "end": dates.max().isoformat(),
                "span_days": (dates.max() - dates.min()).days,
            }

        if pd.api.types.is_numeric_dtype(df[self.target_col]):
            values = df[self.target_col].dropna()
            if len(values) > 0:
                summary["target_stats"] = {
                    "mean": float(values.mean()),
                    "std": float(values.std()),
                    "min": float(values.min()),
                    "max": float(values.max()),
                    "median": float(values.median()),
                }

        return summary
