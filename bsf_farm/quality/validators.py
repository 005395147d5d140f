"""
Data Validation Module

Rule-based checks run on a polars DataFrame before it is written to the
store. The store remains the authority on constraints; validation catches
bad files early, reports every failing column at once and flags suspicious
values (negative weights, percentages above 100) the schema itself accepts.

Features:
- Column presence checks
- Null, uniqueness, enumeration and length checks
- Range/boundary checks
- Pattern matching
- Validators derived from the schema metadata
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

import polars as pl
import structlog
from sqlalchemy import Column, Enum as SQLEnum, Numeric, String

from bsf_farm.database.models import get_table

logger = structlog.get_logger(__name__)

# Percentages are stored as DECIMAL(5,2) and must stay within 0-100
PERCENT_COLUMNS = {"current_mortality", "mortality_rate", "humidity_percent"}

# Weights, quantities and prices are never negative
NON_NEGATIVE_SUFFIXES = ("_kg", "price", "quantity_available")

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Blocks the write
    WARNING = "warning"  # Logged, write continues
    INFO = "info"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    @property
    def errors(self) -> List[str]:
        """Messages of failed ERROR-severity checks"""
        return [
            c.message for c in self.checks
            if not c.passed and c.severity == ValidationSeverity.ERROR
        ]


def _missing(name: str, column: str, severity: ValidationSeverity) -> ValidationCheck:
    return ValidationCheck(
        name=name,
        passed=False,
        severity=severity,
        message=f"Column '{column}' not found",
    )


class DataValidator:
    """
    Data validator with a chainable check suite.

    Example:
        validator = DataValidator()
        validator.add_not_null_check("batch_id")
        validator.add_range_check("feed_quantity_kg", min_value=0)
        result = validator.validate(df)
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def add_columns_check(
        self,
        allowed_columns: Iterable[str],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that the frame has no columns outside the allowed set"""
        allowed = set(allowed_columns)

        def check(df: pl.DataFrame) -> ValidationCheck:
            unknown = sorted(c for c in df.columns if c not in allowed)
            passed = not unknown
            return ValidationCheck(
                name="known_columns",
                passed=passed,
                severity=severity,
                message=f"Unknown columns: {', '.join(unknown)}" if not passed else "All columns are known",
                details={"unknown_columns": unknown},
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_absent_check(
        self,
        column: str,
        reason: str,
        severity: ValidationSeverity = ValidationSeverity.WARNING,
    ) -> "DataValidator":
        """Add check that a column is not supplied"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            passed = column not in df.columns
            return ValidationCheck(
                name=f"absent_{column}",
                passed=passed,
                severity=severity,
                message=f"Column '{column}' should not be supplied: {reason}" if not passed else f"Column '{column}' not supplied",
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return _missing(f"not_null_{column}", column, severity)

            null_count = df[column].null_count()
            total = len(df)
            passed = null_count == 0

            return ValidationCheck(
                name=f"not_null_{column}",
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {null_count} null values" if not passed else f"Column '{column}' has no null values",
                details={"null_count": null_count, "null_percentage": (null_count / total) * 100 if total > 0 else 0},
                failed_rows=null_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for uniqueness of non-null column values"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return _missing(f"unique_{column}", column, severity)

            values = df[column].drop_nulls()
            total = len(values)
            unique_count = values.n_unique()
            duplicate_count = total - unique_count
            passed = duplicate_count == 0

            return ValidationCheck(
                name=f"unique_{column}",
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {duplicate_count} duplicate values" if not passed else f"Column '{column}' values are unique",
                details={"unique_count": unique_count, "duplicate_count": duplicate_count},
                failed_rows=duplicate_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        name: Optional[str] = None,
    ) -> "DataValidator":
        """Add check for values within specified range"""
        check_name = name or f"range_{column}"

        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return _missing(check_name, column, severity)

            conditions = []
            if min_value is not None:
                conditions.append(pl.col(column) < min_value)
            if max_value is not None:
                conditions.append(pl.col(column) > max_value)

            if not conditions:
                return ValidationCheck(
                    name=check_name,
                    passed=True,
                    severity=severity,
                    message="No range specified",
                )

            combined = conditions[0]
            for cond in conditions[1:]:
                combined = combined | cond

            out_of_range = df.filter(combined).height
            total = len(df)
            passed = out_of_range == 0

            return ValidationCheck(
                name=check_name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {out_of_range} values outside range [{min_value}, {max_value}]" if not passed else "All values in range",
                details={"min": min_value, "max": max_value, "out_of_range_count": out_of_range},
                failed_rows=out_of_range,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_positive_check(
        self,
        column: str,
        allow_zero: bool = True,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for positive values"""
        min_val = 0 if allow_zero else 0.0001
        return self.add_range_check(column, min_value=min_val, severity=severity, name=f"positive_{column}")

    def add_pattern_check(
        self,
        column: str,
        pattern: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add regex pattern check"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return _missing(f"pattern_{column}", column, severity)

            values = pl.col(column).cast(pl.Utf8)
            non_matching = df.filter(
                ~values.str.contains(pattern) & values.is_not_null()
            ).height
            total = df.filter(values.is_not_null()).height
            passed = non_matching == 0

            return ValidationCheck(
                name=f"pattern_{column}",
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {non_matching} values not matching pattern" if not passed else "All values match pattern",
                details={"pattern": pattern, "non_matching_count": non_matching},
                failed_rows=non_matching,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_enum_check(
        self,
        column: str,
        allowed_values: List[Any],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values in allowed set"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return _missing(f"enum_{column}", column, severity)

            values = pl.col(column).cast(pl.Utf8)
            invalid = df.filter(
                ~values.is_in(allowed_values) & values.is_not_null()
            ).height
            total = len(df)
            passed = invalid == 0

            return ValidationCheck(
                name=f"enum_{column}",
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {invalid} invalid values" if not passed else "All values are valid",
                details={"allowed_values": allowed_values, "invalid_count": invalid},
                failed_rows=invalid,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_max_length_check(
        self,
        column: str,
        max_length: int,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that text values fit the column length"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return _missing(f"max_length_{column}", column, severity)

            too_long = df.filter(
                pl.col(column).cast(pl.Utf8).str.len_chars() > max_length
            ).height
            total = len(df)
            passed = too_long == 0

            return ValidationCheck(
                name=f"max_length_{column}",
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {too_long} values longer than {max_length} characters" if not passed else "All values fit",
                details={"max_length": max_length, "too_long_count": too_long},
                failed_rows=too_long,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_custom_check(
        self,
        name: str,
        check_func: Callable[[pl.DataFrame], bool],
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add custom validation check"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            try:
                passed = check_func(df)
                return ValidationCheck(
                    name=name,
                    passed=passed,
                    severity=severity,
                    message="Check passed" if passed else message_on_fail,
                    total_rows=len(df),
                )
            except Exception as e:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Check failed with error: {str(e)}",
                )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.now(timezone.utc)
        results = []

        logger.debug("Running validation checks", checks=len(self._checks), rows=len(df))

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    message=result.message,
                    severity=result.severity.value,
                )

        completed_at = datetime.now(timezone.utc)

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        logger.info(
            f"Validation complete: {status.value}",
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )

        return ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=completed_at,
        )


def _is_required(column: Column) -> bool:
    return (
        not column.nullable
        and not column.primary_key
        and column.default is None
        and column.server_default is None
        and column.computed is None
    )


def _numeric_bound(column: Column) -> Optional[float]:
    """Largest absolute value a DECIMAL(p, s) column holds"""
    precision, scale = column.type.precision, column.type.scale
    if precision is None or scale is None:
        return None
    return float(10 ** (precision - scale)) - 10 ** -scale


def create_table_validator(
    table_name: str,
    columns: Optional[Iterable[str]] = None,
    strict_mode: bool = False,
) -> DataValidator:
    """
    Create a validator for rows destined for a schema table.

    Required columns are always checked. Checks on optional columns are only
    added for the columns actually supplied.

    Args:
        table_name: Target table
        columns: Columns present in the frame; all table columns when omitted
        strict_mode: Fail on warnings

    Returns:
        DataValidator: Configured validator
    """
    table = get_table(table_name)
    supplied = set(columns) if columns is not None else {c.name for c in table.columns}

    validator = DataValidator(strict_mode=strict_mode)
    validator.add_columns_check(c.name for c in table.columns)

    for column in table.columns:
        if column.computed is not None:
            validator.add_absent_check(column.name, "computed by the database")
            continue

        if _is_required(column):
            validator.add_not_null_check(column.name)
        elif column.name not in supplied:
            continue

        if isinstance(column.type, SQLEnum):
            validator.add_enum_check(column.name, list(column.type.enums))
        elif isinstance(column.type, String) and column.type.length:
            validator.add_max_length_check(column.name, column.type.length)

        if column.unique:
            validator.add_unique_check(column.name)

        if isinstance(column.type, Numeric) and not column.foreign_keys:
            bound = _numeric_bound(column)
            if bound is not None:
                validator.add_range_check(
                    column.name, min_value=-bound, max_value=bound, name=f"precision_{column.name}"
                )
            if column.name in PERCENT_COLUMNS:
                validator.add_range_check(
                    column.name, min_value=0, max_value=100,
                    severity=ValidationSeverity.WARNING, name=f"percentage_{column.name}",
                )
            elif column.name.endswith(NON_NEGATIVE_SUFFIXES):
                validator.add_positive_check(column.name, severity=ValidationSeverity.WARNING)

        if column.name == "email":
            validator.add_pattern_check(column.name, EMAIL_PATTERN, severity=ValidationSeverity.WARNING)

    return validator
