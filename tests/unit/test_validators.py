"""
Unit Tests - Data Quality
"""
from datetime import date

import polars as pl
import pytest

from bsf_farm.exceptions import UnknownTableError
from bsf_farm.quality.validators import (
    DataValidator,
    ValidationSeverity,
    ValidationStatus,
    create_table_validator,
)


def _check(result, name):
    return next(c for c in result.checks if c.name == name)


class TestDataValidator:
    """Tests for DataValidator"""

    def test_not_null_check_passes(self):
        """Test not null check with valid data"""
        df = pl.DataFrame({"batch_id": [1, 2, 3], "feed_type": ["a", "b", "c"]})

        validator = DataValidator()
        validator.add_not_null_check("batch_id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.PASSED
        assert result.passed_checks == 1

    def test_not_null_check_fails(self):
        """Test not null check with null values"""
        df = pl.DataFrame({"batch_id": [1, None, 3]})

        validator = DataValidator()
        validator.add_not_null_check("batch_id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.failed_checks == 1
        assert result.checks[0].failed_rows == 1

    def test_unique_check_ignores_nulls(self):
        """Test several missing values are not duplicates"""
        df = pl.DataFrame({"email": ["a@b.example", None, None]})

        validator = DataValidator()
        validator.add_unique_check("email")

        assert validator.validate(df).status == ValidationStatus.PASSED

    def test_unique_check_fails(self):
        """Test unique check with duplicates"""
        df = pl.DataFrame({"email": ["a@b.example", "c@d.example", "a@b.example"]})

        validator = DataValidator()
        validator.add_unique_check("email")

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].details["duplicate_count"] == 1

    def test_range_check(self):
        """Test range check"""
        df = pl.DataFrame({"humidity_percent": [10.0, 50.0, -5.0, 200.0]})

        validator = DataValidator()
        validator.add_range_check("humidity_percent", min_value=0, max_value=100)

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        # Two values outside range: -5 and 200
        assert result.checks[0].failed_rows == 2

    def test_enum_check(self):
        """Test enum/allowed values check"""
        df = pl.DataFrame({"stage": ["Egg", "Larva", None]})

        validator = DataValidator()
        validator.add_enum_check("stage", ["Egg", "Larvae", "Pupae", "Adult"])

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].failed_rows == 1

    def test_pattern_check(self):
        """Test regex pattern check"""
        df = pl.DataFrame({"email": ["test@example.com", "invalid", "user@test.org"]})

        validator = DataValidator()
        validator.add_pattern_check("email", r".*@.*\..*")

        result = validator.validate(df)

        # "invalid" doesn't match pattern
        assert result.status == ValidationStatus.FAILED

    def test_warning_only_is_partial(self):
        """Test warnings do not fail validation outside strict mode"""
        df = pl.DataFrame({"feed_quantity_kg": [5.0, -1.0]})

        validator = DataValidator()
        validator.add_positive_check("feed_quantity_kg", severity=ValidationSeverity.WARNING)

        result = validator.validate(df)

        assert result.status == ValidationStatus.PARTIAL
        assert result.warning_count == 1
        assert result.errors == []

    def test_strict_mode_fails_on_warning(self):
        """Test strict mode turns warnings into failures"""
        df = pl.DataFrame({"feed_quantity_kg": [5.0, -1.0]})

        validator = DataValidator(strict_mode=True)
        validator.add_positive_check("feed_quantity_kg", severity=ValidationSeverity.WARNING)

        assert validator.validate(df).status == ValidationStatus.FAILED

    def test_custom_check(self):
        """Test custom validation check"""
        df = pl.DataFrame({"larvae_weight_kg": [100, 200, 300]})

        validator = DataValidator()
        validator.add_custom_check(
            name="harvest_sum",
            check_func=lambda df: df["larvae_weight_kg"].sum() < 1000,
            message_on_fail="Sum exceeds 1000",
        )

        result = validator.validate(df)

        # Sum is 600, which is < 1000
        assert result.status == ValidationStatus.PASSED
        assert result.success_rate == 100.0

    def test_missing_column_fails(self):
        """Test checks on an absent column fail"""
        validator = DataValidator()
        validator.add_not_null_check("stage")

        result = validator.validate(pl.DataFrame({"notes": ["x"]}))

        assert result.status == ValidationStatus.FAILED
        assert "not found" in result.errors[0]


class TestTableValidator:
    """Tests for validators derived from the schema"""

    def test_valid_batches(self, sample_batches_df):
        """Test a clean batches frame passes"""
        result = create_table_validator("batches", sample_batches_df.columns).validate(sample_batches_df)

        assert result.status == ValidationStatus.PASSED

    def test_unknown_stage(self, sample_batches_df):
        """Test misspelled stage is an error"""
        df = sample_batches_df.with_columns(pl.Series("stage", ["Egg", "Larva", "Pupae"]))

        result = create_table_validator("batches", df.columns).validate(df)

        assert result.status == ValidationStatus.FAILED
        assert not _check(result, "enum_stage").passed

    def test_missing_required_column(self):
        """Test a required column missing from the frame is an error"""
        df = pl.DataFrame({"start_date": [date(2024, 1, 1)]})

        result = create_table_validator("batches", df.columns).validate(df)

        assert result.status == ValidationStatus.FAILED
        assert not _check(result, "not_null_stage").passed

    def test_unknown_column(self, sample_batches_df):
        """Test columns outside the table are an error"""
        df = sample_batches_df.with_columns(pl.lit("red").alias("colour"))

        result = create_table_validator("batches", df.columns).validate(df)

        assert result.status == ValidationStatus.FAILED
        assert _check(result, "known_columns").details["unknown_columns"] == ["colour"]

    def test_mortality_above_hundred_warns(self, sample_batches_df):
        """Test percentages above 100 are flagged without failing"""
        df = sample_batches_df.with_columns(pl.Series("current_mortality", [0.0, 120.0, 7.25]))

        result = create_table_validator("batches", df.columns).validate(df)
        strict = create_table_validator("batches", df.columns, strict_mode=True).validate(df)

        assert result.status == ValidationStatus.PARTIAL
        assert strict.status == ValidationStatus.FAILED

    def test_value_exceeding_precision(self, sample_batches_df):
        """Test a weight too large for DECIMAL(5,2) is an error"""
        df = sample_batches_df.with_columns(pl.Series("current_weight_kg", [1.5, 1500.0, 130.0]))

        result = create_table_validator("batches", df.columns).validate(df)

        assert result.status == ValidationStatus.FAILED
        assert not _check(result, "precision_current_weight_kg").passed

    def test_optional_columns_only_checked_when_supplied(self):
        """Test no checks are built for optional columns not in the frame"""
        df = pl.DataFrame({"start_date": [date(2024, 1, 1)], "stage": ["Egg"]})

        result = create_table_validator("batches", df.columns).validate(df)

        assert result.status == ValidationStatus.PASSED
        assert all(c.name != "enum_status" for c in result.checks)

    def test_total_amount_is_flagged(self):
        """Test supplying the computed sale total is a warning"""
        df = pl.DataFrame({
            "sale_date": [date(2024, 3, 1)],
            "product_id": [1],
            "customer_id": [1],
            "quantity_kg": [10.0],
            "price_per_kg": [5.0],
            "total_amount": [50.0],
        })

        result = create_table_validator("sales", df.columns).validate(df)

        assert result.status == ValidationStatus.PARTIAL
        assert not _check(result, "absent_total_amount").passed

    def test_duplicate_customer_email(self, sample_customers_df):
        """Test duplicate emails in one file are an error"""
        df = pl.concat([sample_customers_df, sample_customers_df.head(1)])

        result = create_table_validator("customers", df.columns).validate(df)

        assert result.status == ValidationStatus.FAILED
        assert not _check(result, "unique_email").passed

    def test_malformed_email_warns(self, sample_customers_df):
        """Test malformed email addresses are a warning"""
        df = sample_customers_df.with_columns(
            pl.Series("email", ["orders@greenpoultry.example", "not-an-email", None])
        )

        result = create_table_validator("customers", df.columns).validate(df)

        assert result.status == ValidationStatus.PARTIAL

    def test_text_longer_than_column(self):
        """Test values longer than VARCHAR length are an error"""
        df = pl.DataFrame({"name": ["x" * 101], "role": ["Feeder"]})

        result = create_table_validator("staff", df.columns).validate(df)

        assert result.status == ValidationStatus.FAILED
        assert not _check(result, "max_length_name").passed

    def test_unknown_table(self):
        """Test validators are only built for schema tables"""
        with pytest.raises(UnknownTableError):
            create_table_validator("orders")
