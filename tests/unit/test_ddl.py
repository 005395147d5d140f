"""
Unit Tests - DDL Rendering
"""
import pytest

from bsf_farm.database.ddl import ddl_statements, get_dialect, render_ddl


class TestRenderDDL:
    """Tests for schema DDL"""

    @pytest.mark.parametrize("dialect", ["postgresql", "mysql", "sqlite"])
    def test_every_table_is_created(self, dialect):
        """Test each supported dialect renders all twelve tables"""
        ddl = render_ddl(dialect)

        for table in [
            "customers", "staff", "products", "batches", "feedings", "harvests",
            "mortality", "environment", "sales", "transactions", "inventory", "reports",
        ]:
            assert f"CREATE TABLE {table} " in ddl

    def test_referenced_tables_come_first(self):
        """Test parents are created before the tables referencing them"""
        ddl = render_ddl("postgresql")

        assert ddl.index("CREATE TABLE batches ") < ddl.index("CREATE TABLE feedings ")
        assert ddl.index("CREATE TABLE customers ") < ddl.index("CREATE TABLE sales ")
        assert ddl.index("CREATE TABLE sales ") < ddl.index("CREATE TABLE transactions ")

    def test_postgresql_features(self):
        """Test generated column, cascades, checks and JSONB"""
        ddl = render_ddl("postgresql")

        assert "GENERATED ALWAYS AS (quantity_kg * price_per_kg) STORED" in ddl
        assert "ON DELETE CASCADE ON UPDATE CASCADE" in ddl
        assert "ON DELETE RESTRICT" in ddl
        assert "CONSTRAINT ck_batches_stage CHECK" in ddl
        assert "CONSTRAINT uq_customers_email UNIQUE" in ddl
        assert "report_data JSONB" in ddl

    def test_mysql_uses_json(self):
        """Test report data is plain JSON outside PostgreSQL"""
        ddl = render_ddl("mysql")

        assert "report_data JSON" in ddl
        assert "JSONB" not in ddl

    def test_indices_follow_their_table(self):
        """Test index statements are emitted"""
        statements = ddl_statements("sqlite")

        assert any(s.startswith("CREATE INDEX ix_feedings_batch") for s in statements)
        assert any(s.startswith("CREATE INDEX ix_sales_date") for s in statements)

    def test_statements_are_terminated(self):
        """Test the script separates statements with semicolons"""
        ddl = render_ddl("sqlite")

        assert ddl.count(";") == len(ddl_statements("sqlite"))

    def test_unknown_dialect(self):
        """Test unsupported dialects are rejected"""
        with pytest.raises(ValueError, match="Unsupported dialect"):
            get_dialect("oracle")

    def test_dialect_name_is_case_insensitive(self):
        """Test dialect lookup ignores case"""
        assert get_dialect("PostgreSQL").name == "postgresql"
