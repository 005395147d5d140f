"""
DDL Rendering

Compiles the schema into CREATE TABLE / CREATE INDEX statements for a given
database product, for installation by hand on a managed server.
"""

from typing import Dict, List

from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.engine import Dialect
from sqlalchemy.schema import CreateIndex, CreateTable

from bsf_farm.database.models import Base

DIALECTS: Dict[str, type] = {
    "postgresql": postgresql.dialect,
    "mysql": mysql.dialect,
    "sqlite": sqlite.dialect,
}


def get_dialect(name: str) -> Dialect:
    """Instantiate a supported SQL dialect by name"""
    try:
        return DIALECTS[name.lower()]()
    except KeyError:
        raise ValueError(f"Unsupported dialect '{name}', expected one of: {sorted(DIALECTS)}") from None


def ddl_statements(dialect_name: str = "postgresql") -> List[str]:
    """
    Compile the schema into DDL statements.

    Tables come in dependency order (referenced tables first), each followed
    by its indices.
    """
    dialect = get_dialect(dialect_name)
    statements = []

    for table in Base.metadata.sorted_tables:
        statements.append(str(CreateTable(table).compile(dialect=dialect)).strip())
        for index in sorted(table.indexes, key=lambda i: i.name or ""):
            statements.append(str(CreateIndex(index).compile(dialect=dialect)).strip())

    return statements


def render_ddl(dialect_name: str = "postgresql") -> str:
    """Render the full schema as a SQL script"""
    return "\n\n".join(f"{statement};" for statement in ddl_statements(dialect_name)) + "\n"
