"""
Constraint Violation Translation

Turns the ``IntegrityError`` raised by SQLite, PostgreSQL (asyncpg/psycopg)
and MySQL drivers into a ``ConstraintViolationError`` naming the offending
table and column. Named constraints are resolved against the naming
convention of the schema metadata, so a constraint name reported by the
store maps back to the columns it guards.
"""

import re
from functools import lru_cache
from typing import Dict, NamedTuple, Optional, Tuple

import structlog
from sqlalchemy import Enum as SQLEnum, ForeignKeyConstraint, UniqueConstraint
from sqlalchemy.exc import IntegrityError

from bsf_farm.database.models import Base, NAMING_CONVENTION
from bsf_farm.exceptions import ConstraintKind, ConstraintViolationError

logger = structlog.get_logger(__name__)


class ConstraintTarget(NamedTuple):
    """Table and columns guarded by a named constraint"""
    kind: ConstraintKind
    table: str
    columns: Tuple[str, ...]


# SQLite reports the column for NOT NULL and UNIQUE failures
_SQLITE_COLUMN = re.compile(
    r"(?P<kind>NOT NULL|UNIQUE) constraint failed: (?P<table>\w+)\.(?P<column>\w+)"
)
_SQLITE_FOREIGN_KEY = re.compile(r"FOREIGN KEY constraint failed")
_PG_NOT_NULL = re.compile(
    r'null value in column "(?P<column>[^"]+)"(?: of relation "(?P<table>[^"]+)")?'
)
_MYSQL_NOT_NULL = re.compile(r"Column '(?P<column>[^']+)' cannot be null")

_NAMED_CONSTRAINT = [
    re.compile(r'constraint "(?P<name>[^"]+)"'),  # PostgreSQL
    re.compile(r"CONSTRAINT `(?P<name>[^`]+)`"),  # MySQL foreign keys
    re.compile(r"[Cc]heck constraint '(?P<name>[^']+)'"),  # MySQL CHECK
    re.compile(r"for key '(?:[^'.]+\.)?(?P<name>[^']+)'"),  # MySQL duplicate entry
    re.compile(r"CHECK constraint failed: (?P<name>\w+)"),  # SQLite named CHECK
]

_STATEMENT_TABLE = re.compile(
    r"^\s*(?P<verb>INSERT\s+INTO|UPDATE|DELETE\s+FROM)\s+[`\"]?(?P<table>\w+)",
    re.IGNORECASE,
)


def _convention_name(kind: str, **tokens: str) -> str:
    return (NAMING_CONVENTION[kind] % tokens).lower()


@lru_cache()
def constraint_index() -> Dict[str, ConstraintTarget]:
    """
    Index every named constraint of the schema.

    Names are computed from the metadata naming convention rather than read
    from the constraint objects, since foreign key names are only resolved
    at DDL compile time.

    Returns:
        Mapping of lower-cased constraint name to its target
    """
    index: Dict[str, ConstraintTarget] = {}

    for table in Base.metadata.sorted_tables:
        for constraint in table.constraints:
            columns = tuple(c.name for c in constraint.columns)
            if isinstance(constraint, UniqueConstraint):
                name = _convention_name("uq", table_name=table.name, column_0_name=columns[0])
                index[name] = ConstraintTarget(ConstraintKind.UNIQUE, table.name, columns)
            elif isinstance(constraint, ForeignKeyConstraint):
                name = _convention_name(
                    "fk",
                    table_name=table.name,
                    column_0_name=columns[0],
                    referred_table_name=constraint.referred_table.name,
                )
                index[name] = ConstraintTarget(ConstraintKind.FOREIGN_KEY, table.name, columns)

        for column in table.columns:
            if column.unique:
                name = _convention_name("uq", table_name=table.name, column_0_name=column.name)
                index[name] = ConstraintTarget(ConstraintKind.UNIQUE, table.name, (column.name,))
            if isinstance(column.type, SQLEnum) and column.type.name:
                name = _convention_name(
                    "ck", table_name=table.name, constraint_name=column.type.name
                )
                index[name] = ConstraintTarget(ConstraintKind.CHECK, table.name, (column.name,))

    return index


def foreign_key_columns(table_name: str) -> Tuple[str, ...]:
    """Columns of a table that reference another table"""
    table = Base.metadata.tables.get(table_name)
    if table is None:
        return ()
    return tuple(fk.parent.name for fk in table.foreign_keys)


def _statement_table(statement: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    if not statement:
        return None, None
    match = _STATEMENT_TABLE.match(statement)
    if not match:
        return None, None
    verb = match.group("verb").split()[0].upper()
    return match.group("table"), verb


def _driver_fields(orig: BaseException) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Structured constraint/table/column fields exposed by psycopg and asyncpg"""
    diag = getattr(orig, "diag", None)
    if diag is not None:
        return diag.constraint_name, diag.table_name, diag.column_name

    cause = orig.__cause__
    if cause is not None and hasattr(cause, "constraint_name"):
        return (
            getattr(cause, "constraint_name", None),
            getattr(cause, "table_name", None),
            getattr(cause, "column_name", None),
        )
    return None, None, None


def translate_integrity_error(exc: IntegrityError) -> ConstraintViolationError:
    """
    Translate a driver integrity error into a ConstraintViolationError.

    Args:
        exc: IntegrityError raised by SQLAlchemy during flush/commit/execute

    Returns:
        ConstraintViolationError describing the violated constraint
    """
    orig = exc.orig if exc.orig is not None else exc
    message = str(orig)
    detail = message.strip().splitlines()[0] if message.strip() else None
    index = constraint_index()

    constraint, table, column = _driver_fields(orig)
    if constraint and constraint.lower() in index:
        target = index[constraint.lower()]
        return ConstraintViolationError(
            target.kind, target.table, target.columns, constraint, detail
        )

    match = _SQLITE_COLUMN.search(message)
    if match:
        kind = ConstraintKind.NOT_NULL if match.group("kind") == "NOT NULL" else ConstraintKind.UNIQUE
        return ConstraintViolationError(
            kind, match.group("table"), (match.group("column"),), None, detail
        )

    statement_table, verb = _statement_table(exc.statement)

    match = _PG_NOT_NULL.search(message) or _MYSQL_NOT_NULL.search(message)
    if match:
        found_table = match.groupdict().get("table") or table or statement_table
        return ConstraintViolationError(
            ConstraintKind.NOT_NULL, found_table, (match.group("column"),), None, detail
        )

    for pattern in _NAMED_CONSTRAINT:
        match = pattern.search(message)
        if match and match.group("name").lower() in index:
            target = index[match.group("name").lower()]
            return ConstraintViolationError(
                target.kind, target.table, target.columns, match.group("name"), detail
            )

    if _SQLITE_FOREIGN_KEY.search(message):
        # SQLite does not say which reference failed
        columns: Tuple[str, ...] = ()
        if verb in ("INSERT", "UPDATE"):
            columns = foreign_key_columns(statement_table)
        return ConstraintViolationError(
            ConstraintKind.FOREIGN_KEY, statement_table, columns, None, detail
        )

    logger.warning(
        "Unrecognised integrity error",
        error=detail,
        statement_table=statement_table,
    )
    return ConstraintViolationError(
        ConstraintKind.UNKNOWN,
        table or statement_table,
        (column,) if column else (),
        constraint,
        detail,
    )
