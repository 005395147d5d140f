"""
Exception hierarchy for the BSF Farm Data Platform.
"""

from enum import Enum
from typing import Optional, Tuple


class BSFFarmError(Exception):
    """Base class for all package errors"""


class DatabaseNotInitializedError(BSFFarmError, RuntimeError):
    """A session or engine was requested before init_database()"""

    def __init__(self) -> None:
        super().__init__("Database not initialized. Call init_database() first.")


class UnknownTableError(BSFFarmError, KeyError):
    """Table name is not part of the schema"""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"Unknown table: {table}")

    def __str__(self) -> str:
        return self.args[0]


class ConstraintKind(str, Enum):
    """Kind of integrity constraint rejected by the store"""
    NOT_NULL = "not_null"
    UNIQUE = "unique"
    FOREIGN_KEY = "foreign_key"
    CHECK = "check"
    UNKNOWN = "unknown"


class ConstraintViolationError(BSFFarmError):
    """
    A write was rejected by the store's constraint checker.

    Carries the violated constraint's kind and, as far as the store reports
    it, the table, column(s) and constraint name. The originating
    ``sqlalchemy.exc.IntegrityError`` is chained as ``__cause__``.
    """

    def __init__(
        self,
        kind: ConstraintKind,
        table: Optional[str] = None,
        columns: Tuple[str, ...] = (),
        constraint: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.table = table
        self.columns = tuple(columns)
        self.constraint = constraint
        self.detail = detail
        super().__init__(self._format())

    @property
    def column(self) -> Optional[str]:
        """The offending column when exactly one is identified"""
        if len(self.columns) == 1:
            return self.columns[0]
        return None

    def _format(self) -> str:
        target = self.table or "<unknown table>"
        if self.columns:
            target = f"{target}.{','.join(self.columns)}"
        message = f"{self.kind.value} constraint violated on {target}"
        if self.constraint:
            message += f" ({self.constraint})"
        if self.detail:
            message += f": {self.detail}"
        return message
