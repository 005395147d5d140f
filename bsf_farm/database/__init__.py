"""
Database Module
"""
from .connection import (
    init_database,
    close_database,
    get_db,
    get_engine,
    create_schema,
    drop_schema,
    check_database_health,
)
from .ddl import render_ddl
from .errors import translate_integrity_error
from .models import Base, get_table

__all__ = [
    "init_database",
    "close_database",
    "get_db",
    "get_engine",
    "create_schema",
    "drop_schema",
    "check_database_health",
    "render_ddl",
    "translate_integrity_error",
    "Base",
    "get_table",
]
