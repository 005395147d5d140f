"""
Data Ingestion Module
"""
from .loader import FileFormat, LoadResult, LoadStatus, TableFileConfig, TableLoader
from .seed_db import FarmGenerator, seed_database

__all__ = [
    "FileFormat",
    "LoadResult",
    "LoadStatus",
    "TableFileConfig",
    "TableLoader",
    "FarmGenerator",
    "seed_database",
]
