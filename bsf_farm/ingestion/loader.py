"""
Table File Loader

Loads CSV, JSON, JSON Lines and Parquet files into a schema table.
Supports:
- Validation derived from the schema before anything is written
- Type coercion to the target column types
- All-or-nothing writes (one transaction per file)
- Dead-letter copies of rejected files
- Directory loads in foreign-key dependency order
"""

import hashlib
import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import polars as pl
import structlog
from pydantic import BaseModel, Field
from sqlalchemy import JSON, Date, DateTime, Integer, Numeric, String, Table, Text, insert

from bsf_farm.config import get_settings
from bsf_farm.database.connection import get_db
from bsf_farm.database.models import Base, get_table
from bsf_farm.exceptions import ConstraintViolationError, UnknownTableError
from bsf_farm.quality.validators import ValidationSeverity, ValidationStatus, create_table_validator

logger = structlog.get_logger(__name__)


class FileFormat(str, Enum):
    """Supported file formats"""
    CSV = "csv"
    JSON = "json"
    JSONL = "jsonl"
    PARQUET = "parquet"

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "FileFormat":
        """Infer the format from a file suffix"""
        suffix = Path(path).suffix.lower().lstrip(".")
        if suffix == "ndjson":
            return cls.JSONL
        try:
            return cls(suffix)
        except ValueError:
            raise ValueError(f"Unsupported file format: {path}") from None


class LoadStatus(str, Enum):
    """Load status"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TableFileConfig:
    """Configuration for loading one file into one table"""
    file_path: Union[str, Path]
    target_table: str
    file_format: Optional[FileFormat] = None
    delimiter: str = ","
    encoding: str = "utf8"
    null_values: Optional[List[str]] = None
    chunk_size: Optional[int] = None

    def __post_init__(self) -> None:
        if self.file_format is None:
            self.file_format = FileFormat.from_path(self.file_path)


class LoadResult(BaseModel):
    """Result of a load operation"""
    file_path: str
    target_table: str
    status: LoadStatus
    rows_loaded: int = 0
    rows_failed: int = 0
    error_message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    load_duration_seconds: float = 0
    started_at: datetime
    completed_at: Optional[datetime] = None
    file_hash: Optional[str] = None


def coerce_value(table: Table, column_name: str, value: Any) -> Any:
    """
    Convert a value read from a file to the Python type of a column.

    Numerics become Decimal, ISO strings become date/datetime and JSON
    columns accept serialized text.
    """
    if value is None:
        return None

    column_type = table.columns[column_name].type

    if isinstance(column_type, Numeric):
        return value if isinstance(value, Decimal) else Decimal(str(value))
    if isinstance(column_type, Integer):
        return int(value)
    if isinstance(column_type, DateTime):
        if isinstance(value, str):
            return datetime.fromisoformat(value.strip())
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime.combine(value, datetime.min.time())
        return value
    if isinstance(column_type, Date):
        if isinstance(value, str):
            return date.fromisoformat(value.strip())
        if isinstance(value, datetime):
            return value.date()
        return value
    if isinstance(column_type, JSON):
        return json.loads(value) if isinstance(value, str) else value
    if isinstance(column_type, (String, Text)) and not isinstance(value, str):
        return str(value)
    return value


class TableLoader:
    """
    Loader for farm record files.

    Example:
        loader = TableLoader()
        result = await loader.load(
            TableFileConfig(file_path="exports/feedings.csv", target_table="feedings")
        )
    """

    def __init__(
        self,
        enable_validation: bool = True,
        strict_validation: Optional[bool] = None,
        dead_letter_path: Optional[Union[str, Path]] = None,
    ):
        settings = get_settings().ingestion
        self.enable_validation = enable_validation
        self.strict_validation = (
            settings.strict_validation if strict_validation is None else strict_validation
        )
        dead_letter = dead_letter_path or settings.dead_letter_path
        self.dead_letter_path = Path(dead_letter) if dead_letter else None
        self._settings = settings

    def _compute_file_hash(self, file_path: Path) -> str:
        """Compute MD5 hash of file for deduplication"""
        hash_md5 = hashlib.md5()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                hash_md5.update(chunk)
        return hash_md5.hexdigest()

    def _cast_numeric(self, df: pl.DataFrame, table: Table) -> pl.DataFrame:
        """Cast text columns holding numeric table columns; bad values raise"""
        casts = []
        for name in df.columns:
            if name not in table.columns or df[name].dtype != pl.Utf8:
                continue
            column_type = table.columns[name].type
            if isinstance(column_type, Numeric):
                casts.append(pl.col(name).str.strip_chars().cast(pl.Float64))
            elif isinstance(column_type, Integer):
                casts.append(pl.col(name).str.strip_chars().cast(pl.Int64))
        return df.with_columns(casts) if casts else df

    def _read_file(self, config: TableFileConfig) -> pl.DataFrame:
        """Read file based on format, numeric columns not yet cast"""
        if config.file_format == FileFormat.CSV:
            # Read everything as text so dates and enum values stay untouched
            return pl.read_csv(
                config.file_path,
                separator=config.delimiter,
                encoding=config.encoding,
                null_values=config.null_values or self._settings.null_values,
                infer_schema_length=0,
            )
        if config.file_format == FileFormat.JSON:
            return pl.read_json(config.file_path)
        if config.file_format == FileFormat.JSONL:
            return pl.read_ndjson(config.file_path)
        if config.file_format == FileFormat.PARQUET:
            return pl.read_parquet(config.file_path)
        raise ValueError(f"Unsupported file format: {config.file_format}")

    def _prepare_rows(self, df: pl.DataFrame, table: Table) -> List[Dict[str, Any]]:
        """Drop fully-null rows and coerce values to column types"""
        df = df.filter(~pl.all_horizontal(pl.all().is_null()))
        return [
            {name: coerce_value(table, name, value) for name, value in row.items()}
            for row in df.to_dicts()
        ]

    def _write_to_dead_letter(self, df: pl.DataFrame, config: TableFileConfig, error: str) -> None:
        """Write a rejected file's rows to the dead letter directory"""
        self.dead_letter_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        file_name = Path(config.file_path).stem
        dead_letter_file = self.dead_letter_path / f"{file_name}_{timestamp}.parquet"

        df = df.with_columns([
            pl.lit(error).alias("_error_message"),
            pl.lit(config.target_table).alias("_target_table"),
        ])
        df.write_parquet(dead_letter_file)
        logger.warning(
            "Written rejected rows to dead letter directory",
            file=str(dead_letter_file),
            records=len(df),
        )

    async def _insert_rows(self, table: Table, rows: List[Dict[str, Any]], chunk_size: int) -> int:
        """Insert rows in chunks within a single transaction"""
        async with get_db() as db:
            for i in range(0, len(rows), chunk_size):
                await db.execute(insert(table), rows[i:i + chunk_size])
        return len(rows)

    async def load(self, config: TableFileConfig) -> LoadResult:
        """
        Load a file into its target table.

        Args:
            config: File configuration

        Returns:
            LoadResult: Result of the load operation
        """
        file_path = Path(config.file_path)
        started_at = datetime.now(timezone.utc)

        result = LoadResult(
            file_path=str(file_path),
            target_table=config.target_table,
            status=LoadStatus.RUNNING,
            started_at=started_at,
        )

        logger.info(
            "Starting table load",
            file=str(file_path),
            target_table=config.target_table,
        )

        df: Optional[pl.DataFrame] = None
        try:
            table = get_table(config.target_table)

            if not file_path.exists():
                raise FileNotFoundError(f"File not found: {file_path}")

            result.file_hash = self._compute_file_hash(file_path)
            df = self._read_file(config)
            total_rows = len(df)
            logger.info("Read rows from file", rows=total_rows)
            # df stays the raw frame if a cast fails so it can be dead-lettered
            df = self._cast_numeric(df, table)

            computed = [c.name for c in table.columns if c.computed is not None and c.name in df.columns]

            if self.enable_validation:
                validation = create_table_validator(
                    table.name, columns=df.columns, strict_mode=self.strict_validation
                ).validate(df)
                result.warnings = [
                    c.message for c in validation.checks
                    if not c.passed and c.severity != ValidationSeverity.ERROR
                ]
                if validation.status == ValidationStatus.FAILED:
                    failures = validation.errors or result.warnings
                    raise ValueError(f"Validation failed: {'; '.join(failures)}")

            if computed:
                logger.warning("Dropping computed columns", columns=computed)
                df = df.drop(computed)

            rows = self._prepare_rows(df, table)
            chunk_size = config.chunk_size or self._settings.chunk_size
            rows_inserted = await self._insert_rows(table, rows, chunk_size)

            result.status = LoadStatus.COMPLETED
            result.rows_loaded = rows_inserted
            result.rows_failed = total_rows - rows_inserted

            logger.info(
                "Table load completed",
                target_table=config.target_table,
                rows_loaded=rows_inserted,
            )

        except (ConstraintViolationError, UnknownTableError, ValueError, OSError, pl.exceptions.PolarsError) as e:
            result.status = LoadStatus.FAILED
            result.error_message = str(e)
            result.rows_loaded = 0
            result.rows_failed = len(df) if df is not None else 0

            logger.error(
                "Table load failed",
                error=str(e),
                error_type=type(e).__name__,
                file=str(file_path),
            )

            if df is not None and self.dead_letter_path is not None:
                self._write_to_dead_letter(df, config, str(e))

        result.completed_at = datetime.now(timezone.utc)
        result.load_duration_seconds = (result.completed_at - started_at).total_seconds()
        return result

    async def load_directory(
        self,
        directory: Union[str, Path],
        file_format: FileFormat = FileFormat.CSV,
        target_table: Optional[str] = None,
        pattern: str = "*",
        **kwargs,
    ) -> List[LoadResult]:
        """
        Load all matching files from a directory.

        Without a target table each file loads into the table named by its
        stem (``feedings.csv`` -> ``feedings``), referenced tables first.

        Args:
            directory: Directory containing files
            file_format: File format to process
            target_table: Load every file into this table
            pattern: Glob pattern for file matching
            **kwargs: Additional TableFileConfig parameters

        Returns:
            List of LoadResult for each file
        """
        directory = Path(directory)
        files = sorted(directory.glob(f"{pattern}.{file_format.value}"))

        if target_table is None:
            order = {table.name: i for i, table in enumerate(Base.metadata.sorted_tables)}
            files.sort(key=lambda f: (order.get(f.stem, len(order)), f.name))

        logger.info(
            "Found files to load",
            count=len(files),
            directory=str(directory),
            pattern=pattern,
        )

        results = []
        for file_path in files:
            config = TableFileConfig(
                file_path=file_path,
                target_table=target_table or file_path.stem,
                file_format=file_format,
                **kwargs,
            )
            results.append(await self.load(config))

        successful = sum(1 for r in results if r.status == LoadStatus.COMPLETED)
        failed = sum(1 for r in results if r.status == LoadStatus.FAILED)

        logger.info(
            "Directory load completed",
            successful=successful,
            failed=failed,
            total_files=len(files),
        )

        return results
