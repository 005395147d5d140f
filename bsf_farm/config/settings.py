"""
BSF Farm Data Platform
Centralized Configuration Management

Configuration is read from environment variables (and an optional ``.env``
file) through Pydantic settings, grouped by concern and cached per process.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


# Async driver used by the application, sync driver used for tooling
_DRIVERS = {
    "postgresql": ("postgresql+asyncpg", "postgresql+psycopg2"),
    "mysql": ("mysql+aiomysql", "mysql+pymysql"),
    "sqlite": ("sqlite+aiosqlite", "sqlite"),
}

# Nested sections read the same .env as Settings; keys of other sections are ignored
_ENV_FILE = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


class DatabaseSettings(BaseSettings):
    """Relational store configuration"""

    model_config = SettingsConfigDict(env_prefix="DB_", **_ENV_FILE)

    driver: str = Field(default="postgresql", description="Database product: postgresql, mysql or sqlite")
    host: str = Field(default="localhost", description="Database host")
    port: Optional[int] = Field(default=None, description="Database port (driver default when unset)")
    name: str = Field(default="bsf_farm_v2", description="Database name")
    user: str = Field(default="bsf", description="Database user")
    password: SecretStr = Field(default=SecretStr("bsf_password"), description="Database password")
    sqlite_path: str = Field(default="./bsf_farm.db", description="SQLite database file")
    url: Optional[str] = Field(default=None, description="Full async SQLAlchemy URL (overrides the fields above)")
    echo: bool = Field(default=False, description="Echo SQL statements")
    pool_pre_ping: bool = Field(default=True, description="Verify connections before use")

    @field_validator("driver")
    @classmethod
    def validate_driver(cls, v: str) -> str:
        """Validate database product"""
        if v.lower() not in _DRIVERS:
            raise ValueError(f"Database driver must be one of: {sorted(_DRIVERS)}")
        return v.lower()

    def _build_url(self, drivername: str) -> str:
        if self.driver == "sqlite":
            path = self.sqlite_path
            if path != ":memory:":
                path = str(Path(path).expanduser())
            return f"{drivername}:///{path}"
        return URL.create(
            drivername=drivername,
            username=self.user,
            password=self.password.get_secret_value(),
            host=self.host,
            port=self.port,
            database=self.name,
        ).render_as_string(hide_password=False)

    @property
    def async_url(self) -> str:
        """Async database URL used by the application engine"""
        if self.url:
            return self.url
        return self._build_url(_DRIVERS[self.driver][0])

    @property
    def sync_url(self) -> str:
        """Sync database URL for external tooling"""
        return self._build_url(_DRIVERS[self.driver][1])


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="", **_ENV_FILE)

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")


class IngestionSettings(BaseSettings):
    """File loading and seeding configuration"""

    model_config = SettingsConfigDict(env_prefix="INGEST_", **_ENV_FILE)

    chunk_size: int = Field(default=1000, description="Rows per INSERT statement")
    null_values: List[str] = Field(
        default=["", "NULL", "null", "None", "NA", "N/A"],
        description="Strings read as NULL from text files",
    )
    strict_validation: bool = Field(default=False, description="Treat validation warnings as failures")
    dead_letter_path: Optional[str] = Field(default=None, description="Directory receiving rejected files as Parquet")
    seed_random_state: int = Field(default=42, description="Random state for demo data")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(case_sensitive=False, **_ENV_FILE)

    # Application
    app_name: str = Field(default="bsf-farm", description="Application name")
    app_env: str = Field(default="development", description="Environment")
    debug: bool = Field(default=False, description="Debug mode")

    # Version
    version: str = Field(default="2.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
