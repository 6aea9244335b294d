"""Configuration management for the library lending core.

Settings are read from the environment (or a local ``.env`` file) with
hard-coded fallbacks, so a fresh checkout talks to a local MySQL server:

1. Store location - host, port, database name, user and password
2. Store override - a complete SQLAlchemy URL (used for SQLite and tests)
3. Pool sizing and bootstrap script selection
4. Logging level for the command line entry point

Every ``db_*`` field also accepts the short ``DB_HOST`` / ``DB_PORT`` /
``DB_NAME`` / ``DB_USER`` / ``DB_PASSWORD`` variable names.
"""

from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url


class LibrarySettings(BaseSettings):
    """Library lending configuration.

    Values are resolved in this order: explicit keyword arguments,
    environment variables, the ``.env`` file, then the defaults below.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIBRARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        # Allow LibrarySettings(db_host=...) alongside the env aliases
        populate_by_name=True,
        extra="ignore",
    )

    # === Store Location ===

    db_driver: str = Field(
        default="mysql+pymysql",
        description="SQLAlchemy dialect+driver used when no database_url is given",
        validation_alias=AliasChoices("LIBRARY_DB_DRIVER", "DB_DRIVER"),
    )

    db_host: str = Field(
        default="localhost",
        description="Database server host",
        validation_alias=AliasChoices("LIBRARY_DB_HOST", "DB_HOST"),
    )

    db_port: int = Field(
        default=3307,
        description="Database server port",
        ge=1,
        le=65535,
        validation_alias=AliasChoices("LIBRARY_DB_PORT", "DB_PORT"),
    )

    db_name: str = Field(
        default="bibliotheque",
        description="Database (schema) name",
        min_length=1,
        validation_alias=AliasChoices("LIBRARY_DB_NAME", "DB_NAME"),
    )

    db_user: str = Field(
        default="root",
        description="Database user",
        validation_alias=AliasChoices("LIBRARY_DB_USER", "DB_USER"),
    )

    db_password: str = Field(
        default="",
        description="Database password",
        repr=False,
        validation_alias=AliasChoices("LIBRARY_DB_PASSWORD", "DB_PASSWORD"),
    )

    database_url: str | None = Field(
        default=None,
        description="Complete SQLAlchemy URL, overrides every db_* field",
        repr=False,
        examples=["sqlite:///data/library.db"],
    )

    # === Pool and Bootstrap ===

    pool_size: int = Field(
        default=10,
        description="Number of tracked connections kept by the pool",
        ge=1,
        le=100,
    )

    bootstrap_script: Path | None = Field(
        default=None,
        description="SQL script to bootstrap from instead of the packaged one",
    )

    bootstrap_on_open: bool = Field(
        default=True,
        description="Run the bootstrapper when the library is opened",
    )

    # === Development Configuration ===

    server_name: str = Field(
        default="library-lending",
        description="Name announced by the tool server",
        pattern=r"^[a-z0-9-]+$",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    # === Validation Methods ===

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept lowercase level names from the environment."""
        return v.upper() if isinstance(v, str) else v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str | None) -> str | None:
        """Reject URLs SQLAlchemy cannot parse before any connection is tried."""
        if v is None or not v.strip():
            return None
        try:
            make_url(v)
        except Exception as e:
            raise ValueError(f"Invalid database URL: {e}") from e
        return v

    @field_validator("bootstrap_script")
    @classmethod
    def validate_bootstrap_script(cls, v: Path | None) -> Path | None:
        """Ensure a custom bootstrap script exists."""
        if v is not None and not v.is_file():
            raise ValueError(f"Bootstrap script {v} does not exist")
        return v

    # === Computed Properties ===

    def get_database_url(self) -> URL:
        """Get the SQLAlchemy URL for the backing store."""
        if self.database_url:
            return make_url(self.database_url)
        return URL.create(
            self.db_driver,
            username=self.db_user,
            password=self.db_password or None,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )


# === Global Configuration Instance ===


class _SettingsStore:
    """Internal storage for the settings singleton."""

    _instance: LibrarySettings | None = None


def get_settings() -> LibrarySettings:
    """Get or create the process-wide settings instance."""
    if _SettingsStore._instance is None:  # type: ignore[reportPrivateUsage]
        _SettingsStore._instance = LibrarySettings()  # type: ignore[reportPrivateUsage]
    return _SettingsStore._instance  # type: ignore[reportPrivateUsage]


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    _SettingsStore._instance = None  # type: ignore[reportPrivateUsage]
