"""
Application settings for LedgerFlow.

Values are read from environment variables prefixed with ``LEDGERFLOW_``
(or a ``.env`` file in the project root) and fall back to the defaults below.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LEDGERFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "LedgerFlow"
    app_version: str = "1.0.0"

    database_url: str = Field(
        default="sqlite:///./ledgerflow.db",
        description="SQLAlchemy database URL",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: str | None = Field(
        default=None,
        description="Directory for rotating log files. Defaults to <project>/logs",
    )

    # Which bracket table the annual tax calculation treats as canonical
    annual_bracket_table: Literal["standard", "detailed"] = "standard"

    # bcrypt work factor for password hashes
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings."""
    return Settings()
