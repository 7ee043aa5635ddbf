"""Runtime configuration loaded from environment variables and .env files."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"

DEFAULT_DB_LOG_LEVELS = ("info", "warn", "error")


class RuntimeSettings(BaseSettings):
    """Process configuration resolved once at startup.

    The health reporter and the database handle receive this object
    explicitly; neither reads the environment on its own.
    """

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    environment: str = Field(default="dev", alias="ENV")
    node_env: str | None = Field(default=None, alias="NODE_ENV")
    runtime_env: str | None = Field(default=None, alias="RUNTIME_ENV")
    database_url: str = Field(default="sqlite:///./dev.db", alias="DATABASE_URL")
    db_log_levels: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_DB_LOG_LEVELS), alias="DB_LOG_LEVELS"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("node_env", "runtime_env", mode="before")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        return value

    @field_validator("db_log_levels", mode="before")
    @classmethod
    def _parse_csv(cls, value: str | list[str] | None) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            items = value.split(",")
        else:
            items = list(value)
        return [str(item).strip().lower() for item in items if str(item).strip()]

    @field_validator("log_level", mode="after")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"


def load_settings(**overrides: object) -> RuntimeSettings:
    """Read settings from the environment, applying keyword overrides."""

    return RuntimeSettings(**overrides)


__all__ = ["DEFAULT_DB_LOG_LEVELS", "RuntimeSettings", "load_settings"]
