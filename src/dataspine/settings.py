"""Environment-driven settings for dataspine.

``DataSpineSettings`` collects everything needed to build a data source:
which backend to talk to, how to quote identifiers and how to log.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not at query time
    - **Environment-driven:** Reads ``DATASPINE_*`` env vars and ``.env`` files
    - **Sensible defaults:** In-memory backend out of the box

Examples:
    >>> from dataspine.settings import DataSpineSettings
    >>> settings = DataSpineSettings(database_url="sqlite:///app.db")
    >>> settings.is_memory
    False

Tags:
    settings, configuration, pydantic, environment, dataspine
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DataSpineSettings(BaseSettings):
    """Settings for building data sources.

    Fields
    ──────
    database_url      : ``memory`` or a SQLAlchemy URL (``sqlite:///app.db``)
    echo_sql          : Log every statement through SQLAlchemy's echo
    quote_identifiers : Quote table/column names with the dialect's quote char
    primary_key       : Key column used for bounded UPDATE/DELETE and memory ids
    log_level         : Structlog log level
    json_logs         : Force JSON (True) or console (False); None auto-detects
    """

    model_config = SettingsConfigDict(
        env_prefix="DATASPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Backend ──────────────────────────────────────────────────
    database_url: str = Field(
        default="memory",
        description="'memory' for the in-memory backend, else a SQLAlchemy URL",
    )
    echo_sql: bool = False
    quote_identifiers: bool = True
    primary_key: str = "id"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def is_memory(self) -> bool:
        return self.database_url in ("memory", "")
