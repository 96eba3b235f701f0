"""Centralized configuration for specquery using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``SPECQUERY_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SPECQUERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Index field names holding geo coordinates
    lat_key: str = Field(default="lat", min_length=1, description="Numeric index field holding latitude")
    lon_key: str = Field(default="lon", min_length=1, description="Numeric index field holding longitude")

    # Query defaults
    default_tiebreaker: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Disjunction-max tiebreaker used when a DISMAX spec omits or garbles its own",
    )
    default_analyzer: str = Field(
        default="whitespace",
        description="Analyzer used by indexes created without an explicit analyzer name",
    )
    geo_box_mode: Literal["legacy", "corrected"] = Field(
        default="legacy",
        description=(
            "Bounding box sizing for GEO queries: 'legacy' uses the same angular half width on both axes, "
            "'corrected' widens the longitude range by 1/cos(latitude)"
        ),
    )

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    # Observability
    service_name: str = Field(default="specquery", description="Service name reported to tracing")

    # HTTP server
    host: str = Field(default="127.0.0.1", description="Bind address of the HTTP server")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port of the HTTP server")
    corpus_path: Path | None = Field(
        default=None,
        description="Optional JSON file of indexes and entities loaded at startup",
    )


def get_settings() -> Settings:
    """Return settings freshly loaded from the environment."""
    return Settings()
