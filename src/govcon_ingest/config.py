"""Configuration for the four ingestion sources.

Settings come from an optional YAML file (top-level keys ``opportunities``,
``geocoder``, ``awards``, ``spending``) and are then overridden by
``GOVCON_<SOURCE>_<FIELD>`` environment variables, e.g.::

    GOVCON_OPPORTUNITIES_API_KEY=...
    GOVCON_SPENDING_ENABLED=false
    GOVCON_AWARDS_AGENCIES=DOD,NASA,NSF
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError

ENV_PREFIX = "GOVCON"


class SourceConfig(BaseModel):
    """Options shared by every source adapter."""

    enabled: bool = True
    base_url: str = ""
    rate_limit_ms: int = Field(default=1000, ge=0, description="Minimum spacing between calls")
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
    limit: int = Field(default=100, ge=1, description="Result limit for single-page calls")
    max_results: int = Field(default=1000, ge=1, description="Cap for multi-page fetches")
    page_size: int = Field(default=100, ge=1)
    lookback_days: int = Field(default=30, ge=0)
    naics_codes: list[str] = Field(default_factory=list)
    agencies: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    api_key: str | None = None
    user_agent: str = "govcon-ingest/0.1.0"

    @field_validator("naics_codes", "agencies", "keywords", mode="before")
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @property
    def endpoint(self) -> str:
        return self.base_url.rstrip("/")


class OpportunitySourceConfig(SourceConfig):
    base_url: str = "https://api.sam.gov/opportunities/v2/search"
    rate_limit_ms: int = Field(default=2000, ge=0)
    limit: int = Field(default=100, ge=1)
    lookback_days: int = Field(default=30, ge=0)
    ptype: str = Field(default="o", description="o=Original, k=Combined, p=Presolicitation, r=Sources Sought")
    set_aside: str | None = None
    sbir_enabled: bool = True
    keywords: list[str] = Field(default_factory=lambda: ["SBIR", "STTR"])


class GeocoderSourceConfig(SourceConfig):
    base_url: str = "https://geocoding.geo.census.gov/geocoder"
    rate_limit_ms: int = Field(default=100, ge=0)
    benchmark: str = "Public_AR_Current"
    vintage: str = "Current_Current"


class AwardSourceConfig(SourceConfig):
    base_url: str = "https://api.www.sbir.gov/public/api"
    rate_limit_ms: int = Field(default=1000, ge=0)
    page_size: int = Field(default=100, ge=1)
    max_results: int = Field(default=1000, ge=1)
    agencies: list[str] = Field(default_factory=lambda: ["DOD", "NASA", "NSF", "DOE", "HHS"])


class SpendingSourceConfig(SourceConfig):
    base_url: str = "https://api.usaspending.gov/api/v2"
    rate_limit_ms: int = Field(default=500, ge=0)
    page_size: int = Field(default=100, ge=1)
    max_results: int = Field(default=1000, ge=1)
    lookback_days: int = Field(default=365, ge=0)
    award_types: list[str] = Field(default_factory=lambda: ["A", "B", "C", "D"])

    @field_validator("award_types", mode="before")
    @classmethod
    def _split_award_types(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class IngestConfig(BaseModel):
    """Top-level configuration: one section per source."""

    opportunities: OpportunitySourceConfig = Field(default_factory=OpportunitySourceConfig)
    geocoder: GeocoderSourceConfig = Field(default_factory=GeocoderSourceConfig)
    awards: AwardSourceConfig = Field(default_factory=AwardSourceConfig)
    spending: SpendingSourceConfig = Field(default_factory=SpendingSourceConfig)

    @classmethod
    def section_names(cls) -> list[str]:
        return list(cls.model_fields)


def _env_overrides(section: str, model: type[SourceConfig], environ: dict[str, str]) -> dict[str, str]:
    prefix = f"{ENV_PREFIX}_{section.upper()}_"
    out: dict[str, str] = {}
    for field_name in model.model_fields:
        value = environ.get(prefix + field_name.upper())
        if value is not None:
            out[field_name] = value
    return out


def load_config(path: Path | str | None = None, environ: dict[str, str] | None = None) -> IngestConfig:
    """Load configuration from YAML (optional) and environment overrides.

    Args:
        path: YAML file to read. Missing sections fall back to defaults.
        environ: Environment mapping; defaults to ``os.environ``.

    Raises:
        ConfigError: If the file is unreadable or a value fails validation.
    """
    environ = dict(os.environ) if environ is None else environ
    raw: dict[str, Any] = {}

    if path is not None:
        path = Path(path)
        try:
            loaded = yaml.safe_load(path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        raw = loaded

    sections: dict[str, Any] = {}
    for name, field in IngestConfig.model_fields.items():
        model = field.annotation
        section = dict(raw.get(name) or {})
        section.update(_env_overrides(name, model, environ))
        try:
            sections[name] = model.model_validate(section)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration for {name}: {e}", source=name) from e

    return IngestConfig(**sections)
