"""Centralized application configuration with schema validation.

Settings sources:
- Supports flat environment names (for example ``AWS_REGION``).
- Supports nested names (for example ``AWS__REGION``) for future consistency.
- Optionally reads a local ``.env`` file before process env values.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from threading import Lock

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

_DEFAULT_REGION = "us-east-1"
_PRICING_HUB_REGION = "us-east-1"
_OUTPUT_FORMATS = {"tabular", "json"}


class AWSConfig(BaseModel):
    """AWS client defaults used by the client factory."""

    model_config = ConfigDict(frozen=True)

    region: str = Field(default=_DEFAULT_REGION, description="Operating region")
    pricing_region: str = Field(
        default=_PRICING_HUB_REGION,
        description="Region hosting the Pricing API endpoint",
    )
    timeout: int = Field(default=60, ge=1, le=300)
    connect_timeout: int = Field(default=5, ge=1, le=60)

    @field_validator("region", "pricing_region", mode="before")
    @classmethod
    def _normalize_region(cls, value: object) -> str:
        text = str(value or "").strip().lower()
        if not text:
            raise ValueError("region must be a non-empty string")
        return text


class ReconcileConfig(BaseModel):
    """Knobs of the reservation reconciliation engine."""

    model_config = ConfigDict(frozen=True)

    ssm_policy_name: str = Field(default="AmazonSSMManagedInstanceCore")
    instance_type_page_size: int = Field(default=100, ge=5, le=100)
    currency: str = Field(default="USD")
    operating_system: str = Field(default="Linux")
    tenancy: str = Field(default="Shared")
    capacity_status: str = Field(default="Used")
    preinstalled_sw: str = Field(default="NA")

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        text = str(value or "").strip().upper()
        return text or "USD"


class LoggingSettings(BaseModel):
    """Repository-wide logging settings."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="WARNING")
    json_logs: bool = Field(default=False)
    override_root_handlers: bool = Field(default=False)

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        text = str(value or "").strip().upper()
        if text in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            return text
        return "WARNING"


class OutputConfig(BaseModel):
    """Report rendering defaults (CLI flags still win)."""

    model_config = ConfigDict(frozen=True)

    format: str = Field(default="tabular")
    wide: bool = Field(default=False)

    @field_validator("format")
    @classmethod
    def _normalize_format(cls, value: str) -> str:
        text = str(value or "").strip().lower()
        if text in _OUTPUT_FORMATS:
            return text
        return "tabular"


class Settings(BaseModel):
    """Top-level settings model."""

    model_config = ConfigDict(frozen=True)

    aws: AWSConfig = Field(default_factory=AWSConfig)
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @classmethod
    def from_env(
        cls,
        *,
        env: Mapping[str, str] | None = None,
        env_file: str = ".env",
    ) -> Settings:
        """Build settings from `.env` then environment variables."""
        runtime_env = os.environ if env is None else env
        merged_env = _merge_env(_load_dotenv(Path(env_file)), runtime_env)
        payload = _build_payload(merged_env)
        return cls.model_validate(payload)


def _load_dotenv(path: Path) -> dict[str, str]:
    """Parse a minimal `.env` file format."""
    if not path.exists() or not path.is_file():
        return {}

    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, raw_value = line.split("=", 1)
        key_clean = key.strip()
        value = raw_value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        if key_clean:
            values[key_clean] = value
    return values


def _merge_env(dotenv_values: Mapping[str, str], runtime_env: Mapping[str, str]) -> dict[str, str]:
    """Return env map where process env overrides `.env` values."""
    merged = {str(k): str(v) for k, v in dotenv_values.items()}
    for key, value in runtime_env.items():
        merged[str(key)] = str(value)
    return merged


def _first_non_empty(env: Mapping[str, str], *keys: str) -> str | None:
    """Return the first non-empty value for the provided keys."""
    for key in keys:
        value = str(env.get(key, "")).strip()
        if value:
            return value
    return None


def _build_payload(env: Mapping[str, str]) -> dict[str, object]:
    """Build nested settings payload from env values."""
    aws = {
        "region": _first_non_empty(env, "AWS__REGION", "AWS_REGION", "AWS_DEFAULT_REGION"),
        "pricing_region": _first_non_empty(env, "AWS__PRICING_REGION", "AWS_PRICING_REGION"),
        "timeout": _first_non_empty(env, "AWS__TIMEOUT", "AWS_TIMEOUT"),
        "connect_timeout": _first_non_empty(env, "AWS__CONNECT_TIMEOUT", "AWS_CONNECT_TIMEOUT"),
    }
    reconcile = {
        "ssm_policy_name": _first_non_empty(env, "RECONCILE__SSM_POLICY_NAME", "SSM_POLICY_NAME"),
        "instance_type_page_size": _first_non_empty(
            env, "RECONCILE__INSTANCE_TYPE_PAGE_SIZE", "INSTANCE_TYPE_PAGE_SIZE"
        ),
        "currency": _first_non_empty(env, "RECONCILE__CURRENCY", "PRICING_CURRENCY"),
        "operating_system": _first_non_empty(env, "RECONCILE__OPERATING_SYSTEM", "PRICING_OPERATING_SYSTEM"),
        "tenancy": _first_non_empty(env, "RECONCILE__TENANCY", "PRICING_TENANCY"),
        "capacity_status": _first_non_empty(env, "RECONCILE__CAPACITY_STATUS", "PRICING_CAPACITY_STATUS"),
        "preinstalled_sw": _first_non_empty(env, "RECONCILE__PREINSTALLED_SW", "PRICING_PREINSTALLED_SW"),
    }
    logging_settings = {
        "level": _first_non_empty(env, "LOGGING__LEVEL", "RIRECON_LOG_LEVEL"),
        "json_logs": _first_non_empty(env, "LOGGING__JSON_LOGS", "RIRECON_LOG_JSON"),
        "override_root_handlers": _first_non_empty(
            env, "LOGGING__OVERRIDE_ROOT_HANDLERS", "RIRECON_LOG_OVERRIDE"
        ),
    }
    output = {
        "format": _first_non_empty(env, "OUTPUT__FORMAT", "RIRECON_OUTPUT"),
        "wide": _first_non_empty(env, "OUTPUT__WIDE", "RIRECON_WIDE"),
    }
    return {
        "aws": {k: v for k, v in aws.items() if v is not None},
        "reconcile": {k: v for k, v in reconcile.items() if v is not None},
        "logging": {k: v for k, v in logging_settings.items() if v is not None},
        "output": {k: v for k, v in output.items() if v is not None},
    }


_SETTINGS_LOCK = Lock()
_SETTINGS_CACHE: Settings | None = None


def get_settings(*, reload: bool = False) -> Settings:
    """Return cached settings, optionally forcing reload from env."""
    global _SETTINGS_CACHE
    with _SETTINGS_LOCK:
        if reload or _SETTINGS_CACHE is None:
            _SETTINGS_CACHE = Settings.from_env()
        return _SETTINGS_CACHE


def clear_settings_cache() -> None:
    """Clear in-process settings cache."""
    global _SETTINGS_CACHE
    with _SETTINGS_LOCK:
        _SETTINGS_CACHE = None


__all__ = [
    "AWSConfig",
    "LoggingSettings",
    "OutputConfig",
    "ReconcileConfig",
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "ValidationError",
]
