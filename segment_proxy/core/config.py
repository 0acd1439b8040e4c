"""Configuration for the Segment proxy service.

Provides strongly-typed settings using Pydantic and a loader that merges
command-line values with environment variables.
"""

from __future__ import annotations

import os
from importlib.metadata import PackageNotFoundError, version as package_version
from typing import Any, Literal

from pydantic import AnyHttpUrl, BaseModel, Field, ValidationError

CDN_URL = "https://cdn.segment.com"
TRACKING_API_URL = "https://api.segment.io"


def _build_version() -> str:
    try:
        return package_version("segment-proxy")
    except PackageNotFoundError:
        return "not-set"


class Settings(BaseModel):
    """Pydantic settings for the proxy service."""

    cdn_url: AnyHttpUrl = Field(default=CDN_URL)
    tracking_url: AnyHttpUrl = Field(default=TRACKING_API_URL)
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=0, le=65535)
    health_port: int = Field(default=8081, ge=0, le=65535)
    debug: bool = False
    version: str = "not-set"
    request_timeout_s: float = 30.0
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


def load_settings(**overrides: Any) -> Settings:
    """Load settings from environment variables, applying explicit overrides.

    Overrides whose value is None are ignored so callers can pass optional
    CLI values straight through.
    """
    debug = bool(overrides.get("debug"))
    values: dict[str, Any] = {
        "version": os.getenv("APP_VERSION") or _build_version(),
        "request_timeout_s": os.getenv("REQUEST_TIMEOUT_S", "30.0"),
        "log_level": os.getenv("LOG_LEVEL", "DEBUG" if debug else "INFO").upper(),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Settings(**values)
    except ValidationError as e:
        raise RuntimeError(f"Invalid configuration: {e}") from e
