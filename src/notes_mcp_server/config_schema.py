"""Unified configuration schema for notes_mcp_server.

Defines Pydantic models for the YAML config structure with dedicated
sections for the remote service, the local store, sync scheduling and
logging. ``yaml_fallbacks`` flattens it into the fallback values that
``load_config()`` applies below CLI args and env vars.

Usage:
    from notes_mcp_server.config_schema import (
        UnifiedConfig, build_config, yaml_fallbacks,
    )

    unified = build_config(load_hierarchical_config())
    config = load_config(yaml_fallbacks=yaml_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class RemoteConfig(BaseModel):
    """Remote notes service connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(
        default=None, description="Base URL of the notes API"
    )
    token: str | None = Field(
        default=None, description="Bearer token for the notes API"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Per-request timeout in seconds",
    )
    max_parallel_requests: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Maximum concurrent push requests (1-32)",
    )

    model_config = {"frozen": True}


class StoreConfig(BaseModel):
    """Local note store settings."""

    path: str | None = Field(
        default=None, description="Path of the local note store file"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Sync scheduling.

    Attributes:
        on_startup: Run one sync cycle when the server starts.
        auto_sync_interval: Seconds between background sync cycles;
            ``0`` disables periodic sync.
    """

    on_startup: bool = Field(
        default=True, description="Sync once when the server starts"
    )
    auto_sync_interval: int = Field(
        default=0,
        ge=0,
        le=86400,
        description="Seconds between periodic syncs (0 disables)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``"text"`` or ``"json"``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(default="text", pattern="^(text|json)$")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def yaml_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten the remote and store sections into the fallback dict
    accepted by ``load_config()``.

    ``None`` values are dropped so they never shadow env vars.
    """
    values: dict[str, Any] = {
        k: v
        for k, v in unified.remote.model_dump().items()
        if v is not None
    }
    if unified.store.path:
        values["store_path"] = unified.store.path
    return values

