"""Lifespan management for MCP server startup and shutdown."""

import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import UnifiedConfig, build_config, yaml_fallbacks
from ..core.client import NotesClient
from ..core.errors import NotesClientError
from ..logger import apply_logging_settings
from ..sync.engine import SyncEngine
from ..sync.models import SyncOutcome
from ..sync.status import SyncStatusTracker
from ..sync.store import LocalNoteStore

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@dataclass
class NotesRuntime:
    """Everything the tool handlers share for the lifetime of the server.

    ``lock`` serialises every load-modify-save of the local store, so a
    local edit never interleaves with a sync cycle and overwrites (or is
    overwritten by) its result.
    """

    config: Config
    settings: UnifiedConfig
    client: NotesClient
    store: LocalNoteStore
    engine: SyncEngine
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def sync_once(self) -> SyncOutcome:
        """Probe connectivity, run one sync cycle and persist the result.

        Raises:
            NotesClientError: If the connectivity probe is answered with a
                client error (typically a bad token).
            StoreError: If the local store cannot be read or written.
        """
        try:
            await self.engine.check_connectivity()
        except NotesClientError as e:
            self.engine.status.record_failure(str(e))
            raise

        async with self.lock:
            notes, last_sync = self.store.load()
            outcome = await self.engine.synchronize(notes, last_sync)
            if outcome.ran:
                self.store.save(outcome.notes, outcome.last_sync)
        return outcome


def build_runtime(config: Config, settings: UnifiedConfig) -> NotesRuntime:
    """Wire client, store and engine from a validated config."""
    client = NotesClient(config)
    engine = SyncEngine(
        client,
        max_parallel_requests=config.max_parallel_requests,
        # Offline until the first probe answers
        status=SyncStatusTracker(online=False),
    )
    return NotesRuntime(
        config=config,
        settings=settings,
        client=client,
        store=LocalNoteStore(Path(config.store_path)),
        engine=engine,
    )


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Build the notes client, local store and sync engine
    - Probe the notes service; an unreachable service only means the
      server starts offline

    On shutdown:
    - Log shutdown message

    Args:
        config_overrides: Optional dict with config values from CLI (url, token, store_path, insecure, debug)

    Yields:
        Dict with 'runtime' (NotesRuntime) and 'client' (NotesClient) keys

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("Notes MCP Server starting...")

    # CLI args > env vars (.env loaded first) > YAML config > defaults
    try:
        # .env first, so ${VAR} interpolation in YAML can use its values
        load_dotenv()

        settings = UnifiedConfig()
        fallbacks: dict[str, Any] | None = None
        config_files = discover_config_files()
        sources = []

        if config_files:
            settings = build_config(load_hierarchical_config())
            fallbacks = yaml_fallbacks(settings)
            sources.append(f"config file: {config_files[0]}")
            apply_logging_settings(
                settings.logging.level,
                settings.logging.format,
                settings.logging.file,
            )

        overrides = config_overrides or {}
        config = load_config(
            url=overrides.get("url"),
            token=overrides.get("token"),
            store_path=overrides.get("store_path"),
            insecure=overrides.get("insecure", False),
            debug=overrides.get("debug", False),
            yaml_fallbacks=fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        logger.info("Notes API URL: %s", config.api_url)
        _stderr_print(f"  Notes API URL: {config.api_url}")
        _stderr_print(f"  Local store: {config.store_path}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure NOTES_API_URL and NOTES_API_TOKEN are set.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure NOTES_API_URL and NOTES_API_TOKEN are set."
        ) from e

    runtime = build_runtime(config, settings)

    logger.info("Checking notes service connectivity...")
    try:
        online = await runtime.engine.check_connectivity()
    except NotesClientError as e:
        # Reachable but refusing us; tools report it on use
        logger.warning("Notes service rejected the probe: %s", e)
        _stderr_print(f"  WARNING: notes service rejected the probe: {e}")
        online = False
    if online:
        _stderr_print("  Notes service reachable.")
    else:
        _stderr_print("  Notes service unreachable, starting offline.")
    _stderr_print(f"  Parallel requests: {config.max_parallel_requests}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"runtime": runtime, "client": runtime.client}

    logger.info("MCP server shutting down")
    _stderr_print("Notes MCP Server shutting down.")
