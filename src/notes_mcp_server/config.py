"""Runtime configuration for the notes MCP server.

Reads remote service settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    NOTES_API_URL: Base URL of the remote notes API (required)
    NOTES_API_TOKEN: Bearer token for the authenticated user (required)
    NOTES_STORE_PATH: Local note store file (optional, default: .notes_mcp/notes.json)
    NOTES_INSECURE: Skip SSL verification (optional, default: false)
    NOTES_DEBUG: Enable debug logging (optional, default: false)
    NOTES_TIMEOUT: Per-request timeout in seconds (optional, default: 30)
    NOTES_MAX_PARALLEL_REQUESTS: Max concurrent push requests (optional, default: 4)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = ".notes_mcp/notes.json"


@dataclass
class Config:
    api_url: str
    token: str
    store_path: str = DEFAULT_STORE_PATH
    insecure: bool = False
    debug: bool = False
    timeout: float = 30.0
    max_parallel_requests: int = 4


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the API URL is malformed, the token is empty, or a
            numeric setting is out of range.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid notes API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid notes API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    if not config.token.strip():
        raise ValueError(
            "Notes API token cannot be empty. Set NOTES_API_TOKEN environment variable."
        )

    if not config.store_path.strip():
        raise ValueError("Note store path cannot be empty.")

    if config.timeout <= 0:
        raise ValueError(
            f"Invalid request timeout {config.timeout}: must be greater than 0"
        )

    if not (1 <= config.max_parallel_requests <= 32):
        raise ValueError(
            f"Invalid max_parallel_requests {config.max_parallel_requests}: must be between 1 and 32"
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_number_env(key: str, cast: type, low: float, high: float):
    """Parse a bounded numeric env var, or return None if unset."""
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    url: str | None = None,
    token: str | None = None,
    store_path: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        url: Override API URL.
        token: Override bearer token.
        store_path: Override local note store path.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values taken from the YAML config
            (keys: url, token, store_path, insecure, debug, timeout,
            max_parallel_requests).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the URL or token is missing after checking all
            sources, or any value is invalid.
    """
    fb = yaml_fallbacks or {}

    api_url = url or os.getenv("NOTES_API_URL") or fb.get("url")
    if not api_url:
        raise ValueError(
            "Notes API URL not found. Set NOTES_API_URL environment variable, "
            "pass --url CLI argument, or add 'remote.url' to config.yml."
        )

    api_token = token or os.getenv("NOTES_API_TOKEN") or fb.get("token")
    if not api_token:
        raise ValueError(
            "Notes API token not found. Set NOTES_API_TOKEN environment variable, "
            "pass --token CLI argument, or add 'remote.token' to config.yml."
        )

    final_store_path = (
        store_path
        or os.getenv("NOTES_STORE_PATH")
        or fb.get("store_path")
        or DEFAULT_STORE_PATH
    )

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("NOTES_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("NOTES_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # No CLI args for numeric fields
    final_timeout = _get_number_env("NOTES_TIMEOUT", float, 1, 600)
    if final_timeout is None:
        final_timeout = float(fb.get("timeout", 30.0))

    final_max_parallel = _get_number_env(
        "NOTES_MAX_PARALLEL_REQUESTS", int, 1, 32
    )
    if final_max_parallel is None:
        final_max_parallel = int(fb.get("max_parallel_requests", 4))

    config = Config(
        api_url=api_url.strip(),
        token=api_token.strip(),
        store_path=final_store_path.strip(),
        insecure=final_insecure,
        debug=final_debug,
        timeout=final_timeout,
        max_parallel_requests=final_max_parallel,
    )

    validate_config(config)

    return config
