"""
Hierarchical YAML configuration loader for notes_mcp_server.

Finds config files by convention, supports ``!include`` and ``${VAR}``
interpolation, and merges files section by section so that a project
file can override a single key (for example ``remote.url``) while keeping
the rest of a global section (for example ``remote.token``).

Usage:
    from notes_mcp_server.config_loader import load_hierarchical_config

    config = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "NOTES_MCP_CONFIG"
PROJECT_DIR_NAME = ".notes_mcp"

# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} or ${VAR:-default}
_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    no default is given. Unterminated ``${`` sequences are left as-is.
    """

    def _expand(match: re.Match) -> str:
        env_val = os.environ.get(match.group("name"))
        if env_val:
            return env_val
        return match.group("default") or ""

    return _ENV_REF.sub(_expand, value)


def _interpolate_recursive(obj: Any) -> Any:
    """Apply ``interpolate_env_vars`` to every string inside *obj*."""
    match obj:
        case str():
            return interpolate_env_vars(obj)
        case dict():
            return {k: _interpolate_recursive(v) for k, v in obj.items()}
        case list():
            return [_interpolate_recursive(item) for item in obj]
        case _:
            return obj


# ---------------------------------------------------------------------------
# YAML loading with !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader subclass that understands ``!include <path>``.

    Registered on a subclass so the global ``yaml.SafeLoader`` is left
    untouched. Each loader carries the chain of files being loaded so
    include cycles are reported instead of recursing forever.
    """

    include_chain: tuple[Path, ...] = ()


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    """Load the YAML file named by an ``!include`` node."""
    target = Path(loader.construct_scalar(node)).expanduser()
    if not target.is_absolute():
        # Relative to the including file
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    if target in loader.include_chain:
        chain = " -> ".join(
            str(p) for p in (*loader.include_chain, target)
        )
        raise ValueError(f"Circular include detected: {chain}")

    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} "
            f"(referenced from {Path(loader.name).resolve()})"
        )

    return load_yaml_file(target, _chain=(*loader.include_chain, target))


ConfigLoader.add_constructor("!include", _include_constructor)


def load_yaml_file(path: Path, *, _chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, resolving ``!include`` directives."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader.include_chain = _chain or (path,)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``NOTES_MCP_CONFIG`` env var (explicit single path)
        2. ``.notes_mcp/config.yml`` in CWD (project-level)
        3. ``.notes_mcp/config.yaml`` in CWD
        4. ``~/.config/notes_mcp/config.yml`` (XDG global)
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    project_dir = Path.cwd() / PROJECT_DIR_NAME
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")
    candidates.append(Path.home() / ".config" / "notes_mcp" / "config.yml")

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# notes-mcp-server configuration
#
# Remote settings can also come from environment variables:
#   NOTES_API_URL, NOTES_API_TOKEN, NOTES_STORE_PATH, NOTES_TIMEOUT
#
# remote:
#   url: https://notes.example.com/api
#   token: ${NOTES_API_TOKEN}
#   timeout: 30
#   max_parallel_requests: 4
#
# store:
#   path: .notes_mcp/notes.json
#
# sync:
#   on_startup: true
#   auto_sync_interval: 300
#
# logging:
#   level: INFO
#   file: null
#   format: text
"""


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a commented starter file
    first if none exists.

    Args:
        target: Where to create the starter file. Defaults to
            ``CWD / .notes_mcp / config.yml``.

    Returns:
        Path to the existing or newly created config file.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or Path.cwd() / PROJECT_DIR_NAME / "config.yml"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge_sections(
    base: dict[str, Any], override: dict[str, Any]
) -> dict[str, Any]:
    """Merge *override* into *base* one level deep.

    Sections that are mappings on both sides are merged key by key; any
    other value in *override* replaces the one in *base*.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = {**current, **value}
        else:
            merged[key] = value
    return merged


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are applied from lowest to highest precedence with
    ``merge_sections``; env var interpolation runs after the merge.

    Returns an empty dict when no config files exist (zero-config).
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using zero-config defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = load_yaml_file(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged = merge_sections(merged, data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
