"""Tool specs, permission filtering and dispatch for the MCP server.

Every tool is a ``ToolSpec``: its MCP definition, the permissions it needs
and an async handler taking ``(runtime, args)``. ``ToolRegistry`` keeps the
specs an operator's permissions file allows and turns handler failures
into ``CallToolResult`` errors.

Permissions: ``NOTE_VIEW`` (read the local store), ``NOTE_EDIT`` (change
it) and ``NOTE_SYNC`` (talk to the notes service).
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import mcp.types as types

from ...core.errors import NotesClientError
from ...sync.store import StoreError

if TYPE_CHECKING:
    from ..lifespan import NotesRuntime

logger = logging.getLogger(__name__)

NOTE_VIEW = "NOTE_VIEW"
NOTE_EDIT = "NOTE_EDIT"
NOTE_SYNC = "NOTE_SYNC"

KNOWN_PERMISSIONS = frozenset({NOTE_VIEW, NOTE_EDIT, NOTE_SYNC})

Handler = Callable[["NotesRuntime", dict], Awaitable[types.CallToolResult]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """A tool definition plus what it needs to run.

    An empty ``permissions`` set means the tool is always listed.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: Handler

    def allowed_by(self, granted: frozenset[str] | None) -> bool:
        if granted is None or not self.permissions:
            return True
        return self.permissions <= granted


class ToolRegistry:
    """The specs visible to this server, keyed by tool name.

    With ``allowed_permissions=None`` every spec is kept; otherwise a spec
    is kept only if all of its permissions are granted.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {
            spec.tool.name: spec
            for spec in specs
            if spec.allowed_by(allowed_permissions)
        }

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        runtime: NotesRuntime,
    ) -> types.CallToolResult:
        """Run the handler for *name* and map its failures to error results.

        Service errors, store errors and ``ValueError`` (bad arguments)
        become structured errors with a suggested action. Anything else is
        logged with its traceback and reported as ``server_error``.

        Raises:
            ValueError: If *name* is unknown or filtered out.
        """
        from .errors import build_error_response, translate_client_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        try:
            return await spec.handler(runtime, arguments or {})
        except NotesClientError as e:
            logger.warning("Notes service error in %s: %s", name, e)
            return translate_client_error(e)
        except StoreError as e:
            logger.error("Local store error in %s: %s", name, e)
            return build_error_response(
                "store_error",
                str(e),
                "Check that the local store file is readable and writable.",
            )
        except ValueError as e:
            return build_error_response(
                "validation_error", str(e), "Check parameter values and retry."
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error", str(e), "Retry later or check the server log."
            )


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Read granted permissions from a text file.

    One name per line; ``#`` starts a comment and blank lines are skipped.
    Names must be one of ``KNOWN_PERMISSIONS``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: On an unknown permission, or when nothing is granted.
    """
    path = Path(path)
    granted: set[str] = set()
    for line_num, line in enumerate(path.read_text().splitlines(), 1):
        name = line.split("#", 1)[0].strip()
        if not name:
            continue
        if name not in KNOWN_PERMISSIONS:
            raise ValueError(
                f"Unknown permission '{name}' at line {line_num} in {path}. "
                f"Expected one of: {', '.join(sorted(KNOWN_PERMISSIONS))}."
            )
        granted.add(name)
    if not granted:
        raise ValueError(f"No permissions granted in {path}.")
    return frozenset(granted)
