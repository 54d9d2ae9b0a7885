"""MCP tool handlers for the notes server.

This package contains the MCP tool implementations: local note editing
(``notes``) and synchronization (``sync``), dispatched through a
permission-filtering ``ToolRegistry`` with structured error responses.
"""

from .errors import build_error_response
from .notes import NOTES_SPECS, NOTES_TOOLS
from .registry import (
    NOTE_EDIT,
    NOTE_SYNC,
    NOTE_VIEW,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)
from .sync import SYNC_SPECS, SYNC_TOOLS

ALL_SPECS: list[ToolSpec] = NOTES_SPECS + SYNC_SPECS

__all__ = [
    "build_error_response",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    "NOTE_EDIT",
    "NOTE_SYNC",
    "NOTE_VIEW",
    # Spec lists
    "ALL_SPECS",
    "NOTES_SPECS",
    "SYNC_SPECS",
    # Tool lists
    "NOTES_TOOLS",
    "SYNC_TOOLS",
]
