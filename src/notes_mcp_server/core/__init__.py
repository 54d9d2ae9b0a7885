"""Remote notes service client shared between the sync engine and MCP tools."""

from .async_utils import run_sync
from .client import NotesClient
from .errors import (
    NoteNotFoundError,
    NoteRejectedError,
    NotesClientError,
    RemoteServerError,
    RemoteUnavailableError,
)

__all__ = [
    "NoteNotFoundError",
    "NoteRejectedError",
    "NotesClient",
    "NotesClientError",
    "RemoteServerError",
    "RemoteUnavailableError",
    "run_sync",
]
