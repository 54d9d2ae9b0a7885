"""Exception hierarchy for the remote notes service client.

Every failure raised by ``NotesClient`` is a ``NotesClientError`` so the
sync engine can isolate per-note push failures with a single ``except``
clause while still letting programming errors propagate.
"""


class NotesClientError(Exception):
    """Base class for remote notes service failures.

    Attributes:
        status_code: HTTP status code, or ``None`` for transport errors.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteUnavailableError(NotesClientError):
    """The remote service could not be reached (connection refused, DNS,
    timeout)."""


class NoteNotFoundError(NotesClientError):
    """The note id does not exist or does not belong to the caller."""


class NoteRejectedError(NotesClientError):
    """The remote service rejected the request (4xx validation error)."""


class RemoteServerError(NotesClientError):
    """The remote service failed while handling the request (5xx)."""
