import logging
import threading
from datetime import datetime
from typing import Any

import requests

from ..config import Config
from ..sync.models import ServerNote, isoformat, utc_now
from .errors import (
    NoteNotFoundError,
    NoteRejectedError,
    NotesClientError,
    RemoteServerError,
    RemoteUnavailableError,
)

logger = logging.getLogger(__name__)

# Connect timeout is capped; the configured timeout bounds the read.
CONNECT_TIMEOUT = 10.0


class NotesClient:
    """Blocking HTTP/JSON client for the remote notes service.

    One ``requests.Session`` per thread, so the client can be shared by
    concurrent ``asyncio.to_thread`` workers.
    """

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.base_url = config.api_url.rstrip("/")

    @property
    def session(self) -> requests.Session:
        """Session of the current thread."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.token}",
                "Accept": "application/json",
            }
        )
        session.verify = not self.config.insecure
        return session

    def _timeout(self) -> tuple[float, float]:
        return (min(CONNECT_TIMEOUT, self.config.timeout), self.config.timeout)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """
        Send one request and decode the JSON response.

        Raises:
            RemoteUnavailableError: Connection failure or timeout.
            NoteNotFoundError: HTTP 404.
            NoteRejectedError: Any other HTTP 4xx.
            RemoteServerError: HTTP 5xx or an undecodable response body.
        """
        url = f"{self.base_url}{path}"
        try:
            response = self._get_session().request(
                method,
                url,
                params=params,
                json=payload,
                timeout=self._timeout(),
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise RemoteUnavailableError(
                f"{method} {url} failed: {exc}"
            ) from exc
        except requests.RequestException as exc:
            raise NotesClientError(f"{method} {url} failed: {exc}") from exc

        status = response.status_code
        if status >= 400:
            message = f"{method} {url} returned {status}: {_error_detail(response)}"
            if status == 404:
                raise NoteNotFoundError(message, status)
            if status < 500:
                raise NoteRejectedError(message, status)
            raise RemoteServerError(message, status)

        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteServerError(
                f"{method} {url} returned invalid JSON", status
            ) from exc

    def _parse_note(self, data: Any) -> ServerNote:
        try:
            return ServerNote.model_validate(data)
        except ValueError as exc:
            raise RemoteServerError(
                f"Malformed note in server response: {exc}"
            ) from exc

    def list_notes(
        self, updated_since: datetime | None = None
    ) -> list[ServerNote]:
        """
        List the caller's notes, optionally only those changed after
        *updated_since*.
        """
        params = None
        if updated_since is not None:
            params = {"updatedSince": isoformat(updated_since)}
        data = self._request("GET", "/notes", params=params)
        if isinstance(data, dict):
            data = data.get("notes", [])
        if not isinstance(data, list):
            raise RemoteServerError("Expected a list of notes from GET /notes")
        notes = [self._parse_note(item) for item in data]
        logger.debug(
            "Listed %d notes (updated_since=%s)",
            len(notes),
            params["updatedSince"] if params else None,
        )
        return notes

    def create_note(self, payload: dict[str, Any]) -> ServerNote:
        """
        Create a note and return the server version with its new id.
        """
        return self._parse_note(self._request("POST", "/notes", payload=payload))

    def update_note(
        self, note_id: str, payload: dict[str, Any]
    ) -> ServerNote:
        """
        Replace the mutable fields of an existing note.

        Raises:
            NoteNotFoundError: If the id is unknown to the caller.
        """
        return self._parse_note(
            self._request("PUT", f"/notes/{note_id}", payload=payload)
        )

    def delete_note(self, note_id: str) -> None:
        """
        Tombstone a note on the server. Deleting a missing note is a no-op.
        """
        try:
            self._request("DELETE", f"/notes/{note_id}")
        except NoteNotFoundError:
            logger.debug("Note %s already gone on server", note_id)

    def ping(self) -> bool:
        """
        Check that the remote service answers.

        Performs an empty delta listing. Authentication and other client
        errors are raised; they are configuration problems, not
        connectivity.

        Returns:
            True if the service answered, False if it is unreachable or
            failing with a 5xx.
        """
        try:
            self._request(
                "GET", "/notes", params={"updatedSince": isoformat(utc_now())}
            )
        except (RemoteUnavailableError, RemoteServerError) as exc:
            logger.info("Notes service unreachable: %s", exc)
            return False
        return True


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason or ""
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return str(body)[:200]
