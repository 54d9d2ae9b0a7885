import json
import logging
import os
import sys

DEFAULT_MCP_LOG_FILE = "/tmp/notes-mcp-server.log"

TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# ``extra={...}`` keys copied into JSON log records when present.
CONTEXT_FIELDS = ("note_id", "remote_id", "action", "duration_ms")


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured output.

    Produces one JSON object per log record with fields ts, level, logger
    and msg, plus any of ``CONTEXT_FIELDS`` passed through ``extra``.
    Exception info is included as an "exc" field when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _make_formatter(debug_format: str) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=DATE_FORMAT)
    return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
) -> None:
    """
    Configure logging based on execution mode.

    Args:
        mode: "mcp" logs to a file only (stdout carries the protocol),
            "cli" logs to stderr.
        debug: If True, overrides LOG_LEVEL to DEBUG.
        log_file: Log file path (overrides LOG_FILE env var). In CLI mode
            it adds a file handler next to stderr.
        debug_format: "text" (default) or "json".

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Default: WARNING for MCP mode, INFO for CLI mode.
        LOG_FILE: Log file path for MCP mode.
                  Default: /tmp/notes-mcp-server.log
    """
    default_level = "WARNING" if mode == "mcp" else "INFO"
    env_level = os.getenv("LOG_LEVEL", default_level).upper()

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, env_level, logging.INFO)

    formatter = _make_formatter(debug_format)
    handlers: list[logging.Handler] = []

    if mode == "mcp":
        final_log_file = log_file or os.getenv(
            "LOG_FILE", DEFAULT_MCP_LOG_FILE
        )
        file_handler = logging.FileHandler(final_log_file, mode="a")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        handlers.append(stderr_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers)

    # Silence HTTP client chatter unless DEBUG
    if log_level != logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("requests").setLevel(logging.WARNING)


def apply_logging_settings(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
) -> None:
    """
    Apply the ``logging`` section of the config file to the handlers
    installed by ``setup_logging``.

    The config file is read after logging is set up, so its settings are
    applied on top: ``LOG_LEVEL`` and debug mode still win over *level*.

    Args:
        level: Level name from the config file.
        log_format: "text" or "json".
        log_file: Extra log file to write to, if any.
    """
    root = logging.getLogger()
    if not os.getenv("LOG_LEVEL") and root.level != logging.DEBUG:
        root.setLevel(getattr(logging, level.upper(), logging.INFO))

    formatter = _make_formatter(log_format)
    for handler in root.handlers:
        handler.setFormatter(formatter)

    if log_file:
        target = os.path.abspath(log_file)
        already = any(
            isinstance(h, logging.FileHandler) and h.baseFilename == target
            for h in root.handlers
        )
        if not already:
            file_handler = logging.FileHandler(target, mode="a")
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
