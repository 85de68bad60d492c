"""Logging setup and startup banner for the inbox server.

File logs are one JSON object per line. Records logged with
``extra={"inbox_id": ...}`` (or any other name in INBOX_FIELDS) carry
that field through to the file, so a session can be followed by id.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from logging.handlers import RotatingFileHandler
from pathlib import Path

from tempinbox import conventions
from tempinbox.schema import TempInboxConfig

logger = logging.getLogger(__name__)

# Context a caller may attach to a record through `extra=`.
INBOX_FIELDS = ("inbox_id", "address", "message_id", "status")

LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3

# Marks handlers installed here so a second setup replaces them.
_OWNED = "_tempinbox_handler"


def log_file_path() -> Path:
    """Location of the JSON log under the tempinbox home directory."""
    return Path(conventions.TEMPINBOX_HOME).expanduser() / conventions.LOG_FILENAME


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with any inbox context attached."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=UTC)
        entry: dict[str, object] = {
            "ts": stamp.isoformat(timespec="milliseconds"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for field in INBOX_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = str(value)
        if record.exc_info and record.exc_info[0] is not None:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        logger.warning("Unknown log level %r, using INFO", level)
        return logging.INFO
    return resolved


def _own(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _OWNED, True)
    return handler


def setup_logging(
    log_file: Path | None = None,
    level: int | str = logging.INFO,
    console: bool = True,
) -> Path:
    """Route root logging to the JSON file and, optionally, stderr.

    Handlers from an earlier call are closed and replaced. Returns the
    path of the log file in use.
    """
    path = log_file or log_file_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    for handler in [h for h in root.handlers if getattr(h, _OWNED, False)]:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(_resolve_level(level))

    if console:
        stream = _own(logging.StreamHandler())
        stream.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s", "%H:%M:%S")
        )
        root.addHandler(stream)

    rotating = _own(
        RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS)
    )
    rotating.setFormatter(JSONFormatter())
    root.addHandler(rotating)
    return path


def log_startup_info(
    *,
    host: str,
    port: int,
    config: TempInboxConfig,
    logger: logging.Logger,
) -> None:
    """Log version, bind address and backend at startup."""
    try:
        version = pkg_version("tempinbox")
    except PackageNotFoundError:
        version = "unknown"

    backend = "in-memory simulator" if config.simulator_mode else config.api_base_url
    logger.info("tempinbox %s on http://%s:%d (backend: %s)", version, host, port, backend)
    logger.info(
        "Inbox lifetime %ds, auto-create %s, poll every %ds",
        config.session_lifetime_seconds,
        "on" if config.auto_create else "off",
        config.poll_interval_seconds,
    )
