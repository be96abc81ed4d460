"""Opt-in log output for the ``pterodactyl`` logger hierarchy.

Every module logs through ``logging.getLogger(__name__)`` and the package adds
no handlers on import. :func:`setup_logging` attaches one stderr handler,
reading ``PTERODACTYL_LOG_LEVEL`` and ``PTERODACTYL_LOG_FORMAT`` (``text`` or
``json``) when no explicit values are passed.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from pterodactyl.config import Settings, settings as default_settings
from pterodactyl.services.request_context import get_request_id

SDK_LOGGER = "pterodactyl"

# Names a blank record already carries; anything else came in through ``extra=``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", (), None))
) | {"message", "asctime"}


class _CallFormatter(logging.Formatter):
    """Shared plumbing: UTC timestamps and the current call id."""

    def _prepare(self, record: logging.LogRecord) -> tuple[datetime, str, str]:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        error = ""
        if record.exc_info and record.exc_info[0] is not None:
            error = self.formatException(record.exc_info)
        return created, record.getMessage(), error


class JSONFormatter(_CallFormatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        created, message, error = self._prepare(record)
        payload = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
        }
        call_id = get_request_id()
        if call_id:
            payload["request_id"] = call_id
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        )
        if error:
            payload["exception"] = error
        return json.dumps(payload, default=str)


class TextFormatter(_CallFormatter):
    def format(self, record: logging.LogRecord) -> str:
        created, message, error = self._prepare(record)
        call_id = get_request_id()
        tag = f" [{call_id[:12]}]" if call_id else ""
        line = "{} {:<8}{} {}: {}".format(
            created.strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname,
            tag,
            record.name,
            message,
        )
        return f"{line}\n{error}" if error else line


def setup_logging(
    log_level: str | None = None,
    log_format: str | None = None,
    logger_name: str | None = SDK_LOGGER,
    *,
    config: Settings | None = None,
) -> logging.Logger:
    """Route *logger_name* to stderr, replacing any handlers set earlier.

    Unset *log_level*/*log_format* fall back to ``config`` (the module-level
    settings by default). Pass ``logger_name=None`` to configure the root
    logger instead of the SDK's own.
    """
    config = config or default_settings
    level_name = (log_level or config.log_level).upper()
    use_json = (log_format or config.log_format).lower() == "json"

    logger = logging.getLogger(logger_name)
    level = logging.getLevelName(level_name)
    logger.setLevel(level if isinstance(level, int) else logging.INFO)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if use_json else TextFormatter())
    logger.addHandler(handler)
    return logger
