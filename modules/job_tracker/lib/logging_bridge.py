from __future__ import annotations

import logging
from typing import Any

# Prefer the service JSONL writer; plain stdlib logging when the service
# package isn't importable (e.g. the lib is used on its own).
try:
    from service import logging_utils as _backend
except ImportError:  # pragma: no cover
    _backend = None

_ACTIVITY_LOG = logging.getLogger("job_tracker.activity")
_ERROR_LOG = logging.getLogger("job_tracker.error")


def activity(record: dict[str, Any]) -> None:
    """
    Write a structured activity record to the JSONL activity log.
    Falls back to stdlib logging if the writer fails.
    """
    payload = _redact(record)
    _ACTIVITY_LOG.debug("%s", payload)
    if _backend is not None:
        try:
            _backend.write_activity_log(record)
            return
        except Exception:
            _ACTIVITY_LOG.warning("activity log write failed", exc_info=True)
    _ACTIVITY_LOG.info("%s", payload)


def error(record: dict[str, Any]) -> None:
    """
    Write a structured error record to the JSONL error log and mirror it to
    stdlib logging at ERROR so it always reaches the console.
    """
    _ERROR_LOG.error("%s", _redact(record))
    if _backend is not None:
        try:
            _backend.write_error_log(record)
        except Exception:
            _ERROR_LOG.warning("error log write failed", exc_info=True)


def _redact(record: dict[str, Any]) -> dict[str, Any]:
    if _backend is not None:
        return _backend.redact(record)
    return dict(record)
