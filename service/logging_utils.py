# service/logging_utils.py
from __future__ import annotations

import contextlib
import datetime as _dt
import json
import logging
import os
import socket
from collections.abc import Iterable
from typing import Any

# ---- Configuration (env-driven, read per write so tests can redirect) -------

_DEFAULT_LOG_DIR = "/app/local/logs"

# Keys/substrings to redact (case-insensitive, substring match)
_DEFAULT_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "smtp_",
    "bridge_password",
    "authorization",
    "cookie",
    "set-cookie",
}

_REDACTED = "***REDACTED***"

# Host + process metadata (fixed per-process)
_HOSTNAME = socket.gethostname()
_PID = os.getpid()

_STD_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


# ---- Public API --------------------------------------------------------------


def write_activity_log(record: dict[str, Any]) -> None:
    """
    Append one structured activity record to today's activity JSONL file.

    May raise on unrecoverable I/O/serialization errors.
    Never mutates the passed-in dict.
    """
    _write_jsonl(_log_path_for_today(_activity_prefix()), record)


def write_error_log(record: dict[str, Any]) -> None:
    """Append one structured error record, parallel to the activity log."""
    _write_jsonl(_log_path_for_today(_error_prefix()), record)


def get_activity_log_path() -> str:
    """Return the current day's activity log path (<prefix>-YYYY-MM-DD.jsonl)."""
    return _log_path_for_today(_activity_prefix())


def get_error_log_path() -> str:
    return _log_path_for_today(_error_prefix())


def redact(record: dict[str, Any], keys: set[str] | None = None) -> dict[str, Any]:
    """
    Produce a redacted deep copy of `record` by scrubbing values whose KEYS
    contain any of the substrings in `keys` (case-insensitive). Does not mutate input.
    """
    return _redact_deep(record, keys or _DEFAULT_REDACT_KEYS)


def configure_stdlib_logging(level: str | int | None = None) -> None:
    """
    Console logging for the process. Level from the argument, else LOG_LEVEL,
    else INFO. Leaves existing root handlers alone (pytest, embedding apps).
    """
    raw = level if level is not None else os.getenv("LOG_LEVEL", "INFO")
    if isinstance(raw, str):
        resolved = logging.getLevelName(raw.strip().upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO
    else:
        resolved = int(raw)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=resolved, format=_STD_FORMAT)
    else:
        root.setLevel(resolved)
    # APScheduler is chatty at INFO (one line per job execution).
    logging.getLogger("apscheduler").setLevel(max(resolved, logging.WARNING))


# ---- Internal helpers --------------------------------------------------------


def _log_dir() -> str:
    return os.getenv("LOG_DIR") or _DEFAULT_LOG_DIR


def _activity_prefix() -> str:
    return os.getenv("ACTIVITY_LOG_PREFIX", "activity")


def _error_prefix() -> str:
    return os.getenv("ERROR_LOG_PREFIX", "error")


def _max_bytes() -> int:
    # Optional size-based rotation (bytes). <=0 disables it; date rotation is
    # always on via the YYYY-MM-DD filename.
    try:
        return int(os.getenv("ACTIVITY_LOG_MAX_BYTES", "0"))
    except ValueError:
        return 0


def _log_path_for_today(prefix: str) -> str:
    today = _dt.date.today().isoformat()  # YYYY-MM-DD
    return os.path.join(_log_dir(), f"{prefix}-{today}.jsonl")


def _ensure_dir(path: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)


def _rotate_file_if_needed(path: str) -> None:
    limit = _max_bytes()
    if limit <= 0:
        return
    try:
        if os.path.getsize(path) < limit:
            return
    except FileNotFoundError:
        return
    ts = _dt.datetime.now().strftime("%Y%m%d-%H%M%S")
    with contextlib.suppress(FileNotFoundError):
        os.replace(path, f"{path}.{ts}")


def _json_dumps(obj: Any) -> str:
    # default=str keeps datetimes/enums from failing the whole record
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), default=str)


def _safe_bearer_scrub(value: str) -> str:
    """Scrub the token part of "Bearer <token>"-looking strings, keep the scheme."""
    if "bearer " in value.lower():
        try:
            scheme, _ = value.split(" ", 1)
        except ValueError:
            return _REDACTED
        return f"{scheme} {_REDACTED}"
    return value


def _key_matches(name: str, patterns: Iterable[str]) -> bool:
    n = name.lower()
    return any(pat in n for pat in patterns)


def _redact_deep(value: Any, patterns: Iterable[str]) -> Any:
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for k, v in value.items():
            if isinstance(k, str) and _key_matches(k, patterns):
                out[k] = _REDACTED
            else:
                out[k] = _redact_deep(v, patterns)
        return out
    if isinstance(value, list):
        return [_redact_deep(v, patterns) for v in value]
    if isinstance(value, tuple):
        return tuple(_redact_deep(v, patterns) for v in value)
    if isinstance(value, str):
        return _safe_bearer_scrub(value)
    return value


def _with_metadata(record: dict[str, Any]) -> dict[str, Any]:
    meta = record.get("_meta", {})
    if not isinstance(meta, dict):
        meta = {}
    out = dict(record)
    out["_meta"] = {
        **meta,
        "ts": _dt.datetime.now(_dt.timezone.utc).isoformat(),
        "host": _HOSTNAME,
        "pid": _PID,
    }
    return out


def _write_jsonl(path: str, record: dict[str, Any]) -> None:
    """
    Core writer:
      - deep redacted copy + host/pid/ts metadata
      - optional size rotation
      - one O_APPEND write per record (atomic on POSIX)
      - one retry on OSError
    """
    _ensure_dir(path)
    _rotate_file_if_needed(path)

    payload = _with_metadata(_redact_deep(record, _DEFAULT_REDACT_KEYS))
    # Serialize before touching the file so a bad record writes nothing.
    data = (_json_dumps(payload) + "\n").encode("utf-8")

    flags = os.O_CREAT | os.O_APPEND | os.O_WRONLY

    def _append_once() -> None:
        fd = os.open(path, flags, 0o644)
        try:
            os.write(fd, data)
        finally:
            os.close(fd)

    try:
        _append_once()
    except OSError:
        _ensure_dir(path)
        _rotate_file_if_needed(path)
        _append_once()
