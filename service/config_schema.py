# service/config_schema.py
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any

import pytz
import yaml
from apscheduler.triggers.cron import CronTrigger

from modules.job_tracker.lib.config import ConfigError, Settings

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULE = "0 9 * * *"

_TRIGGER_FIELDS = ("cron", "interval", "daily_time")
_INTERVAL_FIELDS = ("weeks", "days", "hours", "minutes", "seconds")
_DAILY_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

__all__ = ["DEFAULT_SCHEDULE", "ConfigError", "load_config", "tracker_settings", "validate"]


@dataclass
class _LoadResult:
    cfg: dict[str, Any]
    source: str


def load_config(path: str | None = None) -> dict[str, Any]:
    """
    Load the service configuration.

    Resolution order:
      1) Explicit `path` argument (if provided)
      2) os.environ['CONFIG_PATH'] (if set)
      3) Internal default (daily 09:00 schedule, empty tracker block; the
         tracker then runs entirely off env vars and built-in sources)

    Returns:
        dict with "timezone", "schedule", "run_on_start" and "tracker" filled in.
    """
    resolved_path = path or os.environ.get("CONFIG_PATH")
    if not resolved_path:
        logger.info("CONFIG_PATH not provided; using default config.")
        cfg: dict[str, Any] = {}
    else:
        cfg = _read_any(resolved_path).cfg
        if not isinstance(cfg, dict):
            raise ConfigError(f"Top-level config in {resolved_path} must be an object.")

    _apply_top_level_defaults(cfg)
    return cfg


def validate(cfg: dict[str, Any]) -> None:
    """
    Validate the configuration. Raise ConfigError on any problem.
    No prints, no sys.exit().
    """
    if not isinstance(cfg, dict):
        raise ConfigError("Config must be a dict.")

    tz = cfg.get("timezone")
    if tz is not None:
        if not isinstance(tz, str):
            raise ConfigError("'timezone' must be a string if provided.")
        try:
            pytz.timezone(tz)
        except pytz.UnknownTimeZoneError as e:
            raise ConfigError(f"Unknown timezone {tz!r}.") from e

    validate_schedule(cfg.get("schedule", DEFAULT_SCHEDULE))

    _to_bool(cfg.get("run_on_start", False), field="run_on_start")
    if "misfire_grace_time" in cfg:
        _to_int(cfg["misfire_grace_time"], field="misfire_grace_time", allow_zero=True)

    tracker = cfg.get("tracker", {})
    if not isinstance(tracker, dict):
        raise ConfigError("'tracker' must be an object if provided.")
    # Settings does the field-level checks (sources, notifier, recipient, ...)
    Settings.from_env_and_kwargs(tracker)


def validate_schedule(spec: Any) -> None:
    """
    A schedule is either a crontab string ("0 9 * * *") or an object with
    exactly one of: cron (string|object), interval (object), daily_time
    ("HH:MM", a list of them, or {"time": ..., "day_of_week": ...}).
    """
    if isinstance(spec, str):
        if len(spec.split()) != 5:
            raise ConfigError(f"'schedule' crontab must have 5 fields (got {spec!r}).")
        try:
            CronTrigger.from_crontab(spec, timezone=pytz.utc)
        except ValueError as e:
            raise ConfigError(f"'schedule' crontab {spec!r} is invalid: {e}") from e
        return
    if not isinstance(spec, dict):
        raise ConfigError("'schedule' must be a crontab string or an object.")

    present = [k for k in _TRIGGER_FIELDS if k in spec]
    if len(present) != 1:
        raise ConfigError(f"'schedule': exactly one trigger required among {', '.join(_TRIGGER_FIELDS)}.")

    key = present[0]
    val = spec[key]
    if key == "cron":
        if isinstance(val, str):
            validate_schedule(val)
        elif not isinstance(val, dict) or not val:
            raise ConfigError("'schedule.cron' must be a crontab string or a non-empty object.")
        else:
            try:
                CronTrigger(**val, timezone=pytz.utc)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"'schedule.cron' is invalid: {e}") from e
    elif key == "interval":
        if not isinstance(val, dict) or not val:
            raise ConfigError("'schedule.interval' must be a non-empty object of time kwargs.")
        for k, v in val.items():
            if k not in _INTERVAL_FIELDS:
                raise ConfigError(f"'schedule.interval': unknown field {k!r}.")
            _to_int(v, field=f"schedule.interval.{k}", allow_zero=True)
        if not any(int(v) for v in val.values()):
            raise ConfigError("'schedule.interval' must add up to more than zero.")
    else:
        times = val.get("time") if isinstance(val, dict) else val
        if isinstance(times, str):
            times = [times]
        if not isinstance(times, list) or not times:
            raise ConfigError("'schedule.daily_time' must be 'HH:MM', a list of them, or an object with 'time'.")
        for t in times:
            _validate_daily_time(t)


def tracker_settings(cfg: dict[str, Any], **overrides: Any) -> Settings:
    """Typed tracker Settings from the `tracker` block, with CLI overrides on top."""
    tracker = dict(cfg.get("tracker") or {})
    tracker.update({k: v for k, v in overrides.items() if v is not None})
    return Settings.from_env_and_kwargs(tracker)


def _apply_top_level_defaults(cfg: dict[str, Any]) -> None:
    tz = cfg.get("timezone")
    if not isinstance(tz, str) or not tz.strip():
        cfg["timezone"] = os.environ.get("TZ", "UTC")

    if cfg.get("schedule") in (None, ""):
        cfg["schedule"] = DEFAULT_SCHEDULE

    if "run_on_start" in cfg:
        cfg["run_on_start"] = _to_bool(cfg["run_on_start"], field="run_on_start")
    else:
        cfg["run_on_start"] = False

    if "misfire_grace_time" in cfg:
        cfg["misfire_grace_time"] = _to_int(cfg["misfire_grace_time"], field="misfire_grace_time", allow_zero=True)

    if cfg.get("tracker") is None:
        cfg["tracker"] = {}


def _validate_daily_time(dt: Any) -> None:
    if not isinstance(dt, str):
        raise ConfigError("'schedule.daily_time' must be a string like 'HH:MM'.")
    m = _DAILY_TIME_RE.match(dt.strip())
    if not m:
        raise ConfigError("'schedule.daily_time' must match HH:MM or HH:MM:SS (24h).")
    hour, minute, second = int(m.group(1)), int(m.group(2)), int(m.group(3) or 0)
    if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        raise ConfigError("'schedule.daily_time' out of range (00:00..23:59:59).")


def _to_bool(value: Any, *, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v in {"1", "true", "yes", "on"}:
            return True
        if v in {"0", "false", "no", "off"}:
            return False
    raise ConfigError(f"'{field}' must be a boolean (or boolean-like string).")


def _to_int(value: Any, *, field: str, allow_zero: bool) -> int:
    try:
        iv = int(value)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"'{field}' must be an integer.") from err
    if iv < 0 or (iv == 0 and not allow_zero):
        raise ConfigError(f"'{field}' must be >= {'0' if allow_zero else '1'} (got {iv}).")
    return iv


def _read_any(path: str) -> _LoadResult:
    lower = path.lower()
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {path}: {e}") from e

    if lower.endswith(".yml") or lower.endswith(".yaml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Top-level YAML must be a mapping/object.")
        return _LoadResult(cfg=data, source=path)

    # JSON for .json and for unknown extensions
    try:
        return _LoadResult(cfg=json.loads(text), source=path)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
