# service/scheduler.py
from __future__ import annotations

import enum
import logging
import threading
import time as _time
from collections.abc import Callable, Iterable
from datetime import datetime, time, timedelta
from typing import Any

import pytz
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from modules.job_tracker.lib.models import RunSummary

from . import config_schema
from .logging_utils import write_activity_log

LOG = logging.getLogger(__name__)

JOB_ID = "job_tracker"
STARTUP_JOB_ID = "job_tracker_startup"


# ---- Errors / states --------------------------------------------------------


class RunInProgressError(RuntimeError):
    """A run was requested while another one is still executing."""


class SchedulerStateError(RuntimeError):
    """start() on a running scheduler."""


class SchedulerState(str, enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


# ---- Public controller ------------------------------------------------------


class TrackerScheduler:
    """
    Owns the APScheduler instance and the run guard for the job tracker.

    Overlapping runs are rejected, never queued: run_now() raises
    RunInProgressError while a run is executing, and a scheduled tick that
    lands during a run is logged as skipped. APScheduler's max_instances=1
    and coalesce=True keep its own executor from stacking ticks as well.
    """

    def __init__(
        self,
        run_fn: Callable[[], RunSummary],
        *,
        timezone: str | None = None,
        misfire_grace_time: int | None = None,
    ) -> None:
        self._run_fn = run_fn
        self._tz = _resolve_timezone(timezone)
        self._misfire_grace_time = misfire_grace_time
        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._scheduler: BackgroundScheduler | None = None
        self._state = SchedulerState.STOPPED
        self._stopped_evt = threading.Event()
        self.last_summary: RunSummary | None = None

    # ---- properties -------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._run_lock.locked()

    @property
    def timezone(self):
        return self._tz

    # ---- runs -------------------------------------------------------------

    def run_now(self, trigger_type: str = "manual") -> RunSummary:
        """
        Execute one run on the calling thread and return its summary.
        Raises RunInProgressError immediately if a run is already executing.
        """
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError("a tracker run is already in progress")
        try:
            return self._execute(trigger_type)
        finally:
            self._run_lock.release()

    def _execute(self, trigger_type: str) -> RunSummary:
        started = _time.monotonic()
        LOG.info("Run starting (trigger=%s)", trigger_type)
        try:
            summary = self._run_fn()
        except Exception:
            LOG.exception("Run raised an exception (trigger=%s).", trigger_type)
            _write_activity(trigger_type, status="exception", duration_s=_time.monotonic() - started)
            raise

        duration = _time.monotonic() - started
        LOG.info(
            "Run finished in %.3fs: status=%s sources=%d seen=%d new=%d sent=%d",
            duration,
            summary.status.value,
            summary.sources_checked,
            summary.postings_seen,
            summary.new_postings,
            summary.notifications_sent,
        )
        _write_activity(trigger_type, status=summary.status.value, duration_s=duration)
        self.last_summary = summary
        return summary

    def _tick(self, trigger_type: str = "scheduled") -> None:
        """APScheduler entry point; never raises into the executor."""
        try:
            self.run_now(trigger_type)
        except RunInProgressError:
            LOG.warning("Skipping %s run: previous run still in progress.", trigger_type)
            _write_activity(trigger_type, status="skipped_busy", duration_s=0.0)
        except Exception:
            # Already logged by _execute; keep the scheduler alive.
            pass

    # ---- lifecycle --------------------------------------------------------

    def start(self, schedule_spec: Any = config_schema.DEFAULT_SCHEDULE, *, run_on_start: bool = False) -> None:
        """
        Build the trigger and start the background scheduler.
        Raises SchedulerStateError if already running, ValueError for a bad spec.
        """
        with self._state_lock:
            if self._state is SchedulerState.RUNNING:
                raise SchedulerStateError("scheduler is already running")

            trigger = _build_trigger(schedule_spec, self._tz)
            scheduler = BackgroundScheduler(
                timezone=self._tz,
                job_defaults={"coalesce": True, "max_instances": 1},
                executors={"default": ThreadPoolExecutor(2)},
                jobstores={"default": MemoryJobStore()},
            )
            scheduler.add_job(
                func=self._tick,
                trigger=trigger,
                id=JOB_ID,
                misfire_grace_time=self._misfire_grace_time,
                replace_existing=True,
            )
            if run_on_start:
                # No trigger: APScheduler runs it once, right away.
                scheduler.add_job(func=self._tick, args=("startup",), id=STARTUP_JOB_ID)

            scheduler.start()
            self._scheduler = scheduler
            self._stopped_evt.clear()
            self._state = SchedulerState.RUNNING

        LOG.info("Scheduler started (trigger=%s, next_run_time=%s)", trigger, self.next_run_time())

    def stop(self) -> None:
        """Shut down the scheduler. Idempotent; an in-flight run is allowed to finish."""
        with self._state_lock:
            if self._scheduler is not None and self._scheduler.running:
                LOG.info("Shutting down scheduler...")
                self._scheduler.shutdown(wait=False)
            self._scheduler = None
            self._state = SchedulerState.STOPPED
            self._stopped_evt.set()
        LOG.info("Scheduler shut down complete.")

    def join(self, timeout: float | None = None) -> bool:
        """
        Block until stop() has been called (or timeout).
        Returns True if stopped before timeout, else False.
        """
        return self._stopped_evt.wait(timeout=timeout)

    def next_run_time(self) -> datetime | None:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(JOB_ID)
        return getattr(job, "next_run_time", None) if job else None

    def get_job_ids(self) -> Iterable[str]:
        if self._scheduler is None:
            return []
        return (job.id for job in self._scheduler.get_jobs())


# ---- Module API -------------------------------------------------------------


def start(config_path: str | None = None, *, dry_run: bool = False) -> TrackerScheduler:
    """
    Load + validate configuration, wire the tracker, and start the scheduler.
    Returns the running TrackerScheduler (stop()/join()/run_now()).
    """
    from modules.job_tracker.main import build_orchestrator

    cfg = config_schema.load_config(config_path)
    config_schema.validate(cfg)
    settings = config_schema.tracker_settings(cfg, dry_run=dry_run or None)
    orchestrator = build_orchestrator(settings)

    controller = TrackerScheduler(
        orchestrator.run,
        timezone=cfg.get("timezone"),
        misfire_grace_time=cfg.get("misfire_grace_time"),
    )
    controller.start(cfg.get("schedule", config_schema.DEFAULT_SCHEDULE), run_on_start=cfg.get("run_on_start", False))
    return controller


# ---- Helpers ----------------------------------------------------------------


def _preview_trigger(trigger, tz, count: int = 6, start=None):
    """
    Return next `count` fire times for visibility in logs/prints.
    Deterministic: we seed previous_fire_time = now = `start` (or "now" in tz),
    then advance `now` by 1µs after each hit so the next lookup moves forward.
    """
    now = start or datetime.now(tz=tz)
    prev = now
    times = []
    for _ in range(count):
        nxt = trigger.get_next_fire_time(prev, now)
        if nxt is None:
            break
        times.append(nxt)
        prev = nxt
        now = nxt + timedelta(microseconds=1)
    return times


def _resolve_timezone(tz_name: str | None):
    """
    APScheduler 3.x expects a pytz timezone. Unknown/missing names fall back to UTC.
    """
    if not tz_name:
        return pytz.UTC
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        LOG.warning("Falling back to UTC timezone (invalid tz '%s')", tz_name)
        return pytz.UTC


def _build_trigger(spec: Any, tz: Any) -> Any:
    """
    Build an APScheduler trigger from a schedule spec.

    Supported shapes:
      "0 9 * * *"                                      # crontab string
      {"cron":     "*/15 * * * *"}                     # same, nested
      {"cron":     {second?, minute?, hour?, day?, day_of_week?, month?, jitter?}}
      {"interval": {weeks|days|hours|minutes|seconds, jitter?}}
      {"daily_time": "HH:MM[:SS]" | ["..."] | {"time": ..., "day_of_week"?: "..."}}
                                                        # OrTrigger of exact CronTriggers

    Every trigger runs in the scheduler timezone `tz` (name or tzinfo).
    Raises ValueError for anything else.
    """
    tzinfo = _resolve_timezone(tz) if isinstance(tz, str) or tz is None else tz

    if isinstance(spec, str):
        spec = {"cron": spec}
    if not isinstance(spec, dict):
        raise ValueError("schedule must be a crontab string or an object")

    present = [k for k in ("interval", "cron", "daily_time") if spec.get(k) is not None]
    if len(present) != 1:
        raise ValueError("exactly one of {'interval','cron','daily_time'} must be provided")
    kind = present[0]

    # ---------- INTERVAL ----------
    if kind == "interval":
        ispec = spec["interval"]
        if not isinstance(ispec, dict):
            raise ValueError("interval must be an object with time fields")

        allowed = {"weeks", "days", "hours", "minutes", "seconds", "jitter"}
        unknown = set(ispec.keys()) - allowed
        if unknown:
            raise ValueError(f"interval has unknown field(s): {sorted(unknown)}")

        def _as_int_ge0(name: str) -> int:
            if name not in ispec:
                return 0
            try:
                v = int(ispec[name])
            except (TypeError, ValueError) as err:
                raise ValueError(f"interval.{name} must be an integer") from err
            if v < 0:
                raise ValueError(f"interval.{name} must be >= 0")
            return v

        kwargs = {k: _as_int_ge0(k) for k in ("weeks", "days", "hours", "minutes", "seconds")}
        if sum(kwargs.values()) == 0:
            raise ValueError("interval must be greater than 0 (provide at least one nonzero time field)")
        kwargs = {k: v for k, v in kwargs.items() if v}
        jitter = _as_int_ge0("jitter")
        if jitter:
            kwargs["jitter"] = jitter
        return IntervalTrigger(timezone=tzinfo, **kwargs)

    # ---------- CRON ----------
    if kind == "cron":
        cron_spec = spec["cron"]
        if isinstance(cron_spec, str):
            fields = cron_spec.strip().split()
            if len(fields) != 5:
                raise ValueError(f"cron string must have 5 fields (got {len(fields)}): {cron_spec!r}")
            return CronTrigger.from_crontab(cron_spec, timezone=tzinfo)
        if isinstance(cron_spec, dict):
            allowed = {"second", "minute", "hour", "day", "day_of_week", "month", "jitter"}
            unknown = set(cron_spec.keys()) - allowed
            if unknown:
                raise ValueError(f"cron has unknown field(s): {sorted(unknown)}")
            return CronTrigger(
                second=cron_spec.get("second", 0),
                minute=cron_spec.get("minute", 0),
                hour=cron_spec.get("hour", 0),
                day=cron_spec.get("day"),
                day_of_week=cron_spec.get("day_of_week"),
                month=cron_spec.get("month"),
                jitter=cron_spec.get("jitter"),
                timezone=tzinfo,
            )
        raise ValueError("cron must be a crontab string or an object")

    # ---------- DAILY TIME ----------
    dtdef = spec["daily_time"]
    if isinstance(dtdef, (str, list)):
        dtdef = {"time": dtdef}
    if not isinstance(dtdef, dict):
        raise ValueError("daily_time must be 'HH:MM', a list of them, or an object")

    unknown = set(dtdef.keys()) - {"time", "day_of_week"}
    if unknown:
        raise ValueError(f"daily_time has unknown field(s): {sorted(unknown)}")

    def _parse_time(s: str) -> tuple[int, int, int]:
        parts = s.split(":")
        if len(parts) not in (2, 3):
            raise ValueError(f"daily_time.time must be 'HH:MM' or 'HH:MM:SS', got {s!r}")
        try:
            hh, mm = int(parts[0]), int(parts[1])
            ss = int(parts[2]) if len(parts) == 3 else 0
        except ValueError as err:
            raise ValueError(f"daily_time.time must contain integers: {s!r}") from err
        time(hh, mm, ss)  # validates ranges
        return hh, mm, ss

    times = dtdef.get("time")
    if not times:
        raise ValueError("daily_time requires 'time'")
    if isinstance(times, str):
        times = [times]

    # One CronTrigger per exact time; a single cron with hour/minute lists
    # would fire on the cross product.
    per_time = [
        CronTrigger(second=s, minute=m, hour=h, day_of_week=dtdef.get("day_of_week"), timezone=tzinfo)
        for h, m, s in sorted({_parse_time(str(t)) for t in times})
    ]
    return per_time[0] if len(per_time) == 1 else OrTrigger(per_time)


def _write_activity(trigger_type: str, status: str, duration_s: float) -> None:
    """Best-effort activity record per run attempt; non-fatal on errors."""
    try:
        write_activity_log({
            "component": "scheduler",
            "op": "tracker_run",
            "trigger": trigger_type,
            "status": status,
            "duration_ms": int(duration_s * 1000),
        })
    except Exception:
        LOG.debug("write_activity_log failed for trigger=%s", trigger_type, exc_info=True)
