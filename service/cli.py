# service/cli.py
"""
User-facing command-line entrypoints for the job tracker.

Subcommands
-----------
serve [--dry-run]
    - Starts the APScheduler loop via service.scheduler.start()
    - SIGUSR1 requests an immediate run (rejected while one is in progress)
    - SIGINT/SIGTERM stop the scheduler cleanly

run [--dry-run]
    - One full run right now; prints the RunSummary
    - --dry-run swaps the configured notifier for the log-only one

sources list | add NAME URL [--search-term T] [--disabled] | enable NAME | disable NAME | remove NAME
    - Manage the tracked career pages in the store

postings [--limit N] [--unnotified] / runs [--limit N] / stats
    - Read-only views of the store

validate-config [--smtp]
    - Loads/validates config and returns nonzero on error
    - --smtp also checks that the SMTP relay accepts a connection (+ login)

Exit codes: 0 ok, 1 failure (incl. invalid config), 2 config could not be
loaded, 130 interrupted.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading
import time
from collections.abc import Iterable, Sequence
from typing import Any

from modules.job_tracker.lib.config import ConfigError, Settings, parse_sources
from modules.job_tracker.lib.models import RunStatus, RunSummary
from modules.job_tracker.lib.store.base import BaseStore, StoreError
from modules.job_tracker.lib.store.sqlite import SqliteStore
from modules.job_tracker.lib.utils import to_iso
from modules.job_tracker.main import build_orchestrator
from service import config_schema as _config_schema
from service import emailer as _emailer
from service import logging_utils as L
from service import scheduler as _scheduler

LOG = logging.getLogger("service.cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_UNAVAILABLE = 2
EXIT_INTERRUPTED = 130


class _ConfigUnavailable(Exception):
    """Config file missing/unreadable/unparseable (exit 2)."""


# -------------------------- Utility / glue code ------------------------------
def _print_table(rows: Iterable[Sequence[Any]], headers: Sequence[str]) -> None:
    """Very simple N-column table printer."""
    str_rows = [[("" if c is None else str(c)) for c in r] for r in rows]
    widths = [len(h) for h in headers]
    for r in str_rows:
        widths = [max(w, len(c)) for w, c in zip(widths, r)]
    sep = "+-" + "-+-".join("-" * w for w in widths) + "-+"
    print(sep)
    print("| " + " | ".join(h.ljust(w) for h, w in zip(headers, widths)) + " |")
    print(sep)
    for r in str_rows:
        print("| " + " | ".join(c.ljust(w) for c, w in zip(r, widths)) + " |")
    print(sep)


def _load_config(path: str | None) -> dict[str, Any]:
    try:
        return _config_schema.load_config(path)
    except ConfigError as e:
        raise _ConfigUnavailable(str(e)) from e


def _load_validated(path: str | None) -> dict[str, Any]:
    cfg = _load_config(path)
    _config_schema.validate(cfg)
    return cfg


def _open_store(args: argparse.Namespace) -> BaseStore:
    """
    Store for the admin commands. Only the DB path is needed, so a config
    without a recipient is fine here.
    """
    cfg = _load_config(args.config)
    tracker = cfg.get("tracker") or {}
    path = str(tracker.get("sqlite_path") or os.getenv("JOB_TRACKER_DB") or Settings.sqlite_path)
    return SqliteStore(path)


def _print_summary(summary: RunSummary) -> None:
    print(json.dumps(summary.as_record(), indent=2))


def _guarded(fn):
    """Map the usual failure modes to exit codes and error-log records."""

    def wrapper(args: argparse.Namespace) -> int:
        try:
            return fn(args)
        except KeyboardInterrupt:
            return EXIT_INTERRUPTED
        except _ConfigUnavailable as e:
            print(f"ERROR: configuration unavailable: {e}", file=sys.stderr)
            return EXIT_CONFIG_UNAVAILABLE
        except ConfigError as e:
            print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
            return EXIT_FAILURE
        except Exception as e:
            LOG.exception("Command %s failed", args.cmd)
            L.write_error_log({"where": f"cli.{args.cmd}", "error": repr(e)})
            print(f"FAILURE: {e}", file=sys.stderr)
            return EXIT_FAILURE

    wrapper.__name__ = fn.__name__
    wrapper.__doc__ = fn.__doc__
    return wrapper


# ------------------------------ Subcommands ----------------------------------
@_guarded
def cmd_validate_config(args: argparse.Namespace) -> int:
    _load_validated(args.config)
    print("OK: configuration is valid.")
    if args.smtp:
        try:
            _emailer.ping()
        except _emailer.EmailSendError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return EXIT_FAILURE
        print("OK: SMTP relay reachable.")
    return EXIT_OK


@_guarded
def cmd_run(args: argparse.Namespace) -> int:
    cfg = _load_validated(args.config)
    settings = _config_schema.tracker_settings(cfg, dry_run=args.dry_run or None)
    orchestrator = build_orchestrator(settings)
    try:
        summary = orchestrator.run()
    finally:
        orchestrator.scraper.close()
    L.write_activity_log({
        "event": "cli_run",
        "dry_run": settings.dry_run,
        "status": summary.status.value,
        "duration_ms": summary.duration_ms,
    })
    _print_summary(summary)
    return EXIT_OK if summary.status is RunStatus.SUCCESS else EXIT_FAILURE


@_guarded
def cmd_serve(args: argparse.Namespace) -> int:
    """
    Run the scheduler until SIGINT/SIGTERM. SIGUSR1 triggers a manual run on a
    worker thread; if a run is already executing the request is rejected.
    """
    _load_validated(args.config)
    L.write_activity_log({"event": "serve_start"})

    stop_event = threading.Event()
    controller = _scheduler.start(args.config, dry_run=args.dry_run)

    def _graceful_shutdown(signum=None, frame=None):
        LOG.info("Signal %s received; initiating shutdown...", signum)
        stop_event.set()

    def _manual_run(signum=None, frame=None):
        def _go():
            try:
                controller.run_now("signal")
            except _scheduler.RunInProgressError:
                LOG.warning("Manual run rejected: a run is already in progress.")
            except Exception:
                LOG.exception("Manual run failed.")

        threading.Thread(target=_go, name="tracker-manual-run", daemon=True).start()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _graceful_shutdown)
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, _manual_run)

    try:
        while not stop_event.is_set():
            time.sleep(0.3)
    except KeyboardInterrupt:
        controller.stop()
        return EXIT_INTERRUPTED
    finally:
        controller.stop()

    L.write_activity_log({"event": "serve_stop"})
    return EXIT_OK


@_guarded
def cmd_sources(args: argparse.Namespace) -> int:
    store = _open_store(args)
    action = args.sources_cmd

    if action == "list":
        rows = [(s.name, "yes" if s.enabled else "no", s.search_term, s.career_page_url) for s in store.list_sources()]
        if not rows:
            print("No sources configured (runs fall back to the built-in defaults).")
            return EXIT_OK
        _print_table(rows, headers=("NAME", "ENABLED", "TERM", "URL"))
        return EXIT_OK

    if action == "add":
        (source,) = parse_sources([{
            "name": args.name,
            "career_page_url": args.url,
            "search_term": args.search_term,
            "enabled": not args.disabled,
        }])
        try:
            stored = store.add_source(source)
        except StoreError as e:
            print(f"ERROR: could not add source {args.name!r}: {e}", file=sys.stderr)
            return EXIT_FAILURE
        print(f"Added source {stored.name!r} (id={stored.id}).")
        return EXIT_OK

    if action in ("enable", "disable"):
        ok = store.set_source_enabled(args.name, action == "enable")
    else:
        ok = store.remove_source(args.name)
    if not ok:
        print(f"ERROR: no source named {args.name!r}.", file=sys.stderr)
        return EXIT_FAILURE
    print(f"{action.capitalize()}d source {args.name!r}." if action != "remove" else f"Removed source {args.name!r}.")
    return EXIT_OK


@_guarded
def cmd_postings(args: argparse.Namespace) -> int:
    store = _open_store(args)
    items = store.list_unnotified() if args.unnotified else store.list_postings(limit=args.limit)
    if args.unnotified and args.limit is not None:
        items = items[: args.limit]
    if not items:
        print("No postings.")
        return EXIT_OK
    rows = [
        (p.id, to_iso(p.discovered_at), p.company, p.title, "yes" if p.notified else "no", p.canonical_url)
        for p in items
    ]
    _print_table(rows, headers=("ID", "DISCOVERED", "COMPANY", "TITLE", "NOTIFIED", "URL"))
    return EXIT_OK


@_guarded
def cmd_runs(args: argparse.Namespace) -> int:
    store = _open_store(args)
    runs = store.recent_runs(limit=args.limit)
    if not runs:
        print("No runs recorded.")
        return EXIT_OK
    rows = [
        (
            r.id,
            to_iso(r.started_at),
            r.status.value,
            r.sources_checked,
            r.postings_seen,
            r.new_postings,
            r.notifications_sent,
            r.duration_ms,
            r.error_detail or "",
        )
        for r in runs
    ]
    _print_table(rows, headers=("ID", "STARTED", "STATUS", "SOURCES", "SEEN", "NEW", "SENT", "MS", "ERROR"))
    return EXIT_OK


@_guarded
def cmd_stats(args: argparse.Namespace) -> int:
    store = _open_store(args)
    stats = store.run_stats()
    stats["postings_total"] = len(store.list_postings())
    stats["postings_unnotified"] = len(store.list_unnotified())
    print(json.dumps(stats, indent=2))
    return EXIT_OK


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="Job tracker command-line tools",
    )
    p.add_argument(
        "--config",
        help="Path to config file (fallbacks to CONFIG_PATH env or built-in defaults).",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # serve
    sp = sub.add_parser("serve", help="Run the scheduler loop (SIGUSR1 = run now).")
    sp.add_argument("--dry-run", action="store_true", help="Log notifications instead of sending them.")
    sp.set_defaults(func=cmd_serve)

    # run
    sp = sub.add_parser("run", help="Execute one tracker run now.")
    sp.add_argument("--dry-run", action="store_true", help="Log notifications instead of sending them.")
    sp.set_defaults(func=cmd_run)

    # sources
    sp = sub.add_parser("sources", help="Manage tracked career pages.")
    ssub = sp.add_subparsers(dest="sources_cmd", required=True)
    ssub.add_parser("list", help="List all sources.")
    a = ssub.add_parser("add", help="Add a source.")
    a.add_argument("name")
    a.add_argument("url", help="Career page URL (http/https).")
    a.add_argument("--search-term", default="intern", help="Case-insensitive link text filter (default: intern).")
    a.add_argument("--disabled", action="store_true", help="Add the source disabled.")
    for action in ("enable", "disable", "remove"):
        ssub.add_parser(action, help=f"{action.capitalize()} a source by name.").add_argument("name")
    sp.set_defaults(func=cmd_sources)

    # postings
    sp = sub.add_parser("postings", help="List discovered postings (newest first).")
    sp.add_argument("--limit", type=int, default=None)
    sp.add_argument("--unnotified", action="store_true", help="Only postings whose notification failed.")
    sp.set_defaults(func=cmd_postings)

    # runs
    sp = sub.add_parser("runs", help="List recent run summaries.")
    sp.add_argument("--limit", type=int, default=20)
    sp.set_defaults(func=cmd_runs)

    # stats
    sp = sub.add_parser("stats", help="Aggregate run statistics.")
    sp.set_defaults(func=cmd_stats)

    # validate-config
    sp = sub.add_parser("validate-config", help="Verify configuration correctness.")
    sp.add_argument("--smtp", action="store_true", help="Also connect (and log in) to the SMTP relay.")
    sp.set_defaults(func=cmd_validate_config)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    L.configure_stdlib_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
