from __future__ import annotations

from typing import Any

from .lib import notifiers
from .lib.config import Settings
from .lib.engine import Orchestrator
from .lib.http_client import HttpClient
from .lib.logging_bridge import activity as log_activity
from .lib.models import RunSummary
from .lib.notifiers.base import BaseNotifier
from .lib.scrapers.base import BaseScraper
from .lib.scrapers.career_page import CareerPageScraper
from .lib.store.base import BaseStore
from .lib.store.sqlite import SqliteStore


def open_store(settings: Settings) -> BaseStore:
    """Open the SQLite store and seed configured sources (insert-if-absent by name)."""
    store = SqliteStore(settings.sqlite_path)
    if settings.sources:
        added = store.seed_sources(settings.sources)
        if added:
            log_activity({
                "component": "job_tracker.main",
                "op": "seed_sources",
                "added": added,
                "configured": [s.name for s in settings.sources],
            })
    return store


def build_orchestrator(
    settings: Settings,
    *,
    store: BaseStore | None = None,
    scraper: BaseScraper | None = None,
    notifier: BaseNotifier | None = None,
) -> Orchestrator:
    """
    Wire an Orchestrator from settings. Any collaborator may be injected
    (tests pass MemoryStore / StubScraper / recording notifiers).
    """
    return Orchestrator(
        store=store or open_store(settings),
        scraper=scraper or CareerPageScraper(HttpClient(settings.fetch_timeout_sec, settings.user_agent)),
        notifier=notifier or notifiers.create(settings.effective_notifier),
        recipient=settings.recipient,
    )


def run(**kwargs: Any) -> RunSummary:
    """
    Entry point for the 'job_tracker' module: one full run.

    Accepts the `tracker` config block as kwargs:
      sqlite_path: str = $JOB_TRACKER_DB or "/app/local/state/jobs.db"
      recipient: str = $JOB_TRACKER_RECIPIENT
      notifier: "email" | "imessage" | "log" = $JOB_TRACKER_NOTIFIER or "email"
      fetch_timeout_sec: float = 30
      sources: [{"name", "career_page_url", "search_term"?, "enabled"?}, ...]
      dry_run: bool = False

    Returns the persisted RunSummary.
    """
    settings = Settings.from_env_and_kwargs(kwargs)

    log_activity({
        "component": "job_tracker.main",
        "op": "start",
        "notifier": settings.effective_notifier,
        "dry_run": settings.dry_run,
        "configured_sources": len(settings.sources),
    })

    orchestrator = build_orchestrator(settings)
    try:
        return orchestrator.run()
    finally:
        orchestrator.scraper.close()
        orchestrator.store.close()
