"""
Run orchestrator: crawl every enabled source, persist unseen postings, notify.

Features:
  - Sequential per-source crawl; one failing source never aborts the run
  - Dedup via NoveltyResolver (canonical_url is the key)
  - Notification failures leave the posting stored and unnotified
  - A "no new postings" summary message when nothing new turned up
  - Exactly one RunSummary per run, always handed to the store
  - Structured activity/error records via `logging_bridge`
"""

from __future__ import annotations

import enum
import time
from collections.abc import Sequence
from dataclasses import replace

from . import logging_bridge, render
from .config import DEFAULT_SOURCES
from .dedup import NoveltyResolver
from .models import Posting, RunStatus, RunSummary, SourceConfig
from .notifiers.base import BaseNotifier
from .scrapers.base import BaseScraper
from .store.base import BaseStore
from .utils import utcnow

COMPONENT = "job_tracker.engine"


class RunState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Orchestrator:
    """
    One instance per store/scraper/notifier wiring; `run()` may be called
    repeatedly but never concurrently (the scheduler's run lock sees to that).
    """

    def __init__(
        self,
        store: BaseStore,
        scraper: BaseScraper,
        notifier: BaseNotifier,
        recipient: str,
        default_sources: Sequence[SourceConfig] = DEFAULT_SOURCES,
    ) -> None:
        self.store = store
        self.scraper = scraper
        self.notifier = notifier
        self.recipient = recipient
        self.default_sources = list(default_sources)
        self.resolver = NoveltyResolver(store)
        self.state = RunState.IDLE

    # =========================================================================
    # MAIN ENTRY
    # =========================================================================
    def run(self) -> RunSummary:
        """
        Execute one complete run and return its summary.

        Never raises for fetch/store/notify failures; those are logged and
        reflected in the counters (or, for source enumeration, in a FAILED
        run with status=error).
        """
        self.state = RunState.RUNNING
        started_at = utcnow()
        start_ns = time.perf_counter_ns()
        summary = RunSummary(started_at=started_at)

        # ---------------------------------------------------------------------
        # SOURCES (fatal if the store can't enumerate them)
        # ---------------------------------------------------------------------
        try:
            sources = self.store.list_enabled_sources()
        except Exception as e:
            logging_bridge.error({"component": COMPONENT, "op": "list_sources", "error": repr(e)})
            self.state = RunState.FAILED
            summary = replace(summary, status=RunStatus.ERROR, error_detail=str(e))
            return self._finish(summary, start_ns)

        if not sources:
            sources = list(self.default_sources)
            logging_bridge.activity({
                "component": COMPONENT,
                "op": "default_sources",
                "sources": [s.name for s in sources],
            })

        # ---------------------------------------------------------------------
        # CRAWL + DEDUP + NOTIFY, one source at a time
        # ---------------------------------------------------------------------
        checked = seen = new = sent = 0
        for source in sources:
            checked += 1
            try:
                candidates = self.scraper.crawl(source)
            except Exception as e:
                logging_bridge.error({
                    "component": COMPONENT,
                    "op": "crawl",
                    "source": source.name,
                    "url": source.career_page_url,
                    "error": repr(e),
                })
                continue

            seen += len(candidates)
            source_new = 0
            for candidate in candidates:
                posting = self._resolve(source, candidate)
                if posting is None:
                    continue
                if self._notify(posting):
                    source_new += 1
            new += source_new
            sent += source_new

            logging_bridge.activity({
                "component": COMPONENT,
                "op": "source_done",
                "source": source.name,
                "found": len(candidates),
                "new": source_new,
            })

        # ---------------------------------------------------------------------
        # NOTHING NEW: one summary message instead
        # ---------------------------------------------------------------------
        if new == 0:
            text = render.format_no_new_message(sources, sources_checked=checked, postings_seen=seen)
            try:
                self.notifier.send(self.recipient, text)
                sent += 1
            except Exception as e:
                logging_bridge.error({"component": COMPONENT, "op": "send_summary", "error": repr(e)})

        self.state = RunState.COMPLETED
        summary = replace(
            summary,
            sources_checked=checked,
            postings_seen=seen,
            new_postings=new,
            notifications_sent=sent,
        )
        return self._finish(summary, start_ns)

    # =========================================================================
    # HELPERS
    # =========================================================================
    def _resolve(self, source: SourceConfig, candidate: Posting) -> Posting | None:
        try:
            return self.resolver.resolve(candidate)
        except Exception as e:
            logging_bridge.error({
                "component": COMPONENT,
                "op": "resolve",
                "source": source.name,
                "url": candidate.canonical_url,
                "error": repr(e),
            })
            return None

    def _notify(self, posting: Posting) -> bool:
        """True once the notification went out; marking it is best-effort."""
        try:
            self.notifier.notify_posting(self.recipient, posting)
        except Exception as e:
            logging_bridge.error({
                "component": COMPONENT,
                "op": "notify",
                "posting_id": posting.id,
                "url": posting.canonical_url,
                "error": repr(e),
            })
            return False

        try:
            self.store.mark_notified(posting.id)  # type: ignore[arg-type]
        except Exception as e:
            logging_bridge.error({
                "component": COMPONENT,
                "op": "mark_notified",
                "posting_id": posting.id,
                "error": repr(e),
            })
        return True

    def _finish(self, summary: RunSummary, start_ns: int) -> RunSummary:
        summary = replace(summary, duration_ms=int((time.perf_counter_ns() - start_ns) // 1_000_000))
        try:
            summary = self.store.append_run_summary(summary)
        except Exception as e:
            logging_bridge.error({"component": COMPONENT, "op": "append_run_summary", "error": repr(e)})

        logging_bridge.activity({
            "component": COMPONENT,
            "op": "summary",
            "state": self.state.value,
            **summary.as_record(),
        })
        return summary
