from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any

from ..models import Posting, RunStatus, RunSummary, SourceConfig
from ..utils import to_iso, utcnow
from .base import BaseStore, StoreError


class MemoryStore(BaseStore):
    """
    Dict-backed store with the same semantics as SqliteStore.

    Used by tests and by `run --dry-run` style experiments. The `fail_*`
    attributes inject StoreError at specific points:

        fail_list_sources:   list_enabled_sources() raises
        fail_create_urls:    create() raises for these canonical URLs
        fail_find_urls:      find_by_url() raises for these URLs
        fail_mark_notified:  mark_notified() raises
        fail_append_summary: append_run_summary() raises
    """

    def __init__(self, sources: list[SourceConfig] | None = None) -> None:
        self._lock = threading.Lock()
        self._postings: dict[int, Posting] = {}
        self._by_url: dict[str, int] = {}
        self._sources: dict[str, SourceConfig] = {}
        self._runs: list[RunSummary] = []
        self._next_id = {"posting": 1, "source": 1, "run": 1}

        self.fail_list_sources = False
        self.fail_create_urls: set[str] = set()
        self.fail_find_urls: set[str] = set()
        self.fail_mark_notified = False
        self.fail_append_summary = False

        for src in sources or []:
            self.add_source(src)

    def _take_id(self, kind: str) -> int:
        n = self._next_id[kind]
        self._next_id[kind] = n + 1
        return n

    # ---- orchestration ----------------------------------------------------

    def create(self, posting: Posting) -> Posting:
        url = posting.canonical_url.strip()
        if url in self.fail_create_urls:
            raise StoreError(f"create failed: injected failure for {url}")
        with self._lock:
            if url in self._by_url:
                raise StoreError(f"create failed: UNIQUE constraint failed: postings.canonical_url ({url})")
            stored = replace(
                posting,
                canonical_url=url,
                id=self._take_id("posting"),
                discovered_at=utcnow(),
                notified=False,
            )
            self._postings[stored.id] = stored  # type: ignore[index]
            self._by_url[url] = stored.id  # type: ignore[assignment]
        return stored

    def find_by_url(self, url: str) -> Posting | None:
        url = url.strip()
        if url in self.fail_find_urls:
            raise StoreError(f"find_by_url failed: injected failure for {url}")
        with self._lock:
            pid = self._by_url.get(url)
            return self._postings.get(pid) if pid is not None else None

    def mark_notified(self, posting_id: int) -> None:
        if self.fail_mark_notified:
            raise StoreError("mark_notified failed: injected failure")
        with self._lock:
            p = self._postings.get(posting_id)
            if p is not None and not p.notified:
                self._postings[posting_id] = replace(p, notified=True)

    def list_enabled_sources(self) -> list[SourceConfig]:
        if self.fail_list_sources:
            raise StoreError("list_enabled_sources failed: injected failure")
        return [s for s in self.list_sources() if s.enabled]

    def append_run_summary(self, summary: RunSummary) -> RunSummary:
        if self.fail_append_summary:
            raise StoreError("append_run_summary failed: injected failure")
        with self._lock:
            stored = replace(summary, id=self._take_id("run"))
            self._runs.append(stored)
        return stored

    # ---- administration / reads -------------------------------------------

    def list_sources(self) -> list[SourceConfig]:
        with self._lock:
            return sorted(self._sources.values(), key=lambda s: s.name)

    def add_source(self, source: SourceConfig) -> SourceConfig:
        name = source.name.strip()
        with self._lock:
            if name in self._sources:
                raise StoreError(f"add_source failed: UNIQUE constraint failed: sources.name ({name})")
            stored = replace(source, name=name, id=self._take_id("source"))
            self._sources[name] = stored
        return stored

    def set_source_enabled(self, name: str, enabled: bool) -> bool:
        with self._lock:
            src = self._sources.get(name)
            if src is None:
                return False
            self._sources[name] = replace(src, enabled=enabled)
            return True

    def remove_source(self, name: str) -> bool:
        with self._lock:
            return self._sources.pop(name, None) is not None

    def get_posting(self, posting_id: int) -> Posting | None:
        with self._lock:
            return self._postings.get(posting_id)

    def list_postings(self, limit: int | None = None) -> list[Posting]:
        with self._lock:
            items = sorted(self._postings.values(), key=lambda p: (p.discovered_at, p.id), reverse=True)
        return items if limit is None else items[: int(limit)]

    def list_unnotified(self) -> list[Posting]:
        with self._lock:
            return [p for _, p in sorted(self._postings.items()) if not p.notified]

    def recent_runs(self, limit: int = 20) -> list[RunSummary]:
        with self._lock:
            runs = sorted(self._runs, key=lambda r: (r.started_at, r.id), reverse=True)
        return runs[: int(limit)]

    def run_stats(self) -> dict[str, Any]:
        with self._lock:
            runs = list(self._runs)
        total = len(runs)
        return {
            "total_runs": total,
            "successful_runs": sum(1 for r in runs if r.status is RunStatus.SUCCESS),
            "total_new_postings": sum(r.new_postings for r in runs),
            "avg_duration_ms": (sum(r.duration_ms for r in runs) / total) if total else 0.0,
            "last_run": to_iso(max(r.started_at for r in runs)) if runs else None,
        }

    # ---- test helpers -----------------------------------------------------

    def count_postings(self) -> int:
        with self._lock:
            return len(self._postings)

    @property
    def runs(self) -> list[RunSummary]:
        with self._lock:
            return list(self._runs)
