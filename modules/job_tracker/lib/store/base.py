from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..models import Posting, RunSummary, SourceConfig


class StoreError(Exception):
    """Base exception for persistence failures (read or write)."""


class BaseStore(ABC):
    """
    Persistence contract used by the tracker.

    The orchestrator only needs the first five methods; the rest serve the
    administrative CLI. Implementations raise StoreError on failure.

    Invariants every implementation keeps:
      - at most one Posting per canonical_url
      - mark_notified only ever sets the flag, never clears it
      - run summaries are append-only
    """

    # ---- orchestration ----------------------------------------------------

    @abstractmethod
    def create(self, posting: Posting) -> Posting:
        """Persist a new posting; return it with id and discovered_at assigned."""
        raise NotImplementedError

    @abstractmethod
    def find_by_url(self, url: str) -> Posting | None:
        raise NotImplementedError

    @abstractmethod
    def mark_notified(self, posting_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_enabled_sources(self) -> list[SourceConfig]:
        """Enabled sources ordered by name."""
        raise NotImplementedError

    @abstractmethod
    def append_run_summary(self, summary: RunSummary) -> RunSummary:
        raise NotImplementedError

    # ---- administration / reads -------------------------------------------

    @abstractmethod
    def list_sources(self) -> list[SourceConfig]:
        raise NotImplementedError

    @abstractmethod
    def add_source(self, source: SourceConfig) -> SourceConfig:
        """Insert a source; StoreError if the name is taken."""
        raise NotImplementedError

    @abstractmethod
    def set_source_enabled(self, name: str, enabled: bool) -> bool:
        """Return False if no source has that name."""
        raise NotImplementedError

    @abstractmethod
    def remove_source(self, name: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def get_posting(self, posting_id: int) -> Posting | None:
        raise NotImplementedError

    @abstractmethod
    def list_postings(self, limit: int | None = None) -> list[Posting]:
        """Newest first."""
        raise NotImplementedError

    @abstractmethod
    def list_unnotified(self) -> list[Posting]:
        raise NotImplementedError

    @abstractmethod
    def recent_runs(self, limit: int = 20) -> list[RunSummary]:
        """Newest first."""
        raise NotImplementedError

    @abstractmethod
    def run_stats(self) -> dict[str, Any]:
        """total_runs, successful_runs, total_new_postings, avg_duration_ms, last_run."""
        raise NotImplementedError

    # ---- shared helpers ---------------------------------------------------

    def seed_sources(self, sources: list[SourceConfig]) -> int:
        """Add each source whose name isn't known yet; return how many were added."""
        known = {s.name for s in self.list_sources()}
        added = 0
        for src in sources:
            if src.name in known:
                continue
            self.add_source(src)
            known.add(src.name)
            added += 1
        return added

    def close(self) -> None:  # noqa: B027
        """Release resources (no-op by default)."""
