from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

from .utils import to_iso


@dataclass(frozen=True)
class SourceConfig:
    """
    One company career page to watch.
    Identity is `name`; `id` is only set once the store has persisted it.
    """

    name: str
    career_page_url: str
    search_term: str = "intern"
    enabled: bool = True
    id: int | None = None


@dataclass(frozen=True)
class Posting:
    """
    A single job posting.

    Scrapers produce candidates with id/discovered_at unset; the store fills
    both in on first persistence and hands back a new instance.
    Dedupe key: canonical_url.
    """

    company: str
    title: str
    canonical_url: str
    location: str | None = None
    id: int | None = None
    discovered_at: datetime | None = None
    notified: bool = False


class RunStatus(str, enum.Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class RunSummary:
    started_at: datetime
    sources_checked: int = 0
    postings_seen: int = 0
    new_postings: int = 0
    notifications_sent: int = 0
    duration_ms: int = 0
    status: RunStatus = RunStatus.SUCCESS
    error_detail: str | None = None
    id: int | None = None

    def as_record(self) -> dict:
        """JSON-safe dict for activity logs and CLI output."""
        return {
            "id": self.id,
            "started_at": to_iso(self.started_at),
            "sources_checked": self.sources_checked,
            "postings_seen": self.postings_seen,
            "new_postings": self.new_postings,
            "notifications_sent": self.notifications_sent,
            "duration_ms": self.duration_ms,
            "status": self.status.value,
            "error_detail": self.error_detail,
        }
