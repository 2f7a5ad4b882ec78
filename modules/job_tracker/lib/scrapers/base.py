from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import Posting, SourceConfig


class BaseScraper(ABC):
    """
    Abstract crawler interface: one career page in, candidate postings out.

    Contract:
      - crawl(source) returns every matching posting on the page, in page
        order, with id/discovered_at unset (dedupe happens upstream).
      - Fetch failures propagate (FetchError); the engine decides what to do.
      - Do NOT send notifications, print, or touch the store.
    """

    @abstractmethod
    def crawl(self, source: SourceConfig) -> list[Posting]:
        raise NotImplementedError

    def close(self) -> None:  # noqa: B027
        """Release network resources (no-op by default)."""
