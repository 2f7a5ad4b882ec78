from __future__ import annotations

from collections.abc import Mapping, Sequence

from ..models import Posting, SourceConfig
from .base import BaseScraper


class StubScraper(BaseScraper):
    """
    A zero-network scraper used for tests and dry-runs.

    `pages` maps a source name to either:
      - a list of {title:str, url:str} items (or (title, url) pairs), or
      - an exception instance, raised from crawl() to simulate a fetch failure.

    Unknown sources crawl to an empty list. Every crawl is recorded in
    `crawled` (source names, in call order).
    """

    def __init__(self, pages: Mapping[str, object] | None = None) -> None:
        self.pages: dict[str, object] = dict(pages or {})
        self.crawled: list[str] = []
        self.closed = False

    def crawl(self, source: SourceConfig) -> list[Posting]:
        self.crawled.append(source.name)
        page = self.pages.get(source.name, [])
        if isinstance(page, BaseException):
            raise page

        postings: list[Posting] = []
        for item in page if isinstance(page, Sequence) else []:
            if isinstance(item, Mapping):
                title, url = item.get("title"), item.get("url")
            else:
                title, url = item
            url = str(url or "").strip()
            if not url:
                continue
            postings.append(Posting(company=source.name, title=str(title or "").strip(), canonical_url=url))
        return postings

    def close(self) -> None:
        self.closed = True
