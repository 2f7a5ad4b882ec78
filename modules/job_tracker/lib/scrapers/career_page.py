# modules/job_tracker/lib/scrapers/career_page.py
from __future__ import annotations

import logging

from ..extractor import iter_links
from ..http_client import HttpClient
from ..models import Posting, SourceConfig
from .base import BaseScraper

LOG = logging.getLogger(__name__)


class CareerPageScraper(BaseScraper):
    """
    Generic career-page crawler.

    Fetches `source.career_page_url` once and keeps every anchor whose text
    contains `source.search_term`. Works on server-rendered pages only; a
    page that builds its listings in JavaScript simply yields nothing.
    """

    def __init__(self, client: HttpClient | None = None) -> None:
        self._client = client or HttpClient()

    def crawl(self, source: SourceConfig) -> list[Posting]:
        page = self._client.fetch(source.career_page_url)
        postings = [
            Posting(company=source.name, title=link.title, canonical_url=link.url)
            for link in iter_links(page.body, source.career_page_url, source.search_term)
        ]
        LOG.debug("%s: %d matching links", source.name, len(postings))
        return postings

    def close(self) -> None:
        self._client.close()
