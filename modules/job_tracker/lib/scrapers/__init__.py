# modules/job_tracker/lib/scrapers/__init__.py
from __future__ import annotations

from .base import BaseScraper
from .career_page import CareerPageScraper
from .stub import StubScraper

__all__ = ["BaseScraper", "CareerPageScraper", "StubScraper"]
