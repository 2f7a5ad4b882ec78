# tests/test_scrapers.py
import pytest

from modules.job_tracker.lib.http_client import FetchError, HttpClient
from modules.job_tracker.lib.models import SourceConfig
from modules.job_tracker.lib.scrapers.career_page import CareerPageScraper
from modules.job_tracker.lib.scrapers.stub import StubScraper

CAREERS_HTML = """
<html><body>
  <h1>Join Acme</h1>
  <a href="/jobs/101">Software Engineering Intern</a>
  <a href="/jobs/102">Staff Engineer</a>
  <a href="/jobs/103">Product Design Intern</a>
</body></html>
"""


def test_career_page_scraper_maps_links_to_postings(page_server):
    page_server.route("/careers", 200, CAREERS_HTML)
    source = SourceConfig(name="Acme", career_page_url=page_server.url("/careers"), search_term="intern")

    scraper = CareerPageScraper(HttpClient(timeout=5))
    try:
        postings = scraper.crawl(source)
    finally:
        scraper.close()

    assert [(p.company, p.title, p.canonical_url) for p in postings] == [
        ("Acme", "Software Engineering Intern", page_server.url("/jobs/101")),
        ("Acme", "Product Design Intern", page_server.url("/jobs/103")),
    ]
    assert all(p.id is None and p.discovered_at is None and not p.notified for p in postings)


def test_career_page_scraper_uses_the_source_search_term(page_server):
    page_server.route("/careers", 200, CAREERS_HTML)
    source = SourceConfig(name="Acme", career_page_url=page_server.url("/careers"), search_term="staff")

    postings = CareerPageScraper(HttpClient(timeout=5)).crawl(source)

    assert [p.title for p in postings] == ["Staff Engineer"]


def test_career_page_scraper_propagates_fetch_errors(page_server):
    page_server.route("/careers", 500, "boom")
    source = SourceConfig(name="Acme", career_page_url=page_server.url("/careers"))

    with pytest.raises(FetchError) as exc:
        CareerPageScraper(HttpClient(timeout=5)).crawl(source)
    assert exc.value.status == 500


def test_stub_scraper_serves_items_and_raises_injected_errors(acme_source):
    boom = FetchError("https://globex.test", status=503)
    scraper = StubScraper({
        "Acme": [("Intern A", "https://acme.test/a"), {"title": "Intern B", "url": "https://acme.test/b"}],
        "Globex": boom,
    })
    globex = SourceConfig(name="Globex", career_page_url="https://globex.test")

    assert [p.canonical_url for p in scraper.crawl(acme_source)] == ["https://acme.test/a", "https://acme.test/b"]
    with pytest.raises(FetchError):
        scraper.crawl(globex)
    assert scraper.crawl(SourceConfig(name="Initech", career_page_url="https://initech.test")) == []
    assert scraper.crawled == ["Acme", "Globex", "Initech"]
