# tests/test_main.py
from modules.job_tracker import main as tracker_main
from modules.job_tracker.lib.config import Settings
from modules.job_tracker.lib.models import RunStatus, SourceConfig
from modules.job_tracker.lib.notifiers import LogNotifier
from modules.job_tracker.lib.scrapers.career_page import CareerPageScraper
from modules.job_tracker.lib.store.sqlite import SqliteStore


def test_open_store_seeds_configured_sources_once(sqlite_path, read_jsonl):
    settings = Settings.from_env_and_kwargs({
        "sqlite_path": sqlite_path,
        "notifier": "log",
        "sources": [{"name": "Acme", "career_page_url": "https://acme.test/careers"}],
    })

    store = tracker_main.open_store(settings)
    store.set_source_enabled("Acme", False)
    tracker_main.open_store(settings)  # reopen: existing rows are left alone

    (acme,) = SqliteStore(sqlite_path).list_sources()
    assert acme.enabled is False
    seeds = [r for r in read_jsonl("activity") if r.get("op") == "seed_sources"]
    assert [r["added"] for r in seeds] == [1]


def test_build_orchestrator_defaults(sqlite_path):
    settings = Settings.from_env_and_kwargs({"sqlite_path": sqlite_path, "notifier": "email", "recipient": "me@x.test", "dry_run": True})

    orch = tracker_main.build_orchestrator(settings)

    assert isinstance(orch.scraper, CareerPageScraper)
    assert isinstance(orch.notifier, LogNotifier)
    assert orch.recipient == "me@x.test"
    orch.scraper.close()


def test_run_entrypoint_end_to_end(page_server, sqlite_path, read_jsonl):
    page_server.route("/careers", 200, '<a href="/jobs/9">Summer Intern</a><a href="/jobs/10">Manager</a>')

    summary = tracker_main.run(
        sqlite_path=sqlite_path,
        notifier="log",
        sources=[{"name": "Acme", "career_page_url": page_server.url("/careers")}],
    )

    assert summary.status is RunStatus.SUCCESS
    assert (summary.sources_checked, summary.postings_seen, summary.new_postings) == (1, 1, 1)
    store = SqliteStore(sqlite_path)
    assert store.find_by_url(page_server.url("/jobs/9")).notified is True
    assert store.list_sources() == [
        SourceConfig(name="Acme", career_page_url=page_server.url("/careers"), id=store.list_sources()[0].id)
    ]
    assert any(r.get("op") == "start" for r in read_jsonl("activity"))
