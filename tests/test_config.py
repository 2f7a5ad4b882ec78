# tests/test_config.py
import pytest

from modules.job_tracker.lib.config import DEFAULT_SOURCES, ConfigError, Settings, parse_sources
from modules.job_tracker.lib.http_client import DEFAULT_TIMEOUT


def test_settings_defaults_with_log_notifier():
    s = Settings.from_env_and_kwargs({"notifier": "log"})

    assert s.sqlite_path == "/app/local/state/jobs.db"
    assert s.recipient == ""
    assert s.fetch_timeout_sec == DEFAULT_TIMEOUT
    assert s.sources == []
    assert s.dry_run is False


def test_env_fallbacks(monkeypatch):
    monkeypatch.setenv("JOB_TRACKER_DB", "/tmp/jt.db")
    monkeypatch.setenv("JOB_TRACKER_RECIPIENT", "me@example.com")
    monkeypatch.setenv("JOB_TRACKER_NOTIFIER", "IMessage")

    s = Settings.from_env_and_kwargs(None)

    assert (s.sqlite_path, s.recipient, s.notifier) == ("/tmp/jt.db", "me@example.com", "imessage")


def test_kwargs_beat_env(monkeypatch):
    monkeypatch.setenv("JOB_TRACKER_RECIPIENT", "env@example.com")
    s = Settings.from_env_and_kwargs({"recipient": "  kw@example.com "})
    assert s.recipient == "kw@example.com"


def test_dry_run_swaps_notifier_and_drops_recipient_requirement():
    s = Settings.from_env_and_kwargs({"notifier": "email", "dry_run": "true"})
    assert s.notifier == "email"
    assert s.effective_notifier == "log"


@pytest.mark.parametrize(
    "kwargs, match",
    [
        ({"notifier": "email"}, "needs a recipient"),
        ({"notifier": "fax", "recipient": "x"}, "must be one of"),
        ({"notifier": "log", "fetch_timeout_sec": "slow"}, "must be a number"),
        ({"notifier": "log", "fetch_timeout_sec": -1}, "> 0"),
    ],
)
def test_invalid_settings(kwargs, match):
    with pytest.raises(ConfigError, match=match):
        Settings.from_env_and_kwargs(kwargs)


def test_parse_sources_defaults_and_alias():
    sources = parse_sources([
        {"name": "Acme", "career_page_url": "https://acme.test/careers"},
        {"name": "Globex", "career_url": "http://globex.test/jobs", "search_term": "co-op", "enabled": "no"},
    ])

    assert [(s.name, s.search_term, s.enabled) for s in sources] == [
        ("Acme", "intern", True),
        ("Globex", "co-op", False),
    ]
    assert sources[1].career_page_url == "http://globex.test/jobs"


@pytest.mark.parametrize(
    "value, match",
    [
        ({"name": "Acme"}, "list"),
        (["Acme"], "must be an object"),
        ([{"name": "Acme"}], "requires 'name' and 'career_page_url'"),
        ([{"name": "Acme", "career_page_url": "ftp://acme.test"}], "http"),
        (
            [
                {"name": "Acme", "career_page_url": "https://a.test"},
                {"name": "Acme", "career_page_url": "https://b.test"},
            ],
            "Duplicate",
        ),
    ],
)
def test_parse_sources_rejects(value, match):
    with pytest.raises(ConfigError, match=match):
        parse_sources(value)


def test_default_sources_are_well_formed():
    names = [s.name for s in DEFAULT_SOURCES]
    assert names == ["Google", "Amazon", "Uber", "DoorDash"]
    assert all(s.career_page_url.startswith("https://") and s.search_term == "intern" for s in DEFAULT_SOURCES)
