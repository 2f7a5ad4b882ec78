# tests/conftest.py
import http.server
import json
import os
import tempfile
import threading

import pytest
from freezegun import freeze_time

from modules.job_tracker.lib.models import SourceConfig
from modules.job_tracker.lib.notifiers.base import BaseNotifier, NotifyError
from modules.job_tracker.lib.scrapers.stub import StubScraper
from modules.job_tracker.lib.store.memory import MemoryStore
from modules.job_tracker.lib.store.sqlite import SqliteStore, reset_db


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls or external services).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="jt-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")

    # Never pick up a real config/DB/recipient from the developer's shell
    for name in ("CONFIG_PATH", "JOB_TRACKER_DB", "JOB_TRACKER_RECIPIENT", "JOB_TRACKER_NOTIFIER", "TZ"):
        monkeypatch.delenv(name, raising=False)
    # The local page server must never be reached through a proxy
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")
    yield


@pytest.fixture
def log_dir():
    return os.environ["LOG_DIR"]


@pytest.fixture
def read_jsonl(log_dir):
    """read_jsonl("error") -> list of records from today's error-test log."""

    def _read(kind: str = "activity") -> list[dict]:
        records = []
        for name in sorted(os.listdir(log_dir)):
            if name.startswith(f"{kind}-test-") and name.endswith(".jsonl"):
                with open(os.path.join(log_dir, name), encoding="utf-8") as f:
                    records.extend(json.loads(line) for line in f if line.strip())
        return records

    return _read


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


# ---------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------
@pytest.fixture
def sqlite_path(tmp_path):
    path = str(tmp_path / "jobs.db")
    reset_db(path)
    return path


@pytest.fixture
def sqlite_store(sqlite_path):
    return SqliteStore(sqlite_path)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def acme_source():
    return SourceConfig(name="Acme", career_page_url="https://acme.test/careers", search_term="intern")


# ---------------------------------------------------------------------
# Notifier / scraper doubles
# ---------------------------------------------------------------------
class RecordingNotifier(BaseNotifier):
    """Captures (recipient, text); `fail_when` makes send() raise NotifyError for matching texts."""

    kind = "recording"

    def __init__(self, fail_when=None):
        self.sent: list[tuple[str, str]] = []
        self.attempts = 0
        self.fail_when = fail_when

    def send(self, recipient, text):
        self.attempts += 1
        if self.fail_when is not None and self.fail_when(text):
            raise NotifyError("injected send failure")
        self.sent.append((recipient, text))

    @property
    def texts(self) -> list[str]:
        return [t for _, t in self.sent]


@pytest.fixture
def recording_notifier():
    return RecordingNotifier()


@pytest.fixture
def make_notifier():
    return RecordingNotifier


@pytest.fixture
def stub_scraper():
    return StubScraper()


# ---------------------------------------------------------------------
# Local HTTP server for fetcher/crawler tests
# ---------------------------------------------------------------------
class _PageHandler(http.server.BaseHTTPRequestHandler):
    routes: dict = {}
    hits: list = []

    def do_GET(self):  # noqa: N802
        self.hits.append(self.path)
        status, body = self.routes.get(self.path, (404, b"not found"))
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):  # silence stderr
        pass


@pytest.fixture
def page_server():
    """
    Serve canned pages on 127.0.0.1.

        server.route("/careers", 200, "<a href='/jobs/1'>Intern</a>")
        url = server.url("/careers")
    """
    routes: dict = {}
    hits: list = []
    handler = type("Handler", (_PageHandler,), {"routes": routes, "hits": hits})
    httpd = http.server.ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()

    class _Server:
        base = f"http://127.0.0.1:{httpd.server_address[1]}"

        def __init__(self):
            self.hits = hits

        def route(self, path, status, body):
            routes[path] = (status, body)

        def url(self, path):
            return self.base + path

    try:
        yield _Server()
    finally:
        httpd.shutdown()
        httpd.server_close()
