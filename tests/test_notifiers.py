# tests/test_notifiers.py
import subprocess
from datetime import datetime, timezone

import pytest

from modules.job_tracker.lib import notifiers, render
from modules.job_tracker.lib.models import Posting, SourceConfig
from modules.job_tracker.lib.notifiers import BaseNotifier, EmailNotifier, IMessageNotifier, LogNotifier, NotifyError
from modules.job_tracker.lib.notifiers.imessage import build_script, escape_applescript
from service.emailer import EmailSendError

POSTING = Posting(
    company="Acme",
    title="Software Intern",
    canonical_url="https://acme.test/jobs/1?ref=a&b=2",
    id=7,
    discovered_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
)


# Registry ---------------------------------------------------------------------


def test_builtin_kinds_are_registered():
    kinds = notifiers.all_kinds()
    assert {"email", "imessage", "log"} <= set(kinds)
    assert notifiers.get("IMessage") is IMessageNotifier
    assert isinstance(notifiers.create("log"), LogNotifier)


def test_unknown_kind_raises_keyerror():
    with pytest.raises(KeyError):
        notifiers.get("pigeon")


def test_register_rejects_missing_kind_and_conflicts():
    class NoKind(BaseNotifier):
        def send(self, recipient, text):
            pass

    class Impostor(BaseNotifier):
        kind = "log"

        def send(self, recipient, text):
            pass

    with pytest.raises(ValueError):
        notifiers.register(NoKind)
    with pytest.raises(ValueError):
        notifiers.register(Impostor)
    # re-registering the same class is fine
    assert notifiers.register(LogNotifier) is LogNotifier


# Rendering --------------------------------------------------------------------


def test_posting_message_layout():
    text = render.format_posting_message(POSTING)
    assert text.splitlines() == [
        "New Intern Position Found!",
        "",
        "Company: Acme",
        "Title: Software Intern",
        "Apply: https://acme.test/jobs/1?ref=a&b=2",
    ]


def test_posting_message_includes_location_when_known():
    text = render.format_posting_message(Posting(company="Acme", title="Intern", canonical_url="u", location="Remote"))
    assert "Location: Remote" in text


def test_no_new_message_layout():
    sources = [SourceConfig(name=n, career_page_url=f"https://{n}.test") for n in "ABCDEF"]
    text = render.format_no_new_message(sources, sources_checked=6, postings_seen=11)
    assert text.splitlines() == [
        "Intern Job Tracker Update",
        "",
        "Checked 6 companies",
        "Found 11 job listings",
        "No new postings found",
        "",
        "Tracking: A, B, C, D +2 more",
    ]


def test_subject_and_html_alternative():
    text = render.format_posting_message(POSTING)
    assert render.subject_for(text) == "New Intern Position Found!"
    assert render.subject_for("\n\n") == render.SUMMARY_HEADER

    html = render.text_to_html(text)
    assert '<a href="https://acme.test/jobs/1?ref=a&amp;b=2">' in html
    assert "<p>Company: Acme</p>" in html


# Transports -------------------------------------------------------------------


def test_notify_posting_sends_rendered_text():
    notifier = LogNotifier()
    notifier.notify_posting("me@example.com", POSTING)
    assert notifier.sent == [("me@example.com", render.format_posting_message(POSTING))]


def test_log_notifier_writes_activity(read_jsonl):
    LogNotifier().send("", "hello")
    (rec,) = [r for r in read_jsonl("activity") if r.get("op") == "dry_run_send"]
    assert rec["text"] == "hello"


def test_email_notifier_builds_message():
    calls = []

    def fake_send(**kw):
        calls.append(kw)
        return "<id@test>"

    EmailNotifier(send=fake_send).notify_posting("me@example.com", POSTING)

    (kw,) = calls
    assert kw["to"] == ["me@example.com"]
    assert kw["subject"] == "New Intern Position Found!"
    assert kw["text"].startswith("New Intern Position Found!")
    assert "<a href=" in kw["html"]


def test_email_failure_becomes_notify_error():
    def failing_send(**kw):
        raise EmailSendError("relay down")

    with pytest.raises(NotifyError, match="relay down"):
        EmailNotifier(send=failing_send).send("me@example.com", "hi")


def test_applescript_escaping():
    assert escape_applescript('say "hi"\\now\nbye') == 'say \\"hi\\"\\\\now\\nbye'

    script = build_script("+15551234567", 'Title: "Intern"')
    assert 'buddy "+15551234567" of targetService' in script
    assert 'send "Title: \\"Intern\\"" to targetBuddy' in script


def test_imessage_runs_osascript():
    seen = []
    IMessageNotifier(executor=seen.append).send("+15551234567", "New Intern Position Found!")

    (argv,) = seen
    assert argv[:2] == ["osascript", "-e"]
    assert "New Intern Position Found!" in argv[2]


@pytest.mark.parametrize(
    "exc",
    [
        FileNotFoundError("osascript"),
        subprocess.CalledProcessError(1, ["osascript"]),
        subprocess.TimeoutExpired(["osascript"], 60),
    ],
)
def test_imessage_failures_become_notify_error(exc):
    def executor(argv):
        raise exc

    with pytest.raises(NotifyError):
        IMessageNotifier(executor=executor).send("+15551234567", "hi")
