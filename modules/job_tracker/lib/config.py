from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .http_client import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from .models import SourceConfig
from .utils import truthy


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


# -----------------------------
# Built-in sources
# -----------------------------
# Used when the store has no enabled sources at all.
DEFAULT_SOURCES: tuple[SourceConfig, ...] = (
    SourceConfig(
        name="Google",
        career_page_url="https://www.google.com/about/careers/applications/jobs/results?q=software+intern&location=United+States",
        search_term="intern",
    ),
    SourceConfig(
        name="Amazon",
        career_page_url="https://www.amazon.jobs/en/search?base_query=software+intern&loc_query=United+States",
        search_term="intern",
    ),
    SourceConfig(
        name="Uber",
        career_page_url="https://www.uber.com/us/en/careers/list/?query=intern%20software&location=USA",
        search_term="intern",
    ),
    SourceConfig(
        name="DoorDash",
        career_page_url="https://careers.doordash.com/jobs/search?query=intern",
        search_term="intern",
    ),
)

NOTIFIER_KINDS = ("email", "imessage", "log")


# -----------------------------
# Settings
# -----------------------------
@dataclass
class Settings:
    """
    Canonical configuration for the job tracker.

    Built from the `tracker` block of the service config plus environment
    fallbacks (JOB_TRACKER_DB, JOB_TRACKER_RECIPIENT, JOB_TRACKER_NOTIFIER).
    """

    sqlite_path: str = "/app/local/state/jobs.db"
    recipient: str = ""
    notifier: str = "email"
    fetch_timeout_sec: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT

    # Seeded into the store by name on startup (insert-if-absent).
    sources: list[SourceConfig] = field(default_factory=list)

    # Swap the configured notifier for the log-only one.
    dry_run: bool = False

    @property
    def effective_notifier(self) -> str:
        return "log" if self.dry_run else self.notifier

    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from kwargs with validation.

        Expected kwargs (all optional):

            sqlite_path: str = $JOB_TRACKER_DB or "/app/local/state/jobs.db"
            recipient: str = $JOB_TRACKER_RECIPIENT
            notifier: "email" | "imessage" | "log" = $JOB_TRACKER_NOTIFIER or "email"
            fetch_timeout_sec: float = 30
            user_agent: str
            sources: [{"name", "career_page_url" | "career_url", "search_term"?, "enabled"?}, ...]
            dry_run: bool = false
        """
        kw = dict(kwargs or {})

        sqlite_path = str(kw.get("sqlite_path") or os.getenv("JOB_TRACKER_DB") or cls.sqlite_path).strip()
        recipient = str(kw.get("recipient") or os.getenv("JOB_TRACKER_RECIPIENT") or "").strip()
        notifier = str(kw.get("notifier") or os.getenv("JOB_TRACKER_NOTIFIER") or "email").strip().lower()

        try:
            fetch_timeout_sec = float(kw.get("fetch_timeout_sec") or DEFAULT_TIMEOUT)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"'fetch_timeout_sec' must be a number (got {kw.get('fetch_timeout_sec')!r}).") from e

        settings = cls(
            sqlite_path=sqlite_path,
            recipient=recipient,
            notifier=notifier,
            fetch_timeout_sec=fetch_timeout_sec,
            user_agent=str(kw.get("user_agent") or DEFAULT_USER_AGENT),
            sources=parse_sources(kw.get("sources")),
            dry_run=truthy(kw.get("dry_run")),
        )
        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def parse_sources(value: Any) -> list[SourceConfig]:
    """
    Parse a flat list into SourceConfig objects.
    Accepts: [{"name": "...", "career_page_url": "...", "search_term": "intern"}, ...]
    ("career_url" is accepted as an alias.)
    """
    if not value:
        return []
    if not isinstance(value, list):
        raise ConfigError("Expected a list of source objects.")
    out: list[SourceConfig] = []
    seen: set[str] = set()
    for i, item in enumerate(value):
        if not isinstance(item, dict):
            raise ConfigError(f"sources[{i}] must be an object.")
        name = str(item.get("name") or "").strip()
        url = str(item.get("career_page_url") or item.get("career_url") or "").strip()
        if not name or not url:
            raise ConfigError(f"sources[{i}] requires 'name' and 'career_page_url'.")
        if not url.lower().startswith(("http://", "https://")):
            raise ConfigError(f"sources[{i}].career_page_url must be an http(s) URL (got {url!r}).")
        if name in seen:
            raise ConfigError(f"Duplicate source name {name!r}.")
        seen.add(name)
        search_term = str(item.get("search_term") or "intern").strip()
        enabled = truthy(item["enabled"]) if "enabled" in item else True
        out.append(SourceConfig(name=name, career_page_url=url, search_term=search_term, enabled=enabled))
    return out


def _validate_settings(s: Settings) -> None:
    if not s.sqlite_path:
        raise ConfigError("'sqlite_path' cannot be empty.")
    if s.notifier not in NOTIFIER_KINDS:
        raise ConfigError(f"'notifier' must be one of {', '.join(NOTIFIER_KINDS)} (got {s.notifier!r}).")
    if s.fetch_timeout_sec <= 0:
        raise ConfigError("'fetch_timeout_sec' must be > 0.")
    # The log notifier has nobody to deliver to, so it doesn't need a recipient.
    if s.effective_notifier != "log" and not s.recipient:
        raise ConfigError(
            f"Notifier {s.notifier!r} needs a recipient. Set 'recipient' or JOB_TRACKER_RECIPIENT."
        )
