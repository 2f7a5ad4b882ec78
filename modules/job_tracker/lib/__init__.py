# modules/job_tracker/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .config import DEFAULT_SOURCES, ConfigError, Settings
from .engine import Orchestrator, RunState
from .http_client import FetchError
from .models import Posting, RunStatus, RunSummary, SourceConfig
from .notifiers import NotifyError
from .store import StoreError

__all__ = [
    "DEFAULT_SOURCES",
    "ConfigError",
    "FetchError",
    "NotifyError",
    "Orchestrator",
    "Posting",
    "RunState",
    "RunStatus",
    "RunSummary",
    "Settings",
    "SourceConfig",
    "StoreError",
]
