# modules/job_tracker/lib/notifiers/__init__.py
from __future__ import annotations

# Importing the transports registers them by kind.
from .base import BaseNotifier, NotifyError
from .smtp import EmailNotifier
from .imessage import IMessageNotifier
from .log import LogNotifier
from .registry import all_kinds, create, get, register

__all__ = [
    "BaseNotifier",
    "EmailNotifier",
    "IMessageNotifier",
    "LogNotifier",
    "NotifyError",
    "all_kinds",
    "create",
    "get",
    "register",
]
