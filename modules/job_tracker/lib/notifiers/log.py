from __future__ import annotations

import logging

from .. import logging_bridge
from .base import BaseNotifier
from .registry import register

LOG = logging.getLogger(__name__)


@register
class LogNotifier(BaseNotifier):
    """Dry-run transport: records the message in the activity log, delivers nothing."""

    kind = "log"

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send(self, recipient: str, text: str) -> None:
        self.sent.append((recipient, text))
        LOG.info("dry-run notification to %s:\n%s", recipient or "(none)", text)
        logging_bridge.activity({
            "component": "job_tracker.notifier",
            "op": "dry_run_send",
            "recipient": recipient,
            "text": text,
        })
