from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import Posting
from ..render import format_posting_message


class NotifyError(Exception):
    """A message could not be delivered to the recipient."""


class BaseNotifier(ABC):
    """
    Notification transport.

    Contract:
      - send(recipient, text) delivers one plain-text message or raises
        NotifyError. Transport-specific exceptions must not leak.
      - No retries here; the engine logs the failure and moves on.
    """

    # Concrete subclasses MUST set this to a stable string, e.g. "email", "imessage", "log"
    kind: str = ""

    @abstractmethod
    def send(self, recipient: str, text: str) -> None:
        raise NotImplementedError

    def notify_posting(self, recipient: str, posting: Posting) -> None:
        self.send(recipient, format_posting_message(posting))
