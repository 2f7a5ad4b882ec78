from __future__ import annotations

from collections.abc import Callable

from ..render import subject_for, text_to_html
from .base import BaseNotifier, NotifyError
from .registry import register

SendFunc = Callable[..., str]


def _default_sender() -> SendFunc:
    from service.emailer import send_text

    return send_text


@register
class EmailNotifier(BaseNotifier):
    """
    SMTP delivery through service.emailer.

    The message's first line becomes the subject; the body goes out as
    plain text with an HTML alternative.
    """

    kind = "email"

    def __init__(self, send: SendFunc | None = None) -> None:
        self._send = send

    def send(self, recipient: str, text: str) -> None:
        from service.emailer import EmailSendError

        sender = self._send or _default_sender()
        try:
            sender(subject=subject_for(text), text=text, html=text_to_html(text), to=[recipient])
        except EmailSendError as e:
            raise NotifyError(f"email to {recipient} failed: {e}") from e
