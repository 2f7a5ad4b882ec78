# service/emailer.py
from __future__ import annotations

import os
import smtplib
import ssl
import time
from collections.abc import Iterable
from email.message import EmailMessage
from email.utils import formatdate, make_msgid

# ---- Errors -----------------------------------------------------------------


class EmailSendError(RuntimeError):
    """Raised when an email cannot be delivered."""


# ---- Env / Settings ----------------------------------------------------------


def _getenv_any(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v != "":
            return v
    return default


def _resolve_smtp_settings() -> dict:
    """
    Resolve SMTP settings from env.

      - SMTP_HOST / SMTP_PORT (default 127.0.0.1:1025, a local bridge/relay)
      - SMTP_USERNAME / SMTP_PASSWORD
      - SMTP_USE_SSL = "true" | "false"
      - SMTP_STARTTLS = "true" | "false" | "auto" (default)
      - SMTP_FROM / SMTP_FROM_NAME (default: the username)
      - SMTP_INSECURE_TLS = "true" to skip certificate checks (local bridges)
    """
    host = _getenv_any("SMTP_HOST", default="127.0.0.1")
    port = int(_getenv_any("SMTP_PORT", default="1025") or 1025)

    username = _getenv_any("SMTP_USERNAME")
    password = _getenv_any("SMTP_PASSWORD")

    use_ssl = (_getenv_any("SMTP_USE_SSL", default="false") or "false").strip().lower() == "true"
    starttls = (_getenv_any("SMTP_STARTTLS", default="auto") or "auto").strip().lower()
    if use_ssl:
        starttls = "false"

    return {
        "host": host,
        "port": port,
        "username": username,
        "password": password,
        "use_ssl": use_ssl,
        "starttls": starttls,  # "true" | "false" | "auto"
        "default_from_addr": _getenv_any("SMTP_FROM", default=username or ""),
        "default_from_name": _getenv_any("SMTP_FROM_NAME", default="Job Tracker"),
        "insecure_tls": (_getenv_any("SMTP_INSECURE_TLS", default="false") or "false").strip().lower() == "true",
    }


# ---- Helpers ----------------------------------------------------------------


def _as_list(values: Iterable[str] | str | None) -> list[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    return [v for v in (s.strip() for s in values if isinstance(s, str)) if v]


def _should_starttls(port: int, starttls_setting: str) -> bool:
    if starttls_setting == "true":
        return True
    if starttls_setting == "false":
        return False
    # "auto": STARTTLS except on the usual cleartext relay ports
    return port not in (25, 1025, 2525)


def _tls_context(insecure: bool) -> ssl.SSLContext:
    return ssl._create_unverified_context() if insecure else ssl.create_default_context()


def _build_message(
    *,
    subject: str,
    text: str,
    html: str | None,
    to: list[str],
    from_name: str | None,
    from_addr: str,
) -> EmailMessage:
    if not subject or not subject.strip():
        raise EmailSendError("Missing subject.")
    if not text or not text.strip():
        raise EmailSendError("Missing body.")
    if not to:
        raise EmailSendError("No recipients.")

    msg = EmailMessage()
    msg["From"] = f"{from_name} <{from_addr}>" if from_name else from_addr
    msg["To"] = ", ".join(to)
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid()

    # Plain text first; HTML as the preferred alternative when given.
    msg.set_content(text)
    if html:
        msg.add_alternative(html, subtype="html", charset="utf-8")
    return msg


def _open_smtp(settings: dict) -> smtplib.SMTP:
    host = settings["host"]
    port = settings["port"]
    context = _tls_context(settings["insecure_tls"])
    if settings["use_ssl"]:
        return smtplib.SMTP_SSL(host, port, context=context, timeout=30)
    server = smtplib.SMTP(host, port, timeout=30)
    server.ehlo()
    if _should_starttls(port, settings["starttls"]):
        server.starttls(context=context)
        server.ehlo()
    return server


def _send_via_smtp(msg: EmailMessage, *, rcpt_to: list[str], settings: dict) -> None:
    if not settings["host"]:
        raise EmailSendError("Missing SMTP host. Set SMTP_HOST.")

    try:
        with _open_smtp(settings) as server:
            if settings["username"] and settings["password"]:
                server.login(settings["username"], settings["password"])
            server.send_message(msg, to_addrs=rcpt_to)
    except EmailSendError:
        raise
    except smtplib.SMTPResponseException as e:
        raise EmailSendError(f"SMTP send failed ({e.smtp_code}): {e}") from e
    except Exception as e:
        raise EmailSendError(f"SMTP send failed: {e}") from e


# ---- Public API --------------------------------------------------------------


def send_text(
    *,
    subject: str,
    text: str,
    to: Iterable[str] | str,
    html: str | None = None,
) -> str:
    """
    Send a plain-text email (optionally with an HTML alternative).

    Returns:
        message_id (str): RFC-822 Message-ID generated by the sender.

    Raises:
        EmailSendError on any failure (connection/auth/SMTP/validation/etc).
    """
    settings = _resolve_smtp_settings()
    to_l = _as_list(to)

    from_addr = (settings["default_from_addr"] or "").strip()
    if not from_addr:
        raise EmailSendError("No from address resolved. Set SMTP_FROM or SMTP_USERNAME.")

    msg = _build_message(
        subject=subject,
        text=text,
        html=html,
        to=to_l,
        from_name=(settings["default_from_name"] or "").strip(),
        from_addr=from_addr,
    )

    # Transient 4xx replies get a short backoff; everything else fails fast.
    attempts = 3
    for attempt in range(attempts):
        try:
            _send_via_smtp(msg, rcpt_to=to_l, settings=settings)
            return str(msg["Message-ID"])
        except EmailSendError as e:  # noqa: PERF203
            cause = e.__cause__
            transient = isinstance(cause, smtplib.SMTPResponseException) and 400 <= cause.smtp_code < 500
            if not transient or attempt == attempts - 1:
                raise
            time.sleep(2**attempt)  # 1s, 2s
    raise EmailSendError("Permanent send failure after retries")


def ping() -> bool:
    """
    Lightweight health check against the SMTP relay.
    Returns True if connect (+ login when configured) succeeds; raises EmailSendError otherwise.
    """
    settings = _resolve_smtp_settings()
    try:
        with _open_smtp(settings) as server:
            if settings["username"] and settings["password"]:
                server.login(settings["username"], settings["password"])
        return True
    except Exception as e:
        raise EmailSendError(f"SMTP health check failed: {e}") from e
