# job_tracker/http_client.py
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import BinaryIO

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

LOG = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "JobTracker/0.1 (+https://example.invalid)"


class FetchError(Exception):
    """
    A career page could not be retrieved.

    status is the HTTP status for non-2xx responses, None for transport
    failures (DNS, refused connection, timeout, ...).
    """

    def __init__(self, url: str, *, status: int | None = None, cause: BaseException | None = None) -> None:
        self.url = url
        self.status = status
        self.cause = cause
        if status is not None:
            msg = f"unexpected status code {status} for {url}"
        else:
            msg = f"failed to fetch {url}: {cause!r}"
        super().__init__(msg)


@dataclass(frozen=True)
class FetchedPage:
    url: str
    status: int
    body: BinaryIO


class HttpClient:
    """Shared HTTP session for career pages. One attempt per fetch, no retries."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.timeout = float(timeout)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

        # Single attempt per fetch; a failed source waits for the next run.
        adapter = HTTPAdapter(max_retries=Retry(total=0, read=False), pool_connections=10, pool_maxsize=20)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def fetch(self, url: str, *, timeout: float | None = None) -> FetchedPage:
        """
        GET `url` once and return the body as a binary stream.
        Raises FetchError for transport errors and non-2xx statuses.
        """
        try:
            resp = self.session.get(url, timeout=timeout or self.timeout)
        except requests.RequestException as e:
            raise FetchError(url, cause=e) from e

        with resp:
            if not 200 <= resp.status_code < 300:
                raise FetchError(url, status=resp.status_code)
            body = resp.content

        LOG.debug("fetched %s (%d bytes, status=%d)", url, len(body), resp.status_code)
        return FetchedPage(url=url, status=resp.status_code, body=io.BytesIO(body))

    def close(self) -> None:
        try:
            self.session.close()
        except Exception:
            LOG.debug("HttpClient.close() swallow", exc_info=True)
