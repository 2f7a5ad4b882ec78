"""
Link extraction for career pages.

The rule is deliberately token-based rather than tree-aware: an anchor's
title is the token that comes straight after its opening tag. That is the
anchor's first child when the child is a text node; anything else (a nested
element, a comment, or the closing tag of an empty anchor) means the link
has no title and is skipped.

    <a href="/jobs/1">Software Intern</a>         -> kept
    <a href="/jobs/2"><span>Intern</span></a>     -> skipped (next token is <span>)
    <a href="/jobs/3"></a>Intern                  -> skipped (next token is </a>)
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from typing import IO, NamedTuple, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup  # pip install beautifulsoup4 html5lib
from bs4.element import NavigableString, PreformattedString, Tag
from urllib3.exceptions import LocationParseError
from urllib3.util import parse_url

Markup = Union[str, bytes, IO[bytes], IO[str]]

# "%" not followed by two hex digits
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
# RFC 3986 reg-name characters, or a bracketed IP literal
_HOST_RE = re.compile(r"^(?:\[[0-9A-Za-z:.%]+\]|[A-Za-z0-9\-._~!$&'()*+,;=%]*)$")


class Link(NamedTuple):
    url: str
    title: str


def iter_links(markup: Markup, base_url: str, search_term: str) -> Iterator[Link]:
    """
    Yield (absolute_url, visible_text) for every anchor whose text contains
    `search_term` (case-insensitive), in document order, first occurrence of
    each resolved URL only.

    Never raises on bad markup or bad hrefs; they simply produce nothing.
    """
    soup = BeautifulSoup(markup, "html5lib")
    needle = (search_term or "").lower()
    seen: set[str] = set()

    for a in soup.find_all("a"):
        if a.find_parent("noscript") is not None:
            continue  # raw text to a tokenizer, never markup
        href = (a.get("href") or "").strip()
        text = _leading_text(a)
        if not href or not text or needle not in text.lower():
            continue

        try:
            url = urljoin(base_url, href)
        except ValueError:
            continue  # e.g. an unbalanced IPv6 bracket in the href
        if not _is_well_formed(url):
            continue

        if url in seen:
            continue
        seen.add(url)
        yield Link(url=url, title=text)


def extract_links(markup: Markup, base_url: str, search_term: str) -> list[Link]:
    return list(iter_links(markup, base_url, search_term))


def _leading_text(a: Tag) -> str:
    if not a.contents:
        return ""
    first = a.contents[0]
    if isinstance(first, NavigableString) and not isinstance(first, PreformattedString):
        return str(first).strip()
    return ""


def _is_well_formed(url: str) -> bool:
    """Reject broken %-escapes, control characters and invalid hosts."""
    if _BAD_ESCAPE_RE.search(url) or _CONTROL_RE.search(url):
        return False
    try:
        parsed = parse_url(url)
    except LocationParseError:
        return False
    return parsed.host is None or bool(_HOST_RE.match(parsed.host))
