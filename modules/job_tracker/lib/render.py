from __future__ import annotations

from collections.abc import Sequence

from . import utils
from .models import Posting, SourceConfig

POSTING_HEADER = "New Intern Position Found!"
SUMMARY_HEADER = "Intern Job Tracker Update"
NO_NEW_LINE = "No new postings found"

# Source names listed in the summary before collapsing into "+N more".
MAX_LISTED_SOURCES = 4


def format_posting_message(posting: Posting) -> str:
    """
    Plain-text notification for one new posting:

        New Intern Position Found!

        Company: Acme
        Title: Software Intern
        Location: Remote        (only when known)
        Apply: https://acme.test/jobs/1
    """
    lines = [POSTING_HEADER, "", f"Company: {posting.company}", f"Title: {posting.title}"]
    if posting.location:
        lines.append(f"Location: {posting.location}")
    lines.append(f"Apply: {posting.canonical_url}")
    return "\n".join(lines) + "\n"


def format_no_new_message(
    sources: Sequence[SourceConfig],
    *,
    sources_checked: int,
    postings_seen: int,
) -> str:
    """Plain-text summary sent when a run finds nothing new."""
    return "\n".join([
        SUMMARY_HEADER,
        "",
        f"Checked {sources_checked} companies",
        f"Found {postings_seen} job listings",
        NO_NEW_LINE,
        "",
        f"Tracking: {source_names(sources)}",
    ])


def source_names(sources: Sequence[SourceConfig], limit: int = MAX_LISTED_SOURCES) -> str:
    """'A, B, C, D +2 more' style list of source names."""
    if not sources:
        return ""
    names = ", ".join(s.name for s in sources[:limit])
    if len(sources) > limit:
        names += f" +{len(sources) - limit} more"
    return names


def subject_for(text: str) -> str:
    """First non-empty line of a message, used as the e-mail subject."""
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return SUMMARY_HEADER


def text_to_html(text: str) -> str:
    """
    Minimal HTML alternative for a plain-text message: escaped lines inside
    a <div>, with `Apply:` URLs turned into links.
    """
    parts: list[str] = ["<div>"]
    for line in text.splitlines():
        if line.startswith("Apply: "):
            url = line[len("Apply: "):].strip()
            parts.append(f'<p>Apply: <a href="{utils.esc(url)}">{utils.esc(url)}</a></p>')
        elif line.strip():
            parts.append(f"<p>{utils.esc(line)}</p>")
    parts.append("</div>")
    return "\n".join(parts)
