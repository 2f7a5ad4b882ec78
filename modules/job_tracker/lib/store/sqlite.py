from __future__ import annotations

import contextlib
import os
import sqlite3
from collections.abc import Iterator
from dataclasses import replace
from typing import Any

from ..logging_bridge import error as log_error
from ..models import Posting, RunStatus, RunSummary, SourceConfig
from ..utils import from_iso, to_iso, utcnow
from .base import BaseStore, StoreError

_POSTING_COLS = "id, company, title, canonical_url, location, discovered_at, notified"
_SOURCE_COLS = "id, name, career_page_url, search_term, enabled"
_RUN_COLS = (
    "id, started_at, sources_checked, postings_seen, new_postings, "
    "notifications_sent, duration_ms, status, error_detail"
)


class SqliteStore(BaseStore):
    """
    SQLite-backed store. One short-lived connection per operation, so a
    single instance is safe to share between the scheduler thread and the
    CLI thread.
    """

    def __init__(self, sqlite_path: str) -> None:
        self.sqlite_path = sqlite_path
        self.init_db()

    # ---- schema -----------------------------------------------------------

    def init_db(self) -> None:
        """
        Ensure the SQLite database and schema exist.
        Safe to call multiple times.
        """
        _ensure_dir(self.sqlite_path)
        with self._conn("init_db") as conn:
            _ensure_schema(conn)

    # ---- orchestration ----------------------------------------------------

    def create(self, posting: Posting) -> Posting:
        discovered_at = utcnow()
        with self._conn("create") as conn:
            cur = conn.execute(
                """
                INSERT INTO postings (company, title, canonical_url, location, discovered_at, notified)
                VALUES (?, ?, ?, ?, ?, 0)
                """,
                (
                    posting.company.strip(),
                    posting.title.strip(),
                    posting.canonical_url.strip(),
                    posting.location,
                    to_iso(discovered_at),
                ),
            )
            new_id = int(cur.lastrowid)
        return replace(posting, id=new_id, discovered_at=discovered_at, notified=False)

    def find_by_url(self, url: str) -> Posting | None:
        with self._conn("find_by_url") as conn:
            row = conn.execute(
                f"SELECT {_POSTING_COLS} FROM postings WHERE canonical_url = ?",
                (url.strip(),),
            ).fetchone()
        return _row_to_posting(row) if row else None

    def mark_notified(self, posting_id: int) -> None:
        # Monotonic: the only write to `notified` anywhere is this 0 -> 1.
        with self._conn("mark_notified") as conn:
            conn.execute("UPDATE postings SET notified = 1 WHERE id = ?", (posting_id,))

    def list_enabled_sources(self) -> list[SourceConfig]:
        with self._conn("list_enabled_sources") as conn:
            rows = conn.execute(f"SELECT {_SOURCE_COLS} FROM sources WHERE enabled = 1 ORDER BY name").fetchall()
        return [_row_to_source(r) for r in rows]

    def append_run_summary(self, summary: RunSummary) -> RunSummary:
        with self._conn("append_run_summary") as conn:
            cur = conn.execute(
                """
                INSERT INTO run_summaries (started_at, sources_checked, postings_seen, new_postings,
                                           notifications_sent, duration_ms, status, error_detail)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    to_iso(summary.started_at),
                    summary.sources_checked,
                    summary.postings_seen,
                    summary.new_postings,
                    summary.notifications_sent,
                    summary.duration_ms,
                    summary.status.value,
                    summary.error_detail,
                ),
            )
            new_id = int(cur.lastrowid)
        return replace(summary, id=new_id)

    # ---- administration / reads -------------------------------------------

    def list_sources(self) -> list[SourceConfig]:
        with self._conn("list_sources") as conn:
            rows = conn.execute(f"SELECT {_SOURCE_COLS} FROM sources ORDER BY name").fetchall()
        return [_row_to_source(r) for r in rows]

    def add_source(self, source: SourceConfig) -> SourceConfig:
        with self._conn("add_source") as conn:
            cur = conn.execute(
                "INSERT INTO sources (name, career_page_url, search_term, enabled, created_at) VALUES (?, ?, ?, ?, ?)",
                (
                    source.name.strip(),
                    source.career_page_url.strip(),
                    source.search_term,
                    1 if source.enabled else 0,
                    to_iso(utcnow()),
                ),
            )
            new_id = int(cur.lastrowid)
        return replace(source, id=new_id)

    def set_source_enabled(self, name: str, enabled: bool) -> bool:
        with self._conn("set_source_enabled") as conn:
            cur = conn.execute("UPDATE sources SET enabled = ? WHERE name = ?", (1 if enabled else 0, name))
            return cur.rowcount > 0

    def remove_source(self, name: str) -> bool:
        with self._conn("remove_source") as conn:
            cur = conn.execute("DELETE FROM sources WHERE name = ?", (name,))
            return cur.rowcount > 0

    def get_posting(self, posting_id: int) -> Posting | None:
        with self._conn("get_posting") as conn:
            row = conn.execute(f"SELECT {_POSTING_COLS} FROM postings WHERE id = ?", (posting_id,)).fetchone()
        return _row_to_posting(row) if row else None

    def list_postings(self, limit: int | None = None) -> list[Posting]:
        sql = f"SELECT {_POSTING_COLS} FROM postings ORDER BY discovered_at DESC, id DESC"
        params: tuple[Any, ...] = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (int(limit),)
        with self._conn("list_postings") as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_posting(r) for r in rows]

    def list_unnotified(self) -> list[Posting]:
        with self._conn("list_unnotified") as conn:
            rows = conn.execute(f"SELECT {_POSTING_COLS} FROM postings WHERE notified = 0 ORDER BY id").fetchall()
        return [_row_to_posting(r) for r in rows]

    def recent_runs(self, limit: int = 20) -> list[RunSummary]:
        with self._conn("recent_runs") as conn:
            rows = conn.execute(
                f"SELECT {_RUN_COLS} FROM run_summaries ORDER BY started_at DESC, id DESC LIMIT ?",
                (int(limit),),
            ).fetchall()
        return [_row_to_run(r) for r in rows]

    def run_stats(self) -> dict[str, Any]:
        with self._conn("run_stats") as conn:
            total, ok, new_total, avg_ms, last_run = conn.execute(
                """
                SELECT COUNT(*),
                       COALESCE(SUM(CASE WHEN status = 'success' THEN 1 ELSE 0 END), 0),
                       COALESCE(SUM(new_postings), 0),
                       COALESCE(AVG(duration_ms), 0),
                       MAX(started_at)
                  FROM run_summaries
                """
            ).fetchone()
        return {
            "total_runs": int(total),
            "successful_runs": int(ok),
            "total_new_postings": int(new_total),
            "avg_duration_ms": float(avg_ms),
            "last_run": last_run,
        }

    # ---- Nice-to-have helpers for tests & diagnostics ----------------------

    def count_postings(self) -> int:
        with self._conn("count_postings") as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM postings").fetchone()
        return int(n or 0)

    # ---- Internal utilities -----------------------------------------------

    @contextlib.contextmanager
    def _conn(self, op: str) -> Iterator[sqlite3.Connection]:
        """
        Open a connection, commit on success, and translate sqlite errors into
        StoreError (with a structured error record).
        """
        try:
            conn = _connect(self.sqlite_path)
        except sqlite3.Error as e:
            self._fail(op, e)
        try:
            _apply_pragmas(conn)
            with conn:
                yield conn
        except sqlite3.Error as e:
            self._fail(op, e)
        finally:
            conn.close()

    def _fail(self, op: str, e: sqlite3.Error) -> None:
        log_error({
            "component": "job_tracker.store",
            "op": op,
            "sqlite_path": self.sqlite_path,
            "error": repr(e),
        })
        raise StoreError(f"{op} failed: {e}") from e


def reset_db(sqlite_path: str) -> None:
    """
    Remove the DB file entirely (for pytest fixtures).
    Safe if it doesn't exist.
    """
    for suffix in ("", "-wal", "-shm"):
        with contextlib.suppress(FileNotFoundError):
            os.remove(sqlite_path + suffix)


def _ensure_dir(sqlite_path: str) -> None:
    d = os.path.dirname(os.path.abspath(sqlite_path)) or "."
    os.makedirs(d, exist_ok=True)


def _connect(sqlite_path: str) -> sqlite3.Connection:
    return sqlite3.connect(sqlite_path, timeout=30.0)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    # Reasonable defaults for small append-mostly tables
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA temp_store=MEMORY;")


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS postings (
          id INTEGER PRIMARY KEY,
          company TEXT NOT NULL,
          title TEXT NOT NULL,
          canonical_url TEXT NOT NULL,
          location TEXT,
          discovered_at TEXT NOT NULL,
          notified INTEGER NOT NULL DEFAULT 0
        );
        """
    )
    conn.execute("CREATE UNIQUE INDEX IF NOT EXISTS ux_postings_url ON postings (canonical_url);")
    conn.execute("CREATE INDEX IF NOT EXISTS ix_postings_discovered ON postings (discovered_at);")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS sources (
          id INTEGER PRIMARY KEY,
          name TEXT NOT NULL UNIQUE,
          career_page_url TEXT NOT NULL,
          search_term TEXT NOT NULL DEFAULT 'intern',
          enabled INTEGER NOT NULL DEFAULT 1,
          created_at TEXT NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS run_summaries (
          id INTEGER PRIMARY KEY,
          started_at TEXT NOT NULL,
          sources_checked INTEGER NOT NULL DEFAULT 0,
          postings_seen INTEGER NOT NULL DEFAULT 0,
          new_postings INTEGER NOT NULL DEFAULT 0,
          notifications_sent INTEGER NOT NULL DEFAULT 0,
          duration_ms INTEGER NOT NULL DEFAULT 0,
          status TEXT NOT NULL,
          error_detail TEXT
        );
        """
    )


def _row_to_posting(row: tuple) -> Posting:
    pid, company, title, url, location, discovered_at, notified = row
    return Posting(
        id=int(pid),
        company=company,
        title=title,
        canonical_url=url,
        location=location,
        discovered_at=from_iso(discovered_at),
        notified=bool(notified),
    )


def _row_to_source(row: tuple) -> SourceConfig:
    sid, name, url, term, enabled = row
    return SourceConfig(id=int(sid), name=name, career_page_url=url, search_term=term, enabled=bool(enabled))


def _row_to_run(row: tuple) -> RunSummary:
    rid, started_at, checked, seen, new, sent, duration_ms, status, detail = row
    return RunSummary(
        id=int(rid),
        started_at=from_iso(started_at),  # type: ignore[arg-type]
        sources_checked=int(checked),
        postings_seen=int(seen),
        new_postings=int(new),
        notifications_sent=int(sent),
        duration_ms=int(duration_ms),
        status=RunStatus(status),
        error_detail=detail,
    )
