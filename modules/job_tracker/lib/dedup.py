from __future__ import annotations

from .models import Posting
from .store.base import BaseStore


class NoveltyResolver:
    """
    Decide whether a candidate posting has been seen before, keyed on
    canonical_url.

    Insert-if-absent, not atomic: two resolvers racing on the same URL rely
    on the scheduler's run lock (and, for SqliteStore, the UNIQUE index,
    which turns the losing insert into a StoreError).
    """

    def __init__(self, store: BaseStore) -> None:
        self.store = store

    def resolve(self, candidate: Posting) -> Posting | None:
        """
        Return the freshly stored posting if the URL is new, else None.
        An existing record is never updated; first-seen values win.
        StoreError propagates.
        """
        if self.store.find_by_url(candidate.canonical_url) is not None:
            return None
        return self.store.create(candidate)
