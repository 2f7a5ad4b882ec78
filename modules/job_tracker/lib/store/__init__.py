from __future__ import annotations

from .base import BaseStore, StoreError
from .memory import MemoryStore
from .sqlite import SqliteStore

__all__ = ["BaseStore", "MemoryStore", "SqliteStore", "StoreError"]
