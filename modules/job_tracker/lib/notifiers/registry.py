from __future__ import annotations

from typing import Any

from .base import BaseNotifier

# Global in-process registry: kind -> notifier class
_REGISTRY: dict[str, type[BaseNotifier]] = {}


def register(cls: type[BaseNotifier]) -> type[BaseNotifier]:
    """
    Class decorator that registers a notifier class under cls.kind.
    Re-registering the same class is a no-op; a different class under a
    taken kind is rejected.
    """
    kind = getattr(cls, "kind", "") or ""
    if not isinstance(kind, str) or not kind.strip():
        raise ValueError(f"Cannot register notifier {cls!r}: missing/empty 'kind'.")
    key = kind.strip().lower()
    if key in _REGISTRY and _REGISTRY[key] is not cls:
        raise ValueError(f"Notifier kind {key!r} already registered to {_REGISTRY[key]!r}.")
    _REGISTRY[key] = cls
    return cls


def get(kind: str) -> type[BaseNotifier]:
    """
    Look up a notifier class by kind (case-insensitive).
    Raises KeyError if not found.
    """
    key = (kind or "").strip().lower()
    if key not in _REGISTRY:
        raise KeyError(f"No notifier registered for kind {kind!r}.")
    return _REGISTRY[key]


def create(kind: str, **kwargs: Any) -> BaseNotifier:
    return get(kind)(**kwargs)


def all_kinds() -> dict[str, type[BaseNotifier]]:
    return dict(_REGISTRY)
