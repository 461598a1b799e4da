from __future__ import annotations

from supportdesk.core.config import Settings

from .memory import InMemoryStore
from .sql import SqlStore


def build_store(settings: Settings) -> InMemoryStore | SqlStore:
    """Pick the store adapter named by ``settings.storage_backend``."""

    backend = settings.storage_backend.lower()
    if backend == "memory":
        return InMemoryStore()
    if backend == "postgres":
        return SqlStore.from_dsn(settings.postgres_dsn)
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend!r}")
