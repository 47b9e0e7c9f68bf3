"""Ledger persistence: abstract store, in-memory and DuckDB backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from predledger.storage.base import LedgerStore
from predledger.storage.duck import DuckDBStore
from predledger.storage.memory import MemoryStore

if TYPE_CHECKING:
    from predledger.config import Settings

__all__ = [
    "DuckDBStore",
    "LedgerStore",
    "MemoryStore",
    "open_store",
]


def open_store(settings: Settings) -> LedgerStore:
    """Return the store backend named in [storage].backend."""
    backend = settings.storage_backend
    if backend == "memory":
        return MemoryStore()
    if backend == "duckdb":
        return DuckDBStore.open(settings.db_path)
    raise ValueError(f"Unknown storage backend: {backend}")
