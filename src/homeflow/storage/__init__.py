"""HomeFlow storage layer."""

from homeflow.storage.base import StorageBackend
from homeflow.storage.sqlite_store import SQLiteStore

__all__ = ["SQLiteStore", "StorageBackend"]
