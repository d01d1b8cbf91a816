"""Persistence subsystem for Incremental Faith.

This package provides:
- Key-value stores (JSON files on disk, in-memory for tests)
- A PersistenceAdapter that saves/loads the engine state as one versioned
  JSON record and applies offline catch-up on load
- Platform-aware resolution of the save directory
"""

from .adapter import SCHEMA_VERSION, LoadReport, PersistenceAdapter
from .paths import default_data_dir
from .storage import InMemoryStore, JsonFileStore, KeyValueStore

__all__ = [
    "SCHEMA_VERSION",
    "LoadReport",
    "PersistenceAdapter",
    "default_data_dir",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
]
