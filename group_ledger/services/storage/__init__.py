"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Implements an in-memory store, a local JSON file and Google Sheets,
all behind the same interface.
"""

from group_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CorruptDataError,
    GroupDataStorageInterface,
    StorageError,
)
from group_ledger.services.storage.migrations import (
    MigrationError,
    default_group_data,
    migrate_group_data,
)
from group_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryGroupStore,
)
from group_ledger.services.storage.json_file import JsonFileGroupStore
from group_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGroupStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "GroupDataStorageInterface",
    # Exceptions
    "ConnectionError",
    "CorruptDataError",
    "MigrationError",
    "StorageError",
    # Migration
    "default_group_data",
    "migrate_group_data",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryGroupStore",
    "JsonFileGroupStore",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsGroupStore",
]
