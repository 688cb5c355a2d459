"""Services package."""

from group_ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    CorruptDataError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGroupStore,
    GroupDataStorageInterface,
    InMemoryAuditStorage,
    InMemoryGroupStore,
    JsonFileGroupStore,
    MigrationError,
    StorageError,
    default_group_data,
    migrate_group_data,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "CorruptDataError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsGroupStore",
    "GroupDataStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryGroupStore",
    "JsonFileGroupStore",
    "MigrationError",
    "StorageError",
    "default_group_data",
    "migrate_group_data",
]
