"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger core free of any persistence mechanics
2. Use in-memory storage for testing
3. Swap a local JSON file for Google Sheets (or a database) later
4. Keep business logic decoupled from storage implementation

The group is persisted as ONE document: load the whole GroupData,
save the whole GroupData. There is no partial update.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from group_ledger.models.audit import AuditEvent
from group_ledger.models.group import GroupData


class GroupDataStorageInterface(ABC):
    """
    Abstract interface for group data persistence.

    Any storage implementation (JSON file, Google Sheets, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def load(self) -> Optional[GroupData]:
        """
        Load the most recently saved group data.

        Implementations run the schema migration before returning,
        so the core only ever sees current-version data.

        Returns:
            The group data, or None if nothing has been saved yet

        Raises:
            CorruptDataError: If stored data cannot be parsed
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def save(self, data: GroupData) -> bool:
        """
        Persist a full snapshot of the group data.

        Args:
            data: The snapshot to save

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one mutation and its save).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'member', 'loan')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptDataError(StorageError):
    """Stored data exists but cannot be parsed into GroupData."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
