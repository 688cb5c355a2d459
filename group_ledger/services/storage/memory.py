"""
In-Memory Storage

Used by the tests and by the "memory" backend for throwaway sessions.
Snapshots are round-tripped through JSON so that what comes back out of
load() looks exactly like what a persistent backend would return.
"""

import json
from typing import Optional
from uuid import UUID

from group_ledger.models.audit import AuditEvent
from group_ledger.models.group import GroupData
from group_ledger.services.storage.interface import (
    AuditStorageInterface,
    GroupDataStorageInterface,
)
from group_ledger.services.storage.migrations import migrate_group_data


class InMemoryGroupStore(GroupDataStorageInterface):
    """Keeps the last saved snapshot as a JSON string."""

    def __init__(self, initial: Optional[GroupData] = None):
        self._payload: Optional[str] = None
        self.save_count = 0
        if initial is not None:
            self._payload = json.dumps(initial.to_json_dict())

    async def load(self) -> Optional[GroupData]:
        if self._payload is None:
            return None
        return migrate_group_data(json.loads(self._payload))

    async def save(self, data: GroupData) -> bool:
        self._payload = json.dumps(data.to_json_dict())
        self.save_count += 1
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
