"""
Local JSON File Storage

The group snapshot lives in one JSON file, written whole on every save.
Writes go to a temporary sibling first and are renamed into place, so a
crash leaves either the previous snapshot or the new one, never half of
each. Losing the very last write on a crash is acceptable.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Optional

from group_ledger.models.group import GroupData
from group_ledger.services.storage.interface import (
    CorruptDataError,
    GroupDataStorageInterface,
    StorageError,
)
from group_ledger.services.storage.migrations import (
    MigrationError,
    migrate_group_data,
)


class JsonFileGroupStore(GroupDataStorageInterface):
    """Group data persisted to a single local JSON file."""

    def __init__(self, path: str | Path, migration_defaults: Optional[dict] = None):
        self._path = Path(path)
        self._migration_defaults = migration_defaults or {}

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Optional[dict]:
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except json.JSONDecodeError as e:
            raise CorruptDataError(f"Invalid JSON in {self._path}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {self._path}: {e}") from e

    def _write(self, payload: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self._path)

    async def load(self) -> Optional[GroupData]:
        raw = await asyncio.to_thread(self._read)
        if raw is None:
            return None
        try:
            return migrate_group_data(raw, **self._migration_defaults)
        except MigrationError as e:
            raise CorruptDataError(str(e)) from e

    async def save(self, data: GroupData) -> bool:
        try:
            await asyncio.to_thread(self._write, data.to_json_dict())
            return True
        except OSError as e:
            raise StorageError(f"Failed to save group data: {e}") from e
