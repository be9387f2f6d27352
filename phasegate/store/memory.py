"""In-process record store, used for demos and tests."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from phasegate.exceptions import ConcurrentModificationError, NotFoundError
from phasegate.models import Collection, Record, model_for
from phasegate.store.base import Criteria, RecordStore, matches


class InMemoryRecordStore(RecordStore):
    def __init__(self, records: Optional[Dict[Collection, Iterable[Record]]] = None):
        self._collections: Dict[Collection, Dict[str, Record]] = defaultdict(dict)
        self._lock = asyncio.Lock()
        for collection, items in (records or {}).items():
            for record in items:
                self.add(collection, record)

    def add(self, collection: Collection, record: Record) -> Record:
        """Insert or replace a record synchronously (fixture setup)."""
        model = model_for(collection)
        if not isinstance(record, model):
            record = model.model_validate(record.model_dump())
        self._collections[collection][record.id] = record
        return record

    def snapshot(self, collection: Collection) -> List[Record]:
        return list(self._collections[collection].values())

    async def filter(self, collection: Collection, criteria: Optional[Criteria] = None) -> List[Record]:
        return [record for record in self._collections[collection].values() if matches(record, criteria)]

    async def get(self, collection: Collection, record_id: str) -> Record:
        try:
            return self._collections[collection][record_id]
        except KeyError:
            raise NotFoundError(collection.value, record_id) from None

    async def create(self, collection: Collection, record: Record) -> Record:
        async with self._lock:
            return self.add(collection, record)

    async def update(
        self,
        collection: Collection,
        record_id: str,
        fields: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Record:
        async with self._lock:
            current = await self.get(collection, record_id)
            if expected_version is not None and current.version != expected_version:
                raise ConcurrentModificationError(
                    collection.value, record_id, expected_version, current.version
                )
            data = current.model_dump()
            data.update(fields)
            data["version"] = current.version + 1
            if "updated_at" in type(current).model_fields:
                data["updated_at"] = datetime.now(timezone.utc)
            updated = model_for(collection).model_validate(data)
            self._collections[collection][record_id] = updated
            return updated
