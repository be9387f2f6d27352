"""SQLite-backed record store and transition trace audit log."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import aiosqlite

from phasegate.exceptions import (
    ConcurrentModificationError,
    NotFoundError,
    RecordStoreError,
    StoreUnavailableError,
)
from phasegate.models import Collection, Record, TransitionTrace, model_for
from phasegate.store.base import Criteria, In, NotEqual, RecordStore, plain_value
from phasegate.utils.logging_config import get_logger

logger = get_logger(__name__)

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _json_path(field_name: str) -> str:
    if not _FIELD_NAME.match(field_name):
        raise ValueError(f"Invalid criteria field name: {field_name!r}")
    return f"json_extract(data, '$.{field_name}')"


def build_where(collection: Collection, criteria: Optional[Criteria]) -> Tuple[str, List[Any]]:
    """Translate a criteria mapping into a WHERE clause over the JSON payload."""
    clauses = ["collection = ?"]
    params: List[Any] = [collection.value]
    for field_name, expected in (criteria or {}).items():
        column = _json_path(field_name)
        if isinstance(expected, In):
            values = [plain_value(v) for v in expected.values]
            if not values:
                clauses.append("0")
                continue
            clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        elif isinstance(expected, NotEqual):
            clauses.append(f"({column} IS NULL OR {column} != ?)")
            params.append(plain_value(expected.value))
        elif expected is None:
            clauses.append(f"{column} IS NULL")
        else:
            clauses.append(f"{column} = ?")
            params.append(plain_value(expected))
    return " AND ".join(clauses), params


def _row_to_record(collection: Collection, row: aiosqlite.Row) -> Record:
    data = json.loads(row["data"])
    data["version"] = int(row["version"])
    return model_for(collection).model_validate(data)


def _serialize(record: Record) -> str:
    return json.dumps(record.model_dump(mode="json", exclude={"version"}), sort_keys=True)


class SqliteRecordStore(RecordStore):
    """Record store over a single aiosqlite connection (see ``get_db``)."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db
        self.db.row_factory = aiosqlite.Row

    async def filter(self, collection: Collection, criteria: Optional[Criteria] = None) -> List[Record]:
        where, params = build_where(collection, criteria)
        try:
            cursor = await self.db.execute(
                f"SELECT record_id, version, data FROM records WHERE {where} ORDER BY rowid",
                params,
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(f"filter on {collection.value} failed: {e}") from e
        return [_row_to_record(collection, row) for row in rows]

    async def get(self, collection: Collection, record_id: str) -> Record:
        row = await self._fetch_row(collection, record_id)
        if row is None:
            raise NotFoundError(collection.value, record_id)
        return _row_to_record(collection, row)

    async def create(self, collection: Collection, record: Record) -> Record:
        record = model_for(collection).model_validate(record.model_dump())
        try:
            await self.db.execute(
                "INSERT INTO records (collection, record_id, version, data) VALUES (?, ?, ?, ?)",
                (collection.value, record.id, record.version, _serialize(record)),
            )
            await self.db.commit()
        except aiosqlite.IntegrityError as e:
            raise RecordStoreError(f"{collection.value} id={record.id} already exists") from e
        except aiosqlite.Error as e:
            raise StoreUnavailableError(f"create in {collection.value} failed: {e}") from e
        return record

    async def update(
        self,
        collection: Collection,
        record_id: str,
        fields: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Record:
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

        try:
            cursor = await self.db.execute(
                """
                UPDATE records
                SET data = ?, version = ?, updated_by = ?, updated_at = CURRENT_TIMESTAMP
                WHERE collection = ? AND record_id = ? AND version = ?
                """,
                (
                    _serialize(updated),
                    updated.version,
                    actor,
                    collection.value,
                    record_id,
                    current.version,
                ),
            )
            await self.db.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(f"update of {collection.value} id={record_id} failed: {e}") from e

        if cursor.rowcount == 0:
            row = await self._fetch_row(collection, record_id)
            if row is None:
                raise NotFoundError(collection.value, record_id)
            raise ConcurrentModificationError(
                collection.value, record_id, current.version, int(row["version"])
            )
        logger.debug(f"Updated {collection.value} {record_id} to version {updated.version} (actor={actor})")
        return updated

    async def _fetch_row(self, collection: Collection, record_id: str) -> Optional[aiosqlite.Row]:
        try:
            cursor = await self.db.execute(
                "SELECT record_id, version, data FROM records WHERE collection = ? AND record_id = ?",
                (collection.value, record_id),
            )
            return await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(f"read of {collection.value} id={record_id} failed: {e}") from e

    async def save_transition_trace(self, trace: TransitionTrace, actor: Optional[str] = None) -> None:
        try:
            await self.db.execute(
                """
                INSERT INTO transition_traces (
                    work_package_id, from_phase, to_phase, overall_pass, trace_json, actor, evaluated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    trace.work_package_id,
                    trace.from_phase.value,
                    trace.to_phase.value,
                    1 if trace.overall_pass else 0,
                    trace.model_dump_json(),
                    actor,
                    trace.timestamp.isoformat(),
                ),
            )
            await self.db.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(
                f"save of transition trace for {trace.work_package_id} failed: {e}"
            ) from e

    async def get_transition_traces(self, work_package_id: str) -> List[TransitionTrace]:
        try:
            cursor = await self.db.execute(
                """
                SELECT trace_json FROM transition_traces
                WHERE work_package_id = ?
                ORDER BY id
                """,
                (work_package_id,),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StoreUnavailableError(
                f"read of transition traces for {work_package_id} failed: {e}"
            ) from e
        return [TransitionTrace.model_validate_json(row[0]) for row in rows]
