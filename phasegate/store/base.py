"""Record store contract consumed by the engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from phasegate.models import Collection, Record, TransitionTrace


@dataclass(frozen=True)
class In:
    values: tuple


@dataclass(frozen=True)
class NotEqual:
    value: Any


def isin(values: Sequence[Any]) -> In:
    """Inclusion predicate: field value is one of ``values``."""
    return In(tuple(values))


def ne(value: Any) -> NotEqual:
    """Inequality predicate. A missing field counts as not equal."""
    return NotEqual(value)


Criteria = Mapping[str, Any]


def plain_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def matches(record: Record, criteria: Optional[Criteria]) -> bool:
    """Evaluate a conjunction of field predicates against a record."""
    for field_name, expected in (criteria or {}).items():
        actual = plain_value(getattr(record, field_name, None))
        if isinstance(expected, In):
            if actual not in {plain_value(v) for v in expected.values}:
                return False
        elif isinstance(expected, NotEqual):
            if actual == plain_value(expected.value):
                return False
        elif actual != plain_value(expected):
            return False
    return True


class RecordStore(ABC):
    """Typed query/create/update access to domain collections.

    ``filter`` must return an empty list (not raise) when nothing matches.
    Transport failures are raised as StoreUnavailableError.
    """

    @abstractmethod
    async def filter(self, collection: Collection, criteria: Optional[Criteria] = None) -> List[Record]:
        ...

    @abstractmethod
    async def get(self, collection: Collection, record_id: str) -> Record:
        ...

    @abstractmethod
    async def create(self, collection: Collection, record: Record) -> Record:
        ...

    @abstractmethod
    async def update(
        self,
        collection: Collection,
        record_id: str,
        fields: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Record:
        """Apply a partial update and bump the record version.

        Raises:
            NotFoundError: record_id does not exist
            ConcurrentModificationError: expected_version does not match
        """
        ...

    def writer(self, actor: str) -> "RecordWriter":
        return RecordWriter(self, actor)


class RecordWriter:
    """Write capability handed explicitly to the executor.

    Holding a RecordWriter is what permits phase changes; evaluation only ever
    receives the read side of the store.
    """

    def __init__(self, store: RecordStore, actor: str):
        if not actor:
            raise ValueError("RecordWriter requires a non-empty actor")
        self.store = store
        self.actor = actor

    async def update(
        self,
        collection: Collection,
        record_id: str,
        fields: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> Record:
        return await self.store.update(
            collection,
            record_id,
            fields,
            expected_version=expected_version,
            actor=self.actor,
        )


class TraceRecorder(Protocol):
    """Audit sink for applied transitions. Failures are reported as RecordStoreError."""

    async def save_transition_trace(self, trace: TransitionTrace, actor: Optional[str] = None) -> None:
        ...
