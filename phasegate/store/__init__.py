"""Record store contract and adapters."""

from phasegate.store.base import (
    Criteria,
    In,
    NotEqual,
    RecordStore,
    RecordWriter,
    TraceRecorder,
    isin,
    matches,
    ne,
)
from phasegate.store.memory import InMemoryRecordStore

__all__ = [
    "Criteria",
    "In",
    "InMemoryRecordStore",
    "NotEqual",
    "RecordStore",
    "RecordWriter",
    "TraceRecorder",
    "isin",
    "matches",
    "ne",
]
