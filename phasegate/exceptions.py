"""
Exception hierarchy for the phase-gate engine.

A blocked transition is never an exception; it is reported through
TransitionTrace.overall_pass. Everything here means the engine could not
reach (or persist) a decision.
"""

from typing import Optional


class PhaseGateError(Exception):
    """Base exception for engine errors."""

    pass


class ConfigurationError(PhaseGateError):
    """Raised for a defect in the state graph or gate registry. Never retried."""

    pass


class EvaluationError(PhaseGateError):
    """Raised when a gate could not determine readiness (dependency failure). Retryable."""

    def __init__(self, message: str, gate: Optional[str] = None, collection: Optional[str] = None):
        super().__init__(message)
        self.gate = gate
        self.collection = collection


class EvaluationCancelledError(PhaseGateError):
    """Raised when an evaluation is cancelled by the caller; partial results are discarded."""

    pass


class EvaluationTimeoutError(EvaluationCancelledError):
    """Raised when an evaluation exceeds its timeout."""

    pass


class RecordStoreError(PhaseGateError):
    """Base exception for record store failures."""

    pass


class NotFoundError(RecordStoreError):
    """Raised when a record id does not exist in a collection."""

    def __init__(self, collection: str, record_id: str):
        super().__init__(f"{collection} id={record_id} not found")
        self.collection = collection
        self.record_id = record_id


class ConcurrentModificationError(RecordStoreError):
    """Raised when an optimistic-lock check fails. The caller must re-fetch and retry."""

    def __init__(
        self,
        collection: str,
        record_id: str,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
    ):
        msg = f"{collection} id={record_id} was modified concurrently"
        if expected_version is not None:
            msg += f" (expected version {expected_version}, found {actual_version})"
        super().__init__(msg)
        self.collection = collection
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class StoreUnavailableError(RecordStoreError):
    """Raised when the store times out or the transport fails."""

    pass
