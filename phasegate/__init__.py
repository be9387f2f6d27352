"""Phase-gate lifecycle engine for production work packages."""

from phasegate.exceptions import (
    ConcurrentModificationError,
    ConfigurationError,
    EvaluationCancelledError,
    EvaluationError,
    EvaluationTimeoutError,
    NotFoundError,
    PhaseGateError,
    StoreUnavailableError,
)
from phasegate.models import GateContext, GateResult, Phase, TransitionTrace, WorkPackage
from phasegate.orchestration import PhaseGateEngine

__version__ = "0.1.0"

__all__ = [
    "ConcurrentModificationError",
    "ConfigurationError",
    "EvaluationCancelledError",
    "EvaluationError",
    "EvaluationTimeoutError",
    "GateContext",
    "GateResult",
    "NotFoundError",
    "Phase",
    "PhaseGateEngine",
    "PhaseGateError",
    "StoreUnavailableError",
    "TransitionTrace",
    "WorkPackage",
]
