"""Model exports for the engine boundaries."""

from phasegate.models.config import (
    EngineSettings,
    EvaluationConfig,
    GateContext,
    GatesConfig,
    LoggingConfig,
    RetryConfig,
    StoreConfig,
)
from phasegate.models.enums import (
    ARRIVED_DELIVERY_STATUSES,
    CLOSEOUT_TAG,
    OPEN_RFI_STATUSES,
    Collection,
    DeliveryStatus,
    DrawingSetStatus,
    Phase,
    ProjectStatus,
    QCStatus,
    RFIStatus,
    WorkStatus,
)
from phasegate.models.records import (
    RECORD_MODELS,
    RFI,
    Constraint,
    Delivery,
    Document,
    DrawingSet,
    ErectionReadiness,
    FabricationPackage,
    FieldInstall,
    Project,
    PunchItem,
    QCChecklist,
    Record,
    WorkPackage,
    model_for,
)
from phasegate.models.workflow import GateResult, TransitionOutcome, TransitionTrace

__all__ = [
    "ARRIVED_DELIVERY_STATUSES",
    "CLOSEOUT_TAG",
    "Collection",
    "Constraint",
    "Delivery",
    "DeliveryStatus",
    "Document",
    "DrawingSet",
    "DrawingSetStatus",
    "EngineSettings",
    "ErectionReadiness",
    "EvaluationConfig",
    "FabricationPackage",
    "FieldInstall",
    "GateContext",
    "GateResult",
    "GatesConfig",
    "LoggingConfig",
    "OPEN_RFI_STATUSES",
    "Phase",
    "Project",
    "ProjectStatus",
    "PunchItem",
    "QCChecklist",
    "QCStatus",
    "RECORD_MODELS",
    "RFI",
    "RFIStatus",
    "Record",
    "RetryConfig",
    "StoreConfig",
    "TransitionOutcome",
    "TransitionTrace",
    "WorkPackage",
    "WorkStatus",
    "model_for",
]
