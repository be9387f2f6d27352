"""Enum definitions for lifecycle phases and record statuses."""

from enum import Enum


class Phase(str, Enum):
    PLANNING = "planning"
    DETAILING = "detailing"
    FABRICATION = "fabrication"
    DELIVERY = "delivery"
    ERECTION = "erection"
    CLOSEOUT = "closeout"
    COMPLETED = "completed"

    @classmethod
    def ordered(cls) -> list["Phase"]:
        """Lifecycle order, planning first."""
        return list(cls)


class Collection(str, Enum):
    PROJECT = "project"
    WORK_PACKAGE = "work_package"
    DRAWING_SET = "drawing_set"
    RFI = "rfi"
    FABRICATION_PACKAGE = "fabrication_package"
    QC_CHECKLIST = "qc_checklist"
    DELIVERY = "delivery"
    ERECTION_READINESS = "erection_readiness"
    CONSTRAINT = "constraint"
    FIELD_INSTALL = "field_install"
    PUNCH_ITEM = "punch_item"
    DOCUMENT = "document"


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    CLOSED = "closed"


class DrawingSetStatus(str, Enum):
    IFA = "IFA"  # issued for approval
    BFA = "BFA"  # back from approval
    BFS = "BFS"  # back from scrub
    FFF = "FFF"  # fit for fabrication: fully released
    AS_BUILT = "As-Built"


class RFIStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    ANSWERED = "answered"
    CLOSED = "closed"


class WorkStatus(str, Enum):
    """Shared status vocabulary for fabrication packages, field installs and punch items."""

    NOT_STARTED = "not_started"
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class QCStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class DeliveryStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    RECEIVED = "received"
    CANCELLED = "cancelled"


OPEN_RFI_STATUSES = frozenset({RFIStatus.SUBMITTED.value, RFIStatus.UNDER_REVIEW.value})
ARRIVED_DELIVERY_STATUSES = frozenset({DeliveryStatus.DELIVERED.value, DeliveryStatus.RECEIVED.value})
CLOSEOUT_TAG = "closeout"
