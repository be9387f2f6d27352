"""Domain records read from (and written to) the record store."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict

from phasegate.models.enums import Collection, Phase, ProjectStatus


class Record(BaseModel):
    """Base record. Instances are immutable; changes go through the store."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    version: int = 1

    @property
    def label(self) -> str:
        """Human-readable identifier used in blocking reasons."""
        return self.id


class Project(Record):
    name: str = ""
    status: str = ProjectStatus.ACTIVE.value


class WorkPackage(Record):
    project_id: str
    name: str = ""
    phase: Phase = Phase.PLANNING
    scope_description: str = ""
    linked_drawing_set_ids: Tuple[str, ...] = ()
    fab_release_group_id: Optional[str] = None
    materials_available: bool = False
    final_inspection_passed: bool = False
    client_accepted: bool = False
    updated_at: Optional[datetime] = None

    @property
    def label(self) -> str:
        return self.name or self.id


class DrawingSet(Record):
    project_id: str
    set_number: str = ""
    title: str = ""
    status: str = ""

    @property
    def label(self) -> str:
        return self.set_number or self.id


class RFI(Record):
    project_id: str
    rfi_number: Optional[int] = None
    subject: str = ""
    status: str = ""
    fab_blocker: bool = False
    affects_release_group_id: Optional[str] = None

    @property
    def label(self) -> str:
        return f"RFI-{self.rfi_number}" if self.rfi_number is not None else self.id


class FabricationPackage(Record):
    work_package_id: str
    package_number: str = ""
    status: str = ""

    @property
    def label(self) -> str:
        return self.package_number or self.id


class QCChecklist(Record):
    work_package_id: str
    name: str = ""
    status: str = ""

    @property
    def label(self) -> str:
        return self.name or self.id


class Delivery(Record):
    project_id: str
    work_package_id: str
    delivery_number: str = ""
    status: str = ""

    @property
    def label(self) -> str:
        return self.delivery_number or self.id


class ErectionReadiness(Record):
    work_package_id: str
    site_ready: bool = False
    equipment_ready: bool = False
    assessed_at: Optional[datetime] = None


class Constraint(Record):
    work_package_id: str
    description: str = ""
    is_active: bool = True
    blocks_execution: bool = False

    @property
    def label(self) -> str:
        return self.description or self.id


class FieldInstall(Record):
    work_package_id: str
    piece_mark: str = ""
    status: str = ""

    @property
    def label(self) -> str:
        return self.piece_mark or self.id


class PunchItem(Record):
    work_package_id: str
    description: str = ""
    status: str = ""


class Document(Record):
    project_id: str
    title: str = ""
    tags: Tuple[str, ...] = ()
    linked_work_package_ids: Tuple[str, ...] = ()

    @property
    def label(self) -> str:
        return self.title or self.id


RECORD_MODELS: Dict[Collection, Type[Record]] = {
    Collection.PROJECT: Project,
    Collection.WORK_PACKAGE: WorkPackage,
    Collection.DRAWING_SET: DrawingSet,
    Collection.RFI: RFI,
    Collection.FABRICATION_PACKAGE: FabricationPackage,
    Collection.QC_CHECKLIST: QCChecklist,
    Collection.DELIVERY: Delivery,
    Collection.ERECTION_READINESS: ErectionReadiness,
    Collection.CONSTRAINT: Constraint,
    Collection.FIELD_INSTALL: FieldInstall,
    Collection.PUNCH_ITEM: PunchItem,
    Collection.DOCUMENT: Document,
}


def model_for(collection: Collection) -> Type[Record]:
    return RECORD_MODELS[collection]
