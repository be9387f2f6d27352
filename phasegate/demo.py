"""Demo project with one work package parked at each lifecycle phase."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List

from phasegate.models import (
    RFI,
    Collection,
    Constraint,
    Delivery,
    DeliveryStatus,
    Document,
    DrawingSet,
    DrawingSetStatus,
    ErectionReadiness,
    FabricationPackage,
    FieldInstall,
    Phase,
    Project,
    ProjectStatus,
    PunchItem,
    QCChecklist,
    QCStatus,
    Record,
    RFIStatus,
    WorkPackage,
    WorkStatus,
)
from phasegate.store.base import RecordStore
from phasegate.utils.logging_config import get_logger

logger = get_logger(__name__)

DEMO_PROJECT_ID = "P-100"


def demo_records() -> Dict[Collection, List[Record]]:
    """Build the demo dataset. Each work package shows a different gate outcome."""
    pid = DEMO_PROJECT_ID
    assessed = datetime(2026, 3, 2, 7, 30, tzinfo=timezone.utc)
    return {
        Collection.PROJECT: [
            Project(id=pid, name="Riverside Parking Structure", status=ProjectStatus.ACTIVE.value),
        ],
        Collection.WORK_PACKAGE: [
            WorkPackage(
                id="WP-001",
                project_id=pid,
                name="Level 1 columns",
                scope_description="Columns C1-C24 at grid lines A-F",
            ),
            WorkPackage(
                id="WP-002",
                project_id=pid,
                name="Level 2 framing",
                phase=Phase.DETAILING,
                scope_description="Beams and girders, level 2",
                linked_drawing_set_ids=("DS-201", "DS-202"),
                fab_release_group_id="RG-2",
            ),
            WorkPackage(
                id="WP-003",
                project_id=pid,
                name="Stair tower",
                phase=Phase.DETAILING,
                scope_description="Stair stringers and landings",
                linked_drawing_set_ids=("DS-301",),
                fab_release_group_id="RG-3",
            ),
            WorkPackage(
                id="WP-004",
                project_id=pid,
                name="Roof canopy",
                phase=Phase.FABRICATION,
                scope_description="Canopy trusses",
            ),
            WorkPackage(
                id="WP-005",
                project_id=pid,
                name="Level 3 framing",
                phase=Phase.DELIVERY,
                scope_description="Beams and girders, level 3",
            ),
            WorkPackage(
                id="WP-006",
                project_id=pid,
                name="Ramp bracing",
                phase=Phase.ERECTION,
                scope_description="Vertical bracing at ramps",
            ),
            WorkPackage(
                id="WP-007",
                project_id=pid,
                name="Foundation embeds",
                phase=Phase.CLOSEOUT,
                scope_description="Anchor bolts and embed plates",
                final_inspection_passed=True,
                client_accepted=True,
            ),
        ],
        Collection.DRAWING_SET: [
            DrawingSet(id="DS-201", project_id=pid, set_number="E-201", status=DrawingSetStatus.FFF.value),
            DrawingSet(id="DS-202", project_id=pid, set_number="E-202", status=DrawingSetStatus.BFA.value),
            DrawingSet(id="DS-301", project_id=pid, set_number="E-301", status=DrawingSetStatus.FFF.value),
        ],
        Collection.RFI: [
            RFI(
                id="RFI-A",
                project_id=pid,
                rfi_number=12,
                subject="Moment connection at B/4",
                status=RFIStatus.SUBMITTED.value,
                fab_blocker=True,
                affects_release_group_id="RG-2",
            ),
            RFI(
                id="RFI-B",
                project_id=pid,
                rfi_number=14,
                subject="Stair landing elevation",
                status=RFIStatus.ANSWERED.value,
                fab_blocker=True,
                affects_release_group_id="RG-3",
            ),
        ],
        Collection.FABRICATION_PACKAGE: [
            FabricationPackage(
                id="FP-401", work_package_id="WP-004", package_number="FAB-401", status=WorkStatus.COMPLETED.value
            ),
        ],
        Collection.QC_CHECKLIST: [
            QCChecklist(id="QC-401", work_package_id="WP-004", name="Weld inspection", status=QCStatus.APPROVED.value),
        ],
        Collection.DELIVERY: [
            Delivery(
                id="DL-501",
                project_id=pid,
                work_package_id="WP-005",
                delivery_number="TRK-501",
                status=DeliveryStatus.DELIVERED.value,
            ),
        ],
        Collection.ERECTION_READINESS: [
            ErectionReadiness(
                id="ER-501", work_package_id="WP-005", site_ready=False, equipment_ready=True, assessed_at=assessed
            ),
        ],
        Collection.CONSTRAINT: [
            Constraint(
                id="CN-501",
                work_package_id="WP-005",
                description="Crane permit pending",
                is_active=True,
                blocks_execution=True,
            ),
        ],
        Collection.FIELD_INSTALL: [
            FieldInstall(id="FI-601", work_package_id="WP-006", piece_mark="VB-1", status=WorkStatus.COMPLETED.value),
            FieldInstall(id="FI-602", work_package_id="WP-006", piece_mark="VB-2", status=WorkStatus.COMPLETED.value),
        ],
        Collection.PUNCH_ITEM: [
            PunchItem(
                id="PI-601", work_package_id="WP-006", description="Touch-up paint at VB-2", status=WorkStatus.OPEN.value
            ),
        ],
        Collection.DOCUMENT: [
            Document(
                id="DOC-701",
                project_id=pid,
                title="Embed survey report",
                tags=("closeout", "survey"),
                linked_work_package_ids=("WP-007",),
            ),
        ],
    }


async def seed_demo(store: RecordStore) -> int:
    """Create every demo record in ``store``. Returns the number of records written."""
    count = 0
    for collection, records in demo_records().items():
        for record in records:
            await store.create(collection, record)
            count += 1
    logger.info(f"Seeded {count} demo records for project {DEMO_PROJECT_ID}")
    return count
