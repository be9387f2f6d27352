"""Gate predicate library: one readiness rule per lifecycle edge."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from ..exceptions import ConfigurationError, EvaluationError, StoreUnavailableError
from ..models import (
    ARRIVED_DELIVERY_STATUSES,
    CLOSEOUT_TAG,
    OPEN_RFI_STATUSES,
    Collection,
    DrawingSetStatus,
    ErectionReadiness,
    GateContext,
    GateResult,
    Phase,
    ProjectStatus,
    QCStatus,
    Record,
    WorkPackage,
    WorkStatus,
)
from ..store.base import Criteria, RecordStore, isin, ne
from ..utils.logging_config import get_logger
from .state_graph import StateGraph

logger = get_logger(__name__)

GatePredicate = Callable[[RecordStore, WorkPackage, GateContext], Awaitable[GateResult]]

# Identifiers listed per reason before the remainder is summarised.
MAX_LISTED_IDENTIFIERS = 10


def gate_id(source: Phase, target: Phase) -> str:
    return f"{source.value}_to_{target.value}"


def describe(records: Sequence[Record], limit: int = MAX_LISTED_IDENTIFIERS) -> str:
    """Sorted, comma-separated labels, truncated after ``limit``."""
    labels = sorted(record.label for record in records)
    text = ", ".join(labels[:limit])
    if len(labels) > limit:
        text += f" (+{len(labels) - limit} more)"
    return text


class GateChecks:
    """Accumulates blocking reasons and their paired remediation actions in rule order."""

    def __init__(self, gate: str):
        self.gate = gate
        self.reasons: List[str] = []
        self.required_actions: List[str] = []

    def block(self, reason: str, action: str) -> None:
        self.reasons.append(reason)
        self.required_actions.append(action)

    def result(self) -> GateResult:
        return GateResult(
            gate=self.gate,
            passed=not self.reasons,
            reasons=tuple(self.reasons),
            required_actions=tuple(self.required_actions),
        )


@dataclass(frozen=True)
class Query:
    collection: Collection
    criteria: Criteria


async def _run_query(store: RecordStore, gate: str, query: Query) -> List[Record]:
    try:
        return await store.filter(query.collection, query.criteria)
    except (StoreUnavailableError, TimeoutError, OSError) as e:
        raise EvaluationError(
            f"Gate {gate}: could not query {query.collection.value}: {e}",
            gate=gate,
            collection=query.collection.value,
        ) from e


async def run_queries(store: RecordStore, gate: str, queries: Sequence[Query]) -> List[List[Record]]:
    """Issue independent sub-queries concurrently; results come back in query order.

    If any sub-query fails its siblings are cancelled and the first failure (in
    query order) is raised.
    """
    tasks: List[asyncio.Task] = []
    try:
        async with asyncio.TaskGroup() as tg:
            for query in queries:
                tasks.append(tg.create_task(_run_query(store, gate, query)))
    except ExceptionGroup:
        for task in tasks:
            if task.done() and not task.cancelled() and task.exception() is not None:
                raise task.exception()
        raise
    return [task.result() for task in tasks]


# ========================================
# GATE CHECKS
# ========================================


async def check_planning_to_detailing(
    store: RecordStore, wp: WorkPackage, context: GateContext
) -> GateResult:
    checks = GateChecks(gate_id(Phase.PLANNING, Phase.DETAILING))
    (projects,) = await run_queries(
        store, checks.gate, [Query(Collection.PROJECT, {"id": wp.project_id})]
    )

    if not wp.scope_description.strip():
        checks.block("Scope description required", "Define work package scope")

    if not projects:
        checks.block(f"Project {wp.project_id} not found", "Link work package to an existing project")
    elif projects[0].status == ProjectStatus.ON_HOLD:
        checks.block(f"Project {projects[0].label} is on hold", "Activate project")

    return checks.result()


async def check_detailing_to_fabrication(
    store: RecordStore, wp: WorkPackage, context: GateContext
) -> GateResult:
    checks = GateChecks(gate_id(Phase.DETAILING, Phase.FABRICATION))
    drawings, rfis = await run_queries(
        store,
        checks.gate,
        [
            Query(
                Collection.DRAWING_SET,
                {"project_id": wp.project_id, "id": isin(wp.linked_drawing_set_ids)},
            ),
            # A work package without a release group is held by unscoped blockers.
            Query(
                Collection.RFI,
                {
                    "project_id": wp.project_id,
                    "fab_blocker": True,
                    "status": isin(sorted(OPEN_RFI_STATUSES)),
                    "affects_release_group_id": wp.fab_release_group_id,
                },
            ),
        ],
    )

    if not wp.linked_drawing_set_ids:
        checks.block("No drawings linked to work package", "Link drawing sets")
    else:
        found = {drawing.id for drawing in drawings}
        missing = sorted(set(wp.linked_drawing_set_ids) - found)
        if missing:
            checks.block(
                f"{len(missing)} linked drawing sets not found: {', '.join(missing)}",
                "Fix drawing set links",
            )
        pending = [d for d in drawings if d.status != DrawingSetStatus.FFF]
        if pending:
            checks.block(
                f"{len(pending)} drawings not released: {describe(pending)}",
                "Release drawings to FFF status",
            )

    if rfis:
        checks.block(
            f"{len(rfis)} blocking RFIs open: {describe(rfis)}",
            "Resolve fabrication blocking RFIs",
        )

    if context.check_materials and not wp.materials_available:
        checks.block("Materials not available", "Confirm material availability")

    return checks.result()


async def check_fabrication_to_delivery(
    store: RecordStore, wp: WorkPackage, context: GateContext
) -> GateResult:
    checks = GateChecks(gate_id(Phase.FABRICATION, Phase.DELIVERY))
    packages, checklists = await run_queries(
        store,
        checks.gate,
        [
            Query(Collection.FABRICATION_PACKAGE, {"work_package_id": wp.id}),
            Query(Collection.QC_CHECKLIST, {"work_package_id": wp.id}),
        ],
    )

    if not packages:
        checks.block("No fabrication packages created", "Create fabrication packages")
    else:
        incomplete = [p for p in packages if p.status != WorkStatus.COMPLETED]
        if incomplete:
            checks.block(
                f"{len(incomplete)} fabrication packages incomplete: {describe(incomplete)}",
                "Complete fabrication",
            )

    not_approved = [q for q in checklists if q.status != QCStatus.APPROVED]
    if not_approved:
        checks.block(
            f"{len(not_approved)} QC checklists not approved: {describe(not_approved)}",
            "Complete QC inspections",
        )

    return checks.result()


def _assessed_key(readiness: ErectionReadiness) -> Tuple[bool, datetime, int]:
    assessed = readiness.assessed_at
    if assessed is None:
        return (False, datetime.min.replace(tzinfo=timezone.utc), readiness.version)
    if assessed.tzinfo is None:
        assessed = assessed.replace(tzinfo=timezone.utc)
    return (True, assessed, readiness.version)


def latest_readiness(records: Sequence[ErectionReadiness]) -> Optional[ErectionReadiness]:
    return max(records, key=_assessed_key) if records else None


async def check_delivery_to_erection(
    store: RecordStore, wp: WorkPackage, context: GateContext
) -> GateResult:
    checks = GateChecks(gate_id(Phase.DELIVERY, Phase.ERECTION))
    deliveries, readiness, constraints = await run_queries(
        store,
        checks.gate,
        [
            Query(Collection.DELIVERY, {"project_id": wp.project_id, "work_package_id": wp.id}),
            Query(Collection.ERECTION_READINESS, {"work_package_id": wp.id}),
            Query(
                Collection.CONSTRAINT,
                {"work_package_id": wp.id, "is_active": True, "blocks_execution": True},
            ),
        ],
    )

    if not deliveries:
        checks.block("No deliveries scheduled", "Schedule delivery")
    elif not any(d.status in ARRIVED_DELIVERY_STATUSES for d in deliveries):
        checks.block(
            f"Material not delivered: {len(deliveries)} deliveries pending: {describe(deliveries)}",
            "Deliver material to site",
        )

    latest = latest_readiness(readiness)
    if latest is not None:
        if not latest.site_ready:
            checks.block("Site not ready for erection", "Complete site prep")
        if not latest.equipment_ready:
            checks.block("Equipment not ready", "Mobilize equipment")

    if constraints:
        checks.block(
            f"{len(constraints)} blocking constraints: {describe(constraints)}",
            "Resolve blocking constraints",
        )

    return checks.result()


async def check_erection_to_closeout(
    store: RecordStore, wp: WorkPackage, context: GateContext
) -> GateResult:
    checks = GateChecks(gate_id(Phase.ERECTION, Phase.CLOSEOUT))
    installs, punch_items = await run_queries(
        store,
        checks.gate,
        [
            Query(Collection.FIELD_INSTALL, {"work_package_id": wp.id}),
            Query(
                Collection.PUNCH_ITEM,
                {"work_package_id": wp.id, "status": ne(WorkStatus.COMPLETED)},
            ),
        ],
    )

    if not installs:
        checks.block("No field install records", "Create field install records")
    else:
        incomplete = [i for i in installs if i.status != WorkStatus.COMPLETED]
        if incomplete:
            checks.block(
                f"{len(incomplete)} field installs incomplete: {describe(incomplete)}",
                "Complete field erection",
            )

    if punch_items:
        checks.block(
            f"{len(punch_items)} open punch items: {describe(punch_items)}",
            "Complete punch list",
        )

    return checks.result()


async def check_closeout_to_completed(
    store: RecordStore, wp: WorkPackage, context: GateContext
) -> GateResult:
    checks = GateChecks(gate_id(Phase.CLOSEOUT, Phase.COMPLETED))

    if context.require_closeout_docs:
        (documents,) = await run_queries(
            store, checks.gate, [Query(Collection.DOCUMENT, {"project_id": wp.project_id})]
        )
        closeout_docs = [
            d for d in documents if CLOSEOUT_TAG in d.tags and wp.id in d.linked_work_package_ids
        ]
        if not closeout_docs:
            checks.block("No closeout documentation", "Submit closeout documents")

    if context.require_final_inspection and not wp.final_inspection_passed:
        checks.block("Final inspection not passed", "Schedule and pass final inspection")

    if context.require_client_acceptance and not wp.client_accepted:
        checks.block("Client acceptance pending", "Obtain client sign-off")

    return checks.result()


# ========================================
# REGISTRY
# ========================================


class GateRegistry:
    """Explicit (source, target) -> predicate table."""

    def __init__(self):
        self._predicates: Dict[Tuple[Phase, Phase], GatePredicate] = {}

    def register(self, source: Phase, target: Phase, predicate: GatePredicate) -> "GateRegistry":
        """
        Register the predicate guarding one edge.

        Returns:
            Self for method chaining
        """
        edge = (Phase(source), Phase(target))
        if edge in self._predicates:
            logger.warning(f"Gate '{gate_id(*edge)}' already registered, overwriting")
        self._predicates[edge] = predicate
        return self

    def get(self, source: Phase, target: Phase) -> Optional[GatePredicate]:
        return self._predicates.get((source, target))

    def validate(self, graph: StateGraph) -> None:
        """Fail fast when a legal edge has no predicate.

        Raises:
            ConfigurationError: Listing every unguarded edge
        """
        missing = [gate_id(*edge) for edge in graph.edges() if edge not in self._predicates]
        if missing:
            raise ConfigurationError(f"No gate predicate registered for: {', '.join(missing)}")

    def __len__(self) -> int:
        return len(self._predicates)

    def __contains__(self, edge: Tuple[Phase, Phase]) -> bool:
        return edge in self._predicates


def default_gate_registry() -> GateRegistry:
    return (
        GateRegistry()
        .register(Phase.PLANNING, Phase.DETAILING, check_planning_to_detailing)
        .register(Phase.DETAILING, Phase.FABRICATION, check_detailing_to_fabrication)
        .register(Phase.FABRICATION, Phase.DELIVERY, check_fabrication_to_delivery)
        .register(Phase.DELIVERY, Phase.ERECTION, check_delivery_to_erection)
        .register(Phase.ERECTION, Phase.CLOSEOUT, check_erection_to_closeout)
        .register(Phase.CLOSEOUT, Phase.COMPLETED, check_closeout_to_completed)
    )
