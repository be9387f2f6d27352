"""
Phase-gate engine facade.

Usage:
    from phasegate.orchestration import PhaseGateEngine

    engine = PhaseGateEngine(store, settings)
    trace = await engine.evaluate(work_package, Phase.FABRICATION)
    outcome = await engine.execute(work_package, Phase.FABRICATION, writer=store.writer("pm-1"))
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from ..exceptions import EvaluationCancelledError, EvaluationError
from ..models import (
    Collection,
    EngineSettings,
    GateContext,
    Phase,
    TransitionOutcome,
    TransitionTrace,
    WorkPackage,
)
from ..store.base import RecordStore, RecordWriter, TraceRecorder, ne
from ..utils.logging_config import get_logger
from ..utils.retry_strategies import retry_evaluation
from .evaluator import Clock, TransitionEvaluator, utc_now
from .executor import TransitionExecutor
from .gates import GateRegistry
from .state_graph import StateGraph

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReadinessEntry:
    """Next-transition readiness of one work package on the project board."""

    work_package: WorkPackage
    trace: Optional[TransitionTrace] = None
    error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.trace is not None and self.trace.overall_pass


class PhaseGateEngine:
    def __init__(
        self,
        store: RecordStore,
        settings: Optional[EngineSettings] = None,
        *,
        graph: Optional[StateGraph] = None,
        registry: Optional[GateRegistry] = None,
        recorder: Optional[TraceRecorder] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.settings = settings or EngineSettings()
        self.evaluator = TransitionEvaluator(store, graph=graph, registry=registry, clock=clock)
        self.executor = TransitionExecutor(self.evaluator, recorder=recorder)

    @property
    def graph(self) -> StateGraph:
        return self.evaluator.graph

    def default_context(self) -> GateContext:
        return self.settings.default_context()

    def can_transition(self, current: Phase, target: Phase) -> bool:
        return self.graph.can_transition(Phase(current), Phase(target))

    def next_phases(self, current: Phase) -> List[Phase]:
        return self.graph.next_phases(Phase(current))

    def path_between(self, start: Phase, end: Phase) -> Optional[List[Phase]]:
        return self.graph.path_between(Phase(start), Phase(end))

    async def evaluate(
        self,
        work_package: WorkPackage,
        target: Phase,
        context: Optional[GateContext] = None,
    ) -> TransitionTrace:
        """Evaluate a transition, retrying dependency failures per ``settings.retry``."""
        context = context or self.default_context()
        return await retry_evaluation(
            lambda: self.evaluator.evaluate(work_package, target, context),
            self.settings.retry,
        )

    async def execute(
        self,
        work_package: WorkPackage,
        target: Phase,
        context: Optional[GateContext] = None,
        *,
        writer: RecordWriter,
    ) -> TransitionOutcome:
        """Evaluate and apply a transition. Never retried: conflicts go back to the caller."""
        context = context or self.default_context()
        return await self.executor.execute(work_package, target, context, writer=writer)

    async def evaluate_next(
        self,
        work_package: WorkPackage,
        context: Optional[GateContext] = None,
    ) -> Optional[TransitionTrace]:
        """Evaluate the single next phase, or return None for a terminal work package."""
        successors = self.next_phases(work_package.phase)
        if not successors:
            return None
        return await self.evaluate(work_package, successors[0], context)

    async def readiness_board(
        self,
        project_id: str,
        context: Optional[GateContext] = None,
    ) -> List[ReadinessEntry]:
        """
        Evaluate the next transition of every open work package in a project.

        Evaluation and cancellation failures are reported per entry; configuration
        errors abort the whole board.

        Returns:
            Entries ordered by work package id
        """
        work_packages = await self.store.filter(
            Collection.WORK_PACKAGE,
            {"project_id": project_id, "phase": ne(Phase.COMPLETED)},
        )
        semaphore = asyncio.Semaphore(self.settings.evaluation.board_concurrency)

        async def _entry(wp: WorkPackage) -> ReadinessEntry:
            async with semaphore:
                try:
                    trace = await self.evaluate_next(wp, context)
                except (EvaluationError, EvaluationCancelledError) as e:
                    logger.warning(f"[{wp.id}] Readiness unavailable: {type(e).__name__}: {e}")
                    return ReadinessEntry(work_package=wp, error=f"{type(e).__name__}: {e}")
                return ReadinessEntry(work_package=wp, trace=trace)

        entries = await asyncio.gather(*(_entry(wp) for wp in work_packages))
        ready = sum(1 for entry in entries if entry.ready)
        logger.info(f"Project {project_id}: {ready}/{len(entries)} work packages ready to advance")
        return sorted(entries, key=lambda entry: entry.work_package.id)
