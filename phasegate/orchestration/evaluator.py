"""
Transition Evaluator

Orchestrates one evaluation attempt: legality check, gate dispatch, cancellation,
and assembly of the TransitionTrace. Never mutates the work package.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

from ..exceptions import (
    ConfigurationError,
    EvaluationCancelledError,
    EvaluationTimeoutError,
)
from ..models import GateContext, GateResult, Phase, TransitionTrace, WorkPackage
from ..store.base import RecordStore
from ..utils.log_context import transition_log_context
from ..utils.logging_config import get_logger
from ..utils.structured_log import log_evaluation_error, log_transition
from .gates import GatePredicate, GateRegistry, default_gate_registry
from .state_graph import DEFAULT_STATE_GRAPH, StateGraph

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TransitionEvaluator:
    """Evaluates whether a work package may move to a target phase."""

    def __init__(
        self,
        store: RecordStore,
        graph: Optional[StateGraph] = None,
        registry: Optional[GateRegistry] = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize the evaluator.

        Args:
            store: Read access to the record store
            graph: State graph (defaults to the linear lifecycle)
            registry: Gate registry (defaults to the built-in gates)
            clock: Timestamp source for traces

        Raises:
            ConfigurationError: If any legal edge has no registered gate
        """
        self.store = store
        self.graph = graph or DEFAULT_STATE_GRAPH
        self.registry = registry or default_gate_registry()
        self.clock = clock
        self.registry.validate(self.graph)

    async def evaluate(
        self,
        work_package: WorkPackage,
        target: Phase,
        context: Optional[GateContext] = None,
    ) -> TransitionTrace:
        """
        Evaluate one transition.

        Args:
            work_package: Work package as last read from the store
            target: Requested phase
            context: Strictness flags and cancellation signal

        Returns:
            TransitionTrace; overall_pass is False for illegal or blocked transitions

        Raises:
            ConfigurationError: Legal edge without a gate predicate
            EvaluationError: A gate sub-query failed (retryable)
            EvaluationCancelledError: Cancelled or timed out; no partial trace
        """
        context = context or GateContext()
        target = Phase(target)
        source = work_package.phase

        if not self.graph.can_transition(source, target):
            trace = self._illegal_trace(work_package, target)
            logger.info(f"[{work_package.id}] {trace.blocking_reasons[0]}")
            log_transition(trace, action="evaluate")
            return trace

        predicate = self.registry.get(source, target)
        if predicate is None:
            logger.error(
                f"[{work_package.id}] Legal edge {source.value} -> {target.value} has no gate predicate"
            )
            raise ConfigurationError(
                f"No gate predicate registered for {source.value} -> {target.value}"
            )

        with transition_log_context(work_package.id, source.value, target.value):
            try:
                gate_result = await self._run_gate(predicate, work_package, context)
            except Exception as e:
                log_evaluation_error(work_package.id, source.value, target.value, e)
                raise

        trace = TransitionTrace.from_gate_results(
            work_package, target, (gate_result,), timestamp=self.clock()
        )
        if trace.overall_pass:
            logger.info(f"[{work_package.id}] {source.value} -> {target.value}: all gates passed")
        else:
            logger.info(
                f"[{work_package.id}] {source.value} -> {target.value} blocked: "
                f"{len(trace.blocking_reasons)} reasons"
            )
        log_transition(trace, action="evaluate")
        return trace

    def _illegal_trace(self, work_package: WorkPackage, target: Phase) -> TransitionTrace:
        source = work_package.phase
        successors = self.graph.next_phases(source)
        if successors:
            action = f"Advance to {', '.join(p.value for p in successors)} first"
        else:
            action = f"No transitions are allowed from {source.value}"
        return TransitionTrace.illegal(
            work_package,
            target,
            reason=f"Illegal transition: {source.value} -> {target.value}",
            action=action,
            timestamp=self.clock(),
        )

    async def _run_gate(
        self,
        predicate: GatePredicate,
        work_package: WorkPackage,
        context: GateContext,
    ) -> GateResult:
        """Run the gate, abandoning it if the caller cancels or the timeout elapses."""
        if context.cancelled:
            raise EvaluationCancelledError(f"Evaluation of {work_package.id} cancelled before start")

        gate_task = asyncio.ensure_future(predicate(self.store, work_package, context))
        waiters = {gate_task}
        cancel_task = None
        if context.cancel_event is not None:
            cancel_task = asyncio.ensure_future(context.cancel_event.wait())
            waiters.add(cancel_task)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=context.timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            await self._abandon(gate_task)
            raise
        finally:
            if cancel_task is not None:
                await self._abandon(cancel_task)

        if context.cancelled:
            await self._abandon(gate_task)
            raise EvaluationCancelledError(f"Evaluation of {work_package.id} cancelled")
        if gate_task not in done:
            await self._abandon(gate_task)
            raise EvaluationTimeoutError(
                f"Evaluation of {work_package.id} exceeded {context.timeout}s"
            )
        return gate_task.result()

    @staticmethod
    async def _abandon(task: asyncio.Future) -> None:
        task.cancel()
        # Outcome is discarded: cancellation, or a failure that raced it.
        await asyncio.gather(task, return_exceptions=True)
