"""
Transition Executor

Makes a passing evaluation durable through an explicit write capability.
"""

from typing import Optional

from ..exceptions import RecordStoreError
from ..models import Collection, GateContext, Phase, TransitionOutcome, TransitionTrace, WorkPackage
from ..store.base import RecordWriter, TraceRecorder
from ..utils.logging_config import get_logger
from ..utils.structured_log import log_evaluation_error, log_transition
from .evaluator import TransitionEvaluator

logger = get_logger(__name__)


class TransitionExecutor:
    """Runs the evaluator and, only when every gate passes, persists the phase change."""

    def __init__(self, evaluator: TransitionEvaluator, recorder: Optional[TraceRecorder] = None):
        """
        Initialize the executor.

        Args:
            evaluator: Evaluator used for every attempt
            recorder: Optional audit sink receiving the trace of every applied transition
        """
        self.evaluator = evaluator
        self.recorder = recorder

    async def execute(
        self,
        work_package: WorkPackage,
        target: Phase,
        context: Optional[GateContext] = None,
        *,
        writer: RecordWriter,
    ) -> TransitionOutcome:
        """
        Evaluate and, if allowed, apply one transition.

        A blocked transition is not an error: the original work package is returned
        with the failing trace and no store write is made. Blocked attempts reach the
        structlog audit trail only; the recorder receives applied transitions.

        Args:
            work_package: Work package as last read from the store
            target: Requested phase
            context: Strictness flags and cancellation signal
            writer: Write capability; the only way a phase change reaches the store

        Returns:
            TransitionOutcome with the updated (or unchanged) work package and the trace

        Raises:
            EvaluationError, EvaluationCancelledError, ConfigurationError: From evaluation
            ConcurrentModificationError: The work package changed since it was read;
                re-fetch and retry explicitly
            NotFoundError: The work package no longer exists
        """
        trace = await self.evaluator.evaluate(work_package, target, context)

        if not trace.overall_pass:
            logger.info(
                f"[{work_package.id}] Transition to {trace.to_phase.value} blocked; no write issued"
            )
            log_transition(trace, action="execute", actor=writer.actor)
            return TransitionOutcome(work_package=work_package, trace=trace)

        updated = await writer.update(
            Collection.WORK_PACKAGE,
            work_package.id,
            {"phase": trace.to_phase},
            expected_version=work_package.version,
        )
        logger.info(
            f"[{work_package.id}] Phase changed {trace.from_phase.value} -> {trace.to_phase.value} "
            f"by {writer.actor} (version {updated.version})"
        )
        log_transition(trace, action="execute", actor=writer.actor)
        await self._record(trace, writer.actor)
        return TransitionOutcome(work_package=updated, trace=trace)

    async def _record(self, trace: TransitionTrace, actor: str) -> None:
        """Save an applied trace; the phase change is already committed, so failures are logged."""
        if self.recorder is None:
            return
        try:
            await self.recorder.save_transition_trace(trace, actor=actor)
        except RecordStoreError as e:
            logger.error(
                f"[{trace.work_package_id}] Phase change committed but trace not recorded: "
                f"{type(e).__name__}: {e}"
            )
            log_evaluation_error(
                trace.work_package_id, trace.from_phase.value, trace.to_phase.value, e
            )
