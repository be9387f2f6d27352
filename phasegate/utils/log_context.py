"""
Log context management for timing and tagging evaluation logs.
"""

import time
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from phasegate.utils.logging_config import get_logger

logger = get_logger(__name__)


class LogContext:
    """Context manager that times a block and binds context into audit logs."""

    def __init__(self, **context):
        """
        Initialize log context.

        Args:
            **context: Context key-value pairs bound for the duration of the block
        """
        self.context = context
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None
        self._bound = None

    def __enter__(self):
        """Enter context."""
        self.start_time = time.perf_counter()
        self._bound = structlog.contextvars.bound_contextvars(**self.context)
        self._bound.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context."""
        self._bound.__exit__(exc_type, exc_val, exc_tb)
        self.duration = time.perf_counter() - self.start_time
        return False


@contextmanager
def transition_log_context(work_package_id: str, from_phase: str, to_phase: str) -> Iterator[LogContext]:
    """
    Context manager for one transition evaluation.

    Args:
        work_package_id: Work package being evaluated
        from_phase: Current phase
        to_phase: Requested phase
    """
    edge = f"{from_phase} -> {to_phase}"
    with LogContext(work_package_id=work_package_id, edge=edge) as ctx:
        logger.debug(f"[{work_package_id}] Evaluating {edge}")
        try:
            yield ctx
        except Exception as e:
            logger.warning(f"[{work_package_id}] Evaluation of {edge} failed: {type(e).__name__}: {e}")
            raise
    logger.debug(f"[{work_package_id}] Evaluated {edge} in {ctx.duration:.3f}s")
