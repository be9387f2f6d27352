"""Configuration models loaded from YAML, and the per-evaluation gate context."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Optional

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class GateContext:
    """Strictness flags and cancellation signal for one evaluation.

    The boolean flags only tighten gates; leaving them at their defaults never blocks
    a transition that would otherwise pass.

    Attributes:
        require_closeout_docs: Closeout -> Completed needs a closeout-tagged document.
        require_final_inspection: Closeout -> Completed needs final_inspection_passed.
        require_client_acceptance: Closeout -> Completed needs client_accepted.
        check_materials: Detailing -> Fabrication needs materials_available.
        timeout: Seconds before the evaluation is abandoned (None = no limit).
        cancel_event: When set, in-flight sub-queries are abandoned.
    """

    require_closeout_docs: bool = False
    require_final_inspection: bool = False
    require_client_acceptance: bool = False
    check_materials: bool = False
    timeout: Optional[float] = None
    cancel_event: Optional[asyncio.Event] = None

    def with_cancellation(
        self,
        cancel_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> "GateContext":
        return replace(self, cancel_event=cancel_event, timeout=timeout)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


class GatesConfig(BaseModel):
    require_closeout_docs: bool = False
    require_final_inspection: bool = False
    require_client_acceptance: bool = False
    check_materials: bool = False


class EvaluationConfig(BaseModel):
    timeout_seconds: Optional[float] = Field(default=30.0, gt=0.0)
    board_concurrency: int = Field(ge=1, le=50, default=5, description="Work packages evaluated concurrently by the readiness board.")


class RetryConfig(BaseModel):
    max_attempts: int = Field(ge=1, le=10, default=3)
    initial_delay: float = Field(ge=0.0, default=0.5)
    max_delay: float = Field(ge=0.0, default=5.0)


class StoreConfig(BaseModel):
    db_path: str = "data/phasegate.db"


class LoggingConfig(BaseModel):
    level: str = "normal"
    log_file: Optional[str] = None
    audit_log_dir: Optional[str] = None


class EngineSettings(BaseModel):
    gates: GatesConfig = Field(default_factory=GatesConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def default_context(self) -> GateContext:
        return GateContext(
            require_closeout_docs=self.gates.require_closeout_docs,
            require_final_inspection=self.gates.require_final_inspection,
            require_client_acceptance=self.gates.require_client_acceptance,
            check_materials=self.gates.check_materials,
            timeout=self.evaluation.timeout_seconds,
        )
