"""Gate and transition trace models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from phasegate.models.enums import Phase
from phasegate.models.records import WorkPackage


class GateResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    gate: str
    passed: bool
    reasons: Tuple[str, ...] = ()
    required_actions: Tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_consistency(self) -> "GateResult":
        if self.passed != (len(self.reasons) == 0):
            raise ValueError(f"gate {self.gate}: passed={self.passed} but {len(self.reasons)} reasons")
        if len(self.reasons) != len(self.required_actions):
            raise ValueError(
                f"gate {self.gate}: {len(self.reasons)} reasons vs "
                f"{len(self.required_actions)} required actions"
            )
        return self


class TransitionTrace(BaseModel):
    """Auditable record of one evaluation attempt. Never mutated after construction."""

    model_config = ConfigDict(frozen=True)

    work_package_id: str
    from_phase: Phase
    to_phase: Phase
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    edge_legal: bool
    gate_results: Tuple[GateResult, ...] = ()
    blocking_reasons: Tuple[str, ...] = ()
    required_actions: Tuple[str, ...] = ()
    overall_pass: bool

    @model_validator(mode="after")
    def _check_overall(self) -> "TransitionTrace":
        expected = self.edge_legal and all(result.passed for result in self.gate_results)
        if self.overall_pass != expected:
            raise ValueError("overall_pass must equal edge legality AND every gate result")
        return self

    @classmethod
    def illegal(
        cls,
        work_package: WorkPackage,
        target: Phase,
        reason: str,
        action: str,
        timestamp: datetime,
    ) -> "TransitionTrace":
        return cls(
            work_package_id=work_package.id,
            from_phase=work_package.phase,
            to_phase=target,
            timestamp=timestamp,
            edge_legal=False,
            blocking_reasons=(reason,),
            required_actions=(action,),
            overall_pass=False,
        )

    @classmethod
    def from_gate_results(
        cls,
        work_package: WorkPackage,
        target: Phase,
        gate_results: Tuple[GateResult, ...],
        timestamp: datetime,
    ) -> "TransitionTrace":
        reasons = tuple(reason for result in gate_results for reason in result.reasons)
        actions = tuple(action for result in gate_results for action in result.required_actions)
        return cls(
            work_package_id=work_package.id,
            from_phase=work_package.phase,
            to_phase=target,
            timestamp=timestamp,
            edge_legal=True,
            gate_results=gate_results,
            blocking_reasons=reasons,
            required_actions=actions,
            overall_pass=all(result.passed for result in gate_results),
        )


@dataclass(frozen=True)
class TransitionOutcome:
    work_package: WorkPackage
    trace: TransitionTrace

    @property
    def advanced(self) -> bool:
        return self.trace.overall_pass
