"""Structured logging for a machine-parseable transition audit trail."""

from __future__ import annotations

import json
from pathlib import Path
from typing import IO, Any

import structlog
from structlog.processors import JSONRenderer
from structlog.typing import Processor

from phasegate.models import TransitionTrace

AUDIT_FILE_NAME = "audit.jsonl"

_configured = False
_logger: structlog.BoundLogger | None = None
_file_handle: IO[str] | None = None


def configure_audit_logging(log_dir: str) -> Path:
    """One-time setup. Writes JSON lines to {log_dir}/audit.jsonl and returns that path."""
    global _configured, _logger, _file_handle
    audit_path = Path(log_dir) / AUDIT_FILE_NAME
    if _configured:
        return audit_path
    audit_path.parent.mkdir(parents=True, exist_ok=True)
    _file_handle = open(audit_path, "a", encoding="utf-8")
    file_handle = _file_handle

    def _file_logger_factory(*args: Any, **kwargs: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file_handle)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        JSONRenderer(),
    ]
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=_file_logger_factory,
        cache_logger_on_first_use=False,
    )
    _configured = True
    _logger = structlog.get_logger()
    return audit_path


def reset_audit_logging() -> None:
    """Close the audit file and forget configuration (tests, CLI teardown)."""
    global _configured, _logger, _file_handle
    if _file_handle is not None:
        _file_handle.close()
    _file_handle = None
    _logger = None
    _configured = False
    structlog.reset_defaults()


def bind_request(request_id: str, actor: str | None = None) -> None:
    """Bind request context so every audit line includes request_id (and actor)."""
    structlog.contextvars.bind_contextvars(request_id=request_id, actor=actor)


def log_transition(trace: TransitionTrace, action: str, actor: str | None = None) -> None:
    """Log one evaluation or execution (action: evaluate|execute)."""
    if _logger is None:
        return
    payload: dict[str, Any] = {
        "action": action,
        "work_package_id": trace.work_package_id,
        "from_phase": trace.from_phase.value,
        "to_phase": trace.to_phase.value,
        "overall_pass": trace.overall_pass,
        "edge_legal": trace.edge_legal,
        "gates": [result.gate for result in trace.gate_results],
        "blocking_reasons": list(trace.blocking_reasons),
        "required_actions": list(trace.required_actions),
    }
    if actor is not None:
        payload["actor"] = actor
    _logger.info("transition", **payload)


def log_evaluation_error(
    work_package_id: str,
    from_phase: str,
    to_phase: str,
    error: BaseException,
) -> None:
    """Log an evaluation that could not reach a decision."""
    if _logger is not None:
        _logger.warning(
            "evaluation_error",
            work_package_id=work_package_id,
            from_phase=from_phase,
            to_phase=to_phase,
            error_type=type(error).__name__,
            error=str(error),
        )


def load_audit_events(path: str, work_package_id: str | None = None) -> list[dict[str, Any]]:
    """Read an audit.jsonl file, optionally keeping one work package's events.

    Skips lines that fail to parse.
    """
    result: list[dict[str, Any]] = []
    try:
        with open(path, encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if work_package_id is None or entry.get("work_package_id") == work_package_id:
                    result.append(entry)
    except OSError:
        pass
    return result
