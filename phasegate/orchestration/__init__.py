"""Lifecycle orchestration: state graph, gates, evaluator, executor."""

from .engine import PhaseGateEngine, ReadinessEntry
from .evaluator import TransitionEvaluator
from .executor import TransitionExecutor
from .gates import GateRegistry, default_gate_registry
from .state_graph import (
    DEFAULT_STATE_GRAPH,
    StateGraph,
    can_transition,
    next_phases,
    path_between,
)

__all__ = [
    "DEFAULT_STATE_GRAPH",
    "GateRegistry",
    "PhaseGateEngine",
    "ReadinessEntry",
    "StateGraph",
    "TransitionEvaluator",
    "TransitionExecutor",
    "can_transition",
    "default_gate_registry",
    "next_phases",
    "path_between",
]
