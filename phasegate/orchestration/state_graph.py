"""
State Graph

Static table of structurally legal phase transitions, independent of data readiness.
"""

from typing import Dict, List, Mapping, Optional, Sequence

from ..exceptions import ConfigurationError
from ..models import Phase
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

_LIFECYCLE = Phase.ordered()

# One successor per phase; completed is terminal.
DEFAULT_TRANSITIONS: Dict[Phase, Sequence[Phase]] = {
    phase: (successor,) for phase, successor in zip(_LIFECYCLE, _LIFECYCLE[1:])
}
DEFAULT_TRANSITIONS[Phase.COMPLETED] = ()


class StateGraph:
    """Legal phase -> phase edges."""

    def __init__(self, transitions: Optional[Mapping[Phase, Sequence[Phase]]] = None):
        """
        Initialize the graph.

        Args:
            transitions: Successor table (defaults to the linear lifecycle)

        Raises:
            ConfigurationError: If the table contains a self-loop or an unknown phase
        """
        source = DEFAULT_TRANSITIONS if transitions is None else transitions
        self.transitions: Dict[Phase, tuple] = {
            Phase(phase): tuple(Phase(target) for target in targets)
            for phase, targets in source.items()
        }
        self.max_hops = len(Phase)
        self.validate()

    def validate(self) -> None:
        for phase, targets in self.transitions.items():
            if phase in targets:
                raise ConfigurationError(f"State graph has a self-loop on '{phase.value}'")

    def can_transition(self, current: Phase, target: Phase) -> bool:
        """Return True iff ``target`` is a defined successor of ``current``."""
        return target in self.transitions.get(current, ())

    def next_phases(self, current: Phase) -> List[Phase]:
        """Return the legal successors of ``current`` (empty for a terminal phase)."""
        return list(self.transitions.get(current, ()))

    def edges(self) -> List[tuple]:
        return [(phase, target) for phase, targets in self.transitions.items() for target in targets]

    def path_between(self, start: Phase, end: Phase) -> Optional[List[Phase]]:
        """
        Walk the successor chain from ``start`` toward ``end``.

        Args:
            start: Phase to walk from
            end: Phase to reach

        Returns:
            Phases visited after ``start`` up to and including ``end`` ([] when equal),
            or None if ``end`` is not reachable by forward transitions

        Raises:
            ConfigurationError: If the walk exceeds the hop bound (cycle in the graph)
        """
        path: List[Phase] = []
        current = start
        while current != end:
            successors = self.transitions.get(current, ())
            if not successors:
                return None
            current = successors[0]
            path.append(current)
            if len(path) > self.max_hops:
                logger.error(f"Hop bound exceeded walking {start.value} -> {end.value}: {path}")
                raise ConfigurationError(
                    f"Path from '{start.value}' to '{end.value}' exceeds {self.max_hops} hops; "
                    f"the state graph contains a cycle"
                )
        return path


DEFAULT_STATE_GRAPH = StateGraph()


def can_transition(current: Phase, target: Phase) -> bool:
    return DEFAULT_STATE_GRAPH.can_transition(current, target)


def next_phases(current: Phase) -> List[Phase]:
    return DEFAULT_STATE_GRAPH.next_phases(current)


def path_between(start: Phase, end: Phase) -> Optional[List[Phase]]:
    return DEFAULT_STATE_GRAPH.path_between(start, end)
