"""Simple finite state machine utility for enforcing allowed status transitions.

Usage:
    from aftersales.utils.fsm import TransitionValidator
    FSM = TransitionValidator({
        'NEW': {'ASSIGNED'},
        'ASSIGNED': {'UNDER_INSPECTION'},
        'CLOSED': set(),
    })
    FSM.assert_can_transition(current_status, target_status)

Raises ValidationError if invalid.
"""
from __future__ import annotations
from typing import Dict, Set, FrozenSet
from aftersales.errors import ValidationError


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        unknown = {t for targets in graph.values() for t in targets} - set(graph)
        if unknown:
            raise ValueError(f'transition targets missing from graph: {sorted(unknown)}')
        self.graph: Dict[str, FrozenSet[str]] = {k: frozenset(v) for k, v in graph.items()}
        self.field_name = field_name

    @property
    def states(self):
        return tuple(self.graph)

    def targets(self, current: str) -> FrozenSet[str]:
        return self.graph.get(current, frozenset())

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.targets(current)

    def is_terminal(self, state: str) -> bool:
        return state in self.graph and not self.graph[state]

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            raise ValidationError(f"Illegal {self.field_name} transition {current} -> {target}")
        return True


__all__ = ['TransitionValidator']
