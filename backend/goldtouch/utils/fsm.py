from __future__ import annotations
"""Small finite state machine helper for status lifecycles.

Usage:
    from goldtouch.utils.fsm import TransitionValidator
    INVOICE_FSM = TransitionValidator({
        'draft': {'sent', 'cancelled'},
        'sent': {'paid', 'cancelled'},
        'paid': set(),
        'cancelled': set(),
    })
    INVOICE_FSM.assert_can_transition(current_status, target_status)

Aborts with 400 on an invalid transition.
"""
from typing import Dict, Set
from flask import abort


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            abort(400, description=f"Invalid {self.field_name} transition {current} -> {target}")
        return True

__all__ = ['TransitionValidator']
