"""
Canonical workflow types (``workshop_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for status state machines.  Budgets and service orders
both describe their lifecycle with the same Workflow / Transition types so
the Lifecycle Guard can validate either one.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Transition:
    """A valid status transition.

    ``reserves_stock=True`` marks the transition that commits the entity's
    inventory-linked parts against the Stock Ledger.
    """
    from_state: str
    to_state: str
    action: str
    reserves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an entity lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    ``locked_states`` are terminal states in which the entity itself can no
    longer be edited (not only its status).
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()
    locked_states: tuple[str, ...] = ()

    def find(self, from_state: str, to_state: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def allowed_targets(self, from_state: str) -> tuple[str, ...]:
        return tuple(
            t.to_state for t in self.transitions if t.from_state == from_state
        )

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states
