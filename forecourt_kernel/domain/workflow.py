"""
Canonical workflow types (``forecourt_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for explicit state machines.  Invoice, payroll and loan
lifecycles are declared once as ``Workflow`` constants in their modules;
services call ``Workflow.resolve()`` before every status change so that an
illegal move raises instead of silently producing an impossible state.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions except ones guarded by an
  override (e.g. admin cancellation of a paid payroll).
"""

from __future__ import annotations

from dataclasses import dataclass

from forecourt_kernel.exceptions import IllegalTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.  The caller states whether the
    guard holds by passing its name in ``satisfied_guards``.
    """

    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""

    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""

    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self):
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial_state '{self.initial_state}' not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} "
                    f"{t.from_state}->{t.to_state} references unknown state"
                )

    def allowed_actions(self, from_state: str) -> tuple[str, ...]:
        """Actions available from ``from_state`` (ignoring guards)."""
        return tuple(sorted({t.action for t in self.transitions if t.from_state == from_state}))

    def can(
        self,
        from_state: str,
        action: str,
        to_state: str | None = None,
        satisfied_guards: frozenset[str] = frozenset(),
    ) -> bool:
        """True when some transition matches and its guard (if any) is satisfied."""
        return self._match(from_state, action, to_state, satisfied_guards) is not None

    def resolve(
        self,
        entity_type: str,
        entity_id: str,
        from_state: str,
        action: str,
        to_state: str | None = None,
        satisfied_guards: frozenset[str] = frozenset(),
    ) -> Transition:
        """
        Return the transition for ``action`` from ``from_state``.

        When ``to_state`` is given the transition must land there; this is
        how derived statuses (e.g. Partial vs Paid after a payment) are
        checked against the declared lifecycle.

        Raises:
            IllegalTransitionError: no matching transition, or its guard
                is not in ``satisfied_guards``.
        """
        transition = self._match(from_state, action, to_state, satisfied_guards)
        if transition is None:
            raise IllegalTransitionError(
                entity_type=entity_type,
                entity_id=str(entity_id),
                from_state=from_state,
                action=action,
            )
        return transition

    def _match(
        self,
        from_state: str,
        action: str,
        to_state: str | None,
        satisfied_guards: frozenset[str],
    ) -> Transition | None:
        for t in self.transitions:
            if t.from_state != from_state or t.action != action:
                continue
            if to_state is not None and t.to_state != to_state:
                continue
            if t.guard is not None and t.guard.name not in satisfied_guards:
                continue
            return t
        return None
