"""
Workflow value objects (``procurement_kernel.domain.workflow``).

Pure, frozen descriptions of a document state machine.  A ``Workflow``
lists its states and the ``Transition`` edges between them; a transition
may name a ``Guard`` whose evaluation is left to whoever executes the
workflow.  Nothing here performs I/O or evaluates business rules.

Invariants enforced
-------------------
* ``initial_state`` is a member of ``states``.
* Every transition references only states in ``states``.
* No two transitions share the same (from_state, action, to_state).
* ``terminal_states`` have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A named precondition that must pass before a transition fires."""

    name: str
    description: str

    def __post_init__(self) -> None:
        if not self.name or not self.description:
            raise ValueError("Guard name and description must be non-empty")


@dataclass(frozen=True)
class Transition:
    """A legal move from one state to another, triggered by ``action``.

    ``guard`` is evaluated by the executor.  ``keeps_state`` marks
    self-loops such as editing, where from and to state are the same.
    """

    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None

    @property
    def keeps_state(self) -> bool:
        return self.from_state == self.to_state


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""

    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name!r}: initial state {self.initial_state!r} "
                f"not in states {self.states}"
            )
        seen: set[tuple[str, str, str]] = set()
        for t in self.transitions:
            for state in (t.from_state, t.to_state):
                if state not in self.states:
                    raise ValueError(
                        f"Workflow {self.name!r}: transition {t.action!r} "
                        f"references unknown state {state!r}"
                    )
            key = (t.from_state, t.action, t.to_state)
            if key in seen:
                raise ValueError(
                    f"Workflow {self.name!r}: duplicate transition "
                    f"{t.action!r} from {t.from_state!r} to {t.to_state!r}"
                )
            seen.add(key)
        for state in self.terminal_states:
            if state not in self.states:
                raise ValueError(
                    f"Workflow {self.name!r}: terminal state {state!r} not in states"
                )
            if self.transitions_from(state):
                raise ValueError(
                    f"Workflow {self.name!r}: terminal state {state!r} has outgoing transitions"
                )

    def find_transition(
        self,
        from_state: str,
        action: str,
        to_state: str | None = None,
    ) -> Transition | None:
        """Return the transition for ``action`` out of ``from_state``, if any.

        An action may fan out to several target states (approve lands on
        either approved or adjusted); pass ``to_state`` to pick one.
        """
        for t in self.transitions:
            if t.from_state != from_state or t.action != action:
                continue
            if to_state is None or t.to_state == to_state:
                return t
        return None

    def transitions_from(self, state: str) -> tuple[Transition, ...]:
        """All transitions leaving ``state``, in declaration order."""
        return tuple(t for t in self.transitions if t.from_state == state)

    def actions_from(self, state: str) -> tuple[str, ...]:
        """Distinct actions available from ``state``, in declaration order."""
        return tuple(dict.fromkeys(t.action for t in self.transitions_from(state)))

    @property
    def actions(self) -> tuple[str, ...]:
        """Distinct action names, in declaration order."""
        return tuple(dict.fromkeys(t.action for t in self.transitions))
