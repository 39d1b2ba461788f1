"""Tests for the Guard / Transition / Workflow value objects."""

import pytest

from procurement_kernel.domain.workflow import Guard, Transition, Workflow

CHECKED = Guard(name="checked", description="Document was checked")


def _workflow(**overrides) -> Workflow:
    kwargs = dict(
        name="doc",
        description="Test document",
        initial_state="draft",
        states=("draft", "review", "done"),
        transitions=(
            Transition("draft", "review", action="submit"),
            Transition("review", "done", action="accept", guard=CHECKED),
            Transition("review", "draft", action="accept_with_changes"),
            Transition("review", "review", action="annotate"),
        ),
        terminal_states=("done",),
    )
    kwargs.update(overrides)
    return Workflow(**kwargs)


class TestGuard:

    def test_requires_name_and_description(self):
        with pytest.raises(ValueError):
            Guard(name="", description="x")
        with pytest.raises(ValueError):
            Guard(name="x", description="")


class TestWorkflowConstruction:
    """Structural invariants checked at definition time."""

    def test_valid_workflow(self):
        wf = _workflow()
        assert wf.initial_state == "draft"

    def test_initial_state_must_exist(self):
        with pytest.raises(ValueError, match="initial state"):
            _workflow(initial_state="missing")

    def test_transition_states_must_exist(self):
        with pytest.raises(ValueError, match="unknown state"):
            _workflow(transitions=(Transition("draft", "nowhere", action="go"),))

    def test_duplicate_edge_rejected(self):
        with pytest.raises(ValueError, match="duplicate"):
            _workflow(
                transitions=(
                    Transition("draft", "review", action="submit"),
                    Transition("draft", "review", action="submit"),
                )
            )

    def test_same_action_may_fan_out(self):
        wf = _workflow(
            transitions=(
                Transition("draft", "review", action="submit"),
                Transition("draft", "done", action="submit"),
            ),
            terminal_states=(),
        )
        assert len(wf.transitions_from("draft")) == 2

    def test_terminal_state_cannot_have_exits(self):
        with pytest.raises(ValueError, match="terminal"):
            _workflow(
                transitions=(Transition("done", "draft", action="reopen"),),
            )


class TestWorkflowLookup:
    """find_transition / actions_from."""

    def test_find_transition(self):
        t = _workflow().find_transition("review", "accept")
        assert t is not None
        assert t.to_state == "done"
        assert t.guard is CHECKED

    def test_find_transition_missing(self):
        assert _workflow().find_transition("draft", "accept") is None

    def test_find_transition_by_target(self):
        wf = _workflow(
            transitions=(
                Transition("draft", "review", action="submit"),
                Transition("draft", "done", action="submit"),
            ),
            terminal_states=(),
        )
        assert wf.find_transition("draft", "submit", "done").to_state == "done"
        assert wf.find_transition("draft", "submit", "draft") is None

    def test_actions_from_in_declaration_order(self):
        assert _workflow().actions_from("review") == ("accept", "accept_with_changes", "annotate")

    def test_actions_from_terminal_is_empty(self):
        assert _workflow().actions_from("done") == ()

    def test_keeps_state(self):
        wf = _workflow()
        assert wf.find_transition("review", "annotate").keeps_state is True
        assert wf.find_transition("draft", "submit").keeps_state is False
