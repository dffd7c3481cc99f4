import pytest
from conftest import FakeTracker, ScriptedPrompter, console_text, make_issue

from autoissue.errors import MissingTargetFailure, UnsupportedOperation, UserCancellation
from autoissue.event_bus import EventBus
from autoissue.gate import ConfirmationGate, GateState, validate
from autoissue.intent import Intent


def _gate(console, tracker=None, confirms=(True,)):
    tracker = tracker or FakeTracker(issues=[make_issue(8), make_issue(13)])
    return ConfirmationGate(tracker, ScriptedPrompter(confirms=confirms), console, EventBus())


@pytest.mark.parametrize("intent,state,error", [
    (Intent(operation="create", content="dark mode"), GateState.VALIDATED, None),
    (Intent(operation="comment", target_id=8, content="fix"), GateState.VALIDATED, None),
    (Intent(operation="comment", content="fix"), GateState.REJECTED, MissingTargetFailure),
    (Intent(operation="view"), GateState.REJECTED, MissingTargetFailure),
    (Intent(operation="unknown", content="hmm"), GateState.REJECTED, UnsupportedOperation),
    (Intent(operation="delete", target_id=3), GateState.REJECTED, UnsupportedOperation),
])
def test_validate(intent, state, error):
    decision = validate(intent)
    assert decision.state == state
    assert decision.error is error


def test_validate_is_pure():
    intent = Intent(operation="edit", target_id=13, confidence="low")
    assert validate(intent) == validate(intent)


def test_approved_action_carries_target(console):
    gate = _gate(console)
    action = gate.review(Intent(operation="comment", target_id=8, content="login fix", confidence="high"))

    assert action.intent.target_id == 8
    assert action.target.title == "Login fails on mobile"
    assert not action.dispatched
    assert gate.events.types() == ["gate_parsed", "gate_validated", "gate_approved"]
    output = console_text(console)
    assert "COMMENT on issue #8" in output
    assert "login fix" in output


def test_missing_target_never_reaches_the_tracker(console):
    tracker = FakeTracker()
    gate = _gate(console, tracker)
    with pytest.raises(MissingTargetFailure):
        gate.review(Intent(operation="close", content="done"))
    assert tracker.viewed == []
    assert gate.prompter.asked == []


def test_nonexistent_target_is_rejected_before_confirmation(console):
    gate = _gate(console, FakeTracker())
    with pytest.raises(MissingTargetFailure, match="#99"):
        gate.review(Intent(operation="edit", target_id=99, content="title"))
    assert gate.prompter.asked == []
    assert gate.events.types()[-1] == "gate_rejected"


def test_low_confidence_warns_but_allows_approval(console):
    gate = _gate(console)
    action = gate.review(Intent(operation="edit", target_id=13, confidence="low"))

    assert action.intent.operation == "edit"
    assert "Low confidence" in console_text(console)


def test_low_confidence_can_be_cancelled(console):
    gate = _gate(console, confirms=(False,))
    with pytest.raises(UserCancellation):
        gate.review(Intent(operation="edit", target_id=13, confidence="low"))
    assert "Low confidence" in console_text(console)
    assert gate.events.history[-1].payload["reason"] == "declined"


def test_action_dispatches_once(console):
    action = _gate(console).review(Intent(operation="create", content="dark mode", confidence="high"))
    action.mark_dispatched()
    with pytest.raises(RuntimeError):
        action.mark_dispatched()
