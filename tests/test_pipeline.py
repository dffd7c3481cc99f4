from conftest import FakeRouter, FakeTracker, ScriptedPrompter, console_text, make_issue

from autoissue.errors import GenerationFailure
from autoissue.loop import ACCEPT, QUIT
from autoissue.pipeline import Pipeline

COMMENT_INTENT = """OPERATION: comment
ISSUE_NUMBER: 8
CONTENT: login fix
CONFIDENCE: high
REQUESTED_LABELS: NONE
REQUESTED_ASSIGNEES: NONE
REQUESTED_MILESTONE: NONE
PRIORITY_INDICATORS: NONE
TONE_PREFERENCE: NONE
SPECIAL_INSTRUCTIONS: NONE"""


def test_comment_request_end_to_end(make_session):
    router = FakeRouter([
        "add comment to issue 8 about login fix",
        COMMENT_INTENT,
        "The login fix has been merged and will ship in the next release.",
    ])
    tracker = FakeTracker(issues=[make_issue(8)])
    session = make_session(router, tracker, ScriptedPrompter(confirms=[True], choices=[ACCEPT]))

    code = Pipeline(session).run("add comment to issue 8 about login fix")

    assert code == 0
    assert tracker.writes == [
        ("comment", 8, "The login fix has been merged and will ship in the next release.")
    ]
    assert [stage for stage, _ in router.calls] == ["normalizer", "extractor", "composer"]
    assert session.events.types() == [
        "request_normalized", "intent_extracted",
        "gate_parsed", "gate_validated", "gate_approved",
        "generation_attempt", "operation_dispatched",
    ]
    assert "✓ Comment posted" in console_text(session.console)


def test_conversational_request_is_shown_converted(make_session):
    router = FakeRouter([
        "view issue 8",
        "OPERATION: view\nISSUE_NUMBER: 8\nCONTENT: NONE\nCONFIDENCE: high",
    ])
    session = make_session(router, FakeTracker(issues=[make_issue(8)]), ScriptedPrompter(confirms=[True]))

    assert Pipeline(session).run("could you show me issue 8?") == 0
    output = console_text(session.console)
    assert "Converted to: view issue 8" in output
    assert "Login fails on mobile" in output


def test_ambiguous_edit_warns_and_can_be_declined(make_session):
    router = FakeRouter(["edit issue 13", "OPERATION: edit\nISSUE_NUMBER: 13\nCONTENT: NONE\nCONFIDENCE: low"])
    tracker = FakeTracker(issues=[make_issue(13)])
    session = make_session(router, tracker, ScriptedPrompter(confirms=[False]))

    assert Pipeline(session).run("edit issue 13") == 0
    output = console_text(session.console)
    assert "Low confidence" in output
    assert "Operation cancelled." in output
    assert tracker.writes == []


def test_ambiguous_edit_can_still_be_approved(make_session):
    router = FakeRouter([
        "edit issue 13",
        "OPERATION: edit\nISSUE_NUMBER: 13\nCONTENT: NONE\nCONFIDENCE: low",
        '{"title": "Login times out after 30 seconds"}',
    ])
    tracker = FakeTracker(issues=[make_issue(13)])
    session = make_session(router, tracker, ScriptedPrompter(confirms=[True], choices=[QUIT]))

    assert Pipeline(session).run("edit issue 13") == 0
    assert "Edit cancelled." in console_text(session.console)
    assert tracker.writes == []


def test_empty_generation_reports_manual_command(make_session):
    router = FakeRouter([
        "add comment to issue 8 about login fix",
        COMMENT_INTENT,
        GenerationFailure("Text generation returned no content (gemini/gemini-2.5-flash)."),
    ])
    tracker = FakeTracker(issues=[make_issue(8)])
    session = make_session(router, tracker, ScriptedPrompter(confirms=[True]))

    assert Pipeline(session).run("add comment to issue 8 about login fix") == 1
    output = console_text(session.console)
    assert "✗ Text generation returned no content" in output
    assert "Run manually: gh issue comment 8 --body '<comment>'" in output
    assert tracker.writes == []


def test_unreachable_service_halts_before_the_gate(make_session):
    failure = GenerationFailure("Text generation failed (gemini/gemini-2.5-flash): timed out")
    router = FakeRouter([failure, failure])
    prompter = ScriptedPrompter()
    session = make_session(router, FakeTracker(), prompter)

    assert Pipeline(session).run("make the thing better") == 1
    assert "Unsupported operation: unknown" in console_text(session.console)
    assert prompter.asked == []


def test_missing_issue_fails_without_writes(make_session):
    router = FakeRouter(["close issue 99", "OPERATION: close\nISSUE_NUMBER: 99\nCONFIDENCE: high"])
    tracker = FakeTracker()
    session = make_session(router, tracker, ScriptedPrompter())

    assert Pipeline(session).run("close issue 99") == 1
    assert "Issue #99 could not be loaded" in console_text(session.console)
    assert tracker.writes == []


def test_repository_context_reaches_the_extractor(make_session, tmp_path):
    (tmp_path / "GEMINI.md").write_text("Payments service for the mobile app.")
    router = FakeRouter(["view issue 8", "OPERATION: view\nISSUE_NUMBER: 8\nCONFIDENCE: high"])
    session = make_session(router, FakeTracker(issues=[make_issue(8)]), ScriptedPrompter(confirms=[True]))

    Pipeline(session).run("view issue 8")

    assert "Payments service for the mobile app." in router.prompts("extractor")[0]


def test_dry_run_is_announced(make_session):
    router = FakeRouter(["close issue 8", "OPERATION: close\nISSUE_NUMBER: 8\nCONFIDENCE: high"])
    tracker = FakeTracker(issues=[make_issue(8)])
    session = make_session(router, tracker, ScriptedPrompter(confirms=[True]), dry_run=True)

    assert Pipeline(session).run("close issue 8") == 0
    output = console_text(session.console)
    assert "Dry run: no changes will be made" in output
    assert "gh issue close 8" in output
    assert tracker.writes == []
