import io

import pytest
from rich.console import Console

from autoissue.config_loader import AutoIssueConfig, LimitsConfig
from autoissue.context import RepoContext
from autoissue.errors import ExternalOperationFailure
from autoissue.event_bus import EventBus
from autoissue.pipeline import Session
from autoissue.router import UsageRecord
from autoissue.tracker import IssueEdit, IssueSnapshot, OperationResult, TrackerContext


class FakeRouter:
    """Returns scripted outputs in order. An Exception in the script is raised."""

    def __init__(self, outputs=None):
        self.outputs = list(outputs or [])
        self.calls: list[tuple[str, str]] = []
        self.usage = UsageRecord()

    def generate(self, prompt: str, stage: str = "composer") -> str:
        self.calls.append((stage, prompt))
        if not self.outputs:
            raise AssertionError(f"Unexpected generate call for stage {stage}")
        output = self.outputs.pop(0)
        if isinstance(output, Exception):
            raise output
        return output

    def prompts(self, stage: str) -> list[str]:
        return [p for s, p in self.calls if s == stage]


class FakeTracker:
    """In-memory tracker; writes are recorded, never executed."""

    gh = "gh"

    def __init__(self, issues=None, labels=(), milestones=(), collaborators=()):
        self.issues = {i.number: i for i in (issues or [])}
        self.labels = None if labels is None else list(labels)
        self.milestones = None if milestones is None else list(milestones)
        self.collaborators = None if collaborators is None else list(collaborators)
        self.writes: list[tuple] = []
        self.viewed: list[int] = []

    def view(self, number: int) -> IssueSnapshot:
        self.viewed.append(number)
        if number not in self.issues:
            raise ExternalOperationFailure(f"Could not resolve to an issue with the number of {number}.")
        return self.issues[number]

    def context(self) -> TrackerContext:
        return TrackerContext(labels=self.labels, milestones=self.milestones, collaborators=self.collaborators)

    def create(self, title, body, labels=None, assignees=None, milestone=None) -> OperationResult:
        self.writes.append(("create", title, body, labels, assignees, milestone))
        return OperationResult(success=True, message="Issue created", external_id="42")

    def edit(self, number: int, fields: IssueEdit) -> OperationResult:
        self.writes.append(("edit", number, fields))
        return OperationResult(success=True, message=f"Issue #{number} updated", external_id=str(number))

    def comment(self, number: int, body: str) -> OperationResult:
        self.writes.append(("comment", number, body))
        return OperationResult(success=True, message="Comment posted", external_id=str(number))

    def close(self, number: int, reason=None) -> OperationResult:
        self.writes.append(("close", number, reason))
        return OperationResult(success=True, message=f"Issue #{number} closed", external_id=str(number))

    def reopen(self, number: int, reason=None) -> OperationResult:
        self.writes.append(("reopen", number, reason))
        return OperationResult(success=True, message=f"Issue #{number} reopened", external_id=str(number))


class ScriptedPrompter:
    """Answers prompts from queues and records what was asked."""

    def __init__(self, choices=(), answers=(), confirms=()):
        self.choices = list(choices)
        self.answers = list(answers)
        self.confirms = list(confirms)
        self.asked: list[tuple[str, str, list[str] | None]] = []

    def choose(self, prompt: str, options: list[str]) -> str:
        self.asked.append(("choose", prompt, list(options)))
        choice = self.choices.pop(0)
        assert choice in options, f"{choice!r} not offered in {options}"
        return choice

    def ask(self, prompt: str) -> str:
        self.asked.append(("ask", prompt, None))
        return self.answers.pop(0) if self.answers else ""

    def confirm(self, prompt: str) -> bool:
        self.asked.append(("confirm", prompt, None))
        return self.confirms.pop(0)


def make_issue(number: int = 8, **kwargs) -> IssueSnapshot:
    data = {
        "title": "Login fails on mobile",
        "body": "Users cannot log in from the app.",
        "state": "OPEN",
        "labels": ["bug"],
        "assignees": ["sarah"],
        "url": f"https://github.com/acme/app/issues/{number}",
    }
    data.update(kwargs)
    return IssueSnapshot(number=number, **data)


def make_console() -> Console:
    return Console(file=io.StringIO(), width=120, force_terminal=False, color_system=None)


def console_text(console: Console) -> str:
    return console.file.getvalue()


@pytest.fixture
def config():
    return AutoIssueConfig(limits=LimitsConfig(max_retries=2, retry_wait_seconds=0))


@pytest.fixture
def console():
    return make_console()


@pytest.fixture
def make_session(tmp_path, config):
    def _make(router, tracker, prompter, dry_run=False):
        return Session(
            config=config.model_copy(update={"dry_run": dry_run}),
            console=make_console(),
            prompter=prompter,
            router=router,
            tracker=tracker,
            repo=RepoContext(tmp_path, config.context),
            events=EventBus(),
        )
    return _make
