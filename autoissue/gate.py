"""
Confirmation Gate

Nothing reaches the tracker without passing here:

    PARSED -> VALIDATED -> APPROVED        (then dispatch)
    PARSED -> REJECTED                     (field rules failed)
    VALIDATED -> REJECTED                  (target missing, or user declined)

`validate` is a pure function of the Intent. `review` adds the target
existence check and the human decision. A low-confidence parse is shown
with a warning but can still be approved: the user is the final
authority. There is no automatic retry; a new Intent starts over.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from autoissue.errors import (
    ExternalOperationFailure,
    MissingTargetFailure,
    UnsupportedOperation,
    UserCancellation,
)
from autoissue.event_bus import EventBus
from autoissue.intent import Intent
from autoissue.prompter import Prompter
from autoissue.tracker import GitHubTracker, IssueSnapshot


class GateState(str, Enum):
    PARSED = "parsed"
    VALIDATED = "validated"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class GateDecision:
    state: GateState
    reason: str = ""
    error: type[Exception] | None = None

    @property
    def accepted(self) -> bool:
        return self.state == GateState.VALIDATED


@dataclass
class ConfirmedAction:
    """An approved Intent, ready for exactly one dispatch."""
    intent: Intent
    target: IssueSnapshot | None = None
    dispatched: bool = field(default=False, init=False)

    def mark_dispatched(self) -> None:
        if self.dispatched:
            raise RuntimeError(f"Action '{self.intent.operation}' was already dispatched")
        self.dispatched = True


_VERBS = {
    "create": "CREATE new issue",
    "edit": "EDIT issue #{n}",
    "comment": "COMMENT on issue #{n}",
    "view": "VIEW issue #{n}",
    "close": "CLOSE issue #{n}",
    "reopen": "REOPEN issue #{n}",
}

_CONTENT_LABELS = {"create": "Description", "edit": "Changes", "comment": "Content"}


def validate(intent: Intent) -> GateDecision:
    """Field rules per operation. Pure: no I/O, same Intent -> same decision."""
    if not intent.is_supported:
        return GateDecision(
            GateState.REJECTED,
            f"Unsupported operation: {intent.operation}",
            UnsupportedOperation,
        )
    if intent.requires_target and not intent.target_id:
        return GateDecision(
            GateState.REJECTED,
            f"Cannot {intent.operation}: no issue number specified",
            MissingTargetFailure,
        )
    return GateDecision(GateState.VALIDATED)


class ConfirmationGate:

    def __init__(
        self,
        tracker: GitHubTracker,
        prompter: Prompter,
        console: Console,
        events: EventBus | None = None,
    ):
        self.tracker = tracker
        self.prompter = prompter
        self.console = console
        self.events = events or EventBus()

    def _transition(self, state: GateState, intent: Intent, reason: str = "") -> None:
        logger.debug(f"[GATE] {state.value} ({intent.operation}) {reason}".rstrip())
        self.events.emit(f"gate_{state.value}", "gate", {
            "operation": intent.operation,
            "target_id": intent.target_id,
            "reason": reason,
        })

    def review(self, intent: Intent) -> ConfirmedAction:
        """
        Validate, verify the target, show the analysis and ask for approval.

        Raises:
            UnsupportedOperation / MissingTargetFailure: field rules failed
                or the target issue could not be loaded. Zero side effects.
            UserCancellation: the user did not approve.
        """
        self._transition(GateState.PARSED, intent)

        decision = validate(intent)
        if not decision.accepted:
            self._transition(GateState.REJECTED, intent, decision.reason)
            raise decision.error(decision.reason)
        self._transition(GateState.VALIDATED, intent)

        target = None
        if intent.requires_target:
            try:
                target = self.tracker.view(intent.target_id)
            except ExternalOperationFailure as e:
                reason = f"Issue #{intent.target_id} could not be loaded: {e}"
                self._transition(GateState.REJECTED, intent, reason)
                raise MissingTargetFailure(reason) from e

        self.render(intent, target)

        if not self.prompter.confirm("Proceed with this operation?"):
            self._transition(GateState.REJECTED, intent, "declined")
            raise UserCancellation()

        self._transition(GateState.APPROVED, intent)
        return ConfirmedAction(intent=intent, target=target)

    def render(self, intent: Intent, target: IssueSnapshot | None = None) -> None:
        table = Table(title="Intent Analysis", border_style="cyan", show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")

        table.add_row("Operation", _VERBS[intent.operation].format(n=intent.target_id))
        if target:
            table.add_row("Issue", f"{escape(target.title)} [dim]({target.state.lower() or '?'})[/]")
        if intent.content and intent.operation != "view":
            table.add_row(_CONTENT_LABELS.get(intent.operation, "Reason"), escape(intent.content))
        for label, value in (
            ("Requested labels", ", ".join(intent.labels)),
            ("Requested assignees", ", ".join(intent.assignees)),
            ("Requested milestone", intent.milestone),
            ("Priority", intent.priority),
            ("Tone", intent.tone),
            ("Special instructions", intent.special_instructions),
        ):
            if value:
                table.add_row(label, escape(value))
        color = {"high": "green", "medium": "yellow"}.get(intent.confidence, "red")
        table.add_row("Confidence", f"[{color}]{intent.confidence}[/]")
        self.console.print(table)

        if intent.confidence == "low":
            self.console.print(
                "[yellow]⚠ Low confidence in intent parsing. "
                "Please verify the operation above is correct.[/]"
            )
