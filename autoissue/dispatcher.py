"""
Action Dispatcher and Operation Adapters.

One ConfirmedAction in, one OperationResult out. Each adapter builds the
prompt for its operation, runs the Content Generation Loop where content
is needed, and makes a single typed tracker call on acceptance. Command
strings are produced for display and dry runs only.
"""

from __future__ import annotations

import difflib
from typing import Callable

from loguru import logger
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel

from autoissue.agents import TextGenerator
from autoissue.agents.composer import (
    IssueDraft,
    comment_prompt,
    create_prompt,
    edit_prompt,
    parse_draft,
    parse_edit,
    state_change_prompt,
)
from autoissue.errors import GenerationFailure, UnsupportedOperation, ValidationFailure
from autoissue.event_bus import EventBus
from autoissue.gate import ConfirmedAction
from autoissue.loop import ContentLoop
from autoissue.prompter import Prompter
from autoissue.safety import check_all
from autoissue.tracker import (
    GitHubTracker,
    IssueEdit,
    IssueSnapshot,
    OperationResult,
    TrackerContext,
    command_preview,
    comment_argv,
    create_argv,
    edit_argv,
    state_argv,
)


# ---------------------------------------------------------------------------
# Allow-list filtering
# ---------------------------------------------------------------------------

def closest_allowed(value: str, allowed: list[str]) -> str | None:
    """Exact (case-insensitive), else close spelling, else containment, else None."""
    key = value.strip().lower()
    if not key:
        return None
    lowered = {a.lower(): a for a in allowed}
    if key in lowered:
        return lowered[key]
    close = difflib.get_close_matches(key, list(lowered), n=1, cutoff=0.75)
    if close:
        return lowered[close[0]]
    for candidate, original in lowered.items():
        if len(key) >= 3 and (key in candidate or (len(candidate) >= 3 and candidate in key)):
            return original
    return None


def filter_allowed(values: list[str], allowed: list[str] | None, kind: str = "value") -> list[str]:
    """
    Keep only values the tracker knows, remapped to their canonical names.
    Nothing is ever invented: unknown values, or any value when the
    allow-list could not be read, are dropped.
    """
    if not values:
        return []
    if allowed is None:
        logger.warning(f"[DISPATCH] No {kind} list available; omitting {', '.join(values)}")
        return []

    kept: list[str] = []
    for value in values:
        match = closest_allowed(value, allowed)
        if match is None:
            logger.info(f"[DISPATCH] Omitting unknown {kind}: {value}")
            continue
        if match != value:
            logger.info(f"[DISPATCH] Mapped {kind} '{value}' -> '{match}'")
        if match not in kept:
            kept.append(match)
    return kept


def _first(values: list[str]) -> str | None:
    return values[0] if values else None


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class Dispatcher:

    def __init__(
        self,
        tracker: GitHubTracker,
        generator: TextGenerator,
        prompter: Prompter,
        console: Console,
        repo_context: str = "",
        dry_run: bool = False,
        events: EventBus | None = None,
    ):
        self.tracker = tracker
        self.generator = generator
        self.prompter = prompter
        self.console = console
        self.repo_context = repo_context
        self.dry_run = dry_run
        self.events = events or EventBus()
        self._adapters: dict[str, Callable[[ConfirmedAction], OperationResult]] = {
            "create": self.create,
            "edit": self.edit,
            "comment": self.comment,
            "view": self.view,
            "close": self.close,
            "reopen": self.reopen,
        }

    def dispatch(self, action: ConfirmedAction) -> OperationResult:
        """Route an approved action to its adapter. Each action runs once."""
        operation = action.intent.operation
        adapter = self._adapters.get(operation)
        if adapter is None:
            raise UnsupportedOperation(f"Unsupported operation: {operation}")

        action.mark_dispatched()
        logger.info(f"[DISPATCH] {operation} target={action.intent.target_id}")
        result = adapter(action)
        self.events.emit("operation_dispatched", "dispatch", {
            "operation": operation,
            "success": result.success,
            "cancelled": result.cancelled,
            "external_id": result.external_id,
        })
        return result

    # -- plumbing -----------------------------------------------------------

    def _generate(self, prompt: str) -> str:
        return self.generator.generate(prompt, stage="composer")

    def _loop(
        self, base_prompt: str, render, execute, content_type: str, manual: list[str], validate=None,
    ) -> OperationResult:
        """Run the content loop. A generation failure carries the manual gh command as its hint."""
        self.console.print(f"[dim]Generating {content_type}...[/]")
        loop = ContentLoop(
            base_prompt=base_prompt,
            generate=self._generate,
            render=render,
            execute=execute,
            prompter=self.prompter,
            validate=validate,
            content_type=content_type,
            events=self.events,
        )
        try:
            return loop.run()
        except GenerationFailure as e:
            e.manual_hint = e.manual_hint or command_preview(manual)
            raise

    def _write(self, argv: list[str], call: Callable[[], OperationResult]) -> OperationResult:
        preview = command_preview(argv)
        if self.dry_run:
            self.console.print(Panel(escape(preview), title="Dry run: would execute", border_style="yellow"))
            return OperationResult(success=True, message="dry run", command=preview)
        return call()

    def _target(self, action: ConfirmedAction) -> IssueSnapshot:
        return action.target or self.tracker.view(action.intent.target_id)

    def _show_text(self, title: str, content: str) -> None:
        self.console.print(Panel(Markdown(content), title=title, border_style="bright_blue"))

    # -- create -------------------------------------------------------------

    def _resolve_draft(self, draft: IssueDraft, allowed: TrackerContext, requested) -> IssueDraft:
        labels = filter_allowed([*requested.labels, *draft.labels], allowed.labels, "label")
        assignees = filter_allowed([*requested.assignees, *draft.assignees], allowed.collaborators, "assignee")
        milestones = [m for m in (requested.milestone, draft.milestone) if m]
        milestone = _first(filter_allowed(milestones, allowed.milestones, "milestone"))
        return draft.model_copy(update={"labels": labels, "assignees": assignees, "milestone": milestone})

    def create(self, action: ConfirmedAction) -> OperationResult:
        intent = action.intent
        self.console.print("[dim]Fetching repository labels, milestones and collaborators...[/]")
        allowed = self.tracker.context()

        def validate(content: str) -> str | None:
            try:
                draft = parse_draft(content)
            except ValidationFailure as e:
                return str(e)
            return check_all([draft.title, *draft.labels, *draft.assignees, draft.milestone or ""])

        def render(content: str) -> None:
            try:
                draft = self._resolve_draft(parse_draft(content), allowed, intent)
            except ValidationFailure:
                self.console.print(Panel(escape(content), title="Generated issue (invalid)", border_style="red"))
                return
            meta = [
                f"[bold]Labels:[/] {escape(', '.join(draft.labels) or '-')}",
                f"[bold]Assignees:[/] {escape(', '.join(draft.assignees) or '-')}",
                f"[bold]Milestone:[/] {escape(draft.milestone or '-')}",
            ]
            self.console.print(Panel("\n".join(meta), title=escape(draft.title), border_style="bright_blue"))
            self.console.print(Markdown(draft.body))

        def execute(content: str) -> OperationResult:
            draft = self._resolve_draft(parse_draft(content), allowed, intent)
            argv = create_argv(
                self.tracker.gh, draft.title, draft.body, draft.labels, draft.assignees, draft.milestone,
            )
            return self._write(argv, lambda: self.tracker.create(
                draft.title, draft.body, draft.labels, draft.assignees, draft.milestone,
            ))

        manual = create_argv(self.tracker.gh, "<title>", "<body>")
        return self._loop(create_prompt(intent, allowed, self.repo_context), render, execute, "issue", manual, validate)

    # -- edit ---------------------------------------------------------------

    def _resolve_edit(self, fields: IssueEdit, issue: IssueSnapshot, allowed: TrackerContext) -> IssueEdit:
        milestone = _first(filter_allowed([fields.milestone] if fields.milestone else [], allowed.milestones, "milestone"))
        return fields.model_copy(update={
            "add_labels": filter_allowed(fields.add_labels, allowed.labels, "label"),
            "remove_labels": filter_allowed(fields.remove_labels, issue.labels, "label"),
            "add_assignees": filter_allowed(fields.add_assignees, allowed.collaborators, "assignee"),
            "remove_assignees": filter_allowed(fields.remove_assignees, issue.assignees, "assignee"),
            "milestone": milestone,
        })

    def edit(self, action: ConfirmedAction) -> OperationResult:
        issue = self._target(action)
        allowed = self.tracker.context()

        def validate(content: str) -> str | None:
            try:
                fields = parse_edit(content)
            except ValidationFailure as e:
                return str(e)
            reason = check_all([
                fields.title or "", fields.milestone or "",
                *fields.add_labels, *fields.remove_labels,
                *fields.add_assignees, *fields.remove_assignees,
            ])
            if reason:
                return reason
            if self._resolve_edit(fields, issue, allowed).is_empty:
                return "None of the requested changes apply to this repository"
            return None

        def render(content: str) -> None:
            try:
                fields = self._resolve_edit(parse_edit(content), issue, allowed)
            except ValidationFailure:
                self.console.print(Panel(escape(content), title="Generated edit (invalid)", border_style="red"))
                return
            rows = []
            if fields.title:
                rows.append(f"[bold]Title:[/] {escape(issue.title)} -> {escape(fields.title)}")
            for label, values in (
                ("Add labels", fields.add_labels), ("Remove labels", fields.remove_labels),
                ("Add assignees", fields.add_assignees), ("Remove assignees", fields.remove_assignees),
            ):
                if values:
                    rows.append(f"[bold]{label}:[/] {escape(', '.join(values))}")
            if fields.milestone:
                rows.append(f"[bold]Milestone:[/] {escape(fields.milestone)}")
            if fields.body:
                rows.append("[bold]Body:[/] replaced (shown below)")
            self.console.print(Panel("\n".join(rows) or "[dim]No applicable changes[/]",
                                     title=f"Changes to #{issue.number}", border_style="bright_blue"))
            if fields.body:
                self.console.print(Markdown(fields.body))

        def execute(content: str) -> OperationResult:
            fields = self._resolve_edit(parse_edit(content), issue, allowed)
            argv = edit_argv(self.tracker.gh, issue.number, fields)
            return self._write(argv, lambda: self.tracker.edit(issue.number, fields))

        manual = [self.tracker.gh, "issue", "edit", str(issue.number), "--body", "<body>"]
        return self._loop(edit_prompt(action.intent, issue, self.repo_context), render, execute, "edit", manual, validate)

    # -- comment ------------------------------------------------------------

    def comment(self, action: ConfirmedAction) -> OperationResult:
        issue = self._target(action)

        def execute(body: str) -> OperationResult:
            argv = comment_argv(self.tracker.gh, issue.number, body)
            return self._write(argv, lambda: self.tracker.comment(issue.number, body))

        return self._loop(
            comment_prompt(action.intent, issue, self.repo_context),
            lambda body: self._show_text("Generated comment", body),
            execute,
            "comment",
            comment_argv(self.tracker.gh, issue.number, "<comment>"),
        )

    # -- close / reopen -----------------------------------------------------

    def _change_state(self, verb: str, action: ConfirmedAction) -> OperationResult:
        issue = self._target(action)
        call = self.tracker.close if verb == "close" else self.tracker.reopen

        def execute(reason: str | None) -> OperationResult:
            argv = state_argv(self.tracker.gh, verb, issue.number, reason)
            return self._write(argv, lambda: call(issue.number, reason))

        if not action.intent.content:
            return execute(None)

        return self._loop(
            state_change_prompt(verb, action.intent, issue, self.repo_context),
            lambda reason: self._show_text(f"{verb.capitalize()} comment", reason),
            execute,
            f"{verb} comment",
            state_argv(self.tracker.gh, verb, issue.number, "<reason>"),
        )

    def close(self, action: ConfirmedAction) -> OperationResult:
        return self._change_state("close", action)

    def reopen(self, action: ConfirmedAction) -> OperationResult:
        return self._change_state("reopen", action)

    # -- view ---------------------------------------------------------------

    def view(self, action: ConfirmedAction) -> OperationResult:
        issue = self._target(action)
        meta = (
            f"[bold]State:[/] {escape(issue.state or '?')}  "
            f"[bold]Labels:[/] {escape(', '.join(issue.labels) or '-')}  "
            f"[bold]Assignees:[/] {escape(', '.join(issue.assignees) or '-')}  "
            f"[bold]Milestone:[/] {escape(issue.milestone or '-')}"
        )
        self.console.print(Panel(meta, title=f"#{issue.number} {escape(issue.title)}",
                                 subtitle=escape(issue.url), border_style="cyan"))
        self.console.print(Markdown(issue.body or "_No description provided._"))
        return OperationResult(success=True, message=f"Viewed issue #{issue.number}", external_id=str(issue.number))
