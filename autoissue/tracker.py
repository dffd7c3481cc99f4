"""
GitHub Issues through the `gh` CLI.

Every call passes an argv list to subprocess; nothing is ever evaluated
by a shell. `command_preview` renders the same argv as a copy-pasteable
string for display and for the manual fallback hint.
"""

from __future__ import annotations

import json
import re
import shlex
import subprocess
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, field_validator

from autoissue.config_loader import TrackerConfig
from autoissue.errors import ExternalOperationFailure
from autoissue.safety import validate_quotes

_NUMBER_RE = re.compile(r"/(\d+)(?:#.*)?$")
_COMMENT_RE = re.compile(r"#issuecomment-(\d+)$")


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class OperationResult(BaseModel):
    success: bool
    message: str
    external_id: str | None = None
    cancelled: bool = False
    command: str | None = None  # display-only equivalent gh command

    @classmethod
    def cancel(cls, message: str = "Operation cancelled.") -> "OperationResult":
        return cls(success=False, cancelled=True, message=message)


class IssueSnapshot(BaseModel):
    number: int
    title: str = ""
    body: str = ""
    state: str = ""
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    milestone: str | None = None
    url: str = ""

    @classmethod
    def from_gh(cls, data: dict[str, Any]) -> "IssueSnapshot":
        milestone = data.get("milestone") or {}
        return cls(
            number=data["number"],
            title=data.get("title") or "",
            body=data.get("body") or "",
            state=data.get("state") or "",
            labels=[lbl["name"] for lbl in data.get("labels") or []],
            assignees=[a["login"] for a in data.get("assignees") or []],
            milestone=milestone.get("title") if isinstance(milestone, dict) else None,
            url=data.get("url") or "",
        )

    def as_text(self) -> str:
        """Plain-text rendering used as prompt context."""
        lines = [
            f"#{self.number}: {self.title}",
            f"State: {self.state or 'unknown'}",
            f"Labels: {', '.join(self.labels) or 'none'}",
            f"Assignees: {', '.join(self.assignees) or 'none'}",
            f"Milestone: {self.milestone or 'none'}",
            "",
            self.body or "(no description)",
        ]
        return "\n".join(lines)


class IssueEdit(BaseModel):
    """Field-level changes for `gh issue edit`."""
    title: str | None = None
    body: str | None = None
    add_labels: list[str] = Field(default_factory=list)
    remove_labels: list[str] = Field(default_factory=list)
    add_assignees: list[str] = Field(default_factory=list)
    remove_assignees: list[str] = Field(default_factory=list)
    milestone: str | None = None

    @field_validator("add_labels", "remove_labels", "add_assignees", "remove_assignees", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return value or []

    @property
    def is_empty(self) -> bool:
        return not any([
            self.title, self.body, self.add_labels, self.remove_labels,
            self.add_assignees, self.remove_assignees, self.milestone,
        ])


class TrackerContext(BaseModel):
    """Allow-lists for new-issue metadata. None means the list could not be read."""
    labels: list[str] | None = None
    milestones: list[str] | None = None
    collaborators: list[str] | None = None


# ---------------------------------------------------------------------------
# argv builders (shared by execution and display)
# ---------------------------------------------------------------------------

def command_preview(argv: list[str]) -> str:
    return shlex.join(argv)


def create_argv(
    gh: str,
    title: str,
    body: str,
    labels: list[str] | None = None,
    assignees: list[str] | None = None,
    milestone: str | None = None,
) -> list[str]:
    argv = [gh, "issue", "create", "--title", title, "--body", body]
    if labels:
        argv += ["--label", ",".join(labels)]
    if assignees:
        argv += ["--assignee", ",".join(assignees)]
    if milestone:
        argv += ["--milestone", milestone]
    return argv


def edit_argv(gh: str, number: int, fields: IssueEdit) -> list[str]:
    argv = [gh, "issue", "edit", str(number)]
    if fields.title:
        argv += ["--title", fields.title]
    if fields.body:
        argv += ["--body", fields.body]
    if fields.add_labels:
        argv += ["--add-label", ",".join(fields.add_labels)]
    if fields.remove_labels:
        argv += ["--remove-label", ",".join(fields.remove_labels)]
    if fields.add_assignees:
        argv += ["--add-assignee", ",".join(fields.add_assignees)]
    if fields.remove_assignees:
        argv += ["--remove-assignee", ",".join(fields.remove_assignees)]
    if fields.milestone:
        argv += ["--milestone", fields.milestone]
    return argv


def comment_argv(gh: str, number: int, body: str) -> list[str]:
    return [gh, "issue", "comment", str(number), "--body", body]


def state_argv(gh: str, verb: str, number: int, reason: str | None = None) -> list[str]:
    argv = [gh, "issue", verb, str(number)]
    if reason:
        argv += ["--comment", reason]
    return argv


def _external_id(stdout: str) -> str | None:
    """Comment id for comment URLs, else the trailing issue number, else the raw URL."""
    url = stdout.strip().splitlines()[-1] if stdout.strip() else ""
    match = _COMMENT_RE.search(url) or _NUMBER_RE.search(url)
    if match:
        return match.group(1)
    return url or None


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------

class GitHubTracker:
    """Reads and writes issues of the repository `gh` resolves from cwd."""

    def __init__(self, config: TrackerConfig | None = None, cwd: str | None = None):
        self.config = config or TrackerConfig()
        self.cwd = cwd
        self.gh = self.config.gh_binary

    def _run(self, argv: list[str]) -> str:
        logger.debug(f"[TRACKER] {' '.join(argv[:4])} ...")
        manual = command_preview(argv)
        try:
            result = subprocess.run(
                argv,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.config.timeout,
            )
        except FileNotFoundError as e:
            raise ExternalOperationFailure(
                f"GitHub CLI ({self.gh}) not found. Install it from https://cli.github.com/",
                manual_hint=manual,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ExternalOperationFailure(
                f"{argv[1]} {argv[2]} timed out after {self.config.timeout}s",
                manual_hint=manual,
            ) from e

        if result.returncode != 0:
            error = (result.stderr or result.stdout).strip()
            raise ExternalOperationFailure(error or f"gh exited with {result.returncode}", manual_hint=manual)
        return result.stdout

    def _run_json(self, argv: list[str]) -> Any:
        output = self._run(argv)
        try:
            return json.loads(output or "null")
        except json.JSONDecodeError as e:
            raise ExternalOperationFailure(f"Unexpected output from {' '.join(argv[:3])}: {e}") from e

    # -- reads ---------------------------------------------------------------

    def view(self, number: int) -> IssueSnapshot:
        data = self._run_json([
            self.gh, "issue", "view", str(number),
            "--json", "number,title,body,state,labels,assignees,milestone,url",
        ])
        if not isinstance(data, dict) or "number" not in data:
            raise ExternalOperationFailure(f"Issue #{number} not found")
        return IssueSnapshot.from_gh(data)

    def list_labels(self) -> list[str]:
        data = self._run_json([
            self.gh, "label", "list", "--limit", str(self.config.label_limit), "--json", "name",
        ])
        return [item["name"] for item in data or []]

    def list_milestones(self) -> list[str]:
        data = self._run_json([self.gh, "api", "repos/{owner}/{repo}/milestones"])
        return [item["title"] for item in (data or [])[: self.config.milestone_limit]]

    def list_collaborators(self) -> list[str]:
        data = self._run_json([self.gh, "api", "repos/{owner}/{repo}/collaborators"])
        return [item["login"] for item in (data or [])[: self.config.collaborator_limit]]

    def context(self) -> TrackerContext:
        """All allow-lists; a list that cannot be read is left as None."""
        lists: dict[str, list[str] | None] = {}
        for name, reader in (
            ("labels", self.list_labels),
            ("milestones", self.list_milestones),
            ("collaborators", self.list_collaborators),
        ):
            try:
                lists[name] = reader()
            except ExternalOperationFailure as e:
                logger.warning(f"[TRACKER] Could not list {name}: {e}")
                lists[name] = None
        return TrackerContext(**lists)

    # -- writes --------------------------------------------------------------

    def create(
        self,
        title: str,
        body: str,
        labels: list[str] | None = None,
        assignees: list[str] | None = None,
        milestone: str | None = None,
    ) -> OperationResult:
        for value in (title, milestone or "", *(labels or []), *(assignees or [])):
            validate_quotes(value)
        argv = create_argv(self.gh, title, body, labels, assignees, milestone)
        output = self._run(argv)
        return OperationResult(
            success=True,
            message=f"Issue created: {output.strip()}",
            external_id=_external_id(output),
            command=command_preview(argv),
        )

    def edit(self, number: int, fields: IssueEdit) -> OperationResult:
        for value in (
            fields.title or "", fields.milestone or "",
            *fields.add_labels, *fields.remove_labels, *fields.add_assignees, *fields.remove_assignees,
        ):
            validate_quotes(value)
        argv = edit_argv(self.gh, number, fields)
        output = self._run(argv)
        return OperationResult(
            success=True,
            message=f"Issue #{number} updated",
            external_id=_external_id(output) or str(number),
            command=command_preview(argv),
        )

    def comment(self, number: int, body: str) -> OperationResult:
        argv = comment_argv(self.gh, number, body)
        output = self._run(argv)
        return OperationResult(
            success=True,
            message=f"Comment posted: {output.strip()}",
            external_id=_external_id(output),
            command=command_preview(argv),
        )

    def close(self, number: int, reason: str | None = None) -> OperationResult:
        argv = state_argv(self.gh, "close", number, reason)
        self._run(argv)
        return OperationResult(
            success=True, message=f"Issue #{number} closed",
            external_id=str(number), command=command_preview(argv),
        )

    def reopen(self, number: int, reason: str | None = None) -> OperationResult:
        argv = state_argv(self.gh, "reopen", number, reason)
        self._run(argv)
        return OperationResult(
            success=True, message=f"Issue #{number} reopened",
            external_id=str(number), command=command_preview(argv),
        )
