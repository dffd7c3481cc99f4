"""
autoissue Pipeline: one request, end to end.

    raw text -> Normalizer -> Extractor -> Gate -> Dispatcher -> result

It is NOT smart. It only sequences the stages, reports what happened,
and turns the error taxonomy into one line for the user plus an exit
code. All per-invocation state lives on the Session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from autoissue.agents import TextGenerator
from autoissue.agents.extractor import IntentExtractor
from autoissue.agents.normalizer import QuestionNormalizer
from autoissue.config_loader import AutoIssueConfig
from autoissue.context import RepoContext
from autoissue.dispatcher import Dispatcher
from autoissue.errors import AutoIssueError, UserCancellation
from autoissue.event_bus import EventBus
from autoissue.gate import ConfirmationGate
from autoissue.prompter import ConsolePrompter, Prompter
from autoissue.router import Router
from autoissue.tracker import GitHubTracker, OperationResult


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

@dataclass
class Session:
    """Everything one invocation needs, passed explicitly."""
    config: AutoIssueConfig
    console: Console
    prompter: Prompter
    router: TextGenerator
    tracker: GitHubTracker
    repo: RepoContext
    events: EventBus = field(default_factory=EventBus)

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    @classmethod
    def create(cls, config: AutoIssueConfig, console: Console, cwd: Path | None = None) -> "Session":
        cwd = cwd or Path.cwd()
        return cls(
            config=config,
            console=console,
            prompter=ConsolePrompter(console),
            router=Router(config),
            tracker=GitHubTracker(config.tracker, cwd=str(cwd)),
            repo=RepoContext(cwd, config.context),
        )


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class Pipeline:

    def __init__(self, session: Session):
        self.session = session
        self.console = session.console
        self.normalizer = QuestionNormalizer(session.router)
        self.extractor = IntentExtractor(session.router)
        self.gate = ConfirmationGate(session.tracker, session.prompter, session.console, session.events)

    def _dispatcher(self, repo_context: str) -> Dispatcher:
        s = self.session
        return Dispatcher(
            tracker=s.tracker,
            generator=s.router,
            prompter=s.prompter,
            console=s.console,
            repo_context=repo_context,
            dry_run=s.dry_run,
            events=s.events,
        )

    def print_repo_info(self) -> None:
        info = self.session.repo.describe()
        if not info:
            return
        parts = [f"[bold]{key.capitalize()}:[/] {escape(value)}" for key, value in info.items()]
        self.console.print("[dim]" + "  ".join(parts) + "[/]")

    def process(self, raw: str) -> OperationResult:
        """
        Run every stage for `raw`.

        Raises:
            AutoIssueError: any halt, including UserCancellation at the gate.
        """
        events = self.session.events
        self.print_repo_info()
        if self.session.dry_run:
            self.console.print("[yellow]Dry run: no changes will be made to the tracker.[/]")
        self.console.print(Panel(escape(raw), title="Request", border_style="bright_green"))

        # 1. Normalize
        self.console.print("[dim]Converting request to a command...[/]")
        command = self.normalizer.normalize(raw)
        if command != raw:
            self.console.print(f"[cyan]Converted to:[/] {escape(command)}")
        events.emit("request_normalized", "normalizer", {"raw": raw, "command": command})

        # 2. Extract
        repo_context = self.session.repo.load()
        self.console.print("[dim]Analyzing intent...[/]")
        intent = self.extractor.extract(command, repo_context)
        events.emit("intent_extracted", "extractor", intent.model_dump(mode="json"))

        # 3. Confirm
        action = self.gate.review(intent)

        # 4. Dispatch
        return self._dispatcher(repo_context).dispatch(action)

    def run(self, raw: str) -> int:
        """Process `raw` and report the outcome. Returns the exit code."""
        try:
            result = self.process(raw)
        except UserCancellation as e:
            self.console.print(f"[yellow]{escape(str(e))}[/]")
            return 0
        except AutoIssueError as e:
            logger.debug(f"[PIPELINE] Halted with {type(e).__name__}: {e}")
            self.report_failure(str(e), e.manual_hint)
            return 1
        finally:
            self._log_usage()

        if result.cancelled:
            self.console.print(f"[yellow]{escape(result.message)}[/]")
            return 0
        if not result.success:
            self.report_failure(result.message, result.command)
            return 1

        self.console.print(f"[bold green]✓ {escape(result.message)}[/]")
        if self.session.dry_run and result.command:
            logger.info(f"[PIPELINE] Dry run command: {result.command}")
        return 0

    def report_failure(self, cause: str, manual_hint: str | None = None) -> None:
        self.console.print(f"[bold red]✗ {escape(cause)}[/]")
        if manual_hint:
            self.console.print(f"[dim]Run manually:[/] {escape(manual_hint)}")

    def _log_usage(self) -> None:
        usage = getattr(self.session.router, "usage", None)
        if usage and usage.call_count:
            summary = usage.summary()
            logger.info(
                f"[PIPELINE] {summary['call_count']} model calls, "
                f"{summary['total_tokens']} tokens, ${summary['estimated_cost']:.4f}"
            )
