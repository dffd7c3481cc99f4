"""
autoissue CLI: The Interface

Two modes:
  1. autoissue "add comment to issue 8 about login fix"   (one-shot)
  2. autoissue                                            (prompts for the request)

Plus:
  - autoissue --status     (check API keys, routing and tools)
  - autoissue --dry-run    (show the gh command instead of running it)
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.table import Table

from autoissue.config_loader import AutoIssueConfig, load_config, validate_api_keys
from autoissue.identity import BANNER, __codename__, __tagline__, __version__
from autoissue.pipeline import Pipeline, Session

# Load .env from current directory or home
load_dotenv()
load_dotenv(Path.home() / ".autoissue" / ".env")

app = typer.Typer(
    name="autoissue",
    help=f"{__codename__} — {__tagline__}",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__codename__} v{__version__}")
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Banner
# ---------------------------------------------------------------------------

def _print_banner():
    console.print(f"[bright_green]{BANNER}[/]")
    console.print(f"  [dim]v{__version__} — {__tagline__}[/]\n")


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------

@app.command()
def main(
    request: Optional[List[str]] = typer.Argument(None, help="What to do, in plain language"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Print the gh command instead of running it"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model for every stage (LiteLLM name)"),
    status: bool = typer.Option(False, "--status", help="Check configuration and readiness, then exit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    """Turn a plain-language request into a confirmed GitHub issue operation."""
    _print_banner()
    _configure_logging(verbose)

    config = load_config(Path.cwd())
    if model:
        config = config.with_model(model)
    if dry_run:
        config = config.model_copy(update={"dry_run": True})

    if status:
        _print_status(config)
        return

    text = " ".join(request or []).strip()
    if not text:
        console.print("[bold]Describe what you want to do with GitHub issues:[/]")
        text = typer.prompt(">>", default="", show_default=False).strip()
    if not text:
        console.print("[red]No request provided.[/]")
        raise typer.Exit(1)

    if not any(validate_api_keys().values()):
        logger.warning("No provider API key found in the environment; generation will likely fail.")

    pipeline = Pipeline(_build_session(config))
    raise typer.Exit(pipeline.run(text))


def _build_session(config: AutoIssueConfig) -> Session:
    return Session.create(config, console, cwd=Path.cwd())


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

def _print_status(config: AutoIssueConfig) -> None:
    keys = validate_api_keys()
    key_table = Table(title="API Keys", border_style="cyan")
    key_table.add_column("Key")
    key_table.add_column("Status")

    for key, available in keys.items():
        status_str = "[green]✓ Available[/]" if available else "[red]✗ Missing[/]"
        key_table.add_row(key, status_str)

    console.print(key_table)

    console.print(f"\n[bold]Routing:[/]")
    console.print(f"  Normalizer: {config.routing.normalizer}")
    console.print(f"  Extractor:  {config.routing.extractor}")
    console.print(f"  Composer:   {config.routing.composer}")

    console.print(f"\n[bold]Limits:[/]")
    console.print(f"  Request timeout: {config.limits.request_timeout}s")
    console.print(f"  Max retries:     {config.limits.max_retries}")
    console.print(f"  Dry run:         {'yes' if config.dry_run else 'no'}")

    tools_table = Table(title="System Tools", border_style="cyan")
    tools_table.add_column("Tool")
    tools_table.add_column("Status")

    for tool in ["git", config.tracker.gh_binary]:
        found = shutil.which(tool)
        s = f"[green]✓ {found}[/]" if found else "[dim]✗ Not found[/]"
        tools_table.add_row(tool, s)

    console.print(tools_table)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool) -> None:
    logger.remove()
    if verbose:
        logger.add(
            lambda msg: console.print(str(msg).rstrip(), style="dim", highlight=False, markup=False),
            level="DEBUG",
            format="{time:HH:mm:ss} | {level:<7} | {message}",
        )
    else:
        logger.add(
            lambda msg: console.print(str(msg).rstrip(), style="dim", highlight=False, markup=False),
            level="WARNING",
            format="{message}",
        )


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
