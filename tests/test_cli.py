import pytest
from conftest import FakeRouter, FakeTracker, ScriptedPrompter, make_issue
from typer.testing import CliRunner

from autoissue import __version__
from autoissue import cli
from autoissue.cli import app
from autoissue.config_loader import AutoIssueConfig, LimitsConfig
from autoissue.context import RepoContext
from autoissue.pipeline import Session

runner = CliRunner()

VIEW_INTENT = "OPERATION: view\nISSUE_NUMBER: 8\nCONFIDENCE: high"
CLOSE_INTENT = "OPERATION: close\nISSUE_NUMBER: 8\nCONFIDENCE: high"


@pytest.fixture
def wired(monkeypatch, tmp_path):
    """Point the CLI at fakes; returns the objects a session will use."""
    state = {"router": FakeRouter(), "tracker": FakeTracker(issues=[make_issue(8)]),
             "prompter": ScriptedPrompter(confirms=[True]), "configs": []}

    monkeypatch.setattr(cli, "load_config", lambda repo: AutoIssueConfig(limits=LimitsConfig(retry_wait_seconds=0)))

    def build(config):
        state["configs"].append(config)
        return Session(
            config=config, console=cli.console, prompter=state["prompter"],
            router=state["router"], tracker=state["tracker"], repo=RepoContext(tmp_path),
        )

    monkeypatch.setattr(cli, "_build_session", build)
    return state


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"AUTOISSUE v{__version__}" in result.stdout


def test_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "--dry-run" in result.stdout


def test_request_words_are_joined(wired):
    wired["router"].outputs = ["view issue 8", VIEW_INTENT]
    result = runner.invoke(app, ["view", "issue", "8"])

    assert result.exit_code == 0
    assert "Login fails on mobile" in result.stdout
    assert "User input: view issue 8" in wired["router"].prompts("extractor")[0]


def test_prompts_when_no_request_given(wired):
    wired["router"].outputs = ["view issue 8", VIEW_INTENT]
    result = runner.invoke(app, [], input="view issue 8\n")

    assert result.exit_code == 0
    assert "Describe what you want to do" in result.stdout
    assert wired["tracker"].viewed == [8]


def test_empty_interactive_request_exits_with_error(wired):
    result = runner.invoke(app, [], input="\n")
    assert result.exit_code == 1
    assert "No request provided" in result.stdout


def test_dry_run_and_model_flags(wired):
    wired["router"].outputs = ["close issue 8", CLOSE_INTENT]
    result = runner.invoke(app, ["--dry-run", "--model", "openai/gpt-4o-mini", "close issue 8"])

    assert result.exit_code == 0
    config = wired["configs"][0]
    assert config.dry_run
    assert config.routing.composer == "openai/gpt-4o-mini"
    assert wired["tracker"].writes == []
    assert "gh issue close 8" in result.stdout


def test_failure_exit_code(wired):
    wired["router"].outputs = ["close issue 99", CLOSE_INTENT.replace("8", "99")]
    result = runner.invoke(app, ["close issue 99"])
    assert result.exit_code == 1
    assert "Issue #99 could not be loaded" in result.stdout


def test_cancellation_is_not_a_failure(wired):
    wired["prompter"].confirms = [False]
    wired["router"].outputs = ["close issue 8", CLOSE_INTENT]
    result = runner.invoke(app, ["close issue 8"])
    assert result.exit_code == 0
    assert "Operation cancelled." in result.stdout


def test_status(wired):
    result = runner.invoke(app, ["--status"])
    assert result.exit_code == 0
    assert "API Keys" in result.stdout
    assert "Normalizer: gemini/gemini-2.5-flash" in result.stdout
