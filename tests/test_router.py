from types import SimpleNamespace

import litellm
import pytest

from autoissue.config_loader import AutoIssueConfig, LimitsConfig
from autoissue.errors import GenerationFailure
from autoissue.router import Router, _build_kwargs, clean_output, strip_banner


def _response(content):
    usage = SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15)
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


@pytest.fixture
def router(config, monkeypatch):
    monkeypatch.setattr(litellm, "completion_cost", lambda completion_response: 0.001)
    return Router(config)


def test_generate_routes_stage_to_model(router, monkeypatch):
    seen = {}

    def fake_completion(**kwargs):
        seen.update(kwargs)
        return _response("OPERATION: view")

    monkeypatch.setattr(litellm, "completion", fake_completion)
    router.config = router.config.with_model("openai/gpt-4o-mini")

    assert router.generate("prompt", stage="extractor") == "OPERATION: view"
    assert seen["model"] == "openai/gpt-4o-mini"
    assert seen["messages"] == [{"role": "user", "content": "prompt"}]
    assert router.usage.call_count == 1
    assert router.usage.total_tokens == 15


def test_unknown_stage_is_rejected(router):
    with pytest.raises(ValueError):
        router.resolve_model("planner")


def test_banner_only_output_is_a_generation_failure(router, monkeypatch):
    monkeypatch.setattr(litellm, "completion", lambda **kw: _response("Loaded cached credentials.\n"))
    with pytest.raises(GenerationFailure, match="no content"):
        router.generate("prompt")


def test_banner_and_fences_are_stripped(router, monkeypatch):
    raw = 'Loaded cached credentials.\n```json\n{"title": "x"}\n```'
    monkeypatch.setattr(litellm, "completion", lambda **kw: _response(raw))
    assert router.generate("prompt") == '{"title": "x"}'


def test_transient_errors_are_retried(router, monkeypatch):
    calls = []

    def flaky(**kwargs):
        calls.append(kwargs)
        if len(calls) == 1:
            raise ConnectionError("connection reset")
        return _response("ok")

    monkeypatch.setattr(litellm, "completion", flaky)
    assert router.generate("prompt") == "ok"
    assert len(calls) == 2


def test_exhausted_retries_raise_generation_failure(router, monkeypatch):
    calls = []

    def down(**kwargs):
        calls.append(kwargs)
        raise TimeoutError("timed out")

    monkeypatch.setattr(litellm, "completion", down)
    with pytest.raises(GenerationFailure, match="timed out"):
        router.generate("prompt", stage="composer")
    assert len(calls) == router.config.limits.max_retries


def test_strip_banner_keeps_ordinary_first_line():
    assert strip_banner("Title: hello\nbody") == "Title: hello\nbody"
    assert strip_banner("Authentication succeeded\nreal") == "real"
    assert clean_output(None) == ""


def test_reasoning_models_get_no_temperature():
    config = AutoIssueConfig(limits=LimitsConfig(temperature=0.5))
    assert "temperature" not in _build_kwargs("openai/o3-mini", "p", config)
    assert _build_kwargs("gemini/gemini-2.5-flash", "p", config)["temperature"] == 0.5
