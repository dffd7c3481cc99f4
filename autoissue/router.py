"""
autoissue Router: text generation behind one call.

Routes every prompt through LiteLLM so the pipeline never knows which
vendor is answering. Handles model selection per stage, bounded retries,
timeouts, output cleaning and usage tracking. Any failure leaves this
module as a GenerationFailure.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any

import litellm
from loguru import logger
from tenacity import Retrying, stop_after_attempt, wait_fixed

from autoissue.config_loader import AutoIssueConfig
from autoissue.errors import GenerationFailure


# ---------------------------------------------------------------------------
# Usage Tracking
# ---------------------------------------------------------------------------

@dataclass
class UsageRecord:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    call_count: int = 0

    def record(self, response: Any) -> None:
        """Add token counts and LiteLLM's cost estimate for one response."""
        usage = getattr(response, "usage", None)
        if usage:
            self.prompt_tokens += getattr(usage, "prompt_tokens", 0) or 0
            self.completion_tokens += getattr(usage, "completion_tokens", 0) or 0
            self.total_tokens += getattr(usage, "total_tokens", 0) or 0

        try:
            self.estimated_cost += litellm.completion_cost(completion_response=response)
        except Exception as e:
            # Unknown pricing for the model; usage still counts.
            logger.debug(f"[ROUTER] No cost estimate: {e}")

        self.call_count += 1

    def summary(self) -> dict:
        return {
            "total_tokens": self.total_tokens,
            "estimated_cost": round(self.estimated_cost, 4),
            "call_count": self.call_count,
        }


# ---------------------------------------------------------------------------
# Output cleaning
# ---------------------------------------------------------------------------

# Diagnostic banners some CLIs/proxies print ahead of real output.
_BANNER_RE = re.compile(
    r"^(Loaded cached credentials\.|Authentication.*|Cached.*|Loading.*credentials)"
)


def strip_banner(text: str) -> str:
    """Drop a leading diagnostic banner line, if there is one."""
    lines = text.split("\n")
    if lines and _BANNER_RE.match(lines[0].strip()):
        return "\n".join(lines[1:])
    return text


def strip_fences(text: str) -> str:
    """Remove markdown code fences wrapping the whole response."""
    stripped = text.strip()
    if stripped.startswith("```"):
        lines = stripped.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        return "\n".join(lines).strip()
    return stripped


def clean_output(text: str) -> str:
    return strip_fences(strip_banner(text or ""))


# ---------------------------------------------------------------------------
# Model capability helpers
# ---------------------------------------------------------------------------

def _is_reasoning_model(model: str) -> bool:
    """GPT-5 and o-series models reject a custom temperature."""
    normalized = model.lower().replace("openai/", "")
    return normalized.startswith(("gpt-5", "o1", "o3", "o4"))


def _build_kwargs(model: str, prompt: str, config: AutoIssueConfig) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": config.limits.max_tokens,
        "timeout": config.limits.request_timeout,
    }
    if not _is_reasoning_model(model):
        kwargs["temperature"] = config.limits.temperature
    return kwargs


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

class Router:
    """
    Vendor-agnostic generation service.

    Stages call `router.generate(prompt, stage)`. The router resolves the
    model for the stage, retries a fixed number of times with a fixed
    wait, and returns cleaned, non-empty text or raises GenerationFailure.
    """

    STAGES = ("normalizer", "extractor", "composer")

    def __init__(self, config: AutoIssueConfig):
        self.config = config
        self.usage = UsageRecord()
        litellm.suppress_debug_info = True

    def resolve_model(self, stage: str) -> str:
        if stage not in self.STAGES:
            raise ValueError(f"Unknown stage: {stage}. Known: {list(self.STAGES)}")
        return getattr(self.config.routing, stage)

    def _complete(self, model: str, prompt: str) -> str:
        response = litellm.completion(**_build_kwargs(model, prompt, self.config))
        self.usage.record(response)
        return response.choices[0].message.content or ""

    def generate(self, prompt: str, stage: str = "composer") -> str:
        """
        Complete `prompt` with the model routed to `stage`.

        Raises:
            GenerationFailure: on service error, timeout, exhausted retries,
                or output that is empty once banners and fences are removed.
        """
        model = self.resolve_model(stage)
        limits = self.config.limits
        start = time.monotonic()
        logger.debug(f"[ROUTER] {stage} -> {model} ({len(prompt)} chars)")

        retrying = Retrying(
            stop=stop_after_attempt(limits.max_retries),
            wait=wait_fixed(limits.retry_wait_seconds),
            reraise=True,
        )
        try:
            raw = retrying(self._complete, model, prompt)
        except Exception as e:
            logger.warning(f"[ROUTER] {stage} failed after {limits.max_retries} attempts: {e}")
            raise GenerationFailure(f"Text generation failed ({model}): {e}") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        content = clean_output(raw)
        logger.debug(
            f"[ROUTER] {stage} complete: "
            f"{self.usage.total_tokens} tokens, "
            f"${self.usage.estimated_cost:.4f}, "
            f"{elapsed_ms}ms"
        )

        if not content:
            raise GenerationFailure(f"Text generation returned no content ({model}).")
        return content
