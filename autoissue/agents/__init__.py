"""
autoissue agents

Each agent is:
  - A prompt template
  - One generation call through the router
  - A parser that turns plain text into a typed result

Agents are stateless. Anything a run needs is passed in.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol

from autoissue.errors import GenerationFailure


class TextGenerator(Protocol):
    """What agents need from the router."""

    def generate(self, prompt: str, stage: str = "composer") -> str:
        ...


class BaseAgent(ABC):
    """
    Base class for single-shot agents.

    Subclasses define:
      - role: str, the router stage (picks the model)
      - build_prompt(): constructs the prompt
      - parse_response(): extracts the typed output
      - fallback(): what to return when generation fails
    """

    role: str = "composer"

    def __init__(self, router: TextGenerator):
        self.router = router

    def run(self, request: str, context: str = "") -> Any:
        """Build prompt, call the model once, parse. Never raises GenerationFailure."""
        prompt = self.build_prompt(request, context)
        try:
            content = self.router.generate(prompt, stage=self.role)
        except GenerationFailure as e:
            return self.fallback(request, e)
        return self.parse_response(content, request)

    @abstractmethod
    def build_prompt(self, request: str, context: str = "") -> str:
        ...

    @abstractmethod
    def parse_response(self, content: str, request: str) -> Any:
        ...

    @abstractmethod
    def fallback(self, request: str, error: Exception) -> Any:
        ...
