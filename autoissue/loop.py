"""
Content Generation Loop

Operation-agnostic generate / review / regenerate cycle:

    generate -> [validate] -> render -> Accept | Regenerate | Quit

Regeneration rebuilds the prompt from the base prompt, the WHOLE feedback
history and the previous output, so each new draft answers every piece
of feedback given so far, not only the latest one.

`execute` runs at most once per loop, however many drafts are produced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from loguru import logger

from autoissue.event_bus import EventBus
from autoissue.prompter import Prompter
from autoissue.tracker import OperationResult

ACCEPT = "Accept"
REGENERATE = "Regenerate with feedback"
QUIT = "Quit"


@dataclass(frozen=True)
class GenerationAttempt:
    prompt: str
    raw_output: str
    feedback_history: tuple[str, ...]
    attempt_number: int


def build_prompt(base_prompt: str, feedback: list[str], previous_output: str | None, content_type: str) -> str:
    """Base prompt plus all accumulated feedback and the last draft."""
    if not feedback and previous_output is None:
        return base_prompt

    prompt = base_prompt
    if previous_output is not None:
        prompt += f"\n\nThe previous {content_type} was:\n---\n{previous_output}\n---"
    if feedback:
        notes = "\n".join(f"- {item}" for item in feedback)
        prompt += (
            f"\n\nUser feedback for improvement:\n{notes}\n\n"
            f"Please incorporate ALL of this feedback to improve the {content_type}."
        )
    return prompt


@dataclass
class ContentLoop:
    base_prompt: str
    generate: Callable[[str], str]
    render: Callable[[str], None]
    execute: Callable[[str], OperationResult]
    prompter: Prompter
    validate: Callable[[str], str | None] | None = None
    content_type: str = "content"
    events: EventBus | None = None

    feedback: list[str] = field(default_factory=list)
    attempts: list[GenerationAttempt] = field(default_factory=list)
    executed: bool = False

    def _generate(self) -> str:
        previous = self.attempts[-1].raw_output if self.attempts else None
        prompt = build_prompt(self.base_prompt, self.feedback, previous, self.content_type)
        # GenerationFailure propagates: terminal for this loop.
        output = self.generate(prompt)
        attempt = GenerationAttempt(
            prompt=prompt,
            raw_output=output,
            feedback_history=tuple(self.feedback),
            attempt_number=len(self.attempts) + 1,
        )
        self.attempts.append(attempt)
        logger.debug(f"[LOOP] {self.content_type} attempt {attempt.attempt_number}")
        if self.events:
            self.events.emit("generation_attempt", "loop", {
                "content_type": self.content_type,
                "attempt": attempt.attempt_number,
                "feedback_items": len(self.feedback),
            })
        return output

    def _collect_feedback(self) -> None:
        note = self.prompter.ask("Feedback for improvement (Enter to skip):")
        if note.strip():
            self.feedback.append(note.strip())

    def run(self) -> OperationResult:
        content = self._generate()

        while True:
            reason = self.validate(content) if self.validate else None

            if reason:
                logger.warning(f"[LOOP] Validation failed for {self.content_type}: {reason}")
                self.render(content)
                choice = self.prompter.choose(
                    f"Validation failed: {reason}. What would you like to do?",
                    [REGENERATE, QUIT],
                )
                if choice != REGENERATE:
                    return OperationResult.cancel(f"{self.content_type.capitalize()} cancelled.")
                self.feedback.append(f"The previous {self.content_type} failed validation: {reason}")
                self._collect_feedback()
                content = self._generate()
                continue

            self.render(content)
            choice = self.prompter.choose(f"Use this {self.content_type}?", [ACCEPT, REGENERATE, QUIT])

            if choice == ACCEPT:
                if self.executed:
                    raise RuntimeError("ContentLoop already executed")
                self.executed = True
                return self.execute(content)
            if choice == REGENERATE:
                self._collect_feedback()
                content = self._generate()
                continue
            return OperationResult.cancel(f"{self.content_type.capitalize()} cancelled.")
