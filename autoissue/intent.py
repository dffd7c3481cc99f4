"""
Intent: the structured form of a natural-language request.

The model speaks a plain `KEY: VALUE` line format. That format lives only
here and in the extractor prompt; everything downstream sees `Intent`.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

# Operations the dispatcher knows how to run. `unknown` is a valid parse
# result (degraded extraction) but is never dispatched.
OPERATIONS = ("create", "edit", "comment", "view", "close", "reopen", "unknown")
TARGET_OPERATIONS = ("edit", "comment", "view", "close", "reopen")

CONFIDENCE_LEVELS = ("high", "medium", "low")
PRIORITY_LEVELS = ("urgent", "high", "medium", "low")
TONES = ("formal", "casual", "technical")

NONE_SENTINEL = "NONE"

Confidence = Literal["high", "medium", "low"]
Priority = Literal["urgent", "high", "medium", "low"]
Tone = Literal["formal", "casual", "technical"]

# Wire key -> Intent field, in the order the model is asked to emit them.
FIELD_KEYS: dict[str, str] = {
    "OPERATION": "operation",
    "ISSUE_NUMBER": "target_id",
    "CONTENT": "content",
    "CONFIDENCE": "confidence",
    "REQUESTED_LABELS": "labels",
    "REQUESTED_ASSIGNEES": "assignees",
    "REQUESTED_MILESTONE": "milestone",
    "PRIORITY_INDICATORS": "priority",
    "TONE_PREFERENCE": "tone",
    "SPECIAL_INSTRUCTIONS": "special_instructions",
}


class Intent(BaseModel):
    """Parsed request. Frozen: derive a new one with `model_copy(update=...)`."""

    model_config = ConfigDict(frozen=True)

    operation: str = "unknown"
    target_id: int | None = None
    content: str = ""
    confidence: Confidence = "low"
    labels: tuple[str, ...] = ()
    assignees: tuple[str, ...] = ()
    milestone: str | None = None
    priority: Priority | None = None
    tone: Tone | None = None
    special_instructions: str | None = None

    @field_validator("milestone", "special_instructions", mode="before")
    @classmethod
    def _blank_is_absent(cls, value: str | None) -> str | None:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_supported(self) -> bool:
        return self.operation in OPERATIONS and self.operation != "unknown"

    @property
    def requires_target(self) -> bool:
        return self.operation in TARGET_OPERATIONS

    @classmethod
    def degraded(cls, text: str) -> "Intent":
        """The terminal parse used when extraction produced nothing."""
        return cls(operation="unknown", confidence="low", content=text)

    def to_lines(self) -> str:
        """Serialise back to the `KEY: VALUE` wire format."""
        values = {
            "OPERATION": self.operation,
            "ISSUE_NUMBER": str(self.target_id) if self.target_id else None,
            "CONTENT": self.content or None,
            "CONFIDENCE": self.confidence,
            "REQUESTED_LABELS": ",".join(self.labels) or None,
            "REQUESTED_ASSIGNEES": ",".join(self.assignees) or None,
            "REQUESTED_MILESTONE": self.milestone,
            "PRIORITY_INDICATORS": self.priority,
            "TONE_PREFERENCE": self.tone,
            "SPECIAL_INSTRUCTIONS": self.special_instructions,
        }
        return "\n".join(f"{key}: {value or NONE_SENTINEL}" for key, value in values.items())


# ---------------------------------------------------------------------------
# Wire format parsing
# ---------------------------------------------------------------------------

def extract_field(key: str, text: str) -> str | None:
    """
    Value of the first line starting with `KEY:`.

    Returns None when the key is missing or its value is the NONE
    sentinel, and "" when the key is present with an empty value.
    """
    prefix = f"{key}:"
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith(prefix):
            value = stripped[len(prefix):].strip()
            if value == NONE_SENTINEL:
                return None
            return value
    return None


def _parse_target(value: str | None) -> int | None:
    if not value:
        return None
    value = value.lstrip("#").strip()
    if not value.isdigit():
        return None
    number = int(value)
    return number if number > 0 else None


def _parse_list(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    seen: list[str] = []
    for item in value.split(","):
        item = item.strip()
        if item and item != NONE_SENTINEL and item not in seen:
            seen.append(item)
    return tuple(seen)


def _parse_choice(value: str | None, allowed: tuple[str, ...]) -> str | None:
    if not value:
        return None
    value = value.strip().lower()
    return value if value in allowed else None


def parse_intent_lines(text: str) -> Intent:
    """
    Build an Intent from `KEY: VALUE` lines.

    Lenient at the model boundary: the operation is lower-cased but
    not checked against OPERATIONS (the dispatcher does that), an unknown
    confidence reads as low, unknown priority/tone values are dropped.
    """
    operation = (extract_field("OPERATION", text) or "unknown").strip().lower()
    return Intent(
        operation=operation or "unknown",
        target_id=_parse_target(extract_field("ISSUE_NUMBER", text)),
        content=extract_field("CONTENT", text) or "",
        confidence=_parse_choice(extract_field("CONFIDENCE", text), CONFIDENCE_LEVELS) or "low",
        labels=_parse_list(extract_field("REQUESTED_LABELS", text)),
        assignees=_parse_list(extract_field("REQUESTED_ASSIGNEES", text)),
        milestone=extract_field("REQUESTED_MILESTONE", text) or None,
        priority=_parse_choice(extract_field("PRIORITY_INDICATORS", text), PRIORITY_LEVELS),
        tone=_parse_choice(extract_field("TONE_PREFERENCE", text), TONES),
        special_instructions=extract_field("SPECIAL_INSTRUCTIONS", text) or None,
    )
