"""
autoissue errors

Every failure that reaches the pipeline is one of these. Low-level
errors (LiteLLM, subprocess, JSON) are converted at the router, tracker
and adapter boundaries and never cross into pipeline logic.
"""

from __future__ import annotations


class AutoIssueError(Exception):
    """Base class. `manual_hint` is the equivalent manual command, if any."""

    def __init__(self, message: str, manual_hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.manual_hint = manual_hint

    def __str__(self) -> str:
        return self.message


class GenerationFailure(AutoIssueError):
    """The text service returned nothing usable (error, timeout or empty)."""


class ValidationFailure(AutoIssueError):
    """Generated content broke a schema or quote-balance rule."""


class MissingTargetFailure(AutoIssueError):
    """A target-requiring operation had no usable issue number."""


class ExternalOperationFailure(AutoIssueError):
    """The tracker rejected a call (permissions, not found, gh missing...)."""


class UnsupportedOperation(AutoIssueError):
    """The operation is outside the supported set."""


class UserCancellation(AutoIssueError):
    """The user declined or quit. Not a failure."""

    def __init__(self, message: str = "Operation cancelled."):
        super().__init__(message)
