"""
Command safety check.

A narrow guard against truncated or malformed model output: any text
that ends up as a command argument must have balanced double quotes.
This is NOT an injection defence. Adapters never hand strings to a
shell, so a pass only means the text was not cut off mid-quote.
"""

from __future__ import annotations

from loguru import logger

from autoissue.errors import ValidationFailure


def check_quotes(text: str) -> str | None:
    """Return a diagnostic if `text` has an odd number of `"`, else None."""
    if text.count('"') % 2:
        return f"Unclosed double quotes detected in: {text}"
    return None


def validate_quotes(text: str) -> None:
    """Raise ValidationFailure when `text` has unbalanced double quotes."""
    reason = check_quotes(text)
    if reason:
        logger.warning(f"[SAFETY] {reason}")
        raise ValidationFailure(reason)


def check_all(values: list[str]) -> str | None:
    """First quote-balance problem across several arguments, if any."""
    for value in values:
        reason = check_quotes(value)
        if reason:
            return reason
    return None
