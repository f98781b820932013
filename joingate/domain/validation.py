"""Normalization and bounds checks for free text sent by requesters."""

import re
from dataclasses import dataclass
from typing import Any

from ..messages import get_message


_THREE_OR_MORE_NEWLINES = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class Result:
    """Outcome of a guarded operation.

    Guarded operations never raise for expected failures; callers inspect
    `success` and show `error` to the end user.
    """
    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "Result":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "Result":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class ReasonLimits:
    """Length rules applied to reasons and follow-up messages."""
    min_reason_words: int = 10
    max_reason_chars: int = 1000


DEFAULT_LIMITS = ReasonLimits()


def normalize_text(value: str) -> str:
    """Trim, unify line endings and collapse runs of blank lines."""
    text = value.strip().replace("\r\n", "\n").replace("\r", "\n")
    return _THREE_OR_MORE_NEWLINES.sub("\n\n", text)


def count_words(value: str) -> int:
    return len(value.split())


def validate_reason(value: Any, limits: ReasonLimits = DEFAULT_LIMITS) -> Result:
    """Validate a join reason; `data` holds the normalized text on success."""
    if not isinstance(value, str):
        return Result.fail(get_message("invalid-input"))

    text = normalize_text(value)

    if not text:
        return Result.fail(get_message("invalid-input"))

    if len(text) > limits.max_reason_chars:
        return Result.fail(get_message("reason-too-long", max_chars=limits.max_reason_chars))

    if count_words(text) < limits.min_reason_words:
        return Result.fail(get_message("reason-too-short", min_words=limits.min_reason_words))

    return Result.ok(text)


def validate_additional_message(value: Any, limits: ReasonLimits = DEFAULT_LIMITS) -> Result:
    """Validate a follow-up message sent after the review card exists."""
    if not isinstance(value, str):
        return Result.fail(get_message("invalid-input"))

    text = normalize_text(value)

    if not text:
        return Result.fail(get_message("message-empty"))

    if len(text) > limits.max_reason_chars:
        return Result.fail(get_message("message-too-long", max_chars=limits.max_reason_chars))

    return Result.ok(text)
