"""Failure classifier for gateway errors.

Labels any error raised while talking to the provider as one of:
- CAPACITY_EXHAUSTED: the provider has no capacity right now; expected and silent
- TRANSIENT_PROVIDER_ERROR: provider-side or network hiccup; retry without alerting
- FATAL: misconfiguration, auth, missing references, hard quota; alert the operator

Usage:
    classification = classify(error)

    if classification.kind == FailureKind.FATAL:
        notifier.send("VM Job FAILED", classification.reason)

Classification is a pure mapping over the error's status, code and message.
Capacity signatures are checked first because providers report them with
varying status codes (OCI uses 500 InternalError, others use 4xx).
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    """Failure categories for retry and alert decisions."""

    CAPACITY_EXHAUSTED = "capacity_exhausted"
    TRANSIENT_PROVIDER_ERROR = "transient_provider_error"
    FATAL = "fatal"

    @property
    def retryable(self) -> bool:
        return self != FailureKind.FATAL


@dataclass(frozen=True)
class Classification:
    """Result of classifying an error."""

    kind: FailureKind
    reason: str
    status: int | None = None
    code: str | None = None
    message: str = ""
    signature: str | None = None

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


# Provider messages meaning "no capacity right now", matched case-insensitively
CAPACITY_SIGNATURES: tuple[str, ...] = (
    "out of host capacity",
    "out of capacity",
    "insufficientinstancecapacity",
    "insufficient capacity",
)

# Provider error codes that mean "slow down" regardless of status
THROTTLE_CODES: frozenset[str] = frozenset({
    "toomanyrequests",
    "throttling",
    "throttlingexception",
    "requestlimitexceeded",
})

THROTTLE_STATUS = 429

_STATUS_ATTRS = ("status", "status_code", "statusCode")

_WHITESPACE = re.compile(r"\s+")


def _attr(error: Any, name: str) -> Any:
    try:
        return getattr(error, name, None)
    except Exception:
        return None


def _extract_status(error: Any) -> int | None:
    for attr in _STATUS_ATTRS:
        value = _attr(error, attr)
        if value is None or isinstance(value, bool):
            continue
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            continue
    return None


def _extract_code(error: Any) -> str | None:
    code = _attr(error, "code")
    if code is None:
        return None
    return str(code)


def _extract_message(error: Any) -> str:
    message = _attr(error, "message")
    if isinstance(message, str) and message:
        return message
    try:
        return str(error)
    except Exception:
        return type(error).__name__


def classify(error: Any) -> Classification:
    """Classify an error raised by the resource gateway.

    Args:
        error: Any object; exceptions with status/code/message attributes
            are classified most precisely.

    Returns:
        Classification with kind and a short reason.
    """
    status = _extract_status(error)
    code = _extract_code(error)
    message = _extract_message(error)
    haystack = _WHITESPACE.sub(" ", f"{code or ''} {message}").lower()

    def result(kind: FailureKind, reason: str, signature: str | None = None) -> Classification:
        return Classification(
            kind=kind,
            reason=reason,
            status=status,
            code=code,
            message=message,
            signature=signature,
        )

    for signature in CAPACITY_SIGNATURES:
        if signature in haystack:
            return result(FailureKind.CAPACITY_EXHAUSTED, "Provider is out of capacity", signature)

    if status is not None and 500 <= status <= 599:
        return result(FailureKind.TRANSIENT_PROVIDER_ERROR, f"Provider server error ({status})")

    if status == THROTTLE_STATUS or (code and code.lower() in THROTTLE_CODES):
        return result(FailureKind.TRANSIENT_PROVIDER_ERROR, "Provider throttled the request")

    # Network failures and wait-until-running timeouts
    if isinstance(error, (TimeoutError, ConnectionError)):
        return result(FailureKind.TRANSIENT_PROVIDER_ERROR, f"{type(error).__name__} talking to provider")

    if status in (401, 403):
        return result(FailureKind.FATAL, "Authentication or authorization failed")
    if status == 404:
        return result(FailureKind.FATAL, "Required resource reference not found")
    if status is not None and 400 <= status <= 499:
        return result(FailureKind.FATAL, f"Request rejected by provider ({status})")

    return result(FailureKind.FATAL, f"Unexpected error: {type(error).__name__}")
