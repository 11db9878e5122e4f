"""Deterministic classification of orchestrator failures for callers and the CLI.

Classification is informational only: the client surfaces the retriable hint
and suggested delay but never retries on its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from nerve.orchestrator.errors import LlmError, LlmErrorOrigin

LLM_FAILURE_CLASSIFIER_VERSION = 1


class FailureClass(str, Enum):
    """Normalized failure classes."""

    BACKEND_TRANSIENT = "backend_transient"
    BACKEND_NON_RETRYABLE = "backend_non_retryable"
    BILLING_OR_QUOTA = "billing_or_quota"
    ACCESS_OR_AUTH = "access_or_auth"
    MODEL_NOT_AVAILABLE = "model_not_available"
    STREAM_FAILED = "stream_failed"


_BILLING_OR_QUOTA_PATTERNS: tuple[str, ...] = (
    "quota",
    "resource_exhausted",
    "insufficient",
    "billing",
    "payment",
    "credits",
    "usage limit",
)
_ACCESS_OR_AUTH_PATTERNS: tuple[str, ...] = (
    "unauthorized",
    "forbidden",
    "permission denied",
    "invalid api key",
    "authentication",
    "http_401",
    "http_403",
)
_MODEL_NOT_AVAILABLE_PATTERNS: tuple[str, ...] = (
    "model not found",
    "unknown model",
    "unsupported model",
    "invalid model",
    "model is not available",
)
_RATE_LIMIT_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "too many requests",
    "rate limit",
    "429",
    "please retry",
    "try again later",
)
_GENERIC_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "temporarily unavailable",
    "temporary failure",
    "connection reset",
    "network error",
    "timeout",
    "timed out",
    "transport_error",
)


@dataclass(slots=True)
class LlmFailureClassification:
    """Normalized failure classification result."""

    failure_class: FailureClass
    reason_code: str
    matched_rule: str
    matched_pattern: str | None

    def to_details(self, error: LlmError) -> dict[str, object]:
        """Serialize classifier diagnostics alongside the original error fields."""

        return {
            "classifier_version": LLM_FAILURE_CLASSIFIER_VERSION,
            "origin": error.origin.value,
            "code": error.code,
            "retriable": error.retriable,
            "retry_after_ms": error.retry_after_ms,
            "failure_class": self.failure_class.value,
            "reason_code": self.reason_code,
            "matched_rule": self.matched_rule,
            "matched_pattern": self.matched_pattern,
        }


def classify_llm_error(error: LlmError) -> LlmFailureClassification:
    """Classify a facade error; an explicit retriable hint outranks message patterns."""

    origin = error.origin.value
    if error.retriable is True:
        return LlmFailureClassification(
            failure_class=FailureClass.BACKEND_TRANSIENT,
            reason_code=f"{origin}_backend_transient",
            matched_rule="retriable_hint",
            matched_pattern=None,
        )

    haystack = f"{error.code}\n{error.message}".lower()
    rules = (
        ("billing_or_quota", FailureClass.BILLING_OR_QUOTA, _BILLING_OR_QUOTA_PATTERNS),
        ("access_or_auth", FailureClass.ACCESS_OR_AUTH, _ACCESS_OR_AUTH_PATTERNS),
        ("model_not_available", FailureClass.MODEL_NOT_AVAILABLE, _MODEL_NOT_AVAILABLE_PATTERNS),
    )
    for rule, failure_class, patterns in rules:
        pattern = _first_match(haystack, patterns)
        if pattern is not None:
            return LlmFailureClassification(
                failure_class=failure_class,
                reason_code=f"{origin}_{rule}",
                matched_rule=rule,
                matched_pattern=pattern,
            )

    if error.retriable is None:
        for rule, patterns in (
            ("rate_limit_transient", _RATE_LIMIT_TRANSIENT_PATTERNS),
            ("generic_transient", _GENERIC_TRANSIENT_PATTERNS),
        ):
            pattern = _first_match(haystack, patterns)
            if pattern is not None:
                return LlmFailureClassification(
                    failure_class=FailureClass.BACKEND_TRANSIENT,
                    reason_code=f"{origin}_backend_transient",
                    matched_rule=rule,
                    matched_pattern=pattern,
                )

    if error.origin is LlmErrorOrigin.STREAM_EVENT:
        return LlmFailureClassification(
            failure_class=FailureClass.STREAM_FAILED,
            reason_code=f"{origin}_stream_failed",
            matched_rule="stream_event",
            matched_pattern=None,
        )

    return LlmFailureClassification(
        failure_class=FailureClass.BACKEND_NON_RETRYABLE,
        reason_code=f"{origin}_backend_non_retryable",
        matched_rule="retriable_hint" if error.retriable is False else "fallback_non_retryable",
        matched_pattern=None,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
