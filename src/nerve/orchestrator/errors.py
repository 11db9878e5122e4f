"""Facade-level errors raised by the LLM client surface."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from nerve.orchestrator.contracts import NrvServerError

STREAM_ERROR_CODE = "orch.stream"


class LlmErrorOrigin(str, Enum):
    """Call site that produced a facade error."""

    CAPABILITIES = "capabilities"
    ENQUEUE = "enqueue"
    STREAM = "stream"
    CANCEL = "cancel"
    STREAM_EVENT = "stream_event"


@dataclass(slots=True)
class LlmError(Exception):
    """Orchestrator failure carried unchanged and tagged with its call site."""

    code: str
    message: str
    origin: LlmErrorOrigin
    retriable: bool | None = None
    retry_after_ms: int | None = None

    @classmethod
    def from_orchestrator(cls, error: NrvServerError, origin: LlmErrorOrigin) -> LlmError:
        return cls(
            code=error.code,
            message=error.message,
            origin=origin,
            retriable=error.retriable,
            retry_after_ms=error.retry_after_ms,
        )

    def __str__(self) -> str:
        return f"nrv.llm: orchestrator error during {self.origin.value} {self.code}: {self.message}"


@dataclass(slots=True)
class LlmStreamError(LlmError):
    """Terminal error event observed while consuming a task stream."""

    @classmethod
    def from_event(cls, message: str) -> LlmStreamError:
        return cls(code=STREAM_ERROR_CODE, message=message, origin=LlmErrorOrigin.STREAM_EVENT)

    def __str__(self) -> str:
        return f"nrv.llm: stream terminated with error {self.code}: {self.message}"
