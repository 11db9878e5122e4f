"""Task handles and translation of raw orchestrator streams into semantic events."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TypeAlias

from nerve.orchestrator.contracts import (
    StreamEnd,
    StreamError,
    StreamEvent,
    StreamMetrics,
    StreamStarted,
    StreamToken,
    TaskAccepted,
    TaskId,
)
from nerve.orchestrator.errors import LlmStreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LlmTaskHandle:
    """Correlates a locally built request with the orchestrator's task id."""

    task_id: TaskId
    queue_position: int | None = None

    @classmethod
    def from_accepted(cls, accepted: TaskAccepted) -> LlmTaskHandle:
        return cls(task_id=accepted.task_id, queue_position=accepted.queue_position)


@dataclass(frozen=True, slots=True)
class LlmStarted:
    pass


@dataclass(frozen=True, slots=True)
class LlmToken:
    text: str
    index: int


@dataclass(frozen=True, slots=True)
class LlmMetrics:
    payload: str


@dataclass(frozen=True, slots=True)
class LlmCompleted:
    pass


LlmStreamEvent: TypeAlias = LlmStarted | LlmToken | LlmMetrics | LlmCompleted


class LlmStream:
    """Pull-based iterator over translated stream events.

    Tokens are numbered from 0 in arrival order. The stream terminates at the
    first `StreamEnd` (yielding `LlmCompleted`) or `StreamError` (raising
    `LlmStreamError`); afterwards every `next()` raises `StopIteration`
    without touching the underlying source again.
    """

    def __init__(self, source: Iterator[StreamEvent]) -> None:
        self._source = iter(source)
        self._next_token_index = 0
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def tokens_seen(self) -> int:
        return self._next_token_index

    def __iter__(self) -> LlmStream:
        return self

    def __enter__(self) -> LlmStream:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def close(self) -> None:
        """Stop consuming and release the underlying source (for example an HTTP response)."""

        self._finished = True
        close_source = getattr(self._source, "close", None)
        if close_source is not None:
            close_source()

    def __next__(self) -> LlmStreamEvent:
        if self._finished:
            raise StopIteration
        try:
            event = next(self._source)
        except StopIteration:
            self._finished = True
            logger.warning(
                "Orchestrator stream ended without a terminal event after %d tokens",
                self._next_token_index,
            )
            raise
        return self._translate(event)

    def _translate(self, event: StreamEvent) -> LlmStreamEvent:
        if isinstance(event, StreamStarted):
            return LlmStarted()
        if isinstance(event, StreamToken):
            index = self._next_token_index
            self._next_token_index += 1
            return LlmToken(text=event.text, index=index)
        if isinstance(event, StreamMetrics):
            return LlmMetrics(payload=event.text)
        if isinstance(event, StreamEnd):
            self.close()
            return LlmCompleted()
        if isinstance(event, StreamError):
            self.close()
            raise LlmStreamError.from_event(event.message)
        raise TypeError(f"Unsupported stream event: {event!r}")
