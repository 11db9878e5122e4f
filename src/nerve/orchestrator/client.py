"""LLM client facade over an orchestrator implementation."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from nerve.orchestrator.contracts import CapabilitySnapshot, NrvServerError, OrchestratorClient
from nerve.orchestrator.errors import LlmError, LlmErrorOrigin
from nerve.orchestrator.request import LlmRequest
from nerve.orchestrator.stream import LlmStream, LlmTaskHandle

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LlmClientConfig:
    """Configuration supplied when constructing an `LlmClient`."""

    orchestrator: OrchestratorClient


@dataclass(frozen=True, slots=True)
class CancelOutcome:
    """Cancellation was accepted; a concurrent stream is not stopped by it."""

    task_id: str


def create_client(config: LlmClientConfig) -> LlmClient:
    """Entry point for building an `LlmClient` from configuration."""

    return LlmClient(config.orchestrator)


class LlmClient:
    """Capability lookup, enqueue, streaming and cancellation for one orchestrator.

    Copies share the same orchestrator object. Every `NrvServerError` is
    re-raised as `LlmError` tagged with the call site that produced it.
    """

    def __init__(self, orchestrator: OrchestratorClient) -> None:
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> OrchestratorClient:
        return self._orchestrator

    def clone(self) -> LlmClient:
        return LlmClient(self._orchestrator)

    def __copy__(self) -> LlmClient:
        return self.clone()

    def capabilities(self) -> CapabilitySnapshot:
        """Retrieve the current capability snapshot."""

        try:
            return self._orchestrator.capabilities()
        except NrvServerError as error:
            raise LlmError.from_orchestrator(error, LlmErrorOrigin.CAPABILITIES) from error

    def enqueue(self, request: LlmRequest) -> LlmTaskHandle:
        """Submit a validated request and return a handle for follow-up calls."""

        try:
            accepted = self._orchestrator.enqueue(request.to_task_request())
        except NrvServerError as error:
            raise LlmError.from_orchestrator(error, LlmErrorOrigin.ENQUEUE) from error
        logger.debug(
            "Task %s accepted for model=%s workload=%s queue_position=%s",
            accepted.task_id,
            request.model,
            request.workload.value,
            accepted.queue_position,
        )
        return LlmTaskHandle.from_accepted(accepted)

    def stream(self, handle: LlmTaskHandle) -> LlmStream:
        """Subscribe to translated events for a previously enqueued task."""

        try:
            source = self._orchestrator.stream(handle.task_id)
        except NrvServerError as error:
            raise LlmError.from_orchestrator(error, LlmErrorOrigin.STREAM) from error
        return LlmStream(source)

    def cancel(self, handle: LlmTaskHandle) -> CancelOutcome:
        """Request cancellation of a task; callers stop polling its stream themselves."""

        try:
            self._orchestrator.cancel(handle.task_id)
        except NrvServerError as error:
            raise LlmError.from_orchestrator(error, LlmErrorOrigin.CANCEL) from error
        logger.info("Cancellation accepted for task %s", handle.task_id)
        return CancelOutcome(task_id=handle.task_id.value)
