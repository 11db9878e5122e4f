"""Orchestrator task-lifecycle client.

The core depends only on `OrchestratorClient`, a four-call contract
(capabilities, enqueue, stream, cancel). `LlmRequestBuilder` validates
requests against a capability snapshot before anything is sent,
`LlmClient` wraps contract errors with their call site, and `LlmStream`
turns the raw event feed into indexed, terminating semantic events.
"""

from nerve.orchestrator.client import CancelOutcome, LlmClient, LlmClientConfig, create_client
from nerve.orchestrator.contracts import (
    CapabilitySnapshot,
    Cancelled,
    NrvServerError,
    OrchestratorClient,
    StreamEnd,
    StreamError,
    StreamEvent,
    StreamMetrics,
    StreamStarted,
    StreamToken,
    TaskAccepted,
    TaskId,
    TaskRequest,
    WorkloadKind,
)
from nerve.orchestrator.errors import LlmError, LlmErrorOrigin, LlmStreamError
from nerve.orchestrator.request import LlmRequest, LlmRequestBuildError, LlmRequestBuilder
from nerve.orchestrator.stream import (
    LlmCompleted,
    LlmMetrics,
    LlmStarted,
    LlmStream,
    LlmStreamEvent,
    LlmTaskHandle,
    LlmToken,
)

__all__ = [
    "CancelOutcome",
    "Cancelled",
    "CapabilitySnapshot",
    "LlmClient",
    "LlmClientConfig",
    "LlmCompleted",
    "LlmError",
    "LlmErrorOrigin",
    "LlmMetrics",
    "LlmRequest",
    "LlmRequestBuildError",
    "LlmRequestBuilder",
    "LlmStarted",
    "LlmStream",
    "LlmStreamError",
    "LlmStreamEvent",
    "LlmTaskHandle",
    "LlmToken",
    "NrvServerError",
    "OrchestratorClient",
    "StreamEnd",
    "StreamError",
    "StreamEvent",
    "StreamMetrics",
    "StreamStarted",
    "StreamToken",
    "TaskAccepted",
    "TaskId",
    "TaskRequest",
    "WorkloadKind",
    "create_client",
]
