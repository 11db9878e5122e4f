from __future__ import annotations

import copy
from collections.abc import Iterator

import allure
import pytest

from nerve.orchestrator import (
    CancelOutcome,
    CapabilitySnapshot,
    Cancelled,
    LlmClient,
    LlmClientConfig,
    LlmCompleted,
    LlmError,
    LlmErrorOrigin,
    LlmRequest,
    LlmStarted,
    LlmStreamError,
    LlmTaskHandle,
    LlmToken,
    NrvServerError,
    StreamEnd,
    StreamError,
    StreamEvent,
    StreamStarted,
    StreamToken,
    TaskAccepted,
    TaskId,
    TaskRequest,
    WorkloadKind,
    create_client,
)
from nerve.orchestrator.backend import ScriptedOrchestrator

pytestmark = [
    allure.epic("LLM Runtime"),
    allure.feature("Client Facade"),
]


class _FailingOrchestrator:
    """Raises a distinct structured error from every contract call."""

    def capabilities(self) -> CapabilitySnapshot:
        raise NrvServerError(code="caps_down", message="no snapshot", retriable=True)

    def enqueue(self, request: TaskRequest) -> TaskAccepted:
        raise NrvServerError(
            code="queue_full",
            message="queue is full",
            retriable=True,
            retry_after_ms=1500,
        )

    def stream(self, task_id: TaskId) -> Iterator[StreamEvent]:
        raise NrvServerError(code="missing_stream", message="gone", retriable=False)

    def cancel(self, task_id: TaskId) -> Cancelled:
        raise NrvServerError(code="not_found", message=f"{task_id} unknown")


def test_end_to_end_with_scripted_orchestrator(sample_snapshot: CapabilitySnapshot) -> None:
    orchestrator = ScriptedOrchestrator(
        sample_snapshot,
        scripts=[[StreamStarted(), StreamToken("hi"), StreamToken("!"), StreamEnd()]],
    )
    client = create_client(LlmClientConfig(orchestrator=orchestrator))

    snapshot = client.capabilities()
    request = LlmRequest.builder(snapshot).model("stub-model").max_tokens(64).build()
    handle = client.enqueue(request)
    events = list(client.stream(handle))

    assert handle == LlmTaskHandle(task_id=TaskId("task-0"), queue_position=0)
    assert events == [
        LlmStarted(),
        LlmToken(text="hi", index=0),
        LlmToken(text="!", index=1),
        LlmCompleted(),
    ]
    assert orchestrator.recorded_requests == [
        TaskRequest(model="stub-model", workload=WorkloadKind.CHAT, max_tokens=64),
    ]


def test_default_script_is_started_then_end(scripted_orchestrator: ScriptedOrchestrator) -> None:
    client = LlmClient(scripted_orchestrator)
    request = LlmRequest.builder(client.capabilities()).model("stub-model").build()

    first = client.enqueue(request)
    second = client.enqueue(request)

    assert (first.task_id.value, second.task_id.value) == ("task-0", "task-1")
    assert list(client.stream(second)) == [LlmStarted(), LlmCompleted()]


def test_stream_can_only_be_taken_once(scripted_orchestrator: ScriptedOrchestrator) -> None:
    client = LlmClient(scripted_orchestrator)
    handle = client.enqueue(
        LlmRequest.builder(client.capabilities()).model("stub-model").build(),
    )
    list(client.stream(handle))

    with pytest.raises(LlmError) as exc_info:
        client.stream(handle)

    assert exc_info.value.origin is LlmErrorOrigin.STREAM
    assert exc_info.value.code == "missing_stream"
    assert exc_info.value.retriable is False


def test_stream_error_event_surfaces_as_stream_error(sample_snapshot: CapabilitySnapshot) -> None:
    orchestrator = ScriptedOrchestrator(
        sample_snapshot,
        scripts=[[StreamStarted(), StreamError("model crashed")]],
    )
    client = LlmClient(orchestrator)
    handle = client.enqueue(LlmRequest.builder(sample_snapshot).model("stub-model").build())
    stream = client.stream(handle)

    assert next(stream) == LlmStarted()
    with pytest.raises(LlmStreamError, match="model crashed"):
        next(stream)


def test_cancel_returns_outcome_and_is_recorded(
    scripted_orchestrator: ScriptedOrchestrator,
) -> None:
    client = LlmClient(scripted_orchestrator)
    handle = client.enqueue(
        LlmRequest.builder(client.capabilities()).model("stub-model").build(),
    )

    outcome = client.cancel(handle)

    assert outcome == CancelOutcome(task_id="task-0")
    assert scripted_orchestrator.cancelled_tasks == ["task-0"]


def test_clones_share_the_orchestrator(scripted_orchestrator: ScriptedOrchestrator) -> None:
    client = LlmClient(scripted_orchestrator)
    request = LlmRequest.builder(client.capabilities()).model("stub-model").build()

    clone = client.clone()
    shallow = copy.copy(client)
    clone.enqueue(request)
    shallow.enqueue(request)

    assert clone.orchestrator is scripted_orchestrator
    assert shallow.orchestrator is scripted_orchestrator
    assert len(scripted_orchestrator.recorded_requests) == 2


@pytest.mark.parametrize(
    ("call", "origin", "code"),
    [
        ("capabilities", LlmErrorOrigin.CAPABILITIES, "caps_down"),
        ("enqueue", LlmErrorOrigin.ENQUEUE, "queue_full"),
        ("stream", LlmErrorOrigin.STREAM, "missing_stream"),
        ("cancel", LlmErrorOrigin.CANCEL, "not_found"),
    ],
)
def test_orchestrator_errors_are_tagged_with_call_site(
    sample_snapshot: CapabilitySnapshot,
    call: str,
    origin: LlmErrorOrigin,
    code: str,
) -> None:
    client = LlmClient(_FailingOrchestrator())
    handle = LlmTaskHandle(task_id=TaskId("task-7"))
    request = LlmRequest.builder(sample_snapshot).model("stub-model").build()
    calls = {
        "capabilities": client.capabilities,
        "enqueue": lambda: client.enqueue(request),
        "stream": lambda: client.stream(handle),
        "cancel": lambda: client.cancel(handle),
    }

    with pytest.raises(LlmError) as exc_info:
        calls[call]()

    assert exc_info.value.origin is origin
    assert exc_info.value.code == code
    assert isinstance(exc_info.value.__cause__, NrvServerError)
    assert not isinstance(exc_info.value, LlmStreamError)


def test_enqueue_error_keeps_retry_hints(sample_snapshot: CapabilitySnapshot) -> None:
    client = LlmClient(_FailingOrchestrator())
    request = LlmRequest.builder(sample_snapshot).model("stub-model").build()

    with pytest.raises(LlmError) as exc_info:
        client.enqueue(request)

    assert exc_info.value.retriable is True
    assert exc_info.value.retry_after_ms == 1500
    assert str(exc_info.value) == (
        "nrv.llm: orchestrator error during enqueue queue_full: queue is full"
    )


def test_snapshot_file_loader(snapshot_file, sample_snapshot: CapabilitySnapshot) -> None:
    orchestrator = ScriptedOrchestrator.from_snapshot_file(snapshot_file)

    assert orchestrator.capabilities() == sample_snapshot
