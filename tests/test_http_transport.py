"""Tests for the HTTP + SSE orchestrator transport."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator

import allure
import httpx
import pytest

from nerve.orchestrator.backend import HttpOrchestrator
from nerve.orchestrator.contracts import (
    CapabilitySnapshot,
    Cancelled,
    NrvServerError,
    StreamEnd,
    StreamError,
    StreamMetrics,
    StreamStarted,
    StreamToken,
    TaskAccepted,
    TaskId,
    TaskRequest,
    WorkloadKind,
    snapshot_to_dict,
)

pytestmark = [
    allure.epic("LLM Runtime"),
    allure.feature("HTTP Transport"),
]

Handler = Callable[[httpx.Request], httpx.Response]


def _orchestrator(handler: Handler, **kwargs: object) -> HttpOrchestrator:
    return HttpOrchestrator(
        "http://orchestrator.test/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _sse(*blocks: str) -> httpx.Response:
    return httpx.Response(
        200,
        headers={"Content-Type": "text/event-stream"},
        content="".join(blocks).encode("utf-8"),
    )


def test_capabilities_round_trip(sample_snapshot: CapabilitySnapshot) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=snapshot_to_dict(sample_snapshot))

    with _orchestrator(handler, token="secret") as orchestrator:
        snapshot = orchestrator.capabilities()

    assert snapshot == sample_snapshot
    assert seen[0].method == "GET"
    assert seen[0].url.path == "/v1/capabilities"
    assert seen[0].headers["Authorization"] == "Bearer secret"
    assert seen[0].headers["User-Agent"].startswith("nerve-toolkit/")


def test_malformed_capabilities_are_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"metadata": {"engine": "x"}})

    with pytest.raises(NrvServerError) as exc_info:
        _orchestrator(handler).capabilities()

    assert exc_info.value.code == "invalid_response"
    assert exc_info.value.retriable is False


def test_enqueue_posts_request_body() -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/v1/tasks"
        bodies.append(json.loads(request.content))
        return httpx.Response(202, json={"task_id": "t-42", "queue_position": 3})

    accepted = _orchestrator(handler).enqueue(
        TaskRequest(model="stub-model", workload=WorkloadKind.CHAT, max_tokens=64),
    )

    assert accepted == TaskAccepted(task_id=TaskId("t-42"), queue_position=3)
    assert bodies == [{"model": "stub-model", "workload": "chat", "max_tokens": 64}]


def test_enqueue_without_task_id_is_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"queue_position": 0})

    with pytest.raises(NrvServerError, match="task_id") as exc_info:
        _orchestrator(handler).enqueue(TaskRequest(model="m"))

    assert exc_info.value.code == "invalid_response"


def test_stream_parses_server_sent_events() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.raw_path == b"/v1/tasks/t%201/events"
        assert request.headers["Accept"] == "text/event-stream"
        return _sse(
            "event: started\ndata:\n\n",
            ": keep-alive\n\n",
            "event: token\ndata: Hello\n\n",
            "event: token\ndata: line one\ndata: line two\n\n",
            "event: heartbeat\ndata: ignored\n\n",
            'event: metrics\ndata: {"tokens": 2}\n\n',
            "event: end\ndata:\n\n",
        )

    events = list(_orchestrator(handler).stream(TaskId("t 1")))

    assert events == [
        StreamStarted(),
        StreamToken("Hello"),
        StreamToken("line one\nline two"),
        StreamMetrics('{"tokens": 2}'),
        StreamEnd(),
    ]


def test_stream_flushes_final_event_without_blank_line() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _sse("event: error\ndata: model crashed")

    events = list(_orchestrator(handler).stream(TaskId("t-1")))

    assert events == [StreamError("model crashed")]


def test_stream_failure_to_start_raises_immediately() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            404,
            json={"code": "missing_stream", "message": "unknown task", "retriable": False},
        )

    with pytest.raises(NrvServerError) as exc_info:
        _orchestrator(handler).stream(TaskId("nope"))

    assert exc_info.value.code == "missing_stream"
    assert exc_info.value.retriable is False


def test_stream_close_is_idempotent() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _sse("event: started\ndata:\n\n", "event: end\ndata:\n\n")

    events = _orchestrator(handler).stream(TaskId("t-1"))
    assert next(events) == StreamStarted()

    events.close()
    events.close()
    with pytest.raises(StopIteration):
        next(events)


def test_cancel_posts_to_cancel_endpoint() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(f"{request.method} {request.url.path}")
        return httpx.Response(204)

    assert _orchestrator(handler).cancel(TaskId("t-5")) == Cancelled()
    assert paths == ["POST /v1/tasks/t-5/cancel"]


def test_structured_error_body_is_carried_unchanged() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429,
            json={
                "error": {
                    "code": "rate_limited",
                    "message": "slow down",
                    "retriable": True,
                    "retry_after_ms": 750,
                },
            },
        )

    with pytest.raises(NrvServerError) as exc_info:
        _orchestrator(handler).enqueue(TaskRequest(model="m"))

    error = exc_info.value
    assert (error.code, error.message, error.retriable, error.retry_after_ms) == (
        "rate_limited",
        "slow down",
        True,
        750,
    )


def test_structured_error_without_hint_keeps_hint_absent() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": "bad_request", "message": "nope"})

    with pytest.raises(NrvServerError) as exc_info:
        _orchestrator(handler).cancel(TaskId("t"))

    assert exc_info.value.retriable is None
    assert exc_info.value.retry_after_ms is None


@pytest.mark.parametrize(
    ("status", "retriable"),
    [(400, False), (401, False), (408, True), (429, True), (500, True), (503, True)],
)
def test_unstructured_error_status_mapping(status: int, retriable: bool) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="upstream says no")

    with pytest.raises(NrvServerError) as exc_info:
        _orchestrator(handler).capabilities()

    assert exc_info.value.code == f"http_{status}"
    assert exc_info.value.message == "upstream says no"
    assert exc_info.value.retriable is retriable


def test_retry_after_header_is_converted_to_milliseconds() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, headers={"Retry-After": "2"})

    with pytest.raises(NrvServerError) as exc_info:
        _orchestrator(handler).capabilities()

    assert exc_info.value.retry_after_ms == 2000


def test_transport_failures_are_retriable() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    def hang(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(NrvServerError) as refused:
        _orchestrator(refuse).capabilities()
    with pytest.raises(NrvServerError) as timed_out:
        _orchestrator(hang).stream(TaskId("t-1"))

    assert (refused.value.code, refused.value.retriable) == ("transport_error", True)
    assert (timed_out.value.code, timed_out.value.retriable) == ("transport_timeout", True)


class _DroppedBody(httpx.SyncByteStream):
    def __iter__(self) -> Iterator[bytes]:
        raise httpx.ReadError("connection dropped")


def test_stream_error_body_read_failure_is_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, stream=_DroppedBody())

    with pytest.raises(NrvServerError) as exc_info:
        _orchestrator(handler).stream(TaskId("t-1"))

    assert exc_info.value.code == "transport_error"
    assert exc_info.value.retriable is True
    assert "connection dropped" in exc_info.value.message
