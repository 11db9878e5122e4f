"""HTTP + Server-Sent Events transport for the orchestrator contract."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any
from urllib.parse import quote

import httpx

from nerve import __version__
from nerve.orchestrator.contracts import (
    CapabilitySnapshot,
    Cancelled,
    NrvServerError,
    StreamEnd,
    StreamError,
    StreamEvent,
    StreamMetrics,
    StreamStarted,
    StreamToken,
    TaskAccepted,
    TaskId,
    TaskRequest,
    snapshot_from_dict,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = f"nerve-toolkit/{__version__}"
_RETRIABLE_STATUS_CODES = frozenset({408, 429})
_MAX_ERROR_BODY_CHARS = 500


class HttpOrchestrator:
    """Synchronous orchestrator client; every call blocks for its HTTP exchange.

    Requests are never retried here. Failures surface as `NrvServerError`
    with the server's retriable hint when it sends one.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        verify: bool = True,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"User-Agent": user_agent, "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers=headers,
            verify=verify,
            transport=transport,
        )

    def capabilities(self) -> CapabilitySnapshot:
        payload = _json_object(self._request("GET", "/v1/capabilities"))
        try:
            return snapshot_from_dict(payload)
        except (TypeError, ValueError) as error:
            raise NrvServerError(
                code="invalid_response",
                message=f"malformed capability snapshot: {error}",
                retriable=False,
            ) from error

    def enqueue(self, request: TaskRequest) -> TaskAccepted:
        body = {
            "model": request.model,
            "workload": request.workload.value if request.workload is not None else None,
            "max_tokens": request.max_tokens,
        }
        payload = _json_object(self._request("POST", "/v1/tasks", json=body))
        task_id = payload.get("task_id")
        queue_position = payload.get("queue_position")
        if not isinstance(task_id, str) or not task_id.strip():
            raise NrvServerError(
                code="invalid_response",
                message="enqueue response is missing task_id",
                retriable=False,
            )
        if queue_position is not None and (
            isinstance(queue_position, bool) or not isinstance(queue_position, int)
        ):
            raise NrvServerError(
                code="invalid_response",
                message="enqueue response queue_position must be an integer",
                retriable=False,
            )
        return TaskAccepted(task_id=TaskId(task_id), queue_position=queue_position)

    def stream(self, task_id: TaskId) -> Iterator[StreamEvent]:
        request = self._client.build_request(
            "GET",
            f"/v1/tasks/{quote(task_id.value, safe='')}/events",
            headers={"Accept": "text/event-stream"},
        )
        try:
            response = self._client.send(request, stream=True)
        except httpx.HTTPError as error:
            raise _transport_error(error, url=str(request.url)) from error
        if not response.is_success:
            try:
                response.read()
            except httpx.HTTPError as error:
                raise _transport_error(error, url=str(request.url)) from error
            finally:
                response.close()
            raise _error_from_response(response)
        return _EventStream(response)

    def cancel(self, task_id: TaskId) -> Cancelled:
        self._request("POST", f"/v1/tasks/{quote(task_id.value, safe='')}/cancel")
        return Cancelled()

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpOrchestrator:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def _request(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            response = self._client.request(method, url, json=json)
        except httpx.HTTPError as error:
            raise _transport_error(error, url=url) from error
        if not response.is_success:
            raise _error_from_response(response)
        return response


class _EventStream:
    """Raw event iterator that owns the streaming response."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._events = _iter_sse_events(response)

    def __iter__(self) -> _EventStream:
        return self

    def __next__(self) -> StreamEvent:
        return next(self._events)

    def close(self) -> None:
        self._events.close()
        self._response.close()


def _iter_sse_events(response: httpx.Response) -> Iterator[StreamEvent]:
    event_name: str | None = None
    data_lines: list[str] = []
    try:
        for line in response.iter_lines():
            if not line:
                if event_name is not None or data_lines:
                    event = _to_stream_event(event_name, data_lines)
                    if event is not None:
                        yield event
                event_name = None
                data_lines = []
                continue
            if line.startswith(":"):
                continue
            field_name, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]
            if field_name == "event":
                event_name = value
            elif field_name == "data":
                data_lines.append(value)
        if event_name is not None or data_lines:
            event = _to_stream_event(event_name, data_lines)
            if event is not None:
                yield event
    except httpx.HTTPError as error:
        logger.warning("Event stream from %s interrupted: %s", response.url, error)
        yield StreamError(message=f"event stream interrupted: {error}")
    finally:
        response.close()


def _to_stream_event(event_name: str | None, data_lines: list[str]) -> StreamEvent | None:
    data = "\n".join(data_lines)
    name = (event_name or "message").strip().lower()
    if name == "started":
        return StreamStarted()
    if name == "token":
        return StreamToken(text=data)
    if name == "metrics":
        return StreamMetrics(text=data)
    if name == "end":
        return StreamEnd()
    if name == "error":
        return StreamError(message=data or "orchestrator reported a stream error")
    logger.debug("Skipping unsupported SSE event %r", name)
    return None


def _transport_error(error: httpx.HTTPError, *, url: str) -> NrvServerError:
    logger.warning("Orchestrator request to %s failed: %s", url, error)
    if isinstance(error, httpx.TimeoutException):
        return NrvServerError(
            code="transport_timeout",
            message=str(error) or "request timed out",
            retriable=True,
        )
    return NrvServerError(
        code="transport_error",
        message=str(error) or type(error).__name__,
        retriable=True,
    )


def _error_from_response(response: httpx.Response) -> NrvServerError:
    """Map a non-2xx response onto the contract error shape."""

    status = response.status_code
    retry_after_ms = _retry_after_ms(response.headers.get("retry-after"))
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        payload = payload["error"]

    if (
        isinstance(payload, dict)
        and isinstance(payload.get("code"), str)
        and isinstance(payload.get("message"), str)
    ):
        retriable = payload.get("retriable")
        body_retry_after = payload.get("retry_after_ms")
        return NrvServerError(
            code=payload["code"],
            message=payload["message"],
            retriable=retriable if isinstance(retriable, bool) else None,
            retry_after_ms=(
                body_retry_after
                if isinstance(body_retry_after, int)
                and not isinstance(body_retry_after, bool)
                and body_retry_after >= 0
                else retry_after_ms
            ),
        )

    message = response.text.strip()[:_MAX_ERROR_BODY_CHARS] or response.reason_phrase
    return NrvServerError(
        code=f"http_{status}",
        message=message,
        retriable=status in _RETRIABLE_STATUS_CODES or status >= 500,
        retry_after_ms=retry_after_ms,
    )


def _retry_after_ms(value: str | None) -> int | None:
    if value is None or not value.strip().isdigit():
        return None
    return int(value.strip()) * 1000


def _json_object(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as error:
        raise NrvServerError(
            code="invalid_response",
            message=f"expected JSON body from {response.request.url}",
            retriable=False,
        ) from error
    if not isinstance(payload, dict):
        raise NrvServerError(
            code="invalid_response",
            message=f"expected JSON object from {response.request.url}",
            retriable=False,
        )
    return payload
