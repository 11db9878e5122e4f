"""In-process deterministic orchestrator for local runs and integration tests."""

from __future__ import annotations

import json
import threading
from collections import deque
from collections.abc import Iterable, Iterator
from pathlib import Path

from nerve.orchestrator.contracts import (
    CapabilitySnapshot,
    Cancelled,
    NrvServerError,
    StreamEnd,
    StreamEvent,
    StreamStarted,
    TaskAccepted,
    TaskId,
    TaskRequest,
    snapshot_from_dict,
)


def default_script() -> list[StreamEvent]:
    return [StreamStarted(), StreamEnd()]


class ScriptedOrchestrator:
    """Replays pre-scripted raw event lists, one per enqueued task, in FIFO order.

    Every enqueue binds the next script (or `[Started, End]` once scripts run
    out) to a fresh `task-<n>` id. A bound stream can be taken exactly once.
    State is guarded by a lock so one instance can be shared across threads.
    """

    def __init__(
        self,
        capabilities: CapabilitySnapshot,
        scripts: Iterable[list[StreamEvent]] = (),
    ) -> None:
        self._capabilities = capabilities
        self._scripts: deque[list[StreamEvent]] = deque(list(script) for script in scripts)
        self._assigned: dict[str, list[StreamEvent]] = {}
        self._requests: list[TaskRequest] = []
        self._cancelled: list[str] = []
        self._next_id = 0
        self._lock = threading.Lock()

    @classmethod
    def from_snapshot_file(cls, path: Path) -> ScriptedOrchestrator:
        raw = json.loads(path.read_text("utf-8"))
        if not isinstance(raw, dict):
            raise TypeError(f"Expected JSON object in {path}")
        return cls(snapshot_from_dict(raw))

    def add_script(self, events: list[StreamEvent]) -> None:
        with self._lock:
            self._scripts.append(list(events))

    @property
    def recorded_requests(self) -> list[TaskRequest]:
        with self._lock:
            return list(self._requests)

    @property
    def cancelled_tasks(self) -> list[str]:
        with self._lock:
            return list(self._cancelled)

    def capabilities(self) -> CapabilitySnapshot:
        return self._capabilities

    def enqueue(self, request: TaskRequest) -> TaskAccepted:
        with self._lock:
            self._requests.append(request)
            task_id = f"task-{self._next_id}"
            self._next_id += 1
            script = self._scripts.popleft() if self._scripts else default_script()
            self._assigned[task_id] = script
        return TaskAccepted(task_id=TaskId(task_id), queue_position=0)

    def stream(self, task_id: TaskId) -> Iterator[StreamEvent]:
        with self._lock:
            events = self._assigned.pop(task_id.value, None)
        if events is None:
            raise NrvServerError(
                code="missing_stream",
                message=f"no stream registered for {task_id.value}",
                retriable=False,
            )
        return iter(events)

    def cancel(self, task_id: TaskId) -> Cancelled:
        with self._lock:
            self._cancelled.append(task_id.value)
        return Cancelled()
