"""Controllers for LLM orchestrator CLI commands."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from nerve.config import Settings
from nerve.orchestrator.backend import HttpOrchestrator, ScriptedOrchestrator
from nerve.orchestrator.client import LlmClient
from nerve.orchestrator.contracts import (
    CapabilitySnapshot,
    TaskId,
    WorkloadKind,
    snapshot_to_dict,
)
from nerve.orchestrator.errors import LlmError
from nerve.orchestrator.failure_classifier import classify_llm_error
from nerve.orchestrator.request import LlmRequest
from nerve.orchestrator.stream import LlmCompleted, LlmMetrics, LlmStarted, LlmTaskHandle, LlmToken


@dataclass(slots=True)
class LlmCapabilitiesCommand:
    """CLI input for capability inspection."""

    output_format: str = "table"


@dataclass(slots=True)
class LlmRunCommand:
    """CLI input for a single enqueue-and-stream run."""

    model: str
    workload: str | None
    max_tokens: int | None


@dataclass(slots=True)
class LlmCancelCommand:
    task_id: str


@dataclass(slots=True)
class LlmRunResult:
    """Run report to render in CLI."""

    lines: list[str]
    success: bool


class OrchestratorCliController:
    """Coordinates capability lookup, task runs and cancellation against one orchestrator."""

    def capabilities(self, command: LlmCapabilitiesCommand) -> list[str]:
        with _client(Settings.from_env()) as client:
            snapshot = client.capabilities()
        if command.output_format == "json":
            return [json.dumps(snapshot_to_dict(snapshot), indent=2, ensure_ascii=False)]
        return _render_capabilities(snapshot)

    def run(self, command: LlmRunCommand) -> LlmRunResult:
        """Build, enqueue and stream one task; a stream error fails the run."""

        with _client(Settings.from_env()) as client:
            builder = LlmRequest.builder(client.capabilities()).model(command.model)
            if command.workload is not None:
                builder = builder.workload(WorkloadKind(command.workload))
            if command.max_tokens is not None:
                builder = builder.max_tokens(command.max_tokens)
            request = builder.build()

            handle = client.enqueue(request)
            lines = [
                f"Task enqueued: task_id={handle.task_id} model={request.model} "
                f"workload={request.workload.value} "
                f"queue_position={_or_dash(handle.queue_position)}",
            ]
            chunks: list[str] = []
            completed = False
            stream = client.stream(handle)
            try:
                with stream:
                    for event in stream:
                        if isinstance(event, LlmStarted):
                            lines.append("Stream started")
                        elif isinstance(event, LlmToken):
                            chunks.append(event.text)
                        elif isinstance(event, LlmMetrics):
                            lines.append(f"Metrics: {event.payload}")
                        elif isinstance(event, LlmCompleted):
                            completed = True
            except LlmError as error:
                if chunks:
                    lines.append("".join(chunks))
                lines.extend(describe_llm_error(error))
                return LlmRunResult(lines=lines, success=False)

        if chunks:
            lines.append("".join(chunks))
        if not completed:
            lines.append(f"Stream ended without completion: tokens={stream.tokens_seen}")
            return LlmRunResult(lines=lines, success=False)
        lines.append(f"Completed: tokens={stream.tokens_seen}")
        return LlmRunResult(lines=lines, success=True)

    def cancel(self, command: LlmCancelCommand) -> list[str]:
        with _client(Settings.from_env()) as client:
            outcome = client.cancel(LlmTaskHandle(task_id=TaskId(command.task_id)))
        return [f"Cancellation requested: {outcome.task_id}"]


def describe_llm_error(error: LlmError) -> list[str]:
    """Render an error with its classification for operators."""

    classification = classify_llm_error(error)
    return [
        str(error),
        "  "
        f"failure_class={classification.failure_class.value} "
        f"reason_code={classification.reason_code} "
        f"retriable={_or_dash(error.retriable)} "
        f"retry_after_ms={_or_dash(error.retry_after_ms)}",
    ]


def _render_capabilities(snapshot: CapabilitySnapshot) -> list[str]:
    metadata = snapshot.metadata
    limits = snapshot.limits
    lines = [
        f"Orchestrator: {metadata.engine} {metadata.version}"
        + (f" (build {metadata.build})" if metadata.build else ""),
        f"Captured at: {snapshot.captured_at or '-'}",
        f"Limits: ctx_max={limits.ctx_max} max_tokens_out={_or_dash(limits.max_tokens_out)} "
        f"max_concurrent_requests={_or_dash(limits.max_concurrent_requests)} "
        f"queue_depth_limit={_or_dash(limits.queue_depth_limit)}",
        f"Models: {len(snapshot.models)}",
    ]
    for model in snapshot.models:
        lines.append(
            "  "
            f"{model.id} modality={model.modality.value} ctx_max={model.ctx_max} "
            f"max_tokens_out={_or_dash(model.max_tokens_out)} "
            f"tool_calls={'yes' if model.supports_tool_calls else 'no'}",
        )
    lines.append(f"Workloads: {len(snapshot.workloads)}")
    for workload in snapshot.workloads:
        lines.append(
            "  "
            f"{workload.workload.value} models={','.join(workload.supported_models) or '-'} "
            f"default={workload.default_model or '-'}",
        )
    if snapshot.hardware.gpus:
        lines.append(f"GPUs: {len(snapshot.hardware.gpus)}")
        for gpu in snapshot.hardware.gpus:
            lines.append(f"  {gpu.id} {gpu.vendor} {gpu.name} memory_gb={gpu.memory_gb}")
    return lines


def _or_dash(value: object) -> str:
    return "-" if value is None else str(value)


@contextmanager
def _client(settings: Settings) -> Iterator[LlmClient]:
    settings.validate()
    snapshot_path = settings.orchestrator.snapshot_path
    if snapshot_path is not None:
        yield LlmClient(ScriptedOrchestrator.from_snapshot_file(snapshot_path))
        return

    orchestrator = HttpOrchestrator(
        settings.orchestrator.base_url,
        token=settings.orchestrator.token,
        timeout_seconds=settings.orchestrator.timeout_seconds,
        verify=settings.orchestrator.verify_tls,
    )
    try:
        yield LlmClient(orchestrator)
    finally:
        orchestrator.close()
