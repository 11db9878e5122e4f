"""Orchestrator binding: capability snapshot, task and stream types, client protocol."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Protocol, TypeAlias


class WorkloadKind(str, Enum):
    """Categorical kind of task a model may be invoked under."""

    CHAT = "chat"
    COMPLETION = "completion"
    TOOL = "tool"
    EMBEDDING = "embedding"
    AUDIO = "audio"


class ModelModality(str, Enum):
    TEXT = "text"
    VISION = "vision"
    AUDIO = "audio"
    MULTIMODAL = "multimodal"


@dataclass(frozen=True, slots=True)
class OrchestratorMetadata:
    engine: str
    version: str
    build: str | None = None
    commit: str | None = None


@dataclass(frozen=True, slots=True)
class Limits:
    ctx_max: int
    max_tokens_out: int | None = None
    max_concurrent_requests: int | None = None
    queue_depth_limit: int | None = None


@dataclass(frozen=True, slots=True)
class WorkloadCapability:
    workload: WorkloadKind
    supported_models: tuple[str, ...]
    default_model: str | None = None
    supports_guardrails: bool = False


@dataclass(frozen=True, slots=True)
class ModelCapability:
    id: str
    ctx_max: int
    display_name: str | None = None
    family: str | None = None
    modality: ModelModality = ModelModality.TEXT
    max_tokens_out: int | None = None
    supports_tool_calls: bool = False
    supports_parallel_functions: bool = False
    inference_units_per_ms: float | None = None


@dataclass(frozen=True, slots=True)
class GpuInfo:
    id: str
    vendor: str
    name: str
    memory_gb: int
    driver: str | None = None
    arch: str | None = None


@dataclass(frozen=True, slots=True)
class CpuInfo:
    model: str
    cores: int
    threads: int


@dataclass(frozen=True, slots=True)
class HardwareInventory:
    gpus: tuple[GpuInfo, ...] = ()
    cpus: tuple[CpuInfo, ...] | None = None


@dataclass(frozen=True, slots=True)
class ToolCapability:
    name: str
    description: str | None = None
    input_schema: str | None = None
    returns_schema: str | None = None
    timeout_ms: int | None = None


@dataclass(frozen=True, slots=True)
class CapabilitySnapshot:
    """Point-in-time description of what an orchestrator supports.

    Fetched once per session and treated as read-only. Workload entries are
    expected to reference model ids present in `models`; this is checked
    lazily by the request builder, not when the snapshot is fetched.
    """

    metadata: OrchestratorMetadata
    limits: Limits
    workloads: tuple[WorkloadCapability, ...]
    models: tuple[ModelCapability, ...]
    hardware: HardwareInventory = field(default_factory=HardwareInventory)
    tools: tuple[ToolCapability, ...] | None = None
    captured_at: str = ""

    def find_model(self, model_id: str) -> ModelCapability | None:
        return next((model for model in self.models if model.id == model_id), None)

    def find_workload(self, workload: WorkloadKind) -> WorkloadCapability | None:
        return next((entry for entry in self.workloads if entry.workload == workload), None)


@dataclass(frozen=True, slots=True)
class TaskId:
    """Server-assigned opaque task identifier."""

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class TaskRequest:
    model: str
    workload: WorkloadKind | None = None
    max_tokens: int | None = None


@dataclass(frozen=True, slots=True)
class TaskAccepted:
    task_id: TaskId
    queue_position: int | None = None


@dataclass(frozen=True, slots=True)
class Cancelled:
    """Orchestrator accepted the cancellation request; in-flight work may still run."""


@dataclass(frozen=True, slots=True)
class StreamStarted:
    pass


@dataclass(frozen=True, slots=True)
class StreamToken:
    text: str


@dataclass(frozen=True, slots=True)
class StreamMetrics:
    text: str


@dataclass(frozen=True, slots=True)
class StreamEnd:
    pass


@dataclass(frozen=True, slots=True)
class StreamError:
    message: str


StreamEvent: TypeAlias = StreamStarted | StreamToken | StreamMetrics | StreamEnd | StreamError


@dataclass(slots=True)
class NrvServerError(Exception):
    """Structured error returned by an orchestrator implementation."""

    code: str
    message: str
    retriable: bool | None = None
    retry_after_ms: int | None = None

    def __str__(self) -> str:
        return f"orchestrator error {self.code}: {self.message}"


class OrchestratorClient(Protocol):
    """Minimal trust boundary implemented by every orchestrator transport.

    Each call either returns its value or raises `NrvServerError`. `stream`
    returns a lazy, finite iterator that is consumed once; failing to begin
    streaming (for example an unknown task id) raises instead of yielding a
    `StreamError` event.
    """

    def capabilities(self) -> CapabilitySnapshot:
        raise NotImplementedError

    def enqueue(self, request: TaskRequest) -> TaskAccepted:
        raise NotImplementedError

    def stream(self, task_id: TaskId) -> Iterator[StreamEvent]:
        raise NotImplementedError

    def cancel(self, task_id: TaskId) -> Cancelled:
        raise NotImplementedError


def snapshot_to_dict(snapshot: CapabilitySnapshot) -> dict[str, Any]:
    """Serialize a capability snapshot into JSON-compatible primitives."""

    payload = asdict(snapshot)
    for workload in payload["workloads"]:
        workload["workload"] = WorkloadKind(workload["workload"]).value
        workload["supported_models"] = list(workload["supported_models"])
    for model in payload["models"]:
        model["modality"] = ModelModality(model["modality"]).value
    payload["workloads"] = list(payload["workloads"])
    payload["models"] = list(payload["models"])
    payload["hardware"]["gpus"] = list(payload["hardware"]["gpus"])
    if payload["hardware"]["cpus"] is not None:
        payload["hardware"]["cpus"] = list(payload["hardware"]["cpus"])
    if payload["tools"] is not None:
        payload["tools"] = list(payload["tools"])
    return payload


def snapshot_from_dict(raw: dict[str, Any]) -> CapabilitySnapshot:
    """Deserialize and validate a capability snapshot payload."""

    metadata = _object(raw, "metadata", "capabilities")
    limits = _object(raw, "limits", "capabilities")
    hardware = raw.get("hardware", {})
    if not isinstance(hardware, dict):
        raise TypeError("capabilities.hardware must be an object")

    workloads = tuple(
        WorkloadCapability(
            workload=_enum(WorkloadKind, item, "workload", where),
            supported_models=tuple(_str_list(item, "supported_models", where)),
            default_model=_opt_str(item, "default_model", where),
            supports_guardrails=_bool(item, "supports_guardrails", where),
        )
        for where, item in _objects(raw, "workloads", "capabilities")
    )
    models = tuple(
        ModelCapability(
            id=_str(item, "id", where),
            ctx_max=_int(item, "ctx_max", where),
            display_name=_opt_str(item, "display_name", where),
            family=_opt_str(item, "family", where),
            modality=_enum(ModelModality, item, "modality", where, default=ModelModality.TEXT),
            max_tokens_out=_opt_int(item, "max_tokens_out", where),
            supports_tool_calls=_bool(item, "supports_tool_calls", where),
            supports_parallel_functions=_bool(item, "supports_parallel_functions", where),
            inference_units_per_ms=_opt_float(item, "inference_units_per_ms", where),
        )
        for where, item in _objects(raw, "models", "capabilities")
    )
    gpus = tuple(
        GpuInfo(
            id=_str(item, "id", where),
            vendor=_str(item, "vendor", where),
            name=_str(item, "name", where),
            memory_gb=_int(item, "memory_gb", where),
            driver=_opt_str(item, "driver", where),
            arch=_opt_str(item, "arch", where),
        )
        for where, item in _objects(hardware, "gpus", "capabilities.hardware", required=False)
    )
    cpus = None
    if hardware.get("cpus") is not None:
        cpus = tuple(
            CpuInfo(
                model=_str(item, "model", where),
                cores=_int(item, "cores", where),
                threads=_int(item, "threads", where),
            )
            for where, item in _objects(hardware, "cpus", "capabilities.hardware")
        )
    tools = None
    if raw.get("tools") is not None:
        tools = tuple(
            ToolCapability(
                name=_str(item, "name", where),
                description=_opt_str(item, "description", where),
                input_schema=_opt_str(item, "input_schema", where),
                returns_schema=_opt_str(item, "returns_schema", where),
                timeout_ms=_opt_int(item, "timeout_ms", where),
            )
            for where, item in _objects(raw, "tools", "capabilities")
        )

    captured_at = raw.get("captured_at", "")
    if not isinstance(captured_at, str):
        raise TypeError("capabilities.captured_at must be a string")

    return CapabilitySnapshot(
        metadata=OrchestratorMetadata(
            engine=_str(metadata, "engine", "capabilities.metadata"),
            version=_str(metadata, "version", "capabilities.metadata"),
            build=_opt_str(metadata, "build", "capabilities.metadata"),
            commit=_opt_str(metadata, "commit", "capabilities.metadata"),
        ),
        limits=Limits(
            ctx_max=_int(limits, "ctx_max", "capabilities.limits"),
            max_tokens_out=_opt_int(limits, "max_tokens_out", "capabilities.limits"),
            max_concurrent_requests=_opt_int(
                limits,
                "max_concurrent_requests",
                "capabilities.limits",
            ),
            queue_depth_limit=_opt_int(limits, "queue_depth_limit", "capabilities.limits"),
        ),
        workloads=workloads,
        models=models,
        hardware=HardwareInventory(gpus=gpus, cpus=cpus),
        tools=tools,
        captured_at=captured_at,
    )


def _object(raw: dict[str, Any], key: str, where: str) -> dict[str, Any]:
    value = raw.get(key)
    if not isinstance(value, dict):
        raise TypeError(f"{where}.{key} must be an object")
    return value


def _objects(
    raw: dict[str, Any],
    key: str,
    where: str,
    *,
    required: bool = True,
) -> list[tuple[str, dict[str, Any]]]:
    value = raw.get(key)
    if value is None and not required:
        return []
    if not isinstance(value, list):
        raise TypeError(f"{where}.{key} must be an array")
    items: list[tuple[str, dict[str, Any]]] = []
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            raise TypeError(f"{where}.{key}[{index}] must be an object")
        items.append((f"{where}.{key}[{index}]", item))
    return items


def _str(raw: dict[str, Any], key: str, where: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{where}.{key} must be a non-empty string")
    return value


def _opt_str(raw: dict[str, Any], key: str, where: str) -> str | None:
    value = raw.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{where}.{key} must be a string when provided")
    return value


def _str_list(raw: dict[str, Any], key: str, where: str) -> list[str]:
    value = raw.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise TypeError(f"{where}.{key} must be an array of strings")
    return value


def _int(raw: dict[str, Any], key: str, where: str) -> int:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{where}.{key} must be a non-negative integer")
    return value


def _opt_int(raw: dict[str, Any], key: str, where: str) -> int | None:
    if raw.get(key) is None:
        return None
    return _int(raw, key, where)


def _opt_float(raw: dict[str, Any], key: str, where: str) -> float | None:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError(f"{where}.{key} must be a number when provided")
    return float(value)


def _bool(raw: dict[str, Any], key: str, where: str) -> bool:
    value = raw.get(key, False)
    if not isinstance(value, bool):
        raise TypeError(f"{where}.{key} must be a boolean")
    return value


def _enum(
    enum_type: type[WorkloadKind] | type[ModelModality],
    raw: dict[str, Any],
    key: str,
    where: str,
    *,
    default: Any = None,
) -> Any:
    value = raw.get(key)
    if value is None and default is not None:
        return default
    try:
        return enum_type(value)
    except ValueError as error:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValueError(f"{where}.{key} must be one of: {allowed}") from error
