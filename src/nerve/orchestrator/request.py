"""Request validation against a capability snapshot before enqueueing."""

from __future__ import annotations

from dataclasses import dataclass, replace

from nerve.orchestrator.contracts import (
    CapabilitySnapshot,
    TaskRequest,
    WorkloadKind,
)


class LlmRequestBuildError(Exception):
    """Base class for request validation failures; raised before any network call."""


@dataclass(slots=True)
class MissingModelError(LlmRequestBuildError):
    def __str__(self) -> str:
        return "nrv.llm: request builder requires a model identifier"


@dataclass(slots=True)
class UnknownModelError(LlmRequestBuildError):
    model: str

    def __str__(self) -> str:
        return f"nrv.llm: model {self.model} not present in capability snapshot"


@dataclass(slots=True)
class UnknownWorkloadError(LlmRequestBuildError):
    workload: WorkloadKind

    def __str__(self) -> str:
        return f"nrv.llm: workload {self.workload.value} not present in capability snapshot"


@dataclass(slots=True)
class WorkloadUnsupportedError(LlmRequestBuildError):
    workload: WorkloadKind
    model: str

    def __str__(self) -> str:
        return f"nrv.llm: workload {self.workload.value} does not support model {self.model}"


@dataclass(slots=True)
class WorkloadUnavailableError(LlmRequestBuildError):
    model: str

    def __str__(self) -> str:
        return f"nrv.llm: no workload supports model {self.model}"


@dataclass(slots=True)
class InvalidTokenLimitError(LlmRequestBuildError):
    requested: int

    def __str__(self) -> str:
        return f"nrv.llm: max_tokens must be greater than zero (got {self.requested})"


@dataclass(slots=True)
class TokenLimitExceededForModelError(LlmRequestBuildError):
    requested: int
    limit: int
    model: str

    def __str__(self) -> str:
        return (
            f"nrv.llm: requested max_tokens {self.requested} exceeds "
            f"model {self.model} limit {self.limit}"
        )


@dataclass(slots=True)
class TokenLimitExceededGlobalError(LlmRequestBuildError):
    requested: int
    limit: int

    def __str__(self) -> str:
        return (
            f"nrv.llm: requested max_tokens {self.requested} exceeds global limit {self.limit}"
        )


@dataclass(frozen=True, slots=True)
class LlmRequest:
    """Validated request; only produced by `LlmRequestBuilder.build`."""

    model: str
    workload: WorkloadKind
    max_tokens: int | None = None

    @staticmethod
    def builder(capabilities: CapabilitySnapshot) -> LlmRequestBuilder:
        return LlmRequestBuilder(capabilities=capabilities)

    def to_task_request(self) -> TaskRequest:
        return TaskRequest(model=self.model, workload=self.workload, max_tokens=self.max_tokens)


@dataclass(frozen=True, slots=True)
class LlmRequestBuilder:
    """Immutable builder; every setter returns a new builder value."""

    capabilities: CapabilitySnapshot
    model_id: str | None = None
    workload_kind: WorkloadKind | None = None
    token_ceiling: int | None = None

    def model(self, model: str) -> LlmRequestBuilder:
        return replace(self, model_id=model)

    def workload(self, workload: WorkloadKind) -> LlmRequestBuilder:
        return replace(self, workload_kind=workload)

    def max_tokens(self, max_tokens: int) -> LlmRequestBuilder:
        return replace(self, token_ceiling=max_tokens)

    def build(self) -> LlmRequest:
        """Validate model, workload and token ceiling, in that order."""

        if self.model_id is None:
            raise MissingModelError()
        model = self.model_id

        model_capability = self.capabilities.find_model(model)
        if model_capability is None:
            raise UnknownModelError(model=model)

        workload = self._resolve_workload(model)

        requested = self.token_ceiling
        if requested is not None:
            if requested <= 0:
                raise InvalidTokenLimitError(requested=requested)
            model_limit = model_capability.max_tokens_out
            if model_limit is not None and requested > model_limit:
                raise TokenLimitExceededForModelError(
                    requested=requested,
                    limit=model_limit,
                    model=model,
                )
            global_limit = self.capabilities.limits.max_tokens_out
            if global_limit is not None and requested > global_limit:
                raise TokenLimitExceededGlobalError(requested=requested, limit=global_limit)

        return LlmRequest(model=model, workload=workload, max_tokens=requested)

    def _resolve_workload(self, model: str) -> WorkloadKind:
        if self.workload_kind is not None:
            workload_capability = self.capabilities.find_workload(self.workload_kind)
            if workload_capability is None:
                raise UnknownWorkloadError(workload=self.workload_kind)
            if model not in workload_capability.supported_models:
                raise WorkloadUnsupportedError(workload=self.workload_kind, model=model)
            return self.workload_kind

        for entry in self.capabilities.workloads:
            if model in entry.supported_models:
                return entry.workload
        raise WorkloadUnavailableError(model=model)
