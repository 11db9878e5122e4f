"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from nerve.orchestrator.backend import ScriptedOrchestrator
from nerve.orchestrator.contracts import (
    CapabilitySnapshot,
    GpuInfo,
    HardwareInventory,
    Limits,
    ModelCapability,
    ModelModality,
    OrchestratorMetadata,
    WorkloadCapability,
    WorkloadKind,
    snapshot_to_dict,
)


@pytest.fixture()
def sample_snapshot() -> CapabilitySnapshot:
    """Snapshot with one chat model, one embedding model and one model no workload serves."""

    return CapabilitySnapshot(
        metadata=OrchestratorMetadata(engine="stub-engine", version="0.3.1", build="dev"),
        limits=Limits(ctx_max=8192, max_tokens_out=4096, max_concurrent_requests=2),
        workloads=(
            WorkloadCapability(
                workload=WorkloadKind.CHAT,
                supported_models=("stub-model",),
                default_model="stub-model",
            ),
            WorkloadCapability(
                workload=WorkloadKind.EMBEDDING,
                supported_models=("embed-model",),
            ),
        ),
        models=(
            ModelCapability(
                id="stub-model",
                ctx_max=8192,
                display_name="Stub Model",
                family="stub",
                max_tokens_out=2048,
                supports_tool_calls=True,
            ),
            ModelCapability(id="embed-model", ctx_max=512, modality=ModelModality.TEXT),
            ModelCapability(id="orphan-model", ctx_max=1024),
        ),
        hardware=HardwareInventory(
            gpus=(GpuInfo(id="gpu0", vendor="nvidia", name="L4", memory_gb=24),),
        ),
        captured_at="2026-01-05T10:00:00Z",
    )


@pytest.fixture()
def scripted_orchestrator(sample_snapshot: CapabilitySnapshot) -> ScriptedOrchestrator:
    return ScriptedOrchestrator(sample_snapshot)


@pytest.fixture()
def snapshot_file(tmp_path: Path, sample_snapshot: CapabilitySnapshot) -> Path:
    """Capability snapshot written as JSON, as `NRV_ORCHESTRATOR_SNAPSHOT` expects."""

    path = tmp_path / "capabilities.json"
    path.write_text(json.dumps(snapshot_to_dict(sample_snapshot)), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "NRV_ORCHESTRATOR_URL",
        "NRV_ORCHESTRATOR_TOKEN",
        "NRV_ORCHESTRATOR_TIMEOUT_SECONDS",
        "NRV_ORCHESTRATOR_SNAPSHOT",
        "NRV_ORCHESTRATOR_VERIFY_TLS",
        "NRV_APPLY_BACKUP_SUFFIX",
    ):
        monkeypatch.delenv(name, raising=False)
