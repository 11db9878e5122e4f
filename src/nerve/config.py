"""Runtime configuration for the orchestrator client and the apply engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

DEFAULT_ORCHESTRATOR_URL = "http://127.0.0.1:8787"


@dataclass(slots=True)
class OrchestratorSettings:
    """How the CLI reaches an orchestrator."""

    base_url: str = DEFAULT_ORCHESTRATOR_URL
    token: str | None = None
    timeout_seconds: float = 30.0
    snapshot_path: Path | None = None
    verify_tls: bool = True


@dataclass(slots=True)
class ApplySettings:
    """Defaults for diff application."""

    backup_suffix: str = ".bak"


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    orchestrator: OrchestratorSettings = field(default_factory=OrchestratorSettings)
    apply: ApplySettings = field(default_factory=ApplySettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults suitable for a local orchestrator."""

        snapshot_raw = os.getenv("NRV_ORCHESTRATOR_SNAPSHOT", "").strip()
        return cls(
            orchestrator=OrchestratorSettings(
                base_url=os.getenv("NRV_ORCHESTRATOR_URL", DEFAULT_ORCHESTRATOR_URL).strip(),
                token=os.getenv("NRV_ORCHESTRATOR_TOKEN", "").strip() or None,
                timeout_seconds=_env_float("NRV_ORCHESTRATOR_TIMEOUT_SECONDS", default=30.0),
                snapshot_path=Path(snapshot_raw) if snapshot_raw else None,
                verify_tls=_env_bool("NRV_ORCHESTRATOR_VERIFY_TLS", default=True),
            ),
            apply=ApplySettings(
                backup_suffix=os.getenv("NRV_APPLY_BACKUP_SUFFIX", ".bak"),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any value is unusable."""

        parsed = urlparse(self.orchestrator.base_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "Invalid NRV_ORCHESTRATOR_URL: "
                f"{self.orchestrator.base_url!r}. Expected an absolute http(s) URL.",
            )
        if self.orchestrator.timeout_seconds <= 0:
            raise ValueError("NRV_ORCHESTRATOR_TIMEOUT_SECONDS must be > 0.")
        if not self.apply.backup_suffix:
            raise ValueError("NRV_APPLY_BACKUP_SUFFIX must not be empty.")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid float value for {name}: {value!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
