"""Value types for diff application and multi-file apply plans."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ApplyMode(str, Enum):
    """How a validated diff is committed."""

    WRITE = "write"
    DRY_RUN = "dry_run"
    WRITE_BACKUP = "write_backup"


class ApplyStatus(str, Enum):
    """High-level status codes surfaced to callers."""

    APPLIED = "applied"
    NOOP = "noop"


@dataclass(frozen=True, slots=True)
class ApplyStrategy:
    """Apply mode plus the literal suffix used for pre-image backups."""

    mode: ApplyMode = ApplyMode.WRITE
    backup_suffix: str | None = None

    def __post_init__(self) -> None:
        if self.mode is ApplyMode.WRITE_BACKUP:
            if not self.backup_suffix:
                raise ValueError("write_backup strategy requires a non-empty backup suffix")
        elif self.backup_suffix is not None:
            raise ValueError(
                f"backup suffix is only valid with write_backup, got {self.mode.value}",
            )

    @classmethod
    def write(cls) -> ApplyStrategy:
        return cls(ApplyMode.WRITE)

    @classmethod
    def dry_run(cls) -> ApplyStrategy:
        return cls(ApplyMode.DRY_RUN)

    @classmethod
    def write_backup(cls, suffix: str = ".bak") -> ApplyStrategy:
        return cls(ApplyMode.WRITE_BACKUP, suffix)

    @property
    def writes(self) -> bool:
        return self.mode is not ApplyMode.DRY_RUN

    def describe(self) -> str:
        if self.mode is ApplyMode.WRITE_BACKUP:
            return f"{self.mode.value}({self.backup_suffix})"
        return self.mode.value


@dataclass(slots=True)
class ApplyOptions:
    """Options for applying a diff to one file."""

    path: Path
    diff: str
    strategy: ApplyStrategy = field(default_factory=ApplyStrategy.write)
    checksum: str | None = None


@dataclass(slots=True)
class ApplyOutcome:
    """Outcome of a diff application request."""

    status: ApplyStatus
    hunks_applied: int
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ScaffoldDiff:
    """Single-file unified diff with an optional pre-image checksum."""

    path: Path
    diff: str
    checksum: str | None = None


@dataclass(slots=True)
class ApplyPlan:
    """Ordered, caller-authored multi-file change."""

    diffs: list[ScaffoldDiff] = field(default_factory=list)
