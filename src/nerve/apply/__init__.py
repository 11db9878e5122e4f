"""Deterministic application of orchestrator-proposed file changes."""

from nerve.apply.engine import apply_diff
from nerve.apply.errors import (
    ApplyError,
    ApplyIoError,
    ChecksumMismatchError,
    InvalidDiffError,
    InvalidUtf8Error,
)
from nerve.apply.models import (
    ApplyMode,
    ApplyOptions,
    ApplyOutcome,
    ApplyPlan,
    ApplyStatus,
    ApplyStrategy,
    ScaffoldDiff,
)
from nerve.apply.plan import apply_plan, plan_from_dict, read_plan

__all__ = [
    "ApplyError",
    "ApplyIoError",
    "ApplyMode",
    "ApplyOptions",
    "ApplyOutcome",
    "ApplyPlan",
    "ApplyStatus",
    "ApplyStrategy",
    "ChecksumMismatchError",
    "InvalidDiffError",
    "InvalidUtf8Error",
    "ScaffoldDiff",
    "apply_diff",
    "apply_plan",
    "plan_from_dict",
    "read_plan",
]
