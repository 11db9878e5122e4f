"""Deterministic, fail-fast application of multi-file apply plans."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from nerve.apply.engine import apply_diff
from nerve.apply.errors import ApplyError
from nerve.apply.models import ApplyOptions, ApplyOutcome, ApplyPlan, ApplyStrategy, ScaffoldDiff

logger = logging.getLogger(__name__)


def apply_plan(plan: ApplyPlan, strategy: ApplyStrategy) -> list[ApplyOutcome]:
    """Apply every diff in plan order using one strategy for all entries.

    The first failing entry aborts the call and its error propagates. Files
    written by earlier entries stay written: there is no rollback, so run a
    dry-run pass first when partial application is unacceptable.
    """

    outcomes: list[ApplyOutcome] = []
    for position, entry in enumerate(plan.diffs, start=1):
        options = ApplyOptions(
            path=entry.path,
            diff=entry.diff,
            strategy=strategy,
            checksum=entry.checksum,
        )
        try:
            outcomes.append(apply_diff(options))
        except ApplyError as error:
            logger.warning(
                "Apply plan aborted at entry %d/%d (%s): %s",
                position,
                len(plan.diffs),
                entry.path,
                error,
            )
            raise
    return outcomes


def read_plan(path: Path) -> ApplyPlan:
    """Load an apply plan JSON document; relative entry paths resolve against its directory."""

    raw = json.loads(path.read_text("utf-8"))
    if not isinstance(raw, dict):
        raise TypeError(f"Expected JSON object in {path}")
    return plan_from_dict(raw, base_dir=path.parent)


def plan_from_dict(raw: dict[str, Any], *, base_dir: Path | None = None) -> ApplyPlan:
    """Validate a plan payload of the form {"diffs": [{"path", "diff", "checksum"?}]}."""

    raw_diffs = raw.get("diffs")
    if not isinstance(raw_diffs, list):
        raise TypeError("apply_plan.diffs must be an array")

    diffs: list[ScaffoldDiff] = []
    for index, item in enumerate(raw_diffs):
        if not isinstance(item, dict):
            raise TypeError(f"apply_plan.diffs[{index}] must be an object")
        raw_path = item.get("path")
        diff = item.get("diff")
        checksum = item.get("checksum")
        if not isinstance(raw_path, str) or not raw_path.strip():
            raise ValueError(f"apply_plan.diffs[{index}].path must be a non-empty string")
        if not isinstance(diff, str):
            raise TypeError(f"apply_plan.diffs[{index}].diff must be a string")
        if checksum is not None and not isinstance(checksum, str):
            raise ValueError(f"apply_plan.diffs[{index}].checksum must be a string when provided")
        entry_path = Path(raw_path)
        if base_dir is not None and not entry_path.is_absolute():
            entry_path = base_dir / entry_path
        diffs.append(ScaffoldDiff(path=entry_path, diff=diff, checksum=checksum))
    return ApplyPlan(diffs=diffs)
