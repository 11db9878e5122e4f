"""Controllers for diff application CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from nerve.apply.engine import apply_diff
from nerve.apply.errors import ApplyError
from nerve.apply.models import ApplyOptions, ApplyOutcome, ApplyStrategy
from nerve.apply.plan import apply_plan, read_plan
from nerve.config import Settings
from nerve.files import FileError, read_bytes, sha256_hex


@dataclass(slots=True)
class ApplyDiffCommand:
    """CLI input for a single-file diff application."""

    path: Path
    diff_file: Path
    checksum: str | None
    dry_run: bool
    backup: bool
    backup_suffix: str | None


@dataclass(slots=True)
class ApplyPlanCommand:
    """CLI input for a multi-file apply plan."""

    plan_file: Path
    dry_run: bool
    backup: bool
    backup_suffix: str | None


@dataclass(slots=True)
class ChecksumCommand:
    path: Path


@dataclass(slots=True)
class ApplyPlanResult:
    """Plan report to render in CLI."""

    lines: list[str]
    success: bool


class ApplyCliController:
    """Runs diff application, apply plans and checksum reporting."""

    def apply(self, command: ApplyDiffCommand) -> list[str]:
        strategy = _strategy(
            dry_run=command.dry_run,
            backup=command.backup,
            backup_suffix=command.backup_suffix,
        )
        try:
            diff = command.diff_file.read_text("utf-8")
        except (OSError, UnicodeDecodeError) as error:
            raise ValueError(f"Cannot read diff file {command.diff_file}: {error}") from error

        outcome = apply_diff(
            ApplyOptions(
                path=command.path,
                diff=diff,
                strategy=strategy,
                checksum=command.checksum,
            ),
        )
        return _outcome_lines(command.path, outcome, strategy)

    def apply_plan(self, command: ApplyPlanCommand) -> ApplyPlanResult:
        """Apply every plan entry in order; the first failure stops the run."""

        strategy = _strategy(
            dry_run=command.dry_run,
            backup=command.backup,
            backup_suffix=command.backup_suffix,
        )
        plan = read_plan(command.plan_file)
        lines = [
            f"Apply plan: {command.plan_file} entries={len(plan.diffs)} "
            f"strategy={strategy.describe()}",
        ]
        try:
            outcomes = apply_plan(plan, strategy)
        except ApplyError as error:
            lines.append(f"Plan aborted: {error}")
            if strategy.writes:
                lines.append("Entries before the failing one may already be written.")
            return ApplyPlanResult(lines=lines, success=False)

        for entry, outcome in zip(plan.diffs, outcomes, strict=True):
            lines.extend(_outcome_lines(entry.path, outcome, strategy))
        return ApplyPlanResult(lines=lines, success=True)

    def checksum(self, command: ChecksumCommand) -> list[str]:
        try:
            data = read_bytes(command.path)
        except FileError as error:
            raise ValueError(str(error)) from error
        return [sha256_hex(data)]


def _strategy(*, dry_run: bool, backup: bool, backup_suffix: str | None) -> ApplyStrategy:
    if dry_run and (backup or backup_suffix):
        raise ValueError("--dry-run cannot be combined with backups.")
    if dry_run:
        return ApplyStrategy.dry_run()
    if backup or backup_suffix:
        suffix = backup_suffix or Settings.from_env().apply.backup_suffix
        return ApplyStrategy.write_backup(suffix)
    return ApplyStrategy.write()


def _outcome_lines(path: Path, outcome: ApplyOutcome, strategy: ApplyStrategy) -> list[str]:
    lines = [
        f"{path}: status={outcome.status.value} hunks={outcome.hunks_applied} "
        f"strategy={strategy.describe()}",
    ]
    lines.extend(f"  warning: {warning}" for warning in outcome.warnings)
    return lines
