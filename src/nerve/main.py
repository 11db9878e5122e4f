"""CLI entrypoint for nrv."""

from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import rich_click as click

from nerve import __version__
from nerve.apply.controllers import (
    ApplyCliController,
    ApplyDiffCommand,
    ApplyPlanCommand,
    ChecksumCommand,
)
from nerve.apply.errors import ApplyError
from nerve.files import FileError
from nerve.orchestrator.contracts import WorkloadKind
from nerve.orchestrator.controllers import (
    LlmCancelCommand,
    LlmCapabilitiesCommand,
    LlmRunCommand,
    OrchestratorCliController,
    describe_llm_error,
)
from nerve.orchestrator.errors import LlmError
from nerve.orchestrator.request import LlmRequestBuildError

click.rich_click.USE_MARKDOWN = True
APPLY_CONTROLLER = ApplyCliController()
ORCHESTRATOR_CONTROLLER = OrchestratorCliController()

T = TypeVar("T")


@click.group()
@click.version_option(version=__version__, prog_name="nrv")
def nrv() -> None:
    """Nerve CLI: apply orchestrator diffs and talk to the LLM orchestrator."""


@nrv.command("apply")
@click.argument("path", type=click.Path(path_type=Path, dir_okay=False))
@click.option(
    "--diff-file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    required=True,
    help="Unified diff to apply to PATH.",
)
@click.option("--checksum", default=None, help="Expected SHA-256 (hex) of the current PATH bytes.")
@click.option("--dry-run", is_flag=True, help="Validate the diff without writing anything.")
@click.option("--backup", is_flag=True, help="Save the pre-image next to PATH before writing.")
@click.option(
    "--backup-suffix",
    default=None,
    help="Backup suffix (implies --backup). Defaults to NRV_APPLY_BACKUP_SUFFIX or `.bak`.",
)
def apply_command(
    path: Path,
    diff_file: Path,
    checksum: str | None,
    dry_run: bool,
    backup: bool,
    backup_suffix: str | None,
) -> None:
    """Apply a unified diff to one file, guarded by an optional checksum."""

    _emit_lines(
        _invoke(
            lambda: APPLY_CONTROLLER.apply(
                ApplyDiffCommand(
                    path=path,
                    diff_file=diff_file,
                    checksum=checksum,
                    dry_run=dry_run,
                    backup=backup,
                    backup_suffix=backup_suffix,
                ),
            ),
        ),
    )


@nrv.command("plan")
@click.argument("plan_file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--dry-run", is_flag=True, help="Validate every entry without writing anything.")
@click.option("--backup", is_flag=True, help="Save each pre-image before writing.")
@click.option("--backup-suffix", default=None, help="Backup suffix (implies --backup).")
def plan_command(
    plan_file: Path,
    dry_run: bool,
    backup: bool,
    backup_suffix: str | None,
) -> None:
    """Apply a JSON apply plan (`{"diffs": [{"path", "diff", "checksum"}]}`) in order."""

    result = _invoke(
        lambda: APPLY_CONTROLLER.apply_plan(
            ApplyPlanCommand(
                plan_file=plan_file,
                dry_run=dry_run,
                backup=backup,
                backup_suffix=backup_suffix,
            ),
        ),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Apply plan failed.")


@nrv.command("checksum")
@click.argument("path", type=click.Path(path_type=Path, dir_okay=False))
def checksum_command(path: Path) -> None:
    """Print the lowercase SHA-256 hex digest of a file."""

    _emit_lines(_invoke(lambda: APPLY_CONTROLLER.checksum(ChecksumCommand(path=path))))


@nrv.group()
def llm() -> None:
    """LLM orchestrator commands."""


@llm.command("capabilities")
@click.option("--json", "as_json", is_flag=True, help="Print the raw snapshot as JSON.")
def llm_capabilities(as_json: bool) -> None:
    """Show the orchestrator capability snapshot."""

    _emit_lines(
        _invoke(
            lambda: ORCHESTRATOR_CONTROLLER.capabilities(
                LlmCapabilitiesCommand(output_format="json" if as_json else "table"),
            ),
        ),
    )


@llm.command("run")
@click.option("--model", required=True, help="Model id from the capability snapshot.")
@click.option(
    "--workload",
    type=click.Choice([kind.value for kind in WorkloadKind]),
    default=None,
    help="Workload kind; defaults to the first workload that supports the model.",
)
@click.option(
    "--max-tokens",
    type=int,
    default=None,
    help="Output token ceiling, checked against model and global limits.",
)
def llm_run(model: str, workload: str | None, max_tokens: int | None) -> None:
    """Enqueue one task and stream its output."""

    result = _invoke(
        lambda: ORCHESTRATOR_CONTROLLER.run(
            LlmRunCommand(model=model, workload=workload, max_tokens=max_tokens),
        ),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("LLM run failed.")


@llm.command("cancel")
@click.argument("task_id")
def llm_cancel(task_id: str) -> None:
    """Request cancellation of an enqueued task."""

    _emit_lines(_invoke(lambda: ORCHESTRATOR_CONTROLLER.cancel(LlmCancelCommand(task_id=task_id))))


def _invoke(action: Callable[[], T]) -> T:
    try:
        return action()
    except LlmError as error:
        _emit_lines(describe_llm_error(error))
        raise click.ClickException("LLM orchestrator call failed.") from error
    except LlmRequestBuildError as error:
        _emit_lines([str(error)])
        raise click.ClickException("Invalid LLM request.") from error
    except ApplyError as error:
        _emit_lines([str(error)])
        raise click.ClickException("Diff application failed.") from error
    except (FileError, OSError, TypeError, ValueError) as error:
        _emit_lines([str(error)])
        raise click.ClickException("Command failed.") from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    nrv()
