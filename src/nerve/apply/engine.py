"""Checksum-guarded unified diff application for a single file."""

from __future__ import annotations

import logging
from pathlib import Path

from nerve.apply.errors import (
    ApplyIoError,
    ChecksumMismatchError,
    InvalidDiffError,
    InvalidUtf8Error,
)
from nerve.apply.models import ApplyMode, ApplyOptions, ApplyOutcome, ApplyStatus
from nerve.apply.unified_diff import PatchApplyError, PatchParseError, apply_patch, parse_patch
from nerve.files import append_suffix, sha256_hex

logger = logging.getLogger(__name__)


def apply_diff(options: ApplyOptions) -> ApplyOutcome:
    """Apply a unified diff to `options.path`.

    Validation happens entirely in memory: the pre-image is read (a missing
    file is an empty pre-image), checked against the optional checksum,
    decoded as UTF-8, then patched. Nothing on disk changes until every check
    has passed, and nothing changes at all in dry-run mode.
    """

    path = options.path
    original_bytes, existed = _read_pre_image(path)

    if options.checksum is not None:
        actual = sha256_hex(original_bytes)
        if actual != options.checksum:
            raise ChecksumMismatchError(path=path, expected=options.checksum, actual=actual)

    try:
        original = original_bytes.decode("utf-8")
    except UnicodeDecodeError as error:
        raise InvalidUtf8Error(path=path) from error

    try:
        patch = parse_patch(options.diff)
    except PatchParseError as error:
        raise InvalidDiffError(message=str(error)) from error
    try:
        patched = apply_patch(original, patch)
    except PatchApplyError as error:
        raise InvalidDiffError(message=str(error)) from error

    status = ApplyStatus.NOOP if patched.text == original else ApplyStatus.APPLIED
    outcome = ApplyOutcome(
        status=status,
        hunks_applied=len(patch.hunks),
        warnings=list(patched.warnings),
    )
    logger.debug(
        "Diff validated for %s: status=%s hunks=%d strategy=%s",
        path,
        status.value,
        outcome.hunks_applied,
        options.strategy.describe(),
    )

    if not options.strategy.writes:
        return outcome

    parent = path.parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise ApplyIoError(operation="create_dir_all", path=parent, cause=error) from error

    if options.strategy.mode is ApplyMode.WRITE_BACKUP and existed:
        backup_path = append_suffix(path, options.strategy.backup_suffix or "")
        try:
            backup_path.write_bytes(original_bytes)
        except OSError as error:
            raise ApplyIoError(operation="backup", path=backup_path, cause=error) from error
        logger.info("Pre-image of %s saved to %s", path, backup_path)

    try:
        path.write_bytes(patched.text.encode("utf-8"))
    except OSError as error:
        raise ApplyIoError(operation="write", path=path, cause=error) from error
    logger.info("Wrote %s (%s, %d hunks)", path, status.value, outcome.hunks_applied)
    return outcome


def _read_pre_image(path: Path) -> tuple[bytes, bool]:
    try:
        return path.read_bytes(), True
    except FileNotFoundError:
        return b"", False
    except OSError as error:
        raise ApplyIoError(operation="read", path=path, cause=error) from error
