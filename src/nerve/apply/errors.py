"""Errors raised while applying diffs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class ApplyError(Exception):
    """Base class for every diff application failure."""


@dataclass(slots=True)
class ApplyIoError(ApplyError):
    """I/O failure tagged with the operation name and the offending path."""

    operation: str
    path: Path
    cause: OSError

    def __str__(self) -> str:
        return f"nrv.apply: io failure during {self.operation} on {self.path}: {self.cause}"


@dataclass(slots=True)
class InvalidDiffError(ApplyError):
    """Malformed diff text or a diff that does not apply to the pre-image."""

    message: str

    def __str__(self) -> str:
        return f"nrv.apply: invalid diff: {self.message}"


@dataclass(slots=True)
class ChecksumMismatchError(ApplyError):
    """Pre-image changed since the diff was authored."""

    path: Path
    expected: str
    actual: str

    def __str__(self) -> str:
        return (
            f"nrv.apply: checksum mismatch for {self.path}: "
            f"expected {self.expected}, got {self.actual}"
        )


@dataclass(slots=True)
class InvalidUtf8Error(ApplyError):
    """Pre-image bytes are not valid UTF-8 text."""

    path: Path

    def __str__(self) -> str:
        return f"nrv.apply: file contains invalid utf-8: {self.path}"
