"""Plain filesystem helpers with structured errors."""

from __future__ import annotations

import hashlib
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from stat import S_ISLNK, S_ISREG


class WriteMode(str, Enum):
    """How `write` treats an existing target."""

    OVERWRITE = "overwrite"
    APPEND = "append"
    CREATE = "create"
    OVERWRITE_WITH_BACKUP = "overwrite_with_backup"


@dataclass(frozen=True, slots=True)
class WriteStrategy:
    """Write mode plus the backup suffix used by `overwrite_with_backup`."""

    mode: WriteMode = WriteMode.OVERWRITE
    backup_suffix: str | None = None

    def __post_init__(self) -> None:
        if self.mode is WriteMode.OVERWRITE_WITH_BACKUP:
            if not self.backup_suffix:
                raise ValueError("overwrite_with_backup requires a non-empty backup suffix")
        elif self.backup_suffix is not None:
            raise ValueError(
                f"backup suffix is only valid with overwrite_with_backup, got {self.mode.value}",
            )

    @classmethod
    def overwrite(cls) -> WriteStrategy:
        return cls(WriteMode.OVERWRITE)

    @classmethod
    def append(cls) -> WriteStrategy:
        return cls(WriteMode.APPEND)

    @classmethod
    def create(cls) -> WriteStrategy:
        return cls(WriteMode.CREATE)

    @classmethod
    def overwrite_with_backup(cls, suffix: str = ".bak") -> WriteStrategy:
        return cls(WriteMode.OVERWRITE_WITH_BACKUP, suffix)


@dataclass(slots=True)
class WriteOptions:
    """Inputs for one `write` call."""

    path: Path
    content: str
    strategy: WriteStrategy = field(default_factory=WriteStrategy.overwrite)
    create_dirs: bool = False


@dataclass(slots=True)
class WriteOutcome:
    """Result of a write operation."""

    bytes_written: int
    created: bool
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class FileStat:
    """Metadata returned by `stat` (symlinks are not followed)."""

    size: int
    is_file: bool
    is_symlink: bool


@dataclass(slots=True)
class FileContent:
    """Text content returned by `read`."""

    text: str


@dataclass(slots=True)
class FileError(Exception):
    """Filesystem failure tagged with the operation and the offending path."""

    operation: str
    path: Path
    reason: str

    def __str__(self) -> str:
        if self.operation == "decode":
            return f"nrv.file: operation requires utf8 content: {self.path}"
        return f"nrv.file: io failure during {self.operation} on {self.path}: {self.reason}"


def sha256_hex(data: bytes) -> str:
    """Lowercase hex SHA-256 digest used for pre-image checksums."""

    return hashlib.sha256(data).hexdigest()


def append_suffix(path: Path, suffix: str) -> Path:
    """Return `path` with `suffix` appended literally to its file name."""

    return path.with_name(path.name + suffix)


def read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as error:
        raise FileError("read", path, str(error)) from error


def read(path: Path) -> FileContent:
    data = read_bytes(path)
    try:
        return FileContent(text=data.decode("utf-8"))
    except UnicodeDecodeError as error:
        raise FileError("decode", path, str(error)) from error


def write(options: WriteOptions) -> WriteOutcome:
    """Write text content according to the selected strategy."""

    path = options.path
    strategy = options.strategy
    if options.create_dirs:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise FileError("create_dirs", path.parent, str(error)) from error

    existed_before = path.exists()
    if strategy.mode is WriteMode.OVERWRITE_WITH_BACKUP and existed_before:
        backup_path = append_suffix(path, strategy.backup_suffix or "")
        try:
            shutil.copyfile(path, backup_path)
        except OSError as error:
            raise FileError("backup", backup_path, str(error)) from error

    open_mode = {
        WriteMode.OVERWRITE: "wb",
        WriteMode.OVERWRITE_WITH_BACKUP: "wb",
        WriteMode.APPEND: "ab",
        WriteMode.CREATE: "xb",
    }[strategy.mode]
    payload = options.content.encode("utf-8")
    try:
        with path.open(open_mode) as handle:
            handle.write(payload)
    except OSError as error:
        raise FileError("write", path, str(error)) from error

    return WriteOutcome(bytes_written=len(payload), created=not existed_before)


def stat(path: Path) -> FileStat:
    try:
        info = path.lstat()
    except OSError as error:
        raise FileError("stat", path, str(error)) from error
    return FileStat(
        size=info.st_size,
        is_file=S_ISREG(info.st_mode),
        is_symlink=S_ISLNK(info.st_mode),
    )


def remove(path: Path) -> None:
    try:
        path.unlink()
    except OSError as error:
        raise FileError("remove", path, str(error)) from error


def exists(path: Path) -> bool:
    return path.exists()
