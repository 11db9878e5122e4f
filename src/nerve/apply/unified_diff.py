"""Strict single-file unified diff parser and in-memory applier.

Hunks must match the pre-image exactly (line endings included). A hunk whose
content is found away from the line named in its header is still applied and
reported as an offset warning; there is no fuzzy matching of context lines.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

DEV_NULL = "/dev/null"

_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$")
_GIT_PREAMBLE_PREFIXES: tuple[str, ...] = (
    "diff --git ",
    "index ",
    "new file mode ",
    "deleted file mode ",
    "old mode ",
    "new mode ",
    "similarity index ",
    "dissimilarity index ",
    "rename from ",
    "rename to ",
    "copy from ",
    "copy to ",
)


class PatchParseError(ValueError):
    """Diff text is not a structurally valid single-file unified diff."""


class PatchApplyError(ValueError):
    """Parsed diff does not apply to the given pre-image."""


@dataclass(frozen=True, slots=True)
class HunkLine:
    """One body line: `kind` is " " (context), "-" (removed) or "+" (added)."""

    kind: str
    text: str


@dataclass(slots=True)
class Hunk:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    section: str = ""
    lines: list[HunkLine] = field(default_factory=list)

    @property
    def header(self) -> str:
        return f"@@ -{self.old_start},{self.old_count} +{self.new_start},{self.new_count} @@"

    def old_lines(self) -> list[str]:
        return [line.text for line in self.lines if line.kind != "+"]

    def new_lines(self) -> list[str]:
        return [line.text for line in self.lines if line.kind != "-"]


@dataclass(slots=True)
class Patch:
    old_path: str | None
    new_path: str | None
    hunks: list[Hunk]

    @property
    def creates_file(self) -> bool:
        return self.old_path == DEV_NULL

    @property
    def deletes_file(self) -> bool:
        return self.new_path == DEV_NULL


@dataclass(slots=True)
class PatchedText:
    """Result of applying a patch in memory."""

    text: str
    warnings: list[str] = field(default_factory=list)


def split_lines(text: str) -> list[str]:
    """Split on "\\n" only, keeping terminators; a final unterminated line is kept as is."""

    if not text:
        return []
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def parse_patch(text: str) -> Patch:
    """Parse unified diff text describing changes to exactly one file."""

    if text and not text.endswith("\n"):
        text += "\n"
    lines = split_lines(text)
    index = 0

    while index < len(lines) and not lines[index].startswith(("--- ", "@@")):
        line = lines[index]
        if not line.strip() or line.startswith(_GIT_PREAMBLE_PREFIXES):
            index += 1
            continue
        raise PatchParseError(
            f"line {index + 1}: unexpected content before file header: {line.rstrip()!r}",
        )

    old_path: str | None = None
    new_path: str | None = None
    if index < len(lines) and lines[index].startswith("--- "):
        old_path = _header_path(lines[index][4:])
        index += 1
        if index >= len(lines) or not lines[index].startswith("+++ "):
            raise PatchParseError(f"line {index + 1}: expected '+++' header after '---'")
        new_path = _header_path(lines[index][4:])
        index += 1

    hunks: list[Hunk] = []
    while index < len(lines):
        line = lines[index]
        if line.startswith("@@"):
            hunk, index = _parse_hunk(lines, index, number=len(hunks) + 1)
            hunks.append(hunk)
            continue
        if not line.strip():
            index += 1
            continue
        if line.startswith(("--- ", "diff --git ")):
            raise PatchParseError(
                f"line {index + 1}: diff touches multiple files; expected a single-file patch",
            )
        raise PatchParseError(
            f"line {index + 1}: unexpected content outside a hunk: {line.rstrip()!r}",
        )

    if not hunks:
        raise PatchParseError("diff contains no hunks")
    return Patch(old_path=old_path, new_path=new_path, hunks=hunks)


def apply_patch(original: str, patch: Patch) -> PatchedText:
    """Apply `patch` to `original`, returning the patched text and offset warnings."""

    source = split_lines(original)
    if patch.creates_file and source:
        raise PatchApplyError("diff creates the file but the target already has content")

    result: list[str] = []
    warnings: list[str] = []
    cursor = 0
    drift = 0
    for number, hunk in enumerate(patch.hunks, start=1):
        old = hunk.old_lines()
        stated = hunk.old_start - 1 if hunk.old_count else hunk.old_start
        if stated > len(source):
            raise PatchApplyError(
                f"hunk {number} ({hunk.header}) is out of range: "
                f"target has {len(source)} lines",
            )
        position = _locate(source, old, expected=stated + drift, cursor=cursor)
        if position is None:
            raise PatchApplyError(
                f"hunk {number} ({hunk.header}) does not match the target content",
            )
        new = hunk.new_lines()
        # Old lines of a growing hunk stay matchable after it has been applied.
        if len(new) > len(old) and source[position : position + len(new)] == new:
            raise PatchApplyError(f"hunk {number} ({hunk.header}) appears already applied")
        if position != stated:
            warnings.append(f"hunk {number} applied at offset {position - stated:+d}")
        drift = position - stated
        result.extend(source[cursor:position])
        result.extend(new)
        cursor = position + len(old)
    result.extend(source[cursor:])

    if patch.deletes_file:
        warnings.append("diff deletes the file; target is left in place with the patched content")
    return PatchedText(text="".join(result), warnings=warnings)


def _parse_hunk(lines: list[str], index: int, *, number: int) -> tuple[Hunk, int]:
    header = lines[index].rstrip("\r\n")
    match = _HUNK_HEADER_RE.match(header)
    if match is None:
        raise PatchParseError(f"line {index + 1}: malformed hunk header {header!r}")
    hunk = Hunk(
        old_start=int(match.group(1)),
        old_count=int(match.group(2)) if match.group(2) is not None else 1,
        new_start=int(match.group(3)),
        new_count=int(match.group(4)) if match.group(4) is not None else 1,
        section=match.group(5).strip(),
    )
    if hunk.old_count and hunk.old_start == 0:
        raise PatchParseError(f"line {index + 1}: hunk {number} removes lines before line 1")
    index += 1

    old_seen = 0
    new_seen = 0
    while old_seen < hunk.old_count or new_seen < hunk.new_count:
        if index >= len(lines):
            raise PatchParseError(
                f"hunk {number} ({header}) ends early: expected "
                f"{hunk.old_count} old / {hunk.new_count} new lines, "
                f"found {old_seen} / {new_seen}",
            )
        line = lines[index]
        if line.startswith("\\"):
            _strip_newline(hunk, index=index)
            index += 1
            continue
        if line == "\n":
            # Blank context line whose leading space was stripped.
            kind, text = " ", "\n"
        elif line[0] in " -+":
            kind, text = line[0], line[1:]
        else:
            raise PatchParseError(
                f"line {index + 1}: unexpected line in hunk {number}: {line.rstrip()!r}",
            )
        if kind != "+":
            old_seen += 1
        if kind != "-":
            new_seen += 1
        if old_seen > hunk.old_count or new_seen > hunk.new_count:
            raise PatchParseError(
                f"line {index + 1}: hunk {number} ({header}) has more lines than its header",
            )
        hunk.lines.append(HunkLine(kind=kind, text=text))
        index += 1

    while index < len(lines) and lines[index].startswith("\\"):
        _strip_newline(hunk, index=index)
        index += 1
    return hunk, index


def _strip_newline(hunk: Hunk, *, index: int) -> None:
    if not hunk.lines:
        raise PatchParseError(f"line {index + 1}: 'No newline' marker without a preceding line")
    last = hunk.lines[-1]
    if last.text.endswith("\n"):
        hunk.lines[-1] = HunkLine(kind=last.kind, text=last.text[:-1])


def _header_path(raw: str) -> str:
    return raw.rstrip("\r\n").split("\t", 1)[0].strip()


def _locate(source: list[str], old: list[str], *, expected: int, cursor: int) -> int | None:
    """Find where `old` occurs at or after `cursor`, nearest to `expected` first."""

    if not old:
        return expected if cursor <= expected <= len(source) else None
    last = len(source) - len(old)
    if last < cursor:
        return None
    width = len(old)
    span = max(abs(expected - cursor), abs(last - expected))
    for distance in range(span + 1):
        for candidate in (expected - distance, expected + distance):
            if cursor <= candidate <= last and source[candidate : candidate + width] == old:
                return candidate
    return None
