"""
Data models for staged changes.

A :class:`ChangeSet` is produced once per run by the Git client and is
never mutated afterwards. Per-file statistics are taken from the numstat
output of Git, so they stay exact no matter how much of the diff text is
later truncated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Tuple


class ChangeKind(str, Enum):
    """Kind of change recorded for a single path."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"

    @classmethod
    def from_status(cls, status: str) -> "ChangeKind":
        """Map a ``git diff --name-status`` letter to a change kind.

        Copies and type changes are reported as additions and
        modifications respectively.
        """
        letter = status[:1].upper()
        if letter in {"A", "C"}:
            return cls.ADDED
        if letter == "D":
            return cls.DELETED
        if letter == "R":
            return cls.RENAMED
        return cls.MODIFIED


class LineKind(str, Enum):
    CONTEXT = " "
    ADDED = "+"
    REMOVED = "-"


@dataclass(frozen=True)
class DiffLine:
    kind: LineKind
    text: str

    def render(self) -> str:
        return f"{self.kind.value}{self.text}"


@dataclass(frozen=True)
class Hunk:
    """A contiguous block of context/added/removed lines within one file."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: Tuple[DiffLine, ...] = ()
    header: str = ""

    @property
    def insertions(self) -> int:
        return sum(1 for line in self.lines if line.kind is LineKind.ADDED)

    @property
    def deletions(self) -> int:
        return sum(1 for line in self.lines if line.kind is LineKind.REMOVED)

    def render_header(self) -> str:
        old = _format_range(self.old_start, self.old_count)
        new = _format_range(self.new_start, self.new_count)
        suffix = f" {self.header}" if self.header else ""
        return f"@@ -{old} +{new} @@{suffix}"


def _format_range(start: int, count: int) -> str:
    # Git omits the count when it is exactly one.
    if count == 1:
        return str(start)
    return f"{start},{count}"


@dataclass(frozen=True)
class FileChange:
    """Representation of a single staged file change.

    Attributes
    ----------
    path : str
        Path of the file after the change (the old path for deletions).
    kind : ChangeKind
        Added, modified, deleted or renamed.
    insertions, deletions : int
        Exact line counts from ``git diff --numstat``.
    hunks : Tuple[Hunk, ...]
        Parsed hunks as produced by Git for the requested context size.
    old_path : str, optional
        Previous path for renamed files.
    binary : bool
        True when Git reports the file as binary (no hunks, zero counts).
    """

    path: str
    kind: ChangeKind
    insertions: int = 0
    deletions: int = 0
    hunks: Tuple[Hunk, ...] = ()
    old_path: Optional[str] = None
    binary: bool = False

    @property
    def changes(self) -> int:
        return self.insertions + self.deletions

    @property
    def is_pure_rename(self) -> bool:
        return self.kind is ChangeKind.RENAMED and self.changes == 0


@dataclass(frozen=True)
class ChangeSet:
    """All staged file changes plus aggregate statistics for one run."""

    files: Tuple[FileChange, ...] = ()
    has_unstaged_remainder: bool = False
    insertions: int = field(init=False)
    deletions: int = field(init=False)

    def __post_init__(self) -> None:
        # Totals are derived so they can never disagree with the files.
        object.__setattr__(self, "insertions", sum(f.insertions for f in self.files))
        object.__setattr__(self, "deletions", sum(f.deletions for f in self.files))

    @classmethod
    def of(cls, files: Iterable[FileChange], has_unstaged_remainder: bool = False) -> "ChangeSet":
        return cls(files=tuple(files), has_unstaged_remainder=has_unstaged_remainder)

    @property
    def files_changed(self) -> int:
        return len(self.files)

    @property
    def total_changes(self) -> int:
        return self.insertions + self.deletions

    def stats(self) -> "DiffStats":
        return DiffStats(
            files_changed=self.files_changed,
            insertions=self.insertions,
            deletions=self.deletions,
            has_unstaged_remainder=self.has_unstaged_remainder,
        )


@dataclass(frozen=True)
class DiffStats:
    """User-facing statistics of the staged change set (never truncated)."""

    files_changed: int
    insertions: int
    deletions: int
    has_unstaged_remainder: bool = False

    def describe(self) -> str:
        noun = "file" if self.files_changed == 1 else "files"
        return (
            f"{self.files_changed} {noun} changed, "
            f"{self.insertions} insertions(+), {self.deletions} deletions(-)"
        )
