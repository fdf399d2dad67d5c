"""
Exclusion rules for paths whose content is never sent to the model.

Skipped files are only removed from the diff text. They stay in the
statistics shown to the user, which always describe the real staged
change.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Iterable, List, Optional, Tuple

from cmt.diff.models import ChangeKind, FileChange


LOCK_FILE_NAMES = {"package-lock.json", "pnpm-lock.yaml", "yarn.lock", "cargo.lock"}

# Checked with str.endswith, so multi-part suffixes such as ".min.js" work.
SKIPPED_SUFFIXES = (
    ".lock",
    ".map",
    ".min.js",
    ".min.css",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".webp",
    ".avif",
    ".bmp",
    ".ico",
    ".svg",
)

BUILD_OUTPUT_PREFIXES = ("dist/", "build/")


def is_skippable(path: str, kind: Optional[ChangeKind] = None) -> bool:
    """Return True if the diff of ``path`` should not be sent to the model.

    The decision depends on the path alone; ``kind`` is accepted so callers
    can pass a whole :class:`FileChange` worth of information, but no rule
    currently uses it.
    """
    name = PurePosixPath(path).name.lower()
    if name in LOCK_FILE_NAMES:
        return True
    if name.endswith(SKIPPED_SUFFIXES):
        return True
    return path.startswith(BUILD_OUTPUT_PREFIXES)


def partition(files: Iterable[FileChange]) -> Tuple[List[FileChange], List[FileChange]]:
    """Split files into ``(kept, skipped)`` preserving their order."""
    kept: List[FileChange] = []
    skipped: List[FileChange] = []
    for change in files:
        if is_skippable(change.path, change.kind):
            skipped.append(change)
        else:
            kept.append(change)
    return kept, skipped
