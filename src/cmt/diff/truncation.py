"""
Size bounds for the diff text sent to the model.

Only the rendered text is bounded; statistics are never truncated. The
policy is a pure function of the change set and the configuration, so
the same input always renders byte-identical output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, List

from cmt.diff.models import ChangeKind, ChangeSet, FileChange, Hunk, LineKind


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


LARGE_FILES_THRESHOLD = 100
LARGE_CHANGES_THRESHOLD = 20_000
TIGHT_CONTEXT_MAX = 15
TIGHT_MAX_LINES_PER_FILE = 500

ELLIPSIS = "..."


@dataclass(frozen=True)
class TruncationConfig:
    """Bounds applied while rendering the diff text.

    Attributes
    ----------
    context_lines : int
        Unchanged lines kept around each change.
    max_lines_per_file : int
        Maximum number of hunk lines (headers included) rendered per file.
    max_line_width : int
        Maximum characters per rendered line before it is cut.
    """

    context_lines: int = 20
    max_lines_per_file: int = 2000
    max_line_width: int = 500

    def __post_init__(self) -> None:
        for name in ("context_lines", "max_lines_per_file", "max_line_width"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"'{name}' must be a positive integer, got {value!r}")


def is_large_change_set(change_set: ChangeSet) -> bool:
    return (
        change_set.files_changed > LARGE_FILES_THRESHOLD
        or change_set.total_changes > LARGE_CHANGES_THRESHOLD
    )


def tighten(config: TruncationConfig, change_set: ChangeSet) -> TruncationConfig:
    """Return the effective bounds for ``change_set``.

    For very large change sets the per-file line cap is brought down to at
    most 500 and the context to at most 15, so the effective context lies
    in ``[8, 15]`` for any requested context of 8 or more. Bounds are only
    ever lowered: a requested context below 8 is kept as is rather than
    raised to 8.
    """
    if not is_large_change_set(change_set):
        return config
    context = min(config.context_lines, TIGHT_CONTEXT_MAX)
    max_lines = min(config.max_lines_per_file, TIGHT_MAX_LINES_PER_FILE)
    tightened = replace(config, context_lines=context, max_lines_per_file=max_lines)
    if tightened != config:
        logger.debug(
            "Large change set (%d files, %d changes): context %d -> %d, max lines/file %d -> %d",
            change_set.files_changed,
            change_set.total_changes,
            config.context_lines,
            context,
            config.max_lines_per_file,
            max_lines,
        )
    return tightened


def rehunk(hunk: Hunk, context_lines: int) -> List[Hunk]:
    """Re-cut ``hunk`` as Git would for a smaller context window.

    Changes separated by more than ``2 * context_lines`` unchanged lines
    end up in separate hunks, and at most ``context_lines`` of context is
    kept on each side. A context at least as large as the one the hunk was
    produced with returns the hunk unchanged.
    """
    lines = hunk.lines
    changed = [i for i, line in enumerate(lines) if line.kind is not LineKind.CONTEXT]
    if not changed:
        return []

    groups = []
    first = last = changed[0]
    for index in changed[1:]:
        if index - last - 1 > 2 * context_lines:
            groups.append((first, last))
            first = index
        last = index
    groups.append((first, last))

    if len(groups) == 1 and first - context_lines <= 0 and last + context_lines >= len(lines) - 1:
        return [hunk]

    # 1-based positions of the next old/new line before each index
    old_pos = hunk.old_start if hunk.old_count > 0 else hunk.old_start + 1
    new_pos = hunk.new_start if hunk.new_count > 0 else hunk.new_start + 1
    old_at = []
    new_at = []
    for line in lines:
        old_at.append(old_pos)
        new_at.append(new_pos)
        if line.kind is not LineKind.ADDED:
            old_pos += 1
        if line.kind is not LineKind.REMOVED:
            new_pos += 1

    result = []
    for first, last in groups:
        start = max(0, first - context_lines)
        end = min(len(lines) - 1, last + context_lines)
        chunk = lines[start:end + 1]
        old_count = sum(1 for line in chunk if line.kind is not LineKind.ADDED)
        new_count = sum(1 for line in chunk if line.kind is not LineKind.REMOVED)
        result.append(
            Hunk(
                old_start=old_at[start] if old_count else old_at[start] - 1,
                old_count=old_count,
                new_start=new_at[start] if new_count else new_at[start] - 1,
                new_count=new_count,
                lines=tuple(chunk),
                header=hunk.header,
            )
        )
    return result


def _cap_width(line: str, max_width: int) -> str:
    if len(line) <= max_width:
        return line
    return line[:max_width] + ELLIPSIS


def _file_header(change: FileChange) -> Iterator[str]:
    old = change.old_path or change.path
    yield f"diff --git a/{old} b/{change.path}"
    if change.kind is ChangeKind.ADDED:
        yield "new file"
    elif change.kind is ChangeKind.DELETED:
        yield "deleted file"
    elif change.kind is ChangeKind.RENAMED:
        yield f"rename from {old}"
        yield f"rename to {change.path}"
    if change.binary:
        yield "Binary files differ"


def _file_body(change: FileChange, config: TruncationConfig) -> Iterator[str]:
    emitted = 0
    for original in change.hunks:
        for hunk in rehunk(original, config.context_lines):
            for line in [hunk.render_header(), *(diff_line.render() for diff_line in hunk.lines)]:
                if emitted >= config.max_lines_per_file:
                    return
                emitted += 1
                yield line


def render_file(change: FileChange, config: TruncationConfig) -> List[str]:
    """Render one file's diff lines under the configured bounds."""
    rendered = [*_file_header(change), *_file_body(change, config)]
    return [_cap_width(line, config.max_line_width) for line in rendered]


def render_diff(files: Iterable[FileChange], config: TruncationConfig) -> str:
    """Render the diff text for ``files`` (already filtered) under ``config``."""
    out: List[str] = []
    for change in files:
        out.extend(render_file(change, config))
    return "\n".join(out) + ("\n" if out else "")
