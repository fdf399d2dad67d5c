"""
Parsers for the plain-text output of ``git diff``.

Three views of the same staged diff are combined by the Git client:

* ``--numstat -z`` gives exact insertion/deletion counts per path,
* ``--name-status -z`` gives the change kind (and rename sources),
* the unified patch gives the hunks that are later rendered for the model.

The parsers are pure functions over strings so that they can be unit
tested without a repository.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from cmt.diff.models import DiffLine, Hunk, LineKind


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@ ?(.*)$")

_ESCAPES = {"n": "\n", "t": "\t", '"': '"', "\\": "\\", "a": "\a", "b": "\b", "f": "\f", "r": "\r", "v": "\v"}


@dataclass(frozen=True)
class NumstatEntry:
    path: str
    insertions: int
    deletions: int
    old_path: Optional[str] = None
    binary: bool = False


@dataclass(frozen=True)
class StatusEntry:
    status: str
    path: str
    old_path: Optional[str] = None


@dataclass
class PatchSection:
    """Everything Git printed for one file in a unified patch."""

    old_path: Optional[str] = None
    new_path: Optional[str] = None
    binary: bool = False
    hunks: List[Hunk] = field(default_factory=list)

    @property
    def path(self) -> str:
        return self.new_path or self.old_path or ""


def unquote_path(raw: str) -> str:
    """Undo Git's C-style quoting of unusual path names.

    Git wraps paths containing quotes, backslashes, control characters or
    (with ``core.quotePath``) non-ASCII bytes in double quotes and escapes
    them. Unquoted input is returned unchanged.
    """
    if len(raw) < 2 or not (raw.startswith('"') and raw.endswith('"')):
        return raw
    body = raw[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        char = body[i]
        if char != "\\" or i + 1 >= len(body):
            out.extend(char.encode("utf-8"))
            i += 1
            continue
        nxt = body[i + 1]
        if nxt in "01234567" and re.match(r"[0-7]{3}", body[i + 1:i + 4]):
            out.append(int(body[i + 1:i + 4], 8))
            i += 4
            continue
        out.extend(_ESCAPES.get(nxt, nxt).encode("utf-8"))
        i += 2
    return out.decode("utf-8", errors="replace")


def _strip_prefix(path: str, prefix: str) -> Optional[str]:
    path = unquote_path(path.rstrip("\t"))
    if path == "/dev/null":
        return None
    if path.startswith(prefix):
        return path[len(prefix):]
    return path


def parse_numstat(output: str) -> List[NumstatEntry]:
    """Parse ``git diff --numstat -z`` output.

    Renamed entries are emitted by Git as ``ins<TAB>del<TAB><NUL>old<NUL>new<NUL>``;
    binary files report ``-`` for both counts and are recorded as 0/0.
    """
    tokens = output.split("\0")
    entries: List[NumstatEntry] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1
        if not token.strip():
            continue
        parts = token.split("\t", 2)
        if len(parts) != 3:
            logger.debug("Ignoring malformed numstat token: %r", token)
            continue
        added, removed, path = parts
        old_path = None
        if not path:
            if i + 1 >= len(tokens):
                break
            old_path, path = tokens[i], tokens[i + 1]
            i += 2
        binary = added == "-" and removed == "-"
        entries.append(
            NumstatEntry(
                path=path,
                insertions=0 if binary else int(added),
                deletions=0 if binary else int(removed),
                old_path=old_path,
                binary=binary,
            )
        )
    return entries


def parse_name_status(output: str) -> List[StatusEntry]:
    """Parse ``git diff --name-status -z`` output."""
    tokens = output.split("\0")
    entries: List[StatusEntry] = []
    i = 0
    while i < len(tokens):
        status = tokens[i].strip()
        i += 1
        if not status:
            continue
        if status[0] in {"R", "C"}:
            if i + 1 >= len(tokens):
                break
            old_path, path = tokens[i], tokens[i + 1]
            i += 2
            entries.append(StatusEntry(status=status, path=path, old_path=old_path))
        else:
            if i >= len(tokens):
                break
            path = tokens[i]
            i += 1
            entries.append(StatusEntry(status=status, path=path))
    return entries


def _paths_from_git_line(line: str) -> Tuple[Optional[str], Optional[str]]:
    # "diff --git a/x b/x" is only unambiguous when both halves are equal.
    rest = line[len("diff --git "):]
    if rest.startswith('"'):
        end = rest.find('" ', 1)
        if end != -1:
            return _strip_prefix(rest[:end + 1], "a/"), _strip_prefix(rest[end + 2:], "b/")
    half = (len(rest) - 1) // 2
    if len(rest) % 2 == 1 and rest[half] == " ":
        old, new = rest[:half], rest[half + 1:]
        if old[2:] == new[2:]:
            return _strip_prefix(old, "a/"), _strip_prefix(new, "b/")
    return None, None


def parse_patch(output: str) -> List[PatchSection]:
    """Split a unified patch into per-file sections with parsed hunks."""
    sections: List[PatchSection] = []
    current: Optional[PatchSection] = None
    hunk: Optional[dict] = None

    def close_hunk() -> None:
        nonlocal hunk
        if current is not None and hunk is not None:
            current.hunks.append(
                Hunk(
                    old_start=hunk["old_start"],
                    old_count=hunk["old_count"],
                    new_start=hunk["new_start"],
                    new_count=hunk["new_count"],
                    lines=tuple(hunk["lines"]),
                    header=hunk["header"],
                )
            )
        hunk = None

    # Only "\n" ends a line: form feeds and other separators recognised by
    # str.splitlines can appear inside diff content.
    lines = output.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    for line in lines:
        if line.startswith("diff --git "):
            close_hunk()
            old_path, new_path = _paths_from_git_line(line)
            current = PatchSection(old_path=old_path, new_path=new_path)
            sections.append(current)
            continue
        if current is None:
            continue
        if hunk is not None and (hunk["old_left"] > 0 or hunk["new_left"] > 0):
            prefix = line[:1]
            text = line[1:]
            if prefix == "+":
                hunk["lines"].append(DiffLine(LineKind.ADDED, text))
                hunk["new_left"] -= 1
                continue
            if prefix == "-":
                hunk["lines"].append(DiffLine(LineKind.REMOVED, text))
                hunk["old_left"] -= 1
                continue
            if prefix == " " or line == "":
                hunk["lines"].append(DiffLine(LineKind.CONTEXT, text))
                hunk["old_left"] -= 1
                hunk["new_left"] -= 1
                continue
            if prefix == "\\":
                # "\ No newline at end of file"
                continue
        if line.startswith("\\"):
            continue
        match = HUNK_HEADER_RE.match(line)
        if match:
            close_hunk()
            old_count = int(match.group(2)) if match.group(2) is not None else 1
            new_count = int(match.group(4)) if match.group(4) is not None else 1
            hunk = {
                "old_start": int(match.group(1)),
                "old_count": old_count,
                "new_start": int(match.group(3)),
                "new_count": new_count,
                "header": match.group(5).strip(),
                "old_left": old_count,
                "new_left": new_count,
                "lines": [],
            }
            continue
        if line.startswith("--- "):
            current.old_path = _strip_prefix(line[4:], "a/")
        elif line.startswith("+++ "):
            current.new_path = _strip_prefix(line[4:], "b/")
        elif line.startswith("rename from "):
            current.old_path = unquote_path(line[len("rename from "):])
        elif line.startswith("rename to "):
            current.new_path = unquote_path(line[len("rename to "):])
        elif line.startswith("new file mode"):
            current.old_path = None
        elif line.startswith("deleted file mode"):
            if current.new_path is not None and current.old_path is None:
                current.old_path = current.new_path
            current.new_path = None
        elif line.startswith("Binary files ") or line == "GIT binary patch":
            current.binary = True
    close_hunk()
    return sections


def index_sections(sections: List[PatchSection]) -> Dict[str, PatchSection]:
    """Index patch sections by the path the other views report for them."""
    return {section.path: section for section in sections if section.path}
