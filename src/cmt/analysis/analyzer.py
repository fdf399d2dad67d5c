"""
Structured analysis of a staged change set.

The analysis gives the model a compact overview before it reads the diff:
how many files of each category changed, which files carry the most
churn and, where the change set is unambiguous, which commit type and
scope fit it. It is computed on the files that survive filtering.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from cmt.analysis.change_classifier import FileCategory, categorize_file
from cmt.diff.models import ChangeKind, FileChange


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


SCOPE_ROOTS = {"packages", "apps", "libs"}
SCOPE_DOMINANCE = 0.8
TOP_FILES_LIMIT = 20

_KIND_MARKERS = {
    ChangeKind.ADDED: "+",
    ChangeKind.DELETED: "-",
    ChangeKind.MODIFIED: "~",
    ChangeKind.RENAMED: "→",
}


class Tier(str, Enum):
    STRONG = "strong"
    WEAK = "weak"


@dataclass(frozen=True)
class CategorizedFile:
    """A staged file together with the category assigned to it."""

    path: str
    kind: ChangeKind
    category: FileCategory
    insertions: int = 0
    deletions: int = 0
    old_path: Optional[str] = None

    @classmethod
    def from_change(cls, change: FileChange) -> "CategorizedFile":
        return cls(
            path=change.path,
            kind=change.kind,
            category=categorize_file(change.path),
            insertions=change.insertions,
            deletions=change.deletions,
            old_path=change.old_path,
        )

    @property
    def changes(self) -> int:
        return self.insertions + self.deletions

    @property
    def is_pure_rename(self) -> bool:
        return self.kind is ChangeKind.RENAMED and self.changes == 0


@dataclass(frozen=True)
class CategoryStats:
    files: int = 0
    files_added: int = 0
    files_modified: int = 0
    files_deleted: int = 0
    files_renamed: int = 0
    insertions: int = 0
    deletions: int = 0

    @classmethod
    def of(cls, files: Sequence[CategorizedFile]) -> "CategoryStats":
        def count(kind: ChangeKind) -> int:
            return sum(1 for f in files if f.kind is kind)

        return cls(
            files=len(files),
            files_added=count(ChangeKind.ADDED),
            files_modified=count(ChangeKind.MODIFIED),
            files_deleted=count(ChangeKind.DELETED),
            files_renamed=count(ChangeKind.RENAMED),
            insertions=sum(f.insertions for f in files),
            deletions=sum(f.deletions for f in files),
        )

    def describe_operations(self) -> str:
        ops = []
        for label, value in (
            ("added", self.files_added),
            ("modified", self.files_modified),
            ("deleted", self.files_deleted),
            ("renamed", self.files_renamed),
        ):
            if value:
                ops.append(f"{value} {label}")
        return ", ".join(ops)


@dataclass(frozen=True)
class TypeSuggestion:
    commit_type: str
    tier: Tier
    reasons: Tuple[str, ...] = ()


class TypeRule(NamedTuple):
    """One rung of the commit type ladder.

    ``matches`` receives the non-empty list of analysed files and ``reason``
    produces the explanation shown to the model when the rule fires.
    """

    commit_type: str
    tier: Tier
    matches: Callable[[Sequence[CategorizedFile]], bool]
    reason: Callable[[Sequence[CategorizedFile]], str]


def _all_in(category: FileCategory) -> Callable[[Sequence[CategorizedFile]], bool]:
    return lambda files: all(f.category is category for f in files)


def _added_sources(files: Sequence[CategorizedFile]) -> int:
    return sum(1 for f in files if f.kind is ChangeKind.ADDED and f.category is FileCategory.SOURCE)


# Evaluated top-down; the first matching rule wins.
TYPE_RULES: Tuple[TypeRule, ...] = (
    TypeRule("docs", Tier.STRONG, _all_in(FileCategory.DOCS),
             lambda files: "All changes are in documentation files"),
    TypeRule("ci", Tier.STRONG, _all_in(FileCategory.CI),
             lambda files: "All changes are in CI/CD configuration"),
    TypeRule("test", Tier.STRONG, _all_in(FileCategory.TEST),
             lambda files: "All changes are in test files"),
    TypeRule("build", Tier.STRONG, _all_in(FileCategory.BUILD),
             lambda files: "All changes are in build configuration"),
    TypeRule("chore", Tier.STRONG, _all_in(FileCategory.CONFIG),
             lambda files: "All changes are in configuration/dependency files"),
    TypeRule("refactor", Tier.STRONG, lambda files: all(f.is_pure_rename for f in files),
             lambda files: f"{len(files)} files were renamed without content changes"),
    TypeRule("feat", Tier.WEAK, lambda files: _added_sources(files) > 0,
             lambda files: f"{_added_sources(files)} new source files added"),
    TypeRule("refactor", Tier.WEAK,
             lambda files: sum(f.insertions for f in files) == 0 and sum(f.deletions for f in files) > 0,
             lambda files: "Only deletions, no lines added"),
)


def suggest_type(files: Sequence[CategorizedFile]) -> Optional[TypeSuggestion]:
    """Return the first matching rule of :data:`TYPE_RULES`, or None."""
    if not files:
        return None
    for rule in TYPE_RULES:
        if rule.matches(files):
            return TypeSuggestion(rule.commit_type, rule.tier, (rule.reason(files),))
    return None


def suggest_scope(files: Sequence[CategorizedFile]) -> Optional[str]:
    """Suggest a scope for monorepo-style layouts.

    Only files under a top-level ``packages/``, ``apps/`` or ``libs/``
    directory contribute a component (the directory directly below the
    root). A component is suggested when it owns more than 80% of the
    total churn of the change set.
    """
    total = sum(f.changes for f in files)
    if total == 0:
        return None
    churn: Dict[str, int] = OrderedDict()
    for f in files:
        parts = f.path.split("/")
        if len(parts) >= 3 and parts[0] in SCOPE_ROOTS and parts[1]:
            churn[parts[1]] = churn.get(parts[1], 0) + f.changes
    for component, changes in churn.items():
        if changes / total > SCOPE_DOMINANCE:
            return component
    return None


@dataclass(frozen=True)
class AnalysisSummary:
    """Result of :func:`analyze`.

    Attributes
    ----------
    files : Tuple[CategorizedFile, ...]
        Analysed files in extraction order.
    category_counts : Dict[FileCategory, CategoryStats]
        Per-category statistics, in :class:`FileCategory` order, only for
        categories that occur.
    suggested_type : TypeSuggestion, optional
        Absent when no rule of the ladder applies.
    suggested_scope : str, optional
        Absent unless one monorepo component dominates.
    """

    files: Tuple[CategorizedFile, ...] = ()
    category_counts: Dict[FileCategory, CategoryStats] = field(default_factory=dict)
    suggested_type: Optional[TypeSuggestion] = None
    suggested_scope: Optional[str] = None

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def total_insertions(self) -> int:
        return sum(f.insertions for f in self.files)

    @property
    def total_deletions(self) -> int:
        return sum(f.deletions for f in self.files)

    def to_markdown(self) -> str:
        """Render the summary as the markdown block included in the prompt."""
        lines = [
            "## Change Summary",
            f"{self.total_files} files changed: +{self.total_insertions} insertions, "
            f"-{self.total_deletions} deletions",
            "",
            "## Files by Category",
        ]
        for category, stats in self.category_counts.items():
            lines.append(
                f"- {category.value}: {stats.files} files ({stats.describe_operations()}) "
                f"[+{stats.insertions}/-{stats.deletions}]"
            )

        lines += ["", f"## Changed Files (top {TOP_FILES_LIMIT} by churn)"]
        ranked = sorted(self.files, key=lambda f: -f.changes)
        for f in ranked[:TOP_FILES_LIMIT]:
            marker = _KIND_MARKERS[f.kind]
            if f.old_path:
                lines.append(f"{marker} {f.old_path} → {f.path} [{f.category.value}]")
            else:
                lines.append(f"{marker} {f.path} [{f.category.value}]")
        if len(ranked) > TOP_FILES_LIMIT:
            lines.append(f"+{len(ranked) - TOP_FILES_LIMIT} other files not listed")

        lines += ["", "## Analysis Hints"]
        suggestion = self.suggested_type
        if suggestion is None:
            lines.append("No clear pattern detected - analyze the diff carefully")
            if FileCategory.SOURCE in self.category_counts:
                lines.append("- Source code modified - analyze diff for fix/feat/refactor")
        else:
            if suggestion.tier is Tier.STRONG:
                lines.append(f"STRONG SIGNAL: This appears to be a '{suggestion.commit_type}' commit")
            else:
                lines.append(f"POSSIBLE: This might be a '{suggestion.commit_type}' commit")
            lines.extend(f"- {reason}" for reason in suggestion.reasons)
        if self.suggested_scope:
            lines.append(f"Suggested scope: {self.suggested_scope}")
        return "\n".join(lines) + "\n"


def analyze(changes: Sequence[FileChange]) -> AnalysisSummary:
    """Categorize ``changes`` and derive type and scope suggestions.

    Parameters
    ----------
    changes : Sequence[FileChange]
        Files that survived filtering, in extraction order.

    Returns
    -------
    AnalysisSummary
        Immutable summary consumed by the prompt builder.
    """
    files = tuple(CategorizedFile.from_change(change) for change in changes)
    grouped: Dict[FileCategory, List[CategorizedFile]] = {}
    for f in files:
        grouped.setdefault(f.category, []).append(f)
    category_counts = {
        category: CategoryStats.of(grouped[category]) for category in FileCategory if category in grouped
    }
    summary = AnalysisSummary(
        files=files,
        category_counts=category_counts,
        suggested_type=suggest_type(files),
        suggested_scope=suggest_scope(files),
    )
    logger.debug(
        "Analysis: %d files, suggested type %s, scope %s",
        summary.total_files,
        summary.suggested_type.commit_type if summary.suggested_type else None,
        summary.suggested_scope,
    )
    return summary
