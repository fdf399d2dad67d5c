"""
Assembly of the prompts sent to the language model.

The user prompt is an ordered list of sections, from general context to
the concrete diff: project description, branch, recent history, the
analysis summary, an optional hint from the user and finally the diff.
Sections that do not apply are left out; the order of the remaining ones
never changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from textwrap import dedent
from typing import List, Optional, Sequence, Tuple

from cmt.analysis.analyzer import AnalysisSummary
from cmt.diff.models import DiffStats


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


README_EXCERPT_LINES = 40
README_CANDIDATES = ("README.md", "README.rst", "README.txt", "README")

DEFAULT_BRANCHES = {"main", "master"}

# Above these sizes the history section is dropped to save room for the diff.
RECENT_COMMITS_MAX_FILES = 150
RECENT_COMMITS_MAX_CHANGES = 50_000


SYSTEM_PROMPT = dedent(
    """
    You are an expert software engineer writing Git commit messages.
    Read the pre-analysis and the staged diff and describe the change.

    Reply with a single JSON object and nothing else, using these fields:
    - "type": one of feat, fix, refactor, chore, docs, style, test, build, ci, perf
    - "subject": imperative summary, lowercase first letter, no trailing period, max 72 characters
    - "details": optional bullet list ("- " prefix) explaining what changed and why
    - "scope": optional short component name, omit it when no single component applies
    - "issues": optional issue references, e.g. "#123"
    - "breaking": optional description of a breaking change

    RULES:
    - The pre-analysis is a hint. Always verify the type against the actual diff.
    - Do NOT repeat the subject in the details.
    - Do NOT write generic messages like "update files" or "refactor code".
    - Describe behaviour, not file names.
    """
).strip()


@dataclass(frozen=True)
class PromptSection:
    name: str
    title: str
    body: str

    def render(self) -> str:
        return f"# {self.title}\n\n{self.body.strip(chr(10))}"


@dataclass(frozen=True)
class PromptContext:
    """Ordered sections of the user prompt."""

    sections: Tuple[PromptSection, ...] = ()

    @property
    def names(self) -> List[str]:
        return [section.name for section in self.sections]

    def get(self, name: str) -> Optional[PromptSection]:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def render(self) -> str:
        return "\n\n".join(section.render() for section in self.sections) + "\n"


def system_prompt() -> str:
    """Return the fixed system instructions."""
    return SYSTEM_PROMPT


def read_doc_excerpt(repo_root: Path, max_lines: int = README_EXCERPT_LINES) -> Optional[str]:
    """Return the first ``max_lines`` lines of the project README.

    Returns None when no README exists, it cannot be read, or it is empty.
    """
    for name in README_CANDIDATES:
        path = repo_root / name
        if not path.is_file():
            continue
        try:
            with path.open("r", encoding="utf-8", errors="replace") as handle:
                lines = []
                for line in handle:
                    if len(lines) >= max_lines:
                        break
                    lines.append(line.rstrip("\n"))
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return None
        excerpt = "\n".join(lines).strip()
        return excerpt or None
    return None


def include_recent_commits_for(stats: DiffStats) -> bool:
    """Return False when the change set is too large to spend room on history."""
    total = stats.insertions + stats.deletions
    return stats.files_changed <= RECENT_COMMITS_MAX_FILES and total <= RECENT_COMMITS_MAX_CHANGES


def build_user_prompt(
    *,
    diff_text: str,
    analysis: AnalysisSummary,
    stats: DiffStats,
    readme_excerpt: Optional[str] = None,
    branch: Optional[str] = None,
    recent_commits: Sequence[str] = (),
    include_recent_commits: bool = True,
    hint: Optional[str] = None,
) -> PromptContext:
    """Assemble the user prompt sections in their fixed order.

    Parameters
    ----------
    diff_text : str
        Filtered and truncated diff.
    analysis : AnalysisSummary
        Summary of the filtered change set.
    stats : DiffStats
        Statistics of the complete, pre-truncation change set. They decide
        whether the history section is dropped.
    readme_excerpt : str, optional
        Beginning of the project README.
    branch : str, optional
        Current branch; default branches and a detached HEAD (None) are left out.
    recent_commits : Sequence[str]
        Subjects of recent commits, newest first.
    include_recent_commits : bool
        Caller switch for the history section.
    hint : str, optional
        Free-form guidance from the user.
    """
    sections: List[PromptSection] = []
    if readme_excerpt and readme_excerpt.strip():
        sections.append(PromptSection("readme", "Project Description", readme_excerpt))
    if branch and branch not in DEFAULT_BRANCHES:
        sections.append(PromptSection("branch", "Current Branch", branch))
    if include_recent_commits and recent_commits:
        if include_recent_commits_for(stats):
            body = "\n".join(f"- {subject}" for subject in recent_commits)
            sections.append(PromptSection("recent_commits", "Recent Commits", body))
        else:
            logger.debug("Change set too large, omitting recent commits")
    sections.append(
        PromptSection(
            "analysis",
            "Pre-Analysis of Changes",
            "The following analysis was generated automatically from the diff.\n"
            "Use it to inform your commit type selection, but always verify by reading the actual diff.\n\n"
            + analysis.to_markdown(),
        )
    )
    if hint and hint.strip():
        sections.append(PromptSection("hint", "Additional Context", hint.strip()))
    sections.append(PromptSection("diff", "Staged Changes", f"```diff\n{diff_text.rstrip(chr(10))}\n```"))
    return PromptContext(tuple(sections))
