"""
Git client implementation for cmt.

This module wraps the read-only Git operations the pipeline needs (staged
diff, recent history, current branch) plus creating the final commit. All
subprocess calls go through :meth:`GitClient._run` so that unit tests can
mock them easily.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from cmt.diff.diff_parser import index_sections, parse_name_status, parse_numstat, parse_patch
from cmt.diff.models import ChangeKind, ChangeSet, FileChange


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class GitOperationError(Exception):
    """Raised when a Git command fails."""

    pass


class NoRepositoryError(GitOperationError):
    """Raised when the working directory is not inside a Git repository."""

    pass


class NoChangesError(GitOperationError):
    """Raised when the index holds no staged changes."""

    pass


class GitClient:
    """Client for reading staged changes from a Git repository."""

    # Keeps non-ASCII paths readable instead of octal-escaped.
    _DIFF_PREFIX = ["-c", "core.quotepath=false", "diff", "--cached", "-M"]

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Find the root of the Git repository starting from ``start``.

        Walk upwards until a ``.git`` entry is found or the filesystem
        root is reached. ``.git`` may be a file for worktrees and
        submodules.
        """
        current = start.resolve()
        while True:
            if (current / ".git").exists():
                return current
            if current.parent == current:
                # reached filesystem root
                return None
            current = current.parent

    @classmethod
    def discover(cls, start: Path) -> "GitClient":
        """Return a client for the repository containing ``start``.

        Raises
        ------
        NoRepositoryError
            If ``start`` is not inside a Git repository.
        """
        root = cls.find_repo_root(start)
        if root is None:
            raise NoRepositoryError(f"Not a git repository: {start}")
        logger.debug("Using Git repository at %s", root)
        return cls(root)

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitOperationError
            If the command exits with a non-zero status when ``check`` is True,
            or if Git cannot be executed at all.
        """
        full_cmd = ["git"] + args
        logger.debug("Executing Git command: %s", " ".join(full_cmd))
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            logger.error("Unable to execute Git: %s", e)
            raise GitOperationError(f"Unable to execute git: {e}") from e
        # Decoded here rather than in text mode, which would turn a lone
        # carriage return inside a diff line into a line break.
        result = subprocess.CompletedProcess(
            result.args,
            result.returncode,
            result.stdout.decode("utf-8", errors="replace"),
            result.stderr.decode("utf-8", errors="replace"),
        )

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stdout,
                result.stderr,
            )
            raise GitOperationError(result.stderr.strip() or result.stdout.strip())
        return result

    def has_commits(self) -> bool:
        """Return True if ``HEAD`` points at a commit."""
        result = self._run(["rev-parse", "--verify", "--quiet", "HEAD"], check=False)
        return result.returncode == 0

    # ------------------------------------------------------------------
    # Staged changes
    # ------------------------------------------------------------------
    def read_staged_change_set(self, context_lines: int) -> ChangeSet:
        """Read the staged diff (index against ``HEAD``) as a change set.

        Statistics are taken from ``--numstat`` so they stay exact no matter
        how the hunks are truncated later. Before the first commit Git
        compares the index against the empty tree.

        Parameters
        ----------
        context_lines : int
            Number of context lines requested from Git for the hunks.

        Returns
        -------
        ChangeSet
            Every staged file in the order Git reports them.

        Raises
        ------
        NoChangesError
            If nothing is staged.
        GitOperationError
            If any Git command fails.
        """
        numstat = parse_numstat(self._run(self._DIFF_PREFIX + ["--numstat", "-z"]).stdout)
        if not numstat:
            raise NoChangesError("No staged changes. Stage files with 'git add' first.")

        statuses = {
            entry.path: entry
            for entry in parse_name_status(self._run(self._DIFF_PREFIX + ["--name-status", "-z"]).stdout)
        }
        patch = self._run(
            self._DIFF_PREFIX
            + [
                f"-U{context_lines}",
                "--no-color",
                "--no-ext-diff",
                "--src-prefix=a/",
                "--dst-prefix=b/",
            ]
        ).stdout
        sections = index_sections(parse_patch(patch))

        files = []
        for entry in numstat:
            status = statuses.get(entry.path)
            kind = ChangeKind.from_status(status.status) if status else ChangeKind.MODIFIED
            old_path = entry.old_path or (status.old_path if status else None)
            section = sections.get(entry.path)
            files.append(
                FileChange(
                    path=entry.path,
                    kind=kind,
                    insertions=entry.insertions,
                    deletions=entry.deletions,
                    hunks=tuple(section.hunks) if section else (),
                    old_path=old_path if kind is ChangeKind.RENAMED else None,
                    binary=entry.binary or bool(section and section.binary),
                )
            )

        unstaged = self._run(["diff", "--name-only"]).stdout.strip()
        change_set = ChangeSet.of(files, has_unstaged_remainder=bool(unstaged))
        logger.debug(
            "Staged change set: %d files, +%d/-%d",
            change_set.files_changed,
            change_set.insertions,
            change_set.deletions,
        )
        return change_set

    # ------------------------------------------------------------------
    # History and branch information
    # ------------------------------------------------------------------
    def read_recent_commit_subjects(self, count: int) -> List[str]:
        """Return the subjects of the ``count`` most recent commits, newest first."""
        if count <= 0 or not self.has_commits():
            return []
        result = self._run(["log", f"-n{count}", "--no-color", "--pretty=format:%s"])
        return [line for line in result.stdout.split("\n") if line.strip()]

    def read_current_branch_name(self) -> Optional[str]:
        """Get the name of the current branch.

        Returns
        -------
        Optional[str]
            The branch name, or None when ``HEAD`` is detached.
        """
        result = self._run(["symbolic-ref", "--quiet", "--short", "HEAD"], check=False)
        branch = result.stdout.strip()
        if result.returncode != 0 or not branch or branch == "HEAD":
            return None
        return branch

    # ------------------------------------------------------------------
    # Committing
    # ------------------------------------------------------------------
    def commit(self, message: str) -> None:
        """Create a commit with the given message.

        Multi-line commit messages are supported. If the commit fails,
        a GitOperationError is raised.
        """
        self._run(["commit", "-m", message], check=True)
