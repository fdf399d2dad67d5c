"""
Version control system (VCS) integration.

The :class:`GitClient` reads the staged change set, recent commit
subjects and the current branch, and creates the final commit.
"""

from .git_client import GitClient, GitOperationError, NoChangesError, NoRepositoryError  # noqa: F401
