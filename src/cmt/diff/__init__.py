"""
Staged diff modelling, filtering and truncation.

See :mod:`cmt.diff.models` for the data model, :mod:`cmt.diff.file_filter`
for the exclusion rules and :mod:`cmt.diff.truncation` for the size bounds
applied to the text sent to the model.
"""

from .models import ChangeKind, ChangeSet, DiffStats, FileChange, Hunk  # noqa: F401
from .file_filter import is_skippable, partition  # noqa: F401
from .truncation import TruncationConfig, render_diff, tighten  # noqa: F401
