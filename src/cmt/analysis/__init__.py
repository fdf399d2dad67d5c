"""
Semantic analysis of staged changes.

Files are categorized by path (see :mod:`cmt.analysis.change_classifier`)
and summarized with a commit type and scope suggestion (see
:mod:`cmt.analysis.analyzer`).
"""

from .change_classifier import FileCategory, categorize_file  # noqa: F401
from .analyzer import AnalysisSummary, Tier, TypeSuggestion, analyze  # noqa: F401
