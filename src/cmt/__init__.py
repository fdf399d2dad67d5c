"""
Top-level package for cmt.

cmt turns the staged changes of a Git repository into a size-bounded
prompt for a local language model and normalizes the structured reply
into a commit message. The command line entry point lives in
:mod:`cmt.cli`.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
