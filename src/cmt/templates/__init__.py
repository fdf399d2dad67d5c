"""
Commit message templates.

See :mod:`cmt.templates.renderer`.
"""

from .renderer import BUILTIN_TEMPLATES, TemplateError, TemplateRenderer  # noqa: F401
