"""
Prompt assembly for the commit message model.

See :mod:`cmt.prompts.builder`.
"""

from .builder import PromptContext, PromptSection, build_user_prompt, read_doc_excerpt, system_prompt  # noqa: F401
