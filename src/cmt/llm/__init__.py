"""
Language model integration for cmt.

This package contains the :class:`OllamaClient` for communicating with
an Ollama LLM server, the :class:`StructuredResult` it returns and
:func:`finalize`, which normalizes that result before rendering.
"""

from .result import CommitType, StructuredResult  # noqa: F401
from .validator import finalize  # noqa: F401
from .ollama_client import (  # noqa: F401
    GenerateOptions,
    InvalidModelError,
    OllamaClient,
    ProviderError,
    ProviderTimeoutError,
)
