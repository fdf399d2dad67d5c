"""
Client for interacting with an Ollama LLM server.

This client wraps HTTP requests to the Ollama REST API. Commit messages
are requested from the ``/api/chat`` endpoint with a JSON schema so that
the model replies with a :class:`~cmt.llm.result.StructuredResult`;
installed models are listed via ``/api/tags``. On error conditions (HTTP
errors, timeouts, unusable replies) a :class:`ProviderError` is raised.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import requests

from cmt.llm.result import RESULT_SCHEMA, StructuredResult


logger = logging.getLogger(__name__)
# Attach a null handler to avoid errors when the root logger is missing a
# stream. Messages will still propagate to the root logger if configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


REASONING_DEPTHS = ("off", "minimal", "low", "high")

# Values for Ollama's "think" request field.
_THINK_VALUES: Dict[str, Any] = {
    "off": False,
    "minimal": "low",
    "low": "low",
    "high": "high",
}


class ProviderError(Exception):
    """Raised when communication with the LLM server fails."""

    pass


class ProviderTimeoutError(ProviderError):
    """Raised when the model does not answer within the timeout."""

    pass


class InvalidModelError(ProviderError):
    """Raised when the requested model is not available on the server."""

    def __init__(self, model: str, available: Sequence[str]) -> None:
        self.model = model
        self.available = list(available)
        if self.available:
            listing = "\n".join(f"- {name}" for name in self.available)
        else:
            listing = "- (none)"
        super().__init__(f"Invalid model '{model}'. Available models:\n{listing}")


def strip_thinking_tags(text: str) -> str:
    """Remove thinking process tags from LLM responses.

    Many modern LLMs with reasoning capabilities output their thinking
    process in XML-like tags such as <think>, <thinking>, <thought>,
    or <reasoning>. This function strips these tags and their contents
    from the response, leaving only the actual output.

    Parameters
    ----------
    text : str
        The raw LLM response text.

    Returns
    -------
    str
        The text with all thinking tags removed.

    Examples
    --------
    >>> strip_thinking_tags("<think>reasoning...</think>Answer")
    'Answer'
    >>> strip_thinking_tags("<thinking>thoughts</thinking>\\n\\nReal answer")
    'Real answer'
    """
    thinking_patterns = [
        r'<think>.*?</think>',
        r'<thinking>.*?</thinking>',
        r'<thought>.*?</thought>',
        r'<reasoning>.*?</reasoning>',
    ]

    result = text
    for pattern in thinking_patterns:
        result = re.sub(pattern, '', result, flags=re.DOTALL | re.IGNORECASE)
    return result.strip()


def extract_json_object(text: str) -> Dict[str, Any]:
    """Decode the JSON object contained in a model reply.

    Markdown code fences and text around the object are tolerated.

    Raises
    ------
    ProviderError
        If no JSON object can be decoded.
    """
    cleaned = strip_thinking_tags(text)
    fenced = re.search(r"```(?:json)?\s*(.*?)```", cleaned, flags=re.DOTALL)
    if fenced:
        cleaned = fenced.group(1).strip()
    candidates = [cleaned]
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        candidates.append(cleaned[start:end + 1])
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    raise ProviderError(f"Model reply is not a JSON object: {text[:200]!r}")


@dataclass
class GenerateOptions:
    """Per-call generation settings.

    ``model`` overrides the client's default model; ``reasoning_depth`` is
    one of ``off``, ``minimal``, ``low`` or ``high`` and is only sent when
    set.
    """

    model: Optional[str] = None
    temperature: float = 0.3
    reasoning_depth: Optional[str] = None


@dataclass
class OllamaClient:
    """Client for interacting with an Ollama server.

    Parameters
    ----------
    base_url : str
        Base URL of the Ollama server, e.g. ``"http://localhost"``.
    port : int
        Port number of the Ollama server, e.g. ``11434``.
    model : str
        Name of the model to use for generation, e.g. ``"llama3"``.
    request_timeout : float, optional
        Timeout in seconds for HTTP requests. Defaults to 60 seconds.
    max_tokens : int, optional
        Maximum number of tokens to generate. If provided, passed via
        the ``options`` payload.
    """

    base_url: str
    port: int
    model: str
    request_timeout: float = 60.0
    max_tokens: Optional[int] = None

    def _endpoint(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}:{self.port}{path}"

    def list_models(self) -> List[str]:
        """Return the names of the models installed on the server.

        Raises
        ------
        ProviderError
            If the server cannot be reached or answers with an error.
        """
        url = self._endpoint("/api/tags")
        logger.debug("Listing models at %s", url)
        try:
            response = requests.get(url, timeout=self.request_timeout)
        except requests.Timeout as exc:
            raise ProviderTimeoutError(f"Timed out listing models at {url}") from exc
        except requests.RequestException as exc:
            logger.error("Failed to connect to LLM: %s", exc)
            raise ProviderError(str(exc)) from exc
        if response.status_code != 200:
            raise ProviderError(f"LLM returned status {response.status_code}: {response.text}")
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError("Failed to parse model list") from exc
        return sorted(m.get("name", "") for m in data.get("models", []) if m.get("name"))

    def validate_model(self, model: str) -> None:
        """Raise :class:`InvalidModelError` unless ``model`` is installed.

        A name without a tag also matches its ``:latest`` variant.
        """
        available = self.list_models()
        if model in available or f"{model}:latest" in available:
            return
        raise InvalidModelError(model, available)

    def _invalid_model(self, model: str) -> InvalidModelError:
        try:
            available = self.list_models()
        except ProviderError:
            available = []
        return InvalidModelError(model, available)

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[GenerateOptions] = None,
    ) -> StructuredResult:
        """Generate a structured commit message.

        Parameters
        ----------
        system_prompt : str
            Fixed instructions for the model.
        user_prompt : str
            Context and diff for this change set.
        options : GenerateOptions, optional
            Model, temperature and reasoning depth for this call.

        Returns
        -------
        StructuredResult
            The decoded reply, not yet normalized.

        Raises
        ------
        ProviderTimeoutError
            If the HTTP request times out.
        InvalidModelError
            If the server does not know the requested model.
        ProviderError
            If the request fails or the reply cannot be decoded.
        """
        options = options or GenerateOptions()
        model = options.model or self.model
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "stream": False,
            "format": RESULT_SCHEMA,
            "options": {"temperature": options.temperature},
        }
        if self.max_tokens is not None:
            payload["options"]["num_predict"] = self.max_tokens
        if options.reasoning_depth is not None:
            if options.reasoning_depth not in _THINK_VALUES:
                raise ProviderError(f"Unknown reasoning depth: {options.reasoning_depth!r}")
            payload["think"] = _THINK_VALUES[options.reasoning_depth]

        url = self._endpoint("/api/chat")
        logger.debug("Sending request to LLM at %s (model %s, %d prompt chars)", url, model, len(user_prompt))
        try:
            response = requests.post(url, json=payload, timeout=self.request_timeout)
        except requests.Timeout as exc:
            logger.error("LLM request timed out after %ss", self.request_timeout)
            raise ProviderTimeoutError(f"Request timed out after {self.request_timeout}s") from exc
        except requests.RequestException as exc:
            logger.error("Failed to connect to LLM: %s", exc)
            raise ProviderError(str(exc)) from exc

        if response.status_code == 404 and "not found" in response.text.lower():
            raise self._invalid_model(model)
        if response.status_code != 200:
            logger.error("LLM returned non-200 status %s: %s", response.status_code, response.text)
            raise ProviderError(f"LLM returned status {response.status_code}: {response.text}")
        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Failed to parse LLM response: %s", exc)
            raise ProviderError("Failed to parse LLM response") from exc

        if isinstance(data.get("message"), dict):
            content = data["message"].get("content", "")
        elif "response" in data:
            content = data.get("response", "")
        else:
            raise ProviderError("Unexpected response structure from LLM")
        try:
            return StructuredResult.from_dict(extract_json_object(content))
        except ValueError as exc:
            raise ProviderError(f"Invalid reply from model: {exc}") from exc
