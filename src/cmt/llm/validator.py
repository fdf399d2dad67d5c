"""
Normalization of the model's structured reply.

:func:`finalize` never fails: anything unusable in an optional field is
turned into an absent value instead of being rejected, and applying it
to an already normalized result changes nothing.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Optional

from cmt.llm.result import StructuredResult


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


MEANINGLESS_SCOPES = {"general", "misc", "other", "null", ""}
BULLET_MARKERS = "-*•+"


def _is_title_case(text: str) -> bool:
    words = text.split()
    if len(words) < 2:
        return False
    return all(w[:1].isalpha() and w[:1].isupper() and w[1:] == w[1:].lower() for w in words)


def normalize_subject(subject: str) -> str:
    """Lowercase the first letter and drop a single trailing period.

    A subject written entirely in Title Case ("Fix Login Bug") is
    lowercased word by word. A period that ends an ellipsis or follows
    whitespace is left untouched.
    """
    text = subject.strip()
    if _is_title_case(text):
        text = text.lower()
    text = text[:1].lower() + text[1:]
    if text.endswith(".") and (len(text) == 1 or (text[-2] != "." and not text[-2].isspace())):
        text = text[:-1]
    return text


def normalize_scope(scope: Optional[str]) -> Optional[str]:
    if scope is None:
        return None
    text = re.sub(r"\s+", "-", scope.strip().lower())
    if text in MEANINGLESS_SCOPES:
        return None
    return text


def _comparable(text: str) -> str:
    return text.strip().lstrip(BULLET_MARKERS).strip().rstrip(".").strip().lower()


def remove_subject_echo(details: Optional[str], subject: str) -> Optional[str]:
    """Drop bullet lines of ``details`` that merely repeat ``subject``."""
    if details is None:
        return None
    needle = _comparable(subject)
    kept = []
    for line in details.splitlines():
        is_bullet = line.strip()[:1] in BULLET_MARKERS and line.strip() != ""
        if is_bullet and needle and needle in _comparable(line):
            logger.debug("Dropping detail line that repeats the subject: %r", line)
            continue
        kept.append(line)
    text = "\n".join(kept).strip()
    return text or None


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text or None


def finalize(raw: StructuredResult) -> StructuredResult:
    """Return the normalized version of ``raw``.

    Parameters
    ----------
    raw : StructuredResult
        Reply decoded from the model.

    Returns
    -------
    StructuredResult
        Result ready for template rendering.
    """
    subject = normalize_subject(raw.subject)
    return replace(
        raw,
        subject=subject,
        scope=normalize_scope(raw.scope),
        details=remove_subject_echo(raw.details, subject),
        issues=_blank_to_none(raw.issues),
        breaking=_blank_to_none(raw.breaking),
    )
