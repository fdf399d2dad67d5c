"""
The structured reply expected from the language model.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class CommitType(str, Enum):
    FEAT = "feat"
    FIX = "fix"
    REFACTOR = "refactor"
    CHORE = "chore"
    DOCS = "docs"
    STYLE = "style"
    TEST = "test"
    BUILD = "build"
    CI = "ci"
    PERF = "perf"

    @classmethod
    def parse(cls, value: Any) -> "CommitType":
        """Parse a commit type name, ignoring case and surrounding whitespace.

        Raises
        ------
        ValueError
            If ``value`` is not a known commit type.
        """
        text = str(value).strip().lower()
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Unknown commit type: {value!r}") from None


# JSON schema passed to the model so that it replies with exactly these fields.
RESULT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "type": {"type": "string", "enum": [t.value for t in CommitType]},
        "subject": {"type": "string"},
        "details": {"type": "string"},
        "issues": {"type": "string"},
        "breaking": {"type": "string"},
        "scope": {"type": "string"},
    },
    "required": ["type", "subject"],
}


def _optional_text(value: Any, bullets: bool = False) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value if str(item).strip()]
        if bullets:
            # Some models answer with a JSON array of bullet points.
            return "\n".join(f"- {item.lstrip('-* ').strip()}" for item in items)
        return ", ".join(items)
    return str(value)


@dataclass(frozen=True)
class StructuredResult:
    """Commit message fields as produced by the model.

    Attributes
    ----------
    commit_type : CommitType
        Conventional commit type.
    subject : str
        One-line summary.
    details : str, optional
        Longer description, usually a bullet list.
    issues : str, optional
        Issue references.
    breaking : str, optional
        Description of a breaking change.
    scope : str, optional
        Component the change applies to.
    """

    commit_type: CommitType
    subject: str
    details: Optional[str] = None
    issues: Optional[str] = None
    breaking: Optional[str] = None
    scope: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StructuredResult":
        """Build a result from the decoded JSON reply.

        Accepts ``type`` or ``commit_type`` for the commit type. A ``scope``
        that is not a string is dropped.

        Raises
        ------
        ValueError
            If the type or subject is missing or the type is unknown.
        """
        raw_type = data.get("type", data.get("commit_type"))
        if raw_type is None:
            raise ValueError("Reply has no commit type")
        subject = data.get("subject")
        if subject is None:
            raise ValueError("Reply has no subject")
        scope = data.get("scope")
        return cls(
            commit_type=CommitType.parse(raw_type),
            subject=str(subject),
            details=_optional_text(data.get("details"), bullets=True),
            issues=_optional_text(data.get("issues")),
            breaking=_optional_text(data.get("breaking")),
            scope=scope if isinstance(scope, str) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the fields as a mapping, with the type under ``type``."""
        data = asdict(self)
        data["type"] = data.pop("commit_type").value
        return data
