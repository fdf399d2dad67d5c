"""
Rendering of the final commit message from a structured result.

Templates are Jinja2 templates that receive the fields of a
:class:`~cmt.llm.result.StructuredResult` (``type``, ``subject``,
``details``, ``issues``, ``breaking``, ``scope``). Three templates are
built in; additional ``*.j2`` files in the user template directory are
picked up automatically and take precedence over built-ins of the same
name.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError as JinjaTemplateError,
    TemplateNotFound,
)

from cmt.config.loader import template_directory
from cmt.llm.result import StructuredResult


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


TEMPLATE_SUFFIX = ".j2"

BUILTIN_TEMPLATES: Dict[str, str] = {
    "simple": (
        "{{ subject }}\n"
        "\n"
        "{{ details or '' }}\n"
    ),
    "conventional": (
        "{{ type }}{% if scope %}({{ scope }}){% endif %}: {{ subject }}\n"
        "\n"
        "{% if details %}\n"
        "{{ details }}\n"
        "{% endif %}\n"
    ),
    "detailed": (
        "{{ type }}{% if scope %}({{ scope }}){% endif %}: {{ subject }}\n"
        "\n"
        "{% if details %}\n"
        "{{ details }}\n"
        "{% endif %}\n"
        "\n"
        "{% if issues %}\n"
        "Fixes: {{ issues }}\n"
        "{% endif %}\n"
        "\n"
        "{% if breaking %}\n"
        "BREAKING CHANGE: {{ breaking }}\n"
        "{% endif %}\n"
    ),
}


class TemplateError(Exception):
    """Raised when a template is unknown, invalid or cannot be rendered."""

    pass


class TemplateRenderer:
    """Render commit messages from built-in and user templates.

    Parameters
    ----------
    template_dir : Path, optional
        Directory holding user ``*.j2`` templates. Defaults to the
        ``templates`` directory next to the global configuration file.
    """

    def __init__(self, template_dir: Optional[Path] = None) -> None:
        self.template_dir = template_dir if template_dir is not None else template_directory()
        # A missing directory simply yields no user templates.
        loaders = [
            FileSystemLoader(str(self.template_dir)),
            DictLoader({f"{name}{TEMPLATE_SUFFIX}": source for name, source in BUILTIN_TEMPLATES.items()}),
        ]
        self._env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
            undefined=StrictUndefined,
        )

    def list_templates(self) -> List[str]:
        """Return the names of all available templates, sorted."""
        names = set(BUILTIN_TEMPLATES)
        if self.template_dir.is_dir():
            names.update(p.stem for p in self.template_dir.glob(f"*{TEMPLATE_SUFFIX}") if p.is_file())
        return sorted(names)

    def _unknown(self, template_id: str) -> TemplateError:
        available = ", ".join(self.list_templates())
        return TemplateError(f"Unknown template '{template_id}'. Available templates: {available}")

    def source(self, template_id: str) -> str:
        """Return the source text of the template named ``template_id``.

        Raises
        ------
        TemplateError
            If the template does not exist.
        """
        try:
            text, _, _ = self._env.loader.get_source(self._env, f"{template_id}{TEMPLATE_SUFFIX}")
        except TemplateNotFound:
            raise self._unknown(template_id) from None
        return text

    def create(self, template_id: str, content: str) -> Path:
        """Save ``content`` as the user template ``template_id``.

        An existing user template of the same name is replaced; a built-in
        of the same name is shadowed.

        Returns
        -------
        Path
            The file that was written.

        Raises
        ------
        TemplateError
            If the name is not a plain file name, the content is not a valid
            template, or the file cannot be written.
        """
        if not re.fullmatch(r"[A-Za-z0-9][A-Za-z0-9_.-]*", template_id):
            raise TemplateError(f"Invalid template name '{template_id}'")
        try:
            self._env.parse(content)
        except JinjaTemplateError as exc:
            raise TemplateError(f"Template '{template_id}' is invalid: {exc}") from exc
        path = self.template_dir / f"{template_id}{TEMPLATE_SUFFIX}"
        try:
            self.template_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise TemplateError(f"Unable to write {path}: {exc}") from exc
        logger.debug("Saved template %s to %s", template_id, path)
        return path

    def render(self, template_id: str, result: StructuredResult) -> str:
        """Render ``result`` with the template named ``template_id``.

        Runs of blank lines left by empty optional fields are collapsed and
        surrounding whitespace is removed.

        Raises
        ------
        TemplateError
            If the template does not exist or fails to render.
        """
        try:
            template = self._env.get_template(f"{template_id}{TEMPLATE_SUFFIX}")
        except TemplateNotFound:
            raise self._unknown(template_id) from None
        except JinjaTemplateError as exc:
            raise TemplateError(f"Template '{template_id}' is invalid: {exc}") from exc
        try:
            text = template.render(**result.to_dict())
        except JinjaTemplateError as exc:
            logger.error("Failed to render template %s: %s", template_id, exc)
            raise TemplateError(f"Failed to render template '{template_id}': {exc}") from exc
        text = re.sub(r"[ \t]+\n", "\n", text)
        return re.sub(r"\n{3,}", "\n\n", text).strip()
