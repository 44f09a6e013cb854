"""Jinja2 template engine for one site.

The search path comes from ``ConfigStore.template_path()``: direct
``template_dir`` entries first, then ``template_root/<subdir>`` with the
most recently declared subdirectory first, so an application subdirectory
overrides a shared base set.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import jinja2
from jinja2 import Environment, FileSystemLoader, select_autoescape

from sitefactory.core.errors import TemplateError
from sitefactory.core.logging import get_logger

log = get_logger(__name__)


def _blank_none(value: Any) -> Any:
    return "" if value is None else value


class TemplateEngine:
    """Renders named templates from a search path, or literal template text."""

    def __init__(self, search_path: Sequence[str], *, globals: dict[str, Any] | None = None):
        self.search_path = list(search_path)
        self.env = Environment(
            loader=FileSystemLoader(self.search_path),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
            finalize=_blank_none,
        )
        if globals:
            self.env.globals.update(globals)
        log.debug("templates.engine_created", search_path=self.search_path)

    def exists(self, name: str) -> bool:
        try:
            self.env.get_template(name)
        except jinja2.TemplateNotFound:
            return False
        return True

    def render(self, name: str, data: dict[str, Any] | None = None) -> str:
        """Render template *name*.

        Raises:
            TemplateError: The template is missing, does not compile or
                fails while rendering.
        """
        try:
            return self.env.get_template(name).render(data or {})
        except jinja2.TemplateNotFound as exc:
            raise TemplateError(
                f"template '{name}' not found in {self.search_path}", cause=exc
            ).with_context(template=name) from exc
        except jinja2.TemplateError as exc:
            raise TemplateError(f"template '{name}' failed: {exc}", cause=exc).with_context(template=name) from exc

    def render_string(self, source: str, data: dict[str, Any] | None = None) -> str:
        try:
            return self.env.from_string(source).render(data or {})
        except jinja2.TemplateError as exc:
            raise TemplateError(f"template text failed: {exc}", cause=exc) from exc

    def __repr__(self) -> str:
        return f"TemplateEngine(search_path={self.search_path!r})"
