"""Jinja2 template rendering for module scaffolding.

Provides the TemplateRenderer class which loads Jinja2 templates from the
``modularisan/scaffolder/templates/`` directory and renders them with
entity-specific context data.  Lookups accept an ordered list of candidate
names so a framework-specific template set (``next/api/route.ts``) can
shadow the generic one (``default/api/route``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
    select_autoescape,
)

from ..errors import TemplateRenderingError
from ..naming import to_camel_case, to_kebab_case, to_pascal_case, to_snake_case


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"
TEMPLATE_SUFFIX = ".j2"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates for module scaffolding.

    Template names are given without the ``.j2`` suffix; the renderer adds
    it.  Undefined variables are errors rather than silent blanks.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["pascal_case"] = to_pascal_case
        self.env.filters["camel_case"] = to_camel_case
        self.env.filters["kebab_case"] = to_kebab_case
        self.env.filters["snake_case"] = to_snake_case

    # -- Lookup --------------------------------------------------------------

    def exists(self, name: str) -> bool:
        return (self.template_dir / f"{name}{TEMPLATE_SUFFIX}").is_file()

    def resolve(self, candidates: Iterable[str]) -> str:
        """Return the first candidate name that has a template file.

        Raises:
            TemplateRenderingError: If none of the candidates exist.
        """
        tried = list(candidates)
        for name in tried:
            if self.exists(name):
                return name
        raise TemplateRenderingError(
            f"Template not found: {tried[0] if tried else '<none>'}",
            {"candidates": tried, "template_dir": str(self.template_dir)},
        )

    # -- Rendering -----------------------------------------------------------

    def render(self, name: str, context: dict[str, Any]) -> str:
        """Render a single template (name without ``.j2``) with *context*."""
        try:
            template = self.env.get_template(f"{name}{TEMPLATE_SUFFIX}")
            return template.render(**context)
        except TemplateNotFound as exc:
            raise TemplateRenderingError(
                f"Template not found: {name}", {"template": name}
            ) from exc
        except TemplateError as exc:
            raise TemplateRenderingError(
                f"Failed to render template: {name}", {"template": name, "reason": str(exc)}
            ) from exc

    def render_first(self, candidates: Iterable[str], context: dict[str, Any]) -> str:
        """Render the first existing template among *candidates*."""
        return self.render(self.resolve(candidates), context)

    def render_string(self, template_string: str, context: dict[str, Any]) -> str:
        """Render an inline template string with the provided context."""
        try:
            return self.env.from_string(template_string).render(**context)
        except TemplateError as exc:
            raise TemplateRenderingError(
                "Failed to render inline template", {"reason": str(exc)}
            ) from exc

    # -- Utility -------------------------------------------------------------

    def list_templates(self, prefix: str = "") -> list[str]:
        """Return a sorted list of template names (without ``.j2``) under *prefix*."""
        search_dir = self.template_dir / prefix if prefix else self.template_dir
        if not search_dir.is_dir():
            return []
        return sorted(
            str(p.relative_to(self.template_dir).as_posix())[: -len(TEMPLATE_SUFFIX)]
            for p in search_dir.rglob(f"*{TEMPLATE_SUFFIX}")
        )


def template_candidates(template_id: str, suffix: str = "") -> list[str]:
    """Candidate names for *template_id*, most specific first.

    ``template_candidates("next/service", ".ts")`` gives
    ``["next/service.ts", "next/service", "default/service.ts", "default/service"]``.
    """
    names = [f"{template_id}{suffix}", template_id]
    _, _, rest = template_id.partition("/")
    if rest:
        names += [f"default/{rest}{suffix}", f"default/{rest}"]
    seen: list[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen
