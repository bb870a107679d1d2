"""Loader transforms applied to page sources.

Each transform takes the text produced by the previous step and a
LoaderContext, and returns new text. A Markdown page runs through:

    frontmatter-json -> markdown (or frontmatter) -> render

and a template page through:

    template -> render
"""

import logging
import re
import textwrap
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import Environment, TemplateNotFound, meta

from pagestage.core.errors import BuildError, EnvelopeError
from pagestage.core.frontmatter import (
    Envelope,
    front_matter_to_json,
    parse_envelope,
    serialize_locals,
    split_front_matter,
    to_literal,
    validate_locals,
)
from pagestage.core.markdown import render_markdown

logger = logging.getLogger(__name__)


@dataclass
class LoaderContext:
    """Per-file state shared by the transforms of one pipeline run."""

    resource_path: Path
    options: Mapping[str, Any] = field(default_factory=dict)
    environment: Environment | None = None
    dependencies: list[str] = field(default_factory=list)

    def add_dependency(self, name: str) -> None:
        """Record a template the output depends on."""
        if name not in self.dependencies:
            self.dependencies.append(name)


Transform = Callable[[str, LoaderContext], str]


def front_matter_json_transform(source: str, context: LoaderContext) -> str:
    """Turn a YAML front-matter document into a JSON envelope."""
    return front_matter_to_json(source, default_extends=context.options.get("default_extends"))


def frontmatter_transform(source: str, context: LoaderContext) -> str:
    """Wrap the envelope body in a Markdown filter block of its parent template."""
    envelope = parse_envelope(source)
    extends = _require_extends(envelope, context)
    body = textwrap.indent(_escape_raw(envelope.content.strip()), " " * 4)
    return "\n".join(
        [
            f"{{% extends {to_literal(extends)} %}}",
            *_set_tags(envelope),
            f"{{% block {envelope.block} %}}",
            "  {% filter markdown %}{% raw %}",
            body,
            "  {% endraw %}{% endfilter %}",
            "{% endblock %}",
        ],
    )


def markdown_transform(source: str, context: LoaderContext) -> str:
    """Pre-render the envelope body to HTML and embed it in the parent's block."""
    envelope = parse_envelope(source)
    extends = _require_extends(envelope, context)
    context.add_dependency(extends)
    html = render_markdown(envelope.content)
    return "\n".join(
        [
            f"{{% extends {to_literal(extends)} %}}",
            *_set_tags(envelope),
            f"{{% block {envelope.block} %}}",
            f"    {{{{ {to_literal(html)}|safe }}}}",
            "{% endblock %}",
        ],
    )


def template_transform(source: str, context: LoaderContext) -> str:
    """Inject front-matter locals ahead of a page template's body."""
    attributes, body = split_front_matter(source)
    locals_ = validate_locals(attributes.get("locals") or {})
    # Trailing "-%}" keeps the set tags from adding output before {% extends %}
    tags = [f"{{% set {key} = {literal} -%}}\n" for key, literal in serialize_locals(locals_)]
    return "".join(tags) + body


def render_transform(source: str, context: LoaderContext) -> str:
    """Render template source to HTML with the page options as variables.

    Every template the source extends, includes or imports, directly or
    through another template, is recorded as a dependency.
    """
    if context.environment is None:
        raise BuildError("render transform requires a template environment")
    logger.debug(f"Rendering {context.resource_path}")
    template = context.environment.from_string(source)
    html = template.render(**context.options)
    _record_templates(context.environment, source, context)
    return html


TRANSFORMS: dict[str, Transform] = {
    "frontmatter-json": front_matter_json_transform,
    "frontmatter": frontmatter_transform,
    "markdown": markdown_transform,
    "template": template_transform,
    "render": render_transform,
}


def get_transform(name: str) -> Transform:
    """Look up a transform by name.

    Raises:
        BuildError: If no transform has that name
    """
    try:
        return TRANSFORMS[name]
    except KeyError:
        raise BuildError(f"Unknown transform: {name}") from None


def _require_extends(envelope: Envelope, context: LoaderContext) -> str:
    if envelope.extends is None:
        raise EnvelopeError(f"{context.resource_path}: front matter has no 'extends'")
    return envelope.extends


def _record_templates(environment: Environment, source: str, context: LoaderContext) -> None:
    if environment.loader is None:
        return

    pending = [source]
    while pending:
        ast = environment.parse(pending.pop())
        for name in meta.find_referenced_templates(ast):
            # None for names computed at render time
            if name is None or name in context.dependencies:
                continue
            context.add_dependency(name)
            try:
                parent_source, _, _ = environment.loader.get_source(environment, name)
            except TemplateNotFound:
                logger.debug(f"{context.resource_path}: {name} not found, not tracked further")
                continue
            pending.append(parent_source)


_ENDRAW_RE = re.compile(r"\{%[-+]?\s*endraw\s*[-+]?%\}")


def _escape_raw(text: str) -> str:
    """Make "endraw" tags in text print literally inside a raw block."""
    return _ENDRAW_RE.sub(
        lambda match: f"{{% endraw %}}{{{{ {to_literal(match.group(0))} }}}}{{% raw %}}",
        text,
    )


def _set_tags(envelope: Envelope) -> list[str]:
    return [f"{{% set {key} = {literal} %}}" for key, literal in serialize_locals(envelope.locals)]
