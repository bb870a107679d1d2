"""Front matter parsing, page envelopes and typed page locals.

A page source with YAML front matter is first turned into a JSON envelope:

    {"extends": "layout.html", "block": "main", "locals": {...}, "__content": "..."}

Transforms parse the envelope back into an Envelope and serialize its
locals into Jinja2 literals for injection into the generated template.
"""

import json
import keyword
import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Any

import yaml

from pagestage.core.errors import EnvelopeError, FrontMatterError, LocalsError

FRONT_MATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<yaml>.*?)^(?:---|\.\.\.)[ \t]*\r?$\n?",
    re.DOTALL | re.MULTILINE,
)

DEFAULT_BLOCK = "main"

# Names that cannot be assigned with {% set %}
RESERVED_NAMES = frozenset(
    {"true", "false", "none", "loop", "self", "super", "varargs", "kwargs", *keyword.kwlist},
)

LocalValue = None | bool | int | float | str | list["LocalValue"] | dict[str, "LocalValue"]


@dataclass(frozen=True)
class Envelope:
    """Parsed page envelope."""

    extends: str | None
    block: str
    locals: dict[str, LocalValue]
    content: str


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Split YAML front matter from the document body.

    Args:
        text: Source document, optionally starting with a "---" fenced YAML block

    Returns:
        Tuple of (attributes, body). Attributes are empty without front matter.

    Raises:
        FrontMatterError: If the YAML is malformed or not a mapping
    """
    match = FRONT_MATTER_RE.match(text)
    if match is None:
        return {}, text

    try:
        data = yaml.safe_load(match.group("yaml"))
    except yaml.YAMLError as e:
        raise FrontMatterError(f"Invalid YAML front matter: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError("Front matter must be a mapping")

    return data, text[match.end():]


def front_matter_to_json(text: str, *, default_extends: str | None = None) -> str:
    """Convert a front-matter document into a JSON envelope.

    Args:
        text: Source document with YAML front matter
        default_extends: Parent template used when front matter has no "extends"

    Returns:
        JSON text with the front matter attributes plus "__content"
    """
    attributes, body = split_front_matter(text)
    if default_extends is not None:
        attributes.setdefault("extends", default_extends)
    if attributes.get("locals") is not None:
        attributes["locals"] = validate_locals(attributes["locals"])

    envelope = {**attributes, "__content": body}
    return json.dumps(envelope, default=_json_default)


def parse_envelope(text: str) -> Envelope:
    """Parse and validate a JSON envelope.

    Raises:
        EnvelopeError: If the text is not valid JSON or fields have wrong types
        LocalsError: If locals contain unsupported names or values
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise EnvelopeError(f"Invalid envelope JSON: {e}") from e

    if not isinstance(data, dict):
        raise EnvelopeError("Envelope must be a JSON object")

    extends = data.get("extends")
    if extends is not None and not isinstance(extends, str):
        raise EnvelopeError("Envelope 'extends' must be a string")

    block = data.get("block") or DEFAULT_BLOCK
    if not isinstance(block, str) or not block.isidentifier():
        raise EnvelopeError(f"Envelope 'block' must be a block name, got {block!r}")

    locals_raw = data.get("locals") or {}
    if not isinstance(locals_raw, dict):
        raise EnvelopeError("Envelope 'locals' must be an object")

    content = data.get("__content") or ""
    if not isinstance(content, str):
        raise EnvelopeError("Envelope '__content' must be a string")

    return Envelope(
        extends=extends,
        block=block,
        locals=validate_locals(locals_raw),
        content=content,
    )


def validate_locals(data: object) -> dict[str, LocalValue]:
    """Validate page locals and normalize their values.

    Keys must be assignable template names. Dates become ISO strings and
    tuples become lists.

    Raises:
        LocalsError: If a key or value is not supported
    """
    if not isinstance(data, dict):
        raise LocalsError(f"Locals must be a mapping, got {type(data).__name__}")

    result: dict[str, LocalValue] = {}
    for key, value in data.items():
        if not isinstance(key, str):
            raise LocalsError(f"Local name must be a string, got {key!r}")
        if not key.isidentifier() or key in RESERVED_NAMES:
            raise LocalsError(f"Invalid local name: {key!r}")
        result[key] = _normalize_value(value, key)
    return result


def _normalize_value(value: object, where: str) -> LocalValue:
    if value is None or isinstance(value, bool | int | str):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise LocalsError(f"{where}: non-finite number {value!r}")
        return value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, list | tuple):
        return [_normalize_value(item, f"{where}[{i}]") for i, item in enumerate(value)]
    if isinstance(value, dict):
        mapping: dict[str, LocalValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise LocalsError(f"{where}: mapping keys must be strings, got {key!r}")
            mapping[key] = _normalize_value(item, f"{where}.{key}")
        return mapping
    raise LocalsError(f"{where}: unsupported value type {type(value).__name__}")


def to_literal(value: LocalValue) -> str:
    """Render a validated value as a Jinja2 expression literal."""
    if value is None:
        return "none"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int | float | str):
        return repr(value)
    if isinstance(value, list):
        return "[" + ", ".join(to_literal(item) for item in value) + "]"
    if isinstance(value, dict):
        items = (f"{key!r}: {to_literal(item)}" for key, item in value.items())
        return "{" + ", ".join(items) + "}"
    raise LocalsError(f"unsupported value type {type(value).__name__}")


def serialize_locals(locals_: dict[str, LocalValue]) -> list[tuple[str, str]]:
    """Serialize locals into ordered (name, literal) pairs."""
    return [(key, to_literal(value)) for key, value in locals_.items()]


def _json_default(value: object) -> object:
    if isinstance(value, date):
        return value.isoformat()
    raise FrontMatterError(f"Unsupported front matter value: {value!r}")
