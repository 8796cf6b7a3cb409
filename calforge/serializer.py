"""
iCalendar serializer.

The structural inverse of the lexer: typed records are rendered into
escaped, folded text inside ``BEGIN``/``END`` envelopes. The output always
parses back to an equal record; the reverse (text -> record -> same text)
only holds modulo normalization such as parameter order.
"""

import logging
from typing import Any, Iterable

from .constants import BEGIN, CRLF, END, ESCAPES, FOLD_CHARS, FOLD_WIDTH
from .content_line import format_params

logger = logging.getLogger(__name__)

# Field kinds, see components.prop()
REQUIRED = "required"
OPTIONAL = "optional"
LIST = "list"
APPEND = "append"


def escape(text: str) -> str:
    """
    Escape reserved characters in a free-text value.

    ``;`` becomes ``\\;``, ``,`` becomes ``\\,`` and a newline becomes
    ``\\n``. Backslashes already in the text are left alone.
    """
    for char, replacement in ESCAPES:
        text = text.replace(char, replacement)
    return text


def fold(line: str, width: int = FOLD_WIDTH) -> str:
    """
    Fold a logical line so no physical line exceeds ``width`` octets.

    Octets are counted in UTF-8. The first physical line carries ``width``
    octets, every continuation one space plus ``width - 1`` octets. A split
    never lands inside a multi-byte character, so a chunk can be a few
    octets short. Unfolding the result gives back ``line``.

    Args:
        line: Logical line without its terminator
        width: Maximum octets per physical line

    Returns:
        The folded line, chunks joined with CRLF and a single space
    """
    if len(line.encode("utf-8")) <= width:
        return line

    chunks: list[str] = []
    current: list[str] = []
    size = 0
    limit = width
    for char in line:
        octets = len(char.encode("utf-8"))
        if size + octets > limit:
            chunks.append("".join(current))
            current, size = [], 0
            limit = width - 1
        current.append(char)
        size += octets
    chunks.append("".join(current))
    return (CRLF + FOLD_CHARS[0]).join(chunks)


def render_property(
    key: str, text: str, params: dict[str, str], fold_width: int = FOLD_WIDTH
) -> str:
    """
    Render one property line, folded and CRLF-terminated.

    An empty value renders to an empty string, which is how absent optional
    properties are left out.
    """
    if not text:
        return ""
    return fold(f"{key}{format_params(params)}:{text}", fold_width) + CRLF


def _render_field(spec: Any, value: Any, fold_width: int) -> Iterable[str]:
    render = spec.converter.render
    if spec.kind in (REQUIRED, OPTIONAL):
        if value is not None:
            yield render_property(spec.key, *render(value), fold_width)
    elif spec.kind == LIST:
        for item in value:
            yield render_property(spec.key, *render(item), fold_width)
    else:
        # One line per distinct parameter set, values comma-joined
        groups: dict[tuple, list[str]] = {}
        for item in value:
            text, params = render(item)
            groups.setdefault(tuple(sorted(params.items())), []).append(text)
        for params, texts in groups.items():
            yield render_property(spec.key, ",".join(texts), dict(params), fold_width)


def serialize(component: Any, fold_width: int = FOLD_WIDTH) -> str:
    """
    Serialize a component record and its children.

    Order: ``BEGIN:<NAME>``, fixed properties (e.g. an alarm's ACTION),
    declared fields, extension and vendor properties, nested components,
    then ``END:<NAME>``.

    Args:
        component: A record from calforge.components
        fold_width: Maximum octets per physical line

    Returns:
        The CRLF-terminated text
    """
    name = component.NAME
    parts = [f"{BEGIN}:{name}{CRLF}"]

    for key, text in component.FIXED_PROPERTIES:
        parts.append(render_property(key, text, {}, fold_width))

    for spec in component.field_specs():
        parts.extend(_render_field(spec, getattr(component, spec.attr), fold_width))

    for side in (component.x_props, component.iana_props):
        for lines in side.values():
            for line in lines:
                parts.append(fold(line.render(), fold_width) + CRLF)

    for child in component.children():
        parts.append(serialize(child, fold_width))

    parts.append(f"{END}:{name}{CRLF}")
    logger.debug("Serialized %s", name)
    return "".join(parts)
