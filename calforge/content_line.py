"""
Content-line lexer.

Turns the raw text of a component body into an ordered list of
``ContentLine`` records. No calendar semantics are applied here: values
stay raw strings and unknown property names are accepted.

See RFC 5545 section 3.1.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from .constants import BEGIN, CRLF, END, FOLD_CHARS, PARAM_QUOTE_CHARS
from .errors import GrammarError

_NAME_RE = re.compile(r"[A-Za-z0-9/-]+")
_BARE_PARAM_RE = re.compile(r'[^",;:]*')


@dataclass
class ContentLine:
    """
    One logical ``KEY;PARAM=VALUE:VALUE`` line.

    Parameters are normalized into key-sorted order on construction, so two
    lines that only differ in parameter order compare equal.

    Attributes:
        key: Property name as it appeared on the wire
        params: Property parameters, unquoted, sorted by name
        value: Raw (still escaped) property value
    """

    key: str
    params: dict[str, str] = field(default_factory=dict)
    value: str = ""

    def __post_init__(self) -> None:
        self.params = dict(sorted(self.params.items()))

    def render(self) -> str:
        """Render the logical line, without folding or terminator."""
        return f"{self.key}{format_params(self.params)}:{self.value}"


def format_params(params: dict[str, str]) -> str:
    """
    Render parameters as a ``;NAME=VALUE`` suffix in key-sorted order.

    A value list (comma-separated) whose elements hold ``:`` or ``;`` is
    written with each element quoted. Any other value holding ``:``, ``;``
    or ``,`` is quoted as a whole.

    Args:
        params: Parameter mapping

    Returns:
        The suffix, or an empty string when there are no parameters
    """
    parts = []
    for name, value in sorted(params.items()):
        parts.append(f";{name}={_format_param_value(value)}")
    return "".join(parts)


def _format_param_value(value: str) -> str:
    elements = value.split(",")
    if len(elements) > 1 and any(_needs_quotes(element) for element in elements):
        return ",".join(f'"{element}"' for element in elements)
    if _needs_quotes(value):
        return f'"{value}"'
    return value


def _needs_quotes(value: str) -> bool:
    return any(char in value for char in PARAM_QUOTE_CHARS)


def unfold(content: str) -> list[str]:
    """
    Unfold lines that were split with a line break followed by a space or tab.

    The single whitespace character that marks a continuation is removed
    and the fragment is joined to the previous one with no separator.
    Blank logical lines are dropped.

    Args:
        content: Raw iCal content

    Returns:
        List of unfolded logical lines

    Raises:
        TypeError: If content is not a string
    """
    if not isinstance(content, str):
        raise TypeError("Content must be a string")

    unfolded: list[str] = []
    current: Optional[str] = None
    for line in content.replace(CRLF, "\n").split("\n"):
        if current is not None and line[:1] in FOLD_CHARS:
            current += line[1:]
            continue
        if current:
            unfolded.append(current)
        current = line
    if current:
        unfolded.append(current)
    return unfolded


def parse_content_line(line: str) -> ContentLine:
    """
    Tokenize one unfolded logical line.

    Grammar: ``key (";" name "=" param-value ("," param-value)*)* ":" value?``
    where a param-value is quoted or bare. A value list is kept as one
    comma-joined string.

    Args:
        line: A logical line, already unfolded

    Returns:
        The parsed ContentLine

    Raises:
        GrammarError: If the line is malformed or is a BEGIN/END marker
    """
    match = _NAME_RE.match(line)
    if not match:
        raise GrammarError("Expected a property name", line)
    key = match.group()
    if key in (BEGIN, END):
        raise GrammarError(f"{key} marks a component envelope, not a property", line)
    pos = match.end()

    params: dict[str, str] = {}
    while line.startswith(";", pos):
        pos += 1
        match = _NAME_RE.match(line, pos)
        if not match:
            raise GrammarError("Expected a parameter name", line[pos:])
        name = match.group()
        pos = match.end()
        if not line.startswith("=", pos):
            raise GrammarError(f"Expected '=' after parameter {name}", line[pos:])
        pos += 1

        values = []
        value, pos = _param_value(line, pos)
        values.append(value)
        while line.startswith(",", pos):
            value, pos = _param_value(line, pos + 1)
            values.append(value)
        params[name] = ",".join(values)

    if not line.startswith(":", pos):
        raise GrammarError("Expected ':' before property value", line[pos:])

    return ContentLine(key=key, params=params, value=line[pos + 1 :])


def _param_value(line: str, pos: int) -> tuple[str, int]:
    if line.startswith('"', pos):
        close = line.find('"', pos + 1)
        if close == -1:
            raise GrammarError("Unterminated quoted parameter value", line[pos:])
        return line[pos + 1 : close], close + 1
    match = _BARE_PARAM_RE.match(line, pos)
    return match.group(), match.end()


def content_lines(content: str) -> list[ContentLine]:
    """
    Lex the body of one component into content lines.

    Duplicate keys are kept in their original order; the caller decides
    whether they accumulate or the last one wins.

    Args:
        content: Component body text, without its BEGIN/END lines

    Returns:
        Ordered list of ContentLine records, empty for an empty body

    Raises:
        GrammarError: On the first malformed line
    """
    return [parse_content_line(line) for line in unfold(content)]
