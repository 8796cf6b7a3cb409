"""Component assembly: iCalendar text to typed records, without I/O."""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .components import BUILDERS, Component, VCalendar
from .constants import BEGIN, END
from .content_line import ContentLine, parse_content_line, unfold
from .errors import GrammarError

logger = logging.getLogger(__name__)

_ENVELOPE_RE = re.compile(r"^(BEGIN|END):(.*)$")


@dataclass
class _Envelope:
    name: str
    lines: list[ContentLine] = field(default_factory=list)
    children: list[tuple[str, Component]] = field(default_factory=list)


def _envelope_marker(line: str) -> tuple[Optional[str], str]:
    match = _ENVELOPE_RE.match(line)
    if not match:
        return None, ""
    return match.group(1), match.group(2).strip()


def parse_components(content: str) -> list[tuple[str, Component]]:
    """
    Parse every top-level component envelope in ``content``.

    Lines are unfolded once, then BEGIN/END markers are matched with a
    stack. Each envelope's own content lines are lexed and handed, together
    with its already-built children, to the builder for its type.

    Args:
        content: Raw iCal content

    Returns:
        (envelope name, record) pairs in document order

    Raises:
        GrammarError: On malformed lines, unknown or unbalanced envelopes,
            or content outside any envelope
        PropertyValueError: If a property value fails conversion
        MissingPropertyError: If a component lacks a required property
    """
    stack: list[_Envelope] = []
    top: list[tuple[str, Component]] = []

    for line in unfold(content):
        marker, name = _envelope_marker(line)
        if marker == BEGIN:
            if name not in BUILDERS:
                raise GrammarError(f"Unknown component {name}", line)
            stack.append(_Envelope(name))
        elif marker == END:
            if not stack or stack[-1].name != name:
                expected = stack[-1].name if stack else "no open component"
                raise GrammarError(f"Unexpected END, expected {expected}", line)
            envelope = stack.pop()
            record = BUILDERS[name](envelope.lines, envelope.children)
            logger.debug(
                "Parsed %s with %d properties and %d children",
                name,
                len(envelope.lines),
                len(envelope.children),
            )
            (stack[-1].children if stack else top).append((name, record))
        elif stack:
            stack[-1].lines.append(parse_content_line(line))
        else:
            raise GrammarError("Content line outside of any component", line)

    if stack:
        raise GrammarError(f"Unclosed component {stack[-1].name}")
    return top


def parse(content: str) -> Component:
    """
    Parse text holding exactly one top-level component.

    Raises:
        GrammarError: If there is not exactly one top-level component
    """
    components = parse_components(content)
    if len(components) != 1:
        raise GrammarError(f"Expected one top-level component, found {len(components)}")
    return components[0][1]


def parse_component(content: str, name: str) -> Component:
    """
    Parse text holding exactly one component of the given envelope type.

    Args:
        content: Raw iCal content
        name: Expected envelope name, e.g. "VEVENT"

    Raises:
        GrammarError: If the top-level envelope has another type
    """
    components = parse_components(content)
    if len(components) != 1:
        raise GrammarError(f"Expected one top-level component, found {len(components)}")
    found, record = components[0]
    if found != name:
        raise GrammarError(f"Expected {name}, found {found}")
    return record


def parse_calendar(content: str) -> VCalendar:
    """Parse a single VCALENDAR object."""
    return parse_component(content, "VCALENDAR")
