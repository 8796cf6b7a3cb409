"""
Recurrence rule value type (RFC 5545 section 3.3.10).

``Recur`` stores every rule part, including the BYxxx refinements, but the
expansion engine only uses frequency, interval, count and until.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .errors import DomainError
from .values import Date, converter

logger = logging.getLogger(__name__)

_WEEKDAYNUM_RE = re.compile(r"^([+-]?\d{1,2})?([A-Z]{2})$")


class Freq(str, Enum):
    SECONDLY = "SECONDLY"
    MINUTELY = "MINUTELY"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class Weekday(str, Enum):
    SUNDAY = "SU"
    MONDAY = "MO"
    TUESDAY = "TU"
    WEDNESDAY = "WE"
    THURSDAY = "TH"
    FRIDAY = "FR"
    SATURDAY = "SA"


@dataclass(frozen=True)
class WeekdayNum:
    """A BYDAY entry such as ``MO``, ``+2TU`` or ``-1SU``."""

    weekday: Weekday
    ordinal: Optional[int] = None

    @classmethod
    def parse(cls, text: str) -> WeekdayNum:
        match = _WEEKDAYNUM_RE.match(text.strip().upper())
        if not match:
            raise ValueError(f"Malformed weekday {text!r}")
        ordinal, weekday = match.groups()
        return cls(_weekday(weekday), int(ordinal) if ordinal else None)

    def to_ics(self) -> str:
        if self.ordinal is None:
            return self.weekday.value
        return f"{self.ordinal}{self.weekday.value}"


# Integer-list rule parts, in the order they are written out
_BY_PARTS = (
    ("BYSECOND", "by_second"),
    ("BYMINUTE", "by_minute"),
    ("BYHOUR", "by_hour"),
    ("BYMONTHDAY", "by_month_day"),
    ("BYYEARDAY", "by_year_day"),
    ("BYWEEKNO", "by_week_no"),
    ("BYMONTH", "by_month"),
    ("BYSETPOS", "by_set_pos"),
)


@dataclass
class Recur:
    """
    A recurrence rule.

    ``until`` and ``count`` are mutually exclusive in RFC 5545 but are kept
    exactly as given; nothing here normalizes them.
    """

    freq: Freq
    until: Optional[Date] = None
    count: Optional[int] = None
    interval: int = 1
    by_second: list[int] = field(default_factory=list)
    by_minute: list[int] = field(default_factory=list)
    by_hour: list[int] = field(default_factory=list)
    by_day: list[WeekdayNum] = field(default_factory=list)
    by_month_day: list[int] = field(default_factory=list)
    by_year_day: list[int] = field(default_factory=list)
    by_week_no: list[int] = field(default_factory=list)
    by_month: list[int] = field(default_factory=list)
    by_set_pos: list[int] = field(default_factory=list)
    wkst: Optional[Weekday] = None

    def __post_init__(self) -> None:
        if self.interval < 1:
            raise ValueError(f"INTERVAL must be at least 1, got {self.interval}")
        if self.count is not None and self.count < 0:
            raise ValueError(f"COUNT must not be negative, got {self.count}")

    def to_ics(self) -> str:
        """Render as ``FREQ=...;...`` in RFC 5545 part order."""
        parts = [f"FREQ={self.freq.value}"]
        if self.until is not None:
            parts.append(f"UNTIL={self.until.to_ics()}")
        if self.count is not None:
            parts.append(f"COUNT={self.count}")
        if self.interval != 1:
            parts.append(f"INTERVAL={self.interval}")
        for name, attr in _BY_PARTS[:3]:
            _append_list(parts, name, getattr(self, attr))
        if self.by_day:
            parts.append("BYDAY=" + ",".join(day.to_ics() for day in self.by_day))
        for name, attr in _BY_PARTS[3:]:
            _append_list(parts, name, getattr(self, attr))
        if self.wkst is not None:
            parts.append(f"WKST={self.wkst.value}")
        return ";".join(parts)


def _append_list(parts: list[str], name: str, values: list[int]) -> None:
    if values:
        parts.append(f"{name}=" + ",".join(str(value) for value in values))


def _weekday(text: str) -> Weekday:
    try:
        return Weekday(text)
    except ValueError:
        raise DomainError("weekday", text) from None


def _int_list(text: str) -> list[int]:
    return [int(item) for item in text.split(",")]


def parse_recur(text: str) -> Recur:
    """
    Parse the value of an RRULE property.

    Args:
        text: Rule text, e.g. "FREQ=WEEKLY;INTERVAL=2;COUNT=10"

    Returns:
        Parsed Recur

    Raises:
        ValueError: If a part is malformed or FREQ is missing
        DomainError: If FREQ or a weekday is not a known value
    """
    rules: dict[str, str] = {}
    for part in text.strip().split(";"):
        if not part:
            continue
        key, sep, value = part.partition("=")
        if not sep:
            raise ValueError(f"Rule part {part!r} is missing '='")
        rules[key.upper()] = value.upper()

    if "FREQ" not in rules:
        raise ValueError("Rule has no FREQ")
    freq_text = rules.pop("FREQ")
    try:
        freq = Freq(freq_text)
    except ValueError:
        raise DomainError("frequency", freq_text) from None

    kwargs: dict = {"freq": freq}
    if "UNTIL" in rules:
        kwargs["until"] = Date.parse(rules.pop("UNTIL"))
    if "COUNT" in rules:
        kwargs["count"] = int(rules.pop("COUNT"))
    if "INTERVAL" in rules:
        kwargs["interval"] = int(rules.pop("INTERVAL"))
    if "BYDAY" in rules:
        kwargs["by_day"] = [WeekdayNum.parse(day) for day in rules.pop("BYDAY").split(",")]
    if "WKST" in rules:
        kwargs["wkst"] = _weekday(rules.pop("WKST"))
    for name, attr in _BY_PARTS:
        if name in rules:
            kwargs[attr] = _int_list(rules.pop(name))

    for name in rules:
        logger.warning("Ignoring unknown recurrence rule part %s", name)

    return Recur(**kwargs)


RECUR = converter(lambda line: parse_recur(line.value), lambda value: (value.to_ics(), {}))
