"""
Typed property values and their converters.

Every converter is a ``Converter(parse, render)`` pair: ``parse`` turns a
``ContentLine`` into a typed value and ``render`` turns the value back into
``(text, params)`` for the serializer. Conversion failures surface as
``PropertyValueError`` or ``DomainError``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Callable, NamedTuple, Optional, Union

from .constants import DATE_FORMAT, FLOATING_FORMAT, UTC_FORMAT
from .content_line import ContentLine
from .errors import CalendarError, DomainError, PropertyValueError
from .serializer import escape

Params = dict[str, str]

_DATE_RE = re.compile(r"^\d{8}(T\d{6}Z?)?$")
_DURATION_RE = re.compile(
    r"^(?P<sign>[+-])?P(?:(?P<weeks>\d+)W)?(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)
_UTC_OFFSET_RE = re.compile(r"^([+-])(\d{2})(\d{2})(\d{2})?$")
_UNESCAPE_RE = re.compile(r"\\([\\;,nN])")
_UNESCAPES = {"\\": "\\", ";": ";", ",": ",", "n": "\n", "N": "\n"}
_STATCODE_RE = re.compile(r"^\d+(\.\d+)*$")


@dataclass(frozen=True)
class Date:
    """
    A calendar date or a timestamp.

    The variant is carried by the type of ``value``:

    - ``datetime.date``: date only
    - naive ``datetime.datetime``: floating local time, optionally labelled
      with the ``TZID`` it was written with (not resolved)
    - ``datetime.datetime`` in UTC: zoned UTC timestamp

    Aware datetimes in other zones are converted to UTC. Sub-second
    precision is dropped since the wire format cannot carry it.

    Ordering compares calendar dates when either side is date only and wall
    clock time otherwise. Equality is structural.
    """

    value: Union[date, datetime]
    tzid: Optional[str] = None

    def __post_init__(self) -> None:
        value = self.value
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc)
            value = value.replace(microsecond=0)
            object.__setattr__(self, "value", value)
        elif not isinstance(value, date):
            raise TypeError(f"Expected a date or datetime, got {type(value).__name__}")
        if self.tzid is not None and not self.is_floating:
            raise ValueError("TZID only applies to floating timestamps")

    @property
    def has_time(self) -> bool:
        return isinstance(self.value, datetime)

    @property
    def is_utc(self) -> bool:
        return self.has_time and self.value.tzinfo is not None

    @property
    def is_floating(self) -> bool:
        return self.has_time and self.value.tzinfo is None

    def date(self) -> date:
        """Calendar date of this value."""
        return self.value.date() if self.has_time else self.value

    def naive(self) -> datetime:
        """Wall-clock datetime; date-only values map to midnight."""
        if self.has_time:
            return self.value.replace(tzinfo=None)
        return datetime.combine(self.value, time())

    @classmethod
    def coerce(cls, value: Union["Date", date, datetime]) -> "Date":
        """Wrap a plain date or datetime, passing Date values through."""
        if isinstance(value, Date):
            return value
        return cls(value)

    @classmethod
    def parse(
        cls, text: str, date_only: bool = False, tzid: Optional[str] = None
    ) -> "Date":
        """
        Parse ``YYYYMMDD``, ``YYYYMMDDTHHMMSS`` or ``YYYYMMDDTHHMMSSZ``.

        Args:
            text: Wire value
            date_only: True when the property carried ``VALUE=DATE``
            tzid: Value of the ``TZID`` parameter, if any

        Returns:
            Parsed Date

        Raises:
            ValueError: If the text is not a valid date or date-time
        """
        text = text.strip()
        if not _DATE_RE.match(text):
            raise ValueError(f"Malformed date or date-time {text!r}")
        if len(text) == 8:
            return cls(datetime.strptime(text, DATE_FORMAT).date())
        if date_only:
            raise ValueError(f"VALUE=DATE given for date-time {text!r}")
        if text.endswith("Z"):
            if tzid:
                raise ValueError(f"TZID given for UTC date-time {text!r}")
            return cls(datetime.strptime(text, UTC_FORMAT).replace(tzinfo=timezone.utc))
        return cls(datetime.strptime(text, FLOATING_FORMAT), tzid=tzid)

    def to_ics(self) -> str:
        value = self.value
        text = f"{value.year:04d}{value.month:02d}{value.day:02d}"
        if self.has_time:
            text += f"T{value.hour:02d}{value.minute:02d}{value.second:02d}"
        if self.is_utc:
            text += "Z"
        return text

    def matches(self, other: "Date") -> bool:
        """Same calendar date if either side is date only, else same wall time."""
        if not self.has_time or not other.has_time:
            return self.date() == other.date()
        return self.naive() == other.naive()

    def _compare(self, other: Any) -> int:
        other = Date.coerce(other)
        if not self.has_time or not other.has_time:
            left, right = self.date(), other.date()
        else:
            left, right = self.naive(), other.naive()
        return (left > right) - (left < right)

    def __lt__(self, other: Any) -> bool:
        return self._compare(other) < 0

    def __le__(self, other: Any) -> bool:
        return self._compare(other) <= 0

    def __gt__(self, other: Any) -> bool:
        return self._compare(other) > 0

    def __ge__(self, other: Any) -> bool:
        return self._compare(other) >= 0

    def __add__(self, delta: timedelta) -> "Date":
        if not isinstance(delta, timedelta):
            return NotImplemented
        return Date(self.value + delta, self.tzid)

    def __sub__(self, other: Any) -> Any:
        if isinstance(other, timedelta):
            return self + -other
        if isinstance(other, Date):
            return self.naive() - other.naive()
        return NotImplemented

    def __str__(self) -> str:
        return self.to_ics()


@dataclass(frozen=True)
class Period:
    """A span of time given as start/end or start/duration, never both."""

    start: Date
    end: Optional[Date] = None
    duration: Optional[timedelta] = None

    def __post_init__(self) -> None:
        if (self.end is None) == (self.duration is None):
            raise ValueError("A period needs exactly one of end or duration")
        if self.end is not None and self.end.is_floating and self.end.tzid != self.start.tzid:
            raise ValueError("A period start and end must share their TZID")
        if self.duration is not None:
            object.__setattr__(self, "duration", whole_seconds(self.duration))

    @classmethod
    def parse(cls, text: str, tzid: Optional[str] = None) -> "Period":
        """
        Parse ``start/end`` or ``start/duration``.

        ``tzid`` labels every floating timestamp of the period.
        """
        start, sep, rest = text.partition("/")
        if not sep:
            raise ValueError(f"Period {text!r} is missing '/'")
        start_date = Date.parse(start, tzid=_floating_tzid(start, tzid))
        if rest.lstrip("+-").startswith("P"):
            return cls(start_date, duration=parse_duration(rest))
        return cls(start_date, end=Date.parse(rest, tzid=_floating_tzid(rest, tzid)))

    def to_ics(self) -> str:
        if self.end is not None:
            return f"{self.start.to_ics()}/{self.end.to_ics()}"
        return f"{self.start.to_ics()}/{format_duration(self.duration)}"


@dataclass
class RDate:
    """
    The values of one RDATE line.

    Either every value is a Date or, when ``is_period`` is set, every value
    is a Period. Dates in one line share their variant and TZID since the
    wire format carries a single parameter set per line.
    """

    values: list = field(default_factory=list)
    is_period: bool = False

    def __post_init__(self) -> None:
        kind = Period if self.is_period else Date
        for value in self.values:
            if not isinstance(value, kind):
                raise TypeError(f"RDate values must all be {kind.__name__}")
        if self.is_period and self.values:
            first = self.values[0]
            for value in self.values[1:]:
                if value.start.tzid != first.start.tzid:
                    raise ValueError("RDate periods must share their TZID")
        elif self.values:
            first = self.values[0]
            for value in self.values[1:]:
                if value.has_time != first.has_time or value.tzid != first.tzid:
                    raise ValueError("RDate dates must share value type and TZID")


@dataclass
class Trigger:
    """Alarm trigger: a duration relative to start/end, or an absolute time."""

    value: Union[timedelta, Date]
    related: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.value, timedelta):
            self.value = whole_seconds(self.value)


@dataclass
class Text:
    """Free-text value with its property parameters (LANGUAGE, ALTREP...)."""

    value: str
    params: Params = field(default_factory=dict)

    def __str__(self) -> str:
        return self.value


@dataclass
class Uri:
    """URI or calendar address with its property parameters (CN, ROLE...)."""

    value: str
    params: Params = field(default_factory=dict)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Geo:
    latitude: float
    longitude: float


@dataclass
class RequestStatus:
    code: str
    description: str
    extdata: Optional[str] = None


class Classification(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    CONFIDENTIAL = "CONFIDENTIAL"


class Status(str, Enum):
    TENTATIVE = "TENTATIVE"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    NEEDS_ACTION = "NEEDS-ACTION"
    COMPLETED = "COMPLETED"
    IN_PROCESS = "IN-PROCESS"
    DRAFT = "DRAFT"
    FINAL = "FINAL"


class TimeTransparency(str, Enum):
    OPAQUE = "OPAQUE"
    TRANSPARENT = "TRANSPARENT"


def unescape(text: str) -> str:
    """Reverse free-text escaping: ``\\;`` ``\\,`` ``\\n`` ``\\N`` ``\\\\``."""
    return _UNESCAPE_RE.sub(lambda m: _UNESCAPES[m.group(1)], text)


def split_unescaped(text: str, sep: str) -> list[str]:
    """
    Split on ``sep`` except where it is escaped with a backslash.

    Escape sequences are left in place for the caller to unescape.
    """
    parts: list[str] = []
    current: list[str] = []
    chars = iter(text)
    for char in chars:
        if char == "\\":
            current.append(char)
            current.append(next(chars, ""))
        elif char == sep:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def parse_duration(text: str) -> timedelta:
    """
    Parse an RFC 5545 duration such as ``P1W``, ``-PT15M`` or ``P1DT2H``.

    Raises:
        ValueError: If the text is not a duration
    """
    text = text.strip()
    match = _DURATION_RE.match(text)
    if not match:
        raise ValueError(f"Malformed duration {text!r}")
    parts = {
        name: int(value)
        for name, value in match.groupdict().items()
        if name != "sign" and value is not None
    }
    has_time = any(name in parts for name in ("hours", "minutes", "seconds"))
    if not parts or ("T" in text and not has_time):
        raise ValueError(f"Malformed duration {text!r}")
    duration = timedelta(**parts)
    return -duration if match.group("sign") == "-" else duration


def whole_seconds(duration: timedelta) -> timedelta:
    """Drop the sub-second part of a duration, rounding towards zero."""
    return timedelta(seconds=int(duration.total_seconds()))


def format_duration(duration: timedelta) -> str:
    """
    Render a timedelta in canonical RFC 5545 duration form.

    Raises:
        ValueError: If the duration has a sub-second part
    """
    if duration.microseconds:
        raise ValueError(f"Duration {duration} is not a whole number of seconds")
    total = int(duration.total_seconds())
    sign = "-" if total < 0 else ""
    total = abs(total)
    if total and total % 604800 == 0:
        return f"{sign}P{total // 604800}W"

    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    text = f"{sign}P"
    if days:
        text += f"{days}D"
    if rest or not days:
        text += "T"
        if hours:
            text += f"{hours}H"
        if minutes:
            text += f"{minutes}M"
        if seconds or not (hours or minutes):
            text += f"{seconds}S"
    return text


def parse_utc_offset(text: str) -> timedelta:
    match = _UTC_OFFSET_RE.match(text.strip())
    if not match:
        raise ValueError(f"Malformed UTC offset {text!r}")
    sign, hours, minutes, seconds = match.groups()
    offset = timedelta(hours=int(hours), minutes=int(minutes), seconds=int(seconds or 0))
    return -offset if sign == "-" else offset


def format_utc_offset(offset: timedelta) -> str:
    total = int(offset.total_seconds())
    sign = "-" if total < 0 else "+"
    minutes, seconds = divmod(abs(total), 60)
    hours, minutes = divmod(minutes, 60)
    text = f"{sign}{hours:02d}{minutes:02d}"
    if seconds:
        text += f"{seconds:02d}"
    return text


class Converter(NamedTuple):
    """Parse/render pair for one property value type."""

    parse: Callable[[ContentLine], Any]
    render: Callable[[Any], tuple[str, Params]]


def converter(
    parse: Callable[[ContentLine], Any], render: Callable[[Any], tuple[str, Params]]
) -> Converter:
    """
    Build a Converter whose parse errors are reported as PropertyValueError.

    Library errors raised by ``parse`` (e.g. DomainError) pass through.
    """

    def checked_parse(line: ContentLine) -> Any:
        try:
            return parse(line)
        except CalendarError:
            raise
        except (ValueError, TypeError, OverflowError) as e:
            raise PropertyValueError(line.key, line.value, str(e)) from e

    return Converter(checked_parse, render)


def _date_params(value: Date) -> Params:
    if not value.has_time:
        return {"VALUE": "DATE"}
    if value.tzid:
        return {"TZID": value.tzid}
    return {}


def _floating_tzid(text: str, tzid: Optional[str]) -> Optional[str]:
    text = text.strip()
    return tzid if "T" in text and not text.endswith("Z") else None


def _period_params(value: Period) -> Params:
    return {"TZID": value.start.tzid} if value.start.tzid else {}


def _parse_date(line: ContentLine) -> Date:
    return Date.parse(
        line.value,
        date_only=line.params.get("VALUE") == "DATE",
        tzid=line.params.get("TZID"),
    )


def _parse_integer(minimum: int, maximum: Optional[int]) -> Callable[[ContentLine], int]:
    def parse(line: ContentLine) -> int:
        number = int(line.value.strip())
        if number < minimum or (maximum is not None and number > maximum):
            upper = maximum if maximum is not None else "inf"
            raise ValueError(f"{number} is outside {minimum}..{upper}")
        return number

    return parse


def _parse_enum(enum: type, kind: str) -> Callable[[ContentLine], Enum]:
    def parse(line: ContentLine) -> Enum:
        try:
            return enum(line.value.strip())
        except ValueError:
            raise DomainError(kind, line.value, line.key) from None

    return parse


def _parse_classification(line: ContentLine) -> Union[Classification, str]:
    value = line.value.strip().upper()
    try:
        return Classification(value)
    except ValueError:
        return value


def _render_classification(value: Union[Classification, str]) -> tuple[str, Params]:
    if isinstance(value, Classification):
        return value.value, {}
    return value.upper(), {}


def _parse_rdate(line: ContentLine) -> RDate:
    pieces = line.value.split(",")
    if line.params.get("VALUE") == "PERIOD":
        tzid = line.params.get("TZID")
        return RDate([Period.parse(piece, tzid) for piece in pieces], is_period=True)
    date_only = line.params.get("VALUE") == "DATE"
    tzid = line.params.get("TZID")
    return RDate([Date.parse(piece, date_only, tzid) for piece in pieces])


def _render_rdate(value: RDate) -> tuple[str, Params]:
    text = ",".join(item.to_ics() for item in value.values)
    if value.is_period:
        params = _period_params(value.values[0]) if value.values else {}
        return text, {**params, "VALUE": "PERIOD"}
    return text, _date_params(value.values[0]) if value.values else {}


def _parse_geo(line: ContentLine) -> Geo:
    latitude, sep, longitude = line.value.partition(";")
    if not sep:
        raise ValueError("Expected 'latitude;longitude'")
    return Geo(float(latitude), float(longitude))


def _parse_request_status(line: ContentLine) -> RequestStatus:
    parts = split_unescaped(line.value, ";")
    if len(parts) < 2 or not _STATCODE_RE.match(parts[0]):
        raise ValueError("Expected 'code;description[;extdata]'")
    extdata = ";".join(parts[2:]) if len(parts) > 2 else None
    return RequestStatus(
        code=parts[0],
        description=unescape(parts[1]),
        extdata=unescape(extdata) if extdata is not None else None,
    )


def _render_request_status(value: RequestStatus) -> tuple[str, Params]:
    text = f"{value.code};{escape(value.description)}"
    if value.extdata is not None:
        text += f";{escape(value.extdata)}"
    return text, {}


def _parse_trigger(line: ContentLine) -> Trigger:
    related = line.params.get("RELATED")
    if line.params.get("VALUE") == "DATE-TIME":
        return Trigger(Date.parse(line.value), related)
    try:
        return Trigger(parse_duration(line.value), related)
    except ValueError:
        return Trigger(Date.parse(line.value), related)


def _render_trigger(value: Trigger) -> tuple[str, Params]:
    params = {"RELATED": value.related} if value.related else {}
    if isinstance(value.value, Date):
        params["VALUE"] = "DATE-TIME"
        return value.value.to_ics(), params
    return format_duration(value.value), params


TEXT = converter(
    lambda line: Text(unescape(line.value), dict(line.params)),
    lambda value: (escape(value.value), dict(value.params)),
)
URI = converter(
    lambda line: Uri(line.value, dict(line.params)),
    lambda value: (value.value, dict(value.params)),
)
DATE = converter(_parse_date, lambda value: (value.to_ics(), _date_params(value)))
DURATION = converter(
    lambda line: parse_duration(line.value),
    lambda value: (format_duration(value), {}),
)
PERIOD = converter(
    lambda line: Period.parse(line.value, line.params.get("TZID")),
    lambda value: (value.to_ics(), _period_params(value)),
)
RDATE = converter(_parse_rdate, _render_rdate)
UTC_OFFSET = converter(
    lambda line: parse_utc_offset(line.value),
    lambda value: (format_utc_offset(value), {}),
)
GEO = converter(
    _parse_geo, lambda value: (f"{value.latitude!r};{value.longitude!r}", {})
)
REQUEST_STATUS = converter(_parse_request_status, _render_request_status)
CLASSIFICATION = converter(_parse_classification, _render_classification)
STATUS = converter(_parse_enum(Status, "status"), lambda value: (value.value, {}))
TRANSPARENCY = converter(
    _parse_enum(TimeTransparency, "time transparency"),
    lambda value: (value.value, {}),
)
TRIGGER = converter(_parse_trigger, _render_trigger)
PRIORITY = converter(_parse_integer(0, 9), lambda value: (str(value), {}))
PERCENT = converter(_parse_integer(0, 100), lambda value: (str(value), {}))
COUNTER = converter(_parse_integer(0, None), lambda value: (str(value), {}))
