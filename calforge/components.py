"""
Calendar component records (RFC 5545 section 3.6).

Each record is a dataclass whose fields declare their wire name, value
converter and multiplicity through ``prop()``. The key -> field dispatch
table is derived from that metadata once per record type, so assembling a
record from content lines and serializing it share one declaration.

Field declaration order is the serialization order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import timedelta
from functools import lru_cache
from typing import Any, ClassVar, NamedTuple, Optional, Union

from .constants import EXTENSION_PREFIX
from .content_line import ContentLine
from .errors import DomainError, GrammarError, MissingPropertyError
from .recur import RECUR, Recur
from .recurrence import Recurring
from .serializer import APPEND, LIST, OPTIONAL, REQUIRED, serialize
from .values import (
    CLASSIFICATION,
    COUNTER,
    DATE,
    DURATION,
    GEO,
    PERCENT,
    PERIOD,
    PRIORITY,
    RDATE,
    REQUEST_STATUS,
    STATUS,
    TEXT,
    TRANSPARENCY,
    TRIGGER,
    URI,
    UTC_OFFSET,
    Classification,
    Converter,
    Date,
    Geo,
    Period,
    RDate,
    RequestStatus,
    Status,
    Text,
    TimeTransparency,
    Trigger,
    Uri,
    split_unescaped,
)

logger = logging.getLogger(__name__)


class FieldSpec(NamedTuple):
    attr: str
    key: str
    converter: Converter
    kind: str


def prop(key: str, converter: Converter, kind: str = OPTIONAL) -> Any:
    """
    Declare a dataclass field bound to an iCalendar property.

    Args:
        key: Property name on the wire
        converter: Value converter for one element
        kind: REQUIRED and OPTIONAL keep the last line seen; LIST collects
            one element per line; APPEND also splits comma-joined values

    Returns:
        A dataclass field with the binding stored in its metadata
    """
    metadata = {"ical": (key, converter, kind)}
    if kind == REQUIRED:
        return field(metadata=metadata)
    if kind == OPTIONAL:
        return field(default=None, metadata=metadata)
    return field(default_factory=list, metadata=metadata)


@dataclass
class Component:
    """
    Shared behaviour of every component record.

    Attributes:
        x_props: Unrecognized ``X-`` properties, kept verbatim
        iana_props: Any other unrecognized properties, kept verbatim
    """

    NAME: ClassVar[str] = ""
    FIXED_PROPERTIES: ClassVar[tuple[tuple[str, str], ...]] = ()
    # Child envelope name -> attribute holding those children
    CHILDREN: ClassVar[dict[str, str]] = {}

    x_props: dict[str, list[ContentLine]] = field(default_factory=dict, kw_only=True)
    iana_props: dict[str, list[ContentLine]] = field(default_factory=dict, kw_only=True)

    @classmethod
    def field_specs(cls) -> tuple[FieldSpec, ...]:
        return _field_specs(cls)

    @classmethod
    def dispatch_table(cls) -> dict[str, FieldSpec]:
        return _dispatch_table(cls)

    def children(self) -> list[Component]:
        """Nested components, in CHILDREN order."""
        nested: list[Component] = []
        for attr in self.CHILDREN.values():
            nested.extend(getattr(self, attr))
        return nested

    @classmethod
    def from_content_lines(
        cls, lines: list[ContentLine], children: Optional[list[tuple[str, Component]]] = None
    ) -> Component:
        """
        Assemble a record from its content lines and parsed children.

        Args:
            lines: The component's own content lines, in order
            children: (envelope name, record) pairs of nested components

        Returns:
            The assembled record

        Raises:
            MissingPropertyError: If a required property is absent
            GrammarError: If a child envelope is not allowed here
            PropertyValueError: If a value fails conversion
        """
        values, x_props, iana_props = _collect(cls, lines)
        for child_name, child in children or []:
            if child_name not in cls.CHILDREN:
                raise GrammarError(f"{child_name} is not allowed inside {cls.NAME}")
            values.setdefault(cls.CHILDREN[child_name], []).append(child)
        return cls(**values, x_props=x_props, iana_props=iana_props)

    @classmethod
    def from_ics(cls, text: str) -> Component:
        """Parse text holding exactly one envelope of this component type."""
        from .parser import parse_component

        return parse_component(text, cls.NAME)

    def to_ics(self) -> str:
        return serialize(self)


@lru_cache(maxsize=None)
def _field_specs(cls: type) -> tuple[FieldSpec, ...]:
    specs = []
    for f in fields(cls):
        binding = f.metadata.get("ical")
        if binding:
            specs.append(FieldSpec(f.name, *binding))
    return tuple(specs)


@lru_cache(maxsize=None)
def _dispatch_table(cls: type) -> dict[str, FieldSpec]:
    return {spec.key: spec for spec in _field_specs(cls)}


def _collect(cls: type, lines: list[ContentLine]) -> tuple[dict, dict, dict]:
    table = _dispatch_table(cls)
    fixed = {key for key, _ in cls.FIXED_PROPERTIES}
    values: dict[str, Any] = {}
    x_props: dict[str, list[ContentLine]] = {}
    iana_props: dict[str, list[ContentLine]] = {}

    for line in lines:
        spec = table.get(line.key)
        if spec is None:
            if line.key in fixed:
                continue
            side = x_props if line.key.startswith(EXTENSION_PREFIX) else iana_props
            side.setdefault(line.key, []).append(line)
            logger.debug("Keeping unknown property %s on %s", line.key, cls.NAME)
            continue
        if not line.value:
            # Empty values are never written back, so they count as absent
            logger.debug("Ignoring empty %s on %s", line.key, cls.NAME)
            continue

        if spec.kind in (REQUIRED, OPTIONAL):
            values[spec.attr] = spec.converter.parse(line)
        elif spec.kind == LIST:
            values.setdefault(spec.attr, []).append(spec.converter.parse(line))
        else:
            items = values.setdefault(spec.attr, [])
            for piece in split_unescaped(line.value, ","):
                items.append(spec.converter.parse(ContentLine(line.key, line.params, piece)))

    for spec in _field_specs(cls):
        if spec.kind == REQUIRED and spec.attr not in values:
            raise MissingPropertyError(cls.NAME, spec.key)
    return values, x_props, iana_props


@dataclass
class VAlarmBase(Component):
    NAME: ClassVar[str] = "VALARM"
    ACTION: ClassVar[str] = ""


@dataclass
class AudioAlarm(VAlarmBase):
    ACTION: ClassVar[str] = "AUDIO"
    FIXED_PROPERTIES: ClassVar[tuple[tuple[str, str], ...]] = (("ACTION", "AUDIO"),)

    trigger: Trigger = prop("TRIGGER", TRIGGER, REQUIRED)
    duration: Optional[timedelta] = prop("DURATION", DURATION)
    repeat: Optional[int] = prop("REPEAT", COUNTER)
    attach: list[Uri] = prop("ATTACH", URI, LIST)


@dataclass
class DisplayAlarm(VAlarmBase):
    ACTION: ClassVar[str] = "DISPLAY"
    FIXED_PROPERTIES: ClassVar[tuple[tuple[str, str], ...]] = (("ACTION", "DISPLAY"),)

    trigger: Trigger = prop("TRIGGER", TRIGGER, REQUIRED)
    description: Text = prop("DESCRIPTION", TEXT, REQUIRED)
    duration: Optional[timedelta] = prop("DURATION", DURATION)
    repeat: Optional[int] = prop("REPEAT", COUNTER)


@dataclass
class EmailAlarm(VAlarmBase):
    ACTION: ClassVar[str] = "EMAIL"
    FIXED_PROPERTIES: ClassVar[tuple[tuple[str, str], ...]] = (("ACTION", "EMAIL"),)

    trigger: Trigger = prop("TRIGGER", TRIGGER, REQUIRED)
    description: Text = prop("DESCRIPTION", TEXT, REQUIRED)
    summary: Text = prop("SUMMARY", TEXT, REQUIRED)
    attendee: list[Uri] = prop("ATTENDEE", URI, LIST)
    duration: Optional[timedelta] = prop("DURATION", DURATION)
    repeat: Optional[int] = prop("REPEAT", COUNTER)
    attach: list[Uri] = prop("ATTACH", URI, LIST)


VAlarm = Union[AudioAlarm, DisplayAlarm, EmailAlarm]

ALARM_TYPES: dict[str, type] = {
    alarm.ACTION: alarm for alarm in (AudioAlarm, DisplayAlarm, EmailAlarm)
}


def build_alarm(
    lines: list[ContentLine], children: Optional[list[tuple[str, Component]]] = None
) -> VAlarm:
    """
    Pick the alarm variant from the ACTION line and assemble it.

    Raises:
        MissingPropertyError: If there is no ACTION line
        DomainError: If ACTION is not AUDIO, DISPLAY or EMAIL
    """
    actions = [line.value.strip() for line in lines if line.key == "ACTION"]
    if not actions:
        raise MissingPropertyError("VALARM", "ACTION")
    alarm_type = ALARM_TYPES.get(actions[-1])
    if alarm_type is None:
        raise DomainError("alarm action", actions[-1], "ACTION")
    return alarm_type.from_content_lines(lines, children)


@dataclass
class VEvent(Recurring, Component):
    """An event (RFC 5545 section 3.6.1)."""

    NAME: ClassVar[str] = "VEVENT"
    CHILDREN: ClassVar[dict[str, str]] = {"VALARM": "alarms"}
    recurrence_end_fields: ClassVar[tuple[str, ...]] = ("dtend",)

    dtstamp: Date = prop("DTSTAMP", DATE, REQUIRED)
    uid: Text = prop("UID", TEXT, REQUIRED)
    dtstart: Optional[Date] = prop("DTSTART", DATE)
    classification: Optional[Union[Classification, str]] = prop("CLASS", CLASSIFICATION)
    created: Optional[Date] = prop("CREATED", DATE)
    description: Optional[Text] = prop("DESCRIPTION", TEXT)
    geo: Optional[Geo] = prop("GEO", GEO)
    last_modified: Optional[Date] = prop("LAST-MODIFIED", DATE)
    location: Optional[Text] = prop("LOCATION", TEXT)
    organizer: Optional[Uri] = prop("ORGANIZER", URI)
    priority: Optional[int] = prop("PRIORITY", PRIORITY)
    sequence: Optional[int] = prop("SEQUENCE", COUNTER)
    status: Optional[Status] = prop("STATUS", STATUS)
    summary: Optional[Text] = prop("SUMMARY", TEXT)
    transp: Optional[TimeTransparency] = prop("TRANSP", TRANSPARENCY)
    url: Optional[Uri] = prop("URL", URI)
    recurrence_id: Optional[Date] = prop("RECURRENCE-ID", DATE)
    rrule: Optional[Recur] = prop("RRULE", RECUR)
    dtend: Optional[Date] = prop("DTEND", DATE)
    duration: Optional[timedelta] = prop("DURATION", DURATION)
    attach: list[Uri] = prop("ATTACH", URI, LIST)
    attendee: list[Uri] = prop("ATTENDEE", URI, LIST)
    categories: list[Text] = prop("CATEGORIES", TEXT, APPEND)
    comment: list[Text] = prop("COMMENT", TEXT, LIST)
    contact: list[Text] = prop("CONTACT", TEXT, LIST)
    exdate: list[Date] = prop("EXDATE", DATE, APPEND)
    request_status: list[RequestStatus] = prop("REQUEST-STATUS", REQUEST_STATUS, LIST)
    related_to: list[Text] = prop("RELATED-TO", TEXT, LIST)
    resources: list[Text] = prop("RESOURCES", TEXT, APPEND)
    rdate: list[RDate] = prop("RDATE", RDATE, LIST)
    alarms: list[VAlarm] = field(default_factory=list)


@dataclass
class VTodo(Recurring, Component):
    """A to-do (RFC 5545 section 3.6.2)."""

    NAME: ClassVar[str] = "VTODO"
    CHILDREN: ClassVar[dict[str, str]] = {"VALARM": "alarms"}
    recurrence_end_fields: ClassVar[tuple[str, ...]] = ("due",)

    dtstamp: Date = prop("DTSTAMP", DATE, REQUIRED)
    uid: Text = prop("UID", TEXT, REQUIRED)
    classification: Optional[Union[Classification, str]] = prop("CLASS", CLASSIFICATION)
    completed: Optional[Date] = prop("COMPLETED", DATE)
    created: Optional[Date] = prop("CREATED", DATE)
    description: Optional[Text] = prop("DESCRIPTION", TEXT)
    dtstart: Optional[Date] = prop("DTSTART", DATE)
    geo: Optional[Geo] = prop("GEO", GEO)
    last_modified: Optional[Date] = prop("LAST-MODIFIED", DATE)
    location: Optional[Text] = prop("LOCATION", TEXT)
    organizer: Optional[Uri] = prop("ORGANIZER", URI)
    percent_complete: Optional[int] = prop("PERCENT-COMPLETE", PERCENT)
    priority: Optional[int] = prop("PRIORITY", PRIORITY)
    recurrence_id: Optional[Date] = prop("RECURRENCE-ID", DATE)
    sequence: Optional[int] = prop("SEQUENCE", COUNTER)
    status: Optional[Status] = prop("STATUS", STATUS)
    summary: Optional[Text] = prop("SUMMARY", TEXT)
    url: Optional[Uri] = prop("URL", URI)
    rrule: Optional[Recur] = prop("RRULE", RECUR)
    due: Optional[Date] = prop("DUE", DATE)
    duration: Optional[timedelta] = prop("DURATION", DURATION)
    attach: list[Uri] = prop("ATTACH", URI, LIST)
    attendee: list[Uri] = prop("ATTENDEE", URI, LIST)
    categories: list[Text] = prop("CATEGORIES", TEXT, APPEND)
    comment: list[Text] = prop("COMMENT", TEXT, LIST)
    contact: list[Text] = prop("CONTACT", TEXT, LIST)
    exdate: list[Date] = prop("EXDATE", DATE, APPEND)
    request_status: list[RequestStatus] = prop("REQUEST-STATUS", REQUEST_STATUS, LIST)
    related_to: list[Text] = prop("RELATED-TO", TEXT, LIST)
    resources: list[Text] = prop("RESOURCES", TEXT, APPEND)
    rdate: list[RDate] = prop("RDATE", RDATE, LIST)
    alarms: list[VAlarm] = field(default_factory=list)


@dataclass
class VJournal(Recurring, Component):
    """A journal entry (RFC 5545 section 3.6.3)."""

    NAME: ClassVar[str] = "VJOURNAL"

    dtstamp: Date = prop("DTSTAMP", DATE, REQUIRED)
    uid: Text = prop("UID", TEXT, REQUIRED)
    classification: Optional[Union[Classification, str]] = prop("CLASS", CLASSIFICATION)
    created: Optional[Date] = prop("CREATED", DATE)
    dtstart: Optional[Date] = prop("DTSTART", DATE)
    last_modified: Optional[Date] = prop("LAST-MODIFIED", DATE)
    organizer: Optional[Uri] = prop("ORGANIZER", URI)
    recurrence_id: Optional[Date] = prop("RECURRENCE-ID", DATE)
    sequence: Optional[int] = prop("SEQUENCE", COUNTER)
    status: Optional[Status] = prop("STATUS", STATUS)
    summary: Optional[Text] = prop("SUMMARY", TEXT)
    url: Optional[Uri] = prop("URL", URI)
    rrule: Optional[Recur] = prop("RRULE", RECUR)
    attach: list[Uri] = prop("ATTACH", URI, LIST)
    attendee: list[Uri] = prop("ATTENDEE", URI, LIST)
    categories: list[Text] = prop("CATEGORIES", TEXT, APPEND)
    comment: list[Text] = prop("COMMENT", TEXT, LIST)
    contact: list[Text] = prop("CONTACT", TEXT, LIST)
    description: list[Text] = prop("DESCRIPTION", TEXT, LIST)
    exdate: list[Date] = prop("EXDATE", DATE, APPEND)
    related_to: list[Text] = prop("RELATED-TO", TEXT, LIST)
    rdate: list[RDate] = prop("RDATE", RDATE, LIST)
    request_status: list[RequestStatus] = prop("REQUEST-STATUS", REQUEST_STATUS, LIST)


@dataclass
class VFreeBusy(Component):
    """Free/busy information (RFC 5545 section 3.6.4)."""

    NAME: ClassVar[str] = "VFREEBUSY"

    dtstamp: Date = prop("DTSTAMP", DATE, REQUIRED)
    uid: Text = prop("UID", TEXT, REQUIRED)
    contact: Optional[Text] = prop("CONTACT", TEXT)
    dtstart: Optional[Date] = prop("DTSTART", DATE)
    dtend: Optional[Date] = prop("DTEND", DATE)
    organizer: Optional[Uri] = prop("ORGANIZER", URI)
    url: Optional[Uri] = prop("URL", URI)
    attendee: list[Uri] = prop("ATTENDEE", URI, LIST)
    comment: list[Text] = prop("COMMENT", TEXT, LIST)
    freebusy: list[Period] = prop("FREEBUSY", PERIOD, APPEND)
    request_status: list[RequestStatus] = prop("REQUEST-STATUS", REQUEST_STATUS, LIST)


@dataclass
class TimezoneRule(Component):
    """A STANDARD or DAYLIGHT sub-component of VTIMEZONE."""

    dtstart: Date = prop("DTSTART", DATE, REQUIRED)
    tzoffsetto: timedelta = prop("TZOFFSETTO", UTC_OFFSET, REQUIRED)
    tzoffsetfrom: timedelta = prop("TZOFFSETFROM", UTC_OFFSET, REQUIRED)
    rrule: Optional[Recur] = prop("RRULE", RECUR)
    comment: list[Text] = prop("COMMENT", TEXT, LIST)
    rdate: list[RDate] = prop("RDATE", RDATE, LIST)
    tzname: list[Text] = prop("TZNAME", TEXT, LIST)


@dataclass
class Standard(TimezoneRule):
    NAME: ClassVar[str] = "STANDARD"


@dataclass
class Daylight(TimezoneRule):
    NAME: ClassVar[str] = "DAYLIGHT"


@dataclass
class VTimezone(Component):
    """
    A time-zone definition (RFC 5545 section 3.6.5).

    Stored structurally only; nothing converts between zones with it.
    """

    NAME: ClassVar[str] = "VTIMEZONE"
    CHILDREN: ClassVar[dict[str, str]] = {"STANDARD": "standard", "DAYLIGHT": "daylight"}

    tzid: Text = prop("TZID", TEXT, REQUIRED)
    last_modified: Optional[Date] = prop("LAST-MODIFIED", DATE)
    tzurl: Optional[Uri] = prop("TZURL", URI)
    standard: list[Standard] = field(default_factory=list)
    daylight: list[Daylight] = field(default_factory=list)


@dataclass
class VCalendar(Component):
    """The iCalendar object (RFC 5545 section 3.4)."""

    NAME: ClassVar[str] = "VCALENDAR"
    CHILDREN: ClassVar[dict[str, str]] = {
        "VTIMEZONE": "timezones",
        "VEVENT": "events",
        "VTODO": "todos",
        "VJOURNAL": "journals",
        "VFREEBUSY": "freebusy",
    }

    prodid: Text = prop("PRODID", TEXT, REQUIRED)
    version: Text = prop("VERSION", TEXT, REQUIRED)
    calscale: Optional[Text] = prop("CALSCALE", TEXT)
    method: Optional[Text] = prop("METHOD", TEXT)
    timezones: list[VTimezone] = field(default_factory=list)
    events: list[VEvent] = field(default_factory=list)
    todos: list[VTodo] = field(default_factory=list)
    journals: list[VJournal] = field(default_factory=list)
    freebusy: list[VFreeBusy] = field(default_factory=list)


# Envelope name -> builder(lines, children)
BUILDERS: dict[str, Any] = {
    "VCALENDAR": VCalendar.from_content_lines,
    "VEVENT": VEvent.from_content_lines,
    "VTODO": VTodo.from_content_lines,
    "VJOURNAL": VJournal.from_content_lines,
    "VFREEBUSY": VFreeBusy.from_content_lines,
    "VALARM": build_alarm,
    "VTIMEZONE": VTimezone.from_content_lines,
    "STANDARD": Standard.from_content_lines,
    "DAYLIGHT": Daylight.from_content_lines,
}
