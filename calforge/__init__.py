"""Parse, expand and serialize iCalendar (RFC 5545) data."""

from .components import (
    AudioAlarm,
    Component,
    Daylight,
    DisplayAlarm,
    EmailAlarm,
    Standard,
    VAlarm,
    VCalendar,
    VEvent,
    VFreeBusy,
    VJournal,
    VTimezone,
    VTodo,
)
from .content_line import ContentLine, content_lines, parse_content_line, unfold
from .errors import (
    CalendarError,
    DomainError,
    GrammarError,
    MissingPropertyError,
    PropertyValueError,
)
from .parser import parse, parse_calendar, parse_component, parse_components
from .recur import Freq, Recur, Weekday, WeekdayNum, parse_recur
from .recurrence import Recurrence, Recurring
from .serializer import escape, fold, serialize
from .values import (
    Classification,
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
    unescape,
)

__version__ = "0.1.0"
