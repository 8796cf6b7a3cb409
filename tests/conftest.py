import pytest


def crlf(text):
    return text.replace("\n", "\r\n")


@pytest.fixture
def bastille_event():
    return crlf(
        """BEGIN:VEVENT
DTSTAMP:19970610T172345Z
UID:19970610T172345Z-AF23B2@example.com
DTSTART:19970714T170000Z
SUMMARY:Bastille Day Party
END:VEVENT
"""
    )


@pytest.fixture
def sample_ics_simple():
    return crlf(
        """BEGIN:VCALENDAR
PRODID:-//Test//Test//EN
VERSION:2.0
BEGIN:VEVENT
DTSTAMP:20250101T000000Z
UID:test-event-1@example.com
DTSTART:20250115T140000Z
DESCRIPTION:Weekly team sync
LOCATION:Conference Room A
SUMMARY:Team Meeting
DTEND:20250115T150000Z
END:VEVENT
END:VCALENDAR
"""
    )


@pytest.fixture
def sample_ics_recurring():
    return crlf(
        """BEGIN:VEVENT
DTSTAMP:20250101T000000Z
UID:recurring-event@example.com
DTSTART:20250113T100000Z
SUMMARY:Daily Standup
RRULE:FREQ=DAILY;UNTIL=20250120T110000Z
DTEND:20250113T110000Z
EXDATE:20250115T100000Z
END:VEVENT
"""
    )


@pytest.fixture
def sample_ics_full():
    return crlf(
        """BEGIN:VCALENDAR
PRODID:-//Example Corp//Calendar 1.0//EN
VERSION:2.0
CALSCALE:GREGORIAN
X-WR-CALNAME:Team
BEGIN:VTIMEZONE
TZID:Europe/Paris
BEGIN:STANDARD
DTSTART:19701025T030000
TZOFFSETTO:+0100
TZOFFSETFROM:+0200
RRULE:FREQ=YEARLY;BYDAY=-1SU;BYMONTH=10
TZNAME:CET
END:STANDARD
BEGIN:DAYLIGHT
DTSTART:19700329T020000
TZOFFSETTO:+0200
TZOFFSETFROM:+0100
RRULE:FREQ=YEARLY;BYDAY=-1SU;BYMONTH=3
TZNAME:CEST
END:DAYLIGHT
END:VTIMEZONE
BEGIN:VEVENT
DTSTAMP:20250101T000000Z
UID:planning@example.com
DTSTART;TZID=Europe/Paris:20250106T090000
SUMMARY:Planning\\, weekly
RRULE:FREQ=WEEKLY;COUNT=4
DTEND;TZID=Europe/Paris:20250106T100000
ATTENDEE;CN="Doe, Jane";ROLE=REQ-PARTICIPANT:mailto:jane@example.com
CATEGORIES:MEETING,WORK
BEGIN:VALARM
ACTION:DISPLAY
TRIGGER:-PT15M
DESCRIPTION:Planning starts soon
END:VALARM
END:VEVENT
BEGIN:VTODO
DTSTAMP:20250101T000000Z
UID:report@example.com
DTSTART;VALUE=DATE:20250110
STATUS:NEEDS-ACTION
SUMMARY:Monthly report
RRULE:FREQ=MONTHLY;COUNT=3
DUE;VALUE=DATE:20250115
END:VTODO
END:VCALENDAR
"""
    )
