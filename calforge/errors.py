"""Exceptions raised while reading or writing iCalendar data."""

from typing import Optional


class CalendarError(ValueError):
    """Base class for every calforge error."""


class GrammarError(CalendarError):
    """
    A content line or component envelope does not follow the grammar.

    Attributes:
        remainder: The unconsumed input at the point of failure
    """

    def __init__(self, message: str, remainder: str = "") -> None:
        super().__init__(f"{message}: {remainder!r}" if remainder else message)
        self.message = message
        self.remainder = remainder


class PropertyValueError(CalendarError):
    """
    A well-formed content line whose value cannot be converted.

    Attributes:
        key: Property name, e.g. "PRIORITY"
        value: The raw value that failed
        reason: Human readable explanation
    """

    def __init__(self, key: str, value: str, reason: str) -> None:
        super().__init__(f"Invalid {key} value {value!r}: {reason}")
        self.key = key
        self.value = value
        self.reason = reason


class MissingPropertyError(CalendarError):
    """A component lacks a mandatory property."""

    def __init__(self, component: str, key: str) -> None:
        super().__init__(f"{component} is missing required property {key}")
        self.component = component
        self.key = key


class DomainError(CalendarError):
    """An enumerated value outside its closed set."""

    def __init__(self, kind: str, value: str, key: Optional[str] = None) -> None:
        where = f" in {key}" if key else ""
        super().__init__(f"Unknown {kind} {value!r}{where}")
        self.kind = kind
        self.value = value
        self.key = key
