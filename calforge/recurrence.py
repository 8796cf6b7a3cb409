"""
Recurrence expansion.

Given a record with a start, an optional end or due, a rule and a list of
exception dates, ``Recurrence`` lazily yields one record per occurrence.
The engine is written once against the ``Recurring`` capability, so
events, to-dos and journals expand the same way.

Only frequency, interval, count and until drive the expansion. The BYxxx
refinements of the rule are kept on the records but not applied.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from itertools import dropwhile, takewhile
from typing import Any, ClassVar, Iterator, Optional, Union

from .recur import Freq, Recur
from .values import Date

logger = logging.getLogger(__name__)

_FIXED_STEPS = {
    Freq.SECONDLY: timedelta(seconds=1),
    Freq.MINUTELY: timedelta(minutes=1),
    Freq.HOURLY: timedelta(hours=1),
    Freq.DAILY: timedelta(days=1),
    Freq.WEEKLY: timedelta(weeks=1),
}

Bound = Union[Date, date, datetime]


class Recurring:
    """
    Capability mixin for records that can recur.

    The record must be a dataclass with ``dtstart``, ``rrule`` and ``exdate``
    fields. ``recurrence_end_fields`` names the fields that move together
    with the start, e.g. ``("dtend",)`` for events or ``("due",)`` for
    to-dos.
    """

    recurrence_end_fields: ClassVar[tuple[str, ...]] = ()

    def recurrence_start(self) -> Optional[Date]:
        return self.dtstart

    def recurrence_rule(self) -> Optional[Recur]:
        return self.rrule

    def recurrence_exceptions(self) -> list[Date]:
        return self.exdate

    def recurrence_ends(self) -> dict[str, Date]:
        """The end-like fields that are set, by attribute name."""
        ends = {}
        for name in self.recurrence_end_fields:
            value = getattr(self, name)
            if value is not None:
                ends[name] = value
        return ends

    def with_recurrence(self, start: Date, ends: dict[str, Date]) -> Any:
        """Copy of this record with a new start and end-like fields."""
        return replace(self, dtstart=start, **ends)

    def with_rule(self, rule: Optional[Recur]) -> Any:
        """Copy of this record with another rule, or none."""
        return replace(self, rrule=rule)

    def with_exceptions(self, exceptions: list[Date]) -> Any:
        """Copy of this record with another exception-date list."""
        return replace(self, exdate=list(exceptions))

    def recurrent(self) -> Recurrence:
        """Iterate over the occurrences of this record, itself first."""
        return Recurrence(self)


def step_start(start: Date, rule: Recur, steps: int) -> Date:
    """
    Advance ``start`` by ``steps`` rule intervals.

    Calendar steps are taken from the given start in one go, so a monthly
    rule on the 31st lands on the last day of shorter months without
    drifting for the months that follow.

    Raises:
        OverflowError: If the result is outside the datetime range
        ValueError: If the resulting year is out of range
    """
    amount = rule.interval * steps
    if rule.freq in _FIXED_STEPS:
        return start + _FIXED_STEPS[rule.freq] * amount
    if rule.freq == Freq.MONTHLY:
        return _add_months(start, amount)
    return _add_months(start, 12 * amount)


def _add_months(start: Date, months: int) -> Date:
    value = start.value
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    if not 1 <= year <= 9999:
        raise OverflowError(f"Year {year} is out of range")
    day = min(value.day, calendar.monthrange(year, month)[1])
    return Date(value.replace(year=year, month=month, day=day), start.tzid)


def _starts_before(item: Recurring, bound: Date) -> bool:
    start = item.recurrence_start()
    return start is not None and start < bound


class Recurrence:
    """
    Pull-based sequence of occurrences of a recurring record.

    Each occurrence is a full copy of the record with its start (and end or
    due) moved. A rule with neither COUNT nor UNTIL never ends; bound the
    iteration with ``between``, ``at``, ``after`` plus a limit, or
    ``itertools.islice``.

    Attributes:
        base: The record the sequence was built from
    """

    def __init__(self, item: Recurring) -> None:
        self.base = item
        self._current = item
        self._rule = item.recurrence_rule()
        self._start = item.recurrence_start()
        self._remaining = self._rule.count if self._rule else None
        self._steps = 0
        self._done = False

    def __iter__(self) -> Iterator[Any]:
        return self

    def __next__(self) -> Any:
        if self._done:
            raise StopIteration
        current = self._current

        if self._rule is None or self._start is None:
            self._done = True
            return current

        start = current.recurrence_start()
        until = self._rule.until
        if until is not None and start.date() > until.date():
            logger.debug("Recurrence of %s ended by UNTIL %s", self._start, until)
            self._done = True
            raise StopIteration

        if self._remaining is not None:
            if self._remaining == 0:
                logger.debug("Recurrence of %s ended by COUNT", self._start)
                self._done = True
                raise StopIteration
            self._remaining -= 1

        try:
            self._current = self._advance(current, start)
        except (OverflowError, ValueError):
            logger.debug("Recurrence of %s ran out of calendar", self._start)
            self._done = True
        return current

    def _advance(self, current: Recurring, start: Date) -> Any:
        exceptions = self.base.recurrence_exceptions()
        while True:
            self._steps += 1
            candidate = step_start(self._start, self._rule, self._steps)
            if not any(candidate.matches(excluded) for excluded in exceptions):
                break
            logger.debug("Skipping occurrence %s excluded by EXDATE", candidate)

        delta = candidate - start
        ends = {name: value + delta for name, value in current.recurrence_ends().items()}
        return current.with_recurrence(candidate, ends)

    def between(self, start: Bound, end: Bound) -> Iterator[Any]:
        """Occurrences whose start lies in ``[start, end)``."""
        start, end = Date.coerce(start), Date.coerce(end)
        occurrences = dropwhile(lambda item: _starts_before(item, start), self)
        return takewhile(lambda item: _starts_before(item, end), occurrences)

    def at(self, day: Bound) -> Iterator[Any]:
        """Occurrences starting within one day of ``day``."""
        day = Date.coerce(day)
        return self.between(day, day + timedelta(days=1))

    def after(self, day: Bound) -> Iterator[Any]:
        """Occurrences from ``day`` on, skipping those strictly before it."""
        day = Date.coerce(day)
        return dropwhile(lambda item: _starts_before(item, day), self)
