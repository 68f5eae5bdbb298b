"""Grafana time range expressions.

Grafana URLs carry ``from``/``to`` either as epoch milliseconds or as
expressions relative to the current instant, optionally rounded to a calendar
boundary::

    1453206447000     absolute, epoch milliseconds
    now               the anchor instant
    now-7d            seven calendar days before the anchor
    now-1M/M          start (from) or end (to) of the previous month

Range starts round down to the start of the boundary unit, range ends round up
to the start of the next unit, so ``now-1d/d`` to ``now-1d/d`` covers all of
yesterday.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from dashreport.core.errors import MalformedTimeExpression

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)

_ABSOLUTE = re.compile(r"\d+")
_RELATIVE = re.compile(
    r"now"
    r"(?:(?P<sign>[+-])(?P<amount>\d+)(?P<unit>[mhdwMy]))?"
    r"(?:/(?P<boundary>[mhdwMy]))?"
)

# Human readable rendering of resolved instants, e.g. "Tue Jan 19 12:27:27 UTC 2016".
HUMAN_FORMAT = "%a %b %d %H:%M:%S %Z %Y"


def _add_months(t: datetime, months: int) -> datetime:
    """Calendar month addition; day overflow rolls into the following month."""
    total = t.year * 12 + (t.month - 1) + months
    year, month = divmod(total, 12)
    first = t.replace(year=year, month=month + 1, day=1)
    return first + timedelta(days=t.day - 1)


def _add_fixed(t: datetime, delta: timedelta) -> datetime:
    # Elapsed time, not wall clock: go through UTC so DST shifts don't leak in.
    return (t.astimezone(timezone.utc) + delta).astimezone(t.tzinfo)


def _shift(t: datetime, amount: int, unit: str) -> datetime:
    if unit == "m":
        return _add_fixed(t, timedelta(minutes=amount))
    if unit == "h":
        return _add_fixed(t, timedelta(hours=amount))
    if unit == "d":
        return t + timedelta(days=amount)
    if unit == "w":
        return t + timedelta(days=7 * amount)
    if unit == "M":
        return _add_months(t, amount)
    return _add_months(t, 12 * amount)


def _floor(t: datetime, unit: str) -> datetime:
    if unit == "m":
        return t.replace(second=0, microsecond=0)
    if unit == "h":
        return t.replace(minute=0, second=0, microsecond=0)

    midnight = t.replace(hour=0, minute=0, second=0, microsecond=0)
    if unit == "d":
        return midnight
    if unit == "w":
        # weekday() is 0 on Monday; weeks start on Sunday
        return midnight - timedelta(days=(midnight.weekday() + 1) % 7)
    if unit == "M":
        return midnight.replace(day=1)
    return midnight.replace(month=1, day=1)


def _ceiling(t: datetime, unit: str) -> datetime:
    return _shift(_floor(t, unit), 1, unit)


class TimeResolver:
    """Resolve time expressions against a fixed anchor instant.

    The anchor defaults to the current local time. Naive anchors are taken to
    be local time.
    """

    def __init__(self, now: datetime | None = None) -> None:
        if now is None:
            now = datetime.now()
        self.now = now.astimezone() if now.tzinfo is None else now

    def parse_from(self, expression: str) -> datetime:
        """Resolve a range start; boundary units round down."""
        return self._parse(expression, ceiling=False)

    def parse_to(self, expression: str) -> datetime:
        """Resolve a range end; boundary units round up to the next unit."""
        return self._parse(expression, ceiling=True)

    def _parse(self, expression: str, *, ceiling: bool) -> datetime:
        try:
            return self._resolve(expression, ceiling)
        except (OverflowError, ValueError) as exc:
            # Well-formed but outside the representable datetime range
            raise MalformedTimeExpression(expression) from exc

    def _resolve(self, expression: str, ceiling: bool) -> datetime:
        if _ABSOLUTE.fullmatch(expression):
            instant = _EPOCH + int(expression) * _MILLISECOND
            return instant.astimezone(self.now.tzinfo)

        match = _RELATIVE.fullmatch(expression)
        if match is None:
            raise MalformedTimeExpression(expression)

        t = self.now
        if match["unit"]:
            amount = int(match["amount"])
            t = _shift(t, -amount if match["sign"] == "-" else amount, match["unit"])

        boundary = match["boundary"]
        if boundary:
            t = _ceiling(t, boundary) if ceiling else _floor(t, boundary)
        return t


def to_epoch_millis(t: datetime) -> int:
    return (t - _EPOCH) // _MILLISECOND


@dataclass(frozen=True)
class ResolvedTimeRange:
    start: datetime
    end: datetime

    @property
    def from_formatted(self) -> str:
        return self.start.strftime(HUMAN_FORMAT)

    @property
    def to_formatted(self) -> str:
        return self.end.strftime(HUMAN_FORMAT)

    def as_time_range(self) -> TimeRange:
        """Pin the range to absolute epoch milliseconds."""
        return TimeRange(str(to_epoch_millis(self.start)), str(to_epoch_millis(self.end)))


@dataclass(frozen=True)
class TimeRange:
    """A ``from``/``to`` pair of raw time expressions."""

    from_: str
    to: str

    def resolve(self, now: datetime | None = None) -> ResolvedTimeRange:
        """Resolve both ends against ``now`` (the current instant if omitted).

        Nothing is cached: every call re-reads the clock unless ``now`` is given.
        """
        resolver = TimeResolver(now)
        return ResolvedTimeRange(resolver.parse_from(self.from_), resolver.parse_to(self.to))
