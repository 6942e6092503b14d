"""
Reporting periods and interval bucketing.

Period expressions such as ``monthly``, ``every 2 weeks from 2024-01-01`` or
``yearly in 2023`` are parsed into an ``Interval``: an optional grouping
frequency plus an optional date range. Buckets are pandas ``Period`` ordinals,
so a date maps to its bucket with one constructor call; weeks start on Sunday.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date

import pandas as pd

from .errors import ExpressionError

# Weekly periods ending Saturday, so weeks start on Sunday
WEEKLY_FREQ = "W-SAT"

ADVERB_FREQS = {
    "daily": ("D", 1),
    "weekly": (WEEKLY_FREQ, 1),
    "biweekly": (WEEKLY_FREQ, 2),
    "monthly": ("M", 1),
    "bimonthly": ("M", 2),
    "quarterly": ("Q", 1),
    "yearly": ("Y", 1),
    "annually": ("Y", 1),
}

UNIT_FREQS = {
    "day": "D",
    "week": WEEKLY_FREQ,
    "month": "M",
    "quarter": "Q",
    "year": "Y",
}

_DATE_RE = re.compile(r"^(\d{4})(?:[-/](\d{1,2})(?:[-/](\d{1,2}))?)?$")


@dataclass(frozen=True)
class Interval:
    """
    Grouping frequency and date range.

    Attributes:
        freq: pandas period frequency, None for a pure date range
        count: Number of base periods per bucket
        begin: First included date
        end: First excluded date
    """

    freq: str | None = None
    count: int = 1
    begin: date | None = None
    end: date | None = None

    def __bool__(self) -> bool:
        return self.freq is not None or self.begin is not None or self.end is not None

    @property
    def groups(self) -> bool:
        return self.freq is not None

    def contains(self, moment: date) -> bool:
        if self.begin is not None and moment < self.begin:
            return False
        return self.end is None or moment < self.end

    def _anchor(self) -> int:
        if self.begin is None:
            return 0
        return pd.Period(pd.Timestamp(self.begin), freq=self.freq).ordinal

    def bucket(self, moment: date) -> int:
        """Bucket number of ``moment``; buckets are consecutive integers."""
        if self.freq is None:
            return 0
        ordinal = pd.Period(pd.Timestamp(moment), freq=self.freq).ordinal
        return (ordinal - self._anchor()) // self.count

    def bucket_start(self, bucket: int) -> date:
        ordinal = bucket * self.count + self._anchor()
        return pd.Period(ordinal=ordinal, freq=self.freq).start_time.date()

    def bucket_end(self, bucket: int) -> date:
        """First date after the bucket."""
        return self.bucket_start(bucket + 1)

    def buckets(self, first: date, last: date) -> Iterator[tuple[date, date]]:
        """Yield ``(start, end)`` for every bucket touching ``first``..``last``."""
        if self.freq is None:
            yield (self.begin or first, self.end or last)
            return
        for bucket in range(self.bucket(first), self.bucket(last) + 1):
            yield self.bucket_start(bucket), self.bucket_end(bucket)

    def describe(self) -> str:
        parts = []
        if self.freq is not None:
            parts.append(f"every {self.count} {self.freq}")
        if self.begin is not None:
            parts.append(f"from {self.begin.isoformat()}")
        if self.end is not None:
            parts.append(f"until {self.end.isoformat()}")
        return " ".join(parts) or "(unbounded)"


def parse_date(text: str, *, end: bool = False) -> date:
    """
    Parse ``YYYY``, ``YYYY-MM`` or ``YYYY-MM-DD``.

    With ``end`` set, a partial date gives the first day after the period it
    names (so ``to 2024`` excludes all of 2025 onwards).
    """
    match = _DATE_RE.match(text)
    if match is None:
        raise ExpressionError(f"Invalid date '{text}' in period expression")
    year = int(match[1])
    month = int(match[2]) if match[2] else None
    day = int(match[3]) if match[3] else None
    try:
        if day is not None:
            return date(year, month, day)
        if month is not None:
            start = date(year, month, 1)
            if end:
                return (pd.Period(pd.Timestamp(start), freq="M") + 1).start_time.date()
            return start
        return date(year + 1, 1, 1) if end else date(year, 1, 1)
    except ValueError as e:
        raise ExpressionError(f"Invalid date '{text}' in period expression") from e


def _span(text: str) -> tuple[date, date]:
    """Begin and exclusive end of the period a partial date names."""
    begin = parse_date(text)
    if _DATE_RE.match(text)[3]:
        return begin, (pd.Period(pd.Timestamp(begin), freq="D") + 1).start_time.date()
    return begin, parse_date(text, end=True)


def _relative(word: str, unit: str, today: date) -> tuple[date, date]:
    freq = UNIT_FREQS.get(unit.rstrip("s"))
    if freq is None:
        raise ExpressionError(f"Unknown period unit '{unit}'")
    offset = {"last": -1, "this": 0, "next": 1}[word]
    period = pd.Period(pd.Timestamp(today), freq=freq) + offset
    return period.start_time.date(), (period + 1).start_time.date()


def parse_period(text: str, today: date | None = None) -> Interval:
    """
    Parse a period expression.

    Args:
        text: e.g. 'monthly', 'every 3 months from 2024-01', 'in 2023',
            'weekly this year'
        today: Reference date for 'last/this/next' ranges

    Returns:
        Parsed Interval

    Raises:
        ExpressionError: If the text is not a recognised period expression
    """
    words = text.lower().replace(",", " ").split()
    freq: str | None = None
    count = 1
    begin: date | None = None
    end: date | None = None

    index = 0
    while index < len(words):
        word = words[index]
        if word in ADVERB_FREQS:
            freq, count = ADVERB_FREQS[word]
            index += 1
        elif word == "every":
            if index + 1 >= len(words):
                raise ExpressionError(f"Incomplete period expression '{text}'")
            if words[index + 1].isdigit():
                count = int(words[index + 1])
                index += 1
            unit = words[index + 1].rstrip("s") if index + 1 < len(words) else ""
            if unit not in UNIT_FREQS:
                raise ExpressionError(f"Unknown period unit in '{text}'")
            freq = UNIT_FREQS[unit]
            index += 2
        elif word in ("from", "since", "after") and index + 1 < len(words):
            begin = parse_date(words[index + 1])
            index += 2
        elif word in ("to", "until", "before") and index + 1 < len(words):
            end = parse_date(words[index + 1], end=True)
            index += 2
        elif word in ("in", "during") and index + 1 < len(words):
            begin, end = _span(words[index + 1])
            index += 2
        elif word in ("last", "this", "next") and index + 1 < len(words):
            begin, end = _relative(word, words[index + 1], today or date.today())
            index += 2
        elif _DATE_RE.match(word):
            begin, end = _span(word)
            index += 1
        else:
            raise ExpressionError(f"Unrecognised period expression '{text}'")

    if count < 1:
        raise ExpressionError(f"Period count must be positive in '{text}'")
    return Interval(freq=freq, count=count, begin=begin, end=end)
