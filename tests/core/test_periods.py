"""
Tests for period expressions and interval bucketing.
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st
from ledgerlab.core.errors import ExpressionError
from ledgerlab.core.periods import WEEKLY_FREQ, Interval, parse_date, parse_period

TODAY = date(2024, 3, 15)


class TestParseDate:
    @pytest.mark.parametrize(
        "text, begin, end",
        [
            ("2024", date(2024, 1, 1), date(2025, 1, 1)),
            ("2024-02", date(2024, 2, 1), date(2024, 3, 1)),
            ("2024/12", date(2024, 12, 1), date(2025, 1, 1)),
            ("2024-02-10", date(2024, 2, 10), date(2024, 2, 10)),
        ],
    )
    def test_partial_dates(self, text, begin, end):
        assert parse_date(text) == begin
        assert parse_date(text, end=True) == end

    @pytest.mark.parametrize("text", ["yesterday", "2024-13", "2024-02-30", "24-01-01"])
    def test_invalid(self, text):
        with pytest.raises(ExpressionError):
            parse_date(text)


class TestParsePeriod:
    def test_adverbs(self):
        assert parse_period("monthly") == Interval(freq="M")
        assert parse_period("weekly") == Interval(freq=WEEKLY_FREQ)
        assert parse_period("biweekly") == Interval(freq=WEEKLY_FREQ, count=2)

    def test_every(self):
        interval = parse_period("every 3 months from 2024-01")
        assert interval.freq == "M"
        assert interval.count == 3
        assert interval.begin == date(2024, 1, 1)
        assert interval.end is None

    def test_ranges(self):
        assert parse_period("in 2023") == Interval(begin=date(2023, 1, 1), end=date(2024, 1, 1))
        assert parse_period("from 2024-01 to 2024-02") == Interval(
            begin=date(2024, 1, 1), end=date(2024, 3, 1)
        )
        assert parse_period("2024-02") == Interval(begin=date(2024, 2, 1), end=date(2024, 3, 1))

    def test_relative_to_today(self):
        assert parse_period("this month", TODAY) == Interval(
            begin=date(2024, 3, 1), end=date(2024, 4, 1)
        )
        assert parse_period("last year", TODAY) == Interval(
            begin=date(2023, 1, 1), end=date(2024, 1, 1)
        )

    def test_grouping_with_range(self):
        interval = parse_period("weekly this month", TODAY)
        assert interval.groups
        assert interval.begin == date(2024, 3, 1)

    @pytest.mark.parametrize("text", ["fortnightly", "every", "every 2 fortnights", "every 0 days"])
    def test_invalid(self, text):
        with pytest.raises(ExpressionError):
            parse_period(text)

    def test_empty_interval_is_false(self):
        assert not parse_period("")
        assert not Interval().groups


class TestBuckets:
    def test_monthly_buckets(self):
        interval = Interval(freq="M")
        jan = interval.bucket(date(2024, 1, 31))
        assert interval.bucket(date(2024, 2, 1)) == jan + 1
        assert interval.bucket_start(jan) == date(2024, 1, 1)
        assert interval.bucket_end(jan) == date(2024, 2, 1)

    def test_weeks_start_on_sunday(self):
        interval = Interval(freq=WEEKLY_FREQ)
        # 2024-03-10 is a Sunday
        assert interval.bucket_start(interval.bucket(date(2024, 3, 13))) == date(2024, 3, 10)

    def test_multi_period_buckets_anchor_on_begin(self):
        interval = Interval(freq="M", count=2, begin=date(2024, 2, 1))
        assert interval.bucket(date(2024, 2, 15)) == interval.bucket(date(2024, 3, 31))
        assert interval.bucket_start(interval.bucket(date(2024, 4, 2))) == date(2024, 4, 1)

    def test_buckets_cover_range(self):
        spans = list(Interval(freq="Q").buckets(date(2024, 2, 1), date(2024, 8, 1)))
        assert spans == [
            (date(2024, 1, 1), date(2024, 4, 1)),
            (date(2024, 4, 1), date(2024, 7, 1)),
            (date(2024, 7, 1), date(2024, 10, 1)),
        ]

    def test_contains(self):
        interval = Interval(begin=date(2024, 1, 1), end=date(2024, 2, 1))
        assert interval.contains(date(2024, 1, 31))
        assert not interval.contains(date(2024, 2, 1))


@given(
    st.dates(min_value=date(2000, 1, 1), max_value=date(2040, 12, 31)),
    st.sampled_from(["D", WEEKLY_FREQ, "M", "Q", "Y"]),
)
def test_date_falls_inside_its_bucket(moment, freq):
    interval = Interval(freq=freq)
    bucket = interval.bucket(moment)
    assert interval.bucket_start(bucket) <= moment < interval.bucket_end(bucket)
    assert interval.bucket(moment + timedelta(days=400)) > bucket
