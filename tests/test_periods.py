"""
Tests for the statistics period ranges
"""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from kesslerlog.models import YEAR_MAX, StatsFilters
from kesslerlog.stats.periods import build_range, month_options, year_options

NOW = datetime(2024, 12, 15, 9, 30, tzinfo=timezone.utc)


class TestBuildRange:
    def test_all_has_no_range(self):
        assert build_range(StatsFilters(period="all"), NOW) == (None, None)

    def test_rolling_windows(self):
        start, end = build_range(StatsFilters(period="last30"), NOW)
        assert end == NOW
        assert end - start == timedelta(days=30)

        start, _ = build_range(StatsFilters(period="last90"), NOW)
        assert NOW - start == timedelta(days=90)

    def test_month_is_half_open(self):
        start, end = build_range(StatsFilters(period="month", year=2024, month=2), NOW)

        assert start == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert end == datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_december_rolls_over(self):
        start, end = build_range(StatsFilters(period="month", year=2023, month=12), NOW)

        assert start == datetime(2023, 12, 1, tzinfo=timezone.utc)
        assert end == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_year(self):
        start, end = build_range(StatsFilters(period="year", year=2022), NOW)

        assert start == datetime(2022, 1, 1, tzinfo=timezone.utc)
        assert end == datetime(2023, 1, 1, tzinfo=timezone.utc)

    def test_last_allowed_year(self):
        _, end = build_range(StatsFilters(period="year", year=YEAR_MAX), NOW)

        assert end == datetime(YEAR_MAX + 1, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("year", [1969, 9999])
    def test_year_out_of_range_is_rejected(self, year):
        with pytest.raises(ValidationError):
            StatsFilters(period="year", year=year)

    def test_month_and_year_default_to_now(self):
        start, end = build_range(StatsFilters(period="month"), NOW)

        assert start == datetime(2024, 12, 1, tzinfo=timezone.utc)
        assert end == datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_pins_single_month():
    assert StatsFilters(period="month", year=2024, month=1).pins_single_month
    assert not StatsFilters(period="month", year=2024).pins_single_month
    assert not StatsFilters(period="year", year=2024, month=1).pins_single_month


def test_options():
    assert year_options(NOW) == [2019, 2020, 2021, 2022, 2023, 2024, 2025]
    months = month_options()
    assert months[0] == {"value": 1, "label": "Jan"}
    assert months[-1] == {"value": 12, "label": "Dez"}
