"""
Tests for display formatting helpers
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from kesslerlog.formatting import (
    PLACEHOLDER,
    cycle_labels,
    day_label,
    elapsed_seconds,
    fmt1,
    format_date_short,
    format_datetime,
    format_hhmmss,
    hours_to_human,
    is_error_message,
    minutes_between,
    minutes_to_human,
    normalize_text,
    time_ago_short,
)

NOW = datetime(2024, 1, 25, 12, 0, tzinfo=timezone.utc)


def _cycle(cycle_id, started_at, ended_at=None):
    return SimpleNamespace(id=cycle_id, started_at=started_at, ended_at=ended_at)


class TestDurations:
    @pytest.mark.parametrize(
        "seconds, expected", [(0, "00:00:00"), (3725, "01:02:05"), (-5, "00:00:00"), (36000, "10:00:00")]
    )
    def test_hhmmss(self, seconds, expected):
        assert format_hhmmss(seconds) == expected

    def test_elapsed_seconds(self):
        assert elapsed_seconds(NOW - timedelta(minutes=2), NOW) == 120
        assert elapsed_seconds(NOW + timedelta(minutes=2), NOW) == 0
        assert elapsed_seconds(None, NOW) == 0

    def test_elapsed_seconds_accepts_naive_utc(self):
        assert elapsed_seconds(datetime(2024, 1, 25, 11, 59), NOW) == 60

    @pytest.mark.parametrize("hours, expected", [(1.5, "1h 30m"), (0.25, "15m"), (2, "2h"), (None, "0m")])
    def test_hours_to_human(self, hours, expected):
        assert hours_to_human(hours) == expected

    def test_minutes_to_human(self):
        assert minutes_to_human(135) == "2h 15m"

    def test_minutes_between(self):
        assert minutes_between(NOW - timedelta(minutes=45), NOW) == 45
        assert minutes_between(NOW, NOW - timedelta(minutes=1)) is None
        assert minutes_between(NOW, None) is None


class TestLabels:
    def test_fmt1(self):
        assert fmt1(8.95) == "9.0"
        assert fmt1("7") == "7.0"
        assert fmt1(None) == PLACEHOLDER

    def test_dates(self):
        assert format_date_short(NOW) == "25/01/24"
        assert format_datetime(NOW) == "25/01/24 12:00"
        assert format_date_short(None) == PLACEHOLDER

    @pytest.mark.parametrize(
        "delta, expected",
        [
            (timedelta(seconds=30), "Agora"),
            (timedelta(minutes=5), "Há 5 min"),
            (timedelta(hours=3), "Há 3h"),
            (timedelta(days=1), "Há 1 dia"),
            (timedelta(days=4), "Há 4 dias"),
        ],
    )
    def test_time_ago(self, delta, expected):
        assert time_ago_short(NOW - delta, NOW) == expected

    def test_day_label(self):
        assert day_label(NOW, NOW) == "Hoje"
        assert day_label(NOW - timedelta(days=1), NOW) == "Ontem"
        assert day_label(NOW - timedelta(days=9), NOW) == "16/01"

    def test_cycle_labels_disambiguate_same_month(self):
        cycles = [
            _cycle("c3", datetime(2024, 1, 20, tzinfo=timezone.utc)),
            _cycle("c2", datetime(2024, 1, 2, tzinfo=timezone.utc), ended_at=datetime(2024, 1, 10, tzinfo=timezone.utc)),
            _cycle("c1", datetime(2023, 12, 5, tzinfo=timezone.utc), ended_at=datetime(2023, 12, 30, tzinfo=timezone.utc)),
        ]
        labels = cycle_labels(cycles)

        assert labels == {
            "c3": "Jan/2024 • 1/2",
            "c2": "Jan/2024 • 2/2 • encerrado",
            "c1": "Dez/2023 • encerrado",
        }


class TestText:
    def test_normalize_text(self):
        assert normalize_text(" Concluído ") == "concluido"
        assert normalize_text(None) == ""

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("Erro ao salvar jogo", True),
            ("Falhou ao carregar via rpc_home_dashboard", True),
            ("Request failed", True),
            ("Jogo adicionado ✅", False),
            (None, False),
        ],
    )
    def test_is_error_message(self, message, expected):
        assert is_error_message(message) is expected
