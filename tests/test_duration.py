# tests/test_duration.py

import logging

import pytest

from call_pipeline.duration import calculate_duration, parse_timestamp


def test_calculate_duration_returns_minutes_between_start_and_end():
    assert calculate_duration("2023-10-01T10:00:00Z", "2023-10-01T10:30:00Z") == 30


def test_calculate_duration_returns_none_when_start_missing():
    assert calculate_duration(None, "2023-10-01T10:30:00Z") is None


def test_calculate_duration_returns_none_when_end_missing():
    assert calculate_duration("2023-10-01T10:00:00Z", None) is None


def test_partial_minutes_are_truncated():
    assert calculate_duration("2023-10-01T10:00:00Z", "2023-10-01T10:01:59Z") == 1
    assert calculate_duration("2023-10-01T10:00:00Z", "2023-10-01T10:00:59Z") == 0


def test_offsets_are_compared_in_utc():
    # 12:00+02:00 is 10:00Z
    assert calculate_duration("2023-10-01T12:00:00+02:00", "2023-10-01T10:45:00Z") == 45


def test_naive_timestamps_are_taken_as_utc():
    assert calculate_duration("2023-10-01T10:00:00", "2023-10-01T11:00:00Z") == 60


def test_duration_spanning_midnight():
    assert calculate_duration("2023-10-01T23:50:00Z", "2023-10-02T00:10:00Z") == 20


def test_end_before_start_returns_none(caplog):
    caplog.set_level(logging.WARNING)
    assert calculate_duration("2023-10-01T10:30:00Z", "2023-10-01T10:00:00Z") is None
    assert "ends before it starts" in caplog.text


@pytest.mark.parametrize("start,end", [
    ("not-a-time", "2023-10-01T10:30:00Z"),
    ("2023-10-01T10:00:00Z", "yesterday"),
    ("", "2023-10-01T10:30:00Z"),
])
def test_malformed_timestamps_return_none(start, end, caplog):
    caplog.set_level(logging.WARNING)
    assert calculate_duration(start, end) is None
    assert "Unparseable call timestamps" in caplog.text


def test_parse_timestamp_normalizes_to_utc():
    parsed = parse_timestamp("2023-10-01T12:00:00+02:00")
    assert parsed.isoformat() == "2023-10-01T10:00:00+00:00"


def test_parse_timestamp_rejects_non_strings():
    assert parse_timestamp(1696154400) is None
    assert parse_timestamp(None) is None
