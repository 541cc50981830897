"""Tests for date parsing and formatting."""

from datetime import date, datetime, timedelta, timezone

import pytest

from kanbn.dates import (
    format_date,
    format_iso,
    humanize_delta,
    milliseconds,
    normalise_date,
    parse_date,
    same_day,
    to_utc,
    try_parse_date,
)
from kanbn.errors import SemanticDateError


def test_to_utc_naive_is_utc():
    assert to_utc(datetime(2020, 1, 1, 12)) == datetime(2020, 1, 1, 12, tzinfo=timezone.utc)


def test_to_utc_truncates_to_milliseconds():
    value = to_utc(datetime(2020, 1, 1, 0, 0, 0, 123456, tzinfo=timezone.utc))
    assert value.microsecond == 123000


def test_to_utc_date():
    assert to_utc(date(2020, 5, 1)) == datetime(2020, 5, 1, tzinfo=timezone.utc)


def test_to_utc_converts_offsets():
    plus_two = timezone(timedelta(hours=2))
    assert to_utc(datetime(2020, 1, 1, 12, tzinfo=plus_two)).hour == 10


def test_parse_iso():
    assert parse_date("2020-01-01T10:30:00.000Z") == datetime(2020, 1, 1, 10, 30, tzinfo=timezone.utc)


def test_parse_plain_date():
    assert parse_date("2021-03-05") == datetime(2021, 3, 5, tzinfo=timezone.utc)


def test_parse_relative_words():
    today = try_parse_date("today")
    assert today is not None
    assert try_parse_date("tomorrow") - today == timedelta(days=1)
    assert today - try_parse_date("yesterday") == timedelta(days=1)


def test_parse_rejects_garbage():
    assert try_parse_date("not a date") is None
    assert try_parse_date("") is None
    assert try_parse_date(12) is None


def test_parse_date_names_field():
    with pytest.raises(SemanticDateError, match="unable to parse due date"):
        parse_date("whenever", "due")


def test_format_iso():
    when = datetime(2020, 1, 1, 0, 0, 0, 5000, tzinfo=timezone.utc)
    assert format_iso(when) == "2020-01-01T00:00:00.005Z"


def test_format_date_tokens():
    when = datetime(2021, 3, 5, 9, 7, tzinfo=timezone.utc)
    assert format_date(when, "D MMM YY, H:mm") == "5 Mar 21, 9:07"


def test_same_day_ignores_time():
    assert same_day(datetime(2020, 1, 1, 1, tzinfo=timezone.utc), datetime(2020, 1, 1, 23, tzinfo=timezone.utc))
    assert not same_day(datetime(2020, 1, 1, tzinfo=timezone.utc), datetime(2020, 1, 2, tzinfo=timezone.utc))


def test_milliseconds():
    assert milliseconds(timedelta(seconds=1, milliseconds=500)) == 1500
    assert milliseconds(timedelta(seconds=-2)) == -2000


def test_humanize_delta():
    assert humanize_delta(timedelta(days=2, hours=3)) == "2 days, 3 hours"
    assert humanize_delta(timedelta(hours=1)) == "1 hour"
    assert humanize_delta(timedelta(0)) == "0 seconds"


def test_humanize_delta_ignores_sign():
    assert humanize_delta(timedelta(days=-1)) == "1 day"


def test_humanize_delta_rounds_last_unit():
    delta = timedelta(days=1, hours=2, minutes=3, seconds=40)
    assert humanize_delta(delta) == "1 day, 2 hours, 4 minutes"


def test_normalise_date():
    when = datetime(2020, 1, 1, 10, 30, 45, 500000, tzinfo=timezone.utc)
    assert normalise_date(when, "seconds") == datetime(2020, 1, 1, 10, 30, 45, tzinfo=timezone.utc)
    assert normalise_date(when, "minutes") == datetime(2020, 1, 1, 10, 30, tzinfo=timezone.utc)
    assert normalise_date(when, "hours") == datetime(2020, 1, 1, 10, tzinfo=timezone.utc)
    assert normalise_date(when, "days") == datetime(2020, 1, 1, tzinfo=timezone.utc)
    assert normalise_date(when, "fortnights") == when
