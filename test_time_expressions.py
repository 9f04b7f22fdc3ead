"""Tests for natural-language time expression resolution."""

from datetime import datetime, timedelta

import pytest

from conftest import NOW
from core.time_expressions import (
    DEFAULT_SNOOZE_SECONDS, find_time_expression, parse_relative_duration, remove_match,
    resolve_time_expression,
)

NOW_TS = int(NOW.timestamp())  # Monday 2026-10-19 10:00 local


def ts(*args):
    return int(datetime(*args).timestamp())


@pytest.mark.parametrize("token, seconds", [
    ("+30m", 30 * 60),
    ("+2h", 2 * 3600),
    ("+1d", 86400),
    ("+3w", 3 * 7 * 86400),
    ("+15min", 15 * 60),
    ("2 hours", 2 * 3600),
    ("+4 days", 4 * 86400),
])
def test_relative_duration_tokens(token, seconds):
    assert parse_relative_duration(token, NOW) == NOW_TS + seconds
    assert resolve_time_expression(token, NOW) == NOW_TS + seconds


def test_relative_duration_rejects_other_text():
    assert parse_relative_duration("tomorrow", NOW) is None
    assert parse_relative_duration("+2y", NOW) is None
    assert parse_relative_duration("", NOW) is None


def test_resolve_falls_back_to_natural_language():
    assert resolve_time_expression("tomorrow 9am", NOW) == ts(2026, 10, 20, 9, 0)


def test_resolve_defaults_to_one_hour():
    assert resolve_time_expression("whenever you like", NOW) == NOW_TS + DEFAULT_SNOOZE_SECONDS
    assert resolve_time_expression("", NOW) == NOW_TS + DEFAULT_SNOOZE_SECONDS


def test_date_then_time_is_one_match():
    text = "Pay electricity bill @ali #finance tomorrow 5pm"
    match = find_time_expression(text, NOW)
    assert match.text == "tomorrow 5pm"
    assert match.timestamp == ts(2026, 10, 20, 17, 0)
    assert text[match.start:match.end] == "tomorrow 5pm"


def test_time_then_date_is_one_match():
    match = find_time_expression("Standup notes 5pm tomorrow", NOW)
    assert match.text == "5pm tomorrow"
    assert match.timestamp == ts(2026, 10, 20, 17, 0)


def test_time_alone_means_today():
    match = find_time_expression("Call the bank at 3:30pm", NOW)
    assert match.text == "at 3:30pm"
    assert match.timestamp == ts(2026, 10, 19, 15, 30)


def test_connector_words_are_part_of_the_match():
    match = find_time_expression("Submit report by friday", NOW)
    assert match.text == "by friday"
    assert match.timestamp == ts(2026, 10, 23, 12, 0)


def test_weekdays():
    assert find_time_expression("monday", NOW).timestamp == ts(2026, 10, 19, 12, 0)
    assert find_time_expression("next monday", NOW).timestamp == ts(2026, 10, 26, 12, 0)
    assert find_time_expression("this wed", NOW).timestamp == ts(2026, 10, 21, 12, 0)


def test_relative_phrases_keep_the_clock_time():
    assert find_time_expression("in 3 days", NOW).timestamp == ts(2026, 10, 22, 10, 0)
    assert find_time_expression("in an hour", NOW).timestamp == NOW_TS + 3600
    assert find_time_expression("today", NOW).timestamp == NOW_TS
    expected = int((NOW + timedelta(weeks=1)).timestamp())
    assert find_time_expression("next week", NOW).timestamp == expected


def test_calendar_dates():
    assert find_time_expression("Renew passport Oct 21", NOW).timestamp == ts(2026, 10, 21, 12, 0)
    assert find_time_expression("party on 5th of November", NOW).timestamp == ts(2026, 11, 5, 12, 0)
    match = find_time_expression("Launch on 2026-11-02 at 14:00", NOW)
    assert match.text == "on 2026-11-02 at 14:00"
    assert match.timestamp == ts(2026, 11, 2, 14, 0)


def test_end_of_day_and_week():
    assert find_time_expression("ship it eod", NOW).timestamp == ts(2026, 10, 19, 17, 0)
    assert find_time_expression("by end of week", NOW).timestamp == ts(2026, 10, 23, 17, 0)


def test_first_match_wins():
    match = find_time_expression("tomorrow or friday", NOW)
    assert match.text == "tomorrow"
    assert match.timestamp == ts(2026, 10, 20, 10, 0)


def test_no_date_phrase():
    assert find_time_expression("Buy milk", NOW) is None
    assert find_time_expression("maybe later", NOW) is None
    assert find_time_expression("", NOW) is None


def test_remove_match():
    text = "Pay rent tomorrow please"
    match = find_time_expression(text, NOW)
    assert remove_match(text, match) == "Pay rent   please"


@pytest.mark.parametrize("expression", [
    "in 9999999 days",
    "in 200000 months",
    "in 99999999999999999999 days",
    "+99999999999999999w",
])
def test_out_of_range_phrases_fall_back_to_an_hour(expression):
    assert resolve_time_expression(expression, NOW) == NOW_TS + DEFAULT_SNOOZE_SECONDS


def test_out_of_range_phrase_is_not_a_match():
    assert find_time_expression("Plant forest in 5000000 days", NOW) is None
    assert parse_relative_duration("+99999999999999999w", NOW) is None


def test_out_of_range_phrase_does_not_hide_a_later_one():
    match = find_time_expression("in 9999999 days or tomorrow", NOW)
    assert match.text == "tomorrow"
