"""Natural-language time expression resolution.

Turns phrases like "tomorrow 5pm", "next friday", "in 3 days", "Oct 21" or
"+2h" into absolute epoch-second timestamps. Times are interpreted in the
server's local time.
"""

import re
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta, MO, TU, WE, TH, FR, SA, SU

logger = logging.getLogger(__name__)

DEFAULT_SNOOZE_SECONDS = 60 * 60

# 9999-12-31T23:59:59Z, the last instant a datetime can hold
MAX_TIMESTAMP = 253402300799

UNIT_SECONDS = {
    'm': 60,
    'h': 60 * 60,
    'd': 24 * 60 * 60,
    'w': 7 * 24 * 60 * 60,
}

WEEKDAYS = {'mon': MO, 'tue': TU, 'wed': WE, 'thu': TH, 'fri': FR, 'sat': SA, 'sun': SU}

MONTHS = (r"january|february|march|april|may|june|july|august|september|october|november|december"
          r"|jan|feb|mar|apr|jun|jul|aug|sept|sep|oct|nov|dec")

RELATIVE_TOKEN = re.compile(
    r"^\+?(\d+)\s*(m|mins?|minutes?|h|hrs?|hours?|d|days?|w|wks?|weeks?)$", re.IGNORECASE
)

# Words that introduce a date; consumed with the date so they don't end up in titles
CONNECTOR = r"(?:\b(?:due\s+(?:on|by)|due|by|on|at|before)\s+)?"

TIME_BODY = (r"(?P<clock>\b(?:(?:1[0-2]|0?[1-9])(?::[0-5]\d)?\s*(?:am|pm|a\.m\.|p\.m\.)"
             r"|(?:[01]?\d|2[0-3]):[0-5]\d|noon|midnight))(?!\w)")

TIME_RULE = re.compile(CONNECTOR + TIME_BODY, re.IGNORECASE)
TIME_AFTER = re.compile(r"\s*,?\s*" + CONNECTOR + TIME_BODY, re.IGNORECASE)
CLOCK = re.compile(
    r"^(?:(?P<h12>\d{1,2})(?::(?P<m12>\d{2}))?\s*(?P<ampm>am|pm|a\.m\.|p\.m\.)"
    r"|(?P<h24>\d{1,2}):(?P<m24>\d{2})|(?P<word>noon|midnight))$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class TimeMatch:
    """A date/time phrase found in free text."""
    text: str
    start: int
    end: int
    timestamp: int


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now()


def _noon(day: datetime) -> datetime:
    return day.replace(hour=12, minute=0, second=0, microsecond=0)


def _at_five(day: datetime) -> datetime:
    return day.replace(hour=17, minute=0, second=0, microsecond=0)


def _resolve_day_word(m, now):
    word = m.group('body').lower()
    if word == 'today':
        return now
    if word == 'tonight':
        return now.replace(hour=22, minute=0, second=0, microsecond=0)
    if word == 'day after tomorrow':
        return now + timedelta(days=2)
    return now + timedelta(days=1)


def _resolve_in(m, now):
    raw = m.group('n').lower()
    amount = 1 if raw in ('a', 'an', 'one') else int(raw)
    unit = m.group('unit').lower()
    if unit.startswith('mo'):
        return now + relativedelta(months=amount)
    if unit.startswith('mi'):
        return now + timedelta(minutes=amount)
    return now + timedelta(seconds=amount * UNIT_SECONDS[unit[0]])


def _resolve_next_period(m, now):
    if m.group('period').lower() == 'week':
        return now + timedelta(weeks=1)
    return now + relativedelta(months=1)


def _resolve_end_of(m, now):
    body = m.group('body').lower()
    period = (m.group('period') or '').lower()
    if body == 'eod' or period == 'day':
        return _at_five(now)
    if body == 'eow' or period == 'week':
        return _at_five(now + relativedelta(weekday=FR(+1)))
    return _at_five(now + relativedelta(day=31))


def _resolve_weekday(m, now):
    weekday = WEEKDAYS[m.group('day').lower()[:3]]
    modifier = (m.group('mod') or '').lower()
    if modifier == 'next':
        # strictly after today
        return _noon(now + relativedelta(days=1, weekday=weekday(+1)))
    return _noon(now + relativedelta(weekday=weekday(+1)))


def _resolve_calendar_date(m, now):
    try:
        return date_parser.parse(m.group('body'), default=_noon(now))
    except (ValueError, OverflowError) as e:
        logger.debug(f"Could not parse date {m.group('body')!r}: {e}")
        return None


DATE_RULES = [
    (re.compile(CONNECTOR + r"\b(?P<body>day after tomorrow|today|tonight|tomorrow)\b", re.IGNORECASE),
     _resolve_day_word),
    (re.compile(CONNECTOR + r"\b(?P<body>in\s+(?P<n>\d+|an?|one)\s+"
                r"(?P<unit>minutes?|mins?|hours?|hrs?|days?|weeks?|months?))\b", re.IGNORECASE),
     _resolve_in),
    (re.compile(CONNECTOR + r"\b(?P<body>next\s+(?P<period>week|month))\b", re.IGNORECASE),
     _resolve_next_period),
    (re.compile(CONNECTOR + r"\b(?P<body>(?:the\s+)?end\s+of\s+(?:the\s+)?(?P<period>day|week|month)|eod|eow)\b",
                re.IGNORECASE),
     _resolve_end_of),
    (re.compile(CONNECTOR + r"\b(?P<body>(?:(?P<mod>next|this)\s+)?"
                r"(?P<day>monday|tuesday|wednesday|thursday|friday|saturday|sunday))\b", re.IGNORECASE),
     _resolve_weekday),
    (re.compile(CONNECTOR + r"\b(?P<body>(?P<mod>next|this)\s+(?P<day>mon|tues?|wed|thu(?:rs?)?|fri|sat|sun))\b",
                re.IGNORECASE),
     _resolve_weekday),
    (re.compile(CONNECTOR + r"\b(?P<body>(?:" + MONTHS + r")\.?\s+\d{1,2}(?:st|nd|rd|th)?(?:,?\s+\d{4})?)\b",
                re.IGNORECASE),
     _resolve_calendar_date),
    (re.compile(CONNECTOR + r"\b(?P<body>\d{1,2}(?:st|nd|rd|th)?\s+(?:of\s+)?(?:" + MONTHS + r")(?:,?\s+\d{4})?)\b",
                re.IGNORECASE),
     _resolve_calendar_date),
    (re.compile(CONNECTOR + r"\b(?P<body>\d{4}-\d{1,2}-\d{1,2})\b"), _resolve_calendar_date),
    (re.compile(CONNECTOR + r"\b(?P<body>\d{1,2}/\d{1,2}(?:/\d{2,4})?)\b"), _resolve_calendar_date),
]


def _clock(value: str):
    """Parse a clock phrase into (hour, minute), or None."""
    m = CLOCK.match(value.strip())
    if not m:
        return None
    if m.group('word'):
        return (12, 0) if m.group('word').lower() == 'noon' else (0, 0)
    if m.group('h24') is not None:
        return int(m.group('h24')), int(m.group('m24'))
    hour = int(m.group('h12')) % 12
    if m.group('ampm').lower().startswith('p'):
        hour += 12
    return hour, int(m.group('m12') or 0)


def _apply_clock(day: datetime, clock) -> datetime:
    hour, minute = clock
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _candidates(text: str):
    found = []
    for index, (pattern, resolver) in enumerate(DATE_RULES):
        for m in pattern.finditer(text):
            found.append((m.start(), -m.end(), index, m, resolver))
    for m in TIME_RULE.finditer(text):
        found.append((m.start(), -m.end(), len(DATE_RULES), m, None))
    found.sort(key=lambda c: c[:3])
    return found


def _date_after(text: str, pos: int):
    ws = re.compile(r"\s+").match(text, pos)
    if not ws:
        return None
    for pattern, resolver in DATE_RULES:
        m = pattern.match(text, ws.end())
        if m:
            return m, resolver
    return None


def find_time_expression(text: str, now: Optional[datetime] = None) -> Optional[TimeMatch]:
    """Find the first date/time phrase in ``text``.

    A date may be followed by a time ("tomorrow 5pm", "friday at 10:30") and a
    time by a date ("5pm tomorrow"); both form a single match. Dates without a
    time keep the current time for relative words (today, tomorrow, in 3 days)
    and noon for calendar dates and weekdays. Returns None when nothing matches.
    """
    if not text:
        return None
    now = _now(now)

    for start, neg_end, _, m, resolver in _candidates(text):
        try:
            resolved = _resolve_candidate(text, m, resolver, -neg_end, now)
        except (OverflowError, ValueError) as e:
            # "in 9999999 days" and friends land outside the datetime range
            logger.debug(f"Ignoring out-of-range time phrase {m.group(0)!r}: {e}")
            continue
        if resolved is None:
            continue
        end, timestamp = resolved
        return TimeMatch(text=text[start:end], start=start, end=end, timestamp=timestamp)

    return None


def _resolve_candidate(text: str, m, resolver, end: int, now: datetime):
    """Resolve one candidate to (end, timestamp), or None when it doesn't apply."""
    if resolver is None:
        clock = _clock(m.group('clock'))
        if clock is None:
            return None
        day = now
        following = _date_after(text, end)
        if following:
            date_match, date_resolver = following
            resolved = date_resolver(date_match, now)
            if resolved is not None:
                day = resolved
                end = date_match.end()
        when = _apply_clock(day, clock)
    else:
        when = resolver(m, now)
        if when is None:
            return None
        time_match = TIME_AFTER.match(text, end)
        if time_match:
            clock = _clock(time_match.group('clock'))
            if clock is not None:
                when = _apply_clock(when, clock)
                end = time_match.end()

    return end, int(when.timestamp())


def remove_match(text: str, match: TimeMatch) -> str:
    """Return ``text`` with the matched span cut out."""
    return (text[:match.start] + ' ' + text[match.end:]).strip()


def parse_relative_duration(expression: str, now: Optional[datetime] = None) -> Optional[int]:
    """Resolve ``+<n><unit>`` tokens (units m, h, d, w) to ``now + n * unit``.

    Returns None for unrecognized tokens and for results past year 9999.
    """
    m = RELATIVE_TOKEN.match((expression or '').strip())
    if not m:
        return None
    amount = int(m.group(1))
    unit = m.group(2).lower()[0]
    timestamp = int(_now(now).timestamp()) + amount * UNIT_SECONDS[unit]
    if timestamp > MAX_TIMESTAMP:
        logger.info(f"Relative duration {expression!r} is out of range")
        return None
    return timestamp


def resolve_time_expression(expression: str, now: Optional[datetime] = None) -> int:
    """Resolve a snooze/time expression to an epoch timestamp. Never fails.

    Tries a relative duration token first, then general date parsing, and
    finally falls back to one hour from now.
    """
    now = _now(now)
    relative = parse_relative_duration(expression, now)
    if relative is not None:
        return relative

    match = find_time_expression(expression or '', now)
    if match is not None:
        return match.timestamp

    logger.info(f"Could not parse time expression {expression!r}, defaulting to one hour")
    return int(now.timestamp()) + DEFAULT_SNOOZE_SECONDS
