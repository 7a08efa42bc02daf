"""Recurrence expressions to APScheduler triggers.

Accepted forms:
    * five-field crontab            ``0 3 * * *``
    * six-field cron, seconds first ``0 0 3 * * *``
    * descriptors                   ``@daily``, ``@hourly`` ...
    * fixed interval                ``@every 1h30m``

Day-of-week numbers follow crontab: 0 and 7 are Sunday.
"""

from __future__ import annotations
import re

from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..exceptions import ConfigurationError

DESCRIPTORS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * sun",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}
DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")

WEEKDAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


def parse_duration(text: str) -> float:
    """Parse a duration such as ``1h30m`` or ``90s`` into seconds."""
    text = text.strip()
    position = 0
    seconds = 0.0
    for match in DURATION_PART.finditer(text):
        if match.start() != position:
            break
        seconds += float(match.group(1)) * DURATION_UNITS[match.group(2)]
        position = match.end()
    if not text or position != len(text):
        raise ConfigurationError(f"Invalid duration: '{text}'")
    if seconds <= 0:
        raise ConfigurationError(f"Duration must be positive: '{text}'")
    return seconds


def _weekday(token: str) -> int:
    """Crontab weekday number 0-7 (0 and 7 are Sunday); names are accepted."""
    token = token.lower()
    if token in WEEKDAY_NAMES:
        return WEEKDAY_NAMES.index(token)
    if not token.isdigit() or int(token) > 7:
        raise ValueError(f"invalid day of week '{token}'")
    return int(token)


def convert_day_of_week(text: str) -> str:
    """
    Rewrite a crontab day-of-week field as APScheduler weekday names.

    Crontab counts from Sunday and APScheduler from Monday, so numbers are
    expanded to names and never passed through.
    """
    if text == "*":
        return text
    days = set()
    for item in text.split(","):
        span, _, step = item.partition("/")
        if step and (not step.isdigit() or int(step) == 0):
            raise ValueError(f"invalid step in day of week '{item}'")
        if span == "*":
            first, last = 0, 6
        elif "-" in span:
            start, _, end = span.partition("-")
            first, last = _weekday(start), _weekday(end)
        elif step:
            first, last = _weekday(span), 6
        else:
            first = last = _weekday(span)
        if first > last:
            raise ValueError(f"invalid day of week range '{item}'")
        days.update(day % 7 for day in range(first, last + 1, int(step or 1)))
    if len(days) == len(WEEKDAY_NAMES):
        return "*"
    return ",".join(WEEKDAY_NAMES[day] for day in sorted(days))


def build_trigger(expression: str) -> BaseTrigger:
    """Build a trigger; malformed expressions raise ConfigurationError."""
    expression = expression.strip()
    if not expression:
        raise ConfigurationError("Empty cron expression")

    if expression.startswith("@every"):
        return IntervalTrigger(seconds=parse_duration(expression[len("@every"):]))

    crontab = DESCRIPTORS.get(expression.lower(), expression)
    if crontab.startswith("@"):
        raise ConfigurationError(f"Unknown cron descriptor: '{expression}'")

    # "?" (no specific value) is accepted as a synonym for "*"
    parts = ["*" if part == "?" else part for part in crontab.split()]
    if len(parts) == 5:
        parts.insert(0, "0")
    if len(parts) != 6:
        raise ConfigurationError(
            f"Invalid cron expression '{expression}': expected 5 or 6 fields, got {len(parts)}"
        )
    second, minute, hour, day, month, day_of_week = parts
    try:
        return CronTrigger(
            second=second,
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=convert_day_of_week(day_of_week),
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid cron expression '{expression}': {e}") from e
