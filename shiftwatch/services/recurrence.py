# shiftwatch/services/recurrence.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shiftwatch.core.config import get_settings
from shiftwatch.models.schedule import Schedule
from shiftwatch.services.errors import ValidationFailed

logger = logging.getLogger(__name__)

UTC = timezone.utc

MONTH_NAMES = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}
WEEKDAY_NAMES = {
    "SUN": 0, "MON": 1, "TUE": 2, "WED": 3, "THU": 4, "FRI": 5, "SAT": 6,
}

# Longest month length per month, Feb 29 included (leap years exist).
_MAX_MONTH_DAYS = {
    1: 31, 2: 29, 3: 31, 4: 30, 5: 31, 6: 30,
    7: 31, 8: 31, 9: 30, 10: 31, 11: 30, 12: 31,
}


def _parse_value(token: str, low: int, high: int, names: dict[str, int], field: str) -> int:
    upper = token.upper()
    if upper in names:
        return names[upper]
    if not token.isdigit():
        raise ValidationFailed(f"Invalid value '{token}' in {field} field.")
    value = int(token)
    if value < low or value > high:
        raise ValidationFailed(
            f"Value {value} out of range {low}-{high} in {field} field."
        )
    return value


def _parse_field(
    text: str,
    low: int,
    high: int,
    field: str,
    names: dict[str, int] | None = None,
    allow_question_mark: bool = False,
) -> set[int]:
    """
    Parse one cron field into the set of values it enumerates.

    Supported forms: `*`, `a`, `a-b`, `*/n`, `a-b/n`, `a/n` and comma
    separated lists of them. Named values (JAN, MON, ...) are accepted where
    `names` is given.
    """
    names = names or {}
    values: set[int] = set()

    for part in text.split(","):
        if not part:
            raise ValidationFailed(f"Empty list element in {field} field.")

        step = 1
        base = part
        if "/" in part:
            base, step_text = part.split("/", 1)
            if not step_text.isdigit() or int(step_text) == 0:
                raise ValidationFailed(f"Invalid step '{step_text}' in {field} field.")
            step = int(step_text)

        if base == "*" or (base == "?" and allow_question_mark):
            start, end = low, high
        elif "-" in base:
            first, last = base.split("-", 1)
            start = _parse_value(first, low, high, names, field)
            end = _parse_value(last, low, high, names, field)
            if start > end:
                raise ValidationFailed(f"Descending range '{base}' in {field} field.")
        else:
            start = _parse_value(base, low, high, names, field)
            # "a/n" means every n-th value starting at a.
            end = high if "/" in part else start

        values.update(range(start, end + 1, step))

    return values


@dataclass(frozen=True)
class CronRule:
    """
    A parsed five-field cron rule: minute, hour, day-of-month, month and
    day-of-week (0 = Sunday).

    Day-of-month and day-of-week are OR-combined, unless one of them is the
    bare wildcard (`*` or `?`), in which case only the other one constrains
    the day.
    """

    source: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days_of_month: frozenset[int]
    months: frozenset[int]
    days_of_week: frozenset[int]
    any_day_of_month: bool
    any_day_of_week: bool

    @classmethod
    def parse(cls, text: str) -> "CronRule":
        """
        Parse `text`, raising ValidationFailed when it is malformed or when
        it can never match a calendar day (e.g. `0 0 30 2 *`).
        """
        fields = (text or "").split()
        if len(fields) != 5:
            raise ValidationFailed(
                f"Recurrence rule '{text}' must have exactly 5 fields "
                "(minute hour day-of-month month day-of-week)."
            )
        minute, hour, dom, month, dow = fields

        weekdays = _parse_field(
            dow, 0, 7, "day-of-week", WEEKDAY_NAMES, allow_question_mark=True
        )
        rule = cls(
            source=" ".join(fields),
            minutes=frozenset(_parse_field(minute, 0, 59, "minute")),
            hours=frozenset(_parse_field(hour, 0, 23, "hour")),
            days_of_month=frozenset(
                _parse_field(dom, 1, 31, "day-of-month", allow_question_mark=True)
            ),
            months=frozenset(_parse_field(month, 1, 12, "month", MONTH_NAMES)),
            days_of_week=frozenset(d % 7 for d in weekdays),
            any_day_of_month=dom in ("*", "?"),
            any_day_of_week=dow in ("*", "?"),
        )

        if not rule.can_match():
            raise ValidationFailed(
                f"Recurrence rule '{text}' never matches any calendar day."
            )
        return rule

    def can_match(self) -> bool:
        """Whether at least one real calendar day satisfies the day fields."""
        if not self.any_day_of_week:
            # Every month contains every weekday.
            return True
        return any(
            day <= _MAX_MONTH_DAYS[month]
            for month in self.months
            for day in self.days_of_month
        )

    def matches_day(self, day: date) -> bool:
        if day.month not in self.months:
            return False

        dom_match = day.day in self.days_of_month
        dow_match = day.isoweekday() % 7 in self.days_of_week

        if self.any_day_of_month or self.any_day_of_week:
            return dom_match and dow_match
        return dom_match or dow_match

    @property
    def times(self) -> list[time]:
        """All (hour, minute) pairs of the rule in ascending order."""
        return [time(h, m) for h in sorted(self.hours) for m in sorted(self.minutes)]


@lru_cache(maxsize=256)
def parse_rule(text: str) -> CronRule:
    """Cached CronRule.parse; rules are immutable once parsed."""
    return CronRule.parse(text)


def load_timezone(name: str) -> ZoneInfo:
    """
    Return the ZoneInfo for `name`; raises ValidationFailed for unknown zones.
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationFailed(f"Unknown timezone '{name}'.") from exc


def schedule_timezone(schedule: Schedule) -> ZoneInfo:
    """
    Timezone in which the schedule's rule is evaluated.

    Schedules without a timezone, or with one this host does not know, use
    DEFAULT_TIMEZONE.
    """
    default_name = get_settings().DEFAULT_TIMEZONE
    name = schedule.timezone or default_name
    try:
        return load_timezone(name)
    except ValidationFailed:
        logger.warning(
            "Schedule %s has unknown timezone %r; falling back to %s",
            schedule.id,
            name,
            default_name,
        )
        return load_timezone(default_name)


def as_utc(value: datetime) -> datetime:
    """
    Normalize a timestamp to aware UTC at whole-second precision.

    Naive values are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).replace(microsecond=0)


def shift_duration(schedule: Schedule) -> timedelta:
    minutes = schedule.duration_minutes
    if minutes is None:
        minutes = get_settings().DEFAULT_SHIFT_DURATION_MINUTES
    if minutes <= 0:
        raise ValidationFailed(
            f"Schedule {schedule.id} has a non-positive duration ({minutes} minutes)."
        )
    return timedelta(minutes=minutes)


def _local_midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)


@dataclass(frozen=True)
class Occurrence:
    """
    One concrete shift of a schedule.

    Two occurrences are the same slot iff `schedule_id` and `start` are equal;
    `start` is always aware UTC at whole-second precision.
    """

    schedule_id: int
    start: datetime
    end: datetime

    @property
    def key(self) -> tuple[int, datetime]:
        return (self.schedule_id, self.start)


class Expansion:
    """
    Lazy, restartable sequence of a schedule's occurrences within
    [window_start, window_end).

    Every call to `iter()` walks the schedule's local calendar days from the
    start again, so the same Expansion can be consumed any number of times
    with identical results.
    """

    def __init__(
        self,
        schedule_id: int,
        rule: CronRule,
        tz: ZoneInfo,
        duration: timedelta,
        window_start: datetime,
        window_end: datetime,
        limit: int,
    ) -> None:
        self.schedule_id = schedule_id
        self.rule = rule
        self.tz = tz
        self.duration = duration
        self.window_start = window_start
        self.window_end = window_end
        self.limit = limit

    def __iter__(self) -> Iterator[Occurrence]:
        if self.window_start >= self.window_end or self.limit <= 0:
            return

        first_day = self.window_start.astimezone(self.tz).date()
        last_day = self.window_end.astimezone(self.tz).date()
        times = self.rule.times
        emitted = 0
        previous: datetime | None = None

        day = first_day
        while day <= last_day:
            if self.rule.matches_day(day):
                for local_time in times:
                    local = datetime.combine(day, local_time, tzinfo=self.tz)
                    start = local.astimezone(UTC)

                    # Wall-clock times inside a spring-forward gap do not exist.
                    if start.astimezone(self.tz).replace(tzinfo=None) != local.replace(tzinfo=None):
                        continue
                    if start < self.window_start:
                        continue
                    if start >= self.window_end:
                        return
                    if previous is not None and start <= previous:
                        continue

                    yield Occurrence(
                        schedule_id=self.schedule_id,
                        start=start,
                        end=start + self.duration,
                    )
                    previous = start
                    emitted += 1
                    if emitted >= self.limit:
                        return
            day += timedelta(days=1)

    def __repr__(self) -> str:
        return (
            f"<Expansion schedule_id={self.schedule_id} rule={self.rule.source!r} "
            f"window=[{self.window_start.isoformat()}, {self.window_end.isoformat()})>"
        )


def resolve_limit(limit: int | None) -> int:
    """
    Translate a caller-supplied limit into the effective cap.

    Rules
    -----
    - None or 0  => DEFAULT_SLOT_LIMIT
    - negative   => ValidationFailed
    """
    if limit is None or limit == 0:
        return get_settings().DEFAULT_SLOT_LIMIT
    if limit < 0:
        raise ValidationFailed("limit must be zero or a positive integer.")
    return limit


def effective_window(
    schedule: Schedule,
    tz: ZoneInfo,
    window_start: datetime,
    window_end: datetime,
) -> tuple[datetime, datetime]:
    """
    Intersect [window_start, window_end) with the schedule's active dates.

    Active dates are whole local calendar days: start_date begins at local
    00:00 and end_date ends after local 23:59:59. The result may be empty
    (start >= end).
    """
    start = window_start
    end = window_end

    if schedule.start_date is not None:
        start = max(start, _local_midnight(schedule.start_date, tz))
    if schedule.end_date is not None:
        end = min(end, _local_midnight(schedule.end_date + timedelta(days=1), tz))

    return start, end


def expand(
    schedule: Schedule,
    window_start: datetime,
    window_end: datetime,
    limit: int | None = None,
) -> Expansion:
    """
    Expand a schedule into its occurrences inside a query window.

    Parameters
    ----------
    schedule:
        Schedule whose `cron_expr` is evaluated in its own timezone.
    window_start, window_end:
        Query window. The end is exclusive, except that an end falling
        exactly on local midnight of the schedule's timezone includes that
        whole calendar day.
    limit:
        Maximum number of occurrences; 0 or None means DEFAULT_SLOT_LIMIT.

    Returns
    -------
    Expansion
        Restartable iterable of Occurrence in strictly increasing start order.
        A window with start >= end yields nothing.
    """
    cap = resolve_limit(limit)
    rule = parse_rule(schedule.cron_expr)
    tz = schedule_timezone(schedule)
    duration = shift_duration(schedule)

    start_utc = as_utc(window_start)
    end_utc = as_utc(window_end)

    if start_utc < end_utc:
        local_end = end_utc.astimezone(tz)
        if local_end.time() == time.min:
            end_utc = _local_midnight(local_end.date() + timedelta(days=1), tz)

    start_utc, end_utc = effective_window(schedule, tz, start_utc, end_utc)

    return Expansion(schedule.id, rule, tz, duration, start_utc, end_utc, cap)


def is_occurrence(schedule: Schedule, start: datetime) -> bool:
    """
    Whether `start` is a time the schedule produces, inside its active dates.

    Only the local calendar day containing `start` is expanded.
    """
    start_utc = as_utc(start)
    rule = parse_rule(schedule.cron_expr)
    tz = schedule_timezone(schedule)
    day = start_utc.astimezone(tz).date()

    day_start, day_end = effective_window(
        schedule,
        tz,
        _local_midnight(day, tz),
        _local_midnight(day + timedelta(days=1), tz),
    )
    expansion = Expansion(
        schedule.id,
        rule,
        tz,
        shift_duration(schedule),
        day_start,
        day_end,
        len(rule.times),
    )
    return any(occurrence.start == start_utc for occurrence in expansion)
