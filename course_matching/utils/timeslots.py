from __future__ import annotations

import re
from datetime import datetime, time, timedelta, timezone
from typing import Any, Iterable, Iterator, List, NamedTuple, Optional, Tuple

from course_matching.config import settings
from course_matching.errors import ValidationError

DAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

_TIME_PAT = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")


def local_tz() -> timezone:
    return timezone(timedelta(hours=settings.TIMEZONE_OFFSET_HOURS))


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC (that is how they come back from SQLite)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_hhmm(value: str) -> str:
    """
    "10:00:00" -> "10:00"
    """
    return minutes_to_time_string(minutes_from_time_string(value))


def minutes_from_time_string(value: str) -> int:
    m = _TIME_PAT.match((value or "").strip())
    if not m:
        raise ValidationError(f"Invalid time: {value!r}, expected HH:MM.")
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise ValidationError(f"Invalid time: {value!r}, expected HH:MM.")
    return hour * 60 + minute


def minutes_to_time_string(total_minutes: int) -> str:
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def sunday_based_weekday(d) -> int:
    # date.weekday() is Monday=0; windows use Sunday=0
    return (d.weekday() + 1) % 7


def _field(obj: Any, name: str):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _with_times(obj: Any, start_time: str, end_time: str):
    if isinstance(obj, dict):
        return {**obj, "start_time": start_time, "end_time": end_time}
    if hasattr(obj, "model_copy"):
        return obj.model_copy(update={"start_time": start_time, "end_time": end_time})
    raise TypeError(f"Cannot copy window of type {type(obj).__name__}")


def is_fencepost_exception(start_minutes: int, end_minutes: int, duration_minutes: int) -> bool:
    """
    Two "almost full" ranges are accepted as a single slot:
    59 minutes on the hour for 60-minute courses, 89 minutes from :30 for 90-minute courses.
    """
    total = end_minutes - start_minutes
    if duration_minutes == 60 and total == 59 and start_minutes % 60 == 0:
        return True
    if duration_minutes == 90 and total == 89 and start_minutes % 60 == 30:
        return True
    return False


def split_window_by_duration(window, duration_minutes: int) -> list:
    """
    {day 1, 10:00-12:00}, 60 -> [{day 1, 10:00-11:00}, {day 1, 11:00-12:00}]
    Every other field of the window is copied onto each slot.
    """
    if not duration_minutes or duration_minutes <= 0:
        raise ValidationError("Course duration must be a positive number of minutes.")

    start = minutes_from_time_string(_field(window, "start_time"))
    end = minutes_from_time_string(_field(window, "end_time"))
    if start >= end:
        raise ValidationError("Check the time range: start must be before end.")

    if is_fencepost_exception(start, end, duration_minutes):
        return [_with_times(window, minutes_to_time_string(start), minutes_to_time_string(end))]

    total = end - start
    if total < duration_minutes:
        raise ValidationError("The time range must be at least as long as the course duration.")
    if total % duration_minutes != 0:
        raise ValidationError("The time range must be divisible by the course duration (duration_minutes).")

    return [
        _with_times(window, minutes_to_time_string(cur), minutes_to_time_string(cur + duration_minutes))
        for cur in range(start, end, duration_minutes)
    ]


def combine_day_and_time(day_of_week: int, time_string: str, reference: datetime) -> datetime:
    """
    Same weekday as the reference -> the reference's own date, even if that time already passed.
    An earlier weekday wraps into the next week.
    """
    minutes = minutes_from_time_string(time_string)
    ref_local = as_utc(reference).astimezone(local_tz())
    diff = (day_of_week - sunday_based_weekday(ref_local)) % 7
    target_date = ref_local.date() + timedelta(days=diff)
    return datetime.combine(target_date, time(minutes // 60, minutes % 60), tzinfo=local_tz())


def next_occurrence(day_of_week: int, time_string: str, reference: datetime) -> datetime:
    """Like combine_day_and_time, but strictly after the reference."""
    target = combine_day_and_time(day_of_week, time_string, reference)
    if target <= as_utc(reference):
        target += timedelta(days=7)
    return target


def build_slots_from_day_time_ranges(ranges: Iterable[Any], reference: Optional[datetime] = None) -> List[Tuple[datetime, datetime]]:
    """
    Free-form (day_of_week, start_time, end_time) requests -> next concrete (start, end).
    Invalid ranges are dropped.
    """
    reference = reference or datetime.now(timezone.utc)
    out = []
    for r in ranges:
        day = _field(r, "day_of_week")
        if not isinstance(day, int) or not 0 <= day <= 6:
            continue
        try:
            start = minutes_from_time_string(_field(r, "start_time"))
            end = minutes_from_time_string(_field(r, "end_time"))
        except ValidationError:
            continue
        if start >= end:
            continue
        # end on the same date as the start, even when "now" falls inside the range
        start_at = next_occurrence(day, minutes_to_time_string(start), reference)
        end_at = start_at + timedelta(minutes=end - start)
        out.append((start_at, end_at))
    return out


class Slot(NamedTuple):
    start: datetime
    end: datetime
    window_id: Optional[int] = None


class SlotSequence:
    """
    Concrete future slots of recurring windows over a rolling horizon.
    Lazy and re-iterable: each iteration walks the horizon again.
    """

    def __init__(self, windows: Iterable[Any], days_ahead: int, duration_minutes: int, from_: datetime):
        self.windows = list(windows)
        self.days_ahead = days_ahead
        self.duration = timedelta(minutes=duration_minutes)
        self.from_ = as_utc(from_)

    def __iter__(self) -> Iterator[Slot]:
        tz = local_tz()
        first_day = self.from_.astimezone(tz).date()
        for offset in range(self.days_ahead):
            day = first_day + timedelta(days=offset)
            dow = sunday_based_weekday(day)
            day_slots = []
            for w in self.windows:
                if _field(w, "day_of_week") != dow:
                    continue
                start = minutes_from_time_string(_field(w, "start_time"))
                end = minutes_from_time_string(_field(w, "end_time"))
                current = datetime.combine(day, time(start // 60, start % 60), tzinfo=tz)
                day_end = datetime.combine(day, time(end // 60, end % 60), tzinfo=tz)
                while current + self.duration <= day_end:
                    if current > self.from_:
                        day_slots.append(Slot(current, current + self.duration, _field(w, "id")))
                    current += self.duration
            day_slots.sort(key=lambda s: s.start)
            yield from day_slots


def generate_slots_from_windows(
    windows: Iterable[Any],
    days_ahead: Optional[int] = None,
    duration_minutes: Optional[int] = None,
    from_: Optional[datetime] = None,
) -> SlotSequence:
    return SlotSequence(
        windows,
        days_ahead=settings.SLOT_HORIZON_DAYS if days_ahead is None else days_ahead,
        duration_minutes=duration_minutes or settings.DEFAULT_DURATION_MINUTES,
        from_=from_ or datetime.now(timezone.utc),
    )


def format_day_time(day_of_week: int, start_time: str, end_time: str) -> str:
    return f"{DAY_LABELS[day_of_week]} {to_hhmm(start_time)} - {to_hhmm(end_time)}"
