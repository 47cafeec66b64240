import re
from collections.abc import Iterable
from datetime import UTC, datetime

from elderease.exceptions import InvalidTimeRangeError
from elderease.models import Assignment, AssignmentStatus

NO_TIME = -1

ACTIVE_ASSIGNMENT_STATUSES = frozenset(
    {AssignmentStatus.ASSIGNED, AssignmentStatus.COMPLETED}
)

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def to_minutes(time24: str | None) -> int:
    """Minutes since midnight for an "HH:MM" string, or NO_TIME."""
    if not time24:
        return NO_TIME
    match = _TIME_RE.match(time24)
    if match is None:
        return NO_TIME
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return NO_TIME
    return hours * 60 + minutes


def has_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    # half-open: back-to-back ranges do not overlap
    return a_start < b_end and b_start < a_end


def is_end_after_start(start: str | None, end: str | None) -> bool:
    s, e = to_minutes(start), to_minutes(end)
    if s == NO_TIME or e == NO_TIME:
        return False
    return e > s


def time_range(start: str | None, end: str | None, *, label: str) -> tuple[int, int]:
    s, e = to_minutes(start), to_minutes(end)
    if s == NO_TIME or e == NO_TIME:
        raise InvalidTimeRangeError(f"{label} has no valid time range.")
    return s, e


def day_marker(moment: datetime) -> int:
    """Epoch millis of midnight UTC on the day of ``moment``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    midnight = moment.astimezone(UTC).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return int(midnight.timestamp() * 1000)


def find_conflicts(
    service_date_ts: int,
    start_time: str | None,
    end_time: str | None,
    assignments: Iterable[Assignment],
) -> list[Assignment]:
    """
    Active assignments on the same day whose time range overlaps the
    candidate range. Unparseable times on either side raise
    InvalidTimeRangeError rather than being treated as free or busy.
    """
    start, end = time_range(start_time, end_time, label="Requested visit")

    conflicts = []
    for a in assignments:
        if a.status not in ACTIVE_ASSIGNMENT_STATUSES:
            continue
        if a.service_date_ts != service_date_ts:
            continue
        b_start, b_end = time_range(
            a.start_time, a.end_time, label=f"Assignment {a.id}"
        )
        if has_overlap(start, end, b_start, b_end):
            conflicts.append(a)
    return conflicts
