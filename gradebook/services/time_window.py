# gradebook/services/time_window.py
from datetime import datetime, timedelta

from gradebook.core.clock import as_naive_utc

NOT_STARTED = "not_started"
IN_PROGRESS = "in_progress"
ENDED = "ended"


def exam_end_time(start_time: datetime, duration_minutes: int) -> datetime:
    return as_naive_utc(start_time) + timedelta(minutes=duration_minutes)


def exam_state(start_time: datetime, duration_minutes: int, now: datetime) -> str:
    """
    考试状态实时推算，不落库。

    Both ends of the window are inclusive: a submission stamped exactly at
    ``start_time + duration`` is still in progress. ``now`` must come from
    the server clock.
    """
    start = as_naive_utc(start_time)
    now = as_naive_utc(now)
    if now < start:
        return NOT_STARTED
    if now <= exam_end_time(start, duration_minutes):
        return IN_PROGRESS
    return ENDED


def assignment_closed(due_date: datetime, now: datetime) -> bool:
    # 截止时刻本身仍可提交
    return as_naive_utc(now) > as_naive_utc(due_date)
