# gradebook/core/clock.py
from datetime import datetime, timezone
from typing import Callable

# 服务端时钟：所有截止时间/考试窗口判断都用它，绝不用客户端传来的时间
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how due dates and exam start times are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
