# gradebook/workers/queue.py

from typing import Any, Callable

from redis import Redis
from rq import Queue, Retry

from gradebook.core.config import settings

_DEFAULT_QUEUE_NAME = "default"
NOTIFICATIONS_QUEUE_NAME = "notifications"

# 通知任务很轻，超时和重试都给小一点
_NOTIFICATION_JOB_TIMEOUT = 30
_NOTIFICATION_RETRY = Retry(max=3, interval=[10, 30, 60])

_redis_conn: Redis | None = None


def get_redis_connection() -> Redis:
    global _redis_conn
    if _redis_conn is None:
        _redis_conn = Redis.from_url(settings.REDIS_URL)
    return _redis_conn


def get_queue(name: str = _DEFAULT_QUEUE_NAME) -> Queue:
    return Queue(name, connection=get_redis_connection())


def enqueue_job(
    func: Callable[..., Any],
    *args: Any,
    queue_name: str = _DEFAULT_QUEUE_NAME,
    **kwargs: Any,
) -> str:
    """Put ``func(*args)`` on the named queue; extra kwargs go to rq (job_timeout, retry, ...)."""
    q = get_queue(queue_name)
    job = q.enqueue(func, *args, **kwargs)
    return job.id


def enqueue_grade_released_task(submission_id: int) -> str:
    from gradebook.workers.tasks import grade_released_task

    return enqueue_job(
        grade_released_task,
        submission_id,
        queue_name=NOTIFICATIONS_QUEUE_NAME,
        job_timeout=_NOTIFICATION_JOB_TIMEOUT,
        retry=_NOTIFICATION_RETRY,
    )
