# gradebook/api/deps.py
from fastapi import HTTPException, status

from gradebook.core.clock import Clock, utcnow
from gradebook.services.errors import (
    ConflictError,
    DeadlineError,
    GradingError,
    NotFoundError,
    PermissionDeniedError,
    SubmissionValidationError,
)

_STATUS_BY_ERROR = (
    (SubmissionValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (DeadlineError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
)


def get_clock() -> Clock:
    """服务端时钟，测试里通过 dependency_overrides 固定“现在”"""
    return utcnow


def to_http_exception(exc: GradingError) -> HTTPException:
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
