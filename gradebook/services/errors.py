# gradebook/services/errors.py
"""
Typed failures raised by the grading pipeline.

Services raise these and never HTTPException; the endpoints translate
them (see gradebook.api.deps.to_http_exception).
"""


class GradingError(Exception):
    pass


class SubmissionValidationError(GradingError):
    """Malformed or empty answer set, or an invalid manual score."""


class DeadlineError(GradingError):
    """Submission attempted outside the allowed window."""


DeadlinePassedError = DeadlineError


class ConflictError(GradingError):
    pass


class AlreadySubmittedError(ConflictError):
    pass


class NotFoundError(GradingError):
    pass


class SourceNotFoundError(NotFoundError):
    """The assignment/exam does not exist or has no linked questions."""


class PermissionDeniedError(GradingError):
    pass
