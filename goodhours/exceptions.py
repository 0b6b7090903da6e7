"""Typed domain errors raised by the service layer.

Each error carries the HTTP status it maps to and a stable ``code`` so API
clients can branch on it; ``main.py`` renders them through one handler.
"""
from typing import Any, Dict, Iterable, Optional


class GoodHoursException(Exception):
    status_code = 500
    code = "error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.detail, "code": self.code}


class UnauthorizedException(GoodHoursException):
    status_code = 401
    code = "unauthorized"


class NotFoundException(GoodHoursException):
    status_code = 404
    code = "not_found"


class InvalidCodeException(NotFoundException):
    code = "invalid_code"


class ForbiddenException(GoodHoursException):
    status_code = 403
    code = "forbidden"


class ValidationException(GoodHoursException):
    status_code = 400
    code = "validation_error"


class InvalidStateException(GoodHoursException):
    """An operation is illegal for the entity's current status.

    ``allowed`` lists the operations that are legal from ``current``.
    """
    status_code = 409
    code = "invalid_state"

    def __init__(self, detail: str, current: Optional[str] = None, allowed: Iterable[str] = ()):
        super().__init__(detail)
        self.current = current
        self.allowed = sorted(allowed)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["current_state"] = self.current
        data["allowed_transitions"] = self.allowed
        return data


class PrematureSubmissionException(InvalidStateException):
    code = "premature_submission"


class CapacityExceededException(GoodHoursException):
    status_code = 409
    code = "capacity_exceeded"


class DuplicateSignupException(GoodHoursException):
    status_code = 409
    code = "duplicate_signup"


class DuplicateRequestException(GoodHoursException):
    status_code = 409
    code = "duplicate_request"


class TransientException(GoodHoursException):
    status_code = 503
    code = "transient_error"
