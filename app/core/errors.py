"""
Domain errors raised by the membership services.

Each error carries a stable ``code`` (the kind surfaced to the admin console)
and the HTTP status the API renders it with.
"""

from typing import Any, Dict, Optional

from fastapi import status


class MembershipError(Exception):
    """Base exception for membership lifecycle and matching rejections."""

    code = "MembershipError"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.code, "detail": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidInput(MembershipError):
    code = "InvalidInput"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidState(MembershipError):
    code = "InvalidState"
    status_code = status.HTTP_409_CONFLICT


class NotFound(MembershipError):
    code = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class NoValidTarget(MembershipError):
    code = "NoValidTarget"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotEligible(MembershipError):
    code = "NotEligible"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InsufficientCredit(MembershipError):
    code = "InsufficientCredit"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class Expired(MembershipError):
    code = "Expired"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class Conflict(MembershipError):
    """The member changed underneath us. Refetch and retry once."""

    code = "Conflict"
    status_code = status.HTTP_409_CONFLICT


class DuplicateMemberNo(MembershipError):
    code = "DuplicateMemberNo"
    status_code = status.HTTP_409_CONFLICT


class Unavailable(MembershipError):
    """The database timed out or refused the lock. Transient."""

    code = "Unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
