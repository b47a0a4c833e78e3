"""Errors raised by the leave engine API and their JSON bodies."""

from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Dict, Iterable, List, Optional


@dataclass
class FieldError:
    """One rejected field of a leave request."""

    field: str
    message: str
    code: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message, "code": self.code}


class APIError(Exception):
    """Base exception rendered as {"error": {"message", "code", ...}}."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        field_errors: Optional[List[FieldError]] = None,
    ):
        self.message = message
        self.details = details
        self.field_errors = field_errors or []
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """JSON body of the error response."""
        error: Dict[str, Any] = {"message": self.message, "code": self.error_code}
        if self.details:
            error["details"] = self.details
        if self.field_errors:
            error["field_errors"] = [fe.to_dict() for fe in self.field_errors]
        return {"error": error}


class LeaveRequestRejected(APIError):
    """A leave request that cannot be turned into a trip."""

    status_code: int = HTTPStatus.BAD_REQUEST
    error_code: str = "validation_error"

    @classmethod
    def from_evaluation(cls, issues: Iterable[Any], missing_fields: Iterable[str]) -> "LeaveRequestRejected":
        """
        Build the rejection from blocking validation issues and missing fields.

        Issues are anything with field, message and code attributes.
        """
        field_errors = [FieldError(issue.field, issue.message, issue.code) for issue in issues]
        field_errors.extend(
            FieldError(name, f"{name} is required", "required") for name in missing_fields
        )
        return cls("Leave request cannot be submitted", field_errors=field_errors)


class UnknownUserError(APIError):
    """The requested user is not part of the workspace snapshot."""

    status_code: int = HTTPStatus.NOT_FOUND
    error_code: str = "not_found"

    def __init__(self, user_id: str):
        super().__init__(
            f"User {user_id} not found",
            details={"resource_type": "User", "identifier": user_id},
        )
        self.user_id = user_id
