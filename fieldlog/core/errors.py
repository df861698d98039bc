# fieldlog/core/errors.py
# Domain errors raised by services; fieldlog.main maps them onto HTTP responses.
from fastapi import status


class FieldLogError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class ValidationFailed(FieldLogError):
    """Input rejected before any store call."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_failed"


class NotFound(FieldLogError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class Conflict(FieldLogError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class StoreError(FieldLogError):
    """A database request failed; the caller's transaction was rolled back."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "store_error"


class AccessError(FieldLogError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "access_error"
    remediation: str | None = None

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.remediation:
            body["remediation"] = self.remediation
        return body


class ProfileMissing(AccessError):
    code = "profile_missing"
    remediation = "POST /api/v1/users/me/profile"


class AccountDeactivated(AccessError):
    code = "account_deactivated"
