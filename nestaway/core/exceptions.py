"""
Domain errors raised by the service layer.

Each error carries a stable ``kind`` and an HTTP status. The handler
installed in ``nestaway.main`` turns them into
``{"kind": ..., "msg": ..., **details}`` JSON responses.
"""

from typing import Any, Dict, Optional

from fastapi import status


class NestawayError(Exception):
    kind = "InternalError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        **details: Any,
    ):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "msg": self.message, **self.details}


class ValidationFailed(NestawayError):
    kind = "Validation"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Please fill in all required fields"


class Conflict(NestawayError):
    kind = "Conflict"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Email already registered"


class Unauthenticated(NestawayError):
    kind = "Unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class Unverified(NestawayError):
    kind = "Unverified"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Email not verified"


class NotFound(NestawayError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class CodeExpired(NestawayError):
    kind = "Expired"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Code expired"


class InvalidCode(NestawayError):
    kind = "Invalid"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid code"


class InvalidCredentials(NestawayError):
    kind = "InvalidCredentials"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid password"


class UpstreamFailure(NestawayError):
    kind = "UpstreamFailure"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Upstream service unavailable"
