"""
Typed errors raised by the membership, onboarding and assignment services.

Each error is an HTTPException subclass so services can raise them directly
and FastAPI renders them with the right status code, while callers (and
tests) can still tell a conflict from a permission failure by type.
"""

from typing import Optional

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """Referenced entity is absent."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class PrincipalNotFoundError(NotFoundError):
    """
    Authenticated identity without a directory record.

    Reported separately from 401 because it means registration was never
    completed, not that the caller is anonymous.
    """

    def __init__(self, principal_id: Optional[str] = None):
        self.principal_id = principal_id
        super().__init__(detail="Profile not found; registration is incomplete")


class PatientRecordMissingError(NotFoundError):
    """The principal is a patient but has no PatientRecord yet."""

    def __init__(self, detail: str = "Patient record not found for this user"):
        super().__init__(detail=detail)


class PermissionDeniedError(HTTPException):
    """authorize() returned Deny, or the caller is not the resource owner."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ConflictError(HTTPException):
    """Duplicate active relationship or an invalid state transition."""

    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ValidationError(HTTPException):
    """Missing or malformed input, e.g. an empty practice name."""

    def __init__(self, detail: str = "Invalid input"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class PartialFailureDetected(HTTPException):
    """
    Atomicity violation found during reconciliation.

    Logged and healed where the repair is unambiguous; only raised to the
    caller when it cannot be healed.
    """

    def __init__(self, detail: str = "Inconsistent state detected"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


class StoreTimeoutError(HTTPException):
    """A directory store call exceeded its deadline and was cancelled."""

    def __init__(self, detail: str = "The request timed out, please retry"):
        super().__init__(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=detail)


class StoreUnavailableError(HTTPException):
    """The directory store could not be reached."""

    def __init__(self, detail: str = "Service temporarily unavailable"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
