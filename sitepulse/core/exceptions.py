"""HTTP-aware exception hierarchy.

Services raise these directly; FastAPI turns them into responses, and the
scheduler treats them like any other failure (log and move on).
"""

from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Missing or malformed input."""

    def __init__(self, detail: str = "Invalid input"):
        super().__init__(status_code=422, detail=detail)


class NotFoundError(HTTPException):
    """Unknown or inactive resource."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    """Request clashes with existing state."""

    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class UnauthorizedError(HTTPException):
    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class ForbiddenError(HTTPException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class TransientStoreError(HTTPException):
    """Storage backend unavailable; callers may try again later."""

    def __init__(self, detail: str = "Storage temporarily unavailable"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
