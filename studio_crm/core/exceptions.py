from typing import Any, Dict, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def detail(self) -> Any:
        """Payload for HTTPException.detail."""
        return self.message


class ValidationError(ServiceError):
    """Bad recurrence/slot cardinality, malformed day, time, duration or date range."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class NotFoundError(ServiceError):
    """Row is absent or belongs to another organization. The two cases are not distinguished."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ConflictError(ServiceError):
    """Destructive operation blocked by dependent rows. `impact` carries the counts."""

    def __init__(self, message: str, impact: Optional[Dict[str, int]] = None) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)
        self.impact = impact or {}

    @property
    def detail(self) -> Any:
        return {"message": self.message, **self.impact}


class TransientStorageError(ServiceError):
    """Connection or transaction failure. Each call's writes are transactional, so retrying the call is safe."""

    def __init__(self, message: str = "Storage temporarily unavailable, retry the request") -> None:
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)
