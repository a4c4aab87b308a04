from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class StudentFeeNotFoundError(ServiceError):
    """Raised when a payment targets a ledger line that does not exist."""

    def __init__(self, message: str = "Student fee not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)
