"""
Error taxonomy shared by every layer of the order service.

Every failure the service reports to a caller is one of the classes below.
Each carries a stable machine-readable ``error_code`` and the HTTP status
it maps to, so route handlers never build error payloads by hand; the
exception handlers in ``main.py`` turn them into JSON responses.
"""

from enum import Enum
from typing import Optional

from starlette import status


class ErrorKind(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    INVALID_ACTION = "INVALID_ACTION"
    DEPENDENCY_UNAVAILABLE = "DEPENDENCY_UNAVAILABLE"
    DEPENDENCY_TIMEOUT = "DEPENDENCY_TIMEOUT"
    PERSISTENCE = "PERSISTENCE"


class ServiceError(Exception):
    """
    Base class for all expected service failures.

    Args:
        message: Human-readable message returned to the client
        error_code: Stable code clients can branch on (defaults per subclass)
        details: Internal context, only exposed outside production
    """
    kind: ErrorKind
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[str] = None):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details
        super().__init__(message)


class InvalidInputError(ServiceError):
    kind = ErrorKind.INVALID_INPUT
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "INVALID_INPUT"


class UnauthorizedError(ServiceError):
    kind = ErrorKind.UNAUTHORIZED
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "AUTH_FAILED"


class ForbiddenError(ServiceError):
    kind = ErrorKind.FORBIDDEN
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "UNAUTHORIZED"


class NotFoundError(ServiceError):
    kind = ErrorKind.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class InvalidStateError(ServiceError):
    kind = ErrorKind.INVALID_STATE
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "INVALID_STATE"

    def __init__(self, current_state: str, action: str, message: Optional[str] = None):
        self.current_state = current_state
        self.action = action
        super().__init__(
            message or f"Cannot {action} an order in state {current_state}",
            details=f"current_state={current_state} action={action}"
        )


class InvalidActionError(ServiceError):
    kind = ErrorKind.INVALID_ACTION
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "INVALID_ACTION"


class DependencyUnavailableError(ServiceError):
    kind = ErrorKind.DEPENDENCY_UNAVAILABLE
    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "DEPENDENCY_UNAVAILABLE"


class DependencyTimeoutError(ServiceError):
    kind = ErrorKind.DEPENDENCY_TIMEOUT
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_code = "DEPENDENCY_TIMEOUT"


class PersistenceError(ServiceError):
    kind = ErrorKind.PERSISTENCE
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "PERSISTENCE_ERROR"
