from typing import Optional

from fastapi import HTTPException, status

CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)
USER_NOT_FOUND_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="User not found",
)


class PolicyError(Exception):
    """
    A request was refused by a moderation or access rule.

    `message` is what the client sees; `reason` is internal detail that only
    goes to the log.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request not allowed"

    def __init__(self, message: Optional[str] = None, reason: Optional[str] = None):
        self.message = message or self.default_message
        self.reason = reason
        super().__init__(self.message)


class NotFound(PolicyError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str = "Resource", reason: Optional[str] = None):
        super().__init__(f"{resource} not found", reason)


class AuthenticationRequired(PolicyError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Please log in to access this resource"


class Forbidden(PolicyError):
    status_code = status.HTTP_403_FORBIDDEN
    # Same text whether the cause was role, ownership or a ban
    default_message = "You do not have permission to perform this action"


class FeatureDisabled(Forbidden):
    def __init__(self, feature: str):
        super().__init__(f"{feature.capitalize()} feature is currently disabled", reason=f"feature {feature} off")


class InvalidState(PolicyError):
    status_code = status.HTTP_400_BAD_REQUEST


class ReferentialConflict(PolicyError):
    status_code = status.HTTP_409_CONFLICT


class ConflictError(PolicyError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "The resource was modified concurrently, please retry"


class MaintenanceActive(PolicyError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "The site is under maintenance"

    def __init__(self, title: Optional[str] = None, message: Optional[str] = None,
                 estimated_time: Optional[str] = None):
        super().__init__(message)
        self.title = title
        self.estimated_time = estimated_time


class InfrastructureError(Exception):
    """Storage failure. Never a policy decision; the caller must not treat it as allow or deny."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Service temporarily unavailable", cause: Optional[Exception] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


# Errors that routes re-raise untouched after rolling back
PASSTHROUGH_ERRORS = (HTTPException, PolicyError, InfrastructureError)
