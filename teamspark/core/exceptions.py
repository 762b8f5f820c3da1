from typing import Any, Dict, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class InvalidInputError(AppException):
    """Malformed input or a request that violates a business rule on its own terms."""
    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"{field}: {message}" if field else message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details={"field": field, **(details or {})} if field else details
        )

class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )

class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions", action: Optional[str] = None, resource: Optional[str] = None):
        if action and message == "Insufficient permissions":
            message = f"You do not have {action} permission for {resource}" if resource else f"You do not have {action} permission"
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED",
            details={"action": action, "resource": resource} if action else None
        )

class NotFoundError(AppException):
    """
    Resource absent.
    Also raised for cross-organization access so callers cannot probe for existence.
    """
    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} (ID: {resource_id}) not found" if resource_id is not None else f"{resource} not found"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, "id": resource_id}
        )

class ConflictError(AppException):
    """Valid request, but the target is in a state that does not allow it."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details
        )

