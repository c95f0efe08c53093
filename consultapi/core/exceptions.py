from fastapi import HTTPException, status
from typing import Optional, Dict, Any, Iterable


class BaseAPIException(HTTPException):
    """Base exception for API errors"""
    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": self.details
                }
            }
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message


class AuthenticationError(BaseAPIException):
    """Authentication related errors"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTH_001",
            message=message,
            details=details
        )


class ForbiddenError(BaseAPIException):
    """Caller lacks every capability the operation accepts"""
    def __init__(
        self,
        message: str = "Access forbidden",
        required: Optional[Iterable[str]] = None,
        details: Optional[Dict] = None,
    ):
        details = dict(details or {})
        if required is not None:
            details["required_capabilities"] = sorted(required)
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="FORBIDDEN",
            message=message,
            details=details
        )


class ValidationError(BaseAPIException):
    """Validation errors"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_001",
            message=message,
            details=details
        )


class NotFoundError(BaseAPIException):
    """Resource not found errors"""
    def __init__(self, message: str = "Resource not found", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND_001",
            message=message,
            details=details
        )


class InvalidTransitionError(BaseAPIException):
    """Requested (from, to) pair is not in the transition table"""
    def __init__(self, current: str, target: str, details: Optional[Dict] = None):
        self.current = current
        self.target = target
        details = dict(details or {})
        details.update({"current_status": current, "target_status": target})
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="INVALID_TRANSITION",
            message=f"Cannot transition from '{current}' to '{target}'",
            details=details
        )


class InvalidStateError(BaseAPIException):
    """Entity is not in the state the operation requires"""
    def __init__(
        self,
        message: str = "Invalid state for this operation",
        current: Optional[str] = None,
        expected: Optional[Iterable[str]] = None,
        details: Optional[Dict] = None,
    ):
        self.current = current
        details = dict(details or {})
        if current is not None:
            details["current_status"] = current
        if expected is not None:
            details["expected_status"] = list(expected)
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="INVALID_STATE",
            message=message,
            details=details
        )


class QuotaExceededError(BaseAPIException):
    """Daily action limit reached"""
    def __init__(self, action: str, used: int, limit: int, remaining: int):
        self.used = used
        self.limit = limit
        self.remaining = remaining
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error_code="QUOTA_EXCEEDED",
            message=f"Daily limit reached for '{action}'",
            details={
                "action": action,
                "used": used,
                "limit": limit,
                "remaining": remaining,
            }
        )


class PaymentNotConfirmedError(BaseAPIException):
    """Reserved payment has not been confirmed by the gateway yet"""
    def __init__(self, message: str = "Payment not confirmed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            error_code="PAYMENT_NOT_CONFIRMED",
            message=message,
            details=details
        )


class InsufficientBalanceError(BaseAPIException):
    """Insufficient balance errors"""
    def __init__(self, available: int, requested: int, message: str = "Insufficient balance"):
        self.available = available
        self.requested = requested
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="BALANCE_001",
            message=message,
            details={"available": available, "requested": requested}
        )


class GatewayNotImplementedError(BaseAPIException):
    """Operation depends on a payment gateway that is not connected"""
    def __init__(self, reason: str, details: Optional[Dict] = None):
        self.reason = reason
        super().__init__(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            error_code="NOT_IMPLEMENTED",
            message=reason,
            details=details
        )


class InternalServerError(BaseAPIException):
    """Internal server errors"""
    def __init__(self, message: str = "Internal server error", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTERNAL_001",
            message=message,
            details=details
        )
