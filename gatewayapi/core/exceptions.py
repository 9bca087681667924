from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class BaseAPIException(HTTPException):
    """Base exception for API errors"""
    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "error": message,
                "code": error_code,
                "details": self.details,
            },
            headers=headers,
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message


class AuthenticationError(BaseAPIException):
    """Authentication related errors"""
    def __init__(self, message: str = "Not authenticated", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTH_001",
            message=message,
            details=details,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(BaseAPIException):
    """Authorization related errors"""
    def __init__(self, message: str = "Access forbidden", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="AUTH_002",
            message=message,
            details=details
        )


class ValidationError(BaseAPIException):
    """Validation errors"""
    def __init__(self, message: str = "Validation failed", details: Optional[Any] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="VALIDATION_001",
            message=message,
            details=details
        )


class BusinessLogicError(BaseAPIException):
    """Business logic errors"""
    def __init__(self, error_code: str, message: str, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
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


class ConflictError(BaseAPIException):
    """Resource conflict errors"""
    def __init__(self, message: str = "Resource conflict", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="CONFLICT_001",
            message=message,
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


class SplitLimitExceededError(BusinessLogicError):
    """Sum of splits would exceed the transaction amount"""
    def __init__(self, message: str = "Total split amount exceeds the transaction amount", details: Optional[Dict] = None):
        super().__init__(error_code="SPLIT_001", message=message, details=details)


class TrafficShareExceededError(BusinessLogicError):
    """Sum of active variant traffic shares would exceed the maximum"""
    def __init__(self, message: str = "Variant traffic share cannot exceed 100%", details: Optional[Dict] = None):
        super().__init__(error_code="VARIANT_001", message=message, details=details)


class RewardNotClaimableError(BusinessLogicError):
    """Reward is not in a claimable state"""
    def __init__(self, message: str = "Reward cannot be claimed", details: Optional[Dict] = None):
        super().__init__(error_code="REWARD_001", message=message, details=details)


class RewardExpiredError(BusinessLogicError):
    """Reward expired before the claim"""
    def __init__(self, message: str = "Reward expired", details: Optional[Dict] = None):
        super().__init__(error_code="REWARD_002", message=message, details=details)


class CheckoutSlugTakenError(BusinessLogicError):
    """Checkout slugs are globally unique"""
    def __init__(self, message: str = "Checkout slug already exists", details: Optional[Dict] = None):
        super().__init__(error_code="CHECKOUT_001", message=message, details=details)
