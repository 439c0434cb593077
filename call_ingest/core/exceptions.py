"""
Custom Exceptions for the call ingestion service
Provides structured error handling across the application
"""

from typing import Optional, Dict, Any


class IngestException(Exception):
    """Base exception for all ingestion errors"""

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details
        }


# Request Exceptions
class ValidationError(IngestException):
    """Raised when input validation fails"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details={"field": field} if field else {},
            status_code=400
        )


class WebhookValidationError(IngestException):
    """Raised when webhook signature validation fails"""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(
            message=message,
            error_code="WEBHOOK_VALIDATION_FAILED",
            status_code=401
        )


class RateLimitError(IngestException):
    """Raised when rate limit is exceeded"""

    def __init__(self, retry_after: int = 60):
        super().__init__(
            message="Rate limit exceeded",
            error_code="RATE_LIMIT_EXCEEDED",
            details={"retry_after_seconds": retry_after},
            status_code=429
        )


# Backend Store Exceptions
class StoreError(IngestException):
    """Raised when the backend store rejects or fails an operation"""

    def __init__(self, message: str, table: Optional[str] = None, operation: Optional[str] = None):
        details = {}
        if table:
            details["table"] = table
        if operation:
            details["operation"] = operation
        super().__init__(
            message=f"Store error: {message}",
            error_code="STORE_ERROR",
            details=details,
            status_code=502
        )


class RpcUnavailableError(StoreError):
    """Raised when a server-side function is not available on the store"""

    def __init__(self, function_name: str):
        super().__init__(
            message=f"RPC {function_name} is not available",
            operation="rpc"
        )
        self.error_code = "RPC_UNAVAILABLE"
        self.details["function"] = function_name


class AggregationLimitError(IngestException):
    """Raised when in-process aggregation would exceed its row ceiling"""

    def __init__(self, table: str, max_rows: int):
        super().__init__(
            message=f"Aggregation over {table} exceeds {max_rows} rows",
            error_code="AGGREGATION_LIMIT_EXCEEDED",
            details={"table": table, "max_rows": max_rows},
            status_code=422
        )


# Service Exceptions
class NotificationError(IngestException):
    """Raised when the SMS gateway fails"""

    def __init__(self, message: str, twilio_code: Optional[int] = None):
        super().__init__(
            message=f"Twilio error: {message}",
            error_code="TWILIO_ERROR",
            details={"twilio_code": twilio_code} if twilio_code else {},
            status_code=502
        )
