"""
Custom Exception Hierarchy

Structured exceptions shared by the store, the workflow services and the
HTTP layer.
"""
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"

    # Transaction errors (2xxx)
    TRANSACTION_NOT_FOUND = "ERR_2001"
    TRANSACTION_INVALID_STATUS = "ERR_2002"
    TRANSACTION_EMPTY_PROOF = "ERR_2003"

    # User errors (3xxx)
    USER_NOT_FOUND = "ERR_3001"
    NOT_ADMIN = "ERR_3002"

    # External service errors (5xxx)
    TELEGRAM_ERROR = "ERR_5001"
    EXTERNAL_SERVICE_UNAVAILABLE = "ERR_5003"

    # State machine errors (6xxx)
    INVALID_STATE_TRANSITION = "ERR_6001"


class AppException(Exception):
    """Base exception for all application errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
                "details": self.details
            }
        }


class ValidationException(AppException):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )
        if field:
            self.details["field"] = field


class NotFoundException(AppException):
    """Raised when a requested resource is not found"""

    def __init__(
        self,
        resource: str,
        identifier: Any,
        error_code: ErrorCode = ErrorCode.NOT_FOUND
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class TransactionNotFoundError(NotFoundException):
    """Raised when a transaction id does not exist"""

    def __init__(self, transaction_id: int):
        super().__init__(
            resource="Transaction",
            identifier=transaction_id,
            error_code=ErrorCode.TRANSACTION_NOT_FOUND,
        )
        self.transaction_id = transaction_id


class EmptyProofError(ValidationException):
    """Raised when a transaction is created without any evidence attachment"""

    def __init__(self, user_id: int | None = None):
        super().__init__(
            message="A transaction requires at least one proof attachment",
            field="proof_files",
            details={"user_id": user_id} if user_id is not None else None,
            error_code=ErrorCode.TRANSACTION_EMPTY_PROOF,
        )


class TransactionStatusError(AppException):
    """Raised when a transaction is not in the status an operation requires"""

    def __init__(self, transaction_id: int, current_status: str, required_status: str):
        super().__init__(
            message=(
                f"Transaction {transaction_id} has status '{current_status}', "
                f"required '{required_status}'"
            ),
            error_code=ErrorCode.TRANSACTION_INVALID_STATUS,
            status_code=409,
            details={
                "transaction_id": transaction_id,
                "current_status": current_status,
                "required_status": required_status,
            }
        )


class NotAdminError(AppException):
    """Raised when a non-administrator invokes an administrator-only action"""

    def __init__(self, actor_id: int | str | None, action: str):
        super().__init__(
            message=f"Only the administrator can {action}",
            error_code=ErrorCode.NOT_ADMIN,
            status_code=403,
            details={"actor_id": str(actor_id), "action": action}
        )


class ExternalServiceException(AppException):
    """Base exception for external service errors"""

    def __init__(
        self,
        service_name: str,
        message: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=503,
            details=details
        )
        self.details["service"] = service_name


class TelegramError(ExternalServiceException):
    """Raised when the Telegram Bot API call fails"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            service_name="telegram",
            message=f"Telegram API error: {message}",
            error_code=ErrorCode.TELEGRAM_ERROR,
            details=details
        )

    @classmethod
    def from_response(
        cls,
        operation: str,
        response: Any,
        *,
        message: str | None = None,
        max_response_chars: int = 500
    ) -> "TelegramError":
        """
        Build a TelegramError from an HTTP response.

        Args:
            operation: Bot API method name (sendMessage, sendPhoto, ...)
            response: response object (httpx.Response)
            message: explicit message, built from the status code when omitted
            max_response_chars: cap on the stored response body
        """
        status_code = getattr(response, "status_code", None)
        response_text = getattr(response, "text", "") or ""
        return cls(
            message=message or f"{operation} returned status {status_code}",
            details={
                "operation": operation,
                "status_code": status_code,
                "response_text": response_text[:max_response_chars],
            },
        )


class StateMachineException(AppException):
    """Base exception for conversation state machine errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )


class InvalidStateTransitionError(StateMachineException):
    """Raised when a flow step transition is not allowed"""

    def __init__(self, current_state: str | None, target_state: str | None, user_id: int | None = None):
        super().__init__(
            message=f"Invalid transition from '{current_state}' to '{target_state}'",
            error_code=ErrorCode.INVALID_STATE_TRANSITION,
            details={
                "current_state": current_state,
                "target_state": target_state,
                "user_id": user_id
            }
        )
