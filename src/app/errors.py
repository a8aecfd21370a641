"""Error taxonomy for billing use cases

Use cases return ``Error(code=...)`` results; each code belongs to one
category and the category decides the HTTP status at the API edge.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    BUSINESS_LOGIC = "business_logic"
    EXTERNAL_SERVICE = "external_service"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class ErrorCode:
    # Validation
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_CURRENCY = "INVALID_CURRENCY"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    WEBHOOK_SIGNATURE_INVALID = "WEBHOOK_SIGNATURE_INVALID"

    # Not found
    CLIENT_NOT_FOUND = "CLIENT_NOT_FOUND"
    PACKAGE_NOT_FOUND = "PACKAGE_NOT_FOUND"
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"

    ACCESS_DENIED = "ACCESS_DENIED"

    # Business rules
    PAYMENT_NOT_SUCCEEDED = "PAYMENT_NOT_SUCCEEDED"
    NOT_REFUNDABLE = "NOT_REFUNDABLE"
    REFUND_EXCEEDS_AMOUNT = "REFUND_EXCEEDS_AMOUNT"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    FREE_TRIAL_UNAVAILABLE = "FREE_TRIAL_UNAVAILABLE"

    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"

    # Conflicts
    DUPLICATE_PAYMENT_INTENT = "DUPLICATE_PAYMENT_INTENT"
    CONCURRENT_UPDATE = "CONCURRENT_UPDATE"
    ACCOUNT_EXISTS = "ACCOUNT_EXISTS"

    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_CATEGORIES: dict[str, ErrorCategory] = {
    ErrorCode.INVALID_AMOUNT: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_CURRENCY: ErrorCategory.VALIDATION,
    ErrorCode.VALIDATION_ERROR: ErrorCategory.VALIDATION,
    ErrorCode.WEBHOOK_SIGNATURE_INVALID: ErrorCategory.VALIDATION,
    ErrorCode.CLIENT_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.PACKAGE_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.TRANSACTION_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.ACCESS_DENIED: ErrorCategory.FORBIDDEN,
    ErrorCode.PAYMENT_NOT_SUCCEEDED: ErrorCategory.BUSINESS_LOGIC,
    ErrorCode.NOT_REFUNDABLE: ErrorCategory.BUSINESS_LOGIC,
    ErrorCode.REFUND_EXCEEDS_AMOUNT: ErrorCategory.BUSINESS_LOGIC,
    ErrorCode.INSUFFICIENT_CREDITS: ErrorCategory.BUSINESS_LOGIC,
    ErrorCode.FREE_TRIAL_UNAVAILABLE: ErrorCategory.BUSINESS_LOGIC,
    ErrorCode.EXTERNAL_SERVICE_ERROR: ErrorCategory.EXTERNAL_SERVICE,
    ErrorCode.DUPLICATE_PAYMENT_INTENT: ErrorCategory.CONFLICT,
    ErrorCode.CONCURRENT_UPDATE: ErrorCategory.CONFLICT,
    ErrorCode.ACCOUNT_EXISTS: ErrorCategory.CONFLICT,
    ErrorCode.INTERNAL_ERROR: ErrorCategory.INTERNAL,
}


def category_of(code: str) -> ErrorCategory:
    return ERROR_CATEGORIES.get(code, ErrorCategory.INTERNAL)
