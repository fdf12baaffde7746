"""Error taxonomy for the coin ledger and payment settlement services."""

from typing import Optional


class CoinServiceError(Exception):
    """Base error. ``message`` is safe to show to the client."""

    status_code = 500
    error_code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, detail: Optional[str] = None):
        self.message = message or self.default_message
        # Internal detail is logged, never returned to the client.
        self.detail = detail
        super().__init__(detail or self.message)


class AuthenticationError(CoinServiceError):
    status_code = 401
    error_code = "AUTHENTICATION_ERROR"
    default_message = "User not authenticated"


class AccountNotFound(CoinServiceError):
    status_code = 404
    error_code = "ACCOUNT_NOT_FOUND"
    default_message = "Account not found"


class InvalidRequest(CoinServiceError):
    status_code = 400
    error_code = "VALIDATION_ERROR"
    default_message = "Invalid or missing fields"


class AccountConflict(CoinServiceError):
    status_code = 409
    error_code = "ACCOUNT_CONFLICT"
    default_message = "An account already uses this email"


class InsufficientCoins(CoinServiceError):
    status_code = 402
    error_code = "INSUFFICIENT_COINS"
    default_message = "Insufficient coins"

    def __init__(self, balance: int = 0, required: int = 0, message: Optional[str] = None):
        self.balance = balance
        self.required = required
        super().__init__(message, detail=f"required={required} available={balance}")


class InvalidAmount(CoinServiceError):
    status_code = 400
    error_code = "INVALID_AMOUNT"
    default_message = "Invalid amount"


class InvalidTransactionType(CoinServiceError):
    status_code = 400
    error_code = "INVALID_TRANSACTION_TYPE"
    default_message = "Invalid transaction type"


class InvalidSignature(CoinServiceError):
    status_code = 400
    error_code = "INVALID_SIGNATURE"
    default_message = "Invalid payment signature"


class InvalidTier(CoinServiceError):
    status_code = 400
    error_code = "INVALID_TIER"
    default_message = "Invalid tier"


class OrderMismatch(CoinServiceError):
    status_code = 400
    error_code = "ORDER_MISMATCH"
    default_message = "Payment does not match the order"


class AlreadyProcessed(CoinServiceError):
    status_code = 409
    error_code = "ALREADY_PROCESSED"
    default_message = "Payment already processed"


class RateLimited(CoinServiceError):
    status_code = 429
    error_code = "RATE_LIMITED"
    default_message = "Rate limit exceeded. Please try again in a minute."


class StorageError(CoinServiceError):
    status_code = 500
    error_code = "STORAGE_ERROR"
    default_message = "Internal server error"


class PaymentProviderError(CoinServiceError):
    status_code = 500
    error_code = "PAYMENT_PROVIDER_ERROR"
    default_message = "Failed to create order"


class LLMProviderError(CoinServiceError):
    status_code = 502
    error_code = "LLM_PROVIDER_ERROR"
    default_message = "AI service unavailable"


_STATUS_BY_CODE = {
    cls.error_code: cls.status_code
    for cls in (
        CoinServiceError,
        AuthenticationError,
        AccountNotFound,
        InvalidRequest,
        AccountConflict,
        InsufficientCoins,
        InvalidAmount,
        InvalidTransactionType,
        InvalidSignature,
        InvalidTier,
        OrderMismatch,
        AlreadyProcessed,
        RateLimited,
        StorageError,
        PaymentProviderError,
        LLMProviderError,
    )
}


def status_for(error_code: Optional[str]) -> int:
    return _STATUS_BY_CODE.get(error_code or "", 500)
