"""Application error types."""

from __future__ import annotations


class AppError(Exception):
    """Base error carrying a machine code and a user-facing message."""

    def __init__(
        self, message: str, code: str, user_message: str | None = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.user_message = user_message or message


class AuthenticationError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(
            message, "AUTH_ERROR", "Authentication failed. Please try again."
        )


class RateLimitError(AuthenticationError):
    """Raised when too many failed sign-in attempts were made."""

    def __init__(self, message: str, retry_after: float = 0.0) -> None:
        super().__init__(message)
        self.code = "RATE_LIMITED"
        self.user_message = message
        self.retry_after = retry_after


class CaptureError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(
            message,
            "CAPTURE_ERROR",
            "Failed to capture receipt. Please try again.",
        )


class ProcessingError(AppError):
    def __init__(self, message: str, code: str = "PROCESSING_ERROR") -> None:
        super().__init__(
            message, code, "Failed to process receipt. Please try again."
        )


class ExtractionError(ProcessingError):
    """Text recognition produced no usable total or store name."""

    def __init__(self, message: str, code: str = "EXTRACTION_ERROR") -> None:
        super().__init__(message, code)
        self.user_message = message


class StorageError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(
            message, "STORAGE_ERROR", "Failed to save data. Please try again."
        )


class ProductCodeError(ProcessingError):
    """A product code was empty or not in a recognised format."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "INVALID_PRODUCT_CODE")
        self.user_message = message
