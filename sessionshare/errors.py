# sessionshare/errors.py
# Typed failures raised by the share core and rendered by the HTTP layer


class AppError(Exception):
    """Base application error with structured response."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}


class AlreadyExistsError(AppError):
    """A live share already uses this id."""
    def __init__(self, message: str = "Share already exists", details: dict = None):
        super().__init__(
            message=message,
            error_code="ALREADY_EXISTS",
            status_code=409,
            details=details
        )


class NotFoundError(AppError):
    """Share is absent or was removed."""
    def __init__(self, message: str = "Share not found", details: dict = None):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
            details=details
        )


class InvalidSecretError(AppError):
    """Secret does not match the share."""
    def __init__(self, message: str = "Share secret invalid", details: dict = None):
        super().__init__(
            message=message,
            error_code="INVALID_SECRET",
            status_code=403,
            details=details
        )


class StorageError(AppError):
    """Database operation failed."""
    def __init__(self, message: str = "Database operation failed", details: dict = None):
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            status_code=503,
            details=details
        )


class MalformedPayloadError(AppError):
    """Request payload does not have the expected shape."""
    def __init__(self, message: str = "Malformed payload", details: dict = None):
        super().__init__(
            message=message,
            error_code="MALFORMED_PAYLOAD",
            status_code=400,
            details=details
        )
