"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(AppError):
    """Raised when user input fails validation."""

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class UnauthorizedError(AppError):
    """Raised when a request carries no valid identity."""

    def __init__(self, message="Authentication required."):
        """Initialize the error."""
        super().__init__(message, 401)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class SubscriptionError(AppError):
    """Raised when a live query fails with a transport or permission error."""

    def __init__(self, message="Live query failed.", cause=None):
        """Initialize the error."""
        super().__init__(message, 502)
        self.cause = cause


class CloudFunctionError(AppError):
    """Base class for failures of a callable Cloud Function."""

    def __init__(self, message, status_code=502):
        """Initialize the error."""
        super().__init__(message, status_code)


class InvalidResponseError(CloudFunctionError):
    """Raised when a Cloud Function answers with an unexpected shape."""

    def __init__(self, message="Invalid response from server"):
        """Initialize the error."""
        super().__init__(message, 502)


class FunctionUnavailableError(CloudFunctionError):
    """Raised when a Cloud Function cannot be reached."""

    def __init__(self, message="Could not reach server"):
        """Initialize the error."""
        super().__init__(message, 503)


class OperationFailedError(CloudFunctionError):
    """Raised when a Cloud Function reports that the operation failed."""

    def __init__(self, message="Operation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class DecodeError(ValueError):
    """Raised when a Firestore document cannot be decoded into a model."""
