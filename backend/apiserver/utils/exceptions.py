"""
Custom exceptions.

Application-specific exception classes. Each carries the HTTP status the
error handlers use when converting it into a response.
"""


class BaseAppException(Exception):
    """Base exception for all application-specific exceptions."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        status_code: int | None = None,
    ):
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ConfigurationError(BaseAppException):
    """Raised when settings cannot be loaded."""
    pass


class DatabaseError(BaseAppException):
    """Raised when the data store connection fails."""

    status_code = 503


class RouteModuleError(BaseAppException):
    """Raised when a route module cannot be loaded or exposes no router."""
    pass


class CORSRejectedError(BaseAppException):
    """Raised when a request comes from an origin that is not allowed."""

    status_code = 403


class PayloadTooLargeError(BaseAppException):
    """Raised when a request body exceeds the configured size limit."""

    status_code = 413


class MalformedBodyError(BaseAppException):
    """Raised when a request body cannot be parsed."""

    status_code = 400
