"""Utility functions and helpers."""

from apiserver.utils.exceptions import (
    BaseAppException,
    ConfigurationError,
    DatabaseError,
    RouteModuleError,
    CORSRejectedError,
    PayloadTooLargeError,
    MalformedBodyError,
)

__all__ = [
    "BaseAppException",
    "ConfigurationError",
    "DatabaseError",
    "RouteModuleError",
    "CORSRejectedError",
    "PayloadTooLargeError",
    "MalformedBodyError",
]
