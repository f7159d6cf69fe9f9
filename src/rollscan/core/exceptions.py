"""
Custom exceptions for rollscan.
Only run-fatal conditions are exceptions; per-attempt outcomes are values.
"""

from typing import Any, Optional


class RollscanError(Exception):
    """Base exception for all rollscan errors."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class ConfigurationError(RollscanError):
    """Raised when configuration is invalid or missing."""

    pass


class PartitionError(RollscanError):
    """Raised when a source document cannot be split into chunks."""

    def __init__(
        self,
        message: str,
        source_path: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["source_path"] = source_path
        super().__init__(message, details=details, **kwargs)
        self.source_path = source_path


class StorageError(RollscanError):
    """Raised when scratch or output storage operations fail."""

    def __init__(
        self,
        message: str,
        store_type: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details.update({
            "store_type": store_type,
            "operation": operation,
        })
        super().__init__(message, details=details, **kwargs)
        self.store_type = store_type
        self.operation = operation
