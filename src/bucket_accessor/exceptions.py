# src/bucket_accessor/exceptions.py

"""
Shared custom exceptions for the Migration Bucket Accessor.

Centralizing exception definitions in a separate module prevents circular
import errors between other modules that need to raise or catch them.

Exception Hierarchy:
- MigrationAccessorError (base)
  - ConfigurationError
  - KeyParseError
  - S3Error
    - ListingError
    - PersistError
  - ConfigMapError

Nothing in the accessor retries. The ``retryable`` flag only tells the
operator whether re-running the whole job is likely to help.
"""

from typing import Any, Dict, Optional


class MigrationAccessorError(Exception):
    """Base exception for all Migration Bucket Accessor errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = dict(context) if context else {}
        if retryable is not None:
            self.retryable = retryable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "retryable": self.retryable,
        }


# === Configuration Errors ===

class ConfigurationError(MigrationAccessorError):
    """Raised when the accessor configuration is missing or contradictory."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "CONFIGURATION_ERROR")
        super().__init__(message, **kwargs)


# === Key Structure Errors ===

class KeyParseError(MigrationAccessorError):
    """Raised when a component file key does not have the expected path layout."""

    def __init__(self, key: str, reason: str, **kwargs):
        message = f"Malformed SSTable component key '{key}': {reason}"
        context = {"key": key, "reason": reason}
        super().__init__(message, error_code="KEY_PARSE_ERROR", context=context, **kwargs)
        self.key = key
        self.reason = reason


# === S3-Related Errors ===

class S3Error(MigrationAccessorError):
    """Base class for S3-related errors."""
    pass


class ListingError(S3Error):
    """Raised when a page of the bucket listing cannot be fetched."""

    def __init__(self, bucket: str, page_number: int, reason: str, **kwargs):
        message = f"Failed to get page {page_number} of s3://{bucket}: {reason}"
        context = {"bucket": bucket, "page_number": page_number}
        if "context" in kwargs:
            context.update(kwargs.pop("context"))
        kwargs.setdefault("error_code", "S3_LISTING_FAILED")
        super().__init__(message, context=context, **kwargs)


class PersistError(S3Error):
    """Raised when a descriptor document cannot be written to the bucket."""

    def __init__(self, bucket: str, key: str, reason: str, **kwargs):
        message = f"Couldn't upload descriptor to s3://{bucket}/{key}: {reason}"
        context = {"bucket": bucket, "key": key}
        if "context" in kwargs:
            context.update(kwargs.pop("context"))
        kwargs.setdefault("error_code", "S3_PERSIST_FAILED")
        super().__init__(message, context=context, **kwargs)


# === Kubernetes Errors ===

class ConfigMapError(MigrationAccessorError):
    """Raised when the Kubernetes config map cannot be read or updated."""

    def __init__(self, namespace: str, name: str, reason: str, **kwargs):
        message = f"Error updating the k8s configMap {namespace}/{name}: {reason}"
        context = {"namespace": namespace, "name": name}
        if "context" in kwargs:
            context.update(kwargs.pop("context"))
        kwargs.setdefault("error_code", "CONFIG_MAP_ERROR")
        super().__init__(message, context=context, **kwargs)


# === Utility Functions ===

def is_retryable_error(error: Exception) -> bool:
    """Check if re-running the job could plausibly get past this error."""
    return isinstance(error, MigrationAccessorError) and error.retryable


def get_error_context(error: Exception) -> Dict[str, Any]:
    """Extract error context for logging."""
    if isinstance(error, MigrationAccessorError):
        return error.to_dict()
    else:
        return {
            "error_type": error.__class__.__name__,
            "message": str(error),
            "retryable": False,
        }
