"""
Custom exceptions for collection storage.

Every backend and the collection protocol raise these exceptions so callers
can branch on them consistently. None of them are retried internally;
``ConflictError`` is the one callers are expected to handle with their own
retry loop.
"""


class CollectionStoreError(Exception):
    """Base exception for all collection storage errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigParseError(CollectionStoreError):
    """Raised when configuration cannot be parsed (e.g., a malformed host URL)."""

    def __init__(self, value: str, reason: str):
        super().__init__(
            f"Invalid configuration value {value!r}: {reason}",
            {"value": value, "reason": reason},
        )
        self.value = value
        self.reason = reason


class ValidationError(CollectionStoreError):
    """Raised when an argument or configuration field fails validation."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class TransportError(CollectionStoreError):
    """Raised when the remote API cannot be reached or answers with an HTTP failure."""

    def __init__(
        self,
        operation: str,
        url: str | None = None,
        status: int | None = None,
        cause: Exception | None = None,
    ):
        details: dict = {"operation": operation}
        if url:
            details["url"] = url
        if status is not None:
            details["status"] = status
        if cause:
            details["cause"] = str(cause)
        message = f"Transport error during {operation}"
        if status is not None:
            message += f" (HTTP {status})"
        if url:
            message += f": {url}"
        super().__init__(message, details)
        self.operation = operation
        self.url = url
        self.status = status
        self.cause = cause


class AuthenticationError(TransportError):
    """Raised when the remote API rejects the configured credentials."""


class SerializationError(CollectionStoreError):
    """Raised when records cannot be serialized to JSON."""

    def __init__(self, reason: str, cause: Exception | None = None):
        details = {"reason": reason}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Could not serialize records: {reason}", details)
        self.reason = reason
        self.cause = cause


class DeserializeError(CollectionStoreError):
    """Raised when decoded content is not valid JSON or does not match the record type."""

    def __init__(self, reason: str, cause: Exception | None = None):
        details = {"reason": reason}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Could not deserialize content: {reason}", details)
        self.reason = reason
        self.cause = cause


class ContentNotUtf8Error(DeserializeError):
    """Raised when the base64-decoded content is not UTF-8 text."""

    def __init__(self, cause: Exception | None = None):
        super().__init__("content is not encoded in UTF-8", cause)


class EncodingError(CollectionStoreError):
    """Raised when wrapped content is not valid base64."""

    def __init__(self, reason: str, cause: Exception | None = None):
        details = {"reason": reason}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Base64 decode error: {reason}", details)
        self.reason = reason
        self.cause = cause


class ContentMissingError(CollectionStoreError):
    """Raised when the backend response carries no content field."""

    def __init__(self, path: str):
        super().__init__(f"No content found in response for {path}", {"path": path})
        self.path = path


class VersionMissingError(CollectionStoreError):
    """Raised when the backend response carries no version token (sha)."""

    def __init__(self, path: str):
        super().__init__(f"No sha returned for {path}", {"path": path})
        self.path = path


class ConflictError(CollectionStoreError):
    """Raised when a write is rejected because the blob changed since it was fetched.

    Callers should re-synchronize and retry the whole operation.
    """

    def __init__(
        self,
        path: str,
        expected_version: str | None = None,
        status: int | None = None,
    ):
        details: dict = {"path": path}
        if expected_version:
            details["expected_version"] = expected_version
        if status is not None:
            details["status"] = status
        super().__init__(f"Version conflict writing {path}", details)
        self.path = path
        self.expected_version = expected_version
        self.status = status


class BlobNotFoundError(CollectionStoreError):
    """Raised when a bound collection's blob no longer exists remotely."""

    def __init__(self, path: str):
        super().__init__(f"Blob not found: {path}", {"path": path})
        self.path = path


# Names used by the protocol description
ParseError = ConfigParseError
RemoteUnavailable = TransportError
FormatError = DeserializeError
ContentMissing = ContentMissingError
VersionMissing = VersionMissingError
