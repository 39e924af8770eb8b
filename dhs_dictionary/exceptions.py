"""Exception hierarchy for the DHS data dictionary loader.

Every failure raised by the loader derives from :class:`DictionaryError`, so a batch
run can be stopped with a single ``except`` block while callers that care can still
tell the categories apart through :attr:`DictionaryError.kind`.

Exception Hierarchy:
    DictionaryError (base)
    ├── FetchError          (remote page could not be retrieved)
    ├── ResolutionError     (field name missing from the match table)
    ├── FormatError         (malformed reference or flat file)
    ├── NotFoundError       (document missing from a collection)
    ├── ConfigurationError  (invalid settings, unknown storage engine)
    └── StorageError        (storage backend rejected an operation)
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    FETCH_FAILURE = "FetchFailure"
    RESOLUTION_FAILURE = "ResolutionFailure"
    FORMAT_ERROR = "FormatError"
    NOT_FOUND = "NotFoundError"
    CONFIGURATION = "ConfigurationError"
    STORAGE = "StorageError"


class DictionaryError(Exception):
    """Base exception for all loader errors.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    kind: Optional[ErrorKind] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or (self.kind.value if self.kind else self.__class__.__name__)
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for structured logging."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class FetchError(DictionaryError):
    """Raised when a remote batch could not be retrieved after every retry."""

    kind = ErrorKind.FETCH_FAILURE

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        attempts: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.url = url
        self.attempts = attempts
        details = details or {}
        if url:
            details["url"] = url
        if attempts is not None:
            details["attempts"] = attempts
        super().__init__(message, details=details)


class ResolutionError(DictionaryError):
    """Raised when an external field name has no descriptor in the match table."""

    kind = ErrorKind.RESOLUTION_FAILURE

    def __init__(self, field: str, details: Optional[Dict[str, Any]] = None):
        self.field = field
        details = details or {}
        details["field"] = field
        super().__init__(f"Unable to resolve field [{field}] to a descriptor", details=details)


class FormatError(DictionaryError):
    """Raised when an input file does not have the expected layout.

    Examples:
        - Reference descriptor line with other than four columns
        - Flat-file dictionary line that cannot be parsed
        - Missing dataset file
    """

    kind = ErrorKind.FORMAT_ERROR

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        line: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.path = path
        self.line = line
        details = details or {}
        if path:
            details["path"] = str(path)
        if line is not None:
            details["line"] = line
        super().__init__(message, details=details)


class NotFoundError(DictionaryError):
    """Raised when a document cannot be found by key or global identifier."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, collection: str, identifier: str):
        self.collection = collection
        self.identifier = identifier
        super().__init__(
            f"Document [{identifier}] not found in collection [{collection}]",
            details={"collection": collection, "identifier": identifier},
        )


class ConfigurationError(DictionaryError):
    """Raised when there's a configuration problem.

    Examples:
        - Unknown storage engine
        - Missing configuration file
        - Invalid configuration value
    """

    kind = ErrorKind.CONFIGURATION


class StorageError(DictionaryError):
    """Raised when the storage backend rejects an operation (e.g. duplicate key)."""

    kind = ErrorKind.STORAGE
