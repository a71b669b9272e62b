"""
Structured error types for guidelint.

Every failure the tool can raise carries a category, a retry flag, a
context block (document path, line, URL, HTTP status) and the chained
underlying exception. The CLI turns any ``GuidelintError`` into a single
red line and exit code 2; lint findings are never raised, they are
reported as diagnostics.

Manifesto:
    - **Typed hierarchy:** one subclass per failure domain
    - **Explicit retry semantics:** link checks retry only transient errors
    - **Rich context:** errors know which document and line they refer to
    - **Error chaining:** the original exception is preserved as ``cause``

Architecture:
    ::

        GuidelintError (category, retryable, context, cause)
        ├── DocumentError          (DOCUMENT)
        │   ├── DocumentNotFoundError
        │   └── DocumentReadError
        ├── ConfigError            (CONFIG)
        ├── TocMarkerError         (TOC)
        ├── RenderError            (RENDER)
        └── LinkCheckError         (NETWORK, retryable)

Examples:
    >>> err = DocumentNotFoundError("No such file", path="README.md")
    >>> err.category
    <ErrorCategory.DOCUMENT: 'DOCUMENT'>
    >>> err.to_dict()["context"]
    {'path': 'README.md'}

Guardrails:
    ❌ DON'T: raise bare ``Exception`` for a missing document
    ✅ DO: raise ``DocumentNotFoundError`` with ``path=``

    ❌ DON'T: swallow the original exception
    ✅ DO: pass it as ``cause=``

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context, guidelint
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories used for reporting and retry decisions."""

    DOCUMENT = "DOCUMENT"
    CONFIG = "CONFIG"
    TOC = "TOC"
    RENDER = "RENDER"
    NETWORK = "NETWORK"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Metadata attached to an error for logging.

    Attributes:
        path: Document or config file involved.
        line: 1-based line number inside ``path``.
        url: URL being checked.
        http_status: HTTP status code, if one was received.
        metadata: Additional key-value pairs.
    """

    path: str | None = None
    line: int | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["path", "line", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class GuidelintError(Exception):
    """Base class for all guidelint errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override both per instance. Context keywords that match an
    ``ErrorContext`` field are stored there, anything else lands in
    ``context.metadata``.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
        **context_fields: Any,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if context_fields:
            self.with_context(**context_fields)

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> GuidelintError:
        """Add context to this error (fluent API).

        Usage:
            raise DocumentReadError("Bad encoding").with_context(path="guide.md")
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# DOCUMENT ERRORS
# =============================================================================


class DocumentError(GuidelintError):
    """A Markdown document could not be loaded."""

    default_category = ErrorCategory.DOCUMENT


class DocumentNotFoundError(DocumentError):
    """The document path does not exist or is not a file."""


class DocumentReadError(DocumentError):
    """The document exists but could not be read or decoded."""


# =============================================================================
# CONFIGURATION / TOC / RENDER
# =============================================================================


class ConfigError(GuidelintError):
    """Configuration file or environment values are invalid."""

    default_category = ErrorCategory.CONFIG


class TocMarkerError(GuidelintError):
    """``<!-- toc -->`` / ``<!-- tocstop -->`` markers are missing or unbalanced."""

    default_category = ErrorCategory.TOC


class RenderError(GuidelintError):
    """HTML rendering failed (template missing, template error)."""

    default_category = ErrorCategory.RENDER


# =============================================================================
# NETWORK
# =============================================================================


class LinkCheckError(GuidelintError):
    """A link check attempt failed in a way that may succeed on retry."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, GuidelintError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, GuidelintError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (FileNotFoundError, UnicodeDecodeError)):
        return ErrorCategory.DOCUMENT
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "GuidelintError",
    "DocumentError",
    "DocumentNotFoundError",
    "DocumentReadError",
    "ConfigError",
    "TocMarkerError",
    "RenderError",
    "LinkCheckError",
    "is_retryable",
    "categorize_error",
]
