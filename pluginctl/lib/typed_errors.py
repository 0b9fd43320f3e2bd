"""
Typed errors for the plugin catalog and discovery engine.

Every failure the catalog or a discovery backend surfaces is a subclass of
PluginctlError carrying an ErrorCode, so callers can branch on the code and
render a TypedError with a user-facing title and message.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Error codes for programmatic handling."""

    # Catalog lookups
    NOT_FOUND = "not_found"

    # Catalog persistence
    STORE_UNAVAILABLE = "store_unavailable"
    STORE_CORRUPT = "store_corrupt"
    PERSISTENCE_FAILURE = "persistence_failure"

    # Discovery
    VERSION_PARSE_ERROR = "version_parse_error"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    UPSTREAM_ERROR = "upstream_error"

    # Generic
    UNKNOWN_ERROR = "unknown_error"


class TypedError(BaseModel):
    """A structured error with user-friendly info."""

    code: ErrorCode = Field(description="Error code for programmatic handling")
    title: str = Field(description="User-friendly title")
    message: str = Field(description="Detailed message explaining what went wrong")
    can_retry: bool = Field(
        alias="canRetry", default=False, description="Whether retrying the call may succeed"
    )
    original_error: Optional[str] = Field(
        alias="originalError", default=None, description="Original error message"
    )
    details: Optional[list[str]] = Field(
        default=None, description="Diagnostic details for debugging"
    )

    model_config = {"populate_by_name": True}


ERROR_DEFINITIONS: dict[ErrorCode, dict[str, Any]] = {
    ErrorCode.NOT_FOUND: {
        "title": "Plugin Not Found",
        "message": "The plugin is not installed in this context.",
        "can_retry": False,
    },
    ErrorCode.STORE_UNAVAILABLE: {
        "title": "Catalog Unavailable",
        "message": "The plugin catalog could not be read.",
        "can_retry": True,
    },
    ErrorCode.STORE_CORRUPT: {
        "title": "Catalog Corrupt",
        "message": "The plugin catalog cache is not valid. Clean the catalog cache and reinstall plugins.",
        "can_retry": False,
    },
    ErrorCode.PERSISTENCE_FAILURE: {
        "title": "Catalog Not Saved",
        "message": "The plugin catalog could not be written to disk.",
        "can_retry": True,
    },
    ErrorCode.VERSION_PARSE_ERROR: {
        "title": "Invalid Plugin Version",
        "message": "A discovery source published a version that is not a valid semantic version.",
        "can_retry": False,
    },
    ErrorCode.BACKEND_UNAVAILABLE: {
        "title": "Discovery Skipped",
        "message": "The discovery source does not provide plugins in this environment.",
        "can_retry": False,
    },
    ErrorCode.UPSTREAM_ERROR: {
        "title": "Discovery Failed",
        "message": "The discovery source returned an error.",
        "can_retry": True,
    },
    ErrorCode.UNKNOWN_ERROR: {
        "title": "Error",
        "message": "An unexpected error occurred.",
        "can_retry": False,
    },
}


class PluginctlError(Exception):
    """Base class for catalog and discovery errors."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def details(self) -> list[str]:
        return []

    def to_typed_error(self) -> TypedError:
        definition = ERROR_DEFINITIONS[self.code]
        return TypedError(
            code=self.code,
            title=definition["title"],
            message=definition["message"],
            can_retry=definition["can_retry"],
            original_error=f"{type(self).__name__}: {self}",
            details=self.details() or None,
        )


class NotFoundError(PluginctlError, KeyError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, key: str, context: str = ""):
        self.key = key
        self.context = context
        scope = f"context '{context}'" if context else "stand-alone"
        super().__init__(f"plugin '{key}' not found ({scope})")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class StoreUnavailable(PluginctlError):
    code = ErrorCode.STORE_UNAVAILABLE

    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        super().__init__(message)

    def details(self) -> list[str]:
        return [f"path: {self.path}"] if self.path else []


class StoreCorrupt(StoreUnavailable):
    code = ErrorCode.STORE_CORRUPT


class PersistenceFailure(PluginctlError):
    code = ErrorCode.PERSISTENCE_FAILURE

    def __init__(self, message: str, path: Path):
        self.path = path
        super().__init__(f"{message}: {path}")

    def details(self) -> list[str]:
        return [f"path: {self.path}"]


class VersionParseError(PluginctlError, ValueError):
    code = ErrorCode.VERSION_PARSE_ERROR

    def __init__(self, plugin: str, version: str):
        self.plugin = plugin
        self.version = version
        super().__init__(
            f"error parsing supported versions for plugin {plugin}: invalid version {version!r}"
        )

    def details(self) -> list[str]:
        return [f"plugin: {self.plugin}", f"version: {self.version}"]


class BackendUnavailable(PluginctlError):
    """A discovery source that is absent in this environment.

    Never raised out of a backend's list(); kept as the backend's diagnostic.
    """

    code = ErrorCode.BACKEND_UNAVAILABLE

    def __init__(self, discovery: str, reason: str):
        self.discovery = discovery
        self.reason = reason
        super().__init__(f"discovery '{discovery}' unavailable: {reason}")


class UpstreamError(PluginctlError):
    code = ErrorCode.UPSTREAM_ERROR

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.url = url
        self.status_code = status_code
        super().__init__(message)

    def details(self) -> list[str]:
        details = []
        if self.url:
            details.append(f"url: {self.url}")
        if self.status_code is not None:
            details.append(f"status: {self.status_code}")
        return details


def parse_error(error: Union[Exception, str]) -> TypedError:
    """
    Convert any error into a TypedError.

    PluginctlError subclasses carry their own code; anything else maps to
    UNKNOWN_ERROR with the original message preserved.
    """
    if isinstance(error, PluginctlError):
        return error.to_typed_error()

    if isinstance(error, Exception):
        original_error = f"{type(error).__name__}: {error}"
    else:
        original_error = str(error)

    definition = ERROR_DEFINITIONS[ErrorCode.UNKNOWN_ERROR]
    return TypedError(
        code=ErrorCode.UNKNOWN_ERROR,
        title=definition["title"],
        message=definition["message"],
        can_retry=definition["can_retry"],
        original_error=original_error,
    )


def can_retry(error: TypedError) -> bool:
    """Check if retrying the failed call (possibly against another source) makes sense."""
    return error.can_retry
