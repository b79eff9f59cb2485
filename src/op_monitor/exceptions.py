"""Custom exceptions for the activity monitor.

All exceptions inherit from MonitorError, allowing callers to catch every
monitor-related error with a single except clause if desired.

Exception hierarchy:
    MonitorError (base)
    ├── ConfigurationError
    │   └── ValidationError
    ├── MonitorStateError
    ├── ProviderError
    │   ├── ProviderUnavailableError
    │   └── QueryError
    ├── PersistenceError
    └── RequestError
        ├── SuggestionError
        └── ReportGenerationError
"""

from pathlib import Path
from typing import Any


class MonitorError(Exception):
    """Base exception for all activity monitor errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation."""
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(MonitorError):
    """Raised when configuration is invalid or cannot be loaded.

    Examples:
        - Invalid YAML syntax in config file
        - Unknown query purpose in the model mapping
    """

    def __init__(
        self,
        message: str,
        config_file: Path | None = None,
        key: str | None = None,
    ):
        details: dict[str, Any] = {}
        if config_file:
            details["config_file"] = str(config_file)
        if key:
            details["key"] = key
        super().__init__(message, details)
        self.config_file = config_file
        self.key = key


class ValidationError(ConfigurationError):
    """Raised when a configuration value or request argument fails validation.

    Examples:
        - Non-positive event capacity
        - Invalid URL format
        - Unrecognized report timeframe
    """

    def __init__(
        self,
        message: str,
        field: str,
        value: Any = None,
        expected: str | None = None,
    ):
        super().__init__(message)
        self.details["field"] = field
        if value is not None:
            value_str = str(value)
            self.details["value"] = value_str[:100] + "..." if len(value_str) > 100 else value_str
        if expected:
            self.details["expected"] = expected
        self.field = field
        self.value = value
        self.expected = expected


# =============================================================================
# Lifecycle Errors
# =============================================================================


class MonitorStateError(MonitorError):
    """Raised when a lifecycle transition is requested from an incompatible state."""

    def __init__(self, message: str, state: str):
        super().__init__(message, {"state": state})
        self.state = state


# =============================================================================
# Provider Errors
# =============================================================================


class ProviderError(MonitorError):
    """Base class for model provider errors."""

    def __init__(self, message: str, provider: str | None = None):
        details: dict[str, Any] = {}
        if provider:
            details["provider"] = provider
        super().__init__(message, details)
        self.provider = provider


class ProviderUnavailableError(ProviderError):
    """Raised when no configured model provider is reachable at startup.

    This is the only provider error that reaches callers: it prevents the
    monitor from becoming active.
    """

    def __init__(self, message: str, providers: list[str] | None = None):
        super().__init__(message)
        self.providers = providers or []
        if self.providers:
            self.details["providers"] = ",".join(self.providers)


class QueryError(ProviderError):
    """Raised when a single provider call fails.

    Recovered by the query layer, which moves on to the next provider.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, provider=provider)
        self.cause = cause


# =============================================================================
# Persistence Errors
# =============================================================================


class PersistenceError(MonitorError):
    """Raised when snapshot or report storage fails.

    Examples:
        - Unwritable data directory
        - Corrupt contexts.json
    """

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        cause: Exception | None = None,
    ):
        details: dict[str, Any] = {}
        if path:
            details["path"] = str(path)
        super().__init__(message, details)
        self.path = path
        self.cause = cause


# =============================================================================
# Request Errors
# =============================================================================


class RequestError(MonitorError):
    """Base class for failures of on-demand operations.

    These propagate to the caller, unlike background failures.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        details: dict[str, Any] = {}
        if cause is not None:
            details["cause"] = type(cause).__name__
        super().__init__(message, details)
        self.cause = cause


class SuggestionError(RequestError):
    """Raised when suggestion generation fails."""


class ReportGenerationError(RequestError):
    """Raised when report generation fails."""
