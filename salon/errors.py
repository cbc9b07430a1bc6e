"""Centralized exception hierarchy for salon.

Errors fall into four families:

- Configuration errors are raised while loading settings or constructing a
  room. They are fatal: a room never opens in an invalid configuration.
- Provider errors are raised by completion providers during a turn. The
  engine recovers from them and reports a system diagnostic in the room.
- Cancellation is raised when the room is stopped while a completion is in
  flight. It is deliberately *not* a provider error so the engine can stay
  quiet about intentional stops.
- Room state errors flag misuse of the engine lifecycle.
"""

from __future__ import annotations

from typing import Any, Optional


class SalonError(Exception):
    """Base exception for all salon errors.

    Attributes:
        message: Human-readable error message.
        code: Optional error code for programmatic handling.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(SalonError):
    """Raised when there's a configuration problem."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for '{field}': {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value)[:100], "reason": reason},
        )


class UnknownProviderError(ConfigurationError):
    """Raised when a roster entry or agent references an unknown provider."""

    def __init__(self, provider: str, known: Optional[list[str]] = None, agent: Optional[str] = None):
        if agent:
            message = f'Roster entry "{agent}" references unknown provider "{provider}"'
        else:
            message = f'Unknown provider "{provider}"'
        if known is not None:
            message += f". Known providers: {', '.join(known)}"
        details: dict[str, Any] = {"provider": provider}
        if agent:
            details["agent"] = agent
        super().__init__(message, "UNKNOWN_PROVIDER", details)


class InvalidRosterError(ConfigurationError):
    """Raised when the agent roster is malformed."""

    def __init__(self, reason: str, agent: Optional[str] = None):
        details = {"reason": reason}
        if agent:
            details["agent"] = agent
        super().__init__(
            message=f"Invalid roster: {reason}",
            code="INVALID_ROSTER",
            details=details,
        )


# =============================================================================
# Provider Errors
# =============================================================================

class ProviderError(SalonError):
    """Base exception for completion provider failures."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = details or {}
        if provider:
            details["provider"] = provider
        super().__init__(message, code, details)


class APIError(ProviderError):
    """Raised when an API call fails."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        details: dict[str, Any] = {}
        if status_code:
            details["status_code"] = status_code
        if response_body:
            # Truncate response body to avoid logging sensitive data
            details["response_body"] = response_body[:500]
        super().__init__(message, provider, "API_ERROR", details)
        self.status_code = status_code


class RateLimitError(ProviderError):
    """Raised when API rate limit is exceeded."""

    def __init__(
        self,
        provider: str,
        retry_after: Optional[float] = None,
    ):
        details: dict[str, Any] = {}
        message = f"Rate limit exceeded for {provider}"
        if retry_after:
            details["retry_after_seconds"] = retry_after
            message += f" (retry after {retry_after:g}s)"
        super().__init__(
            message=message,
            provider=provider,
            code="RATE_LIMIT",
            details=details,
        )
        self.retry_after = retry_after


class AuthenticationError(ProviderError):
    """Raised when API authentication fails or credentials are missing."""

    def __init__(self, provider: str, reason: Optional[str] = None):
        message = f"Authentication failed for {provider}"
        if reason:
            message += f": {reason}"
        super().__init__(message, provider, "AUTH_ERROR")


class CompletionCancelledError(SalonError):
    """Raised when an in-flight completion is aborted by a room stop."""

    def __init__(self, reason: str = "Completion cancelled"):
        super().__init__(message=reason, code="CANCELLED")


# =============================================================================
# Room Errors
# =============================================================================

class RoomError(SalonError):
    """Base exception for room lifecycle and persistence errors."""
    pass


class RoomStateError(RoomError):
    """Raised when an engine operation is invalid for the room's state."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            message=f"Cannot {operation}: {reason}",
            code="ROOM_STATE",
            details={"operation": operation, "reason": reason},
        )


class PersistenceError(RoomError):
    """Raised when room files cannot be read or written."""

    def __init__(
        self,
        operation: str,
        reason: str,
        original_error: Optional[Exception] = None,
    ):
        details = {"operation": operation, "reason": reason}
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(
            message=f"Room {operation} failed: {reason}",
            code="PERSISTENCE_ERROR",
            details=details,
        )
