"""
DEALROOM Core - Centralized Exception Hierarchy
===============================================

Provides structured exception types for the access engine.

Exception Categories:
    - InvalidInputError: Unknown room, document, role or malformed request.
      Raised before any audit write.
    - InvalidTransitionError: Lifecycle or session state change that is not
      allowed from the current state (e.g. force delete under legal hold).
    - StorageUnavailableError: Audit or grant backend failure.
    - ConfigurationError: Configuration and setup problems.

Policy denials are NOT exceptions: they are returned as Decision values.

Author: DEALROOM Development Team
Version: 1.0.0
"""

from typing import Any, Dict, Optional


class DealRoomError(Exception):
    """
    Base exception for all DEALROOM errors.

    Attributes:
        message: Human-readable error description
        code: Optional error code for programmatic handling
        details: Optional dict with additional context
        recoverable: Whether error can potentially be retried
    """

    recoverable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================


class InvalidInputError(DealRoomError):
    """Request references something the engine does not know."""

    def __init__(self, message: str, code: str = "INVALID_INPUT", **kwargs):
        super().__init__(message, code=code, **kwargs)


class NotFoundError(InvalidInputError):
    """Referenced room, document, grant or session does not exist."""

    def __init__(
        self,
        message: str,
        resource_type: str = "unknown",
        resource_id: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("code", "NOT_FOUND")
        super().__init__(message, **kwargs)
        self.resource_type = resource_type
        self.resource_id = resource_id


# =============================================================================
# STATE ERRORS
# =============================================================================


class InvalidTransitionError(DealRoomError):
    """State change not allowed from the current state."""

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        attempted: Optional[str] = None,
        code: str = "INVALID_TRANSITION",
        **kwargs,
    ):
        super().__init__(message, code=code, **kwargs)
        self.current_state = current_state
        self.attempted = attempted


class SessionClosedError(InvalidTransitionError):
    """Interaction attempted on a viewer session that is no longer open."""

    def __init__(self, message: str, session_id: Optional[str] = None, **kwargs):
        kwargs.setdefault("code", "SESSION_CLOSED")
        super().__init__(message, current_state="CLOSED", **kwargs)
        self.session_id = session_id


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StorageUnavailableError(DealRoomError):
    """Grant store or audit backend is unavailable."""

    recoverable: bool = True

    def __init__(
        self,
        message: str,
        backend: str = "unknown",
        attempts: int = 0,
        **kwargs,
    ):
        kwargs.setdefault("code", "STORAGE_UNAVAILABLE")
        super().__init__(message, **kwargs)
        self.backend = backend
        self.attempts = attempts


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(DealRoomError):
    """Invalid or missing configuration."""

    pass


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def is_recoverable(error: Exception) -> bool:
    """
    Determine if an error is potentially recoverable.

    Recoverable errors can be retried after a delay.
    Non-recoverable errors require intervention or a different request.
    """
    if hasattr(error, "recoverable"):
        return error.recoverable

    return isinstance(error, (TimeoutError, ConnectionError))


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "DealRoomError",
    "InvalidInputError",
    "NotFoundError",
    "InvalidTransitionError",
    "SessionClosedError",
    "StorageUnavailableError",
    "ConfigurationError",
    "is_recoverable",
]
