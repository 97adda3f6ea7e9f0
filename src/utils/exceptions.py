"""
Custom Exception Classes for the CLOB Auth Manager

Provides a hierarchy of specific exceptions for the credential lifecycle,
so callers can tell a transient gate rejection from a fatal configuration
problem without parsing messages.

Exception Hierarchy:
├── PolymarketBotError (Base)
│   ├── ConfigurationError
│   ├── AuthenticationError
│   │   ├── DeriveGateRejected
│   │   └── PermanentDeriveRefusal
│   └── APIError
│       ├── MalformedUpstreamResponse
│       ├── UpstreamError
│       └── SchemaMismatch
"""

from typing import Optional, Dict, Any


class PolymarketBotError(Exception):
    """
    Base exception for all auth manager errors.
    Enables catching all of them with: except PolymarketBotError
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize error with structured information.

        Args:
            message: Human-readable error message
            error_code: Error code for classification (e.g., 'DERIVE_BLOCKED')
            details: Additional context dict
            original_error: Original exception that caused this (for error chaining)
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.original_error = original_error
        super().__init__(self.message)

    def __str__(self) -> str:
        error_str = f"{self.__class__.__name__}: {self.message}"
        if self.error_code:
            error_str += f" (Code: {self.error_code})"
        if self.details:
            error_str += f" | Details: {self.details}"
        return error_str


# ============================================================================
# CONFIGURATION & AUTHENTICATION ERRORS
# ============================================================================

class ConfigurationError(PolymarketBotError):
    """
    Raised when configuration is invalid or incomplete.
    Examples: malformed private key, API secret that decodes to nothing
    Action: Fix configuration and restart. Never retried.
    """
    pass


class AuthenticationError(PolymarketBotError):
    """
    Raised when authentication fails.
    Examples: Invalid private key, rejected L2 credentials
    """
    pass


class DeriveGateRejected(AuthenticationError):
    """
    Raised when the derive gate refuses a credential-creation attempt.

    Transient: the message carries the remaining wait time where one applies.
    The gate status ('BLOCKED', 'RATE_LIMITED', 'COOLDOWN') is kept in
    error_code, the remaining wait in retry_after.
    """

    def __init__(
        self,
        message: str,
        status: str,
        retry_after: Optional[float] = None,
        **kwargs
    ):
        self.status = status
        self.retry_after = retry_after
        super().__init__(message, error_code=status, **kwargs)


class PermanentDeriveRefusal(AuthenticationError):
    """
    Raised when the exchange definitively refuses to create API keys for
    this account.

    Action: create keys manually in the Polymarket UI and put them in the
    environment. Auto-derive stays blocked until the block window elapses.
    """

    def __init__(self, message: str, blocked_until: Optional[float] = None, **kwargs):
        self.blocked_until = blocked_until
        super().__init__(message, error_code="DERIVE_REFUSED", **kwargs)


# ============================================================================
# API & NETWORK ERRORS
# ============================================================================

class APIError(PolymarketBotError):
    """
    Base exception for Polymarket API errors.
    Includes HTTP status code and response data for debugging.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Any] = None,
        **kwargs
    ):
        self.status_code = status_code
        self.response_data = response_data
        super().__init__(message, **kwargs)


class MalformedUpstreamResponse(APIError):
    """
    Raised when a derive/create call returns without one of
    apiKey / secret / passphrase.
    The attempt still counts against the derive gate.
    """
    pass


class UpstreamError(APIError):
    """
    Raised for non-400 failures from the exchange. The body is truncated
    before it is attached.
    """
    pass


class SchemaMismatch(APIError):
    """
    HTTP 400 from a balance candidate. Used internally to advance to the
    next candidate, never surfaced to callers.
    """
    pass
