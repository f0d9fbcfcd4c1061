"""Base exceptions for neo-rbac.

All exceptions inherit from NeoRbacError and carry an error code and a
details mapping. Authorization denials are NOT exceptions; they are returned
as AuthorizationDecision values.
"""

from typing import Any, Dict, Optional


class NeoRbacError(Exception):
    """Base exception for all neo-rbac errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        *args,
        **kwargs
    ):
        super().__init__(message, *args, **kwargs)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class ValidationError(NeoRbacError):
    """Raised when an input value fails validation."""


class ConfigurationError(NeoRbacError):
    """Raised when the engine is wired or configured inconsistently."""


def create_error_response(exception: NeoRbacError) -> Dict[str, Any]:
    """Create standardized error response from exception.

    Args:
        exception: The neo-rbac exception

    Returns:
        Error response dictionary
    """
    return {
        "error": {
            "code": exception.error_code,
            "message": exception.message,
            "details": exception.details,
            "type": exception.__class__.__name__,
        }
    }
