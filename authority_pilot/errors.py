"""Exceptions shared across services and routes."""
from typing import Any, Optional


class AuthorityPilotError(Exception):
    """Base error for AuthorityPilot services."""


class NotFoundError(AuthorityPilotError):
    """Requested record does not exist."""


class InvalidRequestError(AuthorityPilotError):
    """Input was rejected by a service."""


class TokenExpiredError(AuthorityPilotError):
    """Stored LinkedIn access token is no longer valid."""


class LinkedInAPIError(AuthorityPilotError):
    """LinkedIn REST call returned a non-success status."""

    def __init__(self, message: str, status_code: int = 0, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class APIError(Exception):
    """Error rendered as a ``{"success": false, "error": ...}`` response."""

    def __init__(self, status_code: int, error: str, details: Optional[Any] = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details
