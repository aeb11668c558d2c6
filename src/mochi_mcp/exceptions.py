"""Exception hierarchy for the Mochi MCP server."""

from typing import Any


class MochiMCPError(Exception):
    """Base exception for all Mochi MCP errors."""

    def __init__(self, message: str) -> None:
        """Initialize exception with message."""
        self.message = message
        super().__init__(self.message)


class ConfigurationError(MochiMCPError):
    """Invalid or missing configuration."""


class ValidationError(MochiMCPError):
    """Malformed tool arguments, rejected before any token or API call."""


class MochiAPIError(MochiMCPError):
    """The Mochi API answered with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize with message and the HTTP status code, if any."""
        self.status_code = status_code
        super().__init__(message)


class MochiRateLimitError(MochiAPIError):
    """The Mochi API kept rate limiting after a retry."""


class MochiTimeoutError(MochiMCPError):
    """A request or paginated scan ran out of time.

    ``items`` holds whatever was retrieved before the budget ran out so that
    list and search callers can degrade to a partial result.
    """

    def __init__(self, message: str, items: list[Any] | None = None) -> None:
        """Initialize with message and the items fetched so far."""
        self.items = items or []
        super().__init__(message)
