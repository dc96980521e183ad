"""Error types raised while linking external connections.

Each error carries the HTTP status and the fixed message the caller sees.
Underlying causes are logged where they are raised and never forwarded.
"""

from __future__ import annotations


class TracklinkError(Exception):
    """Base class for errors with a fixed public message."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.public_message
        super().__init__(self.message)


class AuthenticationError(TracklinkError):
    """No valid session could be resolved for the caller."""

    status_code = 401
    public_message = "Unauthorized"


class UpstreamProviderError(TracklinkError):
    """The provider's token endpoint answered with a non-success status."""

    status_code = 400
    public_message = "Failed to get access token"


class PersistenceError(TracklinkError):
    """Reading or writing the connections table failed."""

    status_code = 500
    public_message = "Failed to save connection"


class UnknownProviderError(TracklinkError):
    status_code = 404
    public_message = "Unknown provider"


class ConnectionNotFoundError(TracklinkError):
    status_code = 404
    public_message = "Connection not found"


class MissingRefreshTokenError(TracklinkError):
    status_code = 400
    public_message = "No refresh token on file"
