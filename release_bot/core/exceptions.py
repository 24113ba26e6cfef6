"""
Exception classes for release-bot.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, so the CLI can print a short message while the log files keep
the full context.

Exception Hierarchy:
    ReleaseBotError (base)
        ConfigError - Configuration file / environment issues
        StoreError - JSON document store issues
        PreconditionError - Operation cannot start (no playlist, no artists, ...)
        SpotifyError - Spotify Web API issues
            UnauthenticatedError - No stored credentials, run `release-bot auth`
            TokenRefreshError - The refresh token was rejected or unreachable
"""


class ReleaseBotError(Exception):
    """
    Base exception for all release-bot errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all release-bot errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., artist id, status code).

    Example:
        try:
            orchestrator.run_scan()
        except ReleaseBotError as e:
            logger.error(f"Scan failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'artist_id': Spotify artist ID involved in the error
                     - 'playlist_id': Target playlist ID
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(ReleaseBotError):
    """
    Raised when there's an issue with the configuration.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml has invalid YAML syntax
        - SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET not set
        - Invalid field values (e.g., zero retry attempts)

    Example:
        raise ConfigError(
            "Missing required configuration: spotify.client_id",
            details={'missing_fields': ['spotify.client_id']}
        )
    """
    pass


class StoreError(ReleaseBotError):
    """
    Raised when the JSON document store cannot be read or written.

    This is a CRITICAL error that should stop program execution, since a
    corrupted store means tracked artists and the checkpoint are unknown.

    Example:
        raise StoreError(
            "Store file corrupted: invalid JSON syntax",
            details={'file_path': '/path/to/store.json'}
        )
    """
    pass


class PreconditionError(ReleaseBotError):
    """
    Raised when an operation cannot start because its inputs are missing.

    Precondition errors are detected before any network call is made.

    Common causes:
        - No target playlist selected and no default configured
        - No tracked artists
        - Invalid date bounds for the full catalog import
        - Unknown preset name
    """
    pass


class SpotifyError(ReleaseBotError):
    """
    Raised when there's an issue with the Spotify Web API.

    Can be CRITICAL (auth failure) or NON-CRITICAL (single artist fetch failure).

    Attributes:
        is_auth_error: True if this is an authentication error (CRITICAL).
        is_rate_limit: True if this is a rate limit error (HTTP 429).
        http_status: HTTP status code of the failed request, if any.
        retry_after: Seconds to wait as requested by the Retry-After header,
                     or None if the header was absent.

    Example:
        raise SpotifyError(
            "Failed to fetch artist albums: artist not found",
            details={'artist_id': artist_id},
            http_status=404
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False,
        http_status: int | None = None,
        retry_after: float | None = None
    ) -> None:
        """
        Initialize Spotify error with additional flags.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            is_auth_error: Set to True if this is an authentication failure.
            is_rate_limit: Set to True if this is a rate limit error.
                          Rate limit errors are retried after retry_after seconds.
            http_status: HTTP status code returned by the API.
            retry_after: Value of the Retry-After header in seconds.
        """
        super().__init__(message, details)
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit
        self.http_status = http_status
        self.retry_after = retry_after


class UnauthenticatedError(SpotifyError):
    """
    Raised when no credential state has been stored yet.

    The user must run `release-bot auth` once. No refresh is attempted.
    """

    def __init__(self, message: str = "Not authenticated. Run 'release-bot auth' first.",
                 details: dict | None = None) -> None:
        super().__init__(message, details, is_auth_error=True)


class TokenRefreshError(SpotifyError):
    """
    Raised when the access token could not be refreshed.

    This is fatal for the current operation: the expired token is never used.
    """

    def __init__(self, message: str, details: dict | None = None,
                 http_status: int | None = None) -> None:
        super().__init__(message, details, is_auth_error=True, http_status=http_status)
