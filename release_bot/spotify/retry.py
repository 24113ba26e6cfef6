"""
Retry policy for remote Spotify calls.

Every logical remote call (one page fetch, one playlist write, one token
refresh) goes through RetryingCaller.call(). This is the only retry layer:
the spotipy client is built without urllib3 retries so that 429 responses
reach this module with their Retry-After header intact.

Policy:
    - Rate limit (HTTP 429): sleep Retry-After seconds (default 5) and
      retry the same attempt. Rate-limit retries are unbounded.
    - Other failures: sleep delay_ms * attempt (linear backoff) and retry,
      up to `attempts` total.
    - Fatal errors (no credentials, refresh failure, precondition) are
      never retried.
"""

import time
from typing import Callable, TypeVar

from release_bot.core.exceptions import (
    PreconditionError,
    SpotifyError,
    TokenRefreshError,
    UnauthenticatedError,
)
from release_bot.core.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_AFTER_SECONDS = 5

FATAL_ERRORS = (UnauthenticatedError, TokenRefreshError, PreconditionError)


class RetryingCaller:
    """
    Wraps remote operations with backoff and rate-limit compliance.

    Attributes:
        attempts: Maximum attempts for non-rate-limit failures.
        delay_ms: Base backoff in milliseconds; attempt N sleeps delay_ms * N.
        default_retry_after: Seconds to wait on a 429 without Retry-After.

    Example:
        caller = RetryingCaller(attempts=3, delay_ms=2000)
        page = caller.call(lambda: sp.artist_albums(artist_id), "artist albums")
    """

    def __init__(
        self,
        attempts: int = 3,
        delay_ms: int = 2000,
        sleep: Callable[[float], None] = time.sleep,
        default_retry_after: float = DEFAULT_RETRY_AFTER_SECONDS
    ) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.delay_ms = delay_ms
        self.default_retry_after = default_retry_after
        self._sleep = sleep

    def call(self, operation: Callable[[], T], label: str) -> T:
        """
        Run operation until it succeeds or the attempt budget is spent.

        Args:
            operation: Zero-argument callable performing one remote call.
            label: Human-readable name used in log messages and errors.

        Returns:
            The operation's result.

        Raises:
            UnauthenticatedError, TokenRefreshError, PreconditionError:
                Propagated immediately, never retried.
            SpotifyError: After `attempts` non-rate-limit failures. The
                message names the label and attempt count; the last
                underlying error is chained as __cause__.
        """
        attempt = 1
        while True:
            try:
                return operation()
            except FATAL_ERRORS:
                raise
            except SpotifyError as e:
                if e.is_rate_limit:
                    wait = e.retry_after if e.retry_after is not None else self.default_retry_after
                    logger.warning(f"Rate limited on {label}, waiting {wait}s")
                    self._sleep(wait)
                    continue
                last_error: Exception = e
            except Exception as e:
                last_error = e

            if attempt >= self.attempts:
                logger.error(f"{label} failed after {self.attempts} attempts: {last_error}")
                raise SpotifyError(
                    f"{label} failed after {self.attempts} attempts: {last_error}",
                    details={"label": label, "attempts": self.attempts},
                    http_status=getattr(last_error, "http_status", None)
                ) from last_error

            delay = self.delay_ms * attempt / 1000
            logger.warning(
                f"{label} failed (attempt {attempt}/{self.attempts}): {last_error}. "
                f"Retrying in {delay:g}s"
            )
            self._sleep(delay)
            attempt += 1
