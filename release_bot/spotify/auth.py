"""
OAuth2 authentication and token lifecycle for the Spotify Web API.

This module has two halves:

    One-time authorization (`release-bot auth`):
        1. Build the authorization URL with the configured scopes
        2. Start a local HTTP server on the redirect URI's host/port
        3. Open the browser for user consent
        4. Receive the authorization code via callback
        5. Exchange the code for access/refresh tokens
        6. Persist the tokens through the CredentialStore

    Ongoing token validity (TokenGuard):
        Before every API call the guard checks the access token. If it
        expires within five minutes, it is refreshed once (single-flight,
        under a lock), the new state is persisted, and only then returned.

Token requests go straight to the accounts service with requests; spotipy
is only used for the Web API itself.
"""

import secrets
import threading
import time
import urllib.parse
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Protocol

import requests

from release_bot.core.config import SpotifyConfig
from release_bot.core.exceptions import (
    SpotifyError,
    TokenRefreshError,
    UnauthenticatedError,
)
from release_bot.core.logger import get_logger
from release_bot.spotify.models import TokenState
from release_bot.spotify.retry import RetryingCaller


logger = get_logger(__name__)

AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"

# Refresh tokens this long before they actually expire
REFRESH_WINDOW_SECONDS = 5 * 60

# How long `release-bot auth` waits for the browser callback
AUTHORIZATION_TIMEOUT_SECONDS = 300


class CredentialBackend(Protocol):
    """Anything that can load and save TokenState (see core.store.CredentialStore)."""

    def load(self) -> TokenState | None: ...

    def save(self, state: TokenState) -> None: ...


# ===== Token endpoint =====

def _post_token_request(
    data: dict[str, str],
    client_id: str,
    client_secret: str,
    timeout: float
) -> dict[str, Any]:
    """
    POST a grant to the token endpoint.

    Args:
        data: Grant parameters (grant_type and its fields).
        client_id: Spotify application client ID.
        client_secret: Spotify application client secret.
        timeout: Request timeout in seconds.

    Returns:
        The decoded JSON response.

    Raises:
        SpotifyError: On network failure or a non-2xx response. A 429
                      carries is_rate_limit and retry_after.
    """
    try:
        response = requests.post(
            TOKEN_URL,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={**data, "client_id": client_id, "client_secret": client_secret},
            timeout=timeout
        )
    except requests.RequestException as e:
        raise SpotifyError(
            f"Token request failed: {e}",
            details={"grant_type": data.get("grant_type"), "original_error": str(e)}
        ) from e

    if response.status_code == 429:
        retry_after = response.headers.get("Retry-After")
        raise SpotifyError(
            "Rate limited by the Spotify accounts service",
            details={"grant_type": data.get("grant_type")},
            is_rate_limit=True,
            http_status=429,
            retry_after=float(retry_after) if retry_after else None
        )

    if response.status_code >= 400:
        raise SpotifyError(
            f"Token request rejected: HTTP {response.status_code} {response.text[:200]}",
            details={"grant_type": data.get("grant_type"), "status_code": response.status_code},
            is_auth_error=response.status_code in (400, 401),
            http_status=response.status_code
        )

    try:
        return response.json()
    except ValueError as e:
        raise SpotifyError(
            "Token response is not valid JSON",
            details={"grant_type": data.get("grant_type")},
            http_status=response.status_code
        ) from e


class TokenRefresher:
    """
    Callable that exchanges a refresh token for a fresh token response.

    Example:
        refresher = TokenRefresher(client_id, client_secret)
        response = refresher(state.refresh_token)
        # {"access_token": "...", "expires_in": 3600, ["refresh_token": "..."]}
    """

    def __init__(self, client_id: str, client_secret: str, timeout: float = 30) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

    def __call__(self, refresh_token: str) -> dict[str, Any]:
        return _post_token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            self.client_id,
            self.client_secret,
            self.timeout
        )


def exchange_code(
    code: str,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    timeout: float = 30
) -> dict[str, Any]:
    """
    Exchange an authorization code for access and refresh tokens.

    The redirect_uri must exactly match the one used in the
    authorization request.
    """
    return _post_token_request(
        {"grant_type": "authorization_code", "code": code, "redirect_uri": redirect_uri},
        client_id,
        client_secret,
        timeout
    )


# ===== Token guard =====

class TokenGuard:
    """
    Keeps a valid access token available to API callers.

    The guard owns the single live TokenState for the process. It loads
    the persisted state on first use and refreshes it when it is within
    the refresh window of expiry. Refresh is serialized with a lock, so
    concurrent callers never refresh twice or observe a half-updated state.

    Attributes:
        refresh_window_ms: Refresh when the token expires within this many ms.

    Example:
        guard = TokenGuard(credential_store, TokenRefresher(client_id, secret), caller)
        token = guard.ensure_valid().access_token
    """

    def __init__(
        self,
        credential_store: CredentialBackend,
        refresher: Callable[[str], dict[str, Any]],
        caller: RetryingCaller | None = None,
        clock: Callable[[], float] = time.time,
        refresh_window_seconds: float = REFRESH_WINDOW_SECONDS
    ) -> None:
        """
        Initialize the guard.

        Args:
            credential_store: Where token state is loaded from and saved to.
            refresher: Callable taking a refresh token and returning the
                       token endpoint response.
            caller: Optional retry wrapper used around each refresh.
            clock: Returns the current time in epoch seconds.
            refresh_window_seconds: How early to refresh before expiry.
        """
        self._credential_store = credential_store
        self._refresher = refresher
        self._caller = caller
        self._clock = clock
        self.refresh_window_ms = int(refresh_window_seconds * 1000)
        self._state: TokenState | None = None
        self._force_refresh = False
        self._lock = threading.Lock()

    def ensure_valid(self) -> TokenState:
        """
        Return a token state that is valid for at least the refresh window.

        Returns:
            TokenState: The current (possibly just refreshed) state.

        Raises:
            UnauthenticatedError: If no credential state exists. No refresh
                                  is attempted.
            TokenRefreshError: If the refresh fails. The expired token is
                               never returned.
        """
        with self._lock:
            if self._state is None:
                self._state = self._credential_store.load()

            if self._state is None:
                raise UnauthenticatedError()

            now_ms = self._now_ms()
            if self._force_refresh or self._state.expires_within(now_ms, self.refresh_window_ms):
                self._state = self._refresh(self._state)
                self._force_refresh = False

            return self._state

    def invalidate(self) -> None:
        """Force a refresh on the next ensure_valid() call (e.g. after HTTP 401)."""
        with self._lock:
            self._force_refresh = True

    def is_authenticated(self) -> bool:
        """True if credential state exists (it may still need a refresh)."""
        with self._lock:
            if self._state is None:
                self._state = self._credential_store.load()
            return self._state is not None

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _refresh(self, state: TokenState) -> TokenState:
        logger.debug("Access token expiring, refreshing")

        def operation() -> dict[str, Any]:
            return self._refresher(state.refresh_token)

        try:
            if self._caller is not None:
                response = self._caller.call(operation, "token refresh")
            else:
                response = operation()
            new_state = TokenState.from_token_response(
                response, self._now_ms(), previous_refresh_token=state.refresh_token
            )
        except (SpotifyError, ValueError, KeyError, TypeError) as e:
            raise TokenRefreshError(
                f"Failed to refresh access token: {e}",
                details={"original_error": str(e)},
                http_status=getattr(e, "http_status", None)
            ) from e

        self._credential_store.save(new_state)
        logger.info("Access token refreshed")
        return new_state


# ===== Authorization flow =====

class CallbackHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for the OAuth2 redirect.

    Stores the authorization code (or error) on the parent server instance
    for the waiting authorize() call, and shows a short HTML page.

    Server attributes used:
        expected_path: Path component of the redirect URI.
        expected_state: The anti-forgery state sent with the authorize URL.
        authorization_code / authorization_error: Results for the main thread.
    """

    def do_GET(self) -> None:
        parsed_url = urllib.parse.urlparse(self.path)
        query_params = urllib.parse.parse_qs(parsed_url.query)

        if parsed_url.path != self.server.expected_path:
            self._respond(404, "Not Found", "Unknown path.")
            return

        state = query_params.get("state", [None])[0]
        if "error" in query_params:
            self.server.authorization_error = query_params["error"][0]
            self._respond(400, "Authorization Failed", f"Error: {query_params['error'][0]}")
        elif state != self.server.expected_state:
            self.server.authorization_error = "state_mismatch"
            self._respond(400, "Authorization Failed", "State mismatch. Please try again.")
        elif "code" in query_params:
            self.server.authorization_code = query_params["code"][0]
            self._respond(
                200,
                "Authorization Successful!",
                "You can now close this window and return to the terminal."
            )
        else:
            self._respond(400, "Authorization Failed", "No authorization code received.")

    def _respond(self, status: int, title: str, message: str) -> None:
        color = "#1DB954" if status == 200 else "#E22134"
        page = f"""
        <html>
        <head><title>{title}</title></head>
        <body style="font-family: Arial, sans-serif; text-align: center; margin-top: 50px;">
            <h1 style="color: {color};">{title}</h1>
            <p>{message}</p>
        </body>
        </html>
        """
        self.send_response(status)
        self.send_header("Content-type", "text/html")
        self.end_headers()
        self.wfile.write(page.encode())

    def log_message(self, format: str, *args: Any) -> None:
        """Silence the default per-request stderr logging."""
        pass


def build_authorize_url(client_id: str, redirect_uri: str, scopes: tuple[str, ...], state: str) -> str:
    """Build the Spotify consent URL for the authorization code flow."""
    params = {
        "client_id": client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "scope": " ".join(scopes),
        "state": state,
        "show_dialog": "true",
    }
    return f"{AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"


def authorize(
    spotify_config: SpotifyConfig,
    credential_store: CredentialBackend,
    open_browser: bool = True,
    timeout: float = AUTHORIZATION_TIMEOUT_SECONDS,
    request_timeout: float = 30
) -> TokenState:
    """
    Run the one-time authorization code flow and persist the tokens.

    Args:
        spotify_config: Client credentials, redirect URI and scopes.
        credential_store: Where the resulting TokenState is saved.
        open_browser: Open the consent page automatically.
        timeout: Seconds to wait for the browser callback.
        request_timeout: Timeout for the code exchange request.

    Returns:
        TokenState: The newly stored credentials.

    Raises:
        SpotifyError: If the user denies access, the callback never
                      arrives, or the code exchange fails.
    """
    redirect = urllib.parse.urlparse(spotify_config.redirect_uri)
    host = redirect.hostname or "127.0.0.1"
    port = redirect.port or 80
    state = secrets.token_urlsafe(16)
    authorization_url = build_authorize_url(
        spotify_config.client_id, spotify_config.redirect_uri, spotify_config.scopes, state
    )

    try:
        server = HTTPServer((host, port), CallbackHandler)
    except OSError as e:
        raise SpotifyError(
            f"Cannot listen on {host}:{port} for the OAuth callback: {e}",
            details={"redirect_uri": spotify_config.redirect_uri}
        ) from e

    server.expected_path = redirect.path or "/"
    server.expected_state = state
    server.authorization_code = None
    server.authorization_error = None

    server_thread = threading.Thread(target=server.serve_forever, daemon=True)
    server_thread.start()

    try:
        logger.info(f"If the browser doesn't open, visit: {authorization_url}")
        if open_browser:
            webbrowser.open(authorization_url)

        logger.info("Waiting for authorization callback...")
        deadline = time.time() + timeout
        while server.authorization_code is None and server.authorization_error is None:
            if time.time() > deadline:
                raise SpotifyError(
                    f"Authorization timed out after {timeout:g}s",
                    is_auth_error=True
                )
            time.sleep(0.5)
    finally:
        server.shutdown()
        server.server_close()

    if server.authorization_error:
        raise SpotifyError(
            f"Authorization failed: {server.authorization_error}",
            is_auth_error=True
        )

    response = exchange_code(
        server.authorization_code,
        spotify_config.client_id,
        spotify_config.client_secret,
        spotify_config.redirect_uri,
        timeout=request_timeout
    )
    try:
        token_state = TokenState.from_token_response(response, int(time.time() * 1000))
    except ValueError as e:
        raise SpotifyError(f"Invalid token response: {e}", is_auth_error=True) from e

    credential_store.save(token_state)
    logger.info("Authorization successful, tokens saved")
    return token_state
