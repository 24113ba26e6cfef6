"""Test token lifecycle and the token endpoint"""

import threading
import urllib.parse
from unittest.mock import Mock, patch

import pytest

from release_bot.core.exceptions import SpotifyError, TokenRefreshError, UnauthenticatedError
from release_bot.core.store import CredentialStore
from release_bot.spotify.auth import (
    TokenGuard,
    TokenRefresher,
    build_authorize_url,
    exchange_code,
)
from release_bot.spotify.models import TokenState


NOW_SECONDS = 1_700_000_000
NOW_MS = NOW_SECONDS * 1000


@pytest.fixture
def credentials(tmp_path):
    return CredentialStore(tmp_path / "tokens.json")


@pytest.fixture
def refresher():
    return Mock(return_value={"access_token": "fresh", "expires_in": 3600})


def make_guard(credentials, refresher, caller=None):
    return TokenGuard(credentials, refresher, caller=caller, clock=lambda: NOW_SECONDS)


class TestTokenGuard:
    """Test TokenGuard.ensure_valid"""

    def test_valid_token_is_returned_without_refresh(self, credentials, refresher):
        stored = TokenState("current", "refresh", expires_at=NOW_MS + 3_600_000)
        credentials.save(stored)

        assert make_guard(credentials, refresher).ensure_valid() == stored
        refresher.assert_not_called()

    def test_token_expiring_within_window_is_refreshed(self, credentials, refresher):
        credentials.save(TokenState("old", "refresh", expires_at=NOW_MS + 4 * 60 * 1000))

        state = make_guard(credentials, refresher).ensure_valid()

        refresher.assert_called_once_with("refresh")
        assert state.access_token == "fresh"
        assert state.refresh_token == "refresh"
        assert state.expires_at == NOW_MS + 3_600_000
        assert credentials.load() == state

    def test_missing_credentials(self, credentials, refresher):
        with pytest.raises(UnauthenticatedError):
            make_guard(credentials, refresher).ensure_valid()
        refresher.assert_not_called()

    def test_refresh_failure_never_returns_expired_token(self, credentials):
        expired = TokenState("expired", "refresh", expires_at=NOW_MS - 1)
        credentials.save(expired)
        failing = Mock(side_effect=SpotifyError("invalid_grant", is_auth_error=True, http_status=400))

        with pytest.raises(TokenRefreshError) as exc_info:
            make_guard(credentials, failing).ensure_valid()

        assert exc_info.value.http_status == 400
        assert credentials.load() == expired

    def test_malformed_refresh_response(self, credentials):
        credentials.save(TokenState("expired", "refresh", expires_at=NOW_MS - 1))

        with pytest.raises(TokenRefreshError):
            make_guard(credentials, Mock(return_value={"token_type": "Bearer"})).ensure_valid()

    def test_refresh_is_retried_through_caller(self, credentials, caller, recording_sleep):
        credentials.save(TokenState("expired", "refresh", expires_at=NOW_MS - 1))
        flaky = Mock(side_effect=[
            SpotifyError("HTTP 503", http_status=503),
            {"access_token": "fresh", "expires_in": 3600},
        ])

        state = make_guard(credentials, flaky, caller).ensure_valid()

        assert state.access_token == "fresh"
        assert recording_sleep.calls == [2.0]

    def test_invalidate_forces_refresh(self, credentials, refresher):
        credentials.save(TokenState("current", "refresh", expires_at=NOW_MS + 3_600_000))
        guard = make_guard(credentials, refresher)
        guard.ensure_valid()

        guard.invalidate()
        assert guard.ensure_valid().access_token == "fresh"
        assert guard.ensure_valid().access_token == "fresh"
        refresher.assert_called_once()

    def test_concurrent_callers_refresh_once(self, credentials):
        credentials.save(TokenState("old", "refresh", expires_at=NOW_MS - 1))
        calls = []

        def slow_refresher(refresh_token):
            calls.append(refresh_token)
            return {"access_token": "fresh", "expires_in": 3600}

        guard = make_guard(credentials, slow_refresher)
        results = []

        def worker():
            results.append(guard.ensure_valid().access_token)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert calls == ["refresh"]
        assert results == ["fresh"] * 8

    def test_is_authenticated(self, credentials, refresher):
        guard = make_guard(credentials, refresher)
        assert not guard.is_authenticated()

        credentials.save(TokenState("a", "r", expires_at=NOW_MS))
        assert make_guard(credentials, refresher).is_authenticated()


class TestTokenEndpoint:
    """Test requests against the accounts service"""

    def _response(self, status_code, payload=None, headers=None):
        response = Mock()
        response.status_code = status_code
        response.headers = headers or {}
        response.text = "error body"
        response.json.return_value = payload or {}
        return response

    def test_refresh_request(self):
        with patch("release_bot.spotify.auth.requests.post") as post:
            post.return_value = self._response(200, {"access_token": "a", "expires_in": 3600})

            result = TokenRefresher("id", "secret", timeout=5)("refresh-token")

        assert result["access_token"] == "a"
        data = post.call_args.kwargs["data"]
        assert data["grant_type"] == "refresh_token"
        assert data["refresh_token"] == "refresh-token"
        assert data["client_id"] == "id"
        assert post.call_args.kwargs["timeout"] == 5

    def test_exchange_code_sends_redirect_uri(self):
        with patch("release_bot.spotify.auth.requests.post") as post:
            post.return_value = self._response(200, {"access_token": "a", "refresh_token": "r"})

            exchange_code("the-code", "id", "secret", "http://127.0.0.1:8888/callback")

        data = post.call_args.kwargs["data"]
        assert data["grant_type"] == "authorization_code"
        assert data["code"] == "the-code"
        assert data["redirect_uri"] == "http://127.0.0.1:8888/callback"

    def test_rate_limited_refresh(self):
        with patch("release_bot.spotify.auth.requests.post") as post:
            post.return_value = self._response(429, headers={"Retry-After": "7"})

            with pytest.raises(SpotifyError) as exc_info:
                TokenRefresher("id", "secret")("refresh-token")

        assert exc_info.value.is_rate_limit
        assert exc_info.value.retry_after == 7.0

    def test_rejected_refresh_is_auth_error(self):
        with patch("release_bot.spotify.auth.requests.post") as post:
            post.return_value = self._response(400)

            with pytest.raises(SpotifyError) as exc_info:
                TokenRefresher("id", "secret")("revoked")

        assert exc_info.value.is_auth_error
        assert exc_info.value.http_status == 400


class TestAuthorizeUrl:
    """Test the consent URL"""

    def test_contains_scopes_and_state(self):
        url = build_authorize_url(
            "client", "http://127.0.0.1:8888/callback",
            ("playlist-modify-public", "user-follow-read"), "xyz"
        )
        query = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)

        assert url.startswith("https://accounts.spotify.com/authorize?")
        assert query["scope"] == ["playlist-modify-public user-follow-read"]
        assert query["state"] == ["xyz"]
        assert query["response_type"] == ["code"]
