"""Tests for the Dropbox PKCE sign-in flow."""

from __future__ import annotations

import asyncio
import base64
import hashlib
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

import settings
from dropbox_oauth import (
    DropboxAuthFlow,
    LoopbackCallbackServer,
    build_authorize_url,
    exchange_code_for_tokens,
    generate_pkce,
    resolve_app_key,
)
from dropbox_oauth.callback_server import FAILURE_MESSAGE, SUCCESS_MESSAGE
from secret_store import MemorySecretStore
from utils.cancellation import CancelToken
from utils.errors import (
    CanceledError,
    CryptoError,
    ErrorCode,
    OAuthConfigError,
    UnknownSyncError,
)


# ---------------------------------------------------------------------------
# PKCE and authorization URL
# ---------------------------------------------------------------------------


def test_pkce_challenge_is_s256_of_verifier() -> None:
    pkce = generate_pkce()
    assert 43 <= len(pkce.code_verifier) <= 128
    expected = base64.urlsafe_b64encode(hashlib.sha256(pkce.code_verifier.encode()).digest()).decode().rstrip("=")
    assert pkce.code_challenge == expected
    assert generate_pkce().code_verifier != pkce.code_verifier


def test_authorize_url_parameters() -> None:
    url = build_authorize_url("app-key", "http://127.0.0.1:5123/callback", "challenge")
    parsed = urlparse(url)
    params = {key: values[0] for key, values in parse_qs(parsed.query).items()}

    assert url.startswith(settings.DROPBOX_AUTHORIZE_URL)
    assert params == {
        "client_id": "app-key",
        "redirect_uri": "http://127.0.0.1:5123/callback",
        "response_type": "code",
        "code_challenge": "challenge",
        "code_challenge_method": "S256",
        "scope": settings.OAUTH_SCOPES,
        "token_access_type": "offline",
    }


def test_missing_app_key(monkeypatch) -> None:
    monkeypatch.setattr(settings, "DROPBOX_APP_KEY", "")
    with pytest.raises(OAuthConfigError):
        resolve_app_key()
    assert resolve_app_key("explicit") == "explicit"


@pytest.mark.asyncio
async def test_rejected_code_exchange(fake_dropbox) -> None:
    fake_dropbox.failures["/oauth2/token"] = 400
    with pytest.raises(OAuthConfigError) as exc_info:
        await exchange_code_for_tokens("k", "code", "verifier", "http://127.0.0.1/callback", transport=fake_dropbox.transport)
    assert exc_info.value.status == 400


# ---------------------------------------------------------------------------
# Loopback callback server
# ---------------------------------------------------------------------------


class TestLoopbackCallbackServer:
    """Tests against a real listener on 127.0.0.1."""

    @pytest.mark.asyncio
    async def test_receives_code_and_shuts_down(self) -> None:
        server = LoopbackCallbackServer()
        await server.start()
        assert server.redirect_uri.startswith("http://127.0.0.1:")
        assert server.redirect_uri.endswith("/callback")

        async with httpx.AsyncClient(trust_env=False) as client:
            response, code = await asyncio.gather(
                client.get(server.redirect_uri, params={"code": "auth-code"}),
                server.wait_for_code(timeout=5),
            )

        assert code == "auth-code"
        assert response.status_code == 200
        assert SUCCESS_MESSAGE in response.text
        assert server.runner is None

    @pytest.mark.asyncio
    async def test_access_denied_is_a_cancellation(self) -> None:
        server = LoopbackCallbackServer()
        await server.start()

        async with httpx.AsyncClient(trust_env=False) as client:
            response, outcome = await asyncio.gather(
                client.get(server.redirect_uri, params={"error": "access_denied"}),
                server.wait_for_code(timeout=5),
                return_exceptions=True,
            )

        assert isinstance(outcome, CanceledError)
        assert FAILURE_MESSAGE in response.text

    @pytest.mark.asyncio
    async def test_missing_code(self) -> None:
        server = LoopbackCallbackServer()
        await server.start()

        async with httpx.AsyncClient(trust_env=False) as client:
            _, outcome = await asyncio.gather(
                client.get(server.redirect_uri, params={"state": "x"}),
                server.wait_for_code(timeout=5),
                return_exceptions=True,
            )

        assert isinstance(outcome, OAuthConfigError)

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        server = LoopbackCallbackServer()
        await server.start()
        with pytest.raises(UnknownSyncError, match="OAuth timed out."):
            await server.wait_for_code(timeout=0.05)
        assert server.runner is None

    @pytest.mark.asyncio
    async def test_cancel(self) -> None:
        server = LoopbackCallbackServer()
        await server.start()
        token = CancelToken()

        waiter = asyncio.ensure_future(server.wait_for_code(token, timeout=5))
        await asyncio.sleep(0)
        token.cancel()

        with pytest.raises(CanceledError):
            await waiter
        assert server.runner is None
        await server.stop()


# ---------------------------------------------------------------------------
# Full flow with a fake listener
# ---------------------------------------------------------------------------


class FakeCallbackServer:
    """Stands in for the loopback listener; resolves with a fixed outcome."""

    def __init__(self, code: Optional[str] = "auth-code", wait_for_cancel: bool = False) -> None:
        self.code = code
        self.wait_for_cancel = wait_for_cancel
        self.waiting = asyncio.Event()
        self.stopped = False
        self.redirect_uri = "http://127.0.0.1:5999/callback"

    async def start(self) -> None:
        pass

    async def wait_for_code(self, cancel: Optional[CancelToken] = None, timeout: Optional[float] = None) -> str:
        self.waiting.set()
        if self.wait_for_cancel:
            await cancel.wait()
            raise CanceledError("User cancelled.")
        return self.code

    async def stop(self) -> None:
        self.stopped = True


class TestDropboxAuthFlow:
    """Tests for the sign-in orchestration of one attempt."""

    @staticmethod
    def make_flow(fake_dropbox, store, profile, server: FakeCallbackServer, opened: List[str]) -> DropboxAuthFlow:
        return DropboxAuthFlow(
            store,
            profile,
            app_key="test-app-key",
            transport=fake_dropbox.transport,
            open_browser=lambda url: opened.append(url) or True,
            server_factory=lambda: server,
        )

    @pytest.mark.asyncio
    async def test_successful_sign_in(self, fake_dropbox, profile) -> None:
        store = MemorySecretStore()
        server = FakeCallbackServer()
        opened: List[str] = []
        flow = self.make_flow(fake_dropbox, store, profile, server, opened)

        status = await flow.start()

        assert status.is_authenticated
        assert status.user.email == "ada@example.com"
        assert status.user.name == "Ada Lovelace"
        assert store.get() == "refresh-from-code"
        assert server.stopped
        assert not flow.in_progress

        params = parse_qs(urlparse(opened[0]).query)
        exchange = fake_dropbox.token_requests[0]
        assert exchange["grant_type"] == "authorization_code"
        assert exchange["code"] == "auth-code"
        assert exchange["redirect_uri"] == server.redirect_uri
        challenge = base64.urlsafe_b64encode(hashlib.sha256(exchange["code_verifier"].encode()).digest()).decode().rstrip("=")
        assert params["code_challenge"] == [challenge]

    @pytest.mark.asyncio
    async def test_cancelled_attempt_never_stores_token(self, fake_dropbox, profile) -> None:
        store = MemorySecretStore()
        server = FakeCallbackServer(wait_for_cancel=True)
        flow = self.make_flow(fake_dropbox, store, profile, server, [])

        attempt = asyncio.ensure_future(flow.start())
        await server.waiting.wait()
        assert flow.in_progress
        flow.cancel()

        with pytest.raises(CanceledError):
            await attempt
        assert store.get() is None
        assert fake_dropbox.token_requests == []
        assert server.stopped

    @pytest.mark.asyncio
    async def test_unavailable_secure_storage(self, fake_dropbox, profile) -> None:
        flow = self.make_flow(fake_dropbox, MemorySecretStore(available=False), profile, FakeCallbackServer(), [])
        with pytest.raises(CryptoError) as exc_info:
            await flow.start()
        assert exc_info.value.code == ErrorCode.CRYPTO

    @pytest.mark.asyncio
    async def test_no_refresh_token_returned(self, fake_dropbox, profile) -> None:
        fake_dropbox.code_refresh_token = None
        flow = self.make_flow(fake_dropbox, MemorySecretStore(), profile, FakeCallbackServer(), [])
        with pytest.raises(OAuthConfigError, match="No refresh_token returned"):
            await flow.start()

    @pytest.mark.asyncio
    async def test_profile_failure_does_not_fail_sign_in(self, fake_dropbox, profile) -> None:
        fake_dropbox.failures["/2/users/get_current_account"] = 500
        store = MemorySecretStore()
        flow = self.make_flow(fake_dropbox, store, profile, FakeCallbackServer(), [])

        status = await flow.start()
        assert status.is_authenticated
        assert status.user is None
        assert store.get() == "refresh-from-code"

    @pytest.mark.asyncio
    async def test_sign_out_and_status(self, fake_dropbox, profile) -> None:
        store = MemorySecretStore()
        flow = self.make_flow(fake_dropbox, store, profile, FakeCallbackServer(), [])
        await flow.start()

        flow.sign_out()
        assert not flow.status().is_authenticated
        assert profile.load_user() is None

    def test_unreadable_refresh_token_means_signed_out(self, fake_dropbox, profile) -> None:
        store = MemorySecretStore(secret="refresh-1")
        store.corrupt()
        flow = self.make_flow(fake_dropbox, store, profile, FakeCallbackServer(), [])
        assert not flow.status().is_authenticated

        flow = self.make_flow(fake_dropbox, MemorySecretStore(available=False), profile, FakeCallbackServer(), [])
        assert not flow.status().is_authenticated
