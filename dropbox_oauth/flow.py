"""Dropbox sign-in flow: PKCE, loopback redirect, code exchange, profile"""

import logging
import webbrowser
from typing import Callable, Optional

import httpx

from models.oauth import AuthStatus, OAuthTokens
from secret_store import SecretStore
from utils.cancellation import CancelSlot, CancelToken
from utils.errors import CanceledError, CryptoError, OAuthConfigError, SafeStorageError, SyncError
from utils.storage import ProfileStorage
from .authorization import build_authorize_url, resolve_app_key
from .callback_server import LoopbackCallbackServer
from .pkce import generate_pkce
from .token_exchange import exchange_code_for_tokens
from .user_info import fetch_user_info

logger = logging.getLogger(__name__)


class DropboxAuthFlow:
    """Drives one authorization attempt at a time

    Starting a new attempt cancels the one in flight. A cancelled attempt
    never writes a refresh token.
    """

    def __init__(
        self,
        refresh_tokens: SecretStore,
        profile: Optional[ProfileStorage] = None,
        app_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        open_browser: Callable[[str], bool] = webbrowser.open,
        server_factory: Callable[[], LoopbackCallbackServer] = LoopbackCallbackServer,
        redirect_timeout: Optional[float] = None,
    ):
        self.refresh_tokens = refresh_tokens
        self.profile = profile or ProfileStorage()
        self.app_key = app_key
        self.transport = transport
        self.open_browser = open_browser
        self.server_factory = server_factory
        self.redirect_timeout = redirect_timeout
        self._attempt = CancelSlot("sign-in")

    @property
    def in_progress(self) -> bool:
        return self._attempt.busy

    def _ensure_preconditions(self) -> str:
        app_key = resolve_app_key(self.app_key)
        if not self.refresh_tokens.is_available():
            raise CryptoError("Safe storage is not available on this system.", reason="unavailable")
        logger.info("Preconditions OK (app key and secure storage)")
        return app_key

    async def start(self) -> AuthStatus:
        """Run the full sign-in flow

        Returns:
            AuthStatus after a successful sign-in

        Raises:
            OAuthConfigError: Missing app key, provider rejected the flow, or
                no refresh token is available afterwards
            CryptoError: Secure storage unavailable
            CanceledError: Cancelled or superseded by a newer attempt
            UnknownSyncError: Browser redirect timed out
        """
        logger.info("Starting Dropbox OAuth flow")
        app_key = self._ensure_preconditions()
        pkce = generate_pkce()
        logger.debug("PKCE challenge generated")

        cancel = self._attempt.replace()
        try:
            server = self.server_factory()
            await server.start()
            try:
                auth_url = build_authorize_url(app_key, server.redirect_uri, pkce.code_challenge)
                logger.info("Opening external auth URL")
                if not self.open_browser(auth_url):
                    logger.warning(f"Could not open a browser, visit this URL to sign in: {auth_url}")
                code = await server.wait_for_code(cancel, self.redirect_timeout)
            finally:
                await server.stop()

            tokens = await exchange_code_for_tokens(
                app_key,
                code,
                pkce.code_verifier,
                server.redirect_uri,
                cancel=cancel,
                transport=self.transport,
            )
            await self._store_tokens_and_user(tokens, cancel)
        finally:
            self._attempt.release(cancel)

        logger.info("OAuth flow completed successfully")
        return self.status()

    async def _store_tokens_and_user(self, tokens: OAuthTokens, cancel: CancelToken):
        cancel.raise_if_canceled("Sign-in canceled")

        if tokens.refresh_token:
            self.refresh_tokens.save(tokens.refresh_token)
            logger.info("Refresh token stored (encrypted)")
        elif not self.refresh_tokens.get():
            raise OAuthConfigError("No refresh_token returned. Please try again.")

        try:
            user = await fetch_user_info(tokens.access_token, cancel=cancel, transport=self.transport)
            self.profile.save_user(user)
            logger.info(f"User info fetched and stored (email: {bool(user.email)}, name: {bool(user.name)})")
        except CanceledError:
            raise
        except SyncError as e:
            logger.warning(f"Failed to fetch user info, clearing stored user: {e}")
            self.profile.clear_user()

    def cancel(self):
        """Abort the in-flight attempt, if any"""
        logger.info("OAuth cancel requested")
        self._attempt.cancel()

    def sign_out(self):
        """Cancel any attempt and forget the refresh token and profile"""
        logger.info("Signing out and clearing stored token and user")
        self.cancel()
        self.profile.clear_user()
        self.refresh_tokens.clear()

    def status(self) -> AuthStatus:
        """Report whether a readable refresh token is stored"""
        try:
            token = self.refresh_tokens.get()
        except SafeStorageError as e:
            logger.info(f"Auth status: not authenticated ({e})")
            return AuthStatus(is_authenticated=False)

        if not token:
            logger.info("Auth status: not authenticated (no token)")
            return AuthStatus(is_authenticated=False)

        user = self.profile.load_user()
        logger.debug(f"Auth status: authenticated (has user: {user is not None})")
        return AuthStatus(is_authenticated=True, user=user)
