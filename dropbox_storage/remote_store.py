"""Dropbox remote store with access token lifecycle and per-kind cancellation"""

import logging
from typing import Optional

import httpx

from dropbox_oauth.authorization import resolve_app_key
from dropbox_oauth.token_exchange import refresh_access_token
from secret_store import SecretStore
from utils.cancellation import CancelSlot, CancelToken
from utils.errors import NotAuthenticatedError, NotFoundError
from .files_client import DropboxFilesClient
from .token_cache import AccessTokenCache

logger = logging.getLogger(__name__)


class DropboxRemoteStore:
    """Moves backup files to and from the Dropbox app folder

    Owns the access token cache. The public exists/upload/download/delete
    calls take an explicit cancel token; sync_upload and restore_download
    additionally own one slot each, so a second call of the same kind aborts
    the first while an upload and a restore stay independent.
    """

    def __init__(
        self,
        refresh_tokens: SecretStore,
        app_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token_cache: Optional[AccessTokenCache] = None,
        files_client: Optional[DropboxFilesClient] = None,
    ):
        self.refresh_tokens = refresh_tokens
        self.app_key = app_key
        self.transport = transport
        self.token_cache = token_cache or AccessTokenCache()
        self.files = files_client or DropboxFilesClient(transport)
        self._upload_slot = CancelSlot("upload")
        self._restore_slot = CancelSlot("restore")

    async def get_access_token(self, cancel: Optional[CancelToken] = None) -> str:
        """Return a cached access token or mint one from the refresh token

        Raises:
            NotAuthenticatedError: No refresh token is stored
            SafeStorageError: Secure storage unavailable
            TokenRefreshFailedError: Provider rejected the refresh
            NetworkError / CanceledError: From the refresh request
        """
        cached = self.token_cache.get()
        if cached:
            return cached

        app_key = resolve_app_key(self.app_key)
        refresh_token = self.refresh_tokens.get()
        if not refresh_token:
            raise NotAuthenticatedError("Not authenticated.")

        tokens = await refresh_access_token(app_key, refresh_token, cancel=cancel, transport=self.transport)
        self.token_cache.store(tokens.access_token, tokens.expires_in)
        return tokens.access_token

    async def exists(self, name: str, cancel: Optional[CancelToken] = None) -> bool:
        access_token = await self.get_access_token(cancel)
        return await self.files.exists(access_token, name, cancel)

    async def upload(
        self,
        name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        cancel: Optional[CancelToken] = None,
    ) -> None:
        access_token = await self.get_access_token(cancel)
        await self.files.upload(access_token, name, data, content_type, cancel)

    async def download(self, name: str, cancel: Optional[CancelToken] = None) -> bytes:
        access_token = await self.get_access_token(cancel)
        return await self.files.download(access_token, name, cancel)

    async def delete(self, name: str, cancel: Optional[CancelToken] = None) -> None:
        access_token = await self.get_access_token(cancel)
        await self.files.delete(access_token, name, cancel)

    async def sync_upload(self, name: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        """Upload a file, aborting any upload still in flight"""
        cancel = self._upload_slot.replace()
        logger.info(f"Sync starting: {name} ({len(data)} bytes)")
        try:
            await self.upload(name, data, content_type, cancel)
            logger.info(f"Sync success: {name}")
        finally:
            self._upload_slot.release(cancel)

    async def restore_download(self, name: str) -> bytes:
        """Download a file, aborting any restore download still in flight

        Raises:
            NotFoundError: If the file is not in Dropbox
        """
        cancel = self._restore_slot.replace()
        logger.info(f"Restore starting: {name}")
        try:
            if not await self.exists(name, cancel):
                logger.warning(f"Restore file not found: {name}")
                raise NotFoundError("No backup found in Dropbox.")
            data = await self.download(name, cancel)
            logger.info(f"Restore success: {name} ({len(data)} bytes)")
            return data
        finally:
            self._restore_slot.release(cancel)

    def cancel_all(self):
        """Abort the in-flight upload and restore download"""
        logger.info("Cancel requested for sync/restore")
        self._upload_slot.cancel()
        self._restore_slot.cancel()

    def invalidate_token_cache(self):
        self.token_cache.invalidate()

    def sign_out(self):
        """Drop the access token, abort transfers and delete the refresh token"""
        self.token_cache.invalidate()
        self.cancel_all()
        self.refresh_tokens.clear()
        logger.info("Remote store signed out")
