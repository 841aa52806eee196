"""Thin client for the Dropbox files endpoints used by backups

All paths live in the app folder root as "/{name}". Every call takes the
access token and an optional cancel token explicitly; token lifecycle and
"newer call cancels older" policy live in DropboxRemoteStore.
"""

import json
import logging
from typing import Optional

import httpx

import settings
from utils.cancellation import CancelToken, run_cancellable
from utils.errors import DropboxApiError, NetworkError, NotFoundError
from utils.http_client import create_async_client

logger = logging.getLogger(__name__)


def _remote_path(name: str) -> str:
    return f"/{name}"


def _is_not_found(response: httpx.Response) -> bool:
    # Dropbox reports missing paths as 409 with an error_summary like "path/not_found/.."
    return response.status_code == 409 and "not_found" in response.text


class DropboxFilesClient:
    """Dropbox files API: get_metadata, upload, download, delete_v2"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    async def _post(
        self,
        operation: str,
        url: str,
        cancel: Optional[CancelToken],
        timeout: Optional[float] = None,
        **kwargs,
    ) -> httpx.Response:
        async with create_async_client(self.transport, timeout) as client:
            try:
                return await run_cancellable(
                    client.post(url, **kwargs),
                    cancel,
                    f"Dropbox {operation} aborted",
                )
            except httpx.RequestError as e:
                raise NetworkError(f"Network error during Dropbox {operation}") from e

    def _raise_for_status(self, operation: str, name: str, response: httpx.Response):
        if response.is_success:
            return
        if _is_not_found(response):
            raise NotFoundError(f"{name} not found in Dropbox", status=response.status_code)
        logger.error(f"Dropbox {operation} failed for {name} with status {response.status_code}: {response.text}")
        raise DropboxApiError(f"Dropbox {operation} failed", status=response.status_code)

    async def exists(self, access_token: str, name: str, cancel: Optional[CancelToken] = None) -> bool:
        """Check whether a file exists; a missing file is not an error"""
        response = await self._post(
            "metadata check",
            f"{settings.DROPBOX_API_BASE}/files/get_metadata",
            cancel,
            headers={"Authorization": f"Bearer {access_token}"},
            json={
                "path": _remote_path(name),
                "include_media_info": False,
                "include_deleted": False,
                "include_has_explicit_shared_members": False,
            },
        )
        if _is_not_found(response):
            return False
        self._raise_for_status("metadata check", name, response)
        return True

    async def upload(
        self,
        access_token: str,
        name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        cancel: Optional[CancelToken] = None,
    ) -> None:
        """Upload (overwrite) a file

        The files/upload endpoint only accepts application/octet-stream, so
        content_type is recorded in the log rather than sent.
        """
        response = await self._post(
            "upload",
            f"{settings.DROPBOX_CONTENT_BASE}/files/upload",
            cancel,
            timeout=settings.TRANSFER_TIMEOUT,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/octet-stream",
                "Dropbox-API-Arg": json.dumps({
                    "path": _remote_path(name),
                    "mode": "overwrite",
                    "autorename": False,
                    "mute": False,
                    "strict_conflict": False,
                }),
            },
            content=data,
        )
        self._raise_for_status("upload", name, response)
        logger.debug(f"Uploaded {name} ({len(data)} bytes, {content_type})")

    async def download(self, access_token: str, name: str, cancel: Optional[CancelToken] = None) -> bytes:
        """Download a file

        Raises:
            NotFoundError: If the file does not exist
        """
        response = await self._post(
            "download",
            f"{settings.DROPBOX_CONTENT_BASE}/files/download",
            cancel,
            timeout=settings.TRANSFER_TIMEOUT,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Dropbox-API-Arg": json.dumps({"path": _remote_path(name)}),
            },
        )
        self._raise_for_status("download", name, response)
        logger.debug(f"Downloaded {name} ({len(response.content)} bytes)")
        return response.content

    async def delete(self, access_token: str, name: str, cancel: Optional[CancelToken] = None) -> None:
        """Delete a file

        Raises:
            NotFoundError: If the file does not exist
        """
        response = await self._post(
            "delete",
            f"{settings.DROPBOX_API_BASE}/files/delete_v2",
            cancel,
            headers={"Authorization": f"Bearer {access_token}"},
            json={"path": _remote_path(name)},
        )
        self._raise_for_status("delete", name, response)
        logger.debug(f"Deleted {name}")
