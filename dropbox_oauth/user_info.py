"""Dropbox account profile lookup"""

import json
import logging
from typing import Optional

import httpx

import settings
from models.oauth import OAuthUser
from utils.cancellation import CancelToken, run_cancellable
from utils.errors import DropboxApiError, NetworkError
from utils.http_client import create_async_client

logger = logging.getLogger(__name__)


async def fetch_user_info(
    access_token: str,
    cancel: Optional[CancelToken] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> OAuthUser:
    """Fetch the current account's email, display name and photo

    Raises:
        DropboxApiError: Non-2xx response or unparseable body
        NetworkError: On transport failure
    """
    async with create_async_client(transport) as client:
        try:
            # get_current_account takes no arguments and rejects an empty JSON body
            response = await run_cancellable(
                client.post(
                    f"{settings.DROPBOX_API_BASE}/users/get_current_account",
                    headers={"Authorization": f"Bearer {access_token}"},
                ),
                cancel,
                "User info request canceled",
            )
        except httpx.RequestError as e:
            raise NetworkError(f"Network error during user info request: {e}") from e

    if not response.is_success:
        logger.error(f"User info request failed with status {response.status_code}: {response.text}")
        raise DropboxApiError("Failed to fetch Dropbox user info", status=response.status_code)

    try:
        account = response.json()
    except json.JSONDecodeError as e:
        raise DropboxApiError("Failed to parse Dropbox user info") from e

    if not isinstance(account, dict):
        raise DropboxApiError("Unexpected Dropbox user info response")

    name = account.get("name") or {}
    return OAuthUser(
        email=account.get("email"),
        name=name.get("display_name") if isinstance(name, dict) else None,
        picture=account.get("profile_photo_url"),
    )
