"""Dropbox token endpoint calls (authorization code and refresh token grants)"""

import json
import logging
from typing import Optional

import httpx

import settings
from models.oauth import OAuthTokens
from utils.cancellation import CancelToken, run_cancellable
from utils.errors import NetworkError, OAuthConfigError, TokenRefreshFailedError
from utils.http_client import create_async_client

logger = logging.getLogger(__name__)


async def _post_token_request(
    data: dict,
    cancel: Optional[CancelToken],
    transport: Optional[httpx.AsyncBaseTransport],
) -> httpx.Response:
    async with create_async_client(transport) as client:
        try:
            return await run_cancellable(
                client.post(
                    settings.DROPBOX_TOKEN_URL,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                ),
                cancel,
                "Token request canceled",
            )
        except httpx.RequestError as e:
            raise NetworkError(f"Network error during token request: {e}") from e


async def exchange_code_for_tokens(
    app_key: str,
    code: str,
    code_verifier: str,
    redirect_uri: str,
    cancel: Optional[CancelToken] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> OAuthTokens:
    """Exchange an authorization code (plus PKCE verifier) for tokens

    Args:
        app_key: Dropbox app key
        code: Authorization code from the loopback redirect
        code_verifier: PKCE verifier of this attempt
        redirect_uri: Redirect URI used in the authorization request
        cancel: Token aborting the request
        transport: Optional httpx transport override

    Returns:
        OAuthTokens from the provider

    Raises:
        OAuthConfigError: If the provider rejects the exchange
        NetworkError: On transport failure
        CanceledError: If cancelled
    """
    logger.info("Exchanging authorization code for tokens...")
    response = await _post_token_request(
        {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": app_key,
            "code_verifier": code_verifier,
            "redirect_uri": redirect_uri,
        },
        cancel,
        transport,
    )

    if response.status_code != 200:
        logger.error(f"Token exchange failed with status {response.status_code}: {response.text}")
        raise OAuthConfigError(
            f"Token exchange failed: {response.status_code}", status=response.status_code
        )

    try:
        tokens = OAuthTokens.model_validate(response.json())
    except (json.JSONDecodeError, ValueError) as e:
        raise OAuthConfigError("Token exchange returned an invalid response") from e

    logger.info("Token exchange successful (not logging tokens)")
    return tokens


async def refresh_access_token(
    app_key: str,
    refresh_token: str,
    cancel: Optional[CancelToken] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> OAuthTokens:
    """Mint a new access token from the stored refresh token

    Returns:
        OAuthTokens carrying the new access token and its lifetime

    Raises:
        TokenRefreshFailedError: Non-2xx response or no access token returned
        NetworkError: On transport failure
        CanceledError: If cancelled
    """
    logger.info("Refreshing access token...")
    response = await _post_token_request(
        {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": app_key,
        },
        cancel,
        transport,
    )

    if not response.is_success:
        logger.error(f"Token refresh failed with status {response.status_code}: {response.text}")
        raise TokenRefreshFailedError(
            f"Refreshing token failed: {response.status_code}", status=response.status_code
        )

    try:
        payload = response.json()
    except json.JSONDecodeError as e:
        raise TokenRefreshFailedError("Failed to parse token refresh response") from e

    if not isinstance(payload, dict) or not payload.get("access_token"):
        raise TokenRefreshFailedError("Failed to obtain access token.")

    logger.info("Access token obtained (not logging token)")
    return OAuthTokens.model_validate(payload)
