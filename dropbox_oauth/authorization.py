"""Dropbox authorization URL construction"""

import logging
from typing import Optional
from urllib.parse import urlencode

import settings
from utils.errors import OAuthConfigError

logger = logging.getLogger(__name__)


def resolve_app_key(app_key: Optional[str] = None) -> str:
    """Resolve the Dropbox app key

    Args:
        app_key: Explicit key; falls back to settings.DROPBOX_APP_KEY

    Returns:
        Non-empty app key

    Raises:
        OAuthConfigError: If no app key is configured
    """
    resolved = app_key if app_key is not None else settings.DROPBOX_APP_KEY
    if not resolved:
        raise OAuthConfigError(
            "Dropbox app key is missing. Set the DROPBOX_APP_KEY environment variable."
        )
    return resolved


def build_authorize_url(
    app_key: str,
    redirect_uri: str,
    code_challenge: str,
    scopes: Optional[str] = None,
) -> str:
    """Construct the Dropbox authorize URL with PKCE

    Args:
        app_key: Dropbox app key (client_id)
        redirect_uri: Loopback redirect URI
        code_challenge: S256 PKCE challenge
        scopes: Space-separated scopes (defaults to settings.OAUTH_SCOPES)

    Returns:
        Full authorization URL
    """
    params = {
        "client_id": app_key,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "scope": scopes or settings.OAUTH_SCOPES,
        # Offline access is what makes Dropbox return a refresh token
        "token_access_type": "offline",
    }
    return f"{settings.DROPBOX_AUTHORIZE_URL}?{urlencode(params)}"
