"""Data models for Dropbox OAuth authentication"""

from typing import Optional

from pydantic import BaseModel


class OAuthTokens(BaseModel):
    """Token endpoint response

    Attributes:
        access_token: Short-lived bearer token, kept in memory only
        refresh_token: Long-lived token, persisted through the secret store
        id_token: OpenID token when the provider returns one
        expires_in: Provider-reported access token lifetime in seconds
    """
    access_token: str
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    expires_in: Optional[int] = None


class OAuthUser(BaseModel):
    """Cached profile of the signed-in account"""
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None


class AuthStatus(BaseModel):
    is_authenticated: bool
    user: Optional[OAuthUser] = None
