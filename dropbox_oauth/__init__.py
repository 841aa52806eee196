"""Dropbox OAuth (PKCE + loopback redirect) authentication package"""

from .pkce import PKCEPair, generate_pkce
from .authorization import build_authorize_url, resolve_app_key
from .callback_server import LoopbackCallbackServer
from .token_exchange import exchange_code_for_tokens, refresh_access_token
from .user_info import fetch_user_info
from .flow import DropboxAuthFlow

__all__ = [
    "PKCEPair",
    "generate_pkce",
    "build_authorize_url",
    "resolve_app_key",
    "LoopbackCallbackServer",
    "exchange_code_for_tokens",
    "refresh_access_token",
    "fetch_user_info",
    "DropboxAuthFlow",
]
