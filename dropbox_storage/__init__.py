"""Dropbox file storage for encrypted backups"""

from .token_cache import AccessTokenCache, TokenCacheEntry
from .files_client import DropboxFilesClient
from .remote_store import DropboxRemoteStore

__all__ = [
    "AccessTokenCache",
    "TokenCacheEntry",
    "DropboxFilesClient",
    "DropboxRemoteStore",
]
