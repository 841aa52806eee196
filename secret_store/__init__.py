"""Single-slot secret storage for the sync password and refresh token"""

from typing import Optional

from settings import KEYRING_SERVICE
from .base import SecretStore
from .keyring_store import KeyringSecretStore
from .memory_store import MemorySecretStore

PASSWORD_SLOT = "sync-password"
REFRESH_TOKEN_SLOT = "refresh-token"


def password_store(service: Optional[str] = None) -> SecretStore:
    """Build the secret store holding the cached sync password"""
    return KeyringSecretStore(service or KEYRING_SERVICE, PASSWORD_SLOT)


def refresh_token_store(service: Optional[str] = None) -> SecretStore:
    """Build the secret store holding the Dropbox refresh token"""
    return KeyringSecretStore(service or KEYRING_SERVICE, REFRESH_TOKEN_SLOT)


__all__ = [
    "SecretStore",
    "KeyringSecretStore",
    "MemorySecretStore",
    "PASSWORD_SLOT",
    "REFRESH_TOKEN_SLOT",
    "password_store",
    "refresh_token_store",
]
