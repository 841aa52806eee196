"""In-memory secret store used by tests and headless runs"""

import logging
from typing import Optional

from utils.errors import SafeStorageError
from .base import SecretStore

logger = logging.getLogger(__name__)


class MemorySecretStore(SecretStore):
    """Process-local secret slot with switchable availability"""

    def __init__(self, available: bool = True, secret: Optional[str] = None):
        self.available = available
        self._secret = secret
        self._corrupted = False

    def is_available(self) -> bool:
        return self.available

    def save(self, secret: str) -> None:
        if not self.available:
            raise SafeStorageError("Secure storage is not available on this system")
        self._secret = secret
        self._corrupted = False

    def get(self) -> Optional[str]:
        if not self.available:
            raise SafeStorageError("Secure storage is not available on this system")
        if self._corrupted:
            logger.warning("Stored secret is unreadable, deleting it")
            self.clear()
            return None
        return self._secret

    def clear(self) -> None:
        self._secret = None
        self._corrupted = False

    def corrupt(self) -> None:
        """Simulate an entry that can no longer be decrypted"""
        self._corrupted = True
