"""OS keychain backed secret storage (Secret Service, Keychain, Credential Locker)"""

import logging
from typing import Optional

import keyring
from keyring.backends import fail
from keyring.errors import KeyringError, PasswordDeleteError

from utils.errors import SafeStorageError
from .base import SecretStore

logger = logging.getLogger(__name__)


class KeyringSecretStore(SecretStore):
    """One keychain entry identified by (service, slot)"""

    def __init__(self, service: str, slot: str):
        self.service = service
        self.slot = slot

    def is_available(self) -> bool:
        return not isinstance(keyring.get_keyring(), fail.Keyring)

    def _require_available(self) -> None:
        if not self.is_available():
            raise SafeStorageError("Secure storage is not available on this system")

    def save(self, secret: str) -> None:
        self._require_available()
        try:
            keyring.set_password(self.service, self.slot, secret)
        except KeyringError as e:
            raise SafeStorageError(f"Failed to store secret '{self.slot}': {e}") from e
        logger.debug(f"Stored secret '{self.slot}' (not logging value)")

    def get(self) -> Optional[str]:
        self._require_available()
        try:
            return keyring.get_password(self.service, self.slot)
        except KeyringError as e:
            logger.warning(f"Stored secret '{self.slot}' is unreadable, deleting it: {e}")
            self._delete_quietly()
            return None

    def clear(self) -> None:
        if not self.is_available():
            logger.debug(f"Secure storage unavailable, nothing to clear for '{self.slot}'")
            return
        try:
            keyring.delete_password(self.service, self.slot)
            logger.debug(f"Cleared secret '{self.slot}'")
        except PasswordDeleteError:
            logger.debug(f"No stored secret '{self.slot}' to clear")
        except KeyringError as e:
            raise SafeStorageError(f"Failed to clear secret '{self.slot}': {e}") from e

    def _delete_quietly(self) -> None:
        try:
            keyring.delete_password(self.service, self.slot)
        except KeyringError as e:
            logger.warning(f"Could not delete unreadable secret '{self.slot}': {e}")
