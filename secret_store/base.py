"""Secret storage abstraction

A SecretStore holds exactly one secret (the sync password or the Dropbox
refresh token) encrypted at rest by the host platform. Secrets are never
written to logs or plain files.
"""

from abc import ABC, abstractmethod
from typing import Optional


class SecretStore(ABC):
    """Abstract single-slot secret storage"""

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether the platform encryption primitive can be used"""

    @abstractmethod
    def save(self, secret: str) -> None:
        """Store the secret, replacing any previous value

        Raises:
            SafeStorageError: If platform encryption is unavailable or fails
        """

    @abstractmethod
    def get(self) -> Optional[str]:
        """Read the secret

        A stored entry that can no longer be decrypted is deleted and reported
        as absent instead of failing on every read.

        Returns:
            The secret, or None if nothing is stored

        Raises:
            SafeStorageError: If platform encryption is unavailable
        """

    @abstractmethod
    def clear(self) -> None:
        """Delete the secret; a no-op when nothing is stored"""
