"""Password-based authenticated encryption for backup payloads"""

from .cipher import (
    EncryptedBundle,
    derive_key,
    encrypt_data,
    decrypt_data,
    PBKDF2_ITERATIONS,
    SALT_BYTES,
    IV_BYTES,
)

__all__ = [
    "EncryptedBundle",
    "derive_key",
    "encrypt_data",
    "decrypt_data",
    "PBKDF2_ITERATIONS",
    "SALT_BYTES",
    "IV_BYTES",
]
