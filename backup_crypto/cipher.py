"""Password-based encryption of the backup payload

Bundle format (one JSON object, all values base64):
  {"salt": <16 bytes>, "iv": <12 bytes>, "encryptedData": <ciphertext+tag>}

The key is derived with PBKDF2-HMAC-SHA256 (100 000 iterations) and the
payload is sealed with AES-256-GCM, so any modification of the ciphertext
fails the tag check instead of yielding corrupted plaintext.
"""

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from utils.errors import CryptoError

logger = logging.getLogger(__name__)

SALT_BYTES = 16
IV_BYTES = 12
KEY_BYTES = 32
PBKDF2_ITERATIONS = 100_000


@dataclass(frozen=True)
class EncryptedBundle:
    salt: bytes
    iv: bytes
    ciphertext: bytes

    def to_json(self) -> str:
        return json.dumps({
            "salt": base64.b64encode(self.salt).decode("ascii"),
            "iv": base64.b64encode(self.iv).decode("ascii"),
            "encryptedData": base64.b64encode(self.ciphertext).decode("ascii"),
        })

    @classmethod
    def from_json(cls, bundle: str) -> "EncryptedBundle":
        """Parse a bundle string

        Raises:
            CryptoError: reason "parse" on malformed JSON, missing fields or
                invalid base64
        """
        try:
            data = json.loads(bundle)
            return cls(
                salt=base64.b64decode(data["salt"], validate=True),
                iv=base64.b64decode(data["iv"], validate=True),
                ciphertext=base64.b64decode(data["encryptedData"], validate=True),
            )
        except (json.JSONDecodeError, KeyError, TypeError, binascii.Error) as e:
            raise CryptoError("Failed to parse JSON bundle", reason="parse") from e


def derive_key(password: str, salt: bytes) -> bytes:
    """Derive a 256-bit AES key from a password and salt

    Args:
        password: User-supplied sync password
        salt: Random per-bundle salt

    Returns:
        32 raw key bytes
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def encrypt_data(plaintext: str, password: str) -> str:
    """Encrypt a string with a password

    Salt and IV are freshly random on every call, so encrypting the same
    plaintext twice yields two different bundles.

    Args:
        plaintext: Text to encrypt (may be empty)
        password: Sync password

    Returns:
        Bundle serialized as a JSON string

    Raises:
        CryptoError: reason "encrypt" if the primitive fails
    """
    salt = os.urandom(SALT_BYTES)
    iv = os.urandom(IV_BYTES)
    try:
        key = derive_key(password, salt)
        ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    except (ValueError, TypeError, OverflowError) as e:
        raise CryptoError("Failed to encrypt data", reason="encrypt") from e

    logger.debug(f"Encrypted {len(plaintext)} characters into {len(ciphertext)} bytes")
    return EncryptedBundle(salt=salt, iv=iv, ciphertext=ciphertext).to_json()


def decrypt_data(bundle: str, password: str) -> str:
    """Decrypt a bundle produced by encrypt_data

    A wrong password and a tampered bundle fail identically.

    Args:
        bundle: JSON bundle string
        password: Sync password

    Returns:
        The original plaintext

    Raises:
        CryptoError: reason "parse" for a malformed bundle, reason "decrypt"
            when authentication fails
    """
    parsed = EncryptedBundle.from_json(bundle)
    try:
        key = derive_key(password, parsed.salt)
        plaintext = AESGCM(key).decrypt(parsed.iv, parsed.ciphertext, None)
        return plaintext.decode("utf-8")
    except (InvalidTag, ValueError) as e:
        # UnicodeDecodeError is a ValueError; a short or oversized IV lands here too
        raise CryptoError("Failed to decrypt data. Wrong password?", reason="decrypt") from e
