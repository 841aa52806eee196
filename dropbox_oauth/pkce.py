"""PKCE (Proof Key for Code Exchange) generation"""

import base64
import hashlib
import secrets
from dataclasses import dataclass


@dataclass(frozen=True)
class PKCEPair:
    """PKCE codes for one authorization attempt

    Attributes:
        code_verifier: High-entropy random string kept locally
        code_challenge: base64url(SHA-256(code_verifier)) without padding,
            sent in the authorization request
    """
    code_verifier: str
    code_challenge: str


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('utf-8').rstrip('=')


def generate_pkce() -> PKCEPair:
    """Generate a fresh PKCE verifier/challenge pair

    Returns:
        PKCEPair using the S256 challenge method
    """
    # 64 random bytes give an 86 character verifier (RFC 7636 allows 43-128)
    code_verifier = _b64url(secrets.token_bytes(64))
    challenge_bytes = hashlib.sha256(code_verifier.encode('utf-8')).digest()
    return PKCEPair(code_verifier=code_verifier, code_challenge=_b64url(challenge_bytes))
