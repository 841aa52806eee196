"""Error taxonomy shared by the auth, crypto, storage and sync layers

Every fallible call at a component boundary raises one of the SyncError
subclasses below. The orchestrator turns them into an ErrorEnvelope, which
is what the user-visible error state carries.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Stable error codes exposed to callers"""
    CANCELED = "Canceled"
    NOT_AUTHENTICATED = "NotAuthenticated"
    OAUTH_CONFIG = "OAuthConfig"
    TOKEN_REFRESH_FAILED = "TokenRefreshFailed"
    DROPBOX_API = "DropboxApi"
    NETWORK = "Network"
    NOT_FOUND = "NotFound"
    CRYPTO = "Crypto"
    SAFE_STORAGE = "SafeStorage"
    FILESYSTEM = "Filesystem"
    UNKNOWN = "Unknown"


class SyncError(Exception):
    """Base class for all classified errors

    Attributes:
        code: ErrorCode of this error
        message: Human-readable message
        status: HTTP status when the error came from a provider response
    """

    code = ErrorCode.UNKNOWN
    default_message = "Unknown error"

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None):
        self.message = message or self.default_message
        self.status = status
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r}, status={self.status!r})"


class CanceledError(SyncError):
    """User or newer-operation abort; never shown as a failure"""
    code = ErrorCode.CANCELED
    default_message = "Operation canceled"


class NotAuthenticatedError(SyncError):
    code = ErrorCode.NOT_AUTHENTICATED
    default_message = "Not authenticated"


class OAuthConfigError(SyncError):
    code = ErrorCode.OAUTH_CONFIG
    default_message = "OAuth configuration error"


class TokenRefreshFailedError(SyncError):
    code = ErrorCode.TOKEN_REFRESH_FAILED
    default_message = "Token refresh failed"


class DropboxApiError(SyncError):
    code = ErrorCode.DROPBOX_API
    default_message = "Dropbox API error"


class NetworkError(SyncError):
    code = ErrorCode.NETWORK
    default_message = "Network error"


class NotFoundError(SyncError):
    code = ErrorCode.NOT_FOUND
    default_message = "Resource not found"


class CryptoError(SyncError):
    """Key derivation / authenticated encryption failure

    The reason distinguishes sub-cases internally ("parse", "decrypt",
    "encrypt", "unavailable"); callers only ever see the Crypto code, so a
    wrong password and a corrupted bundle look the same from outside.
    """
    code = ErrorCode.CRYPTO
    default_message = "Cryptography error"

    def __init__(self, message: Optional[str] = None, reason: str = "decrypt"):
        super().__init__(message)
        self.reason = reason


class SafeStorageError(SyncError):
    code = ErrorCode.SAFE_STORAGE
    default_message = "Secure storage error"


class FilesystemError(SyncError):
    code = ErrorCode.FILESYSTEM
    default_message = "Filesystem error"


class UnknownSyncError(SyncError):
    code = ErrorCode.UNKNOWN
    default_message = "Unknown error"


class ErrorEnvelope(BaseModel):
    """Serializable error shape returned to UI callers"""
    code: ErrorCode
    message: Optional[str] = None
    status: Optional[int] = None


def to_error_envelope(error: BaseException) -> ErrorEnvelope:
    """Convert any exception into an ErrorEnvelope

    Args:
        error: The exception raised by a lower layer

    Returns:
        ErrorEnvelope with the classified code, or Unknown for anything that
        is not a SyncError
    """
    if isinstance(error, SyncError):
        return ErrorEnvelope(code=error.code, message=error.message, status=error.status)
    return ErrorEnvelope(code=ErrorCode.UNKNOWN, message=str(error) or type(error).__name__)
