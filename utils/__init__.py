"""Shared utilities package for goal tracker sync"""

from .errors import (
    ErrorCode,
    ErrorEnvelope,
    SyncError,
    CanceledError,
    NotAuthenticatedError,
    OAuthConfigError,
    TokenRefreshFailedError,
    DropboxApiError,
    NetworkError,
    NotFoundError,
    CryptoError,
    SafeStorageError,
    FilesystemError,
    UnknownSyncError,
    to_error_envelope,
)
from .cancellation import CancelToken, CancelSlot, run_cancellable
from .debug_console import (
    DebugCapturingConsole,
    create_debug_console,
    setup_debug_logger,
)

__all__ = [
    "ErrorCode",
    "ErrorEnvelope",
    "SyncError",
    "CanceledError",
    "NotAuthenticatedError",
    "OAuthConfigError",
    "TokenRefreshFailedError",
    "DropboxApiError",
    "NetworkError",
    "NotFoundError",
    "CryptoError",
    "SafeStorageError",
    "FilesystemError",
    "UnknownSyncError",
    "to_error_envelope",
    "CancelToken",
    "CancelSlot",
    "run_cancellable",
    "DebugCapturingConsole",
    "create_debug_console",
    "setup_debug_logger",
]
