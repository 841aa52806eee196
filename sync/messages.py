"""User-facing text for sync and restore errors"""

from utils.errors import ErrorCode

from .state_machine import Operation


def get_user_friendly_error_message(code: ErrorCode, operation: Operation) -> str:
    """Map an error code to the message shown in the dismissible error panel"""
    if code == ErrorCode.NOT_AUTHENTICATED:
        return "Please sign in to Dropbox first."
    if code == ErrorCode.NOT_FOUND:
        return "No backup found in Dropbox." if operation == Operation.RESTORE else "No local data to back up."
    if code == ErrorCode.DROPBOX_API:
        return "A Dropbox error occurred."
    if code == ErrorCode.NETWORK:
        return "Network error. Please check your connection and try again."
    if code == ErrorCode.CRYPTO:
        return "Decryption failed. Wrong password?" if operation == Operation.RESTORE else "Encryption failed."
    if code == ErrorCode.TOKEN_REFRESH_FAILED:
        return "Your Dropbox session has expired. Please sign in again."
    if code == ErrorCode.SAFE_STORAGE:
        return "Secure storage is not available on this system."
    if code == ErrorCode.FILESYSTEM:
        return "Could not write local data to disk."
    return "Restore failed" if operation == Operation.RESTORE else "Sync failed"
