"""Sync orchestration: state machine, backup service and user flows"""

from .state_machine import (
    Operation,
    SyncState,
    SignedOut,
    SignedIn,
    Syncing,
    Success,
    Error,
    ConfirmRestore,
    PasswordPrompt,
    OfferSavePassword,
    Action,
    ActionType,
    transition,
    is_busy,
    can_close,
)
from .min_duration import MinDurationDispatcher
from .migration import migrate_to_latest, validate_versioned_data
from .messages import get_user_friendly_error_message
from .backup import BackupService, APPDATA_FILE_NAME, SETTINGS_FILE_NAME
from .orchestrator import SyncOrchestrator

__all__ = [
    "Operation",
    "SyncState",
    "SignedOut",
    "SignedIn",
    "Syncing",
    "Success",
    "Error",
    "ConfirmRestore",
    "PasswordPrompt",
    "OfferSavePassword",
    "Action",
    "ActionType",
    "transition",
    "is_busy",
    "can_close",
    "MinDurationDispatcher",
    "migrate_to_latest",
    "validate_versioned_data",
    "get_user_friendly_error_message",
    "BackupService",
    "APPDATA_FILE_NAME",
    "SETTINGS_FILE_NAME",
    "SyncOrchestrator",
]
