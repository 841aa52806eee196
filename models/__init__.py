"""Data models for authentication and backed-up application data"""

from .oauth import OAuthTokens, OAuthUser, AuthStatus
from .app_data import (
    CURRENT_DATA_VERSION,
    SOUND_EVENT_IDS,
    CANONICAL_SOUND_FILES,
    DEFAULT_MASTER_VOLUME,
    BarRecord,
    VersionedAppData,
    SoundPreferences,
    SoundsData,
    ThemeData,
    SettingsPayload,
)

__all__ = [
    "OAuthTokens",
    "OAuthUser",
    "AuthStatus",
    "CURRENT_DATA_VERSION",
    "SOUND_EVENT_IDS",
    "CANONICAL_SOUND_FILES",
    "DEFAULT_MASTER_VOLUME",
    "BarRecord",
    "VersionedAppData",
    "SoundPreferences",
    "SoundsData",
    "ThemeData",
    "SettingsPayload",
]
