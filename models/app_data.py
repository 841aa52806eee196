"""Pydantic models for the locally persisted and backed-up application data

JSON on disk and in backups uses camelCase keys; the models expose
snake_case attributes through alias generation and dump with by_alias=True.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic.alias_generators import to_camel

# Shape version written by this codebase
CURRENT_DATA_VERSION = 1

# Canonical UI sound events, in upload/restore order
SOUND_EVENT_IDS = ("progressIncrement", "progressDecrement", "progressComplete")

# Canonical file name of each event's audio file, locally and in Dropbox
CANONICAL_SOUND_FILES = {
    "progressIncrement": "ui_increment.mp3",
    "progressDecrement": "ui_decrement.mp3",
    "progressComplete": "ui_complete.mp3",
}

DEFAULT_MASTER_VOLUME = 0.6


class BarRecord(BaseModel):
    """A single progress bar (V1 shape)

    Only the V1 fields are validated, with JSON-like strictness (no string
    to number coercion, booleans are not numbers). Optional fields added by
    newer app versions (notes, createdAt, pattern and glow colours) are kept
    verbatim as extras.
    """
    model_config = ConfigDict(
        strict=True,
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: StrictStr
    title: StrictStr
    current: float
    max: float
    unit: StrictStr
    increment_delta: float
    completed_color: StrictStr
    remaining_color: StrictStr


class VersionedAppData(BaseModel):
    """The encrypted backup payload and the migrated local data shape"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: int = CURRENT_DATA_VERSION
    last_synced: Optional[StrictStr] = None
    bars: List[BarRecord] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class SoundPreferences(BaseModel):
    """Volume, mute and event-to-file mapping (empty string means unset)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    master_volume: float = DEFAULT_MASTER_VOLUME
    mute_all: bool = False
    event_files: Dict[str, str] = Field(default_factory=dict)


class SoundsData(BaseModel):
    preferences: SoundPreferences


class ThemeData(BaseModel):
    """Theme colours (hex strings)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    background_hex: str
    foreground_hex: str
    button_primary_hex: str
    button_secondary_hex: str
    button_destructive_hex: str
    neutral_hex: str


class SettingsPayload(BaseModel):
    """Plaintext settings file: {sounds?, theme?}"""
    sounds: Optional[SoundsData] = None
    theme: Optional[ThemeData] = None

    def is_empty(self) -> bool:
        return self.sounds is None and self.theme is None

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
