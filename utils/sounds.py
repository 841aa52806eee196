import logging
import os
from pathlib import Path
from typing import Optional

from models.app_data import CANONICAL_SOUND_FILES
from settings import SOUNDS_DIR
from .errors import FilesystemError

logger = logging.getLogger(__name__)


def canonical_filename_for_event(event_id: str) -> str:
    """Canonical audio file name for a sound event, locally and in Dropbox"""
    try:
        return CANONICAL_SOUND_FILES[event_id]
    except KeyError:
        raise ValueError(f"Unknown sound event: {event_id}") from None


class SoundLibrary:
    """Per-event audio files stored under their canonical names"""

    def __init__(self, sounds_dir: Optional[str] = None):
        self.sounds_dir = Path(sounds_dir if sounds_dir else SOUNDS_DIR)

    def path_for(self, event_id: str) -> Path:
        return self.sounds_dir / canonical_filename_for_event(event_id)

    def read_sound(self, event_id: str) -> Optional[bytes]:
        """Read an event's audio file, None if it is missing or unreadable"""
        path = self.path_for(event_id)
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except IOError as e:
            logger.warning(f"Failed to read sound file {path}: {e}")
            return None

    def save_sound(self, event_id: str, data: bytes) -> Path:
        """Write an event's audio file atomically

        Raises:
            FilesystemError: If the file cannot be written
        """
        path = self.path_for(event_id)
        tmp_path = path.with_name(f"{path.name}.tmp")
        try:
            self.sounds_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        except OSError as e:
            raise FilesystemError(f"Failed to save sound file {path.name}") from e

        logger.debug(f"Saved {len(data)} bytes for {event_id} to {path}")
        return path
