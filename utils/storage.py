import json
import logging
import os
import platform
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from models.oauth import OAuthUser
from settings import APP_DATA_FILE, PROFILE_FILE
from .errors import FilesystemError

logger = logging.getLogger(__name__)

# Fields the sync pipeline reads and writes; anything else on disk is carried over untouched
APP_DATA_FIELDS = ("bars", "lastSynced", "sounds", "theme")


def _ensure_secure_directory(path: Path):
    """Create parent directory with secure permissions"""
    parent_dir = path.parent
    if not parent_dir.exists():
        parent_dir.mkdir(parents=True, exist_ok=True)
        # Set directory permissions to 700 on Unix-like systems
        if platform.system() != "Windows":
            os.chmod(parent_dir, 0o700)


def atomic_write_json(path: Path, payload: Any, mode: Optional[int] = None):
    """Write pretty-printed JSON through a temp file and rename

    Raises:
        FilesystemError: If the file cannot be written
    """
    tmp_path = path.with_name(f"{path.name}.tmp")
    try:
        _ensure_secure_directory(path)
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        if mode is not None and platform.system() != "Windows":
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            logger.debug(f"Could not remove temp file {tmp_path}")
        raise FilesystemError(f"Failed to write {path.name} to disk.") from e


class AppDataStore:
    """Local application data file (bars, lastSynced, sounds, theme)"""

    def __init__(self, data_file: Optional[str] = None):
        self.data_path = Path(data_file if data_file else APP_DATA_FILE)

    def load_data(self) -> Optional[Dict[str, Any]]:
        """Load app data from disk, None if missing or unreadable"""
        if not self.data_path.exists():
            logger.info(f"No app data on disk at {self.data_path}")
            return None

        try:
            data = json.loads(self.data_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, IOError) as e:
            logger.error(f"Error loading app data from {self.data_path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning("App data on disk is not an object, ignoring it")
            return None

        bars = data.get("bars")
        logger.debug(
            f"Loaded app data: {len(bars) if isinstance(bars, list) else 0} bars, "
            f"lastSynced={data.get('lastSynced')}"
        )
        return data

    def save_partial_data(self, partial: Dict[str, Any]) -> Path:
        """Merge the given fields into the data on disk

        Only keys present in partial are replaced (an explicit None clears
        lastSynced); every other field on disk is preserved.

        Returns:
            Path of the written file

        Raises:
            FilesystemError: If the write fails
        """
        merged: Dict[str, Any] = {"bars": [], "lastSynced": None}
        merged.update(self.load_data() or {})
        merged.update(partial)
        if not isinstance(merged.get("bars"), list):
            merged["bars"] = []

        atomic_write_json(self.data_path, merged)
        logger.info(
            f"Saved app data ({', '.join(k for k in partial if k in APP_DATA_FIELDS) or 'no known fields'}) "
            f"to {self.data_path}"
        )
        return self.data_path


class ProfileStorage:
    """Cached Dropbox account profile shown while signed in"""

    def __init__(self, profile_file: Optional[str] = None):
        self.profile_path = Path(profile_file if profile_file else PROFILE_FILE)

    def save_user(self, user: OAuthUser):
        # Set file permissions to 600 on Unix-like systems
        atomic_write_json(self.profile_path, user.model_dump(exclude_none=True), mode=0o600)

    def load_user(self) -> Optional[OAuthUser]:
        if not self.profile_path.exists():
            return None

        try:
            return OAuthUser.model_validate_json(self.profile_path.read_text(encoding="utf-8"))
        except (ValidationError, IOError):
            return None

    def clear_user(self):
        if self.profile_path.exists():
            self.profile_path.unlink()
