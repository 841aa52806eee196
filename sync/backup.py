"""Backup and restore of app data, settings and sounds through Dropbox

Dropbox file contract (app folder root):
- goal-tracker.appdata.enc: encrypted JSON {version, lastSynced, bars}
- goal-tracker.settings.json: plaintext JSON {sounds?, theme?}
- ui_increment.mp3 / ui_decrement.mp3 / ui_complete.mp3: raw audio files
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from backup_crypto import decrypt_data, encrypt_data
from dropbox_storage import DropboxRemoteStore
from models.app_data import (
    CURRENT_DATA_VERSION,
    SOUND_EVENT_IDS,
    SettingsPayload,
    SoundPreferences,
    VersionedAppData,
)
from secret_store import SecretStore
from utils.errors import CanceledError, CryptoError, SafeStorageError, SyncError
from utils.sounds import SoundLibrary, canonical_filename_for_event
from utils.storage import AppDataStore
from .migration import migrate_to_latest, now_iso

logger = logging.getLogger(__name__)

APPDATA_FILE_NAME = "goal-tracker.appdata.enc"
SETTINGS_FILE_NAME = "goal-tracker.settings.json"


class BackupService:
    """Moves the local app data to and from Dropbox"""

    def __init__(
        self,
        remote: DropboxRemoteStore,
        passwords: SecretStore,
        app_data: Optional[AppDataStore] = None,
        sounds: Optional[SoundLibrary] = None,
    ):
        self.remote = remote
        self.passwords = passwords
        self.app_data = app_data or AppDataStore()
        self.sounds = sounds or SoundLibrary()

    @property
    def last_synced(self) -> Optional[str]:
        data = self.app_data.load_data()
        value = data.get("lastSynced") if data else None
        return value if isinstance(value, str) and value else None

    def load_bars(self) -> Optional[List[Dict[str, Any]]]:
        """Current local bars (structurally valid ones only), None without local data"""
        data = self.app_data.load_data()
        if data is None:
            return None
        return migrate_to_latest(data).to_json_dict()["bars"]

    async def sync_to_dropbox(self, password: str, bars: List[Dict[str, Any]]) -> str:
        """Encrypt and upload bars, then upload settings and sounds best-effort

        Returns:
            The lastSynced timestamp written locally

        Raises:
            SyncError: If encryption, the encrypted upload or the local save fails
        """
        if not password:
            raise CryptoError("Missing encryption password", reason="encrypt")

        logger.info(f"Starting sync to Dropbox ({len(bars)} bars)")
        saved = self.app_data.load_data() or {}
        last_synced = now_iso()

        payload = {"version": CURRENT_DATA_VERSION, "lastSynced": last_synced, "bars": bars}
        encrypted = encrypt_data(json.dumps(payload), password).encode("utf-8")
        await self.remote.sync_upload(APPDATA_FILE_NAME, encrypted, "application/octet-stream")
        logger.info(f"Encrypted app data uploaded ({len(encrypted)} bytes)")

        self.app_data.save_partial_data({"bars": bars, "lastSynced": last_synced})

        await self._upload_settings(saved)
        await self._upload_sounds(saved)
        return last_synced

    async def _upload_settings(self, saved: Dict[str, Any]):
        try:
            settings_payload = SettingsPayload.model_validate(
                {key: saved[key] for key in ("sounds", "theme") if saved.get(key) is not None}
            )
        except ValidationError as e:
            logger.warning(f"Local settings are malformed, not uploading them: {e}")
            return

        if settings_payload.is_empty():
            logger.info("No settings to upload")
            return

        body = json.dumps(settings_payload.to_json_dict()).encode("utf-8")
        try:
            await self.remote.sync_upload(SETTINGS_FILE_NAME, body, "application/json")
            logger.info(f"Settings uploaded ({len(body)} bytes)")
        except CanceledError:
            raise
        except SyncError as e:
            # Encrypted app data is already synced
            logger.warning(f"Settings upload failed (ignored): {e}")

    async def _upload_sounds(self, saved: Dict[str, Any]):
        preferences = (saved.get("sounds") or {}).get("preferences") or {}
        event_files = preferences.get("eventFiles")
        if not isinstance(event_files, dict):
            logger.info("No sound preferences to upload")
            return

        uploaded = 0
        try:
            for event_id in SOUND_EVENT_IDS:
                file_ref = event_files.get(event_id)
                # Only sounds referenced by the synced preferences are uploaded
                if not isinstance(file_ref, str) or not file_ref:
                    continue
                data = self.sounds.read_sound(event_id)
                if data:
                    await self.remote.sync_upload(canonical_filename_for_event(event_id), data, "audio/mpeg")
                    uploaded += 1
        except CanceledError:
            raise
        except SyncError as e:
            logger.warning(f"Sound upload failed (ignored): {e}")
        logger.info(f"Sound files uploaded: {uploaded}")

    async def restore_from_dropbox(self, password: str) -> VersionedAppData:
        """Download and decrypt the backup and write it over the local data

        Returns:
            The restored data

        Raises:
            NotFoundError: No backup in Dropbox
            CryptoError: Wrong password or corrupted backup (indistinguishable)
            SyncError: Other remote or local failures
        """
        if not password:
            raise CryptoError("Missing encryption password.", reason="decrypt")

        logger.info("Starting restore from Dropbox")
        blob = await self.remote.restore_download(APPDATA_FILE_NAME)
        logger.info(f"Encrypted app data downloaded ({len(blob)} bytes)")

        try:
            bundle = blob.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoError("Failed to parse JSON bundle", reason="parse") from e
        plaintext = decrypt_data(bundle, password)
        try:
            raw = json.loads(plaintext)
        except json.JSONDecodeError as e:
            raise CryptoError("Backup payload is not valid JSON", reason="parse") from e

        restored = migrate_to_latest(raw)
        raw_last_synced = raw.get("lastSynced") if isinstance(raw, dict) else None
        last_synced = raw_last_synced if isinstance(raw_last_synced, str) else None

        settings_payload = await self._download_settings()
        restored_events = await self._download_sounds()

        partial: Dict[str, Any] = {
            "bars": restored.to_json_dict()["bars"],
            "lastSynced": last_synced,
        }
        if settings_payload is not None and settings_payload.sounds is not None:
            saved_prefs = settings_payload.sounds.preferences
            next_prefs = SoundPreferences(
                master_volume=saved_prefs.master_volume,
                mute_all=saved_prefs.mute_all,
                event_files={
                    event_id: canonical_filename_for_event(event_id) if event_id in restored_events else ""
                    for event_id in SOUND_EVENT_IDS
                },
            )
            partial["sounds"] = {"preferences": next_prefs.model_dump(by_alias=True)}
        if settings_payload is not None and settings_payload.theme is not None:
            partial["theme"] = settings_payload.theme.model_dump(by_alias=True)

        self.app_data.save_partial_data(partial)
        logger.info(
            f"Local app data updated after restore ({len(restored.bars)} bars, "
            f"sounds: {'sounds' in partial}, theme: {'theme' in partial})"
        )
        return VersionedAppData(version=restored.version, last_synced=last_synced, bars=restored.bars)

    async def _download_settings(self) -> Optional[SettingsPayload]:
        try:
            body = await self.remote.restore_download(SETTINGS_FILE_NAME)
        except CanceledError:
            raise
        except SyncError as e:
            logger.info(f"No settings restored from Dropbox: {e}")
            return None

        try:
            settings_payload = SettingsPayload.model_validate_json(body)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed settings file: {e}")
            return None
        logger.info(f"Settings downloaded ({len(body)} bytes)")
        return settings_payload

    async def _download_sounds(self) -> set:
        restored = set()
        for event_id in SOUND_EVENT_IDS:
            file_name = canonical_filename_for_event(event_id)
            try:
                data = await self.remote.restore_download(file_name)
                if data:
                    self.sounds.save_sound(event_id, data)
                    restored.add(event_id)
            except CanceledError:
                raise
            except SyncError as e:
                # Not every event has a sound uploaded
                logger.info(f"Sound for {event_id} not restored: {e}")
        logger.info(f"Restored sounds: {sorted(restored)}")
        return restored

    async def auto_sync(self) -> bool:
        """Sync before exit with the cached password only; never prompts

        Returns:
            True if the backup was uploaded
        """
        logger.info("Starting auto-sync before exit")
        try:
            password = self.passwords.get()
        except SafeStorageError as e:
            logger.error(f"Auto-sync skipped, secure storage unavailable: {e}")
            return False
        if not password:
            logger.error("Auto-sync skipped, no saved password")
            return False

        bars = self.load_bars()
        if bars is None:
            logger.error("Auto-sync skipped, no valid app data found")
            return False

        try:
            await self.sync_to_dropbox(password, bars)
        except SyncError as e:
            logger.error(f"Error during auto-sync: {e}")
            return False

        logger.info("Auto-sync completed successfully")
        return True

    def clear_last_synced(self):
        """Forget the local lastSynced timestamp, keeping everything else"""
        logger.info("Clearing lastSynced locally")
        self.app_data.save_partial_data({"lastSynced": None})
