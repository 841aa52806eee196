"""Migration of local and restored app data to the current versioned shape"""

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from models.app_data import CURRENT_DATA_VERSION, BarRecord, VersionedAppData

logger = logging.getLogger(__name__)


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_bar_v1(obj: Any) -> bool:
    """Check whether obj has the structure of a V1 bar record"""
    if not isinstance(obj, dict):
        return False
    try:
        BarRecord.model_validate(obj)
    except ValidationError:
        return False
    return True


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integral(value: Any) -> bool:
    # 1.0 is how some writers serialize version 1; 1.5 is not a version
    return _is_number(value) and float(value).is_integer()


def validate_versioned_data(data: Any) -> bool:
    """Check whether data is already in the versioned shape

    Every bar must be valid; a versioned payload is never partially accepted.
    """
    if not isinstance(data, dict):
        return False
    if not _is_integral(data.get("version")):
        return False
    if "lastSynced" in data and not isinstance(data["lastSynced"], str):
        return False
    bars = data.get("bars")
    if not isinstance(bars, list):
        return False
    return all(is_bar_v1(bar) for bar in bars)


def _default_app_data() -> VersionedAppData:
    return VersionedAppData(version=CURRENT_DATA_VERSION, last_synced=now_iso(), bars=[])


def migrate_to_latest(data: Any) -> VersionedAppData:
    """Bring any loaded payload to the current VersionedAppData shape

    - non-object data yields empty default data
    - unversioned (legacy) data keeps its structurally valid bars and drops
      the rest
    - valid versioned data is returned as is
    - invalid versioned data yields empty default data
    """
    if not isinstance(data, dict):
        return _default_app_data()

    if "version" not in data:
        raw_bars = data.get("bars")
        if not isinstance(raw_bars, list):
            raw_bars = []
        bars = [BarRecord.model_validate(bar) for bar in raw_bars if is_bar_v1(bar)]
        dropped = len(raw_bars) - len(bars)
        if dropped:
            logger.info(f"Dropped {dropped} invalid bar record(s) while migrating legacy data")
        return VersionedAppData(version=CURRENT_DATA_VERSION, last_synced=now_iso(), bars=bars)

    if validate_versioned_data(data):
        return VersionedAppData(
            version=int(data["version"]),
            last_synced=data.get("lastSynced"),
            bars=[BarRecord.model_validate(bar) for bar in data["bars"]],
        )

    logger.warning("Invalid data, returning default app data.")
    return _default_app_data()
