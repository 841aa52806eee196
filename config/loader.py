"""Configuration loader for Goal Tracker cloud sync

A value is taken from the first source that has it:
1. Process environment
2. A .env file (GOAL_TRACKER_ENV_FILE, else ./.env, else <data dir>/.env)
3. The default given by settings.py

Values are coerced to the type of their default, so settings.py keeps plain
Python types whatever the source.
"""

import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_FILE_VARIABLE = "GOAL_TRACKER_ENV_FILE"
DATA_DIR_VARIABLE = "GOAL_TRACKER_DATA_DIR"

TRUE_STRINGS = ("true", "1", "yes", "on")


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in TRUE_STRINGS


def _parse_path(raw: str) -> str:
    return str(Path(raw).expanduser()) if raw.startswith("~") else raw


# bool must come before int (bool is an int subclass)
_PARSERS: List = [
    (bool, _parse_bool),
    (int, int),
    (float, float),
    (str, _parse_path),
]


def _parser_for(default: Any) -> Optional[Callable[[str], Any]]:
    for kind, parser in _PARSERS:
        if isinstance(default, kind):
            return parser
    return None


class ConfigLoader:
    """Resolves configuration values and remembers where each came from"""

    def __init__(self, env_path: Optional[str] = None):
        """
        Args:
            env_path: Explicit .env file; when omitted the candidates listed
                in the module docstring are tried in order
        """
        self.env_path = self._find_env_file(env_path)
        self.sources: Dict[str, str] = {}
        if self.env_path is not None:
            # Real environment variables keep precedence over the file
            load_dotenv(dotenv_path=self.env_path, override=False)
            logger.debug(f"Loaded .env from {self.env_path}")
        else:
            logger.debug("No .env file found, using environment and defaults")

    @staticmethod
    def _find_env_file(env_path: Optional[str]) -> Optional[Path]:
        candidates = []
        if env_path:
            candidates.append(Path(env_path))
        elif os.getenv(ENV_FILE_VARIABLE):
            candidates.append(Path(os.environ[ENV_FILE_VARIABLE]).expanduser())
        else:
            candidates.append(Path(".env"))
            data_dir = os.getenv(DATA_DIR_VARIABLE)
            if data_dir:
                candidates.append(Path(data_dir).expanduser() / ".env")
            candidates.append(Path.home() / ".goal-tracker" / ".env")

        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    def get(self, env_var: str, default: Any) -> Any:
        """Return env_var coerced to the type of default, or default itself

        An unparseable value is logged and replaced by the default rather
        than stopping the program at import time.
        """
        raw = os.getenv(env_var)
        parser = _parser_for(default)

        if raw is None or raw == "":
            self.sources[env_var] = "default"
            return parser(default) if isinstance(default, str) and parser else default

        if parser is None:
            self.sources[env_var] = "environment"
            return raw

        try:
            value = parser(raw)
        except ValueError:
            logger.warning(f"Invalid value for {env_var} ({raw!r}), using default {default!r}")
            self.sources[env_var] = "default"
            return default

        self.sources[env_var] = "environment"
        return value

    def describe(self) -> Dict[str, str]:
        """Map of every variable read so far to the source it came from"""
        return dict(sorted(self.sources.items()))


_config_loader: Optional[ConfigLoader] = None


def get_config_loader() -> ConfigLoader:
    """Process-wide loader shared by settings.py"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader
