"""Logging and debug console setup for CLI"""

import logging
import os
from typing import Optional

from rich.console import Console

import settings
from utils.debug_console import DEFAULT_DEBUG_LOG, create_debug_console, setup_debug_logger

logger = logging.getLogger(__name__)


def setup_logging(debug: bool) -> Optional[logging.Logger]:
    """
    Configure the root logger

    Without debug only warnings reach stderr so the Rich UI stays readable.
    With debug everything goes to stderr and the debug log file, and a second
    logger is returned for capturing console output into the same file.

    Args:
        debug: Whether debug mode is enabled

    Returns:
        Console capture logger in debug mode, None otherwise
    """
    root_logger = logging.getLogger()

    # Clear existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if not debug:
        root_logger.setLevel(getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO))
        stderr_handler = logging.StreamHandler()
        stderr_handler.setLevel(logging.WARNING)
        stderr_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        root_logger.addHandler(stderr_handler)
        return None

    root_logger.setLevel(logging.DEBUG)

    log_file = os.path.abspath(DEFAULT_DEBUG_LOG)
    file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Keychain backends are chatty at debug level
    logging.getLogger("keyring").setLevel(logging.INFO)

    debug_logger = setup_debug_logger(log_file)
    logger.info(f"Debug logging enabled - appending to {log_file}")
    return debug_logger


def setup_debug_console(debug: bool, debug_logger: Optional[logging.Logger] = None) -> Console:
    """
    Setup debug console based on debug mode

    Args:
        debug: Whether debug mode is enabled
        debug_logger: Logger returned by setup_logging

    Returns:
        Console instance (either regular or debug-enabled)
    """
    console = create_debug_console(debug_enabled=debug, debug_logger=debug_logger)

    if debug and debug_logger:
        debug_logger.debug("[CLI] ===== CLI SESSION STARTED =====")
        debug_logger.debug(f"[CLI] Data directory: {settings.DATA_DIR}")
        env_file = settings.config.env_path or "none"
        debug_logger.debug(f"[CLI] .env file: {env_file}")
        for name, source in settings.config.describe().items():
            debug_logger.debug(f"[CLI] {name} from {source}")

    return console
