from pathlib import Path

import msgspec
from loguru import logger

from launcher.utils.constants import (
    DEFAULT_BOOTSTRAP_MANIFEST_URL,
    DEFAULT_PATCH_URL_TEMPLATE,
    DEFAULT_TARGET_EXECUTABLE,
    DOWNLOAD_CHUNK_SIZE,
    LOCAL_MANIFEST_NAME,
    MAX_CHAIN_LENGTH,
    PROCESS_EXIT_TIMEOUT,
    PROCESS_POLL_INTERVAL,
    REQUEST_TIMEOUT,
    SETTINGS_FILE_NAME,
    STAGED_ARCHIVE_NAME,
    USER_AGENT,
)


class LauncherSettings(msgspec.Struct, rename="camel"):
    """
    Launcher configuration, read from ``launcher.json`` next to the game.

    Every field has a default so an empty or partial file is valid.
    Field names are camelCase on disk (``targetExecutable``, ...).
    """

    target_executable: str = DEFAULT_TARGET_EXECUTABLE
    bootstrap_manifest_url: str = DEFAULT_BOOTSTRAP_MANIFEST_URL
    patch_url_template: str = DEFAULT_PATCH_URL_TEMPLATE
    local_manifest_name: str = LOCAL_MANIFEST_NAME
    staged_archive_name: str = STAGED_ARCHIVE_NAME
    request_timeout: float = REQUEST_TIMEOUT
    chunk_size: int = DOWNLOAD_CHUNK_SIZE
    user_agent: str = USER_AGENT
    max_chain_length: int = MAX_CHAIN_LENGTH
    process_poll_interval: float = PROCESS_POLL_INTERVAL
    process_exit_timeout: float = PROCESS_EXIT_TIMEOUT
    launch_after_update: bool = True


def load_settings(install_root: Path) -> LauncherSettings:
    """
    Load settings from the installation directory.

    A missing file yields defaults. A file that cannot be read or decoded is
    logged and also yields defaults, so a broken config never blocks an update.

    :param install_root: The installation directory
    :return: The effective settings
    """
    settings_path = install_root / SETTINGS_FILE_NAME
    if not settings_path.is_file():
        logger.debug(f"No settings file at {settings_path}, using defaults")
        return LauncherSettings()

    try:
        settings = msgspec.json.decode(settings_path.read_bytes(), type=LauncherSettings)
    except (OSError, msgspec.DecodeError) as e:
        logger.warning(f"Could not read settings from {settings_path}: {e}")
        return LauncherSettings()

    logger.info(f"Loaded settings from {settings_path}")
    return settings
