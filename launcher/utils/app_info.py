import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from platformdirs import PlatformDirs

from launcher.utils.constants import APP_NAME


class AppInfo:
    """
    Singleton with metadata about the launcher and its platform directories.

    Directories follow platform conventions through ``platformdirs``; they are
    created on first access of the singleton.

    Examples:
        >>> AppInfo().app_name
        'patch-launcher'
        >>> AppInfo().executable_name
        'Launcher.exe'
    """

    _instance: "None | AppInfo" = None

    def __new__(cls) -> "AppInfo":
        if not cls._instance:
            cls._instance = super(AppInfo, cls).__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_is_initialized") and self._is_initialized:
            return

        self._app_name = APP_NAME
        try:
            self._app_version = version(APP_NAME)
        except PackageNotFoundError:
            self._app_version = "Unknown version"

        # A frozen build is its own executable; from source, argv[0] is the script.
        if getattr(sys, "frozen", False) or "__compiled__" in globals():
            self._executable_path = Path(sys.executable).resolve()
        else:
            self._executable_path = Path(sys.argv[0]).resolve()

        platform_dirs = PlatformDirs(appname=self._app_name, appauthor=False)
        self._app_storage_folder: Path = Path(platform_dirs.user_data_dir)
        self._user_log_folder: Path = Path(platform_dirs.user_log_dir)

        self._app_storage_folder.mkdir(parents=True, exist_ok=True)
        self._user_log_folder.mkdir(parents=True, exist_ok=True)

        self._is_initialized: bool = True

    @property
    def app_name(self) -> str:
        return self._app_name

    @property
    def app_version(self) -> str:
        return self._app_version

    @property
    def executable_path(self) -> Path:
        """Path of the running launcher executable (or entry script)."""
        return self._executable_path

    @property
    def executable_name(self) -> str:
        """
        File name of the running launcher.

        Archive entries targeting this name are never written, since the
        running binary cannot replace itself.
        """
        return self._executable_path.name

    @property
    def app_storage_folder(self) -> Path:
        return self._app_storage_folder

    @property
    def user_log_folder(self) -> Path:
        return self._user_log_folder

    @property
    def debug_flag_file(self) -> Path:
        """Presence of this file turns on debug logging."""
        return self._app_storage_folder / "DEBUG"
