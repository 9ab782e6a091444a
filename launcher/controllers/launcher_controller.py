import tempfile
import threading
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from launcher.models.events import ErrorEvent, LogEvent, UpdateCompleteEvent, UpdateFailedEvent
from launcher.models.settings import LauncherSettings
from launcher.utils.archive_processor import ArchiveProcessor
from launcher.utils.constants import ERROR_RESPONSE_FILENAME
from launcher.utils.downloader import Downloader
from launcher.utils.event_channel import EventChannel
from launcher.utils.exception import TargetProcessError
from launcher.utils.process_utils import (
    ProcessLocator,
    PsutilProcessLocator,
    launch_target,
    terminate_target,
)
from launcher.utils.version_chain import UpdateOutcome, UpdaterState, VersionChainUpdater


class LauncherController:
    """
    Ties the launcher together: stop the game, update it, start it again.

    The update itself runs on a worker thread so a window can keep painting;
    everything the user sees goes through ``events``.
    """

    def __init__(
        self,
        install_root: Path,
        settings: LauncherSettings,
        *,
        self_exe_name: str = "",
        launch: Optional[bool] = None,
        events: Optional[EventChannel] = None,
        downloader: Optional[Downloader] = None,
        processor: Optional[ArchiveProcessor] = None,
        locator: Optional[ProcessLocator] = None,
        spawn: Callable[[Path, Path], int] = launch_target,
    ) -> None:
        self.install_root = install_root
        self.settings = settings
        self.self_exe_name = self_exe_name
        self.launch = settings.launch_after_update if launch is None else launch
        self.events = events or EventChannel()
        self.downloader = downloader or Downloader(
            timeout=settings.request_timeout,
            chunk_size=settings.chunk_size,
            user_agent=settings.user_agent,
        )
        self.processor = processor or ArchiveProcessor()
        self.locator = locator or PsutilProcessLocator()
        self.spawn = spawn

        self.outcome: Optional[UpdateOutcome] = None
        self._worker: Optional[threading.Thread] = None

    @property
    def target_path(self) -> Path:
        return self.install_root / self.settings.target_executable

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> threading.Thread:
        """
        Start a fresh update run on a new worker thread.

        Calling this while a run is in progress returns the running thread.
        """
        if self._worker is not None and self._worker.is_alive():
            logger.warning("Update already running, not starting another one")
            return self._worker
        self.outcome = None
        self._worker = threading.Thread(
            target=self.run_update, name="UpdateWorker", daemon=True
        )
        self._worker.start()
        return self._worker

    def wait(self, timeout: Optional[float] = None) -> Optional[UpdateOutcome]:
        if self._worker is not None:
            self._worker.join(timeout)
        return self.outcome

    def run_update(self) -> UpdateOutcome:
        """Run one complete update on the calling thread."""
        logger.info(f"Starting update of {self.install_root}")
        try:
            terminate_target(
                self.settings.target_executable,
                self.locator,
                self.events,
                poll_interval=self.settings.process_poll_interval,
                timeout=self.settings.process_exit_timeout,
            )
        except Exception as e:
            if isinstance(e, TargetProcessError):
                logger.error(f"Could not stop the game: {e}")
            else:
                logger.exception(f"Could not stop the game: unexpected {e.__class__.__name__}: {e}")
            self.events.publish(ErrorEvent(f"Failed to close the game: {e}"))
            outcome = UpdateOutcome(UpdaterState.FAILED, error=e)
            self._finish(outcome)
            return outcome

        updater = VersionChainUpdater(
            self.install_root,
            self.downloader,
            self.processor,
            settings=self.settings,
            events=self.events,
            self_exe_name=self.self_exe_name,
        )
        outcome = updater.run()

        if outcome.succeeded and self.launch:
            self._launch_game()
        self._finish(outcome)
        return outcome

    def _launch_game(self) -> None:
        self.events.publish(LogEvent("Launching game..."))
        try:
            pid = self.spawn(self.target_path, self.install_root)
        except OSError as e:
            # The update itself succeeded; only report the failed launch.
            logger.error(f"Failed to launch {self.target_path}: {e}")
            self.events.publish(ErrorEvent(f"Failed to launch game: {e}"))
            return
        logger.info(f"Game started with PID {pid}")

    def _finish(self, outcome: UpdateOutcome) -> None:
        self.outcome = outcome
        if outcome.succeeded:
            self.events.publish(UpdateCompleteEvent())
        else:
            self.events.publish(UpdateFailedEvent())


def save_error_response(body: str, directory: Optional[Path] = None) -> Path:
    """
    Write an intercepted HTML response to disk so the user can open it.

    :param body: The HTML page that came back instead of a manifest
    :param directory: Where to write it, the system temp folder by default
    :return: Path of the written file
    """
    path = (directory or Path(tempfile.gettempdir())) / ERROR_RESPONSE_FILENAME
    path.write_text(body, encoding="utf-8")
    logger.info(f"Saved unexpected response to {path}")
    return path
