"""
Version chain resolution.

The updater walks the chain of incremental archives until the installation
stops moving forward:

1. A staged archive left behind by an interrupted run is applied first.
2. Without a local manifest, the bootstrap manifest is fetched and the latest
   full archive it names is downloaded and applied.
3. The local manifest's version code selects the next incremental archive,
   which is downloaded and applied. The manifest is then re-read: an unchanged
   version code means the chain has converged; otherwise the loop continues
   with the new version.
4. A 404 for the next incremental archive also means the tip was reached.

Everything runs on the calling thread. Progress goes out through an
:class:`~launcher.utils.event_channel.EventChannel`.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from loguru import logger

from launcher.models.events import (
    ApplyingProgressEvent,
    DownloadProgressEvent,
    ErrorEvent,
    LogEvent,
    ProgressEvent,
    StatusEvent,
)
from launcher.models.manifest import (
    BootstrapManifest,
    VersionManifest,
    parse_bootstrap_manifest,
    read_version_manifest,
)
from launcher.models.progress import ApplyReport, DownloadProgress
from launcher.models.settings import LauncherSettings
from launcher.utils.archive_processor import ArchiveProcessor
from launcher.utils.constants import HTML_INTERFERENCE_MESSAGE
from launcher.utils.downloader import Downloader
from launcher.utils.event_channel import EventChannel
from launcher.utils.exception import (
    ChainLengthExceeded,
    HttpStatusError,
    LauncherError,
    LauncherFilesystemError,
    UnexpectedHtmlResponse,
)


class UpdaterState(str, Enum):
    BOOTSTRAPPING = "bootstrapping"
    FETCHING_MANIFEST = "fetching_manifest"
    DOWNLOADING = "downloading"
    APPLYING = "applying"
    CONVERGED = "converged"
    FAILED = "failed"


@dataclass
class UpdateOutcome:
    """Terminal result of an updater run."""

    state: UpdaterState
    error: Optional[BaseException] = None
    cycles: int = 0
    reports: list[ApplyReport] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is UpdaterState.CONVERGED


class _ChainConverged(Exception):
    """Internal signal that the chain reached its tip."""


class VersionChainUpdater:
    """
    Drives download and archive application until no newer version exists.

    :param install_root: The installation directory
    :param downloader: Fetches manifests and archives
    :param processor: Applies archives to ``install_root``
    :param settings: Launcher settings (file names, URLs, chain bound)
    :param events: Channel receiving progress and log events
    :param self_exe_name: File name of the running launcher, never overwritten
    """

    def __init__(
        self,
        install_root: Path,
        downloader: Downloader,
        processor: Optional[ArchiveProcessor] = None,
        *,
        settings: Optional[LauncherSettings] = None,
        events: Optional[EventChannel] = None,
        self_exe_name: str = "",
    ) -> None:
        self.install_root = install_root
        self.downloader = downloader
        self.processor = processor or ArchiveProcessor()
        self.settings = settings or LauncherSettings()
        self.events = events or EventChannel()
        self.self_exe_name = self_exe_name

        self.state: Optional[UpdaterState] = None
        self.transitions: list[UpdaterState] = []
        self._stage = "Update failed"
        self._outcome = UpdateOutcome(UpdaterState.FAILED)

    @property
    def staged_archive_path(self) -> Path:
        return self.install_root / self.settings.staged_archive_name

    @property
    def local_manifest_path(self) -> Path:
        return self.install_root / self.settings.local_manifest_name

    def run(self) -> UpdateOutcome:
        """
        Run the whole chain and return how it ended.

        Stage failures never propagate; they end the run in ``FAILED`` with
        the error attached to the outcome.
        """
        self._outcome = UpdateOutcome(UpdaterState.FAILED)
        self.events.publish(StatusEvent("Checking for updates..."))
        try:
            self._run_chain()
        except _ChainConverged:
            pass
        except Exception as e:
            self._fail(e)
            return self._outcome

        self._transition(UpdaterState.CONVERGED)
        self._outcome.state = UpdaterState.CONVERGED
        self.events.publish(StatusEvent("Update complete."))
        self.events.publish(LogEvent("Update process finished."))
        logger.info(f"Update chain converged after {self._outcome.cycles} cycle(s)")
        return self._outcome

    def _run_chain(self) -> None:
        if self.staged_archive_path.exists():
            logger.info(f"Found staged archive {self.staged_archive_path}, applying it first")
            self._stage = "Failed to apply update"
            self._apply_staged_archive()

        if not self.local_manifest_path.exists():
            self._bootstrap()

        self._stage = "Failed to read version info"
        self._transition(UpdaterState.FETCHING_MANIFEST)
        manifest = read_version_manifest(
            self.local_manifest_path, self.settings.patch_url_template
        )
        while True:
            manifest = self._advance(manifest)

    def _bootstrap(self) -> None:
        self._transition(UpdaterState.BOOTSTRAPPING)
        self.events.publish(LogEvent("Downloading the game..."))
        self._stage = "Failed to get latest update URL"
        bootstrap = self._fetch_bootstrap_manifest()

        self._stage = "Failed to download or apply update"
        self._download_and_apply(bootstrap.latest_url)
        self._outcome.cycles += 1

        if not self.local_manifest_path.exists():
            logger.warning(
                f"Bootstrap archive did not install {self.local_manifest_path.name}; "
                "nothing further to chain"
            )
            raise _ChainConverged

    def _fetch_bootstrap_manifest(self) -> BootstrapManifest:
        url = self.settings.bootstrap_manifest_url
        logger.info(f"Fetching bootstrap manifest from {url}")
        manifest = parse_bootstrap_manifest(self.downloader.fetch_json(url))
        logger.info(f"Latest full archive is {manifest.latest_url}")
        return manifest

    def _advance(self, manifest: VersionManifest) -> VersionManifest:
        """Download and apply the archive for ``manifest``; return the next one."""
        if self._outcome.cycles >= self.settings.max_chain_length:
            raise ChainLengthExceeded(
                f"Version chain did not converge after {self.settings.max_chain_length} updates"
            )

        self.events.publish(
            LogEvent(f"Downloading update for version {manifest.version_code}...")
        )
        self._stage = "Error downloading update"
        try:
            self._download_and_apply(manifest.download_url)
        except HttpStatusError as e:
            if not e.is_not_found:
                raise
            logger.info(f"No archive for version {manifest.version_code}: {e}")
            self.events.publish(LogEvent("No more updates available."))
            raise _ChainConverged from e
        self._outcome.cycles += 1

        self._stage = "Failed to read updated version info"
        self._transition(UpdaterState.FETCHING_MANIFEST)
        updated = read_version_manifest(
            self.local_manifest_path, self.settings.patch_url_template
        )
        if updated.version_code == manifest.version_code:
            self.events.publish(LogEvent("Update complete. No more updates available."))
            raise _ChainConverged

        logger.info(f"Advanced from version {manifest.version_code} to {updated.version_code}")
        return updated

    def _download_and_apply(self, url: str) -> None:
        self._transition(UpdaterState.DOWNLOADING)
        self.events.publish(StatusEvent("Downloading update..."))
        try:
            self.downloader.fetch(url, self.staged_archive_path, self._on_download_progress)
        except Exception:
            self._discard_staged_archive(quiet=True)
            raise
        self._apply_staged_archive()

    def _apply_staged_archive(self) -> None:
        self._transition(UpdaterState.APPLYING)
        self.events.publish(StatusEvent("Applying update..."))
        try:
            report = self.processor.apply(
                self.staged_archive_path,
                self.install_root,
                self.self_exe_name,
                self._on_apply_progress,
            )
        except Exception:
            self._discard_staged_archive(quiet=True)
            raise
        self._discard_staged_archive()

        for failure in report.failed:
            self.events.publish(
                ErrorEvent(f"Error applying {failure.name}: {failure.reason}. Skipping.")
            )
        self._outcome.reports.append(report)

    def _discard_staged_archive(self, quiet: bool = False) -> None:
        """
        Remove the staged archive.

        :param quiet: Log a failed removal instead of raising, so the error
            already being handled keeps propagating
        """
        try:
            self.staged_archive_path.unlink(missing_ok=True)
        except OSError as e:
            if quiet:
                logger.error(f"Could not remove staged archive {self.staged_archive_path}: {e}")
                return
            raise LauncherFilesystemError(
                f"Could not remove staged archive {self.staged_archive_path}: {e}"
            ) from e

    def _on_download_progress(self, progress: DownloadProgress) -> None:
        self.events.publish(DownloadProgressEvent(progress))

    def _on_apply_progress(self, done: int, total: int, name: str) -> None:
        self.events.publish(ApplyingProgressEvent(f"Applying file {done}/{total}: {name}"))
        self.events.publish(ProgressEvent(done / total if total else 1.0))

    def _transition(self, state: UpdaterState) -> None:
        logger.debug(f"Updater state: {self.state} -> {state}")
        self.state = state
        self.transitions.append(state)

    def _fail(self, error: BaseException) -> None:
        self._transition(UpdaterState.FAILED)
        self._outcome.state = UpdaterState.FAILED
        self._outcome.error = error
        if isinstance(error, LauncherError):
            logger.error(f"{self._stage}: {error}")
        else:
            logger.exception(f"{self._stage}: unexpected {error.__class__.__name__}: {error}")

        if isinstance(error, UnexpectedHtmlResponse):
            self.events.publish(
                ErrorEvent(f"{self._stage}: {HTML_INTERFERENCE_MESSAGE}", error.body)
            )
        else:
            self.events.publish(ErrorEvent(f"{self._stage}: {error}"))
