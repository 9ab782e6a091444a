from pathlib import Path
from typing import Any
from unittest.mock import Mock

import psutil
import pytest

from launcher.controllers.launcher_controller import LauncherController, save_error_response
from launcher.models.events import ErrorEvent, UpdateCompleteEvent, UpdateFailedEvent
from launcher.models.settings import LauncherSettings
from launcher.utils.constants import ERROR_RESPONSE_FILENAME
from launcher.utils.exception import TransportError
from launcher.utils.version_chain import UpdaterState
from tests.utils import FakeDownloader, FakeLocator, RecordingChannel, archive_bytes

TEMPLATE = "https://example/patches/{version}.zip"


@pytest.fixture
def install_root(tmp_path: Path) -> Path:
    root = tmp_path / "game"
    root.mkdir()
    (root / "version.json").write_text('{"versionCode": "5"}')
    return root


def make_controller(
    install_root: Path,
    downloader: FakeDownloader,
    locator: FakeLocator | None = None,
    spawn: Mock | None = None,
    launch: bool = True,
) -> tuple[LauncherController, RecordingChannel]:
    events = RecordingChannel()
    settings = LauncherSettings(
        patch_url_template=TEMPLATE, process_poll_interval=0.0, process_exit_timeout=1.0
    )
    controller = LauncherController(
        install_root,
        settings,
        self_exe_name="Launcher.exe",
        launch=launch,
        events=events,
        downloader=downloader,  # type: ignore[arg-type]
        locator=locator or FakeLocator([]),
        spawn=spawn or Mock(return_value=1234),
    )
    return controller, events


class TestRunUpdate:
    def test_success_launches_game(self, install_root: Path) -> None:
        spawn = Mock(return_value=1234)
        downloader = FakeDownloader(
            archives={"https://example/patches/5.zip": archive_bytes([("game.dat", b"new")])}
        )
        controller, events = make_controller(install_root, downloader, spawn=spawn)

        outcome = controller.run_update()

        assert outcome.succeeded
        assert controller.outcome is outcome
        spawn.assert_called_once_with(install_root / "Game.exe", install_root)
        assert isinstance(events.published[-1], UpdateCompleteEvent)

    def test_no_launch(self, install_root: Path) -> None:
        spawn = Mock()
        controller, _ = make_controller(install_root, FakeDownloader(), spawn=spawn, launch=False)
        assert controller.run_update().succeeded
        spawn.assert_not_called()

    def test_failure_does_not_launch(self, install_root: Path) -> None:
        spawn = Mock()
        downloader = FakeDownloader(
            archives={"https://example/patches/5.zip": TransportError("offline")}
        )
        controller, events = make_controller(install_root, downloader, spawn=spawn)

        outcome = controller.run_update()

        assert outcome.state is UpdaterState.FAILED
        spawn.assert_not_called()
        assert isinstance(events.published[-1], UpdateFailedEvent)

    def test_launch_failure_keeps_success(self, install_root: Path) -> None:
        spawn = Mock(side_effect=FileNotFoundError("Game.exe"))
        controller, events = make_controller(install_root, FakeDownloader(), spawn=spawn)

        assert controller.run_update().succeeded
        assert any(e.message.startswith("Failed to launch game") for e in events.of_type(ErrorEvent))
        assert isinstance(events.published[-1], UpdateCompleteEvent)

    def test_stops_running_game_first(self, install_root: Path) -> None:
        locator = FakeLocator([1])
        controller, _ = make_controller(install_root, FakeDownloader(), locator=locator)
        controller.run_update()
        assert locator.killed == [100]

    def test_game_that_will_not_exit(self, install_root: Path) -> None:
        downloader = FakeDownloader()
        controller, events = make_controller(
            install_root, downloader, locator=FakeLocator([10**9], killable=False)
        )

        outcome = controller.run_update()

        assert outcome.state is UpdaterState.FAILED
        assert downloader.fetched == []
        assert isinstance(events.published[-1], UpdateFailedEvent)


class UnreadableLocator(FakeLocator):
    """Locator whose liveness check is refused by the OS."""

    def is_alive(self, handle: Any) -> bool:
        raise psutil.AccessDenied(handle)


def test_unexpected_terminate_error_fails_the_run(install_root: Path) -> None:
    downloader = FakeDownloader()
    controller, events = make_controller(
        install_root, downloader, locator=UnreadableLocator([1])
    )

    controller.start()
    outcome = controller.wait(timeout=10)

    assert outcome is not None
    assert outcome.state is UpdaterState.FAILED
    assert isinstance(outcome.error, psutil.AccessDenied)
    assert downloader.fetched == []
    assert any(e.message.startswith("Failed to close the game") for e in events.of_type(ErrorEvent))
    assert isinstance(events.published[-1], UpdateFailedEvent)


def test_start_runs_on_worker_thread(install_root: Path) -> None:
    controller, events = make_controller(install_root, FakeDownloader())

    controller.start()
    outcome = controller.wait(timeout=10)

    assert outcome is not None and outcome.succeeded
    assert not controller.is_running
    assert isinstance(events.published[-1], UpdateCompleteEvent)


def test_save_error_response(tmp_path: Path) -> None:
    path = save_error_response("<html>blocked</html>", tmp_path)
    assert path == tmp_path / ERROR_RESPONSE_FILENAME
    assert path.read_text(encoding="utf-8") == "<html>blocked</html>"
