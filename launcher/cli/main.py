"""
Command line entry point for the patch launcher.

Updates the game in ``--install-dir`` to the newest version, then starts it.
"""

import sys
from pathlib import Path
from typing import Optional

import click
import msgspec
from loguru import logger
from PySide6.QtWidgets import QApplication

from launcher.controllers.launcher_controller import LauncherController
from launcher.models.settings import LauncherSettings, load_settings
from launcher.utils.app_info import AppInfo
from launcher.utils.version_chain import UpdateOutcome
from launcher.views.console import ConsolePresenter
from launcher.views.progress_window import UpdateProgressWindow


def apply_overrides(
    settings: LauncherSettings,
    target: Optional[str] = None,
    manifest_url: Optional[str] = None,
    patch_url_template: Optional[str] = None,
    launch: Optional[bool] = None,
) -> LauncherSettings:
    """Return ``settings`` with every non-None command line value applied."""
    changes: dict[str, object] = {}
    if target is not None:
        changes["target_executable"] = target
    if manifest_url is not None:
        changes["bootstrap_manifest_url"] = manifest_url
    if patch_url_template is not None:
        changes["patch_url_template"] = patch_url_template
    if launch is not None:
        changes["launch_after_update"] = launch
    return msgspec.structs.replace(settings, **changes)


def run_with_window(controller: LauncherController) -> Optional[UpdateOutcome]:
    """Show the progress window and run the Qt event loop until it closes."""
    app = QApplication.instance() or QApplication(sys.argv)
    window = UpdateProgressWindow(controller.events, title=f"{AppInfo().app_name} - Updating")
    window.retry_requested.connect(controller.start)
    window.show()
    controller.start()
    app.exec()
    return controller.wait()


@click.command("patch-launcher")
@click.version_option(version=AppInfo().app_version, prog_name="patch-launcher")
@click.option(
    "--install-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Game installation directory.",
)
@click.option(
    "--target",
    envvar="PATCH_LAUNCHER_TARGET",
    help="Game executable name, relative to the installation directory.",
)
@click.option(
    "--manifest-url",
    envvar="PATCH_LAUNCHER_MANIFEST_URL",
    help="URL of the bootstrap manifest naming the latest full build.",
)
@click.option(
    "--patch-url-template",
    envvar="PATCH_LAUNCHER_PATCH_URL_TEMPLATE",
    help="Incremental archive URL with a {version} placeholder.",
)
@click.option(
    "--gui/--no-gui",
    default=True,
    show_default=True,
    help="Show the progress window, or print progress to the terminal.",
)
@click.option(
    "--launch/--no-launch",
    "launch_game",
    default=None,
    help="Start the game once it is up to date. Defaults to launchAfterUpdate from launcher.json.",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Log at DEBUG level (processed before the CLI, when the log file is opened).",
)
def launch(
    install_dir: Path,
    target: Optional[str],
    manifest_url: Optional[str],
    patch_url_template: Optional[str],
    gui: bool,
    launch_game: Optional[bool],
    debug: bool,
) -> None:
    """Update the game to the latest version and launch it.

    Settings come from launcher.json in the installation directory; options
    given here take precedence. Exits with status 0 when the game is up to
    date and 1 otherwise.
    """
    install_root = install_dir.resolve()
    settings = apply_overrides(
        load_settings(install_root),
        target=target,
        manifest_url=manifest_url,
        patch_url_template=patch_url_template,
        launch=launch_game,
    )
    if debug:
        logger.debug(f"Effective settings: {settings}")

    controller = LauncherController(
        install_root, settings, self_exe_name=AppInfo().executable_name
    )
    if gui:
        outcome = run_with_window(controller)
    else:
        outcome = ConsolePresenter().run(controller)

    if outcome is None or not outcome.succeeded:
        logger.warning("Update did not complete")
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    launch()
