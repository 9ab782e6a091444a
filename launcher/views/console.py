"""Plain-text presenter for ``--no-gui`` runs."""

from pathlib import Path
from typing import Optional

import click

from launcher.controllers.launcher_controller import LauncherController, save_error_response
from launcher.models.events import (
    ApplyingProgressEvent,
    DownloadProgressEvent,
    ErrorEvent,
    LogEvent,
    StatusEvent,
    UpdateCompleteEvent,
    UpdateEvent,
    UpdateFailedEvent,
)
from launcher.utils.constants import MANUAL_DOWNLOAD_MESSAGE
from launcher.utils.formatting import format_download_progress
from launcher.utils.version_chain import UpdateOutcome

POLL_INTERVAL = 0.1


class ConsolePresenter:
    """
    Echoes engine events to the terminal.

    Download progress is rewritten in place on one line; everything else
    gets its own line. Errors go to stderr.
    """

    def __init__(self) -> None:
        self._progress_line_open = False
        self.error_response_path: Optional[Path] = None

    def handle(self, event: UpdateEvent) -> None:
        if isinstance(event, DownloadProgressEvent):
            click.echo(f"\r{format_download_progress(event.progress)}", nl=False)
            self._progress_line_open = True
            return

        self._close_progress_line()
        if isinstance(event, LogEvent):
            click.echo(event.message)
        elif isinstance(event, ApplyingProgressEvent):
            click.echo(event.text)
        elif isinstance(event, StatusEvent):
            click.secho(event.status, bold=True)
        elif isinstance(event, ErrorEvent):
            click.secho(event.message, fg="red", err=True)
            if event.response_body:
                self.error_response_path = save_error_response(event.response_body)
                click.echo(f"The response was saved to {self.error_response_path}", err=True)
        elif isinstance(event, UpdateCompleteEvent):
            click.secho("Game is up to date.", fg="green")
        elif isinstance(event, UpdateFailedEvent):
            click.secho("Update failed.", fg="red", err=True)
            click.echo(MANUAL_DOWNLOAD_MESSAGE, err=True)

    def run(self, controller: LauncherController) -> Optional[UpdateOutcome]:
        """Run an update to completion, echoing events as they arrive."""
        controller.start()
        while controller.is_running:
            event = controller.events.get(POLL_INTERVAL)
            if event is not None:
                self.handle(event)
        for event in controller.events.drain():
            self.handle(event)
        self._close_progress_line()
        return controller.wait()

    def _close_progress_line(self) -> None:
        if self._progress_line_open:
            click.echo("")
            self._progress_line_open = False
