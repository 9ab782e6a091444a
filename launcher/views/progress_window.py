"""Update progress window shown while the launcher patches the game."""

import webbrowser
from pathlib import Path
from typing import Optional

from loguru import logger
from PySide6.QtCore import Qt, QTimer, Signal
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QPlainTextEdit,
    QProgressBar,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from launcher.controllers.launcher_controller import save_error_response
from launcher.models.events import (
    ApplyingProgressEvent,
    DownloadProgressEvent,
    ErrorEvent,
    LogEvent,
    ProgressEvent,
    StatusEvent,
    UpdateCompleteEvent,
    UpdateEvent,
    UpdateFailedEvent,
)
from launcher.utils.event_channel import EventChannel
from launcher.utils.constants import MANUAL_DOWNLOAD_MESSAGE
from launcher.utils.formatting import format_download_progress

DRAIN_INTERVAL_MS = 50
DRAIN_BATCH_SIZE = 200
CLOSE_DELAY_MS = 1500


class UpdateProgressWindow(QWidget):
    """
    Progress window for an update run.

    The window polls an :class:`EventChannel` on a timer, so the engine never
    touches widgets from its worker thread.

    Signals:
        retry_requested: Emitted when the user clicks Retry after a failure
        finished: Emitted with the run's success once it ends
    """

    retry_requested = Signal()
    finished = Signal(bool)

    def __init__(
        self,
        events: EventChannel,
        title: str = "Updating",
        close_on_success: bool = True,
    ) -> None:
        """
        Initialize the update progress window.

        Args:
            events: Channel the update engine publishes to
            title: Window title
            close_on_success: Whether to close the window once the update completes
        """
        super().__init__()
        self.events = events
        self.close_on_success = close_on_success
        self.error_response: Optional[str] = None
        self.succeeded: Optional[bool] = None

        self.setWindowTitle(title)
        self.resize(520, 360)

        layout = QVBoxLayout()
        layout.setSpacing(10)
        layout.setContentsMargins(15, 15, 15, 15)

        self.status_label = QLabel("")
        self.status_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.status_label.setWordWrap(True)
        layout.addWidget(self.status_label)

        self.progress_bar = QProgressBar()
        self.progress_bar.setRange(0, 100)
        self.progress_bar.setValue(0)
        layout.addWidget(self.progress_bar)

        self.progress_label = QLabel("")
        self.progress_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.progress_label)

        self.log_view = QPlainTextEdit()
        self.log_view.setReadOnly(True)
        layout.addWidget(self.log_view)

        button_row = QHBoxLayout()
        self.details_button = QPushButton("More details")
        self.details_button.clicked.connect(self._on_details_clicked)
        self.details_button.setVisible(False)
        button_row.addWidget(self.details_button)

        button_row.addStretch()

        self.retry_button = QPushButton("Retry")
        self.retry_button.clicked.connect(self._on_retry_clicked)
        self.retry_button.setVisible(False)
        button_row.addWidget(self.retry_button)
        layout.addLayout(button_row)

        self.setLayout(layout)

        self.drain_timer = QTimer(self)
        self.drain_timer.setInterval(DRAIN_INTERVAL_MS)
        self.drain_timer.timeout.connect(self.drain_events)
        self.drain_timer.start()

    def drain_events(self) -> None:
        """Apply every event queued since the last tick."""
        for event in self.events.drain(DRAIN_BATCH_SIZE):
            self.handle_event(event)

    def handle_event(self, event: UpdateEvent) -> None:
        if isinstance(event, LogEvent):
            self.append_log(event.message)
        elif isinstance(event, ErrorEvent):
            self.append_log(f"ERROR: {event.message}")
            if event.response_body:
                self.error_response = event.response_body
                self.details_button.setVisible(True)
        elif isinstance(event, StatusEvent):
            self.status_label.setText(event.status)
        elif isinstance(event, ProgressEvent):
            self.set_fraction(event.fraction)
        elif isinstance(event, DownloadProgressEvent):
            self.set_fraction(event.progress.fraction)
            self.progress_label.setText(format_download_progress(event.progress))
        elif isinstance(event, ApplyingProgressEvent):
            self.progress_label.setText(event.text)
        elif isinstance(event, UpdateCompleteEvent):
            self._complete(True)
        elif isinstance(event, UpdateFailedEvent):
            self._complete(False)

    def append_log(self, message: str) -> None:
        self.log_view.appendPlainText(message)

    def set_fraction(self, fraction: float) -> None:
        self.progress_bar.setValue(int(max(0.0, min(fraction, 1.0)) * 100))

    def reset(self) -> None:
        """Clear the result of a previous run before retrying."""
        self.succeeded = None
        self.error_response = None
        self.progress_bar.setValue(0)
        self.progress_label.setText("")
        self.retry_button.setVisible(False)
        self.details_button.setVisible(False)

    def _complete(self, success: bool) -> None:
        self.succeeded = success
        if success:
            self.progress_bar.setValue(100)
            if self.close_on_success:
                QTimer.singleShot(CLOSE_DELAY_MS, self.close)
        else:
            self.status_label.setText("Update failed.")
            self.append_log(MANUAL_DOWNLOAD_MESSAGE)
            self.retry_button.setVisible(True)
        self.finished.emit(success)

    def _on_retry_clicked(self) -> None:
        logger.info("User requested a retry")
        self.reset()
        self.retry_requested.emit()

    def _on_details_clicked(self) -> None:
        if not self.error_response:
            return
        path: Path = save_error_response(self.error_response)
        webbrowser.open(path.as_uri())
