"""
Events published by the update engine for whatever presents progress.

The engine only ever produces these; a window or console presenter drains
them from an :class:`~launcher.utils.event_channel.EventChannel`.
"""

from dataclasses import dataclass
from typing import Optional, Union

from launcher.models.progress import DownloadProgress


@dataclass(frozen=True)
class LogEvent:
    message: str


@dataclass(frozen=True)
class ErrorEvent:
    """
    An error worth showing to the user.

    ``response_body`` carries the offending HTML page when a middlebox
    answered instead of the update server.
    """

    message: str
    response_body: Optional[str] = None


@dataclass(frozen=True)
class StatusEvent:
    status: str


@dataclass(frozen=True)
class ProgressEvent:
    fraction: float


@dataclass(frozen=True)
class DownloadProgressEvent:
    progress: DownloadProgress


@dataclass(frozen=True)
class ApplyingProgressEvent:
    text: str


@dataclass(frozen=True)
class UpdateCompleteEvent:
    pass


@dataclass(frozen=True)
class UpdateFailedEvent:
    pass


UpdateEvent = Union[
    LogEvent,
    ErrorEvent,
    StatusEvent,
    ProgressEvent,
    DownloadProgressEvent,
    ApplyingProgressEvent,
    UpdateCompleteEvent,
    UpdateFailedEvent,
]
