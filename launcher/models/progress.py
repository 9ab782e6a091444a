"""
Progress and result models reported by the download and apply stages.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional


@dataclass(frozen=True)
class DownloadProgress:
    """
    A single progress sample taken after a chunk has been written.

    ``bytes_total`` is 0 when the server did not announce a length, in which
    case no ETA can be given.
    """

    bytes_done: int
    bytes_total: int
    instantaneous_rate: float
    elapsed: timedelta
    eta: timedelta

    @classmethod
    def sample(
        cls, bytes_done: int, bytes_total: int, elapsed_seconds: float
    ) -> "DownloadProgress":
        """
        Build a sample from the running byte count and wall-clock time.

        :param bytes_done: Bytes written so far
        :param bytes_total: Announced content length, 0 if unknown
        :param elapsed_seconds: Seconds since the fetch began
        :return: The computed progress sample
        """
        rate = bytes_done / elapsed_seconds if elapsed_seconds > 0 else 0.0
        if rate > 0 and bytes_total > 0:
            eta_seconds = max(bytes_total - bytes_done, 0) / rate
        else:
            eta_seconds = 0.0
        return cls(
            bytes_done=bytes_done,
            bytes_total=bytes_total,
            instantaneous_rate=rate,
            elapsed=timedelta(seconds=max(elapsed_seconds, 0.0)),
            eta=timedelta(seconds=eta_seconds),
        )

    @property
    def fraction(self) -> float:
        if self.bytes_total <= 0:
            return 0.0
        return min(self.bytes_done / self.bytes_total, 1.0)


@dataclass(frozen=True)
class EntryFailure:
    """An archive entry that could not be applied."""

    name: str
    reason: str
    error: Optional[BaseException] = None


@dataclass
class ApplyReport:
    """
    Outcome of one archive pass.

    Entries land in exactly one of ``applied``, ``skipped`` or ``failed``.
    """

    entries_total: int = 0
    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[EntryFailure] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def failed_names(self) -> list[str]:
        return [failure.name for failure in self.failed]
