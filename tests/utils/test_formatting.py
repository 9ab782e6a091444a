from datetime import timedelta

import pytest

from launcher.models.progress import DownloadProgress
from launcher.utils.formatting import format_bytes, format_download_progress, format_duration


@pytest.mark.parametrize(
    "n, expected",
    [
        (0, "0 B"),
        (1023, "1023 B"),
        (1024, "1.00 KiB"),
        (1536, "1.50 KiB"),
        (5 * 1024 * 1024, "5.00 MiB"),
        (3 * 1024**3 + 512 * 1024**2, "3.50 GiB"),
        (2048.7, "2.00 KiB"),
    ],
)
def test_format_bytes(n: float, expected: str) -> None:
    assert format_bytes(n) == expected


def test_format_duration() -> None:
    assert format_duration(timedelta(0)) == "00:00:00"
    assert format_duration(timedelta(seconds=59.9)) == "00:00:59"
    assert format_duration(timedelta(hours=26, minutes=3, seconds=4)) == "26:03:04"


def test_format_download_progress() -> None:
    progress = DownloadProgress.sample(1024 * 1024, 4 * 1024 * 1024, 2.0)
    assert format_download_progress(progress) == (
        "[00:00:02] 1.00 MiB/4.00 MiB (512.00 KiB/s, ETA: 00:00:06)"
    )
