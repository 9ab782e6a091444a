from datetime import timedelta

from launcher.models.progress import DownloadProgress

KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB


def format_bytes(n: int | float) -> str:
    """
    Format a byte count with binary units.

    >>> format_bytes(512)
    '512 B'
    >>> format_bytes(1536)
    '1.50 KiB'
    """
    n = int(n)
    if n >= GIB:
        return f"{n / GIB:.2f} GiB"
    if n >= MIB:
        return f"{n / MIB:.2f} MiB"
    if n >= KIB:
        return f"{n / KIB:.2f} KiB"
    return f"{n} B"


def format_duration(duration: timedelta) -> str:
    """
    Format a duration as ``hh:mm:ss``, dropping fractions of a second.

    >>> format_duration(timedelta(seconds=3725))
    '01:02:05'
    """
    secs = int(duration.total_seconds())
    return f"{secs // 3600:02}:{(secs % 3600) // 60:02}:{secs % 60:02}"


def format_download_progress(progress: DownloadProgress) -> str:
    """One-line download summary: ``[elapsed] done/total (rate/s, ETA: eta)``."""
    return (
        f"[{format_duration(progress.elapsed)}] "
        f"{format_bytes(progress.bytes_done)}/{format_bytes(progress.bytes_total)} "
        f"({format_bytes(progress.instantaneous_rate)}/s, "
        f"ETA: {format_duration(progress.eta)})"
    )
