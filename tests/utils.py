"""Common test utilities: archive builders and in-memory doubles."""

import io
import zipfile
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Optional, Union
from unittest.mock import MagicMock

import requests
from requests.structures import CaseInsensitiveDict

from launcher.models.events import UpdateEvent
from launcher.utils.event_channel import EventChannel
from launcher.utils.exception import HttpStatusError


def build_archive(path: Path, entries: Iterable[tuple[str, bytes]]) -> Path:
    """
    Write a zip archive with the given (name, payload) entries, in order.

    Directory entries are written with an empty payload.
    """
    with zipfile.ZipFile(path, "w") as archive:
        for name, payload in entries:
            archive.writestr(name, payload)
    return path


def archive_bytes(entries: Iterable[tuple[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, payload in entries:
            archive.writestr(name, payload)
    return buffer.getvalue()


class MemoryFileOperations:
    """
    In-memory stand-in for the filesystem seam of the archive processor.

    Files live in ``files`` keyed by path; directories in ``dirs``.
    ``fail_writes_to`` makes writes to the named paths raise OSError.
    """

    def __init__(self, files: Optional[dict[Path, bytes]] = None) -> None:
        self.files: dict[Path, bytes] = dict(files or {})
        self.dirs: set[Path] = set()
        self.fail_writes_to: set[Path] = set()
        self.operations: list[tuple[str, Path]] = []

    def exists(self, path: Path) -> bool:
        return path in self.files or path in self.dirs

    def is_file(self, path: Path) -> bool:
        return path in self.files

    def read_bytes(self, path: Path) -> bytes:
        if path not in self.files:
            raise FileNotFoundError(str(path))
        return self.files[path]

    def write_bytes(self, path: Path, data: bytes) -> None:
        if path in self.fail_writes_to:
            raise PermissionError(f"Permission denied: {path}")
        self.operations.append(("write", path))
        self.files[path] = data

    def write_stream(self, path: Path, source: BinaryIO) -> None:
        self.write_bytes(path, source.read())

    def remove(self, path: Path) -> None:
        self.operations.append(("remove", path))
        del self.files[path]

    def makedirs(self, path: Path) -> None:
        self.operations.append(("makedirs", path))
        self.dirs.add(path)


class RecordingChannel(EventChannel):
    """Event channel that also keeps every published event for assertions."""

    def __init__(self) -> None:
        self.published: list[UpdateEvent] = []
        super().__init__(listener=self.published.append)

    def of_type(self, event_type: type) -> list:
        return [event for event in self.published if isinstance(event, event_type)]


def make_response(
    status_code: int = 200,
    body: bytes = b"",
    headers: Optional[dict[str, str]] = None,
    error_after: Optional[int] = None,
) -> MagicMock:
    """
    Build a streamed ``requests.Response`` double.

    :param error_after: Raise ``requests.ConnectionError`` after this many chunks
    """
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.headers = CaseInsensitiveDict(headers or {})
    response.content = body
    response.__enter__.return_value = response

    def iter_content(chunk_size: int = 1) -> Iterable[bytes]:
        for index, start in enumerate(range(0, len(body), chunk_size)):
            if error_after is not None and index >= error_after:
                raise requests.ConnectionError("Connection reset by peer")
            yield body[start : start + chunk_size]

    response.iter_content.side_effect = iter_content
    return response


class FakeDownloader:
    """
    Downloader double serving canned archives and manifests by URL.

    A value that is an exception instance is raised instead of served.
    """

    def __init__(
        self,
        archives: Optional[dict[str, Union[bytes, Exception]]] = None,
        documents: Optional[dict[str, Union[bytes, Exception]]] = None,
    ) -> None:
        self.archives = dict(archives or {})
        self.documents = dict(documents or {})
        self.fetched: list[str] = []

    def fetch(self, url: str, dest: Path, on_progress=None) -> None:  # type: ignore[no-untyped-def]
        self.fetched.append(url)
        payload = self.archives.get(url, HttpStatusError(404, url))
        if isinstance(payload, Exception):
            raise payload
        dest.write_bytes(payload)

    def fetch_json(self, url: str) -> bytes:
        self.fetched.append(url)
        payload = self.documents.get(url, HttpStatusError(404, url))
        if isinstance(payload, Exception):
            raise payload
        return payload


class FakeLocator:
    """Process table double: each handle stays alive for a number of polls."""

    def __init__(self, lifetimes: list[int], killable: bool = True) -> None:
        self.remaining = {pid: polls for pid, polls in enumerate(lifetimes, start=100)}
        self.killable = killable
        self.killed: list[int] = []

    def find_by_name(self, name: str) -> Optional[int]:
        alive = [pid for pid, polls in self.remaining.items() if polls > 0]
        return alive[0] if alive else None

    def is_alive(self, handle: Any) -> bool:
        if self.remaining[handle] <= 0:
            return False
        self.remaining[handle] -= 1
        return True

    def kill(self, handle: Any) -> bool:
        self.killed.append(handle)
        return self.killable

    def describe(self, handle: Any) -> str:
        return str(handle)
