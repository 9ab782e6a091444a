"""
Apply an update archive to the installation directory.

Entries are processed in archive-storage order. Each entry name is classified
(see :mod:`launcher.models.entry`) and the resulting disposition is carried
out against the installation directory through a narrow file-operations seam,
so tests can swap in an in-memory filesystem.

A failing entry is logged, recorded in the :class:`ApplyReport` and skipped;
only an archive that cannot be opened at all aborts the pass.
"""

import os
import shutil
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Callable, Optional, Protocol
from zipfile import BadZipFile, ZipFile, ZipInfo

from loguru import logger

from launcher.models.entry import EntryDisposition, EntryKind, classify
from launcher.models.progress import ApplyReport, EntryFailure
from launcher.utils.bspatch import apply_patch
from launcher.utils.exception import ArchiveOpenError, LauncherFilesystemError, UnsafeEntryPath

# (entries done, entries total, entry name)
ApplyProgressCallback = Callable[[int, int, str], None]


class FileOperations(Protocol):
    """Filesystem primitives the archive processor is allowed to use."""

    def exists(self, path: Path) -> bool: ...
    def is_file(self, path: Path) -> bool: ...
    def read_bytes(self, path: Path) -> bytes: ...
    def write_bytes(self, path: Path, data: bytes) -> None: ...
    def write_stream(self, path: Path, source: BinaryIO) -> None: ...
    def remove(self, path: Path) -> None: ...
    def makedirs(self, path: Path) -> None: ...


class LocalFileOperations:
    """:class:`FileOperations` backed by the real filesystem."""

    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_file(self, path: Path) -> bool:
        return path.is_file()

    def read_bytes(self, path: Path) -> bytes:
        return path.read_bytes()

    def write_bytes(self, path: Path, data: bytes) -> None:
        path.write_bytes(data)

    def write_stream(self, path: Path, source: BinaryIO) -> None:
        with open(path, "wb") as out_file:
            shutil.copyfileobj(source, out_file)

    def remove(self, path: Path) -> None:
        path.unlink()

    def makedirs(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)


def resolve_entry_target(install_root: Path, relative: str) -> Path:
    """
    Map an installation-relative entry path onto the installation directory.

    :param install_root: The installation directory
    :param relative: Path taken from the entry name (suffix already stripped)
    :return: Absolute target path inside ``install_root``
    :raises UnsafeEntryPath: If the path is absolute or climbs out of the root
    """
    normalised = relative.replace("\\", "/")
    posix = PurePosixPath(normalised)
    if posix.is_absolute() or (len(normalised) > 1 and normalised[1] == ":"):
        raise UnsafeEntryPath(f"Archive entry uses an absolute path: {relative}")
    if ".." in posix.parts:
        raise UnsafeEntryPath(f"Archive entry escapes the installation directory: {relative}")
    return install_root.joinpath(*posix.parts)


def is_self_file(target: Path, self_exe_name: str) -> bool:
    """Whether ``target`` names the running launcher's own executable."""
    if not self_exe_name:
        return False
    return os.path.normcase(target.name) == os.path.normcase(self_exe_name)


class ArchiveProcessor:
    """
    Applies update archives to an installation directory.

    Examples:
        >>> processor = ArchiveProcessor()
        >>> report = processor.apply(Path("update.zip"), Path("."), "Launcher.exe")
        >>> report.failed_names
        []
    """

    def __init__(self, file_ops: Optional[FileOperations] = None) -> None:
        self.file_ops: FileOperations = file_ops or LocalFileOperations()

    def apply(
        self,
        archive_path: Path,
        install_root: Path,
        self_exe_name: str,
        on_progress: Optional[ApplyProgressCallback] = None,
    ) -> ApplyReport:
        """
        Apply every entry of ``archive_path`` to ``install_root``.

        :param archive_path: The downloaded update archive
        :param install_root: The installation directory to mutate
        :param self_exe_name: File name of the running launcher, never touched
        :param on_progress: Called after every entry with (done, total, name)
        :return: Report of applied, skipped and failed entries
        :raises ArchiveOpenError: If the archive cannot be opened or its
            directory cannot be read
        """
        logger.info(f"Applying update archive {archive_path} to {install_root}")
        try:
            archive = ZipFile(archive_path)
        except (BadZipFile, OSError) as e:
            logger.error(f"Could not open update archive {archive_path}: {e}")
            raise ArchiveOpenError(f"Could not open update archive {archive_path}: {e}") from e

        with archive:
            entries = archive.infolist()
            report = ApplyReport(entries_total=len(entries))
            for index, info in enumerate(entries):
                self._apply_entry(archive, info, install_root, self_exe_name, report)
                if on_progress is not None:
                    on_progress(index + 1, len(entries), info.filename)

        logger.info(
            f"Archive pass finished: {len(report.applied)} applied, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed"
        )
        return report

    def _apply_entry(
        self,
        archive: ZipFile,
        info: ZipInfo,
        install_root: Path,
        self_exe_name: str,
        report: ApplyReport,
    ) -> None:
        disposition = classify(info.filename)
        try:
            target = resolve_entry_target(install_root, disposition.target)
            if is_self_file(target, self_exe_name):
                logger.debug(f"Skipping {info.filename}: it targets the running launcher")
                report.skipped.append(info.filename)
                return

            if disposition.kind is EntryKind.DIRECTORY:
                self.file_ops.makedirs(target)
            elif disposition.kind is EntryKind.PATCH:
                self._patch(archive, info, target)
            elif disposition.kind is EntryKind.DELETE:
                self._delete(target)
            else:
                self._replace(archive, info, target)
        except Exception as e:
            logger.error(f"Error applying {describe(disposition)}: {e}. Skipping.")
            report.failed.append(EntryFailure(info.filename, str(e), e))
            return

        report.applied.append(info.filename)

    def _replace(self, archive: ZipFile, info: ZipInfo, target: Path) -> None:
        self.file_ops.makedirs(target.parent)
        with archive.open(info) as source:
            self.file_ops.write_stream(target, source)

    def _patch(self, archive: ZipFile, info: ZipInfo, target: Path) -> None:
        if not self.file_ops.is_file(target):
            raise LauncherFilesystemError(f"Patch target {target} does not exist")
        old_bytes = self.file_ops.read_bytes(target)
        patch_program = archive.read(info)
        self.file_ops.write_bytes(target, apply_patch(old_bytes, patch_program))

    def _delete(self, target: Path) -> None:
        if self.file_ops.exists(target):
            self.file_ops.remove(target)
        else:
            logger.debug(f"Nothing to delete at {target}")


def describe(disposition: EntryDisposition) -> str:
    """Short human-readable description of a disposition, for log lines."""
    if disposition.kind is EntryKind.REPLACE:
        return f"file {disposition.target}"
    return f"{disposition.kind.value} {disposition.target}"
