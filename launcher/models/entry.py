"""
Archive entry classification.

Every entry name in an update archive doubles as an instruction. The suffix
decides what happens to the installation directory:

    ``data/``             -> create the directory
    ``game.dat.patch``    -> binary-patch ``game.dat`` in place
    ``old.dll.delete``    -> remove ``old.dll``
    ``anything.else``     -> write the payload to ``anything.else``
"""

from dataclasses import dataclass
from enum import Enum

from launcher.utils.constants import DELETE_SUFFIX, DIRECTORY_SUFFIX, PATCH_SUFFIX

_SEPARATORS = (DIRECTORY_SUFFIX, "\\")


class EntryKind(str, Enum):
    DIRECTORY = "directory"
    PATCH = "patch"
    DELETE = "delete"
    REPLACE = "replace"


@dataclass(frozen=True)
class EntryDisposition:
    """
    What to do with a single archive entry.

    :param kind: The disposition derived from the entry name
    :param name: The entry name as stored in the archive
    :param target: Installation-relative path the disposition acts on
    """

    kind: EntryKind
    name: str
    target: str

    @property
    def has_payload(self) -> bool:
        return self.kind in (EntryKind.PATCH, EntryKind.REPLACE)


def classify(entry_name: str) -> EntryDisposition:
    """
    Derive the disposition of an archive entry from its name.

    Suffix checks run in a fixed order (separator, ``.patch``, ``.delete``)
    and anything left over is a plain replacement, so every name maps to
    exactly one disposition.

    :param entry_name: Entry name as stored in the archive
    :return: The entry disposition
    """
    if entry_name.endswith(_SEPARATORS):
        return EntryDisposition(
            EntryKind.DIRECTORY, entry_name, entry_name.rstrip("/\\")
        )
    if entry_name.endswith(PATCH_SUFFIX):
        return EntryDisposition(
            EntryKind.PATCH, entry_name, entry_name[: -len(PATCH_SUFFIX)]
        )
    if entry_name.endswith(DELETE_SUFFIX):
        return EntryDisposition(
            EntryKind.DELETE, entry_name, entry_name[: -len(DELETE_SUFFIX)]
        )
    return EntryDisposition(EntryKind.REPLACE, entry_name, entry_name)
