"""
Binary patch application.

Patch payloads use the classic BSDIFF40 container produced by ``bsdiff`` /
``bsdiff4``:

    offset  size  contents
    0       8     magic ``BSDIFF40``
    8       8     length of the bzip2 control block
    16      8     length of the bzip2 diff block
    24      8     size of the reconstructed file
    32      ...   control block, diff block, extra block (all bzip2)

Lengths are little-endian sign-magnitude 64-bit integers.
"""

import bsdiff4
from loguru import logger

from launcher.utils.exception import CorruptPatch

BSDIFF_MAGIC = b"BSDIFF40"
HEADER_SIZE = 32


def _decode_offt(buf: bytes) -> int:
    """Decode a bsdiff sign-magnitude 64-bit integer."""
    value = int.from_bytes(buf, "little")
    if value & (1 << 63):
        return -(value & ~(1 << 63))
    return value


def validate_header(patch_program: bytes) -> int:
    """
    Check the container header and return the declared output size.

    :param patch_program: Raw patch payload
    :return: Size of the file the patch reconstructs
    :raises CorruptPatch: If the header is missing, has the wrong magic, or
        declares block lengths that do not fit the payload
    """
    if len(patch_program) < HEADER_SIZE:
        raise CorruptPatch(
            f"Patch is {len(patch_program)} bytes, shorter than the {HEADER_SIZE} byte header"
        )
    if patch_program[:8] != BSDIFF_MAGIC:
        raise CorruptPatch("Patch does not start with the BSDIFF40 magic")

    control_length = _decode_offt(patch_program[8:16])
    diff_length = _decode_offt(patch_program[16:24])
    new_size = _decode_offt(patch_program[24:32])
    if control_length < 0 or diff_length < 0 or new_size < 0:
        raise CorruptPatch("Patch header declares a negative length")
    if HEADER_SIZE + control_length + diff_length > len(patch_program):
        raise CorruptPatch("Patch header declares blocks past the end of the payload")
    return new_size


def apply_patch(old_bytes: bytes, patch_program: bytes) -> bytes:
    """
    Reconstruct a file from its previous contents and a BSDIFF40 patch.

    Pure and deterministic: no I/O, and the same inputs always produce the
    same output.

    :param old_bytes: Contents of the file the patch was generated against
    :param patch_program: The patch payload
    :return: Contents of the new file
    :raises CorruptPatch: If the payload is malformed or does not fit ``old_bytes``
    """
    new_size = validate_header(patch_program)
    try:
        new_bytes = bsdiff4.patch(old_bytes, patch_program)
    except Exception as e:
        # bsdiff4 reports truncated streams and out-of-bounds control tuples
        # as ValueError, bz2 framing issues as OSError/EOFError.
        raise CorruptPatch(f"Failed to apply patch: {e}") from e

    if len(new_bytes) != new_size:
        raise CorruptPatch(
            f"Patched output is {len(new_bytes)} bytes, header declared {new_size}"
        )
    logger.debug(f"Patched {len(old_bytes)} bytes into {len(new_bytes)} bytes")
    return new_bytes
