"""Extraction of the Go toolchain version from executables."""

import logging
import mmap
import re
from functools import lru_cache

log = logging.getLogger(__name__)

BUILDINFO_MAGIC = b"\xff Go buildinf:"
# Header: magic (14 bytes), pointer size, flags, then pointers or padding.
HEADER_SIZE = 32
FLAG_INLINE_STRINGS = 0x2

_VERSION_RE = re.compile(rb"go1\.\d+(?:\.\d+)?(?:(?:rc|beta)\d+)?")


def decode_uvarint(data: bytes | mmap.mmap, offset: int) -> tuple[int, int]:
    """
    Decode an unsigned LEB128 varint.

    Returns:
        The decoded value and the offset just past it.

    Raises:
        ValueError: If the varint is truncated or longer than 64 bits.
    """
    value = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise ValueError("truncated varint")
        byte = data[offset]
        offset += 1
        value |= (byte & 0x7F) << shift
        if byte < 0x80:
            return value, offset
        shift += 7
        if shift >= 64:
            raise ValueError("varint overflows 64 bits")


def parse_build_version(data: bytes | mmap.mmap) -> str | None:
    """
    Return the Go version recorded in an executable image.

    Go 1.18+ binaries store the version inline right after the build info
    header. Older binaries store pointers into the data segment instead; for
    those the first ``go1.x`` string in the image is used.
    """
    pos = data.find(BUILDINFO_MAGIC)
    if pos < 0:
        return None
    flags = data[pos + len(BUILDINFO_MAGIC) + 1] if pos + HEADER_SIZE <= len(data) else 0
    if flags & FLAG_INLINE_STRINGS:
        try:
            length, start = decode_uvarint(data, pos + HEADER_SIZE)
        except ValueError:
            return None
        version = bytes(data[start : start + length])
        return version.decode("utf-8", errors="replace") or None
    match = _VERSION_RE.search(data)
    if match is None:
        return None
    return match.group().decode("ascii")


@lru_cache(maxsize=256)
def read_build_version(path: str) -> str | None:
    """Read the Go version of the executable at ``path``, or None if it has none."""
    try:
        with open(path, "rb") as f, mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ) as data:
            return parse_build_version(data)
    except (OSError, ValueError) as exc:
        log.debug("Cannot read build info from %s: %s", path, exc)
        return None
