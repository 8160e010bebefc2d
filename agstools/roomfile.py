"""Block index and script extraction for room files."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from .agsfile import AgsFile
from .bytestream import StreamError

_SCRIPT_KEY = b"Avis Durgan"


class BlockType(enum.IntEnum):
    EXT = 0
    MAIN = 1
    SCRIPT = 2
    COMPSCRIPT = 3
    COMPSCRIPT2 = 4
    OBJECTNAMES = 5
    ANIMBKGRND = 6
    COMPSCRIPT3 = 7
    PROPERTIES = 8
    OBJECTSCRIPTNAMES = 9
    EOF = 0xFF


BLOCKTYPE_MIN = BlockType.EXT
BLOCKTYPE_MAX = BlockType.OBJECTSCRIPTNAMES

_EXT_NAMES = {
    b"Main": BlockType.MAIN,
    b"TextScript": BlockType.SCRIPT,
    b"CompScript": BlockType.COMPSCRIPT,
    b"CompScript2": BlockType.COMPSCRIPT2,
    b"CompScript3": BlockType.COMPSCRIPT3,
    b"ObjNames": BlockType.OBJECTNAMES,
    b"AnimBg": BlockType.ANIMBKGRND,
    b"Properties": BlockType.PROPERTIES,
    b"ObjScNames": BlockType.OBJECTSCRIPTNAMES,
}


class RoomFileError(Exception):
    """Raised when a room file is malformed."""


@dataclass
class RoomFile:
    """Room version plus the position and length of each block found."""

    version: int = 0
    blockpos: dict[BlockType, int] = field(default_factory=dict)
    blocklen: dict[BlockType, int] = field(default_factory=dict)


def read_room(f: AgsFile) -> RoomFile:
    """Scan the block structure of a room file."""
    room = RoomFile()
    try:
        f.seek(0)
        room.version = f.read_short()
        while True:
            raw_type = f.read_uchar()
            if raw_type == BlockType.EOF:
                break
            if not BLOCKTYPE_MIN <= raw_type <= BLOCKTYPE_MAX:
                raise RoomFileError(f"invalid block type {raw_type}")
            blocktype = BlockType(raw_type)
            if blocktype == BlockType.EXT:
                if room.version < 32:
                    raise RoomFileError(
                        "found blocktype_ext in incompatible room version")
                name = f.read(16).split(b"\0", 1)[0]
                blocktype = _EXT_NAMES.get(name, BlockType.EXT)
            if room.version < 32:
                blocklen = f.read_int()
            else:
                blocklen = f.read_longlong()
            curr = f.tell()
            room.blockpos[blocktype] = curr
            room.blocklen[blocktype] = blocklen & 0xFFFFFFFF
            if blocktype == BlockType.COMPSCRIPT3:
                if f.read(4) != b"SCOM":
                    raise RoomFileError("compiled script signature missing")
            f.seek(curr + blocklen)
    except StreamError as exc:
        raise RoomFileError(f"truncated room file ({exc})") from exc
    return room


def _decrypt(data: bytes) -> bytes:
    out = bytearray(data)
    for i, b in enumerate(out):
        c = (b + _SCRIPT_KEY[i % len(_SCRIPT_KEY)]) & 0xFF
        out[i] = c
        if c == 0:
            break
    return bytes(out)


def extract_source(f: AgsFile, room: RoomFile) -> bytes | None:
    """Return the decrypted script text of the room, or None if it has none."""
    pos = room.blockpos.get(BlockType.SCRIPT, 0)
    if not pos:
        return None
    try:
        f.seek(pos)
        length = f.read_int()
        if room.blocklen.get(BlockType.SCRIPT) != (length + 4) & 0xFFFFFFFF:
            raise RoomFileError("script length does not match its block length")
        data = f.read(length)
    except StreamError as exc:
        raise RoomFileError(f"truncated script block ({exc})") from exc
    return _decrypt(data)


def find_code_start(f: AgsFile, start: int) -> int | None:
    """Return the offset of the next 'SCOM' signature at or after *start*.

    The file is left positioned after the signature, or at its end if none
    was found, in which case None is returned.
    """
    try:
        f.seek(start)
    except StreamError:
        return None
    remaining = f.read(len(f) - f.tell())
    expected = b"SCOM"
    match = 0
    for i, b in enumerate(remaining):
        if b == expected[match]:
            match += 1
            if match == 4:
                f.seek(start + i + 1)
                return start + i + 1 - 4
        else:
            match = 0
    return None