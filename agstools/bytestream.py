"""An in-memory byte stream with positioned, endian-aware integer access."""

from __future__ import annotations

import enum
import os
import struct
from typing import BinaryIO


class Endian(enum.Enum):
    """Byte order used for multi-byte values."""

    BIG = ">"
    LITTLE = "<"


class StreamError(Exception):
    """Raised on out-of-bounds access or writes that are not permitted."""


class ByteStream:
    """A seekable byte buffer with a logical length.

    Reads may never pass the end.  Writes past the end are only allowed
    when the stream is growable, in which case the length is extended.
    """

    def __init__(
        self,
        data: bytes | bytearray | None = None,
        endian: Endian = Endian.LITTLE,
        growable: bool = False,
    ) -> None:
        self._buf = bytearray(data or b"")
        self._size = len(self._buf)
        self._pos = 0
        self.endian = endian
        self.growable = growable
        self.filename: str | None = None

    @classmethod
    def from_file(cls, path: str | os.PathLike) -> "ByteStream":
        """Load the whole file at *path* into a read-only little-endian stream."""
        with open(path, "rb") as fh:
            data = fh.read()
        stream = cls(data, Endian.LITTLE, False)
        stream.filename = os.fspath(path)
        return stream

    def __len__(self) -> int:
        return self._size

    def __enter__(self) -> "ByteStream":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _oob(self, want: int, have: int) -> StreamError:
        name = self.filename or "<memory>"
        return StreamError(f"{name}: out of bounds access (want: {want}, have {have})")

    # positioning

    def tell(self) -> int:
        return self._pos

    def seek(self, pos: int) -> None:
        if pos < 0:
            raise StreamError("negative seek attempted")
        if pos > self._size:
            raise self._oob(pos, self._size)
        self._pos = pos

    def seek_relative(self, rel: int) -> None:
        if self._pos + rel < 0:
            raise StreamError("negative seek attempted")
        self.seek(self._pos + rel)

    def bytes_available(self) -> int:
        return max(self._size - self._pos, 0)

    def set_length(self, length: int) -> None:
        """Shrink the logical length; growing it this way is an error."""
        if length < 0 or length > self._size:
            raise self._oob(length, self._size)
        self._size = length
        del self._buf[length:]

    # reading

    def read(self, n: int) -> bytes:
        if n < 0:
            raise StreamError("negative read length")
        if self._pos + n > self._size:
            raise self._oob(self._pos + n, self._size)
        chunk = bytes(self._buf[self._pos:self._pos + n])
        self._pos += n
        return chunk

    def _unpack(self, fmt: str, size: int):
        return struct.unpack(self.endian.value + fmt, self.read(size))[0]

    def read_u8(self) -> int:
        return self.read(1)[0]

    def read_i8(self) -> int:
        return self._unpack("b", 1)

    def read_u16(self) -> int:
        return self._unpack("H", 2)

    def read_i16(self) -> int:
        return self._unpack("h", 2)

    def read_u32(self) -> int:
        return self._unpack("I", 4)

    def read_i32(self) -> int:
        return self._unpack("i", 4)

    def read_u64(self) -> int:
        return self._unpack("Q", 8)

    def read_into(self, dest: "ByteStream", start: int = 0, length: int = 0) -> int:
        """Copy *length* bytes (all remaining if 0) into *dest* at *start*.

        This stream's position advances; the position of *dest* does not.
        Returns the number of bytes copied.
        """
        left = self._size - self._pos
        if length == 0:
            length = left
        elif length > left:
            raise self._oob(length, left)
        if length == 0:
            return 0
        if start < 0 or start + length > dest._size:
            raise dest._oob(start + length, dest._size)
        dest._buf[start:start + length] = self.read(length)
        return length

    # writing

    def write(self, data: bytes | bytearray) -> int:
        n = len(data)
        end = self._pos + n
        if not self.growable and end > self._size:
            raise StreamError("out of bounds write attempted")
        self._buf[self._pos:end] = data
        self._pos = end
        if self._pos > self._size:
            self._size = self._pos
        return n

    def _pack(self, fmt: str, bits: int, value: int) -> int:
        return self.write(struct.pack(self.endian.value + fmt, value & ((1 << bits) - 1)))

    def write_u8(self, value: int) -> int:
        return self._pack("B", 8, value)

    def write_i8(self, value: int) -> int:
        return self._pack("B", 8, value)

    def write_u16(self, value: int) -> int:
        return self._pack("H", 16, value)

    def write_i16(self, value: int) -> int:
        return self._pack("H", 16, value)

    def write_u32(self, value: int) -> int:
        return self._pack("I", 32, value)

    def write_i32(self, value: int) -> int:
        return self._pack("I", 32, value)

    def write_float(self, value: float) -> int:
        return self.write(struct.pack(self.endian.value + "f", value))

    def write_stream(self, other: "ByteStream") -> int:
        """Write the remaining bytes of *other* (from its position) into this stream."""
        return self.write(bytes(other._buf[other._pos:other._size]))

    # indexed access

    def get_byte(self, index: int) -> int:
        """Return the byte at *index* without moving the position."""
        if index < 0 or index >= self._size:
            raise self._oob(index, self._size)
        return self._buf[index]

    def set_byte(self, index: int, value: int) -> None:
        """Store *value* at *index* without moving the position."""
        saved = self._pos
        self.seek(index)
        try:
            self.write_u8(value)
        finally:
            self._pos = saved

    # whole-buffer operations

    def getvalue(self) -> bytes:
        return bytes(self._buf[:self._size])

    def clear(self) -> None:
        """Zero every byte; length and position are kept."""
        self._buf[:self._size] = bytes(self._size)

    def dump(self, path: str | os.PathLike) -> None:
        with open(path, "wb") as fh:
            self.dump_to(fh)

    def dump_to(self, out: BinaryIO) -> None:
        out.write(self.getvalue())

    def close(self) -> None:
        self._buf = bytearray()
        self._size = 0
        self._pos = 0