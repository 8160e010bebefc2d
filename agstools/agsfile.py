"""Little-endian binary reader over a game data file."""

from __future__ import annotations

import os
from typing import BinaryIO

from .bytestream import ByteStream, Endian, StreamError


class AgsFile:
    """Sequential reader for little-endian game files held in memory."""

    def __init__(self, stream: ByteStream) -> None:
        stream.endian = Endian.LITTLE
        self.stream = stream

    @classmethod
    def open(cls, path: str | os.PathLike) -> "AgsFile":
        """Load the file at *path*; raises OSError if it cannot be read."""
        return cls(ByteStream.from_file(path))

    def close(self) -> None:
        self.stream.close()

    def __enter__(self) -> "AgsFile":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self.stream)

    def tell(self) -> int:
        return self.stream.tell()

    def seek(self, pos: int) -> None:
        self.stream.seek(pos)

    def read(self, n: int) -> bytes:
        return self.stream.read(n)

    def read_longlong(self) -> int:
        value = self.stream.read_u64()
        return value - (1 << 64) if value & (1 << 63) else value

    def read_int(self) -> int:
        return self.stream.read_i32()

    def read_uint(self) -> int:
        return self.stream.read_u32()

    def read_short(self) -> int:
        return self.stream.read_i16()

    def read_ushort(self) -> int:
        return self.stream.read_u16()

    def read_uchar(self) -> int:
        return self.stream.read_u8()

    def read_string(self, maxlen: int) -> str:
        """Read a null-terminated string of at most *maxlen* bytes, null included."""
        out = bytearray()
        while len(out) < maxlen:
            b = self.stream.read_u8()
            if b == 0:
                return out.decode("latin-1")
            out.append(b)
        raise StreamError(f"string not terminated within {maxlen} bytes")

    def skip(self, n: int) -> None:
        """Advance the position by *n* bytes without reading them."""
        if n:
            self.stream.seek(self.stream.tell() + n)

    def dump_chunk_to(self, start: int, length: int, out: BinaryIO) -> None:
        """Copy *length* bytes beginning at *start* into the binary stream *out*."""
        self.stream.seek(start)
        out.write(self.stream.read(length))

    def dump_chunk(self, start: int, length: int, path: str | os.PathLike) -> None:
        """Write *length* bytes beginning at *start* to the file *path*."""
        with open(path, "wb") as out:
            self.dump_chunk_to(start, length, out)