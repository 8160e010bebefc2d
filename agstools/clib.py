"""Reading and writing of CLIB game data packs."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass, field

from .bytestream import ByteStream, StreamError

MAX_FILES = 10000
MAX_MULTIFILES = 25
RAND_SEED_SALT = 9338638
CLIB_SIGNATURE = b"CLIB\x1a"
CLIB_END_SIGNATURE = b"CLIB\x01\x02\x03\x04SIGE"
SUPPORTED_VERSIONS = frozenset({6, 10, 11, 15, 20, 21, 30})

_NAME_KEY = b"My\x01\xde\x04Jibzle"


class ClibError(Exception):
    """Raised when a pack cannot be read or written."""


class PseudoRandom:
    """The linear congruential generator used by encrypted pack headers."""

    def __init__(self, seed: int) -> None:
        self._state = seed & 0xFFFFFFFF

    def next(self) -> int:
        self._state = (self._state * 214013 + 2531011) & 0xFFFFFFFF
        return (self._state >> 16) & 0x7FFF


def encrypt_name(name: str | bytes) -> bytes:
    """Encrypt *name* including its terminating null byte."""
    raw = name.encode("latin-1") if isinstance(name, str) else bytes(name)
    raw = raw.split(b"\0", 1)[0] + b"\0"
    return bytes((b + _NAME_KEY[i % len(_NAME_KEY)]) & 0xFF for i, b in enumerate(raw))


def decrypt_name(data: bytes) -> str:
    """Decrypt a name, stopping at the first decrypted null byte."""
    out = bytearray()
    for i, b in enumerate(data):
        c = (b - _NAME_KEY[i % len(_NAME_KEY)]) & 0xFF
        if c == 0:
            break
        out.append(c)
    return out.decode("latin-1")


@dataclass
class ClibEntry:
    """One file stored in a pack."""

    name: str
    offset: int
    length: int
    datafile: int = 0


# header parsing helpers

def _fixed_name(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("latin-1")


def _read_cstring(s: ByteStream, bufsize: int) -> str:
    out = bytearray()
    while s.bytes_available():
        b = s.read_u8()
        if b == 0:
            break
        out.append(b)
    return out[:bufsize - 1].decode("latin-1")


def _read_enc_byte(s: ByteStream, rng: PseudoRandom) -> int:
    return (s.read_u8() - rng.next()) & 0xFF


def _read_enc_int(s: ByteStream, rng: PseudoRandom) -> int:
    raw = bytes((b - rng.next()) & 0xFF for b in s.read(4))
    return int.from_bytes(raw, "little")


def _read_enc_string(s: ByteStream, rng: PseudoRandom, maxlen: int) -> str:
    out = bytearray()
    while True:
        c = _read_enc_byte(s, rng)
        if c == 0:
            break
        out.append(c)
    return out[:maxlen - 1].decode("latin-1")


def _check_data_count(n: int) -> None:
    if not 0 <= n <= MAX_MULTIFILES:
        raise ClibError(f"invalid number of data files: {n}")


def _check_file_count(n: int) -> None:
    if not 0 <= n <= MAX_FILES:
        raise ClibError(f"invalid number of files: {n}")


def _read_v30(s: ByteStream) -> tuple[list[str], list[ClibEntry]]:
    s.read_i32()  # reserved flags
    ndata = s.read_i32()
    _check_data_count(ndata)
    data_files = [_read_cstring(s, 50) for _ in range(ndata)]
    nfiles = s.read_i32()
    _check_file_count(nfiles)
    entries = []
    for _ in range(nfiles):
        name = _read_cstring(s, 100)
        datafile = s.read_u8()
        offset = s.read_u64()
        length = s.read_u64()
        entries.append(ClibEntry(name, offset, length, datafile))
    return data_files, entries


def _read_v21(s: ByteStream) -> tuple[list[str], list[ClibEntry]]:
    seed = s.read_i32()
    rng = PseudoRandom(seed + RAND_SEED_SALT)
    ndata = _read_enc_int(s, rng)
    _check_data_count(ndata)
    data_files = [_read_enc_string(s, rng, 50) for _ in range(ndata)]
    nfiles = _read_enc_int(s, rng)
    _check_file_count(nfiles)
    names = [_read_enc_string(s, rng, 100) for _ in range(nfiles)]
    offsets = [_read_enc_int(s, rng) for _ in range(nfiles)]
    lengths = [_read_enc_int(s, rng) for _ in range(nfiles)]
    datafiles = [_read_enc_byte(s, rng) for _ in range(nfiles)]
    entries = [ClibEntry(*row) for row in zip(names, offsets, lengths, datafiles)]
    return data_files, entries


def _read_v20(s: ByteStream) -> tuple[list[str], list[ClibEntry]]:
    ndata = s.read_i32()
    _check_data_count(ndata)
    data_files = [_read_cstring(s, 50) for _ in range(ndata)]
    nfiles = s.read_i32()
    _check_file_count(nfiles)
    names = []
    for _ in range(nfiles):
        name_len = int(s.read_i16() / 5)
        names.append(decrypt_name(s.read(name_len)))
    offsets = [s.read_u32() for _ in range(nfiles)]
    lengths = [s.read_u32() for _ in range(nfiles)]
    datafiles = list(s.read(nfiles))
    entries = [ClibEntry(*row) for row in zip(names, offsets, lengths, datafiles)]
    return data_files, entries


def _read_v10(s: ByteStream, version: int) -> tuple[list[str], list[ClibEntry]]:
    ndata = s.read_i32()
    _check_data_count(ndata)
    data_files = [_fixed_name(s.read(20)) for _ in range(ndata)]
    nfiles = s.read_i32()
    _check_file_count(nfiles)
    raw_names = [s.read(25) for _ in range(nfiles)]
    offsets = [s.read_u32() for _ in range(nfiles)]
    lengths = [s.read_u32() for _ in range(nfiles)]
    datafiles = list(s.read(nfiles))
    if version >= 11:
        names = [decrypt_name(raw) for raw in raw_names]
    else:
        names = [_fixed_name(raw) for raw in raw_names]
    entries = [ClibEntry(*row) for row in zip(names, offsets, lengths, datafiles)]
    return data_files, entries


def _read_v6(s: ByteStream) -> list[ClibEntry]:
    modifier = s.read_u8()
    s.read_u8()  # unused
    nfiles = s.read_i16()
    _check_file_count(nfiles)
    s.read(13)  # password area
    names = []
    for _ in range(nfiles):
        raw = s.read(13).split(b"\0", 1)[0]
        names.append(bytes((b - modifier) & 0xFF for b in raw).decode("latin-1"))
    lengths = [s.read_u32() for _ in range(nfiles)]
    s.seek_relative(2 * nfiles)  # flags and ratio
    entries = []
    offset = s.tell()
    for name, length in zip(names, lengths):
        entries.append(ClibEntry(name, offset, length, 0))
        offset += length
    return entries


def _has_clib_at(s: ByteStream, offset: int) -> bool:
    if offset + len(CLIB_SIGNATURE) > len(s):
        return False
    s.seek(offset)
    return s.read(len(CLIB_SIGNATURE))[:4] == b"CLIB"


@dataclass
class ClibArchive:
    """An opened pack: its entries and the streams holding their data."""

    path: str
    version: int
    entries: list[ClibEntry]
    data_files: list[str]
    pack_offset: int = 0
    streams: list[ByteStream] = field(default_factory=list, repr=False)

    @classmethod
    def open(cls, path: str | os.PathLike) -> "ClibArchive":
        """Open a pack file, or an executable with a pack appended to it."""
        path = os.fspath(path)
        try:
            main = ByteStream.from_file(path)
        except OSError as exc:
            raise ClibError(f"cannot open {path}: {exc}") from exc
        try:
            return cls._parse(path, main)
        except StreamError as exc:
            raise ClibError(f"{path}: truncated or corrupt pack ({exc})") from exc

    @classmethod
    def _parse(cls, path: str, s: ByteStream) -> "ClibArchive":
        magic = s.read(len(CLIB_SIGNATURE))
        absoffs = 0
        if magic[:4] != b"CLIB":
            size = len(s)
            s.seek(size - len(CLIB_END_SIGNATURE))
            if s.read(len(CLIB_END_SIGNATURE)) != CLIB_END_SIGNATURE:
                raise ClibError(f"{path}: not a CLIB pack")
            s.seek(size - 20)
            off64 = s.read_u64()
            if off64 < size and _has_clib_at(s, off64):
                if off64 > 0xFFFFFFFF:
                    raise ClibError("gamepacks > 4GB are not supported")
                absoffs = off64
            else:
                s.seek(size - 16)
                absoffs = s.read_u32()
            if not _has_clib_at(s, absoffs):
                raise ClibError(f"{path}: clib header signature not found")

        version = s.read_u8()
        if version not in SUPPORTED_VERSIONS:
            raise ClibError(f"unsupported pack version {version}")

        own_name = path.lstrip("/\\")

        if version >= 10:
            if s.read_u8() != 0:
                raise ClibError("not the first data file in a chain")
            if version >= 30:
                data_files, entries = _read_v30(s)
            elif version >= 21:
                data_files, entries = _read_v21(s)
            elif version == 20:
                data_files, entries = _read_v20(s)
            else:
                data_files, entries = _read_v10(s, version)
            if data_files:
                data_files[0] = own_name
            for entry in entries:
                if entry.datafile == 0:
                    entry.offset += absoffs
        else:
            entries = _read_v6(s)
            data_files = [own_name]

        streams = [s]
        base = os.path.dirname(path)
        for name in data_files[1:]:
            full = os.path.join(base, name)
            try:
                streams.append(ByteStream.from_file(full))
            except OSError as exc:
                raise ClibError(f"error opening data file {full}") from exc

        return cls(path, version, entries, data_files, absoffs, streams)

    def close(self) -> None:
        for stream in self.streams:
            stream.close()
        self.streams = []

    def __enter__(self) -> "ClibArchive":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @staticmethod
    def _read_range(stream: ByteStream, start: int, length: int) -> bytes:
        saved = stream.tell()
        try:
            stream.seek(start)
        except StreamError:
            return b""
        try:
            return stream.read(min(length, stream.bytes_available()))
        finally:
            stream.seek(saved)

    def extract(self, datafile: int, start: int, length: int,
                outpath: str | os.PathLike) -> int:
        """Write *length* bytes at *start* of a data file to *outpath*."""
        if not 0 <= datafile < len(self.streams):
            raise ClibError(f"no such data file: {datafile}")
        stream = self.streams[datafile]
        with open(outpath, "wb") as out:
            data = self._read_range(stream, start, length)
            out.write(data)
        if len(data) != length:
            raise ClibError(f"short read: wanted {length} bytes, got {len(data)}")
        return len(data)

    def dump(self, index: int, outpath: str | os.PathLike) -> int:
        """Write the contents of entry *index* to *outpath*."""
        if not 0 <= index < len(self.entries):
            raise ClibError(f"no such entry: {index}")
        entry = self.entries[index]
        return self.extract(entry.datafile, entry.offset, entry.length, outpath)


class ClibWriter:
    """Builds a pack from files in a source directory."""

    def __init__(self, version: int = 30, source_dir: str | os.PathLike = ".",
                 exe_stub: str | None = None) -> None:
        self.version = version
        self.source_dir = os.fspath(source_dir)
        self.exe_stub = exe_stub
        self.data_files: list[str] = []
        self.entries: list[ClibEntry] = []

    @property
    def _format(self) -> int:
        return 30 if self.version >= 30 else 20

    def add_data_file(self, name: str) -> None:
        if len(name.encode("latin-1")) >= 20:
            raise ClibError(f"data file name too long: {name!r}")
        if len(self.data_files) >= MAX_MULTIFILES:
            raise ClibError("too many data files")
        self.data_files.append(name)

    def add_file(self, name: str, datafile: int = 0) -> ClibEntry:
        if len(self.entries) >= MAX_FILES:
            raise ClibError("too many files")
        if len(name.encode("latin-1")) >= 100:
            raise ClibError(f"file name too long: {name!r}")
        path = os.path.join(self.source_dir, name)
        try:
            size = os.path.getsize(path)
        except OSError as exc:
            raise ClibError(f"cannot open {path}") from exc
        entry = ClibEntry(name, 0, size, datafile & 0xFF)
        self.entries.append(entry)
        return entry

    def _build_header(self, offsets: list[int]) -> bytes:
        fmt = self._format
        out = bytearray(CLIB_SIGNATURE)
        out += bytes([fmt, 0])
        if fmt == 30:
            out += struct.pack("<i", 0)
        out += struct.pack("<i", len(self.data_files))
        for name in self.data_files:
            out += name.encode("latin-1") + b"\0"
        out += struct.pack("<i", len(self.entries))
        if fmt == 30:
            for entry, offset in zip(self.entries, offsets):
                out += entry.name.encode("latin-1") + b"\0"
                out.append(0)  # library uid
                out += struct.pack("<QQ", offset, entry.length)
            return bytes(out)
        for entry in self.entries:
            enc = encrypt_name(entry.name)
            out += struct.pack("<h", len(enc) * 5)
            out += enc
        for offset in offsets:
            out += struct.pack("<I", offset & 0xFFFFFFFF)
        for entry in self.entries:
            out += struct.pack("<I", entry.length & 0xFFFFFFFF)
        out += bytes(entry.datafile for entry in self.entries)
        return bytes(out)

    def _offsets(self, header_size: int) -> list[int]:
        offsets = []
        offset = header_size
        for entry in self.entries:
            offsets.append(offset)
            offset += entry.length
        return offsets

    def header_bytes(self) -> bytes:
        """The pack header with file offsets relative to the pack start."""
        size = len(self._build_header([0] * len(self.entries)))
        return self._build_header(self._offsets(size))

    def _read_source(self, name: str, length: int | None) -> bytes:
        path = os.path.join(self.source_dir, name)
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except OSError as exc:
            raise ClibError(f"cannot open {path}") from exc
        if length is None:
            return data
        if len(data) < length:
            raise ClibError(f"{path} is shorter than {length} bytes")
        return data[:length]

    def write(self, path: str | os.PathLike) -> None:
        header = self.header_bytes()
        with open(path, "wb") as out:
            stub_size = 0
            if self.exe_stub:
                stub = self._read_source(self.exe_stub, None)
                out.write(stub)
                stub_size = len(stub)
            out.write(header)
            for entry in self.entries:
                out.write(self._read_source(entry.name, entry.length))
            out.write(struct.pack("<I", stub_size & 0xFFFFFFFF))
            if self._format == 30:
                out.write(struct.pack("<i", 0))
            out.write(CLIB_END_SIGNATURE)