"""Reading and writing of Truevision TGA images."""

from __future__ import annotations

import enum
import os
import random
import struct
from dataclasses import dataclass

_HEADER = struct.Struct("<BBBHHBHHHHBB")
_FOOTER_SIZE = 26
FOOTER_SIGNATURE = b"TRUEVISION-XFILE"


class TargaError(Exception):
    """Raised when an image cannot be read or written."""


class ImageType(enum.IntEnum):
    COLOR_MAPPED = 1
    TRUE_COLOR = 2
    BLACK_WHITE = 3
    RLE_COLOR_MAPPED = 9
    RLE_TRUE_COLOR = 10
    RLE_BLACK_WHITE = 11


@dataclass
class ImageData:
    """Raw pixel data stored top row first."""

    width: int
    height: int
    bytesperpixel: int
    data: bytes

    @property
    def data_size(self) -> int:
        return len(self.data)


class _Mode(enum.IntEnum):
    IDLE = 0
    SERIES = 1
    REPEAT = 2


def _emit(out: bytearray, data: bytes, bpp: int, mode: _Mode,
          base: int, count: int, repcol: int) -> int:
    out.append(((mode - 1) << 7) | (count - 1))
    if mode == _Mode.SERIES:
        out += data[base * bpp:(base + count) * bpp]
    else:
        out += repcol.to_bytes(bpp, "little")
    return base + count


def rle_encode(data: bytes, bpp: int) -> bytes:
    """Compress pixel data into TGA run-length packets."""
    n = len(data) // bpp
    pixels = [int.from_bytes(data[i * bpp:(i + 1) * bpp], "little") for i in range(n)]
    out = bytearray()
    base = count = repcol = 0
    mode = _Mode.IDLE
    for togo in range(n, 0, -1):
        cur = pixels[base + count]
        nxt = pixels[base + count + 1] if togo > 1 else None
        if mode == _Mode.IDLE:
            if nxt is not None and cur == nxt:
                mode, repcol = _Mode.REPEAT, cur
            else:
                mode = _Mode.SERIES
            count = 1
            continue
        if mode == _Mode.SERIES:
            if nxt is not None and cur == nxt:
                base = _emit(out, data, bpp, mode, base, count, repcol)
                mode, repcol, count = _Mode.REPEAT, cur, 1
                continue
        elif cur != repcol:
            base = _emit(out, data, bpp, mode, base, count, repcol)
            mode, count = _Mode.SERIES, 1
            continue
        count += 1
        if count == 128:
            base = _emit(out, data, bpp, mode, base, count, repcol)
            mode, count = _Mode.IDLE, 0
    if count:
        _emit(out, data, bpp, mode, base, count, repcol)
    return bytes(out)


def rle_decode(data: bytes, bpp: int, size: int) -> bytes:
    """Expand TGA run-length packets into *size* bytes of pixel data."""
    result = bytearray(size)
    p = q = 0
    end = len(data)
    while q + 1 + bpp <= end:
        count = (data[q] & 127) + 1
        repeat = data[q] & 128
        q += 1
        if repeat:
            color = data[q:q + bpp]
            q += bpp
            for _ in range(count):
                if p + bpp > size:
                    break
                result[p:p + bpp] = color
                p += bpp
        else:
            for _ in range(count):
                if p + bpp > size or q + bpp > end:
                    break
                result[p:p + bpp] = data[q:q + bpp]
                p += bpp
                q += bpp
    return bytes(result)


def rgb565_to_888(lo: int, hi: int) -> tuple[int, int, int]:
    """Expand a 16-bit 565 pixel given as its two bytes into (r, g, b)."""
    r = (hi & 0xF8) | (hi >> 5)
    g = ((hi & 7) << 5) | ((lo & 224) >> 3) | ((hi & 7) >> 1)
    b = ((lo & 31) << 3) | ((lo & 28) >> 2)
    return r, g, b


def convert_16_to_24(image: ImageData) -> ImageData:
    """Return a 24-bit (b, g, r) copy of a 16-bit image."""
    npix = image.width * image.height
    out = bytearray()
    for i in range(npix):
        lo, hi = image.data[2 * i], image.data[2 * i + 1]
        r, g, b = rgb565_to_888(lo, hi)
        out += bytes((b, g, r))
    return ImageData(image.width, image.height, 3, bytes(out))


def _pixel_colors(image: ImageData) -> list[int]:
    bpp = image.bytesperpixel
    data = image.data
    npix = image.width * image.height
    colors = []
    if bpp not in (2, 3, 4):
        return [0xFF000000] * npix if data else []
    for i in range(min(npix, len(data) // bpp)):
        px = data[i * bpp:(i + 1) * bpp]
        alpha = 0xFF
        if bpp == 2:
            r, g, b = rgb565_to_888(px[0], px[1])
        else:
            b, g, r = px[0], px[1], px[2]
            if bpp == 4:
                alpha = px[3]
        colors.append(-1 if alpha != 0xFF else (alpha << 24 | r << 16 | g << 8 | b))
    return colors


def create_palette_image(image: ImageData) -> tuple[list[int], bytes] | None:
    """Map an opaque image with at most 256 colours to (palette, indices).

    Returns None if a pixel is not fully opaque or there are too many colours.
    """
    palette: list[int] = []
    lookup: dict[int, int] = {}
    indices = bytearray()
    for col in _pixel_colors(image):
        if col < 0:
            return None
        idx = lookup.get(col)
        if idx is None:
            if len(palette) == 256:
                return None
            idx = lookup[col] = len(palette)
            palette.append(col)
        indices.append(idx)
    npix = image.width * image.height
    indices += bytes(max(npix - len(indices), 0))
    return palette, bytes(indices)


def flip_vertical(image: ImageData) -> ImageData:
    """Return a copy with the row order reversed."""
    w = image.width * image.bytesperpixel
    rows = [image.data[y * w:(y + 1) * w] for y in range(image.height)]
    tail = image.data[image.height * w:]
    return ImageData(image.width, image.height, image.bytesperpixel,
                     b"".join(reversed(rows)) + tail)


def read_targa(path: str | os.PathLike, skip_palette: bool = False) -> ImageData:
    """Load a colour-mapped or true-colour TGA file, optionally RLE compressed."""
    with open(path, "rb") as fh:
        raw = fh.read()
    if len(raw) < _HEADER.size:
        raise TargaError(f"{os.fspath(path)}: file too short")
    (idlength, cmaptype, datatype, _cmorigin, cmlength, cmdepth,
     _x_origin, y_origin, width, height, bits, _desc) = _HEADER.unpack_from(raw)
    fs = len(raw)
    if fs > _FOOTER_SIZE and raw[-_FOOTER_SIZE + 8:-_FOOTER_SIZE + 24] == FOOTER_SIGNATURE:
        fs -= _FOOTER_SIZE
    data = raw[_HEADER.size + idlength:fs]
    palette = b""
    if cmaptype:
        palsz = cmlength * cmdepth // 8
        if len(data) <= palsz:
            raise TargaError("colour map extends past the image data")
        palette, data = data[:palsz], data[palsz:]

    if datatype in (ImageType.RLE_COLOR_MAPPED, ImageType.RLE_TRUE_COLOR):
        workdata = rle_decode(data, bits // 8, width * height * bits // 8)
    elif datatype in (ImageType.COLOR_MAPPED, ImageType.TRUE_COLOR):
        workdata = data
    else:
        raise TargaError(f"unsupported image type {datatype}")

    if skip_palette or not cmdepth:
        bpp = bits // 8
    else:
        bpp = cmdepth // 8
    size = width * height * bpp

    if cmaptype and not skip_palette:
        pbpp = cmdepth // 8
        npix = width * height
        if len(workdata) < npix:
            raise TargaError("image data is truncated")
        out = bytearray()
        for idx in workdata[:npix]:
            if idx >= cmlength:
                raise TargaError(f"colour index {idx} outside the colour map")
            out += palette[idx * pbpp:(idx + 1) * pbpp]
        pixels = bytes(out)
    else:
        if len(workdata) < size:
            raise TargaError("image data is truncated")
        pixels = bytes(workdata[:size])

    image = ImageData(width, height, bpp, pixels)
    if y_origin == 0:
        image = flip_vertical(image)
    return image


def write_targa(path: str | os.PathLike, image: ImageData,
                palette: bytes | None = None) -> None:
    """Save *image* as TGA, palettised where possible and RLE if smaller.

    *palette* holds 256 (r, g, b) triples and is only used for 8-bit images;
    without it an 8-bit image gets a random palette.
    """
    bpp = image.bytesperpixel
    data = image.data
    pal: list[int] = []
    if bpp == 1:
        if palette is None:
            pal = [random.getrandbits(24) for _ in range(256)]
        else:
            if len(palette) < 256 * 3:
                raise TargaError("palette needs 256 rgb entries")
            pal = [palette[3 * i] << 16 | palette[3 * i + 1] << 8 | palette[3 * i + 2]
                   for i in range(256)]
    else:
        mapped = create_palette_image(image)
        if mapped is not None and mapped[0]:
            pal, data = mapped
            bpp = 1
        elif bpp == 2:
            converted = convert_16_to_24(image)
            bpp, data = 3, converted.data

    use_rle = False
    encoded = rle_encode(data, bpp)
    if len(encoded) < len(data):
        data, use_rle = encoded, True

    if bpp == 1:
        datatype = ImageType.RLE_COLOR_MAPPED if use_rle else ImageType.COLOR_MAPPED
    else:
        datatype = ImageType.RLE_TRUE_COLOR if use_rle else ImageType.TRUE_COLOR
    header = _HEADER.pack(
        0,
        1 if bpp == 1 else 0,
        datatype,
        0,
        len(pal) if bpp == 1 else 0,
        24 if bpp == 1 else 0,
        0,
        image.height & 0xFFFF,
        image.width & 0xFFFF,
        image.height & 0xFFFF,
        (bpp * 8) & 0xFF,
        0x20,
    )
    try:
        with open(path, "wb") as fh:
            fh.write(header)
            if bpp == 1:
                fh.write(b"".join((c & 0xFFFFFF).to_bytes(3, "little") for c in pal))
            fh.write(data)
    except OSError as exc:
        raise TargaError(f"error opening {os.fspath(path)}") from exc