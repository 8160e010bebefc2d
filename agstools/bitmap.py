"""Writing images as uncompressed top-down BMP files."""

from __future__ import annotations

import os
import struct

from .targa import ImageData

_FILE_HEADER = struct.Struct("<HIHHI")
_INFO_HEADER = struct.Struct("<IiiHHIIiiII")
HEADER_SIZE = _FILE_HEADER.size + _INFO_HEADER.size
BMP_SIGNATURE = 0x4D42
_PELS_PER_METER = 0xB11


def pad_rows(image: ImageData) -> ImageData:
    """Return the image with each row padded to a multiple of 4 bytes.

    The image itself is returned when no padding is needed.
    """
    row = image.width * image.bytesperpixel
    stride = ((row * 8 + 31) & ~31) >> 3
    if stride == row:
        return image
    pad = bytes(stride - row)
    rows = b"".join(image.data[y * row:(y + 1) * row] + pad
                    for y in range(image.height))
    return ImageData(image.width, image.height, image.bytesperpixel, rows)


def bmp_bytes(image: ImageData) -> bytes:
    """Encode *image* as a BMP file with a BITMAPINFOHEADER."""
    file_header = _FILE_HEADER.pack(
        BMP_SIGNATURE,
        (HEADER_SIZE + image.data_size) & 0xFFFFFFFF,
        0,
        0,
        HEADER_SIZE,
    )
    info_header = _INFO_HEADER.pack(
        _INFO_HEADER.size,
        image.width,
        -image.height,  # negative height: rows stored top to bottom
        1,
        image.bytesperpixel * 8,
        0,
        0,
        _PELS_PER_METER,
        _PELS_PER_METER,
        0,
        0,
    )
    return file_header + info_header + pad_rows(image).data


def write_bmp(path: str | os.PathLike, image: ImageData) -> None:
    """Write *image* to *path* as a BMP file."""
    with open(path, "wb") as fh:
        fh.write(bmp_bytes(image))