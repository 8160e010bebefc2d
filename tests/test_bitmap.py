import struct

from agstools.bitmap import HEADER_SIZE, bmp_bytes, pad_rows, write_bmp
from agstools.targa import ImageData


def test_pad_rows_pads_to_four_bytes():
    image = ImageData(1, 2, 3, b"\x01\x02\x03\x04\x05\x06")
    padded = pad_rows(image)
    assert padded.data == b"\x01\x02\x03\x00\x04\x05\x06\x00"
    assert padded.width == 1 and padded.height == 2


def test_pad_rows_aligned_image_unchanged():
    image = ImageData(4, 2, 1, bytes(range(8)))
    assert pad_rows(image) is image


def test_pad_rows_stride_is_multiple_of_four():
    for width in range(1, 9):
        image = ImageData(width, 3, 3, bytes(width * 3 * 3))
        padded = pad_rows(image)
        assert padded.data_size % (4 * 3) == 0
        assert padded.data_size // 3 >= width * 3


def test_bmp_header_fields():
    image = ImageData(2, 2, 3, bytes(range(12)))
    blob = bmp_bytes(image)
    assert blob[:2] == b"BM"
    size, _r1, _r2, offset = struct.unpack_from("<IHHI", blob, 2)
    assert offset == HEADER_SIZE == 54
    assert size == HEADER_SIZE + image.data_size
    (bisize, width, height, planes, bits, compression,
     _sizeimage, xppm, yppm, _used, _important) = struct.unpack_from(
        "<IiiHHIIiiII", blob, 14)
    assert bisize == 40
    assert width == 2
    assert height == -2
    assert planes == 1
    assert bits == 24
    assert compression == 0
    assert xppm == yppm == 0xB11
    assert blob[HEADER_SIZE:] == pad_rows(image).data


def test_write_bmp_matches_bytes(tmp_path):
    image = ImageData(3, 1, 4, bytes(range(12)))
    target = tmp_path / "out.bmp"
    write_bmp(target, image)
    assert target.read_bytes() == bmp_bytes(image)
    assert target.read_bytes()[HEADER_SIZE:] == image.data