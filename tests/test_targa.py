import struct

import pytest

from agstools.targa import (
    FOOTER_SIGNATURE,
    ImageData,
    TargaError,
    convert_16_to_24,
    create_palette_image,
    flip_vertical,
    read_targa,
    rgb565_to_888,
    rle_decode,
    rle_encode,
    write_targa,
)


def _header(datatype, width, height, bits, y_origin, cmaptype=0, cmlength=0, cmdepth=0):
    return struct.pack("<BBBHHBHHHHBB", 0, cmaptype, datatype, 0, cmlength,
                       cmdepth, 0, y_origin, width, height, bits, 0x20)


def test_rle_encode_repeat_packet():
    assert rle_encode(b"\x05" * 4, 1) == b"\x83\x05"


def test_rle_encode_raw_packet():
    assert rle_encode(b"\x01\x02\x03", 1) == b"\x02\x01\x02\x03"


def test_rle_encode_empty():
    assert rle_encode(b"", 3) == b""


@pytest.mark.parametrize("data,bpp", [
    (b"\x01\x02\x02\x02", 1),
    (b"\x07" * 130, 1),
    (bytes(range(200)) * 2, 1),
    (b"\x01\x02\x03" * 5 + b"\x04\x05\x06" + b"\x01\x02\x03" * 2, 3),
    (bytes(i % 7 for i in range(400)), 2),
    (b"\xaa\xbb\xcc\xdd" * 300, 4),
])
def test_rle_round_trip(data, bpp):
    assert rle_decode(rle_encode(data, bpp), bpp, len(data)) == data


def test_rle_long_run_split_at_128():
    encoded = rle_encode(b"\x07" * 130, 1)
    assert encoded[0] == 0xFF
    assert rle_decode(encoded, 1, 130) == b"\x07" * 130


def test_rle_decode_stops_at_output_size():
    assert rle_decode(b"\x83\x09", 1, 2) == b"\x09\x09"


def test_rgb565_extremes():
    assert rgb565_to_888(0, 0) == (0, 0, 0)
    assert rgb565_to_888(0xFF, 0xFF) == (255, 255, 255)
    assert rgb565_to_888(0x00, 0xF8) == (255, 0, 0)


def test_convert_16_to_24():
    img = ImageData(2, 1, 2, b"\xff\xff\x00\x00")
    out = convert_16_to_24(img)
    assert out.bytesperpixel == 3
    assert out.data == b"\xff\xff\xff\x00\x00\x00"
    assert out.data_size == 6


def test_create_palette_image_small():
    data = b"\x01\x02\x03" * 3 + b"\x04\x05\x06"
    result = create_palette_image(ImageData(4, 1, 3, data))
    assert result is not None
    pal, idx = result
    assert len(pal) == 2
    assert idx == b"\x00\x00\x00\x01"


def test_create_palette_image_too_many_colours():
    data = b"".join(struct.pack("<I", i)[:3] for i in range(257))
    assert create_palette_image(ImageData(257, 1, 3, data)) is None


def test_create_palette_image_translucent():
    assert create_palette_image(ImageData(1, 1, 4, b"\x01\x02\x03\x80")) is None


def test_flip_vertical():
    img = ImageData(2, 3, 1, b"aabbcc")
    flipped = flip_vertical(img)
    assert flipped.data == b"ccbbaa"
    assert flip_vertical(flipped).data == img.data


def test_truecolor_round_trip(tmp_path):
    data = bytes((i * 7 + j) % 256 for i in range(300) for j in range(3))
    img = ImageData(20, 15, 3, data)
    path = tmp_path / "img.tga"
    write_targa(path, img)
    back = read_targa(path)
    assert (back.width, back.height, back.bytesperpixel) == (20, 15, 3)
    assert back.data == data


def test_alpha_opaque_written_as_palette(tmp_path):
    data = b"\x01\x02\x03\xff\x04\x05\x06\xff"
    path = tmp_path / "a.tga"
    write_targa(path, ImageData(2, 1, 4, data))
    back = read_targa(path)
    assert back.data == b"\x01\x02\x03\x04\x05\x06"


def test_eight_bit_with_palette(tmp_path):
    palette = bytes(c for i in range(256) for c in (i, 2, 3))
    img = ImageData(2, 2, 1, b"\x00\x05\x05\x09")
    path = tmp_path / "p.tga"
    write_targa(path, img, palette)
    back = read_targa(path)
    assert back.bytesperpixel == 3
    assert back.data[3:6] == bytes((3, 2, 5))
    indices = read_targa(path, skip_palette=True)
    assert indices.data == img.data


def test_eight_bit_random_palette_keeps_indices(tmp_path):
    img = ImageData(3, 1, 1, b"\x01\x02\x03")
    path = tmp_path / "r.tga"
    write_targa(path, img)
    assert read_targa(path, skip_palette=True).data == img.data


def test_read_bottom_left_origin_flips(tmp_path):
    path = tmp_path / "bl.tga"
    path.write_bytes(_header(2, 1, 2, 24, 0) + b"\x01\x02\x03\x04\x05\x06")
    img = read_targa(path)
    assert img.data == b"\x04\x05\x06\x01\x02\x03"


def test_read_ignores_footer(tmp_path):
    footer = b"\0" * 8 + FOOTER_SIGNATURE + b".\0"
    path = tmp_path / "f.tga"
    path.write_bytes(_header(2, 1, 1, 24, 1) + b"\x01\x02\x03" + footer)
    assert read_targa(path).data == b"\x01\x02\x03"


def test_read_unsupported_type(tmp_path):
    path = tmp_path / "bw.tga"
    path.write_bytes(_header(3, 1, 1, 8, 1) + b"\x00")
    with pytest.raises(TargaError):
        read_targa(path)


def test_read_bad_colour_index(tmp_path):
    path = tmp_path / "bad.tga"
    path.write_bytes(_header(1, 1, 1, 8, 1, cmaptype=1, cmlength=1, cmdepth=24)
                     + b"\x01\x02\x03" + b"\x05")
    with pytest.raises(TargaError):
        read_targa(path)


def test_read_short_file(tmp_path):
    path = tmp_path / "s.tga"
    path.write_bytes(b"\x00\x01")
    with pytest.raises(TargaError):
        read_targa(path)