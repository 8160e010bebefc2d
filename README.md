# agstools

Pure-Python readers and writers for the data files of Adventure Game Studio
games. It has no dependencies outside the standard library.

## Modules

- `agstools.bytestream`: `ByteStream` is a seekable in-memory byte buffer. It
  has typed little- or big-endian reads and writes (`read_u8` to `read_u64`,
  `write_u8` to `write_i32`, `write_float`). It can be loaded with
  `ByteStream.from_file`. Out-of-bounds access raises `StreamError`.
- `agstools.clib`: `ClibArchive.open` reads a CLIB game pack. The pack may be
  a file of its own or appended to an executable. The pack versions 6, 10,
  11, 15, 20, 21 and 30 are read. The archive lists its `entries`
  (`ClibEntry`: name, offset, length, data file number) and its `data_files`.
  `ClibArchive.dump` and `ClibArchive.extract` write file contents to disk.
  `ClibWriter` builds new packs in the version 30 layout, or in the version 20
  layout for any version below 30. A pack can optionally be appended to an
  executable stub. Errors are raised as `ClibError`.
- `agstools.agsfile`: `AgsFile` is a little-endian sequential reader. It
  provides `read_int`, `read_uint`, `read_short`, `read_string`, `skip`,
  `dump_chunk` and more.
- `agstools.roomfile`: `read_room` scans the block structure of a room file
  into a `RoomFile`, which holds the version and the position and length of
  each `BlockType`. `extract_source` returns the decrypted script text as
  bytes, or `None` when there is none. `find_code_start` returns the offset
  of the next `SCOM` signature. Malformed rooms raise `RoomFileError`.
- `agstools.targa`: `read_targa` loads colour-mapped and true-colour TGA
  images, plain or RLE compressed, as `ImageData` with the top row first.
  `write_targa` saves an image. It stores the image as 8-bit palettised where
  the image is opaque and has at most 256 colours. It converts 16-bit images
  to 24-bit otherwise, and uses RLE when that is smaller. An 8-bit image
  written without a palette gets a random one. Helpers include `rle_encode`,
  `rle_decode`, `rgb565_to_888`, `convert_16_to_24`, `create_palette_image`
  and `flip_vertical`.
- `agstools.bitmap`: `write_bmp` and `bmp_bytes` encode an `ImageData` as an
  uncompressed top-down BMP. Rows are padded to 4 bytes by `pad_rows`.

## Installing

```
pip install .
```

## Examples

List and extract the files in a game pack:

```python
from agstools.clib import ClibArchive

with ClibArchive.open("game.exe") as pack:
    for index, entry in enumerate(pack.entries):
        print(entry.name, entry.length)
        pack.dump(index, entry.name)
```

Build a version 30 pack from files in a directory:

```python
from agstools.clib import ClibWriter

writer = ClibWriter(30, "unpacked", None)
writer.add_data_file("game.ags")
writer.add_file("room1.crm", 0)
writer.write("game.ags")
```

Read the script text of a room:

```python
from agstools.agsfile import AgsFile
from agstools.roomfile import read_room, extract_source

with AgsFile.open("room1.crm") as f:
    room = read_room(f)
    source = extract_source(f, room)
    if source is not None:
        print(source.decode("latin-1"))
```

Convert a TGA image to BMP:

```python
from agstools.targa import read_targa
from agstools.bitmap import write_bmp

write_bmp("sprite.bmp", read_targa("sprite.tga"))
```

## What it does not do

There are no command-line programs; everything is used from Python.

The package does not parse the main game data file. It does not disassemble,
assemble or run compiled scripts: `find_code_start` only locates them. It does
not read or write sprite files.

## Running the tests

```
pip install .[test]
pytest
```