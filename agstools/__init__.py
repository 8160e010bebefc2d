"""Readers and writers for Adventure Game Studio packs, room files and TGA/BMP images."""

__version__ = "0.1.0"
__all__ = ["bytestream", "clib", "targa", "agsfile", "roomfile", "bitmap"]