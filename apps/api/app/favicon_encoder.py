"""Multi-size favicon.ico packing (PNG-in-ICO)."""

import struct
from dataclasses import dataclass
from typing import List, Sequence, Tuple

ICO_HEADER = struct.Struct("<HHH")  # reserved, type, image count
ICO_DIRECTORY_ENTRY = struct.Struct("<BBBBHHII")

ICO_TYPE_ICON = 1
MAX_ICO_DIMENSION = 256
MAX_ICO_IMAGES = 65535


@dataclass(frozen=True)
class IcoDirectoryEntry:
    width: int
    height: int
    palette_colors: int
    reserved: int
    color_planes: int
    bits_per_pixel: int
    data_size: int
    data_offset: int


def _size_byte(size: int) -> int:
    # ICO directory stores 256 as 0
    if size == MAX_ICO_DIMENSION:
        return 0
    return size


def encode_ico(images: Sequence[Tuple[int, bytes]]) -> bytes:
    """Pack (size, png_bytes) pairs into one .ico, keeping the given order.

    Layout: 6-byte header, one 16-byte directory entry per image, then the
    PNG payloads back to back. The first payload starts right after the
    directory; each following offset advances by the previous payload length.
    """
    if not images:
        raise ValueError("At least one image is required for an ICO file")
    if len(images) > MAX_ICO_IMAGES:
        raise ValueError("Too many images for ICO format")

    header = ICO_HEADER.pack(0, ICO_TYPE_ICON, len(images))
    entries = bytearray()
    payload = bytearray()

    offset = ICO_HEADER.size + ICO_DIRECTORY_ENTRY.size * len(images)
    for size, png_data in images:
        if not 1 <= size <= MAX_ICO_DIMENSION:
            raise ValueError(f"{size}x{size} cannot be stored in an ICO directory")

        entries.extend(ICO_DIRECTORY_ENTRY.pack(
            _size_byte(size),
            _size_byte(size),
            0,  # palette colors
            0,  # reserved
            1,  # color planes
            32,  # bits per pixel
            len(png_data),
            offset,
        ))
        payload.extend(png_data)
        offset += len(png_data)

    return header + bytes(entries) + bytes(payload)


def read_ico_directory(data: bytes) -> Tuple[int, List[IcoDirectoryEntry]]:
    """Parse an .ico header and directory. Returns (image_count, entries)."""
    if len(data) < ICO_HEADER.size:
        raise ValueError("ICO data is shorter than its header")

    reserved, ico_type, count = ICO_HEADER.unpack_from(data, 0)
    if reserved != 0 or ico_type != ICO_TYPE_ICON:
        raise ValueError("Not an ICO file")

    directory_end = ICO_HEADER.size + ICO_DIRECTORY_ENTRY.size * count
    if len(data) < directory_end:
        raise ValueError("ICO directory is truncated")

    entries = [
        IcoDirectoryEntry(*ICO_DIRECTORY_ENTRY.unpack_from(data, ICO_HEADER.size + i * ICO_DIRECTORY_ENTRY.size))
        for i in range(count)
    ]
    return count, entries
