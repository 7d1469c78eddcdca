"""Binary resource blob layout.

All integers are little-endian::

    pack header    checksum:u32 image_count:u32
    summary table  width:u16 height:u16 offset:u32       (one per image)
    image body     row_stride:u16 version_format:u16 x:i16 y:i16
                   width:u16 height:u16                  (12-byte bitmap header)
                   pixel bytes
                   palette bytes                         (palettized formats)

``offset`` is absolute from the start of the blob and points at the bitmap
header, which the runtime hands to its bitmap constructor unchanged.
``version_format`` is ``(version << 12) | (format << 1)``; bit 0 stays clear.
"""

from __future__ import annotations

import struct
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Sequence

from .errors import BlobChecksumError, BlobFormatError, PackError
from .palette import EncodedImage, PixelFormat

RESOURCE_VERSION = 1
NO_CHECKSUM = 0

PACK_HEADER = struct.Struct("<II")
TABLE_ENTRY = struct.Struct("<HHI")
BITMAP_HEADER = struct.Struct("<HHhhHH")

PACK_HEADER_SIZE = PACK_HEADER.size  # 8
TABLE_ENTRY_SIZE = TABLE_ENTRY.size  # 8
BITMAP_HEADER_SIZE = BITMAP_HEADER.size  # 12

# Seconds between 1601-01-01 and 1970-01-01 (Windows FILETIME epoch).
_FILETIME_EPOCH_OFFSET = 11644473600


def build_checksum(when: datetime | float | None = None) -> int:
    """Return the low 32 bits of the FILETIME of ``when`` (default: now).

    The runtime treats 0 as "do not check", so 0 is never returned.
    """

    if when is None:
        seconds = time.time()
    elif isinstance(when, datetime):
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        seconds = when.timestamp()
    else:
        seconds = float(when)
    ticks = int(round((seconds + _FILETIME_EPOCH_OFFSET) * 10_000_000))
    return (ticks & 0xFFFFFFFF) or 1


def encode_version_format(pixel_format: PixelFormat, version: int = RESOURCE_VERSION) -> int:
    if not 0 <= version <= 0xF:
        raise PackError(f"Resource version must fit in 4 bits: {version}")
    return (version << 12) | (int(pixel_format) << 1)


def decode_version_format(value: int) -> tuple[int, int]:
    """Split a ``version_format`` field into ``(version, format_code)``."""

    return value >> 12, (value >> 1) & 0x7FF


def image_total_size(image: EncodedImage) -> int:
    return BITMAP_HEADER_SIZE + image.data_size


def header_section_size(image_count: int) -> int:
    return PACK_HEADER_SIZE + TABLE_ENTRY_SIZE * image_count


def layout_images(images: Sequence[EncodedImage]) -> int:
    """Assign ``offset`` to every image and return the declared blob size.

    Must run after every image is encoded since offsets depend on the sizes
    of all preceding images.
    """

    position = header_section_size(len(images))
    for image in images:
        image.offset = position
        position += image_total_size(image)
    return position


@dataclass
class ImageRecord:
    name: str
    index: int
    width: int
    height: int
    format: PixelFormat


@dataclass
class ResourceBlob:
    checksum: int
    images: List[EncodedImage]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def records(self) -> List[ImageRecord]:
        return [
            ImageRecord(image.name, index, image.width, image.height, image.format)
            for index, image in enumerate(self.images)
        ]


class BlobWriter:
    """Serialize encoded images into a single resource blob."""

    def __init__(self, version: int = RESOURCE_VERSION):
        self.version = version

    def write(self, images: Sequence[EncodedImage], checksum: int | None = None) -> ResourceBlob:
        if checksum is None:
            checksum = build_checksum()
        if not 0 <= checksum <= 0xFFFFFFFF:
            raise PackError(f"Checksum must fit in 32 bits: {checksum}")

        images = list(images)
        declared_size = layout_images(images)

        out = bytearray()
        out += PACK_HEADER.pack(checksum, len(images))
        for image in images:
            out += TABLE_ENTRY.pack(image.width, image.height, image.offset)

        for image in images:
            if len(out) != image.offset:
                raise PackError(
                    f"{image.name}: written at {len(out)} but laid out at {image.offset}"
                )
            out += BITMAP_HEADER.pack(
                image.row_stride,
                encode_version_format(image.format, self.version),
                0,
                0,
                image.width,
                image.height,
            )
            out += image.pixels
            if image.palette is not None:
                out += image.palette

        if len(out) != declared_size:
            raise PackError(f"Blob is {len(out)} bytes, layout declared {declared_size}")
        return ResourceBlob(checksum=checksum, images=images, data=bytes(out))


@dataclass
class BlobImage:
    """One bitmap as the runtime sees it after loading a blob."""

    index: int
    offset: int
    width: int
    height: int
    row_stride: int
    version: int
    format: PixelFormat
    pixels: bytes
    palette: bytes | None = None


@dataclass
class LoadedBlob:
    checksum: int
    images: List[BlobImage] = field(default_factory=list)


def read_blob(data: bytes, expected_checksum: int = NO_CHECKSUM) -> LoadedBlob:
    """Parse blob bytes the way the embedded loader does.

    Raises :class:`BlobChecksumError` when ``expected_checksum`` is non-zero and
    differs from the stored value, and :class:`BlobFormatError` on malformed data.
    """

    if len(data) == 0:
        raise BlobFormatError("Zero size blob")
    if len(data) < PACK_HEADER_SIZE:
        raise BlobFormatError(f"Blob too short for its header: {len(data)} bytes")

    checksum, count = PACK_HEADER.unpack_from(data, 0)
    if expected_checksum != NO_CHECKSUM and checksum != expected_checksum:
        raise BlobChecksumError(
            f"Version fail: file {checksum:#x} vs expected {expected_checksum:#x}"
        )
    if len(data) < header_section_size(count):
        raise BlobFormatError(f"Blob too short for {count} table entries")

    entries = [
        TABLE_ENTRY.unpack_from(data, PACK_HEADER_SIZE + i * TABLE_ENTRY_SIZE)
        for i in range(count)
    ]

    loaded = LoadedBlob(checksum=checksum)
    for index, (width, height, offset) in enumerate(entries):
        end = entries[index + 1][2] if index + 1 < count else len(data)
        if not header_section_size(count) <= offset < end <= len(data):
            raise BlobFormatError(f"Image {index} has an invalid offset {offset}")
        if end - offset < BITMAP_HEADER_SIZE:
            raise BlobFormatError(f"Image {index} is truncated")

        stride, version_format, _x, _y, bmp_width, bmp_height = BITMAP_HEADER.unpack_from(
            data, offset
        )
        if (bmp_width, bmp_height) != (width, height):
            raise BlobFormatError(
                f"Image {index}: table says {width}x{height}, bitmap says {bmp_width}x{bmp_height}"
            )
        version, format_code = decode_version_format(version_format)
        try:
            pixel_format = PixelFormat(format_code)
        except ValueError as exc:
            raise BlobFormatError(f"Image {index}: unknown format code {format_code}") from exc

        pixel_start = offset + BITMAP_HEADER_SIZE
        pixel_end = pixel_start + stride * height
        if pixel_end > end:
            raise BlobFormatError(f"Image {index}: pixel data overruns its slot")

        palette = data[pixel_end:end] if pixel_format.palettized else None
        loaded.images.append(
            BlobImage(
                index=index,
                offset=offset,
                width=width,
                height=height,
                row_stride=stride,
                version=version,
                format=pixel_format,
                pixels=bytes(data[pixel_start:pixel_end]),
                palette=bytes(palette) if palette is not None else None,
            )
        )
    return loaded
