"""Palette building and bit-packing of packed-byte images.

Each pixel arrives as one ``AARRGGBB`` byte (see :func:`prezr.quantize.pack_pixel`).
The distinct values form the palette, indexed in order of first appearance,
and the palette size picks the storage format:

============  ===================  ==============
palette size  format               bits per pixel
============  ===================  ==============
1 - 2         ``BIT1_PALETTIZED``  1
3 - 4         ``BIT2_PALETTIZED``  2
5 - 16        ``BIT4_PALETTIZED``  4
17 -          ``BIT8``             8 (raw bytes, no palette)
============  ===================  ==============

Rows are packed independently, most significant bits first, so every row
starts on a byte boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterable, List, Sequence

from .errors import EncodeError, PaletteOverflowError
from .pixels import PixelGrid
from .quantize import pack_pixel, unpack_pixel

MAX_DIMENSION = 0xFFFF


class PixelFormat(IntEnum):
    """Bitmap format codes understood by the embedded runtime."""

    BIT8 = 1
    BIT1_PALETTIZED = 2
    BIT2_PALETTIZED = 3
    BIT4_PALETTIZED = 4

    @property
    def bits_per_pixel(self) -> int:
        return _BITS_PER_PIXEL[self]

    @property
    def pixels_per_byte(self) -> int:
        return 8 // self.bits_per_pixel

    @property
    def palettized(self) -> bool:
        return self is not PixelFormat.BIT8

    @property
    def label(self) -> str:
        return _LABELS[self]

    def row_stride(self, width: int) -> int:
        per_byte = self.pixels_per_byte
        return (width + per_byte - 1) // per_byte


_BITS_PER_PIXEL = {
    PixelFormat.BIT8: 8,
    PixelFormat.BIT1_PALETTIZED: 1,
    PixelFormat.BIT2_PALETTIZED: 2,
    PixelFormat.BIT4_PALETTIZED: 4,
}

_LABELS = {
    PixelFormat.BIT8: "Bit8",
    PixelFormat.BIT1_PALETTIZED: "Bit1Palettized",
    PixelFormat.BIT2_PALETTIZED: "Bit2Palettized",
    PixelFormat.BIT4_PALETTIZED: "Bit4Palettized",
}


@dataclass
class EncodedImage:
    name: str
    width: int
    height: int
    format: PixelFormat
    pixels: bytes
    palette: bytes | None = None
    offset: int | None = None

    @property
    def row_stride(self) -> int:
        return self.format.row_stride(self.width)

    @property
    def data_size(self) -> int:
        """Pixel bytes plus palette bytes."""

        return len(self.pixels) + (len(self.palette) if self.palette is not None else 0)


def build_palette_index(values: Iterable[int]) -> Dict[int, int]:
    """Map each distinct value to its first-occurrence index."""

    index: Dict[int, int] = {}
    for value in values:
        if value not in index:
            index[value] = len(index)
    return index


def choose_format(palette_size: int) -> PixelFormat:
    if palette_size <= 2:
        return PixelFormat.BIT1_PALETTIZED
    if palette_size <= 4:
        return PixelFormat.BIT2_PALETTIZED
    if palette_size <= 16:
        return PixelFormat.BIT4_PALETTIZED
    return PixelFormat.BIT8


def pack_rows(indices: Sequence[int], width: int, bits_per_pixel: int) -> bytes:
    """Pack ``indices`` row by row, ``bits_per_pixel`` bits each, MSB first."""

    if bits_per_pixel not in (1, 2, 4, 8):
        raise EncodeError(f"Unsupported bit depth: {bits_per_pixel}")
    if width <= 0 or len(indices) % width != 0:
        raise EncodeError(f"{len(indices)} indices do not form rows of width {width}")

    limit = 1 << bits_per_pixel
    per_byte = 8 // bits_per_pixel
    stride = (width + per_byte - 1) // per_byte
    height = len(indices) // width
    packed = bytearray(stride * height)

    for y in range(height):
        row_offset = y * width
        out_offset = y * stride
        for x in range(width):
            index = indices[row_offset + x]
            if not 0 <= index < limit:
                raise PaletteOverflowError(
                    f"Index {index} at ({x}, {y}) does not fit in {bits_per_pixel} bits"
                )
            shift = 8 - bits_per_pixel * (x % per_byte + 1)
            packed[out_offset + x // per_byte] |= index << shift

    return bytes(packed)


def unpack_rows(data: bytes, width: int, height: int, bits_per_pixel: int) -> List[int]:
    """Inverse of :func:`pack_rows`; trailing pad bits of each row are ignored."""

    per_byte = 8 // bits_per_pixel
    stride = (width + per_byte - 1) // per_byte
    if len(data) < stride * height:
        raise EncodeError(
            f"Packed data holds {len(data)} bytes, expected {stride * height}"
        )
    mask = (1 << bits_per_pixel) - 1
    values: List[int] = []
    for y in range(height):
        row = data[y * stride : (y + 1) * stride]
        for x in range(width):
            shift = 8 - bits_per_pixel * (x % per_byte + 1)
            values.append((row[x // per_byte] >> shift) & mask)
    return values


def encode_image(name: str, width: int, height: int, values: Sequence[int]) -> EncodedImage:
    """Encode packed-byte pixel ``values`` (raster order) into the smallest format."""

    if not (0 < width <= MAX_DIMENSION and 0 < height <= MAX_DIMENSION):
        raise EncodeError(f"{name}: dimensions {width}x{height} are out of range")
    if len(values) != width * height:
        raise EncodeError(
            f"{name}: expected {width * height} pixels, got {len(values)}"
        )

    color_map = build_palette_index(values)
    pixel_format = choose_format(len(color_map))

    if not pixel_format.palettized:
        if any(not 0 <= value <= 0xFF for value in values):
            raise EncodeError(f"{name}: packed pixel values must fit in one byte")
        return EncodedImage(name, width, height, pixel_format, bytes(values))

    capacity = 1 << pixel_format.bits_per_pixel
    if len(color_map) > capacity:
        raise PaletteOverflowError(
            f"{name}: {len(color_map)} colors exceed the {capacity} entries of {pixel_format.label}"
        )

    indices = [color_map[value] for value in values]
    pixels = pack_rows(indices, width, pixel_format.bits_per_pixel)

    palette = bytearray(len(color_map))
    for value, index in color_map.items():
        palette[index] = value

    return EncodedImage(name, width, height, pixel_format, pixels, bytes(palette))


def encode_grid(name: str, grid: PixelGrid) -> EncodedImage:
    """Pack-quantize every pixel of ``grid`` and encode the result."""

    values = [pack_pixel(pixel) for pixel in grid.iter_pixels()]
    return encode_image(name, grid.width, grid.height, values)


def decode_image(image: EncodedImage) -> List[int]:
    """Recover the packed-byte values of an encoded image in raster order."""

    if not image.format.palettized:
        return list(image.pixels[: image.width * image.height])
    if image.palette is None:
        raise EncodeError(f"{image.name}: palettized image has no palette")
    indices = unpack_rows(image.pixels, image.width, image.height, image.format.bits_per_pixel)
    try:
        return [image.palette[index] for index in indices]
    except IndexError as exc:
        raise EncodeError(f"{image.name}: pixel index outside the palette") from exc


def decode_grid(image: EncodedImage) -> PixelGrid:
    """Render an encoded image back to display levels, as the device shows it."""

    pixels = [unpack_pixel(value) for value in decode_image(image)]
    return PixelGrid.from_pixels(image.width, image.height, pixels)
