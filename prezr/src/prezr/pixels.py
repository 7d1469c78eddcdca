"""Pixel values and a bounds-checked RGBA pixel grid.

``PixelGrid`` owns a contiguous ``bytearray`` laid out exactly like Pillow's
``"RGBA"`` raw data (4 bytes per pixel, ``width * 4`` bytes per row), so images
can be adopted and exported without per-pixel conversion.
"""

from __future__ import annotations

from typing import Iterator, NamedTuple, Sequence

from PIL import Image

BYTES_PER_PIXEL = 4


class Pixel(NamedTuple):
    """One ARGB sample, 8 bits per channel."""

    a: int
    r: int
    g: int
    b: int

    @classmethod
    def from_rgba(cls, rgba: Sequence[int]) -> "Pixel":
        r, g, b, a = rgba
        return cls(a, r, g, b)

    def to_rgba(self) -> tuple[int, int, int, int]:
        return (self.r, self.g, self.b, self.a)


TRANSPARENT = Pixel(0, 0, 0, 0)


class PixelGrid:
    """Width x height RGBA pixels with coordinate access."""

    def __init__(self, width: int, height: int, data: bytes | bytearray | None = None):
        if width <= 0 or height <= 0:
            raise ValueError(f"Grid dimensions must be positive: {width}x{height}")
        self.width = width
        self.height = height
        self.stride = width * BYTES_PER_PIXEL
        size = self.stride * height
        if data is None:
            self.data = bytearray(size)
        else:
            if len(data) != size:
                raise ValueError(
                    f"Pixel buffer holds {len(data)} bytes, expected {size} for {width}x{height}"
                )
            self.data = bytearray(data)

    @classmethod
    def from_pixels(cls, width: int, height: int, pixels: Sequence[Pixel]) -> "PixelGrid":
        """Build a grid from pixels listed in raster order."""

        if len(pixels) != width * height:
            raise ValueError(f"Expected {width * height} pixels, got {len(pixels)}")
        grid = cls(width, height)
        for index, pixel in enumerate(pixels):
            grid.set(index % width, index // width, pixel)
        return grid

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelGrid":
        width, height = image.size
        return cls(width, height, image.convert("RGBA").tobytes())

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGBA", (self.width, self.height), bytes(self.data))

    def _offset(self, x: int, y: int) -> int:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) is outside {self.width}x{self.height}")
        return y * self.stride + x * BYTES_PER_PIXEL

    def get(self, x: int, y: int) -> Pixel:
        offset = self._offset(x, y)
        r, g, b, a = self.data[offset : offset + BYTES_PER_PIXEL]
        return Pixel(a, r, g, b)

    def set(self, x: int, y: int, pixel: Pixel) -> None:
        offset = self._offset(x, y)
        self.data[offset : offset + BYTES_PER_PIXEL] = bytes(pixel.to_rgba())

    def iter_pixels(self) -> Iterator[Pixel]:
        """Yield every pixel in raster order."""

        for y in range(self.height):
            for x in range(self.width):
                yield self.get(x, y)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelGrid):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and self.data == other.data
        )

    def __repr__(self) -> str:
        return f"PixelGrid({self.width}x{self.height})"
