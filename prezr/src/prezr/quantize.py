"""Channel quantization shared by the dithering and packing paths.

Two variants exist:

* display quantization maps a channel onto the four display levels
  0, 85, 170 and 255 (thresholds 42, 128, 213);
* packing quantization maps a channel onto a 2-bit index (thresholds 85, 170,
  255) and four of those indices are packed into one byte, alpha in the two
  most significant bits down to blue in the two least significant bits.
"""

from __future__ import annotations

from typing import Tuple

from .pixels import Pixel

DISPLAY_LEVELS: Tuple[int, int, int, int] = (0, 85, 170, 255)


def display_quantize_channel(value: int) -> int:
    # Levels are evenly spaced display values, not bin midpoints.
    if value < 42:
        return 0
    if value < 128:
        return 85
    if value < 213:
        return 170
    return 255


def pack_quantize_channel(value: int) -> int:
    if value < 85:
        return 0
    if value < 170:
        return 1
    if value < 255:
        return 2
    return 3


def quantize_pixel(pixel: Pixel, error=None) -> Pixel:
    """Display-quantize ``pixel`` after adding the diffused ``error``.

    ``pixel`` is a :class:`prezr.pixels.Pixel`; ``error`` is anything with
    ``a``, ``r``, ``g`` and ``b`` attributes (a ``SignedColor``) or ``None``.
    """

    if error is None:
        return Pixel(
            display_quantize_channel(pixel.a),
            display_quantize_channel(pixel.r),
            display_quantize_channel(pixel.g),
            display_quantize_channel(pixel.b),
        )
    return Pixel(
        display_quantize_channel(pixel.a + error.a),
        display_quantize_channel(pixel.r + error.r),
        display_quantize_channel(pixel.g + error.g),
        display_quantize_channel(pixel.b + error.b),
    )


def pack_pixel(pixel: Pixel) -> int:
    """Pack a pixel into one ``AARRGGBB`` byte."""

    return (
        (pack_quantize_channel(pixel.a) << 6)
        | (pack_quantize_channel(pixel.r) << 4)
        | (pack_quantize_channel(pixel.g) << 2)
        | pack_quantize_channel(pixel.b)
    )


def unpack_pixel(value: int) -> Pixel:
    """Expand an ``AARRGGBB`` byte back to display levels."""

    return Pixel(
        DISPLAY_LEVELS[(value >> 6) & 0x03],
        DISPLAY_LEVELS[(value >> 4) & 0x03],
        DISPLAY_LEVELS[(value >> 2) & 0x03],
        DISPLAY_LEVELS[value & 0x03],
    )
