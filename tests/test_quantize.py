from prezr.pixels import Pixel
from prezr.quantize import (
    DISPLAY_LEVELS,
    display_quantize_channel,
    pack_pixel,
    pack_quantize_channel,
    quantize_pixel,
    unpack_pixel,
)


def test_display_quantize_is_total_and_monotonic() -> None:
    previous = -1
    for value in range(256):
        level = display_quantize_channel(value)
        assert level in DISPLAY_LEVELS
        assert level >= previous
        previous = level


def test_display_quantize_thresholds() -> None:
    assert display_quantize_channel(41) == 0
    assert display_quantize_channel(42) == 85
    assert display_quantize_channel(127) == 85
    assert display_quantize_channel(128) == 170
    assert display_quantize_channel(212) == 170
    assert display_quantize_channel(213) == 255


def test_display_quantize_accepts_values_pushed_out_of_range() -> None:
    assert display_quantize_channel(-40) == 0
    assert display_quantize_channel(300) == 255


def test_pack_quantize_is_total_and_monotonic() -> None:
    previous = -1
    for value in range(256):
        level = pack_quantize_channel(value)
        assert level in (0, 1, 2, 3)
        assert level >= previous
        previous = level


def test_pack_quantize_thresholds() -> None:
    assert pack_quantize_channel(84) == 0
    assert pack_quantize_channel(85) == 1
    assert pack_quantize_channel(169) == 1
    assert pack_quantize_channel(170) == 2
    assert pack_quantize_channel(254) == 2
    assert pack_quantize_channel(255) == 3


def test_display_levels_map_onto_distinct_pack_levels() -> None:
    assert [pack_quantize_channel(level) for level in DISPLAY_LEVELS] == [0, 1, 2, 3]


def test_pack_pixel_orders_alpha_red_green_blue() -> None:
    red = Pixel.from_rgba((255, 0, 0, 255))
    green = Pixel.from_rgba((0, 255, 0, 255))

    assert pack_pixel(red) == 0b11_11_00_00
    assert pack_pixel(green) == 0b11_00_11_00
    assert pack_pixel(Pixel(0, 0, 0, 255)) == 0b00_00_00_11


def test_unpack_pixel_expands_to_display_levels() -> None:
    assert unpack_pixel(0b11_11_00_00) == Pixel(255, 255, 0, 0)
    assert unpack_pixel(0b01_10_11_00) == Pixel(85, 170, 255, 0)


def test_quantize_pixel_adds_error_before_quantizing() -> None:
    class Error:
        a, r, g, b = 0, 20, -20, 0

    pixel = Pixel(255, 30, 140, 100)

    assert quantize_pixel(pixel) == Pixel(255, 0, 170, 85)
    assert quantize_pixel(pixel, Error()) == Pixel(255, 85, 85, 85)
