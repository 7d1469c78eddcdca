import struct
from datetime import datetime, timezone

import pytest

from prezr.blob import (
    BITMAP_HEADER_SIZE,
    BlobWriter,
    build_checksum,
    decode_version_format,
    encode_version_format,
    header_section_size,
    image_total_size,
    layout_images,
    read_blob,
)
from prezr.errors import BlobChecksumError, BlobFormatError, PackError
from prezr.palette import EncodedImage, PixelFormat, decode_image, encode_image


def _three_images() -> list[EncodedImage]:
    return [
        # 1-bit 10x2: stride 2 -> 4 pixel bytes, 2 palette bytes
        EncodedImage("ONE", 10, 2, PixelFormat.BIT1_PALETTIZED, bytes(4), b"\x00\xFF"),
        # 4-bit 3x3: stride 2 -> 6 pixel bytes, 5 palette bytes
        EncodedImage("TWO", 3, 3, PixelFormat.BIT4_PALETTIZED, bytes(range(6)), bytes(range(10, 15))),
        # 8-bit 4x2: 8 raw bytes
        EncodedImage("THREE", 4, 2, PixelFormat.BIT8, bytes(range(100, 108))),
    ]


def test_layout_offsets() -> None:
    images = _three_images()

    size = layout_images(images)

    offsets = [image.offset for image in images]
    assert offsets == [32, 50, 73]
    assert offsets[0] == header_section_size(3)
    assert all(a < b for a, b in zip(offsets, offsets[1:]))
    assert offsets[-1] + image_total_size(images[-1]) == size == 93


def test_written_bytes() -> None:
    blob = BlobWriter().write(_three_images(), checksum=0x12345678)
    data = blob.data

    assert blob.size == 93
    assert data[:8] == struct.pack("<II", 0x12345678, 3)
    assert struct.unpack_from("<HHI", data, 8) == (10, 2, 32)
    assert struct.unpack_from("<HHI", data, 16) == (3, 3, 50)
    assert struct.unpack_from("<HHI", data, 24) == (4, 2, 73)

    assert struct.unpack_from("<HHhhHH", data, 32) == (2, 0x1004, 0, 0, 10, 2)
    assert data[32 + BITMAP_HEADER_SIZE : 50] == bytes(4) + b"\x00\xFF"
    assert struct.unpack_from("<HHhhHH", data, 50) == (2, 0x1008, 0, 0, 3, 3)
    assert struct.unpack_from("<HHhhHH", data, 73) == (4, 0x1002, 0, 0, 4, 2)
    assert data[85:] == bytes(range(100, 108))


def test_records_describe_each_image() -> None:
    blob = BlobWriter().write(_three_images(), checksum=1)

    records = blob.records
    assert [(r.name, r.index, r.width, r.height, r.format) for r in records] == [
        ("ONE", 0, 10, 2, PixelFormat.BIT1_PALETTIZED),
        ("TWO", 1, 3, 3, PixelFormat.BIT4_PALETTIZED),
        ("THREE", 2, 4, 2, PixelFormat.BIT8),
    ]


def test_version_format_bits() -> None:
    assert encode_version_format(PixelFormat.BIT8) == 0x1002
    assert encode_version_format(PixelFormat.BIT4_PALETTIZED) == 0x1008
    assert encode_version_format(PixelFormat.BIT2_PALETTIZED, version=2) == 0x2006
    assert encode_version_format(PixelFormat.BIT1_PALETTIZED) & 1 == 0
    assert decode_version_format(0x1008) == (1, 4)

    with pytest.raises(PackError):
        encode_version_format(PixelFormat.BIT8, version=16)


def test_read_back_restores_images() -> None:
    values = [0x00, 0xC0, 0xF0, 0xFF, 0xC0, 0x00, 0x3C, 0xFF, 0xF0, 0x00]
    original = [
        encode_image("A", 5, 2, values),
        encode_image("B", 3, 1, [0x11, 0x22, 0x11]),
    ]
    blob = BlobWriter().write(original, checksum=0xCAFEBABE)

    loaded = read_blob(blob.data, expected_checksum=0xCAFEBABE)

    assert loaded.checksum == 0xCAFEBABE
    assert len(loaded.images) == 2
    for source, image in zip(original, loaded.images):
        assert image.offset == source.offset
        assert image.format is source.format
        assert image.version == 1
        assert image.row_stride == source.row_stride
        assert image.pixels == source.pixels
        assert image.palette == source.palette
        rebuilt = EncodedImage("X", image.width, image.height, image.format, image.pixels, image.palette)
        assert decode_image(rebuilt) == decode_image(source)


def test_checksum_mismatch_is_detected() -> None:
    blob = BlobWriter().write(_three_images(), checksum=0x1111)

    with pytest.raises(BlobChecksumError):
        read_blob(blob.data, expected_checksum=0x2222)

    # Zero disables the check.
    assert read_blob(blob.data).checksum == 0x1111


def test_malformed_blobs_are_rejected() -> None:
    data = BlobWriter().write(_three_images(), checksum=7).data

    with pytest.raises(BlobFormatError):
        read_blob(b"")
    with pytest.raises(BlobFormatError):
        read_blob(data[:6])
    with pytest.raises(BlobFormatError):
        read_blob(data[:20])
    with pytest.raises(BlobFormatError):
        read_blob(data[:80])


def test_checksum_must_fit_32_bits() -> None:
    with pytest.raises(PackError):
        BlobWriter().write(_three_images(), checksum=1 << 32)


def test_build_checksum_uses_filetime_low_bits() -> None:
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)

    # FILETIME of the Unix epoch is 0x019DB1DED53E8000.
    assert build_checksum(epoch) == 0xD53E8000
    assert build_checksum(0.0) == 0xD53E8000
    assert build_checksum(datetime(1970, 1, 1)) == 0xD53E8000
    assert 0 < build_checksum() <= 0xFFFFFFFF


def test_default_checksum_comes_from_build_time() -> None:
    blob = BlobWriter().write(_three_images())

    assert blob.checksum != 0
    assert struct.unpack_from("<I", blob.data, 0)[0] == blob.checksum
