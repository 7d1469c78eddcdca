"""PRezr: dither images and pack them into embedded display resources.

The dithering path reduces an ARGB image to 2 bits per channel, trying every
diffusion kernel of a catalog and keeping the one with the lowest error. The
packing path palettizes each image into 1, 2, 4 or 8 bits per pixel and
serializes a pack of images into one blob plus a C header. Both are available
through the CLI (``python -m prezr``) or as a library.
"""

from .blob import BlobWriter, ImageRecord, ResourceBlob, build_checksum, layout_images, read_blob
from .builder import (
    DitherOptions,
    ImageOutcome,
    PackOptions,
    ResourcePack,
    ResourcePackBuilder,
    build_pack,
    dither_grid,
    dither_image_file,
)
from .dither import DitherSelection, DitherSelector, ErrorDiffuser, dither_with_kernel
from .errors import (
    BlobChecksumError,
    BlobFormatError,
    EncodeError,
    ErrorKind,
    ImageLoadError,
    KernelConfigError,
    PackError,
    PaletteOverflowError,
    PrezrError,
)
from .header import render_pack_header, render_packages_header
from .kernels import DiffusionKernel, KernelCatalog, default_catalog
from .palette import EncodedImage, PixelFormat, decode_grid, decode_image, encode_grid, encode_image
from .pixels import Pixel, PixelGrid
from .quantize import display_quantize_channel, pack_pixel, pack_quantize_channel

__all__ = [
    "BlobChecksumError",
    "BlobFormatError",
    "BlobWriter",
    "DiffusionKernel",
    "DitherOptions",
    "DitherSelection",
    "DitherSelector",
    "EncodeError",
    "EncodedImage",
    "ErrorDiffuser",
    "ErrorKind",
    "ImageLoadError",
    "ImageOutcome",
    "ImageRecord",
    "KernelCatalog",
    "KernelConfigError",
    "PackError",
    "PackOptions",
    "PaletteOverflowError",
    "Pixel",
    "PixelFormat",
    "PixelGrid",
    "PrezrError",
    "ResourceBlob",
    "ResourcePack",
    "ResourcePackBuilder",
    "build_checksum",
    "build_pack",
    "decode_grid",
    "decode_image",
    "default_catalog",
    "display_quantize_channel",
    "dither_grid",
    "dither_image_file",
    "dither_with_kernel",
    "encode_grid",
    "encode_image",
    "layout_images",
    "pack_pixel",
    "pack_quantize_channel",
    "read_blob",
    "render_pack_header",
    "render_packages_header",
]
