"""Batch pipeline: load images, dither, encode and assemble resource packs."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence

from PIL import Image

from .blob import BlobWriter, ImageRecord, RESOURCE_VERSION, ResourceBlob
from .dither import DEFAULT_TRANSPARENT_KEY, DitherSelection, DitherSelector
from .errors import ErrorKind, ImageLoadError, PackError, PrezrError, classify_error
from .header import make_handle, render_pack_header
from .kernels import KernelCatalog, default_catalog
from .palette import EncodedImage, encode_grid
from .pixels import Pixel, PixelGrid


@dataclass
class DitherOptions:
    """Options for kernel selection."""

    transparent_key: Pixel | None = DEFAULT_TRANSPARENT_KEY
    metric: str = "luminance"  # luminance, mean
    include_identity: bool = False
    kernel_names: Sequence[str] | None = None
    keep_trials: bool = False

    def build_catalog(self) -> KernelCatalog:
        catalog = default_catalog(include_identity=self.include_identity)
        if self.kernel_names:
            catalog = catalog.subset(self.kernel_names)
        return catalog

    def build_selector(self) -> DitherSelector:
        return DitherSelector(
            catalog=self.build_catalog(),
            transparent_key=self.transparent_key,
            metric=self.metric,
            keep_trials=self.keep_trials,
        )


@dataclass
class PackOptions:
    """Options for building one resource pack."""

    version: int = RESOURCE_VERSION
    checksum: int | None = None  # None: derived from the build time
    dither: bool = False
    dither_options: DitherOptions = field(default_factory=DitherOptions)


def load_grid(path: str | Path) -> PixelGrid:
    path = Path(path)
    try:
        with Image.open(path) as img:
            return PixelGrid.from_image(img)
    except FileNotFoundError as exc:
        raise ImageLoadError(f"Input file not found: {path}") from exc
    except OSError as exc:
        raise ImageLoadError(f"Failed to read image: {path}") from exc


def iter_pngs(paths: Iterable[str | Path]) -> List[Path]:
    """Expand files and directories (non-recursive) into a sorted PNG list."""

    results: List[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_file():
            if path.suffix.lower() != ".png":
                raise ImageLoadError(f"Unsupported file type (expected .png): {path}")
            results.append(path)
        elif path.is_dir():
            for entry in sorted(path.iterdir()):
                if entry.is_file() and entry.suffix.lower() == ".png":
                    results.append(entry)
        else:
            raise ImageLoadError(f"Input path does not exist: {path}")
    return results


def dither_grid(grid: PixelGrid, options: DitherOptions | None = None) -> DitherSelection:
    options = options or DitherOptions()
    return options.build_selector().select(grid)


def dither_image_file(path: str | Path, options: DitherOptions | None = None) -> DitherSelection:
    return dither_grid(load_grid(path), options)


@dataclass
class ImageOutcome:
    """Result of encoding one image; exactly one of ``encoded``/``error`` is set."""

    name: str
    encoded: EncodedImage | None = None
    error: PrezrError | None = None
    kernel_name: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> ErrorKind | None:
        return None if self.error is None else classify_error(self.error)


@dataclass
class ResourcePack:
    name: str
    blob: ResourceBlob
    header: str
    outcomes: List[ImageOutcome]

    @property
    def checksum(self) -> int:
        return self.blob.checksum

    @property
    def records(self) -> List[ImageRecord]:
        return self.blob.records

    @property
    def blob_filename(self) -> str:
        return f"prezr.{self.name}.blob"

    @property
    def failures(self) -> List[ImageOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


class ResourcePackBuilder:
    """Collect images for one pack and serialize them together.

    Every image is encoded as soon as it is added. A failing image is recorded
    on its :class:`ImageOutcome`, reported through ``warnings`` and left out of
    the blob; the remaining images are unaffected. A name that collides with
    an earlier image after :func:`make_handle` counts as a failing image.
    """

    def __init__(self, name: str, options: PackOptions | None = None):
        self.name = make_handle(name).lower()
        self.options = options or PackOptions()
        self.outcomes: List[ImageOutcome] = []
        self._selector: DitherSelector | None = None
        if self.options.dither:
            self._selector = self.options.dither_options.build_selector()

    def _find_duplicate(self, handle: str) -> PackError | None:
        for outcome in self.outcomes:
            if outcome.name == handle:
                return PackError(f"Duplicate image name in pack {self.name!r}: {handle}")
        return None

    def _record_failure(self, handle: str, exc: PrezrError) -> ImageOutcome:
        outcome = ImageOutcome(handle, error=exc)
        self.outcomes.append(outcome)
        warnings.warn(f"{handle}: {exc}", RuntimeWarning, stacklevel=2)
        return outcome

    def add_image(self, name: str, grid: PixelGrid) -> ImageOutcome:
        handle = make_handle(name)
        duplicate = self._find_duplicate(handle)
        if duplicate is not None:
            return self._record_failure(handle, duplicate)

        kernel_name = None
        try:
            if self._selector is not None:
                selection = self._selector.select(grid)
                grid = selection.image
                kernel_name = selection.kernel_name
            encoded = encode_grid(handle, grid)
        except PrezrError as exc:
            return self._record_failure(handle, exc)

        outcome = ImageOutcome(handle, encoded=encoded, kernel_name=kernel_name)
        self.outcomes.append(outcome)
        return outcome

    def add_file(self, path: str | Path) -> ImageOutcome:
        path = Path(path)
        handle = make_handle(path.stem)
        duplicate = self._find_duplicate(handle)
        if duplicate is not None:
            return self._record_failure(handle, duplicate)
        try:
            grid = load_grid(path)
        except ImageLoadError as exc:
            return self._record_failure(handle, exc)
        return self.add_image(path.stem, grid)

    def add_files(self, paths: Iterable[str | Path]) -> List[ImageOutcome]:
        return [self.add_file(path) for path in paths]

    @property
    def encoded_images(self) -> List[EncodedImage]:
        return [outcome.encoded for outcome in self.outcomes if outcome.encoded is not None]

    def build(self) -> ResourcePack:
        images = self.encoded_images
        if not images:
            raise PackError(f"Pack {self.name!r} has no encodable images")

        writer = BlobWriter(version=self.options.version)
        blob = writer.write(images, checksum=self.options.checksum)
        header = render_pack_header(self.name, blob.records, blob.checksum)
        return ResourcePack(
            name=self.name,
            blob=blob,
            header=header,
            outcomes=list(self.outcomes),
        )


def build_pack(
    name: str,
    inputs: Sequence[str | Path],
    options: PackOptions | None = None,
) -> ResourcePack:
    builder = ResourcePackBuilder(name, options)
    builder.add_files(iter_pngs(inputs))
    return builder.build()
