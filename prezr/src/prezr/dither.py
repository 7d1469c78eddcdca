"""Error diffusion dithering down to 2 bits per channel.

``ErrorDiffuser`` processes one image with one kernel; ``DitherSelector`` runs
every kernel of a catalog and keeps the result with the lowest score.

Score policy: the default ``"luminance"`` metric weights the squared residual
of each colour channel with the Rec. 709 luma coefficients
(0.2126, 0.7152, 0.0722); ``"mean"`` takes the plain average of the three
squared residuals. Alpha residuals are diffused but not scored. The sum over
all dithered pixels is divided by ``width * height``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple

from .errors import KernelConfigError
from .kernels import DiffusionKernel, KernelCatalog, default_catalog
from .pixels import TRANSPARENT, Pixel, PixelGrid
from .quantize import quantize_pixel

DEFAULT_TRANSPARENT_KEY = Pixel(255, 0, 255, 255)

_LUMINANCE_WEIGHTS = (0.2126, 0.7152, 0.0722)


@dataclass
class SignedColor:
    """Signed per-channel accumulator."""

    a: int = 0
    r: int = 0
    g: int = 0
    b: int = 0

    def add(self, other: "SignedColor") -> None:
        self.a += other.a
        self.r += other.r
        self.g += other.g
        self.b += other.b

    @classmethod
    def difference(cls, source: Pixel, quantized: Pixel) -> "SignedColor":
        return cls(
            source.a - quantized.a,
            source.r - quantized.r,
            source.g - quantized.g,
            source.b - quantized.b,
        )

    def scaled(self, weight: int, divisor: int) -> "SignedColor":
        """Return ``self * weight / divisor`` per channel, truncated toward zero."""

        return SignedColor(
            _div_trunc(self.a * weight, divisor),
            _div_trunc(self.r * weight, divisor),
            _div_trunc(self.g * weight, divisor),
            _div_trunc(self.b * weight, divisor),
        )


def _div_trunc(value: int, divisor: int) -> int:
    quotient = abs(value) // divisor
    return quotient if value >= 0 else -quotient


def luminance_squared_error(delta: SignedColor) -> float:
    wr, wg, wb = _LUMINANCE_WEIGHTS
    return wr * delta.r * delta.r + wg * delta.g * delta.g + wb * delta.b * delta.b


def mean_squared_error(delta: SignedColor) -> float:
    return (delta.r * delta.r + delta.g * delta.g + delta.b * delta.b) / 3.0


ERROR_METRICS: Dict[str, Callable[[SignedColor], float]] = {
    "luminance": luminance_squared_error,
    "mean": mean_squared_error,
}


def resolve_metric(name: str) -> Callable[[SignedColor], float]:
    try:
        return ERROR_METRICS[name]
    except KeyError:
        raise KernelConfigError(
            f"Unknown error metric: {name} (choose from {', '.join(ERROR_METRICS)})"
        ) from None


class ErrorGrid:
    """Diffused error per pixel; reads and writes off the canvas are ignored."""

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self._cells: List[SignedColor | None] = [None] * (width * height)

    def _inside(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get(self, x: int, y: int) -> SignedColor:
        if not self._inside(x, y):
            return SignedColor()
        cell = self._cells[y * self.width + x]
        return SignedColor() if cell is None else cell

    def add(self, x: int, y: int, error: SignedColor) -> None:
        if not self._inside(x, y):
            return
        index = y * self.width + x
        cell = self._cells[index]
        if cell is None:
            self._cells[index] = SignedColor(error.a, error.r, error.g, error.b)
        else:
            cell.add(error)


class ErrorDiffuser:
    """Dither pixels of one image with one kernel, tracking the total error."""

    def __init__(
        self,
        width: int,
        height: int,
        kernel: DiffusionKernel,
        metric: Callable[[SignedColor], float] = luminance_squared_error,
    ):
        self.width = width
        self.height = height
        self.kernel = kernel
        self.metric = metric
        self.errors = ErrorGrid(width, height)
        self.total_error = 0.0
        self._taps: Tuple[Tuple[int, int, int], ...] = (
            () if kernel.is_identity else tuple(kernel.taps())
        )

    @property
    def mean_squared_error(self) -> float:
        return self.total_error / float(self.width * self.height)

    def dither(self, x: int, y: int, source: Pixel) -> Pixel:
        error = self.errors.get(x, y)
        quantized = quantize_pixel(source, error)
        delta = SignedColor.difference(source, quantized)

        divisor = self.kernel.divisor
        for dx, dy, weight in self._taps:
            self.errors.add(x + dx, y + dy, delta.scaled(weight, divisor))

        self.total_error += self.metric(delta)
        return quantized


def is_transparent(pixel: Pixel, transparent_key: Pixel | None) -> bool:
    return pixel.a == 0 or (transparent_key is not None and pixel == transparent_key)


@dataclass
class DitherTrialResult:
    kernel_name: str
    image: PixelGrid
    error: float


def dither_with_kernel(
    source: PixelGrid,
    kernel: DiffusionKernel,
    transparent_key: Pixel | None = DEFAULT_TRANSPARENT_KEY,
    metric: Callable[[SignedColor], float] = luminance_squared_error,
) -> DitherTrialResult:
    """Dither ``source`` in raster order with a single kernel."""

    diffuser = ErrorDiffuser(source.width, source.height, kernel, metric)
    output = PixelGrid(source.width, source.height)
    for y in range(source.height):
        for x in range(source.width):
            pixel = source.get(x, y)
            if is_transparent(pixel, transparent_key):
                output.set(x, y, TRANSPARENT)
            else:
                output.set(x, y, diffuser.dither(x, y, pixel))
    return DitherTrialResult(kernel.name, output, diffuser.mean_squared_error)


@dataclass
class DitherSelection:
    best: DitherTrialResult
    scores: List[Tuple[str, float]] = field(default_factory=list)
    trials: List[DitherTrialResult] = field(default_factory=list)

    @property
    def kernel_name(self) -> str:
        return self.best.kernel_name

    @property
    def image(self) -> PixelGrid:
        return self.best.image


class DitherSelector:
    """Pick the kernel with the lowest error for each image."""

    def __init__(
        self,
        catalog: KernelCatalog | None = None,
        transparent_key: Pixel | None = DEFAULT_TRANSPARENT_KEY,
        metric: str = "luminance",
        keep_trials: bool = False,
    ):
        self.catalog = catalog if catalog is not None else default_catalog()
        self.transparent_key = transparent_key
        self.metric_name = metric
        self.metric = resolve_metric(metric)
        self.keep_trials = keep_trials

    def select(self, source: PixelGrid) -> DitherSelection:
        best: DitherTrialResult | None = None
        scores: List[Tuple[str, float]] = []
        trials: List[DitherTrialResult] = []

        for kernel in self.catalog:
            trial = dither_with_kernel(source, kernel, self.transparent_key, self.metric)
            scores.append((trial.kernel_name, trial.error))
            if self.keep_trials:
                trials.append(trial)
            # Strict comparison keeps the earliest kernel on ties.
            if best is None or trial.error < best.error:
                best = trial

        if best is None:
            raise KernelConfigError("Kernel catalog must contain at least one kernel")
        return DitherSelection(best=best, scores=scores, trials=trials)
