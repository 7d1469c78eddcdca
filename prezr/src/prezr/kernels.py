"""Error diffusion kernels.

A kernel is data: a divisor and integer weight rows. Row 0 lists the taps to
the right of the current pixel only, so its length is the kernel half-width
``hw``. Every following row spans ``-hw..+hw`` and must hold ``2 * hw + 1``
weights. A kernel without rows diffuses nothing.

Reference (row 0 shown right-aligned under the current pixel ``*``)::

    FloydSteinberg / 16        Atkinson / 8
          *  7                       *  1  1
       3  5  1                 0  1  1  1  0
                               0  0  1  0  0
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

from .errors import KernelConfigError

WeightRows = Tuple[Tuple[int, ...], ...]


def validate_kernel_rows(rows: Sequence[Sequence[int]]) -> List[str]:
    """Return the problems found in ``rows`` (empty when the rows are valid)."""

    problems: List[str] = []
    if not rows:
        return problems
    half_width = len(rows[0])
    expected = 2 * half_width + 1
    for index, row in enumerate(rows[1:], start=1):
        if len(row) != expected:
            problems.append(
                f"row {index} has {len(row)} weights, expected {expected} "
                f"(half-width {half_width})"
            )
    return problems


@dataclass(frozen=True)
class DiffusionKernel:
    name: str
    divisor: int
    rows: WeightRows = ()

    def __post_init__(self) -> None:
        rows = tuple(tuple(int(w) for w in row) for row in self.rows)
        object.__setattr__(self, "rows", rows)
        if self.divisor <= 0:
            raise KernelConfigError(
                f"Kernel {self.name!r}: divisor must be positive, got {self.divisor}"
            )
        problems = validate_kernel_rows(rows)
        if problems:
            raise KernelConfigError(
                f"Kernel {self.name!r} cannot be variable width: " + "; ".join(problems)
            )

    @property
    def half_width(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    @property
    def height(self) -> int:
        return len(self.rows)

    @property
    def is_identity(self) -> bool:
        return all(weight == 0 for row in self.rows for weight in row)

    def taps(self) -> Iterator[Tuple[int, int, int]]:
        """Yield ``(dx, dy, weight)`` for every non-zero weight.

        Row 0 contributes ``dx = 1..hw``; later rows contribute ``dx = -hw..hw``.
        """

        if not self.rows:
            return
        hw = self.half_width
        for i, weight in enumerate(self.rows[0], start=1):
            if weight:
                yield i, 0, weight
        for j, row in enumerate(self.rows[1:], start=1):
            for i, weight in enumerate(row, start=-hw):
                if weight:
                    yield i, j, weight


class KernelCatalog:
    """Ordered, immutable collection of uniquely named kernels."""

    def __init__(self, kernels: Iterable[DiffusionKernel]):
        ordered: Dict[str, DiffusionKernel] = {}
        for kernel in kernels:
            if kernel.name in ordered:
                raise KernelConfigError(f"Duplicate kernel name: {kernel.name}")
            ordered[kernel.name] = kernel
        if not ordered:
            raise KernelConfigError("Kernel catalog must contain at least one kernel")
        self._kernels = ordered

    @classmethod
    def from_definitions(
        cls, definitions: Iterable[Tuple[str, int, Sequence[Sequence[int]]]]
    ) -> "KernelCatalog":
        """Build a catalog from ``(name, divisor, rows)`` triples."""

        return cls(
            DiffusionKernel(name, divisor, tuple(tuple(row) for row in rows))
            for name, divisor, rows in definitions
        )

    def __iter__(self) -> Iterator[DiffusionKernel]:
        return iter(self._kernels.values())

    def __len__(self) -> int:
        return len(self._kernels)

    def __contains__(self, name: object) -> bool:
        return name in self._kernels

    def __getitem__(self, name: str) -> DiffusionKernel:
        return self._kernels[name]

    @property
    def names(self) -> List[str]:
        return list(self._kernels)

    def subset(self, names: Iterable[str]) -> "KernelCatalog":
        """Return a catalog with only ``names``, in the order given."""

        selected = []
        for name in names:
            if name not in self._kernels:
                raise KernelConfigError(
                    f"Unknown kernel: {name} (available: {', '.join(self._kernels)})"
                )
            selected.append(self._kernels[name])
        return KernelCatalog(selected)


NO_DITHER = DiffusionKernel("NoDither", 1, ())

KERNEL_DEFINITIONS: Tuple[Tuple[str, int, WeightRows], ...] = (
    ("FalseFloydSteinberg", 8, ((3,), (0, 3, 2))),
    ("FloydSteinberg", 16, ((7,), (3, 5, 1))),
    ("Fan", 16, ((7, 0), (1, 3, 5, 0, 0))),
    ("JarvisJudiceNinke", 48, ((7, 5), (3, 5, 7, 5, 3), (1, 3, 5, 3, 1))),
    ("Atkinson", 8, ((1, 1), (0, 1, 1, 1, 0), (0, 0, 1, 0, 0))),
    ("TwoRowSierra", 32, ((5, 3), (2, 4, 5, 4, 2), (0, 2, 3, 2, 0))),
    ("Sierra", 16, ((4, 3), (1, 2, 3, 2, 1))),
    ("SierraLite", 16, ((2,), (1, 1, 0))),
)

BUILTIN_KERNELS: Tuple[DiffusionKernel, ...] = tuple(
    DiffusionKernel(name, divisor, rows) for name, divisor, rows in KERNEL_DEFINITIONS
)


def default_catalog(include_identity: bool = False) -> KernelCatalog:
    """Return the built-in kernels, optionally preceded by ``NoDither``."""

    kernels: List[DiffusionKernel] = [NO_DITHER] if include_identity else []
    kernels.extend(BUILTIN_KERNELS)
    return KernelCatalog(kernels)
