"""Command line interface for the PRezr tools."""

from __future__ import annotations

import argparse
import sys
import warnings
from pathlib import Path
from typing import Dict, List

from .builder import (
    DitherOptions,
    PackOptions,
    ResourcePackBuilder,
    dither_grid,
    iter_pngs,
    load_grid,
)
from .dither import ERROR_METRICS
from .errors import PackError, PrezrError
from .header import make_handle, render_packages_header
from .kernels import default_catalog
from .palette import decode_grid
from .pixels import Pixel

PACKAGES_HEADER_NAME = "prezr.packages.h"


def parse_argb(text: str) -> Pixel | None:
    """Parse ``A,R,G,B`` (decimal) or ``#AARRGGBB``; ``none`` disables the key."""

    text = text.strip()
    if text.lower() == "none":
        return None
    if text.startswith("#"):
        digits = text[1:]
        if len(digits) != 8:
            raise PrezrError("Hex color keys must be #AARRGGBB")
        parts = [digits[i : i + 2] for i in range(0, 8, 2)]
        base = 16
    else:
        parts = text.split(",")
        base = 10
    if len(parts) != 4:
        raise PrezrError("Color key must have exactly four components (A,R,G,B)")
    values = []
    for part in parts:
        try:
            values.append(int(part.strip(), base))
        except ValueError as exc:
            raise PrezrError(f"Invalid color component: {part}") from exc
    if any(not (0 <= v <= 255) for v in values):
        raise PrezrError("Color components must be between 0 and 255")
    return Pixel(*values)


def build_parser() -> argparse.ArgumentParser:
    kernel_names = ", ".join(default_catalog(include_identity=True).names)

    parser = argparse.ArgumentParser(
        prog="prezr",
        description=(
            "Dither PNG files to 2 bits per channel and pack them into binary\n"
            "resource blobs with a matching C header.\n"
            f"Kernels: {kernel_names}"
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    dither = sub.add_parser("dither", help="Pick the best diffusion kernel per image")
    dither.add_argument("inputs", nargs="+", help="PNG files or folders containing PNGs (non-recursive)")
    dither.add_argument("-o", "--output-dir", required=True, help="Destination directory for dithered PNGs")
    dither.add_argument(
        "--previews",
        action="store_true",
        help="Also write every kernel's result as '<name> Preview (<kernel>).png'",
    )
    dither.add_argument("-f", "--force", action="store_true", help="Overwrite existing files")
    _add_dither_arguments(dither)

    pack = sub.add_parser("pack", help="Build one resource blob per input folder")
    pack.add_argument("inputs", nargs="+", help="Folders of PNGs; each folder becomes one pack")
    pack.add_argument("-o", "--output-dir", required=True, help="Destination directory for blobs and header")
    pack.add_argument(
        "--dither",
        action="store_true",
        help="Dither each image with the best kernel before packing",
    )
    pack.add_argument(
        "--checksum",
        type=parse_checksum,
        help="Fixed non-zero 32-bit checksum (default: derived from the build time)",
    )
    pack.add_argument(
        "--previews",
        action="store_true",
        help="Also write each packed image as '<pack> Preview (<NAME>).png'",
    )
    pack.add_argument("-f", "--force", action="store_true", help="Overwrite existing files")
    _add_dither_arguments(pack)

    return parser


def _add_dither_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--metric",
        choices=sorted(ERROR_METRICS),
        default="luminance",
        help="Error score used to rank kernels",
    )
    parser.add_argument(
        "--include-identity",
        action="store_true",
        help="Also consider plain quantization without diffusion (NoDither)",
    )
    parser.add_argument(
        "--kernel",
        dest="kernels",
        action="append",
        help="Restrict the search to this kernel (repeatable)",
    )
    parser.add_argument(
        "--transparent-key",
        default="255,0,255,255",
        help="Pixels of this A,R,G,B color become transparent ('none' to disable)",
    )


def options_from_args(args: argparse.Namespace, keep_trials: bool = False) -> DitherOptions:
    options = DitherOptions()
    options.transparent_key = parse_argb(args.transparent_key)
    options.metric = args.metric
    options.include_identity = args.include_identity
    options.kernel_names = args.kernels
    options.keep_trials = keep_trials
    return options


def parse_checksum(text: str) -> int:
    try:
        value = int(text, 0)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid checksum: {text}") from exc
    if not 0 < value <= 0xFFFFFFFF:
        raise argparse.ArgumentTypeError(
            f"checksum must be between 1 and 0xFFFFFFFF (0 is reserved for 'no check'): {text}"
        )
    return value


def check_conflicts(targets: List[Path], force: bool) -> None:
    conflicts = [str(target) for target in targets if target.exists() and not force]
    if conflicts:
        raise PrezrError(
            "Output files already exist (use --force to overwrite):\n" + "\n".join(conflicts)
        )


def check_duplicate_names(inputs: List[Path]) -> None:
    seen: Dict[str, Path] = {}
    for src in inputs:
        key = src.name.lower()
        if key in seen:
            raise PrezrError(
                f"Inputs would write to the same output file: {seen[key]} and {src}"
            )
        seen[key] = src


def dither_preview_path(output_dir: Path, src: Path, kernel_name: str) -> Path:
    return output_dir / f"{src.stem} Preview ({kernel_name}){src.suffix}"


def pack_preview_path(output_dir: Path, pack_name: str, handle: str) -> Path:
    return output_dir / f"{pack_name} Preview ({handle}).png"


def run_dither(args: argparse.Namespace) -> int:
    options = options_from_args(args, keep_trials=args.previews)
    inputs = iter_pngs(args.inputs)
    if not inputs:
        raise PrezrError("No PNG files were found in the provided inputs.")
    check_duplicate_names(inputs)

    output_dir = Path(args.output_dir)
    kernel_names = options.build_catalog().names if args.previews else []
    targets: List[Path] = []
    for src in inputs:
        targets.append(output_dir / src.name)
        targets.extend(dither_preview_path(output_dir, src, name) for name in kernel_names)
    check_conflicts(targets, args.force)
    output_dir.mkdir(parents=True, exist_ok=True)

    failed = 0
    for src in inputs:
        print(f"{src.stem}:")
        try:
            selection = dither_grid(load_grid(src), options)
        except PrezrError as exc:
            print(f"{src.stem}: ERROR: {exc}")
            failed += 1
            continue

        for kernel_name, score in selection.scores:
            print(f" .. {score:.4f} {kernel_name}")
        for trial in selection.trials:
            trial.image.to_image().save(dither_preview_path(output_dir, src, trial.kernel_name))

        target = output_dir / src.name
        selection.image.to_image().save(target)
        print(f"wrote {target} ({selection.kernel_name})")

    return 1 if failed else 0


def run_pack(args: argparse.Namespace) -> int:
    options = PackOptions()
    options.checksum = args.checksum
    options.dither = args.dither
    options.dither_options = options_from_args(args)

    directories = [Path(raw) for raw in args.inputs]
    for directory in directories:
        if not directory.is_dir():
            raise PrezrError(f"Pack input must be a directory: {directory}")

    output_dir = Path(args.output_dir)
    builders = [ResourcePackBuilder(directory.name, options) for directory in directories]
    sources = [iter_pngs([directory]) for directory in directories]
    targets = [output_dir / f"prezr.{builder.name}.blob" for builder in builders]
    if args.previews:
        for builder, pngs in zip(builders, sources):
            targets.extend(
                pack_preview_path(output_dir, builder.name, make_handle(src.stem)) for src in pngs
            )
    check_conflicts(targets + [output_dir / PACKAGES_HEADER_NAME], args.force)
    output_dir.mkdir(parents=True, exist_ok=True)

    sections: List[str] = []
    failed = 0
    for builder, pngs in zip(builders, sources):
        print(f"Package '{builder.name}'...")
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            builder.add_files(pngs)
            for warning in caught:
                print(f"Warning: {warning.message}")

        for outcome in builder.outcomes:
            if not outcome.ok:
                failed += 1
                continue
            encoded = outcome.encoded
            colors = len(encoded.palette) if encoded.palette is not None else "17+"
            print(f" .. {outcome.name} has {colors} colors ({encoded.format.label})")
            if args.previews:
                preview = pack_preview_path(output_dir, builder.name, outcome.name)
                decode_grid(encoded).to_image().save(preview)

        try:
            pack = builder.build()
        except PackError as exc:
            print(f"{builder.name}: ERROR: {exc}")
            failed += 1
            continue
        target = output_dir / pack.blob_filename
        target.write_bytes(pack.blob.data)
        sections.append(pack.header)
        print(f"wrote {target} ({pack.blob.size} bytes, checksum 0x{pack.checksum:X})")

    header_path = output_dir / PACKAGES_HEADER_NAME
    header_path.write_text(render_packages_header(sections))
    print(f"wrote {header_path}")
    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "dither":
            return run_dither(args)
        return run_pack(args)
    except PrezrError as exc:
        print(exc, file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
