#!/usr/bin/env python3
"""Batch extract palettes from a directory of images."""

import argparse
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from extract_palette import DEFAULT_STEP, get_weighted_palette
from swatches import load_image, render_ansi, visualize_palette


def find_images(directory: Path) -> list[Path]:
    """Find all image files in directory."""
    extensions = {'.jpg', '.jpeg', '.png', '.webp'}
    images = set()
    for ext in extensions:
        images.update(directory.glob(f'*{ext}'))
        images.update(directory.glob(f'*{ext.upper()}'))
    return sorted(images)


@dataclass
class BatchResult:
    """Outcome for one image in a batch."""
    name: str
    palette: list = field(default_factory=list)  # (r, g, b) tuples
    elapsed: float = 0.0
    error: Optional[str] = None


def extract_file(image_path: Path, colors: int, step: int) -> list:
    """Load one image and return its ranked clusters."""
    pixels, width, _ = load_image(str(image_path))
    return get_weighted_palette(pixels, step, colors, width)


def process_image(image_path: Path, colors: int, step: int,
                  output_dir: Optional[Path] = None) -> BatchResult:
    """Extract one palette and optionally write its swatch PNG."""
    start = time.perf_counter()
    clusters = extract_file(image_path, colors, step)
    palette = [c.rgb for c in clusters]

    if output_dir is not None:
        output_file = output_dir / f"{image_path.stem}-palette.png"
        if output_file.exists():
            print(f"  Warning: Overwriting {output_file.name}", file=sys.stderr)
        visualize_palette(palette, str(output_file), weights=[c.weight for c in clusters])

    return BatchResult(image_path.name, palette, time.perf_counter() - start)


def summarize(results: list, elapsed: float) -> list[str]:
    """Summary lines for a finished batch."""
    done = [r for r in results if r.error is None]
    lines = [f"Completed: {len(done)}/{len(results)} succeeded in {elapsed:.2f}s"]
    if done:
        slowest = max(done, key=lambda r: r.elapsed)
        lines.append(
            f"Average: {elapsed / len(done):.2f}s per image "
            f"(slowest {slowest.name}, {slowest.elapsed:.2f}s)"
        )
    lines.extend(f"  failed {r.name}: {r.error}" for r in results if r.error)
    return lines


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Batch extract palettes from a directory of images.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Directory containing images'
    )
    parser.add_argument(
        '--output', '-o',
        default=None,
        help='Directory for PNG swatch files'
    )
    parser.add_argument(
        '--colors', '-n',
        type=int,
        default=5,
        help='Number of palette colors per image (default 5)'
    )
    parser.add_argument(
        '--step', '-s',
        type=int,
        default=DEFAULT_STEP,
        help=f'Sample every Nth pixel (default {DEFAULT_STEP})'
    )

    args = parser.parse_args(argv)

    input_dir = Path(args.input)
    output_dir = Path(args.output) if args.output else None

    if not input_dir.is_dir():
        print(f"Error: Input directory not found: {input_dir}", file=sys.stderr)
        sys.exit(2)

    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)

    images = find_images(input_dir)
    if not images:
        print(f"No images found in {input_dir}", file=sys.stderr)
        sys.exit(2)

    results = []
    batch_start = time.perf_counter()

    for i, image_path in enumerate(images, 1):
        tag = f"[{i}/{len(images)}] {image_path.name}"
        try:
            results.append(process_image(image_path, args.colors, args.step, output_dir))
        except (OSError, ValueError) as e:
            print(f"{tag} → ERROR: {type(e).__name__}: {e}", file=sys.stderr)
            results.append(BatchResult(image_path.name, error=f"{type(e).__name__}: {e}"))
            continue
        result = results[-1]
        print(f"{tag} → {render_ansi(result.palette)} ({result.elapsed:.2f}s)")

    print()
    for line in summarize(results, time.perf_counter() - batch_start):
        print(line)

    if any(r.error for r in results):
        sys.exit(1)


if __name__ == '__main__':
    main()
