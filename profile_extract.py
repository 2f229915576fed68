#!/usr/bin/env python3
"""Profile the palette extractor stage by stage."""

import cProfile
import pstats
import io
import sys
import time
from pathlib import Path

from extract_palette import DEFAULT_STEP, sample_pixels, cluster_samples, rank_clusters
from swatches import load_image


def profile_image(image_path: str, step: int = DEFAULT_STEP, colors: int = 5,
                  verbose: bool = True) -> dict:
    """Time load, sample, cluster and rank stages for one image."""

    if verbose:
        print(f"\n{'='*60}")
        print(f"Profiling: {Path(image_path).name}")
        print(f"{'='*60}")

    timings = {}

    start = time.perf_counter()
    pixels, width, height = load_image(image_path)
    timings['load'] = time.perf_counter() - start

    # Materialize the generator so sampling is timed on its own
    start = time.perf_counter()
    samples = list(sample_pixels(pixels, step, width))
    timings['sample'] = time.perf_counter() - start

    start = time.perf_counter()
    clusters = cluster_samples(samples)
    timings['cluster'] = time.perf_counter() - start

    start = time.perf_counter()
    rank_clusters(clusters, colors)
    timings['rank'] = time.perf_counter() - start

    total = sum(timings.values())
    timings['total'] = total

    if verbose:
        print(f"  Pixels: {width * height:,}")
        print(f"  Samples: {len(samples):,}")
        print(f"  Clusters: {len(clusters):,}")
        print(f"\nStage timings:")
        for stage, t in timings.items():
            pct = (t / total * 100) if stage != 'total' and total > 0 else 100
            print(f"  {stage:20s}: {t:6.3f}s ({pct:5.1f}%)")

    return timings


def detailed_profile(image_path: str, step: int = DEFAULT_STEP) -> str:
    """Run cProfile over the clustering pass."""
    pixels, width, _ = load_image(image_path)
    samples = list(sample_pixels(pixels, step, width))

    profiler = cProfile.Profile()
    profiler.enable()
    cluster_samples(samples)
    profiler.disable()

    stream = io.StringIO()
    stats = pstats.Stats(profiler, stream=stream)
    stats.sort_stats('cumulative')
    stats.print_stats(20)
    return stream.getvalue()


def main(argv=None):
    images = argv if argv is not None else sys.argv[1:]
    if not images:
        print("Usage: profile_extract.py IMAGE [IMAGE ...]", file=sys.stderr)
        sys.exit(1)

    for image in images:
        try:
            profile_image(image)
        except (FileNotFoundError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    print(f"\n{'='*60}")
    print("Detailed profile of cluster_samples()")
    print(f"{'='*60}")
    print(detailed_profile(images[0]))


if __name__ == '__main__':
    main()
