#!/usr/bin/env python3
"""
Single-pass perceptual palette extraction.

Sampled pixels are scanned once, in buffer order. Each one either merges into
the first cluster whose LUV distance is below the merge threshold or starts a
new cluster. Clusters accumulate a weight that rewards both color similarity
and spatial proximity of repeated hits; the heaviest clusters form the palette.
"""

import math
import numbers
from dataclasses import dataclass

import numpy as np

from color_space import rgb_to_luv, hybrid_distance, geometric_distance


# =============================================================================
# Constants
# =============================================================================

MERGE_THRESHOLD = 30.0  # LUV hybrid distance below which a sample joins a cluster
COHERENCE_THRESHOLD = 60.0  # Skip samples this close to the previous accepted one
DEFAULT_STEP = 10  # Sample every Nth pixel

# Weight heuristic
COLOR_WEIGHT_SCALE = 100
PROXIMITY_WEIGHT_SCALE = 100
MAX_PROXIMITY = 1.0  # Proximity bonus used when both samples share a position


class InvalidInputError(ValueError):
    """Raised when the pixel buffer or sampling parameters are malformed."""


@dataclass(frozen=True)
class ClusterParams:
    """Tunables for the clustering pass."""
    merge_threshold: float = MERGE_THRESHOLD
    coherence_threshold: float = COHERENCE_THRESHOLD
    color_scale: int = COLOR_WEIGHT_SCALE
    proximity_scale: int = PROXIMITY_WEIGHT_SCALE
    max_proximity: float = MAX_PROXIMITY


DEFAULT_PARAMS = ClusterParams()


# =============================================================================
# Data Model
# =============================================================================

@dataclass
class Sample:
    """A single accepted pixel observation."""
    luv: tuple  # (L, u, v)
    rgba: tuple  # (r, g, b, a) bytes
    position: tuple  # (x, y)
    index: int  # Linear pixel index


@dataclass
class Cluster:
    """An online-maintained group of perceptually similar samples."""
    representative_color: tuple  # LUV
    representative_rgb: tuple  # (r, g, b, 255)
    last_position: tuple  # (x, y) of the latest merged sample
    weight: int = 1
    merges: int = 0

    @classmethod
    def from_sample(cls, sample: Sample) -> 'Cluster':
        r, g, b, _ = sample.rgba
        return cls(
            representative_color=tuple(sample.luv),
            representative_rgb=(r, g, b, 255),
            last_position=sample.position,
        )

    @property
    def rgb(self) -> tuple:
        return tuple(self.representative_rgb[:3])

    def absorb(self, sample: Sample, distance: float, geo_distance: int,
               params: ClusterParams = DEFAULT_PARAMS) -> None:
        """Merge a sample into this cluster and bump its weight."""
        self.representative_color = tuple(
            (c + s) / 2.0 for c, s in zip(self.representative_color, sample.luv)
        )
        self.representative_rgb = average_rgb(self.representative_rgb, sample.rgba)
        self.weight += merge_weight(distance, geo_distance, params)
        self.last_position = sample.position
        self.merges += 1


# =============================================================================
# Scoring
# =============================================================================

def average_rgb(color1: tuple, color2: tuple) -> tuple:
    """Average two RGB(A) colors channel-wise, rounding half up. Alpha is opaque."""
    r, g, b = (int(math.floor((c1 + c2) / 2.0 + 0.5)) for c1, c2 in zip(color1[:3], color2[:3]))
    return (r, g, b, 255)


def proximity(geo_distance: int, max_proximity: float = MAX_PROXIMITY) -> float:
    """Reciprocal of a squared pixel distance, saturating at max_proximity."""
    if geo_distance <= 0:
        return max_proximity
    return min(max_proximity, 1.0 / geo_distance)


def merge_weight(distance: float, geo_distance: int,
                 params: ClusterParams = DEFAULT_PARAMS) -> int:
    """
    Weight gained by a cluster when a sample merges into it.

    Both terms are truncated separately: the color term grows with the
    (sub-threshold) perceptual distance, the spatial term with proximity to
    the cluster's previous hit.
    """
    color_term = int(math.floor(params.color_scale * distance))
    spatial_term = int(math.floor(params.proximity_scale * proximity(geo_distance, params.max_proximity)))
    return color_term + spatial_term


# =============================================================================
# Input Validation
# =============================================================================

def as_rgba_buffer(pixels) -> np.ndarray:
    """Flatten bytes-like or uint8 array input into a 1-D uint8 array."""
    if isinstance(pixels, np.ndarray):
        if pixels.dtype != np.uint8:
            raise InvalidInputError(f"Pixel array must be uint8, got {pixels.dtype}")
        return pixels.reshape(-1)
    try:
        return np.frombuffer(pixels, dtype=np.uint8)
    except TypeError as e:
        raise InvalidInputError(f"Pixel buffer must be bytes-like: {e}")


def validate_input(buffer: np.ndarray, step_by: int, width: int, target_len: int = 0) -> None:
    """
    Check the extraction contract before any sampling happens.

    Raises:
        InvalidInputError: On a non-integer or non-positive width or stride,
            a non-integer or negative target length, or a buffer that is not
            whole RGBA pixels
    """
    for name, value in (('width', width), ('step_by', step_by), ('target_len', target_len)):
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise InvalidInputError(f"{name} must be an integer, got {value!r}")
    if width <= 0:
        raise InvalidInputError(f"Image width must be positive, got {width}")
    if step_by <= 0:
        raise InvalidInputError(f"Sample stride must be positive, got {step_by}")
    if target_len < 0:
        raise InvalidInputError(f"Target palette size must be non-negative, got {target_len}")
    if len(buffer) % 4 != 0:
        raise InvalidInputError(
            f"Buffer length {len(buffer)} is not a multiple of 4 (RGBA8)"
        )


# =============================================================================
# Pixel Sampler
# =============================================================================

def sample_pixels(pixels, step_by: int, width: int,
                  params: ClusterParams = DEFAULT_PARAMS):
    """
    Walk the buffer at a fixed stride and yield accepted samples.

    Fully opaque black pixels and fully transparent pixels are dropped;
    black with partial alpha is kept. A pixel whose hybrid distance to the
    previous accepted sample is below the coherence threshold is dropped too.
    The reference starts at black in LUV; every accepted sample then becomes
    the new reference regardless of where it ends up clustered.

    Validation is eager; the returned generator does the walking.
    """
    buffer = as_rgba_buffer(pixels)
    validate_input(buffer, step_by, width)
    return _iter_samples(buffer, step_by, width, params.coherence_threshold)


def _iter_samples(buffer: np.ndarray, step_by: int, width: int, coherence_threshold: float):
    rgba = buffer.reshape(-1, 4)
    indices = np.arange(0, len(rgba), step_by)
    strided = rgba[indices]

    black = (strided[:, 0] == 0) & (strided[:, 1] == 0) & (strided[:, 2] == 0)
    opaque_black = black & (strided[:, 3] == 255)
    transparent = strided[:, 3] == 0
    keep = ~(opaque_black | transparent)
    if not keep.any():
        return

    kept_indices = indices[keep].tolist()
    kept_rgba = strided[keep]
    kept_luv = rgb_to_luv(kept_rgba[:, :3]).tolist()

    # Reference starts at black, so a dark first pixel can be coherence-skipped
    prev_luv = (0.0, 0.0, 0.0)
    for index, luv, pixel in zip(kept_indices, kept_luv, kept_rgba.tolist()):
        if hybrid_distance(luv, prev_luv) < coherence_threshold:
            continue
        prev_luv = luv
        yield Sample(
            luv=tuple(luv),
            rgba=tuple(pixel),
            position=(index % width, index // width),
            index=index,
        )


# =============================================================================
# Clustering Engine
# =============================================================================

def find_first_match(clusters: list, sample: Sample, merge_threshold: float):
    """
    Return (cluster, distance) for the first cluster in insertion order whose
    distance to the sample is below merge_threshold, or (None, None).
    """
    for cluster in clusters:
        distance = hybrid_distance(sample.luv, cluster.representative_color)
        if distance < merge_threshold:
            return cluster, distance
    return None, None


def cluster_samples(samples, params: ClusterParams = DEFAULT_PARAMS) -> list:
    """
    Assign each sample to the first matching cluster or start a new one.

    The first match wins even when a later cluster is closer; scan order is
    insertion order. The pass is order-dependent and strictly sequential.

    Returns:
        List of Cluster in discovery order
    """
    clusters = []

    for sample in samples:
        cluster, distance = find_first_match(clusters, sample, params.merge_threshold)
        if cluster is None:
            clusters.append(Cluster.from_sample(sample))
            continue

        geo_distance = geometric_distance(sample.position, cluster.last_position)
        cluster.absorb(sample, distance, geo_distance, params)

    return clusters


def extract_clusters(pixels, step_by: int, width: int,
                     params: ClusterParams = DEFAULT_PARAMS) -> list:
    """Run sampler and clustering engine; clusters come back unranked."""
    return cluster_samples(sample_pixels(pixels, step_by, width, params), params)


# =============================================================================
# Ranker / Selector
# =============================================================================

def rank_clusters(clusters: list, target_len: int) -> list:
    """
    Sort clusters by weight descending and keep the first target_len.

    sorted() is stable with reverse=True, so equal weights keep discovery order.
    """
    if target_len <= 0:
        return []
    ranked = sorted(clusters, key=lambda c: c.weight, reverse=True)
    return ranked[:target_len]


def get_weighted_palette(pixels, step_by: int, target_len: int, width: int,
                         params: ClusterParams = DEFAULT_PARAMS) -> list:
    """
    Extract the palette, keeping the ranked Cluster objects.

    Raises:
        InvalidInputError: If the buffer or parameters are malformed
    """
    buffer = as_rgba_buffer(pixels)
    validate_input(buffer, step_by, width, target_len)
    if target_len == 0:
        return []
    return rank_clusters(extract_clusters(buffer, step_by, width, params), target_len)


def get_palette(pixels, step_by: int, target_len: int, width: int,
                params: ClusterParams = DEFAULT_PARAMS) -> list:
    """
    Extract up to target_len representative colors from an RGBA8 buffer.

    Args:
        pixels: Row-major RGBA8 bytes, or a uint8 numpy array of any shape
        step_by: Sample every step_by-th pixel
        target_len: Maximum number of colors to return
        width: Image width in pixels
        params: Clustering thresholds and weight scales

    Returns:
        List of (r, g, b) tuples ordered by descending cluster weight

    Raises:
        InvalidInputError: If the buffer or parameters are malformed
    """
    return [c.rgb for c in get_weighted_palette(pixels, step_by, target_len, width, params)]


# =============================================================================
# CLI
# =============================================================================

def main(argv=None):
    import argparse
    import sys
    import time

    from swatches import load_image, render_ansi, rgb_to_hex, visualize_palette

    parser = argparse.ArgumentParser(
        description='Extract a weighted color palette from an image.'
    )
    parser.add_argument('image', help='Path to the image file')
    parser.add_argument('colors', type=int, help='Number of palette colors')
    parser.add_argument(
        '--step', '-s',
        type=int,
        default=DEFAULT_STEP,
        help=f'Sample every Nth pixel (default {DEFAULT_STEP})'
    )
    parser.add_argument(
        '--output', '-o',
        default=None,
        help='Write a PNG swatch image to this path'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='List hex codes and weights'
    )

    args = parser.parse_args(argv)

    print(f"Filename: {args.image}\n")

    try:
        pixels, width, _ = load_image(args.image)
        start = time.perf_counter()
        clusters = get_weighted_palette(pixels, args.step, args.colors, width)
        elapsed = time.perf_counter() - start
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    colors = [c.rgb for c in clusters]
    print(f"{len(colors)} colors in {int(elapsed * 1_000_000)} microseconds")
    print(render_ansi(colors))

    if args.verbose:
        for cluster in clusters:
            print(f"  {rgb_to_hex(cluster.rgb)}  weight={cluster.weight:,}  merges={cluster.merges}")

    if args.output:
        try:
            visualize_palette(colors, args.output, weights=[c.weight for c in clusters])
        except OSError as e:
            print(f"Error writing output: {e}", file=sys.stderr)
            sys.exit(1)

    return colors


if __name__ == '__main__':
    main()
