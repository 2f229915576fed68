#!/usr/bin/env python3
"""
Image loading and palette rendering helpers for the extractor CLIs.
"""

from typing import Optional

import numpy as np
from PIL import Image


# Image size limits (security: prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side

SWATCH_CHAR = '██'


def load_image(image_path: str) -> tuple[np.ndarray, int, int]:
    """
    Decode an image into a flat RGBA8 buffer.

    Returns:
        Tuple of (pixels, width, height) where pixels is a 1-D uint8 array

    Raises:
        FileNotFoundError: If image file doesn't exist
        ValueError: If file is not a valid image or exceeds size limits
    """
    try:
        img = Image.open(image_path)
    except FileNotFoundError:
        raise FileNotFoundError(f"Image not found: {image_path}")
    except Exception as e:
        raise ValueError(f"Could not open image: {e}")

    width, height = img.size
    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        raise ValueError(
            f"Image dimensions {width}x{height} exceed maximum "
            f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
        )
    if width * height > MAX_IMAGE_PIXELS:
        raise ValueError(
            f"Image has {width * height:,} pixels, exceeding maximum {MAX_IMAGE_PIXELS:,}"
        )

    try:
        rgba = img.convert('RGBA')
    except OSError as e:
        raise ValueError(f"Could not decode image: {e}")

    pixels = np.asarray(rgba, dtype=np.uint8).reshape(-1)
    return pixels, width, height


def rgb_to_hex(color: tuple) -> str:
    """Convert an (r, g, b) tuple to a hex string."""
    r, g, b = color[:3]
    return f"#{r:02x}{g:02x}{b:02x}"


def render_ansi(colors: list) -> str:
    """Render colors as 24-bit ANSI swatches on a single line."""
    return ''.join(
        f"\x1b[38;2;{r};{g};{b}m{SWATCH_CHAR}\x1b[0m" for r, g, b in (c[:3] for c in colors)
    )


def visualize_palette(colors: list, output_path: str, weights: Optional[list] = None) -> None:
    """
    Create a swatch image for a palette.

    Args:
        colors: List of (r, g, b) tuples, in palette order
        output_path: Path to save the output image
        weights: Optional cluster weights; labels each swatch with its share
    """
    from PIL import ImageDraw

    swatch_size = 80
    padding = 10
    text_height = 25 if weights else 0
    cols = max(1, min(len(colors), 6))
    rows = max(1, (len(colors) + cols - 1) // cols)

    img_width = cols * (swatch_size + padding) + padding
    img_height = rows * (swatch_size + text_height + padding) + padding

    img = Image.new('RGB', (img_width, img_height), (240, 240, 240))
    draw = ImageDraw.Draw(img)

    total_weight = sum(weights) if weights else 0

    for i, rgb in enumerate(colors):
        row = i // cols
        col = i % cols

        x = padding + col * (swatch_size + padding)
        y = padding + row * (swatch_size + text_height + padding)

        draw.rectangle([x, y, x + swatch_size, y + swatch_size], fill=tuple(rgb[:3]))

        if weights and total_weight > 0:
            percentage = weights[i] / total_weight * 100
            text = f"{percentage:.1f}%"

            # Center text under swatch
            bbox = draw.textbbox((0, 0), text)
            text_width = bbox[2] - bbox[0]
            text_x = x + (swatch_size - text_width) // 2
            draw.text((text_x, y + swatch_size + 4), text, fill=(0, 0, 0))

    img.save(output_path)
