#!/usr/bin/env python3
"""
Color conversions and distances used by the palette extractor.

All perceptual comparisons happen in CIE L*u*v* (D65). Inputs are 8-bit sRGB
and always pass through linear-light RGB before the XYZ step.
"""

import math

import numpy as np


# D65 reference white
XN, YN, ZN = 0.95047, 1.0, 1.08883

EPSILON = 0.008856
KAPPA = 903.3

# u', v' chromaticity of the reference white
_WHITE_DENOM = XN + 15 * YN + 3 * ZN
UN = 4 * XN / _WHITE_DENOM
VN = 9 * YN / _WHITE_DENOM


def rgb_to_linear(rgb: np.ndarray) -> np.ndarray:
    """Convert sRGB (0-255) to linear-light RGB (0-1)."""
    rgb_norm = np.asarray(rgb, dtype=np.float64) / 255.0
    mask = rgb_norm > 0.04045
    return np.where(mask, ((rgb_norm + 0.055) / 1.055) ** 2.4, rgb_norm / 12.92)


def linear_to_luv(rgb_linear: np.ndarray) -> np.ndarray:
    """
    Convert linear-light RGB to LUV.

    Args:
        rgb_linear: Array of shape (n, 3) or (3,) with components in 0-1

    Returns:
        Array of the same shape with columns [L, u, v]
    """
    rgb_linear = np.asarray(rgb_linear, dtype=np.float64)
    single = rgb_linear.ndim == 1
    if single:
        rgb_linear = rgb_linear.reshape(1, -1)

    # Linear RGB to XYZ
    r, g, b = rgb_linear[:, 0], rgb_linear[:, 1], rgb_linear[:, 2]
    x = r * 0.4124564 + g * 0.3575761 + b * 0.1804375
    y = r * 0.2126729 + g * 0.7151522 + b * 0.0721750
    z = r * 0.0193339 + g * 0.1191920 + b * 0.9503041

    yr = y / YN
    L = np.where(yr > EPSILON, 116 * np.cbrt(yr) - 16, KAPPA * yr)

    # Black has no chromaticity; leave u, v at zero there
    denom = x + 15 * y + 3 * z
    safe = np.where(denom > 0, denom, 1.0)
    u_prime = np.where(denom > 0, 4 * x / safe, UN)
    v_prime = np.where(denom > 0, 9 * y / safe, VN)

    u = 13 * L * (u_prime - UN)
    v = 13 * L * (v_prime - VN)

    luv = np.column_stack([L, u, v])
    return luv[0] if single else luv


def rgb_to_luv(rgb: np.ndarray) -> np.ndarray:
    """Convert RGB array (0-255) to LUV color space."""
    return linear_to_luv(rgb_to_linear(rgb))


def hybrid_distance(luv1, luv2) -> float:
    """
    HyAb distance between two LUV colors.

    Lightness difference is taken as an absolute value and added to the
    euclidean distance in the (u, v) chromaticity plane.
    """
    return float(abs(luv1[0] - luv2[0]) + math.hypot(luv1[1] - luv2[1], luv1[2] - luv2[2]))


def geometric_distance(pos1: tuple, pos2: tuple) -> int:
    """Squared euclidean distance between two (x, y) pixel positions."""
    dx = pos1[0] - pos2[0]
    dy = pos1[1] - pos2[1]
    return dx * dx + dy * dy
