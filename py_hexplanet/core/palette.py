"""Colour helpers and the blended height gradient."""

from typing import Sequence, Tuple

import numpy as np

RGB = Tuple[float, float, float]

DEEP_OCEAN: RGB = (0.0, 0.0, 0.5)
SHALLOW_OCEAN: RGB = (0.1, 0.4, 0.7)
BEACH: RGB = (0.94, 0.87, 0.62)
GRASS: RGB = (0.2, 0.8, 0.2)
FOREST: RGB = (0.0, 0.5, 0.0)
MOUNTAIN: RGB = (0.5, 0.5, 0.5)
SNOW: RGB = (0.9, 0.9, 0.9)


def hex_to_rgb(color: str) -> RGB:
    """'#rrggbb' (or 'rrggbb') to floats in [0, 1]."""
    value = color.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Expected a #rrggbb colour, got {color!r}")
    return tuple(int(value[i:i + 2], 16) / 255.0 for i in (0, 2, 4))


def rgb_to_hex(rgb: Sequence[float]) -> str:
    channels = [int(round(float(np.clip(c, 0.0, 1.0)) * 255)) for c in rgb]
    return "#{:02x}{:02x}{:02x}".format(*channels)


def lerp_color(a: Sequence[float], b: Sequence[float], t: float) -> RGB:
    t = float(np.clip(t, 0.0, 1.0))
    return tuple(float(x + (y - x) * t) for x, y in zip(a, b))


def height_gradient_color(height: float) -> RGB:
    """
    Blend adjacent terrain colours across normalised height.

    Ocean deepens below 0.2, a flat beach band sits at [0.3, 0.35), and land
    fades grass -> forest -> mountain -> snow.
    """
    n = float(height)
    if n < 0.2:
        return lerp_color(DEEP_OCEAN, SHALLOW_OCEAN, n / 0.2)
    if n < 0.3:
        return SHALLOW_OCEAN
    if n < 0.35:
        return BEACH
    if n < 0.55:
        return lerp_color(GRASS, FOREST, (n - 0.35) / 0.2)
    if n < 0.7:
        return lerp_color(FOREST, MOUNTAIN, (n - 0.55) / 0.15)
    if n < 0.99:
        return lerp_color(MOUNTAIN, SNOW, (n - 0.7) / 0.29)
    return SNOW
