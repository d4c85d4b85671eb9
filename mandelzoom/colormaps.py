"""
Palette definitions for Mandelbrot visualization.

Each palette factory takes max_iter and returns a numpy array of shape
(max_iter + 2, 3) with RGB values (uint8), indexed directly by iteration
count. Row max_iter + 1 is the "in set" sentinel and is always black; row 0
is never produced by the classifier and mirrors row 1.

To add a new palette:
1. Define a create_palette_xxx(max_iter) function that returns the array
2. Add it to the COLORMAPS dictionary at the bottom of this file
"""

import numpy as np

from .compute import in_set_sentinel


BLACK = (0, 0, 0)
WHITE = (255, 255, 255)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
RED = (255, 0, 0)

# (upper bound as a fraction of max_iter, color), checked in order
THRESHOLD_BUCKETS = (
    (0.3, WHITE),
    (0.5, GREEN),
    (0.7, BLUE),
)
THRESHOLD_TAIL = RED


def _new_palette(max_iter):
    if max_iter < 1:
        raise ValueError(f"max_iter must be at least 1, got {max_iter}")
    return np.zeros((in_set_sentinel(max_iter) + 1, 3), dtype=np.uint8)


def _ramp(max_iter):
    """Normalized position t in [0, 1] for every escaped count (rows 0..max_iter)."""
    counts = np.arange(max_iter + 1, dtype=np.float64)
    counts[0] = 1.0
    return counts / max_iter


def create_palette_threshold(max_iter):
    """
    Threshold palette: white -> green -> blue -> red by escape bucket.

    Buckets are fractions of max_iter, so at max_iter = 1000 the
    boundaries fall at 300, 500 and 700 iterations.
    """
    colors = _new_palette(max_iter)
    for count in range(max_iter + 1):
        color = THRESHOLD_TAIL
        for fraction, bucket_color in THRESHOLD_BUCKETS:
            if count < fraction * max_iter:
                color = bucket_color
                break
        colors[count] = color
    colors[0] = colors[1]
    return colors


def create_palette_gradient(max_iter):
    """
    Gradient palette: pale cyan fading to deep violet.

    Red stays fixed while green and blue fall at slightly different rates,
    which keeps neighbouring bands distinguishable deep into the ramp.
    """
    colors = _new_palette(max_iter)
    t = _ramp(max_iter)
    colors[:max_iter + 1, 0] = 130
    colors[:max_iter + 1, 1] = np.clip(255 - 180 * t, 0, 255).astype(np.uint8)
    colors[:max_iter + 1, 2] = np.clip(255 - 190 * t, 0, 255).astype(np.uint8)
    return colors


def create_palette_hot(max_iter):
    """
    Hot palette: black -> red -> orange -> yellow -> white.

    Uses a power curve to spend more time in the bright colors.
    """
    colors = _new_palette(max_iter)
    t = _ramp(max_iter) ** 0.8
    colors[:max_iter + 1, 0] = (255 * np.clip(t * 2.5, 0, 1)).astype(np.uint8)
    colors[:max_iter + 1, 1] = (255 * np.clip((t - 0.4) * 2.5, 0, 1)).astype(np.uint8)
    colors[:max_iter + 1, 2] = (255 * np.clip((t - 0.7) * 3.3, 0, 1)).astype(np.uint8)
    return colors


def create_palette_ocean(max_iter):
    """Ocean palette: deep blue -> cyan -> white."""
    colors = _new_palette(max_iter)
    t = _ramp(max_iter)
    colors[:max_iter + 1, 0] = (255 * np.clip((t - 0.5) * 2, 0, 1)).astype(np.uint8)
    colors[:max_iter + 1, 1] = (255 * t).astype(np.uint8)
    colors[:max_iter + 1, 2] = (50 + 205 * t).astype(np.uint8)
    return colors


def create_palette_grayscale(max_iter):
    """Grayscale palette: dark gray -> white. Good for seeing raw structure."""
    colors = _new_palette(max_iter)
    v = (40 + 215 * _ramp(max_iter)).astype(np.uint8)
    colors[:max_iter + 1] = v[:, None]
    return colors


# Registry of all available palettes.
# Keys are display names, values are factory functions of max_iter.
COLORMAPS = {
    'Threshold': create_palette_threshold,
    'Gradient': create_palette_gradient,
    'Hot': create_palette_hot,
    'Ocean': create_palette_ocean,
    'Grayscale': create_palette_grayscale,
}

DEFAULT_COLORMAP = 'Threshold'


def get_colormap(name, max_iter):
    """
    Build a palette by name.

    Args:
        name: Key from COLORMAPS dictionary
        max_iter: Maximum iteration count the palette must cover

    Returns:
        Palette array (max_iter + 2, 3) of uint8 RGB values

    Raises:
        KeyError if name not found
    """
    return COLORMAPS[name](max_iter)


def list_colormap_names():
    """Get list of available palette names."""
    return list(COLORMAPS.keys())


def next_colormap_name(name):
    """Name following `name` in the registry, wrapping around."""
    names = list_colormap_names()
    return names[(names.index(name) + 1) % len(names)]


class ColorMapper:
    """
    Maps iteration counts to RGB colors through a precomputed palette.

    The palette is built once when the mapper is created; lookups never
    recompute colors.

    Attributes:
        name: Palette name (key of COLORMAPS)
        max_iter: Maximum iteration count covered by the palette
        palette: uint8 array (max_iter + 2, 3)
    """

    def __init__(self, name=DEFAULT_COLORMAP, max_iter=1000):
        self.name = name
        self.max_iter = max_iter
        self.palette = get_colormap(name, max_iter)

    def color_for(self, count):
        """
        Color for an iteration count.

        Total over all integers: counts below 1 use the color of 1, counts
        above the in-set sentinel use the sentinel color (black).

        Returns:
            (r, g, b) tuple of ints
        """
        idx = min(max(int(count), 1), in_set_sentinel(self.max_iter))
        r, g, b = self.palette[idx]
        return int(r), int(g), int(b)

    def __repr__(self):
        return f"ColorMapper({self.name!r}, max_iter={self.max_iter})"
