"""
Escape-time computation functions using Numba JIT compilation.

This module contains the performance-critical kernels:
- Classifying a single point of the complex plane (escape iteration count)
- Filling an iteration table for a rectangle of the plane, band by band
- Applying a precomputed palette to an iteration table

Iteration count convention:
    The loop runs n = 1..max_iter and returns n as soon as |z_n|^2 > 4.
    A point that has not escaped after max_iter iterations is reported as
    max_iter + 1 (the "in set" sentinel). Escaped points are therefore
    always in [1, max_iter] and every count is in [1, max_iter + 1].
"""

import numpy as np
from numba import jit, prange


ESCAPE_RADIUS_SQ = 4.0  # |z|^2 > 4 <=> |z| > 2


def in_set_sentinel(max_iter):
    """Iteration count reported for points that never escape."""
    return max_iter + 1


@jit(nopython=True, cache=True)
def escape_count(cr, ci, max_iter):
    """
    Count iterations of z <- z^2 + c until |z|^2 exceeds 4.

    Args:
        cr, ci: Real and imaginary parts of c
        max_iter: Maximum number of iterations

    Returns:
        Iteration index of escape in [1, max_iter], or max_iter + 1
    """
    zr = 0.0
    zi = 0.0
    for n in range(1, max_iter + 1):
        zr, zi = zr * zr - zi * zi + cr, 2.0 * zr * zi + ci
        if zr * zr + zi * zi > ESCAPE_RADIUS_SQ:
            return n
    return max_iter + 1


def classify(c, max_iter):
    """
    Classify a single complex point.

    Args:
        c: Point of the complex plane (anything complex() accepts)
        max_iter: Maximum iteration count, at least 1

    Returns:
        Escape iteration in [1, max_iter], or in_set_sentinel(max_iter)

    Raises:
        ValueError if max_iter < 1
    """
    if max_iter < 1:
        raise ValueError(f"max_iter must be at least 1, got {max_iter}")
    c = complex(c)
    return int(escape_count(c.real, c.imag, int(max_iter)))


@jit(nopython=True, cache=True)
def pixel_step(lo, hi, pixels):
    """Complex-plane distance between adjacent pixel centers."""
    # A single row or column samples lo only.
    return (hi - lo) / max(pixels - 1, 1)


@jit(nopython=True, parallel=True, cache=True)
def compute_iteration_rows(x_min, x_max, y_min, y_max, width, height, max_iter,
                           table, row_start, row_stop):
    """
    Fill rows [row_start, row_stop) of an iteration table in place.

    Pixel (u, v) maps to x = x_min + u * dx, y = y_min + v * dy, with the
    step computed over (width - 1) and (height - 1) intervals so both edges
    of the rectangle are sampled. Row 0 is y_min.

    Rows are independent and are split across threads with prange; each
    thread writes only its own rows.

    Args:
        x_min, x_max: Real axis bounds in the complex plane
        y_min, y_max: Imaginary axis bounds in the complex plane
        width, height: Full table dimensions in pixels
        max_iter: Maximum iteration count
        table: int32 array of shape (height, width), modified in place
        row_start, row_stop: Half-open band of rows to compute
    """
    dx = pixel_step(x_min, x_max, width)
    dy = pixel_step(y_min, y_max, height)

    for v in prange(row_start, row_stop):
        y0 = y_min + v * dy
        for u in range(width):
            x0 = x_min + u * dx
            table[v, u] = escape_count(x0, y0, max_iter)


def compute_iteration_table(x_min, x_max, y_min, y_max, width, height, max_iter):
    """
    Compute the full iteration table for a region.

    Returns:
        int32 array of shape (height, width) with counts in [1, max_iter + 1]
    """
    table = np.empty((height, width), dtype=np.int32)
    compute_iteration_rows(x_min, x_max, y_min, y_max, width, height, max_iter,
                           table, 0, height)
    return table


@jit(nopython=True, parallel=True, cache=True)
def apply_palette(table, palette, out, row_start, row_stop):
    """
    Look up each iteration count in a palette.

    Counts outside the palette are clamped to its first/last entry, so the
    lookup is total.

    Args:
        table: int32 iteration table (height, width)
        palette: uint8 array (max_iter + 2, 3), indexed by iteration count
        out: uint8 RGB buffer (height, width, 3), modified in place
        row_start, row_stop: Half-open band of rows to color
    """
    last = palette.shape[0] - 1
    width = table.shape[1]
    for v in prange(row_start, row_stop):
        for u in range(width):
            idx = table[v, u]
            if idx < 0:
                idx = 0
            elif idx > last:
                idx = last
            out[v, u, 0] = palette[idx, 0]
            out[v, u, 1] = palette[idx, 1]
            out[v, u, 2] = palette[idx, 2]


def warmup_jit(palette):
    """
    Warm up JIT compilation with small dummy arrays.

    Call this once at startup to pre-compile the Numba functions,
    avoiding a delay on the first real render.

    Args:
        palette: A palette array to use for warming up apply_palette
    """
    table = compute_iteration_table(-2.0, 0.5, -1.25, 1.25, 8, 8, 10)
    dummy = np.zeros((8, 8, 3), dtype=np.uint8)
    apply_palette(table, palette, dummy, 0, 8)
