"""
Mandelzoom

An interactive Mandelbrot set explorer using Pygame for display and
Numba for JIT-compiled computation. Drag a rectangle to zoom into it; the
selection is widened or heightened to the window's aspect ratio so the
picture is never distorted.

Quick Start:
    from mandelzoom import run
    run()

Or from command line:
    python -m mandelzoom

Package Structure:
    - compute.py: JIT-compiled escape-time and palette kernels
    - colormaps.py: Palettes and the ColorMapper
    - renderer.py: Pixel buffer ownership, dirty flag, async passes
    - viewport.py: Complex rectangles and the drag-to-zoom controller
    - config.py: settings.json loading and logging setup
    - app.py: Pygame window and event loop

Controls:
    - Drag: Select a region to zoom into
    - Backspace / U: Zoom back out
    - R: Reset to default view
    - C: Next color scheme
    - + / -: Double / halve the iteration limit
    - ESC: Cancel selection, or quit
"""

from .colormaps import COLORMAPS, ColorMapper, get_colormap, list_colormap_names
from .compute import classify, in_set_sentinel
from .config import Settings, load_settings
from .renderer import FractalRenderer, render
from .viewport import (
    ComplexRectangle,
    DragState,
    ViewportController,
    ViewportDimensions,
    ViewportError,
)

__version__ = "1.0.0"
__all__ = [
    "run",
    "COLORMAPS",
    "ColorMapper",
    "get_colormap",
    "list_colormap_names",
    "classify",
    "in_set_sentinel",
    "Settings",
    "load_settings",
    "FractalRenderer",
    "render",
    "ComplexRectangle",
    "DragState",
    "ViewportController",
    "ViewportDimensions",
    "ViewportError",
]


def run(settings=None):
    """Start the viewer (imports pygame lazily)."""
    from .app import run as _run
    _run(settings)
