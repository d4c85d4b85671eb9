"""
Mandelbrot renderer with a recompute flag and cancellable async passes.

The FractalRenderer class handles:
- Owning the iteration table and RGB pixel buffer
- Recomputing them only when the view, size or settings changed
- Background (async) computation so the UI stays responsive
- Discarding passes that were overtaken by a newer view

Pixel buffer layout:
    uint8 array of shape (height, width, 3), RGB, row 0 is the bottom of
    the view (ymin). surface_array() converts to the (width, height, 3)
    top-down layout pygame.surfarray expects.
"""

import logging
import threading

import numpy as np

from .colormaps import ColorMapper, DEFAULT_COLORMAP
from .compute import compute_iteration_rows, apply_palette


logger = logging.getLogger(__name__)


def render(rect, dims, max_iter=1000, colormap=DEFAULT_COLORMAP):
    """
    Render a rectangle of the complex plane into a new pixel buffer.

    Deterministic: identical arguments always give identical buffers.

    Args:
        rect: ComplexRectangle to render
        dims: ViewportDimensions of the output
        max_iter: Maximum iteration count
        colormap: Palette name (key of COLORMAPS)

    Returns:
        uint8 array (height, width, 3), origin bottom-left
    """
    mapper = ColorMapper(colormap, max_iter)
    table = np.empty((dims.height, dims.width), dtype=np.int32)
    rgb = np.empty((dims.height, dims.width, 3), dtype=np.uint8)
    x_min, x_max, y_min, y_max = rect.as_bounds()
    compute_iteration_rows(x_min, x_max, y_min, y_max, dims.width, dims.height,
                           max_iter, table, 0, dims.height)
    apply_palette(table, mapper.palette, rgb, 0, dims.height)
    return rgb


def surface_array(rgb):
    """Convert a pixel buffer to pygame.surfarray layout (x, y, 3), origin top-left."""
    return np.flipud(rgb).swapaxes(0, 1)


class FractalRenderer:
    """
    Owns the pixel buffer for the current view and recomputes it on demand.

    Usage:
        renderer = FractalRenderer(dims, max_iter=1000)
        renderer.set_view(rect)
        rgb = renderer.get_pixel_buffer()      # synchronous

        renderer.compute_async()               # or in a game loop
        result, rect = renderer.get_result()
        if result is not None:
            display(result)

    Every change of view, size or settings bumps a generation counter. An
    async pass remembers the generation it started with; it stops between
    bands once that generation is stale, and a stale pass is never copied
    into the visible buffer.

    Attributes:
        dims: Current ViewportDimensions
        rect: ComplexRectangle being displayed (None until set_view)
        max_iter: Maximum iteration count
        dirty: True when the buffer no longer matches rect/dims/settings
        render_count: Number of completed passes (for diagnostics)
    """

    def __init__(self, dims, max_iter=1000, colormap=DEFAULT_COLORMAP,
                 band_rows=32, rect=None):
        """
        Initialize the renderer.

        Args:
            dims: ViewportDimensions of the pixel buffer
            max_iter: Maximum iteration count
            colormap: Palette name (key of COLORMAPS)
            band_rows: Rows per band in async passes (cancellation granularity)
            rect: Optional initial ComplexRectangle
        """
        self.dims = dims
        self.max_iter = max_iter
        self.band_rows = max(1, band_rows)
        self.color_mapper = ColorMapper(colormap, max_iter)
        self.rect = rect
        self.rendered_rect = None

        self.table = None
        self.rgb = None
        self._allocate()

        self.dirty = True
        self.render_count = 0
        self.generation = 0

        # Async computation state
        self.lock = threading.Lock()
        self.computing = False
        self.pending = False
        self.result_ready = False
        self._inflight = None  # generation the worker is computing
        self._thread = None

    @property
    def colormap(self):
        return self.color_mapper.name

    def _allocate(self):
        self.table = np.zeros((self.dims.height, self.dims.width), dtype=np.int32)
        self.rgb = np.zeros((self.dims.height, self.dims.width, 3), dtype=np.uint8)

    def _mark_dirty(self):
        # Caller holds self.lock
        self.dirty = True
        self.generation += 1

    def set_view(self, rect):
        """Display a new rectangle; the next pass recomputes every pixel."""
        with self.lock:
            self.rect = rect
            self._mark_dirty()

    def resize(self, dims):
        """
        Reallocate buffers for new window dimensions.

        Returns:
            True if the dimensions changed
        """
        if dims == self.dims:
            return False
        with self.lock:
            self.dims = dims
            self._allocate()
            self._mark_dirty()
        return True

    def invalidate(self):
        """Force a recompute on the next request."""
        with self.lock:
            self._mark_dirty()

    def update_settings(self, max_iter=None, colormap=None):
        """
        Update rendering settings.

        Args:
            max_iter: New maximum iteration count (or None to keep current)
            colormap: New palette name (or None to keep current)

        Returns:
            True if any setting changed, False otherwise
        """
        new_iter = self.max_iter if max_iter is None else max_iter
        new_map = self.colormap if colormap is None else colormap
        if new_iter == self.max_iter and new_map == self.colormap:
            return False
        mapper = ColorMapper(new_map, new_iter)
        with self.lock:
            self.max_iter = new_iter
            self.color_mapper = mapper
            self._mark_dirty()
        logger.info("settings: max_iter=%d colormap=%s", new_iter, new_map)
        return True

    def _snapshot(self):
        # Caller holds self.lock
        if self.rect is None:
            raise RuntimeError("FractalRenderer has no view; call set_view() first")
        return self.rect, self.dims, self.max_iter, self.color_mapper, self.generation

    def _is_stale(self, generation):
        with self.lock:
            return generation != self.generation

    def _render_pass(self, rect, dims, max_iter, mapper, generation, cancellable):
        """
        Compute a full table and buffer band by band.

        Returns:
            (table, rgb), or None if a newer generation appeared mid-pass
        """
        width, height = dims.width, dims.height
        x_min, x_max, y_min, y_max = rect.as_bounds()
        table = np.empty((height, width), dtype=np.int32)
        rgb = np.empty((height, width, 3), dtype=np.uint8)

        for start in range(0, height, self.band_rows):
            if cancellable and self._is_stale(generation):
                return None
            stop = min(start + self.band_rows, height)
            compute_iteration_rows(x_min, x_max, y_min, y_max, width, height,
                                   max_iter, table, start, stop)
            apply_palette(table, mapper.palette, rgb, start, stop)
        return table, rgb

    def _install(self, table, rgb, rect):
        # Caller holds self.lock
        self.table = table
        self.rgb = rgb
        self.rendered_rect = rect
        self.dirty = False
        self.render_count += 1

    def get_pixel_buffer(self):
        """
        Return the pixel buffer, recomputing it first if it is dirty.

        Calls without an intervening change return the same buffer without
        doing any work.
        """
        with self.lock:
            if not self.dirty:
                return self.rgb
            rect, dims, max_iter, mapper, generation = self._snapshot()

        table, rgb = self._render_pass(rect, dims, max_iter, mapper, generation,
                                       cancellable=False)
        with self.lock:
            if generation == self.generation:
                self._install(table, rgb, rect)
            return self.rgb

    def surface_array(self):
        """Current buffer in pygame.surfarray layout."""
        return surface_array(self.rgb)

    def compute_async(self):
        """
        Start a background pass if the buffer is dirty.

        If a pass is already running it will pick up the new request as
        soon as it finishes or notices that it went stale. Repeated calls
        while the current generation is being computed do nothing.

        Returns:
            True if the buffer is dirty (a pass is running or requested),
            False if nothing needed doing
        """
        with self.lock:
            if not self.dirty:
                return False
            self._snapshot()
            if self.computing and self._inflight == self.generation:
                return True
            self.pending = True
            if not self.computing:
                self.computing = True
                self._thread = threading.Thread(target=self._compute_thread)
                self._thread.daemon = True
                self._thread.start()
        return True

    def _compute_thread(self):
        """Background thread for async passes."""
        try:
            self._compute_loop()
        except Exception:
            logger.exception("background render failed")
            with self.lock:
                self.computing = False
                self.pending = False
                self._inflight = None

    def _compute_loop(self):
        while True:
            with self.lock:
                if not self.pending or not self.dirty:
                    self.pending = False
                    self.computing = False
                    break
                self.pending = False
                rect, dims, max_iter, mapper, generation = self._snapshot()
                self._inflight = generation

            result = self._render_pass(rect, dims, max_iter, mapper, generation,
                                       cancellable=True)

            with self.lock:
                self._inflight = None
                if result is None or generation != self.generation:
                    logger.debug("discarding stale render (generation %d)", generation)
                    continue
                self._install(*result, rect)
                self.result_ready = True
                logger.debug("render %d done for %s at %dx%d",
                             self.render_count, rect, dims.width, dims.height)

    def get_result(self):
        """
        Get the latest async result if ready.

        Returns:
            Tuple of (rgb copy, rect) if a new result is ready, (None, None)
            otherwise
        """
        with self.lock:
            if self.result_ready:
                self.result_ready = False
                return self.rgb.copy(), self.rendered_rect
        return None, None

    def wait(self, timeout=None):
        """Block until the background thread (if any) has finished."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return not self.computing
