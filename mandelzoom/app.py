"""
Main application module for the Mandelzoom viewer.

Contains the MandelzoomApp class which handles:
- Window setup and main loop
- Translating pygame events into viewport controller calls
- Drawing the rubber band selection
- Handing finished pixel buffers to the display
"""

import logging

import pygame

from .colormaps import next_colormap_name
from .compute import warmup_jit
from .config import Settings
from .renderer import FractalRenderer, surface_array
from .viewport import ComplexRectangle, ViewportController, ViewportDimensions


logger = logging.getLogger(__name__)

CAPTION = "Mandelzoom - drag to zoom, Backspace to zoom out, R to reset"
BAND_COLOR = (255, 255, 255)
MAX_ITER_LIMIT = 1 << 16


class MandelzoomApp:
    """
    Main application class for the Mandelzoom viewer.

    Handles the pygame window and event loop; all geometry goes through
    the ViewportController and all pixels through the FractalRenderer.
    """

    def __init__(self, settings=None):
        """
        Initialize the application.

        Args:
            settings: Settings instance (defaults if None)
        """
        self.settings = settings or Settings()
        dims = ViewportDimensions(self.settings.width, self.settings.height)

        self.controller = ViewportController(
            ComplexRectangle.from_bounds(self.settings.bounds),
            dims,
            min_drag_pixels=self.settings.min_drag_pixels,
            max_history=self.settings.max_history,
        )
        self.renderer = FractalRenderer(
            dims,
            max_iter=self.settings.max_iter,
            colormap=self.settings.colormap,
            band_rows=self.settings.band_rows,
            rect=self.controller.rect,
        )

        # Pygame state (initialized in run())
        self.screen = None
        self.clock = None
        self.current_surface = None
        self.running = False

    def run(self):
        """Run the application main loop."""
        self._init_pygame()
        self._warmup_and_initial_render()

        self.running = True
        while self.running:
            self._handle_events()
            self._check_render_result()
            if self.renderer.compute_async():
                pygame.display.set_caption("Computing...")
            self._draw()
            self.clock.tick(60)

        pygame.quit()

    def _init_pygame(self):
        """Initialize pygame and create window."""
        pygame.init()
        dims = self.controller.dims
        self.screen = pygame.display.set_mode(
            (dims.width, dims.height),
            pygame.RESIZABLE
        )
        pygame.display.set_caption(CAPTION)
        self.clock = pygame.time.Clock()

    def _warmup_and_initial_render(self):
        """Warm up JIT and do initial render."""
        pygame.display.set_caption("Compiling (first run only)...")
        warmup_jit(self.renderer.color_mapper.palette)
        self.renderer.get_pixel_buffer()
        self._update_surface(self.renderer.rgb)
        logger.info("view %s", self.controller.rect)
        pygame.display.set_caption(CAPTION)

    def _handle_events(self):
        """Process all pending pygame events."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.VIDEORESIZE:
                self.on_resize(event.w, event.h)
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                self.on_drag_start(*event.pos)
            elif event.type == pygame.MOUSEMOTION:
                self.on_drag_move(*event.pos)
            elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
                self.on_drag_end(*event.pos)
            elif event.type == pygame.KEYDOWN:
                self._handle_key(event)

    def on_resize(self, width, height):
        if not self.controller.resize(width, height):
            return
        self.renderer.resize(self.controller.dims)
        self.renderer.set_view(self.controller.rect)

    def on_drag_start(self, x, y):
        self.controller.drag_start(x, y)

    def on_drag_move(self, x, y):
        self.controller.drag_move(x, y)

    def on_drag_end(self, x, y):
        rect = self.controller.drag_end(x, y)
        if rect is not None:
            self.renderer.set_view(rect)

    def _handle_key(self, event):
        """Handle keyboard input."""
        if event.key == pygame.K_ESCAPE:
            if self.controller.dragging:
                self.controller.cancel_drag()
            else:
                self.running = False
        elif event.key == pygame.K_r:
            self.renderer.set_view(self.controller.reset())
        elif event.key in (pygame.K_BACKSPACE, pygame.K_u):
            rect = self.controller.zoom_out()
            if rect is not None:
                self.renderer.set_view(rect)
        elif event.key == pygame.K_c:
            self.renderer.update_settings(
                colormap=next_colormap_name(self.renderer.colormap)
            )
        elif event.key in (pygame.K_PLUS, pygame.K_EQUALS, pygame.K_KP_PLUS):
            self.renderer.update_settings(
                max_iter=min(self.renderer.max_iter * 2, MAX_ITER_LIMIT)
            )
        elif event.key in (pygame.K_MINUS, pygame.K_KP_MINUS):
            self.renderer.update_settings(max_iter=max(self.renderer.max_iter // 2, 1))

    def _update_surface(self, rgb):
        self.current_surface = pygame.surfarray.make_surface(surface_array(rgb))

    def _check_render_result(self):
        """Check if async render has completed."""
        result, _ = self.renderer.get_result()
        if result is not None:
            self._update_surface(result)
            pygame.display.set_caption(CAPTION)

    def _draw(self):
        """Draw the current frame."""
        self.screen.fill((0, 0, 0))
        if self.current_surface is not None:
            self.screen.blit(self.current_surface, (0, 0))

        selection = self.controller.selection()
        if selection is not None:
            (xa, ya), (xs, ys) = selection
            band = pygame.Rect(min(xa, xs), min(ya, ys), abs(xs - xa) + 1, abs(ys - ya) + 1)
            pygame.draw.rect(self.screen, BAND_COLOR, band, 1)

        pygame.display.flip()


def run(settings=None):
    """
    Run the Mandelzoom viewer.

    Args:
        settings: Settings instance (defaults if None)
    """
    app = MandelzoomApp(settings)
    try:
        app.run()
    except KeyboardInterrupt:
        pygame.quit()
