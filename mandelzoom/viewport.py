"""
Viewport geometry and the drag-to-zoom controller.

The controller owns the visible rectangle of the complex plane and the
window size in pixels. A completed drag is turned into a new rectangle
whose aspect ratio always matches the window, so the next render is never
stretched.

Coordinate systems:
    screen  (x, y) as delivered by the toolkit, origin top-left, y down
    pixel   (u, v) as used by the renderer, origin bottom-left, v up
    complex (re, im) via pixel_to_complex()
"""

import logging
import math
import sys
from dataclasses import dataclass
from enum import Enum

from .compute import pixel_step


logger = logging.getLogger(__name__)

# Pixel spacing at or below this many ulps of the coordinates is noise.
RESOLUTION_ULPS = 4.0

# Aspect ratios this close count as equal (rounding noise from zooms).
ASPECT_RTOL = 1e-9


class ViewportError(ValueError):
    """Raised for rectangles or window sizes that violate their invariants."""


@dataclass(frozen=True)
class ViewportDimensions:
    """Window size in pixels."""

    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ViewportError(
                f"window dimensions must be positive, got {self.width}x{self.height}"
            )

    @property
    def aspect(self):
        """height / width"""
        return self.height / self.width


@dataclass(frozen=True)
class ComplexRectangle:
    """
    Region of the complex plane, xmin < xmax and ymin < ymax.

    Instances are immutable; every viewport change produces a new one.
    """

    xmin: float
    ymin: float
    xmax: float
    ymax: float

    def __post_init__(self):
        values = (self.xmin, self.ymin, self.xmax, self.ymax)
        if not all(math.isfinite(value) for value in values):
            raise ViewportError(f"rectangle has non-finite bounds: {values}")
        if not (self.xmin < self.xmax and self.ymin < self.ymax):
            raise ViewportError(
                f"rectangle must satisfy xmin < xmax and ymin < ymax: {values}"
            )

    @classmethod
    def from_bounds(cls, bounds):
        """Build from (xmin, xmax, ymin, ymax), the order used in settings."""
        xmin, xmax, ymin, ymax = (float(value) for value in bounds)
        return cls(xmin, ymin, xmax, ymax)

    def as_bounds(self):
        return self.xmin, self.xmax, self.ymin, self.ymax

    @property
    def width(self):
        return self.xmax - self.xmin

    @property
    def height(self):
        return self.ymax - self.ymin

    @property
    def center(self):
        return (self.xmin + self.xmax) / 2, (self.ymin + self.ymax) / 2

    @property
    def aspect(self):
        """height / width"""
        return self.height / self.width

    def recentered(self, cx, cy, width, height):
        """Rectangle of the given extents centered on (cx, cy)."""
        return ComplexRectangle(
            cx - width / 2, cy - height / 2, cx + width / 2, cy + height / 2
        )

    def fitted(self, dims):
        """
        Grow the short side around the center until the aspect ratio
        matches the window. Never shrinks, so the old view stays visible.
        """
        target = dims.aspect
        if math.isclose(self.aspect, target, rel_tol=ASPECT_RTOL):
            return self
        cx, cy = self.center
        if self.aspect < target:
            return self.recentered(cx, cy, self.width, self.width * target)
        return self.recentered(cx, cy, self.height / target, self.height)

    def __str__(self):
        return "%.17g, %.17g, %.17g, %.17g" % self.as_bounds()


def pixel_to_complex(rect, dims, u, v):
    """Complex coordinate sampled by pixel (u, v), same mapping as the renderer."""
    return (rect.xmin + u * pixel_step(rect.xmin, rect.xmax, dims.width),
            rect.ymin + v * pixel_step(rect.ymin, rect.ymax, dims.height))


def is_resolvable(rect, dims):
    """Whether float64 can still tell adjacent pixels of rect apart."""
    step = min(pixel_step(rect.xmin, rect.xmax, dims.width),
               pixel_step(rect.ymin, rect.ymax, dims.height))
    scale = max(abs(rect.xmin), abs(rect.xmax), abs(rect.ymin), abs(rect.ymax), 1.0)
    return step > RESOLUTION_ULPS * sys.float_info.epsilon * scale


class DragState(Enum):
    IDLE = 'idle'
    DRAGGING = 'dragging'


class ViewportController:
    """
    Owns the current complex rectangle and turns drags into zooms.

    State machine:
        IDLE --drag_start--> DRAGGING --drag_move--> DRAGGING --drag_end--> IDLE

    Every accepted zoom pushes the previous rectangle on a bounded history
    stack so zoom_out() can step back.

    Attributes:
        rect: Current ComplexRectangle
        dims: Current ViewportDimensions
        state: DragState
        anchor, stretch: Screen points of the live selection (or None)
    """

    def __init__(self, rect, dims, min_drag_pixels=3, max_history=64):
        """
        Args:
            rect: Initial rectangle, grown to the window aspect if needed
            dims: Initial window dimensions
            min_drag_pixels: Drags smaller than this on both axes are clicks
            max_history: Maximum number of rectangles kept for zoom_out()
        """
        self.home = rect
        self.dims = dims
        self.rect = rect.fitted(dims)
        self.min_drag_pixels = min_drag_pixels
        self.max_history = max_history
        self.history = []

        self.state = DragState.IDLE
        self.anchor = None
        self.stretch = None

    @property
    def dragging(self):
        return self.state is DragState.DRAGGING

    def screen_to_pixel(self, x, y):
        return x, self.dims.height - 1 - y

    def selection(self):
        """Live selection box in screen coordinates, or None when idle."""
        if not self.dragging:
            return None
        return self.anchor, self.stretch

    def drag_start(self, x, y):
        """Record the anchor of a new selection. Returns False if already dragging."""
        if self.dragging:
            return False
        self.anchor = (x, y)
        self.stretch = (x, y)
        self.state = DragState.DRAGGING
        return True

    def drag_move(self, x, y):
        """Update the stretch point. Returns False when idle."""
        if not self.dragging:
            return False
        self.stretch = (x, y)
        return True

    def drag_end(self, x, y):
        """
        Finish the selection and zoom into it.

        Returns:
            The new ComplexRectangle, or None when idle or the drag was
            rejected (in which case the view is unchanged)
        """
        if not self.dragging:
            return None
        anchor = self.anchor
        self.cancel_drag()

        new_rect = self.compute_zoom(self.screen_to_pixel(*anchor),
                                     self.screen_to_pixel(x, y))
        if new_rect is None:
            return None
        self._push_history(self.rect)
        self.rect = new_rect
        logger.info("zoom -> %s", new_rect)
        return new_rect

    def cancel_drag(self):
        self.state = DragState.IDLE
        self.anchor = None
        self.stretch = None

    def compute_zoom(self, anchor, release):
        """
        Complex rectangle selected by a drag between two pixel points.

        The box is grown on one axis until its aspect ratio equals the
        window's: a box that is too tall is widened, otherwise it is made
        taller. Growth starts at the anchor and extends toward the side the
        user dragged to.

        Args:
            anchor: (u, v) pixel where the drag started
            release: (u, v) pixel where it ended

        Returns:
            ComplexRectangle, or None for clicks and unresolvable zooms
        """
        ua, va = anchor
        us, vs = release
        if max(abs(us - ua), abs(vs - va)) < self.min_drag_pixels:
            logger.debug("ignoring drag %s -> %s: below %d pixels",
                         anchor, release, self.min_drag_pixels)
            return None

        xa, ya = pixel_to_complex(self.rect, self.dims, ua, va)
        xs, ys = pixel_to_complex(self.rect, self.dims, us, vs)
        xd = abs(xs - xa)
        yd = abs(ys - ya)

        width, height = self.dims.width, self.dims.height
        # yd / xd > height / width, without dividing by xd
        if yd * width > xd * height:
            xd = yd * width / height
        else:
            yd = xd * height / width

        if xs >= xa:
            xmin, xmax = xa, xa + xd
        else:
            xmin, xmax = xa - xd, xa
        if ys >= ya:
            ymin, ymax = ya, ya + yd
        else:
            ymin, ymax = ya - yd, ya

        try:
            new_rect = ComplexRectangle(xmin, ymin, xmax, ymax)
        except ViewportError as e:
            logger.warning("rejecting zoom: %s", e)
            return None
        if not is_resolvable(new_rect, self.dims):
            logger.warning("rejecting zoom to %s: beyond double precision", new_rect)
            return None
        return new_rect

    def resize(self, width, height):
        """
        Adapt the view to a new window size.

        Keeps the center of the rectangle and the complex distance per
        pixel on each axis, so the picture neither moves nor rescales.

        Returns:
            True if the dimensions changed
        """
        if width <= 0 or height <= 0:
            logger.debug("ignoring resize to %dx%d", width, height)
            return False
        if (width, height) == (self.dims.width, self.dims.height):
            return False

        units_x = self.rect.width / self.dims.width
        units_y = self.rect.height / self.dims.height
        cx, cy = self.rect.center
        self.rect = self.rect.recentered(cx, cy, width * units_x, height * units_y)
        self.dims = ViewportDimensions(width, height)
        self.cancel_drag()
        logger.debug("resized to %dx%d, view %s", width, height, self.rect)
        return True

    def zoom_out(self):
        """Return to the previous rectangle. Returns it, or None if there is none."""
        if not self.history:
            return None
        self.rect = self.history.pop().fitted(self.dims)
        logger.info("zoom out -> %s", self.rect)
        return self.rect

    def reset(self):
        """Return to the initial rectangle and forget the history."""
        self.history.clear()
        self.rect = self.home.fitted(self.dims)
        logger.info("reset -> %s", self.rect)
        return self.rect

    def _push_history(self, rect):
        self.history.append(rect)
        if len(self.history) > self.max_history:
            self.history.pop(0)
