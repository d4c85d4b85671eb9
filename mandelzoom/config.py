"""
Settings and logging setup.

Defaults live in settings.json next to this module. A user file passed on
the command line is merged over them; command line flags win over both.
"""

import json
import logging
import math
import numbers
import os
from dataclasses import dataclass, fields, replace

from .colormaps import COLORMAPS


logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = os.path.join(os.path.dirname(__file__), 'settings.json')
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'


@dataclass(frozen=True)
class Settings:
    """Startup configuration for the viewer."""

    width: int = 400
    height: int = 400
    max_iter: int = 1000
    bounds: tuple = (-2.0, 0.5, -1.25, 1.25)  # xmin, xmax, ymin, ymax
    colormap: str = 'Threshold'
    min_drag_pixels: int = 3
    max_history: int = 64
    band_rows: int = 32
    log_level: str = 'INFO'

    @classmethod
    def from_dict(cls, data):
        """Build from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("ignoring unknown settings: %s", ", ".join(unknown))
        values = {key: value for key, value in data.items() if key in known}
        if 'bounds' in values:
            values['bounds'] = _as_bounds(values['bounds'])
        return cls(**values)

    def merged(self, **overrides):
        """Copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        if 'bounds' in changes:
            changes['bounds'] = _as_bounds(changes['bounds'])
        return replace(self, **changes)

    def validate(self):
        """
        Check value types and ranges.

        Returns:
            self, for chaining

        Raises:
            ValueError describing the first bad value
        """
        for name in _INT_FIELDS:
            value = getattr(self, name)
            if not _is_int(value):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"window size must be positive, got {self.width}x{self.height}")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {self.max_iter}")
        if not isinstance(self.bounds, tuple) or len(self.bounds) != 4:
            raise ValueError(f"bounds needs 4 numbers (xmin, xmax, ymin, ymax), got {self.bounds!r}")
        if not all(_is_finite(v) for v in self.bounds):
            raise ValueError(f"bounds must be finite numbers, got {self.bounds}")
        xmin, xmax, ymin, ymax = self.bounds
        if not (xmin < xmax and ymin < ymax):
            raise ValueError(f"bounds must satisfy xmin < xmax and ymin < ymax, got {self.bounds}")
        if not isinstance(self.colormap, str) or self.colormap not in COLORMAPS:
            raise ValueError(
                f"unknown colormap {self.colormap!r}, choose from {', '.join(COLORMAPS)}"
            )
        if self.min_drag_pixels < 1:
            raise ValueError(f"min_drag_pixels must be at least 1, got {self.min_drag_pixels}")
        if self.max_history < 0:
            raise ValueError(f"max_history must not be negative, got {self.max_history}")
        if self.band_rows < 1:
            raise ValueError(f"band_rows must be at least 1, got {self.band_rows}")
        if (not isinstance(self.log_level, str)
                or not isinstance(logging.getLevelName(self.log_level.upper()), int)):
            raise ValueError(f"unknown log level {self.log_level!r}")
        return self


_INT_FIELDS = ('width', 'height', 'max_iter', 'min_drag_pixels', 'max_history', 'band_rows')


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _is_finite(value):
    return (isinstance(value, numbers.Real) and not isinstance(value, bool)
            and math.isfinite(value))


def _as_bounds(value):
    """Coerce (xmin, xmax, ymin, ymax) to floats, raising ValueError on junk."""
    if isinstance(value, (str, bytes)):
        raise ValueError(f"bounds needs 4 numbers (xmin, xmax, ymin, ymax), got {value!r}")
    try:
        return tuple(float(v) for v in value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"bounds needs 4 numbers (xmin, xmax, ymin, ymax), got {value!r}") from e


def _read_json(path):
    """Load a JSON object, or None with a warning if it can't be read."""
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        logger.warning("could not load %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("ignoring %s: expected a JSON object", path)
        return None
    return data


def load_settings(path=None):
    """
    Load settings from the packaged defaults plus an optional user file.

    Missing or unparsable files are reported and skipped. Values are
    not range-checked here; call Settings.validate() on the result.

    Raises:
        ValueError if bounds cannot be read as numbers

    Args:
        path: Optional JSON file whose keys override the defaults
    """
    data = _read_json(DEFAULT_SETTINGS_PATH) or {}
    if path is not None:
        data.update(_read_json(path) or {})
    return Settings.from_dict(data)


def setup_logging(level='INFO'):
    """Attach a single stream handler to the package logger."""
    pkg_logger = logging.getLogger('mandelzoom')
    if pkg_logger.hasHandlers():
        pkg_logger.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(level.upper() if isinstance(level, str) else level)
    pkg_logger.propagate = False
    return pkg_logger
