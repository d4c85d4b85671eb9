import logging
import threading

import numpy as np
import pytest

from mandelzoom import compute, renderer as renderer_module
from mandelzoom.colormaps import ColorMapper
from mandelzoom.compute import classify
from mandelzoom.renderer import FractalRenderer, render, surface_array
from mandelzoom.viewport import ComplexRectangle, ViewportDimensions, pixel_to_complex


HOME = ComplexRectangle.from_bounds((-2.0, 0.5, -1.25, 1.25))
ZOOMED = ComplexRectangle.from_bounds((-0.8, -0.6, 0.1, 0.3))
DIMS = ViewportDimensions(40, 30)


class BandGate:
    """Stands in for the row kernel and holds the first band until released."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()
        self.fail = False
        self.calls = 0

    def __call__(self, *args):
        self.calls += 1
        if self.calls == 1:
            self.started.set()
            self.release.wait(timeout=60)
            if self.fail:
                raise RuntimeError("row kernel failed")
        return compute.compute_iteration_rows(*args)


@pytest.fixture
def gate(monkeypatch):
    band_gate = BandGate()
    monkeypatch.setattr(renderer_module, "compute_iteration_rows", band_gate)
    yield band_gate
    band_gate.release.set()


def test_render_shape_and_type():
    rgb = render(HOME, DIMS, max_iter=50)
    assert rgb.shape == (30, 40, 3)
    assert rgb.dtype == np.uint8


def test_render_is_deterministic():
    first = render(HOME, DIMS, max_iter=200, colormap='Gradient')
    second = render(HOME, DIMS, max_iter=200, colormap='Gradient')
    assert np.array_equal(first, second)


def test_render_matches_pointwise_classification():
    dims = ViewportDimensions(9, 7)
    max_iter = 80
    mapper = ColorMapper('Hot', max_iter)
    rgb = render(HOME, dims, max_iter=max_iter, colormap='Hot')
    for v in range(dims.height):
        for u in range(dims.width):
            x, y = pixel_to_complex(HOME, dims, u, v)
            assert tuple(rgb[v, u]) == mapper.color_for(classify(complex(x, y), max_iter))


@pytest.mark.parametrize("width, height", [(1, 1), (1, 5), (5, 1)])
def test_single_row_or_column(width, height):
    rgb = render(HOME, ViewportDimensions(width, height), max_iter=30)
    assert rgb.shape == (height, width, 3)


def test_surface_array_layout():
    rgb = render(HOME, DIMS, max_iter=30)
    surf = surface_array(rgb)
    assert surf.shape == (40, 30, 3)
    # first surface row is the top of the view, i.e. the last buffer row
    assert np.array_equal(surf[:, 0], rgb[-1])
    assert np.array_equal(surf[:, -1], rgb[0])


class TestDirtyFlag:
    def test_needs_a_view(self):
        renderer = FractalRenderer(DIMS, max_iter=20)
        with pytest.raises(RuntimeError):
            renderer.get_pixel_buffer()

    def test_recomputes_only_when_dirty(self):
        renderer = FractalRenderer(DIMS, max_iter=20, rect=HOME)
        assert renderer.dirty
        first = renderer.get_pixel_buffer()
        assert renderer.render_count == 1
        assert not renderer.dirty
        assert renderer.get_pixel_buffer() is first
        assert renderer.render_count == 1

        renderer.set_view(ZOOMED)
        assert renderer.dirty
        renderer.get_pixel_buffer()
        assert renderer.render_count == 2

        renderer.invalidate()
        renderer.get_pixel_buffer()
        assert renderer.render_count == 3

    def test_buffer_matches_render(self):
        renderer = FractalRenderer(DIMS, max_iter=60, colormap='Ocean', band_rows=4, rect=ZOOMED)
        expected = render(ZOOMED, DIMS, max_iter=60, colormap='Ocean')
        assert np.array_equal(renderer.get_pixel_buffer(), expected)

    def test_resize_reallocates(self):
        renderer = FractalRenderer(DIMS, max_iter=20, rect=HOME)
        renderer.get_pixel_buffer()
        assert not renderer.resize(ViewportDimensions(40, 30))
        assert not renderer.dirty

        assert renderer.resize(ViewportDimensions(16, 12))
        assert renderer.dirty
        assert renderer.get_pixel_buffer().shape == (12, 16, 3)
        assert renderer.table.shape == (12, 16)

    def test_update_settings(self):
        renderer = FractalRenderer(DIMS, max_iter=20, rect=HOME)
        renderer.get_pixel_buffer()
        assert not renderer.update_settings(max_iter=20, colormap='Threshold')
        assert not renderer.dirty

        assert renderer.update_settings(max_iter=40, colormap='Grayscale')
        assert renderer.dirty
        assert renderer.colormap == 'Grayscale'
        expected = render(HOME, DIMS, max_iter=40, colormap='Grayscale')
        assert np.array_equal(renderer.get_pixel_buffer(), expected)


class TestAsync:
    def test_async_result(self):
        renderer = FractalRenderer(DIMS, max_iter=50, band_rows=5, rect=HOME)
        assert renderer.compute_async()
        assert renderer.wait(timeout=60)
        rgb, rect = renderer.get_result()
        assert rect == HOME
        assert np.array_equal(rgb, render(HOME, DIMS, max_iter=50))
        assert renderer.get_result() == (None, None)
        assert not renderer.compute_async()

    def test_latest_view_wins(self):
        renderer = FractalRenderer(DIMS, max_iter=50, band_rows=2, rect=HOME)
        renderer.compute_async()
        renderer.set_view(ZOOMED)
        renderer.compute_async()
        assert renderer.wait(timeout=60)
        rgb, rect = renderer.get_result()
        assert rect == ZOOMED
        assert np.array_equal(rgb, render(ZOOMED, DIMS, max_iter=50))
        assert not renderer.dirty

    def test_stale_pass_is_abandoned(self):
        renderer = FractalRenderer(DIMS, max_iter=50, band_rows=2, rect=HOME)
        rect, dims, max_iter, mapper, generation = renderer._snapshot()
        renderer.set_view(ZOOMED)
        assert renderer._render_pass(rect, dims, max_iter, mapper, generation,
                                     cancellable=True) is None
        assert renderer.render_count == 0

    def test_repeated_requests_share_one_pass(self, gate):
        renderer = FractalRenderer(DIMS, max_iter=50, band_rows=5, rect=HOME)
        assert renderer.compute_async()
        assert gate.started.wait(timeout=60)
        for _ in range(5):
            assert renderer.compute_async()
        gate.release.set()
        assert renderer.wait(timeout=60)

        assert renderer.render_count == 1
        assert gate.calls == 6  # 30 rows in bands of 5, one pass
        rgb, rect = renderer.get_result()
        assert rect == HOME
        assert not renderer.compute_async()

    def test_resize_and_zoom_during_pass(self, gate):
        small = ViewportDimensions(16, 12)
        renderer = FractalRenderer(DIMS, max_iter=50, band_rows=5, rect=HOME)
        assert renderer.compute_async()
        assert gate.started.wait(timeout=60)

        renderer.resize(small)
        renderer.set_view(ZOOMED)
        assert renderer.compute_async()
        gate.release.set()
        assert renderer.wait(timeout=60)

        rgb, rect = renderer.get_result()
        assert rect == ZOOMED
        assert rgb.shape == (12, 16, 3)
        assert renderer.render_count == 1
        assert np.array_equal(rgb, render(ZOOMED, small, max_iter=50))
        assert np.array_equal(renderer.get_pixel_buffer(), rgb)
        assert renderer.render_count == 1

    def test_failed_pass_is_logged_and_can_be_retried(self, gate, caplog):
        gate.fail = True
        renderer = FractalRenderer(DIMS, max_iter=50, band_rows=5, rect=HOME)
        with caplog.at_level(logging.ERROR, logger='mandelzoom.renderer'):
            assert renderer.compute_async()
            gate.release.set()
            assert renderer.wait(timeout=60)
        assert not renderer.computing
        assert renderer.dirty
        assert "background render failed" in caplog.text
        assert renderer.get_result() == (None, None)

        assert renderer.compute_async()
        assert renderer.wait(timeout=60)
        rgb, rect = renderer.get_result()
        assert rect == HOME
        assert renderer.render_count == 1
        assert np.array_equal(rgb, render(HOME, DIMS, max_iter=50))
