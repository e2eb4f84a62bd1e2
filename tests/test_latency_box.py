"""
Tests for the latency box geometry and its hit test.
"""

import sys

import pytest

from schedviz.fields import FieldEntry
from schedviz.markers import DualMarkerState
from schedviz.model import Graph
from schedviz.plugins.sched_events import (
    DEFAULT_SIZE,
    IntervalKind,
    LatencyBox,
    make_shape,
)

from conftest import FakeGui, printk

INF = sys.float_info.max


def make_box(b0=20, b1=40, kind=IntervalKind.WAKE_LATENCY, gui=None):
    graph = Graph(100, base=60, height=50, h_margin=10)
    data = [FieldEntry(printk(1000, 5), 5), FieldEntry(printk(251000, 5), 0)]
    return make_shape([graph], [b0, b1], data, (0, 255, 0), DEFAULT_SIZE,
                      kind=kind, gui=gui)


class TestGeometry:
    def test_corners(self):
        box = make_box()
        # height = int(50 * .3) = 15, bin i is at x = 10 + i
        pts = [(p.x(), p.y()) for p in box.points]

        assert pts == [(29, 45), (29, 59), (49, 59), (49, 45)]

    def test_outline_only(self):
        box = make_box()

        assert box.fill is False
        assert box.size == DEFAULT_SIZE
        assert box.color.getRgb()[:3] == (0, 255, 0)

    def test_keeps_records(self):
        box = make_box()

        assert [f.entry.ts for f in box.data] == [1000, 251000]

    def test_single_bin(self):
        box = make_box(30, 30)

        assert box.point_x(0) == box.point_x(2) == 39
        assert box.distance(39, 50) == 0
        assert box.distance(40, 50) == INF

    def test_bins_not_resorted(self):
        box = make_box(40, 20)

        assert box.point_x(0) == 49
        assert box.point_x(2) == 29


class TestDistance:
    @pytest.mark.parametrize("x, y", [
        (35, 50),
        (29, 45), (49, 45), (29, 59), (49, 59),    # corners
        (29, 50), (49, 50), (35, 45), (35, 59),    # edges
    ])
    def test_inside(self, x, y):
        assert make_box().distance(x, y) == 0

    @pytest.mark.parametrize("x, y", [
        (28, 50), (50, 50), (35, 44), (35, 60),
        (28, 44), (50, 60), (0, 0),
    ])
    def test_outside(self, x, y):
        assert make_box().distance(x, y) == INF


class TestInteraction:
    def test_double_click_order(self):
        gui = FakeGui()
        box = make_box(gui=gui)

        box.double_click()

        assert [(r.ts, s) for r, s in gui.marks] == [
            (251000, DualMarkerState.B),
            (1000, DualMarkerState.A),
        ]

    def test_double_click_without_gui(self):
        box = LatencyBox(IntervalKind.PREEMPTION, [])

        box.double_click()

    def test_describe(self):
        wake = make_box(kind=IntervalKind.WAKE_LATENCY)
        pre = make_box(kind=IntervalKind.PREEMPTION)

        assert wake.duration_ns() == 250000
        assert wake.describe() == "Wake-up latency: 250.000\u00b5s"
        assert pre.describe() == "Preempted: 250.000\u00b5s"
