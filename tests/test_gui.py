"""
Tests for the task graph widget, painted offscreen.
"""

import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt5.QtWidgets import QApplication  # noqa: E402

from schedviz.gui import TaskGraphWidget  # noqa: E402
from schedviz.markers import MarkerState  # noqa: E402

from conftest import build, printk, switch  # noqa: E402


@pytest.fixture(scope="module")
def qapp():
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


@pytest.fixture
def widget(qapp):
    w = TaskGraphWidget(MarkerState())
    w.resize(800, 300)
    yield w
    w.deleteLater()


def test_activity_uses_fixed_attribution(widget, plugin, monkeypatch):
    trailing = printk(900, 5)
    stream, ctx = build(plugin, [printk(0, 5), switch(10, 5, 7),
                                 printk(500, 5), trailing,
                                 switch(1000, 7, 9)])
    widget.set_stream(stream)
    widget.set_pids([5, 7])
    widget.set_plugins([(plugin, lambda: True)])

    model = widget._model
    real = model.task_bins
    seen = []
    seen_bins = {}

    def spy(s, pid):
        seen.append(trailing.pid)
        bins = real(s, pid)
        seen_bins[pid] = bins
        return bins

    monkeypatch.setattr(model, "task_bins", spy)

    widget.grab()

    assert ctx.second_pass_done
    assert seen and set(seen) == {7}
    tb = model.bin_of(trailing.ts)
    assert tb in seen_bins[7]
    assert tb not in seen_bins[5]


def test_no_trace(widget):
    widget.grab()

    assert widget._shapes == []
