#!/usr/bin/env python3
# SPDX-License-Identifier: GPL-2.0
"""
schedviz - scheduling trace viewer

Loads an ftrace text trace and draws one row per task. Plugins add shapes
to the rows; the built-in sched_events plugin outlines wake-up latency in
green and preemption in red. Double click a box to put markers A and B on
its two ends.

Requirements: Python 3.8+, PyQt5
Usage:
    python3 -m schedviz trace.txt -p 1234 -p 1240
    trace-cmd report > trace.txt && schedviz trace.txt
"""

import argparse
import logging
import os
import sys
from collections import Counter

from PyQt5.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QPushButton, QLabel, QLineEdit, QCheckBox, QFileDialog, QMessageBox,
)
from PyQt5.QtCore import Qt, QRectF
from PyQt5.QtGui import QPainter, QColor, QPen, QFont

from .loader import load_file
from .markers import DualMarkerState, MarkerState
from .model import Graph, VisModel
from .plot import TASK_DRAW, PlotArgs
from .plugins import load_plugins
from .trace import TraceStream

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BG_COLOR = QColor(18, 18, 36)
BG_DARKER = QColor(12, 12, 28)
GRID_COLOR = QColor(40, 40, 70)
TEXT_COLOR = QColor(200, 200, 220)
TEXT_DIM = QColor(100, 100, 130)
MARKER_A_COLOR = QColor(0, 200, 255)
MARKER_B_COLOR = QColor(255, 160, 0)

ROW_HEIGHT = 60
GRAPH_HEIGHT = 45
MARGIN_L, MARGIN_R, MARGIN_T, MARGIN_B = 70, 15, 10, 10
DEFAULT_TASKS = 8

PLUGIN_PATH_ENV = "SCHEDVIZ_PLUGIN_PATH"


def task_color(pid):
    return QColor.fromHsv((pid * 47) % 360, 170, 220)

# ---------------------------------------------------------------------------
# Task graph widget
# ---------------------------------------------------------------------------


class TaskGraphWidget(QWidget):
    """One row per task: activity per bin plus the plugins' shapes."""

    def __init__(self, markers, parent=None):
        super().__init__(parent)
        self.setMinimumSize(600, 200)
        self.setMouseTracking(True)
        self._markers = markers
        self._model = VisModel()
        self._stream = None
        self._pids = []
        self._plugins = []
        self._shapes = []
        self.status_cb = None

    def set_stream(self, stream):
        self._stream = stream
        self._model.fit(stream)
        self._fit_bins()
        self.update()

    def set_pids(self, pids):
        self._pids = list(pids)
        self.setMinimumHeight(
            MARGIN_T + MARGIN_B + ROW_HEIGHT * max(1, len(self._pids)))
        self.update()

    def set_plugins(self, plugins):
        """@plugins: list of (plugin, enabled) where enabled() -> bool."""
        self._plugins = plugins
        self.update()

    def _fit_bins(self):
        self._model.set_n_bins(max(1, self.width() - MARGIN_L - MARGIN_R))

    def resizeEvent(self, ev):
        self._fit_bins()
        super().resizeEvent(ev)

    def _row_base(self, row):
        return MARGIN_T + (row + 1) * ROW_HEIGHT - 5

    def _collect_shapes(self):
        shapes = []
        if self._stream is None:
            return shapes
        for row, pid in enumerate(self._pids):
            graph = Graph(self._model.n_bins, self._row_base(row),
                          GRAPH_HEIGHT, MARGIN_L)
            argv = PlotArgs(self._model, graph, shapes)
            for plugin, enabled in self._plugins:
                if enabled():
                    plugin.draw(argv, self._stream.stream_id, pid, TASK_DRAW)
        return shapes

    def paintEvent(self, _ev):
        p = QPainter(self)
        w, h = self.width(), self.height()
        p.fillRect(0, 0, w, h, BG_COLOR)

        if self._stream is None or not self._pids:
            p.setPen(TEXT_DIM)
            p.setFont(QFont("monospace", 10))
            p.drawText(0, 0, w, h, Qt.AlignCenter, "No trace loaded")
            p.end()
            return

        # Plugins may fix record attribution while drawing, so their shapes
        # are built before the activity that reads it. Shapes are rebuilt on
        # every paint, the plugins own nothing.
        self._shapes = self._collect_shapes()

        model = self._model
        font_sm = QFont("monospace", 8)

        for row, pid in enumerate(self._pids):
            base = self._row_base(row)
            top = base - GRAPH_HEIGHT

            p.fillRect(QRectF(MARGIN_L, top, model.n_bins, GRAPH_HEIGHT),
                       BG_DARKER)
            p.setPen(QPen(GRID_COLOR, 1))
            p.drawLine(MARGIN_L, base, MARGIN_L + model.n_bins, base)

            p.setPen(TEXT_COLOR)
            p.setFont(font_sm)
            p.drawText(0, top, MARGIN_L - 6, GRAPH_HEIGHT,
                       Qt.AlignRight | Qt.AlignVCenter, str(pid))

            # task activity
            col = task_color(pid)
            p.setPen(QPen(col, 1))
            act_top = base - int(GRAPH_HEIGHT * .6)
            for b in model.task_bins(self._stream, pid):
                x = MARGIN_L + b
                p.drawLine(x, act_top, x, base - 1)

        p.setRenderHint(QPainter.Antialiasing)
        for shape in self._shapes:
            shape.draw(p)

        self._draw_marker(p, DualMarkerState.A, MARKER_A_COLOR)
        self._draw_marker(p, DualMarkerState.B, MARKER_B_COLOR)
        p.end()

    def _draw_marker(self, p, state, color):
        rec = self._markers.get(state)
        if rec is None:
            return
        b = self._model.bin_of(rec.ts)
        if not 0 <= b < self._model.n_bins:
            return
        x = MARGIN_L + b
        pen = QPen(color, 1, Qt.DashLine if state is DualMarkerState.B
                   else Qt.SolidLine)
        p.setPen(pen)
        p.drawLine(x, MARGIN_T, x, self.height() - MARGIN_B)
        p.setFont(QFont("monospace", 8, QFont.Bold))
        p.drawText(x + 3, MARGIN_T + 10, state.value)

    def _shape_at(self, x, y):
        best, dist = None, sys.float_info.max
        for shape in self._shapes:
            d = shape.distance(x, y)
            if d < dist:
                best, dist = shape, d
        return best if dist == 0 else None

    def mouseDoubleClickEvent(self, ev):
        shape = self._shape_at(ev.x(), ev.y())
        if shape is not None:
            shape.double_click()

    def mouseMoveEvent(self, ev):
        if self.status_cb is None:
            return
        shape = self._shape_at(ev.x(), ev.y())
        if shape is not None and hasattr(shape, "describe"):
            self.status_cb(shape.describe())
        else:
            self.status_cb("")

# ---------------------------------------------------------------------------
# Main window
# ---------------------------------------------------------------------------

_DARK_STYLE = """
QMainWindow, QWidget { background: #121224; color: #c8c8dc; }
QLabel { color: #c8c8dc; font-family: monospace; }
QPushButton {
    background: #22224a; color: #c8c8dc; border: 1px solid #33336a;
    border-radius: 4px; padding: 6px 14px;
    font-family: monospace; font-weight: bold;
}
QPushButton:hover { background: #33335a; }
QPushButton:pressed { background: #18183a; }
QLineEdit {
    background: #22224a; color: #c8c8dc; border: 1px solid #33336a;
    border-radius: 3px; padding: 3px; font-family: monospace;
}
QCheckBox { color: #c8c8dc; font-family: monospace; spacing: 5px; }
QCheckBox::indicator {
    width: 14px; height: 14px; border: 1px solid #33336a;
    border-radius: 3px; background: #22224a;
}
QCheckBox::indicator:checked { background: #3a7a3a; border-color: #4a9a4a; }
"""


class MainWindow(QMainWindow):
    def __init__(self, extra_plugin_dirs=()):
        super().__init__()
        self.setWindowTitle("schedviz")
        self.setMinimumSize(920, 480)
        self.setStyleSheet(_DARK_STYLE)

        self._markers = MarkerState()
        self._stream = None
        self._next_stream_id = 0

        root = QWidget()
        self.setCentralWidget(root)
        vbox = QVBoxLayout(root)
        vbox.setContentsMargins(10, 10, 10, 10)
        vbox.setSpacing(6)

        # ---- top bar ----
        top = QHBoxLayout()

        self._open_btn = QPushButton("Open\u2026")
        self._open_btn.setFixedWidth(90)
        self._open_btn.clicked.connect(self._open_dialog)
        top.addWidget(self._open_btn)

        top.addSpacing(15)
        top.addWidget(QLabel("Tasks:"))
        self._pid_edit = QLineEdit()
        self._pid_edit.setPlaceholderText("pid, pid, ...")
        self._pid_edit.returnPressed.connect(self._apply_pids)
        top.addWidget(self._pid_edit, 1)

        self._marker_lbl = QLabel("A: --  B: --  \u0394: --")
        self._marker_lbl.setFont(QFont("monospace", 10))
        self._marker_lbl.setAlignment(Qt.AlignRight)
        top.addWidget(self._marker_lbl)

        vbox.addLayout(top)

        # ---- graphs ----
        self._graph = TaskGraphWidget(self._markers)
        self._graph.status_cb = self._set_status
        vbox.addWidget(self._graph, 1)

        # ---- plugin controls ----
        self._plugins = load_plugins(self, extra_plugin_dirs)
        ctrl = QHBoxLayout()
        entries = []
        for name, plugin in self._plugins:
            chk = QCheckBox(name)
            chk.setChecked(True)
            chk.stateChanged.connect(lambda _s: self._graph.update())
            ctrl.addWidget(chk)
            ctrl.addSpacing(15)
            entries.append((plugin, chk.isChecked))
        ctrl.addStretch()

        self._status_lbl = QLabel("")
        self._status_lbl.setFont(QFont("monospace", 9))
        self._status_lbl.setStyleSheet("color: #8888aa;")
        ctrl.addWidget(self._status_lbl)
        vbox.addLayout(ctrl)

        self._graph.set_plugins(entries)

    # ---- trace ----

    def open_trace(self, path, pids=None):
        stream = TraceStream(self._next_stream_id, str(path))
        self._next_stream_id += 1

        # plugins hook into the first pass, so they attach before loading
        for _name, plugin in self._plugins:
            plugin.init(stream)
        try:
            load_file(path, stream)
        except OSError:
            for _name, plugin in self._plugins:
                plugin.close(stream.stream_id)
            raise

        if self._stream is not None:
            for _name, plugin in self._plugins:
                plugin.close(self._stream.stream_id)
        self._stream = stream
        self._markers.clear()
        self._update_marker_lbl()

        if not pids:
            cnt = Counter(r.pid for r in stream if r.pid)
            pids = sorted(pid for pid, _n in cnt.most_common(DEFAULT_TASKS))
        self._pid_edit.setText(", ".join(str(pid) for pid in pids))
        self.setWindowTitle(f"schedviz - {path}")

        self._graph.set_stream(stream)
        self._graph.set_pids(pids)

    def _open_dialog(self):
        path, _ = QFileDialog.getOpenFileName(
            self, "Open trace", "", "Text traces (*.txt *.dat *);;All (*)")
        if not path:
            return
        try:
            self.open_trace(path)
        except OSError as e:
            QMessageBox.warning(self, "schedviz", f"Cannot open {path}: {e}")

    def _apply_pids(self):
        pids = []
        for tok in self._pid_edit.text().replace(",", " ").split():
            try:
                pids.append(int(tok))
            except ValueError:
                logger.debug("ignoring task id %r", tok)
        self._graph.set_pids(pids)

    # ---- markers ----

    def mark_entry(self, record, state):
        """Put marker @state on @record. Called by the plugins."""
        self._markers.mark_entry(record, state)
        self._update_marker_lbl()
        self._graph.update()

    def _update_marker_lbl(self):
        def fmt(rec):
            return f"{rec.ts / 1e9:.6f}" if rec is not None else "--"

        a = self._markers.get(DualMarkerState.A)
        b = self._markers.get(DualMarkerState.B)
        d = self._markers.delta_ns()
        dt = f"{d / 1000:.3f}\u00b5s" if d is not None else "--"
        self._marker_lbl.setText(f"A: {fmt(a)}  B: {fmt(b)}  \u0394: {dt}")

    def _set_status(self, text):
        self._status_lbl.setText(text)

# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _parse_args(argv=None):
    ap = argparse.ArgumentParser(
        prog="schedviz",
        description="Plot wake-up latency and preemption of traced tasks.")
    ap.add_argument("trace", nargs="?",
                    help="ftrace / trace-cmd report text file")
    ap.add_argument("-p", "--pid", type=int, action="append", default=[],
                    help="task to plot (repeatable)")
    ap.add_argument("--plugin-dir", action="append", default=[],
                    help="extra directory with plugin *.py files")
    ap.add_argument("-v", "--verbose", action="count", default=0)
    return ap.parse_args(argv)


def plugin_dirs(args):
    dirs = list(args.plugin_dir)
    env = os.environ.get(PLUGIN_PATH_ENV, "")
    dirs.extend(d for d in env.split(os.pathsep) if d)
    return dirs


def main(argv=None):
    args = _parse_args(argv)
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = QApplication(sys.argv[:1])
    app.setStyle("Fusion")
    win = MainWindow(plugin_dirs(args))
    if args.trace:
        try:
            win.open_trace(args.trace, args.pid)
        except OSError as e:
            logger.error("Cannot open %s: %s", args.trace, e)
            sys.exit(1)
    win.show()
    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
