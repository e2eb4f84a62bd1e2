# SPDX-License-Identifier: GPL-2.0
"""
Sched events plugin.

Plots in green the wake-up latency of a task (sched_waking -> sched_switch
to the task) and in red the time the task was preempted by another task
(sched_switch away from a runnable task -> sched_switch back to it).
Double clicking a box puts marker B on its closing record and marker A on
its opening record.
"""

import logging
import sys
from enum import Enum
from functools import partial

from PyQt5.QtCore import QPointF, Qt
from PyQt5.QtGui import QBrush, QColor, QPen, QPolygonF

from schedviz.fields import (
    FieldContainer, sched_get_pid, sched_get_prev_state, sched_pack,
)
from schedviz.loader import parse_prev_state
from schedviz.markers import DualMarkerState
from schedviz.plot import TASK_DRAW, event_field_interval_plot
from schedviz.trace import PLUGIN_UNTOUCHED_MASK

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

WAKE_COLOR = (0, 255, 0)
PREEMPT_COLOR = (255, 0, 0)

DEFAULT_SIZE = -1
DEFAULT_LINE_WIDTH = 1.0
BOX_HEIGHT_RATIO = .3

# prev_state bits that mean the task went to sleep rather than being preempted
PREV_STATE_SLEEP_MASK = 0x7f


class IntervalKind(Enum):
    WAKE_LATENCY = "wake"
    PREEMPTION = "preempt"

# ---------------------------------------------------------------------------
# Per-stream context
# ---------------------------------------------------------------------------


class SchedContext:
    """Plugin data of one trace stream."""

    def __init__(self, stream):
        self.stream = stream
        self.ss_data = FieldContainer()
        self.waking_data = FieldContainer()
        self.wakeup_data = FieldContainer()
        self.second_pass_done = False

        self.sched_switch_id = stream.event_id("sched_switch")
        self.sched_waking_id = stream.event_id("sched_waking")
        self.sched_wakeup_id = stream.event_id("sched_wakeup")

    @property
    def sw_data(self):
        # sched_waking is preferred, sched_wakeup is for older kernels
        if len(self.waking_data):
            return self.waking_data
        return self.wakeup_data

    def register(self):
        s = self.stream
        s.add_event_handler(self.sched_switch_id, self.on_switch)
        s.add_event_handler(self.sched_waking_id, self.on_wakeup)
        s.add_event_handler(self.sched_wakeup_id, self.on_wakeup)

    def unregister(self):
        s = self.stream
        s.remove_event_handler(self.sched_switch_id, self.on_switch)
        s.remove_event_handler(self.sched_waking_id, self.on_wakeup)
        s.remove_event_handler(self.sched_wakeup_id, self.on_wakeup)

    # ---- first pass ----

    def on_switch(self, stream, rec):
        """Store prev pid/state and make the record belong to next_pid."""
        next_pid = rec.fields.get("next_pid")
        if not isinstance(next_pid, int) or next_pid < 0:
            return
        prev_state = parse_prev_state(rec.fields.get("prev_state", 0))
        self.ss_data.append(rec, sched_pack(rec.pid, prev_state))
        rec.pid = next_pid

    def on_wakeup(self, stream, rec):
        pid = rec.fields.get("pid")
        if not isinstance(pid, int) or rec.fields.get("success", 1) == 0:
            return
        if rec.event_id == self.sched_waking_id:
            self.waking_data.append(rec, pid)
        else:
            self.wakeup_data.append(rec, pid)

# ---------------------------------------------------------------------------
# Second pass
# ---------------------------------------------------------------------------


def second_pass(ctx):
    """Give the last record trailing a sched_switch to the incoming task.

    The first pass sets the pid of every sched_switch record to next_pid,
    so that the graph of the outgoing task ends at the switch. Records the
    outgoing task emits right after the switch (printk for example) still
    carry its pid and would extend its graph. The last record of such a
    trailing run is moved to the incoming task and loses its
    PLUGIN_UNTOUCHED_MASK bit.
    """
    stream = ctx.stream
    fixed = 0
    for f in ctx.ss_data:
        pid_rec = sched_get_pid(f.field)
        e = f.entry
        nxt = stream.next_record(e)
        if nxt is None or e.pid == 0 or \
           nxt.event_id == e.event_id or nxt.pid != pid_rec:
            continue

        # Find the very last trailing record.
        while nxt is not None and nxt.pid == pid_rec:
            e, nxt = nxt, stream.next_record(nxt)

        # Ends at a record fixed earlier: this run was already handled.
        if nxt is not None and not nxt.visible & PLUGIN_UNTOUCHED_MASK:
            continue

        e.pid = f.entry.pid
        e.visible &= ~PLUGIN_UNTOUCHED_MASK
        fixed += 1

    logger.debug("stream %d: %d trailing records fixed", stream.stream_id, fixed)

# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def check_wake_field(d, i, pid):
    return d[i].field == pid


def check_switch_field(d, i, pid):
    return not sched_get_prev_state(d[i].field) & PREV_STATE_SLEEP_MASK and \
        sched_get_pid(d[i].field) == pid


def check_entry_pid(d, i, pid):
    return d[i].entry.pid == pid

# ---------------------------------------------------------------------------
# Shape
# ---------------------------------------------------------------------------


class LatencyBox:
    """Outlined box between the opening and the closing record of an interval."""

    def __init__(self, kind, data, gui=None):
        self.kind = kind
        self.data = data
        self.gui = gui
        self.points = [QPointF() for _ in range(4)]
        self.color = QColor(*WAKE_COLOR)
        self.size = DEFAULT_SIZE
        self.fill = False

    def set_point(self, i, x, y):
        self.points[i] = QPointF(x, y)

    def point_x(self, i):
        return self.points[i].x()

    def point_y(self, i):
        return self.points[i].y()

    def distance(self, x, y):
        """Zero if (x, y) is inside the box, otherwise infinity."""
        if x < self.point_x(0) or x > self.point_x(2):
            return sys.float_info.max

        if y < self.point_y(0) or y > self.point_y(1):
            return sys.float_info.max

        return 0

    def double_click(self):
        if self.gui is None:
            return
        self.gui.mark_entry(self.data[1].entry, DualMarkerState.B)
        self.gui.mark_entry(self.data[0].entry, DualMarkerState.A)

    def duration_ns(self):
        return self.data[1].entry.ts - self.data[0].entry.ts

    def describe(self):
        us = self.duration_ns() / 1000
        if self.kind is IntervalKind.WAKE_LATENCY:
            return f"Wake-up latency: {us:.3f}\u00b5s"
        if self.kind is IntervalKind.PREEMPTION:
            return f"Preempted: {us:.3f}\u00b5s"
        return f"{us:.3f}\u00b5s"

    def draw(self, p):
        pen = QPen(self.color)
        pen.setWidthF(self.size if self.size > 0 else DEFAULT_LINE_WIDTH)
        p.setPen(pen)
        p.setBrush(QBrush(self.color) if self.fill else Qt.NoBrush)
        p.drawPolygon(QPolygonF(self.points))


def make_shape(graph, bins, data, col, size, kind=IntervalKind.WAKE_LATENCY,
               gui=None):
    box = LatencyBox(kind, data, gui)

    p0 = graph[0].bin(bins[0]).base
    p1 = graph[0].bin(bins[1]).base
    height = int(graph[0].height * BOX_HEIGHT_RATIO)

    box.fill = False
    box.set_point(0, p0.x() - 1, p0.y() - height)
    box.set_point(1, p0.x() - 1, p0.y() - 1)

    box.set_point(3, p1.x() - 1, p1.y() - height)
    box.set_point(2, p1.x() - 1, p1.y() - 1)

    box.size = size
    box.color = QColor(*col)
    return box

# ---------------------------------------------------------------------------
# Plugin
# ---------------------------------------------------------------------------


class SchedEventsPlugin:
    name = "sched_events"

    def __init__(self, gui):
        # Set once at load time, only read afterwards.
        self.gui = gui
        self._contexts = {}

    def init(self, stream):
        """Attach to @stream. Must be called before its records are loaded."""
        ctx = self._contexts.get(stream.stream_id)
        if ctx is None:
            ctx = SchedContext(stream)
            ctx.register()
            self._contexts[stream.stream_id] = ctx
        return ctx

    def close(self, stream_id):
        ctx = self._contexts.pop(stream_id, None)
        if ctx is not None:
            ctx.unregister()

    def context(self, stream_id):
        return self._contexts.get(stream_id)

    def draw(self, argv, stream_id, pid, draw_action):
        if not draw_action & TASK_DRAW or pid == 0:
            return

        ctx = self.context(stream_id)
        if ctx is None:
            return

        if not ctx.second_pass_done:
            second_pass(ctx)
            ctx.second_pass_done = True

        event_field_interval_plot(
            argv, pid,
            ctx.sw_data, check_wake_field,
            ctx.ss_data, check_entry_pid,
            partial(make_shape, kind=IntervalKind.WAKE_LATENCY, gui=self.gui),
            WAKE_COLOR,
            DEFAULT_SIZE)

        event_field_interval_plot(
            argv, pid,
            ctx.ss_data, check_switch_field,
            ctx.ss_data, check_entry_pid,
            partial(make_shape, kind=IntervalKind.PREEMPTION, gui=self.gui),
            PREEMPT_COLOR,
            DEFAULT_SIZE)


def setup(gui):
    """Called by the main window when the plugin is loaded."""
    return SchedEventsPlugin(gui)
