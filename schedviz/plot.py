# SPDX-License-Identifier: GPL-2.0
"""
Interval plotting engine shared by the plugins.

A plugin hands over two field containers and a predicate for each side.
Every applicable entry of the first container opens an interval which is
closed by the first applicable entry of the second container that is not
earlier in time. One shape is built per interval.
"""

import logging
from bisect import bisect_left

logger = logging.getLogger(__name__)

# Draw action bits passed to the plugins' draw functions.
TASK_DRAW = 1 << 0
CPU_DRAW = 1 << 1


class PlotArgs:
    """What a plugin needs to draw into one graph."""

    def __init__(self, model, graph, shapes=None):
        self.model = model
        self.graph = graph
        self.shapes = shapes if shapes is not None else []


def event_field_interval_plot(argv, pid, data_a, check_a, data_b, check_b,
                              make_shape, col, size):
    """Append one shape per (open, close) pair of task @pid to argv.shapes.

    @check_a / @check_b are called as check(container, index, pid).
    Intervals never overlap: an open entry that falls before the close of
    the previous interval is skipped.
    """
    if not len(data_a) or not len(data_b):
        return

    data_a.sort()
    data_b.sort()
    ts_b = data_b.timestamps()
    model = argv.model
    last_bin = model.n_bins - 1

    n = 0
    close_ts = None
    for i in range(len(data_a)):
        if not check_a(data_a, i, pid):
            continue

        a = data_a[i]
        if close_ts is not None and a.entry.ts < close_ts:
            continue

        j = bisect_left(ts_b, a.entry.ts)
        while j < len(data_b):
            if data_b[j].entry is not a.entry and check_b(data_b, j, pid):
                break
            j += 1
        else:
            break

        b = data_b[j]
        close_ts = b.entry.ts

        b0 = model.bin_of(a.entry.ts)
        b1 = model.bin_of(b.entry.ts)
        if b1 < 0 or b0 > last_bin:
            continue

        shape = make_shape([argv.graph], [max(b0, 0), min(b1, last_bin)],
                           [a, b], col, size)
        argv.shapes.append(shape)
        n += 1

    logger.debug("pid %d: %d intervals", pid, n)
