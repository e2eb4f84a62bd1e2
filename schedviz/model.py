# SPDX-License-Identifier: GPL-2.0
"""Visualization model: time to bin mapping and per-task graph geometry."""

from PyQt5.QtCore import QPointF

from .trace import GRAPH_VIEW_FILTER_MASK

DEFAULT_N_BINS = 1024


class VisModel:
    """Splits [min_ts, max_ts] into n_bins equal time bins."""

    def __init__(self, n_bins=DEFAULT_N_BINS, min_ts=0, max_ts=0):
        self.n_bins = max(1, n_bins)
        self.min_ts = min_ts
        self.max_ts = max_ts
        self.bin_size = 1
        self._update()

    def _update(self):
        span = max(0, self.max_ts - self.min_ts) + 1
        # ceil division, so that max_ts lands in the last bin
        self.bin_size = max(1, -(-span // self.n_bins))

    def set_range(self, min_ts, max_ts):
        if max_ts < min_ts:
            min_ts, max_ts = max_ts, min_ts
        self.min_ts = min_ts
        self.max_ts = max_ts
        self._update()

    def set_n_bins(self, n_bins):
        self.n_bins = max(1, n_bins)
        self._update()

    def fit(self, stream):
        """Show the whole stream."""
        self.set_range(stream.min_ts, stream.max_ts)

    def bin_of(self, ts):
        """Bin holding @ts. Can be < 0 or >= n_bins when @ts is off screen."""
        return (ts - self.min_ts) // self.bin_size

    def task_bins(self, stream, pid):
        """Bins in which task @pid has at least one visible record."""
        bins = set()
        for r in stream:
            if r.pid != pid or not r.visible & GRAPH_VIEW_FILTER_MASK:
                continue
            b = self.bin_of(r.ts)
            if 0 <= b < self.n_bins:
                bins.add(b)
        return bins


class Bin:
    __slots__ = ("base",)

    def __init__(self, base):
        self.base = base


class Graph:
    """Row of one task on screen. One bin is one pixel column."""

    def __init__(self, n_bins, base, height, h_margin=0):
        self.n_bins = n_bins
        self.base = base
        self.height = height
        self.h_margin = h_margin

    def bin(self, i):
        return Bin(QPointF(self.h_margin + i, self.base))
