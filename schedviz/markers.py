# SPDX-License-Identifier: GPL-2.0
"""Dual marker (A/B) used to measure the time between two records."""

from enum import Enum


class DualMarkerState(Enum):
    A = "A"
    B = "B"


class MarkerState:
    def __init__(self):
        self._marks = {DualMarkerState.A: None, DualMarkerState.B: None}
        self.active = DualMarkerState.A

    def mark_entry(self, record, state):
        self._marks[state] = record
        self.active = state

    def get(self, state):
        return self._marks[state]

    def delta_ns(self):
        """B - A in nanoseconds, None unless both markers are set."""
        a = self._marks[DualMarkerState.A]
        b = self._marks[DualMarkerState.B]
        if a is None or b is None:
            return None
        return b.ts - a.ts

    def clear(self):
        for state in self._marks:
            self._marks[state] = None
        self.active = DualMarkerState.A
