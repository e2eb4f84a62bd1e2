# SPDX-License-Identifier: GPL-2.0
"""Field containers: trace records of one event paired with an int field."""

# ---------------------------------------------------------------------------
# Packed sched_switch field
# ---------------------------------------------------------------------------
#
# The low 56 bits hold the pid of the task switched out, the top byte holds
# its prev_state.

PREV_STATE_SHIFT = 56
PREV_STATE_MASK = (1 << 8) - 1
PID_MASK = (1 << PREV_STATE_SHIFT) - 1


def sched_set_pid(field, pid):
    return (field & ~PID_MASK) | (pid & PID_MASK)


def sched_get_pid(field):
    return field & PID_MASK


def sched_set_prev_state(field, prev_state):
    return (field & PID_MASK) | ((prev_state & PREV_STATE_MASK) << PREV_STATE_SHIFT)


def sched_get_prev_state(field):
    return (field >> PREV_STATE_SHIFT) & PREV_STATE_MASK


def sched_pack(pid, prev_state):
    return sched_set_prev_state(sched_set_pid(0, pid), prev_state)

# ---------------------------------------------------------------------------
# Container
# ---------------------------------------------------------------------------


class FieldEntry:
    __slots__ = ("entry", "field")

    def __init__(self, entry, field):
        self.entry = entry
        self.field = field

    def __repr__(self):
        return f"FieldEntry({self.entry!r}, {self.field:#x})"


class FieldContainer:
    """Ordered list of FieldEntry objects for one event kind."""

    def __init__(self):
        self.data = []
        self.sorted = True

    def __len__(self):
        return len(self.data)

    def __getitem__(self, i):
        return self.data[i]

    def __iter__(self):
        return iter(self.data)

    def append(self, entry, field):
        if self.data and entry.ts < self.data[-1].entry.ts:
            self.sorted = False
        self.data.append(FieldEntry(entry, field))

    def sort(self):
        if not self.sorted:
            self.data.sort(key=lambda f: f.entry.ts)
            self.sorted = True

    def timestamps(self):
        return [f.entry.ts for f in self.data]
