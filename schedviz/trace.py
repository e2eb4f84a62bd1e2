# SPDX-License-Identifier: GPL-2.0
"""
Trace record stream.

Records live in one append-only list owned by the TraceStream. The "next"
record of an entry is simply the one at index + 1; nothing else links
records together.

Only two parties write to a stream: the loader (append) and the plugins,
which may rewrite a record's pid and clear its PLUGIN_UNTOUCHED_MASK bit.
All of this happens on the GUI thread, there is no locking.
"""

# ---------------------------------------------------------------------------
# Visibility bits
# ---------------------------------------------------------------------------

GRAPH_VIEW_FILTER_MASK = 1 << 1
PLUGIN_UNTOUCHED_MASK = 1 << 7

VISIBLE_ALL = 0xFF


class TraceRecord:
    """One trace event."""

    __slots__ = ("index", "ts", "cpu", "pid", "comm", "event_id",
                 "event_name", "info", "fields", "visible")

    def __init__(self, ts, cpu, pid, event_name, comm="", info="",
                 fields=None):
        self.index = -1
        self.ts = ts
        self.cpu = cpu
        self.pid = pid
        self.comm = comm
        self.event_id = -1
        self.event_name = event_name
        self.info = info
        self.fields = fields if fields is not None else {}
        self.visible = VISIBLE_ALL

    def __repr__(self):
        return (f"TraceRecord(#{self.index} ts={self.ts} cpu={self.cpu} "
                f"pid={self.pid} {self.event_name})")


class TraceStream:
    """Time-ordered records of one trace, plus its event id table."""

    def __init__(self, stream_id=0, name=""):
        self.stream_id = stream_id
        self.name = name
        self.records = []
        self._event_ids = {}
        self._handlers = {}

    def __len__(self):
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    def __getitem__(self, i):
        return self.records[i]

    # ---- event ids ----

    def event_id(self, name):
        """Return the id of event @name, allocating one if needed."""
        eid = self._event_ids.get(name)
        if eid is None:
            eid = len(self._event_ids)
            self._event_ids[name] = eid
        return eid

    def find_event_id(self, name):
        return self._event_ids.get(name, -1)

    # ---- first pass handlers ----

    def add_event_handler(self, event_id, func):
        self._handlers.setdefault(event_id, []).append(func)

    def remove_event_handler(self, event_id, func):
        funcs = self._handlers.get(event_id)
        if funcs and func in funcs:
            funcs.remove(func)

    # ---- records ----

    def append(self, rec):
        """Append @rec and run the handlers registered for its event."""
        if self.records and rec.ts < self.records[-1].ts:
            raise ValueError(
                f"record at {rec.ts} appended after {self.records[-1].ts}")
        rec.index = len(self.records)
        rec.event_id = self.event_id(rec.event_name)
        self.records.append(rec)
        for func in self._handlers.get(rec.event_id, ()):
            func(self, rec)
        return rec

    def next_record(self, rec):
        i = rec.index + 1
        if 0 < i < len(self.records):
            return self.records[i]
        return None

    @property
    def min_ts(self):
        return self.records[0].ts if self.records else 0

    @property
    def max_ts(self):
        return self.records[-1].ts if self.records else 0
