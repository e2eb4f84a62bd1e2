# SPDX-License-Identifier: GPL-2.0
"""
ftrace text loader.

Reads the output of /sys/kernel/tracing/trace or "trace-cmd report":

    bash-1234  [002] d..2.  5123.456789: sched_switch: prev_comm=bash ...

The scheduler events printed by trace-cmd without key=value pairs are
mapped to the ftrace field names. One TraceRecord per event line is
appended to a TraceStream.
"""

import logging
import re

from .trace import TraceRecord

logger = logging.getLogger(__name__)

_LINE_RE = re.compile(
    r"^\s*(?P<comm>.+?)-(?P<pid>\d+)\s+"
    r"(?:\(\s*[-\d]+\)\s+)?"           # tgid column
    r"\[(?P<cpu>\d+)\]\s+"
    r"(?:[^\s:]+\s+)?"                 # irqs-off / need-resched / preempt
    r"(?P<sec>\d+)\.(?P<frac>\d+):\s+"
    r"(?P<event>\w+):\s*(?P<info>.*)$")

_FIELD_RE = re.compile(r"(\w+)=(\S*)")

# trace-cmd report prints the sched events through libtraceevent's sched
# plugin, without key=value pairs:
#   app:5 [120] R+ ==> kworker/1:1:42 [120]
#   app:5 [120] Success CPU:001
_TC_SWITCH_RE = re.compile(
    r"^(?P<prev_comm>.+):(?P<prev_pid>\d+) \[(?P<prev_prio>-?\d+)\] "
    r"(?P<prev_state>\S+) ==> "
    r"(?P<next_comm>.+):(?P<next_pid>\d+) \[(?P<next_prio>-?\d+)\]")
_TC_WAKEUP_RE = re.compile(
    r"^(?P<comm>.+):(?P<pid>\d+) \[(?P<prio>-?\d+)\]"
    r"(?: (?P<success>Success|Failed))? CPU:(?P<target_cpu>\d+)")

_TC_FORMATS = {
    "sched_switch": _TC_SWITCH_RE,
    "sched_wakeup": _TC_WAKEUP_RE,
    "sched_wakeup_new": _TC_WAKEUP_RE,
    "sched_waking": _TC_WAKEUP_RE,
}

# Task state letters as printed by the sched_switch event.
_STATE_BITS = {
    "S": 0x01,
    "D": 0x02,
    "T": 0x04,
    "t": 0x08,
    "X": 0x10,
    "Z": 0x20,
    "P": 0x40,
    "I": 0x80,
}


def parse_prev_state(text):
    """Convert a prev_state value ("R+", "S", "D|K", 1, ...) to a bitmask."""
    if isinstance(text, int):
        return text
    text = text.strip()
    try:
        return int(text, 0)
    except ValueError:
        pass
    state = 0
    for part in text.split("|"):
        for ch in part:
            state |= _STATE_BITS.get(ch, 0)
    return state


def _field_value(raw):
    try:
        return int(raw)
    except ValueError:
        return raw


def _trace_cmd_fields(event, info):
    regex = _TC_FORMATS.get(event)
    m = regex.match(info) if regex is not None else None
    if m is None:
        return None
    fields = {}
    for k, v in m.groupdict().items():
        if v is None:
            continue
        if k == "success":
            fields[k] = int(v == "Success")
        elif k.endswith("comm") or k == "prev_state":
            fields[k] = v
        else:
            fields[k] = int(v)
    return fields


def parse_fields(info, event=None):
    """Event fields of @info, in either the ftrace or the trace-cmd form."""
    if event is not None:
        fields = _trace_cmd_fields(event, info)
        if fields is not None:
            return fields
    return {k: _field_value(v) for k, v in _FIELD_RE.findall(info)}


def parse_line(line):
    """Return a TraceRecord for an event line, None for anything else."""
    if not line.strip() or line.lstrip().startswith("#"):
        return None
    m = _LINE_RE.match(line.rstrip("\n"))
    if m is None:
        return None
    ts = int(m.group("sec")) * 1_000_000_000 + \
        int(m.group("frac").ljust(9, "0")[:9])
    info = m.group("info")
    return TraceRecord(ts=ts,
                       cpu=int(m.group("cpu")),
                       pid=int(m.group("pid")),
                       event_name=m.group("event"),
                       comm=m.group("comm").strip(),
                       info=info,
                       fields=parse_fields(info, m.group("event")))


def load_lines(lines, stream):
    """Parse @lines into @stream. Returns the number of records appended."""
    recs = []
    skipped = 0
    for n, line in enumerate(lines, 1):
        rec = parse_line(line)
        if rec is None:
            if line.strip() and not line.lstrip().startswith("#"):
                skipped += 1
                logger.debug("line %d: not an event, skipped", n)
            continue
        recs.append(rec)

    # ftrace output is already merged, but per-cpu buffers can overlap at
    # the edges; list.sort is stable so equal timestamps keep file order.
    recs.sort(key=lambda r: r.ts)
    for rec in recs:
        stream.append(rec)

    logger.debug("%d records loaded, %d lines skipped", len(recs), skipped)
    return len(recs)


def load_file(path, stream):
    with open(path, encoding="utf-8", errors="replace") as f:
        n = load_lines(f, stream)
    stream.name = stream.name or str(path)
    logger.info("Loaded %d records from %s", n, path)
    return n
