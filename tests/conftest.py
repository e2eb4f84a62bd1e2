import pytest

from schedviz.model import Graph, VisModel
from schedviz.plot import PlotArgs
from schedviz.plugins.sched_events import SchedEventsPlugin
from schedviz.trace import TraceRecord, TraceStream


class FakeGui:
    """Records mark_entry calls in order."""

    def __init__(self):
        self.marks = []

    def mark_entry(self, record, state):
        self.marks.append((record, state))


def rec(ts, task, event, **fields):
    """A record run by @task; keyword arguments become event fields."""
    return TraceRecord(ts=ts, cpu=0, pid=task, event_name=event, fields=fields)


def switch(ts, prev_pid, next_pid, prev_state="R"):
    return rec(ts, prev_pid, "sched_switch", prev_pid=prev_pid,
               next_pid=next_pid, prev_state=prev_state)


def waking(ts, waker, woken):
    return rec(ts, waker, "sched_waking", pid=woken)


def printk(ts, pid):
    return rec(ts, pid, "printk")


def build(plugin, records, stream_id=0):
    stream = TraceStream(stream_id)
    ctx = plugin.init(stream)
    for r in records:
        stream.append(r)
    return stream, ctx


def plot_args(n_bins=100, min_ts=0, max_ts=99):
    model = VisModel(n_bins, min_ts, max_ts)
    graph = Graph(n_bins, base=60, height=50, h_margin=10)
    return PlotArgs(model, graph)


@pytest.fixture
def gui():
    return FakeGui()


@pytest.fixture
def plugin(gui):
    return SchedEventsPlugin(gui)
