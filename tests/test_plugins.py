"""
Tests for plugin discovery and the command line.
"""

import logging
import os

from schedviz.gui import PLUGIN_PATH_ENV, _parse_args, plugin_dirs
from schedviz.plugins import load_plugins
from schedviz.plugins.sched_events import SchedEventsPlugin

from conftest import FakeGui

GOOD_PLUGIN = '''
class Plugin:
    name = "dummy"

    def __init__(self, gui):
        self.gui = gui

    def init(self, stream):
        pass

    def close(self, stream_id):
        pass

    def draw(self, argv, stream_id, pid, draw_action):
        pass


def setup(gui):
    return Plugin(gui)
'''


def test_builtin_plugins():
    gui = FakeGui()

    plugins = dict(load_plugins(gui))

    assert isinstance(plugins["sched_events"], SchedEventsPlugin)
    assert plugins["sched_events"].gui is gui


def test_plugin_directory(tmp_path, caplog):
    (tmp_path / "dummy.py").write_text(GOOD_PLUGIN)
    (tmp_path / "no_setup.py").write_text("X = 1\n")
    (tmp_path / "broken.py").write_text("raise RuntimeError('boom')\n")
    (tmp_path / "bad_setup.py").write_text(
        "def setup(gui):\n    raise ValueError('no')\n")
    (tmp_path / "_private.py").write_text(GOOD_PLUGIN)
    gui = FakeGui()

    with caplog.at_level(logging.WARNING, logger="schedviz.plugins"):
        plugins = load_plugins(gui, [tmp_path])

    names = [n for n, _p in plugins]
    assert names == ["sched_events", "dummy"]
    assert plugins[1][1].gui is gui
    assert "no_setup" in caplog.text
    assert "broken" in caplog.text
    assert "bad_setup" in caplog.text


def test_missing_plugin_directory(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="schedviz.plugins"):
        plugins = load_plugins(FakeGui(), [tmp_path / "missing"])

    assert [n for n, _p in plugins] == ["sched_events"]
    assert "does not exist" in caplog.text


def test_cli_args(monkeypatch):
    monkeypatch.setenv(PLUGIN_PATH_ENV, os.pathsep.join(["/a", "/b"]))
    args = _parse_args(["t.txt", "-p", "5", "--pid", "7",
                        "--plugin-dir", "/x", "-vv"])

    assert args.trace == "t.txt"
    assert args.pid == [5, 7]
    assert args.verbose == 2
    assert plugin_dirs(args) == ["/x", "/a", "/b"]


def test_cli_defaults(monkeypatch):
    monkeypatch.delenv(PLUGIN_PATH_ENV, raising=False)
    args = _parse_args([])

    assert args.trace is None
    assert args.pid == []
    assert plugin_dirs(args) == []
