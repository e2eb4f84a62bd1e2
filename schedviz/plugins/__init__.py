# SPDX-License-Identifier: GPL-2.0
"""
Plugin discovery.

A plugin is a Python module with a setup(gui) function returning an object
that has init(stream), close(stream_id) and
draw(argv, stream_id, pid, draw_action). The built-in plugins live in this
package; more can be dropped as *.py files into extra plugin directories.
"""

import importlib
import importlib.util
import logging
import pkgutil
from pathlib import Path

logger = logging.getLogger(__name__)


def _builtin_modules():
    for info in pkgutil.iter_modules(__path__):
        yield info.name, lambda n=info.name: importlib.import_module(
            f"{__name__}.{n}")


def _dir_modules(path):
    for f in sorted(Path(path).glob("*.py")):
        if f.name.startswith("_"):
            continue

        def _load(f=f):
            spec = importlib.util.spec_from_file_location(
                f"schedviz_plugin_{f.stem.replace('.', '_').replace('-', '_')}",
                f)
            mod = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(mod)
            return mod

        yield f.stem, _load


def load_plugins(gui, extra_dirs=()):
    """Return a list of (name, plugin) for every plugin that set up fine."""
    sources = list(_builtin_modules())
    for d in extra_dirs:
        if not Path(d).is_dir():
            logger.warning("Plugin directory %s does not exist", d)
            continue
        sources.extend(_dir_modules(d))

    plugins = []
    for name, load in sources:
        try:
            mod = load()
        except Exception as e:
            logger.warning("Plugin %s failed to import: %s", name, e)
            logger.debug("import failure", exc_info=True)
            continue

        setup = getattr(mod, "setup", None)
        if setup is None:
            logger.warning("Plugin %s has no setup(), skipped", name)
            continue

        try:
            plugin = setup(gui)
        except Exception as e:
            logger.warning("Plugin %s setup failed: %s", name, e)
            logger.debug("setup failure", exc_info=True)
            continue

        plugins.append((getattr(plugin, "name", name), plugin))
        logger.info("Loaded plugin %s", name)
    return plugins
