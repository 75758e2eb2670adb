" generic fixtures "
import logging
import sys

import pytest

from dbgmacro import flags
from dbgmacro.flags import FlagRegistry
from dbgmacro.importer import uninstall


def pytest_configure():
    "Runs once before all"
    from dbgmacro.logging_setup import init_logger

    init_logger("/dev/null", force_debug=True)


class ListSink:
    "Collects diagnostic lines, formatted the way logging does"

    def __init__(self):
        self.lines = []

    def __call__(self, fmt, *args):
        self.lines.append(fmt % args if args else fmt)


@pytest.fixture
def sink():
    return ListSink()


@pytest.fixture
def registry(sink):
    "A fresh registry writing to `sink`, global flag off"
    return FlagRegistry(sink=sink)


@pytest.fixture
def process_registry(monkeypatch, sink):
    "Replaces the process-wide registry for the duration of the test"
    fresh = FlagRegistry(sink=sink)
    monkeypatch.setattr(flags._registry_state, "value", fresh)
    return fresh


@pytest.fixture
def test_logger():
    logger = logging.getLogger("dbgmacro-tests")
    logger.addHandler(logging.NullHandler())
    logger.propagate = False
    return logger


@pytest.fixture
def make_package(tmp_path, monkeypatch):
    "Writes a package on disk, importable for the duration of the test"
    created = []

    def _make(name, modules):
        root = tmp_path / name
        root.mkdir()
        (root / "__init__.py").write_text(modules.pop("__init__", ""))
        for module_name, source in modules.items():
            (root / f"{module_name}.py").write_text(source)
        created.append(name)
        return root

    monkeypatch.syspath_prepend(str(tmp_path))
    yield _make
    uninstall()
    for name in list(sys.modules):
        if any(name == pkg or name.startswith(pkg + ".") for pkg in created):
            del sys.modules[name]
