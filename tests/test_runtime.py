"""Tests for the emitters and the unexpanded fallbacks."""

from dbgmacro import dbg_form, dbg_msg, dbg_value
from dbgmacro.runtime import DIAGNOSTICS, Diagnostics

UNEXPANDED = """
from dbgmacro import dbg_msg, dbg_form, dbg_value

def run():
    dbg_msg("n=%d", 3)
    dbg_value("v")
    return dbg_form(7)
"""


def test_diagnostics_emitters(registry, sink):
    diagnostics = Diagnostics(registry)
    assert diagnostics.registry is registry
    assert diagnostics.message("x=%s", 1) is None
    assert diagnostics.form("a.b", {"k": 1}) == {"k": 1}
    assert diagnostics.value((1, 2)) is None
    assert sink.lines == ["x=1", "a.b => {'k': 1}", "(1, 2)"]


def test_shared_diagnostics_follow_process_registry(process_registry):
    assert DIAGNOSTICS.registry is process_registry


def test_fallbacks_off(process_registry, sink):
    assert dbg_msg("x=%s", 1) is None
    assert dbg_form(3) == 3
    assert dbg_value(4) is None
    assert sink.lines == []


def test_fallbacks_on(process_registry, sink):
    process_registry.set("dbg_flag", True)
    dbg_msg("x=%s", 1)
    assert dbg_form(3) == 3
    dbg_value([4])
    assert sink.lines == ["x=1", "<unexpanded> => 3", "[4]"]


def test_fallbacks_check_on_every_call(process_registry, sink):
    dbg_msg("first")
    process_registry.set("dbg_flag", True)
    dbg_msg("second")
    assert sink.lines == ["second"]


def test_fallbacks_use_caller_scope(process_registry, sink):
    process_registry.set("plain_flag", True)
    process_registry.select("plain", "plain_flag")
    namespace = {"__name__": "plain.module"}
    exec(compile(UNEXPANDED, "<plain>", "exec"), namespace)
    assert namespace["run"]() == 7
    assert sink.lines == ["n=3", "'v'", "<unexpanded> => 7"]


def test_fallbacks_use_caller_constant(process_registry, sink):
    process_registry.set("own", True)
    namespace = {"__name__": "elsewhere", "__dbg_flag__": "own"}
    exec(compile(UNEXPANDED, "<plain>", "exec"), namespace)
    namespace["run"]()
    assert len(sink.lines) == 3


def test_fallbacks_use_injected_registry(process_registry, registry, sink):
    """A module carrying its own Diagnostics resolves against that registry."""
    registry.set("dbg_flag", True)
    namespace = {"__name__": "injected", "__dbgmacro__": Diagnostics(registry)}
    exec(compile(UNEXPANDED, "<plain>", "exec"), namespace)
    namespace["run"]()
    assert len(sink.lines) == 3
