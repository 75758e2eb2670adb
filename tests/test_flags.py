import pytest

from dbgmacro import flags
from dbgmacro.flags import FlagRegistry, define_flag, get_flag, get_registry, select_flag, set_flag, set_sink
from dbgmacro.logging_setup import LoggerSink
from dbgmacro.models import UnknownFlagError


def test_global_flag_defaults_to_off():
    registry = FlagRegistry()
    assert registry.flags == {"dbg_flag": False}
    assert registry.get("dbg_flag") is False
    assert registry.resolve("any.module") is False


def test_define_does_not_reset(registry):
    registry.define("verbose_io", True)
    registry.define("verbose_io", False)
    assert registry.get("verbose_io") is True


def test_set_defines_and_coerces(registry):
    registry.set("net", 1)
    assert registry.get("net") is True
    registry.set("net", "")
    assert registry.get("net") is False


def test_get_unknown_flag(registry):
    with pytest.raises(UnknownFlagError) as excinfo:
        registry.get("nope")
    assert isinstance(excinfo.value, LookupError)
    assert excinfo.value.flag == "nope"


def test_undefine(registry):
    registry.set("temp", True)
    registry.undefine("temp")
    assert not registry.is_defined("temp")
    registry.undefine("temp")


def test_selector_lookup(registry):
    registry.select("app", "app_flag")
    registry.select("app.db", "db_flag")
    assert registry.selector_for("app") == "app_flag"
    assert registry.selector_for("app.web.views") == "app_flag"
    assert registry.selector_for("app.db") == "db_flag"
    assert registry.selector_for("app.db.models") == "db_flag"
    assert registry.selector_for("application") == "dbg_flag"
    assert registry.selector_for("") == "dbg_flag"


def test_selector_namespace_constant(registry):
    registry.select("app", "app_flag")
    assert registry.selector_for("app.x", {"__dbg_flag__": "own"}) == "own"
    assert registry.selector_for("app.x", {"__dbg_flag__": ""}) == "app_flag"
    assert registry.selector_for("app.x", {"__dbg_flag__": 3}) == "app_flag"
    assert registry.selector_for("app.x", {}) == "app_flag"


def test_unselect(registry):
    registry.select("app.db", "db_flag")
    registry.unselect("app.db")
    registry.unselect("app.db")
    assert registry.selector_for("app.db") == "dbg_flag"
    assert registry.selectors == {}


def test_resolve_follows_selector(registry):
    registry.set("db_flag", True)
    registry.select("app.db", "db_flag")
    assert registry.resolve("app.db.models") is True
    assert registry.resolve("app.web") is False
    assert registry.resolve("app.web", flag="db_flag") is True


def test_resolve_strict(registry):
    registry.select("app", "ghost")
    with pytest.raises(UnknownFlagError) as excinfo:
        registry.resolve("app.core")
    assert excinfo.value.scope == "app.core"
    assert "ghost" in str(excinfo.value)
    assert "app.core" in str(excinfo.value)


def test_resolve_lenient(registry):
    registry.strict = False
    registry.select("app", "ghost")
    assert registry.resolve("app.core") is False


def test_custom_global_flag():
    registry = FlagRegistry(default_flag="trace", default_value=True)
    assert registry.selector_for("x") == "trace"
    assert registry.resolve("x") is True


def test_emit_goes_to_sink(registry, sink):
    registry.emit("a=%s b=%s", 1, "two")
    registry.emit("plain")
    assert sink.lines == ["a=1 b=two", "plain"]


def test_default_sink_is_logging():
    registry = FlagRegistry()
    assert isinstance(registry.sink, LoggerSink)
    assert registry.sink is registry.sink


def test_clear(registry):
    registry.set("dbg_flag", True)
    registry.set("other", True)
    registry.select("app", "other")
    registry.clear()
    assert registry.flags == {"dbg_flag": False}
    assert registry.selectors == {}


@pytest.mark.parametrize(("env", "expected"), [(None, False), ("1", True), ("yes", True), ("off", False), ("", False)])
def test_process_registry_reads_environment(monkeypatch, env, expected):
    monkeypatch.setattr(flags._registry_state, "value", None)
    if env is None:
        monkeypatch.delenv("DBGMACRO_FLAG", raising=False)
    else:
        monkeypatch.setenv("DBGMACRO_FLAG", env)
    assert get_registry().get("dbg_flag") is expected
    assert get_registry() is get_registry()


def test_module_helpers(process_registry, sink):
    define_flag("io")
    assert get_flag("io") is False
    set_flag("io")
    assert get_flag("io") is True
    set_flag(value=True)
    assert get_flag() is True
    select_flag("app", "io")
    assert process_registry.selector_for("app.files") == "io"

    other = []
    set_sink(lambda fmt, *args: other.append(fmt % args))
    process_registry.emit("x=%d", 1)
    assert other == ["x=1"]
    assert sink.lines == []
