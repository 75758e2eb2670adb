import sys

import pytest

from dbgmacro.config import Configuration, coerce_to_bool
from dbgmacro.config_loader import ConfigLoader, apply_config, setup
from dbgmacro.importer import DebugFinder
from dbgmacro.models import ConfigError
from dbgmacro.validation import CONFIG_SCHEMA, ConfigField, ConfigValidator, _find_similar_key, format_config_error

GOOD_CONFIG = """
[dbgmacro]
enabled = true
packages = ["myapp"]

[dbgmacro.flags]
db = false
net = "yes"

[dbgmacro.scopes]
"myapp.db" = "db"
"myapp.net" = "net"
"""


@pytest.fixture
def in_tmp(tmp_path, monkeypatch):
    "Runs from an empty directory, without DBGMACRO_CONFIG"
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DBGMACRO_CONFIG", raising=False)
    return tmp_path


def test_config_access(test_logger):
    conf = Configuration({"a": 1, "b": "test"}, logger=test_logger)
    assert conf["a"] == 1
    assert conf.get("b") == "test"
    assert conf.get("c", 3) == 3


def test_get_bool(test_logger):
    conf = Configuration(
        {
            "t1": True,
            "t2": "true",
            "t3": "yes",
            "t4": "on",
            "t5": "1",
            "f1": False,
            "f2": "false",
            "f3": "no",
            "f4": "off",
            "f5": "0",
            "invalid": "foo",
            "empty": "",
        },
        logger=test_logger,
    )

    for key in ("t1", "t2", "t3", "t4", "t5"):
        assert conf.get_bool(key) is True
    for key in ("f1", "f2", "f3", "f4", "f5"):
        assert conf.get_bool(key) is False

    # Non-empty unrecognized strings are truthy (blacklist approach)
    assert conf.get_bool("invalid") is True
    assert conf.get_bool("empty") is False

    assert conf.get_bool("missing", default=True) is True
    assert conf.get_bool("missing", default=False) is False


def test_coerce_to_bool():
    assert coerce_to_bool(None) is False
    assert coerce_to_bool(None, default=True) is True
    assert coerce_to_bool("  ") is False
    assert coerce_to_bool(" Disabled ") is False
    assert coerce_to_bool(2) is True


def test_typed_accessors(test_logger):
    conf = Configuration({"one": "x", "many": ["a", "b"], "num": 3, "table": {"k": 1}, "bad_table": 5}, logger=test_logger)
    assert conf.get_str("num") == "3"
    assert conf.get_str("missing", "default") == "default"
    assert conf.get_list("one") == ["x"]
    assert conf.get_list("many") == ["a", "b"]
    assert conf.get_list("missing") == []
    assert conf.get_table("table") == {"k": 1}
    assert conf.get_table("bad_table") == {}
    assert conf.get_table("missing") == {}


def test_derived_settings(test_logger):
    conf = Configuration({}, logger=test_logger)
    assert conf.flag == "dbg_flag"
    assert conf.strict is True
    assert conf.color is None

    conf = Configuration({"flag": "trace", "on_unknown_flag": "off", "color": "no"}, logger=test_logger)
    assert conf.flag == "trace"
    assert conf.strict is False
    assert conf.color is False


# Config Validation Tests


def test_config_field_defaults():
    field = ConfigField("test")
    assert field.name == "test"
    assert field.field_type is str
    assert field.choices is None
    assert field.validator is None
    assert ConfigField("x", list).type_name == "list"


def test_find_similar_key():
    known_keys = [field.name for field in CONFIG_SCHEMA]
    assert _find_similar_key("enabeld", known_keys) == "enabled"
    assert _find_similar_key("package", known_keys) == "packages"
    assert _find_similar_key("scope", known_keys) == "scopes"
    assert _find_similar_key("xyz", known_keys) is None


def test_format_config_error():
    msg = format_config_error("dbgmacro", "enabled", "Expected bool")
    assert msg == "[dbgmacro] Config error for 'enabled': Expected bool"
    assert format_config_error("dbgmacro", "enabled", "Expected bool", "Use true").endswith(" -> Use true")


def test_validate_good_config(test_logger):
    config = {"enabled": "on", "packages": ["a.b"], "flags": {"x": True}, "scopes": {"a.b": "x"}, "on_unknown_flag": "off"}
    validator = ConfigValidator(config, logger=test_logger)
    assert validator.validate() == []
    assert validator.warn_unknown_keys() == []


@pytest.mark.parametrize(
    ("config", "expected"),
    [
        ({"enabled": 3}, "Expected bool"),
        ({"enabled": "maybe"}, "Expected bool"),
        ({"flag": 1}, "Expected str"),
        ({"packages": "myapp"}, "Expected list"),
        ({"packages": ["my-app"]}, "not a dotted module name"),
        ({"flags": []}, "Expected dict"),
        ({"flags": {"x": 3}}, "must be true or false"),
        ({"flags": {"not valid": True}}, "not an identifier"),
        ({"scopes": {"app": 3}}, "must name a flag"),
        ({"scopes": {"app/x": "f"}}, "not a dotted module name"),
        ({"on_unknown_flag": "ignore"}, "Valid options: 'error', 'off'"),
    ],
)
def test_validate_errors(test_logger, config, expected):
    errors = ConfigValidator(config, logger=test_logger).validate()
    assert len(errors) == 1
    assert expected in errors[0]
    assert errors[0].startswith("[dbgmacro]")


def test_unknown_keys(test_logger):
    warnings = ConfigValidator({"enable": True, "frobnicate": 1}, logger=test_logger).warn_unknown_keys()
    assert warnings == [
        "[dbgmacro] Unknown option 'enable' (did you mean 'enabled'?)",
        "[dbgmacro] Unknown option 'frobnicate' - will be ignored",
    ]


# Loading


def test_load_explicit_file(in_tmp, test_logger):
    (in_tmp / "custom.toml").write_text(GOOD_CONFIG)
    loader = ConfigLoader(test_logger)
    config = loader.load(str(in_tmp / "custom.toml"))
    assert config.get_bool("enabled") is True
    assert config.get_list("packages") == ["myapp"]
    assert loader.source == in_tmp / "custom.toml"


def test_load_from_environment(in_tmp, monkeypatch, test_logger):
    (in_tmp / "env.toml").write_text(GOOD_CONFIG)
    monkeypatch.setenv("DBGMACRO_CONFIG", str(in_tmp / "env.toml"))
    assert ConfigLoader(test_logger).load().get_table("scopes") == {"myapp.db": "db", "myapp.net": "net"}


def test_load_default_file(in_tmp, test_logger):
    (in_tmp / "dbgmacro.toml").write_text(GOOD_CONFIG)
    (in_tmp / "pyproject.toml").write_text('[tool.dbgmacro]\nenabled = false\n')
    assert ConfigLoader(test_logger).load().get_bool("enabled") is True


def test_load_pyproject(in_tmp, test_logger):
    (in_tmp / "pyproject.toml").write_text('[project]\nname = "x"\n\n[tool.dbgmacro]\nflag = "trace"\n')
    config = ConfigLoader(test_logger).load()
    assert config.flag == "trace"


def test_load_nothing(in_tmp, test_logger):
    (in_tmp / "pyproject.toml").write_text('[project]\nname = "x"\n')
    loader = ConfigLoader(test_logger)
    assert loader.load() == {}
    assert loader.source is None


def test_missing_explicit_file(in_tmp, test_logger):
    with pytest.raises(ConfigError, match="not found"):
        ConfigLoader(test_logger).load(str(in_tmp / "nope.toml"))


def test_syntax_error(in_tmp, test_logger):
    (in_tmp / "dbgmacro.toml").write_text("[dbgmacro\nenabled = true\n")
    with pytest.raises(ConfigError, match="Problem reading"):
        ConfigLoader(test_logger).load()


def test_section_not_a_table(in_tmp, test_logger):
    (in_tmp / "dbgmacro.toml").write_text('dbgmacro = "on"\n')
    with pytest.raises(ConfigError, match="must be a table"):
        ConfigLoader(test_logger).load()


def test_invalid_config_lists_every_error(in_tmp, test_logger):
    (in_tmp / "dbgmacro.toml").write_text('[dbgmacro]\nenabled = 2\npackages = "x"\nenabeld = true\n')
    loader = ConfigLoader(test_logger)
    with pytest.raises(ConfigError) as excinfo:
        loader.load()
    assert len(excinfo.value.errors) == 2
    assert "dbgmacro.toml" in str(excinfo.value)
    assert loader.warnings == ["[dbgmacro] Unknown option 'enabeld' (did you mean 'enabled'?)"]


# Applying


def test_apply_config(registry, test_logger):
    config = Configuration(
        {"enabled": True, "flags": {"db": False, "net": "yes"}, "scopes": {"myapp.db": "db"}, "on_unknown_flag": "off"},
        logger=test_logger,
    )
    assert apply_config(config, registry) is registry
    assert registry.flags == {"dbg_flag": True, "db": False, "net": True}
    assert registry.selectors == {"myapp.db": "db"}
    assert registry.strict is False
    assert registry.resolve("myapp.db.models") is False
    assert registry.resolve("myapp.web") is True


def test_apply_config_custom_global_flag(registry, test_logger):
    apply_config(Configuration({"flag": "trace"}, logger=test_logger), registry)
    assert registry.default_flag == "trace"
    assert registry.get("trace") is False
    assert registry.selector_for("anything") == "trace"


def test_apply_config_keeps_flags_set_in_code(registry, test_logger):
    registry.set("dbg_flag", True)
    apply_config(Configuration({}, logger=test_logger), registry)
    assert registry.get("dbg_flag") is True


def test_apply_config_installs_hook(registry, test_logger):
    config = Configuration({"packages": ["myapp", "tools"]}, logger=test_logger)
    apply_config(config, registry, install_hook=False)
    assert not any(isinstance(f, DebugFinder) for f in sys.meta_path)

    apply_config(config, registry)
    finder = sys.meta_path[0]
    sys.meta_path.remove(finder)
    assert isinstance(finder, DebugFinder)
    assert finder.prefixes == ("myapp", "tools")
    assert finder.registry is registry


def test_setup_twice_keeps_one_finder(in_tmp, registry):
    (in_tmp / "dbgmacro.toml").write_text(GOOD_CONFIG)
    setup(registry=registry)
    setup(registry=registry)
    finders = [f for f in sys.meta_path if isinstance(f, DebugFinder)]
    for finder in finders:
        sys.meta_path.remove(finder)
    assert len(finders) == 1
    assert finders[0].prefixes == ("myapp",)


def test_setup(in_tmp, registry):
    (in_tmp / "dbgmacro.toml").write_text(GOOD_CONFIG)
    config = setup(registry=registry, install_hook=False)
    assert config.get_list("packages") == ["myapp"]
    assert registry.resolve("myapp.net") is True
    assert registry.resolve("myapp.db") is False
