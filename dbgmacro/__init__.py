"""dbgmacro - debug logging constructs resolved when a module is compiled.

`dbg_msg`, `dbg_form` and `dbg_value` either log through a diagnostic sink or
vanish from the compiled code, depending on the debug flag the module
consults at import time. Modules get this treatment through the import hook
(`install`, or the `packages` setting); elsewhere the constructs fall back to
checking the flag on every call.
"""

from .config_loader import ConfigLoader, apply_config, setup
from .flags import FlagRegistry, define_flag, get_flag, get_registry, select_flag, set_flag, set_sink
from .importer import compile_source, expand_source, install, installed, load_source, uninstall
from .models import CallSite, ConfigError, DbgMacroError, ExpansionReport, MacroUsageError, UnknownFlagError
from .runtime import Diagnostics, dbg_form, dbg_msg, dbg_value

__all__ = [
    "CallSite",
    "ConfigError",
    "ConfigLoader",
    "DbgMacroError",
    "Diagnostics",
    "ExpansionReport",
    "FlagRegistry",
    "MacroUsageError",
    "UnknownFlagError",
    "apply_config",
    "compile_source",
    "dbg_form",
    "dbg_msg",
    "dbg_value",
    "define_flag",
    "expand_source",
    "get_flag",
    "get_registry",
    "install",
    "installed",
    "load_source",
    "select_flag",
    "set_flag",
    "set_sink",
    "setup",
    "uninstall",
]
