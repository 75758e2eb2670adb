"""Shared constants for dbgmacro."""

from pathlib import Path

__all__ = [
    "CONFIG_ENV",
    "CONFIG_FILE",
    "CONFIG_SECTION",
    "DEFAULT_FLAG",
    "DIAGNOSTICS_GLOBAL",
    "FLAG_ENV",
    "MACRO_NAMES",
    "PACKAGE_NAME",
    "PYPROJECT_FILE",
    "SELECTOR_CONSTANT",
    "UNEXPANDED_FORM",
    "VERBOSE_ENV",
]

PACKAGE_NAME = "dbgmacro"

# The shared global flag every scope consults unless told otherwise
DEFAULT_FLAG = "dbg_flag"

# Module-level string constant naming the flag a module consults
SELECTOR_CONSTANT = "__dbg_flag__"

# Module global holding the Diagnostics object used by expanded code
DIAGNOSTICS_GLOBAL = "__dbgmacro__"

MACRO_NAMES = frozenset({"dbg_msg", "dbg_form", "dbg_value"})

# Form text logged by dbg_form when the call site was never expanded
UNEXPANDED_FORM = "<unexpanded>"

# Environment
FLAG_ENV = "DBGMACRO_FLAG"
VERBOSE_ENV = "DBGMACRO_VERBOSE"
CONFIG_ENV = "DBGMACRO_CONFIG"

# Config files, looked up in the working directory
CONFIG_FILE = Path("dbgmacro.toml")
PYPROJECT_FILE = Path("pyproject.toml")
CONFIG_SECTION = "dbgmacro"
