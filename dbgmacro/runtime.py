"""What expanded code calls, and the run-time fallbacks of the debug constructs."""

import sys
from typing import Any, TypeVar

from .constants import DIAGNOSTICS_GLOBAL, UNEXPANDED_FORM
from .flags import FlagRegistry, get_registry

__all__ = [
    "DIAGNOSTICS",
    "Diagnostics",
    "dbg_form",
    "dbg_msg",
    "dbg_value",
]

T = TypeVar("T")


class Diagnostics:
    """Emitters bound to a registry, injected as `__dbgmacro__` in expanded modules."""

    def __init__(self, registry: FlagRegistry | None = None) -> None:
        self._registry = registry

    @property
    def registry(self) -> FlagRegistry:
        """Return the bound registry, or the process-wide one."""
        return self._registry or get_registry()

    def message(self, fmt: str, *args: Any) -> None:  # noqa: ANN401
        """Emit `fmt % args`."""
        self.registry.emit(fmt, *args)

    def form(self, text: str, value: T) -> T:
        """Emit `text => repr(value)` and return `value`."""
        self.registry.emit("%s => %r", text, value)
        return value

    def value(self, value: Any) -> None:  # noqa: ANN401
        """Emit `repr(value)`."""
        self.registry.emit("%r", value)


DIAGNOSTICS = Diagnostics()


def _caller_diagnostics() -> Diagnostics | None:
    """Return the caller's emitters if its scope is enabled, else None.

    The caller is the frame calling one of the fallbacks below.
    """
    namespace = sys._getframe(2).f_globals  # noqa: SLF001
    diagnostics = namespace.get(DIAGNOSTICS_GLOBAL)
    if not isinstance(diagnostics, Diagnostics):
        diagnostics = DIAGNOSTICS
    registry = diagnostics.registry
    scope = namespace.get("__name__") or ""
    if registry.resolve(scope, registry.selector_for(scope, namespace)):
        return diagnostics
    return None


# Fallbacks, used only when the calling module was not expanded: the flag is
# checked on every call instead of once at compile time.


def dbg_msg(fmt: str, *args: Any) -> None:  # noqa: ANN401
    """Emit `fmt % args` if the caller's flag is on."""
    diagnostics = _caller_diagnostics()
    if diagnostics:
        diagnostics.message(fmt, *args)


def dbg_form(value: T) -> T:
    """Return `value`, emitting it first if the caller's flag is on.

    The source text isn't available at run time, `<unexpanded>` stands for it.
    """
    diagnostics = _caller_diagnostics()
    if diagnostics:
        return diagnostics.form(UNEXPANDED_FORM, value)
    return value


def dbg_value(value: Any) -> None:  # noqa: ANN401
    """Emit `repr(value)` if the caller's flag is on."""
    diagnostics = _caller_diagnostics()
    if diagnostics:
        diagnostics.value(value)
