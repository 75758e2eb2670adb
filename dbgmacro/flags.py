"""Debug flags and flag selectors.

A registry holds named boolean flags and, per scope (a dotted module name),
the name of the flag that scope consults. Scopes without a selector of
their own inherit the one of their closest parent package, and fall back to
the shared global flag.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from typing import Any

from .config import coerce_to_bool
from .constants import DEFAULT_FLAG, FLAG_ENV, SELECTOR_CONSTANT
from .logging_setup import LoggerSink, get_logger
from .models import UnknownFlagError

__all__ = [
    "DiagnosticSink",
    "FlagRegistry",
    "define_flag",
    "get_flag",
    "get_registry",
    "select_flag",
    "set_flag",
    "set_sink",
]

DiagnosticSink = Callable[..., None]


class FlagRegistry:
    """Named debug flags and the selectors pointing at them."""

    def __init__(
        self,
        default_flag: str = DEFAULT_FLAG,
        default_value: bool = False,
        strict: bool = True,
        sink: DiagnosticSink | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            default_flag: Name of the shared global flag
            default_value: Initial value of the shared global flag
            strict: Raise on selectors naming undefined flags (else treat them as off)
            sink: Callable receiving `(fmt, *args)` for each diagnostic line
        """
        self.default_flag = default_flag
        self.strict = strict
        self._flags: dict[str, bool] = {default_flag: default_value}
        self._selectors: dict[str, str] = {}
        self._sink = sink
        self.log = get_logger("flags")

    @property
    def flags(self) -> dict[str, bool]:
        """Return a copy of the defined flags."""
        return dict(self._flags)

    @property
    def selectors(self) -> dict[str, str]:
        """Return a copy of the scope selectors."""
        return dict(self._selectors)

    @property
    def sink(self) -> DiagnosticSink:
        """Return the diagnostic sink, creating the logging one on first use."""
        if self._sink is None:
            self._sink = LoggerSink()
        return self._sink

    @sink.setter
    def sink(self, sink: DiagnosticSink | None) -> None:
        self._sink = sink

    def define(self, name: str, value: bool = False) -> None:
        """Define a flag unless it already exists."""
        self._flags.setdefault(name, bool(value))

    def set(self, name: str, value: bool) -> None:
        """Set a flag, defining it if needed."""
        self._flags[name] = bool(value)
        self.log.debug("flag %s = %s", name, self._flags[name])

    def undefine(self, name: str) -> None:
        """Remove a flag. Selectors pointing at it become dangling."""
        self._flags.pop(name, None)

    def is_defined(self, name: str) -> bool:
        """Tell if a flag exists."""
        return name in self._flags

    def get(self, name: str, scope: str = "") -> bool:
        """Return the value of a flag.

        Raises:
            UnknownFlagError: the flag is not defined
        """
        try:
            return self._flags[name]
        except KeyError:
            raise UnknownFlagError(name, scope) from None

    def select(self, scope: str, flag: str) -> None:
        """Make `scope` and its sub-modules consult `flag`."""
        self._selectors[scope] = flag

    def unselect(self, scope: str) -> None:
        """Drop the selector of `scope`, it inherits again."""
        self._selectors.pop(scope, None)

    def selector_for(self, scope: str, namespace: Mapping[str, Any] | None = None) -> str:
        """Return the name of the flag consulted by `scope`.

        Args:
            scope: Dotted module name
            namespace: Module globals, checked for a `__dbg_flag__` constant first
        """
        if namespace is not None:
            own = namespace.get(SELECTOR_CONSTANT)
            if isinstance(own, str) and own:
                return own
        parts = scope.split(".") if scope else []
        while parts:
            selected = self._selectors.get(".".join(parts))
            if selected:
                return selected
            parts.pop()
        return self.default_flag

    def resolve(self, scope: str, flag: str | None = None) -> bool:
        """Return the value of the flag consulted by `scope`.

        Args:
            scope: Dotted module name
            flag: Already resolved selector, skips the selector lookup

        Raises:
            UnknownFlagError: in strict mode, if the selected flag is not defined
        """
        if flag is None:
            flag = self.selector_for(scope)
        if flag in self._flags:
            return self._flags[flag]
        if self.strict:
            raise UnknownFlagError(flag, scope)
        self.log.warning("Scope %s selects undefined flag %s, treating it as off", scope or "<global>", flag)
        return False

    def emit(self, fmt: str, *args: Any) -> None:  # noqa: ANN401
        """Write one diagnostic line to the sink."""
        self.sink(fmt, *args)

    def clear(self) -> None:
        """Forget every flag and selector but the global flag, which is turned off."""
        self._flags = {self.default_flag: False}
        self._selectors.clear()


class _RegistryState:
    """Container for the process-wide registry to avoid global statement."""

    value: FlagRegistry | None = None


_registry_state = _RegistryState()


def get_registry() -> FlagRegistry:
    """Return the process-wide registry.

    Created on first use, its global flag starts from the `DBGMACRO_FLAG`
    environment variable.
    """
    if _registry_state.value is None:
        _registry_state.value = FlagRegistry(default_value=coerce_to_bool(os.environ.get(FLAG_ENV)))
    return _registry_state.value


def define_flag(name: str, value: bool = False) -> None:
    """Define a flag in the process-wide registry unless it exists."""
    get_registry().define(name, value)


def set_flag(name: str = DEFAULT_FLAG, value: bool = True) -> None:
    """Set a flag in the process-wide registry."""
    get_registry().set(name, value)


def get_flag(name: str = DEFAULT_FLAG) -> bool:
    """Return a flag of the process-wide registry."""
    return get_registry().get(name)


def select_flag(scope: str, flag: str) -> None:
    """Make `scope` consult `flag` in the process-wide registry."""
    get_registry().select(scope, flag)


def set_sink(sink: DiagnosticSink | None) -> None:
    """Replace the diagnostic sink of the process-wide registry (None restores logging)."""
    get_registry().sink = sink
