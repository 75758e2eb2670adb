"""Import hook expanding the debug constructs of selected packages.

Modules are expanded when they are imported, so the value of their flag at
that moment is baked into their code. Bytecode caches are bypassed for them:
the same source compiles differently depending on the flags.
"""

from __future__ import annotations

import ast
import contextlib
import importlib.abc
import importlib.machinery
import importlib.util
import sys
import types
from typing import TYPE_CHECKING

from .constants import DIAGNOSTICS_GLOBAL
from .expander import expand_tree
from .flags import FlagRegistry, get_registry
from .logging_setup import get_logger
from .runtime import Diagnostics

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from .models import ExpansionReport

__all__ = [
    "DebugFinder",
    "DebugLoader",
    "compile_source",
    "expand_source",
    "install",
    "installed",
    "load_source",
    "uninstall",
]


def expand_source(
    source: str | bytes,
    filename: str = "<string>",
    scope: str = "__main__",
    registry: FlagRegistry | None = None,
    standalone: bool = False,
) -> tuple[ast.Module, ExpansionReport]:
    """Parse and expand a module source.

    Args:
        source: Module source code
        filename: Used in error messages
        scope: Dotted name of the module
        registry: Flags and selectors (process-wide registry if None)
        standalone: Make the result importable without the loader's help

    Returns:
        The expanded AST and the expansion report
    """
    tree = ast.parse(source, filename)
    report = expand_tree(tree, scope, registry or get_registry(), filename, standalone=standalone)
    return tree, report


def compile_source(
    source: str | bytes,
    filename: str = "<string>",
    scope: str = "__main__",
    registry: FlagRegistry | None = None,
) -> types.CodeType:
    """Expand and compile a module source.

    The code expects `__dbgmacro__` in its globals when a call site is enabled.
    """
    tree, _ = expand_source(source, filename, scope, registry)
    return compile(tree, filename, "exec", dont_inherit=True)


def load_source(
    source: str | bytes,
    module_name: str,
    registry: FlagRegistry | None = None,
    filename: str | None = None,
) -> types.ModuleType:
    """Expand, compile and execute a module source.

    The module is not added to `sys.modules`.
    """
    filename = filename or f"<{module_name}>"
    module = types.ModuleType(module_name)
    module.__file__ = filename
    code = compile_source(source, filename, module_name, registry)
    module.__dict__[DIAGNOSTICS_GLOBAL] = Diagnostics(registry)
    exec(code, module.__dict__)  # noqa: S102
    return module


class DebugLoader(importlib.machinery.SourceFileLoader):
    """Source loader expanding the debug constructs before compiling."""

    def __init__(self, fullname: str, path: str, registry: FlagRegistry | None = None) -> None:
        super().__init__(fullname, path)
        self.registry = registry

    def get_code(self, fullname: str) -> types.CodeType:
        source_path = self.get_filename(fullname)
        source = importlib.util.decode_source(self.get_data(source_path))
        tree, report = expand_source(source, source_path, fullname, self.registry)
        get_logger("importer").info("Expanded %s", report.summary())
        return compile(tree, source_path, "exec", dont_inherit=True)

    def exec_module(self, module: types.ModuleType) -> None:
        module.__dict__[DIAGNOSTICS_GLOBAL] = Diagnostics(self.registry)
        super().exec_module(module)


class DebugFinder(importlib.abc.MetaPathFinder):
    """Route the source modules of some packages through `DebugLoader`."""

    def __init__(self, prefixes: Sequence[str], registry: FlagRegistry | None = None) -> None:
        self.prefixes = tuple(prefixes)
        self.registry = registry

    def matches(self, fullname: str) -> bool:
        """Tell if `fullname` is one of the packages, or inside one."""
        return any(fullname == prefix or fullname.startswith(prefix + ".") for prefix in self.prefixes)

    def find_spec(
        self,
        fullname: str,
        path: Sequence[str] | None,
        target: types.ModuleType | None = None,
    ) -> importlib.machinery.ModuleSpec | None:
        if not self.matches(fullname):
            return None
        spec = importlib.machinery.PathFinder.find_spec(fullname, path, target)
        if spec is None or not isinstance(spec.loader, importlib.machinery.SourceFileLoader):
            return None
        spec.loader = DebugLoader(fullname, spec.loader.path, self.registry)
        return spec

    def __repr__(self) -> str:
        return f"DebugFinder({', '.join(self.prefixes)})"


def install(*prefixes: str, registry: FlagRegistry | None = None) -> DebugFinder:
    """Expand the debug constructs of the given packages when they get imported.

    Modules imported before this call keep their code. A finder installed
    earlier for the same packages is replaced.

    Args:
        *prefixes: Dotted package or module names
        registry: Flags and selectors (process-wide registry if None)

    Returns:
        The finder put in front of `sys.meta_path`
    """
    finder = DebugFinder(prefixes, registry)
    for previous in [f for f in sys.meta_path if isinstance(f, DebugFinder) and f.prefixes == finder.prefixes]:
        uninstall(previous)
    sys.meta_path.insert(0, finder)
    get_logger("importer").info("Expanding imports of %s", ", ".join(prefixes))
    return finder


def uninstall(finder: DebugFinder | None = None) -> None:
    """Remove `finder`, or every DebugFinder, from `sys.meta_path`."""
    sys.meta_path[:] = [f for f in sys.meta_path if not (f is finder or (finder is None and isinstance(f, DebugFinder)))]


@contextlib.contextmanager
def installed(*prefixes: str, registry: FlagRegistry | None = None) -> Iterator[DebugFinder]:
    """Install a finder for the duration of the block."""
    finder = install(*prefixes, registry=registry)
    try:
        yield finder
    finally:
        uninstall(finder)
