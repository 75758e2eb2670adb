"""Compile-time expansion of the debug constructs.

`dbg_msg`, `dbg_form` and `dbg_value` calls are rewritten in the module AST
before it is compiled. The flag consulted by the module is read once per call
site, during the rewrite:

====================  ===============================  ======================
call                  flag on                          flag off
====================  ===============================  ======================
dbg_msg(fmt, *args)   __dbgmacro__.message(fmt, ...)   removed (None / pass)
dbg_form(expr)        __dbgmacro__.form("expr", expr)  expr
dbg_value(expr)       __dbgmacro__.value(expr)         removed (None / pass)
====================  ===============================  ======================

A disabled site leaves no call behind and none of its arguments is evaluated,
except the expression wrapped by `dbg_form`, which always is. Calls through a
name that an enclosing function, class body, lambda or comprehension rebinds
are left alone.
"""

from __future__ import annotations

import ast
import contextlib
from typing import TYPE_CHECKING

from .constants import DIAGNOSTICS_GLOBAL, MACRO_NAMES, PACKAGE_NAME, SELECTOR_CONSTANT
from .logging_setup import get_logger
from .models import CallSite, ExpansionReport, MacroUsageError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .flags import FlagRegistry

__all__ = ["DebugExpander", "expand_tree", "module_selector"]

_RUNTIME_MODULES = frozenset({PACKAGE_NAME, f"{PACKAGE_NAME}.runtime"})

_EMITTERS = {
    "dbg_msg": "message",
    "dbg_form": "form",
    "dbg_value": "value",
}


def module_selector(tree: ast.Module, filename: str = "<unknown>") -> str | None:
    """Return the flag named by a top-level `__dbg_flag__ = "name"`, if any.

    Raises:
        MacroUsageError: `__dbg_flag__` is assigned something else than a string literal
    """
    selector = None
    for stmt in tree.body:
        if isinstance(stmt, ast.Assign):
            targets = stmt.targets
        elif isinstance(stmt, ast.AnnAssign) and stmt.value is not None:
            targets = [stmt.target]
        else:
            continue
        if not any(isinstance(t, ast.Name) and t.id == SELECTOR_CONSTANT for t in targets):
            continue
        value = stmt.value
        if not (isinstance(value, ast.Constant) and isinstance(value.value, str) and value.value):
            msg = f"{SELECTOR_CONSTANT} must be assigned a non-empty string literal"
            raise MacroUsageError(msg, filename, stmt.lineno)
        selector = value.value
    return selector


class _ImportedNames(ast.NodeVisitor):
    """Collect the local names bound to the debug constructs and to the package."""

    def __init__(self) -> None:
        self.functions: dict[str, str] = {}
        self.modules: set[str] = set()

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        if node.level == 0 and node.module in _RUNTIME_MODULES:
            for alias in node.names:
                if alias.name in MACRO_NAMES:
                    self.functions[alias.asname or alias.name] = alias.name

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            if alias.name == PACKAGE_NAME:
                self.modules.add(alias.asname or alias.name)


class _BoundNames(ast.NodeVisitor):
    """Collect the names bound by a function or class body, without entering nested scopes."""

    def __init__(self) -> None:
        self.names: set[str] = set()
        self._declared: set[str] = set()

    @classmethod
    def of(cls, body: list[ast.stmt], arguments: ast.arguments | None = None) -> set[str]:
        collector = cls()
        if arguments is not None:
            collector.names.update(_argument_names(arguments))
        for stmt in body:
            collector.visit(stmt)
        return collector.names - collector._declared

    def visit_Name(self, node: ast.Name) -> None:
        if isinstance(node.ctx, ast.Store | ast.Del):
            self.names.add(node.id)

    def visit_FunctionDef(self, node: ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef) -> None:
        self.names.add(node.name)

    visit_AsyncFunctionDef = visit_ClassDef = visit_FunctionDef

    def visit_Lambda(self, node: ast.expr) -> None:
        pass

    visit_ListComp = visit_SetComp = visit_DictComp = visit_GeneratorExp = visit_Lambda

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.name:
            self.names.add(node.name)
        self.generic_visit(node)

    def visit_Import(self, node: ast.Import | ast.ImportFrom) -> None:
        for alias in node.names:
            if isinstance(node, ast.ImportFrom) and node.level == 0 and node.module in _RUNTIME_MODULES and alias.name in MACRO_NAMES:
                continue
            if isinstance(node, ast.Import) and alias.name == PACKAGE_NAME:
                continue
            self.names.add(alias.asname or alias.name.partition(".")[0])

    visit_ImportFrom = visit_Import

    def visit_Global(self, node: ast.Global | ast.Nonlocal) -> None:
        self._declared.update(node.names)

    visit_Nonlocal = visit_Global

    def visit_MatchAs(self, node: ast.MatchAs | ast.MatchStar) -> None:
        if node.name:
            self.names.add(node.name)
        self.generic_visit(node)

    visit_MatchStar = visit_MatchAs

    def visit_MatchMapping(self, node: ast.MatchMapping) -> None:
        if node.rest:
            self.names.add(node.rest)
        self.generic_visit(node)


def _argument_names(arguments: ast.arguments) -> list[str]:
    params = [*arguments.posonlyargs, *arguments.args, *arguments.kwonlyargs]
    params.extend(arg for arg in (arguments.vararg, arguments.kwarg) if arg is not None)
    return [arg.arg for arg in params]


def _target_names(targets: list[ast.expr]) -> set[str]:
    return {node.id for target in targets for node in ast.walk(target) if isinstance(node, ast.Name)}


class DebugExpander(ast.NodeTransformer):
    """Rewrite the debug constructs of one module."""

    def __init__(
        self,
        registry: FlagRegistry,
        scope: str,
        filename: str = "<unknown>",
        selector: str | None = None,
    ) -> None:
        """Initialize the expander.

        Args:
            registry: Flags and selectors to resolve call sites against
            scope: Dotted name of the module being expanded
            filename: Used in error messages
            selector: Flag named by the module itself, wins over the registry
        """
        self.registry = registry
        self.scope = scope
        self.filename = filename
        self.selector = selector
        self.report = ExpansionReport(scope, filename)
        self._names = _ImportedNames()
        self._dropped: set[int] = set()
        self._scopes: list[tuple[bool, set[str]]] = []

    def expand(self, tree: ast.Module) -> ast.Module:
        """Rewrite `tree` in place and return it."""
        self._names.visit(tree)
        if not self._names.functions and not self._names.modules:
            return tree
        tree = self.visit(tree)
        ast.fix_missing_locations(tree)
        return tree

    @contextlib.contextmanager
    def _scope(self, names: set[str], is_class: bool = False) -> Iterator[None]:
        self._scopes.append((is_class, names))
        try:
            yield
        finally:
            self._scopes.pop()

    def _is_shadowed(self, name: str) -> bool:
        """Tell if `name` is rebound by an enclosing function, lambda or comprehension."""
        for depth, (is_class, names) in enumerate(reversed(self._scopes)):
            # class bodies are not visible from the functions they contain
            if is_class and depth:
                continue
            if name in names:
                return True
        return False

    def _macro_name(self, func: ast.expr) -> str | None:
        if isinstance(func, ast.Name):
            if func.id in self._names.functions and not self._is_shadowed(func.id):
                return self._names.functions[func.id]
            return None
        if (
            isinstance(func, ast.Attribute)
            and isinstance(func.value, ast.Name)
            and func.value.id in self._names.modules
            and func.attr in MACRO_NAMES
            and not self._is_shadowed(func.value.id)
        ):
            return func.attr
        return None

    def _visit_all(self, nodes: list) -> list:
        return [self.visit(node) for node in nodes]

    def visit_FunctionDef(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> ast.stmt:
        node.decorator_list = self._visit_all(node.decorator_list)
        node.args = self.visit(node.args)
        if node.returns is not None:
            node.returns = self.visit(node.returns)
        with self._scope(_BoundNames.of(node.body, node.args)):
            node.body = self._visit_all(node.body)
        return node

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_Lambda(self, node: ast.Lambda) -> ast.expr:
        node.args = self.visit(node.args)
        with self._scope(set(_argument_names(node.args))):
            node.body = self.visit(node.body)
        return node

    def visit_ClassDef(self, node: ast.ClassDef) -> ast.stmt:
        node.decorator_list = self._visit_all(node.decorator_list)
        node.bases = self._visit_all(node.bases)
        node.keywords = self._visit_all(node.keywords)
        with self._scope(_BoundNames.of(node.body), is_class=True):
            node.body = self._visit_all(node.body)
        return node

    def _visit_comprehension(self, node: ast.ListComp | ast.SetComp | ast.GeneratorExp | ast.DictComp) -> ast.expr:
        # the first iterable is evaluated in the enclosing scope
        first = node.generators[0]
        first.iter = self.visit(first.iter)
        with self._scope(_target_names([generator.target for generator in node.generators])):
            for index, generator in enumerate(node.generators):
                if index:
                    generator.iter = self.visit(generator.iter)
                generator.ifs = self._visit_all(generator.ifs)
            for field in ("elt", "key", "value"):
                if hasattr(node, field):
                    setattr(node, field, self.visit(getattr(node, field)))
        return node

    visit_ListComp = visit_SetComp = visit_GeneratorExp = visit_DictComp = _visit_comprehension

    def _check_shape(self, macro: str, node: ast.Call) -> None:
        """Reject calls the expansion can't honour."""
        problem = ""
        if node.keywords:
            problem = "does not accept keyword arguments"
        elif macro == "dbg_msg":
            if not node.args or isinstance(node.args[0], ast.Starred):
                problem = "needs a format string as first argument"
        elif len(node.args) != 1 or isinstance(node.args[0], ast.Starred):
            problem = "takes exactly one expression"
        if problem:
            raise MacroUsageError(f"{macro}() {problem}", self.filename, node.lineno)

    def _flag_for_site(self) -> tuple[str, bool]:
        flag = self.selector or self.registry.selector_for(self.scope)
        return flag, self.registry.resolve(self.scope, flag)

    def visit_Expr(self, node: ast.Expr) -> ast.stmt:
        new_node = self.generic_visit(node)
        assert isinstance(new_node, ast.Expr)
        if id(new_node.value) in self._dropped:
            return ast.copy_location(ast.Pass(), node)
        return new_node

    def visit_Call(self, node: ast.Call) -> ast.expr:
        macro = self._macro_name(node.func)
        if macro is None:
            return self.generic_visit(node)  # type: ignore[return-value]

        self._check_shape(macro, node)
        form_text = ast.unparse(node.args[0]) if macro == "dbg_form" else ""
        flag, enabled = self._flag_for_site()
        self.report.sites.append(CallSite(macro, node.lineno, node.col_offset, flag, enabled))

        if not enabled:
            if macro == "dbg_form":
                expr = self.visit(node.args[0])
                # as a statement, a bare constant could turn into a docstring
                if isinstance(expr, ast.Constant):
                    self._dropped.add(id(expr))
                return expr  # type: ignore[no-any-return]
            dropped = ast.copy_location(ast.Constant(value=None), node)
            self._dropped.add(id(dropped))
            return dropped

        self.generic_visit(node)
        args = list(node.args)
        if macro == "dbg_form":
            args.insert(0, ast.Constant(value=form_text))
        emitter = ast.Attribute(value=ast.Name(id=DIAGNOSTICS_GLOBAL, ctx=ast.Load()), attr=_EMITTERS[macro], ctx=ast.Load())
        return ast.copy_location(ast.Call(func=emitter, args=args, keywords=[]), node)


def _insert_runtime_import(tree: ast.Module) -> None:
    """Bind `__dbgmacro__` to the shared Diagnostics, after docstring and __future__ imports."""
    position = 0
    for position, stmt in enumerate(tree.body):
        is_docstring = (
            position == 0 and isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant) and isinstance(stmt.value.value, str)
        )
        is_future = isinstance(stmt, ast.ImportFrom) and stmt.module == "__future__"
        if not (is_docstring or is_future):
            break
    else:
        position = len(tree.body)
    runtime_import = ast.ImportFrom(
        module=f"{PACKAGE_NAME}.runtime",
        names=[ast.alias(name="DIAGNOSTICS", asname=DIAGNOSTICS_GLOBAL)],
        level=0,
    )
    tree.body.insert(position, runtime_import)
    ast.fix_missing_locations(tree)


def expand_tree(
    tree: ast.Module,
    scope: str,
    registry: FlagRegistry,
    filename: str = "<unknown>",
    standalone: bool = False,
) -> ExpansionReport:
    """Expand the debug constructs of a parsed module, in place.

    Args:
        tree: The module AST
        scope: Dotted name of the module
        registry: Flags and selectors to resolve call sites against
        filename: Used in error messages
        standalone: Add an import providing `__dbgmacro__` (else the loader injects it)

    Returns:
        The list of rewritten call sites

    Raises:
        UnknownFlagError: a call site's scope selects an undefined flag (strict registries)
        MacroUsageError: a construct is called with an unsupported shape
    """
    expander = DebugExpander(registry, scope, filename, module_selector(tree, filename))
    expander.expand(tree)
    report = expander.report
    if standalone and report.enabled_sites:
        _insert_runtime_import(tree)
    if report.sites:
        get_logger("expander").debug("%s", report.summary())
    return report
