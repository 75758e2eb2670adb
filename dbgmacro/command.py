"""dbgmacro - command line tools (expand, flags, validate)."""

import ast
import sys
from pathlib import Path

from .config_loader import ConfigLoader, apply_config
from .expander import module_selector
from .flags import FlagRegistry
from .importer import expand_source
from .logging_setup import get_logger, init_logger
from .models import ConfigError, DbgMacroError, ExitCode

__all__ = ["main"]

USAGE = """Syntax: dbgmacro [--debug <logfile>] [--config <file>] <command> [args]

Available commands:
 expand <file.py> [--module <name>] [--on|--off]
                      Print the source as it compiles with the current flags
 flags                List the flags and the scope selectors
 validate             Check the configuration
"""


def use_param(args: list[str], txt: str) -> str:
    """Check if parameter `txt` is in `args`.

    if found, removes it from `args` & returns the argument value
    """
    v = ""
    if txt in args:
        i = args.index(txt)
        if i + 1 >= len(args):
            msg = f"{txt} needs a value"
            raise DbgMacroError(msg)
        v = args[i + 1]
        del args[i : i + 2]
    return v


def use_switch(args: list[str], txt: str) -> bool:
    """Remove switch `txt` from `args`, returning True if it was there."""
    if txt in args:
        args.remove(txt)
        return True
    return False


def _load_registry(config_filename: str) -> FlagRegistry:
    """Build a registry from the configuration, without installing the import hook."""
    config = ConfigLoader().load(config_filename)
    return apply_config(config, FlagRegistry(), install_hook=False)


def run_expand(args: list[str], config_filename: str) -> ExitCode:
    """Print the expanded source of a file, and its call sites on stderr."""
    try:
        module_name = use_param(args, "--module")
    except DbgMacroError as e:
        print(f"{e}\n\n{USAGE}", file=sys.stderr)
        return ExitCode.USAGE_ERROR
    force_on = use_switch(args, "--on")
    force_off = use_switch(args, "--off")
    if len(args) != 1 or (force_on and force_off):
        print(USAGE, file=sys.stderr)
        return ExitCode.USAGE_ERROR

    path = Path(args[0])
    module_name = module_name or path.stem
    source = path.read_bytes()
    registry = _load_registry(config_filename)
    if force_on or force_off:
        flag = module_selector(ast.parse(source, str(path)), str(path)) or registry.selector_for(module_name)
        registry.set(flag, force_on)

    tree, report = expand_source(source, str(path), module_name, registry, standalone=True)
    print(ast.unparse(tree))
    for site in report.sites:
        state = "on" if site.enabled else "off"
        print(f"{path}:{site.lineno}:{site.col_offset + 1}: {site.macro} [{site.flag}={state}]", file=sys.stderr)
    print(report.summary(), file=sys.stderr)
    return ExitCode.SUCCESS


def run_flags(config_filename: str) -> ExitCode:
    """List the flags and the selectors."""
    registry = _load_registry(config_filename)
    for name, value in sorted(registry.flags.items()):
        marker = " (global)" if name == registry.default_flag else ""
        print(f"{name:20s} {'on' if value else 'off'}{marker}")
    for scope, flag in sorted(registry.selectors.items()):
        print(f"{scope:20s} -> {flag}")
    return ExitCode.SUCCESS


def run_validate(config_filename: str) -> ExitCode:
    """Validate the configuration file."""
    loader = ConfigLoader()
    try:
        loader.load(config_filename)
    except ConfigError as e:
        print(f"❌ {e.args[0]}")
        for error in e.errors:
            print(f"  ERROR: {error}")
        return ExitCode.CONFIG_ERROR
    for warning in loader.warnings:
        print(f"  WARNING: {warning}")
    print(f"✅ {loader.source or 'defaults'}")
    return ExitCode.SUCCESS


def run(argv: list[str]) -> ExitCode:
    """Run a command, returning its exit code."""
    args = list(argv)
    try:
        debug_flag = use_param(args, "--debug")
        config_filename = use_param(args, "--config")
    except DbgMacroError as e:
        print(f"{e}\n\n{USAGE}", file=sys.stderr)
        return ExitCode.USAGE_ERROR
    if debug_flag:
        init_logger(filename=debug_flag, force_debug=True)
    log = get_logger("command")

    if not args or args[0] in {"--help", "-h", "help"}:
        print(USAGE)
        return ExitCode.SUCCESS if args else ExitCode.USAGE_ERROR

    command, args = args[0], args[1:]
    try:
        if command == "expand":
            return run_expand(args, config_filename)
        if command == "flags":
            return run_flags(config_filename)
        if command == "validate":
            return run_validate(config_filename)
    except ConfigError as e:
        log.critical("%s", e)
        return ExitCode.CONFIG_ERROR
    except (OSError, SyntaxError, DbgMacroError) as e:
        log.critical("%s", e)
        return ExitCode.EXPANSION_ERROR

    log.error("Unknown command: %s", command)
    print(USAGE, file=sys.stderr)
    return ExitCode.USAGE_ERROR


def main() -> None:
    """Run the command."""
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
