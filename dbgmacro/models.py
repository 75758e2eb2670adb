"""Error types and small shared records."""

from dataclasses import dataclass, field
from enum import IntEnum

__all__ = [
    "CallSite",
    "ConfigError",
    "DbgMacroError",
    "ExitCode",
    "ExpansionReport",
    "MacroUsageError",
    "UnknownFlagError",
]


class DbgMacroError(Exception):
    """Base class for dbgmacro errors."""


class UnknownFlagError(DbgMacroError, LookupError):
    """A flag selector names a flag that was never defined."""

    def __init__(self, flag: str, scope: str = "") -> None:
        self.flag = flag
        self.scope = scope
        where = f" (selected by scope '{scope}')" if scope else ""
        super().__init__(f"Debug flag '{flag}' is not defined{where}")


class MacroUsageError(DbgMacroError, SyntaxError):
    """A debug construct is called with an unsupported shape."""

    def __init__(self, message: str, filename: str = "<unknown>", lineno: int | None = None) -> None:
        SyntaxError.__init__(self, message, (filename, lineno, None, None))


class ConfigError(DbgMacroError):
    """The configuration could not be loaded or is invalid."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or []
        details = "".join(f"\n  {e}" for e in self.errors)
        super().__init__(message + details)


class ExitCode(IntEnum):
    """Exit codes for the dbgmacro command."""

    SUCCESS = 0
    USAGE_ERROR = 1  # No command provided, invalid arguments
    CONFIG_ERROR = 2  # Config file missing or invalid
    EXPANSION_ERROR = 3  # Source could not be read, parsed or expanded


@dataclass(frozen=True)
class CallSite:
    """One rewritten call to a debug construct."""

    macro: str
    lineno: int
    col_offset: int
    flag: str
    enabled: bool


@dataclass
class ExpansionReport:
    """What happened while expanding one module."""

    scope: str
    filename: str
    sites: list[CallSite] = field(default_factory=list)

    @property
    def enabled_sites(self) -> list[CallSite]:
        """Return the call sites that emit diagnostics."""
        return [site for site in self.sites if site.enabled]

    def summary(self) -> str:
        """Return a one-line description of the expansion."""
        return f"{self.scope}: {len(self.sites)} call site(s), {len(self.enabled_sites)} enabled"
