"""Configuration file loading and application.

Settings come from, in order of preference:
- an explicit path, or the DBGMACRO_CONFIG environment variable
- `dbgmacro.toml` in the working directory (`[dbgmacro]` table)
- `pyproject.toml` in the working directory (`[tool.dbgmacro]` table)
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .config import Configuration, coerce_to_bool
from .constants import CONFIG_ENV, CONFIG_FILE, CONFIG_SECTION, PYPROJECT_FILE
from .flags import FlagRegistry, get_registry
from .importer import install
from .logging_setup import get_logger, init_logger
from .models import ConfigError
from .validation import ConfigValidator

if TYPE_CHECKING:
    import logging

__all__ = ["ConfigLoader", "apply_config", "setup"]


class ConfigLoader:
    """Finds, reads and validates the `[dbgmacro]` settings."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        """Initialize the config loader.

        Args:
            log: Logger instance for status and error messages
        """
        self.log = log or get_logger("config")
        self.source: Path | None = None
        self.warnings: list[str] = []

    def load(self, config_filename: str = "") -> Configuration:
        """Load and validate the settings.

        Args:
            config_filename: Optional path to a TOML file. If empty, DBGMACRO_CONFIG
                             then the default locations are tried.

        Returns:
            The settings, empty when no config file exists at a default location.

        Raises:
            ConfigError: If an explicit file is missing, unreadable or invalid.
        """
        config_filename = config_filename or os.environ.get(CONFIG_ENV, "")
        if config_filename:
            fname = Path(os.path.expandvars(config_filename)).expanduser()
            if not fname.exists():
                self.log.critical("Config file not found: %s", fname)
                msg = f"Config file not found: {fname}"
                raise ConfigError(msg)
            section = self._extract_section(fname, self._load_config_file(fname))
        else:
            section = self._load_default()

        config = Configuration(section, logger=self.log)
        self._validate(config)
        return config

    def _load_default(self) -> dict[str, Any]:
        """Look for the settings at the default locations."""
        for fname in (CONFIG_FILE, PYPROJECT_FILE):
            if not fname.exists():
                continue
            section = self._extract_section(fname, self._load_config_file(fname))
            if section or fname == CONFIG_FILE:
                return section
        self.log.info("No configuration found, using defaults")
        return {}

    def _extract_section(self, fname: Path, data: dict[str, Any]) -> dict[str, Any]:
        """Return the `[dbgmacro]` (or `[tool.dbgmacro]` for pyproject.toml) table."""
        if fname.name == PYPROJECT_FILE.name:
            section = data.get("tool", {}).get(CONFIG_SECTION, {})
        else:
            section = data.get(CONFIG_SECTION, {})
        if not isinstance(section, dict):
            msg = f"{fname}: [{CONFIG_SECTION}] must be a table"
            raise ConfigError(msg)
        if section:
            self.source = fname
        return section

    def _load_config_file(self, fname: Path) -> dict[str, Any]:
        """Load a single TOML file.

        Raises:
            ConfigError: If the file has syntax errors
        """
        self.log.info("Loading %s", fname)
        with fname.open("rb") as f:
            try:
                return tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                self.log.critical("Problem reading %s: %s", fname, e)
                msg = f"Problem reading {fname}: {e}"
                raise ConfigError(msg) from e

    def _validate(self, config: Configuration) -> None:
        """Check the settings against the schema.

        Raises:
            ConfigError: listing every problem found
        """
        validator = ConfigValidator(config, CONFIG_SECTION, self.log)
        self.warnings = validator.warn_unknown_keys()
        errors = validator.validate()
        if errors:
            where = f" in {self.source}" if self.source else ""
            msg = f"Invalid configuration{where}"
            raise ConfigError(msg, errors)


def apply_config(config: Configuration, registry: FlagRegistry | None = None, install_hook: bool = True) -> FlagRegistry:
    """Set up logging, flags, selectors and the import hook from the settings.

    Args:
        config: Validated settings
        registry: Registry to configure (process-wide registry if None)
        install_hook: Install the import hook for the `packages` setting

    Returns:
        The configured registry
    """
    registry = registry or get_registry()
    if config.get("logfile") is not None or config.get("color") is not None or config.get_bool("verbose"):
        init_logger(config.get("logfile"), force_debug=config.get_bool("verbose"), color=config.color)

    registry.default_flag = config.flag
    registry.strict = config.strict
    if "enabled" in config or not registry.is_defined(config.flag):
        registry.set(config.flag, config.get_bool("enabled"))
    for name, value in config.get_table("flags").items():
        registry.set(name, coerce_to_bool(value))
    for scope, flag in config.get_table("scopes").items():
        registry.select(scope, flag)

    packages = config.get_list("packages")
    if install_hook and packages:
        install(*packages, registry=registry)
    return registry


def setup(config_filename: str = "", registry: FlagRegistry | None = None, install_hook: bool = True) -> Configuration:
    """Load the settings and apply them, in one go.

    Meant to run early, before importing the packages to expand.
    """
    config = ConfigLoader().load(config_filename)
    apply_config(config, registry, install_hook)
    return config
