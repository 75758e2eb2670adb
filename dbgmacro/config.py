"""Configuration wrapper providing typed access to the dbgmacro settings."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .constants import DEFAULT_FLAG

if TYPE_CHECKING:
    import logging

__all__ = ["BOOL_FALSE_STRINGS", "BOOL_STRINGS", "BOOL_TRUE_STRINGS", "Configuration", "coerce_to_bool"]

ConfigValueType = float | bool | str | list | dict

# Boolean string constants (shared with validation module)
BOOL_TRUE_STRINGS = frozenset({"true", "yes", "on", "1", "enabled"})
BOOL_FALSE_STRINGS = frozenset({"false", "no", "off", "0", "disabled"})
BOOL_STRINGS = BOOL_TRUE_STRINGS | BOOL_FALSE_STRINGS


def coerce_to_bool(value: ConfigValueType | None, default: bool = False) -> bool:
    """Coerce a value to boolean, handling loose typing.

    Args:
        value: The value to coerce
        default: Default value if value is None

    Behavior:
        - None → default
        - Empty string → False
        - Explicit falsy strings ("false", "no", "off", "0", "disabled") → False
        - Any other non-empty string → True
        - Non-string values → bool(value)
    """
    if value is None:
        return default
    if isinstance(value, str):
        if not value.strip():
            return False
        return value.lower().strip() not in BOOL_FALSE_STRINGS
    return bool(value)


class Configuration(dict):
    """The `[dbgmacro]` settings with typed accessors."""

    def __init__(self, *args: Any, logger: logging.Logger, **kwargs: Any) -> None:  # noqa: ANN401
        """Initialize the configuration object.

        Args:
            *args: Arguments for dict
            logger: Logger instance to use for warnings
            **kwargs: Keyword arguments for dict
        """
        super().__init__(*args, **kwargs)
        self.log = logger

    def get_bool(self, name: str, default: bool = False) -> bool:
        """Get a boolean value, see `coerce_to_bool`."""
        return coerce_to_bool(self.get(name), default)

    def get_str(self, name: str, default: str = "") -> str:
        """Get a string value."""
        value = self.get(name)
        if value is None:
            return default
        return str(value)

    def get_list(self, name: str) -> list[str]:
        """Get a list of strings, a single string becomes a one-item list."""
        value = self.get(name)
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value]

    def get_table(self, name: str) -> dict[str, Any]:
        """Get a sub-table, empty if missing or not a table."""
        value = self.get(name)
        if isinstance(value, dict):
            return value
        if value is not None:
            self.log.warning("Expected a table for %s, got %s", name, type(value).__name__)
        return {}

    @property
    def flag(self) -> str:
        """Name of the shared global flag."""
        return self.get_str("flag", DEFAULT_FLAG) or DEFAULT_FLAG

    @property
    def strict(self) -> bool:
        """True unless undefined flags should silently count as off."""
        return self.get_str("on_unknown_flag", "error") != "off"

    @property
    def color(self) -> bool | None:
        """Color preference, None meaning auto-detection."""
        if self.get("color") is None:
            return None
        return self.get_bool("color")
