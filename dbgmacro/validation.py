"""Configuration validation with schema definitions.

Provides declarative schema definitions (ConfigField, ConfigItems) and the
schema of the `[dbgmacro]` section. Supports type checking, choices, custom
validators and fuzzy matching for typo detection.

Used by:
- config_loader.apply_config() before touching the flag registry
- 'dbgmacro validate' CLI for static configuration checking
"""

import difflib
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .config import BOOL_STRINGS
from .constants import CONFIG_SECTION

__all__ = [
    "CONFIG_SCHEMA",
    "ConfigField",
    "ConfigItems",
    "ConfigValidator",
    "format_config_error",
]

_DOTTED_NAME = re.compile(r"^[A-Za-z_]\w*(\.[A-Za-z_]\w*)*$")


@dataclass
class ConfigField:
    """Describes an expected configuration field for validation.

    Attributes:
        name: The configuration key name
        field_type: Expected type (str, bool, list, dict)
        choices: List of valid values for enum-like fields
        validator: Custom validator function returning list of error messages
    """

    name: str
    field_type: type = str
    choices: list | None = None
    validator: Callable[[Any], list[str]] | None = None

    @property
    def type_name(self) -> str:
        """Return human-readable type name (e.g., 'str')."""
        return self.field_type.__name__


class ConfigItems(list):
    """A list of ConfigField items."""

    def __init__(self, *args: ConfigField) -> None:
        super().__init__(args)


def _find_similar_key(unknown_key: str, known_keys: list[str]) -> str | None:
    """Find a similar key using fuzzy matching.

    Returns:
        The closest matching key, or None if no close match found
    """
    matches = difflib.get_close_matches(unknown_key, known_keys, n=1)
    if matches:
        return matches[0]
    return None


def format_config_error(section: str, field: str, message: str, suggestion: str = "") -> str:
    """Format a configuration error message.

    Args:
        section: Config section name
        field: Field name that has the error
        message: Error description
        suggestion: Optional suggestion for fixing the error
    """
    msg = f"[{section}] Config error for '{field}': {message}"
    if suggestion:
        msg += f" -> {suggestion}"
    return msg


def _is_identifier_list(value: list) -> list[str]:
    return [f"'{item}' is not a dotted module name" for item in value if not isinstance(item, str) or not _DOTTED_NAME.match(item)]


def _check_flag_table(value: dict) -> list[str]:
    errors = []
    for name, flag_value in value.items():
        if not name.isidentifier():
            errors.append(f"flag name '{name}' is not an identifier")
        if not isinstance(flag_value, bool) and not (isinstance(flag_value, str) and flag_value.lower() in BOOL_STRINGS):
            errors.append(f"flag '{name}' must be true or false, got {flag_value!r}")
    return errors


def _check_scope_table(value: dict) -> list[str]:
    errors = []
    for scope, flag in value.items():
        if not _DOTTED_NAME.match(scope):
            errors.append(f"scope '{scope}' is not a dotted module name")
        if not isinstance(flag, str) or not flag.isidentifier():
            errors.append(f"scope '{scope}' must name a flag, got {flag!r}")
    return errors


CONFIG_SCHEMA = ConfigItems(
    ConfigField("enabled", bool),
    ConfigField("flag", str),
    ConfigField("on_unknown_flag", str, choices=["error", "off"]),
    ConfigField("packages", list, validator=_is_identifier_list),
    ConfigField("flags", dict, validator=_check_flag_table),
    ConfigField("scopes", dict, validator=_check_scope_table),
    ConfigField("color", bool),
    ConfigField("logfile", str),
    ConfigField("verbose", bool),
)


class ConfigValidator:
    """Validates configuration against a schema."""

    def __init__(self, config: dict, section: str = CONFIG_SECTION, logger: logging.Logger | None = None) -> None:
        """Initialize the validator.

        Args:
            config: The configuration dictionary to validate
            section: Name of the section for error messages
            logger: Logger instance for warnings
        """
        self.config = config
        self.section = section
        self.log = logger or logging.getLogger(section)

    def validate(self, schema: ConfigItems = CONFIG_SCHEMA) -> list[str]:
        """Validate configuration against schema.

        Returns:
            List of error messages (empty if validation passed)
        """
        errors = []

        for field_def in schema:
            value = self.config.get(field_def.name)
            if value is None:
                continue

            type_error = self._check_type(field_def, value)
            if type_error:
                errors.append(type_error)
                continue

            if field_def.choices is not None and value not in field_def.choices:
                choices_str = ", ".join(repr(c) for c in field_def.choices)
                errors.append(
                    format_config_error(
                        self.section,
                        field_def.name,
                        f"Invalid value {value!r}",
                        f"Valid options: {choices_str}",
                    )
                )
            if field_def.validator:
                errors.extend(
                    format_config_error(self.section, field_def.name, validation_error)
                    for validation_error in field_def.validator(value)
                )

        return errors

    def _check_type(self, field_def: ConfigField, value: Any) -> str | None:  # noqa: ANN401
        """Check if value matches expected type.

        Returns:
            Error message if type mismatch, None otherwise
        """
        expected_type = field_def.field_type
        if expected_type is bool:
            if isinstance(value, bool) or (isinstance(value, str) and value.lower() in BOOL_STRINGS):
                return None
            return format_config_error(
                self.section,
                field_def.name,
                f"Expected bool, got {type(value).__name__}",
                "Use true/false (without quotes)",
            )
        if isinstance(value, expected_type):
            return None
        suggestions = {
            str: f'Use {field_def.name} = "value"',
            list: f'Use {field_def.name} = ["item1", "item2"]',
            dict: f"Use a [{self.section}.{field_def.name}] table",
        }
        return format_config_error(
            self.section,
            field_def.name,
            f"Expected {field_def.type_name}, got {type(value).__name__}",
            suggestions.get(expected_type, ""),
        )

    def warn_unknown_keys(self, schema: ConfigItems = CONFIG_SCHEMA) -> list[str]:
        """Log warnings for unknown configuration keys.

        Returns:
            List of warning messages
        """
        warnings = []
        known_keys = [f.name for f in schema]

        for key in self.config:
            if key in known_keys:
                continue

            similar = _find_similar_key(key, known_keys)
            if similar:
                msg = f"[{self.section}] Unknown option '{key}' (did you mean '{similar}'?)"
            else:
                msg = f"[{self.section}] Unknown option '{key}' - will be ignored"

            self.log.warning(msg)
            warnings.append(msg)

        return warnings
