"""Configuration file loader and validator.

Handles reading, formatting, and validating settings from the INI configuration file.
Raises exceptions for any issues encountered during loading.
"""

from __future__ import annotations

import ast
import configparser
from configparser import ConfigParser
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from models.config_models import Config
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable
    from dataclasses import Field as DataclassField
else:
    from dataclasses import Field as DataclassField

__all__: list[str] = [
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

KNOWN_ENVIRONMENTS: Final[tuple[str, ...]] = ("development", "test", "staging", "production")

# Settings that must be strictly positive, as (section, key).
POSITIVE_SETTINGS: Final[tuple[tuple[str, str], ...]] = (
    ("STORAGE", "COOKIE_MAX_AGE_DAYS"),
    ("STORAGE", "QUOTA_BYTES"),
    ("CACHE", "MAX_SIZE"),
    ("CACHE", "TTL_SEC"),
    ("HISTORY", "MAX_RECORDS"),
    ("HISTORY", "RECOMMENDED_MAX_RECORDS"),
    ("HISTORY", "MAX_AGE_DAYS"),
    ("METRICS", "LOAD_TIME_SAMPLES"),
)

NON_NEGATIVE_SETTINGS: Final[tuple[tuple[str, str], ...]] = (
    ("CACHE", "WARMUP_DELAY_SEC"),
    ("CACHE", "LOAD_TIMEOUT_SEC"),
    ("HISTORY", "DUPLICATE_WINDOW_MS"),
)


class ConfigLoaderError(Exception):
    """An error occurred while processing the configuration file."""


class ConfigFileNotFoundError(ConfigLoaderError):
    """The specified configuration file does not exist."""


class ConfigFormatError(ConfigLoaderError):
    """The configuration file is not formatted correctly."""


class ConfigValueError(ConfigFormatError):
    """The configuration file contains an invalid value."""


class ConfigTypeError(ConfigFormatError):
    """The configuration file contains an invalid type."""


class ConfigLoader:
    """Loads ``locale_pipeline.ini`` into a typed Config.

    Keys missing from the file keep their dataclass defaults. Keyword overrides are applied after
    parsing and before validation.

    Args:
        config_filename (str | Path): INI file to load.
        script_name (str): Executing script name, used in error messaging.
        debug (bool): Force GENERAL.DEBUG on.
        environment (str | None): Override for GENERAL.ENVIRONMENT.
        db_path (str | None): Override for STORAGE.DB_PATH.

    Raises:
        ConfigFileNotFoundError: If the configuration file does not exist.
        ConfigFormatError: If the file cannot be parsed or contains invalid values/types.
    """

    def __init__(
        self,
        *,
        config_filename: str | Path,
        script_name: str = "locale_maintenance.py",
        **args: Any,
    ) -> None:
        config_path = Path(config_filename)
        msg: str
        if not config_path.exists():
            msg = (
                f"Configuration file '{config_filename}' not found. "
                f"Please create '{config_path.name}' before running '{script_name}'."
            )
            raise ConfigFileNotFoundError(msg)

        parser: ConfigParser = ConfigParser()
        # Keep the upper-case keys of the INI file as they are.
        parser.optionxform = str  # type: ignore[assignment,method-assign]

        try:
            parser.read(config_path, encoding="utf-8")
        except configparser.Error as err:
            msg = f"Failed to parse configuration file '{config_filename}': {err}"
            raise ConfigFormatError(msg) from None

        self.config = Config()
        self._convert_settings(parser)

        if args.get("debug", False):
            self.config.GENERAL.DEBUG = True
        if args.get("environment") is not None:
            self.config.GENERAL.ENVIRONMENT = str(args["environment"])
        if args.get("db_path") is not None:
            self.config.STORAGE.DB_PATH = str(args["db_path"])
        self._validate_settings()

    def _convert_settings(self, parser: ConfigParser) -> None:
        formatter = _ConfigFormatter(self.config, parser)
        for section in fields(self.config):
            if not parser.has_section(section.name):
                logger.debug("Skipping undefined section: '%s'", section.name)
                continue
            self._convert_section_field(parser, formatter, section)

    def _convert_section_field(
        self, parser: ConfigParser, formatter: _ConfigFormatter, section: DataclassField[Any]
    ) -> None:
        """Convert all fields of one section, leaving undefined keys at their defaults.

        Raises:
            ConfigFormatError: If a value fails to format correctly.
        """
        for key in fields(getattr(self.config, section.name)):
            if not parser.has_option(section.name, key.name):
                logger.debug("Skipping undefined setting: '%s.%s'", section.name, key.name)
                continue

            formatted_value = formatter.apply_format(section, key)
            setattr(getattr(self.config, section.name), key.name, formatted_value)

    def _validate_settings(self) -> None:
        """Check cross-field rules and value ranges.

        Raises:
            ConfigTypeError: If SUPPORTED_LOCALES is not a list of strings.
            ConfigValueError: If a value is out of range or the default locale is not supported.
        """
        supported: Any = self.config.LOCALE.SUPPORTED_LOCALES
        if isinstance(supported, str):
            supported = [supported]
            self.config.LOCALE.SUPPORTED_LOCALES = supported
        if not isinstance(supported, list) or not all(isinstance(locale, str) and locale for locale in supported):
            msg: str = f"Unsupported type used for 'LOCALE.SUPPORTED_LOCALES': {supported!r}"
            raise ConfigTypeError(msg)
        if not supported:
            msg = "'LOCALE.SUPPORTED_LOCALES' must list at least one locale"
            raise ConfigValueError(msg)

        default_locale: str = self.config.LOCALE.DEFAULT_LOCALE
        if default_locale not in supported:
            msg = f"'LOCALE.DEFAULT_LOCALE' ('{default_locale}') is not one of {supported}"
            raise ConfigValueError(msg)

        for section_name, key_name in POSITIVE_SETTINGS:
            value: int | float = getattr(getattr(self.config, section_name), key_name)
            if value <= 0:
                msg = f"'{section_name}.{key_name}' must be greater than 0, got {value}"
                raise ConfigValueError(msg)

        for section_name, key_name in NON_NEGATIVE_SETTINGS:
            value = getattr(getattr(self.config, section_name), key_name)
            if value < 0:
                msg = f"'{section_name}.{key_name}' must not be negative, got {value}"
                raise ConfigValueError(msg)

        environment: str = self.config.GENERAL.ENVIRONMENT
        if environment.lower() not in KNOWN_ENVIRONMENTS:
            logger.warning("Unknown value '%s' is set for 'GENERAL.ENVIRONMENT'", environment)


class _ConfigFormatter:
    """Converts INI string values to typed Python objects (bool, int, float, str, list, dict)."""

    def __init__(self, config: Config, parser: ConfigParser) -> None:
        self.config: Config = config
        self.parser: ConfigParser = parser

    def apply_format(self, section: DataclassField[Any], key: DataclassField[Any]) -> Any:
        """Convert an INI value to the type of the field's default value.

        Args:
            section (DataclassField[Any]): Configuration section field containing the key.
            key (DataclassField[Any]): Target field within the section.

        Returns:
            Any: Parsed value coerced to the type declared in the config dataclass.

        Raises:
            ConfigValueError: If a value cannot be coerced to the expected type.
            ConfigFormatError: If literal evaluation fails due to invalid syntax.
            ConfigTypeError: If an unexpected type is encountered during coercion.
        """
        formatters: dict[type[Any], Callable[[DataclassField[Any], DataclassField[Any]], Any]] = {
            bool: self.parse_as_boolean,
            int: self.parse_as_integer,
            float: self.parse_as_float,
            str: self.parse_as_string,
        }

        formatter: Callable[[DataclassField[Any], DataclassField[Any]], Any] | None = formatters.get(
            type(getattr(getattr(self.config, section.name), key.name))
        )
        if formatter:
            try:
                return formatter(section, key)
            except ValueError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigValueError(msg) from err
            except TypeError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigTypeError(msg) from err

        value_str: str = self.parser[section.name][key.name]
        try:
            return ast.literal_eval(value_str)
        except ValueError as err:
            msg = f"Invalid literal for {section.name}.{key.name}: {value_str}"
            raise ConfigValueError(msg) from err
        except SyntaxError as err:
            msg = f"Invalid literal for {section.name}.{key.name}: {value_str}"
            raise ConfigFormatError(msg) from err

    def _unquoted(self, section: DataclassField[Any], key: DataclassField[Any]) -> str:
        value: str = self.parser.get(section.name, key.name).strip()
        for char in ("'", '"'):
            value = value.removeprefix(char).removesuffix(char)
        return value

    def parse_as_string(self, section: DataclassField[Any], key: DataclassField[Any]) -> str:
        return self._unquoted(section, key)

    def parse_as_float(self, section: DataclassField[Any], key: DataclassField[Any]) -> float:
        return float(self._unquoted(section, key))

    def parse_as_integer(self, section: DataclassField[Any], key: DataclassField[Any]) -> int:
        return int(float(self._unquoted(section, key)))

    def parse_as_boolean(self, section: DataclassField[Any], key: DataclassField[Any]) -> bool:
        return self.parser.getboolean(section.name, key.name)
