#!/usr/bin/env python3
"""
Settings for locformat, loaded from a YAML file.

Lookup order: explicit path, then the LOCFORMAT_CONFIG environment
variable, then built-in defaults. Example file:

    json_indent: 4
    csv_dialect: excel
    strict_mode: true
    logging:
      level: DEBUG
      file: logs/locformat.log
      console: false
"""

import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Optional

import yaml

from .validation.engine import canonical_format

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LOCFORMAT_CONFIG"

JSON_FORMATS = {'json', 'arb'}
MARKUP_FORMATS = {'xml', 'xliff', 'xmb', 'xtb'}


def _default_logging() -> dict[str, Any]:
    return {'level': 'INFO', 'file': None, 'console': True}


@dataclass
class Settings:
    """Serialization, validation and logging settings."""
    json_indent: int = 2
    max_json_depth: int = 10
    csv_dialect: str = "default"
    xml_declaration: Optional[bool] = None  # None: follow the original file
    attempt_recovery: bool = True
    include_guidance: bool = True
    strict_mode: bool = False
    default_source_language: str = "en"
    default_target_language: str = "es"
    logging: dict[str, Any] = field(default_factory=_default_logging)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown configuration keys: %s", ', '.join(unknown))

        values = {key: value for key, value in data.items() if key in known}
        if 'logging' in values:
            merged = _default_logging()
            merged.update(values['logging'] or {})
            values['logging'] = merged
        return cls(**values)

    def serialize_options(self, format: str) -> dict[str, Any]:
        """Keyword options to hand to a handler's serialize() for format."""
        format = canonical_format(format)
        options: dict[str, Any] = {}
        if format in JSON_FORMATS:
            options['indent'] = self.json_indent
        elif format in MARKUP_FORMATS:
            if self.xml_declaration is not None:
                options['xml_declaration'] = self.xml_declaration
        elif format == 'csv' and self.csv_dialect != 'default':
            options['dialect'] = self.csv_dialect
        return options

    def validation_options(self) -> dict[str, Any]:
        """Keyword options for ValidationService.validate_file()."""
        return {
            'attempt_recovery': self.attempt_recovery,
            'include_guidance': self.include_guidance,
            'strict_mode': self.strict_mode,
        }


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        path: Config file path; defaults to $LOCFORMAT_CONFIG

    Returns:
        Settings (defaults when no usable file is found)

    Raises:
        ValueError: If the file is not valid YAML
    """
    config_file = path or os.environ.get(CONFIG_ENV_VAR)
    if not config_file:
        return Settings()

    if not os.path.exists(config_file):
        logger.warning("Configuration file '%s' not found. Using defaults.", config_file)
        return Settings()

    try:
        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            loaded = yaml.safe_load(config_file_stream)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in configuration file '{config_file}': {e}") from e

    if loaded is None:
        logger.warning("Configuration file '%s' is empty. Using defaults.", config_file)
        return Settings()
    if not isinstance(loaded, dict):
        logger.warning("Configuration file '%s' must contain a YAML mapping. Using defaults.", config_file)
        return Settings()

    logger.debug("Loaded configuration from %s", config_file)
    return Settings.from_dict(loaded)
