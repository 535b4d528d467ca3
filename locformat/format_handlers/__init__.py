#!/usr/bin/env python3
"""
Format handlers for localization file formats.

Supported formats:
- JSON: nested i18next/react-intl style JSON
- ARB: Flutter Application Resource Bundle
- YAML: Rails/Symfony i18n YAML
- XML: Android strings.xml, iOS plist and generic XML resources
- XLIFF: XLIFF 1.2 and 2.x interchange files
- PO/POT: GNU gettext catalogs and templates
- Properties: Java .properties files
- CSV/TSV: spreadsheet exports with key/value (and language) columns
- XMB/XTB: XML message bundles and their translation bundles
"""

from .base import (
    FormatHandler,
    HandlerRegistry,
    PlaceholderPattern,
    PLACEHOLDER_PATTERNS,
)
from .json_handler import JsonHandler
from .arb import ArbHandler
from .yaml_handler import YamlHandler
from .xml_handler import XmlHandler
from .xliff import XliffHandler
from .po import PoHandler, PotHandler
from .properties import PropertiesHandler
from .tabular import CsvHandler, TsvHandler
from .message_bundle import XmbHandler, XtbHandler


def build_default_registry() -> HandlerRegistry:
    """
    Build a registry holding one instance of every handler.

    Registration order decides which handler for_path() tries first.
    """
    registry = HandlerRegistry()
    registry.register(JsonHandler())
    registry.register(ArbHandler())
    registry.register(YamlHandler(), aliases=["yml"])
    registry.register(XmlHandler(), aliases=["android-xml", "ios-xml"])
    registry.register(XliffHandler())
    registry.register(PoHandler())
    registry.register(PotHandler())
    registry.register(PropertiesHandler())
    registry.register(CsvHandler())
    registry.register(TsvHandler())
    registry.register(XmbHandler())
    registry.register(XtbHandler())
    return registry


__all__ = [
    'FormatHandler',
    'HandlerRegistry',
    'PlaceholderPattern',
    'PLACEHOLDER_PATTERNS',
    'JsonHandler',
    'ArbHandler',
    'YamlHandler',
    'XmlHandler',
    'XliffHandler',
    'PoHandler',
    'PotHandler',
    'PropertiesHandler',
    'CsvHandler',
    'TsvHandler',
    'XmbHandler',
    'XtbHandler',
    'build_default_registry',
]
