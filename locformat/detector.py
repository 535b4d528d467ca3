#!/usr/bin/env python3
"""
Format detection from file extension and content signatures.

Markup, ARB and gettext signatures are specific enough to override the
extension (an Android strings file saved as .txt is still Android XML).
The key=value signature matches nearly any text, so it is only consulted
when the extension tells us nothing.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from .errors import UnknownFormatError
from .format_handlers import FormatHandler, HandlerRegistry

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"

EXTENSION_MAP = {
    '.json': 'json',
    '.xml': 'xml',
    '.xlf': 'xliff',
    '.xliff': 'xliff',
    '.po': 'po',
    '.pot': 'pot',
    '.yaml': 'yaml',
    '.yml': 'yaml',
    '.properties': 'properties',
    '.csv': 'csv',
    '.tsv': 'tsv',
    '.arb': 'arb',
    '.xmb': 'xmb',
    '.xtb': 'xtb',
}

# Only tried when the content starts with markup
MARKUP_SIGNATURES = [
    (re.compile(r'<resources[\s>/]'), 'android-xml'),
    (re.compile(r'<plist[\s>/]'), 'ios-xml'),
    (re.compile(r'<xliff[\s>/]'), 'xliff'),
    (re.compile(r'<messagebundle[\s>/]'), 'xmb'),
    (re.compile(r'<translationbundle[\s>/]'), 'xtb'),
]

CONTENT_SIGNATURES = [
    (re.compile(r'\A\s*\{[\s\S]*"@@locale"'), 'arb'),
    (re.compile(r'^\s*msgid\s+"', re.MULTILINE), 'po'),
    (re.compile(r'^\s*#.*POT-Creation-Date', re.MULTILINE), 'pot'),
]

PROPERTIES_SIGNATURE = re.compile(r'^\s*[a-zA-Z_][a-zA-Z0-9_.]*\s*[:=]', re.MULTILINE)


class FormatDetector:
    """
    Maps a path and/or content to a format tag and a handler.

    Args:
        registry: Handler registry used by handler_for()
    """

    def __init__(self, registry: Optional[HandlerRegistry] = None):
        self.registry = registry

    def detect(self, path: str, content: Optional[str] = None) -> str:
        """
        Detect the format tag of a file.

        Args:
            path: File path (only the extension is used)
            content: File content, if available

        Returns:
            Format tag (json, android-xml, po, ...) or "unknown"
        """
        extension = Path(path).suffix.lower()
        from_extension = EXTENSION_MAP.get(extension)
        if not content:
            return from_extension or UNKNOWN

        detected = self.detect_content(content, weak=from_extension is None)
        if detected == 'po' and from_extension == 'pot':
            detected = 'pot'
        if detected:
            if from_extension and detected != from_extension:
                logger.debug("Content of %s looks like %s, not %s", path, detected, from_extension)
            return detected
        return from_extension or UNKNOWN

    def detect_content(self, content: str, weak: bool = True) -> Optional[str]:
        """
        Detect a format tag from content alone.

        Args:
            content: File content
            weak: Also try the key=value properties signature

        Returns:
            Format tag, or None when no signature matches
        """
        text = content.lstrip('\ufeff')
        if text.lstrip().startswith('<'):
            for pattern, format_tag in MARKUP_SIGNATURES:
                if pattern.search(text):
                    return format_tag
        for pattern, format_tag in CONTENT_SIGNATURES:
            if pattern.search(text):
                return format_tag
        if weak and not text.lstrip().startswith(('<', '{', '[')) and PROPERTIES_SIGNATURE.search(text):
            return 'properties'
        return None

    def handler_for(self, path: str, content: Optional[str] = None) -> FormatHandler:
        """
        Detect the format and return its handler from the registry.

        Raises:
            UnknownFormatError: If the format is unknown or has no handler
        """
        if self.registry is None:
            raise UnknownFormatError("FormatDetector has no handler registry")
        format_tag = self.detect(path, content)
        if format_tag == UNKNOWN:
            raise UnknownFormatError(f"Could not detect format of {path}")
        return self.registry.get(format_tag)

    @staticmethod
    def supported_extensions() -> list[str]:
        return list(EXTENSION_MAP)

    @staticmethod
    def supported_formats() -> list[str]:
        return list(dict.fromkeys(EXTENSION_MAP.values()))
