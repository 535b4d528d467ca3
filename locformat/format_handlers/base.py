#!/usr/bin/env python3
"""
Base classes for format handlers.

FormatHandler is the abstract base class that all format-specific handlers
implement: parse() turns file content into a canonical TranslationDocument
(plus a MetadataSidecar), serialize() turns a document back into file
content, and validate_structure() reports structural issues.
HandlerRegistry is the explicit, constructed lookup table of handlers.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

from ..errors import UnknownFormatError
from ..model import (
    MetadataSidecar,
    Severity,
    ValidationIssue,
    ValidationResult,
    ValueKind,
    classify_value,
    get_sidecar,
)
from ..codecs import paths

VERY_LONG_STRING_LIMIT = 10000
VERY_LARGE_FILE_BYTES = 50 * 1024 * 1024

_CONTROL_CHARACTERS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')


@dataclass
class PlaceholderPattern:
    """Pattern definition for placeholder detection."""
    name: str
    pattern: str  # Regex pattern

    def find_all(self, text: str) -> list[str]:
        """Find all placeholders matching this pattern."""
        return re.findall(self.pattern, text)


# Common placeholder patterns across formats
PLACEHOLDER_PATTERNS = {
    'i18next': PlaceholderPattern('i18next', r'{{(\w+)}}'),          # {{name}}
    'icu': PlaceholderPattern('icu', r'\{(\w+)\}'),                   # {name}
    'icu_full': PlaceholderPattern('icu_full', r'\{[^}]+\}'),         # {count, plural, ...}
    'printf': PlaceholderPattern('printf', r'%[\d$]*[sd]'),           # %s, %1$s, %d
    'printf_named': PlaceholderPattern('printf_named', r'%\((\w+)\)s'), # %(name)s
    'ruby': PlaceholderPattern('ruby', r'%\{(\w+)\}'),                # %{name}
    'android': PlaceholderPattern('android', r'%\d+\$[sd]'),          # %1$s, %2$d
    'ios': PlaceholderPattern('ios', r'%@|%d|%ld|%f'),                # %@, %d
    'xmb_ph': PlaceholderPattern('xmb_ph', r'<ph\s+name="([^"]*)"'),  # <ph name="X">
}


class FormatHandler(ABC):
    """
    Abstract base class for format-specific handlers.

    Handlers are stateless: everything needed for a faithful round trip
    travels in the document's sidecar, so one instance can serve any number
    of files.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Format tag (json, po, csv, ...)."""
        pass

    @property
    @abstractmethod
    def file_extensions(self) -> list[str]:
        """List of file extensions this handler supports (without dot)."""
        pass

    @property
    def placeholder_patterns(self) -> list[PlaceholderPattern]:
        """
        Placeholder patterns used by this format.

        Override in subclasses to specify format-specific patterns.
        """
        return []

    def can_handle(self, path: str, content: Optional[str] = None) -> bool:
        """Whether this handler accepts the file (by extension by default)."""
        return Path(path).suffix.lower().lstrip('.') in self.file_extensions

    @abstractmethod
    def parse(self, content: str) -> dict[str, Any]:
        """
        Parse format-specific content into a translation document.

        Args:
            content: Raw file content as string

        Returns:
            Document mapping keys to values, with a sidecar under METADATA_KEY

        Raises:
            ParseError: If the content is malformed
        """
        pass

    @abstractmethod
    def serialize(self, document: dict[str, Any], **options: Any) -> str:
        """
        Reconstruct file content from a (possibly translated) document.

        Uses the sidecar when present; otherwise rebuilds from the keys.

        Args:
            document: Translation document
            **options: Format-specific output options

        Returns:
            File content as string
        """
        pass

    def validate_structure(self, document: dict[str, Any]) -> ValidationResult:
        """
        Check a document for structural problems specific to this format.

        The default runs the shared leaf checks only.
        """
        return ValidationResult.from_issues(self.check_leaves(document))

    def check_content(self, content: str) -> list[ValidationIssue]:
        """Checks on raw content that do not need a parse."""
        issues = []
        if not content.strip():
            issues.append(ValidationIssue('EMPTY_CONTENT', "File content is empty", Severity.ERROR))
        size = len(content.encode('utf-8'))
        if size > VERY_LARGE_FILE_BYTES:
            issues.append(ValidationIssue(
                'VERY_LARGE_FILE',
                f"File is very large ({size / (1024 * 1024):.1f}MB); processing may be slow",
                Severity.WARNING,
            ))
        return issues

    def check_leaves(self, document: dict[str, Any], allow_non_string: bool = True) -> list[ValidationIssue]:
        """
        Shared checks over every leaf value of a document.

        Args:
            document: Translation document
            allow_non_string: Report non-string leaves as warnings (True)
                or errors (False)
        """
        issues = []
        for key, value in paths.expand_document(document).items():
            kind = classify_value(value)
            if kind is ValueKind.STRING:
                if not value.strip():
                    issues.append(ValidationIssue(
                        'EMPTY_TRANSLATION_STRING', f"Empty translation for key '{key}'",
                        Severity.WARNING, path=key,
                    ))
                if len(value) > VERY_LONG_STRING_LIMIT:
                    issues.append(ValidationIssue(
                        'VERY_LONG_STRING', f"Key '{key}' has a very long value ({len(value)} characters)",
                        Severity.WARNING, path=key,
                    ))
                if _CONTROL_CHARACTERS.search(value):
                    issues.append(ValidationIssue(
                        'CONTROL_CHARACTERS', f"Key '{key}' contains control characters",
                        Severity.WARNING, path=key,
                    ))
            elif kind in (ValueKind.NUMBER, ValueKind.BOOLEAN, ValueKind.ABSENT):
                issues.append(ValidationIssue(
                    'NON_TRANSLATABLE_VALUE',
                    f"Key '{key}' holds a non-translatable {kind.value} value",
                    Severity.WARNING if allow_non_string else Severity.ERROR,
                    path=key,
                ))
        return issues

    def sidecar(self, document: dict[str, Any]) -> Optional[MetadataSidecar]:
        """The document's sidecar, if it was produced by this handler."""
        sidecar = get_sidecar(document)
        if sidecar is not None and sidecar.format in self.accepted_sidecar_formats():
            return sidecar
        return None

    def accepted_sidecar_formats(self) -> set[str]:
        return {self.name}

    def extract_placeholders(self, text: str) -> list[str]:
        """
        Extract all placeholders from text using this format's patterns.

        Args:
            text: Text to extract placeholders from

        Returns:
            List of placeholder strings found (deduplicated, order preserved)
        """
        # ICU MessageFormat detection pattern
        ICU_PATTERN = r'\{(\w+),\s*(plural|select|selectordinal)'

        placeholders = []
        for pattern in self.placeholder_patterns:
            # Only report variable names for ICU plural/select blocks
            if pattern.name == 'icu_full':
                icu_matches = re.findall(ICU_PATTERN, text)
                if icu_matches:
                    for var_name, _ in icu_matches:
                        placeholders.append('{' + var_name + '}')
                else:
                    for match in re.finditer(pattern.pattern, text):
                        placeholders.append(match.group(0))
            else:
                for match in re.finditer(pattern.pattern, text):
                    placeholders.append(match.group(0))

        return list(dict.fromkeys(placeholders))

    def validate_placeholders(self, source: str, translation: str) -> list[str]:
        """
        Validate that all source placeholders exist in translation.

        Returns:
            List of missing placeholder error messages
        """
        source_placeholders = set(self.extract_placeholders(source))
        translation_placeholders = set(self.extract_placeholders(translation))

        errors = []
        for placeholder in sorted(source_placeholders - translation_placeholders):
            errors.append(f"Missing placeholder in translation: {placeholder}")
        return errors



class HandlerRegistry:
    """
    Registry of format handler instances.

    Built once (see build_default_registry) and passed explicitly to the
    detector, the recovery engine and the validation service.
    """

    def __init__(self):
        self._handlers: dict[str, FormatHandler] = {}
        self._extension_map: dict[str, str] = {}  # extension -> format tag

    def register(self, handler: FormatHandler, aliases: Iterable[str] = ()) -> None:
        """Register a handler under its name, its aliases and its extensions."""
        name = handler.name.lower()
        self._handlers[name] = handler
        for alias in aliases:
            self._handlers[alias.lower()] = handler
        for ext in handler.file_extensions:
            self._extension_map.setdefault(ext.lower(), name)

    def get(self, name: str) -> FormatHandler:
        """Get handler by format tag or alias."""
        name_lower = name.lower()
        if name_lower not in self._handlers:
            available = ', '.join(sorted(self._handlers))
            raise UnknownFormatError(f"Unknown format: {name}. Available: {available}")
        return self._handlers[name_lower]

    def has(self, name: str) -> bool:
        return name.lower() in self._handlers

    def for_extension(self, extension: str) -> FormatHandler:
        """Get handler by file extension."""
        ext = extension.lower().lstrip('.')
        if ext not in self._extension_map:
            available = ', '.join(sorted(self._extension_map))
            raise UnknownFormatError(f"Unknown extension: .{ext}. Supported: {available}")
        return self._handlers[self._extension_map[ext]]

    def for_path(self, path: str, content: Optional[str] = None) -> FormatHandler:
        """
        Get the first handler (in registration order) that accepts the file.

        Raises:
            UnknownFormatError: If no handler accepts it
        """
        for handler in self.handlers():
            if handler.can_handle(path, content):
                return handler
        raise UnknownFormatError(f"No handler found for file: {path}")

    def formats(self) -> list[str]:
        return list(self._handlers)

    def handlers(self) -> list[FormatHandler]:
        """Distinct handler instances in registration order."""
        return list({id(handler): handler for handler in self._handlers.values()}.values())

    def list_formats(self) -> list[dict[str, Any]]:
        """List all registered handlers with their extensions."""
        return [
            {'name': handler.name, 'extensions': handler.file_extensions}
            for handler in self.handlers()
        ]
