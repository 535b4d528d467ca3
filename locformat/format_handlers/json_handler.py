#!/usr/bin/env python3
"""
JSON format handler for i18next/react-intl style localization files.

Nested objects and arrays are flattened to path keys; the parsed tree is
kept in the sidecar so serialization overlays translated values onto the
original structure.
"""

import json
import logging
import re
from typing import Any, Optional, Union

from ..codecs import paths
from ..errors import ParseError
from ..model import MetadataSidecar, Severity, ValidationIssue, ValidationResult, translation_items, with_sidecar
from .base import FormatHandler, PlaceholderPattern, PLACEHOLDER_PATTERNS

logger = logging.getLogger(__name__)

DEFAULT_INDENT = 2


def detect_indent(content: str) -> Optional[Union[int, str]]:
    """Indentation of the first indented line; None for single-line JSON."""
    match = re.search(r'\n([ \t]+)\S', content)
    if not match:
        return None if '\n' not in content.strip() else DEFAULT_INDENT
    whitespace = match.group(1)
    return '\t' if whitespace.startswith('\t') else len(whitespace)


class JsonHandler(FormatHandler):
    """
    Handler for JSON localization files (i18next, react-intl, vue-i18n).

    Supports structures like:
    ```json
    {
      "welcome": "Welcome",
      "user": {
        "greeting": "Hello {{name}}",
        "tags": ["new", "vip"]
      }
    }
    ```

    Keys are flattened to path notation: "user.greeting", "user.tags[1]".
    Non-string leaves (numbers, booleans, null) are kept as they are.
    """

    @property
    def name(self) -> str:
        return "json"

    @property
    def file_extensions(self) -> list[str]:
        return ["json"]

    @property
    def placeholder_patterns(self) -> list[PlaceholderPattern]:
        """JSON files commonly use i18next and ICU placeholders."""
        return [
            PLACEHOLDER_PATTERNS['i18next'],  # {{name}}
            PLACEHOLDER_PATTERNS['icu'],       # {name}
            PLACEHOLDER_PATTERNS['icu_full'],  # {count, plural, ...}
        ]

    def can_handle(self, path: str, content: Optional[str] = None) -> bool:
        if not super().can_handle(path, content):
            return False
        if content is None:
            return True
        try:
            json.loads(content)
        except (json.JSONDecodeError, RecursionError):
            return False
        return True

    def load(self, content: str) -> Any:
        """Decode JSON text, raising ParseError on failure."""
        if not content.strip():
            raise ParseError("Invalid JSON: content is empty", format=self.name)
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e}", format=self.name, line=e.lineno, column=e.colno) from e
        except RecursionError as e:
            raise ParseError("Invalid JSON: nesting is too deep", format=self.name) from e

    def parse(self, content: str) -> dict[str, Any]:
        """
        Parse JSON content into a flat translation document.

        Args:
            content: Raw JSON file content

        Returns:
            Document with flattened keys
        """
        data = self.load(content)
        if not isinstance(data, (dict, list)):
            raise ParseError("Invalid JSON: root must be an object or array", format=self.name)

        try:
            document = paths.flatten(data)
        except RecursionError as e:
            raise ParseError("Invalid JSON: nesting is too deep", format=self.name) from e
        logger.debug("Parsed %d JSON keys", len(document))
        sidecar = MetadataSidecar(
            format=self.name,
            original=data,
            extras={
                'indent': detect_indent(content),
                'trailing_newline': content.endswith('\n'),
            },
        )
        return with_sidecar(document, sidecar)

    def serialize(self, document: dict[str, Any], indent: Any = None, **options: Any) -> str:
        """
        Reconstruct JSON from a document.

        Args:
            document: Translation document (flat keys and/or nested values)
            indent: Indentation override (defaults to the original, else 2)

        Returns:
            JSON content
        """
        sidecar = self.sidecar(document)
        values = paths.expand_document(document)
        tree = paths.reconstruct(values, original=sidecar.original if sidecar else None)

        if indent is None:
            indent = sidecar.get('indent') if sidecar else DEFAULT_INDENT
        text = json.dumps(tree, indent=indent, ensure_ascii=False)
        if sidecar is None or sidecar.get('trailing_newline'):
            text += '\n'
        return text

    def validate_structure(self, document: dict[str, Any]) -> ValidationResult:
        issues = []
        cycle = paths.find_cycle(dict(translation_items(document)))
        if cycle:
            issues.append(ValidationIssue(
                'CIRCULAR_REFERENCE', f"Circular reference detected at '{cycle}'", Severity.ERROR, path=cycle,
            ))
            return ValidationResult.from_issues(issues)

        try:
            has_keys = bool(paths.expand_document(document))
        except TypeError as e:
            issues.append(ValidationIssue('INVALID_STRUCTURE', f"Invalid JSON structure: {e}", Severity.ERROR))
            return ValidationResult.from_issues(issues)

        if not has_keys:
            issues.append(ValidationIssue('EMPTY_JSON', "JSON document has no translation keys", Severity.WARNING))
        issues.extend(self.check_leaves(document))
        return ValidationResult.from_issues(issues)
