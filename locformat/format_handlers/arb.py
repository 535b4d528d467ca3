#!/usr/bin/env python3
"""
Flutter ARB (Application Resource Bundle) format handler.

Handles parsing and reconstruction of .arb files used in Flutter/Dart
applications for internationalization.
"""

import json
import re
from typing import Any, Optional

from ..errors import ParseError
from ..model import MetadataSidecar, Severity, ValidationIssue, ValidationResult, translation_items, with_sidecar
from .base import PlaceholderPattern, PLACEHOLDER_PATTERNS
from .json_handler import JsonHandler, detect_indent

PLURAL_KEYWORDS = {'zero', 'one', 'two', 'few', 'many', 'other'}
_QUOTE_STARTERS = set("{}#|")


def is_icu_message(text: str) -> bool:
    """Check if text contains ICU MessageFormat syntax."""
    return bool(re.search(r'\{\w+,\s*(plural|select|selectordinal)', text))


def validate_icu_message(text: str) -> list[str]:
    """
    Validate ICU MessageFormat syntax.

    Braces inside apostrophe-quoted sections are literal. A lone apostrophe
    that does not start a quoted section (as in "Don't") is literal too.

    Returns:
        List of validation error messages
    """
    errors = []
    depth = 0
    in_quote = False
    i = 0

    while i < len(text):
        char = text[i]
        nxt = text[i + 1] if i + 1 < len(text) else ''
        if char == "'":
            if nxt == "'":
                i += 2
                continue
            if in_quote:
                in_quote = False
            elif nxt in _QUOTE_STARTERS and nxt:
                in_quote = True
        elif not in_quote:
            if char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth < 0:
                    errors.append("Unmatched closing brace in ICU message")
                    break
        i += 1

    if in_quote:
        errors.append("Unmatched single quotes")
    if depth > 0:
        errors.append("Unmatched opening brace in ICU message")
    if re.search(r'\{\s*\}', text):
        errors.append("Invalid placeholder syntax")

    # Check for valid plural keywords using brace-aware extraction
    plural_content = extract_plural_content(text)
    if plural_content:
        found_keywords = set(re.findall(r'(\w+|=\d+)\s*\{', plural_content))
        non_numeric = {k for k in found_keywords if not k.startswith('=')}
        invalid = non_numeric - PLURAL_KEYWORDS
        if invalid:
            errors.append(f"Invalid plural keywords: {', '.join(sorted(invalid))}")

    return errors


def extract_plural_content(text: str) -> Optional[str]:
    """
    Extract the content of the first plural block, handling nested braces.

    Returns:
        The content inside the plural block, or None if no plural found
    """
    match = re.search(r'\{(\w+),\s*plural,\s*', text)
    if not match:
        return None

    start = match.end()
    depth = 1  # We're inside the outer { already
    end = len(text)

    for i in range(start, len(text)):
        if text[i] == '{':
            depth += 1
        elif text[i] == '}':
            depth -= 1
            if depth == 0:
                end = i
                break

    return text[start:end]


class ArbHandler(JsonHandler):
    """
    Handler for Flutter ARB (Application Resource Bundle) files.

    ARB format structure:
    ```json
    {
      "@@locale": "en",
      "welcomeMessage": "Welcome, {name}!",
      "@welcomeMessage": {
        "description": "Welcome message shown on home screen",
        "placeholders": {
          "name": {"type": "String"}
        }
      }
    }
    ```

    @@ file metadata and @key message metadata are kept in the sidecar;
    the document holds only the messages.
    """

    @property
    def name(self) -> str:
        return "arb"

    @property
    def file_extensions(self) -> list[str]:
        return ["arb"]

    @property
    def placeholder_patterns(self) -> list[PlaceholderPattern]:
        """ARB uses ICU MessageFormat placeholders."""
        return [
            PLACEHOLDER_PATTERNS['icu'],      # {name}
            PLACEHOLDER_PATTERNS['icu_full'], # {count, plural, ...}
        ]

    def parse(self, content: str) -> dict[str, Any]:
        """
        Parse ARB content into a translation document.

        Args:
            content: Raw ARB file content

        Returns:
            Document of message key -> message text
        """
        data = self.load(content)
        if not isinstance(data, dict):
            raise ParseError("Invalid ARB: root must be a JSON object", format=self.name)

        file_metadata = {}
        message_metadata = {}
        document = {}

        for key, value in data.items():
            if key.startswith('@@'):
                file_metadata[key] = value
            elif key.startswith('@'):
                message_metadata[key[1:]] = value
            else:
                document[key] = value

        sidecar = MetadataSidecar(
            format=self.name,
            original=data,
            extras={
                'file_metadata': file_metadata,
                'message_metadata': message_metadata,
                'key_order': list(data),
                'indent': detect_indent(content),
                'trailing_newline': content.endswith('\n'),
            },
        )
        return with_sidecar(document, sidecar)

    def serialize(
        self,
        document: dict[str, Any],
        indent: Any = None,
        target_language: Optional[str] = None,
        **options: Any,
    ) -> str:
        """
        Reconstruct an ARB file.

        Args:
            document: Translation document
            indent: Indentation override
            target_language: Written to @@locale when given

        Returns:
            ARB file content
        """
        sidecar = self.sidecar(document)
        messages = dict(translation_items(document))
        result: dict[str, Any] = {}

        if sidecar:
            file_metadata = sidecar.get('file_metadata', {})
            message_metadata = sidecar.get('message_metadata', {})
            for key in sidecar.get('key_order', []):
                if key.startswith('@@'):
                    result[key] = file_metadata[key]
                elif key.startswith('@'):
                    if key[1:] in messages:
                        result[key] = message_metadata[key[1:]]
                elif key in messages:
                    result[key] = messages[key]
            for key, value in messages.items():
                if key not in result:
                    result[key] = value
        else:
            result.update(messages)

        if target_language:
            if '@@locale' in result:
                result['@@locale'] = target_language
            else:
                result = {'@@locale': target_language, **result}

        if indent is None:
            indent = sidecar.get('indent') if sidecar else 2
        text = json.dumps(result, indent=indent, ensure_ascii=False)
        if sidecar is None or sidecar.get('trailing_newline'):
            text += '\n'
        return text

    def validate_structure(self, document: dict[str, Any]) -> ValidationResult:
        issues = self.check_leaves(document)
        sidecar = self.sidecar(document)
        if sidecar:
            for key, metadata in sidecar.get('message_metadata', {}).items():
                if not isinstance(metadata, dict):
                    issues.append(ValidationIssue(
                        'INVALID_METADATA', f"Metadata @{key} should be an object", Severity.ERROR, path=f"@{key}",
                    ))
        return ValidationResult.from_issues(issues)
