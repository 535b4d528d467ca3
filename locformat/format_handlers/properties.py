#!/usr/bin/env python3
"""
Java .properties format handler.

The file is kept as a list of lines (comments, blanks and entries) so that
comments, separators and continuation layout survive a round trip; only
entries whose value changed are rewritten.
"""

import logging
import re
from typing import Any, Optional

from ..model import (
    MetadataSidecar,
    Severity,
    ValidationIssue,
    ValidationResult,
    ValueKind,
    classify_value,
    leaf_to_text,
    translation_items,
    with_sidecar,
)
from .base import FormatHandler, PlaceholderPattern, PLACEHOLDER_PATTERNS

logger = logging.getLogger(__name__)

_UNICODE_ESCAPE = re.compile(r'\\u([0-9a-fA-F]{4})')
_ENCODING_COMMENT = re.compile(r'^[#!].*encoding[:\s=]+(\S+)', re.IGNORECASE | re.MULTILINE)
_ESCAPES = {'t': '\t', 'n': '\n', 'r': '\r', 'f': '\f'}

PLACEHOLDER_REGEXES = [
    re.compile(r'\$\{[^}]+\}'),            # ${placeholder}
    re.compile(r'@\{[^}]+\}'),             # @{placeholder}
    re.compile(r'#\{[^}]+\}'),             # #{placeholder}
    re.compile(r'\{[^}]+\}'),              # {placeholder}, {0}
    re.compile(r'%[^%\s]+%'),              # %placeholder%
    re.compile(r'%\w+'),                   # %placeholder
    re.compile(r'\$[a-zA-Z_][a-zA-Z0-9_]*'),  # $variable
]


def _has_unescaped_trailing_backslash(s: str) -> bool:
    """Check if a string ends with an odd number of backslashes."""
    if not s.endswith('\\'):
        return False
    count = len(s) - len(s.rstrip('\\'))
    # An odd number of trailing backslashes indicates an unescaped one
    return count % 2 == 1


def detect_encoding(content: str) -> str:
    """Guess the charset a properties file was written in."""
    if content.startswith('\ufeff'):
        return "UTF-8"
    if _UNICODE_ESCAPE.search(content):
        return "ISO-8859-1"
    if re.search(r'[^\x00-\x7f]', content):
        return "UTF-8"
    match = _ENCODING_COMMENT.search(content)
    if match:
        declared = match.group(1).upper()
        if 'UTF-8' in declared or 'UTF8' in declared:
            return "UTF-8"
        if 'ISO-8859-1' in declared or 'LATIN-1' in declared or 'LATIN1' in declared:
            return "ISO-8859-1"
    return "UTF-8"


def normalize_encoding(encoding: str) -> str:
    normalized = encoding.upper().replace('-', '').replace('_', '')
    return {
        'UTF8': 'UTF-8',
        'ISO88591': 'ISO-8859-1',
        'LATIN1': 'ISO-8859-1',
        'ASCII': 'ASCII',
        'USASCII': 'ASCII',
    }.get(normalized, 'UTF-8')


def unescape(text: str) -> str:
    """Resolve backslash escapes (\\t, \\n, \\uXXXX, \\=, \\:, ...)."""
    result = []
    i = 0
    while i < len(text):
        char = text[i]
        if char != '\\' or i + 1 >= len(text):
            result.append(char)
            i += 1
            continue
        nxt = text[i + 1]
        if nxt == 'u' and re.match(r'[0-9a-fA-F]{4}', text[i + 2:i + 6]):
            result.append(chr(int(text[i + 2:i + 6], 16)))
            i += 6
            continue
        result.append(_ESCAPES.get(nxt, nxt))
        i += 2
    return ''.join(result)


def _escape_unicode(text: str, encoding: str) -> str:
    limit = {'ISO-8859-1': 0xff, 'ASCII': 0x7f}.get(encoding)
    if limit is None:
        return text
    return ''.join(c if ord(c) <= limit else f"\\u{ord(c):04x}" for c in text)


def escape_key(key: str, encoding: str = "UTF-8") -> str:
    escaped = key.replace('\\', '\\\\')
    for char in '=:#!':
        escaped = escaped.replace(char, '\\' + char)
    escaped = escaped.replace(' ', '\\ ').replace('\n', '\\n').replace('\r', '\\r')
    escaped = escaped.replace('\t', '\\t').replace('\f', '\\f')
    return _escape_unicode(escaped, encoding)


def escape_value(value: str, encoding: str = "UTF-8") -> str:
    escaped = value.replace('\\', '\\\\').replace('\n', '\\n').replace('\r', '\\r')
    escaped = escaped.replace('\t', '\\t').replace('\f', '\\f')
    # Leading spaces in values need to be escaped
    stripped = escaped.lstrip(' ')
    escaped = '\\ ' * (len(escaped) - len(stripped)) + stripped
    return _escape_unicode(escaped, encoding)


def split_entry(line: str) -> tuple[str, str, str]:
    """
    Split a logical line into (raw key, separator group, raw value).

    The separator is the first unescaped '=', ':' or whitespace, together
    with the whitespace around it.
    """
    sep_index = -1
    i = 0
    while i < len(line):
        char = line[i]
        if char == '\\':
            i += 2
            continue
        if char in '=: \t\f':
            sep_index = i
            break
        i += 1

    if sep_index == -1:
        return line, '', ''

    end = sep_index
    while end < len(line) and line[end] in ' \t\f':
        end += 1
    if end < len(line) and line[end] in '=:' and line[sep_index] in ' \t\f':
        end += 1
    elif line[sep_index] in '=:':
        end = sep_index + 1
    while end < len(line) and line[end] in ' \t\f':
        end += 1
    return line[:sep_index], line[sep_index:end], line[end:]


def parse_lines(content: str) -> list[dict]:
    """
    Parse properties content into line records.

    Returns:
        List of {'type': 'comment_or_blank', 'content': ...} and
        {'type': 'entry', 'key', 'value', 'separator', 'raw', 'line_number'}
        records in file order
    """
    lines = content.lstrip('\ufeff').splitlines()
    parsed_lines = []
    i = 0
    while i < len(lines):
        line = lines[i]
        stripped_line = line.lstrip()

        if not stripped_line or stripped_line.startswith(('#', '!')):
            parsed_lines.append({'type': 'comment_or_blank', 'content': line})
            i += 1
            continue

        line_number = i + 1
        raw_lines = [line]
        logical = stripped_line
        # Handle multiline values
        while _has_unescaped_trailing_backslash(logical) and i + 1 < len(lines):
            logical = logical[:-1]
            i += 1
            raw_lines.append(lines[i])
            logical += lines[i].lstrip()
        if _has_unescaped_trailing_backslash(logical):
            logical = logical[:-1]
        i += 1

        raw_key, separator, raw_value = split_entry(logical)
        parsed_lines.append({
            'type': 'entry',
            'key': unescape(raw_key),
            'value': unescape(raw_value),
            'separator': separator or '=',
            'raw': raw_lines,
            'line_number': line_number,
        })
    return parsed_lines


def find_placeholders(value: str) -> list[str]:
    found = []
    for pattern in PLACEHOLDER_REGEXES:
        found.extend(pattern.findall(value))
    return list(dict.fromkeys(found))


def has_unbalanced_braces(value: str) -> bool:
    depth = 0
    for char in value:
        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth < 0:
                return True
    return depth != 0


class PropertiesHandler(FormatHandler):
    """
    Handler for Java .properties resource bundles.

    Properties structure:
    ```
    # Header comment
    app.title = My App
    app.welcome: Welcome, {0}!
    long.text = first part \\
                second part
    ```

    Keys are used as they are (dots are not nesting); values are unescaped.
    """

    @property
    def name(self) -> str:
        return "properties"

    @property
    def file_extensions(self) -> list[str]:
        return ["properties"]

    @property
    def placeholder_patterns(self) -> list[PlaceholderPattern]:
        return [
            PLACEHOLDER_PATTERNS['icu'],     # {name}, {0}
            PLACEHOLDER_PATTERNS['printf'],  # %s
        ]

    def parse(self, content: str) -> dict[str, Any]:
        """
        Parse properties content into a flat translation document.

        Args:
            content: Raw .properties content

        Returns:
            Document of key -> unescaped value
        """
        encoding = detect_encoding(content)
        lines = parse_lines(content)
        document = {line['key']: line['value'] for line in lines if line['type'] == 'entry'}
        logger.debug("Parsed %d properties (%s)", len(document), encoding)

        sidecar = MetadataSidecar(
            format=self.name,
            encoding=encoding,
            extras={
                'lines': lines,
                'has_unicode_escapes': bool(_UNICODE_ESCAPE.search(content)),
                'trailing_newline': content.endswith(('\n', '\r')),
                'line_ending': '\r\n' if '\r\n' in content else '\n',
            },
        )
        return with_sidecar(document, sidecar)

    def serialize(self, document: dict[str, Any], encoding: Optional[str] = None, **options: Any) -> str:
        """
        Reconstruct a .properties file.

        Args:
            document: Translation document
            encoding: Output charset; characters it cannot hold become \\uXXXX

        Returns:
            Properties file content
        """
        sidecar = self.sidecar(document)
        values = {key: leaf_to_text(value) for key, value in translation_items(document)}
        charset = normalize_encoding(encoding or (sidecar.encoding if sidecar else 'UTF-8'))

        output = []
        written = set()
        if sidecar is not None:
            for line in sidecar.get('lines', []):
                if line['type'] != 'entry':
                    output.append(line['content'])
                    continue
                key = line['key']
                if key not in values or key in written:
                    continue
                written.add(key)
                if values[key] == line['value'] and charset == normalize_encoding(sidecar.encoding):
                    output.extend(line['raw'])
                else:
                    output.append(f"{escape_key(key, charset)}{line['separator']}{escape_value(values[key], charset)}")
        elif charset != 'UTF-8':
            output.append(f"# encoding: {charset}")

        for key, value in values.items():
            if key not in written:
                output.append(f"{escape_key(key, charset)} = {escape_value(value, charset)}")

        line_ending = sidecar.get('line_ending', '\n') if sidecar else '\n'
        text = line_ending.join(output)
        if output and (sidecar is None or sidecar.get('trailing_newline')):
            text += line_ending
        return text

    def validate_structure(self, document: dict[str, Any]) -> ValidationResult:
        issues = []
        keys = 0
        for key, value in translation_items(document):
            keys += 1
            if not key or key.strip() != key:
                issues.append(ValidationIssue(
                    'INVALID_KEY_FORMAT', f"Invalid property key format: {key!r}", Severity.ERROR, path=key,
                ))

            kind = classify_value(value)
            if kind in (ValueKind.OBJECT, ValueKind.ARRAY, ValueKind.ABSENT):
                issues.append(ValidationIssue(
                    'NON_STRING_VALUE', f"Non-string value at key {key} will be converted to string",
                    Severity.WARNING, path=key,
                ))
                continue
            if kind is not ValueKind.STRING:
                continue

            placeholders = find_placeholders(value)
            if placeholders:
                issues.append(ValidationIssue(
                    'PLACEHOLDER_DETECTED',
                    f"Placeholder variables detected in key {key}: [{', '.join(placeholders)}]",
                    Severity.INFO, path=key, actionable=False,
                ))
            if has_unbalanced_braces(value):
                issues.append(ValidationIssue(
                    'INVALID_PLACEHOLDER_SYNTAX', f"Invalid placeholder syntax in key {key}: unbalanced braces",
                    Severity.ERROR, path=key,
                ))

        if keys == 0:
            issues.append(ValidationIssue('EMPTY_PROPERTIES', "Properties file appears to be empty", Severity.WARNING))
        issues.extend(issue for issue in self.check_leaves(document) if issue.code != 'NON_TRANSLATABLE_VALUE')
        return ValidationResult.from_issues(issues)
