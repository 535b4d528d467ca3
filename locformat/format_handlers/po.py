#!/usr/bin/env python3
"""
GNU gettext PO/POT format handler.

Handles parsing and reconstruction of .po and .pot files used by
WordPress, Django, Rails (via gettext), and many Linux applications.

Document keys follow the gettext key encoding: "ctx|msgid" for entries with
a msgctxt and "msgid[n]" for plural forms n >= 1 (form 0 is the bare key).
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from ..codecs import plural
from ..errors import ParseError, PluralExpressionError
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

DEFAULT_WRAP_WIDTH = 76

_PO_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '"': '"', '\\': '\\', 'a': '\a', 'b': '\b', 'f': '\f', 'v': '\v'}
_PO_ESCAPE = re.compile(r'\\(.)', re.DOTALL)
_CHARSET = re.compile(r'charset=([\w.-]+)', re.IGNORECASE)
_PLURAL_STR = re.compile(r'msgstr\[(\d+)\]')


def _unescape_po_string(s: str) -> str:
    """Unescape PO string escapes."""
    return _PO_ESCAPE.sub(lambda m: _PO_ESCAPES.get(m.group(1), m.group(0)), s)


def _escape_po_string(s: str) -> str:
    """Escape string for PO format."""
    return (
        s.replace('\\', '\\\\')
        .replace('"', '\\"')
        .replace('\n', '\\n')
        .replace('\t', '\\t')
        .replace('\r', '\\r')
    )


def _format_po_string(prefix: str, s: Optional[str], wrap_width: int = DEFAULT_WRAP_WIDTH) -> list[str]:
    """
    Format a string for PO output, wrapping long strings at ~76 characters.

    Args:
        prefix: The PO prefix (e.g., 'msgid', 'msgstr', 'msgstr[0]')
        s: The string to format
        wrap_width: Maximum line width for wrapping (default: 76)

    Returns:
        List of formatted lines
    """
    escaped = _escape_po_string(s or "")

    # If short enough and without embedded newlines, output on single line
    single_line = f'{prefix} "{escaped}"'
    if len(single_line) <= wrap_width and '\\n' not in escaped[:-2]:
        return [single_line]

    # For longer strings, use continuation format:
    # msgid ""
    # "first part "
    # "second part"
    lines = [f'{prefix} ""']

    # Split by escaped newlines first to preserve line breaks
    segments = escaped.split('\\n')

    for i, segment in enumerate(segments):
        # Add back the \n except for the last segment
        if i < len(segments) - 1:
            segment += '\\n'

        while segment:
            # Reserve space for quotes
            max_chunk = wrap_width - 2
            if len(segment) <= max_chunk:
                lines.append(f'"{segment}"')
                break

            # Find a good break point (prefer space)
            break_at = max_chunk
            space_pos = segment.rfind(' ', max_chunk - 20, max_chunk)
            if space_pos > 0:
                break_at = space_pos + 1  # Include the space
            # Never split an escape sequence
            if segment[:break_at].endswith('\\') and not segment[:break_at].endswith('\\\\'):
                break_at -= 1

            lines.append(f'"{segment[:break_at]}"')
            segment = segment[break_at:]

    return lines


def _new_entry_dict() -> dict:
    """Create empty entry dictionary."""
    return {
        'translator_comment': [],
        'extracted_comment': [],
        'reference': [],
        'flags': [],
        'previous': [],
        'obsolete': [],
        'msgctxt': None,
        'msgid': None,
        'msgid_plural': None,
        'msgstr': None,
        'msgstr_plural': {},
    }


def _has_translation(entry: dict) -> bool:
    return entry['msgstr'] is not None or bool(entry['msgstr_plural'])


def parse_header(text: str) -> dict[str, str]:
    """Header msgstr ("Key: value\\n" lines) to an ordered dict."""
    headers = {}
    for line in text.split('\n'):
        if ':' not in line:
            continue
        name, value = line.split(':', 1)
        headers[name.strip()] = value.strip()
    return headers


def language_from_headers(headers: dict[str, str]) -> Optional[str]:
    """Language header, else a '(xx)' code in Language-Team."""
    if headers.get('Language'):
        return headers['Language']
    team = headers.get('Language-Team', '')
    match = re.search(r'\(([^)]+)\)', team)
    return match.group(1) if match else None


def charset_from_headers(headers: dict[str, str]) -> str:
    match = _CHARSET.search(headers.get('Content-Type', ''))
    charset = match.group(1).lower() if match else 'utf-8'
    return 'utf-8' if charset == 'charset' else charset


def plural_rule_from_headers(headers: dict[str, str]) -> Optional[plural.PluralRule]:
    value = headers.get('Plural-Forms')
    if not value:
        return None
    try:
        return plural.parse_plural_forms_header(value)
    except PluralExpressionError:
        return None


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M+0000')


def default_headers(language: Optional[str] = None) -> dict[str, str]:
    """Header block for a PO file synthesized without an original."""
    now = _timestamp()
    return {
        'Project-Id-Version': 'PACKAGE VERSION',
        'Report-Msgid-Bugs-To': '',
        'POT-Creation-Date': now,
        'PO-Revision-Date': now,
        'Last-Translator': 'locformat',
        'Language-Team': f"{language.upper()} <{language}@li.org>" if language else 'LANGUAGE <LL@li.org>',
        'Language': language or '',
        'MIME-Version': '1.0',
        'Content-Type': 'text/plain; charset=UTF-8',
        'Content-Transfer-Encoding': '8bit',
        'Plural-Forms': plural.format_plural_forms_header(language or 'en'),
    }


def parse_po(content: str, format: str = "po") -> tuple[dict, list[dict], list[str]]:
    """
    Run the PO line state machine.

    Returns:
        (header entry or empty dict, message entries, trailing comment lines)

    Raises:
        ParseError: On lines that are not valid PO syntax
    """
    entries = []
    header: dict = {}
    current_entry = _new_entry_dict()

    lines = content.lstrip('\ufeff').split('\n')
    i = 0

    def flush():
        nonlocal current_entry, header
        if current_entry['msgid'] is None:
            return
        is_header = not current_entry['msgid'] and current_entry['msgctxt'] is None
        if is_header and not entries and not header:
            header = current_entry
        else:
            entries.append(current_entry)
        current_entry = _new_entry_dict()

    def extract(line: str, prefix: str, line_no: int) -> str:
        value = line[len(prefix):].strip()
        if len(value) < 2 or not value.startswith('"') or not value.endswith('"') or value.endswith('\\"') and not value.endswith('\\\\"'):
            raise ParseError(f"Invalid PO syntax at line {line_no}: unterminated string", format=format, line=line_no)
        return _unescape_po_string(value[1:-1])

    def read_multiline(start: int, initial: str) -> tuple[int, str]:
        """Read continuation lines for multi-line strings."""
        result = initial
        j = start + 1
        while j < len(lines):
            line = lines[j].strip()
            if not line.startswith('"'):
                break
            result += extract(line, '', j + 1)
            j += 1
        return j - 1, result

    while i < len(lines):
        line = lines[i].strip()
        line_no = i + 1

        # Skip empty lines between entries
        if not line:
            flush()
            i += 1
            continue

        starts_entry = line.startswith(('#', 'msgctxt', 'msgid '))
        if starts_entry and _has_translation(current_entry):
            flush()

        if line.startswith('#~'):
            current_entry['obsolete'].append(line)
        elif line.startswith('#.'):
            current_entry['extracted_comment'].append(line[2:].strip())
        elif line.startswith('#:'):
            current_entry['reference'].append(line[2:].strip())
        elif line.startswith('#,'):
            flags = line[2:].strip().split(',')
            current_entry['flags'].extend([f.strip() for f in flags if f.strip()])
        elif line.startswith('#|'):
            current_entry['previous'].append(line[2:].strip())
        elif line.startswith('#'):
            current_entry['translator_comment'].append(line[2:] if line.startswith('# ') else line[1:])
        elif line.startswith('msgctxt'):
            i, current_entry['msgctxt'] = read_multiline(i, extract(line, 'msgctxt', line_no))
        elif line.startswith('msgid_plural'):
            i, current_entry['msgid_plural'] = read_multiline(i, extract(line, 'msgid_plural', line_no))
        elif line.startswith('msgid'):
            i, current_entry['msgid'] = read_multiline(i, extract(line, 'msgid', line_no))
        elif line.startswith('msgstr['):
            match = _PLURAL_STR.match(line)
            if not match:
                raise ParseError(f"Invalid PO syntax at line {line_no}: {line}", format=format, line=line_no)
            idx = int(match.group(1))
            i, value = read_multiline(i, extract(line, match.group(0), line_no))
            current_entry['msgstr_plural'][idx] = value
        elif line.startswith('msgstr'):
            i, current_entry['msgstr'] = read_multiline(i, extract(line, 'msgstr', line_no))
        else:
            raise ParseError(f"Invalid PO syntax at line {line_no}: {line}", format=format, line=line_no)

        i += 1

    # Don't forget the last entry
    flush()
    return header, entries, comment_lines(current_entry)


def comment_lines(entry: dict) -> list[str]:
    """Comment lines of an entry in canonical gettext order."""
    lines = list(entry['obsolete'])
    for comment in entry['translator_comment']:
        lines.append(f'# {comment}' if comment else '#')
    for comment in entry['extracted_comment']:
        lines.append(f'#. {comment}')
    for ref in entry['reference']:
        lines.append(f'#: {ref}')
    if entry['flags']:
        lines.append(f'#, {", ".join(entry["flags"])}')
    for previous in entry['previous']:
        lines.append(f'#| {previous}')
    return lines


def entry_key(entry: dict) -> str:
    return plural.create_context_key(entry['msgid'], entry['msgctxt'])


def entry_forms(entry: dict) -> list[str]:
    """msgstr values by plural index (a single value for non-plural entries)."""
    if entry['msgid_plural'] is None:
        return [entry['msgstr'] or '']
    count = max(entry['msgstr_plural'], default=-1) + 1
    return [entry['msgstr_plural'].get(i, '') for i in range(max(count, 1))]


class PoHandler(FormatHandler):
    """
    Handler for GNU gettext PO files.

    PO format structure:
    ```
    # Translator comment
    #. Extracted comment
    #: file.py:42
    #, fuzzy
    msgctxt "context"
    msgid "Source text"
    msgstr "Translated text"

    # Plural form
    msgid "One item"
    msgid_plural "%d items"
    msgstr[0] "Un élément"
    msgstr[1] "%d éléments"
    ```

    Comments, context, header fields and plural grouping are kept in the
    sidecar; the document holds "context|Source text" -> "Translated text",
    "One item" -> "Un élément" and "One item[1]" -> "%d éléments".
    """

    @property
    def name(self) -> str:
        return "po"

    @property
    def file_extensions(self) -> list[str]:
        return ["po"]

    @property
    def placeholder_patterns(self) -> list[PlaceholderPattern]:
        """PO files use printf-style placeholders."""
        return [
            PLACEHOLDER_PATTERNS['printf'],       # %s, %d
            PLACEHOLDER_PATTERNS['printf_named'], # %(name)s
        ]

    def can_handle(self, path: str, content: Optional[str] = None) -> bool:
        if not super().can_handle(path, content):
            return False
        return content is None or bool(re.search(r'^\s*msgid\s+"', content, re.MULTILINE))

    def parse(self, content: str) -> dict[str, Any]:
        """
        Parse PO content into a translation document.

        Args:
            content: Raw PO file content

        Returns:
            Document keyed by context/plural keys
        """
        header, entries, trailing = parse_po(content, format=self.name)
        headers = parse_header(header.get('msgstr') or '') if header else {}

        document = {}
        for entry in entries:
            key = entry_key(entry)
            for i, value in enumerate(entry_forms(entry)):
                document[plural.create_plural_key(key, i)] = value

        logger.debug("Parsed %d %s entries", len(entries), self.name)
        sidecar = MetadataSidecar(
            format=self.name,
            encoding=charset_from_headers(headers),
            extras={
                'headers': headers,
                'header_comments': header.get('translator_comment', []) if header else [],
                'header_flags': header.get('flags', []) if header else [],
                'has_header': bool(header),
                'entries': entries,
                'trailing_comments': trailing,
                'language': language_from_headers(headers),
                'plural_rule': plural_rule_from_headers(headers),
            },
        )
        return with_sidecar(document, sidecar)

    def serialize(
        self,
        document: dict[str, Any],
        target_language: Optional[str] = None,
        encoding: Optional[str] = None,
        wrap_width: int = DEFAULT_WRAP_WIDTH,
        **options: Any,
    ) -> str:
        """
        Reconstruct a PO file from a document.

        Args:
            document: Translation document
            target_language: Updates Language and Plural-Forms when given
            encoding: Charset written to Content-Type
            wrap_width: Line width for wrapping long strings

        Returns:
            Complete PO file content
        """
        sidecar = self.sidecar(document)
        values = {key: leaf_to_text(value) for key, value in translation_items(document)}
        for key in list(values):
            base, index = plural.parse_plural_key(key)
            if index == 0:
                values.setdefault(base, values.pop(key))

        if sidecar is not None:
            headers = dict(sidecar.get('headers', {}))
            header_comments = sidecar.get('header_comments', [])
            header_flags = sidecar.get('header_flags', [])
            write_header = sidecar.get('has_header', True) or bool(target_language)
            entries = [dict(entry) for entry in sidecar.get('entries', [])]
            trailing = sidecar.get('trailing_comments', [])
        else:
            headers = self.new_headers(target_language)
            header_comments, header_flags, trailing = [], [], []
            write_header = True
            entries = []

        if target_language:
            self.update_headers_for_language(headers, target_language)
        if encoding:
            headers['Content-Type'] = f"text/plain; charset={encoding}"

        entries.extend(self._new_entries(entries, values))

        lines = []
        if write_header:
            for comment in header_comments:
                lines.append(f'# {comment}' if comment else '#')
            if header_flags:
                lines.append(f'#, {", ".join(header_flags)}')
            lines.append('msgid ""')
            lines.append('msgstr ""')
            for name, value in headers.items():
                lines.append(f'"{_escape_po_string(f"{name}: {value}")}\\n"')
            lines.append('')

        for entry in entries:
            lines.extend(self._format_entry(entry, values, wrap_width))
            lines.append('')

        lines.extend(trailing)
        if trailing:
            lines.append('')
        return '\n'.join(lines)

    def new_headers(self, target_language: Optional[str]) -> dict[str, str]:
        return default_headers(target_language)

    def accepted_sidecar_formats(self) -> set[str]:
        return {"po", "pot"}

    def update_headers_for_language(self, headers: dict[str, str], language: str) -> None:
        headers['Language'] = language
        headers['Plural-Forms'] = plural.format_plural_forms_header(language)

    def _new_entries(self, entries: list[dict], values: dict[str, str]) -> list[dict]:
        """Entries for document keys the original file does not contain."""
        known = {entry_key(entry) for entry in entries}
        created: dict[str, dict] = {}

        for key in values:
            base, index = plural.parse_plural_key(key)
            if index is None and key in known:
                continue
            if index is not None and base in known:
                continue
            base_key = key if index is None else base
            context, msgid = plural.parse_context_key(base_key)
            if context is not None and not plural.validate_context(context):
                raise ValueError(f"Invalid context in key \"{key}\": context cannot contain separator character")

            entry = created.get(base_key)
            if entry is None:
                entry = _new_entry_dict()
                entry['msgid'] = msgid
                entry['msgctxt'] = context
                created[base_key] = entry
            if index is None:
                entry['msgstr'] = ''
            else:
                entry['msgid_plural'] = entry['msgid_plural'] or msgid
                entry['msgstr_plural'].setdefault(0, '')
                entry['msgstr_plural'][index] = ''

        for entry in created.values():
            if entry['msgid_plural'] is not None:
                entry['msgstr'] = None
        return list(created.values())

    def _format_entry(self, entry: dict, values: dict[str, str], wrap_width: int) -> list[str]:
        lines = comment_lines(entry)

        if entry['msgctxt'] is not None:
            lines.extend(_format_po_string('msgctxt', entry['msgctxt'], wrap_width))
        lines.extend(_format_po_string('msgid', entry['msgid'], wrap_width))

        key = entry_key(entry)
        forms = entry_forms(entry)
        if entry['msgid_plural'] is None:
            lines.extend(_format_po_string('msgstr', values.get(key, forms[0]), wrap_width))
            return lines

        lines.extend(_format_po_string('msgid_plural', entry['msgid_plural'], wrap_width))
        count = len(forms)
        while plural.create_plural_key(key, count) in values:
            count += 1
        for i in range(count):
            original = forms[i] if i < len(forms) else ''
            value = values.get(plural.create_plural_key(key, i), original)
            lines.extend(_format_po_string(f'msgstr[{i}]', value, wrap_width))
        return lines

    def validate_structure(self, document: dict[str, Any]) -> ValidationResult:
        issues = []
        keys = [key for key, _ in translation_items(document)]
        if not keys:
            issues.append(ValidationIssue(
                f'EMPTY_{self.name.upper()}', f"{self.name.upper()} file appears to have no translatable strings",
                Severity.WARNING,
            ))

        for key, value in translation_items(document):
            kind = classify_value(value)
            if kind is not ValueKind.STRING:
                issues.append(ValidationIssue(
                    'INVALID_TRANSLATION_VALUE',
                    f'Translation value for "{key}" must be a string, got {kind.value}',
                    Severity.ERROR, path=key,
                ))
            context, _ = plural.parse_context_key(plural.parse_plural_key(key)[0])
            if context is not None and not context:
                issues.append(ValidationIssue(
                    'INVALID_CONTEXT', f'Key "{key}" has an empty context before the separator',
                    Severity.WARNING, path=key,
                ))

        issues.extend(self.check_plurals(document, keys))
        return ValidationResult.from_issues(issues)

    def check_plurals(self, document: dict[str, Any], keys: list[str]) -> list[ValidationIssue]:
        issues = []
        sidecar = self.sidecar(document)
        language = sidecar.get('language') if sidecar else None
        rule = sidecar.get('plural_rule') if sidecar else None
        if rule is not None and plural.validate_plural_expression(rule.expression, rule.nplurals):
            rule = None

        if rule is not None or language:
            check = plural.check_plural_forms(keys, rule or language)
            label = language or f"nplurals={rule.nplurals}"
            for missing in check.missing:
                issues.append(ValidationIssue(
                    'MISSING_PLURAL_FORM', f"Missing plural form: {missing}", Severity.WARNING, path=missing,
                ))
            for extra in check.extra:
                issues.append(ValidationIssue(
                    'EXTRA_PLURAL_FORM', f"Extra plural form for language {label}: {extra}",
                    Severity.WARNING, path=extra,
                ))
        else:
            singular = set()
            plural_bases = set()
            for key in keys:
                base, index = plural.parse_plural_key(key)
                if index is None:
                    singular.add(key)
                else:
                    plural_bases.add(base)
            for base in sorted(plural_bases - singular):
                issues.append(ValidationIssue(
                    'INCOMPLETE_PLURAL_FORM', f'Plural form found for "{base}" but no singular form exists',
                    Severity.WARNING, path=base,
                ))

        header = sidecar.get('headers', {}).get('Plural-Forms') if sidecar else None
        if header:
            issues.extend(self._check_plural_header(header))
        return issues

    def _check_plural_header(self, header: str) -> list[ValidationIssue]:
        try:
            rule = plural.parse_plural_forms_header(header)
        except PluralExpressionError as e:
            return [ValidationIssue('INVALID_PLURAL_EXPRESSION', str(e), Severity.WARNING)]
        problems = plural.validate_plural_expression(rule.expression, rule.nplurals)
        if problems:
            return [ValidationIssue(
                'INVALID_PLURAL_EXPRESSION', f"Invalid plural expression: {rule.expression} ({problems[0]})",
                Severity.WARNING,
            )]
        return []


class PotHandler(PoHandler):
    """
    Handler for gettext POT templates.

    Parsing and serialization are shared with PoHandler; templates expect
    empty msgstr values and a template header.
    """

    REQUIRED_HEADERS = ["Project-Id-Version", "POT-Creation-Date", "Content-Type", "Content-Transfer-Encoding"]

    @property
    def name(self) -> str:
        return "pot"

    @property
    def file_extensions(self) -> list[str]:
        return ["pot"]

    def new_headers(self, target_language: Optional[str]) -> dict[str, str]:
        return {
            'Project-Id-Version': 'PACKAGE VERSION',
            'Report-Msgid-Bugs-To': '',
            'POT-Creation-Date': _timestamp(),
            'PO-Revision-Date': 'YEAR-MO-DA HO:MI+ZONE',
            'Last-Translator': 'FULL NAME <EMAIL@ADDRESS>',
            'Language-Team': 'LANGUAGE <LL@li.org>',
            'Language': '',
            'MIME-Version': '1.0',
            'Content-Type': 'text/plain; charset=UTF-8',
            'Content-Transfer-Encoding': '8bit',
            'Plural-Forms': 'nplurals=INTEGER; plural=EXPRESSION;',
        }

    def update_headers_for_language(self, headers: dict[str, str], language: str) -> None:
        super().update_headers_for_language(headers, language)
        headers['PO-Revision-Date'] = _timestamp()
        headers['Last-Translator'] = 'locformat'
        if headers.get('Language-Team') == 'LANGUAGE <LL@li.org>':
            headers['Language-Team'] = f"{language.upper()} <{language}@li.org>"

    def generate_po_from_template(
        self,
        content: str,
        target_language: str,
        translations: Optional[dict[str, str]] = None,
    ) -> str:
        """
        Build PO content for a language from a POT template.

        Plural entries get as many msgstr forms as the language needs.

        Args:
            content: POT template content
            target_language: Language code for the new PO file
            translations: Optional key -> translation values to fill in

        Returns:
            PO file content
        """
        document = self.parse(content)
        sidecar = self.sidecar(document)
        rule = plural.get_plural_rule(target_language)

        values = dict(translation_items(document))
        for entry in sidecar.get('entries', []):
            if entry['msgid_plural'] is None:
                continue
            key = entry_key(entry)
            for i in range(rule.nplurals):
                values.setdefault(plural.create_plural_key(key, i), '')
        values.update(translations or {})

        return self.serialize(with_sidecar(values, sidecar), target_language=target_language)

    def validate_structure(self, document: dict[str, Any]) -> ValidationResult:
        result = super().validate_structure(document)
        for key, value in translation_items(document):
            if isinstance(value, str) and value and plural.parse_plural_key(key)[1] is None:
                result.add(ValidationIssue(
                    'NON_EMPTY_TEMPLATE_VALUE',
                    f'Template value for "{key}" is not empty - POT templates typically have empty msgstr values',
                    Severity.WARNING, path=key,
                ))

        sidecar = self.sidecar(document)
        if sidecar is not None and sidecar.get('has_header'):
            headers = sidecar.get('headers', {})
            for header in self.REQUIRED_HEADERS:
                if not headers.get(header):
                    result.add(ValidationIssue(
                        'MISSING_POT_HEADER', f"Missing required POT header: {header}", Severity.WARNING,
                    ))
        return result

    def check_plurals(self, document: dict[str, Any], keys: list[str]) -> list[ValidationIssue]:
        # Template headers carry the placeholder 'nplurals=INTEGER; plural=EXPRESSION;'
        return []
