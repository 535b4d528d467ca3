#!/usr/bin/env python3
"""
Tabular (CSV/TSV) codec: dialects, tokenizer, delimiter detection,
header detection and column-role inference.

CSV and TSV handlers are thin configurations over these functions.
"""

import re
from dataclasses import dataclass, field, replace
from typing import Optional

from ..model import Severity, ValidationIssue

CANDIDATE_DELIMITERS = [',', ';', '\t', '|']


@dataclass(frozen=True)
class Dialect:
    """Named bundle of quoting conventions."""
    name: str
    quote: str = '"'
    escape: str = '"'
    line_terminator: str = '\n'
    trim_fields: bool = True


DIALECTS = {
    'excel': Dialect('excel', quote='"', escape='"', line_terminator='\r\n', trim_fields=False),
    'unix': Dialect('unix', quote='"', escape='\\', line_terminator='\n', trim_fields=True),
    'rfc4180': Dialect('rfc4180', quote='"', escape='"', line_terminator='\r\n', trim_fields=False),
    'default': Dialect('default', quote='"', escape='"', line_terminator='\n', trim_fields=True),
}


@dataclass
class TabularOptions:
    """
    Parse/serialize options for tabular files.

    Explicit quote/escape/line_terminator/trim_fields values override the
    selected dialect ('custom' dialect = default plus overrides).
    """
    delimiter: Optional[str] = None
    key_column: Optional[str] = None
    value_column: Optional[str] = None
    has_headers: Optional[bool] = None
    columns: Optional[list[str]] = None
    language_columns: Optional[dict[str, str]] = None
    quote: Optional[str] = None
    escape: Optional[str] = None
    line_terminator: Optional[str] = None
    dialect: Optional[str] = None
    skip_empty_lines: bool = True
    trim_fields: Optional[bool] = None

    def resolve_dialect(self) -> Dialect:
        name = self.dialect or 'default'
        if name == 'custom':
            base = replace(DIALECTS['default'], name='custom')
        elif name in DIALECTS:
            base = DIALECTS[name]
        else:
            raise ValueError(f"Unknown CSV dialect: {name}. Available: {', '.join(DIALECTS)}, custom")
        overrides = {}
        if self.quote:
            overrides['quote'] = self.quote
        if self.escape:
            overrides['escape'] = self.escape
        if self.line_terminator:
            overrides['line_terminator'] = self.line_terminator
        if self.trim_fields is not None:
            overrides['trim_fields'] = self.trim_fields
        return replace(base, **overrides) if overrides else base


def tokenize(
    content: str,
    delimiter: str = ',',
    quote: str = '"',
    escape: Optional[str] = None,
    trim_fields: bool = True,
) -> list[list[str]]:
    """
    Split tabular text into rows of fields.

    Single-pass state machine over {unquoted, quoted}. Inside quotes a
    doubled quote is a literal quote (when escape == quote); otherwise the
    escape character makes the next character literal, including the
    delimiter, the quote and newlines. Records end at newlines outside quotes.

    Args:
        content: Raw text
        delimiter: Field separator
        quote: Quote character
        escape: Escape character (defaults to the quote character)
        trim_fields: Strip whitespace around unquoted fields

    Returns:
        List of rows, each a list of field strings
    """
    escape = escape or quote
    rows: list[list[str]] = []
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    quoted = False
    i = 0
    n = len(content)

    def finish_field():
        nonlocal quoted
        value = ''.join(current)
        if trim_fields and not quoted:
            value = value.strip()
        fields.append(value)
        current.clear()
        quoted = False

    while i < n:
        ch = content[i]
        nxt = content[i + 1] if i + 1 < n else ''

        if in_quotes:
            if ch == quote and escape == quote and nxt == quote:
                current.append(quote)
                i += 2
            elif ch == escape and escape != quote and nxt:
                current.append(nxt)
                i += 2
            elif ch == quote:
                in_quotes = False
                i += 1
            else:
                current.append(ch)
                i += 1
            continue

        if ch == quote:
            if trim_fields and not ''.join(current).strip():
                current.clear()
            in_quotes = True
            quoted = True
            i += 1
        elif ch == delimiter:
            finish_field()
            i += 1
        elif ch == '\r' and nxt == '\n':
            i += 1
        elif ch == '\n':
            finish_field()
            rows.append(fields)
            fields = []
            i += 1
        elif quoted and trim_fields and ch.isspace():
            # Whitespace between a closing quote and the delimiter
            i += 1
        else:
            current.append(ch)
            i += 1

    if current or fields or quoted:
        finish_field()
        rows.append(fields)

    return rows


def tokenize_line(
    line: str,
    delimiter: str = ',',
    quote: str = '"',
    escape: Optional[str] = None,
    trim_fields: bool = True,
) -> list[str]:
    """Tokenize a single record."""
    rows = tokenize(line, delimiter, quote, escape, trim_fields)
    return rows[0] if rows else ['']


def _non_blank_lines(content: str) -> list[str]:
    return [line for line in content.splitlines() if line.strip()]


def detect_delimiter(content: str, quote: str = '"') -> str:
    """
    Pick the most consistent delimiter over the first five non-blank lines.

    Only candidates that split the first line into more than one field are
    considered. Defaults to a comma.
    """
    lines = _non_blank_lines(content)
    if not lines:
        return ','

    best_delimiter = ','
    best_consistency = 0.0

    for delimiter in CANDIDATE_DELIMITERS:
        if len(tokenize_line(lines[0], delimiter, quote)) < 2:
            continue
        consistency = field_consistency(content, delimiter, quote, limit=5)
        if consistency > best_consistency:
            best_consistency = consistency
            best_delimiter = delimiter

    return best_delimiter


def field_consistency(content: str, delimiter: str, quote: str = '"', limit: int = 10) -> float:
    """Share of the first `limit` non-blank lines matching the first line's field count."""
    lines = _non_blank_lines(content)[:limit]
    if not lines:
        return 0.0
    counts = [len(tokenize_line(line, delimiter, quote)) for line in lines]
    return counts.count(counts[0]) / len(counts)


def is_tabular(content: str, delimiter: Optional[str] = None) -> bool:
    """True when at least 70% of the first ten non-blank lines agree on field count."""
    if not _non_blank_lines(content):
        return False
    delimiter = delimiter or detect_delimiter(content)
    return field_consistency(content, delimiter) >= 0.7


def check_field_counts(content: str, delimiter: str, quote: str = '"') -> list[ValidationIssue]:
    """
    Report records whose field count differs from the first record.

    The first three offending lines are reported as warnings; more than 30%
    offending lines is an error.
    """
    lines = _non_blank_lines(content)
    if not lines:
        return [ValidationIssue('EMPTY_CSV', "CSV file is empty", Severity.ERROR)]

    issues = []
    expected = len(tokenize_line(lines[0], delimiter, quote))
    inconsistent = 0

    for number, line in enumerate(lines[1:], start=2):
        count = len(tokenize_line(line, delimiter, quote))
        if count != expected:
            inconsistent += 1
            if inconsistent <= 3:
                issues.append(ValidationIssue(
                    'INCONSISTENT_FIELD_COUNT',
                    f"Line {number} has {count} fields, expected {expected}",
                    Severity.WARNING,
                    line=number,
                ))

    if inconsistent > len(lines) * 0.3:
        issues.append(ValidationIssue(
            'MAJOR_STRUCTURE_INCONSISTENCY',
            f"{inconsistent} out of {len(lines)} lines have inconsistent field counts",
            Severity.ERROR,
        ))

    return issues


HEADER_PATTERNS = [
    re.compile(r'^(key|id|identifier|name|string_id|message_id)$', re.IGNORECASE),
    re.compile(r'^(value|text|message|translation|content|string)$', re.IGNORECASE),
    re.compile(r'^(en|es|fr|de|it|pt|ru|zh|ja|ko|ar)$', re.IGNORECASE),
    re.compile(r'^(source|target|original|translated)$', re.IGNORECASE),
]

_STOP_WORDS = re.compile(r'\b(the|and|or|in|on|at|to|for|of|with|by)\b', re.IGNORECASE)
_TWO_LETTERS = re.compile(r'[a-zA-Z].*[a-zA-Z]')


def looks_like_translatable_text(text: str) -> bool:
    """Heuristic for natural-language cell content."""
    if not text:
        return False
    multi_word = ' ' in text and len(text.split()) > 1
    has_stop_words = bool(_STOP_WORDS.search(text))
    long_wordy = len(text) > 10 and bool(_TWO_LETTERS.search(text))
    return multi_word or has_stop_words or long_wordy


def detect_headers(rows: list[list[str]]) -> bool:
    """
    Decide whether the first row is a header row.

    The first row scores 2 per field matching a known header name and 1 per
    other non-text field; the second row scores 2 per natural-language field
    and 1 per other non-empty field. Headers win on a higher score or when
    every header field matched.
    """
    if len(rows) < 2:
        return True

    first, second = rows[0], rows[1]
    header_score = 0
    data_score = 0

    for value in first:
        if any(pattern.match(value) for pattern in HEADER_PATTERNS):
            header_score += 2
        elif value and not looks_like_translatable_text(value):
            header_score += 1

    for value in second:
        if looks_like_translatable_text(value):
            data_score += 2
        elif value:
            data_score += 1

    return header_score > data_score or header_score >= len(first)


KEY_COLUMN_NAMES = ['key', 'id', 'identifier', 'name', 'string_id', 'message_id']
VALUE_COLUMN_NAMES = ['value', 'text', 'message', 'translation', 'content', 'string']

LANGUAGE_COLUMN_PATTERNS = [
    (re.compile(r'^(en|english)$', re.IGNORECASE), 'en'),
    (re.compile(r'^(es|spanish|español)$', re.IGNORECASE), 'es'),
    (re.compile(r'^(fr|french|français)$', re.IGNORECASE), 'fr'),
    (re.compile(r'^(de|german|deutsch)$', re.IGNORECASE), 'de'),
    (re.compile(r'^(it|italian|italiano)$', re.IGNORECASE), 'it'),
    (re.compile(r'^(pt|portuguese|português)$', re.IGNORECASE), 'pt'),
    (re.compile(r'^(ru|russian|русский)$', re.IGNORECASE), 'ru'),
    (re.compile(r'^(zh|chinese|中文)$', re.IGNORECASE), 'zh'),
    (re.compile(r'^(ja|japanese|日本語)$', re.IGNORECASE), 'ja'),
    (re.compile(r'^(ko|korean|한국어)$', re.IGNORECASE), 'ko'),
    (re.compile(r'^(ar|arabic|العربية)$', re.IGNORECASE), 'ar'),
]

_LANGUAGE_SUFFIX = re.compile(r'_([a-z]{2})$', re.IGNORECASE)


@dataclass
class ColumnRoles:
    """Which column holds keys, which holds values, and per-language columns."""
    key_column: Optional[str]
    value_column: Optional[str]
    language_columns: dict[str, str] = field(default_factory=dict)


def detect_key_column(columns: list[str]) -> Optional[str]:
    for name in KEY_COLUMN_NAMES:
        for column in columns:
            if column.lower() == name:
                return column
    return columns[0] if columns else None


def detect_value_column(columns: list[str], key_column: Optional[str]) -> Optional[str]:
    for name in VALUE_COLUMN_NAMES:
        for column in columns:
            if column.lower() == name and column != key_column:
                return column
    remaining = [column for column in columns if column != key_column]
    return remaining[0] if remaining else None


def detect_language_columns(columns: list[str], key_column: Optional[str]) -> dict[str, str]:
    """Map language code -> column name for per-language columns."""
    found: dict[str, str] = {}
    for column in columns:
        if column == key_column:
            continue
        for pattern, language in LANGUAGE_COLUMN_PATTERNS:
            if pattern.match(column):
                found[language] = column
                break
        suffix = _LANGUAGE_SUFFIX.search(column)
        if suffix:
            found[suffix.group(1).lower()] = column
    return found


def infer_column_roles(
    columns: list[str],
    key_column: Optional[str] = None,
    value_column: Optional[str] = None,
    language_columns: Optional[dict[str, str]] = None,
) -> ColumnRoles:
    """Resolve column roles, honouring explicit choices first."""
    key = key_column or detect_key_column(columns)
    value = value_column or detect_value_column(columns, key)
    languages = language_columns if language_columns is not None else detect_language_columns(columns, key)
    return ColumnRoles(key_column=key, value_column=value, language_columns=dict(languages))


def escape_field(value: str, delimiter: str, dialect: Dialect) -> str:
    """
    Quote a field when it contains the delimiter, the quote, a line break,
    or leading/trailing whitespace.
    """
    quote = dialect.quote
    escape = dialect.escape
    needs_quoting = (
        delimiter in value
        or quote in value
        or '\n' in value
        or '\r' in value
        or dialect.line_terminator in value
        or value != value.strip()
    )
    if not needs_quoting:
        return value

    if escape == quote:
        escaped = value.replace(quote, quote + quote)
    else:
        escaped = ''.join(escape + ch if ch in (quote, escape) else ch for ch in value)
    return f"{quote}{escaped}{quote}"


def format_row(values: list[str], delimiter: str, dialect: Dialect) -> str:
    return delimiter.join(escape_field(value, delimiter, dialect) for value in values)


def format_rows(rows: list[list[str]], delimiter: str, dialect: Dialect) -> str:
    """Join rows with the dialect's line terminator (with a trailing terminator)."""
    if not rows:
        return ''
    terminator = dialect.line_terminator
    return terminator.join(format_row(row, delimiter, dialect) for row in rows) + terminator
