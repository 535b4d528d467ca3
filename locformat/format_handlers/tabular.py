#!/usr/bin/env python3
"""
CSV and TSV format handlers.

Both are thin configurations of TabularHandler over the tabular codec:
CSV detects its delimiter, TSV always uses a tab.
"""

import logging
from dataclasses import asdict, replace
from typing import Any, Optional

from ..codecs import tabular
from ..codecs.tabular import TabularOptions
from ..errors import ParseError
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


class TabularHandler(FormatHandler):
    """
    Handler for delimiter-separated translation tables.

    Table structure:
    ```
    key,value,fr
    greeting,Hello,Bonjour
    farewell,Goodbye,Au revoir
    ```

    The key column and value column are detected from the header names
    (falling back to the first two columns). The document maps each key to
    its value; the full table, including per-language columns, is kept in
    the sidecar.
    """

    fixed_delimiter: Optional[str] = None

    def __init__(self, options: Optional[TabularOptions] = None):
        self.options = options or TabularOptions()

    @property
    def placeholder_patterns(self) -> list[PlaceholderPattern]:
        return [
            PLACEHOLDER_PATTERNS['icu'],      # {name}
            PLACEHOLDER_PATTERNS['i18next'],  # {{name}}
            PLACEHOLDER_PATTERNS['printf'],   # %s
        ]

    def accepted_sidecar_formats(self) -> set[str]:
        return {"csv", "tsv"}

    def resolve_options(self, options: Optional[TabularOptions] = None, **overrides: Any) -> TabularOptions:
        """Merge per-call options and keyword overrides onto the handler defaults."""
        resolved = options or self.options
        explicit = {name: value for name, value in overrides.items() if value is not None}
        if explicit:
            resolved = replace(resolved, **explicit)
        if self.fixed_delimiter:
            resolved = replace(resolved, delimiter=self.fixed_delimiter)
        return resolved

    def delimiter_for(self, content: str, options: TabularOptions) -> str:
        if options.delimiter:
            return options.delimiter
        return tabular.detect_delimiter(content, options.resolve_dialect().quote)

    def can_handle(self, path: str, content: Optional[str] = None) -> bool:
        if not super().can_handle(path, content):
            return False
        if content is None:
            return True
        if self.fixed_delimiter and self.fixed_delimiter not in content:
            return False
        return tabular.is_tabular(content, self.fixed_delimiter)

    def parse(self, content: str, options: Optional[TabularOptions] = None) -> dict[str, Any]:
        """
        Parse a delimited table into a translation document.

        Args:
            content: Raw file content
            options: Parse options (defaults to the handler's options)

        Returns:
            Document of key column -> value column

        Raises:
            ParseError: If the table has no data rows or no usable columns
        """
        opts = self.resolve_options(options)
        dialect = opts.resolve_dialect()
        delimiter = self.delimiter_for(content, opts)

        rows = tabular.tokenize(content, delimiter, dialect.quote, dialect.escape, dialect.trim_fields)
        if opts.skip_empty_lines:
            rows = [row for row in rows if any(field for field in row)]
        if not rows:
            raise ParseError("CSV file contains no data rows", format=self.name)

        has_headers = opts.has_headers if opts.has_headers is not None else tabular.detect_headers(rows)
        if has_headers:
            columns = rows[0]
            data_rows = rows[1:]
        else:
            columns = opts.columns or [f"column_{i + 1}" for i in range(len(rows[0]))]
            data_rows = rows
        if not data_rows:
            raise ParseError("CSV file contains no data rows", format=self.name)

        roles = tabular.infer_column_roles(columns, opts.key_column, opts.value_column, opts.language_columns)
        if roles.key_column is None or roles.key_column not in columns:
            raise ParseError("Could not detect key column in CSV. Please specify key_column option.", format=self.name)
        if roles.value_column is None or roles.value_column not in columns:
            raise ParseError("Could not detect value column in CSV. Please specify value_column option.", format=self.name)

        key_index = columns.index(roles.key_column)
        value_index = columns.index(roles.value_column)
        document = {}
        language_data: dict[str, dict[str, str]] = {language: {} for language in roles.language_columns}

        for row in data_rows:
            key = _cell(row, key_index)
            if not key:
                continue
            document[key] = _cell(row, value_index)
            for language, column in roles.language_columns.items():
                if column in columns and _cell(row, columns.index(column)):
                    language_data[language][key] = _cell(row, columns.index(column))

        logger.debug("Parsed %d rows with delimiter %r", len(document), delimiter)
        sidecar = MetadataSidecar(
            format=self.name,
            extras={
                'delimiter': delimiter,
                'dialect': dialect.name,
                'columns': list(columns),
                'key_column': roles.key_column,
                'value_column': roles.value_column,
                'language_columns': roles.language_columns,
                'language_data': language_data,
                'has_headers': has_headers,
                'rows': [list(row) for row in data_rows],
                'line_terminator': '\r\n' if '\r\n' in content else dialect.line_terminator,
                'options': asdict(opts),
            },
        )
        return with_sidecar(document, sidecar)

    def serialize(
        self,
        document: dict[str, Any],
        options: Optional[TabularOptions] = None,
        delimiter: Optional[str] = None,
        dialect: Optional[str] = None,
        **overrides: Any,
    ) -> str:
        """
        Write a document back as a delimited table.

        With a sidecar the original rows are reproduced with the value column
        updated by key; keys not in the original become new rows.

        Args:
            document: Translation document
            options: Output options
            delimiter: Delimiter override
            dialect: Dialect name override (excel, unix, rfc4180, default, custom)

        Returns:
            Table content
        """
        sidecar = self.sidecar(document)
        base = options or (TabularOptions(**sidecar.get('options')) if sidecar and sidecar.get('options') else None)
        known = {name: overrides.pop(name) for name in list(overrides) if name in TabularOptions.__dataclass_fields__}
        opts = self.resolve_options(base, delimiter=delimiter, dialect=dialect, **known)
        out_dialect = opts.resolve_dialect()
        if sidecar and not opts.line_terminator:
            out_dialect = replace(out_dialect, line_terminator=sidecar.get('line_terminator', out_dialect.line_terminator))
        separator = opts.delimiter or (sidecar.get('delimiter') if sidecar else None) or ','

        values = {key: leaf_to_text(value) for key, value in translation_items(document)}

        if sidecar is not None:
            columns = list(sidecar.get('columns'))
            key_index = columns.index(sidecar.get('key_column'))
            value_index = columns.index(sidecar.get('value_column'))
            has_headers = sidecar.get('has_headers')
            rows = []
            seen = set()
            for original in sidecar.get('rows', []):
                row = list(original) + [''] * (len(columns) - len(original))
                key = row[key_index]
                if key and key in values:
                    row[value_index] = values[key]
                    seen.add(key)
                rows.append(row)
        else:
            key_column = opts.key_column or 'key'
            value_column = opts.value_column or 'value'
            columns = list(opts.columns or [key_column, value_column])
            if key_column not in columns:
                columns.insert(0, key_column)
            if value_column not in columns:
                columns.append(value_column)
            key_index = columns.index(key_column)
            value_index = columns.index(value_column)
            has_headers = opts.has_headers is not False
            rows = []
            seen = set()

        for key, value in values.items():
            if key in seen:
                continue
            row = [''] * len(columns)
            row[key_index] = key
            row[value_index] = value
            rows.append(row)

        if has_headers:
            rows.insert(0, columns)
        return tabular.format_rows(rows, separator, out_dialect)

    def check_content(self, content: str) -> list[ValidationIssue]:
        if not content.strip():
            return super().check_content(content)
        issues = super().check_content(content)
        opts = self.resolve_options()
        delimiter = self.delimiter_for(content, opts)
        issues.extend(tabular.check_field_counts(content, delimiter, opts.resolve_dialect().quote))
        return issues

    def validate_structure(self, document: dict[str, Any]) -> ValidationResult:
        issues = []
        items = list(translation_items(document))
        if not items:
            issues.append(ValidationIssue('EMPTY_CSV', "CSV file appears to be empty", Severity.WARNING))

        for key, value in items:
            kind = classify_value(value)
            if kind is not ValueKind.STRING:
                issues.append(ValidationIssue(
                    'NON_STRING_VALUE', f'Value for key "{key}" is not a string: {kind.value}',
                    Severity.WARNING, path=key,
                ))

        sidecar = self.sidecar(document)
        if sidecar is not None:
            if not sidecar.get('key_column'):
                issues.append(ValidationIssue(
                    'MISSING_KEY_COLUMN', "No key column detected or specified", Severity.WARNING,
                ))
            if not sidecar.get('value_column'):
                issues.append(ValidationIssue(
                    'MISSING_VALUE_COLUMN', "No value column detected or specified", Severity.WARNING,
                ))
            if len(sidecar.get('columns', [])) < 2:
                issues.append(ValidationIssue(
                    'INSUFFICIENT_COLUMNS', "CSV should have at least 2 columns (key and value)", Severity.WARNING,
                ))

        issues.extend(issue for issue in self.check_leaves(document) if issue.code != 'NON_TRANSLATABLE_VALUE')
        return ValidationResult.from_issues(issues)


def _cell(row: list[str], index: int) -> str:
    return row[index] if index < len(row) else ''


class CsvHandler(TabularHandler):
    """Comma (or detected delimiter) separated values."""

    @property
    def name(self) -> str:
        return "csv"

    @property
    def file_extensions(self) -> list[str]:
        return ["csv"]


class TsvHandler(TabularHandler):
    """Tab separated values."""

    fixed_delimiter = '\t'

    @property
    def name(self) -> str:
        return "tsv"

    @property
    def file_extensions(self) -> list[str]:
        return ["tsv"]
