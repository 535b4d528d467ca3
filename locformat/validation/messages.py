#!/usr/bin/env python3
"""
Message catalogue for validation issue codes and user guidance.

Each known code carries a message template, a category (structure, format,
content, syntax, metadata), a suggestion and whether the user can act on
it. Issues produced without a category or suggestion get them filled in
from here.
"""

import re
from dataclasses import dataclass, replace
from typing import Any, Iterable, Optional

from ..model import Severity, ValidationIssue, ValidationResult


@dataclass(frozen=True)
class MessageTemplate:
    code: str
    template: str
    severity: Severity
    category: str
    actionable: bool = True
    suggestion: Optional[str] = None
    documentation: Optional[str] = None


def _t(code, template, severity, category, actionable=True, suggestion=None, documentation=None):
    return MessageTemplate(code, template, severity, category, actionable, suggestion, documentation)


_E, _W, _I = Severity.ERROR, Severity.WARNING, Severity.INFO

MESSAGE_TEMPLATES = {t.code: t for t in [
    # Structure
    _t('INVALID_STRUCTURE', "Invalid file structure: {message}", _E, 'structure',
       suggestion="Ensure the file follows the correct format specification"),
    _t('EMPTY_TRANSLATION_FILE', "Translation file is empty or contains no translatable content", _W, 'content',
       suggestion="Add translatable content to the file"),
    _t('CIRCULAR_REFERENCE', "Circular reference detected in translation data", _E, 'structure',
       suggestion="Remove circular references from the data structure"),
    _t('DUPLICATE_KEYS', "Duplicate translation key found: {key}", _E, 'structure',
       suggestion="Ensure all translation keys are unique"),
    _t('KEY_CONTAINS_SPACES', 'Translation key "{key}" contains spaces', _W, 'structure',
       suggestion="Consider using underscores, camelCase, or kebab-case instead of spaces"),
    _t('KEY_INVALID_DASH', 'Translation key "{key}" starts or ends with dash', _W, 'structure',
       suggestion="Remove leading or trailing dashes from the key"),
    _t('KEY_SPECIAL_CHARACTERS', 'Translation key "{key}" contains special characters', _I, 'structure',
       actionable=False,
       suggestion="Consider using only alphanumeric characters, dots, underscores, and dashes"),

    # JSON
    _t('JSON_CIRCULAR_REFERENCE', "JSON data contains circular references that cannot be serialized", _E, 'format',
       suggestion="Restructure the data to avoid circular references"),
    _t('JSON_DEEP_NESTING', "JSON structure is deeply nested (depth > {max_depth}) at {path}", _W, 'structure',
       suggestion="Consider flattening the structure or breaking it into smaller files"),

    # XLIFF
    _t('XLIFF_MISSING_VERSION', "XLIFF file is missing version information", _W, 'metadata',
       suggestion='Add version attribute to the XLIFF root element (e.g., version="1.2")'),
    _t('XLIFF_INVALID_VERSION', "Unsupported XLIFF version: {version}. Supported versions are {supported}",
       _E, 'format', suggestion="Use a supported XLIFF version (1.2, 2.0, or 2.1)"),
    _t('XLIFF_MISSING_SOURCE_LANGUAGE', "XLIFF file should specify source language information", _W, 'metadata',
       suggestion="Add source-language attribute to the file element"),
    _t('XLIFF_MISSING_TARGET_LANGUAGE', "XLIFF file should specify target language information", _W, 'metadata',
       suggestion="Add target-language attribute to the file element"),

    # ARB
    _t('ARB_MISSING_LOCALE', "ARB file should contain @@locale metadata to specify the language", _W, 'metadata',
       suggestion='Add "@@locale": "language_code" to the ARB file (e.g., "en", "es_ES")'),
    _t('ARB_INVALID_LOCALE', 'Invalid locale format: "{locale}". Expected format: language[_COUNTRY]', _W,
       'metadata', suggestion='Use format like "en", "en_US", "es_ES", "fr_CA"'),
    _t('ARB_ICU_SYNTAX_ERROR', 'ICU message format syntax error in "{path}": {error}', _E, 'syntax',
       suggestion="Fix the ICU syntax error. Common issues: unmatched brackets, missing commas, invalid placeholders",
       documentation="https://unicode-org.github.io/icu/userguide/format_parse/messages/"),
    _t('ARB_ORPHANED_METADATA', "Resource metadata @{resource} has no corresponding resource", _W, 'metadata',
       suggestion="Either add the missing resource or remove the orphaned metadata"),

    # PO
    _t('PO_MISSING_HEADER', "PO file should contain header information for proper processing", _W, 'metadata',
       suggestion="Add PO file header with Language, Content-Type, and Plural-Forms fields"),
    _t('PO_UNTRANSLATED_STRINGS', "Found {count} untranslated strings in PO file", _I, 'content',
       suggestion="Complete the translation of remaining strings"),
    _t('PO_PLURAL_FORMS', "Plural forms do not match the rule for {language}: {detail}", _W, 'syntax',
       suggestion="Provide exactly one msgstr[n] per plural form of the target language"),

    # Content
    _t('EMPTY_TRANSLATION_STRING', "Empty or whitespace-only translation string at {path}", _W, 'content',
       suggestion="Provide a translation for this string or remove it if not needed"),
    _t('VERY_LONG_STRING', "Translation string at {path} is very long ({length} characters)", _I, 'content',
       actionable=False, suggestion="Consider breaking long text into smaller, more manageable pieces"),
    _t('CONTROL_CHARACTERS', "Translation string at {path} contains control characters", _W, 'content',
       suggestion="Remove or properly escape control characters"),
    _t('NON_TRANSLATABLE_VALUE', "Value at {path} is not translatable ({type})", _W, 'content',
       actionable=False, suggestion="Non-string values will be preserved as-is during translation"),
    _t('POTENTIAL_HTML_CONTENT', "String at {path} contains HTML-like tags", _I, 'content',
       actionable=False, suggestion="Ensure markup in translations is escaped the way the format expects"),

    # Properties, YAML, CSV
    _t('PROPERTIES_UNESCAPED_UNICODE', 'Unescaped Unicode characters in Properties key "{key}"', _W, 'format',
       suggestion="Use Unicode escapes (\\uXXXX) for non-ASCII characters or ensure UTF-8 encoding"),
    _t('YAML_NON_STRING_VALUE', "Non-string value at {path} ({type}) in YAML file", _W, 'content',
       actionable=False, suggestion="Non-string values will be preserved as-is during translation"),
    _t('CSV_NO_DATA', "CSV file contains no data rows", _E, 'content',
       suggestion="Add data rows to the CSV file"),
    _t('INCONSISTENT_FIELD_COUNT', "CSV file has inconsistent number of columns", _E, 'structure',
       suggestion="Ensure all rows have the same number of columns"),

    # Generic
    _t('VALIDATION_RULE_ERROR', "Validation rule failed: {error}", _W, 'structure', actionable=False,
       suggestion="This may indicate a bug in the validation rule"),
    _t('PARSE_ERROR', "Failed to parse file: {error}", _E, 'syntax',
       suggestion="Fix the syntax error reported by the parser"),
    _t('EMPTY_CONTENT', "File content is empty", _E, 'content', suggestion="Add content to the file"),
    _t('VERY_LARGE_FILE', "File is very large ({size}MB) and may cause performance issues", _W, 'content',
       actionable=False, suggestion="Consider breaking large files into smaller chunks"),
]}

_PLACEHOLDER = re.compile(r'\{(\w+)\}')


def format_message(code: str, **values: Any) -> str:
    """
    Interpolate a code's template; unknown names are left as {name}.
    """
    template = MESSAGE_TEMPLATES.get(code)
    if template is None:
        return f"Unknown error: {code}"

    def substitute(match: re.Match) -> str:
        name = match.group(1)
        return str(values[name]) if name in values else match.group(0)

    return _PLACEHOLDER.sub(substitute, template.template)


def format_detailed_message(code: str, **values: Any) -> str:
    """Message followed by the suggestion and documentation link, if any."""
    template = MESSAGE_TEMPLATES.get(code)
    if template is None:
        return f"Unknown error: {code}"
    message = format_message(code, **values)
    if template.suggestion:
        message += f"\n  Suggestion: {template.suggestion}"
    if template.documentation:
        message += f"\n  Documentation: {template.documentation}"
    return message


def is_actionable(code: str) -> bool:
    template = MESSAGE_TEMPLATES.get(code)
    return template.actionable if template else False


def codes_by_category(category: str) -> list[str]:
    return [code for code, template in MESSAGE_TEMPLATES.items() if template.category == category]


def apply_catalogue(issue: ValidationIssue) -> ValidationIssue:
    """
    Fill in category, suggestion and actionable from the catalogue.

    Fields the issue already sets are kept.
    """
    template = MESSAGE_TEMPLATES.get(issue.code)
    if template is None:
        return issue
    updates: dict[str, Any] = {}
    if issue.category is None:
        updates['category'] = template.category
        updates['actionable'] = issue.actionable and template.actionable
    if issue.suggestion is None and template.suggestion:
        updates['suggestion'] = template.suggestion
    return replace(issue, **updates) if updates else issue


# --- User guidance ---

GUIDANCE = {
    'JSON_PARSE_ERROR': [
        "Check for trailing commas after the last item in objects or arrays",
        "Ensure all strings are properly quoted with double quotes",
        "Verify that all brackets and braces are properly matched",
        "Remove any comments (JSON does not support comments)",
        "Check for unescaped special characters in strings",
    ],
    'XML_PARSE_ERROR': [
        "Ensure all XML tags are properly closed",
        "Check that the XML declaration is properly formatted",
        "Verify that attribute values are quoted",
        "Ensure there are no unescaped special characters (&, <, >) in text content",
        "Check for proper XML namespace declarations",
    ],
    'XLIFF_VALIDATION_ERROR': [
        "Verify the XLIFF version is supported (1.2, 2.0, or 2.1)",
        "Ensure all required elements (file, body, trans-unit/unit) are present",
        "Check that source and target languages are specified",
        "Verify that all trans-units have unique IDs",
    ],
    'ARB_VALIDATION_ERROR': [
        "Add @@locale metadata to specify the language",
        "Check ICU message format syntax for placeholders",
        "Ensure resource metadata matches actual resources",
        'Verify that all ICU plural forms include "other"',
    ],
    'PO_VALIDATION_ERROR': [
        "Check that the PO file header is present and complete",
        "Verify that msgid and msgstr pairs are properly formatted",
        "Ensure plural forms are correctly specified",
        "Check for proper escaping of quotes and special characters",
    ],
    'ENCODING_ERROR': [
        "Ensure the file is saved with the correct encoding (usually UTF-8)",
        "Check for byte order marks (BOM) that might cause issues",
        "Verify that special characters are properly encoded",
        "Consider using Unicode escapes for problematic characters",
    ],
}

DEFAULT_GUIDANCE = [
    "Check the file format and syntax",
    "Verify that the file is not corrupted",
    "Try opening the file in a text editor to inspect its contents",
    "Consider using a format-specific validator or linter",
]

# Validation code prefix -> guidance list, per format
FORMAT_GUIDANCE = {
    'json': ('JSON', 'JSON_PARSE_ERROR'),
    'xliff': ('XLIFF', 'XLIFF_VALIDATION_ERROR'),
    'arb': ('ARB', 'ARB_VALIDATION_ERROR'),
    'po': ('PO', 'PO_VALIDATION_ERROR'),
}


def get_guidance(error_type: str) -> list[str]:
    return list(GUIDANCE.get(error_type, DEFAULT_GUIDANCE))


def format_guidance(error_type: str, error: Optional[Exception] = None) -> str:
    lines = [f"Suggestions for fixing {error_type}:"]
    lines.extend(f"  - {item}" for item in get_guidance(error_type))
    if error is not None:
        lines.insert(0, f"Error: {error}")
        lines.append("")
    return "\n".join(lines)


def classify_parse_error(error: Exception) -> str:
    """Guidance key for a parse error, judged from its message."""
    message = str(error).lower()
    if 'json' in message:
        return 'JSON_PARSE_ERROR'
    if 'xliff' in message:
        return 'XLIFF_VALIDATION_ERROR'
    if 'xml' in message:
        return 'XML_PARSE_ERROR'
    if 'encoding' in message or 'codec' in message:
        return 'ENCODING_ERROR'
    return 'PARSE_ERROR'


def summarize(errors: Iterable[ValidationIssue], warnings: Iterable[ValidationIssue]) -> str:
    error_count = len(list(errors))
    warning_count = len(list(warnings))
    if not error_count and not warning_count:
        return "No validation issues found"
    parts = []
    if error_count:
        parts.append(f"{error_count} error{'' if error_count == 1 else 's'}")
    if warning_count:
        parts.append(f"{warning_count} warning{'' if warning_count == 1 else 's'}")
    return ", ".join(parts)


def validation_guidance(format: str, result: ValidationResult) -> Optional[str]:
    """
    Guidance text for a validation outcome: summary, top suggestions and
    format-specific advice. None when there is nothing to report.
    """
    issues = result.issues()
    if not issues:
        return None

    lines = [summarize(result.errors, result.warnings), ""]
    suggestions = list(dict.fromkeys(issue.suggestion for issue in issues if issue.suggestion))
    if suggestions:
        lines.append("Suggestions:")
        lines.extend(f"  - {suggestion}" for suggestion in suggestions[:5])
        lines.append("")

    prefix_and_key = FORMAT_GUIDANCE.get(format)
    if prefix_and_key and any(issue.code.startswith(prefix_and_key[0]) for issue in issues):
        lines.append(format_guidance(prefix_and_key[1]))
    return "\n".join(lines).rstrip()
