#!/usr/bin/env python3
"""
Built-in validation rules.

Global rules apply to every document; format rules are registered per
format tag. build_default_engine() wires them all into a ValidationEngine.
"""

import re
from typing import Any, Iterator

from ..codecs import paths, plural
from ..format_handlers.arb import validate_icu_message
from ..model import (
    Severity,
    ValidationIssue,
    ValueKind,
    classify_value,
    get_sidecar,
    translation_items,
)
from .engine import ValidationContext, ValidationEngine, ValidationRule
from .messages import format_message

DEFAULT_MAX_JSON_DEPTH = 10
SUPPORTED_XLIFF_VERSIONS = ('1.2', '2.0', '2.1')

# Formats whose keys are source text rather than identifiers
_TEXT_KEYED_FORMATS = {'po', 'pot'}

_SPECIAL_CHARACTERS = re.compile(r'[^a-zA-Z0-9._\-\[\]]')
_ARB_LOCALE = re.compile(r'^[a-z]{2,3}(_[A-Z]{2})?$')
_UNICODE_ESCAPE = re.compile(r'\\u[0-9a-fA-F]{4}')


def _walk_keys(document: dict[str, Any]) -> Iterator[tuple[str, str, Any]]:
    """
    Yield (name, dotted path, value) for every object member, depth first.

    Top-level keys are used as they are (they may already be flat paths).
    Objects already on the current path are not entered again.
    """
    def walk(node: dict, prefix: str, active: set[int]) -> Iterator[tuple[str, str, Any]]:
        for name, value in node.items():
            full = paths.join_key(prefix, name) if prefix else name
            yield name, full, value
            if isinstance(value, dict) and id(value) not in active:
                yield from walk(value, full, active | {id(value)})

    yield from walk(dict(translation_items(document)), "", set())


# --- Global rules ---

def check_empty_document(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    if any(True for _ in translation_items(document)):
        return []
    return [ValidationIssue(
        'EMPTY_TRANSLATION_FILE', "Translation file contains no translatable content", Severity.WARNING,
    )]


def check_duplicate_keys(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    """A flat "a.b" key and a nested {"a": {"b": ...}} member name the same path."""
    seen = set()
    duplicates = []
    for _, full, _ in _walk_keys(document):
        if full in seen and full not in duplicates:
            duplicates.append(full)
        seen.add(full)
    return [
        ValidationIssue(
            'DUPLICATE_KEYS', format_message('DUPLICATE_KEYS', key=key), Severity.ERROR, path=key,
        )
        for key in duplicates
    ]


def check_key_format(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    if context.format.lower() in _TEXT_KEYED_FORMATS:
        return []

    issues = []
    for name, full, _ in _walk_keys(document):
        name = str(name)
        if ' ' in name:
            issues.append(ValidationIssue(
                'KEY_CONTAINS_SPACES', format_message('KEY_CONTAINS_SPACES', key=full), Severity.WARNING,
                path=full, suggestion="Consider using underscores or camelCase instead of spaces",
            ))
        if name.startswith('-') or name.endswith('-'):
            issues.append(ValidationIssue(
                'KEY_INVALID_DASH', format_message('KEY_INVALID_DASH', key=full), Severity.WARNING, path=full,
            ))
        if _SPECIAL_CHARACTERS.search(name):
            issues.append(ValidationIssue(
                'KEY_SPECIAL_CHARACTERS', format_message('KEY_SPECIAL_CHARACTERS', key=full), Severity.INFO,
                path=full,
            ))
    return issues


GLOBAL_RULES = [
    ValidationRule(
        'EMPTY_TRANSLATION_FILE', "Empty Translation File", "Check for empty translation files",
        Severity.WARNING, check_empty_document,
    ),
    ValidationRule(
        'DUPLICATE_KEYS', "Duplicate Translation Keys", "Check for keys that resolve to the same path",
        Severity.ERROR, check_duplicate_keys,
    ),
    ValidationRule(
        'INVALID_KEY_FORMAT', "Invalid Key Format", "Check for spaces, dashes and special characters in keys",
        Severity.WARNING, check_key_format,
    ),
]


# --- JSON ---

def check_json_circular_reference(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    cycle = paths.find_cycle(dict(translation_items(document)))
    if cycle is None:
        return []
    return [ValidationIssue(
        'JSON_CIRCULAR_REFERENCE', format_message('JSON_CIRCULAR_REFERENCE'), Severity.ERROR, path=cycle,
    )]


def make_depth_check(max_depth: int = DEFAULT_MAX_JSON_DEPTH):
    """Build a check reporting object nesting deeper than max_depth."""

    def check_json_depth(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
        if paths.find_cycle(dict(translation_items(document))):
            return []
        tree = paths.reconstruct(paths.expand_document(document))
        issues = []

        def descend(node: Any, depth: int, path: str) -> None:
            if depth > max_depth:
                issues.append(ValidationIssue(
                    'JSON_DEEP_NESTING', format_message('JSON_DEEP_NESTING', max_depth=max_depth, path=path),
                    Severity.WARNING, path=path,
                ))
                return
            if isinstance(node, dict):
                for name, child in node.items():
                    if isinstance(child, dict):
                        descend(child, depth + 1, paths.join_key(path, name))

        descend(tree, 0, "")
        return issues

    return check_json_depth


def json_rules(max_depth: int = DEFAULT_MAX_JSON_DEPTH) -> list[ValidationRule]:
    return [
        ValidationRule(
            'JSON_CIRCULAR_REFERENCE', "JSON Circular Reference", "Check for circular references in JSON data",
            Severity.ERROR, check_json_circular_reference,
        ),
        ValidationRule(
            'JSON_DEEP_NESTING', "JSON Deep Nesting", "Check for excessively deep nesting in JSON",
            Severity.WARNING, make_depth_check(max_depth),
        ),
    ]


# --- XLIFF ---

def _xliff_info(document: dict[str, Any]) -> dict[str, Any]:
    sidecar = get_sidecar(document)
    if sidecar is None or sidecar.format != 'xliff':
        return {}
    root = sidecar.original
    return {
        'declared_version': root.get('version') if root is not None else None,
        'version': sidecar.get('version'),
        'source_language': sidecar.get('source_language'),
        'target_language': sidecar.get('target_language'),
    }


def check_xliff_version(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    info = _xliff_info(document)
    if not info.get('declared_version'):
        return [ValidationIssue(
            'XLIFF_MISSING_VERSION', format_message('XLIFF_MISSING_VERSION'), Severity.WARNING,
        )]
    version = info['declared_version']
    if version not in SUPPORTED_XLIFF_VERSIONS:
        return [ValidationIssue(
            'XLIFF_INVALID_VERSION',
            format_message('XLIFF_INVALID_VERSION', version=version, supported=', '.join(SUPPORTED_XLIFF_VERSIONS)),
            Severity.ERROR,
        )]
    return []


def check_xliff_languages(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    info = _xliff_info(document)
    issues = []
    if not info.get('source_language'):
        issues.append(ValidationIssue(
            'XLIFF_MISSING_SOURCE_LANGUAGE', format_message('XLIFF_MISSING_SOURCE_LANGUAGE'), Severity.WARNING,
        ))
    if not info.get('target_language'):
        issues.append(ValidationIssue(
            'XLIFF_MISSING_TARGET_LANGUAGE', format_message('XLIFF_MISSING_TARGET_LANGUAGE'), Severity.WARNING,
        ))
    return issues


XLIFF_RULES = [
    ValidationRule(
        'XLIFF_MISSING_VERSION', "XLIFF Version", "Check for a missing or unsupported XLIFF version",
        Severity.WARNING, check_xliff_version,
    ),
    ValidationRule(
        'XLIFF_MISSING_LANGUAGES', "XLIFF Missing Languages", "Check for missing source/target languages",
        Severity.WARNING, check_xliff_languages,
    ),
]


# --- ARB ---

def _arb_metadata(document: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """(file metadata, message metadata) from the sidecar or from raw @ keys."""
    sidecar = get_sidecar(document)
    if sidecar is not None and sidecar.format == 'arb':
        return sidecar.get('file_metadata', {}), sidecar.get('message_metadata', {})
    file_metadata = {}
    message_metadata = {}
    for key, value in translation_items(document):
        if key.startswith('@@'):
            file_metadata[key] = value
        elif key.startswith('@'):
            message_metadata[key[1:]] = value
    return file_metadata, message_metadata


def check_arb_locale(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    file_metadata, _ = _arb_metadata(document)
    locale = file_metadata.get('@@locale')
    if not locale:
        return [ValidationIssue(
            'ARB_MISSING_LOCALE', format_message('ARB_MISSING_LOCALE'), Severity.WARNING,
        )]
    if not _ARB_LOCALE.match(str(locale)):
        return [ValidationIssue(
            'ARB_INVALID_LOCALE', format_message('ARB_INVALID_LOCALE', locale=locale), Severity.WARNING,
        )]
    return []


def check_arb_icu_syntax(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    issues = []
    for key, value in paths.expand_document(document).items():
        if key.startswith('@') or not isinstance(value, str):
            continue
        for error in validate_icu_message(value):
            issues.append(ValidationIssue(
                'ARB_ICU_SYNTAX_ERROR', format_message('ARB_ICU_SYNTAX_ERROR', path=key, error=error),
                Severity.ERROR, path=key,
            ))
    return issues


def check_arb_orphaned_metadata(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    _, message_metadata = _arb_metadata(document)
    resources = {key for key, _ in translation_items(document) if not key.startswith('@')}
    return [
        ValidationIssue(
            'ARB_ORPHANED_METADATA', format_message('ARB_ORPHANED_METADATA', resource=name),
            Severity.WARNING, path=f"@{name}",
        )
        for name in message_metadata
        if name not in resources
    ]


ARB_RULES = [
    ValidationRule(
        'ARB_MISSING_LOCALE', "ARB Locale", "Check for a missing or malformed @@locale",
        Severity.WARNING, check_arb_locale,
    ),
    ValidationRule(
        'ARB_ICU_SYNTAX_ERROR', "ARB ICU Syntax Error", "Check for ICU message format syntax errors",
        Severity.ERROR, check_arb_icu_syntax,
    ),
    ValidationRule(
        'ARB_ORPHANED_METADATA', "ARB Orphaned Metadata", "Check for metadata without a resource",
        Severity.WARNING, check_arb_orphaned_metadata,
    ),
]


# --- PO/POT ---

def check_po_header(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    sidecar = get_sidecar(document)
    if sidecar is not None and sidecar.format in ('po', 'pot') and sidecar.get('has_header'):
        return []
    return [ValidationIssue('PO_MISSING_HEADER', format_message('PO_MISSING_HEADER'), Severity.WARNING)]


def check_po_untranslated(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    # Templates are untranslated by definition
    if context.format.lower() == 'pot':
        return []
    count = sum(1 for _, value in translation_items(document) if isinstance(value, str) and not value.strip())
    if not count:
        return []
    return [ValidationIssue(
        'PO_UNTRANSLATED_STRINGS', format_message('PO_UNTRANSLATED_STRINGS', count=count), Severity.INFO,
    )]


def check_po_plural_forms(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    """
    Plural-form completeness for the language in the context metadata, else
    the language of the file itself.
    """
    if context.format.lower() == 'pot':
        return []
    language = context.metadata.get('language')
    if not language:
        sidecar = get_sidecar(document)
        language = sidecar.get('language') if sidecar is not None else None
    if not language:
        return []

    check = plural.check_plural_forms([key for key, _ in translation_items(document)], language)
    if check.is_valid:
        return []
    details = []
    if check.missing:
        details.append(f"missing {', '.join(check.missing)}")
    if check.extra:
        details.append(f"extra {', '.join(check.extra)}")
    return [ValidationIssue(
        'PO_PLURAL_FORMS', format_message('PO_PLURAL_FORMS', language=language, detail='; '.join(details)),
        Severity.WARNING,
    )]


PO_RULES = [
    ValidationRule(
        'PO_MISSING_HEADER', "PO Missing Header", "Check for a missing PO header entry",
        Severity.WARNING, check_po_header,
    ),
    ValidationRule(
        'PO_UNTRANSLATED_STRINGS', "PO Untranslated Strings", "Count untranslated strings",
        Severity.INFO, check_po_untranslated,
    ),
    ValidationRule(
        'PO_PLURAL_FORMS', "PO Plural Forms", "Check plural forms against the language's plural rule",
        Severity.WARNING, check_po_plural_forms,
    ),
]


# --- YAML, Properties, CSV ---

def check_yaml_value_types(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    issues = []
    for key, value in paths.expand_document(document).items():
        kind = classify_value(value)
        if kind is not ValueKind.STRING:
            issues.append(ValidationIssue(
                'YAML_NON_STRING_VALUE', format_message('YAML_NON_STRING_VALUE', path=key, type=kind.value),
                Severity.WARNING, path=key, suggestion="Only string values should be translated",
            ))
    return issues


def check_properties_unicode(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    """Non-ASCII values only need escaping when the file is not UTF-8."""
    sidecar = get_sidecar(document)
    if sidecar is not None and sidecar.encoding.lower().replace('_', '-') in ('utf-8', 'utf8'):
        return []
    issues = []
    for key, value in translation_items(document):
        if isinstance(value, str) and not value.isascii() and not _UNICODE_ESCAPE.search(value):
            issues.append(ValidationIssue(
                'PROPERTIES_UNESCAPED_UNICODE', format_message('PROPERTIES_UNESCAPED_UNICODE', key=key),
                Severity.WARNING, path=key,
            ))
    return issues


def check_csv_has_data(document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
    if any(True for _ in translation_items(document)):
        return []
    return [ValidationIssue('CSV_NO_DATA', format_message('CSV_NO_DATA'), Severity.ERROR)]


YAML_RULES = [
    ValidationRule(
        'YAML_NON_STRING_VALUE', "YAML Mixed Types", "Check for non-string values in YAML",
        Severity.WARNING, check_yaml_value_types,
    ),
]

PROPERTIES_RULES = [
    ValidationRule(
        'PROPERTIES_UNESCAPED_UNICODE', "Properties Encoding Issue", "Check for unescaped non-ASCII characters",
        Severity.WARNING, check_properties_unicode,
    ),
]

CSV_RULES = [
    ValidationRule(
        'CSV_NO_DATA', "CSV No Data", "Check that the table has data rows",
        Severity.ERROR, check_csv_has_data,
    ),
]


def build_default_engine(max_json_depth: int = DEFAULT_MAX_JSON_DEPTH) -> ValidationEngine:
    """
    Build an engine with every built-in rule registered.

    Args:
        max_json_depth: Nesting depth above which JSON_DEEP_NESTING is reported
    """
    engine = ValidationEngine()
    engine.register_global_rules(GLOBAL_RULES)
    engine.register_format_rules('json', json_rules(max_json_depth))
    engine.register_format_rules('xliff', XLIFF_RULES)
    engine.register_format_rules('arb', ARB_RULES)
    engine.register_format_rules('po', PO_RULES)
    engine.register_format_rules('yaml', YAML_RULES)
    engine.register_format_rules('properties', PROPERTIES_RULES)
    engine.register_format_rules('csv', CSV_RULES)
    return engine
