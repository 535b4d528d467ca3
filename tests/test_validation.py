#!/usr/bin/env python3
"""
Tests for the validation engine, built-in rules, message catalogue and the
file-level validation service.

Tests verify:
1. A failing rule is reported instead of aborting the run
2. Strict mode re-labels warnings as errors but leaves info alone
3. Per-format rules run for their format and its aliases only
4. The service recovers broken files and reports what it did
"""

import pytest

from locformat.errors import ParseError, RecoveryFailure
from locformat.format_handlers import ArbHandler, PoHandler, PropertiesHandler, XliffHandler
from locformat.model import Severity, ValidationIssue, ValidationResult
from locformat.validation import (
    ValidationContext,
    ValidationEngine,
    ValidationRule,
    build_default_engine,
    build_report,
    canonical_format,
    check_structure_integrity,
    classify_parse_error,
    format_guidance,
    format_message,
    validate_path,
    validation_guidance,
)
from locformat.validation.messages import (
    apply_catalogue,
    codes_by_category,
    format_detailed_message,
    is_actionable,
    summarize,
)


PO_CONTENT = r'''msgid ""
msgstr ""
"Language: ru\n"
"Content-Type: text/plain; charset=UTF-8\n"
"Plural-Forms: nplurals=3; plural=(n%10==1 && n%100!=11 ? 0 : n%10>=2 && n%10<=4 && (n%100<10 || n%100>=20) ? 1 : 2);\n"

msgid "Hello"
msgstr "Привет"

msgid "file"
msgid_plural "files"
msgstr[0] "файл"
msgstr[1] "файла"
msgstr[2] "файлов"
'''


def _rule(code, check, severity=Severity.WARNING):
    return ValidationRule(code, code.title(), "test rule", severity, check)


def _codes(engine, document, format):
    return engine.validate(document, ValidationContext(format=format)).codes()


# --- Engine ---

def test_failing_rule_is_reported():
    """Test 1: An exception inside a rule becomes a warning"""
    def boom(document, context):
        raise RuntimeError("kaput")

    engine = ValidationEngine()
    engine.register_global_rules([_rule('BOOM', boom)])
    result = engine.validate({"a": "b"}, ValidationContext(format='json'))

    assert result.is_valid
    assert result.codes() == ['VALIDATION_RULE_ERROR']
    assert result.warnings[0].message == "Validation rule failed: BOOM: kaput"
    assert result.warnings[0].category == 'structure'


def test_format_rules_follow_aliases():
    seen = []

    def record(document, context):
        seen.append(context.format)
        return []

    engine = ValidationEngine()
    engine.register_format_rules('yml', [_rule('RECORD', record)])
    assert len(engine.format_rules('yaml')) == 1
    assert engine.format_rules('json') == []

    engine.validate({}, ValidationContext(format='yaml'))
    engine.validate({}, ValidationContext(format='json'))
    assert seen == ['yaml']

    engine.clear()
    assert engine.global_rules() == []
    assert engine.format_rules('yaml') == []


@pytest.mark.parametrize("format, expected", [
    ("POT", "po"),
    ("tsv", "csv"),
    ("android-xml", "xml"),
    ("json", "json"),
])
def test_canonical_format(format, expected):
    assert canonical_format(format) == expected


def test_strict_mode_escalates_warnings_only():
    """Test 2: Warnings become errors, info stays a warning"""
    def mixed(document, context):
        return [
            ValidationIssue('W', "warning", Severity.WARNING),
            ValidationIssue('I', "info", Severity.INFO),
        ]

    engine = ValidationEngine()
    engine.register_global_rules([_rule('MIXED', mixed)])
    context = ValidationContext(format='json')

    assert engine.validate({"a": "b"}, context).is_valid
    strict = engine.validate({"a": "b"}, context, strict=True)
    assert [issue.code for issue in strict.errors] == ['W']
    assert [issue.code for issue in strict.warnings] == ['I']
    assert strict.errors[0].severity is Severity.ERROR


def test_result_merge_drops_repeats():
    first = ValidationResult.from_issues([ValidationIssue('A', "same")])
    second = ValidationResult.from_issues([
        ValidationIssue('A', "same"),
        ValidationIssue('B', "other", Severity.WARNING, line=3),
    ])
    merged = first.merge(second)
    assert merged.codes() == ['A', 'B']
    assert merged.to_dict() == {
        'isValid': False,
        'errors': [{'code': 'A', 'message': "same"}],
        'warnings': [{'code': 'B', 'message': "other", 'line': 3}],
    }


# --- Global rules ---

def test_empty_document(engine):
    assert _codes(engine, {}, 'yaml') == ['EMPTY_TRANSLATION_FILE']


def test_duplicate_keys(engine):
    result = engine.validate({"a.b": "x", "a": {"b": "y"}}, ValidationContext(format='json'))
    duplicates = [issue for issue in result.errors if issue.code == 'DUPLICATE_KEYS']
    assert [issue.path for issue in duplicates] == ["a.b"]
    assert duplicates[0].message == "Duplicate translation key found: a.b"
    assert duplicates[0].suggestion == "Ensure all translation keys are unique"


def test_key_format(engine):
    result = engine.validate({"bad key": "x", "-dash": "y", "fine_key": "z"}, ValidationContext(format='json'))
    by_code = {}
    for issue in result.issues():
        by_code.setdefault(issue.code, []).append(issue.path)

    assert by_code['KEY_CONTAINS_SPACES'] == ["bad key"]
    assert by_code['KEY_INVALID_DASH'] == ["-dash"]
    assert by_code['KEY_SPECIAL_CHARACTERS'] == ["bad key"]
    assert result.is_valid


def test_source_text_keys_skip_key_format(engine):
    codes = _codes(engine, {"Hello world": "Bonjour le monde"}, 'po')
    assert 'KEY_CONTAINS_SPACES' not in codes
    assert 'PO_MISSING_HEADER' in codes


# --- Format rules ---

def test_json_deep_nesting():
    document = {"a": {"b": {"c": {"d": {"e": "deep"}}}}}
    engine = build_default_engine(max_json_depth=3)
    result = engine.validate(document, ValidationContext(format='json'))
    nesting = [issue for issue in result.warnings if issue.code == 'JSON_DEEP_NESTING']
    assert [issue.path for issue in nesting] == ["a.b.c.d"]
    assert "depth > 3" in nesting[0].message

    assert 'JSON_DEEP_NESTING' not in _codes(build_default_engine(), document, 'json')


def test_json_circular_reference(engine):
    document = {"a": {}}
    document["a"]["self"] = document["a"]
    codes = _codes(engine, document, 'json')
    assert 'JSON_CIRCULAR_REFERENCE' in codes


def test_xliff_rules(engine):
    handler = XliffHandler()
    bare = handler.parse('<xliff><file><body><trans-unit id="a"><source>x</source></trans-unit></body></file></xliff>')
    codes = _codes(engine, bare, 'xliff')
    assert 'XLIFF_MISSING_VERSION' in codes
    assert 'XLIFF_MISSING_SOURCE_LANGUAGE' in codes
    assert 'XLIFF_MISSING_TARGET_LANGUAGE' in codes

    future = handler.parse(
        '<xliff version="3.0"><file source-language="en" target-language="fr"><body>'
        '<trans-unit id="a"><source>x</source></trans-unit></body></file></xliff>'
    )
    result = engine.validate(future, ValidationContext(format='xliff'))
    assert [issue.code for issue in result.errors] == ['XLIFF_INVALID_VERSION']
    assert result.errors[0].message == "Unsupported XLIFF version: 3.0. Supported versions are 1.2, 2.0, 2.1"


def test_arb_rules(engine):
    handler = ArbHandler()
    assert 'ARB_MISSING_LOCALE' in _codes(engine, handler.parse('{"hello": "Hello"}'), 'arb')
    assert 'ARB_INVALID_LOCALE' in _codes(engine, handler.parse('{"@@locale": "en-US", "hello": "Hi"}'), 'arb')

    document = handler.parse('{"@@locale": "en", "count": "{n, plural, one {# item}", "@gone": {}}')
    result = engine.validate(document, ValidationContext(format='arb'))
    assert [issue.path for issue in result.errors if issue.code == 'ARB_ICU_SYNTAX_ERROR'] == ["count"]
    assert [issue.path for issue in result.warnings if issue.code == 'ARB_ORPHANED_METADATA'] == ["@gone"]


def test_po_rules(engine):
    """Test 3: PO rules run for POT too, minus the translation checks"""
    assert 'PO_MISSING_HEADER' in _codes(engine, {"Hello": "Bonjour"}, 'pot')

    untranslated = engine.validate({"Hello": "", "Bye": ""}, ValidationContext(format='po'))
    info = [issue for issue in untranslated.warnings if issue.code == 'PO_UNTRANSLATED_STRINGS']
    assert info[0].message == "Found 2 untranslated strings in PO file"
    assert info[0].severity is Severity.INFO
    assert 'PO_UNTRANSLATED_STRINGS' not in _codes(engine, {"Hello": ""}, 'pot')


def test_po_plural_forms_use_context_language(engine):
    document = {"file": "fichier", "file[1]": "fichiers"}
    assert 'PO_PLURAL_FORMS' not in _codes(engine, document, 'po')

    context = ValidationContext(format='po', metadata={'language': 'ru'})
    issues = [issue for issue in engine.validate(document, context).issues() if issue.code == 'PO_PLURAL_FORMS']
    assert len(issues) == 1
    assert issues[0].message == "Plural forms do not match the rule for ru: missing file[2]"

    context = ValidationContext(format='po', metadata={'language': 'fr'})
    assert 'PO_PLURAL_FORMS' not in engine.validate(document, context).codes()


def test_yaml_csv_and_properties_rules(engine):
    assert 'YAML_NON_STRING_VALUE' in _codes(engine, {"count": 3, "title": "x"}, 'yml')
    assert _codes(engine, {}, 'tsv') == ['CSV_NO_DATA', 'EMPTY_TRANSLATION_FILE']

    assert 'PROPERTIES_UNESCAPED_UNICODE' in _codes(engine, {"greeting": "café"}, 'properties')
    utf8 = PropertiesHandler().parse("greeting=café\n")
    assert 'PROPERTIES_UNESCAPED_UNICODE' not in _codes(engine, utf8, 'properties')


# --- Structure integrity ---

def test_check_structure_integrity():
    assert check_structure_integrity([]).codes() == ['INVALID_STRUCTURE']
    assert check_structure_integrity({}).codes() == ['EMPTY_TRANSLATION_FILE']

    result = check_structure_integrity({
        "html": "<b>bold</b>",
        "blank": "  ",
        "count": 3,
        "long": "x" * 10001,
    })
    codes = result.codes()
    assert 'POTENTIAL_HTML_CONTENT' in codes
    assert 'EMPTY_TRANSLATION_STRING' in codes
    assert 'NON_TRANSLATABLE_VALUE' in codes
    assert 'VERY_LONG_STRING' in codes
    assert result.is_valid

    document = {"a": {}}
    document["a"]["loop"] = document["a"]
    assert 'CIRCULAR_REFERENCE' in check_structure_integrity(document).codes()


# --- Message catalogue ---

def test_format_message():
    assert format_message('DUPLICATE_KEYS', key="a.b") == "Duplicate translation key found: a.b"
    assert format_message('DUPLICATE_KEYS') == "Duplicate translation key found: {key}"
    assert format_message('NOPE') == "Unknown error: NOPE"


def test_format_detailed_message():
    message = format_detailed_message('ARB_ICU_SYNTAX_ERROR', path="count", error="unclosed brace")
    lines = message.split('\n')
    assert lines[0] == 'ICU message format syntax error in "count": unclosed brace'
    assert lines[1].startswith("  Suggestion: Fix the ICU syntax error")
    assert lines[2] == "  Documentation: https://unicode-org.github.io/icu/userguide/format_parse/messages/"


def test_catalogue_lookups():
    assert is_actionable('DUPLICATE_KEYS')
    assert not is_actionable('KEY_SPECIAL_CHARACTERS')
    assert not is_actionable('NOPE')
    assert 'ARB_MISSING_LOCALE' in codes_by_category('metadata')


def test_apply_catalogue_keeps_explicit_fields():
    filled = apply_catalogue(ValidationIssue('CSV_NO_DATA', "no rows"))
    assert filled.category == 'content'
    assert filled.suggestion == "Add data rows to the CSV file"

    explicit = apply_catalogue(ValidationIssue('CSV_NO_DATA', "no rows", category='custom', suggestion="Mine"))
    assert explicit.category == 'custom'
    assert explicit.suggestion == "Mine"

    unknown = ValidationIssue('SOMETHING_ELSE', "x")
    assert apply_catalogue(unknown) is unknown


@pytest.mark.parametrize("message, expected", [
    ("Invalid JSON: Expecting value", 'JSON_PARSE_ERROR'),
    ("Invalid XLIFF format: missing xliff root element", 'XLIFF_VALIDATION_ERROR'),
    ("Invalid XML: mismatched tag", 'XML_PARSE_ERROR'),
    ("'utf-8' codec can't decode byte", 'ENCODING_ERROR'),
    ("Invalid PO syntax at line 2: bogus", 'PARSE_ERROR'),
])
def test_classify_parse_error(message, expected):
    assert classify_parse_error(ParseError(message)) == expected


def test_format_guidance():
    text = format_guidance('JSON_PARSE_ERROR', ParseError("Invalid JSON: oops"))
    lines = text.split('\n')
    assert lines[0] == "Error: Invalid JSON: oops"
    assert lines[1] == "Suggestions for fixing JSON_PARSE_ERROR:"
    assert lines[2] == "  - Check for trailing commas after the last item in objects or arrays"

    fallback = format_guidance('SOMETHING_ELSE')
    assert fallback.startswith("Suggestions for fixing SOMETHING_ELSE:\n  - Check the file format and syntax")


@pytest.mark.parametrize("errors, warnings, expected", [
    (0, 0, "No validation issues found"),
    (1, 2, "1 error, 2 warnings"),
    (2, 0, "2 errors"),
    (0, 1, "1 warning"),
])
def test_summarize(errors, warnings, expected):
    issue = ValidationIssue('X', "x")
    assert summarize([issue] * errors, [issue] * warnings) == expected


def test_validation_guidance():
    assert validation_guidance('arb', ValidationResult()) is None

    result = ValidationResult.from_issues([apply_catalogue(ValidationIssue(
        'ARB_MISSING_LOCALE', format_message('ARB_MISSING_LOCALE'), Severity.WARNING,
    ))])
    text = validation_guidance('arb', result)
    assert text.startswith("1 warning\n\nSuggestions:\n  - Add \"@@locale\"")
    assert "Suggestions for fixing ARB_VALIDATION_ERROR:" in text

    assert "Suggestions for fixing" not in validation_guidance('yaml', result)


# --- Service ---

def test_validate_clean_file(service):
    report = service.validate_file('{"greeting": "Hello", "menu": {"open": "Open"}}', "en.json")
    assert report.success
    assert report.validation.issues() == []
    assert report.recovery is None
    assert report.guidance is None
    assert report.document["menu.open"] == "Open"


def test_parse_error_without_recovery(service):
    report = service.validate_file('{"a": "b",}', "en.json", attempt_recovery=False)
    assert not report.success
    assert report.validation.codes() == ['PARSE_ERROR']
    assert report.validation.errors[0].message.startswith("Failed to parse file: Invalid JSON")
    assert report.parse_error.startswith("Invalid JSON")
    assert report.guidance.startswith("Error: Invalid JSON")
    assert "Suggestions for fixing JSON_PARSE_ERROR:" in report.guidance


def test_parse_error_with_recovery(service):
    """Test 4: Recovered files pass, with the repair reported as a warning"""
    report = service.validate_file('{"a": "b",}', "en.json")
    assert report.success
    assert report.recovery.strategy == "json-trailing-comma"
    assert report.document["a"] == "b"
    recovered = [issue for issue in report.validation.warnings if issue.code == 'RECOVERY_APPLIED']
    assert [issue.message for issue in recovered] == ["Fixed trailing commas in JSON"]

    data = report.to_dict()
    assert data['recovery']['recoveryMethod'] == "json-trailing-comma"
    assert data['parseError'].startswith("Invalid JSON")


def test_recovery_failure_is_reported(service):
    report = service.validate_file(":::", "en.json")
    assert not report.success
    assert report.recovery.strategy == "none"
    assert report.validation.errors[-1].message.startswith("Failed to parse file and recovery failed: ")


def test_unknown_format(service):
    report = service.validate_file("just some words\n", "notes.bin")
    assert not report.success
    assert report.validation.codes() == ['UNKNOWN_FORMAT']


def test_strict_mode(service):
    report = service.validate_file('{"bad key": "x"}', "en.json", strict_mode=True)
    assert not report.success
    assert [issue.code for issue in report.validation.errors] == ['KEY_CONTAINS_SPACES']
    assert [issue.code for issue in report.validation.warnings] == ['KEY_SPECIAL_CHARACTERS']

    text = build_report(report, "en.json")
    assert text.startswith("Validation report for en.json\n")
    assert "Status: FAILED" in text
    assert "Summary: 1 error, 1 warning" in text
    assert '  - KEY_CONTAINS_SPACES [bad key]: Translation key "bad key" contains spaces' in text


def test_validate_data_uses_document_language(service):
    document = PoHandler().parse(PO_CONTENT)
    del document["file[2]"]

    result = service.validate_data(document, "po")
    codes = result.codes()
    assert 'PO_PLURAL_FORMS' in codes
    assert 'MISSING_PLURAL_FORM' in codes
    assert result.is_valid


def test_load_document(service):
    document, recovery = service.load_document('{"a": "b"}', "en.json")
    assert document["a"] == "b"
    assert recovery is None

    document, recovery = service.load_document('{"a": "b",}', "en.json")
    assert document["a"] == "b"
    assert recovery.success

    with pytest.raises(RecoveryFailure):
        service.load_document(":::", "en.json")


def test_validate_path(service, tmp_path):
    path = tmp_path / "ru.po"
    path.write_text(PO_CONTENT, encoding='utf-8')

    report = validate_path(str(path), service=service)
    assert report.success
    assert report.document["file[2]"] == "файлов"

    text = build_report(report)
    assert text.startswith("Validation report\n")
    assert "Status: PASSED" in text
