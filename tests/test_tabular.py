#!/usr/bin/env python3
"""
Tests for the tabular codec and the CSV/TSV handlers.
"""

import pytest

from locformat.codecs import tabular
from locformat.codecs.tabular import DIALECTS, TabularOptions
from locformat.errors import ParseError
from locformat.format_handlers import CsvHandler, TsvHandler
from locformat.model import get_sidecar


@pytest.fixture
def csv_handler():
    return CsvHandler()


@pytest.mark.parametrize("content, expected", [
    ("key,value\ngreeting,Hello\n", ","),
    ("key;value\ngreeting;Hello\n", ";"),
    ("key\tvalue\ngreeting\tHello\n", "\t"),
    ("key|value\ngreeting|Hello\n", "|"),
    ("single\ncolumn\n", ","),
])
def test_detect_delimiter(content, expected):
    assert tabular.detect_delimiter(content) == expected


def test_tokenize_quotes_and_doubled_quotes():
    """Test 1: Quoted fields keep delimiters, newlines and doubled quotes"""
    content = 'key,value\nmsg,"Hello, ""world"""\nmulti,"line one\nline two"\n'
    rows = tabular.tokenize(content)
    assert rows == [
        ["key", "value"],
        ["msg", 'Hello, "world"'],
        ["multi", "line one\nline two"],
    ]


def test_tokenize_backslash_escape():
    rows = tabular.tokenize('a,"say \\"hi\\""\n', escape='\\')
    assert rows == [["a", 'say "hi"']]


def test_tokenize_trims_unquoted_fields_only():
    rows = tabular.tokenize('  a  ,"  b  "\n')
    assert rows == [["a", "  b  "]]
    assert tabular.tokenize('  a  ,b\n', trim_fields=False) == [["  a  ", "b"]]


def test_is_tabular_threshold():
    assert tabular.is_tabular("a,b\n1,2\n3,4\n")
    assert not tabular.is_tabular("a,b\n1,2\n3\n")
    assert not tabular.is_tabular("")


def test_field_consistency():
    assert tabular.field_consistency("a,b\n1,2\n\n3\n4,5\n", ",") == 0.75
    assert tabular.field_consistency("", ",") == 0.0


def test_check_field_counts():
    issues = tabular.check_field_counts("a,b\n1,2\n3\n", ",")
    codes = [issue.code for issue in issues]
    assert codes == ["INCONSISTENT_FIELD_COUNT", "MAJOR_STRUCTURE_INCONSISTENCY"]
    assert issues[0].line == 3
    assert tabular.check_field_counts("a,b\n1,2\n", ",") == []


def test_detect_headers():
    assert tabular.detect_headers([["key", "value"], ["greeting", "Hello"]])
    assert not tabular.detect_headers([
        ["greeting", "Hello there my friend"],
        ["farewell", "See you later friend"],
    ])


def test_infer_column_roles():
    roles = tabular.infer_column_roles(["id", "text", "fr", "label_de"])
    assert roles.key_column == "id"
    assert roles.value_column == "text"
    assert roles.language_columns == {"fr": "fr", "de": "label_de"}

    explicit = tabular.infer_column_roles(["a", "b", "c"], key_column="b", value_column="c")
    assert (explicit.key_column, explicit.value_column) == ("b", "c")


def test_escape_field_per_dialect():
    assert tabular.escape_field('He said "hi"', ",", DIALECTS["excel"]) == '"He said ""hi"""'
    assert tabular.escape_field('He said "hi"', ",", DIALECTS["unix"]) == '"He said \\"hi\\""'
    assert tabular.escape_field("plain", ",", DIALECTS["default"]) == "plain"
    assert tabular.escape_field("a,b", ",", DIALECTS["default"]) == '"a,b"'


@pytest.mark.parametrize("value", ["Hi\t", "\tHi", "   ", " Hi ", "Hi "])
def test_edge_whitespace_is_quoted(value):
    assert tabular.escape_field(value, ",", DIALECTS["default"]) == f'"{value}"'


@pytest.mark.parametrize("value", ["Hi\t", "\tindented", "   ", " padded "])
def test_edge_whitespace_survives_reparse(csv_handler, value):
    output = csv_handler.serialize({"greeting": value, "other": "x"})
    assert csv_handler.parse(output)["greeting"] == value


def test_format_rows_line_terminator():
    rows = [["key", "value"], ["a", "b"]]
    assert tabular.format_rows(rows, ",", DIALECTS["excel"]) == "key,value\r\na,b\r\n"
    assert tabular.format_rows(rows, ",", DIALECTS["unix"]) == "key,value\na,b\n"


def test_unknown_dialect_raises():
    with pytest.raises(ValueError):
        TabularOptions(dialect="nope").resolve_dialect()


def test_csv_parse_and_round_trip(csv_handler):
    """Test 2: Unmodified documents serialize back to the same text"""
    content = 'key,value\ngreeting,Hello\nmsg,"Hello, world"\n'
    document = csv_handler.parse(content)
    assert document["greeting"] == "Hello"
    assert document["msg"] == "Hello, world"
    assert csv_handler.serialize(document) == content


def test_csv_translated_values_and_new_keys(csv_handler):
    """Test 3: Values are updated by key and new keys become new rows"""
    content = "key,value,fr\ngreeting,Hello,Bonjour\nfarewell,Goodbye,Au revoir\n"
    document = csv_handler.parse(content)
    sidecar = get_sidecar(document)
    assert sidecar.get("language_data")["fr"] == {"greeting": "Bonjour", "farewell": "Au revoir"}

    document["greeting"] = "Hola"
    document["new_key"] = "Nuevo"
    output = csv_handler.serialize(document)
    assert output == (
        "key,value,fr\n"
        "greeting,Hola,Bonjour\n"
        "farewell,Goodbye,Au revoir\n"
        "new_key,Nuevo,\n"
    )


def test_csv_without_headers(csv_handler):
    content = "greeting,Hello there my friend\nfarewell,See you later friend\n"
    document = csv_handler.parse(content)
    sidecar = get_sidecar(document)
    assert sidecar.get("has_headers") is False
    assert sidecar.get("columns") == ["column_1", "column_2"]
    assert document["greeting"] == "Hello there my friend"


def test_csv_without_sidecar_writes_key_value_header(csv_handler):
    output = csv_handler.serialize({"a": "x", "b": "y, z"})
    assert output == 'key,value\na,x\nb,"y, z"\n'


def test_csv_excel_dialect_output(csv_handler):
    output = csv_handler.serialize({"a": "x"}, dialect="excel")
    assert output == "key,value\r\na,x\r\n"


def test_csv_no_data_rows_raises(csv_handler):
    with pytest.raises(ParseError, match="no data rows"):
        csv_handler.parse("key,value\n")
    with pytest.raises(ParseError):
        csv_handler.parse("\n\n")


def test_csv_single_column_raises(csv_handler):
    with pytest.raises(ParseError):
        csv_handler.parse("key\nalpha\nbeta\n")


def test_csv_validation_codes(csv_handler):
    issues = csv_handler.check_content("key,value\na,b\nc\n")
    assert "INCONSISTENT_FIELD_COUNT" in [issue.code for issue in issues]

    result = csv_handler.validate_structure({})
    assert result.codes() == ["EMPTY_CSV"]


def test_tsv_always_uses_tabs():
    handler = TsvHandler()
    content = "key\tvalue\nmsg\tHello, world\n"
    document = handler.parse(content)
    assert document["msg"] == "Hello, world"
    assert handler.serialize(document) == content
    assert handler.can_handle("strings.tsv", content)
    assert not handler.can_handle("strings.tsv", "key,value\na,b\n")
