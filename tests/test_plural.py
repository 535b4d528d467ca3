#!/usr/bin/env python3
"""
Tests for gettext plural rules, plural/context keys and the selector
expression evaluator.
"""

import pytest

from locformat.codecs import plural
from locformat.errors import PluralExpressionError


@pytest.mark.parametrize("n, expected", [(0, 1), (1, 0), (2, 1), (100, 1)])
def test_simple_expression(n, expected):
    assert plural.evaluate_plural("(n != 1)", n) == expected


@pytest.mark.parametrize("n, expected", [
    (1, 0), (2, 1), (4, 1), (5, 2), (11, 2), (12, 2), (21, 0), (22, 1), (111, 2),
])
def test_russian_rule(n, expected):
    assert plural.get_plural_rule("ru").index(n) == expected


@pytest.mark.parametrize("n, expected", [(0, 0), (1, 1), (2, 2), (3, 3), (11, 4), (100, 5)])
def test_arabic_rule(n, expected):
    assert plural.get_plural_rule("ar").index(n) == expected


@pytest.mark.parametrize("expression", [
    "__import__('os')",
    "n; import os",
    "x > 1",
    "n = 1",
    "n ** 2",
    "(n > 1",
    "n ? 1",
    "",
    "n.real",
])
def test_rejects_expressions_outside_grammar(expression):
    with pytest.raises(PluralExpressionError):
        plural.compile_plural_expression(expression)


def test_integer_semantics_follow_c():
    assert plural.evaluate_plural("-7 / 2", 0) == -3
    assert plural.evaluate_plural("-7 % 3", 0) == -1
    assert plural.evaluate_plural("n % 10 == 1 && n % 100 != 11", 21) == 1
    assert plural.evaluate_plural("!n", 0) == 1


def test_division_by_zero_is_an_expression_error():
    with pytest.raises(PluralExpressionError):
        plural.evaluate_plural("n / 0", 5)


def test_nested_ternary_is_right_associative():
    expression = "n==1 ? 0 : n==2 ? 1 : 2"
    assert [plural.evaluate_plural(expression, n) for n in (1, 2, 3)] == [0, 1, 2]


def test_validate_plural_expression():
    assert plural.validate_plural_expression("(n != 1)", 2) == []
    assert plural.validate_plural_expression("n", 2)
    assert plural.validate_plural_expression("n +", 2)


def test_language_lookup_normalizes_and_falls_back():
    assert plural.get_plural_rule("en-US") == plural.get_plural_rule("en")
    assert plural.get_plural_rule("pt_BR") == plural.get_plural_rule("pt")
    assert plural.get_plural_rule("xx") == plural.get_plural_rule("en")
    assert plural.get_plural_rule(None).nplurals == 2
    assert plural.has_complex_plurals("ru")
    assert not plural.has_complex_plurals("en")
    assert "sl" in plural.supported_languages()


def test_plural_forms_header_round_trip():
    header = plural.format_plural_forms_header("fr")
    assert header == "nplurals=2; plural=(n > 1);"
    rule = plural.parse_plural_forms_header(header)
    assert rule.nplurals == 2
    assert rule.expression == "(n > 1)"

    with pytest.raises(PluralExpressionError):
        plural.parse_plural_forms_header("plural=n != 1")


def test_sample_plurals():
    assert plural.sample_plurals("en") == {0: [1], 1: [0, 2, 3, 4, 5]}


def test_context_and_plural_keys():
    assert plural.parse_context_key("menu|Open") == ("menu", "Open")
    assert plural.parse_context_key("Open") == (None, "Open")
    assert plural.create_context_key("Open", "menu") == "menu|Open"
    assert plural.validate_context("menu")
    assert not plural.validate_context("a|b")

    assert plural.parse_plural_key("file[2]") == ("file", 2)
    assert plural.parse_plural_key("file") == ("file", None)
    assert plural.create_plural_key("file", 0) == "file"
    assert plural.create_plural_key("file", 2) == "file[2]"


def test_check_plural_forms_reports_missing_and_extra():
    """Test 1: Russian needs three forms; index 3 is out of range"""
    check = plural.check_plural_forms(["файл", "файл[1]", "файл[3]"], "ru")
    assert check.missing == ["файл[2]"]
    assert check.extra == ["файл[3]"]
    assert not check.is_valid


def test_check_plural_forms_ignores_ungrouped_keys():
    assert plural.check_plural_forms(["hello", "world"], "ru").is_valid
    check = plural.check_plural_forms(["apple[1]"], "en")
    assert check.missing == ["apple"]


def test_check_plural_forms_accepts_rule():
    rule = plural.parse_plural_forms_header("nplurals=1; plural=0;")
    assert plural.check_plural_forms(["item[1]", "item"], rule).extra == ["item[1]"]
