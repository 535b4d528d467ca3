#!/usr/bin/env python3
"""
Tests for the YAML handler: parsing, array handling and reconstruction.
"""

import datetime

import pytest
import yaml

from locformat.errors import ParseError
from locformat.format_handlers import YamlHandler
from locformat.format_handlers.yaml_handler import normalize_tree
from locformat.model import strip_sidecar


YAML_CONTENT = """en:
  welcome: Welcome
  user:
    greeting: Hello %{name}
  days:
  - Monday
  - Tuesday
  enabled: true
"""


@pytest.fixture
def handler():
    return YamlHandler()


def test_parse_flattens_mappings_and_sequences(handler):
    """Test 1: Nested mappings and sequences use path keys"""
    document = handler.parse(YAML_CONTENT)
    assert strip_sidecar(document) == {
        "en.welcome": "Welcome",
        "en.user.greeting": "Hello %{name}",
        "en.days[0]": "Monday",
        "en.days[1]": "Tuesday",
        "en.enabled": True,
    }


def test_unchanged_round_trip(handler):
    document = handler.parse(YAML_CONTENT)
    assert handler.serialize(document) == YAML_CONTENT


def test_translated_values_keep_order(handler):
    """Test 2: Reconstruction keeps key order and untouched values"""
    document = handler.parse(YAML_CONTENT)
    document["en.welcome"] = "Bienvenue"
    document["en.days[1]"] = "Mardi"

    data = yaml.safe_load(handler.serialize(document))
    assert list(data["en"]) == ["welcome", "user", "days", "enabled"]
    assert data["en"]["welcome"] == "Bienvenue"
    assert data["en"]["days"] == ["Monday", "Mardi"]
    assert data["en"]["enabled"] is True


def test_unicode_is_written_unescaped(handler):
    document = handler.parse(YAML_CONTENT)
    document["en.welcome"] = "Добро пожаловать"
    assert "Добро пожаловать" in handler.serialize(document)


def test_serialize_without_sidecar(handler):
    output = handler.serialize({"fr.title": "Titre", "fr.items[0]": "un"})
    assert yaml.safe_load(output) == {"fr": {"title": "Titre", "items": ["un"]}}


def test_empty_content_is_empty_document(handler):
    document = handler.parse("")
    assert strip_sidecar(document) == {}
    assert "EMPTY_YAML" in handler.validate_structure(document).codes()


def test_parse_errors(handler):
    with pytest.raises(ParseError, match="Invalid YAML") as excinfo:
        handler.parse("en:\n  a: [unclosed\n")
    assert excinfo.value.line is not None

    with pytest.raises(ParseError, match="YAML root must be a mapping"):
        handler.parse("- a\n- b\n")


def test_deeply_nested_flow_sequence(handler):
    with pytest.raises(ParseError, match="nesting is too deep") as excinfo:
        handler.parse("key: " + "[" * 10000 + "]" * 10000 + "\n")
    assert excinfo.value.format == "yaml"


def test_normalize_tree():
    """Test 3: Non-string keys and dates become text"""
    tree = {1: "one", False: {"when": datetime.date(2024, 1, 2)}, "list": [None, 2.5]}
    assert normalize_tree(tree) == {
        "1": "one",
        "False": {"when": "2024-01-02"},
        "list": [None, 2.5],
    }


def test_file_extensions(handler):
    assert handler.can_handle("config/locales/en.yml")
    assert handler.can_handle("messages.fr.yaml")
    assert not handler.can_handle("en.json")
