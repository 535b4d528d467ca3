#!/usr/bin/env python3
"""
Tests for the XMB/XTB message bundle handlers and bundle helpers.
"""

import pytest

from locformat.errors import ParseError
from locformat.format_handlers import XmbHandler, XtbHandler
from locformat.format_handlers.message_bundle import (
    check_placeholder_syntax,
    generate_xtb_from_xmb,
    update_xtb_translations,
    validate_bundle_integrity,
)
from locformat.model import get_sidecar, strip_sidecar


XMB_CONTENT = """<?xml version="1.0" encoding="UTF-8"?>
<messagebundle locale="en">
  <msg id="greeting" desc="Home page title">Welcome, <ph name="USER"><ex>Ann</ex></ph>!</msg>
  <msg id="inbox" meaning="mail">You have {COUNT} messages</msg>
</messagebundle>
"""

XTB_CONTENT = """<?xml version="1.0" encoding="UTF-8"?>
<translationbundle lang="fr">
  <translation id="greeting">Bienvenue, <ph name="USER" /> !</translation>
</translationbundle>
"""


@pytest.fixture
def xmb_handler():
    return XmbHandler()


@pytest.fixture
def xtb_handler():
    return XtbHandler()


def test_parse_xmb_keeps_inline_placeholders(xmb_handler):
    """Test 1: Message text is carried as inner markup"""
    document = xmb_handler.parse(XMB_CONTENT)
    assert strip_sidecar(document) == {
        "greeting": 'Welcome, <ph name="USER"><ex>Ann</ex></ph>!',
        "inbox": "You have {COUNT} messages",
    }
    sidecar = get_sidecar(document)
    assert sidecar.get('language') == "en"
    assert sidecar.get('messages') == {
        "greeting": {"description": "Home page title"},
        "inbox": {"meaning": "mail"},
    }


def test_xmb_unchanged_round_trip_is_exact(xmb_handler):
    document = xmb_handler.parse(XMB_CONTENT)
    assert xmb_handler.serialize(document) == XMB_CONTENT


def test_parse_xtb(xtb_handler):
    document = xtb_handler.parse(XTB_CONTENT)
    assert strip_sidecar(document) == {"greeting": 'Bienvenue, <ph name="USER" /> !'}
    assert get_sidecar(document).get('language') == "fr"


def test_update_xtb_translations_appends_in_place():
    """Test 2: New translations follow the indentation of existing ones"""
    output = update_xtb_translations(XTB_CONTENT, {"inbox": "Vous avez {COUNT} messages"})
    assert output == """<?xml version="1.0" encoding="UTF-8"?>
<translationbundle lang="fr">
  <translation id="greeting">Bienvenue, <ph name="USER" /> !</translation>
  <translation id="inbox">Vous avez {COUNT} messages</translation>
</translationbundle>
"""


def test_generate_xtb_from_xmb():
    """Test 3: Only translated messages are written, in XMB order"""
    output = generate_xtb_from_xmb(XMB_CONTENT, "fr", {"greeting": 'Bienvenue, <ph name="USER" /> !'})
    assert output == """<?xml version="1.0" encoding="UTF-8"?>
<translationbundle lang="fr">
  <translation id="greeting">Bienvenue, <ph name="USER" /> !</translation>
</translationbundle>
"""


def test_generated_values_ending_in_markup_survive(xtb_handler):
    output = generate_xtb_from_xmb(XMB_CONTENT, "de", {
        "greeting": 'Willkommen <ph name="USER" />',
        "inbox": "Sie haben {COUNT} Nachrichten",
    })
    document = xtb_handler.parse(output)
    assert strip_sidecar(document) == {
        "greeting": 'Willkommen <ph name="USER" />',
        "inbox": "Sie haben {COUNT} Nachrichten",
    }


def test_serialize_language_override(xtb_handler):
    document = xtb_handler.parse(XTB_CONTENT)
    output = xtb_handler.serialize(document, language="fr-CA")
    assert '<translationbundle lang="fr-CA">' in output


def test_validate_bundle_integrity():
    """Test 4: Orphans, missing messages and placeholder mismatches"""
    xtb = """<translationbundle lang="fr">
  <translation id="greeting">Bienvenue !</translation>
  <translation id="inbox">Vous avez {N} messages</translation>
  <translation id="stale">Ancien</translation>
</translationbundle>"""
    xmb = XMB_CONTENT.replace("</messagebundle>", '  <msg id="help">Help</msg>\n</messagebundle>')

    result = validate_bundle_integrity(xmb, xtb)
    by_code = {issue.code: issue for issue in result.issues()}
    assert by_code["ORPHANED_TRANSLATION"].path == "stale"
    assert by_code["MISSING_TRANSLATION"].path == "help"
    assert by_code["MISSING_PH_PLACEHOLDER"].path == "greeting"
    assert by_code["MISSING_VARIABLE_PLACEHOLDER"].path == "inbox"
    assert by_code["EXTRA_VARIABLE_PLACEHOLDER"].severity.value == "warning"


def test_validate_bundle_integrity_parse_error():
    result = validate_bundle_integrity("<messagebundle", XTB_CONTENT)
    assert result.codes() == ["BUNDLE_PARSE_ERROR"]


@pytest.mark.parametrize("text, codes", [
    ("Hello {name}", []),
    ("Hello {name", ["UNMATCHED_PLACEHOLDER_BRACES"]),
    ('Hi <ph name="A">x', ["UNMATCHED_PH_TAGS"]),
    ('Hi <ph name="A"/>', []),
    ('Hi <ph name="A"><ex>x</ph>', ["UNMATCHED_EX_TAGS"]),
    ('Hi <ph name=""/>', ["EMPTY_PLACEHOLDER_NAME"]),
])
def test_check_placeholder_syntax(text, codes):
    assert [issue.code for issue in check_placeholder_syntax(text, "msg")] == codes


def test_structure_issues(xmb_handler, xtb_handler):
    missing_lang = xtb_handler.parse('<translationbundle><translation id="a">x</translation></translationbundle>')
    assert xtb_handler.validate_structure(missing_lang).codes() == ["MISSING_LANG"]

    missing_id = xtb_handler.parse('<translationbundle lang="fr"><translation>x</translation></translationbundle>')
    assert xtb_handler.validate_structure(missing_id).codes() == ["MISSING_TRANSLATION_ID"]

    empty = xmb_handler.parse('<messagebundle locale="en"/>')
    assert xmb_handler.validate_structure(empty).codes() == ["NO_MESSAGES"]

    assert xtb_handler.validate_structure({}).codes() == ["NO_TRANSLATIONS"]


def test_wrong_root_is_rejected(xmb_handler):
    with pytest.raises(ParseError, match="missing messagebundle root element"):
        xmb_handler.parse("<foo/>")


def test_extract_placeholders(xmb_handler):
    assert xmb_handler.extract_placeholders('Hi <ph name="USER"/> you have {COUNT}') == [
        '<ph name="USER">', '{COUNT}',
    ]
