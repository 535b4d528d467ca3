#!/usr/bin/env python3
"""
Tests for the markup codec and XmlHandler.

Tests verify:
1. Android, iOS and generic XML flatten to the expected documents
2. Reconstruction keeps comments, attributes and ordering
3. Android apostrophes are escaped on write and unescaped on read
4. New keys are appended to Android resources
5. CDATA leaves are written back as CDATA and plain-text leaves as literal text
"""

from xml.etree import ElementTree as ET

import pytest

from locformat.codecs import markup
from locformat.errors import ParseError
from locformat.format_handlers import XmlHandler
from locformat.model import get_sidecar, strip_sidecar


ANDROID_XML = """<?xml version="1.0" encoding="utf-8"?>
<resources>
    <string name="app_name">My App</string>
    <!-- errors -->
    <group name="errors">
        <string name="network">Network error</string>
    </group>
    <plurals name="items">
        <item quantity="one">%d item</item>
        <item quantity="other">%d items</item>
    </plurals>
    <string-array name="days">
        <item>Monday</item>
        <item>Tuesday</item>
    </string-array>
</resources>
"""

IOS_PLIST = """<?xml version="1.0" encoding="UTF-8"?>
<plist version="1.0">
<dict>
    <key>greeting</key>
    <string>Hello</string>
    <key>alerts</key>
    <dict>
        <key>title</key>
        <string>Warning</string>
    </dict>
</dict>
</plist>
"""

GENERIC_XML = """<catalog>
    <title>Shop</title>
    <items>
        <item>One</item>
        <item>Two</item>
    </items>
</catalog>
"""


@pytest.fixture
def handler():
    return XmlHandler()


def test_android_document_is_nested(handler):
    """Test 1: groups, plurals and string-arrays become objects and arrays"""
    document = handler.parse(ANDROID_XML)
    assert strip_sidecar(document) == {
        "app_name": "My App",
        "errors": {"network": "Network error"},
        "items": {"one": "%d item", "other": "%d items"},
        "days": ["Monday", "Tuesday"],
    }
    assert get_sidecar(document).get('dialect') == markup.ANDROID


def test_android_unchanged_round_trip_is_exact(handler):
    document = handler.parse(ANDROID_XML)
    assert handler.serialize(document) == ANDROID_XML


def test_android_translated_values(handler):
    """Test 2: Only the changed leaves are rewritten"""
    document = handler.parse(ANDROID_XML)
    document["errors"]["network"] = "Erreur réseau"
    document["days"][1] = "Mardi"

    output = handler.serialize(document)
    assert '<string name="network">Erreur réseau</string>' in output
    assert '<item>Mardi</item>' in output
    assert '<!-- errors -->' in output
    assert '<string name="app_name">My App</string>' in output


def test_android_apostrophes_are_escaped(handler):
    document = handler.parse(ANDROID_XML)
    document["app_name"] = "L'application"

    output = handler.serialize(document)
    assert "<string name=\"app_name\">L\\'application</string>" in output
    assert handler.parse(output)["app_name"] == "L'application"


def test_android_new_keys_are_appended(handler):
    """Test 3: Missing keys become new string and group elements"""
    document = handler.parse(ANDROID_XML)
    document["settings"] = "Settings"
    document["menu"] = {"open": "Open"}

    reparsed = handler.parse(handler.serialize(document))
    assert reparsed["settings"] == "Settings"
    assert reparsed["menu"] == {"open": "Open"}
    assert reparsed["app_name"] == "My App"


def test_android_reserialize_is_stable(handler):
    document = handler.parse(ANDROID_XML)
    document["errors"]["network"] = "Fehler"
    first = handler.serialize(document)
    assert handler.serialize(handler.parse(first)) == first


def test_ios_plist(handler):
    document = handler.parse(IOS_PLIST)
    assert strip_sidecar(document) == {"greeting": "Hello", "alerts": {"title": "Warning"}}

    document["alerts"]["title"] = "Attention"
    reparsed = handler.parse(handler.serialize(document))
    assert strip_sidecar(reparsed) == {"greeting": "Hello", "alerts": {"title": "Attention"}}


def test_generic_xml_uses_flat_paths(handler):
    """Test 4: Repeated siblings are indexed, the root is not part of the key"""
    document = handler.parse(GENERIC_XML)
    assert strip_sidecar(document) == {
        "title": "Shop",
        "items.item[0]": "One",
        "items.item[1]": "Two",
    }

    document["items.item[1]"] = "Deux"
    output = handler.serialize(document)
    assert "<item>Deux</item>" in output
    assert output.startswith("<catalog>")


def test_xml_declaration_can_be_dropped(handler):
    document = handler.parse(ANDROID_XML)
    output = handler.serialize(document, xml_declaration=False)
    assert output.startswith("<resources>")


def test_xml_declaration_can_be_forced(handler):
    document = handler.parse(GENERIC_XML)
    output = handler.serialize(document, xml_declaration=True)
    assert output.startswith(markup.XML_DECLARATION)


def test_serialize_without_sidecar_builds_android_tree(handler):
    output = handler.serialize({"greeting": "Hello"}, dialect=markup.ANDROID)
    assert output.startswith(markup.XML_DECLARATION)
    assert '<string name="greeting">Hello</string>' in output


def test_malformed_xml(handler):
    content = "<resources><string name='a'>x</resources>"
    codes = [issue.code for issue in handler.check_content(content)]
    assert "MALFORMED_XML" in codes

    with pytest.raises(ParseError, match="Invalid XML"):
        handler.parse(content)


@pytest.mark.parametrize("content, code", [
    ("<resources></resources>", "NO_STRINGS"),
    ('<plist version="1.0"><array/></plist>', "MISSING_DICT"),
    ("<root/>", "EMPTY_XML"),
])
def test_structure_issues(handler, content, code):
    result = handler.validate_structure(handler.parse(content))
    assert code in result.codes()


def test_android_root_check():
    issues = markup.validate_markup(ET.fromstring("<strings/>"), markup.ANDROID)
    assert [issue.code for issue in issues] == ["MISSING_RESOURCES"]


@pytest.mark.parametrize("content, dialect", [
    ("<resources/>", markup.ANDROID),
    ('<plist version="1.0"/>', markup.IOS),
    ('<messagebundle locale="en"/>', markup.XMB),
    ('<translationbundle lang="fr"/>', markup.XTB),
    ("<catalog/>", markup.GENERIC),
])
def test_detect_dialect(content, dialect):
    assert markup.detect_dialect(content) == dialect
    assert markup.detect_dialect(root=ET.fromstring(content)) == dialect


def test_split_document():
    content = '<?xml version="1.0"?>\n<!-- c -->\n<root/>\n'
    assert markup.split_document(content) == ('<?xml version="1.0"?>\n<!-- c -->\n', '\n')


def test_inner_markup_keeps_inline_elements():
    elem = ET.fromstring('<msg>Hello <ph name="USER" />!</msg>')
    assert markup.inner_markup(elem) == 'Hello <ph name="USER" />!'

    markup.set_inner_markup(elem, 'Bye <b>now</b>')
    assert elem.text == 'Bye '
    assert [child.tag for child in elem] == ['b']

    markup.set_inner_markup(elem, 'plain < text')
    assert elem.text == 'plain < text'
    assert len(elem) == 0


CDATA_XML = """<resources>
    <string name="a"><![CDATA[<b>Hi</b>]]></string>
    <string name="e">&lt;b&gt;Hi&lt;/b&gt;</string>
    <string name="m">Hello <b>World</b></string>
</resources>
"""


def test_cdata_and_escaped_leaves_read_as_text(handler):
    document = handler.parse(CDATA_XML)
    assert strip_sidecar(document) == {"a": "<b>Hi</b>", "e": "<b>Hi</b>", "m": "Hello <b>World</b>"}
    assert get_sidecar(document).get('cdata_keys') == ["a"]
    assert handler.serialize(document) == CDATA_XML


def test_leaves_keep_their_kind_when_rewritten(handler):
    """CDATA stays CDATA, plain text stays text, inline markup stays markup"""
    document = handler.parse(CDATA_XML)
    document["a"] = "<b>Hola</b>"
    document["e"] = "<b>Hola</b>"
    document["m"] = "Hola <i>Mundo</i>"

    output = handler.serialize(document)
    assert '<string name="a"><![CDATA[<b>Hola</b>]]></string>' in output
    assert '<string name="e">&lt;b&gt;Hola&lt;/b&gt;</string>' in output
    assert '<string name="m">Hola <i>Mundo</i></string>' in output

    reparsed = handler.parse(output)
    assert strip_sidecar(reparsed) == {"a": "<b>Hola</b>", "e": "<b>Hola</b>", "m": "Hola <i>Mundo</i>"}
    assert handler.serialize(reparsed) == output


def test_cdata_android_escaping_and_terminator(handler):
    document = handler.parse(CDATA_XML)
    document["a"] = "Don't <b>go</b>"
    output = handler.serialize(document)
    assert "<![CDATA[Don\\'t <b>go</b>]]>" in output
    assert handler.parse(output)["a"] == "Don't <b>go</b>"

    document["a"] = "a]]>b"
    output = handler.serialize(document)
    assert "<![CDATA[a]]]]><![CDATA[>b]]>" in output
    assert handler.parse(output)["a"] == "a]]>b"


def test_generic_plain_leaves_are_literal(handler):
    document = handler.parse("<catalog><note><![CDATA[a & b]]></note><title>x</title></catalog>")
    assert strip_sidecar(document) == {"note": "a & b", "title": "x"}

    document["title"] = "<i>x</i>"
    document["note"] = "a < b"
    output = handler.serialize(document)
    assert output == "<catalog><note><![CDATA[a < b]]></note><title>&lt;i&gt;x&lt;/i&gt;</title></catalog>"


def test_parse_xml_keeping_cdata():
    root, cdata = markup.parse_xml_keeping_cdata(
        "<r><!-- <![CDATA[c]]> --><a><![CDATA[x < y]]></a><b>plain</b></r>"
    )
    assert root.find('a').text == "x < y"
    assert [elem.tag for elem in cdata] == ['a']
