#!/usr/bin/env python3
"""
Tests for XliffHandler (XLIFF 1.2 and 2.0).

Serialized output is compared after re-parsing: namespace declarations may
move within the root element's attributes.
"""

from xml.etree import ElementTree as ET

import pytest

from locformat.errors import ParseError
from locformat.format_handlers import XliffHandler
from locformat.format_handlers.xliff import XLIFF_12_NAMESPACE, detect_version
from locformat.model import get_sidecar, strip_sidecar


XLIFF_12 = """<?xml version="1.0" encoding="UTF-8"?>
<xliff version="1.2" xmlns="urn:oasis:names:tc:xliff:document:1.2">
  <file source-language="en" target-language="fr" datatype="plaintext" original="app">
    <body>
      <trans-unit id="greeting">
        <source>Hello</source>
        <target>Bonjour</target>
      </trans-unit>
      <trans-unit id="farewell">
        <source>Goodbye</source>
      </trans-unit>
      <trans-unit id="done" approved="yes">
        <source>Done</source>
        <target>Terminé</target>
      </trans-unit>
      <trans-unit id="name">
        <source>Hello <g id="1">{name}</g></source>
      </trans-unit>
    </body>
  </file>
</xliff>
"""

XLIFF_20 = """<?xml version="1.0" encoding="UTF-8"?>
<xliff xmlns="urn:oasis:names:tc:xliff:document:2.0" version="2.0" srcLang="en" trgLang="fr">
  <file id="f1">
    <unit id="u1">
      <segment>
        <source>Hello</source>
      </segment>
    </unit>
    <unit id="u2">
      <segment state="final">
        <source>Yes</source>
        <target>Oui</target>
      </segment>
    </unit>
    <unit id="u3">
      <segment><source>One</source><target>Un</target></segment>
      <segment><source>Two</source></segment>
    </unit>
  </file>
</xliff>
"""

NS12 = "{%s}" % XLIFF_12_NAMESPACE


@pytest.fixture
def handler():
    return XliffHandler()


def _unit(content, unit_id):
    root = ET.fromstring(content.encode('utf-8'))
    for unit in root.iter(f"{NS12}trans-unit"):
        if unit.get('id') == unit_id:
            return unit
    return None


def test_parse_xliff12(handler):
    """Test 1: Targets win over sources, approved units are skipped"""
    document = handler.parse(XLIFF_12)
    assert strip_sidecar(document) == {
        "greeting": "Bonjour",
        "farewell": "Goodbye",
        "name": 'Hello <g id="1">{name}</g>',
    }
    sidecar = get_sidecar(document)
    assert sidecar.get('version') == "1.2"
    assert sidecar.get('source_language') == "en"
    assert sidecar.get('target_language') == "fr"


def test_serialize_xliff12_updates_units(handler):
    """Test 2: Missing targets are inserted and updated units lose approval"""
    document = handler.parse(XLIFF_12)
    document["farewell"] = "Au revoir"

    output = handler.serialize(document)
    assert output.startswith('<?xml version="1.0" encoding="UTF-8"?>')

    farewell = _unit(output, "farewell")
    assert farewell.get('approved') == "no"
    assert farewell.find(f"{NS12}target").text == "Au revoir"

    done = _unit(output, "done")
    assert done.get('approved') == "yes"
    assert done.find(f"{NS12}target").text == "Terminé"

    reparsed = handler.parse(output)
    assert strip_sidecar(reparsed) == {
        "greeting": "Bonjour",
        "farewell": "Au revoir",
        "name": 'Hello <g id="1">{name}</g>',
    }


def test_inline_elements_keep_namespace(handler):
    document = handler.parse(XLIFF_12)
    document["name"] = 'Bonjour <g id="1">{name}</g>'

    target = _unit(handler.serialize(document), "name").find(f"{NS12}target")
    assert target.text == "Bonjour "
    assert target[0].tag == f"{NS12}g"


def test_serialize_target_language(handler):
    document = handler.parse(XLIFF_12)
    reparsed = handler.parse(handler.serialize(document, target_language="de"))
    assert get_sidecar(reparsed).get('target_language') == "de"


def test_parse_xliff20(handler):
    """Test 3: Multi-segment units use id.i keys, final segments are skipped"""
    document = handler.parse(XLIFF_20)
    assert strip_sidecar(document) == {"u1": "Hello", "u3.0": "Un", "u3.1": "Two"}
    assert get_sidecar(document).get('version') == "2.0"
    assert get_sidecar(document).get('source_language') == "en"


def test_serialize_xliff20_marks_translated(handler):
    document = handler.parse(XLIFF_20)
    document["u1"] = "Bonjour"
    output = handler.serialize(document)

    ns = "{urn:oasis:names:tc:xliff:document:2.0}"
    root = ET.fromstring(output.encode('utf-8'))
    segment = root.find(f"{ns}file/{ns}unit[@id='u1']/{ns}segment")
    assert segment.get('state') == "translated"
    assert segment.find(f"{ns}target").text == "Bonjour"

    final = root.find(f"{ns}file/{ns}unit[@id='u2']/{ns}segment")
    assert final.get('state') == "final"
    assert strip_sidecar(handler.parse(output))["u1"] == "Bonjour"


def test_serialize_without_sidecar(handler):
    output = handler.serialize({"a": "Hello"}, target_language="de")
    assert f'xmlns="{XLIFF_12_NAMESPACE}"' in output

    reparsed = handler.parse(output)
    assert strip_sidecar(reparsed) == {"a": "Hello"}
    assert get_sidecar(reparsed).get('target_language') == "de"


def test_detect_version():
    assert detect_version(ET.fromstring('<xliff version="2.1"/>')) == "2.1"
    assert detect_version(ET.fromstring('<xliff><file><unit id="a"/></file></xliff>')) == "2.0"
    assert detect_version(ET.fromstring('<xliff><file><body/></file></xliff>')) == "1.2"


def test_parse_rejects_other_roots(handler):
    with pytest.raises(ParseError, match="missing xliff root element"):
        handler.parse("<root/>")


@pytest.mark.parametrize("content, code", [
    ('<xliff version="1.2"/>', "MISSING_FILE_ELEMENT"),
    ('<xliff version="1.2"><file source-language="en"/></xliff>', "MISSING_BODY_ELEMENT"),
    ('<xliff version="1.2"><file source-language="en"><body/></file></xliff>', "NO_TRANS_UNITS"),
    ('<xliff version="1.2"><file><body><trans-unit id="a"><source>x</source></trans-unit></body></file></xliff>',
     "MISSING_SOURCE_LANGUAGE"),
    ('<xliff version="2.0"><file id="f"/></xliff>', "NO_UNITS"),
    ('<xliff version="2.0"><file id="f"/></xliff>', "MISSING_SOURCE_LANGUAGE"),
])
def test_structure_issues(handler, content, code):
    assert code in handler.validate_structure(handler.parse(content)).codes()


def test_empty_document_without_sidecar(handler):
    assert handler.validate_structure({}).codes() == ["EMPTY_XLIFF"]


def test_can_handle(handler):
    assert handler.can_handle("messages.xlf")
    assert handler.can_handle("messages.xliff", XLIFF_12)
    assert not handler.can_handle("messages.xlf", "<root/>")
    assert not handler.can_handle("strings.xml", XLIFF_12)
