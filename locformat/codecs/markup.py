#!/usr/bin/env python3
"""
Markup codec: XML dialect detection, flattening and reconstruction.

Supported dialects (by root element):

    resources          -> android   <string name="a">, <group>, <plurals>, <string-array>
    plist              -> ios       <dict><key>a</key><string>A</string></dict>
    messagebundle      -> xmb       <msg id="..">
    translationbundle  -> xtb       <translation id="..">
    anything else      -> generic   element paths (repeated siblings become arrays)

Reconstruction deep-copies the original tree and rewrites only the leaf
elements whose key has a new value; attributes, comments and element order
stay as they were. Elements with inline children (<ph>, <ex>, <xliff:g>, ...)
are exposed as inner markup so the children keep the position the value
gives them.
"""

import copy
import logging
import re
from typing import Any, Iterable, Iterator, Optional
from xml.etree import ElementTree as ET
from xml.sax.saxutils import escape as xml_escape, unescape as xml_unescape

from ..errors import ParseError
from ..model import Severity, ValidationIssue, leaf_to_text
from . import paths

logger = logging.getLogger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

ANDROID = "android"
IOS = "ios"
XMB = "xmb"
XTB = "xtb"
GENERIC = "generic"

_ROOT_DIALECTS = {
    'resources': ANDROID,
    'plist': IOS,
    'messagebundle': XMB,
    'translationbundle': XTB,
}

_CONTENT_DIALECTS = [
    (re.compile(r'<resources[\s>/]'), ANDROID),
    (re.compile(r'<plist[\s>/]'), IOS),
    (re.compile(r'<messagebundle[\s>/]'), XMB),
    (re.compile(r'<translationbundle[\s>/]'), XTB),
]

ET.register_namespace('xliff', 'urn:oasis:names:tc:xliff:document:1.2')
ET.register_namespace('tools', 'http://schemas.android.com/tools')


def local_name(tag: Any) -> str:
    """Tag name without its '{namespace}' prefix."""
    if not isinstance(tag, str):
        return ''
    return tag.rsplit('}', 1)[-1]


def namespace_of(tag: str) -> Optional[str]:
    if isinstance(tag, str) and tag.startswith('{'):
        return tag[1:].split('}', 1)[0]
    return None


def elements(parent: ET.Element) -> list[ET.Element]:
    """Child elements, skipping comments and processing instructions."""
    return [child for child in parent if isinstance(child.tag, str)]


def detect_dialect(content: Optional[str] = None, root: Optional[ET.Element] = None) -> str:
    """Detect the markup dialect from a parsed root, else from raw content."""
    if root is not None:
        return _ROOT_DIALECTS.get(local_name(root.tag), GENERIC)
    for pattern, dialect in _CONTENT_DIALECTS:
        if content and pattern.search(content):
            return dialect
    return GENERIC


def parse_xml(content: str, format: str = "xml") -> ET.Element:
    """
    Parse XML text, keeping comments inside the root element.

    Raises:
        ParseError: On malformed XML
    """
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
    try:
        return ET.fromstring(content.lstrip('\ufeff'), parser=parser)
    except ET.ParseError as e:
        line, column = getattr(e, 'position', (None, None))
        raise ParseError(f"Invalid XML: {e}", format=format, line=line, column=column) from e


_COMMENT_OR_CDATA = re.compile(r'<!--.*?-->|<!\[CDATA\[.*?\]\]>', re.DOTALL)
_TAG = re.compile(r'<([^>]*)>')


def check_well_formed(content: str) -> Optional[str]:
    """
    Cheap tag-balance check used before and alongside real parsing.

    Returns:
        Error message, or None when open and close tag counts agree
    """
    if '<' in content and '>' not in content:
        return "Malformed XML: unclosed tag detected"

    stripped = _COMMENT_OR_CDATA.sub('', content)
    opened = 0
    closed = 0
    for match in _TAG.finditer(stripped):
        body = match.group(1)
        if not body or body[0] in '?!':
            continue
        if body.startswith('/'):
            closed += 1
        elif not body.rstrip().endswith('/'):
            opened += 1

    if opened > closed:
        return "Malformed XML: unclosed tags detected"
    if closed > opened:
        return "Malformed XML: unexpected closing tags detected"
    return None


def split_document(content: str) -> tuple[str, str]:
    """
    Return the text before the root start tag (declaration, doctype,
    comments) and the text after the last tag.
    """
    text = content.lstrip('\ufeff')
    pos = 0
    while True:
        start = text.find('<', pos)
        if start == -1:
            return text, ''
        if text.startswith('<?', start):
            end = text.find('?>', start)
            pos = len(text) if end == -1 else end + 2
        elif text.startswith('<!--', start):
            end = text.find('-->', start)
            pos = len(text) if end == -1 else end + 3
        elif text.startswith('<!', start):
            bracket = text.find('[', start)
            close = text.find('>', start)
            if bracket != -1 and bracket < close:
                end = text.find(']>', bracket)
                pos = len(text) if end == -1 else end + 2
            else:
                pos = len(text) if close == -1 else close + 1
        else:
            prolog = text[:start]
            break
    last = text.rfind('>')
    epilog = text[last + 1:] if last != -1 else ''
    return prolog, epilog


def has_declaration(content: str) -> bool:
    return content.lstrip('\ufeff').lstrip().startswith('<?xml')


# --- CDATA ---

# ElementTree drops CDATA wrappers, so sections are carried through the
# parse and back out of tostring() as text between these two characters.
_CDATA_OPEN = '\ue000'
_CDATA_CLOSE = '\ue001'
_CDATA_SECTION = re.compile(r'<!\[CDATA\[(.*?)\]\]>', re.DOTALL)
_MARKED_TEXT = re.compile(f'{_CDATA_OPEN}(.*?){_CDATA_CLOSE}', re.DOTALL)


def parse_xml_keeping_cdata(content: str, format: str = "xml") -> tuple[ET.Element, set]:
    """
    Parse XML text and report which elements held a CDATA section.

    Returns:
        (root, elements whose own text came from CDATA)

    Raises:
        ParseError: On malformed XML
    """
    marked = _CDATA_SECTION.sub(lambda m: _CDATA_OPEN + xml_escape(m.group(1)) + _CDATA_CLOSE, content)
    root = parse_xml(marked, format=format)
    cdata = set()
    for node in root.iter():
        if node.text and _CDATA_OPEN in node.text:
            node.text = _unmark(node.text)
            if isinstance(node.tag, str):
                cdata.add(node)
        if node.tail and _CDATA_OPEN in node.tail:
            node.tail = _unmark(node.tail)
    return root, cdata


def _unmark(text: str) -> str:
    return text.replace(_CDATA_OPEN, '').replace(_CDATA_CLOSE, '')


def wrap_cdata(text: str) -> str:
    """Mark element text for output as a CDATA section by to_text()."""
    return f"{_CDATA_OPEN}{text}{_CDATA_CLOSE}"


def _cdata_section(match: re.Match) -> str:
    text = xml_unescape(match.group(1))
    return '<![CDATA[' + text.replace(']]>', ']]]]><![CDATA[>') + ']]>'


# --- Inline markup ---

def _strip_namespaces(elem: ET.Element) -> None:
    for node in elem.iter():
        if isinstance(node.tag, str) and node.tag.startswith('{'):
            node.tag = local_name(node.tag)


def _qualify(elem: ET.Element, namespace: Optional[str]) -> None:
    if not namespace:
        return
    for node in elem.iter():
        if isinstance(node.tag, str) and not node.tag.startswith('{'):
            node.tag = f"{{{namespace}}}{node.tag}"


def inner_markup(elem: ET.Element) -> str:
    """
    Text content of an element, with inline child elements serialized in
    place. Plain-text elements return their unescaped text.
    """
    if len(elem) == 0:
        return elem.text or ''

    namespace = namespace_of(elem.tag)
    parts = [xml_escape(elem.text or '')]
    for child in elem:
        clone = copy.deepcopy(child)
        clone.tail = None
        if namespace_of(clone.tag) == namespace:
            _strip_namespaces(clone)
        parts.append(ET.tostring(clone, encoding='unicode'))
        parts.append(xml_escape(child.tail or ''))
    return ''.join(parts)


def set_inner_markup(elem: ET.Element, value: str) -> None:
    """
    Replace an element's content with value.

    Values carrying markup or entities are parsed back into text and child
    elements; anything that does not parse is stored as literal text.
    """
    for child in list(elem):
        elem.remove(child)

    if '<' in value or '&' in value:
        try:
            wrapper = ET.fromstring(f"<value>{value}</value>")
        except ET.ParseError:
            wrapper = None
        if wrapper is not None:
            namespace = namespace_of(elem.tag)
            elem.text = wrapper.text
            for child in wrapper:
                _qualify(child, namespace)
                elem.append(child)
            return

    elem.text = value


# --- Android escaping ---

def unescape_android(text: str) -> str:
    return text.replace("\\'", "'").replace('\\"', '"')


def escape_android(text: str) -> str:
    return re.sub(r"(?<!\\)'", "\\'", text)


def _map_text(elem: ET.Element, func) -> None:
    if elem.text:
        elem.text = func(elem.text)
    for child in elem.iter():
        if child is elem:
            continue
        if child.text:
            child.text = func(child.text)
        if child.tail:
            child.tail = func(child.tail)


# --- Leaf walking ---

def iter_leaves(root: ET.Element, dialect: str) -> Iterator[tuple[str, ET.Element]]:
    """
    Yield (key, element) for every translatable leaf of a tree.

    Keys are flat path keys for android/ios/generic and raw message ids for
    xmb/xtb.
    """
    if dialect == ANDROID:
        yield from _android_leaves(root)
    elif dialect == IOS:
        for top in elements(root):
            if local_name(top.tag) == 'dict':
                yield from _plist_leaves(top, "")
                break
    elif dialect in (XMB, XTB):
        item_tag = 'msg' if dialect == XMB else 'translation'
        for child in elements(root):
            if local_name(child.tag) == item_tag and child.get('id'):
                yield child.get('id'), child
    else:
        yield from _generic_leaves(root, "")


def _android_leaves(root: ET.Element) -> Iterator[tuple[str, ET.Element]]:
    for child in elements(root):
        tag = local_name(child.tag)
        name = child.get('name')
        if not name:
            continue
        key = paths.join_key("", name)
        if tag == 'string':
            yield key, child
        elif tag == 'group':
            for item in elements(child):
                if local_name(item.tag) == 'string' and item.get('name'):
                    yield paths.join_key(key, item.get('name')), item
        elif tag == 'plurals':
            for item in elements(child):
                if local_name(item.tag) == 'item' and item.get('quantity'):
                    yield paths.join_key(key, item.get('quantity')), item
        elif tag == 'string-array':
            items = [item for item in elements(child) if local_name(item.tag) == 'item']
            for i, item in enumerate(items):
                yield paths.index_key(key, i), item


def _plist_leaves(node: ET.Element, prefix: str) -> Iterator[tuple[str, ET.Element]]:
    children = elements(node)
    i = 0
    while i < len(children):
        key_elem = children[i]
        if local_name(key_elem.tag) != 'key':
            i += 1
            continue
        value = children[i + 1] if i + 1 < len(children) else None
        if value is None or local_name(value.tag) == 'key':
            i += 1
            continue
        key = paths.join_key(prefix, key_elem.text or '')
        value_tag = local_name(value.tag)
        if value_tag == 'string':
            yield key, value
        elif value_tag == 'dict':
            yield from _plist_leaves(value, key)
        i += 2


def _generic_leaves(node: ET.Element, prefix: str) -> Iterator[tuple[str, ET.Element]]:
    children = elements(node)
    counts: dict[str, int] = {}
    for child in children:
        name = local_name(child.tag)
        counts[name] = counts.get(name, 0) + 1

    seen: dict[str, int] = {}
    for child in children:
        name = local_name(child.tag)
        key = paths.join_key(prefix, name)
        if counts[name] > 1:
            key = paths.index_key(key, seen.get(name, 0))
            seen[name] = seen.get(name, 0) + 1
        if elements(child):
            yield from _generic_leaves(child, key)
        else:
            yield key, child


def leaf_value(elem: ET.Element, dialect: str) -> str:
    if dialect == ANDROID:
        return unescape_android(inner_markup(elem))
    if dialect in (XMB, XTB):
        return inner_markup(elem)
    if dialect == GENERIC:
        return (elem.text or '').strip() if len(elem) == 0 else inner_markup(elem)
    return elem.text or ''


def write_leaf(elem: ET.Element, dialect: str, value: str, literal: bool = False) -> None:
    """
    Store a leaf value. Literal values become the element's text as they
    are; otherwise markup in the value is parsed into child elements.
    """
    if literal or dialect == IOS:
        for child in list(elem):
            elem.remove(child)
        elem.text = escape_android(value) if dialect == ANDROID else value
    elif dialect == ANDROID:
        set_inner_markup(elem, value)
        _map_text(elem, escape_android)
    else:
        set_inner_markup(elem, value)


def flatten_markup(root: ET.Element, dialect: str) -> dict[str, str]:
    """Flat key -> leaf value mapping in document order."""
    return {key: leaf_value(elem, dialect) for key, elem in iter_leaves(root, dialect)}


def to_document(root: ET.Element, dialect: str) -> dict[str, Any]:
    """
    Canonical document for a tree.

    Android and iOS nest (group/plurals/arrays/dicts become objects and
    arrays); generic XML stays as flat path keys; bundles are keyed by id.
    """
    flat = flatten_markup(root, dialect)
    if dialect in (ANDROID, IOS):
        return paths.reconstruct(flat)
    return flat


def reconstruct_tree(
    original: ET.Element,
    dialect: str,
    values: dict[str, Any],
    cdata_keys: Iterable[str] = (),
) -> ET.Element:
    """
    Overlay flat values onto a deep copy of the original tree.

    Only leaves whose value changed are rewritten. Android and generic
    leaves that held plain text are rewritten as literal text, and leaves
    listed in cdata_keys are written back as CDATA sections. Android keys
    missing from the original are appended as new resources.
    """
    root = copy.deepcopy(original)
    cdata_keys = set(cdata_keys)
    matched = set()
    for key, elem in iter_leaves(root, dialect):
        plain = len(elem) == 0
        if key in values:
            matched.add(key)
            new_value = leaf_to_text(values[key])
            if new_value != leaf_value(elem, dialect):
                write_leaf(elem, dialect, new_value, literal=plain and dialect in (ANDROID, GENERIC))
        if plain and key in cdata_keys:
            elem.text = wrap_cdata(elem.text or '')

    unmatched = [key for key in values if key not in matched]
    if unmatched:
        if dialect == ANDROID:
            for key in unmatched:
                _append_android(root, key, leaf_to_text(values[key]))
        else:
            logger.debug("Ignoring %d keys with no element in the original tree", len(unmatched))
    return root


def _find_named(parent: ET.Element, tag: str, name: str) -> Optional[ET.Element]:
    for child in elements(parent):
        if local_name(child.tag) == tag and child.get('name') == name:
            return child
    return None


def _append_android(root: ET.Element, key: str, value: str) -> None:
    segments = paths.parse_path(key)
    if len(segments) == 2 and isinstance(segments[1], int):
        array = _find_named(root, 'string-array', segments[0])
        if array is None:
            array = ET.SubElement(root, 'string-array', {'name': str(segments[0])})
        item = ET.SubElement(array, 'item')
        write_leaf(item, ANDROID, value)
    elif len(segments) == 2:
        group = _find_named(root, 'group', segments[0])
        if group is None:
            group = ET.SubElement(root, 'group', {'name': str(segments[0])})
        item = ET.SubElement(group, 'string', {'name': str(segments[1])})
        write_leaf(item, ANDROID, value)
    else:
        name = '.'.join(str(segment) for segment in segments) if len(segments) > 1 else key
        item = ET.SubElement(root, 'string', {'name': name})
        write_leaf(item, ANDROID, value)


def indent_tree(root: ET.Element, leaves: list[ET.Element], space: str = '  ') -> None:
    """
    Pretty-print a synthesized tree in place.

    The content of each leaf element (text and inline children) is left
    exactly as written; only the whitespace between structural elements
    changes.
    """
    stashed = []
    for elem in leaves:
        stashed.append((elem, list(elem)))
        for child in list(elem):
            elem.remove(child)
    ET.indent(root, space=space)
    for elem, children in stashed:
        elem.extend(children)


def build_tree(dialect: str, values: dict[str, Any], root_tag: str = 'root') -> ET.Element:
    """
    Synthesize a minimal tree from flat values when no original tree exists.
    """
    if dialect == ANDROID:
        root = ET.Element('resources')
        for key, value in values.items():
            _append_android(root, key, leaf_to_text(value))
        leaves = [elem for _, elem in iter_leaves(root, dialect)]
    elif dialect == IOS:
        root = ET.Element('plist', {'version': '1.0'})
        top = ET.SubElement(root, 'dict')
        _dict_to_plist(top, paths.reconstruct(values))
        leaves = []
    else:
        root = ET.Element(root_tag)
        leaves = []
        _tree_to_elements(root, paths.reconstruct(values), leaves)
    indent_tree(root, leaves, space='    ')
    return root


def _dict_to_plist(parent: ET.Element, tree: dict) -> None:
    for name, value in tree.items():
        ET.SubElement(parent, 'key').text = str(name)
        if isinstance(value, dict):
            _dict_to_plist(ET.SubElement(parent, 'dict'), value)
        elif isinstance(value, list):
            array = ET.SubElement(parent, 'array')
            for item in value:
                ET.SubElement(array, 'string').text = leaf_to_text(item) if not isinstance(item, (dict, list)) else ''
        else:
            ET.SubElement(parent, 'string').text = leaf_to_text(value)


def _tree_to_elements(parent: ET.Element, tree: Any, leaves: list[ET.Element]) -> None:
    if isinstance(tree, list):
        for item in tree:
            _tree_to_elements(ET.SubElement(parent, 'item'), item, leaves)
        return
    if not isinstance(tree, dict):
        set_inner_markup(parent, leaf_to_text(tree))
        leaves.append(parent)
        return
    for name, value in tree.items():
        if isinstance(value, list):
            for item in value:
                _tree_to_elements(ET.SubElement(parent, str(name)), item, leaves)
        else:
            _tree_to_elements(ET.SubElement(parent, str(name)), value, leaves)


def to_text(
    root: ET.Element,
    prolog: Optional[str] = None,
    epilog: str = '',
    xml_declaration: Optional[bool] = None,
    default_namespace: Optional[str] = None,
) -> str:
    """
    Serialize a tree, restoring the original prolog/epilog text.

    Args:
        root: Tree to serialize
        prolog: Original text before the root element (None when synthesized)
        epilog: Original text after the root element
        xml_declaration: Force (True) or drop (False) the XML declaration;
            None keeps the original choice (always present when synthesized)
        default_namespace: Namespace written as xmlns="..." instead of a prefix
    """
    if prolog is None:
        prolog = XML_DECLARATION + '\n' if xml_declaration is not False else ''
        epilog = epilog or '\n'
    elif xml_declaration is True and not has_declaration(prolog):
        prolog = XML_DECLARATION + '\n' + prolog
    elif xml_declaration is False and has_declaration(prolog):
        end = prolog.find('?>')
        prolog = prolog[end + 2:].lstrip('\r\n')

    body = ET.tostring(root, encoding='unicode', default_namespace=default_namespace)
    body = _MARKED_TEXT.sub(_cdata_section, body)
    return f"{prolog}{body}{epilog}"


def validate_markup(root: ET.Element, dialect: str) -> list[ValidationIssue]:
    """Dialect-specific structural checks on a parsed tree."""
    issues = []
    tag = local_name(root.tag)

    if dialect == ANDROID:
        if tag != 'resources':
            issues.append(ValidationIssue(
                'MISSING_RESOURCES', "Android XML must have a <resources> root element", Severity.ERROR,
            ))
        elif not any(True for _ in iter_leaves(root, dialect)):
            issues.append(ValidationIssue(
                'NO_STRINGS', "Android XML contains no <string> elements", Severity.WARNING,
            ))
    elif dialect == IOS:
        if tag != 'plist':
            issues.append(ValidationIssue('MISSING_PLIST', "iOS XML must have a <plist> root element", Severity.ERROR))
        elif not any(local_name(child.tag) == 'dict' for child in elements(root)):
            issues.append(ValidationIssue('MISSING_DICT', "iOS plist must contain a <dict> element", Severity.ERROR))
    elif dialect == GENERIC:
        if not any(True for _ in iter_leaves(root, dialect)):
            issues.append(ValidationIssue('EMPTY_XML', "XML document has no leaf elements", Severity.WARNING))

    return issues
