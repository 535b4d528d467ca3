#!/usr/bin/env python3
"""
XLIFF format handler (versions 1.2 and 2.x).

XLIFF 1.2 keys are trans-unit ids; XLIFF 2.x keys are unit ids, with
"id.i" keys when a unit has several segments. Targets fall back to the
source text. Serialization writes into a copy of the original tree.
"""

import copy
import logging
from typing import Any, Iterator, Optional
from xml.etree import ElementTree as ET

from ..codecs import markup
from ..errors import ParseError
from ..model import (
    MetadataSidecar,
    Severity,
    ValidationIssue,
    ValidationResult,
    leaf_to_text,
    translation_items,
    with_sidecar,
)
from .base import FormatHandler, PlaceholderPattern, PLACEHOLDER_PATTERNS

logger = logging.getLogger(__name__)

XLIFF_12_NAMESPACE = 'urn:oasis:names:tc:xliff:document:1.2'


def detect_version(root: ET.Element) -> str:
    """Version attribute, else inferred from the unit element names."""
    version = root.get('version')
    if version:
        return version
    for file_elem in _children(root, 'file'):
        if _children(file_elem, 'unit'):
            return "2.0"
    return "1.2"


def _children(parent: ET.Element, tag: str) -> list[ET.Element]:
    return [child for child in markup.elements(parent) if markup.local_name(child.tag) == tag]


def _child(parent: ET.Element, tag: str) -> Optional[ET.Element]:
    found = _children(parent, tag)
    return found[0] if found else None


def source_language(root: ET.Element) -> Optional[str]:
    if root.get('srcLang'):
        return root.get('srcLang')
    file_elem = _child(root, 'file')
    return file_elem.get('source-language') if file_elem is not None else None


def target_language(root: ET.Element) -> Optional[str]:
    if root.get('trgLang'):
        return root.get('trgLang')
    file_elem = _child(root, 'file')
    return file_elem.get('target-language') if file_elem is not None else None


def iter_units(root: ET.Element, version: str) -> Iterator[tuple[str, ET.Element, ET.Element, bool]]:
    """
    Yield (key, container, source, approved) for every translatable unit.

    The container is the trans-unit (1.2) or segment (2.x) that holds the
    source and target elements.
    """
    for file_elem in _children(root, 'file'):
        if version.startswith('2.'):
            for unit in _children(file_elem, 'unit'):
                unit_id = unit.get('id')
                if not unit_id:
                    continue
                segments = _children(unit, 'segment')
                for i, segment in enumerate(segments):
                    source = _child(segment, 'source')
                    if source is None:
                        continue
                    key = f"{unit_id}.{i}" if len(segments) > 1 else unit_id
                    approved = unit.get('approved') == 'yes' or segment.get('state') == 'final'
                    yield key, segment, source, approved
        else:
            body = _child(file_elem, 'body')
            if body is None:
                continue
            for unit in body.iter():
                if markup.local_name(unit.tag) != 'trans-unit' or not unit.get('id'):
                    continue
                source = _child(unit, 'source')
                if source is None:
                    continue
                yield unit.get('id'), unit, source, unit.get('approved') == 'yes'


class XliffHandler(FormatHandler):
    """
    Handler for XLIFF translation interchange files.

    XLIFF 1.2 structure:
    ```xml
    <xliff version="1.2" xmlns="urn:oasis:names:tc:xliff:document:1.2">
      <file source-language="en" target-language="fr" datatype="plaintext" original="app">
        <body>
          <trans-unit id="greeting">
            <source>Hello</source>
            <target>Bonjour</target>
          </trans-unit>
        </body>
      </file>
    </xliff>
    ```

    Units that are approved and already have a target are left out of the
    document and are never rewritten.
    """

    @property
    def name(self) -> str:
        return "xliff"

    @property
    def file_extensions(self) -> list[str]:
        return ["xlf", "xliff"]

    @property
    def placeholder_patterns(self) -> list[PlaceholderPattern]:
        return [
            PLACEHOLDER_PATTERNS['icu'],     # {name}
            PLACEHOLDER_PATTERNS['printf'],  # %s
        ]

    def can_handle(self, path: str, content: Optional[str] = None) -> bool:
        if not super().can_handle(path, content):
            return False
        return content is None or '<xliff' in content

    def parse(self, content: str) -> dict[str, Any]:
        """
        Parse XLIFF content into a flat translation document.

        Args:
            content: Raw XLIFF file content

        Returns:
            Document of unit id -> target text (source when untranslated)
        """
        root = markup.parse_xml(content, format=self.name)
        if markup.local_name(root.tag) != 'xliff':
            raise ParseError("Invalid XLIFF format: missing xliff root element", format=self.name)

        version = detect_version(root)
        document = {}
        for key, container, source, approved in iter_units(root, version):
            target = _child(container, 'target')
            if approved and target is not None:
                continue
            text = markup.inner_markup(target) if target is not None else ''
            document[key] = text or markup.inner_markup(source)

        logger.debug("Parsed XLIFF %s with %d units", version, len(document))
        prolog, epilog = markup.split_document(content)
        sidecar = MetadataSidecar(
            format=self.name,
            original=root,
            extras={
                'version': version,
                'source_language': source_language(root),
                'target_language': target_language(root),
                'namespace': markup.namespace_of(root.tag),
                'prolog': prolog,
                'epilog': epilog,
            },
        )
        return with_sidecar(document, sidecar)

    def serialize(
        self,
        document: dict[str, Any],
        xml_declaration: Optional[bool] = None,
        source_language: Optional[str] = None,
        target_language: Optional[str] = None,
        **options: Any,
    ) -> str:
        """
        Reconstruct XLIFF from a document.

        Args:
            document: Translation document
            xml_declaration: Force or drop the XML declaration
            source_language: Source language for a synthesized file
            target_language: Target language written to the file

        Returns:
            XLIFF file content
        """
        sidecar = self.sidecar(document)
        values = {key: leaf_to_text(value) for key, value in translation_items(document)}

        if sidecar is None:
            root = self._build_xliff12(values, source_language or "en", target_language or "es")
            return markup.to_text(root, xml_declaration=xml_declaration, default_namespace=XLIFF_12_NAMESPACE)

        root = copy.deepcopy(sidecar.original)
        version = sidecar.get('version')
        self._apply_translations(root, version, values)
        if target_language:
            if version.startswith('2.'):
                root.set('trgLang', target_language)
            else:
                for file_elem in _children(root, 'file'):
                    file_elem.set('target-language', target_language)

        return markup.to_text(
            root,
            prolog=sidecar.get('prolog'),
            epilog=sidecar.get('epilog', ''),
            xml_declaration=xml_declaration,
            default_namespace=sidecar.get('namespace'),
        )

    def _apply_translations(self, root: ET.Element, version: str, values: dict[str, str]) -> None:
        for key, container, source, approved in iter_units(root, version):
            if key not in values or approved:
                continue
            target = _child(container, 'target')
            if target is None:
                namespace = markup.namespace_of(source.tag)
                target = ET.Element(f"{{{namespace}}}target" if namespace else 'target')
                target.tail = source.tail
                container.insert(list(container).index(source) + 1, target)
            markup.set_inner_markup(target, values[key])
            if version.startswith('2.'):
                container.set('state', 'translated')
            else:
                container.set('approved', 'no')

    def _build_xliff12(self, values: dict[str, str], source_lang: str, target_lang: str) -> ET.Element:
        def q(tag: str) -> str:
            return f"{{{XLIFF_12_NAMESPACE}}}{tag}"

        root = ET.Element(q('xliff'), {'version': '1.2'})
        file_elem = ET.SubElement(root, q('file'), {
            'original': 'unknown',
            'source-language': source_lang,
            'target-language': target_lang,
            'datatype': 'plaintext',
        })
        body = ET.SubElement(file_elem, q('body'))
        leaves = []
        for key, text in values.items():
            unit = ET.SubElement(body, q('trans-unit'), {'id': key, 'approved': 'no'})
            for tag in ('source', 'target'):
                elem = ET.SubElement(unit, q(tag))
                markup.set_inner_markup(elem, text)
                leaves.append(elem)
        markup.indent_tree(root, leaves)
        return root

    def validate_structure(self, document: dict[str, Any]) -> ValidationResult:
        issues = self.check_leaves(document)
        sidecar = self.sidecar(document)
        if sidecar is None:
            if not any(True for _ in translation_items(document)):
                issues.append(ValidationIssue(
                    'EMPTY_XLIFF', "XLIFF file appears to be empty or contains no translatable content",
                    Severity.WARNING,
                ))
            return ValidationResult.from_issues(issues)

        root = sidecar.original
        if markup.local_name(root.tag) != 'xliff':
            issues.append(ValidationIssue(
                'MISSING_XLIFF_ROOT', "XLIFF file must have an 'xliff' root element", Severity.ERROR,
            ))
            return ValidationResult.from_issues(issues)

        version = sidecar.get('version') or detect_version(root)
        issues.extend(self._check_version_structure(root, version))
        return ValidationResult.from_issues(issues)

    def _check_version_structure(self, root: ET.Element, version: str) -> list[ValidationIssue]:
        label = "2.x" if version.startswith('2.') else "1.2"
        file_elem = _child(root, 'file')
        if file_elem is None:
            return [ValidationIssue(
                'MISSING_FILE_ELEMENT', f"XLIFF {label} must have a 'file' element", Severity.ERROR,
            )]

        issues = []
        if version.startswith('2.'):
            if not _children(file_elem, 'unit'):
                issues.append(ValidationIssue(
                    'NO_UNITS', "No unit elements found in XLIFF 2.x file", Severity.WARNING,
                ))
            if not root.get('srcLang'):
                issues.append(ValidationIssue(
                    'MISSING_SOURCE_LANGUAGE', "XLIFF 2.x file should specify srcLang attribute", Severity.WARNING,
                ))
            return issues

        body = _child(file_elem, 'body')
        if body is None:
            return [ValidationIssue(
                'MISSING_BODY_ELEMENT', "XLIFF 1.2 file must have a 'body' element", Severity.ERROR,
            )]
        if not any(markup.local_name(elem.tag) == 'trans-unit' for elem in body.iter()):
            issues.append(ValidationIssue(
                'NO_TRANS_UNITS', "No trans-unit elements found in XLIFF 1.2 file", Severity.WARNING,
            ))
        if not file_elem.get('source-language'):
            issues.append(ValidationIssue(
                'MISSING_SOURCE_LANGUAGE', "XLIFF file should specify source-language attribute", Severity.WARNING,
            ))
        return issues
