#!/usr/bin/env python3
"""
XMB/XTB message bundle handlers.

XMB (XML Message Bundle) is the source catalog, XTB (XML Translation Bundle)
the per-language translation of it; the two are linked by message id.
Message text may mix plain text with <ph>/<ex> placeholder elements. Values
carry that content as inner markup so the placeholders stay where the
translator put them.
"""

import logging
import re
from typing import Any, Optional
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

DEFAULT_LOCALE = "en"
DEFAULT_VERSION = "1.0"

_VARIABLE = re.compile(r'\{[^}]+\}')
_PH_NAME = re.compile(r'<ph\s+name="([^"]*)"')
_PH_OPEN = re.compile(r'<ph\s+[^>]*>')
_EX_OPEN = re.compile(r'<ex(?:\s[^>]*)?>')


def check_placeholder_syntax(text: str, path: Optional[str] = None) -> list[ValidationIssue]:
    """
    Balance checks for {variables}, <ph> and <ex> tags inside one message.

    Self-closing <ph/> elements count as balanced.
    """
    issues = []
    if text.count('{') != text.count('}'):
        issues.append(ValidationIssue(
            'UNMATCHED_PLACEHOLDER_BRACES', f"Unmatched placeholder braces in message '{path}'",
            Severity.ERROR, path=path,
        ))

    ph_open = len([tag for tag in _PH_OPEN.findall(text) if not tag.endswith('/>')])
    if ph_open != text.count('</ph>'):
        issues.append(ValidationIssue(
            'UNMATCHED_PH_TAGS', f"Unmatched <ph> tags in message '{path}'", Severity.ERROR, path=path,
        ))
    if len(_EX_OPEN.findall(text)) != text.count('</ex>'):
        issues.append(ValidationIssue(
            'UNMATCHED_EX_TAGS', f"Unmatched <ex> tags in message '{path}'", Severity.ERROR, path=path,
        ))
    if any(not name.strip() for name in _PH_NAME.findall(text)):
        issues.append(ValidationIssue(
            'EMPTY_PLACEHOLDER_NAME', f"Placeholder with empty name in message '{path}'",
            Severity.ERROR, path=path,
        ))
    return issues


def check_message_integrity(source: str, translation: str, path: Optional[str] = None) -> list[ValidationIssue]:
    """
    Compare the placeholders of a source message and its translation.

    Args:
        source: XMB message text
        translation: XTB translation text
        path: Message id used in the issue messages

    Returns:
        Missing {variables} and <ph> names as errors, extra variables as warnings
    """
    issues = []
    source_vars = set(_VARIABLE.findall(source))
    target_vars = set(_VARIABLE.findall(translation))
    for var in sorted(source_vars - target_vars):
        issues.append(ValidationIssue(
            'MISSING_VARIABLE_PLACEHOLDER', f"Translation of '{path}' is missing placeholder {var}",
            Severity.ERROR, path=path,
        ))
    for var in sorted(target_vars - source_vars):
        issues.append(ValidationIssue(
            'EXTRA_VARIABLE_PLACEHOLDER', f"Translation of '{path}' has extra placeholder {var}",
            Severity.WARNING, path=path,
        ))

    target_names = set(_PH_NAME.findall(translation))
    for name in sorted(set(_PH_NAME.findall(source)) - target_names):
        issues.append(ValidationIssue(
            'MISSING_PH_PLACEHOLDER', f"Translation of '{path}' is missing <ph name=\"{name}\">",
            Severity.ERROR, path=path,
        ))
    return issues


class _BundleHandler(FormatHandler):
    """Shared parse/serialize logic for XMB and XTB."""

    dialect = markup.XMB
    root_tag = 'messagebundle'
    item_tag = 'msg'
    language_attribute = 'locale'
    missing_id_code = 'MISSING_MESSAGE_ID'

    @property
    def placeholder_patterns(self) -> list[PlaceholderPattern]:
        return [
            PLACEHOLDER_PATTERNS['xmb_ph'],    # <ph name="X">
            PLACEHOLDER_PATTERNS['icu_full'],  # {VAR}
        ]

    def extract_placeholders(self, text: str) -> list[str]:
        names = [f'<ph name="{name}">' for name in _PH_NAME.findall(text)]
        return list(dict.fromkeys(names + _VARIABLE.findall(text)))

    def parse(self, content: str) -> dict[str, Any]:
        """
        Parse a bundle into a flat document of message id -> inner markup.

        Raises:
            ParseError: If the XML is malformed or the root element is wrong
        """
        root = markup.parse_xml(content, format=self.name)
        if markup.local_name(root.tag) != self.root_tag:
            raise ParseError(
                f"Invalid {self.name.upper()} format: missing {self.root_tag} root element", format=self.name,
            )

        document = markup.flatten_markup(root, self.dialect)
        messages = {}
        for key, elem in markup.iter_leaves(root, self.dialect):
            info = {name: elem.get(attr) for name, attr in self.message_attributes() if elem.get(attr)}
            if info:
                messages[key] = info

        prolog, epilog = markup.split_document(content)
        logger.debug("Parsed %s bundle with %d messages", self.name, len(document))
        sidecar = MetadataSidecar(
            format=self.name,
            original=root,
            extras={
                'language': root.get(self.language_attribute) or DEFAULT_LOCALE,
                'messages': messages,
                'prolog': prolog,
                'epilog': epilog,
            },
        )
        return with_sidecar(document, sidecar)

    def message_attributes(self) -> list[tuple[str, str]]:
        """(sidecar name, attribute) pairs kept per message."""
        return []

    def serialize(
        self,
        document: dict[str, Any],
        xml_declaration: Optional[bool] = None,
        language: Optional[str] = None,
        **options: Any,
    ) -> str:
        """
        Reconstruct the bundle from a document.

        Args:
            document: Translation document keyed by message id
            xml_declaration: Force or drop the XML declaration
            language: Bundle language written to the root element

        Returns:
            Bundle XML content
        """
        sidecar = self.sidecar(document)
        values = {key: leaf_to_text(value) for key, value in translation_items(document)}

        if sidecar is None:
            root = self.new_root(language or DEFAULT_LOCALE)
            for key, text in values.items():
                self._append_message(root, key, text)
            markup.indent_tree(root, markup.elements(root))
            return markup.to_text(root, xml_declaration=xml_declaration)

        root = markup.reconstruct_tree(sidecar.original, self.dialect, values)
        existing = {key for key, _ in markup.iter_leaves(root, self.dialect)}
        for key, text in values.items():
            if key not in existing:
                self._append_message(root, key, text)
        if language:
            root.set(self.language_attribute, language)

        return markup.to_text(
            root,
            prolog=sidecar.get('prolog'),
            epilog=sidecar.get('epilog', ''),
            xml_declaration=xml_declaration,
        )

    def new_root(self, language: str) -> ET.Element:
        return ET.Element(self.root_tag, {self.language_attribute: language})

    def _append_message(self, root: ET.Element, key: str, text: str) -> None:
        items = [child for child in markup.elements(root) if markup.local_name(child.tag) == self.item_tag]
        elem = ET.SubElement(root, self.item_tag, {'id': key})
        if items:
            # Match the indentation of the existing siblings
            elem.tail = items[-1].tail
            items[-1].tail = items[0].tail if len(items) > 1 else root.text
        markup.set_inner_markup(elem, text)

    def check_content(self, content: str) -> list[ValidationIssue]:
        issues = super().check_content(content)
        problem = markup.check_well_formed(content) if content.strip() else None
        if problem:
            issues.append(ValidationIssue('MALFORMED_XML', problem, Severity.ERROR))
        return issues

    def validate_structure(self, document: dict[str, Any]) -> ValidationResult:
        issues = self.check_leaves(document)
        for key, value in translation_items(document):
            if isinstance(value, str):
                issues.extend(check_placeholder_syntax(value, key))

        sidecar = self.sidecar(document)
        if sidecar is not None:
            issues.extend(self.check_bundle(sidecar.original))
        elif not any(True for _ in translation_items(document)):
            issues.append(self.empty_issue())
        return ValidationResult.from_issues(issues)

    def check_bundle(self, root: ET.Element) -> list[ValidationIssue]:
        label = self.name.upper()
        if markup.local_name(root.tag) != self.root_tag:
            return [ValidationIssue(
                f'MISSING_{self.root_tag.upper()}', f"{label} file must have a <{self.root_tag}> root element",
                Severity.ERROR,
            )]

        issues = []
        if not root.get(self.language_attribute):
            issues.append(ValidationIssue(
                f'MISSING_{self.language_attribute.upper()}',
                f"{label} {self.root_tag} should have a {self.language_attribute} attribute",
                Severity.WARNING,
            ))

        items = [child for child in markup.elements(root) if markup.local_name(child.tag) == self.item_tag]
        if not items:
            issues.append(self.empty_issue())
        for elem in items:
            if not elem.get('id'):
                issues.append(ValidationIssue(
                    self.missing_id_code, f"{label} <{self.item_tag}> element must have an id attribute",
                    Severity.ERROR,
                ))
        return issues

    def empty_issue(self) -> ValidationIssue:
        return ValidationIssue('NO_MESSAGES', f"No messages found in {self.name.upper()} file", Severity.WARNING)


class XmbHandler(_BundleHandler):
    """
    Handler for XMB source message bundles.

    XMB structure:
    ```xml
    <?xml version="1.0" encoding="UTF-8"?>
    <messagebundle locale="en">
      <msg id="greeting" desc="Home page title">Welcome, <ph name="USER"><ex>Ann</ex></ph>!</msg>
      <msg id="inbox" meaning="mail">You have {COUNT} messages</msg>
    </messagebundle>
    ```

    Parsed as {"greeting": 'Welcome, <ph name="USER"><ex>Ann</ex></ph>!', ...};
    desc and meaning are kept per message in the sidecar.
    """

    @property
    def name(self) -> str:
        return "xmb"

    @property
    def file_extensions(self) -> list[str]:
        return ["xmb"]

    def message_attributes(self) -> list[tuple[str, str]]:
        return [('description', 'desc'), ('meaning', 'meaning')]

    def new_root(self, language: str) -> ET.Element:
        return ET.Element(self.root_tag, {self.language_attribute: language, 'version': DEFAULT_VERSION})


class XtbHandler(_BundleHandler):
    """
    Handler for XTB translation bundles.

    XTB structure:
    ```xml
    <?xml version="1.0" encoding="UTF-8"?>
    <translationbundle lang="fr">
      <translation id="greeting">Bienvenue, <ph name="USER"/> !</translation>
    </translationbundle>
    ```
    """

    dialect = markup.XTB
    root_tag = 'translationbundle'
    item_tag = 'translation'
    language_attribute = 'lang'
    missing_id_code = 'MISSING_TRANSLATION_ID'

    @property
    def name(self) -> str:
        return "xtb"

    @property
    def file_extensions(self) -> list[str]:
        return ["xtb"]

    def empty_issue(self) -> ValidationIssue:
        return ValidationIssue('NO_TRANSLATIONS', "No translations found in XTB file", Severity.WARNING)


def generate_xtb_from_xmb(xmb_content: str, language: str, translations: Optional[dict[str, str]] = None) -> str:
    """
    Build an XTB for language from an XMB source bundle.

    Only messages with a non-empty translation are written, in XMB order.

    Args:
        xmb_content: Source XMB content
        language: Target language code (the lang attribute)
        translations: Message id -> translated text
    """
    source = XmbHandler().parse(xmb_content)
    translations = translations or {}
    document = {
        key: translations[key]
        for key, _ in translation_items(source)
        if translations.get(key)
    }
    return XtbHandler().serialize(document, language=language)


def update_xtb_translations(xtb_content: str, translations: dict[str, str]) -> str:
    """
    Overwrite or add translations in an existing XTB, keeping everything else.
    """
    handler = XtbHandler()
    document = handler.parse(xtb_content)
    for key, text in translations.items():
        document[key] = text
    return handler.serialize(document)


def validate_bundle_integrity(xmb_content: str, xtb_content: str) -> ValidationResult:
    """
    Cross-check an XMB source bundle against one of its XTB translations.

    Reports translations without a source message, messages without a
    translation, and placeholder mismatches between the two.
    """
    try:
        source = XmbHandler().parse(xmb_content)
        target = XtbHandler().parse(xtb_content)
    except ParseError as e:
        return ValidationResult.from_issues([ValidationIssue(
            'BUNDLE_PARSE_ERROR', f"Failed to parse bundle: {e}", Severity.ERROR,
        )])

    messages = dict(translation_items(source))
    translated = dict(translation_items(target))
    issues = []
    for key in translated:
        if key not in messages:
            issues.append(ValidationIssue(
                'ORPHANED_TRANSLATION',
                f"Translation for message ID '{key}' found but no corresponding XMB message",
                Severity.WARNING, path=key,
            ))
    for key, text in messages.items():
        if not translated.get(key, '').strip():
            issues.append(ValidationIssue(
                'MISSING_TRANSLATION', f"No translation found for message ID '{key}'", Severity.WARNING, path=key,
            ))
            continue
        issues.extend(check_message_integrity(text, translated[key], key))
    return ValidationResult.from_issues(issues)
