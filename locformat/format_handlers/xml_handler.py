#!/usr/bin/env python3
"""
XML format handler for Android strings.xml, iOS plist string tables and
generic XML resource files.

The dialect is picked from the root element. Reconstruction works on a copy
of the original element tree so attributes, comments and ordering survive.
"""

import logging
from typing import Any, Optional

from ..codecs import markup, paths
from ..model import MetadataSidecar, Severity, ValidationIssue, ValidationResult, with_sidecar
from .base import FormatHandler, PlaceholderPattern, PLACEHOLDER_PATTERNS

logger = logging.getLogger(__name__)


class XmlHandler(FormatHandler):
    """
    Handler for XML resource files.

    Android XML structure:
    ```xml
    <?xml version="1.0" encoding="utf-8"?>
    <resources>
        <string name="app_name">My App</string>
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
    ```

    Android and iOS documents are nested ({"errors": {"network": ...}});
    generic XML documents use flat element paths ("root.title"). Leaves
    written as CDATA sections are written back as CDATA.
    """

    @property
    def name(self) -> str:
        return "xml"

    @property
    def file_extensions(self) -> list[str]:
        return ["xml"]

    @property
    def placeholder_patterns(self) -> list[PlaceholderPattern]:
        """Android and iOS use printf-style placeholders."""
        return [
            PLACEHOLDER_PATTERNS['android'],  # %1$s, %2$d
            PLACEHOLDER_PATTERNS['printf'],   # %s, %d
            PLACEHOLDER_PATTERNS['ios'],      # %@
        ]

    def parse(self, content: str) -> dict[str, Any]:
        """
        Parse XML content into a translation document.

        Args:
            content: Raw XML file content

        Returns:
            Document (nested for android/ios, flat for generic XML)
        """
        root, cdata = markup.parse_xml_keeping_cdata(content, format=self.name)
        dialect = markup.detect_dialect(root=root)
        prolog, epilog = markup.split_document(content)

        document = markup.to_document(root, dialect)
        cdata_keys = [key for key, elem in markup.iter_leaves(root, dialect) if elem in cdata and len(elem) == 0]
        logger.debug("Parsed %s XML with %d top-level keys", dialect, len(document))
        sidecar = MetadataSidecar(
            format=self.name,
            original=root,
            extras={'dialect': dialect, 'prolog': prolog, 'epilog': epilog, 'cdata_keys': cdata_keys},
        )
        return with_sidecar(document, sidecar)

    def serialize(
        self,
        document: dict[str, Any],
        xml_declaration: Optional[bool] = None,
        dialect: Optional[str] = None,
        root_tag: str = 'root',
        **options: Any,
    ) -> str:
        """
        Reconstruct XML from a document.

        Args:
            document: Translation document
            xml_declaration: Force or drop the XML declaration (None follows
                the original)
            dialect: Dialect to synthesize when there is no sidecar
            root_tag: Root element name for synthesized generic XML

        Returns:
            XML file content
        """
        sidecar = self.sidecar(document)
        values = paths.expand_document(document)

        if sidecar is None:
            root = markup.build_tree(dialect or markup.GENERIC, values, root_tag=root_tag)
            return markup.to_text(root, xml_declaration=xml_declaration)

        root = markup.reconstruct_tree(
            sidecar.original, sidecar.get('dialect'), values, cdata_keys=sidecar.get('cdata_keys', ()),
        )
        return markup.to_text(
            root,
            prolog=sidecar.get('prolog'),
            epilog=sidecar.get('epilog', ''),
            xml_declaration=xml_declaration,
        )

    def check_content(self, content: str) -> list[ValidationIssue]:
        issues = super().check_content(content)
        problem = markup.check_well_formed(content) if content.strip() else None
        if problem:
            issues.append(ValidationIssue('MALFORMED_XML', problem, Severity.ERROR))
        return issues

    def validate_structure(self, document: dict[str, Any]) -> ValidationResult:
        issues = []
        sidecar = self.sidecar(document)
        if sidecar is not None:
            issues.extend(markup.validate_markup(sidecar.original, sidecar.get('dialect')))
        issues.extend(self.check_leaves(document))
        return ValidationResult.from_issues(issues)
