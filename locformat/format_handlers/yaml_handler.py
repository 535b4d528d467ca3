#!/usr/bin/env python3
"""
YAML format handler for Rails/Symfony i18n files.

Handles parsing and reconstruction of YAML localization files commonly
used in Ruby on Rails, Symfony, and other backend frameworks.
"""

import logging
from typing import Any

import yaml

from ..codecs import paths
from ..errors import ParseError
from ..model import MetadataSidecar, Severity, ValidationIssue, ValidationResult, with_sidecar
from .base import FormatHandler, PlaceholderPattern, PLACEHOLDER_PATTERNS

logger = logging.getLogger(__name__)


def normalize_tree(obj: Any) -> Any:
    """
    Coerce a safe_load result into the translation value union.

    Mapping keys become strings (YAML allows `1:` or `yes:` as keys) and
    scalars outside the union (dates, timestamps) become their text.
    """
    if isinstance(obj, dict):
        return {str(key): normalize_tree(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [normalize_tree(item) for item in obj]
    if obj is None or isinstance(obj, (str, bool, int, float)):
        return obj
    return str(obj)


class YamlHandler(FormatHandler):
    """
    Handler for YAML i18n files (Rails/Symfony style).

    YAML i18n structure:
    ```yaml
    en:
      welcome: Welcome
      user:
        greeting: "Hello %{name}"
        messages:
          one: You have one message
          other: "You have %{count} messages"
    ```

    Keys are flattened to path notation ("en.user.greeting"); sequences use
    index segments ("en.days[0]").
    """

    @property
    def name(self) -> str:
        return "yaml"

    @property
    def file_extensions(self) -> list[str]:
        return ["yml", "yaml"]

    @property
    def placeholder_patterns(self) -> list[PlaceholderPattern]:
        """YAML i18n commonly uses Ruby-style placeholders."""
        return [
            PLACEHOLDER_PATTERNS['ruby'],     # %{name}
            PLACEHOLDER_PATTERNS['i18next'],  # {{name}} (sometimes used)
        ]

    def parse(self, content: str) -> dict[str, Any]:
        """
        Parse YAML content into a flat translation document.

        Args:
            content: Raw YAML file content

        Returns:
            Document with flattened keys
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            mark = getattr(e, 'problem_mark', None)
            raise ParseError(
                f"Invalid YAML: {e}",
                format=self.name,
                line=mark.line + 1 if mark else None,
                column=mark.column + 1 if mark else None,
            ) from e
        except RecursionError as e:
            raise ParseError("Invalid YAML: nesting is too deep", format=self.name) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ParseError("YAML root must be a mapping", format=self.name)

        try:
            data = normalize_tree(data)
            document = paths.flatten(data)
        except RecursionError as e:
            raise ParseError("Invalid YAML: nesting is too deep", format=self.name) from e
        logger.debug("Parsed %d YAML keys", len(document))
        return with_sidecar(document, MetadataSidecar(format=self.name, original=data))

    def serialize(self, document: dict[str, Any], **options: Any) -> str:
        """
        Reconstruct YAML from a document.

        Args:
            document: Translation document

        Returns:
            Complete YAML file content
        """
        sidecar = self.sidecar(document)
        values = paths.expand_document(document)
        result = paths.reconstruct(values, original=sidecar.original if sidecar else None)

        return yaml.dump(
            result,
            allow_unicode=True,
            default_flow_style=False,
            sort_keys=False,
        )

    def validate_structure(self, document: dict[str, Any]) -> ValidationResult:
        issues = self.check_leaves(document)
        if not paths.expand_document(document):
            issues.append(ValidationIssue('EMPTY_YAML', "YAML document has no translation keys", Severity.WARNING))
        return ValidationResult.from_issues(issues)
