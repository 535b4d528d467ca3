#!/usr/bin/env python3
"""
Rule-based validation of translation documents.

A ValidationEngine holds global rules (run for every document) and
per-format rule lists. A rule that raises is reported as a single
VALIDATION_RULE_ERROR warning instead of aborting the run.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..codecs import paths
from ..format_handlers import FormatHandler
from ..model import (
    Severity,
    ValidationIssue,
    ValidationResult,
    ValueKind,
    classify_value,
    translation_items,
)
from .messages import apply_catalogue, format_message

logger = logging.getLogger(__name__)

# Format tags that share another tag's rule list
FORMAT_ALIASES = {
    'pot': 'po',
    'yml': 'yaml',
    'tsv': 'csv',
    'android-xml': 'xml',
    'ios-xml': 'xml',
}

_HTML_TAG = re.compile(r'<[^>]+>')
LONG_STRING_LIMIT = 10000


@dataclass
class ValidationContext:
    """What a rule knows about the document besides its contents."""
    format: str
    file_path: Optional[str] = None
    original_content: Optional[str] = None
    handler: Optional[FormatHandler] = None
    metadata: dict[str, Any] = field(default_factory=dict)


RuleCheck = Callable[[dict[str, Any], ValidationContext], list[ValidationIssue]]


@dataclass
class ValidationRule:
    """
    A named check over a document.

    Attributes:
        code: Primary issue code the rule reports
        name: Human-readable rule name
        description: What the rule checks
        severity: Default severity of the issues it reports
        check: Callable(document, context) -> list of issues
    """
    code: str
    name: str
    description: str
    severity: Severity
    check: RuleCheck

    def run(self, document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
        return self.check(document, context)


def canonical_format(format: str) -> str:
    format = format.lower()
    return FORMAT_ALIASES.get(format, format)


class ValidationEngine:
    """
    Registry and runner of validation rules.

    Example:
        engine = ValidationEngine()
        engine.register_global_rules(GLOBAL_RULES)
        engine.register_format_rules('json', JSON_RULES)
        result = engine.validate(document, ValidationContext(format='json'))
    """

    def __init__(self):
        self._global_rules: list[ValidationRule] = []
        self._format_rules: dict[str, list[ValidationRule]] = {}

    def register_global_rules(self, rules: list[ValidationRule]) -> None:
        self._global_rules.extend(rules)

    def register_format_rules(self, format: str, rules: list[ValidationRule]) -> None:
        self._format_rules.setdefault(canonical_format(format), []).extend(rules)

    def global_rules(self) -> list[ValidationRule]:
        return list(self._global_rules)

    def format_rules(self, format: str) -> list[ValidationRule]:
        return list(self._format_rules.get(canonical_format(format), []))

    def clear(self) -> None:
        self._global_rules.clear()
        self._format_rules.clear()

    def collect(self, document: dict[str, Any], context: ValidationContext) -> list[ValidationIssue]:
        """Run every applicable rule and return the raw issue list."""
        issues = []
        for rule in self._global_rules + self.format_rules(context.format):
            try:
                issues.extend(rule.run(document, context))
            except Exception as e:
                logger.warning("Validation rule %s failed: %s", rule.code, e)
                issues.append(ValidationIssue(
                    'VALIDATION_RULE_ERROR',
                    format_message('VALIDATION_RULE_ERROR', error=f"{rule.code}: {e}"),
                    Severity.WARNING,
                ))
        return [apply_catalogue(issue) for issue in issues]

    def validate(
        self,
        document: dict[str, Any],
        context: ValidationContext,
        strict: bool = False,
    ) -> ValidationResult:
        """
        Validate a document.

        Args:
            document: Translation document
            context: Format and file information
            strict: Re-label warnings as errors

        Returns:
            ValidationResult, valid iff it has no errors
        """
        result = ValidationResult.from_issues(self.collect(document, context))
        logger.debug(
            "Validated %s document: %d errors, %d warnings",
            context.format, len(result.errors), len(result.warnings),
        )
        return result.strict() if strict else result


def check_structure_integrity(document: Any) -> ValidationResult:
    """
    Structural sanity checks that do not depend on the format.

    Reports a non-dict document, an empty document, cycles, and per-string
    findings (empty, very long, HTML-like content).
    """
    issues = []
    if not isinstance(document, dict):
        issues.append(ValidationIssue('INVALID_STRUCTURE', "Translation data must be an object", Severity.ERROR))
        return ValidationResult.from_issues(issues)

    if not any(True for _ in translation_items(document)):
        issues.append(ValidationIssue(
            'EMPTY_TRANSLATION_FILE', "Translation file contains no translatable content", Severity.WARNING,
        ))

    cycle = paths.find_cycle(dict(translation_items(document)))
    if cycle:
        issues.append(ValidationIssue(
            'CIRCULAR_REFERENCE', f"Translation data contains a circular reference at {cycle}", Severity.ERROR,
        ))
        return ValidationResult.from_issues(issues)

    for key, value in paths.expand_document(document).items():
        kind = classify_value(value)
        if kind is not ValueKind.STRING:
            issues.append(ValidationIssue(
                'NON_TRANSLATABLE_VALUE', f"Value at {key} is not translatable ({kind.value})",
                Severity.WARNING, path=key,
            ))
            continue
        if not value.strip():
            issues.append(ValidationIssue(
                'EMPTY_TRANSLATION_STRING', f"Empty or whitespace-only string at {key}", Severity.WARNING, path=key,
            ))
        if len(value) > LONG_STRING_LIMIT:
            issues.append(ValidationIssue(
                'VERY_LONG_STRING', f"String at {key} is very long ({len(value)} characters)",
                Severity.INFO, path=key,
            ))
        if _HTML_TAG.search(value):
            issues.append(ValidationIssue(
                'POTENTIAL_HTML_CONTENT', f"String at {key} contains HTML-like tags - ensure proper escaping",
                Severity.INFO, path=key,
            ))
    return ValidationResult.from_issues([apply_catalogue(issue) for issue in issues])
