#!/usr/bin/env python3
"""
Canonical translation model shared by every handler.

A TranslationDocument is a plain dict mapping keys to translation values.
Values form a closed union (string, number, boolean, absent, object, array)
that consumers branch on through classify_value(). Handler-specific
reconstruction data travels in a MetadataSidecar stored under METADATA_KEY.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterator, Optional

# Reserved top-level key holding the sidecar; never a real translation key.
METADATA_KEY = "_metadata"


class ValueKind(Enum):
    """Tag of a TranslationValue."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ABSENT = "absent"
    OBJECT = "object"
    ARRAY = "array"


LEAF_KINDS = frozenset({ValueKind.STRING, ValueKind.NUMBER, ValueKind.BOOLEAN, ValueKind.ABSENT})


def classify_value(value: Any) -> ValueKind:
    """
    Return the ValueKind of a translation value.

    Raises:
        TypeError: If the value is outside the TranslationValue union
    """
    # bool is a subclass of int, so it has to be checked first
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if value is None:
        return ValueKind.ABSENT
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, dict):
        return ValueKind.OBJECT
    if isinstance(value, list):
        return ValueKind.ARRAY
    raise TypeError(f"Unsupported translation value type: {type(value).__name__}")


def leaf_to_text(value: Any) -> str:
    """Render a leaf value the way text-only formats store it."""
    kind = classify_value(value)
    if kind is ValueKind.STRING:
        return value
    if kind is ValueKind.BOOLEAN:
        return "true" if value else "false"
    if kind is ValueKind.NUMBER:
        return str(value)
    if kind is ValueKind.ABSENT:
        return ""
    raise TypeError(f"Expected a leaf value, got {kind.value}")


@dataclass(frozen=True)
class MetadataSidecar:
    """
    Out-of-band reconstruction data attached to a document at parse time.

    Attributes:
        format: Format tag that produced the document (json, po, csv, ...)
        encoding: Detected text encoding
        original: Original parse tree (nested data or an XML element)
        extras: Format-specific data (CSV columns, PO header, bundle locale, ...)
    """
    format: str
    encoding: str = "utf-8"
    original: Any = None
    extras: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.extras.get(key, default)


def get_sidecar(document: dict) -> Optional[MetadataSidecar]:
    sidecar = document.get(METADATA_KEY)
    return sidecar if isinstance(sidecar, MetadataSidecar) else None


def with_sidecar(document: dict, sidecar: Optional[MetadataSidecar]) -> dict:
    """Return a copy of document carrying sidecar (replacing any existing one)."""
    result = dict(translation_items(document))
    if sidecar is not None:
        result[METADATA_KEY] = sidecar
    return result


def translation_items(document: dict) -> Iterator[tuple[str, Any]]:
    """Iterate (key, value) pairs, skipping the reserved sidecar key."""
    for key, value in document.items():
        if key != METADATA_KEY:
            yield key, value


def strip_sidecar(document: dict) -> dict:
    return dict(translation_items(document))


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ValidationIssue:
    """A single finding produced by a handler check or a validation rule."""
    code: str
    message: str
    severity: Severity = Severity.ERROR
    category: Optional[str] = None
    path: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    suggestion: Optional[str] = None
    actionable: bool = True

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {'code': self.code, 'message': self.message}
        if self.line is not None:
            data['line'] = self.line
        if self.column is not None:
            data['column'] = self.column
        return data


@dataclass
class ValidationResult:
    """
    Classified validation outcome.

    Info-severity issues are reported alongside warnings. A result is valid
    iff it has no errors.
    """
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @classmethod
    def from_issues(cls, issues: list[ValidationIssue]) -> "ValidationResult":
        result = cls()
        for issue in issues:
            result.add(issue)
        return result

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add(self, issue: ValidationIssue) -> None:
        if issue.severity is Severity.ERROR:
            self.errors.append(issue)
        else:
            self.warnings.append(issue)

    def issues(self) -> list[ValidationIssue]:
        return self.errors + self.warnings

    def codes(self) -> list[str]:
        return [issue.code for issue in self.issues()]

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Combine two results, dropping issues with a repeated code and message."""
        seen = set()
        merged = ValidationResult()
        for issue in self.issues() + other.issues():
            marker = f"{issue.code}:{issue.message}"
            if marker in seen:
                continue
            seen.add(marker)
            merged.add(issue)
        return merged

    def strict(self) -> "ValidationResult":
        """Return a new result with every warning re-labelled as an error."""
        escalated = ValidationResult(errors=list(self.errors))
        for issue in self.warnings:
            if issue.severity is Severity.WARNING:
                escalated.errors.append(replace(issue, severity=Severity.ERROR))
            else:
                escalated.warnings.append(issue)
        return escalated

    def to_dict(self) -> dict[str, Any]:
        return {
            'isValid': self.is_valid,
            'errors': [issue.to_dict() for issue in self.errors],
            'warnings': [issue.to_dict() for issue in self.warnings],
        }


@dataclass
class RecoveryResult:
    """Outcome of one recovery attempt (or of the whole recovery chain)."""
    success: bool
    strategy: str
    document: Optional[dict] = None
    partial: bool = False
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    original_error: Optional[str] = None
    attempts: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            'success': self.success,
            'recoveryMethod': self.strategy,
            'partialRecovery': self.partial,
            'warnings': list(self.warnings),
            'errors': list(self.errors),
        }
