#!/usr/bin/env python3
"""
File-level validation: parse (with optional recovery), structural checks,
rule checks and user guidance, in one call.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..detector import UNKNOWN, FormatDetector
from ..errors import ParseError, UnknownFormatError
from ..format_handlers import FormatHandler, HandlerRegistry, build_default_registry
from ..model import RecoveryResult, Severity, ValidationIssue, ValidationResult, get_sidecar
from ..recovery import RecoveryEngine
from .engine import ValidationContext, ValidationEngine
from .messages import apply_catalogue, classify_parse_error, format_guidance, summarize, validation_guidance
from .rules import build_default_engine

logger = logging.getLogger(__name__)


@dataclass
class FileValidationReport:
    """
    Everything known about one file after validation.

    Attributes:
        success: Valid, and either parsed cleanly or recovered
        document: Parsed (or recovered) document, if any
        validation: Structural and rule issues
        recovery: Recovery outcome when parsing failed and recovery ran
        guidance: Human-readable advice, when requested and available
        parse_error: Message of the original parse failure
    """
    success: bool
    document: Optional[dict] = None
    validation: ValidationResult = field(default_factory=ValidationResult)
    recovery: Optional[RecoveryResult] = None
    guidance: Optional[str] = None
    parse_error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            'success': self.success,
            'validation': self.validation.to_dict(),
        }
        if self.recovery is not None:
            data['recovery'] = self.recovery.to_dict()
        if self.guidance:
            data['guidance'] = self.guidance
        if self.parse_error:
            data['parseError'] = self.parse_error
        return data


class ValidationService:
    """
    Front door for validating translation files.

    Args:
        registry: Handler registry (default: build_default_registry())
        engine: Rule engine (default: build_default_engine())
        recovery: Recovery engine (default: one over the registry)
        detector: Format detector (default: one over the registry)
    """

    def __init__(
        self,
        registry: Optional[HandlerRegistry] = None,
        engine: Optional[ValidationEngine] = None,
        recovery: Optional[RecoveryEngine] = None,
        detector: Optional[FormatDetector] = None,
    ):
        self.registry = registry or build_default_registry()
        self.engine = engine or build_default_engine()
        self.recovery = recovery or RecoveryEngine(self.registry)
        self.detector = detector or FormatDetector(self.registry)

    @classmethod
    def from_settings(cls, settings, registry: Optional[HandlerRegistry] = None) -> "ValidationService":
        """Service whose rule engine honours settings.max_json_depth."""
        return cls(registry=registry, engine=build_default_engine(settings.max_json_depth))

    def resolve_handler(self, path: str, content: Optional[str] = None) -> FormatHandler:
        """Handler for a file: by detected format, else by extension."""
        format_tag = self.detector.detect(path, content)
        if format_tag != UNKNOWN and self.registry.has(format_tag):
            return self.registry.get(format_tag)
        return self.registry.for_path(path, content)

    def load_document(
        self,
        content: str,
        path: str,
        handler: Optional[FormatHandler] = None,
    ) -> tuple[dict, Optional[RecoveryResult]]:
        """
        Parse a file, falling back to recovery when parsing fails.

        Returns:
            (document, recovery result or None when the parse was clean)

        Raises:
            RecoveryFailure: If parsing and every recovery strategy failed
        """
        handler = handler or self.resolve_handler(path, content)
        try:
            return handler.parse(content), None
        except ParseError as e:
            logger.info("Parsing %s failed, attempting recovery: %s", path, e)
            result = self.recovery.recover_or_raise(e, content, path)
            return result.document, result

    def validate_file(
        self,
        content: str,
        path: str,
        handler: Optional[FormatHandler] = None,
        attempt_recovery: bool = True,
        include_guidance: bool = True,
        strict_mode: bool = False,
    ) -> FileValidationReport:
        """
        Parse and validate a file.

        Args:
            content: File content
            path: File path (used for format detection and messages)
            handler: Handler to use instead of detecting one
            attempt_recovery: Run the recovery chain when parsing fails
            include_guidance: Attach human-readable advice to the report
            strict_mode: Re-label warnings as errors

        Returns:
            FileValidationReport
        """
        try:
            handler = handler or self.resolve_handler(path, content)
        except UnknownFormatError as e:
            validation = ValidationResult.from_issues([
                ValidationIssue('UNKNOWN_FORMAT', str(e), Severity.ERROR, category='structure'),
            ])
            return FileValidationReport(success=False, validation=validation, parse_error=str(e))

        content_issues = [apply_catalogue(issue) for issue in handler.check_content(content)]
        recovery = None
        parse_error = None
        try:
            document = handler.parse(content)
        except ParseError as e:
            parse_error = e
            logger.warning("Failed to parse %s: %s", path, e)
            if attempt_recovery:
                recovery = self.recovery.attempt(e, content, path)

        if parse_error is not None and (recovery is None or not recovery.success):
            if recovery is None:
                message = f"Failed to parse file: {parse_error}"
            else:
                message = f"Failed to parse file and recovery failed: {parse_error}"
            issue = apply_catalogue(ValidationIssue(
                'PARSE_ERROR', message, Severity.ERROR,
                line=parse_error.line, column=parse_error.column,
            ))
            validation = ValidationResult.from_issues(content_issues + [issue])
            guidance = None
            if include_guidance:
                guidance = format_guidance(classify_parse_error(parse_error), parse_error)
            return FileValidationReport(
                success=False, validation=validation, recovery=recovery,
                guidance=guidance, parse_error=str(parse_error),
            )

        if recovery is not None:
            document = recovery.document

        context = ValidationContext(
            format=handler.name, file_path=path, original_content=content, handler=handler,
            metadata=self._context_metadata(document),
        )
        validation = self.validate_document(document, context, handler)
        for issue in content_issues:
            validation.add(issue)
        if strict_mode:
            validation = validation.strict()
        if recovery is not None:
            for warning in recovery.warnings:
                validation.add(ValidationIssue('RECOVERY_APPLIED', warning, Severity.WARNING, category='recovery'))

        guidance = validation_guidance(handler.name, validation) if include_guidance else None
        success = validation.is_valid and (parse_error is None or recovery.success)
        return FileValidationReport(
            success=success, document=document, validation=validation, recovery=recovery,
            guidance=guidance, parse_error=str(parse_error) if parse_error else None,
        )

    def validate_data(
        self,
        document: dict[str, Any],
        format: str,
        file_path: Optional[str] = None,
        strict_mode: bool = False,
    ) -> ValidationResult:
        """
        Validate an in-memory document without parsing anything.

        Raises:
            UnknownFormatError: If no handler is registered for format
        """
        handler = self.registry.get(format)
        context = ValidationContext(
            format=format, file_path=file_path, handler=handler,
            metadata=self._context_metadata(document),
        )
        return self.validate_document(document, context, handler, strict_mode)

    def validate_document(
        self,
        document: dict[str, Any],
        context: ValidationContext,
        handler: Optional[FormatHandler] = None,
        strict_mode: bool = False,
    ) -> ValidationResult:
        """Handler structure checks merged with the engine's rules."""
        result = self.engine.validate(document, context)
        if handler is not None:
            structure = handler.validate_structure(document)
            result = structure.merge(result)
        return result.strict() if strict_mode else result

    @staticmethod
    def _context_metadata(document: dict[str, Any]) -> dict[str, Any]:
        sidecar = get_sidecar(document) if isinstance(document, dict) else None
        if sidecar is None:
            return {}
        return dict(sidecar.extras)


def build_report(report: FileValidationReport, path: Optional[str] = None) -> str:
    """
    Plain-text report of a validation run, one issue per line.
    """
    title = f"Validation report for {path}" if path else "Validation report"
    lines = [title, "=" * len(title), ""]
    lines.append(f"Status: {'PASSED' if report.success else 'FAILED'}")
    lines.append(f"Summary: {summarize(report.validation.errors, report.validation.warnings)}")

    if report.recovery is not None:
        recovery = report.recovery
        state = "succeeded" if recovery.success else "failed"
        lines.append(f"Recovery: {state} ({recovery.strategy}{', partial' if recovery.partial else ''})")

    for heading, issues in (("Errors", report.validation.errors), ("Warnings", report.validation.warnings)):
        if not issues:
            continue
        lines.extend(["", f"{heading}:"])
        for issue in issues:
            location = f" [{issue.path}]" if issue.path else ""
            if issue.line is not None:
                location += f" (line {issue.line})"
            lines.append(f"  - {issue.code}{location}: {issue.message}")
            if issue.suggestion:
                lines.append(f"    Suggestion: {issue.suggestion}")

    if report.guidance:
        lines.extend(["", report.guidance])
    return "\n".join(lines) + "\n"


def validate_path(path: str, service: Optional[ValidationService] = None, **options: Any) -> FileValidationReport:
    """Read a UTF-8 file and validate it."""
    service = service or ValidationService()
    content = Path(path).read_text(encoding='utf-8')
    return service.validate_file(content, path, **options)
