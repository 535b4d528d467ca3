"""Validation engine, rules, message catalogue and file-level service."""

from .engine import (
    FORMAT_ALIASES,
    ValidationContext,
    ValidationEngine,
    ValidationRule,
    canonical_format,
    check_structure_integrity,
)
from .messages import (
    MESSAGE_TEMPLATES,
    MessageTemplate,
    classify_parse_error,
    format_guidance,
    format_message,
    get_guidance,
    validation_guidance,
)
from .rules import GLOBAL_RULES, build_default_engine
from .service import FileValidationReport, ValidationService, build_report, validate_path

__all__ = [
    'FORMAT_ALIASES',
    'ValidationContext',
    'ValidationEngine',
    'ValidationRule',
    'canonical_format',
    'check_structure_integrity',
    'MESSAGE_TEMPLATES',
    'MessageTemplate',
    'classify_parse_error',
    'format_guidance',
    'format_message',
    'get_guidance',
    'validation_guidance',
    'GLOBAL_RULES',
    'build_default_engine',
    'FileValidationReport',
    'ValidationService',
    'build_report',
    'validate_path',
]
