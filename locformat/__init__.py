"""
locformat - localization file format conversion core

Parses localization files (JSON, ARB, YAML, Android/iOS/generic XML, XLIFF,
PO/POT, .properties, CSV/TSV, XMB/XTB) into flat translation documents,
writes translated documents back in the original layout, validates them
and recovers what it can from malformed input.

Quick start:
    from locformat import build_default_registry, ValidationService

    registry = build_default_registry()
    handler = registry.for_path("messages.json")
    document = handler.parse(content)
    document["greeting"] = "Hola"
    output = handler.serialize(document)
"""

__version__ = "1.0.0"

from .config import Settings, load_settings
from .detector import FormatDetector
from .errors import (
    LocFormatError,
    ParseError,
    PathCollisionError,
    PluralExpressionError,
    RecoveryFailure,
    UnknownFormatError,
)
from .format_handlers import FormatHandler, HandlerRegistry, build_default_registry
from .logging_config import setup_logger
from .model import (
    METADATA_KEY,
    MetadataSidecar,
    RecoveryResult,
    Severity,
    ValidationIssue,
    ValidationResult,
    ValueKind,
)
from .recovery import RecoveryEngine
from .validation import ValidationEngine, ValidationService, build_default_engine

__all__ = [
    "Settings",
    "load_settings",
    "FormatDetector",
    "LocFormatError",
    "ParseError",
    "PathCollisionError",
    "PluralExpressionError",
    "RecoveryFailure",
    "UnknownFormatError",
    "FormatHandler",
    "HandlerRegistry",
    "build_default_registry",
    "setup_logger",
    "METADATA_KEY",
    "MetadataSidecar",
    "RecoveryResult",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "ValueKind",
    "RecoveryEngine",
    "ValidationEngine",
    "ValidationService",
    "build_default_engine",
]
