#!/usr/bin/env python3
"""
Exception types raised by format handlers, codecs and the recovery engine.

Parse failures keep the ValueError lineage so callers that catch ValueError
around handler.parse() keep working.
"""

from typing import Optional


class LocFormatError(Exception):
    """Base class for all locformat errors."""


class ParseError(LocFormatError, ValueError):
    """Raised when content does not conform to a format's grammar."""

    def __init__(
        self,
        message: str,
        format: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ):
        super().__init__(message)
        self.format = format
        self.line = line
        self.column = column


class RecoveryFailure(LocFormatError):
    """Raised when no recovery strategy produced a usable document."""

    def __init__(self, parse_error: Exception, attempts: Optional[list[str]] = None):
        self.parse_error = parse_error
        self.attempts = list(attempts or [])
        tried = ', '.join(self.attempts) if self.attempts else 'none'
        super().__init__(f"{parse_error} (recovery attempted: {tried})")


class PathCollisionError(LocFormatError, ValueError):
    """Raised when a flat key path runs into an incompatible existing value."""


class PluralExpressionError(LocFormatError, ValueError):
    """Raised for plural selector expressions outside the permitted grammar."""


class UnknownFormatError(LocFormatError, ValueError):
    """Raised when no handler is registered for a format tag or extension."""
