#!/usr/bin/env python3
"""
Recovery of documents from content that failed to parse.

RecoveryEngine tries its strategies in registration order; the first one
that succeeds wins. Every strategy is side-effect free and works on a copy
of the text. Results record which strategy produced the document and
whether anything was lost (partial recovery).
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Iterator, Optional

from .codecs import markup, paths
from .detector import FormatDetector
from .errors import ParseError, RecoveryFailure
from .format_handlers import FormatHandler, HandlerRegistry
from .model import RecoveryResult, with_sidecar

logger = logging.getLogger(__name__)

JSON_FORMATS = {'json', 'arb'}
XML_FORMATS = {'xml', 'android-xml', 'ios-xml', 'xliff', 'xmb', 'xtb'}

_TAG = re.compile(r'<(/?)([\w:.-]+)[^>]*?(/?)>')
_DECLARATION = re.compile(r'<\?xml[^>]*\?>', re.IGNORECASE)
_WELL_FORMED_DECLARATION = re.compile(r"<\?xml\s+version=(['\"])1\.[01]\1[^>]*\?>")
_QUOTED = re.compile(r'"((?:[^"\\]|\\.)*)"|\'((?:[^\'\\]|\\.)*)\'')
_ASSIGNMENT = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*\s*[:=]')
_BRACKETS_ONLY = re.compile(r'^[{\[()\]}]+$')


def _error_format(error: Exception) -> Optional[str]:
    return getattr(error, 'format', None)


def _mentions(error: Exception, word: str) -> bool:
    return word.lower() in str(error).lower()


def scan_json_text(content: str) -> Iterator[tuple[int, str]]:
    """
    Yield (index, char) for every character outside JSON string literals.

    Escapes inside strings are honoured, so a quote or brace within a
    string is never reported.
    """
    in_string = False
    escaped = False
    for i, char in enumerate(content):
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
            continue
        yield i, char


def strip_trailing_commas(content: str) -> str:
    """Drop commas that are followed (after whitespace) by a closing bracket."""
    remove = set()
    pending = None
    for i, char in scan_json_text(content):
        if char == ',':
            pending = i
        elif char in '}]':
            if pending is not None:
                remove.add(pending)
            pending = None
        elif not char.isspace():
            pending = None
    return ''.join(char for i, char in enumerate(content) if i not in remove)


def strip_json_comments(content: str) -> str:
    """Remove // line comments and /* block */ comments outside strings."""
    out = []
    i = 0
    in_string = False
    escaped = False
    while i < len(content):
        char = content[i]
        if in_string:
            out.append(char)
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            i += 1
        elif char == '"':
            in_string = True
            out.append(char)
            i += 1
        elif content.startswith('//', i):
            end = content.find('\n', i)
            i = len(content) if end == -1 else end
        elif content.startswith('/*', i):
            end = content.find('*/', i + 2)
            i = len(content) if end == -1 else end + 2
        else:
            out.append(char)
            i += 1
    return ''.join(out)


def extract_json_objects(content: str) -> list[dict]:
    """
    Find balanced top-level {...} chunks and return those that parse.
    """
    objects = []
    depth = 0
    start = None
    for i, char in scan_json_text(content):
        if char == '{':
            if depth == 0:
                start = i
            depth += 1
        elif char == '}' and depth > 0:
            depth -= 1
            if depth == 0 and start is not None:
                try:
                    parsed = json.loads(content[start:i + 1])
                except json.JSONDecodeError:
                    parsed = None
                if isinstance(parsed, dict):
                    objects.append(parsed)
                start = None
    return objects


def close_unclosed_tags(content: str) -> tuple[str, list[str]]:
    """
    Insert closing tags for elements left open.

    A closing tag that skips over open elements gets their closers inserted
    right before it; elements still open at the end are closed in reverse
    order at the end of the text.

    Returns:
        (fixed content, names of the inserted closing tags)
    """
    stripped = re.sub(r'<!--.*?-->|<!\[CDATA\[.*?\]\]>|<\?.*?\?>|<![^>]*>',
                      lambda m: ' ' * len(m.group(0)), content, flags=re.DOTALL)
    stack: list[str] = []
    insertions: list[tuple[int, str]] = []
    inserted: list[str] = []

    for match in _TAG.finditer(stripped):
        closing, name, self_closing = match.group(1), match.group(2), match.group(3)
        if self_closing:
            continue
        if not closing:
            stack.append(name)
            continue
        if name not in stack:
            continue
        while stack and stack[-1] != name:
            missing = stack.pop()
            insertions.append((match.start(), f"</{missing}>"))
            inserted.append(missing)
        stack.pop()

    fixed = content
    for position, closer in reversed(insertions):
        fixed = fixed[:position] + closer + fixed[position:]
    for name in reversed(stack):
        fixed += f"</{name}>"
        inserted.append(name)
    return fixed, inserted


class RecoveryStrategy(ABC):
    """
    One way of salvaging a document from content that failed to parse.

    Strategies get the registry so they can re-parse repaired text with
    the handler of the format that failed.
    """

    name = "strategy"
    description = ""

    def __init__(self, registry: HandlerRegistry):
        self.registry = registry

    @abstractmethod
    def can_recover(self, error: Exception, content: str, path: Optional[str] = None) -> bool:
        pass

    @abstractmethod
    def recover(self, error: Exception, content: str, path: Optional[str] = None) -> RecoveryResult:
        pass

    def handler_for(self, error: Exception, path: Optional[str], default: str) -> FormatHandler:
        """Handler of the failed format, else the path's handler, else default."""
        format_tag = _error_format(error)
        if format_tag and self.registry.has(format_tag):
            return self.registry.get(format_tag)
        if path:
            extension = path.rsplit('.', 1)[-1] if '.' in path else ''
            try:
                return self.registry.for_extension(extension)
            except ValueError:
                pass
        return self.registry.get(default)

    def success(self, error: Exception, document: dict, warnings: list[str], partial: bool = False) -> RecoveryResult:
        return RecoveryResult(
            success=True, strategy=self.name, document=document, partial=partial,
            warnings=warnings, original_error=str(error),
        )

    def failure(self, error: Exception, message: str) -> RecoveryResult:
        return RecoveryResult(
            success=False, strategy=self.name, errors=[message], original_error=str(error),
        )

    def reparse(
        self,
        error: Exception,
        fixed: str,
        path: Optional[str],
        default: str,
        warnings: list[str],
        partial: bool = False,
    ) -> RecoveryResult:
        handler = self.handler_for(error, path, default)
        try:
            document = handler.parse(fixed)
        except ParseError as e:
            return self.failure(error, f"{self.description} did not help: {e}")
        return self.success(error, document, warnings, partial)


class JsonTrailingCommaStrategy(RecoveryStrategy):
    name = "json-trailing-comma"
    description = "Trailing comma removal"

    def can_recover(self, error, content, path=None):
        is_json = _error_format(error) in JSON_FORMATS or _mentions(error, 'json')
        return is_json and strip_trailing_commas(content) != content

    def recover(self, error, content, path=None):
        fixed = strip_trailing_commas(content)
        return self.reparse(error, fixed, path, 'json', ["Fixed trailing commas in JSON"])


class JsonCommentRemovalStrategy(RecoveryStrategy):
    name = "json-comment-removal"
    description = "Comment removal"

    def can_recover(self, error, content, path=None):
        is_json = _error_format(error) in JSON_FORMATS or _mentions(error, 'json')
        return is_json and ('//' in content or '/*' in content)

    def recover(self, error, content, path=None):
        fixed = strip_trailing_commas(strip_json_comments(content))
        return self.reparse(
            error, fixed, path, 'json', ["Removed comments from JSON (comments are not standard JSON)"],
        )


class JsonPartialStrategy(RecoveryStrategy):
    name = "json-partial"
    description = "Partial JSON recovery"

    def can_recover(self, error, content, path=None):
        is_json = _error_format(error) in JSON_FORMATS or _mentions(error, 'json')
        return is_json and '{' in content

    def recover(self, error, content, path=None):
        objects = extract_json_objects(content)
        merged: dict[str, Any] = {}
        for obj in objects:
            merged.update(obj)
        if not merged:
            return self.failure(error, "No valid JSON objects could be recovered")
        warnings = [f"Recovered {len(objects)} partial JSON object(s); the rest of the file was dropped"]
        handler = self.handler_for(error, path, 'json')
        try:
            document = handler.parse(json.dumps(merged, ensure_ascii=False))
        except ParseError:
            document = with_sidecar(paths.flatten(merged), None)
        return self.success(error, document, warnings, partial=True)


class XmlDeclarationStrategy(RecoveryStrategy):
    name = "xml-declaration"
    description = "XML declaration repair"

    def can_recover(self, error, content, path=None):
        is_xml = _error_format(error) in XML_FORMATS or _mentions(error, 'xml')
        if not is_xml:
            return False
        text = content.lstrip('\ufeff')
        position = text.lower().find('<?xml')
        # A declaration must come first and carry a version
        return position > 0 or (position == 0 and not _WELL_FORMED_DECLARATION.match(text))

    @staticmethod
    def _repair(content: str) -> str:
        body = _DECLARATION.sub('', content.lstrip('\ufeff'), count=1).lstrip()
        return f"{markup.XML_DECLARATION}\n{body}"

    def recover(self, error, content, path=None):
        fixed = self._repair(content)
        return self.reparse(error, fixed, path, 'xml', ["Fixed XML declaration"])


class XmlUnclosedTagStrategy(RecoveryStrategy):
    name = "xml-unclosed-tags"
    description = "Unclosed tag repair"

    def can_recover(self, error, content, path=None):
        is_xml = _error_format(error) in XML_FORMATS or _mentions(error, 'xml')
        return is_xml and bool(close_unclosed_tags(content)[1])

    def recover(self, error, content, path=None):
        fixed, inserted = close_unclosed_tags(content)
        warnings = [f"Added missing closing tag: {name}" for name in inserted]
        return self.reparse(error, fixed, path, 'xml', warnings, partial=True)


class FormatRedetectionStrategy(RecoveryStrategy):
    name = "format-redetection"
    description = "Format re-detection"

    def __init__(self, registry: HandlerRegistry, detector: Optional[FormatDetector] = None):
        super().__init__(registry)
        self.detector = detector or FormatDetector(registry)

    def can_recover(self, error, content, path=None):
        return bool(content.strip())

    def recover(self, error, content, path=None):
        detected = self.detector.detect_content(content)
        if detected is None:
            return self.failure(error, "Could not detect file format from content")
        if not self.registry.has(detected):
            return self.failure(error, f"No handler available for detected format: {detected}")

        handler = self.registry.get(detected)
        failed = _error_format(error)
        if failed and self.registry.has(failed) and self.registry.get(failed) is handler:
            return self.failure(error, f"Content still looks like {detected}")
        try:
            document = handler.parse(content)
        except ParseError as e:
            return self.failure(error, f"Failed to parse with detected format {detected}: {e}")
        return self.success(error, document, [f"Parsed using {detected} format instead of {failed or 'the original format'}"])


class PlainTextStrategy(RecoveryStrategy):
    name = "plain-text"
    description = "Plain text extraction"

    def can_recover(self, error, content, path=None):
        return bool(content.strip())

    def recover(self, error, content, path=None):
        extracted: dict[str, str] = {}
        for number, raw in enumerate(content.split('\n'), 1):
            line = raw.strip()
            if not line or line.startswith(('//', '#', '/*', '<')) or _BRACKETS_ONLY.match(line):
                continue
            quoted = [a or b for a, b in _QUOTED.findall(line)]
            if quoted:
                for text in quoted:
                    if text:
                        extracted[f"line_{number}_string_{len(extracted) + 1}"] = text
            elif len(line) > 3 and not _ASSIGNMENT.match(line):
                extracted[f"line_{number}"] = line

        if not extracted:
            return self.failure(error, "No translatable content could be extracted from the file")
        warnings = [
            f"Extracted {len(extracted)} potential translatable strings from plain text",
            "This is a fallback recovery - please verify the extracted content",
        ]
        return self.success(error, extracted, warnings, partial=True)


DEFAULT_STRATEGIES = [
    JsonTrailingCommaStrategy,
    JsonCommentRemovalStrategy,
    JsonPartialStrategy,
    XmlDeclarationStrategy,
    XmlUnclosedTagStrategy,
    FormatRedetectionStrategy,
    PlainTextStrategy,
]


class RecoveryEngine:
    """
    Ordered list of recovery strategies.

    Args:
        registry: Handler registry used to re-parse repaired content
        strategies: Strategies to use instead of the default chain
    """

    def __init__(self, registry: HandlerRegistry, strategies: Optional[list[RecoveryStrategy]] = None):
        self.registry = registry
        if strategies is None:
            strategies = [strategy(registry) for strategy in DEFAULT_STRATEGIES]
        self.strategies = list(strategies)

    def register(self, strategy: RecoveryStrategy) -> None:
        self.strategies.append(strategy)

    def attempt(self, error: Exception, content: str, path: Optional[str] = None) -> RecoveryResult:
        """
        Try every applicable strategy until one succeeds.

        Returns:
            The first successful result, or a failed result with strategy "none"
            whose errors list each strategy's failure after the summary line
        """
        attempts = []
        errors = []
        for strategy in self.strategies:
            try:
                if not strategy.can_recover(error, content, path):
                    continue
                attempts.append(strategy.name)
                result = strategy.recover(error, content, path)
            except Exception as e:
                logger.warning("Recovery strategy %s failed: %s", strategy.name, e)
                errors.append(f"{strategy.name}: {e}")
                continue
            if result.success:
                logger.info("Recovered %s using %s", path or "content", strategy.name)
                result.attempts = attempts
                return result
            errors.extend(result.errors)

        logger.warning("No recovery strategy could handle %s", path or "content")
        return RecoveryResult(
            success=False,
            strategy="none",
            errors=[f"No recovery strategy could handle the error: {error}", *errors],
            original_error=str(error),
            attempts=attempts,
        )

    def recover_or_raise(self, error: Exception, content: str, path: Optional[str] = None) -> RecoveryResult:
        """
        Like attempt(), but raise RecoveryFailure when nothing worked.
        """
        result = self.attempt(error, content, path)
        if not result.success:
            raise RecoveryFailure(error, result.attempts)
        return result
