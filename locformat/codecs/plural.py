#!/usr/bin/env python3
"""
Gettext context/plural key encoding and plural selector evaluation.

Keys:
    "ctx|msgid"   message with translation context
    "msgid"       plural form 0 (or a non-plural message)
    "msgid[2]"    plural form 2

Plural selector expressions (the `plural=` part of a Plural-Forms header)
are parsed by a small recursive-descent parser into an AST and interpreted.
Only integer literals, the variable `n`, parentheses and the operators
`+ - * / % ! == != < <= > >= && || ?:` are accepted; anything else is
rejected before evaluation.
"""

import functools
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from ..errors import PluralExpressionError
from ..model import METADATA_KEY

CONTEXT_SEPARATOR = "|"
MAX_EXPRESSION_LENGTH = 1000
MAX_NESTING_DEPTH = 64


@dataclass(frozen=True)
class PluralRule:
    """Plural-form count and selector expression for a language."""
    nplurals: int
    expression: str
    description: str = ""

    def index(self, n: int) -> int:
        """Plural form index for the quantity n."""
        return evaluate_plural(self.expression, n)

    @property
    def header(self) -> str:
        return format_plural_forms_header(self)


_SIMPLE = "(n != 1)"
_FRENCH = "(n > 1)"
_EAST_SLAVIC = "(n%10==1 && n%100!=11 ? 0 : n%10>=2 && n%10<=4 && (n%100<10 || n%100>=20) ? 1 : 2)"
_WEST_SLAVIC = "(n==1) ? 0 : (n>=2 && n<=4) ? 1 : 2"

PLURAL_RULES: dict[str, PluralRule] = {
    # Germanic
    "en": PluralRule(2, _SIMPLE, "English: singular for 1, plural for others"),
    "de": PluralRule(2, _SIMPLE, "German: singular for 1, plural for others"),
    "nl": PluralRule(2, _SIMPLE, "Dutch: singular for 1, plural for others"),
    "da": PluralRule(2, _SIMPLE, "Danish: singular for 1, plural for others"),
    "sv": PluralRule(2, _SIMPLE, "Swedish: singular for 1, plural for others"),
    "no": PluralRule(2, _SIMPLE, "Norwegian: singular for 1, plural for others"),
    # Romance
    "es": PluralRule(2, _SIMPLE, "Spanish: singular for 1, plural for others"),
    "pt": PluralRule(2, _SIMPLE, "Portuguese: singular for 1, plural for others"),
    "it": PluralRule(2, _SIMPLE, "Italian: singular for 1, plural for others"),
    "ca": PluralRule(2, _SIMPLE, "Catalan: singular for 1, plural for others"),
    "fr": PluralRule(2, _FRENCH, "French: singular for 0 and 1, plural for others"),
    "ro": PluralRule(
        3, "(n==1 ? 0 : (n==0 || (n%100 > 0 && n%100 < 20)) ? 1 : 2)",
        "Romanian: 1, 0 and 2-19 (mod 100), others",
    ),
    # Slavic
    "ru": PluralRule(3, _EAST_SLAVIC, "Russian: forms by last digits"),
    "uk": PluralRule(3, _EAST_SLAVIC, "Ukrainian: same as Russian"),
    "hr": PluralRule(3, _EAST_SLAVIC, "Croatian: same as Russian"),
    "sr": PluralRule(3, _EAST_SLAVIC, "Serbian: same as Russian"),
    "pl": PluralRule(
        3, "(n==1 ? 0 : n%10>=2 && n%10<=4 && (n%100<10 || n%100>=20) ? 1 : 2)",
        "Polish: 1, 2-4 (not 12-14), others",
    ),
    "cs": PluralRule(3, _WEST_SLAVIC, "Czech: 1, 2-4, 5+"),
    "sk": PluralRule(3, _WEST_SLAVIC, "Slovak: same as Czech"),
    "bg": PluralRule(2, _SIMPLE, "Bulgarian: singular for 1, plural for others"),
    "sl": PluralRule(
        4, "(n%100==1 ? 0 : n%100==2 ? 1 : n%100==3 || n%100==4 ? 2 : 3)",
        "Slovenian: 1, 2, 3-4, others (mod 100)",
    ),
    # Asian, no plural forms
    "zh": PluralRule(1, "0", "Chinese: no plural forms"),
    "ja": PluralRule(1, "0", "Japanese: no plural forms"),
    "ko": PluralRule(1, "0", "Korean: no plural forms"),
    "th": PluralRule(1, "0", "Thai: no plural forms"),
    "vi": PluralRule(1, "0", "Vietnamese: no plural forms"),
    # Other
    "ar": PluralRule(
        6, "(n==0 ? 0 : n==1 ? 1 : n==2 ? 2 : n%100>=3 && n%100<=10 ? 3 : n%100>=11 ? 4 : 5)",
        "Arabic: zero, one, two, few, many, other",
    ),
    "he": PluralRule(2, _SIMPLE, "Hebrew: singular for 1, plural for others"),
    "tr": PluralRule(2, _FRENCH, "Turkish: singular for 0 and 1, plural for others"),
    "fi": PluralRule(2, _SIMPLE, "Finnish: singular for 1, plural for others"),
    "hu": PluralRule(2, _SIMPLE, "Hungarian: singular for 1, plural for others"),
    "et": PluralRule(2, _SIMPLE, "Estonian: singular for 1, plural for others"),
    "lv": PluralRule(3, "(n%10==1 && n%100!=11 ? 0 : n != 0 ? 1 : 2)", "Latvian: 1 (not 11), others, 0"),
    "lt": PluralRule(
        3, "(n%10==1 && n%100!=11 ? 0 : n%10>=2 && (n%100<10 || n%100>=20) ? 1 : 2)",
        "Lithuanian: 1 (not 11), 2-9 (not 12-19), others",
    ),
}


def normalize_language(language: str) -> str:
    """'en-US' / 'en_US' -> 'en'."""
    return re.split(r'[-_]', language.strip(), maxsplit=1)[0].lower()


def get_plural_rule(language: Optional[str]) -> PluralRule:
    """Look up the plural rule for a language, falling back to English."""
    if not language:
        return PLURAL_RULES["en"]
    return PLURAL_RULES.get(normalize_language(language), PLURAL_RULES["en"])


def supported_languages() -> list[str]:
    return list(PLURAL_RULES)


def has_complex_plurals(language: str) -> bool:
    """True when the language has more than two plural forms."""
    return get_plural_rule(language).nplurals > 2


def format_plural_forms_header(rule: Union[PluralRule, str]) -> str:
    """Plural-Forms header value, e.g. 'nplurals=2; plural=(n != 1);'."""
    if isinstance(rule, str):
        rule = get_plural_rule(rule)
    return f"nplurals={rule.nplurals}; plural={rule.expression};"


_PLURAL_FORMS_HEADER = re.compile(r'nplurals\s*=\s*(\d+)\s*;\s*plural\s*=\s*(.+?)\s*;?\s*$', re.DOTALL)


def parse_plural_forms_header(value: str) -> PluralRule:
    """
    Parse a Plural-Forms header value into a PluralRule.

    Raises:
        PluralExpressionError: If the header is not of the form
            'nplurals=N; plural=EXPR;'
    """
    match = _PLURAL_FORMS_HEADER.match(value.strip())
    if not match:
        raise PluralExpressionError(f"Malformed Plural-Forms header: {value!r}")
    return PluralRule(int(match.group(1)), match.group(2).strip(), "From Plural-Forms header")


def sample_plurals(language: str, limit: int = 200) -> dict[int, list[int]]:
    """Map each plural form index to the first few quantities selecting it."""
    rule = get_plural_rule(language)
    samples: dict[int, list[int]] = {i: [] for i in range(rule.nplurals)}
    for n in range(limit + 1):
        index = rule.index(n)
        bucket = samples.setdefault(index, [])
        if len(bucket) < 5:
            bucket.append(n)
    return samples


# --- Context and plural keys ---

def parse_context_key(key: str) -> tuple[Optional[str], str]:
    """Split 'ctx|msgid' into (ctx, msgid); (None, key) without a context."""
    if CONTEXT_SEPARATOR not in key:
        return None, key
    context, msgid = key.split(CONTEXT_SEPARATOR, 1)
    return context, msgid


def create_context_key(msgid: str, context: Optional[str] = None) -> str:
    return f"{context}{CONTEXT_SEPARATOR}{msgid}" if context else msgid


def validate_context(context: str) -> bool:
    """A context must not contain the key separator."""
    return CONTEXT_SEPARATOR not in context


_PLURAL_KEY = re.compile(r'^(.+)\[(\d+)\]$', re.DOTALL)


def parse_plural_key(key: str) -> tuple[str, Optional[int]]:
    """Split 'msgid[2]' into ('msgid', 2); (key, None) without a suffix."""
    match = _PLURAL_KEY.match(key)
    if not match:
        return key, None
    return match.group(1), int(match.group(2))


def create_plural_key(base_key: str, index: int) -> str:
    """Index 0 is the bare key."""
    return base_key if index == 0 else f"{base_key}[{index}]"


@dataclass
class PluralCheck:
    missing: list[str] = field(default_factory=list)
    extra: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.missing and not self.extra


def check_plural_forms(keys, language_or_rule: Union[str, PluralRule, None]) -> PluralCheck:
    """
    Check plural-form completeness for every key group that uses suffixes.

    A base key with no `[n]` suffix anywhere is exempt. For grouped keys,
    every index below nplurals must be present (index 0 as the bare key or
    `key[0]`); indices >= nplurals are extra.

    Args:
        keys: Iterable of document keys
        language_or_rule: Language code or PluralRule

    Returns:
        PluralCheck with missing and extra keys
    """
    if isinstance(language_or_rule, PluralRule):
        rule = language_or_rule
    else:
        rule = get_plural_rule(language_or_rule)

    groups: dict[str, set[int]] = {}
    bare_keys = set()
    result = PluralCheck()

    for key in keys:
        if key == METADATA_KEY:
            continue
        base, index = parse_plural_key(key)
        if index is None:
            bare_keys.add(key)
            continue
        groups.setdefault(base, set()).add(index)
        if index >= rule.nplurals:
            result.extra.append(key)

    for base, indices in groups.items():
        if 0 not in indices and base not in bare_keys:
            result.missing.append(base)
        for i in range(1, rule.nplurals):
            if i not in indices:
                result.missing.append(f"{base}[{i}]")

    return result


# --- Selector expression parsing and evaluation ---

_TOKEN = re.compile(r'\s*(?:(\d+)|([A-Za-z_]\w*)|(==|!=|<=|>=|&&|\|\||[-+*/%!<>?:()]))')


def _tokenize(expression: str) -> list[tuple[str, Union[str, int]]]:
    tokens: list[tuple[str, Union[str, int]]] = []
    pos = 0
    length = len(expression)
    while pos < length:
        if expression[pos].isspace():
            pos += 1
            continue
        match = _TOKEN.match(expression, pos)
        if not match:
            raise PluralExpressionError(
                f"Unexpected character {expression[pos]!r} at position {pos} in plural expression"
            )
        number, name, operator = match.groups()
        if number is not None:
            tokens.append(('num', int(number)))
        elif name is not None:
            if name != 'n':
                raise PluralExpressionError(f"Unknown identifier {name!r} in plural expression")
            tokens.append(('var', 'n'))
        else:
            tokens.append(('op', operator))
        pos = match.end()
    return tokens


_BINARY_LEVELS = [
    ('||',),
    ('&&',),
    ('==', '!='),
    ('<', '<=', '>', '>='),
    ('+', '-'),
    ('*', '/', '%'),
]


class _Parser:
    """Recursive-descent parser producing tuple AST nodes."""

    def __init__(self, tokens):
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    def peek(self):
        return self.tokens[self.pos] if self.pos < len(self.tokens) else (None, None)

    def accept(self, operator: str) -> bool:
        kind, value = self.peek()
        if kind == 'op' and value == operator:
            self.pos += 1
            return True
        return False

    def expect(self, operator: str) -> None:
        if not self.accept(operator):
            found = self.peek()[1]
            raise PluralExpressionError(f"Expected {operator!r} in plural expression, found {found!r}")

    def parse(self):
        if not self.tokens:
            raise PluralExpressionError("Empty plural expression")
        node = self.conditional()
        if self.pos != len(self.tokens):
            raise PluralExpressionError(f"Unexpected token {self.peek()[1]!r} in plural expression")
        return node

    def conditional(self):
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise PluralExpressionError("Plural expression is nested too deeply")
        condition = self.binary(0)
        if self.accept('?'):
            when_true = self.conditional()
            self.expect(':')
            when_false = self.conditional()
            condition = ('cond', condition, when_true, when_false)
        self.depth -= 1
        return condition

    def binary(self, level: int):
        if level == len(_BINARY_LEVELS):
            return self.unary()
        node = self.binary(level + 1)
        while True:
            kind, value = self.peek()
            if kind == 'op' and value in _BINARY_LEVELS[level]:
                self.pos += 1
                node = ('bin', value, node, self.binary(level + 1))
            else:
                return node

    def unary(self):
        kind, value = self.peek()
        if kind == 'op' and value in ('!', '-', '+'):
            self.pos += 1
            self.depth += 1
            if self.depth > MAX_NESTING_DEPTH:
                raise PluralExpressionError("Plural expression is nested too deeply")
            node = ('unary', value, self.unary())
            self.depth -= 1
            return node
        return self.primary()

    def primary(self):
        kind, value = self.peek()
        if kind == 'num':
            self.pos += 1
            return ('num', value)
        if kind == 'var':
            self.pos += 1
            return ('var',)
        if kind == 'op' and value == '(':
            self.pos += 1
            node = self.conditional()
            self.expect(')')
            return node
        raise PluralExpressionError(f"Unexpected token {value!r} in plural expression")


def _c_divide(left: int, right: int) -> int:
    if right == 0:
        raise PluralExpressionError("Division by zero in plural expression")
    quotient = abs(left) // abs(right)
    return quotient if (left >= 0) == (right >= 0) else -quotient


def _c_modulo(left: int, right: int) -> int:
    if right == 0:
        raise PluralExpressionError("Division by zero in plural expression")
    return left - right * _c_divide(left, right)


def _evaluate(node, n: int) -> int:
    tag = node[0]
    if tag == 'num':
        return node[1]
    if tag == 'var':
        return n
    if tag == 'unary':
        operand = _evaluate(node[2], n)
        if node[1] == '!':
            return int(not operand)
        return -operand if node[1] == '-' else operand
    if tag == 'cond':
        return _evaluate(node[2], n) if _evaluate(node[1], n) else _evaluate(node[3], n)

    operator = node[1]
    if operator == '&&':
        return int(bool(_evaluate(node[2], n)) and bool(_evaluate(node[3], n)))
    if operator == '||':
        return int(bool(_evaluate(node[2], n)) or bool(_evaluate(node[3], n)))

    left = _evaluate(node[2], n)
    right = _evaluate(node[3], n)
    if operator == '+':
        return left + right
    if operator == '-':
        return left - right
    if operator == '*':
        return left * right
    if operator == '/':
        return _c_divide(left, right)
    if operator == '%':
        return _c_modulo(left, right)
    if operator == '==':
        return int(left == right)
    if operator == '!=':
        return int(left != right)
    if operator == '<':
        return int(left < right)
    if operator == '<=':
        return int(left <= right)
    if operator == '>':
        return int(left > right)
    if operator == '>=':
        return int(left >= right)
    raise PluralExpressionError(f"Unsupported operator {operator!r}")


class PluralExpression:
    """A parsed plural selector, callable with a quantity."""

    def __init__(self, source: str, tree):
        self.source = source
        self._tree = tree

    def __call__(self, n: int) -> int:
        return _evaluate(self._tree, int(n))

    def __repr__(self) -> str:
        return f"PluralExpression({self.source!r})"


@functools.lru_cache(maxsize=256)
def compile_plural_expression(expression: str) -> PluralExpression:
    """
    Parse a plural selector expression.

    Raises:
        PluralExpressionError: For any token outside the permitted grammar,
            any identifier other than `n`, or malformed structure
    """
    if len(expression) > MAX_EXPRESSION_LENGTH:
        raise PluralExpressionError("Plural expression is too long")
    tree = _Parser(_tokenize(expression)).parse()
    return PluralExpression(expression, tree)


def evaluate_plural(expression: str, n: int) -> int:
    """Evaluate a plural selector for quantity n (booleans become 0/1)."""
    return compile_plural_expression(expression)(n)


def validate_plural_expression(expression: str, nplurals: int, samples: int = 200) -> list[str]:
    """
    Check that an expression parses and selects an index within
    [0, nplurals) for the quantities 0..samples.

    Returns:
        List of error messages (empty if valid)
    """
    try:
        selector = compile_plural_expression(expression)
    except PluralExpressionError as e:
        return [str(e)]

    for n in range(samples + 1):
        try:
            index = selector(n)
        except PluralExpressionError as e:
            return [f"{e} (n={n})"]
        if index < 0 or index >= nplurals:
            return [f"Plural expression selects form {index} for n={n}, but nplurals={nplurals}"]
    return []
