#!/usr/bin/env python3
"""
Flat key paths for nested translation trees.

Object members are joined with dots and array items with brackets:

    {"user": {"tags": ["a", {"label": "b"}]}}
    -> {"user.tags[0]": "a", "user.tags[1].label": "b"}

Member names containing '.', '[', ']' or '\\' are backslash-escaped and
the empty member name is written as '\\e', so that no two tree positions
share a key:

    {"": {"a.b": "x"}, "c": {"": "y"}}
    -> {"\\e.a\\.b": "x", "c.\\e": "y"}
"""

import copy
from typing import Any, Optional, Union

from ..errors import PathCollisionError
from ..model import METADATA_KEY, ValueKind, classify_value, translation_items

Segment = Union[str, int]

_SPECIAL_CHARS = '\\.[]'
EMPTY_NAME = '\\e'


def escape_name(name: Any) -> str:
    """Escape path metacharacters in an object member name."""
    text = str(name)
    if not text:
        return EMPTY_NAME
    if not any(ch in text for ch in _SPECIAL_CHARS):
        return text
    return ''.join('\\' + ch if ch in _SPECIAL_CHARS else ch for ch in text)


def join_key(prefix: str, name: Any) -> str:
    """Append an object member to a flat key."""
    escaped = escape_name(name)
    return f"{prefix}.{escaped}" if prefix else escaped


def index_key(prefix: str, index: int) -> str:
    """Append an array index to a flat key."""
    return f"{prefix}[{index}]"


def parse_path(key: str) -> list[Segment]:
    """
    Split a flat key into member names (str) and array indices (int).

    Args:
        key: Flat key such as 'a.b[2].c'

    Returns:
        Path segments, e.g. ['a', 'b', 2, 'c']. An empty key names the
        empty top-level member.
    """
    segments: list[Segment] = []
    buffer: list[str] = []
    started = False
    i = 0

    def flush():
        nonlocal started
        if started:
            segments.append(''.join(buffer))
            buffer.clear()
            started = False

    while i < len(key):
        ch = key[i]
        if ch == '\\' and i + 1 < len(key):
            # '\e' starts a segment without adding text
            if key[i + 1] != 'e':
                buffer.append(key[i + 1])
            started = True
            i += 2
            continue
        if ch == '.':
            flush()
            i += 1
            continue
        if ch == '[':
            end = key.find(']', i)
            digits = key[i + 1:end] if end != -1 else ''
            if digits.isascii() and digits.isdigit():
                flush()
                segments.append(int(digits))
                i = end + 1
                continue
        buffer.append(ch)
        started = True
        i += 1

    flush()
    return segments or ['']


def flatten(tree: Any, prefix: str = "") -> dict[str, Any]:
    """
    Flatten a nested tree into flat key -> leaf value pairs.

    Empty objects and arrays have no leaves and produce no keys. The
    reserved sidecar key is skipped at the top level.

    Args:
        tree: Nested dict/list structure
        prefix: Already-encoded key to prepend (not escaped again)

    Returns:
        Ordered mapping of flat keys to leaf values
    """
    flat: dict[str, Any] = {}
    _flatten_into(tree, prefix, flat, top_level=True)
    return flat


def _flatten_into(value: Any, prefix: str, flat: dict[str, Any], top_level: bool = False) -> None:
    kind = classify_value(value)
    if kind is ValueKind.OBJECT:
        for name, child in value.items():
            if top_level and name == METADATA_KEY:
                continue
            _flatten_into(child, join_key(prefix, name), flat)
    elif kind is ValueKind.ARRAY:
        for i, item in enumerate(value):
            _flatten_into(item, index_key(prefix, i), flat)
    else:
        flat[prefix] = value


def expand_document(document: dict) -> dict[str, Any]:
    """
    Turn a document mixing flat keys and nested values into flat keys only.

    Existing keys are treated as already encoded; nested values are
    flattened underneath them.
    """
    flat: dict[str, Any] = {}
    for key, value in translation_items(document):
        kind = classify_value(value)
        if kind in (ValueKind.OBJECT, ValueKind.ARRAY):
            flat.update(flatten(value, prefix=key or EMPTY_NAME))
        else:
            flat[key] = value
    return flat


def reconstruct(flat: dict[str, Any], original: Optional[Any] = None) -> Any:
    """
    Rebuild a nested tree from flat keys.

    When the original tree is available the values are overlaid onto a deep
    copy of it, so structure without leaves (empty containers, sibling order)
    survives unchanged.

    Args:
        flat: Flat key -> value mapping
        original: Optional original tree to overlay onto

    Returns:
        Nested dict (or list when every key starts with an index)

    Raises:
        PathCollisionError: If a key runs into an incompatible existing value
    """
    tree = copy.deepcopy(original) if original is not None else None

    for key, value in flat.items():
        if key == METADATA_KEY:
            continue
        segments = parse_path(key)
        if tree is None:
            tree = [] if isinstance(segments[0], int) else {}
        _assign(tree, segments, value, key)

    return tree if tree is not None else {}


def get_path(tree: Any, key: str) -> Any:
    """Return the value at a flat key; raises KeyError when absent."""
    node = tree
    for segment in parse_path(key):
        if isinstance(segment, int):
            if not isinstance(node, list) or segment >= len(node):
                raise KeyError(key)
            node = node[segment]
        else:
            if not isinstance(node, dict) or segment not in node:
                raise KeyError(key)
            node = node[segment]
    return node


def set_path(tree: Any, key: str, value: Any) -> None:
    """Write a value at a flat key, creating intermediate containers."""
    _assign(tree, parse_path(key), value, key)


def _assign(tree: Any, segments: list[Segment], value: Any, key: str) -> None:
    node = tree
    for depth, segment in enumerate(segments[:-1]):
        wants_array = isinstance(segments[depth + 1], int)
        node = _descend(node, segment, wants_array, key)
    _store(node, segments[-1], value, key)


def _descend(node: Any, segment: Segment, wants_array: bool, key: str) -> Any:
    container_type = list if wants_array else dict
    if isinstance(segment, int):
        if not isinstance(node, list):
            raise PathCollisionError(f"'{key}': expected an array at index {segment}")
        _presize(node, segment)
        child = node[segment]
    else:
        if not isinstance(node, dict):
            raise PathCollisionError(f"'{key}': expected an object at '{segment}'")
        if segment not in node:
            node[segment] = container_type()
        child = node[segment]

    if isinstance(child, container_type):
        return child
    if isinstance(child, (dict, list)) and not child:
        # Empty placeholder of the other container type
        replacement = container_type()
        node[segment] = replacement
        return replacement
    raise PathCollisionError(
        f"'{key}': segment '{segment}' collides with an existing {classify_value(child).value} value"
    )


def _store(node: Any, segment: Segment, value: Any, key: str) -> None:
    if isinstance(segment, int):
        if not isinstance(node, list):
            raise PathCollisionError(f"'{key}': expected an array at index {segment}")
        _presize(node, segment)
        existing = node[segment]
    else:
        if not isinstance(node, dict):
            raise PathCollisionError(f"'{key}': expected an object at '{segment}'")
        existing = node.get(segment)

    if isinstance(existing, (dict, list)) and existing:
        raise PathCollisionError(f"'{key}': would overwrite a nested {classify_value(existing).value}")
    node[segment] = value


def _presize(array: list, index: int) -> None:
    while len(array) <= index:
        array.append({})


def find_cycle(tree: Any) -> Optional[str]:
    """Return the key path at which a container refers back to an ancestor."""
    return _find_cycle(tree, "", set())


def _find_cycle(node: Any, prefix: str, ancestors: set[int]) -> Optional[str]:
    if not isinstance(node, (dict, list)):
        return None
    if id(node) in ancestors:
        return prefix or "<root>"
    ancestors.add(id(node))
    try:
        if isinstance(node, dict):
            children = ((join_key(prefix, name), child) for name, child in node.items())
        else:
            children = ((index_key(prefix, i), child) for i, child in enumerate(node))
        for key, child in children:
            found = _find_cycle(child, key, ancestors)
            if found:
                return found
    finally:
        ancestors.discard(id(node))
    return None


def max_depth(tree: Any) -> int:
    """Nesting depth of objects and arrays (a flat object has depth 1)."""
    if isinstance(tree, dict):
        return 1 + max((max_depth(child) for child in tree.values()), default=0)
    if isinstance(tree, list):
        return 1 + max((max_depth(child) for child in tree), default=0)
    return 0
