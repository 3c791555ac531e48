"""Pointer resolution over the compressed execution arena.

The platform stores execution data as a flat list of values. Any string made
only of digits is an index into that same list. Resolution follows those
indices until real values are reached, except for values that live under an
HTTP ``headers`` object: header values are literal strings that merely look
numeric.
"""

from __future__ import annotations

from typing import Any, Sequence

from ..constants import HEADERS_SEGMENT, MAX_RESOLVE_DEPTH, POINTER_PATTERN
from ..errors import MalformedTraceError

Path = tuple[str, ...]


def is_pointer(value: Any) -> bool:
    """Return ``True`` when ``value`` is a digit-only string."""
    return isinstance(value, str) and POINTER_PATTERN.fullmatch(value) is not None


def is_header_path(path: Path) -> bool:
    """Return ``True`` when ``path`` points at a value nested under ``headers``."""
    return HEADERS_SEGMENT in path[:-1]


def deref(value: Any, arena: Sequence[Any]) -> Any:
    """Follow a chain of pointers until a non-pointer value is reached.

    Containers are returned as-is. Out-of-bounds pointers are literals.
    """
    seen: set[int] = set()
    while is_pointer(value):
        index = int(value)
        if index >= len(arena):
            return value
        if index in seen:
            raise MalformedTraceError(f"Pointer cycle detected at arena index {index}")
        seen.add(index)
        value = arena[index]
    return value


def resolve(value: Any, arena: Sequence[Any], path: Sequence[str] = ()) -> Any:
    """Fully dereference ``value`` against ``arena``.

    Args:
        value: Any JSON-like value, possibly a pointer.
        arena: The flat list of values pointers index into.
        path: Key path of ``value`` inside the enclosing document. Only used
            to recognise header values.

    Raises:
        MalformedTraceError: On a pointer cycle or nesting deeper than
            ``MAX_RESOLVE_DEPTH`` containers.
    """
    return _resolve(value, arena, tuple(path), set(), 0)


def _resolve(
    value: Any, arena: Sequence[Any], path: Path, active: set[int], depth: int
) -> Any:
    if depth > MAX_RESOLVE_DEPTH:
        raise MalformedTraceError(
            f"Resolution exceeded maximum nesting depth of {MAX_RESOLVE_DEPTH}"
        )

    # Pointer hops do not add nesting; only containers count towards the depth.
    followed: list[int] = []
    while is_pointer(value) and not is_header_path(path):
        index = int(value)
        if index >= len(arena):
            break
        if index in active:
            raise MalformedTraceError(f"Pointer cycle detected at arena index {index}")
        active.add(index)
        followed.append(index)
        value = arena[index]

    try:
        if isinstance(value, dict):
            return {
                key: _resolve(item, arena, path + (str(key),), active, depth + 1)
                for key, item in value.items()
            }
        if isinstance(value, list):
            return [_resolve(item, arena, path, active, depth + 1) for item in value]
        return value
    finally:
        active.difference_update(followed)
