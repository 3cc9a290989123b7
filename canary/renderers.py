"""Bounded, human-readable representations of arbitrary values.

Notation:
- scalars use their own ``str()`` form, ``None`` renders as ``null``,
- reference and primitive arrays render as ``[e1, e2]``,
- other collections render as ``(e1, e2)``,
- mappings render as ``{k1 => v1, k2 => v2}``.

Containers stop as soon as their accumulated text exceeds the budget and
return what they have so far, without the closing delimiter. The check only
happens after a whole element (plus separator) was appended.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Iterable

from .kinds import Classification, PrimitiveKind, RenderKind, classify

NULL_TEXT = "null"
NUL_CHAR = "\x00"
ELEMENT_SEPARATOR = ", "
ENTRY_ARROW = " => "
TRUNCATION_SUFFIX = "..."

_EXHAUSTED = object()


class CyclicStructureError(RecursionError):
    """Raised when a container is reached again while it is still being rendered."""

    def __init__(self, container: Any) -> None:
        self.container_type = type(container).__name__
        super().__init__(f"Cyclic structure detected: {self.container_type} contains itself")


class _Descent:
    """Per-call state shared by every recursive step of one top-level render."""

    __slots__ = ("max_length", "_active")

    def __init__(self, max_length: int) -> None:
        self.max_length = max_length
        self._active: set[int] = set()

    def enter(self, container: Any) -> None:
        marker = id(container)
        if marker in self._active:
            raise CyclicStructureError(container)
        self._active.add(marker)

    def leave(self, container: Any) -> None:
        self._active.discard(id(container))


def represent_scalar(value: Any) -> str:
    """Render a non-container value with its own string form."""
    if value is None:
        return NULL_TEXT
    if isinstance(value, str) and value == NUL_CHAR:
        # NUL corrupts some output sinks.
        return NULL_TEXT
    return str(value)


def _join_bounded(
    items: Iterable[Any],
    render_item: Callable[[Any], str],
    opening: str,
    closing: str,
    max_length: int,
) -> str:
    """Render items between delimiters, returning early once over budget."""
    parts = [opening]
    length = len(opening)
    iterator = iter(items)
    item = next(iterator, _EXHAUSTED)
    while item is not _EXHAUSTED:
        upcoming = next(iterator, _EXHAUSTED)
        text = render_item(item)
        if upcoming is not _EXHAUSTED:
            text += ELEMENT_SEPARATOR
        parts.append(text)
        length += len(text)
        if length > max_length:
            return "".join(parts)
        item = upcoming
    parts.append(closing)
    return "".join(parts)


def _render_object_sequence(value: Any, descent: _Descent) -> str:
    descent.enter(value)
    try:
        return _join_bounded(value, lambda item: _dispatch(item, descent), "[", "]", descent.max_length)
    finally:
        descent.leave(value)


def _render_primitive_sequence(value: Any, primitive: PrimitiveKind, descent: _Descent) -> str:
    elements = value.tolist() if isinstance(value, memoryview) else value
    boxed = (primitive.box(element) for element in elements)
    return _join_bounded(boxed, represent_scalar, "[", "]", descent.max_length)


def _render_collection(value: Any, descent: _Descent) -> str:
    descent.enter(value)
    try:
        return _join_bounded(value, lambda item: _dispatch(item, descent), "(", ")", descent.max_length)
    finally:
        descent.leave(value)


def _render_map(value: Mapping[Any, Any], descent: _Descent) -> str:
    def render_entry(entry: tuple[Any, Any]) -> str:
        key, item = entry
        return _dispatch(key, descent) + ENTRY_ARROW + _dispatch(item, descent)

    descent.enter(value)
    try:
        return _join_bounded(value.items(), render_entry, "{", "}", descent.max_length)
    finally:
        descent.leave(value)


def _dispatch(value: Any, descent: _Descent) -> str:
    classification: Classification = classify(value)
    kind = classification.kind
    if kind is RenderKind.ABSENT or kind is RenderKind.SCALAR:
        return represent_scalar(value)
    if kind is RenderKind.OBJECT_SEQUENCE:
        return _render_object_sequence(value, descent)
    if kind is RenderKind.PRIMITIVE_SEQUENCE:
        assert classification.primitive is not None
        return _render_primitive_sequence(value, classification.primitive, descent)
    if kind is RenderKind.ORDERED_COLLECTION:
        return _render_collection(value, descent)
    if kind is RenderKind.KEYED_MAP:
        return _render_map(value, descent)
    raise AssertionError(f"Unhandled render kind: {kind}")


def represent(value: Any, max_length: int) -> str:
    """Render one value, bounding container output to roughly ``max_length``.

    Raises:
        CyclicStructureError: when a container (directly or transitively)
            contains itself.
    """
    return _dispatch(value, _Descent(max_length))


def truncate_line(text: str, max_length: int) -> str:
    """Cut text to ``max_length`` characters and mark the cut with ``...``."""
    if len(text) > max_length:
        return text[: max(max_length, 0)] + TRUNCATION_SUFFIX
    return text


def render(identifier: str, value: Any, max_length: int) -> str:
    """Build the ``"<identifier>: <representation>"`` trace line."""
    return truncate_line(f"{identifier}: {represent(value, max_length)}", max_length)
