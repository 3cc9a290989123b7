"""Runtime shape classification for the representation engine.

Every value handed to the engine is classified into exactly one
:class:`RenderKind`. Primitive arrays additionally carry a
:class:`PrimitiveKind` which knows how to box one element into a plain
Python object.
"""

from __future__ import annotations

import ctypes
from array import array
from collections.abc import Collection, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable


class RenderKind(Enum):
    """Closed set of value shapes understood by the engine."""

    ABSENT = "absent"
    OBJECT_SEQUENCE = "object_sequence"
    PRIMITIVE_SEQUENCE = "primitive_sequence"
    ORDERED_COLLECTION = "ordered_collection"
    KEYED_MAP = "keyed_map"
    SCALAR = "scalar"


def _box_char(element: Any) -> str:
    if isinstance(element, (bytes, bytearray)):
        return element.decode("latin-1")
    if isinstance(element, int):
        return chr(element)
    return str(element)


class PrimitiveKind(Enum):
    """Element type of a homogeneous primitive array."""

    BYTE = ("byte", int)
    SHORT = ("short", int)
    INT = ("int", int)
    LONG = ("long", int)
    FLOAT = ("float", float)
    DOUBLE = ("double", float)
    BOOLEAN = ("boolean", bool)
    CHAR = ("char", _box_char)

    def __init__(self, label: str, boxer: Callable[[Any], Any]) -> None:
        self.label = label
        self.boxer = boxer

    def box(self, element: Any) -> Any:
        """Convert one raw array element into its boxed Python form."""
        return self.boxer(element)


# array.array typecodes and struct/memoryview formats share these letters.
_FORMAT_KINDS: dict[str, PrimitiveKind] = {
    "b": PrimitiveKind.BYTE,
    "B": PrimitiveKind.BYTE,
    "h": PrimitiveKind.SHORT,
    "H": PrimitiveKind.SHORT,
    "i": PrimitiveKind.INT,
    "I": PrimitiveKind.INT,
    "l": PrimitiveKind.LONG,
    "L": PrimitiveKind.LONG,
    "q": PrimitiveKind.LONG,
    "Q": PrimitiveKind.LONG,
    "f": PrimitiveKind.FLOAT,
    "d": PrimitiveKind.DOUBLE,
    "?": PrimitiveKind.BOOLEAN,
    "c": PrimitiveKind.CHAR,
    "u": PrimitiveKind.CHAR,
    "w": PrimitiveKind.CHAR,
}

# Some ctypes names are aliases of each other (c_int is c_long on LP32/LLP64),
# later entries win which is fine since both box to int.
_CTYPES_KINDS: dict[type, PrimitiveKind] = {
    ctypes.c_byte: PrimitiveKind.BYTE,
    ctypes.c_ubyte: PrimitiveKind.BYTE,
    ctypes.c_short: PrimitiveKind.SHORT,
    ctypes.c_ushort: PrimitiveKind.SHORT,
    ctypes.c_long: PrimitiveKind.LONG,
    ctypes.c_ulong: PrimitiveKind.LONG,
    ctypes.c_longlong: PrimitiveKind.LONG,
    ctypes.c_ulonglong: PrimitiveKind.LONG,
    ctypes.c_int: PrimitiveKind.INT,
    ctypes.c_uint: PrimitiveKind.INT,
    ctypes.c_float: PrimitiveKind.FLOAT,
    ctypes.c_double: PrimitiveKind.DOUBLE,
    ctypes.c_longdouble: PrimitiveKind.DOUBLE,
    ctypes.c_bool: PrimitiveKind.BOOLEAN,
    ctypes.c_char: PrimitiveKind.CHAR,
    ctypes.c_wchar: PrimitiveKind.CHAR,
}


@dataclass(frozen=True)
class Classification:
    """Result of classifying one value."""

    kind: RenderKind
    primitive: PrimitiveKind | None = None


ABSENT = Classification(RenderKind.ABSENT)
OBJECT_SEQUENCE = Classification(RenderKind.OBJECT_SEQUENCE)
ORDERED_COLLECTION = Classification(RenderKind.ORDERED_COLLECTION)
KEYED_MAP = Classification(RenderKind.KEYED_MAP)
SCALAR = Classification(RenderKind.SCALAR)


def _primitive(kind: PrimitiveKind) -> Classification:
    return Classification(RenderKind.PRIMITIVE_SEQUENCE, kind)


def _classify_array_like(value: Any) -> Classification | None:
    """Classify array-shaped values, or return None when value is not one."""
    if isinstance(value, (bytes, bytearray)):
        return _primitive(PrimitiveKind.BYTE)
    if isinstance(value, array):
        kind = _FORMAT_KINDS.get(value.typecode)
        return _primitive(kind) if kind is not None else OBJECT_SEQUENCE
    if isinstance(value, memoryview):
        kind = _FORMAT_KINDS.get(value.format)
        if kind is None or value.ndim != 1:
            return SCALAR
        return _primitive(kind)
    if isinstance(value, ctypes.Array):
        kind = _CTYPES_KINDS.get(getattr(value, "_type_", None))
        return _primitive(kind) if kind is not None else OBJECT_SEQUENCE
    return None


def classify(value: Any) -> Classification:
    """Classify a value by runtime shape; first matching rule wins.

    Classification never iterates or otherwise touches the contents of the
    value, so it is safe on generators and lazily evaluated objects (those
    fall through to ``SCALAR``).
    """
    if value is None:
        return ABSENT
    if isinstance(value, tuple):
        return OBJECT_SEQUENCE
    array_like = _classify_array_like(value)
    if array_like is not None:
        return array_like
    if isinstance(value, Mapping):
        return KEYED_MAP
    if isinstance(value, Collection) and not isinstance(value, str):
        return ORDERED_COLLECTION
    return SCALAR
