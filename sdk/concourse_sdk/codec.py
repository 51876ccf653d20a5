"""
Value encoding between Python values and the Concourse wire format.

Concourse stores dynamically typed values. On the wire each value is a
typed object:

    {"type": "INTEGER", "data": 42}

Native mapping:
- bool -> BOOLEAN
- int -> INTEGER (32-bit range) or LONG
- float -> DOUBLE
- Tag -> TAG (a string that is not full text searchable)
- str -> STRING
- Link -> LINK (a pointer to another record)
- anything else -> STRING of str(value)

Invariants:
    - bool, int, float, str, Tag and Link round-trip unchanged
    - decode() leaves plain JSON scalars untouched and recurses into
      lists and dicts
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from .errors import CodecError

_INT_MIN = -(2**31)
_INT_MAX = 2**31 - 1


class Tag(str):
    """A string value that the server stores without full text indexing."""

    def __repr__(self) -> str:
        return f"Tag({str.__repr__(self)})"


@dataclass(frozen=True)
class Link:
    """A link from a key to another record.

    Attributes:
        record: Id of the linked record
    """

    record: int

    def __str__(self) -> str:
        return f"@{self.record}@"


class WireType(Enum):
    """Type tags of wire values."""

    BOOLEAN = "BOOLEAN"
    INTEGER = "INTEGER"
    LONG = "LONG"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    STRING = "STRING"
    TAG = "TAG"
    LINK = "LINK"
    NULL = "NULL"


_WIRE_TYPES = {t.value for t in WireType}


class ValueCodec:
    """Converts values between Python and wire representation."""

    def encode(self, value: Any) -> Dict[str, Any]:
        """Encode a Python value as a typed wire object."""
        if isinstance(value, bool):
            return {"type": WireType.BOOLEAN.value, "data": value}
        if isinstance(value, int):
            wire_type = WireType.INTEGER if _INT_MIN <= value <= _INT_MAX else WireType.LONG
            return {"type": wire_type.value, "data": value}
        if isinstance(value, float):
            return {"type": WireType.DOUBLE.value, "data": value}
        if isinstance(value, Tag):
            return {"type": WireType.TAG.value, "data": str(value)}
        if isinstance(value, str):
            return {"type": WireType.STRING.value, "data": value}
        if isinstance(value, Link):
            return {"type": WireType.LINK.value, "data": value.record}
        return {"type": WireType.STRING.value, "data": str(value)}

    def decode(self, wire: Any) -> Any:
        """Decode a wire result into Python values.

        Typed objects become Python values. Lists and dicts are decoded
        element by element; anything else is returned as is.

        Raises:
            CodecError: If a typed object carries an unknown type or bad data
        """
        if isinstance(wire, dict):
            if _is_typed(wire):
                return self._decode_typed(wire)
            return {key: self.decode(item) for key, item in wire.items()}
        if isinstance(wire, list):
            return [self.decode(item) for item in wire]
        return wire

    def _decode_typed(self, wire: Dict[str, Any]) -> Any:
        type_name = wire["type"]
        if type_name not in _WIRE_TYPES:
            raise CodecError(f"Unknown wire type '{type_name}'", wire_value=wire)

        wire_type = WireType(type_name)
        data = wire["data"]
        try:
            if wire_type is WireType.NULL:
                return None
            if wire_type is WireType.BOOLEAN:
                if not isinstance(data, bool):
                    raise TypeError(f"expected bool, got {type(data).__name__}")
                return data
            if wire_type in (WireType.INTEGER, WireType.LONG):
                return int(data)
            if wire_type in (WireType.FLOAT, WireType.DOUBLE):
                return float(data)
            if wire_type is WireType.TAG:
                return Tag(data)
            if wire_type is WireType.LINK:
                return Link(int(data))
            return str(data)
        except (TypeError, ValueError) as e:
            raise CodecError(f"Invalid {type_name} data: {e}", wire_value=wire) from e


def _is_typed(wire: Dict[str, Any]) -> bool:
    return set(wire) == {"type", "data"} and isinstance(wire["type"], str)
