"""
netshell/variables/value.py

Purpose:
    The structured value type carried by every variable.

Semantics:
    - Value is a tagged variant: Null, Bool, Number, String, Array, Object.
    - Values are immutable. Arrays hold a tuple of Values, Objects a read-only
      mapping of str -> Value, so a snapshot can be shared without copying.
    - child() implements one step of dotted-path lookup: object keys by name,
      array elements by non-negative decimal index.
    - stringify() defines interpolation output; composite values refuse.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class ValueKind(str, Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


@dataclass(frozen=True)
class Value:
    kind: ValueKind
    data: Any = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def of(cls, obj: Any) -> "Value":
        """
        Convert a plain Python object (JSON-like) into a Value.

        Values pass through untouched. bool is checked before int because
        bool is an int subclass.

        Raises:
            TypeError: for objects with no Value representation
        """
        if isinstance(obj, Value):
            return obj
        if obj is None:
            return NULL
        if isinstance(obj, bool):
            return TRUE if obj else FALSE
        if isinstance(obj, (int, float)):
            return cls(ValueKind.NUMBER, obj)
        if isinstance(obj, str):
            return cls(ValueKind.STRING, obj)
        if isinstance(obj, Mapping):
            return cls(
                ValueKind.OBJECT,
                MappingProxyType({str(k): cls.of(v) for k, v in obj.items()}),
            )
        if isinstance(obj, (list, tuple)):
            return cls(ValueKind.ARRAY, tuple(cls.of(item) for item in obj))
        raise TypeError(f"Cannot convert {type(obj).__name__} to a variable value")

    @classmethod
    def string(cls, text: str) -> "Value":
        return cls(ValueKind.STRING, text)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def is_scalar(self) -> bool:
        return self.kind not in (ValueKind.ARRAY, ValueKind.OBJECT)

    def child(self, segment: str) -> Optional["Value"]:
        """Resolve one path segment against this value, or None if absent."""
        if self.kind is ValueKind.OBJECT:
            return self.data.get(segment)
        if self.kind is ValueKind.ARRAY and segment.isdigit():
            index = int(segment)
            if index < len(self.data):
                return self.data[index]
        return None

    def stringify(self) -> str:
        """
        Render this value for interpolation.

        Null -> "", Bool -> "true"/"false", Number -> canonical decimal,
        String -> itself.

        Raises:
            TypeError: for Array and Object values
        """
        if self.kind is ValueKind.NULL:
            return ""
        if self.kind is ValueKind.BOOL:
            return "true" if self.data else "false"
        if self.kind is ValueKind.NUMBER:
            return _format_number(self.data)
        if self.kind is ValueKind.STRING:
            return self.data
        raise TypeError(f"{self.kind.value} value is not directly interpolable")

    def to_python(self) -> Any:
        """Convert back into plain Python (dict/list/str/...)."""
        if self.kind is ValueKind.ARRAY:
            return [item.to_python() for item in self.data]
        if self.kind is ValueKind.OBJECT:
            return {key: item.to_python() for key, item in self.data.items()}
        return self.data


def _format_number(number: Any) -> str:
    # Integral floats print without a fractional part: 3.0 -> "3"
    if isinstance(number, float):
        if math.isfinite(number) and number.is_integer():
            return str(int(number))
        return repr(number)
    return str(number)


NULL = Value(ValueKind.NULL)
TRUE = Value(ValueKind.BOOL, True)
FALSE = Value(ValueKind.BOOL, False)
