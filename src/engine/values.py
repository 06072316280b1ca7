"""Typed, immutable values and scopes that templates render against.

A *Value* is one of ``bool``, ``int``, ``float``, ``str``, a ``tuple`` of
Values (List) or a read-only mapping of ``str`` to Value (Map).  ``freeze``
turns plain JSON-like data into Values; the resulting trees can be shared
between threads without copying.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any, Optional, Union

Value = Union[bool, int, float, str, tuple, Mapping]

SPECIAL_VARIABLES = frozenset({"@index", "@key", "@first", "@last"})


class _Missing:
    """Sentinel for a path that does not resolve."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def freeze(data: Any) -> Value:
    """Convert plain Python data into an immutable Value tree.

    ``None`` entries inside maps and lists are dropped so they behave like
    absent paths.  Mapping keys must be strings.

    Raises:
        TypeError: If *data* (or anything nested in it) is not representable.
    """
    if isinstance(data, Enum):
        data = data.value
    if isinstance(data, (bool, int, float, str)):
        return data
    if isinstance(data, Mapping):
        frozen: dict[str, Value] = {}
        for key, item in data.items():
            if not isinstance(key, str):
                raise TypeError(f"Map keys must be strings, got {type(key).__name__}: {key!r}")
            if item is None:
                continue
            frozen[key] = freeze(item)
        return MappingProxyType(frozen)
    if isinstance(data, (list, tuple)):
        return tuple(freeze(item) for item in data if item is not None)
    raise TypeError(f"Unsupported value type: {type(data).__name__}")


def thaw(value: Value) -> Any:
    """Convert a Value tree back into plain ``dict``/``list`` data."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


def is_truthy(value: Any) -> bool:
    """Coerce a Value to bool.

    Falsy set: ``False``, ``0``, ``""``, empty List, empty Map and an absent
    path.  Everything else is truthy.
    """
    if value is MISSING:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (str, tuple, Mapping)):
        return len(value) > 0
    return True


def type_name(value: Any) -> str:
    """Human-readable Value type name used in error messages."""
    if value is MISSING:
        return "Missing"
    if isinstance(value, bool):
        return "Bool"
    if isinstance(value, (int, float)):
        return "Scalar"
    if isinstance(value, str):
        return "String"
    if isinstance(value, tuple):
        return "List"
    if isinstance(value, Mapping):
        return "Map"
    return type(value).__name__


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


class Context(Mapping):
    """The immutable root scope of a render.

    Behaves as a read-only ``Mapping[str, Value]``.  Constructed once per
    generation run and shared by every render in that run.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        if data is not None and not isinstance(data, Mapping):
            raise TypeError(f"Context data must be a mapping, not {type(data).__name__}")
        self._data = freeze(dict(data or {}))

    def __getitem__(self, key: str) -> Value:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Context({dict(self._data)!r})"

    def resolve(self, path: tuple[str, ...]) -> Any:
        """Walk *path* from the root; return ``MISSING`` if it does not resolve."""
        return walk(self._data, path)

    def to_dict(self) -> dict[str, Any]:
        """Return a plain, mutable deep copy of the context data."""
        return thaw(self._data)

    @property
    def warnings(self) -> tuple[str, ...]:
        """Diagnostics recorded under the reserved ``_warnings`` key."""
        value = self._data.get("_warnings", ())
        return value if isinstance(value, tuple) else ()


def walk(value: Any, segments: tuple[str, ...]) -> Any:
    """Descend into nested Maps and Lists following *segments*."""
    current = value
    for segment in segments:
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, tuple) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


class Scope:
    """A child scope created for one iteration of an ``each`` block.

    Only ``this`` and the ``@`` variables are bound here; named paths always
    resolve against the root Context, so nesting never hides them.
    """

    __slots__ = ("context", "this", "bindings")

    def __init__(
        self,
        context: Context,
        this: Any = MISSING,
        bindings: Mapping[str, Value] | None = None,
    ) -> None:
        self.context = context
        self.this = context if this is MISSING else this
        self.bindings = MappingProxyType(dict(bindings or {}))

    def child(self, this: Value, **bindings: Value) -> "Scope":
        """Return a new scope for one loop iteration over *this*."""
        return Scope(
            self.context,
            this=this,
            bindings={f"@{name}": value for name, value in bindings.items()},
        )

    def resolve(self, path: tuple[str, ...]) -> Any:
        head, rest = path[0], path[1:]
        if head == "this":
            return walk(self.this, rest)
        if head in SPECIAL_VARIABLES:
            return self.bindings.get(head, MISSING)
        return self.context.resolve(path)
