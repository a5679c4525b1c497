"""
Defines the core data types for the jqsh runtime.

Two sibling families live here:

  * `Value`, the full tagged union every filter consumes and produces
    (exception, null, boolean, number, string, array, object, function).
  * `HashableValue`, the restricted counterpart usable as an object key.
    It has no function variant and its arrays/objects only hold hashable
    children.

`widen()` turns a HashableValue into the equivalent Value and always
succeeds. `narrow()` goes the other way and fails for anything holding a
function.
"""

from abc import ABC, abstractmethod
from fractions import Fraction
from typing import Any, Generic, Iterable, Optional, TypeVar, Union

from jqsh.jqsh_containers import Seq, OrderedMap

T = TypeVar("T")


class UnhashableValueError(TypeError):
    """A value that cannot be used as an object key."""


class RaisedException(Exception):
    """Raised inside a builtin to emit a language-level exception value.

    The stage running the builtin catches it and sends the matching
    `ExceptionValue` downstream; it never escapes a stage.
    """
    def __init__(self, name: str, metadata: Any = None):
        self.name = name
        self.metadata = metadata
        super().__init__(name)

    def to_value(self) -> 'ExceptionValue':
        return ExceptionValue(self.name, _metadata_object(self.metadata))

    def __str__(self) -> str:
        return str(self.to_value())


def _metadata_object(metadata: Any) -> 'Object':
    if metadata is None:
        return Object()
    if isinstance(metadata, Object):
        return metadata
    pairs = []
    for key, value in metadata.items():
        if isinstance(key, str):
            key = HashableString(key)
        if isinstance(value, str):
            value = String(value)
        pairs.append((key, value))
    return Object(pairs)


def _as_fraction(n: Any) -> Fraction:
    if isinstance(n, bool):
        raise TypeError("booleans are not numbers")
    if isinstance(n, float):
        raise TypeError("floats must be converted explicitly, e.g. Fraction(str(f))")
    if isinstance(n, (int, Fraction)):
        return Fraction(n)
    if isinstance(n, str):
        return Fraction(n)
    raise TypeError(f"cannot make a number from {type(n).__name__}")


# =================================================================
# Value
# =================================================================

class Value(ABC):
    """Base class of every runtime value."""
    type_name = "value"

    # Values are compared structurally but never hashed; see HashableValue.
    __hash__ = None

    @abstractmethod
    def clone(self) -> 'Value':
        """Returns a structural copy that shares no mutable containers."""

    def narrow(self) -> 'HashableValue':
        raise UnhashableValueError(f"{self.type_name} values cannot be used as keys")

    def __str__(self) -> str:
        from jqsh.jqsh_printer import Printer
        return Printer().pformat(self)


class ExceptionValue(Value):
    """A raised condition: a symbolic name plus a metadata object.

    Equality looks at the name only.
    """
    type_name = "exception"

    def __init__(self, name: str, metadata: Optional['Object'] = None):
        self.name = name
        self.metadata = metadata if metadata is not None else Object()

    def clone(self) -> 'ExceptionValue':
        return ExceptionValue(self.name, self.metadata.clone())

    def narrow(self) -> 'HashableException':
        return HashableException(self.name, self.metadata.clone())

    def __eq__(self, other):
        if not isinstance(other, ExceptionValue):
            return NotImplemented
        return self.name == other.name

    def __repr__(self) -> str:
        return f"ExceptionValue({self.name!r}, {self.metadata!r})"


class Null(Value):
    type_name = "null"
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def clone(self) -> 'Null':
        return self

    def narrow(self) -> 'HashableNull':
        return HASHABLE_NULL

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return isinstance(other, Null)

    def __repr__(self) -> str:
        return "NULL"


class Boolean(Value):
    type_name = "boolean"

    def __init__(self, value: bool):
        self.value = bool(value)

    def clone(self) -> 'Boolean':
        return Boolean(self.value)

    def narrow(self) -> 'HashableBoolean':
        return HashableBoolean(self.value)

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return isinstance(other, Boolean) and self.value == other.value

    def __repr__(self) -> str:
        return f"Boolean({self.value!r})"


class Number(Value):
    """An exact rational number."""
    type_name = "number"

    def __init__(self, value: Union[int, Fraction, str]):
        self.value = _as_fraction(value)

    def clone(self) -> 'Number':
        return Number(self.value)

    def narrow(self) -> 'HashableNumber':
        return HashableNumber(self.value)

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return isinstance(other, Number) and self.value == other.value

    def __repr__(self) -> str:
        return f"Number({str(self.value)!r})"


class String(Value):
    type_name = "string"

    def __init__(self, value: str):
        self.value = value

    def clone(self) -> 'String':
        return String(self.value)

    def narrow(self) -> 'HashableString':
        return HashableString(self.value)

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return isinstance(other, String) and self.value == other.value

    def __repr__(self) -> str:
        return f"String({self.value!r})"


class Array(Value):
    type_name = "array"

    def __init__(self, items: Optional[Iterable[Value]] = None):
        self.items = items if isinstance(items, Seq) else Seq(items)

    def clone(self) -> 'Array':
        return Array(item.clone() for item in self.items)

    def narrow(self) -> 'HashableArray':
        return HashableArray(item.narrow() for item in self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return isinstance(other, Array) and self.items == other.items

    def __repr__(self) -> str:
        return f"Array({self.items.items!r})"


class Object(Value):
    """An order-preserving map from HashableValue keys to Values.

    Keys must already be hashable values; use `narrow()` to convert.
    """
    type_name = "object"

    def __init__(self, pairs: Optional[Iterable[Any]] = None):
        entries = OrderedMap(pairs)
        for key in entries:
            if not isinstance(key, HashableValue):
                raise TypeError(f"object keys must be hashable values, not {type(key).__name__}")
        self.entries = entries

    def clone(self) -> 'Object':
        return Object((key, value.clone()) for key, value in self.entries.items())

    def narrow(self) -> 'HashableObject':
        return HashableObject((key, value.narrow()) for key, value in self.entries.items())

    def get(self, key: 'HashableValue', default: Any = None) -> Any:
        return self.entries.get(key, default)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return isinstance(other, Object) and self.entries == other.entries

    def __repr__(self) -> str:
        return f"Object({list(self.entries.items())!r})"


class Function(Value):
    """Placeholder for closures and builtins used as values.

    Functions have identity only; they cannot be keys.
    """
    type_name = "function"

    def __init__(self, label: str = ""):
        self.label = label

    def clone(self) -> 'Function':
        return self

    def __repr__(self) -> str:
        return f"<Function {self.label}>" if self.label else "<Function>"


NULL = Null()
TRUE = Boolean(True)
FALSE = Boolean(False)


# =================================================================
# HashableValue
# =================================================================

class HashableValue(ABC):
    """Base class of values that may serve as object keys."""
    type_name = "value"

    @abstractmethod
    def widen(self) -> Value:
        """Converts to the equivalent Value without sharing containers."""

    def __str__(self) -> str:
        from jqsh.jqsh_printer import Printer
        return Printer().pformat(self)


class HashableException(HashableValue):
    type_name = "exception"

    def __init__(self, name: str, metadata: Optional[Object] = None):
        self.name = name
        self.metadata = metadata if metadata is not None else Object()

    def widen(self) -> ExceptionValue:
        return ExceptionValue(self.name, self.metadata.clone())

    # Identity by name only: metadata takes no part in equality or hashing.
    def __eq__(self, other):
        if not isinstance(other, HashableValue):
            return NotImplemented
        return isinstance(other, HashableException) and self.name == other.name

    def __hash__(self):
        return hash((0, self.name))

    def __repr__(self) -> str:
        return f"HashableException({self.name!r}, {self.metadata!r})"


class HashableNull(HashableValue):
    type_name = "null"
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def widen(self) -> Null:
        return NULL

    def __eq__(self, other):
        if not isinstance(other, HashableValue):
            return NotImplemented
        return isinstance(other, HashableNull)

    def __hash__(self):
        return hash((1,))

    def __repr__(self) -> str:
        return "HASHABLE_NULL"


class HashableBoolean(HashableValue):
    type_name = "boolean"

    def __init__(self, value: bool):
        self.value = bool(value)

    def widen(self) -> Boolean:
        return Boolean(self.value)

    def __eq__(self, other):
        if not isinstance(other, HashableValue):
            return NotImplemented
        return isinstance(other, HashableBoolean) and self.value == other.value

    def __hash__(self):
        return hash((2, self.value))

    def __repr__(self) -> str:
        return f"HashableBoolean({self.value!r})"


class HashableNumber(HashableValue):
    type_name = "number"

    def __init__(self, value: Union[int, Fraction, str]):
        self.value = _as_fraction(value)

    def widen(self) -> Number:
        return Number(self.value)

    def __eq__(self, other):
        if not isinstance(other, HashableValue):
            return NotImplemented
        return isinstance(other, HashableNumber) and self.value == other.value

    def __hash__(self):
        return hash((3, self.value))

    def __repr__(self) -> str:
        return f"HashableNumber({str(self.value)!r})"


class HashableString(HashableValue):
    type_name = "string"

    def __init__(self, value: str):
        self.value = value

    def widen(self) -> String:
        return String(self.value)

    def __eq__(self, other):
        if not isinstance(other, HashableValue):
            return NotImplemented
        return isinstance(other, HashableString) and self.value == other.value

    def __hash__(self):
        return hash((4, self.value))

    def __repr__(self) -> str:
        return f"HashableString({self.value!r})"


class HashableArray(HashableValue):
    type_name = "array"

    def __init__(self, items: Optional[Iterable[HashableValue]] = None):
        self.items = Seq(items)
        for item in self.items:
            if not isinstance(item, HashableValue):
                raise UnhashableValueError(f"array item {item!r} is not hashable")

    def widen(self) -> Array:
        return Array(item.widen() for item in self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __eq__(self, other):
        if not isinstance(other, HashableValue):
            return NotImplemented
        return isinstance(other, HashableArray) and self.items == other.items

    def __hash__(self):
        return hash((5, hash(self.items)))

    def __repr__(self) -> str:
        return f"HashableArray({self.items.items!r})"


class HashableObject(HashableValue):
    type_name = "object"

    def __init__(self, pairs: Optional[Iterable[Any]] = None):
        self.entries = OrderedMap(pairs)
        for key, value in self.entries.items():
            if not isinstance(key, HashableValue) or not isinstance(value, HashableValue):
                raise UnhashableValueError(f"object entry {key!r}: {value!r} is not hashable")

    def widen(self) -> Object:
        return Object((key, value.widen()) for key, value in self.entries.items())

    def __len__(self) -> int:
        return len(self.entries)

    def __eq__(self, other):
        if not isinstance(other, HashableValue):
            return NotImplemented
        return isinstance(other, HashableObject) and self.entries == other.entries

    def __hash__(self):
        return hash((6, hash(self.entries)))

    def __repr__(self) -> str:
        return f"HashableObject({list(self.entries.items())!r})"


HASHABLE_NULL = HashableNull()


def widen(value: HashableValue) -> Value:
    """Lossless HashableValue -> Value conversion."""
    return value.widen()


def narrow(value: Value) -> HashableValue:
    """Fallible Value -> HashableValue conversion.

    Raises UnhashableValueError when the value holds a function.
    """
    if isinstance(value, HashableValue):
        return value
    return value.narrow()


def key(text: str) -> HashableString:
    """Shorthand for the common string key."""
    return HashableString(text)


# =================================================================
# Labeled
# =================================================================

class Labeled(Generic[T]):
    """Pairs a payload with a display label.

    The label is for diagnostics only and takes no part in equality.
    Calls and attribute access go straight to the payload.
    """
    __slots__ = ("label", "value")

    def __init__(self, label: str, value: T):
        self.label = str(label)
        self.value = value

    def __call__(self, *args, **kwargs):
        return self.value(*args, **kwargs)

    def __getattr__(self, name: str):
        if name in Labeled.__slots__:
            raise AttributeError(name)
        return getattr(self.value, name)

    def __eq__(self, other):
        if isinstance(other, Labeled):
            return self.value == other.value
        return NotImplemented

    def __hash__(self):
        return hash(self.value)

    def __repr__(self) -> str:
        return self.label

