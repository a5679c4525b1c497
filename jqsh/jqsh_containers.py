"""
Order-preserving container types shared by the value model.

`Seq` backs arrays and `OrderedMap` backs objects. Both compare by value so
that arrays and objects built from them can take part in equality and, when
every element is hashable, in hashing.
"""
import collections.abc
from typing import Any, Iterable, Iterator, Optional


class Seq(collections.abc.MutableSequence):
    """An ordered sequence with structural, order-sensitive equality."""

    def __init__(self, items: Optional[Iterable[Any]] = None):
        self.items = list(items) if items is not None else []

    def __getitem__(self, index):
        if isinstance(index, slice):
            return Seq(self.items[index])
        return self.items[index]

    def __setitem__(self, index, value):
        self.items[index] = value

    def __delitem__(self, index):
        del self.items[index]

    def __len__(self) -> int:
        return len(self.items)

    def insert(self, index, value):
        self.items.insert(index, value)

    def copy(self) -> 'Seq':
        return Seq(self.items)

    def __eq__(self, other):
        if isinstance(other, Seq):
            return self.items == other.items
        if isinstance(other, (list, tuple)):
            return self.items == list(other)
        return NotImplemented

    def __hash__(self):
        # Raises TypeError when an item is unhashable.
        return hash(tuple(self.items))

    def __repr__(self) -> str:
        return f"Seq({self.items!r})"


class OrderedMap(collections.abc.MutableMapping):
    """A unique-key mapping that iterates in first-insertion order.

    Re-assigning an existing key replaces its value in place; the key keeps
    its original position. Equality ignores order: two maps are equal when
    they hold the same keys with equal values.
    """

    def __init__(self, pairs: Optional[Iterable[Any]] = None):
        self.data: dict = {}
        if pairs is not None:
            if isinstance(pairs, collections.abc.Mapping):
                pairs = pairs.items()
            for key, value in pairs:
                self.data[key] = value

    def __getitem__(self, key):
        return self.data[key]

    def __setitem__(self, key, value):
        self.data[key] = value

    def __delitem__(self, key):
        del self.data[key]

    def __iter__(self) -> Iterator[Any]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def __contains__(self, key) -> bool:
        return key in self.data

    def copy(self) -> 'OrderedMap':
        return OrderedMap(self.data.items())

    def __eq__(self, other):
        if isinstance(other, OrderedMap):
            return self.data == other.data
        if isinstance(other, collections.abc.Mapping):
            return self.data == dict(other.items())
        return NotImplemented

    def __hash__(self):
        return hash(frozenset(self.data.items()))

    def __repr__(self) -> str:
        return f"OrderedMap({list(self.data.items())!r})"
