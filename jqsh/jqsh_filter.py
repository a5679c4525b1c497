"""
Filter expressions and their evaluation over channels.

Every node implements `run(input, output)`: it reads the input Receiver,
writes results to the output Sender and settles the output context before
its first emission. Nodes that map each input value on its own derive
from `ValueFilter`, which also forwards incoming exception values
untouched.
"""
from abc import ABC, abstractmethod
import math
from typing import Iterable, List, Optional, Sequence, Tuple

from jqsh.jqsh_channel import Receiver, Sender, forward
from jqsh.jqsh_context import Builtin, Context, Definition, filter_key
from jqsh.jqsh_containers import OrderedMap
from jqsh.jqsh_datatypes import (
    Value, ExceptionValue, Null, Boolean, Number, String, Array, Object, Function,
    HashableString, RaisedException, NULL, TRUE, FALSE,
)


# =================================================================
# Value helpers
# =================================================================

def truthy(value: Value) -> bool:
    """Only null and false are falsy."""
    if isinstance(value, Null):
        return False
    if isinstance(value, Boolean):
        return value.value
    return True


def type_error(message: str) -> RaisedException:
    return RaisedException("type-error", {"message": String(message)})


def describe(value: Value) -> str:
    text = str(value)
    if len(text) > 11:
        text = text[:10] + "..."
    return f"{value.type_name} ({text})"


_TYPE_ORDER = {
    Null: 0,
    Number: 3,
    String: 4,
    Array: 5,
    Object: 6,
    ExceptionValue: 7,
    Function: 8,
}


def _rank(value: Value) -> int:
    if isinstance(value, Boolean):
        return 2 if value.value else 1
    return _TYPE_ORDER[type(value)]


def compare(a: Value, b: Value) -> int:
    """Total order across types: null < false < true < numbers < strings < arrays < objects."""
    ra, rb = _rank(a), _rank(b)
    if ra != rb:
        return -1 if ra < rb else 1
    if isinstance(a, (Number, String)):
        return (a.value > b.value) - (a.value < b.value)
    if isinstance(a, Array):
        for x, y in zip(a.items, b.items):
            c = compare(x, y)
            if c:
                return c
        return (len(a) > len(b)) - (len(a) < len(b))
    if isinstance(a, Object):
        ka = sorted_keys(a)
        kb = sorted_keys(b)
        c = compare(Array(k.widen() for k in ka), Array(k.widen() for k in kb))
        if c:
            return c
        for k in ka:
            c = compare(a.entries[k], b.entries[k])
            if c:
                return c
        return 0
    if isinstance(a, ExceptionValue):
        return (a.name > b.name) - (a.name < b.name)
    return 0


def sorted_keys(obj: Object) -> list:
    keys = list(obj.entries)
    keys.sort(key=_SortKey)
    return keys


class _SortKey:
    __slots__ = ("value",)

    def __init__(self, value):
        self.value = value.widen() if not isinstance(value, Value) else value

    def __lt__(self, other):
        return compare(self.value, other.value) < 0


def sort_values(values: Iterable[Value]) -> list:
    return sorted(values, key=_SortKey)


def _any_reads(filters: Iterable[Optional['Filter']], context: Context, active: frozenset) -> bool:
    return any(f is not None and f.reads_input(context, active) for f in filters)


def add_values(a: Value, b: Value) -> Value:
    if isinstance(a, Null):
        return b
    if isinstance(b, Null):
        return a
    if isinstance(a, Number) and isinstance(b, Number):
        return Number(a.value + b.value)
    if isinstance(a, String) and isinstance(b, String):
        return String(a.value + b.value)
    if isinstance(a, Array) and isinstance(b, Array):
        return Array(list(a.items) + list(b.items))
    if isinstance(a, Object) and isinstance(b, Object):
        merged = a.entries.copy()
        merged.update(b.entries)
        return Object(merged.items())
    raise type_error(f"{describe(a)} and {describe(b)} cannot be added")


def subtract_values(a: Value, b: Value) -> Value:
    if isinstance(a, Number) and isinstance(b, Number):
        return Number(a.value - b.value)
    if isinstance(a, Array) and isinstance(b, Array):
        return Array(item for item in a.items if item not in b.items)
    raise type_error(f"{describe(a)} and {describe(b)} cannot be subtracted")


def multiply_values(a: Value, b: Value) -> Value:
    if isinstance(a, Number) and isinstance(b, Number):
        return Number(a.value * b.value)
    if isinstance(a, Object) and isinstance(b, Object):
        return add_values(a, b)
    raise type_error(f"{describe(a)} and {describe(b)} cannot be multiplied")


def divide_values(a: Value, b: Value) -> Value:
    if isinstance(a, Number) and isinstance(b, Number):
        if b.value == 0:
            raise RaisedException("zero-division", {"message": String(f"{describe(a)} cannot be divided by zero")})
        return Number(a.value / b.value)
    if isinstance(a, String) and isinstance(b, String):
        return Array(String(part) for part in a.value.split(b.value))
    raise type_error(f"{describe(a)} and {describe(b)} cannot be divided")


def modulo_values(a: Value, b: Value) -> Value:
    if isinstance(a, Number) and isinstance(b, Number):
        x, y = math.trunc(a.value), math.trunc(b.value)
        if y == 0:
            raise RaisedException("zero-division", {"message": String(f"{describe(a)} cannot be divided by zero")})
        r = abs(x) % abs(y)
        return Number(-r if x < 0 else r)
    raise type_error(f"{describe(a)} and {describe(b)} cannot be divided")


BINARY_OPS = {
    "+": add_values,
    "-": subtract_values,
    "*": multiply_values,
    "/": divide_values,
    "%": modulo_values,
    "==": lambda a, b: Boolean(a == b),
    "!=": lambda a, b: Boolean(a != b),
    "<": lambda a, b: Boolean(compare(a, b) < 0),
    "<=": lambda a, b: Boolean(compare(a, b) <= 0),
    ">": lambda a, b: Boolean(compare(a, b) > 0),
    ">=": lambda a, b: Boolean(compare(a, b) >= 0),
}


def index_value(target: Value, index: Value) -> Value:
    if isinstance(target, Null):
        if isinstance(index, (String, Number, Null)):
            return NULL
    elif isinstance(target, Object) and isinstance(index, String):
        return target.get(HashableString(index.value), NULL)
    elif isinstance(target, Array) and isinstance(index, Number):
        i = math.floor(index.value)
        if i < 0:
            i += len(target)
        if 0 <= i < len(target):
            return target.items[i]
        return NULL
    raise type_error(f"Cannot index {target.type_name} with {describe(index)}")


def slice_value(target: Value, start: Value, end: Value) -> Value:
    if isinstance(target, Null):
        return NULL
    if not isinstance(target, (Array, String)):
        raise type_error(f"Cannot slice {describe(target)}")
    bounds = []
    for bound in (start, end):
        if isinstance(bound, Null):
            bounds.append(None)
        elif isinstance(bound, Number):
            bounds.append(math.floor(bound.value))
        else:
            raise type_error("Start and end indices of a slice must be numbers")
    s = slice(*bounds)
    if isinstance(target, String):
        return String(target.value[s])
    return Array(target.items.items[s])


def subquery(expr: 'Filter', context: Context, value: Value, queue_size: int) -> Receiver:
    """Evaluates `expr` on a single input value in its own stage."""
    return Receiver.single(context, value, queue_size).filter(expr)


async def first_output(expr: 'Filter', context: Context, value: Value, queue_size: int) -> Optional[Value]:
    async with subquery(expr, context, value, queue_size) as receiver:
        async for out in receiver:
            return out
    return None


async def all_outputs(expr: 'Filter', context: Context, value: Value, queue_size: int) -> List[Value]:
    async with subquery(expr, context, value, queue_size) as receiver:
        return await receiver.collect()


# =================================================================
# Filter base classes
# =================================================================

class Filter(ABC):
    """An expression that turns an input stream into an output stream."""

    @abstractmethod
    async def run(self, input: Receiver, output: Sender):
        """Reads `input`, writes to `output`. Settles the context before emitting."""

    def reads_input(self, context: Context, active: frozenset = frozenset()) -> bool:
        """Whether the outputs can depend on the input values.

        `active` holds the definitions already being inspected, so recursive
        filters terminate.
        """
        return True

    def __repr__(self) -> str:
        fields = ", ".join(f"{v!r}" for v in vars(self).values())
        return f"{type(self).__name__}({fields})"

    def __eq__(self, other):
        return type(self) is type(other) and vars(self) == vars(other)

    __hash__ = object.__hash__


class ValueFilter(Filter):
    """A filter applied to each input value independently.

    The output context is the input context. Exception values in the input
    are passed on unchanged.
    """

    async def run(self, input: Receiver, output: Sender):
        context = await input.get_context()
        output.set_context(context)
        async for value in input:
            if isinstance(value, ExceptionValue):
                await output.send(value)
                continue
            try:
                await self.apply(value, context, input.queue_size, output)
            except RaisedException as e:
                await output.send(e.to_value())

    @abstractmethod
    async def apply(self, value: Value, context: Context, queue_size: int, output: Sender):
        """Emits the outputs for one input value."""


# =================================================================
# Structural filters
# =================================================================

class Empty(Filter):
    """Produces nothing. Also stands in for input that failed to parse."""

    def reads_input(self, context, active=frozenset()):
        return False

    async def run(self, input: Receiver, output: Sender):
        output.set_context(await input.get_context())

    def __repr__(self) -> str:
        return "Empty()"


class Identity(ValueFilter):
    async def apply(self, value, context, queue_size, output):
        await output.send(value)

    def __repr__(self) -> str:
        return "Identity()"


class Literal(ValueFilter):
    def __init__(self, value: Value):
        self.value = value

    def reads_input(self, context, active=frozenset()):
        return False

    async def apply(self, value, context, queue_size, output):
        await output.send(self.value)


class Pipe(Filter):
    """`lhs | rhs`: two stages chained; the output context is rhs's."""

    def __init__(self, lhs: Filter, rhs: Filter):
        self.lhs = lhs
        self.rhs = rhs

    def reads_input(self, context, active=frozenset()):
        return self.lhs.reads_input(context, active)

    async def run(self, input: Receiver, output: Sender):
        await forward(input.filter(self.lhs).filter(self.rhs), output)


class Comma(ValueFilter):
    """`lhs, rhs`: both branches run concurrently; lhs outputs come first."""

    def __init__(self, lhs: Filter, rhs: Filter):
        self.lhs = lhs
        self.rhs = rhs

    def reads_input(self, context, active=frozenset()):
        return _any_reads((self.lhs, self.rhs), context, active)

    async def apply(self, value, context, queue_size, output):
        left = subquery(self.lhs, context, value, queue_size)
        right = subquery(self.rhs, context, value, queue_size)
        try:
            await forward(left, output, settle=False)
            await forward(right, output, settle=False)
        finally:
            left.close()
            right.close()


class Define(Filter):
    """`def name(params): body; rest`.

    The new binding is part of the output context, which is settled before
    `rest` produces anything. Without `rest` the stage only adds the
    binding and emits nothing.
    """

    def __init__(self, name: str, params: Sequence[str], body: Filter, rest: Optional[Filter] = None):
        self.name = name
        self.params = list(params)
        self.body = body
        self.rest = rest

    def reads_input(self, context, active=frozenset()):
        if self.rest is None:
            return False
        definition = Definition(self.name, self.params, self.body, context)
        return self.rest.reads_input(context.bind_filter(self.name, definition), active)

    async def run(self, input: Receiver, output: Sender):
        context = await input.get_context()
        definition = Definition(self.name, self.params, self.body, context)
        bound = context.bind_filter(self.name, definition)
        if self.rest is None:
            output.set_context(bound)
            return
        await forward(input.with_context(bound).filter(self.rest), output)


class Call(Filter):
    """Invokes a builtin or a user definition by name and arity."""

    def __init__(self, name: str, args: Sequence[Filter] = ()):
        self.name = name
        self.args = list(args)

    def reads_input(self, context, active=frozenset()):
        binding = context.lookup_filter(self.name, len(self.args))
        if binding is None:
            return False
        if isinstance(binding, Builtin):
            return binding.reads_input or _any_reads(self.args, context, active)
        if binding in active:
            return False
        return binding.body.reads_input(self._call_context(binding, context), active | {binding})

    async def run(self, input: Receiver, output: Sender):
        context = await input.get_context()
        binding = context.lookup_filter(self.name, len(self.args))
        if isinstance(binding, Builtin):
            await binding.function(self.args, input, output)
            return
        output.set_context(context)
        if binding is None:
            missing = RaisedException("undefined-filter", {"name": String(filter_key(self.name, len(self.args)))})
            async for _ in input:
                await output.send(missing.to_value())
            return
        call_context = self._call_context(binding, context)
        await forward(input.with_context(call_context).filter(binding.body), output, settle=False)

    def _call_context(self, definition: Definition, caller: Context) -> Context:
        if definition.is_param:
            return definition.closure
        bindings = {filter_key(definition.name, definition.arity): definition}
        for param, arg in zip(definition.params, self.args):
            # Arguments are closures over the caller's context.
            bindings[filter_key(param, 0)] = Definition(param, [], arg, caller, is_param=True)
        return definition.closure.bind(bindings)


class VariableRef(ValueFilter):
    def __init__(self, name: str):
        self.name = name

    def reads_input(self, context, active=frozenset()):
        return False

    async def apply(self, value, context, queue_size, output):
        binding = context.lookup_variable(self.name)
        if binding is None:
            raise RaisedException("undefined-variable", {"name": String(f"${self.name}")})
        await output.send(binding.value)


class Bind(ValueFilter):
    """`source as $name | body`."""

    def __init__(self, source: Filter, name: str, body: Filter):
        self.source = source
        self.name = name
        self.body = body

    def reads_input(self, context, active=frozenset()):
        return _any_reads((self.source, self.body), context, active)

    async def apply(self, value, context, queue_size, output):
        async with subquery(self.source, context, value, queue_size) as sources:
            async for bound in sources:
                if isinstance(bound, ExceptionValue):
                    await output.send(bound)
                    continue
                inner = subquery(self.body, context.bind_variable(self.name, bound), value, queue_size)
                await forward(inner, output, settle=False)


class Reduce(ValueFilter):
    """`reduce source as $name (init; update)`."""

    def __init__(self, source: Filter, name: str, init: Filter, update: Filter):
        self.source = source
        self.name = name
        self.init = init
        self.update = update

    def reads_input(self, context, active=frozenset()):
        # `.` inside `update` is the accumulator.
        return _any_reads((self.source, self.init), context, active)

    async def apply(self, value, context, queue_size, output):
        for acc in await all_outputs(self.init, context, value, queue_size):
            async with subquery(self.source, context, value, queue_size) as sources:
                async for bound in sources:
                    if isinstance(bound, ExceptionValue):
                        acc = bound
                        break
                    results = await all_outputs(self.update, context.bind_variable(self.name, bound), acc, queue_size)
                    acc = results[-1] if results else NULL
                    if isinstance(acc, ExceptionValue):
                        break
            await output.send(acc)


class If(ValueFilter):
    """`if cond then a else b end`; elif chains nest in `otherwise`."""

    def __init__(self, cond: Filter, then: Filter, otherwise: Optional[Filter] = None):
        self.cond = cond
        self.then = then
        self.otherwise = otherwise if otherwise is not None else Identity()

    def reads_input(self, context, active=frozenset()):
        return _any_reads((self.cond, self.then, self.otherwise), context, active)

    async def apply(self, value, context, queue_size, output):
        async with subquery(self.cond, context, value, queue_size) as conds:
            async for c in conds:
                if isinstance(c, ExceptionValue):
                    await output.send(c)
                    continue
                branch = self.then if truthy(c) else self.otherwise
                await forward(subquery(branch, context, value, queue_size), output, settle=False)


class TryCatch(ValueFilter):
    """`try body catch handler`, `try body` and `body?`.

    Output of `body` stops at its first exception. An exception arriving as
    input is caught the same way, without running `body`. The handler
    receives the exception's "message" metadata entry when it has one, else
    its name. Without a handler the exception is dropped.
    """

    def __init__(self, body: Filter, handler: Optional[Filter] = None):
        self.body = body
        self.handler = handler

    def reads_input(self, context, active=frozenset()):
        return self.body.reads_input(context, active)

    async def run(self, input: Receiver, output: Sender):
        context = await input.get_context()
        output.set_context(context)
        async for value in input:
            try:
                if isinstance(value, ExceptionValue):
                    await self.handle(value, context, input.queue_size, output)
                else:
                    await self.apply(value, context, input.queue_size, output)
            except RaisedException as e:
                await output.send(e.to_value())

    async def apply(self, value, context, queue_size, output):
        caught = None
        async with subquery(self.body, context, value, queue_size) as results:
            async for result in results:
                if isinstance(result, ExceptionValue):
                    caught = result
                    break
                await output.send(result)
        if caught is not None:
            await self.handle(caught, context, queue_size, output)

    async def handle(self, caught: ExceptionValue, context: Context, queue_size: int, output: Sender):
        if self.handler is None:
            return
        message = caught.metadata.get(HashableString("message"))
        handler_input = message if message is not None else String(caught.name)
        await forward(subquery(self.handler, context, handler_input, queue_size), output, settle=False)


# =================================================================
# Paths and constructors
# =================================================================

class Index(ValueFilter):
    """`target[index]`, `.name` and `."name"`."""

    def __init__(self, target: Filter, index: Filter):
        self.target = target
        self.index = index

    def reads_input(self, context, active=frozenset()):
        return _any_reads((self.target, self.index), context, active)

    async def apply(self, value, context, queue_size, output):
        indices = await all_outputs(self.index, context, value, queue_size)
        async with subquery(self.target, context, value, queue_size) as targets:
            async for target in targets:
                if isinstance(target, ExceptionValue):
                    await output.send(target)
                    continue
                for index in indices:
                    if isinstance(index, ExceptionValue):
                        await output.send(index)
                        continue
                    try:
                        await output.send(index_value(target, index))
                    except RaisedException as e:
                        await output.send(e.to_value())


class Slice(ValueFilter):
    """`target[start:end]`; a missing bound is null."""

    def __init__(self, target: Filter, start: Optional[Filter], end: Optional[Filter]):
        self.target = target
        self.start = start if start is not None else Literal(NULL)
        self.end = end if end is not None else Literal(NULL)

    def reads_input(self, context, active=frozenset()):
        return _any_reads((self.target, self.start, self.end), context, active)

    async def apply(self, value, context, queue_size, output):
        starts = await all_outputs(self.start, context, value, queue_size)
        ends = await all_outputs(self.end, context, value, queue_size)
        async with subquery(self.target, context, value, queue_size) as targets:
            async for target in targets:
                if isinstance(target, ExceptionValue):
                    await output.send(target)
                    continue
                for start in starts:
                    if isinstance(start, ExceptionValue):
                        await output.send(start)
                        continue
                    for end in ends:
                        if isinstance(end, ExceptionValue):
                            await output.send(end)
                            continue
                        try:
                            await output.send(slice_value(target, start, end))
                        except RaisedException as e:
                            await output.send(e.to_value())


class Iterate(ValueFilter):
    """`target[]`: every element of an array or value of an object."""

    def __init__(self, target: Filter):
        self.target = target

    def reads_input(self, context, active=frozenset()):
        return self.target.reads_input(context, active)

    async def apply(self, value, context, queue_size, output):
        async with subquery(self.target, context, value, queue_size) as targets:
            async for target in targets:
                if isinstance(target, Array):
                    for item in list(target.items):
                        await output.send(item)
                elif isinstance(target, Object):
                    for item in list(target.entries.values()):
                        await output.send(item)
                elif isinstance(target, ExceptionValue):
                    await output.send(target)
                else:
                    await output.send(type_error(f"Cannot iterate over {describe(target)}").to_value())


class ArrayConstruct(ValueFilter):
    """`[body]`; an exception among the items replaces the whole array."""

    def __init__(self, body: Filter):
        self.body = body

    def reads_input(self, context, active=frozenset()):
        return self.body.reads_input(context, active)

    async def apply(self, value, context, queue_size, output):
        items = []
        async with subquery(self.body, context, value, queue_size) as results:
            async for item in results:
                if isinstance(item, ExceptionValue):
                    await output.send(item)
                    return
                items.append(item)
        await output.send(Array(items))


class ObjectConstruct(ValueFilter):
    """`{k: v, ...}`: one object per combination of key and value outputs."""

    def __init__(self, entries: Sequence[Tuple[Filter, Filter]]):
        self.entries = list(entries)

    def reads_input(self, context, active=frozenset()):
        return _any_reads((part for entry in self.entries for part in entry), context, active)

    async def apply(self, value, context, queue_size, output):
        combos = [OrderedMap()]
        for key_filter, value_filter in self.entries:
            keys = await all_outputs(key_filter, context, value, queue_size)
            values = await all_outputs(value_filter, context, value, queue_size)
            grown = []
            for combo in combos:
                for k in keys:
                    if isinstance(k, ExceptionValue):
                        await output.send(k)
                        return
                    if not isinstance(k, String):
                        raise type_error(f"Object keys must be strings, not {describe(k)}")
                    for v in values:
                        if isinstance(v, ExceptionValue):
                            await output.send(v)
                            return
                        entry = combo.copy()
                        entry[HashableString(k.value)] = v
                        grown.append(entry)
            combos = grown
        for combo in combos:
            await output.send(Object(combo.items()))


# =================================================================
# Operators
# =================================================================

class BinaryOp(ValueFilter):
    """Arithmetic and comparison. The right operand is the outer loop, as in jq."""

    def __init__(self, op: str, lhs: Filter, rhs: Filter):
        if op not in BINARY_OPS:
            raise ValueError(f"unknown operator {op!r}")
        self.op = op
        self.lhs = lhs
        self.rhs = rhs

    def reads_input(self, context, active=frozenset()):
        return _any_reads((self.lhs, self.rhs), context, active)

    async def apply(self, value, context, queue_size, output):
        fn = BINARY_OPS[self.op]
        lefts = await all_outputs(self.lhs, context, value, queue_size)
        async with subquery(self.rhs, context, value, queue_size) as rights:
            async for r in rights:
                if isinstance(r, ExceptionValue):
                    await output.send(r)
                    continue
                for l in lefts:
                    if isinstance(l, ExceptionValue):
                        await output.send(l)
                        continue
                    try:
                        await output.send(fn(l, r))
                    except RaisedException as e:
                        await output.send(e.to_value())


class And(ValueFilter):
    def __init__(self, lhs: Filter, rhs: Filter):
        self.lhs = lhs
        self.rhs = rhs

    def reads_input(self, context, active=frozenset()):
        return _any_reads((self.lhs, self.rhs), context, active)

    async def apply(self, value, context, queue_size, output):
        async with subquery(self.lhs, context, value, queue_size) as lefts:
            async for l in lefts:
                if isinstance(l, ExceptionValue):
                    await output.send(l)
                elif not truthy(l):
                    await output.send(FALSE)
                else:
                    for r in await all_outputs(self.rhs, context, value, queue_size):
                        await output.send(r if isinstance(r, ExceptionValue) else Boolean(truthy(r)))


class Or(ValueFilter):
    def __init__(self, lhs: Filter, rhs: Filter):
        self.lhs = lhs
        self.rhs = rhs

    def reads_input(self, context, active=frozenset()):
        return _any_reads((self.lhs, self.rhs), context, active)

    async def apply(self, value, context, queue_size, output):
        async with subquery(self.lhs, context, value, queue_size) as lefts:
            async for l in lefts:
                if isinstance(l, ExceptionValue):
                    await output.send(l)
                elif truthy(l):
                    await output.send(TRUE)
                else:
                    for r in await all_outputs(self.rhs, context, value, queue_size):
                        await output.send(r if isinstance(r, ExceptionValue) else Boolean(truthy(r)))


class Alternative(ValueFilter):
    """`lhs // rhs`: the truthy outputs of lhs, or else all outputs of rhs."""

    def __init__(self, lhs: Filter, rhs: Filter):
        self.lhs = lhs
        self.rhs = rhs

    def reads_input(self, context, active=frozenset()):
        return _any_reads((self.lhs, self.rhs), context, active)

    async def apply(self, value, context, queue_size, output):
        found = False
        async with subquery(self.lhs, context, value, queue_size) as lefts:
            async for l in lefts:
                if not isinstance(l, ExceptionValue) and truthy(l):
                    found = True
                    await output.send(l)
        if not found:
            await forward(subquery(self.rhs, context, value, queue_size), output, settle=False)


class Negate(ValueFilter):
    def __init__(self, operand: Filter):
        self.operand = operand

    def reads_input(self, context, active=frozenset()):
        return self.operand.reads_input(context, active)

    async def apply(self, value, context, queue_size, output):
        async with subquery(self.operand, context, value, queue_size) as operands:
            async for x in operands:
                if isinstance(x, Number):
                    await output.send(Number(-x.value))
                elif isinstance(x, ExceptionValue):
                    await output.send(x)
                else:
                    await output.send(type_error(f"{describe(x)} cannot be negated").to_value())
