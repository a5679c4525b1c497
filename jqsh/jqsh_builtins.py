import inspect
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, Optional

from jqsh.jqsh_channel import DEFAULT_QUEUE_SIZE, Receiver, Sender, _dbg
from jqsh.jqsh_context import Binding, Builtin, Context, filter_key
from jqsh.jqsh_datatypes import (
    Value, ExceptionValue, Null, Boolean, Number, String, Array, Object,
    HashableString, Labeled, RaisedException, NULL, TRUE, FALSE,
)
from jqsh.jqsh_filter import (
    Filter, add_values, all_outputs, describe, sorted_keys, subquery, truthy, type_error,
)
from jqsh.jqsh_parser import parse
from jqsh.jqsh_serialize import deserialize, serialize


def jqsh_builtin(name: str, arity: int = 0, reads_input: bool = True):
    """Marks a StdLib method as the builtin `name/arity`.

    Pass `reads_input=False` when the builtin looks only at its arguments.
    """
    def mark(func):
        func._jqsh_builtin = (name, arity, reads_input)
        return func
    return mark


async def _each(input: Receiver, output: Sender, apply: Callable[[Value, Context], Awaitable[None]]):
    """Runs `apply` for every non-exception input value.

    Settles the output context with the input context first. Exception
    inputs pass through, and a RaisedException from `apply` is emitted as a
    value.
    """
    context = await input.get_context()
    output.set_context(context)
    async for value in input:
        if isinstance(value, ExceptionValue):
            await output.send(value)
            continue
        try:
            await apply(value, context)
        except RaisedException as e:
            await output.send(e.to_value())


async def _map(input: Receiver, output: Sender, fn: Callable[[Value], Value]):
    async def apply(value, context):
        await output.send(fn(value))
    await _each(input, output, apply)


def _integer(value: Value, what: str) -> int:
    if not isinstance(value, Number) or value.value.denominator != 1:
        raise type_error(f"{what} must be an integer, not {describe(value)}")
    return int(value.value)


def _items(value: Value) -> list:
    if isinstance(value, Array):
        return list(value.items)
    if isinstance(value, Object):
        return list(value.entries.values())
    raise type_error(f"Cannot iterate over {describe(value)}")


# ===================================================================
# The Standard Library
# ===================================================================
class StdLib:
    """Python implementations of the jqsh builtins.

    Every method marked with @jqsh_builtin has the signature
    `(args, input, output)`: the unevaluated argument filters, the input
    Receiver and the output Sender.
    """

    def bindings(self) -> Dict[str, Binding]:
        out: Dict[str, Binding] = {}
        for _, member in inspect.getmembers(self):
            marker = getattr(member, "_jqsh_builtin", None)
            if marker is None or not callable(member):
                continue
            name, arity, reads_input = marker
            label = filter_key(name, arity)
            out[label] = Builtin(Labeled(label, member), arity, reads_input)
        return out

    # --- Basics ---
    @jqsh_builtin("empty", 0, reads_input=False)
    async def _empty(self, args, input, output):
        async def apply(value, context):
            return None
        await _each(input, output, apply)

    @jqsh_builtin("not")
    async def _not(self, args, input, output):
        await _map(input, output, lambda v: Boolean(not truthy(v)))

    @jqsh_builtin("type")
    async def _type(self, args, input, output):
        await _map(input, output, lambda v: String(v.type_name))

    @jqsh_builtin("length")
    async def _length(self, args, input, output):
        def length(value):
            if isinstance(value, Null):
                return Number(0)
            if isinstance(value, Number):
                return Number(abs(value.value))
            if isinstance(value, String):
                return Number(len(value.value))
            if isinstance(value, (Array, Object)):
                return Number(len(value))
            raise type_error(f"{describe(value)} has no length")
        await _map(input, output, length)

    @jqsh_builtin("keys")
    async def _keys(self, args, input, output):
        def keys(value):
            if isinstance(value, Object):
                return Array(k.widen() for k in sorted_keys(value))
            if isinstance(value, Array):
                return Array(Number(i) for i in range(len(value)))
            raise type_error(f"{describe(value)} has no keys")
        await _map(input, output, keys)

    @jqsh_builtin("has", 1)
    async def _has(self, args, input, output):
        async def apply(value, context):
            for k in await all_outputs(args[0], context, value, input.queue_size):
                if isinstance(k, ExceptionValue):
                    await output.send(k)
                elif isinstance(value, Object) and isinstance(k, String):
                    await output.send(Boolean(HashableString(k.value) in value.entries))
                elif isinstance(value, Array) and isinstance(k, Number):
                    await output.send(Boolean(0 <= k.value < len(value)))
                else:
                    raise type_error(f"Cannot check whether {value.type_name} has a {k.type_name} key")
        await _each(input, output, apply)

    @jqsh_builtin("add")
    async def _add(self, args, input, output):
        def add(value):
            total = NULL
            for item in _items(value):
                total = add_values(total, item)
            return total
        await _map(input, output, add)

    # --- Generators ---
    @jqsh_builtin("range", 1, reads_input=False)
    async def _range1(self, args, input, output):
        async def apply(value, context):
            for upto in await all_outputs(args[0], context, value, input.queue_size):
                await self._count(Number(0), upto, output)
        await _each(input, output, apply)

    @jqsh_builtin("range", 2, reads_input=False)
    async def _range2(self, args, input, output):
        async def apply(value, context):
            starts = await all_outputs(args[0], context, value, input.queue_size)
            ends = await all_outputs(args[1], context, value, input.queue_size)
            for start in starts:
                for upto in ends:
                    await self._count(start, upto, output)
        await _each(input, output, apply)

    async def _count(self, start: Value, upto: Value, output: Sender):
        for bound in (start, upto):
            if isinstance(bound, ExceptionValue):
                await output.send(bound)
                return
            if not isinstance(bound, Number):
                raise type_error(f"Range bounds must be numeric, not {describe(bound)}")
        i = start.value
        while i < upto.value:
            await output.send(Number(i))
            i += 1

    @jqsh_builtin("repeat", 1)
    async def _repeat(self, args, input, output):
        async def apply(value, context):
            await self._descend(args[0], context, value, input.queue_size, output)
        await _each(input, output, apply)

    @jqsh_builtin("recurse", 1)
    async def _recurse(self, args, input, output):
        async def apply(value, context):
            await self._descend(args[0], context, value, input.queue_size, output)
        await _each(input, output, apply)

    async def _descend(self, f: Filter, context: Context, value: Value, queue_size: int, output: Sender):
        """Emits `value`, then depth-first every output of repeatedly applying `f`."""
        await output.send(value)
        stack = [subquery(f, context, value, queue_size)]
        try:
            while stack:
                try:
                    child = await stack[-1].__anext__()
                except StopAsyncIteration:
                    stack.pop().close()
                    continue
                await output.send(child)
                if not isinstance(child, ExceptionValue):
                    stack.append(subquery(f, context, child, queue_size))
        finally:
            for receiver in stack:
                receiver.close()

    # --- Short-circuiting ---
    @jqsh_builtin("limit", 2, reads_input=False)
    async def _limit(self, args, input, output):
        async def apply(value, context):
            for n in await all_outputs(args[0], context, value, input.queue_size):
                if isinstance(n, ExceptionValue):
                    await output.send(n)
                    continue
                remaining = _integer(n, "limit")
                if remaining <= 0:
                    continue
                async with subquery(args[1], context, value, input.queue_size) as results:
                    async for result in results:
                        await output.send(result)
                        remaining -= 1
                        if remaining == 0:
                            break
        await _each(input, output, apply)

    @jqsh_builtin("first", 1, reads_input=False)
    async def _first(self, args, input, output):
        async def apply(value, context):
            async with subquery(args[0], context, value, input.queue_size) as results:
                async for result in results:
                    await output.send(result)
                    break
        await _each(input, output, apply)

    @jqsh_builtin("isempty", 1, reads_input=False)
    async def _isempty(self, args, input, output):
        async def apply(value, context):
            empty = True
            async with subquery(args[0], context, value, input.queue_size) as results:
                async for _ in results:
                    empty = False
                    break
            await output.send(TRUE if empty else FALSE)
        await _each(input, output, apply)

    # --- Conversion ---
    @jqsh_builtin("tojson")
    async def _tojson(self, args, input, output):
        await _map(input, output, _tojson)

    @jqsh_builtin("tostring")
    async def _tostring(self, args, input, output):
        await _map(input, output, lambda v: v if isinstance(v, String) else _tojson(v))

    @jqsh_builtin("fromjson")
    async def _fromjson(self, args, input, output):
        async def apply(value, context):
            if not isinstance(value, String):
                raise type_error(f"{describe(value)} cannot be parsed as JSON")
            try:
                docs = deserialize(value.value, fmt='json')
            except ValueError as e:
                raise RaisedException("json-error", {"message": String(f"{e} (while parsing '{value.value}')")})
            for doc in docs:
                await output.send(doc)
        await _each(input, output, apply)

    # --- Exceptions ---
    @jqsh_builtin("error")
    async def _error0(self, args, input, output):
        def error(value):
            raise RaisedException("error", {"message": value})
        await _map(input, output, error)

    @jqsh_builtin("error", 1, reads_input=False)
    async def _error1(self, args, input, output):
        async def apply(value, context):
            for message in await all_outputs(args[0], context, value, input.queue_size):
                await output.send(RaisedException("error", {"message": message}).to_value())
        await _each(input, output, apply)

    @jqsh_builtin("raise", 1, reads_input=False)
    async def _raise1(self, args, input, output):
        async def apply(value, context):
            for name in await all_outputs(args[0], context, value, input.queue_size):
                await output.send(_exception(name, Object()))
        await _each(input, output, apply)

    @jqsh_builtin("raise", 2, reads_input=False)
    async def _raise2(self, args, input, output):
        async def apply(value, context):
            names = await all_outputs(args[0], context, value, input.queue_size)
            metas = await all_outputs(args[1], context, value, input.queue_size)
            for name in names:
                for meta in metas:
                    await output.send(_exception(name, meta))
        await _each(input, output, apply)

    @jqsh_builtin("catch", 2, reads_input=False)
    async def _catch(self, args, input, output):
        """`catch(f; names)`: exceptions from `f` named by `names` become their metadata."""
        context = await input.get_context()
        output.set_context(context)
        async for value in input:
            names = set()
            for name in await all_outputs(args[1], context, value, input.queue_size):
                if isinstance(name, String):
                    names.add(name.value)
                else:
                    await output.send(type_error(f"Exception names must be strings, not {describe(name)}").to_value())
            async with subquery(args[0], context, value, input.queue_size) as results:
                async for result in results:
                    if isinstance(result, ExceptionValue) and result.name in names:
                        await output.send(result.metadata)
                    else:
                        await output.send(result)


def _tojson(value: Value) -> String:
    try:
        return String(serialize(value))
    except TypeError as e:
        raise type_error(str(e))


def _exception(name: Value, metadata: Value) -> Value:
    if isinstance(name, ExceptionValue):
        return name
    if isinstance(metadata, ExceptionValue):
        return metadata
    if not isinstance(name, String):
        return type_error(f"Exception names must be strings, not {describe(name)}").to_value()
    if not isinstance(metadata, Object):
        return type_error(f"Exception metadata must be an object, not {describe(metadata)}").to_value()
    return ExceptionValue(name.value, metadata)


# ===================================================================
# Contexts
# ===================================================================
PRELUDE_PATH = Path(__file__).parent / "prelude.jq"
_prelude_ast: Optional[Filter] = None


async def load_definitions(source: str, context: Context, queue_size: int = DEFAULT_QUEUE_SIZE) -> Context:
    """Evaluates `source` (usually a run of `def`s) and returns the resulting context."""
    return await run_definitions(parse(source, context), context, queue_size)


async def run_definitions(expr: Filter, context: Context, queue_size: int = DEFAULT_QUEUE_SIZE) -> Context:
    receiver = Receiver.empty(context, queue_size).filter(expr)
    try:
        return await receiver.get_context()
    finally:
        await receiver.aclose()


async def builtin_context(prelude: bool = True, definitions: Iterable[str] = (),
                          queue_size: int = DEFAULT_QUEUE_SIZE) -> Context:
    """A fresh context holding every builtin, the prelude and any extra definitions."""
    global _prelude_ast
    context = Context(StdLib().bindings())
    if prelude:
        # Parsed once per process; evaluation happens per context.
        if _prelude_ast is None:
            _dbg("loading prelude", PRELUDE_PATH)
            _prelude_ast = parse(PRELUDE_PATH.read_text(encoding="utf-8"), context)
        context = await run_definitions(_prelude_ast, context, queue_size)
    for source in definitions:
        context = await load_definitions(source, context, queue_size)
    return context
