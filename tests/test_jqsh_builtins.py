import asyncio

import pytest
from jqsh.jqsh_builtins import StdLib, builtin_context, jqsh_builtin, load_definitions
from jqsh.jqsh_channel import Receiver
from jqsh.jqsh_context import Builtin
from jqsh.jqsh_datatypes import Number
from jqsh.jqsh_filter import Call, Identity
from jqsh.jqsh_runtime import QueryRunner


async def run(source, inputs=None):
    result = await asyncio.wait_for(QueryRunner(one_shot=True).handle_query(source, inputs), 5)
    assert result.status == 'success', result.format_error()
    return [str(v) for v in result.values]


def test_stdlib_registers_by_name_and_arity():
    bindings = StdLib().bindings()
    assert {"empty/0", "range/1", "range/2", "limit/2", "catch/2", "error/0", "error/1"} <= set(bindings)
    rng = bindings["range/2"]
    assert isinstance(rng, Builtin)
    assert rng.arity == 2
    assert repr(rng.function) == "range/2"
    assert not rng.reads_input
    assert bindings["length/0"].reads_input

def test_decorator_marks_methods():
    @jqsh_builtin("thing", 2, reads_input=False)
    async def thing(self, args, input, output):
        pass
    assert thing._jqsh_builtin == ("thing", 2, False)

@pytest.mark.asyncio
async def test_builtin_context_without_prelude():
    ctx = await builtin_context(prelude=False)
    assert ctx.lookup_filter("range", 1) is not None
    assert ctx.lookup_filter("map", 1) is None
    full = await builtin_context()
    assert full.lookup_filter("map", 1) is not None

@pytest.mark.asyncio
async def test_extra_definitions():
    ctx = await builtin_context(definitions=["def twice(f): f | f;"])
    assert ctx.lookup_filter("twice", 1) is not None
    ctx = await load_definitions("def three: 3;", ctx)
    assert ctx.lookup_filter("three", 0) is not None


# --- Python builtins ---

@pytest.mark.asyncio
@pytest.mark.parametrize("source, expected", [
    ("empty", []),
    ("1, empty, 2", ["1", "2"]),
    ("(true | not), (null | not), (0 | not)", ["false", "true", "false"]),
    ('null, 1, "a", [], {} | length', ["0", "1", "1", "0", "0"]),
    ("-5 | length", ["5"]),
    ('[1, "a", null, true, {}] | map(type)', ['["number", "string", "null", "boolean", "object"]']),
    ('{"b": 1, "a": 2} | keys', ['["a", "b"]']),
    ('["x", "y"] | keys', ["[0, 1]"]),
    ('{"a": 1} | has("a"), has("b")', ["true", "false"]),
    ("[1, 2] | has(1), has(2)", ["true", "false"]),
    ("[1, 2, 3] | add", ["6"]),
    ('["a", "b"] | add', ['"ab"']),
    ("[] | add", ["null"]),
    ("range(3)", ["0", "1", "2"]),
    ("range(1; 3)", ["1", "2"]),
    ("range(0)", []),
    ("[range(0, 1; 3)]", ["[0, 1, 2, 1, 2]"]),
    ("[limit(3; range(100))]", ["[0, 1, 2]"]),
    ("[limit(0; 1, 2)]", ["[]"]),
    ("1 | [limit(4; repeat(. * 2))]", ["[1, 2, 4, 8]"]),
    ("first(range(10; 20))", ["10"]),
    ("[first(empty)]", ["[]"]),
    ("isempty(empty), isempty(1, 2)", ["true", "false"]),
    ("[1, [2, [3]]] | [recurse(.[]?)]", ["[[1, [2, [3]]], 1, [2, [3]], 2, [3], 3]"]),
    ('{"a": [1]} | tojson', ['"{\\"a\\":[1]}"']),
    ('1, "x" | tostring', ['"1"', '"x"']),
    ('"[1, 2] 3" | fromjson', ["[1, 2]", "3"]),
])
async def test_builtins(source, expected):
    assert await run(source) == expected

@pytest.mark.asyncio
async def test_limit_stops_an_infinite_generator():
    out = await asyncio.wait_for(run("[limit(3; 0 | repeat(. + 1))]"), 5)
    assert out == ["[0, 1, 2]"]

@pytest.mark.asyncio
async def test_first_cancels_the_rest():
    ctx = await builtin_context(prelude=False)
    receiver = Receiver.single(ctx, Number(7)).filter(Call("first", [Call("repeat", [Identity()])]))
    assert await asyncio.wait_for(receiver.collect(), 5) == [Number(7)]


# --- Exceptions ---

@pytest.mark.asyncio
@pytest.mark.parametrize("source, expected", [
    ('"bad" | error', ['raise "error" {"message": "bad"}']),
    ('error("bad")', ['raise "error" {"message": "bad"}']),
    ('raise("oops")', ['raise "oops"']),
    ('raise("oops"; {"code": 1})', ['raise "oops" {"code": 1}']),
    ('catch(raise("oops"; {"code": 1}); "oops")', ['{"code": 1}']),
    ('catch(1, raise("a"), raise("b"), 2; "a")', ["1", "{}", 'raise "b"', "2"]),
    ('raise("a") | catch(.; "a")', ["{}"]),
    ('raise("b") | catch(.; "a")', ['raise "b"']),
])
async def test_exceptions(source, expected):
    assert await run(source) == expected

@pytest.mark.asyncio
async def test_fromjson_rejects_bad_text():
    [out] = await run('"x" | fromjson')
    assert out.startswith('raise "json-error" {"message": ')
    assert "while parsing 'x'" in out

@pytest.mark.asyncio
async def test_raise_checks_its_arguments():
    [out] = await run('raise(1)')
    assert out.startswith('raise "type-error"')
    [out] = await run('raise("x"; 1)')
    assert out.startswith('raise "type-error"')

@pytest.mark.asyncio
async def test_length_of_boolean_is_an_error():
    [out] = await run("true | length")
    assert out.startswith('raise "type-error"')


# --- Prelude ---

@pytest.mark.asyncio
@pytest.mark.parametrize("source, expected", [
    ("[1, 2, 3] | map(. * 2)", ["[2, 4, 6]"]),
    ("[1, 5, 2] | map(select(. > 1))", ["[5, 2]"]),
    ("[3, 1] | first, last", ["3", "1"]),
    ("[1, null, 2] | map(values)", ["[1, 2]"]),
    ('[1, null, "a"] | .[] | nulls', ["null"]),
    ('[1, null, "a"] | [.[] | numbers], [.[] | strings]', ["[1]", '["a"]']),
    ("[false, 1] | any, all", ["true", "false"]),
    ("[] | any, all", ["false", "true"]),
    ('"a" | in({"a": 1})', ["true"]),
    ('{"a": 1} | to_entries', ['[{"key": "a", "value": 1}]']),
    ('[{"key": "a", "value": 1}, {"name": "b", "value": 2}] | from_entries', ['{"a": 1, "b": 2}']),
    ('{"a": 1, "b": 2} | with_entries(select(.key == "a"))', ['{"a": 1}']),
    ('{"a": 1} | with_entries(.)', ['{"a": 1}']),
    ("[1, [2]] | [..]", ["[[1, [2]], 1, [2], 2]"]),
])
async def test_prelude(source, expected):
    assert await run(source) == expected
