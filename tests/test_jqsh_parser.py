from fractions import Fraction

import pytest
import yaml
from koine import Parser

from jqsh.jqsh_context import Context
from jqsh.jqsh_datatypes import Number, String, Array, Object, NULL, TRUE
from jqsh.jqsh_filter import (
    Alternative, And, ArrayConstruct, BinaryOp, Bind, Call, Comma, Define, Empty, Identity, If,
    Index, Iterate, Literal, Negate, ObjectConstruct, Or, Pipe, Reduce, Slice, TryCatch, VariableRef,
)
from jqsh.jqsh_parser import GRAMMAR_PATH, ParseError, parse


def num(n):
    return Literal(Number(n))

def field(name, target=None):
    return Index(target or Identity(), Literal(String(name)))


@pytest.fixture(scope="module")
def grammar():
    """Loads the jqsh grammar and returns a koine Parser instance."""
    with GRAMMAR_PATH.open() as f:
        return Parser(yaml.safe_load(f))

def grammar_ast(grammar, text):
    result = grammar.parse(text)
    assert result.get("status") == "success", f"Parsing failed: {result.get('error_message')}"
    ast = result["ast"]
    if isinstance(ast, list) and len(ast) == 1:
        ast = ast[0]
    return ast


# --- Grammar ---

def test_grammar_tags_the_program(grammar):
    assert grammar_ast(grammar, ".a | length")["tag"] == "program"

def test_grammar_accepts_catch_as_a_name(grammar):
    assert grammar_ast(grammar, 'catch(.; "x")')["tag"] == "program"

@pytest.mark.parametrize("text", ["1 2", "1 == 2 == 3", "end"])
def test_grammar_rejects(grammar, text):
    assert grammar.parse(text).get("status") != "success"


# --- Literals ---

@pytest.mark.parametrize("source, value", [
    ("1", 1),
    ("2.5", Fraction(5, 2)),
    ("1e3", 1000),
    ("25E-1", Fraction(5, 2)),
])
def test_numbers(source, value):
    assert parse(source) == Literal(Number(value))

def test_string_escapes():
    assert parse(r'"a\"b\nA"') == Literal(String('a"b\nA'))


# --- Productions ---

@pytest.mark.parametrize("source", ["", "   ", "# only a comment\n"])
def test_empty_source_is_empty_filter(source):
    assert parse(source) == Empty()

# Test cases: (id, source, expected_tree)
PARSE_TEST_CASES = [
    ("identity", ".", Identity()),
    ("field", ".a", field("a")),
    ("field_chain", ".a.b", field("b", field("a"))),
    ("quoted_field", '."a b"', field("a b")),
    ("index", ".[0]", Index(Identity(), num(0))),
    ("iterate", ".[]", Iterate(Identity())),
    ("optional", ".[]?", TryCatch(Iterate(Identity()))),
    ("slice", ".[1:]", Slice(Identity(), num(1), None)),
    ("slice_to", ".[:2]", Slice(Identity(), None, num(2))),
    ("literals", "null, true", Comma(Literal(NULL), Literal(TRUE))),
    ("pipe_binds_loosest", "1, 2 | f", Pipe(Comma(num(1), num(2)), Call("f"))),
    ("pipe_right_assoc", ". | . | .", Pipe(Identity(), Pipe(Identity(), Identity()))),
    ("precedence", "1 + 2 * 3", BinaryOp("+", num(1), BinaryOp("*", num(2), num(3)))),
    ("left_assoc", "1 - 2 - 3", BinaryOp("-", BinaryOp("-", num(1), num(2)), num(3))),
    ("parens", "(1 + 2) * 3", BinaryOp("*", BinaryOp("+", num(1), num(2)), num(3))),
    ("negate", "-.a", Negate(field("a"))),
    ("compare", ".a == 1", BinaryOp("==", field("a"), num(1))),
    ("and_or", "1 and 2 or 3", Or(And(num(1), num(2)), num(3))),
    ("alternative", ".a // 1 // 2", Alternative(field("a"), Alternative(num(1), num(2)))),
    ("call_args", "f(1; .)", Call("f", [num(1), Identity()])),
    ("recurse", "..", Call("recurse")),
    ("empty_array", "[]", Literal(Array())),
    ("array", "[1, 2]", ArrayConstruct(Comma(num(1), num(2)))),
    ("empty_object", "{}", Literal(Object())),
    ("try_catch", "try error catch .", TryCatch(Call("error"), Identity())),
    ("try", "try .a", TryCatch(field("a"))),
    ("catch_is_a_call", 'catch(.; "x")', Call("catch", [Identity(), Literal(String("x"))])),
    ("optional_field", ".a?", TryCatch(field("a"))),
    ("index_after_field", ".a[0]", Index(field("a"), num(0))),
    ("comment", "1 # one\n, 2", Comma(num(1), num(2))),
    ("def_only", "def f: 1;", Define("f", [], num(1), None)),
    ("def_params", "def f(a; b): a; f(1; 2)", Define("f", ["a", "b"], Call("a"), Call("f", [num(1), num(2)]))),
    ("def_rest", "def f(g): g; f(.)", Define("f", ["g"], Call("g"), Call("f", [Identity()]))),
    ("binding", ". as $x | $x", Bind(Identity(), "x", VariableRef("x"))),
    (
        "reduce",
        "reduce .[] as $x (0; . + $x)",
        Reduce(Iterate(Identity()), "x", num(0), BinaryOp("+", Identity(), VariableRef("x"))),
    ),
    (
        "if_elif",
        "if . then 1 elif . then 2 else 3 end",
        If(Identity(), num(1), If(Identity(), num(2), num(3))),
    ),
    ("if_no_else", "if . then 1 end", If(Identity(), num(1))),
    (
        "object",
        '{a, "b": 1, (.c): 2}',
        ObjectConstruct([
            (Literal(String("a")), field("a")),
            (Literal(String("b")), num(1)),
            (field("c"), num(2)),
        ]),
    ),
]

@pytest.mark.parametrize("case_id, source, expected", PARSE_TEST_CASES, ids=[c[0] for c in PARSE_TEST_CASES])
def test_parse(case_id, source, expected):
    assert parse(source) == expected

def test_variables_from_the_context():
    ctx = Context().bind_variable("x", Number(1))
    assert parse("$x", ctx) == VariableRef("x")
    assert parse("{$x}", ctx) == ObjectConstruct([(Literal(String("x")), VariableRef("x"))])


# --- Errors ---

@pytest.mark.parametrize("source", [
    "1 +",
    "(1",
    "[1,",
    "$x",
    '"abc',
    '"\\(x)"',
    "1 == 2 == 3",
    "if . then 1",
    "def f 1;",
    "reduce . as $x (0)",
    "{(1)}",
    ". as x | x",
    "end",
    "1 2",
    "@",
])
def test_syntax_errors(source):
    with pytest.raises(ParseError):
        parse(source)

def test_undefined_variable_location():
    with pytest.raises(ParseError) as info:
        parse("1,\n  $nope")
    assert info.value.msg == "$nope is not defined"
    assert info.value.line == 2
    assert "line 2" in str(info.value)

def test_interpolation_is_rejected():
    with pytest.raises(ParseError) as info:
        parse('"a \\(.b)"')
    assert "interpolation" in info.value.msg

def test_escaped_backslash_before_paren_is_a_plain_string():
    assert parse(r'"\\("') == Literal(String("\\("))

def test_bound_variable_goes_out_of_scope():
    with pytest.raises(ParseError):
        parse("(1 as $x | $x), $x")
