"""
Transforms the koine parse tree into a jqsh_filter expression tree.
"""

from __future__ import annotations

import json
import re
from typing import List, Optional, Tuple

from jqsh.jqsh_context import Context
from jqsh.jqsh_datatypes import Array, FALSE, NULL, Number, Object, String, TRUE
from jqsh.jqsh_filter import (
    Alternative, And, ArrayConstruct, BinaryOp, Bind, Call, Comma, Define, Empty, Filter,
    Identity, If, Index, Iterate, Literal, Negate, ObjectConstruct, Or, Pipe, Reduce, Slice,
    TryCatch, VariableRef,
)

# Tags that only group a single child.
WRAPPERS = {'pipe', 'unary', 'primary', 'suffix', 'bracket_body', 'entry', 'object_key'}

CONSTANTS = {'true': TRUE, 'false': FALSE, 'null': NULL}

# An unescaped backslash followed by `(`.
_INTERPOLATION = re.compile(r'(?<!\\)(?:\\\\)*\\\(')


class ParseError(Exception):
    """Parse error with location info."""

    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


def _children(node: dict) -> List[dict]:
    """Child nodes in order, with nested lists flattened and discarded slots dropped."""
    out: List[dict] = []
    pending = [node.get('children') or []]
    while pending:
        item = pending.pop()
        if isinstance(item, list):
            pending.extend(reversed(item))
        elif isinstance(item, dict):
            if 'tag' in item:
                out.append(item)
            else:
                # Named children (ast: {name: ...})
                pending.extend(reversed(list(item.values())))
    return out


def _unwrap(node: dict) -> dict:
    while node.get('tag') in WRAPPERS:
        kids = _children(node)
        if len(kids) != 1:
            break
        node = kids[0]
    return node


def _location(node: dict) -> Tuple[int, int]:
    return node.get('line') or 1, node.get('col') or 1


class JqshTransformer:
    """Builds filters from parse nodes and checks that every `$name` is bound.

    Variables must be bound by an enclosing `as` or `reduce`, or already be
    present in `context`.
    """

    def __init__(self, context: Optional[Context] = None):
        self.context = context
        self.scopes: List[str] = []

    def transform(self, node: dict) -> Filter:
        node = _unwrap(node)
        tag = node.get('tag')
        kids = _children(node)

        match tag:
            # Structure
            case 'program':
                return self.transform(kids[0]) if kids else Empty()
            case 'definition':
                name, params, body = self._funcdef(kids[0])
                rest = self.transform(kids[1]) if len(kids) > 1 else None
                return Define(name, params, body, rest)
            case 'binding':
                source = self.transform(kids[0])
                name = self._variable_name(kids[1])
                return Bind(source, name, self._scoped(name, kids[2]))
            case 'pipe_chain':
                lhs = self.transform(kids[0])
                if len(kids) == 1:
                    return lhs
                return Pipe(lhs, self._rest(kids[1]))
            case 'paren' | 'index':
                return self.transform(kids[0])

            # Operators
            case 'comma':
                result = self.transform(kids[0])
                for rest in kids[1:]:
                    result = Comma(result, self._rest(rest))
                return result
            case 'alternative':
                lhs = self.transform(kids[0])
                if len(kids) == 1:
                    return lhs
                return Alternative(lhs, self._rest(kids[1]))
            case 'or':
                result = self.transform(kids[0])
                for rest in kids[1:]:
                    result = Or(result, self._rest(rest))
                return result
            case 'and':
                result = self.transform(kids[0])
                for rest in kids[1:]:
                    result = And(result, self._rest(rest))
                return result
            case 'compare' | 'arithmetic':
                result = self.transform(kids[0])
                for operation in kids[1:]:
                    op, operand = _children(operation)
                    result = BinaryOp(op['text'], result, self.transform(operand))
                return result
            case 'negate':
                return Negate(self.transform(kids[0]))

            # Paths
            case 'post_term':
                term = self.transform(kids[0])
                for suffix in kids[1:]:
                    term = self._suffix(term, _unwrap(suffix))
                return term
            case 'field' | 'dot_string' | 'dot_bracket':
                return self._suffix(Identity(), node)
            case 'identity':
                return Identity()
            case 'recurse_all':
                return Call("recurse")

            # Atoms
            case 'number':
                return Literal(Number(node['text']))
            case 'string':
                return Literal(String(self._string(node)))
            case 'constant':
                return Literal(CONSTANTS[node['text']])
            case 'variable':
                return VariableRef(self._variable(node))
            case 'call':
                name = kids[0]['text']
                args = [self._rest(arg) if arg.get('tag') == 'args_rest' else self.transform(arg)
                        for arg in (_children(kids[1]) if len(kids) > 1 else [])]
                return Call(name, args)

            # Constructors
            case 'array':
                if not kids:
                    return Literal(Array())
                return ArrayConstruct(self.transform(kids[0]))
            case 'object':
                if not kids:
                    return Literal(Object())
                return ObjectConstruct([self._entry(_unwrap(entry)) for entry in self._entries(kids[0])])

            # Control flow
            case 'if':
                clauses = [(self.transform(kids[0]), self.transform(kids[1]))]
                otherwise: Optional[Filter] = None
                for clause in kids[2:]:
                    parts = _children(clause)
                    if clause['tag'] == 'elif':
                        clauses.append((self.transform(parts[0]), self.transform(parts[1])))
                    else:
                        otherwise = self.transform(parts[0])
                for cond, then in reversed(clauses):
                    otherwise = If(cond, then, otherwise)
                return otherwise
            case 'try':
                body = self.transform(kids[0])
                handler = self._rest(kids[1]) if len(kids) > 1 else None
                return TryCatch(body, handler)
            case 'reduce':
                source = self.transform(kids[0])
                name = self._variable_name(kids[1])
                self.scopes.append(name)
                try:
                    init = self.transform(kids[2])
                    update = self.transform(kids[3])
                finally:
                    self.scopes.pop()
                return Reduce(source, name, init, update)

            case _:
                line, col = _location(node)
                raise ParseError(f"unexpected {tag or 'node'}", line, col)

    def _rest(self, node: dict) -> Filter:
        """The operand of a `*_rest`, `catch` or `else` node."""
        return self.transform(_children(node)[-1])

    def _funcdef(self, node: dict) -> Tuple[str, List[str], Filter]:
        kids = _children(node)
        params: List[str] = []
        if len(kids) == 3:
            params = [name['text'] for name in self._names(kids[1])]
        return kids[0]['text'], params, self.transform(kids[-1])

    def _names(self, node: dict) -> List[dict]:
        names = []
        for kid in _children(node):
            names.extend([kid] if kid.get('tag') == 'name' else self._names(kid))
        return names

    def _scoped(self, name: str, node: dict) -> Filter:
        self.scopes.append(name)
        try:
            return self.transform(node)
        finally:
            self.scopes.pop()

    def _suffix(self, term: Filter, node: dict) -> Filter:
        match node.get('tag'):
            case 'field':
                return Index(term, Literal(String(node['text'][1:])))
            case 'dot_string':
                return Index(term, Literal(String(self._string(_children(node)[0]))))
            case 'dot_bracket':
                return self._bracket(term, _children(node)[0])
            case 'bracket':
                return self._bracket(term, node)
            case 'optional':
                return TryCatch(term)
        line, col = _location(node)
        raise ParseError("unexpected suffix", line, col)

    def _bracket(self, term: Filter, node: dict) -> Filter:
        kids = _children(node)
        if not kids:
            return Iterate(term)
        body = _unwrap(kids[0])
        parts = _children(body)
        match body.get('tag'):
            case 'slice_to':
                return Slice(term, None, self.transform(parts[0]))
            case 'slice_from':
                end = self.transform(parts[1]) if len(parts) > 1 else None
                return Slice(term, self.transform(parts[0]), end)
        return Index(term, self.transform(body))

    def _entries(self, node: dict) -> List[dict]:
        kids = _children(node)
        return [kids[0]] + [_children(rest)[0] for rest in kids[1:]]

    def _entry(self, node: dict) -> Tuple[Filter, Filter]:
        tag = node.get('tag')
        if tag == 'variable':
            name = self._variable(node)
            return Literal(String(name)), VariableRef(name)
        if tag == 'keyed_entry':
            key_node, value = _children(node)
            key_node = _unwrap(key_node)
            if key_node.get('tag') == 'key_name':
                key: Filter = Literal(String(key_node['text']))
            else:
                key = self.transform(key_node)
            return key, self.transform(value)
        # Shorthand `{a}` / `{"a"}` reads the same key from the input.
        if tag == 'shorthand_entry':
            node = _children(node)[0]
        if node.get('tag') == 'key_name':
            key = Literal(String(node['text']))
        else:
            key = Literal(String(self._string(node)))
        return key, Index(Identity(), key)

    def _string(self, node: dict) -> str:
        text = node['text']
        line, col = _location(node)
        if _INTERPOLATION.search(text):
            raise ParseError("string interpolation is not supported", line, col)
        try:
            return json.loads(text, strict=False)
        except json.JSONDecodeError as e:
            raise ParseError(f"invalid string literal: {e.msg}", line, col) from e

    def _variable_name(self, node: dict) -> str:
        return node['text'][1:]

    def _variable(self, node: dict) -> str:
        name = self._variable_name(node)
        if name in self.scopes:
            return name
        if self.context is not None and self.context.lookup_variable(name) is not None:
            return name
        line, col = _location(node)
        raise ParseError(f"${name} is not defined", line, col)
