"""jqsh parser: koine reads the grammar, JqshTransformer builds the filter tree."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from koine import Parser

from jqsh.jqsh_context import Context
from jqsh.jqsh_filter import Empty, Filter
from jqsh.jqsh_transformer import JqshTransformer, ParseError

GRAMMAR_PATH = Path(__file__).parent / "jqsh_grammar.yaml"

_parser: Optional[Parser] = None


def grammar_parser() -> Parser:
    """The koine parser for jqsh, loaded once per process."""
    global _parser
    if _parser is None:
        _parser = Parser.from_file(str(GRAMMAR_PATH))
    return _parser


def parse(source: str, context: Optional[Context] = None) -> Filter:
    """Parses `source` into a filter expression.

    Variables must be bound in the text or in `context`; raises ParseError
    on any syntax error.
    """
    try:
        result = grammar_parser().parse(source)
    except Exception as e:
        # koine reports some failures by raising instead of returning a status
        raise ParseError(str(e) or type(e).__name__, 1, 1) from e

    ast = result
    if isinstance(result, dict) and 'status' in result:
        if result['status'] != 'success':
            msg = result.get('error_message') or result.get('message') or "parse failed"
            where = result.get('error_node') or {}
            raise ParseError(msg, where.get('line') or 1, where.get('col') or 1)
        ast = result.get('ast')
    # koine may wrap the start rule in a single-item list
    if isinstance(ast, list) and len(ast) == 1:
        ast = ast[0]

    if not ast:
        return Empty()
    return JqshTransformer(context).transform(ast)
