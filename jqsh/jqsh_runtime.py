import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

from jqsh.jqsh_builtins import builtin_context
from jqsh.jqsh_channel import DEFAULT_QUEUE_SIZE, ContextUnavailable, ProducerFailed, Receiver, _dbg
from jqsh.jqsh_config import ShellConfig
from jqsh.jqsh_context import Context
from jqsh.jqsh_datatypes import NULL, Value
from jqsh.jqsh_filter import Empty, Filter
from jqsh.jqsh_parser import ParseError, parse


def compile_query(source: str, context: Optional[Context] = None) -> Filter:
    """Parses `source`, standing in `Empty` for input that fails to parse."""
    try:
        return parse(source, context)
    except ParseError as e:
        _dbg("parse failed", e)
        return Empty()


def initial_input(expr: Filter, context: Context, inputs: Optional[Iterable[Value]] = None,
                  queue_size: int = DEFAULT_QUEUE_SIZE) -> Receiver:
    """The stream a top-level query reads.

    Without inputs, a query that never looks at `.` runs once against a null
    placeholder, so `1, 2` or `3 | f` still produce output; any other query
    sees the empty stream.
    """
    if inputs is not None:
        return Receiver.of(context, inputs, queue_size)
    if expr.reads_input(context):
        return Receiver.empty(context, queue_size)
    return Receiver.single(context, NULL, queue_size)


def evaluate(source: str, context: Context, inputs: Optional[Iterable[Value]] = None,
             queue_size: int = DEFAULT_QUEUE_SIZE) -> Receiver:
    """Runs `source` over `inputs` (none by default) and returns its output stream."""
    expr = compile_query(source, context)
    return initial_input(expr, context, inputs, queue_size).filter(expr)


@dataclass
class ExecutionResult:
    """The structured result of running one query."""
    status: Literal['success', 'error']
    values: List[Value] = field(default_factory=list)
    context: Optional[Context] = None
    error_message: Optional[str] = None
    error_token: Optional[Dict[str, Any]] = None

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and 'line' in self.error_token:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            col_info = f", col {col}" if col is not None else ""
            return f"Error on line {line}{col_info}: {msg}"
        return msg


class QueryRunner:
    """Parses and runs jqsh queries against a persistent context.

    In REPL mode each query's output context becomes the context of the
    next one, so `def`s accumulate. With `one_shot=True` the starting
    context is kept instead.
    """

    def __init__(self, config: Optional[ShellConfig] = None, one_shot: bool = False):
        self.config = config or ShellConfig()
        self.one_shot = one_shot
        self.context: Optional[Context] = None

    async def _initialize(self):
        if self.context is not None:
            return
        self.context = await builtin_context(
            prelude=self.config.prelude,
            definitions=self.config.definition_sources(),
            queue_size=self.config.queue_size,
        )

    async def handle_query(self, source: str, inputs: Optional[Iterable[Value]] = None,
                           on_value: Optional[Callable[[Value], None]] = None) -> ExecutionResult:
        """The main entry point to run one query.

        Values are returned in the result, or passed to `on_value` as they
        arrive when it is given.
        """
        await self._initialize()
        context = self.context

        # 1. Parse
        try:
            expr = parse(source, context)
        except ParseError as e:
            return ExecutionResult(
                status='error',
                context=context,
                error_message=f"syntax error: {e.msg}",
                error_token={'line': e.line, 'col': e.col},
            )

        # 2. Evaluate: the context first, then the values.
        queue_size = self.config.queue_size
        async with initial_input(expr, context, inputs, queue_size).filter(expr) as receiver:
            try:
                new_context = await receiver.get_context()
            except ContextUnavailable as e:
                return ExecutionResult(
                    status='error',
                    context=context,
                    error_message=f"failed to get repl output context: {e}",
                )
            values: List[Value] = []
            try:
                async for value in receiver:
                    if on_value is None:
                        values.append(value)
                    else:
                        # Streamed values are not kept; the stream may be endless.
                        on_value(value)
            except ProducerFailed as e:
                return ExecutionResult(status='error', context=context, error_message=str(e))

        if not self.one_shot:
            self.context = new_context
        return ExecutionResult(status='success', values=values, context=new_context)


def run_query(source: str, inputs: Optional[Iterable[Value]] = None,
              config: Optional[ShellConfig] = None) -> ExecutionResult:
    """Synchronous helper: one query against a fresh builtin context."""
    runner = QueryRunner(config, one_shot=True)
    return asyncio.run(runner.handle_query(source, inputs))
