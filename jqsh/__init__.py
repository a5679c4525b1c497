from jqsh.jqsh_builtins import builtin_context
from jqsh.jqsh_channel import Receiver, Sender, channel
from jqsh.jqsh_config import ShellConfig, load_config
from jqsh.jqsh_context import Context
from jqsh.jqsh_parser import ParseError, parse
from jqsh.jqsh_printer import Printer
from jqsh.jqsh_runtime import ExecutionResult, QueryRunner, evaluate, run_query

__all__ = [
    "builtin_context", "Receiver", "Sender", "channel", "ShellConfig", "load_config",
    "Context", "ParseError", "parse", "Printer", "ExecutionResult", "QueryRunner",
    "evaluate", "run_query",
]
