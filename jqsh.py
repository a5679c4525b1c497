import asyncio
import sys
from pathlib import Path

from jqsh.jqsh_config import ConfigError, load_config
from jqsh.jqsh_printer import Printer
from jqsh.jqsh_runtime import QueryRunner
from jqsh.jqsh_serialize import deserialize

# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)

def _report(result):
    """Prints a failed query: syntax errors to stdout, everything else to stderr."""
    if result.error_token is not None:
        print(f"jqsh: {result.error_message}")
    else:
        print(f"jqsh: {result.error_message}", file=sys.stderr)

def _remember(config, line: str):
    """Appends a REPL line to the configured history file."""
    if not config.history_file:
        return
    with open(Path(config.history_file).expanduser(), "a", encoding="utf-8") as f:
        f.write(line + "\n")

def _load_config():
    try:
        return load_config()
    except ConfigError as e:
        print(f"jqsh: {e}", file=sys.stderr)
        raise SystemExit(1)

async def run_filter(source: str, file_path: str = None):
    """Run one filter over the documents in a file (or no input) and exit."""
    runner = QueryRunner(_load_config(), one_shot=True)
    printer = Printer()
    inputs = None
    if file_path is not None:
        try:
            text = Path(file_path).read_text(encoding="utf-8")
        except FileNotFoundError:
            print(f"jqsh: file not found: {file_path}", file=sys.stderr)
            raise SystemExit(1)
        try:
            inputs = deserialize(text)
        except ValueError as e:
            print(f"jqsh: cannot read {file_path}: {e}", file=sys.stderr)
            raise SystemExit(1)
    result = await runner.handle_query(source, inputs, on_value=lambda v: print(printer.pformat(v)))
    if result.status == 'error':
        _report(result)
        raise SystemExit(2 if result.error_token is not None else 1)

async def main():
    """Run a filter when one is given, otherwise start the interactive REPL."""
    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    if args:
        await run_filter(args[0], args[1] if len(args) > 1 else None)
        return

    config = _load_config()
    runner = QueryRunner(config)
    printer = Printer()

    # REPL Loop
    while True:
        try:
            raw = await ainput(config.prompt)
            if raw == "":
                raise EOFError
            line = raw.strip()
            if not line:
                continue
            _remember(config, line)

            result = await runner.handle_query(line, on_value=lambda v: print(printer.pformat(v)))
            if result.status == 'error':
                _report(result)
        except EOFError:
            print()
            break

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print()
