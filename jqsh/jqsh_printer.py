"""
A printer for jqsh values, used for REPL output and error messages.
"""
from jqsh.jqsh_datatypes import (
    Value, HashableValue, ExceptionValue, Null, Boolean, Number, String,
    Array, Object, Function,
)

_ESCAPES = {
    '"': '\\"',
    '\\': '\\\\',
    '\n': '\\n',
    '\t': '\\t',
    '\r': '\\r',
    '\0': '\\0',
}


def quote(text: str) -> str:
    """Double-quotes a string, escaping quotes, backslashes and control characters."""
    out = ['"']
    for ch in text:
        esc = _ESCAPES.get(ch)
        if esc is not None:
            out.append(esc)
        elif ord(ch) < 0x20 or ord(ch) == 0x7f:
            out.append(f"\\u{{{ord(ch):x}}}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


class Printer:
    """Formats jqsh values into their textual form."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj) -> str:
        """Public entry point to format a value."""
        if isinstance(obj, HashableValue):
            obj = obj.widen()
        handler = self._handlers.get(type(obj))
        if handler is None:
            if isinstance(obj, Value):
                raise TypeError(f"no printer for {type(obj).__name__}")
            return repr(obj)
        return handler(obj)

    def _create_handlers(self):
        return {
            ExceptionValue: self._pformat_exception,
            Null: self._pformat_null,
            Boolean: self._pformat_bool,
            Number: self._pformat_number,
            String: self._pformat_string,
            Array: self._pformat_array,
            Object: self._pformat_object,
            Function: self._pformat_function,
        }

    def _pformat_exception(self, obj):
        head = f"raise {quote(obj.name)}"
        if len(obj.metadata) > 0:
            return f"{head} {self._pformat_object(obj.metadata)}"
        return head

    def _pformat_null(self, obj):
        return "null"

    def _pformat_bool(self, obj):
        return "true" if obj.value else "false"

    def _pformat_number(self, obj):
        # Fraction renders as "n" or "n/d".
        return str(obj.value)

    def _pformat_string(self, obj):
        return quote(obj.value)

    def _pformat_array(self, obj):
        return "[" + ", ".join(self.pformat(item) for item in obj.items) + "]"

    def _pformat_object(self, obj):
        parts = [f"{self.pformat(k)}: {self.pformat(v)}" for k, v in obj.entries.items()]
        return "{" + ", ".join(parts) + "}"

    def _pformat_function(self, obj):
        return "def (...)"
