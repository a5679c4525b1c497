"""
Evaluation contexts: the name bindings visible to a filter.

A Context is never mutated once it has been handed to a stage. Adding a
binding builds a child Context whose lookups fall back to the parent, so
many stages can share one chain without locking.
"""
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, TYPE_CHECKING

from jqsh.jqsh_datatypes import Labeled, Value

if TYPE_CHECKING:
    from jqsh.jqsh_filter import Filter


class Binding:
    """Base class for everything a Context can hold."""


class Builtin(Binding):
    """A primitive filter implemented against the Sender/Receiver contract."""
    def __init__(self, function: Labeled, arity: int, reads_input: bool = True):
        self.function = function
        self.arity = arity
        # False when the builtin only looks at its arguments, never at `.`.
        self.reads_input = reads_input

    def __repr__(self) -> str:
        return f"<Builtin {self.function!r}>"


class Definition(Binding):
    """A filter defined in jqsh itself with `def`.

    `closure` is the context the definition was made in; calls evaluate the
    body there, plus the parameters and the definition itself. A filter
    argument bound to a parameter has `is_param` set: its body is the caller's
    argument and it runs in the caller's context unchanged.
    """
    def __init__(self, name: str, params: Sequence[str], body: 'Filter', closure: Optional['Context'],
                 is_param: bool = False):
        self.name = name
        self.params = list(params)
        self.body = body
        self.closure = closure
        self.is_param = is_param

    @property
    def arity(self) -> int:
        return len(self.params)

    def __repr__(self) -> str:
        return f"<Definition {self.name}/{self.arity}>"


class Variable(Binding):
    """A `$name` binding holding a single value."""
    def __init__(self, value: Value):
        self.value = value

    def __repr__(self) -> str:
        return f"<Variable {self.value!r}>"


def filter_key(name: str, arity: int) -> str:
    return f"{name}/{arity}"


def variable_key(name: str) -> str:
    return name if name.startswith("$") else f"${name}"


class Context:
    """An immutable chain of name -> binding entries."""

    def __init__(self, bindings: Optional[Mapping[str, Binding]] = None, parent: Optional['Context'] = None):
        self._bindings: Dict[str, Binding] = dict(bindings or {})
        self._parent = parent

    @property
    def parent(self) -> Optional['Context']:
        return self._parent

    def find(self, key: str) -> Optional[Binding]:
        """Walks the chain (self, then parents) and returns the first match."""
        ctx = self
        while ctx is not None:
            binding = ctx._bindings.get(key)
            if binding is not None:
                return binding
            ctx = ctx._parent
        return None

    def lookup_filter(self, name: str, arity: int) -> Optional[Binding]:
        return self.find(filter_key(name, arity))

    def lookup_variable(self, name: str) -> Optional[Variable]:
        binding = self.find(variable_key(name))
        return binding if isinstance(binding, Variable) else None

    def bind(self, bindings: Mapping[str, Binding]) -> 'Context':
        """Returns a new Context with `bindings` layered over this one."""
        if not bindings:
            return self
        return Context(bindings, parent=self)

    def bind_filter(self, name: str, binding: Binding) -> 'Context':
        return self.bind({filter_key(name, binding.arity): binding})

    def bind_variable(self, name: str, value: Value) -> 'Context':
        return self.bind({variable_key(name): Variable(value)})

    def clone(self) -> 'Context':
        # Sharing is safe because contexts are never mutated after creation.
        return Context(parent=self) if self._bindings else Context(parent=self._parent)

    def flatten(self) -> Dict[str, Binding]:
        """Every visible binding, with nearer entries shadowing farther ones."""
        chain = []
        ctx = self
        while ctx is not None:
            chain.append(ctx)
            ctx = ctx._parent
        out: Dict[str, Binding] = {}
        for c in reversed(chain):
            out.update(c._bindings)
        return out

    def names(self) -> Iterator[str]:
        return iter(sorted(self.flatten()))

    def __contains__(self, key: Any) -> bool:
        return isinstance(key, str) and self.find(key) is not None

    def __eq__(self, other):
        if not isinstance(other, Context):
            return NotImplemented
        if self is other:
            return True
        mine, theirs = self.flatten(), other.flatten()
        return mine.keys() == theirs.keys() and all(mine[k] is theirs[k] for k in mine)

    __hash__ = None

    def __repr__(self) -> str:
        own = ', '.join(self._bindings)
        parent_id = f", parent=#{id(self._parent)}" if self._parent else ""
        return f"<Context bindings=[{own}]{parent_id}>"
