"""
The channel protocol connecting filter stages.

A stage reads from a Receiver and writes to a Sender. The two halves of a
channel share a bounded asyncio.Queue for values and an asyncio.Future for
the stage's output context, so a consumer can start pulling values before
the context is known and vice versa.

Raised language exceptions are ordinary values on the queue; the only
out-of-band signals are end-of-stream and a crashed producer.
"""
import asyncio
import os
import sys
from typing import Iterable, List, Optional, Tuple, Union, TYPE_CHECKING

from jqsh.jqsh_context import Context
from jqsh.jqsh_datatypes import Value

if TYPE_CHECKING:
    from jqsh.jqsh_filter import Filter

DEFAULT_QUEUE_SIZE = 1


def _dbg(*parts):
    if os.environ.get("JQSH_DEBUG"):
        try:
            print("[DBG]", *parts, file=sys.stderr)
        except Exception:
            pass


class ChannelError(Exception):
    """Misuse of a channel, such as settling a context twice."""


class ChannelClosed(ChannelError):
    """The receiving side is gone; the producer should stop."""


class ContextUnavailable(RuntimeError):
    """The producing stage ended without settling its context."""


class ProducerFailed(RuntimeError):
    """The producing stage crashed while the stream was being read."""


class _End:
    def __repr__(self):
        return "<end of stream>"


_END = _End()


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


class _ChannelState:
    __slots__ = ("closed",)

    def __init__(self):
        self.closed = False


def _resolved(context: Union[Context, 'asyncio.Future']) -> 'asyncio.Future':
    if isinstance(context, asyncio.Future):
        return context
    future = asyncio.get_running_loop().create_future()
    future.set_result(context)
    return future


def channel(queue_size: Optional[int] = None) -> Tuple['Sender', 'Receiver']:
    """Allocates a connected Sender/Receiver pair."""
    size = DEFAULT_QUEUE_SIZE if queue_size is None else queue_size
    queue: asyncio.Queue = asyncio.Queue(size)
    future = asyncio.get_running_loop().create_future()
    state = _ChannelState()
    return Sender(queue, future, state), Receiver(future, queue, state=state, queue_size=size)


class Sender:
    """The producer half: emits values and settles the context once."""

    def __init__(self, queue: asyncio.Queue, context: 'asyncio.Future', state: _ChannelState):
        self._queue = queue
        self._context = context
        self._state = state
        self._finished = False

    @property
    def closed(self) -> bool:
        return self._state.closed

    @property
    def context_settled(self) -> bool:
        return self._context.done()

    async def send(self, value: Value):
        """Emits one value, suspending while the consumer is behind."""
        if self._state.closed:
            raise ChannelClosed()
        if self._finished:
            raise ChannelError("send after finish")
        await self._queue.put(value)

    def set_context(self, context: Context):
        if self._context.done():
            raise ChannelError("context already settled")
        _dbg("context settled", context)
        self._context.set_result(context)

    def settle_context(self, context: Context):
        """Settles the context unless the stage already did."""
        if not self._context.done():
            self.set_context(context)

    async def finish(self):
        if self._finished:
            return
        self._finished = True
        if not self._state.closed:
            await self._queue.put(_END)

    async def fail(self, error: BaseException):
        """Ends the stream with a crash; an unsettled context fails too."""
        if not self._context.done():
            self._context.set_exception(error)
            # Mark retrieved; get_context() re-raises it as ContextUnavailable.
            self._context.exception()
        if self._finished or self._state.closed:
            return
        self._finished = True
        await self._queue.put(_Failure(error))

    def abandon(self):
        if not self._context.done():
            self._context.cancel()


class Receiver:
    """The consumer half: a context future plus a lazy value stream.

    Iterate it with `async for`. Closing it (or leaving an `async with`
    block) cancels the producing stage and, through it, everything
    upstream.
    """

    def __init__(self, context: 'asyncio.Future', queue: Optional[asyncio.Queue] = None,
                 task: Optional['asyncio.Task'] = None, state: Optional[_ChannelState] = None,
                 queue_size: int = DEFAULT_QUEUE_SIZE):
        self.context = context
        self.queue_size = queue_size
        self._queue = queue
        self._task = task
        self._state = state or _ChannelState()
        self._exhausted = queue is None

    @classmethod
    def empty(cls, context: Union[Context, 'asyncio.Future'], queue_size: int = DEFAULT_QUEUE_SIZE) -> 'Receiver':
        return cls(_resolved(context), queue_size=queue_size)

    @classmethod
    def of(cls, context: Union[Context, 'asyncio.Future'], values: Iterable[Value],
           queue_size: int = DEFAULT_QUEUE_SIZE) -> 'Receiver':
        """A receiver over a finite, already known list of values."""
        queue: asyncio.Queue = asyncio.Queue()
        for value in values:
            queue.put_nowait(value)
        queue.put_nowait(_END)
        return cls(_resolved(context), queue, queue_size=queue_size)

    @classmethod
    def single(cls, context: Union[Context, 'asyncio.Future'], value: Value,
               queue_size: int = DEFAULT_QUEUE_SIZE) -> 'Receiver':
        return cls.of(context, [value], queue_size=queue_size)

    def filter(self, expr: 'Filter') -> 'Receiver':
        """Evaluates `expr` over this stream in a new stage.

        Returns the stage's Receiver at once; the stage runs as its own
        task and this receiver becomes its input.
        """
        sender, receiver = channel(self.queue_size)
        _dbg("spawn stage", expr)
        receiver._task = asyncio.get_running_loop().create_task(_run_stage(expr, self, sender))
        return receiver

    def with_context(self, context: Union[Context, 'asyncio.Future']) -> 'Receiver':
        """The same value stream seen under another context.

        The returned receiver takes over the stream; stop using this one.
        """
        other = Receiver(_resolved(context), self._queue, self._task, self._state, self.queue_size)
        other._exhausted = self._exhausted
        return other

    async def get_context(self) -> Context:
        try:
            return await self.context
        except asyncio.CancelledError:
            if self.context.cancelled():
                raise ContextUnavailable("producer was cancelled before settling its context")
            raise
        except Exception as e:
            raise ContextUnavailable(f"producer failed before settling its context: {e}") from e

    def __aiter__(self):
        return self

    async def __anext__(self) -> Value:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._exhausted = True
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._exhausted = True
            raise ProducerFailed(f"producer failed: {item.error!r}") from item.error
        return item

    async def collect(self) -> List[Value]:
        """Drains the stream into a list."""
        return [value async for value in self]

    def close(self):
        """Stops consuming; the producer is told to stop at its next emission."""
        self._exhausted = True
        if self._state.closed:
            return
        self._state.closed = True
        if self._queue is not None:
            # Unblock a producer waiting on a full queue so it notices the close.
            while not self._queue.empty():
                self._queue.get_nowait()
        if self._task is not None and not self._task.done():
            _dbg("cancel stage", self._task.get_name())
            self._task.cancel()

    async def aclose(self):
        self.close()
        if self._task is not None and self._task is not asyncio.current_task():
            await asyncio.wait([self._task])

    async def __aenter__(self) -> 'Receiver':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    def __repr__(self) -> str:
        state = "closed" if self._state.closed else ("exhausted" if self._exhausted else "open")
        return f"<Receiver {state} context_done={self.context.done()}>"


async def forward(source: Receiver, sender: Sender, settle: bool = True):
    """Copies `source` to `sender`, settling the sender with source's context first."""
    try:
        if settle:
            sender.settle_context(await source.get_context())
        async for value in source:
            await sender.send(value)
    finally:
        source.close()


async def _run_stage(expr: 'Filter', input: Receiver, output: Sender):
    try:
        await expr.run(input, output)
        if not output.context_settled:
            output.settle_context(await input.get_context())
        await output.finish()
    except ChannelClosed:
        _dbg("stage stopped, receiver closed", expr)
        output.abandon()
    except asyncio.CancelledError:
        _dbg("stage cancelled", expr)
        output.abandon()
        raise
    except Exception as e:
        _dbg("stage failed", expr, repr(e))
        await output.fail(e)
    finally:
        input.close()
