"""
Executor - invoke a callable and reduce its calling convention to one
completion signal.

Three conventions are supported:

- synchronous: the return value (or raised exception) is the outcome;
- callback-last: the trailing positional argument is a callback invoked as
  ``callback(error_or_none, *results)``;
- deferred: the callable returns an awaitable (coroutine, asyncio future,
  concurrent future) whose eventual result is the outcome.

Whatever the convention, the output handler is called exactly once as
``output_handler(error_or_none, *payload)`` and the caller observes the same
value, exception and timing it would observe without the executor.
"""

import asyncio
import concurrent.futures
import functools
import inspect
import logging
import threading
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

logger = logging.getLogger(__name__)

OutputHandler = Callable[..., None]


class CallStyle(Enum):
    """How the executor decides on the calling convention.

    AUTO infers it from the trailing argument (any callable except a class)
    and the returned value.
    SYNC never wraps callbacks and records awaitables as plain values.
    CALLBACK expects a trailing callback (falls back to SYNC without one).
    DEFERRED expects an awaitable and never wraps callbacks.
    """
    AUTO = "auto"
    SYNC = "sync"
    CALLBACK = "callback"
    DEFERRED = "deferred"


class CompletionState(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class Completion:
    """One-shot success/error signal; only the first transition counts."""

    def __init__(self, output_handler: Optional[OutputHandler] = None):
        self._handler = output_handler
        self._lock = threading.Lock()
        self.state = CompletionState.PENDING

    @property
    def settled(self) -> bool:
        return self.state is not CompletionState.PENDING

    def succeed(self, *payload: Any) -> bool:
        return self._settle(CompletionState.SUCCESS, None, payload)

    def fail(self, error: Any) -> bool:
        return self._settle(CompletionState.ERROR, error, ())

    def _settle(self, state: CompletionState, error: Any, payload: tuple) -> bool:
        with self._lock:
            if self.state is not CompletionState.PENDING:
                return False
            self.state = state
        if self._handler is not None:
            try:
                self._handler(error, *payload)
            except Exception:
                logger.exception("Output handler failed; the call outcome is unaffected")
        return True


def is_future(value: Any) -> bool:
    """True for asyncio and concurrent.futures futures."""
    return asyncio.isfuture(value) or isinstance(value, concurrent.futures.Future)


class Executor:
    """
    Invoke ``method`` and report its outcome to ``output_handler``.

    Args:
        method: The callable to invoke. With ``construct=True`` it is the
            construction entry point (a class or a factory).
        output_handler: Called once as ``handler(error_or_none, *payload)``.
        construct: Whether the call constructs an instance.
        call_style: Calling convention, see ``CallStyle``.

    Usage::

        executor = Executor(fetch, handler)
        result = executor.execute("key", on_done)
    """

    def __init__(
        self,
        method: Callable[..., Any],
        output_handler: Optional[OutputHandler] = None,
        construct: bool = False,
        call_style: CallStyle = CallStyle.AUTO,
    ):
        self.method = method
        self.construct = construct
        self.call_style = call_style
        self.completion = Completion(output_handler)
        self.return_value: Any = None

    @classmethod
    def main(
        cls,
        method: Callable[..., Any],
        params: Sequence[Any],
        output_handler: Optional[OutputHandler] = None,
        construct: bool = False,
        call_style: CallStyle = CallStyle.AUTO,
    ) -> Any:
        """Build an executor and run it with ``params``."""
        return cls(method, output_handler, construct, call_style).execute(*params)

    def execute(self, *args: Any, **kwargs: Any) -> Any:
        """Invoke the method; returns exactly what the caller should see."""
        if self.construct:
            self.return_value = self._construct(args, kwargs)
        elif self._uses_callback(args):
            self.return_value = self._call_with_callback(args, kwargs)
        else:
            self.return_value = self._call(args, kwargs)
        return self.return_value

    # -- conventions --------------------------------------------------------

    def _uses_callback(self, args: Sequence[Any]) -> bool:
        if self.call_style not in (CallStyle.AUTO, CallStyle.CALLBACK):
            return False
        # classes are callable but are passed as values, never as callbacks
        return bool(args) and callable(args[-1]) and not inspect.isclass(args[-1])

    def _construct(self, args: tuple, kwargs: dict) -> Any:
        try:
            instance = self.method(*args, **kwargs)
        except Exception as e:
            self.completion.fail(e)
            raise
        self.completion.succeed(instance)
        return instance

    def _call_with_callback(self, args: tuple, kwargs: dict) -> Any:
        original_callback = args[-1]
        completion = self.completion

        @functools.wraps(original_callback)
        def callback(*cb_args: Any, **cb_kwargs: Any) -> Any:
            if cb_args and cb_args[0] is not None:
                completion.fail(cb_args[0])
            else:
                completion.succeed(*cb_args[1:])
            return original_callback(*cb_args, **cb_kwargs)

        try:
            return self.method(*args[:-1], callback, **kwargs)
        except Exception as e:
            completion.fail(e)
            raise

    def _call(self, args: tuple, kwargs: dict) -> Any:
        try:
            result = self.method(*args, **kwargs)
        except Exception as e:
            self.completion.fail(e)
            raise

        # CALLBACK without a trailing callback settles like SYNC
        if self.call_style in (CallStyle.AUTO, CallStyle.DEFERRED):
            if is_future(result):
                result.add_done_callback(self._settle_future)
                return result
            if inspect.isawaitable(result):
                return self._observe(result)

        self.completion.succeed(result)
        return result

    def _settle_future(self, future: Any) -> None:
        if future.cancelled():
            if isinstance(future, concurrent.futures.Future):
                self.completion.fail(concurrent.futures.CancelledError())
            else:
                self.completion.fail(asyncio.CancelledError())
            return
        error = future.exception()
        if error is not None:
            self.completion.fail(error)
        else:
            self.completion.succeed(future.result())

    async def _observe(self, awaitable: Awaitable[Any]) -> Any:
        try:
            result = await awaitable
        except asyncio.CancelledError as e:
            self.completion.fail(e)
            raise
        except Exception as e:
            self.completion.fail(e)
            raise
        self.completion.succeed(result)
        return result
