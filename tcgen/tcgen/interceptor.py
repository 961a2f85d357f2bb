"""
Call interception - replace a callable with a recording wrapper.

The wrapper snapshots the receiver and the arguments, runs the original
through an ``Executor`` and, once the call settles, hands the snapshots and
the outcome to a ``RecordSink``. The caller sees the original's return
value, exception and timing unchanged.
"""

import functools
import inspect
from typing import Any, Callable, Dict, List, Optional, Tuple

from .context import get_context, recording_suspended
from .executor import CallStyle, Executor
from .recorder import RecordSink
from .snapshot import snapshot, snapshot_exception

_MARKER = "__tcgen_intercepted__"


def is_intercepted(func: Any) -> bool:
    """Check if ``func`` is a recording wrapper."""
    return getattr(func, _MARKER, False)


def _outcome(error: Any, payload: Tuple[Any, ...]) -> Dict[str, Any]:
    if error is not None:
        if isinstance(error, BaseException):
            return {"error": snapshot_exception(error)}
        return {"error": snapshot(error)}
    if not payload:
        return {"output": None}
    if len(payload) == 1:
        return {"output": snapshot(payload[0])}
    return {"output": snapshot(list(payload))}


class _Call:
    """Snapshots of one in-flight invocation."""

    def __init__(
        self,
        recorder: RecordSink,
        name: str,
        construct: bool,
        receiver: Any,
        args: Tuple[Any, ...],
        kwargs: Dict[str, Any],
    ):
        self.recorder = recorder
        self.name = name
        self.construct = construct
        with recording_suspended():
            self.receiver = snapshot(receiver)
            self.payload: List[Any] = [snapshot(arg) for arg in args]
            self.kwargs = {key: snapshot(value) for key, value in kwargs.items()}

    def complete(self, error: Any, *payload: Any) -> None:
        with recording_suspended():
            self.recorder.log(
                self.name,
                self.construct,
                self.receiver,
                self.payload,
                _outcome(error, payload),
                kwargs=self.kwargs,
            )


def intercept(
    recorder: RecordSink,
    original: Callable[..., Any],
    name: Optional[str] = None,
    *,
    receiver: Any = None,
    construct: bool = False,
    bound: bool = False,
    call_style: CallStyle = CallStyle.AUTO,
) -> Callable[..., Any]:
    """
    Build a recording replacement for ``original``.

    Args:
        recorder: Sink that receives each settled invocation.
        original: The plain function being replaced.
        name: Member name recorded as ``method`` (defaults to ``__name__``).
        receiver: Identity recorded as ``require``. When None and ``bound``
            is set, the first argument (the instance) is snapshotted instead.
        construct: Whether ``original`` is the construction entry point
            (``__init__``); the constructed instance is recorded as output.
        bound: Whether the first argument is the instance or class and is
            excluded from the recorded payload.
        call_style: Calling convention handed to the ``Executor``.

    Usage::

        Calculator.add = intercept(recorder, Calculator.add, bound=True)
    """
    member = name or getattr(original, "__name__", "<callable>")
    bound = bound or construct
    if call_style is CallStyle.AUTO and inspect.iscoroutinefunction(original):
        call_style = CallStyle.DEFERRED

    def _split(args: Tuple[Any, ...]) -> Tuple[Any, Tuple[Any, ...]]:
        if bound and args:
            target = args[0] if receiver is None else receiver
            return target, args[1:]
        return receiver, args

    def _run(args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
        target, call_args = _split(args)
        call = _Call(recorder, member, construct, target, call_args, kwargs)

        if construct:
            instance = args[0]

            def build(*a: Any, **kw: Any) -> Any:
                original(instance, *a, **kw)
                return instance

            Executor(build, call.complete, construct=True).execute(*call_args, **kwargs)
            return None

        method = functools.partial(original, args[0]) if bound and args else original
        executor = Executor(method, call.complete, call_style=call_style)
        return executor.execute(*call_args, **kwargs)

    if inspect.iscoroutinefunction(original):
        @functools.wraps(original)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            if not get_context().is_recording:
                return await original(*args, **kwargs)
            return await _run(args, kwargs)

        wrapper = async_wrapper
    else:
        @functools.wraps(original)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            if not get_context().is_recording:
                return original(*args, **kwargs)
            return _run(args, kwargs)

        wrapper = sync_wrapper

    setattr(wrapper, _MARKER, True)
    return wrapper
