"""
Tests for tcgen.interceptor.

The wrapper must be transparent (same value, same exception, same
coroutine-ness) while producing exactly one record per settled call.
"""

import asyncio
import inspect
import threading
import time

import pytest

from tcgen.context import RecordContext, RecordMode, set_context
from tcgen.executor import CallStyle
from tcgen.interceptor import intercept, is_intercepted


class Calculator:
    def __init__(self, total=0):
        self.total = total

    def add(self, a, b):
        self.total += a + b
        return a + b

    def fail(self):
        raise ValueError("boom")

    async def slow_double(self, x):
        await asyncio.sleep(0)
        return x * 2

    def compute(self, x, callback):
        callback(None, x + 1)


class TestSync:
    def test_add_records_payload_and_output(self, sink):
        add = intercept(sink, Calculator.add, "add", bound=True)

        calc = Calculator(10)
        assert add(calc, 2, 3) == 5

        assert sink.records == [{
            "require": {"total": 10},
            "request": {"payload": [2, 3], "construct": False, "method": "add"},
            "kwargs": {},
            "output": {"output": 5},
        }]
        assert calc.total == 15

    def test_error_reaches_caller_and_record(self, sink):
        fail = intercept(sink, Calculator.fail, bound=True)

        with pytest.raises(ValueError, match="boom"):
            fail(Calculator())

        assert sink.records[0]["output"] == {
            "error": {"type": "ValueError", "message": "boom", "args": ["boom"]},
        }
        assert sink.records[0]["request"]["method"] == "fail"

    def test_arguments_snapshotted_before_mutation(self, sink):
        def append_item(items):
            items.append("new")
            return len(items)

        wrapped = intercept(sink, append_item)
        items = ["old"]
        assert wrapped(items) == 2

        assert sink.records[0]["request"]["payload"] == [["old"]]
        assert sink.records[0]["require"] is None

    def test_uncopyable_argument_uses_sentinel(self, sink):
        loop = []
        loop.append(loop)

        wrapped = intercept(sink, lambda value: "ok", "check")
        assert wrapped(loop) == "ok"
        assert sink.records[0]["request"]["payload"] == [None]

    def test_keyword_arguments(self, sink):
        def scale(value, *, factor=1):
            return value * factor

        wrapped = intercept(sink, scale)
        assert wrapped(3, factor=4) == 12
        assert sink.records[0]["kwargs"] == {"factor": 4}

    def test_static_receiver_identity(self, sink):
        wrapped = intercept(sink, max, "max", receiver="builtins:max")
        assert wrapped(1, 2) == 2
        assert sink.records[0]["require"] == "builtins:max"


class TestConstruct:
    def test_init_records_instance(self, sink):
        class Box:
            def __init__(self, size):
                self.size = size

        Box.__init__ = intercept(sink, Box.__init__, "__init__", receiver="tests:Box", construct=True)

        box = Box(3)
        assert box.size == 3

        record = sink.records[0]
        assert record["require"] == "tests:Box"
        assert record["request"] == {"payload": [3], "construct": True, "method": "__init__"}
        assert record["output"] == {"output": {"size": 3}}

    def test_zero_argument_constructor_that_throws(self, sink):
        class Broken:
            def __init__(self):
                raise Exception("boom")

        Broken.__init__ = intercept(sink, Broken.__init__, "__init__", receiver="tests:Broken", construct=True)

        with pytest.raises(Exception, match="boom"):
            Broken()

        assert len(sink.records) == 1
        record = sink.records[0]
        assert record["request"] == {"payload": [], "construct": True, "method": "__init__"}
        assert record["output"]["error"]["message"] == "boom"


class TestCallback:
    def test_callback_outcome_recorded_and_forwarded(self, sink):
        compute = intercept(sink, Calculator.compute, bound=True)
        received = []

        compute(Calculator(), 1, lambda err, value: received.append((err, value)))

        assert received == [(None, 2)]
        assert sink.records[0]["output"] == {"output": 2}
        assert sink.records[0]["request"]["payload"] == [1, None]

    def test_callback_with_several_results(self, sink):
        def split(text, callback):
            callback(None, *text.split(","))

        wrapped = intercept(sink, split)
        wrapped("a,b", lambda *a: None)
        assert sink.records[0]["output"] == {"output": ["a", "b"]}

    def test_trailing_class_is_not_a_callback(self, sink):
        class Checker:
            def check(self, value, kind):
                return isinstance(value, kind)

        Checker.check = intercept(sink, Checker.__dict__["check"], "check", bound=True)

        assert Checker().check(5, int) is True
        assert sink.records[0]["output"] == {"output": True}
        assert sink.records[0]["request"]["payload"] == [5, None]

    def test_sync_style_records_return_value(self, sink):
        def apply(value, func):
            return func(value)

        wrapped = intercept(sink, apply, call_style=CallStyle.SYNC)
        assert wrapped(2, str) == "2"
        assert sink.records[0]["output"] == {"output": "2"}


class TestCallableInstances:
    def test_call_receiver_is_recorded(self, sink):
        class Checker:
            def __init__(self):
                self.value = 1

            def __call__(self, other):
                return other == self.value

        Checker.__call__ = intercept(sink, Checker.__dict__["__call__"], "__call__", bound=True)

        assert Checker()(1) is True
        assert sink.records[0]["require"] == {"value": 1}

    def test_constructed_callable_instance_is_recorded(self, sink):
        class Greeter:
            def __init__(self, name):
                self.name = name

            def __call__(self):
                return f"hi {self.name}"

        Greeter.__init__ = intercept(sink, Greeter.__init__, "__init__", receiver="tests:Greeter", construct=True)

        Greeter("ada")
        assert sink.records[0]["output"] == {"output": {"name": "ada"}}


class TestAsync:
    def test_coroutine_function_stays_coroutine_function(self, sink):
        wrapped = intercept(sink, Calculator.slow_double, bound=True)
        assert inspect.iscoroutinefunction(wrapped)

        result = asyncio.run(wrapped(Calculator(), 21))

        assert result == 42
        assert sink.records[0]["output"] == {"output": 42}

    def test_async_rejection(self, sink):
        async def boom():
            raise KeyError("k")

        wrapped = intercept(sink, boom)
        with pytest.raises(KeyError):
            asyncio.run(wrapped())

        assert sink.records[0]["output"]["error"]["type"] == "KeyError"

    def test_async_with_trailing_callable_is_not_callback(self, sink):
        async def run(func):
            return func()

        wrapped = intercept(sink, run)
        assert asyncio.run(wrapped(lambda: "x")) == "x"
        assert sink.records[0]["output"] == {"output": "x"}


class TestTransparency:
    def test_metadata_preserved(self, sink):
        wrapped = intercept(sink, Calculator.add, bound=True)

        assert wrapped.__name__ == "add"
        assert wrapped.__wrapped__ is Calculator.add
        assert is_intercepted(wrapped)
        assert not is_intercepted(Calculator.add)

    def test_off_mode_passes_through(self, sink):
        set_context(RecordContext(mode=RecordMode.OFF))
        wrapped = intercept(sink, Calculator.add, bound=True)

        assert wrapped(Calculator(), 1, 1) == 2
        assert sink.records == []

    def test_nested_calls_both_recorded(self, sink):
        inner = intercept(sink, lambda x: x + 1, "inner")
        outer = intercept(sink, lambda x: inner(x) * 2, "outer")

        assert outer(1) == 4
        assert [r["request"]["method"] for r in sink.records] == ["inner", "outer"]

    def test_threads_sharing_a_context_each_record(self, sink):
        log = sink.log

        def slow_log(*args, **kwargs):
            time.sleep(0.2)
            log(*args, **kwargs)

        sink.log = slow_log
        work = intercept(sink, lambda x: x * 2, "work")

        async def main():
            return await asyncio.gather(asyncio.to_thread(work, 1), asyncio.to_thread(work, 2))

        assert asyncio.run(main()) == [2, 4]
        assert sorted(r["request"]["payload"] for r in sink.records) == [[1], [2]]

    def test_capture_in_one_thread_does_not_suspend_another(self, sink, record_context):
        entered = threading.Event()
        release = threading.Event()
        log = sink.log

        def blocking_log(*args, **kwargs):
            entered.set()
            release.wait(5)
            log(*args, **kwargs)

        sink.log = blocking_log
        slow = intercept(sink, lambda: "slow", "slow")

        def run_slow():
            set_context(record_context)
            slow()

        worker = threading.Thread(target=run_slow)
        worker.start()
        assert entered.wait(5)

        sink.log = log
        fast = intercept(sink, lambda: "fast", "fast")
        assert fast() == "fast"
        release.set()
        worker.join(5)

        assert [r["request"]["method"] for r in sink.records] == ["fast", "slow"]

    def test_failing_recorder_never_breaks_caller(self):
        class BrokenSink:
            def log(self, *args, **kwargs):
                raise RuntimeError("disk on fire")

        wrapped = intercept(BrokenSink(), lambda: "fine", "f")
        assert wrapped() == "fine"
