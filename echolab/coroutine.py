"""A resumable coroutine wrapper that traces each step of its life."""

from __future__ import annotations

import argparse
from typing import Any, Callable, Generator, Optional

SUSPEND = object()
"""Yield this from a coroutine body to suspend without producing a value."""

Trace = Callable[[str], Any]
Body = Generator[Any, None, Any]


class CoroRet:
    """Drives a generator-based coroutine one resumption at a time.

    The factory is called with the trace callable and must return a
    generator. Yielding ``SUSPEND`` suspends, yielding anything else
    publishes that value, and returning sets the final value.
    """

    def __init__(self, factory: Callable[[Trace], Body], trace: Optional[Trace] = None):
        self._trace: Trace = print if trace is None else trace
        self._trace("get_return_object was called")
        self._body = factory(self._trace)
        self._trace("initial_suspend was called")
        self._value: Any = 0
        self._done = False

    def move_next(self) -> bool:
        """Resume the coroutine; return True once it has finished."""
        if self._done:
            raise RuntimeError("coroutine has already finished")
        try:
            item = next(self._body)
        except StopIteration as stop:
            self._trace("return_value was called")
            self._value = stop.value
            self._trace("final_suspend was called")
            self._done = True
            return True
        if item is not SUSPEND:
            self._trace("yield_value was called")
            self._value = item
        return False

    def get(self) -> Any:
        """Return the most recently yielded or returned value."""
        return self._value

    def done(self) -> bool:
        return self._done


def _simple_body(trace: Trace) -> Body:
    trace("coroutine started")
    trace("1st suspend coroutine")
    yield SUSPEND
    trace("2nd suspend coroutine")
    yield 42
    trace("3rd suspend coroutine")
    yield 100
    return 200


def simple_coroutine(trace: Optional[Trace] = None) -> CoroRet:
    """Create the demonstration coroutine that yields 42 and 100 then returns 200."""
    return CoroRet(_simple_body, trace)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Step through a traced coroutine.")
    parser.parse_args(argv)

    coro = simple_coroutine(print)
    done = False
    print(f"coroutine {'done' if done else 'not done'} ret ={coro.get()}")
    for _ in range(4):
        done = coro.move_next()
        print(f"coroutine {'done' if done else 'not done'} ret ={coro.get()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())