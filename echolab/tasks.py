"""Task execution demos: thread pools, serialized strands, timers, async queries."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import threading
import time
from collections import deque
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, Optional

from echolab.uid_generator import thread_id_str

logger = logging.getLogger(__name__)

_POOL_TASK_SLEEP = 1.0


def default_thread_count() -> int:
    """Twice the number of CPUs, or 4 when the CPU count is unknown."""
    cpus = os.cpu_count() or 0
    return cpus << 1 if cpus else 4


class Strand:
    """Runs posted callables one at a time, in the order they were posted.

    With an executor, handlers run on its threads but never concurrently.
    Without one, handlers queue up until ``drain`` runs them in the caller.
    """

    def __init__(self, executor: Optional[Executor] = None):
        self._executor = executor
        self._queue: deque[Callable[[], Any]] = deque()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._running = False
        self._error: Optional[BaseException] = None

    def post(self, fn: Callable[[], Any]) -> None:
        """Queue a callable for serialized execution."""
        with self._lock:
            self._queue.append(fn)
            if self._executor is None or self._running:
                return
            self._running = True
        self._executor.submit(self._run)

    def _run(self) -> None:
        while True:
            with self._lock:
                if not self._queue:
                    self._running = False
                    self._idle.notify_all()
                    return
                fn = self._queue.popleft()
            try:
                fn()
            except Exception as exc:
                logger.exception("strand handler failed")
                with self._lock:
                    if self._error is None:
                        self._error = exc

    def drain(self) -> None:
        """Wait until every posted handler has run; re-raise the first failure."""
        if self._executor is None:
            with self._lock:
                if self._running:
                    raise RuntimeError("strand is already draining")
                self._running = True
            self._run()
        else:
            with self._idle:
                self._idle.wait_for(lambda: not self._running and not self._queue)
        with self._lock:
            error, self._error = self._error, None
        if error is not None:
            raise error


def run_strand_demo(task_count: int = 50, workers: Optional[int] = None) -> list[tuple[int, int]]:
    """Increment a shared counter from tasks on a strand over a thread pool.

    Returns (task index, counter after the task) in execution order.
    """
    records: list[tuple[int, int]] = []
    counter = 0

    def task(index: int) -> None:
        nonlocal counter
        counter += 1
        records.append((index, counter))
        logger.info(
            "task %d incremented global_counter to %d on thread-%s", index, counter, thread_id_str()
        )

    with ThreadPoolExecutor(max_workers=workers or default_thread_count()) as pool:
        strand = Strand(pool)
        for index in range(task_count):
            strand.post(lambda index=index: task(index))
        strand.drain()
    logger.info("all task finished global_counter:%d", counter)
    return records


async def trigger_timer_times(
    interval_ms: int, count: int, on_fire: Optional[Callable[[int], Any]] = None
) -> int:
    """Fire a timer every ``interval_ms`` until it has fired ``count`` times.

    The timer always fires at least once. Returns the number of firings.
    """
    if interval_ms < 0 or count < 0:
        raise ValueError("interval and count must not be negative")
    fired = 0
    try:
        while True:
            await asyncio.sleep(interval_ms / 1000)
            fired += 1
            logger.info("much triggered timer was triggered once (%d)", fired)
            if on_fire is not None:
                on_fire(fired)
            if fired >= count:
                logger.info("much triggered timer has triggered the last time, stop now (%d)", count)
                return fired
    except asyncio.CancelledError:
        logger.info("timer was cancelled")
        raise


async def async_query_value(pool: Executor, key: str) -> str:
    """Compute the value for ``key`` on ``pool`` and resume on the calling loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(pool, lambda: "value for " + key)


def run_thread_pool_demo(workers: Optional[int] = None) -> list[str]:
    """Run two tasks on a thread pool and return their messages in submission order."""

    def plain_task() -> str:
        message = f"task running on thread {thread_id_str()}"
        logger.info(message)
        time.sleep(_POOL_TASK_SLEEP)
        return message

    def task_with_params(a: int, c: str) -> str:
        message = f"task with params: a={a}, c={c}, thread={thread_id_str()}"
        logger.info(message)
        return message

    with ThreadPoolExecutor(max_workers=workers or default_thread_count()) as pool:
        futures = [pool.submit(plain_task), pool.submit(task_with_params, 42, "x")]
        return [future.result() for future in futures]


async def _timer_demo() -> None:
    async def one_shot(name: str, seconds: float) -> None:
        logger.info("%s started, will expire in %g seconds", name, seconds)
        try:
            await asyncio.sleep(seconds)
        except asyncio.CancelledError:
            logger.info("%s was cancelled", name)
            raise
        logger.info("%s expired", name)

    logger.info("steady_timer1 started, will expire every 1 second for 10 times")
    await asyncio.gather(
        one_shot("steady_timer", 2),
        one_shot("system_timer", 3),
        trigger_timer_times(1000, 10),
    )


async def _query_demo() -> str:
    with ThreadPoolExecutor() as pool:
        key = "01"
        value = await async_query_value(pool, key)
        logger.info("got value for key%s:%s", key, value)
        return value


def _run_until_interrupted(thread_count: int) -> None:
    stop = threading.Event()
    threads = [threading.Thread(target=stop.wait, daemon=True) for _ in range(thread_count)]
    for thread in threads:
        thread.start()
    logger.info("%d threads waiting; press Ctrl+C to stop", thread_count)
    try:
        while not stop.wait(0.5):
            pass
    except KeyboardInterrupt:
        stop.set()
    for thread in threads:
        thread.join()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Task execution demos.")
    parser.add_argument("demo", choices=["pool", "strand", "timer", "query", "concurrency"])
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    if args.demo == "pool":
        run_thread_pool_demo()
    elif args.demo == "strand":
        run_strand_demo()
    elif args.demo == "timer":
        asyncio.run(_timer_demo())
    elif args.demo == "query":
        asyncio.run(_query_demo())
    else:
        _run_until_interrupted(default_thread_count())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())