"""Master/worker TCP echo server: one thread accepts, worker event loops serve."""

from __future__ import annotations

import argparse
import asyncio
import itertools
import logging
import socket
import threading
from contextlib import suppress
from typing import Optional

from echolab.tasks import default_thread_count
from echolab.uid_generator import thread_id_str

logger = logging.getLogger(__name__)

BUFFER_SIZE = 1024
DEFAULT_PORT = 9986
_ACCEPT_POLL = 0.2


def default_worker_count() -> int:
    """Twice the number of CPUs, or 4 when the CPU count is unknown."""
    return default_thread_count()


def _peer_host(sock: socket.socket) -> str:
    try:
        peer = sock.getpeername()
    except OSError:
        return "unknown"
    if isinstance(peer, tuple) and peer:
        return str(peer[0])
    return str(peer) or "local"


class Worker:
    """Owns an event loop on which the sessions handed to it are served."""

    def __init__(self, worker_id: int):
        self.id = worker_id
        self.handled = 0
        self._loop = asyncio.new_event_loop()
        self._lock = threading.Lock()
        self._closed = False
        logger.info("worker %d has been created", worker_id)

    def run(self) -> None:
        """Serve sessions on the calling thread until ``stop`` is called."""
        logger.info("worker %d is running", self.id)
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        finally:
            self._close_loop()
        logger.info("worker %d has stopped", self.id)

    def stop(self) -> None:
        """Ask the worker's loop to stop; safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._loop.call_soon_threadsafe(self._loop.stop)

    def handle_new_connection(self, sock: socket.socket) -> None:
        """Take over an accepted socket and serve it on this worker's loop."""
        with self._lock:
            if self._closed:
                logger.error("worker %d failed to handle new connection: worker stopped", self.id)
                sock.close()
                return
            self.handled += 1
            asyncio.run_coroutine_threadsafe(self._session(sock), self._loop)

    def _close_loop(self) -> None:
        with self._lock:
            self._closed = True
            pending = asyncio.all_tasks(self._loop)
            for task in pending:
                task.cancel()
            if pending:
                self._loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            self._loop.close()

    async def _session(self, sock: socket.socket) -> None:
        peer = _peer_host(sock)
        try:
            reader, writer = await asyncio.open_connection(sock=sock)
        except OSError as exc:
            logger.error("worker %d failed to handle new connection: %s", self.id, exc)
            sock.close()
            return
        logger.info("worker %d started session with %s", self.id, peer)
        try:
            while True:
                data = await reader.read(BUFFER_SIZE)
                if not data:
                    logger.info("worker %d client disconnected", self.id)
                    break
                logger.info("thread%s---worker %d read %d bytes", thread_id_str(), self.id, len(data))
                logger.info(
                    "worker %d processed %d bytes: %s",
                    self.id,
                    len(data),
                    data.decode(errors="replace"),
                )
                writer.write(data)
                await writer.drain()
                logger.info("thread%s---worker %d write completed", thread_id_str(), self.id)
        except OSError as exc:
            logger.error("worker %d session error: %s", self.id, exc)
        finally:
            writer.close()
            with suppress(OSError, asyncio.CancelledError):
                await writer.wait_closed()


class MasterWorkerTcpServer:
    """Accepts connections on one thread and deals them round-robin to workers."""

    def __init__(self, host: str = "0.0.0.0", port: int = DEFAULT_PORT, worker_count: int = 0):
        self.workers: list[Worker] = []
        self._threads: list[threading.Thread] = []
        self._listener: Optional[socket.socket] = None
        self._next_worker = itertools.count()
        self._stopped = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._cleanup_lock = threading.Lock()
        self._cleaned = False
        try:
            self._listener = socket.create_server((host, port))
            self._address = self._listener.getsockname()[:2]
            logger.info("Acceptor bound to %s:%d", *self._address)
            self._start_workers(worker_count)
            logger.info("MasterWorkerTcpServer initialized successfully")
        except Exception as exc:
            logger.error("Failed to initialize MasterWorkerTcpServer: %s", exc)
            self._cleanup()
            raise

    def _start_workers(self, worker_count: int) -> None:
        if worker_count <= 0:
            logger.warning("param worker_count is invalid, use the default value")
            worker_count = default_worker_count()
        for worker_id in range(worker_count):
            worker = Worker(worker_id)
            thread = threading.Thread(target=worker.run, name=f"worker-{worker_id}", daemon=True)
            self.workers.append(worker)
            self._threads.append(thread)
            thread.start()
        logger.info("Created %d worker threads", worker_count)

    @property
    def address(self) -> tuple[str, int]:
        """The (host, port) the server listens on."""
        return self._address

    def run(self) -> None:
        """Accept connections until ``stop`` is called."""
        if self._stopped.is_set():
            raise RuntimeError("server has been stopped")
        assert self._listener is not None
        listener = self._listener
        self._idle.clear()
        try:
            logger.info("Starting to accept connections...")
            listener.settimeout(_ACCEPT_POLL)
            while not self._stopped.is_set():
                try:
                    conn, _ = listener.accept()
                except socket.timeout:
                    continue
                except OSError as exc:
                    if self._stopped.is_set() or listener.fileno() == -1:
                        break
                    logger.error("Accept error: %s", exc)
                    continue
                logger.info(
                    "thread%s---Accepted connection from %s", thread_id_str(), _peer_host(conn)
                )
                worker = self.workers[next(self._next_worker) % len(self.workers)]
                worker.handle_new_connection(conn)
        finally:
            self._idle.set()

    def stop(self) -> None:
        """Stop accepting, stop every worker and wait for their threads."""
        logger.info("Stopping MasterWorkerTcpServer...")
        self._stopped.set()
        self._idle.wait()
        self._cleanup()

    def _cleanup(self) -> None:
        with self._cleanup_lock:
            if self._cleaned:
                return
            self._cleaned = True
        if self._listener is not None:
            self._listener.close()
        for worker in self.workers:
            worker.stop()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current:
                thread.join()

    def __enter__(self) -> "MasterWorkerTcpServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Master/worker TCP echo server.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--workers", type=int, default=default_worker_count())
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        server = MasterWorkerTcpServer(args.host, args.port, args.workers)
    except OSError as exc:
        logger.error("Server error: %s", exc)
        return 1
    try:
        server.run()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())