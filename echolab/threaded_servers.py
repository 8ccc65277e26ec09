"""Blocking TCP echo servers: a thread per client, or a shared thread pool."""

from __future__ import annotations

import argparse
import logging
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterator, Optional

from echolab.tasks import default_thread_count
from echolab.uid_generator import thread_id_str

logger = logging.getLogger(__name__)

BUFFER_SIZE = 1024
DEFAULT_PORT = 9996
_ACCEPT_POLL = 0.2


def _peer_host(sock: socket.socket) -> str:
    try:
        return str(sock.getpeername()[0])
    except (OSError, IndexError):
        return "unknown"


def _process_data(data: bytes) -> None:
    logger.info("Received %d bytes: %s", len(data), data.decode(errors="replace"))


class _Connections:
    """Thread-safe set of open client sockets that can be torn down together."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._open: set[socket.socket] = set()
        self._closed = False

    def add(self, conn: socket.socket) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._open.add(conn)
            return True

    def discard(self, conn: socket.socket) -> None:
        with self._lock:
            self._open.discard(conn)

    def close_all(self) -> None:
        with self._lock:
            self._closed = True
            conns = list(self._open)
        for conn in conns:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass


def _serve_connection(conn: socket.socket, connections: _Connections) -> None:
    peer = _peer_host(conn)
    logger.info("thread %s start serving client %s", thread_id_str(), peer)
    try:
        with conn:
            while True:
                data = conn.recv(BUFFER_SIZE)
                if not data:
                    logger.info("Connection closed by peer: %s", peer)
                    break
                _process_data(data)
                conn.sendall(data)
    except OSError as exc:
        logger.error("Exception in connection handler: %s", exc)
    finally:
        connections.discard(conn)


def _accept_connections(
    listener: socket.socket, stopped: threading.Event, stop_on_error: bool
) -> Iterator[socket.socket]:
    listener.settimeout(_ACCEPT_POLL)
    while not stopped.is_set():
        try:
            conn, _ = listener.accept()
        except socket.timeout:
            continue
        except OSError as exc:
            if stopped.is_set() or listener.fileno() == -1:
                return
            logger.error("Accept error: %s", exc)
            if stop_on_error:
                return
            continue
        conn.settimeout(None)
        yield conn


class ThreadPerClientServer:
    """Echo server that serves every accepted client on a thread of its own."""

    def __init__(self, host: str = "0.0.0.0", port: int = DEFAULT_PORT):
        self._listener = socket.create_server((host, port))
        self._address = self._listener.getsockname()[:2]
        self._stopped = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._connections = _Connections()
        self._threads: list[threading.Thread] = []

    @property
    def address(self) -> tuple[str, int]:
        """The (host, port) the server listens on."""
        return self._address

    def serve_forever(self) -> None:
        """Accept clients until ``shutdown``; accept errors are logged and skipped."""
        if self._stopped.is_set():
            raise RuntimeError("server has been shut down")
        self._idle.clear()
        try:
            for conn in _accept_connections(self._listener, self._stopped, stop_on_error=False):
                logger.info("New connection accepted from %s", _peer_host(conn))
                if not self._connections.add(conn):
                    conn.close()
                    continue
                thread = threading.Thread(
                    target=_serve_connection, args=(conn, self._connections), daemon=True
                )
                self._threads = [t for t in self._threads if t.is_alive()]
                self._threads.append(thread)
                thread.start()
        finally:
            self._idle.set()

    def shutdown(self) -> None:
        """Stop accepting, close every client connection and wait for their threads."""
        self._stopped.set()
        self._idle.wait()
        self._listener.close()
        self._connections.close_all()
        for thread in self._threads:
            thread.join()

    def __enter__(self) -> "ThreadPerClientServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()


class ThreadPoolServer:
    """Echo server whose client sessions run on a fixed-size thread pool.

    Each session holds a pool thread while its client is connected, so
    ``pool_size`` bounds how many clients are served at the same time.
    Accepting stops at the first accept error.
    """

    def __init__(self, host: str = "0.0.0.0", port: int = DEFAULT_PORT, pool_size: int = 0):
        self._listener = socket.create_server((host, port))
        self._address = self._listener.getsockname()[:2]
        self._pool = ThreadPoolExecutor(
            max_workers=pool_size if pool_size > 0 else default_thread_count(),
            thread_name_prefix="echo-session",
        )
        self._stopped = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._connections = _Connections()

    @property
    def address(self) -> tuple[str, int]:
        """The (host, port) the server listens on."""
        return self._address

    def serve_forever(self) -> None:
        """Accept clients and hand their sessions to the pool until ``shutdown``."""
        if self._stopped.is_set():
            raise RuntimeError("server has been shut down")
        self._idle.clear()
        try:
            for conn in _accept_connections(self._listener, self._stopped, stop_on_error=True):
                logger.info("New connection accepted from %s", _peer_host(conn))
                if not self._connections.add(conn):
                    conn.close()
                    continue
                try:
                    self._pool.submit(_serve_connection, conn, self._connections)
                except RuntimeError:
                    self._connections.discard(conn)
                    conn.close()
                    break
        finally:
            self._idle.set()

    def shutdown(self) -> None:
        """Stop accepting, close every client connection and wait for the pool."""
        self._stopped.set()
        self._idle.wait()
        self._listener.close()
        self._connections.close_all()
        self._pool.shutdown(wait=True)

    def __enter__(self) -> "ThreadPoolServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()


def _parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    return parser


def _serve(server) -> int:
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.shutdown()
    return 0


def _configure_logging() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")


def main_per_client(argv: Optional[list[str]] = None) -> int:
    args = _parser("TCP echo server with one thread per client.").parse_args(argv)
    _configure_logging()
    try:
        server = ThreadPerClientServer(args.host, args.port)
    except OSError as exc:
        logger.error("Server error: %s", exc)
        return 1
    return _serve(server)


def main_pool(argv: Optional[list[str]] = None) -> int:
    parser = _parser("TCP echo server backed by a thread pool.")
    parser.add_argument("--pool-size", type=int, default=default_thread_count())
    args = parser.parse_args(argv)
    _configure_logging()
    try:
        server = ThreadPoolServer(args.host, args.port, args.pool_size)
    except OSError as exc:
        logger.error("Server error: %s", exc)
        return 1
    return _serve(server)


if __name__ == "__main__":
    raise SystemExit(main_per_client())