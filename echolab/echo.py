"""TCP echo server and clients built on asyncio streams."""

from __future__ import annotations

import argparse
import asyncio
import logging
from contextlib import suppress
from typing import Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

BUFFER_SIZE = 1024
DEFAULT_PORT = 9527
BASIC_PORT = 8080
BASIC_MESSAGE = "Hello from basic client!"

Handler = Callable[[asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]]


def _peer_host(writer: asyncio.StreamWriter) -> str:
    peer = writer.get_extra_info("peername")
    return str(peer[0]) if peer else "unknown"


async def _close_writer(writer: asyncio.StreamWriter) -> None:
    writer.close()
    with suppress(OSError):
        await writer.wait_closed()


async def echo_session(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    """Write back everything read from the stream until the peer disconnects."""
    host = _peer_host(writer)
    try:
        while True:
            data = await reader.read(BUFFER_SIZE)
            if not data:
                logger.info("client %s disconnected", host)
                break
            logger.debug("read success bytes:%d", len(data))
            writer.write(data)
            await writer.drain()
            logger.debug("write success bytes:%d", len(data))
    except OSError as exc:
        logger.error("session %s error: %s", host, exc)
    finally:
        await _close_writer(writer)


async def _echo_single(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    """Echo one read back to the peer, then close the connection."""
    try:
        data = await reader.read(BUFFER_SIZE)
        if data:
            logger.info("Received: %s", data.decode(errors="replace"))
            writer.write(data)
            await writer.drain()
    except OSError as exc:
        logger.error("session %s error: %s", _peer_host(writer), exc)
    finally:
        await _close_writer(writer)


class EchoServer:
    """Accepts TCP connections and echoes data back on each of them.

    With ``once`` set, each connection gets a single read echoed back and is
    then closed; otherwise it is echoed until the peer disconnects.
    """

    def __init__(self, host: str = "0.0.0.0", port: int = DEFAULT_PORT, once: bool = False):
        self.host = host
        self.once = once
        self._requested_port = port
        self._server: Optional[asyncio.AbstractServer] = None

    async def start(self) -> None:
        """Bind the listening socket and begin accepting connections."""
        if self._server is not None:
            raise RuntimeError("server already started")
        handler: Handler = _echo_single if self.once else echo_session

        async def on_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            logger.info("new connection from %s", _peer_host(writer))
            await handler(reader, writer)

        self._server = await asyncio.start_server(on_connect, self.host, self._requested_port)
        logger.info("server listening on %s:%d", self.host, self.port)

    async def close(self) -> None:
        """Stop accepting connections and wait until the server has closed."""
        if self._server is None:
            return
        server, self._server = self._server, None
        server.close()
        await server.wait_closed()

    @property
    def port(self) -> int:
        """The bound port once started, otherwise the requested one."""
        if self._server is not None and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self._requested_port

    async def _serve(self) -> None:
        await self.start()
        assert self._server is not None
        try:
            await self._server.serve_forever()
        finally:
            await self.close()

    async def __aenter__(self) -> "EchoServer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


async def echo_once(
    host: str = "localhost",
    port: int = BASIC_PORT,
    message: Union[str, bytes] = BASIC_MESSAGE,
) -> bytes:
    """Send ``message`` and return the reply of the same length."""
    payload = message.encode() if isinstance(message, str) else bytes(message)
    reader, writer = await asyncio.open_connection(host, port)
    try:
        writer.write(payload)
        await writer.drain()
        reply = await reader.readexactly(len(payload))
    finally:
        await _close_writer(writer)
    logger.info("Server reply: %s", reply.decode(errors="replace"))
    return reply


async def run_echo_client(host: str = "127.0.0.1", port: int = DEFAULT_PORT) -> None:
    """Connect to a server and echo back whatever it sends until it disconnects."""
    reader, writer = await asyncio.open_connection(host, port)
    logger.info("connect to server %s success", host)
    await echo_session(reader, writer)


def _configure_logging() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")


def main_server(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="TCP echo server.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--once", action="store_true", help="echo a single read per connection")
    args = parser.parse_args(argv)
    _configure_logging()
    server = EchoServer(args.host, args.port, args.once)
    try:
        asyncio.run(server._serve())
    except KeyboardInterrupt:
        pass
    except OSError as exc:
        logger.error("Server error: %s", exc)
        return 1
    return 0


def main_client(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="TCP echo client.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--message", help="send this once and print the reply")
    args = parser.parse_args(argv)
    _configure_logging()
    try:
        if args.message is not None:
            reply = asyncio.run(echo_once(args.host, args.port, args.message))
            print(reply.decode(errors="replace"))
        else:
            asyncio.run(run_echo_client(args.host, args.port))
    except (OSError, asyncio.IncompleteReadError) as exc:
        logger.error("connect to server failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main_server())