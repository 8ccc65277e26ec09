"""TLS echo server: each connection gets one read echoed back."""

from __future__ import annotations

import argparse
import asyncio
import logging
import ssl
from typing import Optional

logger = logging.getLogger(__name__)

BUFFER_SIZE = 1024
DEFAULT_PORT = 4433
DEFAULT_CERTFILE = "resources/servercert.pem"
DEFAULT_KEYFILE = "resources/serverkey.pem"


def make_server_context(
    certfile: str = DEFAULT_CERTFILE, keyfile: str = DEFAULT_KEYFILE
) -> ssl.SSLContext:
    """Build a server context that accepts TLS 1.2 or newer only."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.options |= ssl.OP_SINGLE_DH_USE
    context.load_cert_chain(certfile, keyfile)
    return context


async def _ssl_session(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    logger.info("SSL New connection accepted.")
    try:
        data = await reader.read(BUFFER_SIZE)
        if not data:
            logger.info("SSL Connection closed by peer.")
            return
        logger.info("SSL Read %d bytes from client", len(data))
        writer.write(data)
        await writer.drain()
        logger.info("SSL Write %d bytes to client", len(data))
    except (OSError, ssl.SSLError) as exc:
        logger.error("SSL session error: %s", exc)
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except (OSError, ssl.SSLError):
            pass


class SslEchoServer:
    """Accepts TLS connections and echoes a single read on each."""

    def __init__(self, host: str, port: int, ssl_context: ssl.SSLContext):
        self.host = host
        self.ssl_context = ssl_context
        self._requested_port = port
        self._server: Optional[asyncio.AbstractServer] = None

    async def start(self) -> None:
        """Bind the listening socket and begin accepting connections."""
        if self._server is not None:
            raise RuntimeError("server already started")
        self._server = await asyncio.start_server(
            _ssl_session, self.host, self._requested_port, ssl=self.ssl_context
        )
        logger.info("SSL server listening on %s:%d", self.host, self.port)

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

    async def __aenter__(self) -> "SslEchoServer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="TLS echo server.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--cert", default=DEFAULT_CERTFILE)
    parser.add_argument("--key", default=DEFAULT_KEYFILE)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        context = make_server_context(args.cert, args.key)
        asyncio.run(SslEchoServer(args.host, args.port, context)._serve())
    except KeyboardInterrupt:
        pass
    except (OSError, ssl.SSLError) as exc:
        logger.error("SSL server error: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())