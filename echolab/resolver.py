"""Resolve a host and service name, then connect to the first endpoint."""

from __future__ import annotations

import argparse
import asyncio
import logging
import socket
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_HOST = "test.pp.com"
DEFAULT_SERVICE = "9527"


async def resolve(host: str, service: str) -> list[tuple[str, int]]:
    """Return the distinct TCP endpoints (address, port) for host and service."""
    logger.info("Starting DNS resolution for %s:%s", host, service)
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, service, type=socket.SOCK_STREAM)
    endpoints = list(dict.fromkeys((str(info[4][0]), int(info[4][1])) for info in infos))
    logger.info("resolve success, found %d endpoints", len(endpoints))
    for address, port in endpoints:
        logger.info("endpoint: %s:%d", address, port)
    return endpoints


async def connect_to_server(host: str, service: str) -> tuple[str, int]:
    """Connect to the first resolved endpoint, close again, and return that endpoint."""
    endpoints = await resolve(host, service)
    if not endpoints:
        raise OSError(f"no endpoints found for {host}:{service}")
    address, port = endpoints[0]
    _, writer = await asyncio.open_connection(address, port)
    logger.info("connect to server success")
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    logger.info("shutdown socket success")
    return address, port


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Resolve a name and connect to it.")
    parser.add_argument("host", nargs="?", default=DEFAULT_HOST)
    parser.add_argument("service", nargs="?", default=DEFAULT_SERVICE)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        asyncio.run(connect_to_server(args.host, args.service))
    except OSError as exc:
        logger.error("connect to server failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())