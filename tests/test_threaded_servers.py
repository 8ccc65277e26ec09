import socket
import threading
from contextlib import contextmanager

import pytest

from echolab.threaded_servers import ThreadPerClientServer, ThreadPoolServer


def _recv_exactly(sock, size):
    chunks = b""
    while len(chunks) < size:
        chunk = sock.recv(size - len(chunks))
        if not chunk:
            break
        chunks += chunk
    return chunks


def _echo(address, payload):
    with socket.create_connection(address, timeout=5) as client:
        client.sendall(payload)
        return _recv_exactly(client, len(payload))


@contextmanager
def _running(server):
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield thread
    finally:
        server.shutdown()
        thread.join(5)


@pytest.mark.parametrize("pooled", [False, True])
def test_echo_round_trip(pooled):
    server = ThreadPoolServer("127.0.0.1", 0, 2) if pooled else ThreadPerClientServer("127.0.0.1", 0)
    with _running(server):
        assert _echo(server.address, b"hello threads") == b"hello threads"


@pytest.mark.parametrize("pooled", [False, True])
def test_large_payload_is_echoed_in_full(pooled):
    payload = bytes(range(256)) * 12
    server = ThreadPoolServer("127.0.0.1", 0, 2) if pooled else ThreadPerClientServer("127.0.0.1", 0)
    with _running(server):
        assert _echo(server.address, payload) == payload


@pytest.mark.parametrize("pooled", [False, True])
def test_several_messages_on_one_connection(pooled):
    server = ThreadPoolServer("127.0.0.1", 0, 2) if pooled else ThreadPerClientServer("127.0.0.1", 0)
    with _running(server):
        with socket.create_connection(server.address, timeout=5) as client:
            for message in (b"alpha", b"beta", b"gamma"):
                client.sendall(message)
                assert _recv_exactly(client, len(message)) == message


@pytest.mark.parametrize("pooled", [False, True])
def test_concurrent_clients_get_their_own_data(pooled):
    server = ThreadPoolServer("127.0.0.1", 0, 2) if pooled else ThreadPerClientServer("127.0.0.1", 0)
    with _running(server):
        clients = [socket.create_connection(server.address, timeout=5) for _ in range(2)]
        try:
            for index, client in enumerate(clients):
                client.sendall(f"client-{index}".encode())
            replies = [_recv_exactly(client, 8) for client in clients]
        finally:
            for client in clients:
                client.close()
    assert replies == [b"client-0", b"client-1"]


@pytest.mark.parametrize("pooled", [False, True])
def test_shutdown_ends_serve_forever(pooled):
    server = ThreadPoolServer("127.0.0.1", 0, 2) if pooled else ThreadPerClientServer("127.0.0.1", 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    server.shutdown()
    thread.join(5)
    assert not thread.is_alive()


@pytest.mark.parametrize("pooled", [False, True])
def test_shutdown_refuses_new_connections(pooled):
    server = ThreadPoolServer("127.0.0.1", 0, 2) if pooled else ThreadPerClientServer("127.0.0.1", 0)
    address = server.address
    with _running(server):
        assert _echo(address, b"up") == b"up"
    with pytest.raises(OSError):
        socket.create_connection(address, timeout=2)


@pytest.mark.parametrize("pooled", [False, True])
def test_shutdown_closes_open_client_connections(pooled):
    server = ThreadPoolServer("127.0.0.1", 0, 2) if pooled else ThreadPerClientServer("127.0.0.1", 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    with socket.create_connection(server.address, timeout=5) as client:
        client.sendall(b"ok")
        assert _recv_exactly(client, 2) == b"ok"
        server.shutdown()
        thread.join(5)
        assert client.recv(16) == b""


@pytest.mark.parametrize("pooled", [False, True])
def test_serve_forever_after_shutdown_raises(pooled):
    server = ThreadPoolServer("127.0.0.1", 0, 2) if pooled else ThreadPerClientServer("127.0.0.1", 0)
    server.shutdown()
    with pytest.raises(RuntimeError):
        server.serve_forever()


@pytest.mark.parametrize("pooled", [False, True])
def test_address_reports_bound_port(pooled):
    server = ThreadPoolServer("127.0.0.1", 0, 2) if pooled else ThreadPerClientServer("127.0.0.1", 0)
    try:
        host, port = server.address
        assert host == "127.0.0.1"
        assert 0 < port < 65536
    finally:
        server.shutdown()


def test_bind_failure_raises():
    with pytest.raises(OSError):
        ThreadPerClientServer("203.0.113.1", 0)