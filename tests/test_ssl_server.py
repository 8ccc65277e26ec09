import asyncio
import datetime
import ssl

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from echolab.ssl_server import SslEchoServer, main, make_server_context


def _make_cert(tmp_path):
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName("localhost")]), critical=False)
        .sign(key, hashes.SHA256())
    )
    cert_path = tmp_path / "servercert.pem"
    key_path = tmp_path / "serverkey.pem"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return cert, str(cert_path), str(key_path)


def _client_context() -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def test_context_requires_tls12(tmp_path):
    _, cert_path, key_path = _make_cert(tmp_path)
    context = make_server_context(cert_path, key_path)
    assert context.minimum_version == ssl.TLSVersion.TLSv1_2


def test_context_missing_files_raise(tmp_path):
    with pytest.raises(OSError):
        make_server_context(str(tmp_path / "missing.pem"), str(tmp_path / "missing.key"))


def test_port_before_start(tmp_path):
    _, cert_path, key_path = _make_cert(tmp_path)
    server = SslEchoServer("127.0.0.1", 4433, make_server_context(cert_path, key_path))
    assert server.port == 4433


@pytest.mark.asyncio
async def test_tls_echo_round_trip(tmp_path):
    cert, cert_path, key_path = _make_cert(tmp_path)
    async with SslEchoServer("127.0.0.1", 0, make_server_context(cert_path, key_path)) as server:
        reader, writer = await asyncio.open_connection(
            "127.0.0.1", server.port, ssl=_client_context(), server_hostname="localhost"
        )
        writer.write(b"secure hello")
        await writer.drain()
        reply = await asyncio.wait_for(reader.readexactly(12), timeout=5)
        peer_der = writer.get_extra_info("ssl_object").getpeercert(binary_form=True)
        writer.close()
        try:
            await writer.wait_closed()
        except (OSError, ssl.SSLError):
            pass
    assert reply == b"secure hello"
    assert peer_der == cert.public_bytes(serialization.Encoding.DER)


@pytest.mark.asyncio
async def test_start_twice_raises(tmp_path):
    _, cert_path, key_path = _make_cert(tmp_path)
    server = SslEchoServer("127.0.0.1", 0, make_server_context(cert_path, key_path))
    await server.start()
    try:
        with pytest.raises(RuntimeError):
            await server.start()
    finally:
        await server.close()


def test_main_with_missing_certificate_fails(tmp_path):
    result = main(
        [
            "--host", "127.0.0.1",
            "--port", "0",
            "--cert", str(tmp_path / "none.pem"),
            "--key", str(tmp_path / "none.key"),
        ]
    )
    assert result == 1