import hashlib
import socket

import pytest

from ftz.errors import (
    GetNotAllowed, PutNotAllowed, ProtocolViolation,
)
from ftz.file.sandbox import SandboxDir
from ftz.transfer.protocol import encode_hash_header
from ftz.transfer.server import (
    ConnectionHandler, ConnectionState, HostCapabilities, TransferServer,
)


def _recv_all(sock):
    chunks = []
    while True:
        chunk = sock.recv(65536)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def _run_handler(capabilities, sock_pair, request: bytes):
    server_end, client_end = sock_pair
    client_end.sendall(request)
    client_end.shutdown(socket.SHUT_WR)

    handler = ConnectionHandler(capabilities, server_end)
    try:
        handler.run()
    finally:
        server_end.close()
    return handler, _recv_all(client_end)


def test_get(share_dir, sock_pair):
    (share_dir / "docs").mkdir()
    (share_dir / "docs" / "a.txt").write_bytes(b"file contents")

    with SandboxDir(share_dir) as get_dir:
        handler, response = _run_handler(
            HostCapabilities(get_dir=get_dir), sock_pair, b"GET /docs/a.txt\r\n"
        )

    digest = hashlib.md5(b"file contents").hexdigest().encode()
    assert response == digest + b"\r\nfile contents"
    assert handler.state is ConnectionState.CLOSED
    assert handler.path == "/docs/a.txt"


def test_get_traversal_stays_in_sandbox(tmp_path, share_dir, sock_pair):
    (tmp_path / "secret.txt").write_bytes(b"secret")
    (share_dir / "secret.txt").write_bytes(b"public")

    with SandboxDir(share_dir) as get_dir:
        _, response = _run_handler(
            HostCapabilities(get_dir=get_dir), sock_pair,
            b"GET /../../secret.txt\r\n"
        )

    assert response.endswith(b"\r\npublic")


def test_get_missing_file(share_dir, sock_pair):
    with SandboxDir(share_dir) as get_dir:
        with pytest.raises(FileNotFoundError):
            _run_handler(HostCapabilities(get_dir=get_dir), sock_pair,
                         b"GET /missing.txt\r\n")


def test_get_not_allowed_sends_nothing(inbox_dir, sock_pair):
    server_end, client_end = sock_pair
    client_end.sendall(b"GET /anything\r\n")

    with SandboxDir(inbox_dir) as put_dir:
        handler = ConnectionHandler(HostCapabilities(put_dir=put_dir), server_end)
        with pytest.raises(GetNotAllowed):
            handler.run()
        server_end.close()

    assert _recv_all(client_end) == b""
    assert handler.state is ConnectionState.CLOSED


def test_put(inbox_dir, sock_pair):
    data = b"uploaded bytes"
    request = (b"PUT /incoming/new.txt\r\n"
               + encode_hash_header(hashlib.md5(data).digest()) + data)

    with SandboxDir(inbox_dir) as put_dir:
        handler, response = _run_handler(
            HostCapabilities(put_dir=put_dir), sock_pair, request
        )

    assert response == b""
    assert (inbox_dir / "incoming" / "new.txt").read_bytes() == data
    assert handler.path == "/incoming/new.txt"


def test_put_bad_digest_keeps_nothing(inbox_dir, sock_pair):
    request = (b"PUT /new.txt\r\n"
               + encode_hash_header(hashlib.md5(b"other").digest()) + b"data")

    with SandboxDir(inbox_dir) as put_dir:
        _run_handler(HostCapabilities(put_dir=put_dir), sock_pair, request)

    assert list(inbox_dir.iterdir()) == []


def test_put_not_allowed(share_dir, sock_pair):
    with SandboxDir(share_dir) as get_dir:
        with pytest.raises(PutNotAllowed):
            _run_handler(HostCapabilities(get_dir=get_dir), sock_pair,
                         b"PUT /x.txt\r\n")


def test_protocol_violation(share_dir, sock_pair):
    with SandboxDir(share_dir) as get_dir:
        with pytest.raises(ProtocolViolation):
            _run_handler(HostCapabilities(get_dir=get_dir), sock_pair,
                         b"DELETE /x.txt\r\n")


def test_server_survives_failed_connection(share_dir, run_server):
    (share_dir / "ok.txt").write_bytes(b"ok")
    server, thread = run_server(get_dir=share_dir, connections=2)

    with socket.create_connection(server.address) as bad:
        bad.sendall(b"HELLO\r\n")
        bad.shutdown(socket.SHUT_WR)
        assert _recv_all(bad) == b""

    with socket.create_connection(server.address) as good:
        good.sendall(b"GET /ok.txt\r\n")
        good.shutdown(socket.SHUT_WR)
        assert _recv_all(good).endswith(b"\r\nok")

    thread.join(timeout=5)
    assert server.connections_handled == 2
    assert server.connections_failed == 1


def test_strict_server_reraises(share_dir):
    with SandboxDir(share_dir) as get_dir:
        server = TransferServer(HostCapabilities(get_dir=get_dir),
                                host='127.0.0.1', port=0, strict=True)
        server.start()
        try:
            with socket.create_connection(server.address) as client:
                client.sendall(b"BOGUS\r\n")
                with pytest.raises(ProtocolViolation):
                    server.serve_one()
        finally:
            server.stop()


def test_capabilities_are_immutable(share_dir):
    with SandboxDir(share_dir) as get_dir:
        capabilities = HostCapabilities(get_dir=get_dir)
        with pytest.raises(AttributeError):
            capabilities.put_dir = get_dir
