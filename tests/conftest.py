import socket
import threading

import pytest

from ftz.file.sandbox import SandboxDir
from ftz.transfer.server import HostCapabilities, TransferServer


@pytest.fixture
def share_dir(tmp_path):
    d = tmp_path / "share"
    d.mkdir()
    return d


@pytest.fixture
def inbox_dir(tmp_path):
    d = tmp_path / "inbox"
    d.mkdir()
    return d


@pytest.fixture
def sock_pair():
    server_end, client_end = socket.socketpair()
    yield server_end, client_end
    server_end.close()
    client_end.close()


@pytest.fixture
def run_server():
    """Start a TransferServer on a free port that handles N connections."""
    started = []

    def start(get_dir=None, put_dir=None, connections=1):
        capabilities = HostCapabilities(
            get_dir=SandboxDir(get_dir) if get_dir else None,
            put_dir=SandboxDir(put_dir) if put_dir else None,
        )
        server = TransferServer(capabilities, host='127.0.0.1', port=0)
        server.start()

        def loop():
            for _ in range(connections):
                server.serve_one()

        thread = threading.Thread(target=loop, daemon=True)
        thread.start()
        started.append((server, thread, capabilities))
        return server, thread

    yield start

    for server, thread, capabilities in started:
        thread.join(timeout=5)
        server.stop()
        capabilities.close()


@pytest.fixture
def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]
