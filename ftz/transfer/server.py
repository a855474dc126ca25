"""
Transfer Server

Design Decision: Connection Handling
====================================

Options Considered:
1. asyncio server, many connections at once
   - Good throughput with many clients
   - Shared state needs care, harder to reason about

2. Thread per connection
   - Simple, but every handler shares the filesystem unsynchronized

3. One connection at a time, blocking I/O
   - Nothing shared except the immutable HostCapabilities
   - A stalled peer blocks everyone else (no timeouts)

Decision: Sequential blocking server (3)
- ftz moves one file between two machines; there is no crowd to serve
- Each connection gets its own ConnectionHandler, which owns its buffers
  and is thrown away when the connection ends

Connection states (strictly linear, one request per connection):
    AWAIT_REQUEST_LINE -> DISPATCHED -> STREAMING -> CLOSED
"""

import logging
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .downloader import receive_file
from .protocol import read_request, Verb, DEFAULT_PORT
from .uploader import send_file, CHUNK_SIZE
from ..errors import GetNotAllowed, PutNotAllowed
from ..file.paths import resolve_path, to_relative
from ..file.sandbox import SandboxDir

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostCapabilities:
    """
    Directories this host exposes. Built once at startup, never mutated,
    passed by reference into every ConnectionHandler.
    """
    get_dir: Optional[SandboxDir] = None
    put_dir: Optional[SandboxDir] = None

    def close(self):
        """Release the directory handles."""
        for directory in (self.get_dir, self.put_dir):
            if directory:
                directory.close()


class ConnectionState(Enum):
    """Per-connection protocol state."""
    AWAIT_REQUEST_LINE = 'await_request_line'
    DISPATCHED = 'dispatched'
    STREAMING = 'streaming'
    CLOSED = 'closed'


class ConnectionHandler:
    """
    Runs the protocol for a single accepted connection.

    The handler never closes the socket; the caller does, whatever
    happened here.
    """

    def __init__(self, capabilities: HostCapabilities, conn: socket.socket,
                 chunk_size: int = CHUNK_SIZE):
        self.capabilities = capabilities
        self.conn = conn
        self.chunk_size = chunk_size
        self.state = ConnectionState.AWAIT_REQUEST_LINE
        self.verb: Optional[Verb] = None
        self.path: Optional[str] = None

    def run(self):
        """
        Handle the one request this connection carries.

        Raises:
            ProtocolViolation, GetNotAllowed, PutNotAllowed, BufferTooSmall,
            OSError: Whatever ended the connection early
        """
        reader = self.conn.makefile('rb')
        writer = self.conn.makefile('wb')
        try:
            request = read_request(reader)

            self.state = ConnectionState.DISPATCHED
            self.verb = request.verb

            if request.verb is Verb.GET:
                self._handle_get(request.raw_path, writer)
            else:
                self._handle_put(request.raw_path, reader)
        finally:
            self.state = ConnectionState.CLOSED
            reader.close()
            writer.close()

    def _handle_get(self, raw_path: bytes, writer):
        directory = self.capabilities.get_dir
        if directory is None:
            raise GetNotAllowed("This host does not serve files")

        self.path = resolve_path(raw_path)
        logger.info(f"GET {self.path}")

        with directory.open_read(to_relative(self.path)) as file:
            self.state = ConnectionState.STREAMING
            send_file(file, writer, chunk_size=self.chunk_size)

    def _handle_put(self, raw_path: bytes, reader):
        directory = self.capabilities.put_dir
        if directory is None:
            raise PutNotAllowed("This host does not accept files")

        self.path = resolve_path(raw_path)
        logger.info(f"PUT {self.path}")

        self.state = ConnectionState.STREAMING
        receive_file(reader, directory, to_relative(self.path),
                     chunk_size=self.chunk_size)


class TransferServer:
    """
    TCP server that handles one connection at a time.

    Usage:
        server = TransferServer(capabilities, port=17457)
        server.start()
        server.serve_forever()
    """

    def __init__(self, capabilities: HostCapabilities, host: str = '0.0.0.0',
                 port: int = DEFAULT_PORT, chunk_size: int = CHUNK_SIZE,
                 strict: bool = False):
        self.capabilities = capabilities
        self.host = host
        self.port = port
        self.chunk_size = chunk_size
        # Re-raise connection errors instead of logging them (debugging)
        self.strict = strict
        self.connections_handled = 0
        self.connections_failed = 0
        self._socket: Optional[socket.socket] = None

    @property
    def address(self) -> Tuple[str, int]:
        """Address the server is bound to."""
        return self._socket.getsockname()

    def start(self):
        """Bind and listen."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

            # SO_REUSEPORT is not available everywhere
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            except (AttributeError, OSError):
                pass

            sock.bind((self.host, self.port))
            sock.listen()
        except OSError:
            sock.close()
            raise

        self._socket = sock
        logger.info(f"Transfer server listening on {self.address}")

    def stop(self):
        """Close the listening socket."""
        if self._socket:
            self._socket.close()
            self._socket = None
            logger.info(f"Transfer server stopped. Handled "
                        f"{self.connections_handled} connections, "
                        f"{self.connections_failed} failed")

    def serve_forever(self):
        """Accept and handle connections until interrupted."""
        while True:
            self.serve_one()

    def serve_one(self):
        """Accept one connection and handle it to completion."""
        conn, peer = self._socket.accept()
        with conn:
            logger.info(f"accepted connection from {peer[0]}:{peer[1]}")
            handler = ConnectionHandler(self.capabilities, conn,
                                        chunk_size=self.chunk_size)
            try:
                handler.run()
            except Exception as e:
                self.connections_failed += 1
                if self.strict:
                    raise
                logger.error(f"handling client connection failed: "
                             f"{type(e).__name__}: {e}")
            finally:
                self.connections_handled += 1
