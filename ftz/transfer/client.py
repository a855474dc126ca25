"""
Transfer Client

The client side of a single exchange: GET pulls a file from a host, PUT
pushes one. There is no response on PUT; the host verifies the digest
and either keeps or drops the file.
"""

import logging
import socket
from pathlib import Path
from typing import Optional, Union

from .downloader import receive_file
from .protocol import Request, Verb
from .progress import ProgressCallback
from .uploader import send_file, CHUNK_SIZE
from ..errors import HashMismatch, ProtocolViolation
from ..file.sandbox import SandboxDir
from .uri import FtzUri

logger = logging.getLogger(__name__)


def connect_to_peer(host: str, port: int,
                    timeout: Optional[float] = 10.0) -> socket.socket:
    """
    Connect to a host's transfer server.

    The timeout only bounds connection setup; the transfer itself blocks.

    Raises:
        OSError: If the connection fails (refused, unreachable, timeout)
    """
    sock = socket.create_connection((host, port), timeout=timeout)
    sock.settimeout(None)
    logger.debug(f"Connected to {host}:{port}")
    return sock


def default_output_name(uri: FtzUri) -> str:
    """Last component of the URI path, used when no --output is given."""
    name = uri.path.rstrip(b'/').rsplit(b'/', 1)[-1]
    if not name or name in (b'.', b'..'):
        raise ValueError(f"Cannot derive a file name from {uri}")
    return name.decode('utf-8', 'surrogateescape')


def fetch_file(uri: FtzUri, output_path: Union[str, Path],
               chunk_size: int = CHUNK_SIZE,
               on_progress: Optional[ProgressCallback] = None,
               timeout: Optional[float] = 10.0) -> Path:
    """
    Download uri into output_path.

    Raises:
        ProtocolViolation: If the host closes without sending a digest
            (file missing, GET not allowed, ...)
        HashMismatch: If the received bytes do not match the digest; the
            output file is deleted
        OSError: On connection or filesystem failures
    """
    output_path = Path(output_path)

    with connect_to_peer(uri.host, uri.port, timeout) as sock:
        sock.sendall(Request(Verb.GET, uri.path).to_bytes())
        sock.shutdown(socket.SHUT_WR)

        with sock.makefile('rb') as reader, \
                SandboxDir(output_path.parent) as directory:
            try:
                verified = receive_file(reader, directory, output_path.name,
                                        chunk_size=chunk_size,
                                        on_progress=on_progress)
            except ProtocolViolation as e:
                raise ProtocolViolation(
                    f"Host sent no file for {uri} ({e})"
                ) from e

    if not verified:
        raise HashMismatch(
            f"Data received for {uri} failed verification, "
            f"{output_path} was deleted"
        )

    logger.info(f"Downloaded {uri} to {output_path}")
    return output_path


def push_file(local_path: Union[str, Path], uri: FtzUri,
              chunk_size: int = CHUNK_SIZE,
              on_progress: Optional[ProgressCallback] = None,
              timeout: Optional[float] = 10.0) -> bytes:
    """
    Upload local_path to uri.

    Returns:
        The digest that was sent

    Raises:
        OSError: If the file cannot be read or the connection fails
    """
    local_path = Path(local_path)

    with open(local_path, 'rb') as file, \
            connect_to_peer(uri.host, uri.port, timeout) as sock:
        sock.sendall(Request(Verb.PUT, uri.path).to_bytes())

        with sock.makefile('wb') as writer:
            digest = send_file(file, writer, chunk_size=chunk_size,
                               on_progress=on_progress)

        # End of payload is signalled by closing our side
        sock.shutdown(socket.SHUT_WR)

    logger.info(f"Uploaded {local_path} to {uri}")
    return digest
