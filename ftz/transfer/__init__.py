"""
Transfer Module - Send/Receive over TCP

Handles the request line, hash-verified file streaming and the
sequential transfer server.
"""

from .protocol import Request, Verb, read_request, DEFAULT_PORT
from .uploader import send_file, CHUNK_SIZE
from .downloader import receive_file
from .server import HostCapabilities, ConnectionHandler, TransferServer
from .client import connect_to_peer, fetch_file, push_file
from .uri import FtzUri, parse_uri

__all__ = [
    'Request',
    'Verb',
    'read_request',
    'DEFAULT_PORT',
    'send_file',
    'CHUNK_SIZE',
    'receive_file',
    'HostCapabilities',
    'ConnectionHandler',
    'TransferServer',
    'connect_to_peer',
    'fetch_file',
    'push_file',
    'FtzUri',
    'parse_uri',
]
