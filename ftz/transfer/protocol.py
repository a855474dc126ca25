"""
File Transfer Protocol

Design Decision: Wire Format
============================

Options Considered:
1. Length-prefixed frames with a JSON header
   - Self-describing, extensible
   - Needs a framing layer on both sides, overkill for one file

2. HTTP
   - Standard, but needs a real server and client stack

3. One request line + hash header + raw bytes until close
   - Trivial to implement and to debug with netcat
   - No length prefix: payload ends when the stream ends

Decision: Line request + hash-prefixed raw stream (3)

Message Format:
```
GET <path>\\r\\n                     (client -> server)
  -> <32 hex digest>\\r\\n<raw file bytes until close>

PUT <path>\\r\\n<32 hex digest>\\r\\n<raw file bytes until close>
```

One exchange per connection: no status codes, no acknowledgements, no
keep-alive. The digest travels *before* the data so the receiver can verify
without buffering the payload, which forces the sender to read the file
twice.

Hash: MD5 (16 bytes). It detects corruption in transit; it is not meant to
resist tampering.
"""

import binascii
import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO

from ..errors import ProtocolViolation

DEFAULT_PORT = 17457

# Request line buffer, '\n' not included
LINE_BUFFER_SIZE = 1024

# "GET /": a verb plus at least one path byte
MIN_REQUEST_LENGTH = 5

DIGEST_SIZE = 16
HASH_HEADER_SIZE = DIGEST_SIZE * 2 + 2  # 32 hex chars + CRLF

CRLF = b'\r\n'


class Verb(Enum):
    """Request verbs."""
    GET = b'GET '
    PUT = b'PUT '


@dataclass(frozen=True)
class Request:
    """A parsed request line."""
    verb: Verb
    raw_path: bytes

    def to_bytes(self) -> bytes:
        """Serialize as a request line."""
        return self.verb.value + self.raw_path + CRLF


def new_digest():
    """Create a streaming digest accumulator."""
    return hashlib.md5()


def read_request(stream: BinaryIO) -> Request:
    """
    Read and validate one request line.

    The raw path is returned untouched: the server never percent-decodes.

    Raises:
        ProtocolViolation: On a missing terminator, a short line, a missing
            CR, or an unknown verb
    """
    line = stream.readline(LINE_BUFFER_SIZE + 1)

    if not line.endswith(b'\n'):
        if len(line) > LINE_BUFFER_SIZE:
            raise ProtocolViolation(
                f"Request line exceeds {LINE_BUFFER_SIZE} bytes"
            )
        raise ProtocolViolation("Connection closed before end of request line")

    line = line[:-1]
    if not line.endswith(b'\r'):
        raise ProtocolViolation("Request line not terminated by CRLF")

    line = line[:-1]
    if len(line) < MIN_REQUEST_LENGTH:
        raise ProtocolViolation(f"Request line too short: {line!r}")

    prefix = line[:4]
    for verb in Verb:
        if prefix == verb.value:
            return Request(verb=verb, raw_path=line[4:])

    raise ProtocolViolation(f"Unknown verb: {prefix!r}")


def encode_hash_header(digest: bytes) -> bytes:
    """Encode a digest as 32 lowercase hex characters + CRLF."""
    assert len(digest) == DIGEST_SIZE, f"Digest must be {DIGEST_SIZE} bytes"
    return digest.hex().encode('ascii') + CRLF


def decode_hash_header(header: bytes) -> bytes:
    """
    Decode a hash header into the 16-byte digest it declares.

    Raises:
        ProtocolViolation: If the header is short, not hex, or lacks CRLF
    """
    if len(header) != HASH_HEADER_SIZE:
        raise ProtocolViolation(
            f"Hash header truncated ({len(header)} of {HASH_HEADER_SIZE} bytes)"
        )

    if header[-2:] != CRLF:
        raise ProtocolViolation("Hash header not terminated by CRLF")

    try:
        return binascii.unhexlify(header[:-2])
    except (binascii.Error, ValueError) as e:
        raise ProtocolViolation(f"Hash header is not hex: {e}") from e


def read_exactly(stream: BinaryIO, size: int) -> bytes:
    """Read size bytes, or fewer only if the stream ends first."""
    data = bytearray()
    while len(data) < size:
        chunk = stream.read(size - len(data))
        if not chunk:
            break
        data.extend(chunk)
    return bytes(data)
