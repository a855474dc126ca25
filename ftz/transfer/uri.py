"""
ftz URIs

    ftz://host[:port]/path

The scheme may be left out ("host:port/path"). User info, query and
fragment are rejected. The path is percent-decoded here, once, on the
client; the server receives it verbatim.
"""

from dataclasses import dataclass
from urllib.parse import urlsplit, unquote_to_bytes

from ..errors import InvalidUri
from .protocol import DEFAULT_PORT

SCHEME = 'ftz'


@dataclass(frozen=True)
class FtzUri:
    """A parsed ftz URI."""
    host: str
    port: int = DEFAULT_PORT
    path: bytes = b'/'

    def __str__(self) -> str:
        return f"{SCHEME}://{self.host}:{self.port}{self.path.decode('utf-8', 'replace')}"


def parse_uri(text: str) -> FtzUri:
    """
    Parse and validate an ftz URI.

    Raises:
        InvalidUri: On a wrong scheme, user/password, query, fragment,
            missing host or bad port
    """
    if '://' not in text:
        text = f"{SCHEME}://{text}"

    try:
        parts = urlsplit(text)
        port = parts.port
    except ValueError as e:
        raise InvalidUri(f"Invalid URI {text!r}: {e}") from e

    if parts.scheme != SCHEME:
        raise InvalidUri(f"Unsupported scheme {parts.scheme!r} (expected {SCHEME!r})")
    if parts.username is not None or parts.password is not None:
        raise InvalidUri("User and password are not allowed in ftz URIs")
    if parts.query or '?' in text:
        raise InvalidUri("Query is not allowed in ftz URIs")
    if parts.fragment or '#' in text:
        raise InvalidUri("Fragment is not allowed in ftz URIs")
    if not parts.hostname:
        raise InvalidUri(f"Missing host in {text!r}")

    path = unquote_to_bytes(parts.path) if parts.path else b'/'
    # Would end the request line early
    if b'\r' in path or b'\n' in path:
        raise InvalidUri("Path must not contain line breaks")

    return FtzUri(
        host=parts.hostname,
        port=port if port is not None else DEFAULT_PORT,
        path=path,
    )
