"""
Error Types

Connection-scoped failures raised by the protocol, resolver and transfer
code. Filesystem failures are not wrapped: they surface as the builtin
OSError subclasses (FileNotFoundError, PermissionError, ...).
"""


class FtzError(Exception):
    """Base class for all ftz errors."""


class ProtocolViolation(FtzError):
    """Malformed request line or hash header."""


class GetNotAllowed(FtzError):
    """GET received but this host exposes no get directory."""


class PutNotAllowed(FtzError):
    """PUT received but this host exposes no put directory."""


class BufferTooSmall(FtzError, ValueError):
    """Resolved path does not fit in the working buffer."""


class HashMismatch(FtzError):
    """Received content does not match the declared digest."""


class InvalidUri(FtzError, ValueError):
    """URI is not a valid ftz:// URI."""
