"""
Path Resolution

Design Decision: Sandboxing Client Paths
========================================

Options Considered:
1. os.path.normpath + "startswith(root)" check
   - Familiar, but normpath keeps leading '..' segments
   - Check is easy to get wrong (prefix /srv/data vs /srv/data2)

2. Path.resolve() against the real filesystem
   - Follows symlinks, which is exactly what we must not do
   - Result depends on filesystem state

3. Pure lexical resolution into a bounded buffer
   - Never touches the filesystem
   - '..' can only remove segments we appended ourselves
   - Bounded output size, explicit error instead of truncation

Decision: Lexical resolution (3)
- Tokenize by '/', drop empty tokens and '.'
- '..' pops the last appended segment, no-op at the root
- Result always starts with '/' and can never point above it

The result is later used relative to a SandboxDir, which refuses symlinks
and walks one component at a time, so the filesystem layer enforces the
same boundary independently.
"""

import os
from typing import List, Union

from ..errors import BufferTooSmall

# Same size as the request line buffer
PATH_BUFFER_SIZE = 1024


def resolve_path(raw_path: Union[str, bytes],
                 capacity: int = PATH_BUFFER_SIZE) -> str:
    """
    Normalize a client-supplied path into an absolute, sandbox-safe path.

    Args:
        raw_path: Path as received on the wire (bytes) or typed by a user
        capacity: Maximum size of the result in bytes

    Returns:
        Absolute path starting with '/', without '.' or '..' segments

    Raises:
        BufferTooSmall: If the result would exceed capacity
    """
    if isinstance(raw_path, bytes):
        raw_path = os.fsdecode(raw_path)

    if capacity < 1:
        raise BufferTooSmall("Path buffer has no room for the root")

    segments: List[str] = []
    length = 0

    for token in raw_path.split('/'):
        if not token or token == '.':
            continue

        if token == '..':
            if segments:
                length -= len(os.fsencode(segments.pop())) + 1
            continue

        size = len(os.fsencode(token)) + 1
        if length + size > capacity:
            raise BufferTooSmall(
                f"Resolved path exceeds {capacity} bytes"
            )
        segments.append(token)
        length += size

    if not segments:
        return '/'
    return '/' + '/'.join(segments)


def to_relative(resolved: str) -> str:
    """Strip the leading '/' so the path can be used under a SandboxDir."""
    assert resolved.startswith('/'), f"Not a resolved path: {resolved!r}"
    return resolved[1:]
