"""
File Sender

Streams a file as `<digest>\\r\\n<bytes>`. Used by the host for GET and by
the client for PUT.
"""

import logging
import os
from typing import BinaryIO, Optional

from .progress import (
    TransferProgress, ProgressCallback,
    PHASE_TRANSFERRING, PHASE_COMPLETE,
)
from .protocol import new_digest, encode_hash_header

logger = logging.getLogger(__name__)

# Chunk size: 2MB
CHUNK_SIZE = 2 * 1024 * 1024


def send_file(file: BinaryIO, destination: BinaryIO,
              chunk_size: int = CHUNK_SIZE,
              on_progress: Optional[ProgressCallback] = None) -> bytes:
    """
    Send a file with its digest in front.

    The file is read twice: the digest has to be on the wire before the
    first data byte, so it is computed in a full pass, then the file is
    rewound and streamed.

    Args:
        file: Seekable binary file, positioned anywhere
        destination: Writable binary stream (socket file, BytesIO, ...)
        chunk_size: Read buffer size
        on_progress: Called after every chunk of either pass

    Returns:
        The digest that was sent
    """
    progress = TransferProgress(total_bytes=file.seek(0, os.SEEK_END))
    buffer = bytearray(chunk_size)
    view = memoryview(buffer)

    # Pass 1: hash
    file.seek(0)
    digest = new_digest()
    while True:
        length = file.readinto(buffer)
        if not length:
            break
        digest.update(view[:length])
        progress.hashed_bytes += length
        if on_progress:
            on_progress(progress)

    # Pass 2: transfer
    file.seek(0)
    destination.write(encode_hash_header(digest.digest()))
    progress.phase = PHASE_TRANSFERRING
    while True:
        length = file.readinto(buffer)
        if not length:
            break
        destination.write(view[:length])
        progress.transferred_bytes += length
        if on_progress:
            on_progress(progress)

    destination.flush()

    progress.phase = PHASE_COMPLETE
    if on_progress:
        on_progress(progress)

    logger.debug(f"Sent {progress.transferred_bytes:,} bytes "
                 f"(digest {digest.hexdigest()})")
    return digest.digest()

