"""
File Receiver

Reads `<digest>\\r\\n<bytes until close>` into a file under a SandboxDir and
verifies the digest. Used by the host for PUT and by the client for GET.

Receive Flow:
1. Read and decode the 34-byte hash header
2. Create missing parent directories
3. Stream the payload into the file, hashing as we go
4. Compare digests; on mismatch delete the file
"""

import logging
from typing import BinaryIO, Optional

from .progress import (
    TransferProgress, ProgressCallback,
    PHASE_TRANSFERRING, PHASE_COMPLETE,
)
from .protocol import (
    new_digest, read_exactly, decode_hash_header, HASH_HEADER_SIZE,
)
from .uploader import CHUNK_SIZE
from ..file.sandbox import SandboxDir

logger = logging.getLogger(__name__)


def receive_file(source: BinaryIO, directory: SandboxDir, relative_path: str,
                 chunk_size: int = CHUNK_SIZE,
                 on_progress: Optional[ProgressCallback] = None) -> bool:
    """
    Receive a hash-prefixed stream into directory/relative_path.

    A digest mismatch is not raised: the file is deleted, the mismatch is
    logged, and False is returned. Callers that must fail loudly (the
    client) turn that into HashMismatch themselves. If the stream or a
    write fails midway, the partial file is deleted and the error re-raised.

    Returns:
        True if the file was written and verified, False on mismatch

    Raises:
        ProtocolViolation: If the hash header is missing or malformed
        OSError: If the file cannot be created or written
    """
    expected = decode_hash_header(read_exactly(source, HASH_HEADER_SIZE))

    directory.make_parents(relative_path)

    progress = TransferProgress(phase=PHASE_TRANSFERRING)
    digest = new_digest()
    try:
        with directory.create_file(relative_path) as output:
            while True:
                chunk = source.read(chunk_size)
                if not chunk:
                    break
                output.write(chunk)
                digest.update(chunk)
                progress.transferred_bytes += len(chunk)
                progress.hashed_bytes += len(chunk)
                if on_progress:
                    on_progress(progress)
    except BaseException as e:
        logger.error(f"Receiving {relative_path} failed: {e}; deleting file")
        _discard(directory, relative_path)
        raise

    actual = digest.digest()
    if actual != expected:
        logger.error(f"Hash mismatch for {relative_path}: expected "
                     f"{expected.hex()}, got {actual.hex()}; deleting file")
        _discard(directory, relative_path)
        return False

    progress.phase = PHASE_COMPLETE
    if on_progress:
        on_progress(progress)

    logger.debug(f"Received {progress.transferred_bytes:,} bytes into "
                 f"{relative_path} (digest {actual.hex()})")
    return True


def _discard(directory: SandboxDir, relative_path: str):
    """Delete an unverified file, logging if that fails too."""
    try:
        directory.remove(relative_path)
    except OSError as e:
        logger.error(f"Failed to delete {relative_path}: {e}")
