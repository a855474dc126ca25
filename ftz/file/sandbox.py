"""
Jailed Directory Handles

A SandboxDir is opened once when the host starts and every later file
operation is performed relative to its directory descriptor. Paths are
walked one component at a time with O_NOFOLLOW, so a symlink anywhere on
the way (or at the end) makes the operation fail instead of leaving the
directory.

Requires a platform with dir_fd support (Linux, macOS, BSD).
"""

import errno
import logging
import os
import stat
from pathlib import Path
from typing import BinaryIO, List, Tuple, Union

logger = logging.getLogger(__name__)

_DIR_FLAGS = os.O_RDONLY | getattr(os, 'O_DIRECTORY', 0) | os.O_NOFOLLOW
# O_NONBLOCK keeps open() from hanging on a FIFO; cleared again for regular files
_READ_FLAGS = os.O_RDONLY | os.O_NOFOLLOW | getattr(os, 'O_NONBLOCK', 0)
_CREATE_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | os.O_NOFOLLOW

FILE_MODE = 0o644
DIR_MODE = 0o755


def _split(relative_path: str) -> List[str]:
    """Split a sandbox-relative path and reject anything that could escape."""
    parts = [p for p in relative_path.split('/') if p]
    for part in parts:
        if part in ('.', '..'):
            raise PermissionError(
                errno.EACCES, "Path traversal not allowed", relative_path
            )
    return parts


class SandboxDir:
    """
    A directory capability.

    Usage:
        with SandboxDir('./share') as share:
            with share.open_read('docs/readme.txt') as f:
                ...
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        # Raises FileNotFoundError / NotADirectoryError for bad host dirs
        self._fd = os.open(str(self.path), os.O_RDONLY | getattr(os, 'O_DIRECTORY', 0))
        self._closed = False

    def __enter__(self) -> 'SandboxDir':
        return self

    def __exit__(self, *exc):
        self.close()

    def __repr__(self) -> str:
        return f"SandboxDir({str(self.path)!r})"

    def close(self):
        """Release the directory descriptor."""
        if not self._closed:
            self._closed = True
            os.close(self._fd)

    def _walk(self, parts: List[str], create: bool = False) -> int:
        """
        Open the directory holding the last component of parts.

        Returns a new descriptor the caller must close.
        """
        fd = os.dup(self._fd)
        try:
            for part in parts[:-1]:
                try:
                    next_fd = os.open(part, _DIR_FLAGS, dir_fd=fd)
                except FileNotFoundError:
                    if not create:
                        raise
                    os.mkdir(part, DIR_MODE, dir_fd=fd)
                    logger.debug(f"Created directory {part} under {self.path}")
                    next_fd = os.open(part, _DIR_FLAGS, dir_fd=fd)
                os.close(fd)
                fd = next_fd
        except BaseException:
            os.close(fd)
            raise
        return fd

    def _locate(self, relative_path: str, create: bool = False) -> Tuple[int, str]:
        parts = _split(relative_path)
        if not parts:
            raise IsADirectoryError(
                errno.EISDIR, "Is a directory", relative_path or '/'
            )
        return self._walk(parts, create=create), parts[-1]

    def open_read(self, relative_path: str) -> BinaryIO:
        """Open an existing regular file for reading."""
        parent_fd, name = self._locate(relative_path)
        try:
            fd = os.open(name, _READ_FLAGS, dir_fd=parent_fd)
        finally:
            os.close(parent_fd)

        mode = os.fstat(fd).st_mode
        if not stat.S_ISREG(mode):
            os.close(fd)
            if stat.S_ISDIR(mode):
                raise IsADirectoryError(errno.EISDIR, "Is a directory", relative_path)
            raise PermissionError(errno.EACCES, "Not a regular file", relative_path)
        os.set_blocking(fd, True)
        return os.fdopen(fd, 'rb')

    def make_parents(self, relative_path: str):
        """Create every missing parent directory of relative_path."""
        parent_fd, _ = self._locate(relative_path, create=True)
        os.close(parent_fd)

    def create_file(self, relative_path: str) -> BinaryIO:
        """Create (or truncate) a file for writing. Parents must exist."""
        parent_fd, name = self._locate(relative_path)
        try:
            fd = os.open(name, _CREATE_FLAGS, FILE_MODE, dir_fd=parent_fd)
        finally:
            os.close(parent_fd)
        return os.fdopen(fd, 'wb')

    def remove(self, relative_path: str):
        """Delete a file."""
        parent_fd, name = self._locate(relative_path)
        try:
            os.unlink(name, dir_fd=parent_fd)
        finally:
            os.close(parent_fd)

