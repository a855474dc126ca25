"""
File Module - Path Sandboxing

Resolves client paths and confines file access to the hosted directories.
"""

from .paths import resolve_path, to_relative, PATH_BUFFER_SIZE
from .sandbox import SandboxDir

__all__ = [
    'resolve_path',
    'to_relative',
    'PATH_BUFFER_SIZE',
    'SandboxDir',
]
