"""
ftz - Quick file transfer between two machines on a trusted network.

A host exposes a directory for download (GET) and/or upload (PUT) over a
bare TCP socket. Every transfer carries a content hash ahead of the data so
the receiver can verify what it got.
"""

__version__ = '0.1.0'
