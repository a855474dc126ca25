"""
Transfer Progress

Byte counters reported by the transfer engine. Sending a file reads it
twice (hash pass, then transfer pass) and each pass has its own counter.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

PHASE_HASHING = 'hashing'
PHASE_TRANSFERRING = 'transferring'
PHASE_COMPLETE = 'complete'


@dataclass
class TransferProgress:
    """Progress of a single send or receive."""
    total_bytes: Optional[int] = None  # unknown when receiving
    hashed_bytes: int = 0
    transferred_bytes: int = 0
    phase: str = PHASE_HASHING
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time

    @property
    def speed_bytes_per_sec(self) -> float:
        """Transfer speed in bytes/second."""
        elapsed = self.elapsed_seconds
        if elapsed == 0:
            return 0
        return self.transferred_bytes / elapsed


# Progress callback type
ProgressCallback = Callable[[TransferProgress], None]
