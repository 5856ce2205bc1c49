from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime


class ClockPort(ABC):
    """Port for time-related operations.

    Chunk timestamps and the re-ranker's age bonus read time through this
    port so tests can pin "now".
    """

    @abstractmethod
    def now(self) -> datetime:
        """Return current UTC datetime."""
        ...
