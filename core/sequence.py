"""
Document number generation.

Format: <PREFIX>-<YYYY>-<NNN>, e.g. INV-2026-007. The sequence is shared by
every year and only ever grows; numbers are never reused, even when the
document they were issued for is deleted.
"""

import logging
import re
import threading
from datetime import date
from typing import Callable, Iterable

from utils.timezone import today_utc

logger = logging.getLogger(__name__)


class DocumentNumberSequence:
    """Thread-safe, monotonically increasing document numbers."""

    def __init__(
        self,
        prefix: str,
        padding: int = 3,
        start: int = 1,
        today: Callable[[], date] = today_utc,
    ):
        if not prefix:
            raise ValueError("prefix is required")
        self.prefix = prefix
        self.padding = padding
        self._next = start
        self._today = today
        self._lock = threading.Lock()
        self._pattern = re.compile(rf"^{re.escape(prefix)}-\d{{4}}-(\d+)$")

    def next(self) -> str:
        """Issue the next number."""
        with self._lock:
            sequence = self._next
            self._next += 1
        return f"{self.prefix}-{self._today().year}-{sequence:0{self.padding}d}"

    def parse(self, number: str) -> int | None:
        """Sequence part of a number issued with this prefix, or None."""
        match = self._pattern.match(number)
        return int(match.group(1)) if match else None

    def seed_from(self, existing: Iterable[str]) -> None:
        """
        Advance past every number already issued.

        Called at start-up with the numbers in the store, so a restarted
        process never hands out a number twice.
        """
        highest = 0
        for number in existing:
            sequence = self.parse(number)
            if sequence is not None and sequence > highest:
                highest = sequence

        with self._lock:
            if highest >= self._next:
                self._next = highest + 1
                logger.info(f"{self.prefix} sequence seeded at {self._next}")
