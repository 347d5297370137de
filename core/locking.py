"""
Per-entity locks for read-modify-write sequences.

Entities map onto a fixed pool of re-entrant lock stripes, so memory stays
bounded however many ids the process touches. Two entities may share a
stripe; that only serializes them. Operations touching several entities
take all their stripes through `hold`, which acquires in stripe order so
two operations can never wait on each other.
"""

import threading
from contextlib import ExitStack, contextmanager
from typing import Iterator

LockKey = tuple[str, int]

DEFAULT_STRIPES = 64


class LockRegistry:
    """Process-wide pool of entity lock stripes."""

    def __init__(self, stripes: int = DEFAULT_STRIPES):
        if stripes < 1:
            raise ValueError(f"stripes must be at least 1, got {stripes}")
        self._stripes = tuple(threading.RLock() for _ in range(stripes))

    @property
    def stripes(self) -> int:
        return len(self._stripes)

    def _index(self, key: LockKey) -> int:
        return hash(key) % len(self._stripes)

    def lock_for(self, entity_type: str, entity_id: int) -> threading.RLock:
        return self._stripes[self._index((entity_type, entity_id))]

    @contextmanager
    def hold(self, *keys: LockKey) -> Iterator[None]:
        """
        Hold the locks for all given entities.

        Example:
            with locks.hold(("credit_note", 3), ("invoice", 12)):
                ...
        """
        with ExitStack() as stack:
            for index in sorted({self._index(key) for key in keys}):
                stack.enter_context(self._stripes[index])
            yield
