import time
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from loguru import logger

V = TypeVar("V")


class TTLStore(Generic[V]):
    """
    Short-lived in-memory key -> value map with per-entry time-to-live.

    Expiry runs inline: every read sweeps before looking, every write sweeps
    after inserting. There is no background timer, so an expired entry may
    sit in memory until the next operation touches the store.

    Iteration order is insertion order, oldest first. Re-inserting an
    existing key moves it to the end.

    None of the methods await, so a single operation always runs to
    completion between two suspension points of the event loop.
    """

    def __init__(
        self,
        ttl: Optional[float],
        clock: Callable[[], float] = time.monotonic,
        name: str = "store",
    ):
        """
        Args:
            ttl: Maximum entry age in seconds, or None to never expire
            clock: Monotonic clock returning seconds (injectable for tests)
            name: Label used in log lines
        """
        self.ttl = ttl
        self.name = name
        self._clock = clock
        self._entries: Dict[str, Tuple[float, V]] = {}

    def now(self) -> float:
        return self._clock()

    def put(self, key: str, value: V) -> None:
        """Insert or replace ``key``, stamping it with the current clock reading."""
        now = self._clock()
        self._entries.pop(key, None)
        self._entries[key] = (now, value)
        self.sweep(now)

    def get(self, key: str) -> Optional[V]:
        self.sweep()
        entry = self._entries.get(key)
        return entry[1] if entry else None

    def find(self, predicate: Callable[[V], bool]) -> Optional[V]:
        """Return the first live value (in insertion order) accepted by ``predicate``."""
        self.sweep()
        for _, value in self._entries.values():
            if predicate(value):
                return value
        return None

    def pop(self, key: str) -> Optional[V]:
        """Get-and-delete: a value can be consumed at most once."""
        self.sweep()
        entry = self._entries.pop(key, None)
        return entry[1] if entry else None

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop every entry older than the TTL. Returns the number removed."""
        if self.ttl is None:
            return 0

        now = self._clock() if now is None else now
        expired = [key for key, (stamped, _) in self._entries.items() if now - stamped > self.ttl]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug(f"{self.name}: expired {len(expired)} entries")
        return len(expired)

    def values(self) -> List[V]:
        self.sweep()
        return [value for _, value in self._entries.values()]

    def __contains__(self, key: str) -> bool:
        self.sweep()
        return key in self._entries

    def __len__(self) -> int:
        self.sweep()
        return len(self._entries)
