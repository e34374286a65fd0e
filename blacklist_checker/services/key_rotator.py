"""
API key rotator that rotates by exhaustion.

A key keeps serving calls until it reaches its request threshold or gets
rate-limited, then the next usable key takes over.
"""
import threading
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..exceptions import AllCredentialsExhausted, NoCredentialsConfigured

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 8


def preview_key(secret: str) -> str:
    """Redacted form of a key: first 8 characters and an ellipsis."""
    return secret[:PREVIEW_LENGTH] + "..."


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


@dataclass
class CredentialSlot:
    """One configured API key and its usage bookkeeping."""

    secret: str = field(repr=False)
    preview: str = ""
    request_count: int = 0
    last_used_at: float = 0.0
    blocked: bool = False
    blocked_until: float = 0.0

    def __post_init__(self):
        if not self.preview:
            self.preview = preview_key(self.secret)


@dataclass
class KeyStatistics:
    """Read-only snapshot of a slot, safe to show on a dashboard."""

    key_preview: str
    request_count: int
    last_used: Optional[str]
    is_blocked: bool
    block_until: Optional[str]


class KeyRotator:
    """
    Exhaustion-based API key rotator.

    - Reuses the same key until it hits `max_requests_per_key`, then moves on
    - Falls back to the least recently used unblocked key when all are over quota
    - Thread-safe via a lock around the slot table
    - Never logs key values, only previews
    """

    def __init__(
        self,
        keys: List[str],
        max_requests_per_key: int = 50,
        block_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
        name: str = "",
    ):
        self._slots = [CredentialSlot(secret=key) for key in keys]
        self._cursor = 0
        self._lock = threading.Lock()
        self._clock = clock
        self._name = name or "KeyRotator"
        self.max_requests_per_key = max_requests_per_key
        self.block_seconds = block_seconds
        if self._slots:
            logger.info(f"{self._name}: initialized with {len(self._slots)} key(s)")
        else:
            logger.warning(f"{self._name}: no API keys configured")

    @property
    def key_count(self) -> int:
        return len(self._slots)

    def acquire(self) -> CredentialSlot:
        """
        Pick the slot that should serve the next call.

        Raises:
            NoCredentialsConfigured: no keys at all
            AllCredentialsExhausted: every key is blocked
        """
        if not self._slots:
            raise NoCredentialsConfigured()

        with self._lock:
            now = self._clock()

            for slot in self._slots:
                if slot.blocked and now > slot.blocked_until:
                    slot.blocked = False
                    slot.request_count = 0
                    logger.info(f"{self._name}: unblocked API key {slot.preview}")

            total = len(self._slots)
            for offset in range(total):
                index = (self._cursor + offset) % total
                slot = self._slots[index]
                if not slot.blocked and slot.request_count < self.max_requests_per_key:
                    # Stay on this slot until it is exhausted or blocked
                    self._cursor = index
                    return slot

            unblocked = [slot for slot in self._slots if not slot.blocked]
            if not unblocked:
                raise AllCredentialsExhausted()

            # Over quota everywhere: best effort with the key idle the longest
            oldest = min(unblocked, key=lambda s: s.last_used_at)
            logger.warning(
                f"{self._name}: all keys at {self.max_requests_per_key} requests, "
                f"falling back to least recently used key {oldest.preview}"
            )
            return oldest

    def record_use(self, slot: CredentialSlot) -> None:
        """Count one call against `slot`."""
        with self._lock:
            slot.request_count += 1
            slot.last_used_at = self._clock()

    def block(self, slot: CredentialSlot) -> None:
        """Exclude `slot` from selection for `block_seconds`."""
        with self._lock:
            slot.blocked = True
            slot.blocked_until = self._clock() + self.block_seconds
        logger.warning(f"{self._name}: API key {slot.preview} rate limited, blocking for {self.block_seconds:g}s")

    def statistics(self) -> List[KeyStatistics]:
        with self._lock:
            return [
                KeyStatistics(
                    key_preview=slot.preview,
                    request_count=slot.request_count,
                    last_used=_iso(slot.last_used_at) if slot.last_used_at else None,
                    is_blocked=slot.blocked,
                    block_until=_iso(slot.blocked_until) if slot.blocked else None,
                )
                for slot in self._slots
            ]

    def available_count(self) -> int:
        """
        Keys usable right now.

        An expired block counts as usable, as the next `acquire()` would clear
        it, but the slot itself is left untouched.
        """
        with self._lock:
            now = self._clock()
            return sum(1 for slot in self._slots if self._is_usable(slot, now))

    def _is_usable(self, slot: CredentialSlot, now: float) -> bool:
        if now <= slot.blocked_until:
            return False
        if slot.blocked:
            return True
        return slot.request_count < self.max_requests_per_key
