"""
Entity lock manager for serializing ledger operations.

This module gives every shared ledger entity (airline table, oracle table,
flight record, passenger balance, treasury) its own re-entrant lock. Locks
are always acquired in a fixed scope order so two operations touching
overlapping entities cannot deadlock, and acquisition gives up after a
configurable timeout instead of blocking forever.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Tuple

from ..errors import LedgerBusy

logger = logging.getLogger(__name__)


class LockScope(str, Enum):
    """Lock key prefixes, declared in acquisition order."""
    GATE = "gate"
    AIRLINES = "airlines"
    ORACLES = "oracles"
    REQUESTS = "requests"
    FLIGHT = "flight"
    BALANCE = "balance"
    TREASURY = "treasury"


_SCOPE_RANK = {scope.value: rank for rank, scope in enumerate(LockScope)}


def build_lock_key(scope: LockScope, *parts: Any) -> str:
    """
    Build a lock key from a scope and optional entity parts.

    Example:
        build_lock_key(LockScope.BALANCE, "0xabc...")
        # Returns: "balance:0xabc..."
    """
    key_parts = [scope.value]
    for part in parts:
        if part is not None:
            key_parts.append(str(part))
    return ":".join(key_parts)


def _sort_key(lock_key: str) -> Tuple[int, str]:
    scope = lock_key.split(":", 1)[0]
    if scope not in _SCOPE_RANK:
        raise ValueError(f"Unknown lock scope in key: {lock_key}")
    return _SCOPE_RANK[scope], lock_key


@dataclass
class LockInfo:
    """Information about a held entity lock."""
    lock_key: str
    owner_thread: str
    acquired_at: datetime
    depth: int = 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert lock info to dictionary."""
        return {
            "lock_key": self.lock_key,
            "owner_thread": self.owner_thread,
            "acquired_at": self.acquired_at.isoformat(),
            "depth": self.depth,
        }


@dataclass
class LockContentionMetrics:
    """Metrics for one lock_context acquisition."""
    lock_keys: Tuple[str, ...]
    acquired: bool
    wait_time_ms: float
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary."""
        return {
            "lock_keys": list(self.lock_keys),
            "acquired": self.acquired,
            "wait_time_ms": self.wait_time_ms,
            "timestamp": self.timestamp.isoformat(),
        }


class EntityLockManager:
    """
    In-process lock manager keyed by ledger entity.

    Features:
    - One re-entrant lock per entity key, created on first use
    - Deadlock-free multi-key acquisition through scope ordering
    - Acquisition timeout surfaced as LedgerBusy
    - Contention metrics for the simulator and CLI
    """

    def __init__(self, timeout_seconds: float = 5.0, max_metrics: int = 1000):
        """
        Initialize entity lock manager.

        Args:
            timeout_seconds: Maximum time to wait for all requested locks
            max_metrics: Number of recent acquisitions kept for statistics
        """
        self.timeout_seconds = timeout_seconds
        self.max_metrics = max_metrics
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_guard = threading.Lock()
        self._held = threading.local()
        self.active_locks: Dict[str, LockInfo] = {}
        self.metrics: List[LockContentionMetrics] = []

        logger.debug(f"EntityLockManager initialized (timeout: {timeout_seconds}s)")

    def _lock_for(self, lock_key: str) -> threading.RLock:
        with self._registry_guard:
            lock = self._locks.get(lock_key)
            if lock is None:
                lock = threading.RLock()
                self._locks[lock_key] = lock
            return lock

    def _held_keys(self) -> Dict[str, int]:
        if not hasattr(self._held, "keys"):
            self._held.keys = {}
        return self._held.keys

    def _record(self, metrics: LockContentionMetrics) -> None:
        with self._registry_guard:
            self.metrics.append(metrics)
            if len(self.metrics) > self.max_metrics:
                del self.metrics[: len(self.metrics) - self.max_metrics]

    @contextmanager
    def lock_context(self, *lock_keys: str) -> Iterator[Tuple[str, ...]]:
        """
        Hold the locks for all given entity keys for the duration of the block.

        Keys already held by the current thread are re-entered. New keys are
        acquired in scope order; a new key ranked below a key the thread
        already holds would break that order and is rejected.

        Usage:
            with lock_manager.lock_context("flight:...", "treasury"):
                # mutate the flight and the treasury atomically
                pass

        Raises:
            LedgerBusy: If the locks cannot be acquired within the timeout
        """
        ordered = tuple(sorted(set(lock_keys), key=_sort_key))
        held = self._held_keys()

        fresh = [key for key in ordered if key not in held]
        if fresh and held:
            highest_held = max((_sort_key(key) for key in held))
            if _sort_key(fresh[0]) < highest_held:
                raise RuntimeError(
                    f"Lock order violation: {fresh[0]} requested while holding higher scope"
                )

        start_time = time.monotonic()
        deadline = start_time + self.timeout_seconds
        acquired: List[str] = []

        try:
            for key in ordered:
                remaining = max(0.0, deadline - time.monotonic())
                if not self._lock_for(key).acquire(timeout=remaining):
                    wait_ms = (time.monotonic() - start_time) * 1000
                    self._record(LockContentionMetrics(ordered, False, wait_ms))
                    logger.warning(f"Timed out acquiring lock {key} after {wait_ms:.1f}ms")
                    raise LedgerBusy(f"Ledger busy: could not lock {key}", lock_key=key)
                acquired.append(key)
                held[key] = held.get(key, 0) + 1
                if held[key] == 1:
                    self.active_locks[key] = LockInfo(
                        lock_key=key,
                        owner_thread=threading.current_thread().name,
                        acquired_at=datetime.now(),
                    )
                else:
                    self.active_locks[key].depth = held[key]
        except BaseException:
            self._release(acquired)
            raise

        wait_ms = (time.monotonic() - start_time) * 1000
        self._record(LockContentionMetrics(ordered, True, wait_ms))
        logger.debug(f"Locks acquired: {', '.join(ordered)} (wait: {wait_ms:.1f}ms)")

        try:
            yield ordered
        finally:
            self._release(acquired)

    def _release(self, acquired: List[str]) -> None:
        held = self._held_keys()
        for key in reversed(acquired):
            held[key] -= 1
            if held[key] == 0:
                del held[key]
                self.active_locks.pop(key, None)
            else:
                self.active_locks[key].depth = held[key]
            self._locks[key].release()

    def get_active_locks(self) -> List[Dict[str, Any]]:
        """
        Get information about all currently held locks.

        Returns:
            List of active lock information
        """
        return [lock.to_dict() for lock in list(self.active_locks.values())]

    def get_lock_metrics(self) -> Dict[str, Any]:
        """
        Get lock contention metrics and statistics.

        Returns:
            Dictionary with metrics and performance data
        """
        with self._registry_guard:
            metrics = list(self.metrics)

        if not metrics:
            return {"message": "No lock metrics available"}

        total = len(metrics)
        acquired = sum(1 for m in metrics if m.acquired)
        avg_wait = sum(m.wait_time_ms for m in metrics) / total

        return {
            "summary": {
                "total_acquisitions": total,
                "successful_acquisitions": acquired,
                "timeouts": total - acquired,
                "avg_wait_time_ms": avg_wait,
                "max_wait_time_ms": max(m.wait_time_ms for m in metrics),
                "known_lock_keys": len(self._locks),
            },
            "recent_operations": [m.to_dict() for m in metrics[-10:]],
        }

    def clear_metrics(self) -> None:
        """Clear collected lock metrics."""
        with self._registry_guard:
            self.metrics.clear()
        logger.info("Lock metrics cleared")
