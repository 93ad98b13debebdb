"""
Operational gate: the ledger-wide circuit breaker.

While the gate is closed every mutating operation fails with SystemPaused.
Reads keep working. Mutations run inside ``guarded``, which holds the gate
lock together with their entity locks, so a pause cannot interleave with an
operation that already passed the check. Only the owner account may flip the flag.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Tuple

from ..errors import AlreadyOperational, AlreadyPaused, SystemPaused, Unauthorized
from ..events.bus import EventBus
from ..models.account import normalize_account
from ..models.events import OperationalStatusChanged
from ..state import LedgerState
from .identity import IdentityRegistry
from .lock_manager import EntityLockManager, LockScope, build_lock_key

logger = logging.getLogger(__name__)


class OperationalGate:
    """Owner-controlled operational flag."""

    def __init__(
        self,
        state: LedgerState,
        identity: IdentityRegistry,
        locks: EntityLockManager,
        bus: EventBus,
    ):
        self.state = state
        self.identity = identity
        self.locks = locks
        self.bus = bus

    def is_operational(self) -> bool:
        return self.state.operational

    def require_operational(self) -> None:
        """
        Fail fast when the ledger is paused.

        Raises:
            SystemPaused: If the operational flag is off
        """
        if not self.state.operational:
            raise SystemPaused("Ledger is paused")

    @contextmanager
    def guarded(self, *lock_keys: str) -> Iterator[Tuple[str, ...]]:
        """
        Hold the gate lock and ``lock_keys`` while the ledger stays operational.

        The flag is checked again once every lock is held; set_operational_status
        takes the same gate lock, so the flag cannot change inside the block.

        Raises:
            SystemPaused: If the ledger is paused
            LedgerBusy: If the locks cannot be acquired within the timeout
        """
        with self.locks.lock_context(build_lock_key(LockScope.GATE), *lock_keys) as held:
            self.require_operational()
            yield held

    def set_operational_status(self, operational: bool, caller: str) -> None:
        """
        Pause or resume the ledger.

        Args:
            operational: New flag value
            caller: Account requesting the change; must be the owner

        Raises:
            Unauthorized: If caller is not the owner
            AlreadyPaused: If pausing a paused ledger
            AlreadyOperational: If resuming an operational ledger
        """
        caller = normalize_account(caller)
        if not self.identity.is_owner(caller):
            logger.warning(f"Rejected operational status change from non-owner {caller}")
            raise Unauthorized("Only the owner can change the operational status", caller=caller)

        with self.locks.lock_context(build_lock_key(LockScope.GATE)):
            if operational == self.state.operational:
                if operational:
                    raise AlreadyOperational("Ledger is already operational")
                raise AlreadyPaused("Ledger is already paused")
            self.state.operational = operational

        logger.info(f"Ledger {'resumed' if operational else 'paused'} by {caller}")
        self.bus.publish(OperationalStatusChanged(operational=operational, changed_by=caller))
