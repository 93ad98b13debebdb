"""
Identity registry: which accounts exist and which roles they hold.
"""

import logging
import threading
from typing import List, Set

from ..models.account import normalize_account
from ..models.enums import Role
from ..state import LedgerState

logger = logging.getLogger(__name__)


class IdentityRegistry:
    """Tracks known accounts and their roles."""

    def __init__(self, state: LedgerState):
        self.state = state
        self._guard = threading.Lock()
        self.grant(state.owner, Role.OWNER)

    def grant(self, account: str, role: Role) -> None:
        """Record that ``account`` holds ``role``."""
        account = normalize_account(account)
        with self._guard:
            roles = self.state.accounts.setdefault(account, set())
            if role in roles:
                return
            roles.add(role)
        logger.debug(f"Granted role {role.value} to {account}")

    def roles_of(self, account: str) -> Set[Role]:
        return set(self.state.accounts.get(normalize_account(account), set()))

    def has_role(self, account: str, role: Role) -> bool:
        return role in self.state.accounts.get(normalize_account(account), set())

    def is_known(self, account: str) -> bool:
        return normalize_account(account) in self.state.accounts

    def is_owner(self, account: str) -> bool:
        return normalize_account(account) == self.state.owner

    def accounts_with(self, role: Role) -> List[str]:
        return [account for account, roles in self.state.accounts.items() if role in roles]
