#!/usr/bin/env python3
"""
In-memory token balance book.

Every participant (baskets, venues, exchanges, issuers) holds its tokens
here, so "balance" means the same thing to every module.
"""

import copy
import threading
from typing import Dict, Tuple

from basket_ledger.core.exceptions import InsufficientAllowance, InsufficientBalance
from basket_ledger.utils.logging import LoggingMixin

# Pseudo-token for native value attached to external calls
NATIVE_TOKEN = "native"


class TokenBank(LoggingMixin):
    """Balances and allowances for every token, with snapshot/restore."""

    def __init__(self):
        self._balances: Dict[str, Dict[str, int]] = {}
        self._allowances: Dict[str, Dict[Tuple[str, str], int]] = {}
        # Global serialization point for state-changing operations
        self.lock = threading.RLock()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def balance_of(self, token: str, holder: str) -> int:
        return self._balances.get(token, {}).get(holder, 0)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._allowances.get(token, {}).get((owner, spender), 0)

    def total_supply(self, token: str) -> int:
        return sum(self._balances.get(token, {}).values())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @staticmethod
    def _check_amount(amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Amount must be non-negative, got {amount}")

    def _credit(self, token: str, holder: str, amount: int) -> None:
        book = self._balances.setdefault(token, {})
        book[holder] = book.get(holder, 0) + amount

    def _debit(self, token: str, holder: str, amount: int) -> None:
        balance = self.balance_of(token, holder)
        if balance < amount:
            raise InsufficientBalance(
                f"Transfer amount exceeds balance: {holder} holds {balance} "
                f"{token}, needs {amount}"
            )
        self._balances[token][holder] = balance - amount

    def mint(self, token: str, to: str, amount: int) -> None:
        """Create tokens out of thin air (fixtures and issuers)."""
        self._check_amount(amount)
        self._credit(token, to, amount)

    def burn(self, token: str, holder: str, amount: int) -> None:
        self._check_amount(amount)
        self._debit(token, holder, amount)

    def transfer(self, token: str, sender: str, to: str, amount: int) -> None:
        """Move tokens held by sender."""
        self._check_amount(amount)
        self._debit(token, sender, amount)
        self._credit(token, to, amount)
        self.log_debug(f"Transfer {amount} {token}: {sender} -> {to}")

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        """Set (not add to) the spender's allowance over owner's tokens."""
        self._check_amount(amount)
        self._allowances.setdefault(token, {})[(owner, spender)] = amount
        self.log_debug(f"Approve {spender} for {amount} {token} of {owner}")

    def transfer_from(
        self, token: str, spender: str, owner: str, to: str, amount: int
    ) -> None:
        """Move owner's tokens using spender's allowance."""
        self._check_amount(amount)
        allowed = self.allowance(token, owner, spender)
        if allowed < amount:
            raise InsufficientAllowance(
                f"Transfer amount exceeds allowance: {spender} may move "
                f"{allowed} {token} of {owner}, needs {amount}"
            )
        self._debit(token, owner, amount)
        self._credit(token, to, amount)
        self._allowances[token][(owner, spender)] = allowed - amount
        self.log_debug(f"TransferFrom {amount} {token}: {owner} -> {to} by {spender}")

    # ------------------------------------------------------------------
    # Rollback support
    # ------------------------------------------------------------------

    def snapshot(self) -> Tuple[dict, dict]:
        return copy.deepcopy(self._balances), copy.deepcopy(self._allowances)

    def restore(self, state: Tuple[dict, dict]) -> None:
        self._balances, self._allowances = state
