#!/usr/bin/env python3
"""
Exceptions raised by the basket ledger.

Every failure rejects the whole operation; the message carries the reason.
"""


class BasketLedgerError(Exception):
    """Base class for all rejected basket operations."""


class Unauthorized(BasketLedgerError):
    """Caller is not the basket manager or not an authorized module."""


class InvalidBasketState(BasketLedgerError):
    """Basket is not initialized, not enabled, or otherwise not in good standing."""


class UnknownAdapter(BasketLedgerError):
    """Named integration is not registered for the calling module."""


class NonPositiveNotional(BasketLedgerError):
    """Requested quantity resolves to zero or less."""


class InsufficientBalance(BasketLedgerError):
    """Requested quantity exceeds what is held."""


class InsufficientAllowance(BasketLedgerError):
    """Spender tried to move more than it was approved for."""


class SlippageExceeded(BasketLedgerError):
    """Received amount fell below the declared minimum."""


class InsufficientStaked(BasketLedgerError):
    """Unstake request exceeds the recorded staking position."""


class ReturnedAmountMismatch(BasketLedgerError):
    """Staking venue returned less than the requested notional."""


class OpenPositionsRemain(BasketLedgerError):
    """Module cannot be detached while it still custodies positions."""


class ReentrantCall(BasketLedgerError):
    """Guarded operation was re-entered before the outer call returned."""


class InvalidTransfer(BasketLedgerError):
    """Post-transfer balance does not match the transferred amount."""
