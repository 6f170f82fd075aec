#!/usr/bin/env python3
"""
Adapter interfaces.

An adapter translates a generic trade or stake request into a call on a
venue-specific target. Concrete adapters live outside this package and are
registered with the controller's integration registry under a name.
"""

from typing import Any, Protocol, Tuple

from basket_ledger.execution.models import CallData

# (target, native value, call data)
CallSpec = Tuple[Any, int, CallData]


class ExchangeAdapter(Protocol):
    """Builds the call that swaps one component for another."""

    address: str

    def get_spender(self) -> str:
        """Address that needs approval over the send token."""
        ...

    def get_trade_calldata(
        self,
        send_token: str,
        receive_token: str,
        destination: str,
        send_quantity: int,
        min_receive_quantity: int,
        data: bytes,
    ) -> CallSpec:
        ...


class StakingAdapter(Protocol):
    """Builds the calls that stake into and unstake from a venue."""

    address: str

    def get_spender_address(self, venue) -> str:
        ...

    def get_stake_call_data(self, venue, notional: int) -> CallSpec:
        ...

    def get_unstake_call_data(self, venue, notional: int) -> CallSpec:
        ...
