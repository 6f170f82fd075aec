#!/usr/bin/env python3
"""
Data models for the execution subsystem.

Defines call data handed to external targets, the per-trade context, trade
results and the events emitted by the modules.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, NamedTuple, Tuple


@dataclass(frozen=True)
class CallData:
    """Method to invoke on an external target, after the sender argument."""

    method: str
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TradeContext:
    """Everything one trade needs; lives only for the duration of the call."""

    basket: Any
    exchange_adapter: Any
    exchange_name: str
    send_token: str
    receive_token: str
    total_supply: int
    total_send_quantity: int
    total_min_receive_quantity: int
    pre_trade_send_balance: int
    pre_trade_receive_balance: int


class TradeResult(NamedTuple):
    """Net amounts of a completed trade, in absolute token quantities."""

    net_send_amount: int
    net_receive_amount: int
    protocol_fee: int


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class Event:
    """Base for emitted notifications."""

    name = "Event"

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        data = {"event": self.name}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = value.isoformat() if isinstance(value, datetime) else value
        return data


@dataclass(frozen=True)
class ComponentExchanged(Event):
    """A trade completed."""

    name = "ComponentExchanged"

    basket: str
    send_token: str
    receive_token: str
    exchange_adapter: str
    total_send_amount: int
    total_receive_amount: int
    protocol_fee: int
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class ComponentStaked(Event):
    name = "ComponentStaked"

    basket: str
    component: str
    venue: str
    position_units: int
    adapter: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class ComponentUnstaked(Event):
    name = "ComponentUnstaked"

    basket: str
    component: str
    venue: str
    position_units: int
    adapter: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class BasketIssued(Event):
    name = "BasketIssued"

    basket: str
    issuer: str
    to: str
    hook_contract: str
    quantity: int
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class BasketRedeemed(Event):
    name = "BasketRedeemed"

    basket: str
    redeemer: str
    to: str
    quantity: int
    timestamp: datetime = field(default_factory=datetime.now)
