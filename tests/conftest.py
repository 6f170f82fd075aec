#!/usr/bin/env python3
"""
Pytest configuration and fixtures for Basket Ledger tests.

Provides in-memory exchanges, staking venues and their adapters, and a
fully wired basket with the trade, staking and issuance modules.
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from basket_ledger.core.basket import BasketToken
from basket_ledger.core.calculator import PositionMath
from basket_ledger.core.controller import Controller
from basket_ledger.core.tokens import TokenBank
from basket_ledger.execution.issuance import IssuanceModule
from basket_ledger.execution.models import CallData
from basket_ledger.execution.staking import StakingEngine
from basket_ledger.execution.trade import TradeEngine


MANAGER = "manager"
OWNER = "owner"
FEE_RECIPIENT = "fee-recipient"

TOKEN_X = "token-x"
TOKEN_Y = "token-y"
TOKEN_C = "token-c"

EXCHANGE_NAME = "FAKE_EXCHANGE"
STAKE_A = "STAKE_A"
STAKE_B = "STAKE_B"


def ether(value) -> int:
    """Fixed-point quantity from a human-readable number."""
    return PositionMath.to_precise(value)


# ---------------------------------------------------------------------------
# Test doubles for external venues
# ---------------------------------------------------------------------------


class FakeExchange:
    """Pulls the send token and pays a configurable amount of the receive token."""

    def __init__(self, bank: TokenBank, address: str = "exchange"):
        self.bank = bank
        self.address = address
        self.receive_amount = None  # None pays exactly the minimum
        self.on_swap = None

    def swap(self, sender, send_token, receive_token, send_quantity, min_receive_quantity, destination):
        self.bank.transfer_from(send_token, self.address, sender, self.address, send_quantity)
        if self.on_swap is not None:
            self.on_swap()
        amount = min_receive_quantity if self.receive_amount is None else self.receive_amount
        self.bank.transfer(receive_token, self.address, destination, amount)


class FakeExchangeAdapter:
    def __init__(self, exchange: FakeExchange, address: str = "exchange-adapter"):
        self.exchange = exchange
        self.address = address

    def get_spender(self):
        return self.exchange.address

    def get_trade_calldata(self, send_token, receive_token, destination, send_quantity, min_receive_quantity, data):
        call_data = CallData(
            "swap",
            (send_token, receive_token, send_quantity, min_receive_quantity, destination),
        )
        return self.exchange, 0, call_data


class FakeStakingVenue:
    """Takes custody of one token; can short withdrawals by ``unstake_fee``."""

    def __init__(self, bank: TokenBank, token: str, address: str):
        self.bank = bank
        self.token = token
        self.address = address
        self.unstake_fee = 0

    def stake(self, sender, amount):
        self.bank.transfer_from(self.token, self.address, sender, self.address, amount)

    def unstake(self, sender, amount):
        self.bank.transfer(self.token, self.address, sender, amount - self.unstake_fee)


class FakeStakingAdapter:
    def __init__(self, address: str):
        self.address = address

    def get_spender_address(self, venue):
        return venue.address

    def get_stake_call_data(self, venue, notional):
        return venue, 0, CallData("stake", (notional,))

    def get_unstake_call_data(self, venue, notional):
        return venue, 0, CallData("unstake", (notional,))


class RecordingPreIssueHook:
    def __init__(self, address: str = "pre-issue-hook"):
        self.address = address
        self.calls = []

    def invoke_pre_issue_hook(self, basket, quantity, sender, to):
        self.calls.append((basket.address, quantity, sender, to))


# ---------------------------------------------------------------------------
# Wired system
# ---------------------------------------------------------------------------


@dataclass
class BasketSystem:
    bank: TokenBank
    controller: Controller
    basket: BasketToken
    trade: TradeEngine
    staking: StakingEngine
    issuance: IssuanceModule
    exchange: FakeExchange
    venue_one: FakeStakingVenue
    venue_two: FakeStakingVenue
    events: List = field(default_factory=list)

    def balance(self, token: str, holder: str = None) -> int:
        return self.bank.balance_of(token, holder or self.basket.address)


def build_system(supply=ether(100), trade_fee: int = 0) -> BasketSystem:
    """
    Basket holding 2 X and 1 C per share, issued to OWNER.

    The exchange holds Y to pay out; two venues accept C.
    """
    bank = TokenBank()
    controller = Controller(fee_recipient=FEE_RECIPIENT)

    trade = TradeEngine(controller)
    staking = StakingEngine(controller)
    issuance = IssuanceModule(controller)
    for module in (trade, staking, issuance):
        controller.add_module(module.address)
    if trade_fee:
        controller.add_fee(trade.address, TradeEngine.PROTOCOL_FEE_INDEX, trade_fee)

    exchange = FakeExchange(bank)
    venue_one = FakeStakingVenue(bank, TOKEN_C, "venue-one")
    venue_two = FakeStakingVenue(bank, TOKEN_C, "venue-two")

    registry = controller.integration_registry
    registry.add_integration(trade.address, EXCHANGE_NAME, FakeExchangeAdapter(exchange))
    registry.add_integration(staking.address, STAKE_A, FakeStakingAdapter("stake-adapter-a"))
    registry.add_integration(staking.address, STAKE_B, FakeStakingAdapter("stake-adapter-b"))

    basket = BasketToken(
        "basket", MANAGER, controller, bank,
        components={TOKEN_X: ether(2), TOKEN_C: ether(1)},
    )
    controller.add_basket(basket)
    for module in (trade, staking, issuance):
        basket.add_module(module, caller=MANAGER)
        module.initialize(basket, caller=MANAGER)

    for token in (TOKEN_X, TOKEN_C):
        bank.mint(token, OWNER, ether(10_000))
        bank.approve(token, OWNER, issuance.address, ether(10_000))
    bank.mint(TOKEN_Y, exchange.address, ether(1_000))

    issuance.issue(basket, supply, OWNER, caller=OWNER)

    system = BasketSystem(
        bank=bank,
        controller=controller,
        basket=basket,
        trade=trade,
        staking=staking,
        issuance=issuance,
        exchange=exchange,
        venue_one=venue_one,
        venue_two=venue_two,
    )
    for module in (trade, staking, issuance):
        module.subscribe(system.events.append)
    return system


@pytest.fixture
def system():
    """Basket with supply 100: 200 X and 100 C held by default."""
    return build_system()


@pytest.fixture
def bank():
    return TokenBank()


@pytest.fixture
def controller():
    return Controller(fee_recipient=FEE_RECIPIENT)
