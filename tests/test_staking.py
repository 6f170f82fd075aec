#!/usr/bin/env python3
"""
Tests for the staking engine.
"""

import pytest

from basket_ledger.core.basket import BasketToken
from basket_ledger.core.controller import hash_adapter_name
from basket_ledger.core.exceptions import (
    InsufficientBalance,
    InsufficientStaked,
    InvalidBasketState,
    NonPositiveNotional,
    OpenPositionsRemain,
    ReturnedAmountMismatch,
    Unauthorized,
    UnknownAdapter,
)
from basket_ledger.core.models import ModuleState, StakingPosition
from basket_ledger.execution.models import ComponentStaked, ComponentUnstaked
from basket_ledger.execution.staking import StakingLedger

from conftest import MANAGER, STAKE_A, STAKE_B, TOKEN_C, build_system, ether


def _stake(system, venue, units, adapter=STAKE_A, caller=MANAGER):
    system.staking.stake(system.basket, venue, TOKEN_C, adapter, units, caller=caller)


def _unstake(system, venue, units, adapter=STAKE_A, caller=MANAGER):
    system.staking.unstake(system.basket, venue, TOKEN_C, adapter, units, caller=caller)


def _unregistered_basket(system):
    """Controller-enabled basket holding C, with no modules added."""
    basket = BasketToken("basket-2", MANAGER, system.controller, system.bank, {TOKEN_C: ether(1)})
    system.controller.add_basket(basket)
    return basket


def _snapshot(system):
    basket = system.basket
    staking = system.staking
    return (
        system.balance(TOKEN_C),
        system.balance(TOKEN_C, system.venue_one.address),
        system.balance(TOKEN_C, system.venue_two.address),
        basket.get_positions(),
        basket.get_components(),
        staking.get_staking_contracts(basket, TOKEN_C),
        staking.get_staking_position(basket, TOKEN_C, system.venue_one.address),
    )


# ---------------------------------------------------------------------------
# StakingLedger
# ---------------------------------------------------------------------------


class TestStakingLedger:
    class Venue:
        def __init__(self, address):
            self.address = address

    def test_open_increase_decrease(self):
        ledger = StakingLedger()
        venue = self.Venue("v")

        ledger.open(venue, "0xabc", 5)
        ledger.increase("v", 3)
        assert ledger.position("v") == StakingPosition("0xabc", 8)
        assert "v" in ledger

        assert ledger.decrease("v", 8) == 0
        assert "v" not in ledger
        assert len(ledger) == 0
        assert ledger.position("v") == StakingPosition()

    def test_copy_is_independent(self):
        ledger = StakingLedger()
        ledger.open(self.Venue("a"), "0x1", 1)
        clone = ledger.copy()

        ledger.open(self.Venue("b"), "0x2", 2)

        assert clone.addresses() == ["a"]
        assert ledger.addresses() == ["a", "b"]


# ---------------------------------------------------------------------------
# Stake
# ---------------------------------------------------------------------------


class TestStake:
    def test_stake_half(self, system):
        _stake(system, system.venue_one, ether("0.5"))

        basket = system.basket
        assert system.balance(TOKEN_C, system.venue_one.address) == ether(50)
        assert system.balance(TOKEN_C) == ether(50)
        assert basket.default_position_unit(TOKEN_C) == ether("0.5")
        assert basket.external_position_unit(TOKEN_C, system.staking.address) == ether("0.5")
        assert basket.external_position_modules(TOKEN_C) == [system.staking.address]
        assert basket.external_position_data(TOKEN_C, system.staking.address) == b""

        position = system.staking.get_staking_position(basket, TOKEN_C, system.venue_one.address)
        assert position == StakingPosition(hash_adapter_name(STAKE_A), ether("0.5"))
        assert system.staking.get_staking_contracts(basket, TOKEN_C) == ["venue-one"]
        assert system.staking.has_open_positions(basket)

    def test_stake_entire_default_keeps_component(self, system):
        _stake(system, system.venue_one, ether(1))

        basket = system.basket
        assert basket.default_position_unit(TOKEN_C) == 0
        assert basket.is_component(TOKEN_C)
        assert basket.external_position_unit(TOKEN_C, system.staking.address) == ether(1)

    def test_adding_to_position_keeps_original_adapter(self, system):
        _stake(system, system.venue_one, ether("0.25"), adapter=STAKE_A)
        _stake(system, system.venue_one, ether("0.25"), adapter=STAKE_B)

        position = system.staking.get_staking_position(
            system.basket, TOKEN_C, system.venue_one.address
        )
        assert position.adapter_hash == hash_adapter_name(STAKE_A)
        assert position.position_units == ether("0.5")
        assert system.staking.get_staking_contracts(system.basket, TOKEN_C) == ["venue-one"]

    def test_venues_listed_in_stake_order(self, system):
        _stake(system, system.venue_two, ether("0.1"), adapter=STAKE_B)
        _stake(system, system.venue_one, ether("0.1"))

        assert system.staking.get_staking_contracts(system.basket, TOKEN_C) == [
            "venue-two",
            "venue-one",
        ]

    def test_emits_component_staked(self, system):
        _stake(system, system.venue_one, ether("0.5"))

        assert len(system.events) == 1
        event = system.events[0]
        assert isinstance(event, ComponentStaked)
        assert event.basket == "basket"
        assert event.component == TOKEN_C
        assert event.venue == "venue-one"
        assert event.position_units == ether("0.5")
        assert event.adapter == "stake-adapter-a"

    def test_more_than_default_units(self, system):
        before = _snapshot(system)
        with pytest.raises(InsufficientBalance, match="Not enough component to stake"):
            _stake(system, system.venue_one, ether(2))
        assert _snapshot(system) == before

    def test_zero_units_rejected(self, system):
        with pytest.raises(NonPositiveNotional):
            _stake(system, system.venue_one, 0)

    def test_unknown_adapter(self, system):
        with pytest.raises(UnknownAdapter, match="Must be valid adapter"):
            _stake(system, system.venue_one, ether("0.5"), adapter="NOPE")

    def test_caller_not_manager(self, system):
        with pytest.raises(Unauthorized, match="Must be the basket manager"):
            _stake(system, system.venue_one, ether("0.5"), caller="someone-else")


    def test_notional_rounding_to_zero(self):
        system = build_system(supply=1)
        positions_before = system.basket.get_positions()

        with pytest.raises(NonPositiveNotional, match="Notional must be greater than zero"):
            _stake(system, system.venue_one, ether("0.5"))

        assert system.basket.get_positions() == positions_before
        assert system.staking.get_staking_contracts(system.basket, TOKEN_C) == []
        assert system.balance(TOKEN_C, system.venue_one.address) == 0

    def test_module_not_initialized_on_basket(self, system):
        other = _unregistered_basket(system)
        with pytest.raises(InvalidBasketState, match="Must be a valid and initialized basket"):
            system.staking.stake(other, system.venue_one, TOKEN_C, STAKE_A, ether("0.5"), caller=MANAGER)

    def test_basket_disabled_on_controller(self, system):
        system.controller.remove_basket(system.basket.address)
        with pytest.raises(InvalidBasketState, match="Must be a valid and initialized basket"):
            _stake(system, system.venue_one, ether("0.5"))

    def test_module_removed_from_basket(self, system):
        system.basket.remove_module(system.staking.address, caller=MANAGER)
        with pytest.raises(InvalidBasketState):
            _stake(system, system.venue_one, ether("0.5"))


# ---------------------------------------------------------------------------
# Unstake
# ---------------------------------------------------------------------------


class TestUnstake:
    def test_round_trip_restores_positions(self, system):
        positions_before = system.basket.get_positions()

        _stake(system, system.venue_one, ether("0.5"))
        _unstake(system, system.venue_one, ether("0.5"))

        basket = system.basket
        assert basket.get_positions() == positions_before
        assert system.balance(TOKEN_C) == ether(100)
        assert system.balance(TOKEN_C, system.venue_one.address) == 0
        assert system.staking.get_staking_contracts(basket, TOKEN_C) == []
        assert not basket.has_external_position(TOKEN_C, system.staking.address)
        assert not system.staking.has_open_positions(basket)

    def test_partial_unstake(self, system):
        _stake(system, system.venue_one, ether("0.5"))
        _unstake(system, system.venue_one, ether("0.2"))

        basket = system.basket
        assert basket.default_position_unit(TOKEN_C) == ether("0.7")
        assert basket.external_position_unit(TOKEN_C, system.staking.address) == ether("0.3")
        assert system.balance(TOKEN_C, system.venue_one.address) == ether(30)
        position = system.staking.get_staking_position(basket, TOKEN_C, system.venue_one.address)
        assert position.position_units == ether("0.3")

    def test_unstaking_whole_default_stake_restores_component(self, system):
        _stake(system, system.venue_one, ether(1))
        _unstake(system, system.venue_one, ether(1))

        basket = system.basket
        assert basket.default_position_unit(TOKEN_C) == ether(1)
        assert basket.external_position_modules(TOKEN_C) == []

    def test_external_position_kept_while_other_venue_open(self, system):
        _stake(system, system.venue_one, ether("0.5"))
        _stake(system, system.venue_two, ether("0.25"), adapter=STAKE_B)
        _unstake(system, system.venue_one, ether("0.5"))

        basket = system.basket
        assert basket.external_position_unit(TOKEN_C, system.staking.address) == ether("0.25")
        assert system.staking.get_staking_contracts(basket, TOKEN_C) == ["venue-two"]

    def test_restaked_venue_moves_to_end(self, system):
        _stake(system, system.venue_one, ether("0.1"))
        _stake(system, system.venue_two, ether("0.1"), adapter=STAKE_B)
        _unstake(system, system.venue_one, ether("0.1"))
        _stake(system, system.venue_one, ether("0.1"))

        assert system.staking.get_staking_contracts(system.basket, TOKEN_C) == [
            "venue-two",
            "venue-one",
        ]

    def test_emits_component_unstaked_with_given_adapter(self, system):
        _stake(system, system.venue_one, ether("0.5"), adapter=STAKE_A)
        _unstake(system, system.venue_one, ether("0.5"), adapter=STAKE_B)

        event = system.events[-1]
        assert isinstance(event, ComponentUnstaked)
        assert event.adapter == "stake-adapter-b"
        assert event.position_units == ether("0.5")

    def test_more_than_staked(self, system):
        _stake(system, system.venue_one, ether("0.5"))
        with pytest.raises(InsufficientStaked, match="Not enough component tokens staked"):
            _unstake(system, system.venue_one, ether("0.6"))

    def test_nothing_staked_at_venue(self, system):
        with pytest.raises(InsufficientStaked):
            _unstake(system, system.venue_two, ether("0.1"))

    def test_notional_rounding_to_zero(self):
        system = build_system(supply=1)
        _stake(system, system.venue_one, ether(1))
        before = _snapshot(system)

        with pytest.raises(NonPositiveNotional, match="Notional must be greater than zero"):
            _unstake(system, system.venue_one, ether("0.5"))

        assert _snapshot(system) == before

    def test_zero_units_rejected(self, system):
        _stake(system, system.venue_one, ether("0.5"))
        with pytest.raises(NonPositiveNotional, match="Position units must be greater than zero"):
            _unstake(system, system.venue_one, 0)

    def test_caller_not_manager(self, system):
        _stake(system, system.venue_one, ether("0.5"))
        with pytest.raises(Unauthorized, match="Must be the basket manager"):
            _unstake(system, system.venue_one, ether("0.5"), caller="someone-else")

    def test_unknown_adapter(self, system):
        _stake(system, system.venue_one, ether("0.5"))
        before = _snapshot(system)

        with pytest.raises(UnknownAdapter, match="Must be valid adapter"):
            _unstake(system, system.venue_one, ether("0.5"), adapter="NOPE")

        assert _snapshot(system) == before

    def test_module_not_initialized_on_basket(self, system):
        other = _unregistered_basket(system)
        with pytest.raises(InvalidBasketState, match="Must be a valid and initialized basket"):
            system.staking.unstake(other, system.venue_one, TOKEN_C, STAKE_A, ether("0.5"), caller=MANAGER)

    def test_basket_disabled_on_controller(self, system):
        _stake(system, system.venue_one, ether("0.5"))
        system.controller.remove_basket(system.basket.address)

        with pytest.raises(InvalidBasketState, match="Must be a valid and initialized basket"):
            _unstake(system, system.venue_one, ether("0.5"))

        assert system.balance(TOKEN_C, system.venue_one.address) == ether(50)

    def test_short_return_rolls_back(self, system):
        _stake(system, system.venue_one, ether("0.5"))
        before = _snapshot(system)
        events_before = list(system.events)
        system.venue_one.unstake_fee = 1

        with pytest.raises(ReturnedAmountMismatch, match="Not enough tokens returned"):
            _unstake(system, system.venue_one, ether("0.5"))

        assert _snapshot(system) == before
        assert system.events == events_before


# ---------------------------------------------------------------------------
# Issuance hooks
# ---------------------------------------------------------------------------


class TestIssuanceHooks:
    @pytest.fixture
    def staked(self, system):
        _stake(system, system.venue_one, ether("0.5"), adapter=STAKE_A)
        _stake(system, system.venue_two, ether("0.25"), adapter=STAKE_B)
        return system

    def test_issue_hook_stakes_backing(self, staked):
        basket = staked.basket
        ledger_before = (
            staked.staking.get_staking_position(basket, TOKEN_C, "venue-one"),
            staked.staking.get_staking_position(basket, TOKEN_C, "venue-two"),
        )
        positions_before = basket.get_positions()

        staked.staking.component_issue_hook(
            basket, ether(10), TOKEN_C, True, caller=staked.issuance.address
        )

        assert staked.balance(TOKEN_C, "venue-one") == ether(55)
        assert staked.balance(TOKEN_C, "venue-two") == ether("27.5")
        assert staked.balance(TOKEN_C) == ether("17.5")
        assert basket.get_positions() == positions_before
        assert (
            staked.staking.get_staking_position(basket, TOKEN_C, "venue-one"),
            staked.staking.get_staking_position(basket, TOKEN_C, "venue-two"),
        ) == ledger_before

    def test_redeem_hook_unstakes_backing(self, staked):
        staked.staking.component_redeem_hook(
            staked.basket, ether(10), TOKEN_C, True, caller=staked.issuance.address
        )

        assert staked.balance(TOKEN_C, "venue-one") == ether(45)
        assert staked.balance(TOKEN_C, "venue-two") == ether("22.5")
        assert staked.balance(TOKEN_C) == ether("32.5")
        position = staked.staking.get_staking_position(staked.basket, TOKEN_C, "venue-one")
        assert position.position_units == ether("0.5")

    def test_on_issue_alias(self, staked):
        staked.staking.on_issue(staked.basket, TOKEN_C, ether(2), caller=staked.issuance.address)
        assert staked.balance(TOKEN_C, "venue-one") == ether(51)

    def test_hook_without_stakes_is_noop(self, system):
        system.staking.component_issue_hook(
            system.basket, ether(10), TOKEN_C, caller=system.issuance.address
        )
        assert system.balance(TOKEN_C) == ether(100)

    def test_redeem_hook_short_return_rolls_back(self, staked):
        before = _snapshot(staked)
        staked.venue_two.unstake_fee = 1

        with pytest.raises(ReturnedAmountMismatch):
            staked.staking.component_redeem_hook(
                staked.basket, ether(10), TOKEN_C, caller=staked.issuance.address
            )

        assert _snapshot(staked) == before

    def test_rejects_non_module_caller(self, staked):
        with pytest.raises(Unauthorized, match="Only the module can call"):
            staked.staking.component_issue_hook(
                staked.basket, ether(10), TOKEN_C, caller=MANAGER
            )

    def test_rejects_module_disabled_on_controller(self, staked):
        staked.controller.remove_module(staked.issuance.address)
        with pytest.raises(Unauthorized, match="Module must be enabled on controller"):
            staked.staking.component_redeem_hook(
                staked.basket, ether(10), TOKEN_C, caller=staked.issuance.address
            )


# ---------------------------------------------------------------------------
# Module removal
# ---------------------------------------------------------------------------


class TestRemoveModule:
    def test_refused_with_open_positions(self, system):
        _stake(system, system.venue_one, ether("0.5"))

        with pytest.raises(OpenPositionsRemain, match="Open positions must be closed"):
            system.basket.remove_module(system.staking.address, caller=MANAGER)

        assert system.basket.module_state(system.staking.address) == ModuleState.INITIALIZED

    def test_allowed_once_positions_closed(self, system):
        _stake(system, system.venue_one, ether("0.5"))
        _unstake(system, system.venue_one, ether("0.5"))

        system.basket.remove_module(system.staking.address, caller=MANAGER)

        assert system.basket.module_state(system.staking.address) == ModuleState.NONE
        assert system.staking.address not in system.basket.get_modules()
