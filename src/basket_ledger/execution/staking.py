#!/usr/bin/env python3
"""
Staking engine: custody of basket components in external staking venues.

For every (basket, component) the engine keeps a StakingLedger of the
venues holding that component and the per-share units staked at each. The
basket sees the staked part as an external position owned by this engine.

Manager stake/unstake calls are the only way ledger units change. The
issuance hooks move tokens so that newly minted or burned shares carry the
same per-share stake, without touching the ledger.
"""

from typing import Dict, List, Tuple

from basket_ledger.core.calculator import PositionMath
from basket_ledger.core.controller import Controller, hash_adapter_name
from basket_ledger.core.exceptions import (
    InsufficientBalance,
    InsufficientStaked,
    NonPositiveNotional,
    OpenPositionsRemain,
    ReturnedAmountMismatch,
)
from basket_ledger.core.models import StakingPosition
from basket_ledger.execution.adapters import StakingAdapter
from basket_ledger.execution.models import ComponentStaked, ComponentUnstaked
from basket_ledger.execution.module import ModuleBase


class StakingLedger:
    """
    Venues holding one component of one basket, in insertion order.

    A venue is listed iff it has a position with units > 0; the list and the
    position map are only changed together.
    """

    def __init__(self):
        self._venues: List = []
        self._positions: Dict[str, StakingPosition] = {}

    def __len__(self) -> int:
        return len(self._venues)

    def __contains__(self, venue_address: str) -> bool:
        return venue_address in self._positions

    def venues(self) -> List:
        return list(self._venues)

    def addresses(self) -> List[str]:
        return [venue.address for venue in self._venues]

    def position(self, venue_address: str) -> StakingPosition:
        return self._positions.get(venue_address, StakingPosition())

    def open(self, venue, adapter_hash: str, units: int) -> None:
        self._venues.append(venue)
        self._positions[venue.address] = StakingPosition(adapter_hash, units)

    def increase(self, venue_address: str, units: int) -> None:
        current = self._positions[venue_address]
        self._positions[venue_address] = StakingPosition(
            current.adapter_hash, current.position_units + units
        )

    def decrease(self, venue_address: str, units: int) -> int:
        """Reduce a venue's units, dropping the venue at zero. Returns remaining units."""
        current = self._positions[venue_address]
        remaining = current.position_units - units
        if remaining > 0:
            self._positions[venue_address] = StakingPosition(current.adapter_hash, remaining)
        else:
            self._venues = [v for v in self._venues if v.address != venue_address]
            del self._positions[venue_address]
        return remaining

    def copy(self) -> "StakingLedger":
        ledger = StakingLedger()
        ledger._venues = list(self._venues)
        ledger._positions = dict(self._positions)
        return ledger


class StakingEngine(ModuleBase):
    """Stakes basket components into external venues and tracks them per venue."""

    def __init__(self, controller: Controller, address: str = "staking-module"):
        super().__init__(controller, address)
        self._ledgers: Dict[Tuple[str, str], StakingLedger] = {}

    # ------------------------------------------------------------------
    # Manager operations
    # ------------------------------------------------------------------

    def stake(
        self,
        basket,
        venue,
        component: str,
        adapter_name: str,
        position_units: int,
        *,
        caller: str,
    ) -> None:
        """
        Move position_units per share of a component from the basket into a venue.

        Args:
            basket: Basket whose component is staked
            venue: Staking venue (must expose ``address``)
            component: Component to stake
            adapter_name: Registered name of the staking adapter
            position_units: Units per share to stake
            caller: Must be the basket manager
        """
        with self._transaction(basket, "Stake"):
            self._validate_manager_and_initialized(basket, caller)
            self._validate_quantity(position_units, basket.total_supply())
            if not basket.has_sufficient_default_units(component, position_units):
                raise InsufficientBalance("Not enough component to stake")

            adapter = self.get_and_validate_adapter(adapter_name)
            self._stake(basket, venue, component, adapter, position_units, basket.total_supply())
            self._update_stake_state(basket, venue, component, adapter_name, position_units)

            self.log(
                f"{basket.address}: staked {position_units} units of {component} "
                f"at {venue.address} via {adapter_name}"
            )
            self.emit(ComponentStaked(
                basket=basket.address,
                component=component,
                venue=venue.address,
                position_units=position_units,
                adapter=adapter.address,
            ))

    def unstake(
        self,
        basket,
        venue,
        component: str,
        adapter_name: str,
        position_units: int,
        *,
        caller: str,
    ) -> None:
        """Return position_units per share of a component from a venue to the basket."""
        with self._transaction(basket, "Unstake"):
            self._validate_manager_and_initialized(basket, caller)
            self._validate_quantity(position_units, basket.total_supply())
            staked = self.get_staking_position(basket, component, venue.address)
            if staked.position_units < position_units:
                raise InsufficientStaked("Not enough component tokens staked")

            adapter = self.get_and_validate_adapter(adapter_name)
            self._unstake(basket, venue, component, adapter, position_units, basket.total_supply())
            self._update_unstake_state(basket, venue, component, position_units)

            self.log(
                f"{basket.address}: unstaked {position_units} units of {component} "
                f"from {venue.address} via {adapter_name}"
            )
            self.emit(ComponentUnstaked(
                basket=basket.address,
                component=component,
                venue=venue.address,
                position_units=position_units,
                adapter=adapter.address,
            ))

    @staticmethod
    def _validate_quantity(position_units: int, total_supply: int) -> None:
        if position_units <= 0:
            raise NonPositiveNotional("Position units must be greater than zero")
        if PositionMath.precise_mul(position_units, total_supply) <= 0:
            raise NonPositiveNotional("Notional must be greater than zero")

    # ------------------------------------------------------------------
    # Issuance hooks
    # ------------------------------------------------------------------

    def component_issue_hook(
        self,
        basket,
        issue_quantity: int,
        component: str,
        is_equity: bool = True,
        *,
        caller: str,
    ) -> None:
        """
        Stake the component backing newly issued shares at every venue.

        ``is_equity`` completes the hook signature the issuance module calls;
        staked positions are always equity.
        """
        with self._transaction(basket, "Issue hook"):
            self._validate_module_caller(basket, caller)
            for venue in self._venues_for(basket, component):
                position = self.get_staking_position(basket, component, venue.address)
                adapter = self.get_and_validate_adapter_with_hash(position.adapter_hash)
                self._stake(basket, venue, component, adapter, position.position_units, issue_quantity)

    def component_redeem_hook(
        self,
        basket,
        redeem_quantity: int,
        component: str,
        is_equity: bool = True,
        *,
        caller: str,
    ) -> None:
        """Unstake the component backing redeemed shares from every venue (see issue hook)."""
        with self._transaction(basket, "Redeem hook"):
            self._validate_module_caller(basket, caller)
            for venue in self._venues_for(basket, component):
                position = self.get_staking_position(basket, component, venue.address)
                adapter = self.get_and_validate_adapter_with_hash(position.adapter_hash)
                self._unstake(basket, venue, component, adapter, position.position_units, redeem_quantity)

    def on_issue(self, basket, component: str, shares_minted: int, *, caller: str) -> None:
        self.component_issue_hook(basket, shares_minted, component, caller=caller)

    def on_redeem(self, basket, component: str, shares_burned: int, *, caller: str) -> None:
        self.component_redeem_hook(basket, shares_burned, component, caller=caller)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def remove_module(self, basket) -> None:
        """Refuse removal while any component of the basket is still staked."""
        if self.has_open_positions(basket):
            raise OpenPositionsRemain("Open positions must be closed")
        for key in [k for k in self._ledgers if k[0] == basket.address]:
            del self._ledgers[key]

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_staking_contracts(self, basket, component: str) -> List[str]:
        ledger = self._ledgers.get((basket.address, component))
        return ledger.addresses() if ledger else []

    def get_staking_position(self, basket, component: str, venue_address: str) -> StakingPosition:
        ledger = self._ledgers.get((basket.address, component))
        return ledger.position(venue_address) if ledger else StakingPosition()

    def has_open_positions(self, basket) -> bool:
        return any(
            len(ledger) > 0
            for (basket_address, _), ledger in self._ledgers.items()
            if basket_address == basket.address
        )

    def _venues_for(self, basket, component: str) -> List:
        ledger = self._ledgers.get((basket.address, component))
        return ledger.venues() if ledger else []

    # ------------------------------------------------------------------
    # Token movement
    # ------------------------------------------------------------------

    def _stake(
        self,
        basket,
        venue,
        component: str,
        adapter: StakingAdapter,
        position_units: int,
        quantity: int,
    ) -> None:
        """Approve and stake units x quantity of the component at the venue."""
        notional = PositionMath.precise_mul(position_units, quantity)
        spender = adapter.get_spender_address(venue)
        basket.approve_on_behalf(component, spender, notional, caller=self.address)

        target, value, call_data = adapter.get_stake_call_data(venue, notional)
        basket.invoke_external_call(target, value, call_data, caller=self.address)
        self.log_debug(f"{basket.address}: moved {notional} {component} to {venue.address}")

    def _unstake(
        self,
        basket,
        venue,
        component: str,
        adapter: StakingAdapter,
        position_units: int,
        quantity: int,
    ) -> None:
        """Unstake units x quantity and verify the venue returned all of it."""
        notional = PositionMath.precise_mul(position_units, quantity)
        bank = basket.token_bank
        pre_balance = bank.balance_of(component, basket.address)

        target, value, call_data = adapter.get_unstake_call_data(venue, notional)
        basket.invoke_external_call(target, value, call_data, caller=self.address)

        returned = bank.balance_of(component, basket.address) - pre_balance
        if returned < notional:
            raise ReturnedAmountMismatch("Not enough tokens returned from stake contract")
        self.log_debug(f"{basket.address}: returned {returned} {component} from {venue.address}")

    # ------------------------------------------------------------------
    # Ledger updates (manager operations only)
    # ------------------------------------------------------------------

    def _update_stake_state(self, basket, venue, component: str, adapter_name: str, units: int) -> None:
        ledger = self._ledgers.setdefault((basket.address, component), StakingLedger())
        if venue.address in ledger:
            ledger.increase(venue.address, units)
        else:
            ledger.open(venue, hash_adapter_name(adapter_name), units)

        external_unit = basket.external_position_unit(component, self.address) + units
        default_unit = basket.default_position_unit(component) - units
        basket.set_external_position_unit(component, self.address, external_unit, b"", caller=self.address)
        basket.set_default_position_unit(component, default_unit, caller=self.address)

    def _update_unstake_state(self, basket, venue, component: str, units: int) -> None:
        key = (basket.address, component)
        ledger = self._ledgers[key]
        ledger.decrease(venue.address, units)
        if len(ledger) == 0:
            del self._ledgers[key]

        default_unit = basket.default_position_unit(component) + units
        external_unit = basket.external_position_unit(component, self.address) - units
        basket.set_default_position_unit(component, default_unit, caller=self.address)
        basket.set_external_position_unit(component, self.address, external_unit, b"", caller=self.address)

    # ------------------------------------------------------------------
    # Rollback support
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[Tuple[str, str], StakingLedger]:
        return {key: ledger.copy() for key, ledger in self._ledgers.items()}

    def restore(self, state: Dict[Tuple[str, str], StakingLedger]) -> None:
        self._ledgers = state
