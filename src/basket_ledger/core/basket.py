#!/usr/bin/env python3
"""
Basket token: share supply plus the position ledger of its components.

Positions are per-share units. A component has one default unit (balance
held by the basket itself) and any number of external units, each owned by
the module that custodies that part of the component elsewhere.
"""

import copy
import threading
from typing import Any, Dict, List, Optional, Tuple

from basket_ledger.core.calculator import PositionMath
from basket_ledger.core.exceptions import (
    InsufficientBalance,
    InvalidBasketState,
    InvalidTransfer,
    Unauthorized,
)
from basket_ledger.core.models import ComponentPosition, ExternalPosition, ModuleState
from basket_ledger.core.tokens import NATIVE_TOKEN, TokenBank
from basket_ledger.utils.logging import LoggingMixin


class BasketToken(LoggingMixin):
    """In-memory basket token exposing the position-accounting interface."""

    def __init__(
        self,
        address: str,
        manager: str,
        controller,
        token_bank: TokenBank,
        components: Optional[Dict[str, int]] = None,
    ):
        """
        Initialize basket.

        Args:
            address: Basket address
            manager: Address allowed to manage modules and positions
            controller: Controller the basket is registered with
            token_bank: Balance book holding the basket's components
            components: Initial default units per component
        """
        self.address = address
        self.manager = manager
        self.controller = controller
        self.token_bank = token_bank
        self.lock = threading.RLock()

        self._components: List[str] = []
        self._positions: Dict[str, ComponentPosition] = {}
        self._module_states: Dict[str, ModuleState] = {}
        self._modules: Dict[str, Any] = {}
        self._holders: Dict[str, int] = {}
        self._total_supply = 0

        for component, unit in (components or {}).items():
            if unit <= 0:
                raise ValueError(f"Initial unit for {component} must be positive")
            self._components.append(component)
            self._positions[component] = ComponentPosition(default_unit=unit)

    def __repr__(self) -> str:
        return f"BasketToken({self.address!r}, supply={self._total_supply})"

    # ------------------------------------------------------------------
    # Access control
    # ------------------------------------------------------------------

    def _only_manager(self, caller: str) -> None:
        if caller != self.manager:
            raise Unauthorized("Only manager can call")

    def _only_module(self, caller: str) -> None:
        if self._module_states.get(caller) != ModuleState.INITIALIZED:
            raise Unauthorized("Only the module can call")

    # ------------------------------------------------------------------
    # Share supply
    # ------------------------------------------------------------------

    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, holder: str) -> int:
        return self._holders.get(holder, 0)

    def mint(self, to: str, quantity: int, *, caller: str) -> None:
        self._only_module(caller)
        if quantity < 0:
            raise ValueError("Mint quantity must be non-negative")
        self._holders[to] = self.balance_of(to) + quantity
        self._total_supply += quantity

    def burn(self, holder: str, quantity: int, *, caller: str) -> None:
        self._only_module(caller)
        if quantity < 0:
            raise ValueError("Burn quantity must be non-negative")
        balance = self.balance_of(holder)
        if balance < quantity:
            raise InsufficientBalance("Burn amount exceeds balance")
        self._holders[holder] = balance - quantity
        self._total_supply -= quantity

    # ------------------------------------------------------------------
    # Position views
    # ------------------------------------------------------------------

    def get_components(self) -> List[str]:
        return list(self._components)

    def is_component(self, component: str) -> bool:
        return component in self._components

    def _position(self, component: str) -> ComponentPosition:
        return self._positions.get(component) or ComponentPosition()

    def default_position_unit(self, component: str) -> int:
        return self._position(component).default_unit

    def external_position_unit(self, component: str, module: str) -> int:
        external = self._position(component).external.get(module)
        return external.unit if external else 0

    def external_position_data(self, component: str, module: str) -> bytes:
        external = self._position(component).external.get(module)
        return external.data if external else b""

    def external_position_modules(self, component: str) -> List[str]:
        return list(self._position(component).external_modules)

    def has_external_position(self, component: str, module: str) -> bool:
        return module in self._position(component).external_modules

    def has_sufficient_default_units(self, component: str, units: int) -> bool:
        return self.default_position_unit(component) >= units

    def has_sufficient_external_units(self, component: str, module: str, units: int) -> bool:
        return self.external_position_unit(component, module) >= units

    def default_tracked_balance(self, component: str) -> int:
        """Component quantity the default unit accounts for at current supply."""
        return PositionMath.notional(self.default_position_unit(component), self._total_supply)

    def get_positions(self) -> Dict[str, dict]:
        return {c: self._positions[c].to_dict() for c in self._components}

    # ------------------------------------------------------------------
    # Position edits (modules only)
    # ------------------------------------------------------------------

    def _add_component(self, component: str) -> None:
        if component not in self._components:
            self._components.append(component)
        self._positions.setdefault(component, ComponentPosition())

    def _remove_component(self, component: str) -> None:
        if component in self._components:
            self._components.remove(component)
        self._positions.pop(component, None)

    def set_default_position_unit(self, component: str, unit: int, *, caller: str) -> None:
        """Set the default unit, adding or dropping the component as needed."""
        self._only_module(caller)
        position = self._position(component)

        if unit != 0:
            self._add_component(component)
            self._positions[component].default_unit = unit
        elif position.external_modules:
            self._positions[component].default_unit = 0
        else:
            self._remove_component(component)

        self.log_debug(f"{self.address}: default unit {component} -> {unit} (by {caller})")

    def set_external_position_unit(
        self,
        component: str,
        module: str,
        unit: int,
        data: bytes = b"",
        *,
        caller: str,
    ) -> None:
        """
        Set the external unit a module holds for a component.

        A zero unit removes the module's external position; the component
        goes too when nothing else is left on it.
        """
        self._only_module(caller)

        if unit != 0:
            self._add_component(component)
            position = self._positions[component]
            if module not in position.external_modules:
                position.external_modules.append(module)
            position.external[module] = ExternalPosition(unit=unit, data=data)
        else:
            if data:
                raise ValueError("Passed data must be null")
            position = self._positions.get(component)
            if position is None or module not in position.external_modules:
                return
            position.external_modules.remove(module)
            del position.external[module]
            if position.is_empty:
                self._remove_component(component)

        self.log_debug(
            f"{self.address}: external unit {component}/{module} -> {unit} (by {caller})"
        )

    def recompute_default_position_from_balance(
        self,
        component: str,
        total_supply: int,
        prior_balance: int,
        *,
        caller: str,
    ) -> Tuple[int, int, int]:
        """
        Reconcile the default unit from the basket's current balance.

        Returns:
            (current balance, prior unit, new unit)
        """
        self._only_module(caller)
        current_balance = self.token_bank.balance_of(component, self.address)
        prior_unit = self.default_position_unit(component)
        new_unit = PositionMath.calculate_default_edit_position_unit(
            total_supply, prior_balance, current_balance, prior_unit
        )
        self.set_default_position_unit(component, new_unit, caller=caller)
        return current_balance, prior_unit, new_unit

    # ------------------------------------------------------------------
    # Calls on behalf of the basket (modules only)
    # ------------------------------------------------------------------

    def approve_on_behalf(self, token: str, spender: str, amount: int, *, caller: str) -> None:
        self._only_module(caller)
        self.token_bank.approve(token, self.address, spender, amount)

    def invoke_external_call(self, target, value: int, call_data, *, caller: str):
        """
        Call a method on an external target with the basket as sender.

        Native value, when given, moves from the basket to the target
        before the call.
        """
        self._only_module(caller)
        if value:
            self.token_bank.transfer(NATIVE_TOKEN, self.address, target.address, value)
        method = getattr(target, call_data.method)
        self.log_debug(f"{self.address}: invoke {target.address}.{call_data.method} (by {caller})")
        return method(self.address, *call_data.args, **call_data.kwargs)

    def invoke_transfer(self, token: str, to: str, amount: int, *, caller: str) -> None:
        """Transfer basket-held tokens and verify the balance moved exactly."""
        self._only_module(caller)
        if amount <= 0:
            return
        pre_balance = self.token_bank.balance_of(token, self.address)
        self.token_bank.transfer(token, self.address, to, amount)
        post_balance = self.token_bank.balance_of(token, self.address)
        if pre_balance - post_balance != amount:
            raise InvalidTransfer("Invalid post transfer balance")

    # ------------------------------------------------------------------
    # Module lifecycle
    # ------------------------------------------------------------------

    def add_module(self, module, *, caller: str) -> None:
        """Register a controller-enabled module as pending."""
        self._only_manager(caller)
        if self._module_states.get(module.address, ModuleState.NONE) != ModuleState.NONE:
            raise InvalidBasketState("Module must not be added")
        if not self.controller.is_module(module.address):
            raise InvalidBasketState("Must be enabled on Controller")
        self._module_states[module.address] = ModuleState.PENDING
        self._modules[module.address] = module
        self.log(f"{self.address}: module {module.address} added (pending)")

    def initialize_module(self, *, caller: str) -> None:
        """Called by a pending module to complete its initialization."""
        if self._module_states.get(caller) != ModuleState.PENDING:
            raise InvalidBasketState("Module must be pending")
        self._module_states[caller] = ModuleState.INITIALIZED
        self.log(f"{self.address}: module {caller} initialized")

    def remove_module(self, module_address: str, *, caller: str) -> None:
        """Detach a module after its own removal hook accepts."""
        self._only_manager(caller)
        if self._module_states.get(module_address) != ModuleState.INITIALIZED:
            raise InvalidBasketState("Module must be added")
        self._modules[module_address].remove_module(self)
        self._module_states[module_address] = ModuleState.NONE
        del self._modules[module_address]
        self.log(f"{self.address}: module {module_address} removed")

    def module_state(self, module_address: str) -> ModuleState:
        return self._module_states.get(module_address, ModuleState.NONE)

    def is_initialized_module(self, module_address: str) -> bool:
        return self.module_state(module_address) == ModuleState.INITIALIZED

    def is_pending_module(self, module_address: str) -> bool:
        return self.module_state(module_address) == ModuleState.PENDING

    def get_module(self, module_address: str):
        return self._modules[module_address]

    def get_modules(self) -> List[str]:
        return [m for m, s in self._module_states.items() if s == ModuleState.INITIALIZED]

    # ------------------------------------------------------------------
    # Rollback support
    # ------------------------------------------------------------------

    def snapshot(self) -> dict:
        return {
            "components": list(self._components),
            "positions": copy.deepcopy(self._positions),
            "module_states": dict(self._module_states),
            "modules": dict(self._modules),
            "holders": dict(self._holders),
            "total_supply": self._total_supply,
        }

    def restore(self, state: dict) -> None:
        self._components = state["components"]
        self._positions = state["positions"]
        self._module_states = state["module_states"]
        self._modules = state["modules"]
        self._holders = state["holders"]
        self._total_supply = state["total_supply"]
