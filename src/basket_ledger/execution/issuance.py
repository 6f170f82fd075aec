#!/usr/bin/env python3
"""
Issuance module: mints and redeems basket shares against components.

Issuers deposit every component's default and external quantity into the
basket; modules holding external positions are then called to move their
share into custody. Redemption runs the other way round.
"""

from typing import Dict, List, Optional, Tuple

from basket_ledger.core.calculator import PositionMath
from basket_ledger.core.controller import Controller
from basket_ledger.core.exceptions import InvalidBasketState, NonPositiveNotional
from basket_ledger.execution.models import BasketIssued, BasketRedeemed
from basket_ledger.execution.module import ModuleBase

# (component, default quantity, external quantity)
ComponentRequirement = Tuple[str, int, int]


class IssuanceModule(ModuleBase):
    """Issue and redeem basket shares, running external position hooks."""

    def __init__(self, controller: Controller, address: str = "issuance-module"):
        super().__init__(controller, address)
        self._pre_issue_hooks: Dict[str, object] = {}

    def initialize(self, basket, pre_issue_hook=None, *, caller: str) -> None:
        """
        Initialize on a basket, optionally with a manager pre-issue hook.

        The hook, when given, must expose
        ``invoke_pre_issue_hook(basket, quantity, sender, to)``.
        """
        super().initialize(basket, caller=caller)
        if pre_issue_hook is not None:
            self._pre_issue_hooks[basket.address] = pre_issue_hook

    def remove_module(self, basket) -> None:
        raise InvalidBasketState("The IssuanceModule module cannot be removed")

    def get_required_component_units(
        self, basket, quantity: int, is_issue: bool = True
    ) -> List[ComponentRequirement]:
        """
        Component quantities backing a number of shares.

        Issue quantities round up (the issuer pays the dust), redeem
        quantities round down.
        """
        multiply = PositionMath.precise_mul_ceil if is_issue else PositionMath.precise_mul
        requirements = []
        for component in basket.get_components():
            default_unit = basket.default_position_unit(component)
            if default_unit < 0:
                raise InvalidBasketState("Only positive default unit positions are supported")

            external_unit = 0
            for module in basket.external_position_modules(component):
                unit = basket.external_position_unit(component, module)
                if unit < 0:
                    raise InvalidBasketState("Only positive external unit positions are supported")
                external_unit += unit

            requirements.append((
                component,
                multiply(default_unit, quantity),
                multiply(external_unit, quantity),
            ))
        return requirements

    def issue(self, basket, quantity: int, to: str, *, caller: str) -> None:
        """
        Issue shares to ``to``, pulling components from the caller.

        The caller must have approved this module over each component.
        """
        with self._transaction(basket, "Issue"):
            self._validate_initialized(basket)
            if quantity <= 0:
                raise NonPositiveNotional("Issue quantity must be > 0")

            hook_contract = self._call_pre_issue_hook(basket, quantity, caller, to)
            bank = basket.token_bank

            for component, default_q, external_q in self.get_required_component_units(
                basket, quantity, is_issue=True
            ):
                total = default_q + external_q
                if total > 0:
                    bank.transfer_from(component, self.address, caller, basket.address, total)
                self._execute_external_hooks(basket, component, quantity, is_issue=True)

            basket.mint(to, quantity, caller=self.address)

            self.log(f"{basket.address}: issued {quantity} to {to} (from {caller})")
            self.emit(BasketIssued(
                basket=basket.address,
                issuer=caller,
                to=to,
                hook_contract=hook_contract or "",
                quantity=quantity,
            ))

    def redeem(self, basket, quantity: int, to: str, *, caller: str) -> None:
        """Burn the caller's shares and send the backing components to ``to``."""
        with self._transaction(basket, "Redeem"):
            self._validate_initialized(basket)
            if quantity <= 0:
                raise NonPositiveNotional("Redeem quantity must be > 0")

            requirements = self.get_required_component_units(basket, quantity, is_issue=False)
            basket.burn(caller, quantity, caller=self.address)

            for component, default_q, external_q in requirements:
                self._execute_external_hooks(basket, component, quantity, is_issue=False)
                basket.invoke_transfer(component, to, default_q + external_q, caller=self.address)

            self.log(f"{basket.address}: redeemed {quantity} from {caller} to {to}")
            self.emit(BasketRedeemed(
                basket=basket.address,
                redeemer=caller,
                to=to,
                quantity=quantity,
            ))

    def _call_pre_issue_hook(self, basket, quantity: int, sender: str, to: str) -> Optional[str]:
        hook = self._pre_issue_hooks.get(basket.address)
        if hook is None:
            return None
        hook.invoke_pre_issue_hook(basket, quantity, sender, to)
        return hook.address

    def _execute_external_hooks(self, basket, component: str, quantity: int, is_issue: bool) -> None:
        for module_address in basket.external_position_modules(component):
            module = basket.get_module(module_address)
            if is_issue:
                module.component_issue_hook(basket, quantity, component, True, caller=self.address)
            else:
                module.component_redeem_hook(basket, quantity, component, True, caller=self.address)

    def snapshot(self) -> Dict[str, object]:
        return dict(self._pre_issue_hooks)

    def restore(self, state: Dict[str, object]) -> None:
        self._pre_issue_hooks = state
