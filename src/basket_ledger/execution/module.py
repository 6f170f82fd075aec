#!/usr/bin/env python3
"""
Shared base for modules acting on baskets.

Holds the permission checks, adapter lookup, fee handling, transaction
wrapping and event dispatch common to the trade, staking and issuance
modules.
"""

from contextlib import contextmanager
from typing import Callable, Iterator, List

from basket_ledger.core.calculator import PositionMath
from basket_ledger.core.controller import Controller, hash_adapter_name
from basket_ledger.core.exceptions import (
    BasketLedgerError,
    InvalidBasketState,
    Unauthorized,
    UnknownAdapter,
)
from basket_ledger.core.transaction import after_commit, atomic
from basket_ledger.execution.models import Event
from basket_ledger.utils.logging import LoggingMixin


class ModuleBase(LoggingMixin):
    """Base class for modules that edit basket positions."""

    def __init__(self, controller: Controller, address: str):
        self.controller = controller
        self.address = address
        self._observers: List[Callable[[Event], None]] = []

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.address!r})"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_manager_and_initialized(self, basket, caller: str) -> None:
        if caller != basket.manager:
            raise Unauthorized("Must be the basket manager")
        if not (
            self.controller.is_basket(basket.address)
            and basket.is_initialized_module(self.address)
        ):
            raise InvalidBasketState("Must be a valid and initialized basket")

    def _validate_manager_and_pending(self, basket, caller: str) -> None:
        if caller != basket.manager:
            raise Unauthorized("Must be the basket manager")
        if not basket.is_pending_module(self.address):
            raise InvalidBasketState("Must be pending initialization")
        if not self.controller.is_basket(basket.address):
            raise InvalidBasketState("Must be controller-enabled basket")

    def _validate_initialized(self, basket) -> None:
        if not (
            self.controller.is_basket(basket.address)
            and basket.is_initialized_module(self.address)
        ):
            raise InvalidBasketState("Must be a valid and initialized basket")

    def _validate_module_caller(self, basket, caller: str) -> None:
        """Hooks may only be called by another module initialized on the basket."""
        if not basket.is_initialized_module(caller):
            raise Unauthorized("Only the module can call")
        if not self.controller.is_module(caller):
            raise Unauthorized("Module must be enabled on controller")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, basket, *, caller: str) -> None:
        """Complete this module's initialization on a basket that added it."""
        self._validate_manager_and_pending(basket, caller)
        basket.initialize_module(caller=self.address)

    def remove_module(self, basket) -> None:
        """Called by the basket when the manager detaches this module."""

    # ------------------------------------------------------------------
    # Adapters and fees
    # ------------------------------------------------------------------

    def get_and_validate_adapter(self, integration_name: str):
        return self.get_and_validate_adapter_with_hash(hash_adapter_name(integration_name))

    def get_and_validate_adapter_with_hash(self, adapter_hash: str):
        adapter = self.controller.integration_registry.get_integration_adapter_with_hash(
            self.address, adapter_hash
        )
        if adapter is None:
            raise UnknownAdapter("Must be valid adapter")
        return adapter

    def get_module_fee(self, fee_index: int, quantity: int) -> int:
        """Fee owed on a quantity under this module's fee at fee_index."""
        fee_fraction = self.controller.get_module_fee(self.address, fee_index)
        return PositionMath.precise_mul(quantity, fee_fraction)

    def pay_protocol_fee(self, basket, token: str, fee_quantity: int) -> None:
        if fee_quantity > 0:
            basket.invoke_transfer(
                token, self.controller.fee_recipient, fee_quantity, caller=self.address
            )

    # ------------------------------------------------------------------
    # Transactions and events
    # ------------------------------------------------------------------

    def snapshot(self):
        return None

    def restore(self, state) -> None:
        pass

    @contextmanager
    def _transaction(self, basket, operation: str) -> Iterator[None]:
        """
        Run an operation atomically over the token bank, the basket and every
        module on it, so nested calls into other modules roll back too.
        """
        participants = [basket.token_bank, basket, self]
        for module_address in basket.get_modules():
            module = basket.get_module(module_address)
            if module is not self:
                participants.append(module)
        try:
            with atomic(*participants):
                yield
        except BasketLedgerError as e:
            self.log_warning(f"{operation} rejected on {basket.address}: {e}")
            raise

    def subscribe(self, observer: Callable[[Event], None]) -> None:
        """
        Register a callable that receives every emitted event.

        Observers belong to the module, not to a basket: a module shared by
        several baskets delivers all of their events to every observer.
        """
        self._observers.append(observer)

    def emit(self, event: Event) -> None:
        """
        Dispatch an event once the current transaction commits.

        An operation that rolls back delivers nothing. Observers run after
        the commit, so an observer that raises does not undo the operation;
        its exception reaches the caller.
        """
        after_commit(lambda: self._dispatch(event))

    def _dispatch(self, event: Event) -> None:
        self.log_debug(f"Emit {event.name}: {event.to_dict()}")
        for observer in self._observers:
            observer(event)
