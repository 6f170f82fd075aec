#!/usr/bin/env python3
"""
Controller and integration registry.

The controller records which baskets and modules are enabled, where
protocol fees go and what each module charges. The integration registry
resolves a module's adapter by its human-readable name.
"""

import hashlib
from typing import Any, Dict, Optional, Tuple

from basket_ledger.core.models import ControllerConfig
from basket_ledger.utils.logging import LoggingMixin


def hash_adapter_name(name: str) -> str:
    """Opaque identifier of an adapter name, recorded with staking positions."""
    return "0x" + hashlib.sha3_256(name.encode("utf-8")).hexdigest()


class IntegrationRegistry(LoggingMixin):
    """Adapters registered per (module, adapter name hash)."""

    def __init__(self):
        self._integrations: Dict[Tuple[str, str], Any] = {}

    def add_integration(self, module: str, name: str, adapter) -> None:
        key = (module, hash_adapter_name(name))
        if key in self._integrations:
            raise ValueError("Integration exists already.")
        self._integrations[key] = adapter
        self.log(f"Integration {name!r} added for module {module}")

    def edit_integration(self, module: str, name: str, adapter) -> None:
        key = (module, hash_adapter_name(name))
        if key not in self._integrations:
            raise ValueError("Integration does not exist.")
        self._integrations[key] = adapter
        self.log(f"Integration {name!r} edited for module {module}")

    def remove_integration(self, module: str, name: str) -> None:
        key = (module, hash_adapter_name(name))
        if key not in self._integrations:
            raise ValueError("Integration does not exist.")
        del self._integrations[key]
        self.log(f"Integration {name!r} removed for module {module}")

    def get_integration_adapter(self, module: str, name: str):
        return self._integrations.get((module, hash_adapter_name(name)))

    def get_integration_adapter_with_hash(self, module: str, adapter_hash: str):
        return self._integrations.get((module, adapter_hash))

    def is_valid_integration(self, module: str, name: str) -> bool:
        return (module, hash_adapter_name(name)) in self._integrations


class Controller(LoggingMixin):
    """Registry of enabled baskets and modules plus the protocol fee schedule."""

    def __init__(
        self,
        fee_recipient: str,
        integration_registry: Optional[IntegrationRegistry] = None,
    ):
        self.fee_recipient = fee_recipient
        self.integration_registry = integration_registry or IntegrationRegistry()
        self._baskets: Dict[str, Any] = {}
        self._modules: set = set()
        self._fees: Dict[str, Dict[int, int]] = {}

    @classmethod
    def from_config(cls, config: ControllerConfig) -> "Controller":
        """Create Controller with the fee recipient and fees from config."""
        controller = cls(fee_recipient=config.fee_recipient)
        for module, fees in config.module_fees.items():
            for fee_type, fraction in fees.items():
                controller.add_fee(module, fee_type, fraction)
        return controller

    # ------------------------------------------------------------------
    # Baskets and modules
    # ------------------------------------------------------------------

    def add_basket(self, basket) -> None:
        if basket.address in self._baskets:
            raise ValueError("Basket already exists")
        self._baskets[basket.address] = basket
        self.log(f"Basket {basket.address} enabled")

    def remove_basket(self, basket_address: str) -> None:
        if basket_address not in self._baskets:
            raise ValueError("Basket does not exist")
        del self._baskets[basket_address]
        self.log(f"Basket {basket_address} disabled")

    def is_basket(self, basket_address: str) -> bool:
        return basket_address in self._baskets

    def add_module(self, module_address: str) -> None:
        if module_address in self._modules:
            raise ValueError("Module already exists")
        self._modules.add(module_address)
        self.log(f"Module {module_address} enabled")

    def remove_module(self, module_address: str) -> None:
        if module_address not in self._modules:
            raise ValueError("Module does not exist")
        self._modules.discard(module_address)
        self.log(f"Module {module_address} disabled")

    def is_module(self, module_address: str) -> bool:
        return module_address in self._modules

    # ------------------------------------------------------------------
    # Fees
    # ------------------------------------------------------------------

    def add_fee(self, module: str, fee_type: int, fee_fraction: int) -> None:
        fees = self._fees.setdefault(module, {})
        if fee_type in fees:
            raise ValueError("Fee type already exists on module")
        fees[fee_type] = fee_fraction

    def edit_fee(self, module: str, fee_type: int, fee_fraction: int) -> None:
        fees = self._fees.get(module, {})
        if fee_type not in fees:
            raise ValueError("Fee type does not exist on module")
        fees[fee_type] = fee_fraction

    def get_module_fee(self, module: str, fee_type: int) -> int:
        """Fee fraction (fixed-point) a module charges for a fee type, 0 if unset."""
        return self._fees.get(module, {}).get(fee_type, 0)

    def edit_fee_recipient(self, fee_recipient: str) -> None:
        self.fee_recipient = fee_recipient
