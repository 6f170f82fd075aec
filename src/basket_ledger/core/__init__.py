"""Position ledger, token balances, controller and transactions."""

from basket_ledger.core.basket import BasketToken
from basket_ledger.core.calculator import PRECISE_UNIT, PositionMath
from basket_ledger.core.controller import Controller, IntegrationRegistry, hash_adapter_name
from basket_ledger.core.models import (
    ComponentPosition,
    ControllerConfig,
    ExternalPosition,
    ModuleState,
    StakingPosition,
)
from basket_ledger.core.tokens import NATIVE_TOKEN, TokenBank
from basket_ledger.core.transaction import ReentrancyGuard, after_commit, atomic

__all__ = [
    "BasketToken",
    "PRECISE_UNIT",
    "PositionMath",
    "Controller",
    "IntegrationRegistry",
    "hash_adapter_name",
    "ComponentPosition",
    "ControllerConfig",
    "ExternalPosition",
    "ModuleState",
    "StakingPosition",
    "NATIVE_TOKEN",
    "TokenBank",
    "ReentrancyGuard",
    "after_commit",
    "atomic",
]
