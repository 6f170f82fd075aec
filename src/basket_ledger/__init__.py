"""
Basket Ledger

Position accounting for basket (index) tokens: per-share default and
external positions, a trade engine for atomic component swaps and a
staking engine for components custodied in external venues.
"""

__version__ = "1.0.0"
__author__ = "Basket Ledger"

from basket_ledger.core.basket import BasketToken
from basket_ledger.core.calculator import PRECISE_UNIT, PositionMath
from basket_ledger.core.controller import Controller, IntegrationRegistry
from basket_ledger.core.tokens import TokenBank
from basket_ledger.execution.issuance import IssuanceModule
from basket_ledger.execution.staking import StakingEngine
from basket_ledger.execution.trade import TradeEngine

__all__ = [
    "BasketToken",
    "PRECISE_UNIT",
    "PositionMath",
    "Controller",
    "IntegrationRegistry",
    "TokenBank",
    "IssuanceModule",
    "StakingEngine",
    "TradeEngine",
]
