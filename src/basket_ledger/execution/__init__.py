"""
Execution subsystem for basket positions.

Trade and staking engines, the issuance module, and the events they emit.
"""

from basket_ledger.execution.adapters import ExchangeAdapter, StakingAdapter
from basket_ledger.execution.models import (
    BasketIssued,
    BasketRedeemed,
    CallData,
    ComponentExchanged,
    ComponentStaked,
    ComponentUnstaked,
    TradeContext,
    TradeResult,
)
from basket_ledger.execution.module import ModuleBase
from basket_ledger.execution.trade import TradeEngine
from basket_ledger.execution.staking import StakingEngine, StakingLedger
from basket_ledger.execution.issuance import IssuanceModule

__all__ = [
    "ExchangeAdapter",
    "StakingAdapter",
    "BasketIssued",
    "BasketRedeemed",
    "CallData",
    "ComponentExchanged",
    "ComponentStaked",
    "ComponentUnstaked",
    "TradeContext",
    "TradeResult",
    "ModuleBase",
    "TradeEngine",
    "StakingEngine",
    "StakingLedger",
    "IssuanceModule",
]
