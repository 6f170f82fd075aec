#!/usr/bin/env python3
"""
Trade engine: atomic swaps of one basket component for another.

Each trade is validated before and after the single external call the
exchange adapter describes, charges the protocol fee on what was received,
and then reconciles both components' default units from actual balances.
"""

from basket_ledger.core.calculator import PositionMath
from basket_ledger.core.controller import Controller
from basket_ledger.core.exceptions import (
    InsufficientBalance,
    NonPositiveNotional,
    SlippageExceeded,
)
from basket_ledger.core.transaction import ReentrancyGuard
from basket_ledger.execution.adapters import ExchangeAdapter
from basket_ledger.execution.models import ComponentExchanged, TradeContext, TradeResult
from basket_ledger.execution.module import ModuleBase


class TradeEngine(ModuleBase):
    """Executes manager-initiated trades through registered exchange adapters."""

    PROTOCOL_FEE_INDEX = 0

    def __init__(self, controller: Controller, address: str = "trade-module"):
        super().__init__(controller, address)
        self._guard = ReentrancyGuard()

    def trade(
        self,
        basket,
        exchange_name: str,
        send_token: str,
        send_quantity: int,
        receive_token: str,
        min_receive_quantity: int,
        data: bytes = b"",
        *,
        caller: str,
    ) -> TradeResult:
        """
        Swap send_token for receive_token on behalf of the basket.

        Quantities are per-share units; they are converted to totals at the
        current supply.

        Args:
            basket: Basket to trade for
            exchange_name: Registered name of the exchange adapter
            send_token: Component to sell
            send_quantity: Units of send_token per share to sell
            receive_token: Component to buy
            min_receive_quantity: Minimum units of receive_token per share
            data: Extra adapter-specific data
            caller: Must be the basket manager

        Returns:
            TradeResult with net send, net receive (after fee) and fee
        """
        with self._guard:
            with self._transaction(basket, "Trade"):
                self._validate_manager_and_initialized(basket, caller)

                trade_info = self._create_trade_info(
                    basket,
                    exchange_name,
                    send_token,
                    receive_token,
                    send_quantity,
                    min_receive_quantity,
                )
                self._validate_pre_trade_data(trade_info, send_quantity)
                self._execute_trade(trade_info, data)

                exchanged_quantity = self._validate_post_trade(trade_info)
                protocol_fee = self._accrue_protocol_fee(trade_info, exchanged_quantity)
                net_send, net_receive = self._update_basket_positions(trade_info)

                self.log(
                    f"{basket.address}: traded {net_send} {send_token} for "
                    f"{net_receive} {receive_token} via {exchange_name} "
                    f"(fee {protocol_fee})"
                )
                self.emit(ComponentExchanged(
                    basket=basket.address,
                    send_token=send_token,
                    receive_token=receive_token,
                    exchange_adapter=trade_info.exchange_adapter.address,
                    total_send_amount=net_send,
                    total_receive_amount=net_receive,
                    protocol_fee=protocol_fee,
                ))

        return TradeResult(net_send, net_receive, protocol_fee)

    # ------------------------------------------------------------------
    # Trade steps
    # ------------------------------------------------------------------

    def _create_trade_info(
        self,
        basket,
        exchange_name: str,
        send_token: str,
        receive_token: str,
        send_quantity: int,
        min_receive_quantity: int,
    ) -> TradeContext:
        adapter: ExchangeAdapter = self.get_and_validate_adapter(exchange_name)
        total_supply = basket.total_supply()
        bank = basket.token_bank

        return TradeContext(
            basket=basket,
            exchange_adapter=adapter,
            exchange_name=exchange_name,
            send_token=send_token,
            receive_token=receive_token,
            total_supply=total_supply,
            # Outflow rounds down, required minimum rounds up
            total_send_quantity=PositionMath.precise_mul(send_quantity, total_supply),
            total_min_receive_quantity=PositionMath.precise_mul_ceil(
                min_receive_quantity, total_supply
            ),
            pre_trade_send_balance=bank.balance_of(send_token, basket.address),
            pre_trade_receive_balance=bank.balance_of(receive_token, basket.address),
        )

    def _validate_pre_trade_data(self, trade_info: TradeContext, send_quantity: int) -> None:
        if trade_info.total_send_quantity <= 0:
            raise NonPositiveNotional("Token to sell must be nonzero")
        if not trade_info.basket.has_sufficient_default_units(
            trade_info.send_token, send_quantity
        ):
            raise InsufficientBalance("Unit cant be greater than existing")

    def _execute_trade(self, trade_info: TradeContext, data: bytes) -> None:
        """Approve exactly the send quantity, then make the exchange call."""
        basket = trade_info.basket
        adapter = trade_info.exchange_adapter
        spender = adapter.get_spender()

        basket.approve_on_behalf(trade_info.send_token, spender, 0, caller=self.address)
        basket.approve_on_behalf(
            trade_info.send_token,
            spender,
            trade_info.total_send_quantity,
            caller=self.address,
        )

        target, value, call_data = adapter.get_trade_calldata(
            trade_info.send_token,
            trade_info.receive_token,
            basket.address,
            trade_info.total_send_quantity,
            trade_info.total_min_receive_quantity,
            data,
        )
        self.log_debug(
            f"{basket.address}: sending {trade_info.total_send_quantity} "
            f"{trade_info.send_token}, min receive "
            f"{trade_info.total_min_receive_quantity} {trade_info.receive_token}"
        )
        basket.invoke_external_call(target, value, call_data, caller=self.address)

    def _validate_post_trade(self, trade_info: TradeContext) -> int:
        """Return the received quantity, rejecting it below the minimum."""
        receive_balance = trade_info.basket.token_bank.balance_of(
            trade_info.receive_token, trade_info.basket.address
        )
        exchanged_quantity = receive_balance - trade_info.pre_trade_receive_balance
        if exchanged_quantity < trade_info.total_min_receive_quantity:
            raise SlippageExceeded("Slippage greater than allowed")
        return exchanged_quantity

    def _accrue_protocol_fee(self, trade_info: TradeContext, exchanged_quantity: int) -> int:
        protocol_fee = self.get_module_fee(self.PROTOCOL_FEE_INDEX, exchanged_quantity)
        self.pay_protocol_fee(trade_info.basket, trade_info.receive_token, protocol_fee)
        return protocol_fee

    def _update_basket_positions(self, trade_info: TradeContext):
        """Reconcile both components from current balances; return net amounts."""
        basket = trade_info.basket
        current_send_balance, _, _ = basket.recompute_default_position_from_balance(
            trade_info.send_token,
            trade_info.total_supply,
            trade_info.pre_trade_send_balance,
            caller=self.address,
        )
        current_receive_balance, _, _ = basket.recompute_default_position_from_balance(
            trade_info.receive_token,
            trade_info.total_supply,
            trade_info.pre_trade_receive_balance,
            caller=self.address,
        )
        return (
            trade_info.pre_trade_send_balance - current_send_balance,
            current_receive_balance - trade_info.pre_trade_receive_balance,
        )
