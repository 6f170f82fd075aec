#!/usr/bin/env python3
"""
Fixed-point position math.

All position units, notionals and fee fractions are integers scaled by
PRECISE_UNIT (1.0 == 10**18).
"""

from decimal import Decimal, ROUND_DOWN
from typing import Union

PRECISE_UNIT = 10 ** 18


class PositionMath:
    """
    Conversions between per-share position units and absolute notionals.

    Rounding: ``precise_mul`` and ``precise_div`` truncate toward zero,
    the ``_ceil`` variants round up. Callers pick the variant so that
    amounts leaving the basket round down and minimums the basket must
    receive round up.
    """

    @staticmethod
    def _truncating_div(numerator: int, denominator: int) -> int:
        quotient = abs(numerator) // abs(denominator)
        if (numerator < 0) != (denominator < 0):
            return -quotient
        return quotient

    @staticmethod
    def precise_mul(a: int, b: int) -> int:
        """Multiply two fixed-point values, truncating toward zero."""
        return PositionMath._truncating_div(a * b, PRECISE_UNIT)

    @staticmethod
    def precise_mul_ceil(a: int, b: int) -> int:
        """Multiply two fixed-point values, rounding up."""
        return -((-(a * b)) // PRECISE_UNIT)

    @staticmethod
    def precise_div(a: int, b: int) -> int:
        """Divide two fixed-point values, truncating toward zero."""
        if b == 0:
            raise ZeroDivisionError("Cant divide by 0")
        return PositionMath._truncating_div(a * PRECISE_UNIT, b)

    @staticmethod
    def precise_div_ceil(a: int, b: int) -> int:
        """Divide two fixed-point values, rounding up."""
        if b == 0:
            raise ZeroDivisionError("Cant divide by 0")
        return -((-(a * PRECISE_UNIT)) // b)

    @staticmethod
    def notional(unit: int, total_supply: int) -> int:
        """Total quantity represented by a per-share unit (rounded down)."""
        return PositionMath.precise_mul(unit, total_supply)

    @staticmethod
    def unit_from_notional(notional: int, total_supply: int) -> int:
        """Per-share unit for a total quantity (rounded down)."""
        return PositionMath.precise_div(notional, total_supply)

    @staticmethod
    def calculate_default_edit_position_unit(
        total_supply: int,
        pre_total_notional: int,
        post_total_notional: int,
        pre_position_unit: int,
    ) -> int:
        """
        Calculate the new default unit after a balance change.

        Balance held before the change that the prior unit does not explain
        (an airdrop, for example) is left out of the new unit. On a
        consistent ledger the result is simply post balance / supply.

        Args:
            total_supply: Basket supply used for both conversions
            pre_total_notional: Component balance before the change
            post_total_notional: Component balance after the change
            pre_position_unit: Default unit before the change

        Returns:
            New default position unit
        """
        airdropped_amount = pre_total_notional - PositionMath.notional(
            pre_position_unit, total_supply
        )
        return PositionMath.unit_from_notional(
            post_total_notional - airdropped_amount, total_supply
        )

    @staticmethod
    def to_precise(value: Union[int, float, str, Decimal]) -> int:
        """Convert a human-readable quantity (e.g. "0.5") to fixed-point."""
        scaled = Decimal(str(value)) * PRECISE_UNIT
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))

    @staticmethod
    def from_precise(units: int) -> Decimal:
        """Convert a fixed-point integer back to a Decimal."""
        return Decimal(units) / Decimal(PRECISE_UNIT)
