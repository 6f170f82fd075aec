#!/usr/bin/env python3
"""
Core data models for basket position accounting.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

from basket_ledger.core.calculator import PositionMath


class ModuleState(Enum):
    """Lifecycle of a module on a basket."""

    NONE = "NONE"
    PENDING = "PENDING"
    INITIALIZED = "INITIALIZED"


@dataclass
class ExternalPosition:
    """Component value custodied by a module outside the basket."""

    unit: int = 0
    data: bytes = b""


@dataclass
class ComponentPosition:
    """Default and external position units for one component."""

    default_unit: int = 0
    external: Dict[str, ExternalPosition] = field(default_factory=dict)
    external_modules: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """Whether the component carries no position at all."""
        return self.default_unit == 0 and not self.external_modules

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "default_unit": self.default_unit,
            "external": {
                module: {"unit": pos.unit, "data": pos.data.hex()}
                for module, pos in self.external.items()
            },
            "external_modules": list(self.external_modules),
        }


@dataclass(frozen=True)
class StakingPosition:
    """Units staked at one venue and the adapter used to open the position."""

    adapter_hash: str = ""
    position_units: int = 0

    @property
    def is_open(self) -> bool:
        return self.position_units > 0

    def to_dict(self) -> dict:
        return {
            "adapter_hash": self.adapter_hash,
            "position_units": self.position_units,
        }


@dataclass
class ControllerConfig:
    """Protocol-wide settings: fee recipient and per-module fee schedule."""

    fee_recipient: str = "fee-recipient"
    # module address -> fee index -> fee fraction (fixed-point)
    module_fees: Dict[str, Dict[int, int]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "ControllerConfig":
        """
        Create ControllerConfig from dictionary.

        Fee fractions may be given as decimal strings or numbers
        ("0.0025" for 25 bps); they are stored as fixed-point integers.
        """
        module_fees = {}
        for module, fees in (data.get("module_fees") or {}).items():
            module_fees[module] = {
                int(index): PositionMath.to_precise(fraction)
                for index, fraction in fees.items()
            }
        return cls(
            fee_recipient=data.get("fee_recipient", "fee-recipient"),
            module_fees=module_fees,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "fee_recipient": self.fee_recipient,
            "module_fees": {
                module: {
                    str(index): str(PositionMath.from_precise(fraction))
                    for index, fraction in fees.items()
                }
                for module, fees in self.module_fees.items()
            },
        }
