# MIT License
# Copyright (c) 2025 Hashborn

"""
Lockstake Economic Model
Single source of truth for the settlement split.

Slashed stake of every participant who failed their lock forms the pool:
- Protocol fee: PROTOCOL_FEE_PERCENT of the slashed amount (floor)
- Winners pool: the exact complement, split by weight = stake * duration

Burn policy:
- Undistributed remainder (dust from per-winner floor division) is burned:
  it is reported by the settlement output and never paid out.
"""

from dataclasses import dataclass
from typing import Dict

from ..types.common import AllocationArithmeticError

PROTOCOL_FEE_PERCENT = 10
PERCENT_BASE = 100

DUST_POLICY_BURN = "burn"

@dataclass
class EconomicConfig:
    """Economic parameters for settlement."""

    protocol_fee_percent: int = PROTOCOL_FEE_PERCENT
    percent_base: int = PERCENT_BASE
    dust_policy: str = DUST_POLICY_BURN

    def split_slashed(self, total_slashed: int) -> Dict[str, int]:
        """
        Split the slashed amount into protocol fee and winners pool.
        Returns: {'protocol_fee': int, 'winners_pool': int}
        The two parts always sum to total_slashed.
        """
        if self.percent_base <= 0:
            raise AllocationArithmeticError(f"percent_base must be positive, got {self.percent_base}")
        if not 0 <= self.protocol_fee_percent <= self.percent_base:
            raise AllocationArithmeticError(
                f"protocol_fee_percent {self.protocol_fee_percent} outside [0, {self.percent_base}]"
            )
        if total_slashed < 0:
            raise AllocationArithmeticError(f"Negative slashed amount: {total_slashed}")

        protocol_fee = total_slashed * self.protocol_fee_percent // self.percent_base
        return {
            'protocol_fee': protocol_fee,
            'winners_pool': total_slashed - protocol_fee,
        }


ECONOMIC_CONFIG = EconomicConfig()
