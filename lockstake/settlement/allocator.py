# MIT License
# Copyright (c) 2025 Hashborn

"""
Reward Allocation

Splits the slashed pool and distributes the winners' share proportionally
to winner weight (stake * duration).

Flow:
1. Total slashed = stake forfeited by participants who did not complete
2. Protocol fee = floor(total_slashed * 10 / 100), winners pool = the rest
3. Total weight = sum of winner weights
4. reward_i = floor(winners_pool * weight_i / total_weight)
5. Handle dust (remainder from integer division) -> BURN
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from ..protocol.config.economic_model import ECONOMIC_CONFIG
from ..protocol.types.common import AllocationArithmeticError
from ..protocol.types.participant import Participant, RewardRecord
from .slashing import participant_weight, total_slashed

logger = logging.getLogger(__name__)


@dataclass
class Allocation:
    """
    Result of one pool's reward allocation.

    Attributes:
        rewards: One record per winner, in input order
        total_slashed: Forfeited stake of all losers
        protocol_fee: Protocol share of total_slashed
        rewards_for_winners: Winners' share of total_slashed
        distributed: Sum of all reward amounts
        dust: rewards_for_winners - distributed (burned)
        winner_count: Number of participants who completed
    """
    rewards: List[RewardRecord] = field(default_factory=list)
    total_slashed: int = 0
    protocol_fee: int = 0
    rewards_for_winners: int = 0
    distributed: int = 0
    dust: int = 0
    winner_count: int = 0

    def reward_of(self, address: str) -> int:
        for record in self.rewards:
            if record.address == address:
                return record.reward_amount
        return 0


class RewardAllocator:
    """
    Computes protocol fee and proportional winner rewards for one pool.

    Every winner's reward depends only on its own weight and the fixed
    total weight, so iteration order never changes any result.
    """

    def __init__(self, economic_config=None):
        """
        Initialize allocator.

        Args:
            economic_config: Economic configuration (defaults to ECONOMIC_CONFIG)
        """
        self.config = economic_config or ECONOMIC_CONFIG

    def allocate(self, participants: Sequence[Participant]) -> Allocation:
        """
        Allocate rewards for a validated batch.

        Args:
            participants: Validated participant records

        Returns:
            Allocation (empty rewards and zero fee when there is nothing to distribute)
        """
        winners = [p for p in participants if p.completion_status]
        slashed = total_slashed(participants)

        if not winners or slashed == 0:
            logger.info(f"Nothing to distribute (winners: {len(winners)}, slashed: {slashed})")
            return Allocation(total_slashed=slashed, winner_count=len(winners))

        weights = [participant_weight(w.stake_amount, w.duration) for w in winners]
        total_weight = sum(weights)

        if total_weight == 0:
            logger.warning("Total winner weight is 0, nothing distributed")
            return Allocation(total_slashed=slashed, winner_count=len(winners))

        split = self.config.split_slashed(slashed)
        protocol_fee = split['protocol_fee']
        winners_pool = split['winners_pool']

        rewards: List[RewardRecord] = []
        for winner, weight in zip(winners, weights):
            rewards.append(RewardRecord(
                address=winner.address,
                reward_amount=winners_pool * weight // total_weight,
                weight=weight,
                stake_amount=winner.stake_amount,
                duration=winner.duration,
            ))

        distributed = sum(r.reward_amount for r in rewards)
        if distributed > winners_pool:
            raise AllocationArithmeticError(f"Distributed {distributed} exceeds winners pool {winners_pool}")

        dust = winners_pool - distributed
        if dust > 0:
            logger.info(f"Reward dust: {dust} (will be burned)")

        return Allocation(
            rewards=rewards,
            total_slashed=slashed,
            protocol_fee=protocol_fee,
            rewards_for_winners=winners_pool,
            distributed=distributed,
            dust=dust,
            winner_count=len(winners),
        )
