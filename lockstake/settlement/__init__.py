# MIT License
# Copyright (c) 2025 Hashborn

"""
Off-line Settlement Module

Computes the settlement of one pool after its locks have ended.

Architecture:
- slashing.py: Record validation, stake returns, slashed total, weights
- allocator.py: Protocol fee split and proportional winner rewards
- commitment.py: Merkle commitment over winner rewards
- signer.py: Signed attestation of every participant's outcome
- engine.py: Batch orchestration and output self-audit

The lock contract DOES NOT execute this code. It re-derives the leaf and
attestation hashes from each claim and checks them against the published
root and the authority key.
"""

from .allocator import Allocation, RewardAllocator
from .commitment import CommitmentBuilder
from .engine import SettlementEngine
from .signer import Attestation, AttestationSigner
from .slashing import participant_weight, stake_return, total_slashed, validate_participants

__all__ = [
    'Allocation',
    'RewardAllocator',
    'CommitmentBuilder',
    'SettlementEngine',
    'Attestation',
    'AttestationSigner',
    'participant_weight',
    'stake_return',
    'total_slashed',
    'validate_participants',
]
