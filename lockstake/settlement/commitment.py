# MIT License
# Copyright (c) 2025 Hashborn

"""
Commitment Builder

Hashes every winner's (address, reward) pair into a leaf and commits to the
set with a sorted-pair Merkle tree. The root is published on the lock
contract; each winner receives their proof.
"""

import logging
from typing import Sequence

from ..protocol.crypto.hash import leaf_hash, to_hex
from ..protocol.crypto.merkle import MerkleCommitment, build_tree, verify_proof
from ..protocol.types.common import AllocationArithmeticError
from ..protocol.types.participant import RewardRecord

logger = logging.getLogger(__name__)


class CommitmentBuilder:
    def build(self, rewards: Sequence[RewardRecord]) -> MerkleCommitment:
        entries = []
        for record in rewards:
            try:
                entries.append((record.address, leaf_hash(record.address, record.reward_amount)))
            except ValueError as e:
                raise AllocationArithmeticError(f"Cannot commit reward for {record.address}: {e}")

        commitment = build_tree(entries)
        logger.info(f"Merkle tree built over {len(entries)} leaves, root {to_hex(commitment.root)}")
        return commitment

    @staticmethod
    def verify(commitment: MerkleCommitment, address: str, reward_amount: int) -> bool:
        """Checks one winner's proof against the commitment root."""
        return verify_proof(leaf_hash(address, reward_amount), commitment.proof_for(address), commitment.root)
