"""Merkle commitment over winner leaves.

Leaves are sorted before construction so the same set of (address, reward)
pairs always yields the same root and proofs. Parents hash the sorted pair
of their children, so a proof is just the list of sibling hashes from leaf
to root; the verifier never needs left/right positions.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from .hash import hash_pair

ZERO_ROOT = 0


@dataclass(frozen=True)
class MerkleCommitment:
    root: int
    proofs: Dict[str, List[int]] = field(default_factory=dict)
    leaves: Dict[str, int] = field(default_factory=dict)

    def proof_for(self, address: str) -> List[int]:
        return list(self.proofs.get(address, []))


def build_tree(entries: Sequence[Tuple[str, int]]) -> MerkleCommitment:
    """Build the tree from (address, leaf_hash) pairs.

    An odd node at any level is paired with itself. Empty input gives
    ZERO_ROOT and no proofs.
    """
    if not entries:
        return MerkleCommitment(root=ZERO_ROOT)

    ordered = sorted(entries, key=lambda e: (e[1], e[0]))
    addresses = [address for address, _ in ordered]
    if len(set(addresses)) != len(addresses):
        raise ValueError("Duplicate address in commitment entries")

    levels: List[List[int]] = [[leaf for _, leaf in ordered]]
    while len(levels[-1]) > 1:
        current = levels[-1]
        next_level: List[int] = []
        for i in range(0, len(current), 2):
            left = current[i]
            right = current[i + 1] if i + 1 < len(current) else left
            next_level.append(hash_pair(left, right))
        levels.append(next_level)

    proofs: Dict[str, List[int]] = {}
    for idx, address in enumerate(addresses):
        path: List[int] = []
        pos = idx
        for level in levels[:-1]:
            sibling = pos + 1 if pos % 2 == 0 else pos - 1
            if sibling >= len(level):
                sibling = pos  # self-paired
            path.append(level[sibling])
            pos //= 2
        proofs[address] = path

    return MerkleCommitment(
        root=levels[-1][0],
        proofs=proofs,
        leaves={address: leaf for address, leaf in ordered},
    )


def compute_root(leaf: int, proof: Sequence[int]) -> int:
    node = leaf
    for sibling in proof:
        node = hash_pair(node, sibling)
    return node


def verify_proof(leaf: int, proof: Sequence[int], root: int) -> bool:
    return compute_root(leaf, proof) == root
