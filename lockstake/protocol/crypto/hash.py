"""
Shared hash domain.

Both the settlement engine and the lock contract derive leaves and
attestation hashes through this module, so the formulas exist exactly once.
All values are field elements of the STARK prime field hashed with Poseidon.
"""

from typing import Iterable, Tuple, Union
from poseidon_py.poseidon_hash import poseidon_hash_many

FIELD_PRIME = 2**251 + 17 * 2**192 + 1
U128_MASK = (1 << 128) - 1
U256_LIMIT = 1 << 256

FeltLike = Union[int, str, bool]

def to_int(value: FeltLike) -> int:
    """Parses an int, a decimal string or a 0x-prefixed hex string."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty numeric string")
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text, 10)
    raise TypeError(f"Cannot convert {type(value).__name__} to int")

def to_felt(value: FeltLike) -> int:
    felt = to_int(value)
    if not 0 <= felt < FIELD_PRIME:
        raise ValueError(f"Value {value} is not a field element")
    return felt

def to_hex(value: FeltLike) -> str:
    """Normalizes a value to a lowercase 0x-hex string."""
    return hex(to_int(value))

def poseidon(elements: Iterable[FeltLike]) -> int:
    return poseidon_hash_many([to_felt(e) for e in elements])

def split_u256(value: int) -> Tuple[int, int]:
    """Returns (low, high) 128-bit limbs of a u256."""
    if not 0 <= value < U256_LIMIT:
        raise ValueError(f"Value {value} does not fit in u256")
    return value & U128_MASK, value >> 128

def leaf_hash(address: FeltLike, reward_amount: int) -> int:
    """Leaf committing one winner: H(address, reward_low, reward_high)."""
    low, high = split_u256(reward_amount)
    return poseidon([address, low, high])

def hash_pair(a: int, b: int) -> int:
    """Parent of two nodes, hashed in ascending numeric order."""
    if a > b:
        a, b = b, a
    return poseidon_hash_many([a, b])

def outcome_message_hash(address: FeltLike, start_time: int, duration: int, completed: bool) -> int:
    """Attestation message: H(address, start_time, duration, 1|0)."""
    return poseidon([address, start_time, duration, 1 if completed else 0])
