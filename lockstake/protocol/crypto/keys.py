import secrets
from typing import Sequence, Tuple, Union
from starknet_py.hash.utils import message_signature, private_to_stark_key, verify_message_signature # type: ignore
from .hash import to_int

# Order of the STARK curve generator
EC_ORDER = 0x800000000000010FFFFFFFFFFFFFFFFB781126DCAE7B2321E66A241ADC64D2F

def generate_private_key() -> int:
    """Generates a random private key in [1, EC_ORDER)."""
    return secrets.randbelow(EC_ORDER - 1) + 1

def parse_private_key(value: Union[int, str]) -> int:
    """Accepts an int or a hex string with or without 0x prefix."""
    if isinstance(value, str):
        text = value.strip()
        if not text.lower().startswith("0x"):
            text = "0x" + text
        priv = int(text, 16)
    else:
        priv = value
    if not 1 <= priv < EC_ORDER:
        raise ValueError("Private key out of range")
    return priv

def public_key_from_private(priv: int) -> int:
    """Returns the STARK public key (x coordinate) for a private key."""
    return private_to_stark_key(priv)

def sign(message_hash: int, priv: int) -> Tuple[int, int]:
    """Signs a message hash. Deterministic (RFC 6979). Returns (r, s)."""
    r, s = message_signature(msg_hash=message_hash, priv_key=priv)
    return r, s

def verify(message_hash: int, signature: Sequence[Union[int, str]], public_key: int) -> bool:
    """Verifies a STARK-curve ECDSA signature."""
    try:
        if len(signature) != 2:
            return False
        r, s = (to_int(part) for part in signature)
        return verify_message_signature(message_hash, [r, s], public_key)
    except Exception:
        return False
