"""
External collaborators of the lock contract.

The host ledger provides token movement and a price feed; the contract only
sees them through the TokenGateway capability so it can run against fakes.
"""

import logging
import threading
from typing import Dict, Optional, Protocol, Union

from pydantic import BaseModel, field_validator

from ...protocol.crypto.hash import to_hex, to_int

logger = logging.getLogger(__name__)


class TokenGateway(Protocol):
    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Moves amount from sender to recipient. False on failure."""
        ...

    def price_of(self, amount: int) -> int:
        """USD value of amount tokens, in cents."""
        ...


class AuthorityConfig(BaseModel):
    """Trusted signer key and the owner allowed to administer the contract."""
    owner: str
    authority_public_key: int

    @field_validator("owner", mode="before")
    @classmethod
    def _normalize_owner(cls, v: Union[int, str]) -> str:
        return to_hex(v)

    @field_validator("authority_public_key", mode="before")
    @classmethod
    def _parse_key(cls, v: Union[int, str]) -> int:
        return to_int(v)


class InMemoryTokenGateway:
    """
    Reference TokenGateway keeping balances in memory.

    price_cents_per_token is the USD price (cents) of one whole token.
    """

    def __init__(self, balances: Optional[Dict[str, int]] = None, price_cents_per_token: int = 100,
                 decimals: int = 18):
        self.balances: Dict[str, int] = {to_hex(k): v for k, v in (balances or {}).items()}
        self.price_cents_per_token = price_cents_per_token
        self.decimals = decimals
        self._lock = threading.Lock()

    def balance_of(self, address: str) -> int:
        return self.balances.get(to_hex(address), 0)

    def mint(self, address: str, amount: int) -> None:
        with self._lock:
            key = to_hex(address)
            self.balances[key] = self.balances.get(key, 0) + amount

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        if amount < 0:
            return False
        with self._lock:
            src, dst = to_hex(sender), to_hex(recipient)
            if self.balances.get(src, 0) < amount:
                logger.warning(f"Transfer of {amount} from {src} rejected: insufficient balance")
                return False
            self.balances[src] -= amount
            self.balances[dst] = self.balances.get(dst, 0) + amount
            return True

    def price_of(self, amount: int) -> int:
        return amount * self.price_cents_per_token // 10**self.decimals
