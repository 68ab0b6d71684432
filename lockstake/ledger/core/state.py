from typing import Dict, List, Optional, Tuple
from .collaborators import AuthorityConfig
from ...protocol.crypto.hash import to_hex
from ...protocol.types.pool import Lock, Pool, PoolKey

LockKey = Tuple[str, int, int]  # (owner, day, period)

class LedgerState:
    """
    Contract storage: pools, locks, claim flags and the authority config.

    Durable storage and commit ordering belong to the host ledger. Here a
    call works on a clone() and the clone replaces the live state only when
    the call succeeds.
    """

    def __init__(self, authority: AuthorityConfig,
                 pools: Dict[PoolKey, Pool] = None,
                 locks: Dict[LockKey, Lock] = None,
                 claimed: Dict[LockKey, bool] = None):
        self.authority = authority
        self._pools: Dict[PoolKey, Pool] = pools if pools is not None else {}
        self._locks: Dict[LockKey, Lock] = locks if locks is not None else {}
        self._claimed: Dict[LockKey, bool] = claimed if claimed is not None else {}

    def clone(self) -> 'LedgerState':
        """Creates a copy of the state (for an atomic call)."""
        return LedgerState(
            self.authority.model_copy(),
            {k: v.model_copy() for k, v in self._pools.items()},
            {k: v.model_copy() for k, v in self._locks.items()},
            dict(self._claimed),
        )

    @staticmethod
    def lock_key(owner: str, key: PoolKey) -> LockKey:
        return (to_hex(owner), key.day, key.period)

    # --- Pools ---
    def get_pool(self, key: PoolKey) -> Pool:
        if key in self._pools:
            return self._pools[key]
        return Pool(day=key.day, period=key.period)

    def set_pool(self, pool: Pool):
        self._pools[pool.key] = pool

    def all_pools(self) -> List[Pool]:
        return list(self._pools.values())

    # --- Locks ---
    def get_lock(self, owner: str, key: PoolKey) -> Optional[Lock]:
        return self._locks.get(self.lock_key(owner, key))

    def set_lock(self, lock: Lock):
        self._locks[(to_hex(lock.owner), lock.day, lock.period)] = lock

    def all_locks(self) -> List[Lock]:
        return list(self._locks.values())

    # --- Claim flags (write-once) ---
    def is_claimed(self, owner: str, key: PoolKey) -> bool:
        return self._claimed.get(self.lock_key(owner, key), False)

    def mark_claimed(self, owner: str, key: PoolKey):
        lk = self.lock_key(owner, key)
        if self._claimed.get(lk):
            raise ValueError(f"Claim flag already set for {lk}")
        self._claimed[lk] = True
