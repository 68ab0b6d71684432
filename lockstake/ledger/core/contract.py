# MIT License
# Copyright (c) 2025 Hashborn

"""
Lock Contract (on-ledger claim verifier)

Holds stakes, accepts the published merkle root of each pool and pays out
claims after re-deriving the settlement engine's hashes.

Lock lifecycle:
    INACTIVE --deposit--> ACTIVE --claim--> COMPLETED

Claim checks, in order (any failure aborts the whole call):
1. Caller owns a lock in the pool of the claimed start time
2. Ledger time >= lock end time
3. Lock is ACTIVE
4. Pool root is published
5. Claim flag is not set
6. Attestation signature verifies against the authority key
7. Winners: merkle proof of (caller, reward) verifies against the root
   Losers: reward must be zero

Every mutating call runs on a clone of the state which replaces the live
state only on success, so a failed call (including a failed payout
transfer) leaves no trace.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Sequence, Union

from ...observability.metrics import (
    claims_total,
    deposits_total,
    payout_volume_total,
    rejected_calls_total,
    roots_published_total,
)
from ...protocol.config.params import CURRENT_NETWORK
from ...protocol.crypto.hash import FIELD_PRIME, U256_LIMIT, leaf_hash, to_hex, to_int
from ...protocol.crypto.merkle import ZERO_ROOT, verify_proof
from ...protocol.types.common import (
    CryptoError,
    LedgerEvent,
    LockStatus,
    ProtocolError,
    StateError,
    TransferError,
    ValidationError,
)
from ...protocol.types.pool import Lock, Pool, PoolKey, classify_timestamp
from ...settlement.signer import AttestationSigner
from .collaborators import AuthorityConfig, TokenGateway
from .events import EventBus
from .state import LedgerState

logger = logging.getLogger(__name__)

IntLike = Union[int, str]


class LockContract:
    def __init__(self,
                 authority: AuthorityConfig,
                 gateway: TokenGateway,
                 contract_address: IntLike,
                 network_config=None,
                 clock: Optional[Callable[[], int]] = None,
                 event_bus: Optional[EventBus] = None):
        """
        Args:
            authority: Owner address and trusted signer public key
            gateway: Token transfer and price feed capability
            contract_address: Address holding the staked tokens
            network_config: Network configuration (defaults to CURRENT_NETWORK)
            clock: Ledger time source in unix seconds
            event_bus: Bus receiving committed contract events
        """
        self.state = LedgerState(authority)
        self.gateway = gateway
        self.address = to_hex(contract_address)
        self.config = network_config or CURRENT_NETWORK
        self.clock = clock or (lambda: int(time.time()))
        self.events = event_bus or EventBus()
        self._lock = threading.RLock()
        self._entered = False

    @contextmanager
    def _transaction(self, call: str) -> Iterator[LedgerState]:
        with self._lock:
            if self._entered:
                rejected_calls_total.labels(call=call, code="REENTRANT_CALL").inc()
                raise StateError(f"Re-entrant {call} rejected", code="REENTRANT_CALL")
            self._entered = True
            working = self.state.clone()
            try:
                yield working
            except ProtocolError as e:
                rejected_calls_total.labels(call=call, code=e.code).inc()
                logger.warning(f"{call} rejected: [{e.code}] {e}")
                raise
            else:
                self.state = working
            finally:
                self._entered = False

    def _require_owner(self, state: LedgerState, caller: str):
        if _parse_address(caller) != state.authority.owner:
            raise StateError(f"Caller {caller} is not the contract owner", code="NOT_AUTHORITY")

    # --- Read accessors ---
    def get_pool_key(self, timestamp: int) -> PoolKey:
        return classify_timestamp(timestamp, self.config.window_seconds)

    def get_pool(self, day: int, period: int) -> Pool:
        return self.state.get_pool(PoolKey(day=day, period=period)).model_copy()

    def get_lock(self, owner: IntLike, day: int, period: int) -> Lock:
        lock = self.state.get_lock(to_hex(owner), PoolKey(day=day, period=period))
        if lock is None:
            return Lock(owner=to_hex(owner), day=day, period=period)
        return lock.model_copy()

    def is_claimed(self, owner: IntLike, day: int, period: int) -> bool:
        return self.state.is_claimed(to_hex(owner), PoolKey(day=day, period=period))

    def get_authority_key(self) -> int:
        return self.state.authority.authority_public_key

    def get_merkle_root(self, day: int, period: int) -> int:
        return self.state.get_pool(PoolKey(day=day, period=period)).merkle_root

    # --- Administration ---
    def publish_root(self, caller: IntLike, day: int, period: int, root: IntLike) -> Pool:
        """Publishes (or overwrites) a pool's merkle root. Owner only."""
        with self._transaction("publish_root") as state:
            self._require_owner(state, caller)
            if day < 0 or not 0 <= period < self.config.periods_per_day:
                raise StateError(
                    f"Invalid pool day={day} period={period} (periods per day: {self.config.periods_per_day})",
                    code="INVALID_PERIOD",
                )
            root_felt = _parse_felt(root, "root")

            pool = state.get_pool(PoolKey(day=day, period=period))
            if pool.finalized:
                logger.warning(f"Overwriting root of pool day={day} period={period}: "
                               f"{to_hex(pool.merkle_root)} -> {to_hex(root_felt)}")
            pool.merkle_root = root_felt
            pool.finalized = True
            state.set_pool(pool)

        roots_published_total.inc()
        logger.info(f"Root published for pool day={day} period={period}: {to_hex(root_felt)}")
        self.events.emit(LedgerEvent.ROOT_PUBLISHED.value, day=day, period=period, root=root_felt)
        return pool.model_copy()

    def set_authority_key(self, caller: IntLike, new_key: IntLike) -> int:
        """Replaces the trusted signer key. Owner only."""
        with self._transaction("set_authority_key") as state:
            self._require_owner(state, caller)
            key = _parse_felt(new_key, "new_key")
            if key == 0:
                raise ValidationError("Authority key cannot be zero", field="new_key")
            state.authority.authority_public_key = key

        logger.info(f"Authority key updated to {to_hex(key)}")
        self.events.emit(LedgerEvent.AUTHORITY_KEY_UPDATED.value, public_key=key)
        return key

    # --- Participant calls ---
    def deposit(self, caller: IntLike, start_time: int, duration: int, stake_amount: int) -> Lock:
        """
        Opens a lock for the pool containing start_time.

        Args:
            caller: Participant address
            start_time: Lock start (must be in the future)
            duration: Lock length in seconds
            stake_amount: Tokens pulled from the caller

        Returns:
            The ACTIVE lock
        """
        with self._transaction("deposit") as state:
            owner = _parse_address(caller)
            if stake_amount <= 0:
                raise ValidationError(f"Stake must be positive, got {stake_amount}",
                                      field="stake_amount", code="INVALID_STAKE")
            if not self.config.min_duration <= duration <= self.config.max_duration:
                raise ValidationError(
                    f"Duration {duration} outside [{self.config.min_duration}, {self.config.max_duration}]",
                    field="duration", code="INVALID_DURATION",
                )
            now = self.clock()
            if start_time <= now:
                raise StateError(f"Start time {start_time} is not after ledger time {now}",
                                 code="START_TIME_PASSED")

            key = self.get_pool_key(start_time)
            existing = state.get_lock(owner, key)
            if existing is not None and existing.status != LockStatus.INACTIVE:
                raise StateError(f"Lock already exists for {owner} in pool day={key.day} period={key.period}",
                                 code="LOCK_EXISTS")

            pool = state.get_pool(key)
            if pool.finalized:
                raise StateError(f"Pool day={key.day} period={key.period} is already finalized",
                                 code="POOL_FINALIZED")

            usd_value = self.gateway.price_of(stake_amount)
            if usd_value < self.config.min_stake_usd:
                raise ValidationError(
                    f"Stake worth {usd_value} cents, minimum is {self.config.min_stake_usd}",
                    field="stake_amount", code="STAKE_BELOW_MINIMUM",
                )

            lock = Lock(
                owner=owner,
                day=key.day,
                period=key.period,
                stake_amount=stake_amount,
                start_time=start_time,
                duration=duration,
                end_time=start_time + duration,
                status=LockStatus.ACTIVE,
            )
            state.set_lock(lock)
            pool.total_staked += stake_amount
            pool.participant_count += 1
            state.set_pool(pool)

            if not self.gateway.transfer(owner, self.address, stake_amount):
                raise TransferError(f"Stake transfer of {stake_amount} from {owner} failed")

        deposits_total.inc()
        logger.info(f"Lock created for {owner}: pool day={key.day} period={key.period}, "
                    f"stake={stake_amount}, ends at {lock.end_time}")
        self.events.emit(LedgerEvent.LOCK_CREATED.value, owner=owner, day=key.day, period=key.period,
                         stake_amount=stake_amount, end_time=lock.end_time)
        return lock.model_copy()

    def claim(self,
              caller: IntLike,
              start_time: int,
              duration: int,
              completion_status: bool,
              signature: Sequence[IntLike],
              reward_amount: IntLike,
              merkle_proof: Sequence[IntLike]) -> int:
        """
        Settles the caller's lock and pays stake return plus reward.

        Args:
            caller: Participant address
            start_time: Start time from the attestation
            duration: Duration from the attestation
            completion_status: Outcome from the attestation
            signature: (r, s) of the authority over the outcome
            reward_amount: Reward from the settlement output
            merkle_proof: Sibling hashes from the settlement output

        Returns:
            Amount paid out
        """
        with self._transaction("claim") as state:
            owner = _parse_address(caller)
            if start_time < 0 or duration <= 0:
                raise ValidationError(f"Invalid claim window ({start_time}, {duration})", field="start_time")
            key = self.get_pool_key(start_time)

            # 1. Ownership
            lock = state.get_lock(owner, key)
            if lock is None or lock.owner != owner:
                raise StateError(f"No lock owned by {owner} in pool day={key.day} period={key.period}",
                                 code="NOT_LOCK_OWNER")

            # 2. Lock has ended
            now = self.clock()
            if now < lock.end_time:
                raise StateError(f"Lock ends at {lock.end_time}, ledger time is {now}", code="LOCK_NOT_EXPIRED")

            # 3. Status
            if lock.status == LockStatus.COMPLETED:
                raise StateError(f"Lock of {owner} already claimed", code="ALREADY_CLAIMED")
            if lock.status != LockStatus.ACTIVE:
                raise StateError(f"Lock of {owner} is {lock.status.value}", code="LOCK_NOT_ACTIVE")

            # 4. Pool finalized
            pool = state.get_pool(key)
            if not pool.finalized:
                raise StateError(f"Pool day={key.day} period={key.period} has no published root",
                                 code="POOL_NOT_FINALIZED")

            # 5. Claim flag
            if state.is_claimed(owner, key):
                raise StateError(f"Lock of {owner} already claimed", code="ALREADY_CLAIMED")

            reward = _parse_amount(reward_amount)

            # 6. Attestation
            if not AttestationSigner.verify(owner, start_time, duration, completion_status, signature,
                                            state.authority.authority_public_key):
                raise CryptoError(f"Invalid outcome signature for {owner}", code="INVALID_SIGNATURE")

            # 7. Reward commitment
            if completion_status:
                proof = [_parse_felt(h, "merkle_proof") for h in merkle_proof]
                empty_commitment = reward == 0 and pool.merkle_root == ZERO_ROOT and not proof
                if not empty_commitment and not verify_proof(leaf_hash(owner, reward), proof, pool.merkle_root):
                    raise CryptoError(f"Invalid merkle proof for {owner}", code="INVALID_PROOF")
            elif reward != 0:
                raise StateError(f"Failed lock of {owner} cannot claim reward {reward}",
                                 code="NONZERO_REWARD_FOR_LOSER")

            if lock.start_time != start_time or lock.duration != duration:
                raise StateError(
                    f"Claim ({start_time}, {duration}) does not match lock ({lock.start_time}, {lock.duration})",
                    code="LOCK_MISMATCH",
                )

            payout = (lock.stake_amount if completion_status else 0) + reward
            state.mark_claimed(owner, key)
            lock.status = LockStatus.COMPLETED
            lock.payout = payout
            state.set_lock(lock)

            if payout > 0 and not self.gateway.transfer(self.address, owner, payout):
                raise TransferError(f"Payout transfer of {payout} to {owner} failed")

        claims_total.labels(outcome="completed" if completion_status else "failed").inc()
        payout_volume_total.inc(payout)
        logger.info(f"Claim settled for {owner}: pool day={key.day} period={key.period}, "
                    f"completed={completion_status}, reward={reward}, payout={payout}")
        self.events.emit(LedgerEvent.REWARD_CLAIMED.value, owner=owner, day=key.day, period=key.period,
                         completed=completion_status, reward_amount=reward, payout=payout)
        return payout


def _parse_address(value: IntLike) -> str:
    return to_hex(_parse_felt(value, "caller"))


def _parse_felt(value: IntLike, field: str) -> int:
    try:
        felt = to_int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} is not a number: {value!r}", field=field)
    if not 0 <= felt < FIELD_PRIME:
        raise ValidationError(f"{field} is not a field element", field=field)
    return felt


def _parse_amount(value: IntLike) -> int:
    try:
        amount = to_int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"reward_amount is not a number: {value!r}", field="reward_amount")
    if not 0 <= amount < U256_LIMIT:
        raise ValidationError(f"reward_amount {amount} out of range", field="reward_amount")
    return amount
