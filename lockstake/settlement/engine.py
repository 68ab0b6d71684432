# MIT License
# Copyright (c) 2025 Hashborn

"""
Settlement Engine (off-line)

Runs once per pool, after every lock in the pool has ended and before the
pool's merkle root is published on the lock contract.

Flow:
1. Validate every participant record (first error aborts the batch)
2. Classify the pool (day, period) from the participants' start time
3. Compute slashed amount, protocol fee and weighted winner rewards
4. Commit winner rewards to a merkle tree
5. Sign every participant's outcome with the verifier key
6. Emit one claim bundle (signature + proof + amounts) per participant

The output is deterministic: the same set of participants, in any order,
yields the same root, proofs, fee and winners pool.
"""

import logging
import time
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..observability.metrics import record_settlement, settlement_runs_total
from ..protocol.config.params import CURRENT_NETWORK
from ..protocol.crypto.hash import leaf_hash, outcome_message_hash, to_hex, to_int
from ..protocol.crypto.keys import verify
from ..protocol.crypto.merkle import ZERO_ROOT, verify_proof
from ..protocol.types.common import ProtocolError, ValidationError
from ..protocol.types.pool import classify_timestamp, pool_name
from ..protocol.types.settlement import PoolSummary, SettlementInput, SettlementOutput, UserResult
from .allocator import RewardAllocator
from .commitment import CommitmentBuilder
from .signer import AttestationSigner
from .slashing import stake_return, validate_participants

logger = logging.getLogger(__name__)


class SettlementEngine:
    """
    Computes the full settlement of one pool.

    Pure batch computation: no ledger access, no I/O.
    """

    def __init__(self, network_config=None, economic_config=None):
        """
        Initialize settlement engine.

        Args:
            network_config: Network configuration (defaults to CURRENT_NETWORK)
            economic_config: Economic configuration (defaults to ECONOMIC_CONFIG)
        """
        self.config = network_config or CURRENT_NETWORK
        self.allocator = RewardAllocator(economic_config)
        self.commitments = CommitmentBuilder()

    def settle(self, data: Union[SettlementInput, Dict[str, Any]]) -> SettlementOutput:
        """
        Settle one pool.

        Args:
            data: Batch input ({pool_info: {contract_address, verifier_private_key}, users: [...]})

        Returns:
            SettlementOutput with pool summary and per-user claim bundles

        Raises:
            ValidationError: On malformed input (whole batch aborted)
            AllocationArithmeticError: On an impossible allocation
        """
        started = time.monotonic()
        try:
            output, allocation = self._settle(data)
        except ProtocolError as e:
            settlement_runs_total.labels(status="failed").inc()
            logger.error(f"Settlement aborted: {e}")
            raise

        record_settlement(allocation, time.monotonic() - started)
        return output

    def _settle(self, data):
        batch = self._parse_input(data)
        logger.info(f"Processing {len(batch.users)} users")

        participants = validate_participants(batch.users, self.config.window_seconds)

        key = classify_timestamp(participants[0].start_time, self.config.window_seconds)
        name = pool_name(key.period, self.config.window_seconds)
        logger.info(f"Calculated pool: {name} (Day {key.day}, Period {key.period})")

        try:
            signer = AttestationSigner(batch.pool_info.verifier_private_key)
        except ValueError as e:
            raise ValidationError(f"invalid verifier_private_key: {e}", field="verifier_private_key")

        allocation = self.allocator.allocate(participants)
        logger.info(f"Found {len(allocation.rewards)} winners")

        commitment = self.commitments.build(allocation.rewards)
        rewards = {r.address: r.reward_amount for r in allocation.rewards}

        user_results = []
        for p in participants:
            returned = stake_return(p.stake_amount, p.completion_status)
            reward = rewards.get(p.address, 0) if p.completion_status else 0
            proof = commitment.proof_for(p.address) if p.completion_status else []
            attestation = signer.attest(p.address, p.start_time, p.duration, p.completion_status)

            user_results.append(UserResult(
                address=p.address,
                start_time=p.start_time,
                duration=p.duration,
                stake_amount=str(p.stake_amount),
                completion_status=p.completion_status,
                stake_return_amount=str(returned),
                reward_amount=str(reward),
                total_payout=str(returned + reward),
                signature=attestation.to_output(),
                merkle_proof=[to_hex(h) for h in proof],
                is_winner=p.completion_status,
                claim_ready=True,
            ))

        output = SettlementOutput(
            pool_info=PoolSummary(
                day=key.day,
                period=key.period,
                pool_name=name,
                contract_address=batch.pool_info.contract_address,
                merkle_root=to_hex(commitment.root),
                total_slashed_amount=str(allocation.total_slashed),
            ),
            protocol_fees=str(allocation.protocol_fee),
            rewards_for_winners=str(allocation.rewards_for_winners),
            rounding_dust=str(allocation.dust),
            user_results=user_results,
        )

        logger.info(f"Total slashed from losers: {allocation.total_slashed}")
        logger.info(f"Protocol fees: {allocation.protocol_fee}")
        logger.info(f"Rewards for winners: {allocation.rewards_for_winners} (dust burned: {allocation.dust})")
        logger.info(f"Merkle root: {output.pool_info.merkle_root}")
        for i, record in enumerate(allocation.rewards, 1):
            logger.debug(
                f"Winner {i}: {record.address} stake={record.stake_amount} "
                f"duration={record.duration}s weight={record.weight} reward={record.reward_amount}"
            )

        return output, allocation

    @staticmethod
    def _parse_input(data) -> SettlementInput:
        if isinstance(data, SettlementInput):
            return data
        if not isinstance(data, dict):
            raise ValidationError("settlement input must be an object")
        try:
            return SettlementInput.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"invalid settlement input: {e}")

    @staticmethod
    def audit(output: Union[SettlementOutput, Dict[str, Any]], public_key: Optional[Union[int, str]] = None) -> bool:
        """
        Re-verify a settlement output.

        Recomputes every message hash, checks every signature against the
        authority key and every winner proof against the root.

        Args:
            output: Settlement output (model or parsed JSON)
            public_key: Expected authority key; defaults to the key in each bundle

        Returns:
            True if every claim bundle would pass the contract's checks;
            False (logged) on the first failing or malformed bundle
        """
        if not isinstance(output, SettlementOutput):
            output = SettlementOutput.model_validate(output)

        try:
            root = to_int(output.pool_info.merkle_root)
            slashed = to_int(output.pool_info.total_slashed_amount)
            fees = to_int(output.protocol_fees)
            winners_pool = to_int(output.rewards_for_winners)
            key = to_int(public_key) if public_key is not None else None
        except ValueError as e:
            logger.error(f"Malformed pool totals: {e}")
            return False
        if fees + winners_pool not in (0, slashed):
            logger.error("Protocol fee and winners pool do not add up to the slashed amount")
            return False

        distributed = 0
        for user in output.user_results:
            try:
                reward = SettlementEngine._audit_user(user, root, key)
            except ValueError as e:
                logger.error(f"Malformed claim bundle for user {user.address}: {e}")
                return False
            if reward is None:
                return False
            distributed += reward

        if distributed > winners_pool:
            logger.error(f"Distributed {distributed} exceeds winners pool {output.rewards_for_winners}")
            return False

        logger.info(f"Audit passed for {len(output.user_results)} users")
        return True

    @staticmethod
    def _audit_user(user: UserResult, root: int, public_key: Optional[int]) -> Optional[int]:
        """Checks one claim bundle; returns its proven reward, or None on failure."""
        expected = outcome_message_hash(user.address, user.start_time, user.duration, user.completion_status)
        if expected != to_int(user.signature.message_hash):
            logger.error(f"Hash mismatch for user {user.address}: "
                         f"expected {to_hex(expected)}, output {user.signature.message_hash}")
            return None

        key = public_key if public_key is not None else to_int(user.signature.public_key)
        if not verify(expected, (user.signature.r, user.signature.s), key):
            logger.error(f"Invalid signature for user {user.address}")
            return None

        reward = to_int(user.reward_amount)
        if not user.completion_status:
            if reward != 0:
                logger.error(f"Non-zero reward for failed user {user.address}")
                return None
            return 0

        if reward == 0 and root == ZERO_ROOT:
            return 0
        proof = [to_int(h) for h in user.merkle_proof]
        if not verify_proof(leaf_hash(user.address, reward), proof, root):
            logger.error(f"Merkle proof does not verify for user {user.address}")
            return None
        return reward
