# MIT License
# Copyright (c) 2025 Hashborn

"""
Lock Contract Tests

Covers the lock lifecycle end to end against settlement output:
deposit -> settle off-line -> publish root -> claim.
"""

import pytest

from lockstake.ledger.core.collaborators import AuthorityConfig, InMemoryTokenGateway
from lockstake.ledger.core.contract import LockContract
from lockstake.protocol.config.params import NETWORKS
from lockstake.protocol.crypto.hash import to_hex
from lockstake.protocol.types.common import (
    CryptoError,
    LockStatus,
    ProtocolError,
    StateError,
    TransferError,
    ValidationError,
)
from lockstake.settlement import AttestationSigner, SettlementEngine

VERIFIER_KEY = "0x" + "12" * 31
OWNER = "0x1"
CONTRACT = "0x1000"
ALICE = "0xa1"
BOB = "0xb2"
START = 1699923600          # day 19675, period 0
DAY, PERIOD = 19675, 0


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class FlakyGateway(InMemoryTokenGateway):
    """Fails outgoing transfers from the contract while fail_payouts is set."""

    fail_payouts = False

    def transfer(self, sender, recipient, amount):
        if self.fail_payouts and to_hex(sender) == CONTRACT:
            return False
        return super().transfer(sender, recipient, amount)


class ReentrantGateway(InMemoryTokenGateway):
    """Calls back into the contract during the payout transfer."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.contract = None
        self.reentry = None
        self.seen_codes = []

    def transfer(self, sender, recipient, amount):
        if self.reentry and to_hex(sender) == CONTRACT:
            try:
                self.contract.claim(*self.reentry)
            except StateError as e:
                self.seen_codes.append(e.code)
        return super().transfer(sender, recipient, amount)


@pytest.fixture
def signer():
    return AttestationSigner(VERIFIER_KEY)


@pytest.fixture
def clock():
    return Clock(START - 600)


def make_contract(signer, clock, gateway_cls=InMemoryTokenGateway, network="devnet"):
    gateway = gateway_cls({ALICE: 1000, BOB: 1000})
    authority = AuthorityConfig(owner=OWNER, authority_public_key=signer.public_key)
    return LockContract(authority, gateway, CONTRACT, network_config=NETWORKS[network], clock=clock)


@pytest.fixture
def contract(signer, clock):
    return make_contract(signer, clock)


def settle(*users):
    data = {
        "pool_info": {"contract_address": CONTRACT, "verifier_private_key": VERIFIER_KEY},
        "users": [
            {"address": a, "stake_amount": s, "start_time": START, "duration": d, "completion_status": c}
            for a, s, d, c in users
        ],
    }
    return SettlementEngine().settle(data)


def bundle(output, address):
    for u in output.user_results:
        if u.address == address:
            return u
    raise KeyError(address)


def claim_args(u):
    return (u.address, u.start_time, u.duration, u.completion_status,
            [u.signature.r, u.signature.s], u.reward_amount, u.merkle_proof)


@pytest.fixture
def settled(contract, clock):
    """Alice (100, 3600s) completes, Bob (50, 1800s) fails; root published, locks ended."""
    contract.deposit(ALICE, START, 3600, 100)
    contract.deposit(BOB, START, 1800, 50)
    output = settle((ALICE, 100, 3600, True), (BOB, 50, 1800, False))
    contract.publish_root(OWNER, DAY, PERIOD, output.pool_info.merkle_root)
    clock.now = START + 3600
    return output


def assert_code(exc_info, code):
    assert exc_info.value.code == code


# ═══════════════════════════════════════════════════════════════════
# DEPOSIT
# ═══════════════════════════════════════════════════════════════════

def test_deposit_creates_lock(contract):
    events = []
    contract.events.subscribe("lock_created", lambda **data: events.append(data))

    lock = contract.deposit(ALICE, START, 3600, 100)

    assert lock.status == LockStatus.ACTIVE
    assert lock.end_time == START + 3600
    assert (lock.day, lock.period) == (DAY, PERIOD)

    pool = contract.get_pool(DAY, PERIOD)
    assert pool.total_staked == 100
    assert pool.participant_count == 1
    assert not pool.finalized

    assert contract.gateway.balance_of(ALICE) == 900
    assert contract.gateway.balance_of(CONTRACT) == 100
    assert events == [{"owner": ALICE, "day": DAY, "period": PERIOD, "stake_amount": 100,
                       "end_time": START + 3600}]


def test_deposit_start_time_passed(contract, clock):
    clock.now = START
    with pytest.raises(StateError) as exc:
        contract.deposit(ALICE, START, 3600, 100)
    assert_code(exc, "START_TIME_PASSED")


@pytest.mark.parametrize("duration", [59, 86401])
def test_deposit_duration_bounds(contract, duration):
    with pytest.raises(ValidationError) as exc:
        contract.deposit(ALICE, START, duration, 100)
    assert_code(exc, "INVALID_DURATION")


def test_deposit_zero_stake(contract):
    with pytest.raises(ValidationError) as exc:
        contract.deposit(ALICE, START, 3600, 0)
    assert_code(exc, "INVALID_STAKE")


def test_deposit_twice_in_same_pool(contract):
    contract.deposit(ALICE, START, 3600, 100)
    with pytest.raises(StateError) as exc:
        contract.deposit(ALICE, START + 60, 600, 10)
    assert_code(exc, "LOCK_EXISTS")


def test_deposit_into_finalized_pool(contract):
    contract.publish_root(OWNER, DAY, PERIOD, 0)
    with pytest.raises(StateError) as exc:
        contract.deposit(ALICE, START, 3600, 100)
    assert_code(exc, "POOL_FINALIZED")


def test_deposit_below_fiat_minimum(signer, clock):
    contract = make_contract(signer, clock, network="testnet")
    with pytest.raises(ValidationError) as exc:
        contract.deposit(ALICE, START, 3600, 100)
    assert_code(exc, "STAKE_BELOW_MINIMUM")


def test_deposit_transfer_failure_leaves_no_trace(contract):
    with pytest.raises(TransferError):
        contract.deposit(ALICE, START, 3600, 5000)

    assert contract.get_pool(DAY, PERIOD).total_staked == 0
    assert contract.get_lock(ALICE, DAY, PERIOD).status == LockStatus.INACTIVE
    assert contract.gateway.balance_of(ALICE) == 1000


# ═══════════════════════════════════════════════════════════════════
# CLAIM
# ═══════════════════════════════════════════════════════════════════

def test_winner_claim(contract, settled):
    events = []
    contract.events.subscribe("reward_claimed", lambda **data: events.append(data))

    payout = contract.claim(*claim_args(bundle(settled, ALICE)))

    assert payout == 145
    assert contract.gateway.balance_of(ALICE) == 1045
    assert contract.gateway.balance_of(CONTRACT) == 5
    lock = contract.get_lock(ALICE, DAY, PERIOD)
    assert lock.status == LockStatus.COMPLETED
    assert lock.payout == 145
    assert contract.is_claimed(ALICE, DAY, PERIOD)
    assert events[0]["reward_amount"] == 45
    assert events[0]["completed"] is True


def test_loser_claim_pays_nothing(contract, settled):
    payout = contract.claim(*claim_args(bundle(settled, BOB)))

    assert payout == 0
    assert contract.gateway.balance_of(BOB) == 950
    assert contract.get_lock(BOB, DAY, PERIOD).status == LockStatus.COMPLETED
    assert contract.is_claimed(BOB, DAY, PERIOD)


def test_replay_rejected(contract, settled):
    args = claim_args(bundle(settled, ALICE))
    contract.claim(*args)
    with pytest.raises(StateError) as exc:
        contract.claim(*args)
    assert_code(exc, "ALREADY_CLAIMED")
    assert contract.gateway.balance_of(ALICE) == 1045


def test_claim_without_lock(contract, settled):
    alice = bundle(settled, ALICE)
    args = ("0xc3",) + claim_args(alice)[1:]
    with pytest.raises(StateError) as exc:
        contract.claim(*args)
    assert_code(exc, "NOT_LOCK_OWNER")


def test_claim_before_lock_ends(contract, settled, clock):
    clock.now = START + 3599
    with pytest.raises(StateError) as exc:
        contract.claim(*claim_args(bundle(settled, ALICE)))
    assert_code(exc, "LOCK_NOT_EXPIRED")


def test_expiry_checked_before_finalization(contract, clock, signer):
    contract.deposit(ALICE, START, 3600, 100)
    attestation = signer.attest(ALICE, START, 3600, True)
    clock.now = START + 10
    with pytest.raises(StateError) as exc:
        contract.claim(ALICE, START, 3600, True, attestation.signature, 0, [])
    assert_code(exc, "LOCK_NOT_EXPIRED")


def test_claim_pool_not_finalized(contract, clock, signer):
    contract.deposit(ALICE, START, 3600, 100)
    attestation = signer.attest(ALICE, START, 3600, True)
    clock.now = START + 3600
    with pytest.raises(StateError) as exc:
        contract.claim(ALICE, START, 3600, True, attestation.signature, 0, [])
    assert_code(exc, "POOL_NOT_FINALIZED")


def test_claim_with_someone_elses_signature(contract, settled):
    alice, bob = bundle(settled, ALICE), bundle(settled, BOB)
    args = list(claim_args(alice))
    args[4] = [bob.signature.r, bob.signature.s]
    with pytest.raises(CryptoError) as exc:
        contract.claim(*args)
    assert_code(exc, "INVALID_SIGNATURE")


def test_loser_cannot_claim_as_winner(contract, settled):
    bob = bundle(settled, BOB)
    with pytest.raises(CryptoError) as exc:
        contract.claim(BOB, START, 1800, True, [bob.signature.r, bob.signature.s], "0", [])
    assert_code(exc, "INVALID_SIGNATURE")


def test_inflated_reward_rejected(contract, settled):
    args = list(claim_args(bundle(settled, ALICE)))
    args[5] = "46"
    with pytest.raises(CryptoError) as exc:
        contract.claim(*args)
    assert_code(exc, "INVALID_PROOF")
    assert not contract.is_claimed(ALICE, DAY, PERIOD)

    # the honest claim still goes through
    assert contract.claim(*claim_args(bundle(settled, ALICE))) == 145


def test_loser_with_reward_rejected(contract, settled):
    args = list(claim_args(bundle(settled, BOB)))
    args[5] = "5"
    with pytest.raises(StateError) as exc:
        contract.claim(*args)
    assert_code(exc, "NONZERO_REWARD_FOR_LOSER")


def test_claim_must_match_lock(contract, settled, signer):
    attestation = signer.attest(BOB, START + 5, 1800, False)
    with pytest.raises(StateError) as exc:
        contract.claim(BOB, START + 5, 1800, False, attestation.signature, 0, [])
    assert_code(exc, "LOCK_MISMATCH")


def test_zero_root_pool_winners_reclaim_stake(contract, clock):
    contract.deposit(ALICE, START, 3600, 100)
    contract.deposit(BOB, START, 1800, 50)
    output = settle((ALICE, 100, 3600, True), (BOB, 50, 1800, True))
    assert output.pool_info.merkle_root == "0x0"
    contract.publish_root(OWNER, DAY, PERIOD, output.pool_info.merkle_root)
    clock.now = START + 3600

    assert contract.claim(*claim_args(bundle(output, ALICE))) == 100
    assert contract.claim(*claim_args(bundle(output, BOB))) == 50
    assert contract.gateway.balance_of(CONTRACT) == 0


def test_malformed_reward_rejected(contract, settled):
    args = list(claim_args(bundle(settled, ALICE)))
    args[5] = "lots"
    with pytest.raises(ValidationError):
        contract.claim(*args)


# ═══════════════════════════════════════════════════════════════════
# ATOMICITY & RE-ENTRANCY
# ═══════════════════════════════════════════════════════════════════

def test_failed_payout_rolls_back(signer, clock):
    contract = make_contract(signer, clock, gateway_cls=FlakyGateway)
    contract.deposit(ALICE, START, 3600, 100)
    contract.deposit(BOB, START, 1800, 50)
    output = settle((ALICE, 100, 3600, True), (BOB, 50, 1800, False))
    contract.publish_root(OWNER, DAY, PERIOD, output.pool_info.merkle_root)
    clock.now = START + 3600

    contract.gateway.fail_payouts = True
    with pytest.raises(TransferError) as exc:
        contract.claim(*claim_args(bundle(output, ALICE)))
    assert_code(exc, "TRANSFER_FAILED")
    assert not contract.is_claimed(ALICE, DAY, PERIOD)
    assert contract.get_lock(ALICE, DAY, PERIOD).status == LockStatus.ACTIVE

    contract.gateway.fail_payouts = False
    assert contract.claim(*claim_args(bundle(output, ALICE))) == 145


def test_reentrant_claim_rejected(signer, clock):
    contract = make_contract(signer, clock, gateway_cls=ReentrantGateway)
    contract.gateway.contract = contract
    contract.deposit(ALICE, START, 3600, 100)
    contract.deposit(BOB, START, 1800, 50)
    output = settle((ALICE, 100, 3600, True), (BOB, 50, 1800, False))
    contract.publish_root(OWNER, DAY, PERIOD, output.pool_info.merkle_root)
    clock.now = START + 3600

    args = claim_args(bundle(output, ALICE))
    contract.gateway.reentry = args
    assert contract.claim(*args) == 145

    assert contract.gateway.seen_codes == ["REENTRANT_CALL"]
    assert contract.gateway.balance_of(ALICE) == 1045


# ═══════════════════════════════════════════════════════════════════
# ADMINISTRATION
# ═══════════════════════════════════════════════════════════════════

def test_publish_root_requires_owner(contract):
    with pytest.raises(StateError) as exc:
        contract.publish_root(ALICE, DAY, PERIOD, 123)
    assert_code(exc, "NOT_AUTHORITY")
    assert not contract.get_pool(DAY, PERIOD).finalized


@pytest.mark.parametrize("day,period", [(DAY, 4), (DAY, -1), (-1, 0)])
def test_publish_root_invalid_period(contract, day, period):
    with pytest.raises(StateError) as exc:
        contract.publish_root(OWNER, day, period, 123)
    assert_code(exc, "INVALID_PERIOD")


def test_publish_root_overwrite(contract):
    contract.publish_root(OWNER, DAY, PERIOD, 123)
    contract.publish_root(OWNER, DAY, PERIOD, "0x456")
    assert contract.get_merkle_root(DAY, PERIOD) == 0x456
    assert contract.get_pool(DAY, PERIOD).finalized


def test_publish_root_rejects_non_felt(contract):
    with pytest.raises(ValidationError):
        contract.publish_root(OWNER, DAY, PERIOD, 2**252)


def test_set_authority_key(contract, settled):
    other = AttestationSigner("0x" + "34" * 31)
    with pytest.raises(StateError) as exc:
        contract.set_authority_key(ALICE, other.public_key)
    assert_code(exc, "NOT_AUTHORITY")

    contract.set_authority_key(OWNER, other.public_key)
    assert contract.get_authority_key() == other.public_key

    with pytest.raises(CryptoError):
        contract.claim(*claim_args(bundle(settled, ALICE)))


def test_rejected_calls_are_protocol_errors(contract):
    with pytest.raises(ProtocolError):
        contract.set_authority_key(OWNER, 0)


def test_pool_key_accessor(contract):
    key = contract.get_pool_key(START)
    assert (key.day, key.period) == (DAY, PERIOD)
