"""
Attestation signer tests.
"""

import pytest

from lockstake.protocol.crypto.hash import outcome_message_hash
from lockstake.protocol.crypto.keys import EC_ORDER, parse_private_key, public_key_from_private
from lockstake.settlement import AttestationSigner

VERIFIER_KEY = "0x" + "12" * 31
OTHER_KEY = "0x" + "34" * 31
START = 1699923600


@pytest.fixture
def signer():
    return AttestationSigner(VERIFIER_KEY)


def test_public_key_matches_private(signer):
    assert signer.public_key == public_key_from_private(parse_private_key(VERIFIER_KEY))


def test_attestation_hash(signer):
    attestation = signer.attest("0xa1", START, 3600, True)
    assert attestation.message_hash == outcome_message_hash("0xa1", START, 3600, True)
    assert attestation.public_key == signer.public_key


def test_signing_is_deterministic(signer):
    first = signer.attest("0xa1", START, 3600, True)
    second = AttestationSigner(VERIFIER_KEY).attest("0xa1", START, 3600, True)
    assert first == second


def test_verify_roundtrip(signer):
    attestation = signer.attest("0xa1", START, 3600, False)
    assert AttestationSigner.verify("0xa1", START, 3600, False, attestation.signature, signer.public_key)


def test_verify_accepts_hex_signature(signer):
    output = signer.attest("0xa1", START, 3600, True).to_output()
    assert AttestationSigner.verify("0xa1", START, 3600, True, [output.r, output.s], signer.public_key)


def test_flipped_outcome_fails(signer):
    attestation = signer.attest("0xb2", START, 1800, False)
    assert not AttestationSigner.verify("0xb2", START, 1800, True, attestation.signature, signer.public_key)


@pytest.mark.parametrize("address,start,duration", [
    ("0xb3", START, 1800),
    ("0xb2", START + 1, 1800),
    ("0xb2", START, 1801),
])
def test_altered_fields_fail(signer, address, start, duration):
    attestation = signer.attest("0xb2", START, 1800, True)
    assert not AttestationSigner.verify(address, start, duration, True, attestation.signature, signer.public_key)


def test_wrong_key_fails(signer):
    attestation = signer.attest("0xa1", START, 3600, True)
    other = AttestationSigner(OTHER_KEY)
    assert not AttestationSigner.verify("0xa1", START, 3600, True, attestation.signature, other.public_key)


def test_malformed_signature_fails(signer):
    attestation = signer.attest("0xa1", START, 3600, True)
    assert not AttestationSigner.verify("0xa1", START, 3600, True, [attestation.r], signer.public_key)
    assert not AttestationSigner.verify("0xa1", START, 3600, True, ["zz", "0x1"], signer.public_key)


@pytest.mark.parametrize("bad_key", [0, EC_ORDER, "not-hex"])
def test_invalid_private_key(bad_key):
    with pytest.raises(ValueError):
        AttestationSigner(bad_key)
