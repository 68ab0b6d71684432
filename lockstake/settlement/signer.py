# MIT License
# Copyright (c) 2025 Hashborn

"""
Attestation Signer

Signs each participant's outcome with the verifier's private key.
The lock contract verifies the signature with the stored authority key.

Flow:
1. Settlement decides completed / failed for each participant
2. message_hash = H(address, start_time, duration, completed)
3. Signer signs message_hash on the STARK curve
4. Contract recomputes message_hash from the claim and verifies
"""

from dataclasses import dataclass
from typing import Sequence, Union

from ..protocol.crypto.hash import outcome_message_hash, to_hex
from ..protocol.crypto.keys import parse_private_key, public_key_from_private, sign, verify
from ..protocol.types.settlement import SignatureOutput


@dataclass(frozen=True)
class Attestation:
    message_hash: int
    r: int
    s: int
    public_key: int

    @property
    def signature(self):
        return (self.r, self.s)

    def to_output(self) -> SignatureOutput:
        return SignatureOutput(
            r=to_hex(self.r),
            s=to_hex(self.s),
            message_hash=to_hex(self.message_hash),
            public_key=to_hex(self.public_key),
        )


class AttestationSigner:
    """
    Signs participant outcomes.

    Signing is deterministic: the same inputs and key always give the same
    signature, so any party holding the key can re-sign and compare.
    """

    def __init__(self, private_key: Union[int, str]):
        """
        Initialize signer with the verifier's private key.

        Args:
            private_key: STARK private key (int or hex string)
        """
        self.private_key = parse_private_key(private_key)
        self.public_key = public_key_from_private(self.private_key)

    def attest(self, address: str, start_time: int, duration: int, completed: bool) -> Attestation:
        message_hash = outcome_message_hash(address, start_time, duration, completed)
        r, s = sign(message_hash, self.private_key)
        return Attestation(message_hash=message_hash, r=r, s=s, public_key=self.public_key)

    @staticmethod
    def verify(
        address: str,
        start_time: int,
        duration: int,
        completed: bool,
        signature: Sequence[Union[int, str]],
        public_key: int
    ) -> bool:
        """
        Verify an attestation (contract-side check).

        Args:
            address: Participant address
            start_time: Claimed start time
            duration: Claimed duration
            completed: Claimed completion flag
            signature: (r, s)
            public_key: Authority public key

        Returns:
            True if signature is valid for the recomputed message hash
        """
        message_hash = outcome_message_hash(address, start_time, duration, completed)
        return verify(message_hash, signature, public_key)
