"""
Inbound ciphertext validation.

A submission carries several (handle, proof) pairs. Each pair is checked
independently; the first failure rejects the whole submission with
InvalidProof.

Checks common to every validator:
1. The handle is a CiphertextHandle with a payload
2. The payload was produced under this ledger's backend key
3. The handle id is the digest of the payload
4. The proof binds the handle to exactly (sender, ledger address)

Step 4 is pluggable: SignedInputValidator checks an Ed25519 attestation,
DigestInputValidator compares a deterministic binding digest.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping

from .errors import InvalidProof
from .hashing import binding_digest
from .sealed import CiphertextHandle, SealedBackend
from .signing import AttesterTrustStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidatedValue:
    """A ciphertext that passed validation for one sender on one ledger."""
    handle: CiphertextHandle
    sender: str
    ledger_address: str

    @property
    def handle_id(self) -> str:
        return self.handle.handle_id


class CiphertextValidator(ABC):
    """Validates inbound ciphertexts against their sender and ledger binding."""

    def __init__(self, backend: SealedBackend):
        self.backend = backend

    def validate(
        self,
        handle: Any,
        proof: Any,
        expected_sender: str,
        ledger_address: str,
    ) -> ValidatedValue:
        """
        Validate one ciphertext and its proof.

        Returns:
            ValidatedValue wrapping the handle

        Raises:
            InvalidProof: on any failed check
        """
        if not isinstance(handle, CiphertextHandle) or not handle.is_initialized:
            raise InvalidProof("Ciphertext handle missing or empty")

        if not self.backend.owns(handle):
            raise InvalidProof(
                "Ciphertext was not produced under this ledger's key",
                {"handle": handle.handle_id, "scheme": self.backend.scheme},
            )

        if not self.backend.handle_matches(handle):
            raise InvalidProof("Handle id does not match ciphertext", {"handle": handle.handle_id})

        if not self._check_binding(handle.handle_id, proof, expected_sender, ledger_address):
            logger.debug("Binding check failed for handle %s", handle.handle_id)
            raise InvalidProof(
                "Proof does not bind ciphertext to sender and ledger",
                {"handle": handle.handle_id, "sender": expected_sender},
            )

        return ValidatedValue(handle=handle, sender=expected_sender, ledger_address=ledger_address)

    @abstractmethod
    def _check_binding(self, handle_id: str, proof: Any, sender: str, ledger_address: str) -> bool:
        """True if the proof binds handle_id to (sender, ledger_address)."""


class SignedInputValidator(CiphertextValidator):
    """Accepts proofs signed by an attester in the trust store."""

    def __init__(self, backend: SealedBackend, trust_store: AttesterTrustStore):
        super().__init__(backend)
        self.trust_store = trust_store

    def _check_binding(self, handle_id, proof, sender, ledger_address) -> bool:
        if not isinstance(proof, Mapping):
            return False
        return self.trust_store.verify(dict(proof), handle_id, sender, ledger_address)


class DigestInputValidator(CiphertextValidator):
    """
    Deterministic stub: the proof is the binding digest itself.

    Anyone can forge such a proof, so this is for tests and local runs.
    It still rejects a ciphertext replayed by another sender or against
    another ledger, because the digest covers both.
    """

    def _check_binding(self, handle_id, proof, sender, ledger_address) -> bool:
        return isinstance(proof, str) and proof == binding_digest(handle_id, sender, ledger_address)
