"""
Decryption service boundary.

The ledger never decrypts. Consumers ask a decryption service, which
holds the private key and releases a plaintext only if the ledger's
permission table allows it: publicly decryptable handles to anyone,
other handles to the principals they were granted to.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from phe import paillier

from .errors import Unauthorized
from .sealed import DEFAULT_VALUE_BITS, CiphertextHandle, PaillierBackend, PlaintextBackend


class Decryptor(ABC):
    """Private-key side of a sealed backend."""

    @abstractmethod
    def decrypt(self, handle: CiphertextHandle) -> int:
        """Plaintext of an initialized handle, in the backend's uint domain."""


class PlaintextDecryptor(Decryptor):

    def __init__(self, backend: PlaintextBackend):
        self.backend = backend

    def decrypt(self, handle: CiphertextHandle) -> int:
        if not self.backend.owns(handle):
            raise ValueError("Handle does not belong to this backend")
        return handle.sealed.value % self.backend.modulus


class PaillierDecryptor(Decryptor):

    def __init__(self, private_key: paillier.PaillierPrivateKey, value_bits: int = DEFAULT_VALUE_BITS):
        self.private_key = private_key
        self.value_bits = value_bits

    def decrypt(self, handle: CiphertextHandle) -> int:
        sealed = handle.sealed
        if not isinstance(sealed, paillier.EncryptedNumber) or sealed.public_key != self.private_key.public_key:
            raise ValueError("Handle does not belong to this key")
        return int(self.private_key.decrypt(sealed)) % (1 << self.value_bits)


def paillier_keypair(
    n_length: int = paillier.DEFAULT_KEYSIZE,
    value_bits: int = DEFAULT_VALUE_BITS,
) -> Tuple[PaillierBackend, PaillierDecryptor]:
    """Generate a Paillier key pair split into ledger and decryptor halves."""
    public_key, private_key = paillier.generate_paillier_keypair(n_length=n_length)
    return PaillierBackend(public_key, value_bits), PaillierDecryptor(private_key, value_bits)


def paillier_keypair_from_settings(settings: Any = None) -> Tuple[PaillierBackend, PaillierDecryptor]:
    """Key pair sized by QUALITY_LEDGER_PAILLIER_BITS, for QUALITY_LEDGER_VALUE_BITS values."""
    if settings is None:
        from .config import load_settings
        settings = load_settings()
    return paillier_keypair(n_length=settings.paillier_bits, value_bits=settings.value_bits)


@dataclass(frozen=True)
class StatisticsReport:
    """Decrypted statistics of one scope."""
    scope: Optional[int]
    count: int
    sums: Dict[str, int]
    total: int

    @property
    def averages(self) -> Dict[str, float]:
        if self.count == 0:
            return {c: 0.0 for c in self.sums}
        return {c: s / self.count for c, s in self.sums.items()}

    @property
    def average_total(self) -> float:
        return self.total / self.count if self.count else 0.0


class DecryptionService:
    """Releases plaintexts according to a ledger's permission table."""

    def __init__(self, decryptor: Decryptor, ledger):
        self.decryptor = decryptor
        self.ledger = ledger

    def public_decrypt(self, handle: CiphertextHandle) -> int:
        if not handle.is_initialized:
            return 0
        if not self.ledger.is_publicly_decryptable(handle.handle_id):
            raise Unauthorized("Handle is not publicly decryptable", {"handle": handle.handle_id})
        return self.decryptor.decrypt(handle)

    def user_decrypt(self, handle: CiphertextHandle, requester: str) -> int:
        if not handle.is_initialized:
            return 0
        if not self.ledger.is_decryption_allowed(handle.handle_id, requester):
            raise Unauthorized(
                "Requester has no decryption permission for handle",
                {"handle": handle.handle_id, "requester": requester},
            )
        return self.decryptor.decrypt(handle)

    def decrypt_statistics(self, scope: Optional[int] = None, requester: Optional[str] = None) -> StatisticsReport:
        """
        Decrypt a scope's statistics.

        With no requester every handle must be publicly decryptable;
        otherwise the requester's grants are used.
        """
        stats = self.ledger.get_statistics(scope)

        def reveal(handle: CiphertextHandle) -> int:
            if requester is None:
                return self.public_decrypt(handle)
            return self.user_decrypt(handle, requester)

        return StatisticsReport(
            scope=scope,
            count=reveal(stats.count),
            sums={c: reveal(h) for c, h in stats.sums.items()},
            total=reveal(stats.total),
        )
