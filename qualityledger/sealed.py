"""
Sealed-value boundary.

The ledger never sees plaintext. It holds CiphertextHandles and combines
them through a SealedBackend that supports exactly three things: adding
two sealed values, adding a public constant to a sealed value, and
serializing a sealed value so its handle id can be derived. Decryption
lives outside the ledger (see decryption.py).

Two backends ship:

- PlaintextBackend: a mock whose "ciphertext" is the value itself. For
  unit tests only.
- PaillierBackend: additively homomorphic encryption via python-paillier
  (phe). The ledger holds the public key only.

Both emulate an unsigned fixed-width domain (default 32 bits): results
are interpreted modulo 2**value_bits.
"""

import hashlib
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from phe import paillier

from .hashing import ZERO_HANDLE_ID, handle_id_for

DEFAULT_VALUE_BITS = 32


@dataclass(frozen=True)
class CiphertextHandle:
    """
    Opaque reference to an encrypted value.

    Equality and hashing use handle_id only. `sealed` is the backend's
    ciphertext object and is None for the uninitialized sentinel.
    """
    handle_id: str
    sealed: Any = field(default=None, compare=False, repr=False)

    @property
    def is_initialized(self) -> bool:
        return self.sealed is not None

    def __str__(self) -> str:
        return self.handle_id


UNINITIALIZED_HANDLE = CiphertextHandle(handle_id=ZERO_HANDLE_ID)


class SealedBackend(ABC):
    """Abstract homomorphic backend. Public-key operations only."""

    scheme: str = "abstract"

    def __init__(self, value_bits: int = DEFAULT_VALUE_BITS):
        if value_bits < 1:
            raise ValueError("value_bits must be positive")
        self.value_bits = value_bits

    @property
    def modulus(self) -> int:
        return 1 << self.value_bits

    def check_domain(self, value: int) -> int:
        """Reject values outside the unsigned fixed-width domain."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Sealed values must be int, got {type(value).__name__}")
        if value < 0 or value >= self.modulus:
            raise ValueError(f"Value {value} outside uint{self.value_bits} domain")
        return value

    def seal(self, sealed: Any) -> CiphertextHandle:
        """Wrap a backend ciphertext in a content-addressed handle."""
        return CiphertextHandle(handle_id=handle_id_for(self.serialize(sealed)), sealed=sealed)

    def handle_matches(self, handle: CiphertextHandle) -> bool:
        """True if the handle id is the digest of its own payload."""
        return handle_id_for(self.serialize(handle.sealed)) == handle.handle_id

    @abstractmethod
    def encrypt(self, value: int) -> CiphertextHandle:
        """Encrypt a value under the backend's public key (client side)."""

    @abstractmethod
    def add(self, a: CiphertextHandle, b: CiphertextHandle) -> CiphertextHandle:
        """Homomorphic addition of two sealed values."""

    @abstractmethod
    def add_plain(self, a: CiphertextHandle, constant: int) -> CiphertextHandle:
        """Homomorphic addition of a public constant."""

    @abstractmethod
    def serialize(self, sealed: Any) -> bytes:
        """Stable byte form of a ciphertext, used for handle ids."""

    @abstractmethod
    def owns(self, handle: CiphertextHandle) -> bool:
        """True if the handle's payload was produced under this backend's key."""


# =============================================================================
# PLAINTEXT MOCK
# =============================================================================

@dataclass(frozen=True)
class PlainCiphertext:
    """Mock ciphertext: the plaintext, a per-backend key tag and a nonce."""
    value: int
    key_tag: str
    nonce: str


class PlaintextBackend(SealedBackend):
    """
    Mock backend for unit tests.

    The payload is readable by anyone holding the handle, so this backend
    gives no confidentiality. It exists so aggregation logic can be tested
    without key generation.
    """

    scheme = "plaintext-mock"

    def __init__(self, value_bits: int = DEFAULT_VALUE_BITS, key_tag: Optional[str] = None):
        super().__init__(value_bits)
        self.key_tag = key_tag or secrets.token_hex(8)

    def encrypt(self, value: int) -> CiphertextHandle:
        self.check_domain(value)
        return self.seal(PlainCiphertext(value=value, key_tag=self.key_tag, nonce=secrets.token_hex(8)))

    def add(self, a: CiphertextHandle, b: CiphertextHandle) -> CiphertextHandle:
        nonce = hashlib.sha256(f"{a.sealed.nonce}+{b.sealed.nonce}".encode()).hexdigest()[:16]
        return self.seal(PlainCiphertext(
            value=(a.sealed.value + b.sealed.value) % self.modulus,
            key_tag=self.key_tag,
            nonce=nonce,
        ))

    def add_plain(self, a: CiphertextHandle, constant: int) -> CiphertextHandle:
        nonce = hashlib.sha256(f"{a.sealed.nonce}+{constant}".encode()).hexdigest()[:16]
        return self.seal(PlainCiphertext(
            value=(a.sealed.value + constant) % self.modulus,
            key_tag=self.key_tag,
            nonce=nonce,
        ))

    def serialize(self, sealed: PlainCiphertext) -> bytes:
        return f"{self.scheme}:{sealed.key_tag}:{sealed.nonce}:{sealed.value}".encode('utf-8')

    def owns(self, handle: CiphertextHandle) -> bool:
        sealed = handle.sealed
        return isinstance(sealed, PlainCiphertext) and sealed.key_tag == self.key_tag


# =============================================================================
# PAILLIER
# =============================================================================

class PaillierBackend(SealedBackend):
    """
    Additively homomorphic backend on python-paillier.

    Paillier plaintexts live modulo n (hundreds of bits), so sums never
    wrap on the ledger; the fixed-width reduction happens at decryption.
    """

    scheme = "paillier"

    def __init__(self, public_key: paillier.PaillierPublicKey, value_bits: int = DEFAULT_VALUE_BITS):
        super().__init__(value_bits)
        self.public_key = public_key

    def encrypt(self, value: int) -> CiphertextHandle:
        self.check_domain(value)
        return self.seal(self.public_key.encrypt(value))

    def add(self, a: CiphertextHandle, b: CiphertextHandle) -> CiphertextHandle:
        return self.seal(a.sealed + b.sealed)

    def add_plain(self, a: CiphertextHandle, constant: int) -> CiphertextHandle:
        return self.seal(a.sealed + constant)

    def serialize(self, sealed: paillier.EncryptedNumber) -> bytes:
        return (
            f"{self.scheme}:{self.public_key.n}:{sealed.exponent}:"
            f"{sealed.ciphertext(be_secure=False)}"
        ).encode('utf-8')

    def owns(self, handle: CiphertextHandle) -> bool:
        sealed = handle.sealed
        return isinstance(sealed, paillier.EncryptedNumber) and sealed.public_key == self.public_key
