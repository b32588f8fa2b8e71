"""
Ledger Hashing

All digests use SHA-256 with lowercase hexadecimal output. Two formats
are in use:

- "sha256:<hex>"  for binding digests and state fingerprints
- "0x<hex>"       for ciphertext handle identifiers (32 bytes, like an
                  on-chain bytes32 handle)
"""

import hashlib
from typing import Any, Union

from .canonicalization import canonicalize

PROTOCOL_ID = 10001

ZERO_HANDLE_ID = "0x" + "00" * 32


def sha256_hash(data: Union[bytes, str]) -> str:
    """
    Compute SHA-256 with the ledger prefix.

    Returns:
        Hash string in format "sha256:abcdef..."
    """
    if isinstance(data, str):
        data = data.encode('utf-8')

    digest = hashlib.sha256(data).hexdigest().lower()
    return f"sha256:{digest}"


def handle_id_for(serialized_ciphertext: bytes) -> str:
    """
    Derive the handle identifier of a ciphertext from its serialized form.

    The identifier is content-addressed so a proof that names a handle
    also pins the exact ciphertext bytes behind it.
    """
    return "0x" + hashlib.sha256(serialized_ciphertext).hexdigest().lower()


def binding_document(handle_id: str, sender: str, ledger_address: str) -> dict:
    """The document an input proof commits to."""
    return {
        "handle": handle_id,
        "ledger": ledger_address,
        "protocol": PROTOCOL_ID,
        "sender": sender,
    }


def binding_message(handle_id: str, sender: str, ledger_address: str) -> bytes:
    """Canonical bytes of the binding document (what gets signed)."""
    return canonicalize(binding_document(handle_id, sender, ledger_address))


def binding_digest(handle_id: str, sender: str, ledger_address: str) -> str:
    """Digest of the binding document (what the digest stub compares)."""
    return sha256_hash(binding_message(handle_id, sender, ledger_address))


def state_digest(snapshot: Any) -> str:
    """Fingerprint of a JSON-able state snapshot, used for before/after checks."""
    return sha256_hash(canonicalize(snapshot))


def verify_digest(declared: str, data: Union[bytes, str]) -> bool:
    """Recompute a "sha256:" digest from source data and compare."""
    if not isinstance(declared, str) or not declared.startswith("sha256:"):
        return False
    return sha256_hash(data) == declared
