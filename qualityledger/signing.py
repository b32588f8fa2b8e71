"""
Input attestation with Ed25519 (RFC 8032).

The off-ledger encryption client runs an attester that signs, for each
ciphertext it produces, the binding of that ciphertext to one sender and
one ledger instance. The ledger validates those signatures against an
AttesterTrustStore of public keys. A ciphertext attested for another
sender or another ledger does not verify.
"""

import base64
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from .hashing import binding_message

ALGORITHM = "Ed25519"


@dataclass
class AttesterKey:
    """Ed25519 key pair of an input attester."""
    key_id: str
    signing_key: bytes
    verify_key: bytes
    valid_from: datetime
    valid_until: datetime
    algorithm: str = ALGORITHM

    def to_trust_store_entry(self) -> Dict[str, Any]:
        """Public half, in trust store entry format."""
        return {
            "key_id": self.key_id,
            "algorithm": self.algorithm,
            "public_key": base64.b64encode(self.verify_key).decode('utf-8'),
            "valid_from": self.valid_from.isoformat().replace("+00:00", "Z"),
            "valid_until": self.valid_until.isoformat().replace("+00:00", "Z"),
            "key_usage": ["attest_inputs"],
        }


class InputAttester:
    """
    Signs ciphertext bindings on behalf of the encryption client.

    Usage:
        attester = InputAttester.generate("kid:attester-001")
        proof = attester.attest(handle_id, sender, ledger_address)
    """

    def __init__(self, key: AttesterKey):
        self.key = key
        self._signing_key = SigningKey(key.signing_key)

    @classmethod
    def generate(cls, key_id: str, validity_days: int = 365) -> "InputAttester":
        """Generate a fresh Ed25519 attester key."""
        signing_key = SigningKey.generate()
        now = datetime.now(timezone.utc)
        key = AttesterKey(
            key_id=key_id,
            signing_key=bytes(signing_key),
            verify_key=bytes(signing_key.verify_key),
            valid_from=now,
            valid_until=now + timedelta(days=validity_days),
        )
        return cls(key)

    @property
    def key_id(self) -> str:
        return self.key.key_id

    def attest(self, handle_id: str, sender: str, ledger_address: str) -> Dict[str, str]:
        """
        Produce an input proof for one ciphertext.

        Returns:
            Proof dict with key_id, algorithm and base64 signature
        """
        now = datetime.now(timezone.utc)
        if now < self.key.valid_from or now > self.key.valid_until:
            raise ValueError(f"Attester key {self.key_id} is not currently valid")

        signed = self._signing_key.sign(binding_message(handle_id, sender, ledger_address))
        return {
            "key_id": self.key_id,
            "algorithm": ALGORITHM,
            "sig": base64.b64encode(signed.signature).decode('utf-8'),
        }

    def trust_store_entry(self) -> Dict[str, Any]:
        return self.key.to_trust_store_entry()


class AttesterTrustStore:
    """Public keys of attesters whose proofs the ledger accepts."""

    def __init__(self, entries: Optional[Iterable[Dict[str, Any]]] = None):
        self._entries: Dict[str, Dict[str, Any]] = {}
        for entry in entries or []:
            self.add(entry)

    def add(self, entry: Dict[str, Any]) -> None:
        if entry.get("algorithm") != ALGORITHM:
            raise ValueError(f"Unsupported attester algorithm: {entry.get('algorithm')}")
        # Decode eagerly so a malformed key fails at registration, not at submission.
        VerifyKey(base64.b64decode(entry["public_key"]))
        self._entries[entry["key_id"]] = dict(entry)

    def key_ids(self) -> List[str]:
        return list(self._entries)

    def verify(
        self,
        proof: Dict[str, Any],
        handle_id: str,
        sender: str,
        ledger_address: str,
        at: Optional[datetime] = None,
    ) -> bool:
        """
        Verify an input proof against the binding it claims.

        Returns:
            True only if the key is known and currently valid and the
            signature covers exactly (handle_id, sender, ledger_address).
        """
        entry = self._entries.get(proof.get("key_id"))
        if entry is None or proof.get("algorithm") != ALGORITHM:
            return False

        at = at or datetime.now(timezone.utc)
        valid_from = datetime.fromisoformat(entry["valid_from"].replace("Z", "+00:00"))
        valid_until = datetime.fromisoformat(entry["valid_until"].replace("Z", "+00:00"))
        if at < valid_from or at > valid_until:
            return False

        try:
            signature = base64.b64decode(proof.get("sig", ""), validate=True)
            verify_key = VerifyKey(base64.b64decode(entry["public_key"]))
            verify_key.verify(binding_message(handle_id, sender, ledger_address), signature)
        except (BadSignatureError, ValueError, TypeError):
            return False
        return True
