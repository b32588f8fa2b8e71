"""
Off-ledger encryption client.

Participants encrypt their scores before anything reaches the ledger,
so this is also the only place scores can be range-checked: the ledger
cannot inspect a ciphertext. Each ciphertext gets a proof binding it to
(sender, ledger address), either an Ed25519 attestation or, without an
attester, the deterministic binding digest accepted by
DigestInputValidator.

Usage:
    client = RatingClient(backend, ledger.ledger_address, attester=attester)
    submission = client.build_submission("0xalice", {"service": 8, ...})
    ledger.submit_rating("0xalice", submission, facility_id=1)
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from .hashing import binding_digest
from .models import DEFAULT_CATEGORIES, EncryptedInput, RatingSubmission
from .sealed import SealedBackend
from .signing import InputAttester

IDENTITY_PLACEHOLDER = 1


class EncryptedInputBuilder:
    """
    Collects plaintext values for one (ledger, sender) pair and encrypts them.

    Every produced input carries its own proof, so inputs can be submitted
    independently.
    """

    def __init__(
        self,
        backend: SealedBackend,
        ledger_address: str,
        sender: str,
        attester: Optional[InputAttester] = None,
    ):
        self.backend = backend
        self.ledger_address = ledger_address
        self.sender = sender
        self.attester = attester
        self._values: List[int] = []

    def add(self, value: int) -> "EncryptedInputBuilder":
        self._values.append(self.backend.check_domain(value))
        return self

    def encrypt(self) -> List[EncryptedInput]:
        inputs = []
        for value in self._values:
            handle = self.backend.encrypt(value)
            inputs.append(EncryptedInput(handle=handle, proof=self._prove(handle.handle_id)))
        self._values = []
        return inputs

    def _prove(self, handle_id: str) -> Any:
        if self.attester is not None:
            return self.attester.attest(handle_id, self.sender, self.ledger_address)
        return binding_digest(handle_id, self.sender, self.ledger_address)


class RatingClient:
    """Builds complete rating submissions for one ledger."""

    def __init__(
        self,
        backend: SealedBackend,
        ledger_address: str,
        attester: Optional[InputAttester] = None,
        categories: Sequence[str] = DEFAULT_CATEGORIES,
        score_min: int = 0,
        score_max: int = 10,
    ):
        if score_min > score_max:
            raise ValueError(f"Invalid score range {score_min}..{score_max}")
        self.backend = backend
        self.ledger_address = ledger_address
        self.attester = attester
        self.categories = tuple(categories)
        self.score_min = score_min
        self.score_max = score_max

    @classmethod
    def from_settings(cls, backend: SealedBackend, ledger_address: str, settings: Any, **kwargs) -> "RatingClient":
        return cls(
            backend,
            ledger_address,
            categories=settings.categories,
            score_min=settings.score_min,
            score_max=settings.score_max,
            **kwargs,
        )

    def check_scores(self, scores: Mapping[str, int]) -> Dict[str, int]:
        """
        Validate plaintext scores before encryption.

        Raises:
            ValueError: on a missing, unknown or out-of-range score
        """
        missing = [c for c in self.categories if c not in scores]
        unknown = [c for c in scores if c not in self.categories]
        if missing or unknown:
            raise ValueError(f"Scores must cover exactly {list(self.categories)}; missing={missing} unknown={unknown}")

        checked = {}
        for category in self.categories:
            value = scores[category]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Score for {category} must be an integer")
            if not self.score_min <= value <= self.score_max:
                raise ValueError(
                    f"Score for {category} is {value}, outside {self.score_min}..{self.score_max}"
                )
            checked[category] = value
        return checked

    def build_submission(
        self,
        sender: str,
        scores: Mapping[str, int],
        identity: int = IDENTITY_PLACEHOLDER,
    ) -> RatingSubmission:
        checked = self.check_scores(scores)

        builder = EncryptedInputBuilder(self.backend, self.ledger_address, sender, self.attester)
        builder.add(identity)
        for category in self.categories:
            builder.add(checked[category])
        identity_input, *score_inputs = builder.encrypt()

        return RatingSubmission(
            identity=identity_input,
            scores=dict(zip(self.categories, score_inputs)),
        )

    def build_from_sequence(self, sender: str, scores: Sequence[int], identity: int = IDENTITY_PLACEHOLDER) -> RatingSubmission:
        """Scores given positionally, in category order."""
        if len(scores) != len(self.categories):
            raise ValueError(f"Expected {len(self.categories)} scores, got {len(scores)}")
        return self.build_submission(sender, dict(zip(self.categories, scores)), identity)
