"""
Quality Ledger

Confidential aggregation ledger for facility quality ratings.

Participants submit per-category scores for registered facilities as
encrypted values. The ledger keeps encrypted running counts and sums,
globally and per facility, and never sees a score in the clear.
Aggregates become decryptable through a decryption service once the
ledger grants permission; individual inputs stay opaque.

Usage:
    from qualityledger import (
        QualityLedger,
        PlaintextBackend,
        DigestInputValidator,
        RatingClient,
    )

    backend = PlaintextBackend()
    ledger = QualityLedger("0xadmin", backend, DigestInputValidator(backend))
    facility_id = ledger.create_facility("0xadmin", "Test Hospital", "Test Location")

    client = RatingClient(backend, ledger.ledger_address)
    submission = client.build_from_sequence("0xalice", [8, 7, 9, 6, 8, 7])
    ledger.submit_rating("0xalice", submission, facility_id=facility_id)

    ledger.has_submitted("0xalice", facility_id)   # True
    ledger.get_statistics()                        # ciphertext handles
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

from .hashing import PROTOCOL_ID, sha256_hash, binding_digest, state_digest

from .errors import (
    ErrorReason,
    LedgerError,
    Unauthorized,
    InvalidState,
    NotFound,
    InvalidFacility,
    DuplicateSubmission,
    InvalidProof,
    InvalidArgument,
)

from .models import (
    Category,
    DEFAULT_CATEGORIES,
    OperationalState,
    Facility,
    FacilityView,
    EncryptedInput,
    RatingSubmission,
)

from .sealed import (
    CiphertextHandle,
    UNINITIALIZED_HANDLE,
    SealedBackend,
    PlaintextBackend,
    PaillierBackend,
)

from .signing import InputAttester, AttesterKey, AttesterTrustStore

from .validator import (
    CiphertextValidator,
    ValidatedValue,
    SignedInputValidator,
    DigestInputValidator,
)

from .state import AdminState, Journal, LedgerState
from .access import AccessController
from .registry import FacilityRegistry
from .guard import SubmissionGuard
from .aggregation import AggregationEngine, EncryptedAggregate, PermissionTable, Statistics
from .events import (
    EventLog,
    EventRecord,
    LedgerEvent,
    FacilityCreated,
    RatingSubmitted,
    StatisticsUpdated,
    EmergencyStop,
    ContractResumed,
)

from .ledger import QualityLedger, SubmissionReceipt, generate_ledger_address

from .client import RatingClient, EncryptedInputBuilder

from .decryption import (
    Decryptor,
    PlaintextDecryptor,
    PaillierDecryptor,
    DecryptionService,
    StatisticsReport,
    paillier_keypair,
    paillier_keypair_from_settings,
)

from .config import LedgerSettings, load_settings, invalidate_settings_cache


__all__ = [
    "__version__",
    "PROTOCOL_ID",
    "sha256_hash",
    "binding_digest",
    "state_digest",

    # Errors
    "ErrorReason",
    "LedgerError",
    "Unauthorized",
    "InvalidState",
    "NotFound",
    "InvalidFacility",
    "DuplicateSubmission",
    "InvalidProof",
    "InvalidArgument",

    # Model
    "Category",
    "DEFAULT_CATEGORIES",
    "OperationalState",
    "Facility",
    "FacilityView",
    "EncryptedInput",
    "RatingSubmission",

    # Sealed values
    "CiphertextHandle",
    "UNINITIALIZED_HANDLE",
    "SealedBackend",
    "PlaintextBackend",
    "PaillierBackend",

    # Proofs
    "InputAttester",
    "AttesterKey",
    "AttesterTrustStore",
    "CiphertextValidator",
    "ValidatedValue",
    "SignedInputValidator",
    "DigestInputValidator",

    # Components
    "AdminState",
    "Journal",
    "LedgerState",
    "AccessController",
    "FacilityRegistry",
    "SubmissionGuard",

    # Aggregation and events
    "AggregationEngine",
    "EncryptedAggregate",
    "PermissionTable",
    "Statistics",
    "EventLog",
    "EventRecord",
    "LedgerEvent",
    "FacilityCreated",
    "RatingSubmitted",
    "StatisticsUpdated",
    "EmergencyStop",
    "ContractResumed",

    # Ledger
    "QualityLedger",
    "SubmissionReceipt",
    "generate_ledger_address",

    # Boundary collaborators
    "RatingClient",
    "EncryptedInputBuilder",
    "Decryptor",
    "PlaintextDecryptor",
    "PaillierDecryptor",
    "DecryptionService",
    "StatisticsReport",
    "paillier_keypair",
    "paillier_keypair_from_settings",

    # Config
    "LedgerSettings",
    "load_settings",
    "invalidate_settings_cache",
]
