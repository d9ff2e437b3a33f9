"""
permit-relay: EIP-2612 permit-based delegated transfers.

A token holder signs a permit off-chain; a relayer validates it, consumes
its replay fingerprint exactly once and executes the fee and recipient
transfers through the ledger's atomic permit-and-transfer primitive.
"""

from .config import RelayerSettings
from .engine.events import EventBus, TransferCompletedEvent, TransferFailedEvent
from .engine.exceptions import (
    RelayerError,
    MalformedAmount,
    MalformedSignature,
    PermitValidationError,
    InvalidRecipient,
    RecipientLimitExceeded,
    ZeroAmount,
    InvalidFeeAmount,
    PermitExpired,
    PermitAlreadyUsed,
    InsufficientBalance,
    UnvalidatedPermit,
    InvalidPermitSignature,
    LedgerSubmissionFailed,
    ConfigurationError,
)
from .facilitator import PermitFacilitator
from .ledgers import InMemoryLedger, Ledger, LedgerReceipt, TransferLeg, Web3Ledger
from .permits.amounts import to_decimal_string, to_smallest_unit
from .permits.executor import TransferExecutor
from .permits.fingerprints import compute_fingerprint
from .permits.registry import ReplayRegistry
from .permits.schemas import (
    BulkPermitRequest,
    FingerprintMode,
    PermitRequest,
    RecipientAmount,
    RelayResult,
    SignatureRejectionPolicy,
    TransferResult,
)
from .permits.signatures import PermitSignature, recover_permit_signer, sign_permit, split_signature
from .permits.standards import PermitTypedData, build_permit_typed_data, fetch_token_domain, prepare_permit
from .permits.unions import PermitRequestTypes, parse_permit_request
from .permits.validator import PermitValidator, ValidatedPermit

__all__ = [
    "RelayerSettings",
    "EventBus",
    "TransferCompletedEvent",
    "TransferFailedEvent",
    "RelayerError",
    "MalformedAmount",
    "MalformedSignature",
    "PermitValidationError",
    "InvalidRecipient",
    "RecipientLimitExceeded",
    "ZeroAmount",
    "InvalidFeeAmount",
    "PermitExpired",
    "PermitAlreadyUsed",
    "InsufficientBalance",
    "UnvalidatedPermit",
    "InvalidPermitSignature",
    "LedgerSubmissionFailed",
    "ConfigurationError",
    "PermitFacilitator",
    "Ledger",
    "LedgerReceipt",
    "TransferLeg",
    "InMemoryLedger",
    "Web3Ledger",
    "to_smallest_unit",
    "to_decimal_string",
    "TransferExecutor",
    "compute_fingerprint",
    "ReplayRegistry",
    "PermitRequest",
    "BulkPermitRequest",
    "RecipientAmount",
    "FingerprintMode",
    "SignatureRejectionPolicy",
    "TransferResult",
    "RelayResult",
    "PermitSignature",
    "split_signature",
    "sign_permit",
    "recover_permit_signer",
    "PermitTypedData",
    "build_permit_typed_data",
    "fetch_token_domain",
    "prepare_permit",
    "PermitRequestTypes",
    "parse_permit_request",
    "PermitValidator",
    "ValidatedPermit",
]
