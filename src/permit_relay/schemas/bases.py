"""
Base Schema Models for the Permit Relay

This module defines the base classes every other schema model inherits from.
It provides canonical serialization and the shared status vocabularies used
by ledger receipts and relay results.

Core Classes:
    - CanonicalModel: RFC8785-style Pydantic base model for deterministic JSON
    - BaseSignature: Abstract signature component model
    - BasePermit: Abstract permit request model
    - BaseTransactionConfirmation: Abstract ledger confirmation model

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from abc import ABC
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    RFC8785-style Pydantic base model with canonical JSON serialization.

    Output is deterministic (sorted keys, no extra whitespace), which makes
    it suitable for logging, hashing and transport.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        MyModel(name="test", value=123).to_canonical_json()
        # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        ``model_dump(mode="json")`` turns enums, datetimes and nested models
        into plain types; ``json.dumps`` with sorted keys and compact
        separators makes the result byte-stable.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json")
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()


class BaseSignature(CanonicalModel, ABC):
    """
    Abstract base class for signature components.

    Concrete signature classes describe one signing scheme (e.g. the v/r/s
    triple of an EIP-2612 permit) and implement ``validate_format``.

    Attributes:
        signature_type: The type of signature (e.g., "EIP2612")
    """

    signature_type: str = Field(..., description="Type of signature (e.g., EIP2612)")

    def validate_format(self) -> bool:
        """
        Validate the signature format.

        Returns:
            bool: True if signature format is valid.

        Raises:
            Exception: Implementation-specific error on the first failed check.
        """
        pass


class BasePermit(CanonicalModel, ABC):
    """
    Abstract base class for delegated-transfer permit requests.

    A permit request carries a holder's off-chain signature together with the
    transfer instructions a relayer needs to execute it. Concrete request
    shapes (single / bulk) extend this class and are distinguished by
    ``kind``.

    Attributes:
        kind: Request variant tag (e.g., "single", "bulk")
    """

    kind: str = Field(..., description="Request variant tag (e.g., single, bulk)")


class TransactionStatus(str, Enum):
    """
    Enumeration of possible ledger submission outcomes.

    ``SIGNATURE_REJECTED`` is kept separate from the transport-level failures
    so that a wrong signer is never reported as a network problem.

    Attributes:
        SUCCESS: Operation finalized on the ledger
        FAILED: Operation reverted or was rejected for a non-signature reason
        SIGNATURE_REJECTED: The ledger's permit primitive rejected the signature
        PENDING: Operation submitted but not yet final
        NETWORK_ERROR: Transport failure while submitting or polling
        INVALID_TRANSACTION: Operation could not be built
        UNKNOWN_ERROR: Unexpected error
    """
    SUCCESS = "success"
    FAILED = "failed"
    SIGNATURE_REJECTED = "signature_rejected"
    PENDING = "pending"
    NETWORK_ERROR = "network_error"
    INVALID_TRANSACTION = "invalid_transaction"
    UNKNOWN_ERROR = "unknown_error"


class BaseTransactionConfirmation(CanonicalModel, ABC):
    """
    Abstract base class for ledger confirmation/receipt data.

    Attributes:
        confirmation_type: Type of confirmation (e.g., "evm", "memory")
        status: Submission outcome (TransactionStatus enum)
        execution_time: Time taken to finalize (in seconds)
        confirmations: Number of block confirmations
        error_message: Error message if the submission failed
        logs: Optional transaction logs/events
        created_at: Timestamp when confirmation was recorded
    """

    confirmation_type: str = Field(..., description="Type of confirmation (e.g., evm, memory)")
    status: TransactionStatus = Field(..., description="Transaction execution status")
    execution_time: Optional[float] = Field(None, ge=0, description="Time to confirm (seconds)")
    confirmations: int = Field(default=0, ge=0, description="Number of block confirmations")
    error_message: Optional[str] = Field(None, description="Error message if transaction failed")
    logs: Optional[List[Dict[str, Any]]] = Field(None, description="Transaction logs/events")
    created_at: datetime = Field(default_factory=datetime.now, description="Confirmation recording timestamp")

    def is_success(self) -> bool:
        """
        Check if the operation finalized successfully.

        Returns:
            bool: True if the ledger confirmed the operation.
        """
        return self.status == TransactionStatus.SUCCESS

    def get_confirmation_status(self) -> str:
        """
        Get human-readable confirmation status message.

        Returns:
            str: Human-readable status message describing transaction state.
        """
        if self.status == TransactionStatus.SUCCESS:
            confirmations_text = f"with {self.confirmations} confirmations" if self.confirmations > 0 else "pending confirmations"
            return f"Transaction confirmed {confirmations_text}"
        elif self.status == TransactionStatus.PENDING:
            return "Transaction is pending confirmation"
        else:
            return f"Transaction failed: {self.error_message or self.status.value}"
