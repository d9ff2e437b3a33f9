"""
Permit Request and Result Schema Models

Concrete request shapes submitted to the relay and the result models it
returns. Single and bulk requests share ``BasePermit`` and are told apart by
their ``kind`` tag (see ``permits.unions.PermitRequestTypes``).

Amounts are integers in the token's smallest unit throughout. The models do
not enforce business rules (zero amounts, fee split, null recipients); those
are reported by ``PermitValidator`` with dedicated error codes.
"""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import Field

from ..schemas.bases import BasePermit, CanonicalModel, TransactionStatus
from .signatures import PermitSignature


class FingerprintMode(str, Enum):
    """
    Replay-key derivation modes.

    Attributes:
        SIGNATURE: keccak(owner, spender, value, deadline, v, r, s)
        NONCE_BOUND: keccak(owner, spender, value, nonce, deadline, v, r, s)
    """
    SIGNATURE = "signature"
    NONCE_BOUND = "nonce_bound"


class SignatureRejectionPolicy(str, Enum):
    """
    What happens to a consumed fingerprint when the ledger rejects its signature.

    Attributes:
        KEEP_CONSUMED: Fingerprint stays consumed; the permit can never be retried.
        RELEASE: Fingerprint is released so a corrected submission is not blocked.
    """
    KEEP_CONSUMED = "keep_consumed"
    RELEASE = "release"


class RecipientAmount(CanonicalModel):
    """One ``(recipient, amount)`` pair of a bulk request."""

    recipient: str = Field(..., description="Recipient address")
    amount: int = Field(..., ge=0, description="Amount in smallest unit")


class PermitRequest(BasePermit):
    """
    Single-recipient delegated transfer.

    The holder signs an EIP-2612 permit for ``value``; the relay pays
    ``fee_amount`` to the fee beneficiary and ``value - fee_amount`` to
    ``recipient``.

    Attributes:
        kind: Always ``"single"``.
        owner: Token holder who signed the permit.
        spender: Address authorized by the permit (the facilitator).
        recipient: Address receiving the net amount.
        value: Signed permit value (smallest unit).
        deadline: Unix timestamp after which the permit is unusable.
        signature: v/r/s components of the permit signature.
        fee_amount: Fee portion of ``value``; must be strictly less than ``value``.
        nonce: Token nonce the holder signed with, when known.
    """

    kind: Literal["single"] = Field(default="single", description="Request variant tag")
    owner: str = Field(..., description="Token holder address")
    spender: str = Field(..., description="Authorized spender (facilitator) address")
    recipient: str = Field(..., description="Recipient address")
    value: int = Field(..., ge=0, description="Permit value in smallest unit")
    deadline: int = Field(..., ge=0, description="Permit expiry (Unix seconds)")
    signature: PermitSignature = Field(..., description="Permit signature components")
    fee_amount: int = Field(default=0, ge=0, description="Fee in smallest unit")
    nonce: Optional[int] = Field(default=None, ge=0, description="Token nonce signed by the holder")

    @property
    def authorized_value(self) -> int:
        return self.value

    def recipient_amounts(self) -> List[RecipientAmount]:
        """Net payout legs, excluding the fee."""
        return [RecipientAmount(recipient=self.recipient, amount=self.value - self.fee_amount)]


class BulkPermitRequest(BasePermit):
    """
    Multi-recipient delegated transfer authorized by one permit.

    The holder signs a single permit for ``total_value``; the relay pays
    ``fee_amount`` to the fee beneficiary and then each recipient its exact
    amount, in list order. ``total_value`` must equal the amounts plus the fee.

    Attributes:
        kind: Always ``"bulk"``.
        owner: Token holder who signed the permit.
        spender: Address authorized by the permit (the facilitator).
        recipients: Ordered ``(recipient, amount)`` pairs.
        total_value: Signed permit value (smallest unit).
        deadline: Unix timestamp after which the permit is unusable.
        signature: v/r/s components of the permit signature.
        fee_amount: Fee portion of ``total_value``.
        nonce: Token nonce the holder signed with, when known.
    """

    kind: Literal["bulk"] = Field(default="bulk", description="Request variant tag")
    owner: str = Field(..., description="Token holder address")
    spender: str = Field(..., description="Authorized spender (facilitator) address")
    recipients: List[RecipientAmount] = Field(..., description="Ordered recipient/amount pairs")
    total_value: int = Field(..., ge=0, description="Permit value in smallest unit")
    deadline: int = Field(..., ge=0, description="Permit expiry (Unix seconds)")
    signature: PermitSignature = Field(..., description="Permit signature components")
    fee_amount: int = Field(default=0, ge=0, description="Fee in smallest unit")
    nonce: Optional[int] = Field(default=None, ge=0, description="Token nonce signed by the holder")

    @property
    def authorized_value(self) -> int:
        return self.total_value

    def recipient_amounts(self) -> List[RecipientAmount]:
        return list(self.recipients)


class TransferResult(CanonicalModel):
    """
    Outcome of a successful execution.

    Attributes:
        tx_reference: Ledger transaction reference (tx hash on EVM).
        status: Always ``TransactionStatus.SUCCESS`` for a returned result.
        owner: Token holder.
        recipient_count: Number of recipient legs paid.
        total_paid_out: Sum paid to recipients, excluding the fee.
        fee_amount: Amount paid to the fee beneficiary.
        fingerprint: Replay key of the executed permit.
    """

    tx_reference: str = Field(..., description="Ledger transaction reference")
    status: TransactionStatus = Field(default=TransactionStatus.SUCCESS, description="Execution status")
    owner: str = Field(..., description="Token holder address")
    recipient_count: int = Field(..., ge=0, description="Number of recipient legs")
    total_paid_out: int = Field(..., ge=0, description="Total paid to recipients")
    fee_amount: int = Field(..., ge=0, description="Fee paid to the beneficiary")
    fingerprint: str = Field(..., description="Replay fingerprint (0x hex)")


class RelayResult(CanonicalModel):
    """``{tx_reference, status}`` pair returned by ``PermitFacilitator``."""

    tx_reference: str = Field(..., description="Ledger transaction reference")
    status: TransactionStatus = Field(..., description="Execution status")
