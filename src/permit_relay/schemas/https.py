"""
HTTP Request/Response Schema Models for the Relayer API

Wire models for the relayer's JSON endpoints. Field names on the wire are
camelCase (``feeAmount``, ``chainId``, ...) for compatibility with existing
wallet front-ends; Python code uses the snake_case attribute names.

The main flow:
1. Holder signs an EIP-2612 permit for the facilitator contract
2. Front-end POSTs the permit and payout instructions to the relayer
3. Relayer validates, executes, and returns the transaction reference
4. Front-end polls ``/api/transaction/{tx_hash}`` if it wants finality details
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..engine.exceptions import MalformedSignature
from ..permits.schemas import BulkPermitRequest, PermitRequest, RecipientAmount
from ..permits.signatures import PermitSignature, split_signature


# ============================================================================
# Requests
# ============================================================================

class SignedPermitPayload(BaseModel):
    """Signature and context fields shared by single and bulk requests.

    The signature may be sent either as ``v``/``r``/``s`` or as one packed
    65-byte ``signature`` hex string.

    Attributes:
        owner: Token holder address.
        deadline: Permit deadline (Unix seconds).
        v, r, s: Signature components.
        signature: Packed ``r || s || v`` alternative to v/r/s.
        fee_amount: Fee in smallest unit.
        nonce: Token nonce the holder signed with.
        chain_id: Chain the permit was signed for; must match the relayer.
        facilitator_address: Spender the permit was signed for; must match.
        token_address: Token the permit was signed for; must match.
    """
    model_config = ConfigDict(populate_by_name=True)

    owner: str
    deadline: int = Field(..., ge=0)
    v: Optional[int] = None
    r: Optional[str] = None
    s: Optional[str] = None
    signature: Optional[str] = None
    fee_amount: int = Field(default=0, ge=0, alias="feeAmount")
    nonce: Optional[int] = Field(default=None, ge=0)
    chain_id: int = Field(..., alias="chainId")
    facilitator_address: str = Field(..., alias="facilitatorAddress")
    token_address: str = Field(..., alias="tokenAddress")

    def to_signature(self) -> PermitSignature:
        """
        Resolve the permit signature from either encoding.

        Raises:
            MalformedSignature: If neither encoding is complete or parseable.
        """
        if self.signature:
            return split_signature(self.signature)
        if self.v is None or not self.r or not self.s:
            raise MalformedSignature("Missing signature: provide v, r, s or a packed signature")
        return PermitSignature.from_components(v=self.v, r=self.r, s=self.s)


class PermitTransferPayload(SignedPermitPayload):
    """``POST /api/execute-permit-transfer`` body."""

    to: str = Field(..., description="Recipient address")
    value: int = Field(..., ge=0, description="Permit value in smallest unit")

    def to_request(self) -> PermitRequest:
        return PermitRequest(
            owner=self.owner,
            spender=self.facilitator_address,
            recipient=self.to,
            value=self.value,
            deadline=self.deadline,
            signature=self.to_signature(),
            fee_amount=self.fee_amount,
            nonce=self.nonce,
        )


class BulkRecipientPayload(BaseModel):
    """One entry of a bulk ``recipients`` list."""
    model_config = ConfigDict(populate_by_name=True)

    to: str = Field(..., alias="recipient")
    amount: int = Field(..., ge=0)


class BulkPermitTransferPayload(SignedPermitPayload):
    """``POST /api/execute-bulk-permit-transfer`` body."""

    recipients: List[BulkRecipientPayload]
    total_value: int = Field(..., ge=0, alias="totalValue")

    def to_request(self) -> BulkPermitRequest:
        return BulkPermitRequest(
            owner=self.owner,
            spender=self.facilitator_address,
            recipients=[RecipientAmount(recipient=entry.to, amount=entry.amount) for entry in self.recipients],
            total_value=self.total_value,
            deadline=self.deadline,
            signature=self.to_signature(),
            fee_amount=self.fee_amount,
            nonce=self.nonce,
        )


# ============================================================================
# Responses
# ============================================================================

class TransferResponse(BaseModel):
    """Successful transfer response."""
    model_config = ConfigDict(populate_by_name=True)

    success: Literal[True] = True
    tx_hash: str = Field(..., alias="txHash")
    status: str
    fingerprint: str
    recipient_count: int = Field(..., alias="recipientCount")
    total_paid_out: int = Field(..., alias="totalPaidOut")
    fee_amount: int = Field(..., alias="feeAmount")


class ErrorResponse(BaseModel):
    """Error body returned with the status code of the raised error."""

    success: Literal[False] = False
    error: str = Field(..., description="Stable error code")
    message: str = Field(..., description="Human-readable message")


class HealthResponse(BaseModel):
    """``GET /api/health`` body."""
    model_config = ConfigDict(populate_by_name=True)

    status: str = "ok"
    relayer_address: Optional[str] = Field(default=None, alias="relayerAddress")
    facilitator_address: str = Field(..., alias="facilitatorAddress")
    token_address: str = Field(..., alias="tokenAddress")
    chain_id: int = Field(..., alias="chainId")


class TransactionStatusResponse(BaseModel):
    """``GET /api/transaction/{tx_hash}`` body.

    ``status`` is ``confirmed``, ``failed`` or ``pending``.
    """
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    tx_hash: str = Field(..., alias="txHash")
    status: str
    block_number: Optional[int] = Field(default=None, alias="blockNumber")
    gas_used: Optional[str] = Field(default=None, alias="gasUsed")
    error: Optional[str] = None


class PermitStatusResponse(BaseModel):
    """``GET /api/permits/{fingerprint}`` body."""

    fingerprint: str
    used: bool
