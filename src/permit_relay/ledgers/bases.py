"""
Abstract Base Class for Ledger Collaborators

The relay never moves value itself. It reads token state and hands a fully
validated permit to a ledger whose ``permit_and_transfer`` primitive consumes
the permit and performs every transfer as one all-or-nothing operation.

Core Classes:
    - Ledger: Async interface implemented by ``InMemoryLedger`` and ``Web3Ledger``
    - TransferLeg: One value movement inside a ``permit_and_transfer`` call
    - LedgerReceipt: Status-typed outcome of a ledger submission

Implementations must not raise for submission failures. They return a
``LedgerReceipt`` whose ``status`` separates a rejected signature
(``SIGNATURE_REJECTED``) from every other failure.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import Field

from ..permits.signatures import PermitSignature
from ..schemas.bases import BaseTransactionConfirmation, CanonicalModel


class TransferLeg(CanonicalModel):
    """A single ``transferFrom(owner, recipient, amount)`` movement."""

    recipient: str = Field(..., description="Receiving address")
    amount: int = Field(..., gt=0, description="Amount in smallest unit")


class LedgerReceipt(BaseTransactionConfirmation):
    """
    Outcome of a ``permit_and_transfer`` call.

    Attributes:
        confirmation_type: Ledger flavor ("memory", "evm")
        tx_reference: Transaction reference (0x-prefixed hash); "0x" if never assigned
        block_number: Block containing the transaction, if any
        gas_used: Gas consumed, if the ledger meters execution
        from_address: Submitting account
        to_address: Contract or ledger address called
    """

    confirmation_type: str = Field(default="memory", description="Ledger flavor")
    tx_reference: str = Field(default="0x", description="Transaction reference")
    block_number: Optional[int] = Field(None, ge=0, description="Block number")
    gas_used: Optional[int] = Field(None, ge=0, description="Gas consumed")
    from_address: Optional[str] = Field(None, description="Submitting account")
    to_address: Optional[str] = Field(None, description="Called contract")


class Ledger(ABC):
    """
    Async interface to a token ledger with a native EIP-2612 permit primitive.

    Key Responsibilities:
    1. Token state reads: ``balance_of``, ``decimals``, ``nonces``, ``name``, ``version``
    2. ``permit_and_transfer``: consume a permit and move value atomically
    3. ``get_transaction_status``: look up a previously submitted operation
    """

    @property
    @abstractmethod
    def token_address(self) -> str:
        """Token contract address (the EIP-712 ``verifyingContract``)."""

    @property
    @abstractmethod
    def chain_id(self) -> int:
        """EVM chain ID of the ledger."""

    @property
    @abstractmethod
    def facilitator_address(self) -> str:
        """Address that submits ``permit`` and ``transferFrom`` calls (the permit spender)."""

    @property
    @abstractmethod
    def fee_beneficiary(self) -> str:
        """Identity receiving the fee leg."""

    @abstractmethod
    async def balance_of(self, owner: str) -> int:
        """Token balance of ``owner`` in smallest units."""

    @abstractmethod
    async def decimals(self) -> int:
        """Token decimals."""

    @abstractmethod
    async def nonces(self, owner: str) -> int:
        """Current EIP-2612 nonce of ``owner``."""

    async def name(self) -> str:
        """
        Token ``name()``, used as the EIP-712 domain name.

        Optional: the default raises ``NotImplementedError`` and callers fall
        back to a default domain name.
        """
        raise NotImplementedError("name() not supported by this ledger")

    async def version(self) -> str:
        """Token ``version()``; optional like ``name()``."""
        raise NotImplementedError("version() not supported by this ledger")

    @abstractmethod
    async def permit_and_transfer(
        self,
        *,
        owner: str,
        spender: str,
        value: int,
        deadline: int,
        signature: PermitSignature,
        transfers: List[TransferLeg],
        fee_beneficiary: str,
        fee_amount: int,
    ) -> LedgerReceipt:
        """
        Consume the permit and perform all transfers atomically.

        The fee leg (``fee_amount`` to ``fee_beneficiary``, skipped when zero)
        is applied first, then ``transfers`` in order. Either every movement
        happens or none does.

        Args:
            owner: Token holder who signed the permit.
            spender: Spender named in the permit.
            value: Permit value (allowance granted by the permit).
            deadline: Permit deadline.
            signature: Permit v/r/s.
            transfers: Ordered recipient legs.
            fee_beneficiary: Fee recipient.
            fee_amount: Fee amount; zero means no fee leg.

        Returns:
            LedgerReceipt: ``SUCCESS``, ``SIGNATURE_REJECTED`` when the permit
            primitive refused the signature, or a failure status otherwise.
        """

    @abstractmethod
    async def get_transaction_status(self, tx_reference: str) -> Optional[LedgerReceipt]:
        """
        Look up a submitted operation.

        Returns:
            The receipt, a ``PENDING`` receipt if known but not final, or None
            if the ledger has never seen ``tx_reference``.
        """
