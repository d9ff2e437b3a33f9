"""
In-process token ledger with an exact EIP-2612 permit primitive.

``InMemoryLedger`` behaves like an ERC-20 token with ``permit`` plus the
facilitator contract that calls ``permit`` followed by ``transferFrom`` for
each leg:

* the permit signature is recovered over the token's EIP-712 domain with the
  owner's *current* nonce, exactly as the token would;
* an expired deadline reverts;
* the permit grants ``value`` of allowance to ``spender`` and the facilitator
  can only pull funds if it is that spender;
* every leg is applied, or none is (nonce increment included).

Used for local runs and for the test suite.
"""

import itertools
import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from eth_utils import keccak, to_checksum_address

from ..permits.signatures import PermitSignature, recover_permit_signer
from ..permits.standards import DEFAULT_TOKEN_NAME, DEFAULT_TOKEN_VERSION, build_permit_typed_data
from ..schemas.bases import TransactionStatus
from .bases import Ledger, LedgerReceipt, TransferLeg

logger = logging.getLogger(__name__)


class InMemoryLedger(Ledger):
    """
    Thread-safe in-memory ledger.

    Args:
        token_address: Address used as the EIP-712 ``verifyingContract``.
        chain_id: Chain ID used in the EIP-712 domain.
        facilitator_address: Account that calls ``permit``/``transferFrom``.
        fee_beneficiary: Fee recipient; defaults to the facilitator.
        token_name: Domain name; None makes ``name()`` unavailable.
        token_version: Domain version; None makes ``version()`` unavailable.
        decimals: Token decimals.
        clock: Returns the current Unix time; overridable for tests.

    Example:
        ledger = InMemoryLedger(token_address=token, chain_id=1, facilitator_address=relayer)
        ledger.mint(holder, 1_000_000)
    """

    def __init__(
        self,
        token_address: str,
        chain_id: int,
        facilitator_address: str,
        fee_beneficiary: Optional[str] = None,
        token_name: Optional[str] = "USD Coin",
        token_version: Optional[str] = "2",
        decimals: int = 6,
        clock: Optional[Callable[[], int]] = None,
    ):
        self._token_address = to_checksum_address(token_address)
        self._chain_id = int(chain_id)
        self._facilitator_address = to_checksum_address(facilitator_address)
        self._fee_beneficiary = to_checksum_address(fee_beneficiary or facilitator_address)
        self._token_name = token_name
        self._token_version = token_version
        self._decimals = decimals
        self._clock = clock or (lambda: int(time.time()))

        self._balances: Dict[str, int] = {}
        self._nonces: Dict[str, int] = {}
        self._receipts: Dict[str, LedgerReceipt] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def token_address(self) -> str:
        return self._token_address

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def facilitator_address(self) -> str:
        return self._facilitator_address

    @property
    def fee_beneficiary(self) -> str:
        return self._fee_beneficiary

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def mint(self, owner: str, amount: int) -> None:
        """Credit ``amount`` to ``owner``."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        key = to_checksum_address(owner)
        with self._lock:
            self._balances[key] = self._balances.get(key, 0) + amount

    def balance(self, owner: str) -> int:
        """Synchronous balance lookup."""
        with self._lock:
            return self._balances.get(to_checksum_address(owner), 0)

    def nonce(self, owner: str) -> int:
        """Synchronous nonce lookup."""
        with self._lock:
            return self._nonces.get(to_checksum_address(owner), 0)

    # ------------------------------------------------------------------
    # Ledger interface
    # ------------------------------------------------------------------

    async def balance_of(self, owner: str) -> int:
        return self.balance(owner)

    async def decimals(self) -> int:
        return self._decimals

    async def nonces(self, owner: str) -> int:
        return self.nonce(owner)

    async def name(self) -> str:
        if self._token_name is None:
            return await super().name()
        return self._token_name

    async def version(self) -> str:
        if self._token_version is None:
            return await super().version()
        return self._token_version

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
        with self._lock:
            receipt = self._apply(
                owner=owner,
                spender=spender,
                value=value,
                deadline=deadline,
                signature=signature,
                transfers=transfers,
                fee_beneficiary=fee_beneficiary,
                fee_amount=fee_amount,
            )
            self._receipts[receipt.tx_reference] = receipt

        if receipt.is_success():
            logger.info("Ledger applied %s for %s", receipt.tx_reference, owner)
        else:
            logger.info("Ledger reverted %s: %s", receipt.tx_reference, receipt.error_message)
        return receipt

    async def get_transaction_status(self, tx_reference: str) -> Optional[LedgerReceipt]:
        with self._lock:
            return self._receipts.get(tx_reference.lower())

    # ------------------------------------------------------------------
    # Internals (called with the lock held)
    # ------------------------------------------------------------------

    def _next_reference(self, owner: str, nonce: int) -> str:
        seq = next(self._sequence)
        return "0x" + keccak(text=f"{self._token_address}:{owner}:{nonce}:{seq}").hex()

    def _apply(
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
        owner = to_checksum_address(owner)
        spender = to_checksum_address(spender)
        nonce = self._nonces.get(owner, 0)
        tx_reference = self._next_reference(owner, nonce)

        def reverted(status: TransactionStatus, reason: str) -> LedgerReceipt:
            return LedgerReceipt(
                status=status,
                tx_reference=tx_reference,
                error_message=reason,
                from_address=self._facilitator_address,
                to_address=self._token_address,
            )

        if self._clock() > deadline:
            return reverted(TransactionStatus.FAILED, "ERC2612ExpiredSignature")

        typed_data = build_permit_typed_data(
            owner=owner,
            spender=spender,
            value=value,
            nonce=nonce,
            deadline=deadline,
            chain_id=self._chain_id,
            verifying_contract=self._token_address,
            token_name=self._token_name or DEFAULT_TOKEN_NAME,
            token_version=self._token_version or DEFAULT_TOKEN_VERSION,
        )
        try:
            signer = recover_permit_signer(typed_data, signature)
        except Exception as exc:
            # eth_keys rejects r/s outside the curve order
            return reverted(TransactionStatus.SIGNATURE_REJECTED, f"ECDSAInvalidSignature: {exc}")
        if signer != owner:
            return reverted(TransactionStatus.SIGNATURE_REJECTED, "ERC2612InvalidSigner")

        if spender != self._facilitator_address:
            return reverted(TransactionStatus.FAILED, "ERC20InsufficientAllowance")

        legs: List[TransferLeg] = []
        if fee_amount > 0:
            legs.append(TransferLeg(recipient=fee_beneficiary, amount=fee_amount))
        legs.extend(transfers)

        pulled = sum(leg.amount for leg in legs)
        if pulled > value:
            return reverted(TransactionStatus.FAILED, "ERC20InsufficientAllowance")
        if self._balances.get(owner, 0) < pulled:
            return reverted(TransactionStatus.FAILED, "ERC20InsufficientBalance")

        # Commit: nothing below can fail.
        self._nonces[owner] = nonce + 1
        self._balances[owner] = self._balances.get(owner, 0) - pulled
        for leg in legs:
            recipient = to_checksum_address(leg.recipient)
            self._balances[recipient] = self._balances.get(recipient, 0) + leg.amount

        return LedgerReceipt(
            status=TransactionStatus.SUCCESS,
            tx_reference=tx_reference,
            confirmations=1,
            block_number=next(self._sequence),
            from_address=self._facilitator_address,
            to_address=self._token_address,
            logs=[
                {"event": "Transfer", "from": owner, "to": to_checksum_address(leg.recipient), "value": leg.amount}
                for leg in legs
            ],
        )
