"""
Permit validation and replay-fingerprint consumption.

``PermitValidator.validate`` is the single entry point for both request
shapes. Checks run in a fixed order and the first failure wins:

0. recipient list non-empty and within the batch cap (bulk)
1. owner, spender and recipients are real, non-null addresses
2. no zero amounts
3. fee split consistent
4. deadline not passed, before any fingerprint work
5. fingerprint consumed atomically in the replay registry; in ``NONCE_BOUND``
   mode a request nonce other than the ledger nonce is rejected first
6. owner balance covers the permit value, checked after consumption

Signature recovery is not done here. The ledger's permit primitive is the
authority on signatures; when it rejects one, the facilitator calls
``signature_rejected`` and the configured ``SignatureRejectionPolicy``
decides whether the fingerprint stays consumed.
"""

import logging
import time
from typing import Callable, Optional, Union

from eth_utils import is_address, to_checksum_address
from pydantic import Field

from ..engine.exceptions import (
    InsufficientBalance,
    InvalidFeeAmount,
    InvalidRecipient,
    LedgerSubmissionFailed,
    PermitAlreadyUsed,
    PermitExpired,
    RecipientLimitExceeded,
    ZeroAmount,
)
from ..ledgers.bases import Ledger
from ..schemas.bases import CanonicalModel
from .fingerprints import compute_fingerprint
from .registry import ReplayRegistry
from .schemas import BulkPermitRequest, FingerprintMode, PermitRequest, SignatureRejectionPolicy
from .unions import PermitRequestTypes

logger = logging.getLogger(__name__)

#: Default maximum number of recipients in one bulk request.
MAX_RECIPIENTS = 50

NULL_ADDRESS = "0x0000000000000000000000000000000000000000"


class ValidatedPermit(CanonicalModel):
    """
    A request that passed every validation step and whose fingerprint is consumed.

    Only ``PermitValidator`` creates these; ``TransferExecutor`` refuses any
    instance whose fingerprint it cannot find consumed in the registry.

    Attributes:
        request: The validated single or bulk request.
        fingerprint: Replay key consumed for this request.
        mode: Fingerprint mode used.
        nonce: Nonce bound into the fingerprint (``NONCE_BOUND`` only).
        validated_at: Unix time the validation ran at.
    """

    request: PermitRequestTypes
    fingerprint: str = Field(..., description="Consumed replay fingerprint (0x hex)")
    mode: FingerprintMode = Field(..., description="Fingerprint mode")
    nonce: Optional[int] = Field(default=None, ge=0, description="Nonce bound into the fingerprint")
    validated_at: int = Field(..., ge=0, description="Validation time (Unix seconds)")


def _require_address(label: str, address: str) -> str:
    if not isinstance(address, str) or not is_address(address):
        raise InvalidRecipient(f"Invalid {label} address")
    checksummed = to_checksum_address(address)
    if checksummed == NULL_ADDRESS:
        raise InvalidRecipient(f"{label} must not be the null address")
    return checksummed


class PermitValidator:
    """
    Validates permit requests and owns the replay registry.

    Args:
        ledger: Token ledger used for nonce and balance reads.
        registry: Replay registry; a fresh one is created if omitted.
        mode: Fingerprint derivation mode.
        rejection_policy: What ``signature_rejected`` does to a fingerprint.
        max_recipients: Bulk batch cap.
        clock: Returns the current Unix time; overridable for tests.
    """

    def __init__(
        self,
        ledger: Ledger,
        registry: Optional[ReplayRegistry] = None,
        *,
        mode: FingerprintMode = FingerprintMode.SIGNATURE,
        rejection_policy: SignatureRejectionPolicy = SignatureRejectionPolicy.KEEP_CONSUMED,
        max_recipients: int = MAX_RECIPIENTS,
        clock: Optional[Callable[[], int]] = None,
    ):
        if max_recipients < 1:
            raise ValueError("max_recipients must be at least 1")
        self.ledger = ledger
        self.registry = registry if registry is not None else ReplayRegistry()
        self.mode = FingerprintMode(mode)
        self.rejection_policy = SignatureRejectionPolicy(rejection_policy)
        self.max_recipients = max_recipients
        self._clock = clock or (lambda: int(time.time()))

    async def validate(
        self,
        request: Union[PermitRequest, BulkPermitRequest],
        *,
        current_time: Optional[int] = None,
    ) -> ValidatedPermit:
        """
        Validate ``request`` and consume its fingerprint.

        Raises:
            RecipientLimitExceeded: Bulk list longer than ``max_recipients``.
            InvalidRecipient: Empty list, malformed or null address.
            ZeroAmount: Zero value or zero recipient amount.
            InvalidFeeAmount: Fee not below value, or bulk sum mismatch.
            PermitExpired: ``current_time > deadline``.
            PermitAlreadyUsed: Fingerprint already consumed or nonce not current.
            InsufficientBalance: Owner balance below the permit value.
            LedgerSubmissionFailed: A ledger read failed.
        """
        now = self._clock() if current_time is None else current_time
        try:
            return await self._validate(request, now)
        except Exception as exc:
            code = getattr(exc, "code", type(exc).__name__)
            logger.info("Permit from %s rejected: %s", getattr(request, "owner", "?"), code)
            raise

    async def _validate(
        self,
        request: Union[PermitRequest, BulkPermitRequest],
        now: int,
    ) -> ValidatedPermit:
        is_bulk = isinstance(request, BulkPermitRequest)

        if is_bulk:
            if len(request.recipients) > self.max_recipients:
                raise RecipientLimitExceeded(
                    f"Too many recipients: {len(request.recipients)} > {self.max_recipients}"
                )
            if not request.recipients:
                raise InvalidRecipient("Recipient list must not be empty")

        owner = _require_address("owner", request.owner)
        _require_address("spender", request.spender)
        if is_bulk:
            for index, entry in enumerate(request.recipients):
                _require_address(f"recipient #{index}", entry.recipient)
        else:
            _require_address("recipient", request.recipient)

        value = request.authorized_value
        if value == 0:
            raise ZeroAmount("Permit value must be greater than zero")
        if is_bulk:
            for index, entry in enumerate(request.recipients):
                if entry.amount == 0:
                    raise ZeroAmount(f"Amount for recipient #{index} must be greater than zero")

        if request.fee_amount >= value:
            raise InvalidFeeAmount(
                f"Fee amount {request.fee_amount} must be less than permit value {value}"
            )
        if is_bulk:
            expected = sum(entry.amount for entry in request.recipients) + request.fee_amount
            if expected != value:
                raise InvalidFeeAmount(
                    f"Recipient amounts plus fee ({expected}) must equal total value ({value})"
                )

        if now > request.deadline:
            raise PermitExpired(
                "Permit deadline has expired",
                deadline=request.deadline,
                current_time=now,
            )

        nonce: Optional[int] = None
        if self.mode == FingerprintMode.NONCE_BOUND:
            current_nonce = await self._read("nonces", owner)
            if request.nonce is not None and request.nonce != current_nonce:
                raise PermitAlreadyUsed(
                    f"Permit nonce {request.nonce} does not match current nonce {current_nonce}"
                )
            nonce = current_nonce if request.nonce is None else request.nonce

        fingerprint = compute_fingerprint(request, self.mode, nonce=nonce)
        if not self.registry.check_and_mark(fingerprint):
            raise PermitAlreadyUsed("This permit has already been used", fingerprint=fingerprint)
        logger.info("Permit %s consumed for %s", fingerprint, owner)

        balance = await self._read("balance_of", owner)
        if balance < value:
            raise InsufficientBalance(
                f"Insufficient balance: required {value}, available {balance}",
                required=value,
                available=balance,
            )

        return ValidatedPermit(
            request=request,
            fingerprint=fingerprint,
            mode=self.mode,
            nonce=nonce,
            validated_at=now,
        )

    async def _read(self, method: str, owner: str) -> int:
        try:
            return int(await getattr(self.ledger, method)(owner))
        except Exception as exc:
            raise LedgerSubmissionFailed(f"Ledger {method}() failed: {exc}") from exc

    def signature_rejected(self, validated: ValidatedPermit) -> bool:
        """
        Apply the rejection policy after the ledger refused the signature.

        Returns:
            True if the fingerprint was released back to Unseen.
        """
        if self.rejection_policy == SignatureRejectionPolicy.RELEASE:
            return self.registry.release(validated.fingerprint)
        logger.info("Permit %s stays consumed after signature rejection", validated.fingerprint)
        return False

    def is_permit_used(self, fingerprint: str) -> bool:
        return self.registry.is_used(fingerprint)
