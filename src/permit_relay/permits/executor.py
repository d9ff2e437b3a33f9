"""
Transfer execution over the ledger's atomic permit-and-transfer primitive.

The executor does not roll anything back itself: it hands the fee leg and
every recipient leg to ``Ledger.permit_and_transfer`` in one call and maps
the status-typed receipt to a result or an error.
"""

import logging
import threading
from typing import Optional, Set

from ..engine.events import EventBus, TransferCompletedEvent, TransferFailedEvent
from ..engine.exceptions import InvalidPermitSignature, LedgerSubmissionFailed, UnvalidatedPermit
from ..ledgers.bases import Ledger, LedgerReceipt, TransferLeg
from ..schemas.bases import TransactionStatus
from .fingerprints import compute_fingerprint
from .registry import ReplayRegistry
from .schemas import TransferResult
from .validator import ValidatedPermit

logger = logging.getLogger(__name__)


class TransferExecutor:
    """
    Executes validated permits.

    The registry is only read here. A ``ValidatedPermit`` is accepted when
    its fingerprint recomputes from the request, is consumed in the
    registry, and has not been executed by this executor before.

    The executed set only grows, like the registry it mirrors; an executor
    should share its registry's lifetime. A failed execution is removed from
    the set so a permit released under ``SignatureRejectionPolicy.RELEASE``
    can run again after re-validation.

    Args:
        ledger: Ledger providing ``permit_and_transfer``.
        registry: The validator's replay registry.
        event_bus: Receives completion/failure events, if given.
        fee_beneficiary: Fee recipient; defaults to ``ledger.fee_beneficiary``.
    """

    def __init__(
        self,
        ledger: Ledger,
        registry: ReplayRegistry,
        event_bus: Optional[EventBus] = None,
        fee_beneficiary: Optional[str] = None,
    ):
        self.ledger = ledger
        self._registry = registry
        self.event_bus = event_bus
        self.fee_beneficiary = fee_beneficiary or ledger.fee_beneficiary
        self._executed: Set[str] = set()
        self._lock = threading.Lock()

    def _claim(self, validated: ValidatedPermit) -> None:
        expected = compute_fingerprint(validated.request, validated.mode, nonce=validated.nonce)
        if expected != validated.fingerprint:
            raise UnvalidatedPermit("Fingerprint does not match the request")
        if not self._registry.is_used(expected):
            raise UnvalidatedPermit("Permit was not consumed by the validator")
        with self._lock:
            if expected in self._executed:
                raise UnvalidatedPermit("Permit was already executed")
            self._executed.add(expected)

    def _unclaim(self, fingerprint: str) -> None:
        with self._lock:
            self._executed.discard(fingerprint)

    async def execute(self, validated: ValidatedPermit) -> TransferResult:
        """
        Pay the fee leg (if any) and every recipient leg atomically.

        Returns:
            TransferResult on ledger success.

        Raises:
            UnvalidatedPermit: The permit did not come from the validator or already ran.
            InvalidPermitSignature: The ledger's permit primitive rejected the signature.
            LedgerSubmissionFailed: Any other ledger failure; nothing was transferred.
        """
        self._claim(validated)
        request = validated.request

        transfers = [
            TransferLeg(recipient=entry.recipient, amount=entry.amount)
            for entry in request.recipient_amounts()
        ]
        total_paid_out = sum(leg.amount for leg in transfers)

        logger.info(
            "Submitting permit %s: %d recipient(s), payout %d, fee %d",
            validated.fingerprint, len(transfers), total_paid_out, request.fee_amount,
        )
        try:
            receipt = await self.ledger.permit_and_transfer(
                owner=request.owner,
                spender=request.spender,
                value=request.authorized_value,
                deadline=request.deadline,
                signature=request.signature,
                transfers=transfers,
                fee_beneficiary=self.fee_beneficiary,
                fee_amount=request.fee_amount,
            )
        except Exception as exc:
            receipt = LedgerReceipt(
                status=TransactionStatus.NETWORK_ERROR,
                error_message=f"Ledger submission raised: {exc}",
            )

        if receipt.is_success():
            result = TransferResult(
                tx_reference=receipt.tx_reference,
                owner=request.owner,
                recipient_count=len(transfers),
                total_paid_out=total_paid_out,
                fee_amount=request.fee_amount,
                fingerprint=validated.fingerprint,
            )
            logger.info("Permit %s executed in %s", validated.fingerprint, receipt.tx_reference)
            await self._publish(TransferCompletedEvent(
                owner=request.owner,
                recipient_count=result.recipient_count,
                total_paid_out=result.total_paid_out,
                fee_amount=result.fee_amount,
                tx_reference=result.tx_reference,
                fingerprint=validated.fingerprint,
            ))
            return result

        self._unclaim(validated.fingerprint)
        if receipt.status == TransactionStatus.SIGNATURE_REJECTED:
            error = InvalidPermitSignature("Invalid permit signature")
        else:
            error = LedgerSubmissionFailed(
                receipt.error_message or receipt.get_confirmation_status(),
                tx_reference=receipt.tx_reference,
            )
        logger.warning("Permit %s failed on ledger: %s", validated.fingerprint, receipt.status.value)
        await self._publish(TransferFailedEvent(
            owner=request.owner,
            error_code=error.code,
            error_message=str(error),
            tx_reference=receipt.tx_reference,
            fingerprint=validated.fingerprint,
        ))
        raise error

    async def _publish(self, event) -> None:
        if self.event_bus is not None:
            await self.event_bus.publish(event)
