"""
Permit Facilitator Service

Composes the validator, replay registry and executor over one ledger and
exposes the operations callers use:

- ``execute_single_transfer`` / ``execute_bulk_transfer``
- ``is_permit_used``
- ``compute_fingerprint``
"""

import logging
from typing import Callable, Optional, Union

from .config import RelayerSettings
from .engine.events import EventBus
from .engine.exceptions import InvalidPermitSignature, PermitValidationError
from .ledgers.bases import Ledger
from .ledgers.onchain import Web3Ledger
from .permits.executor import TransferExecutor
from .permits.fingerprints import compute_fingerprint
from .permits.registry import ReplayRegistry
from .permits.schemas import (
    BulkPermitRequest,
    FingerprintMode,
    PermitRequest,
    RelayResult,
    SignatureRejectionPolicy,
    TransferResult,
)
from .permits.validator import MAX_RECIPIENTS, PermitValidator

logger = logging.getLogger(__name__)


class PermitFacilitator:
    """
    Relay service for permit-based delegated transfers.

    Example:
        facilitator = PermitFacilitator(ledger)
        result = await facilitator.execute_single_transfer(request)
        print(result.tx_reference, result.status)
    """

    def __init__(
        self,
        ledger: Ledger,
        *,
        registry: Optional[ReplayRegistry] = None,
        event_bus: Optional[EventBus] = None,
        fingerprint_mode: FingerprintMode = FingerprintMode.SIGNATURE,
        rejection_policy: SignatureRejectionPolicy = SignatureRejectionPolicy.KEEP_CONSUMED,
        max_recipients: int = MAX_RECIPIENTS,
        fee_beneficiary: Optional[str] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.ledger = ledger
        self.event_bus = event_bus or EventBus()
        self.validator = PermitValidator(
            ledger,
            registry,
            mode=fingerprint_mode,
            rejection_policy=rejection_policy,
            max_recipients=max_recipients,
            clock=clock,
        )
        self.executor = TransferExecutor(
            ledger,
            self.validator.registry,
            event_bus=self.event_bus,
            fee_beneficiary=fee_beneficiary,
        )

    @classmethod
    def from_settings(cls, settings: RelayerSettings, **kwargs) -> "PermitFacilitator":
        """Build a facilitator over the on-chain ledger described by ``settings``."""
        settings.require_chain_access()
        ledger = Web3Ledger(
            private_key=settings.relayer_private_key,
            rpc_url=settings.rpc_url,
            token_address=settings.token_address,
            facilitator_address=settings.facilitator_address,
            chain_id=settings.chain_id,
            fee_beneficiary=settings.fee_beneficiary,
            request_timeout=settings.request_timeout,
        )
        return cls(
            ledger,
            fingerprint_mode=settings.fingerprint_mode,
            rejection_policy=settings.signature_rejection_policy,
            max_recipients=settings.max_batch_size,
            **kwargs,
        )

    @property
    def registry(self) -> ReplayRegistry:
        return self.validator.registry

    async def execute(self, request: Union[PermitRequest, BulkPermitRequest]) -> TransferResult:
        """
        Validate and execute a single or bulk request.

        On ``InvalidPermitSignature`` the validator's rejection policy is
        applied before the error propagates.
        """
        validated = await self.validator.validate(request)
        try:
            return await self.executor.execute(validated)
        except InvalidPermitSignature:
            self.validator.signature_rejected(validated)
            raise

    async def execute_single_transfer(self, request: PermitRequest) -> RelayResult:
        if not isinstance(request, PermitRequest):
            raise PermitValidationError("execute_single_transfer expects a single-recipient request")
        result = await self.execute(request)
        return RelayResult(tx_reference=result.tx_reference, status=result.status)

    async def execute_bulk_transfer(self, request: BulkPermitRequest) -> RelayResult:
        if not isinstance(request, BulkPermitRequest):
            raise PermitValidationError("execute_bulk_transfer expects a bulk request")
        result = await self.execute(request)
        return RelayResult(tx_reference=result.tx_reference, status=result.status)

    def is_permit_used(self, fingerprint: str) -> bool:
        return self.validator.is_permit_used(fingerprint)

    def compute_fingerprint(self, request: Union[PermitRequest, BulkPermitRequest]) -> str:
        """
        Fingerprint ``request`` under the active mode, without touching the registry.

        In ``NONCE_BOUND`` mode the request must carry ``nonce``.
        """
        return compute_fingerprint(request, self.validator.mode)
