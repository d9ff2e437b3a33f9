"""
Permit Relayer Server - FastAPI wrapper around ``PermitFacilitator``.

Routes:
    POST /api/execute-permit-transfer       single-recipient transfer
    POST /api/execute-bulk-permit-transfer  bulk transfer
    GET  /api/health                        relayer identity and chain
    GET  /api/transaction/{tx_hash}         ledger transaction status
    GET  /api/permits/{fingerprint}         replay-registry lookup
"""

import logging
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..config import RelayerSettings
from ..engine.exceptions import RelayerError
from ..facilitator import PermitFacilitator
from ..schemas.bases import TransactionStatus
from ..schemas.https import (
    BulkPermitTransferPayload,
    ErrorResponse,
    HealthResponse,
    PermitStatusResponse,
    PermitTransferPayload,
    SignedPermitPayload,
    TransactionStatusResponse,
    TransferResponse,
)

logger = logging.getLogger(__name__)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=code, message=message).model_dump(mode="json"),
    )


class RelayerServer(FastAPI):
    """FastAPI server exposing the permit relay over HTTP."""

    def __init__(
        self,
        facilitator: PermitFacilitator,
        api_prefix: str = "/api",
        **fastapi_kwargs
    ):
        """Initialize the relayer server.

        Args:
            facilitator: Configured facilitator (ledger, registry, policies)
            api_prefix: Path prefix for all routes (default: /api)
            **fastapi_kwargs: FastAPI arguments (title, version, etc.)
        """
        self.facilitator = facilitator
        fastapi_kwargs.setdefault("title", "Permit Relayer")
        super().__init__(**fastapi_kwargs)

        self.add_exception_handler(RelayerError, self._relayer_error_handler)
        self.add_exception_handler(RequestValidationError, self._validation_error_handler)
        self._setup_routes(api_prefix)

    @classmethod
    def from_settings(cls, settings: RelayerSettings, **fastapi_kwargs) -> "RelayerServer":
        return cls(PermitFacilitator.from_settings(settings), **fastapi_kwargs)

    def add_hook(self, event_class: type, hook: Callable) -> None:
        """Register an event hook for side effects.

        Example:
            ```python
            async def log_event(event):
                logger.info("Event: %r", event)

            app.add_hook(TransferCompletedEvent, log_event)
            ```
        """
        self.facilitator.event_bus.hook(event_class, hook)

    def subscribe(self, event_class: type, handler: Callable) -> None:
        """Register an event subscriber."""
        self.facilitator.event_bus.subscribe(event_class, handler)

    def hook(self, event_class: type) -> Callable:
        """Decorator for registering event hooks.

        Example:
            @app.hook(TransferCompletedEvent)
            async def on_completed(event):
                await notify(event.owner, event.tx_reference)
        """
        def decorator(hook_func: Callable) -> Callable:
            self.add_hook(event_class, hook_func)
            return hook_func
        return decorator

    # =========================================================================
    # Error handling
    # =========================================================================

    @staticmethod
    async def _relayer_error_handler(request: Request, exc: RelayerError) -> JSONResponse:
        return _error(exc.http_status, exc.code, str(exc))

    @staticmethod
    async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted({".".join(str(part) for part in err["loc"][1:]) for err in exc.errors()})
        return _error(400, "InvalidRequest", f"Missing or invalid parameters: {', '.join(fields)}")

    def _check_context(self, payload: SignedPermitPayload) -> Optional[JSONResponse]:
        """Reject permits signed for another chain, facilitator or token."""
        ledger = self.facilitator.ledger
        if payload.chain_id != ledger.chain_id:
            return _error(400, "InvalidRequest", f"Invalid chain ID. Expected {ledger.chain_id}, got {payload.chain_id}")
        if payload.facilitator_address.lower() != ledger.facilitator_address.lower():
            return _error(400, "InvalidRequest", "Invalid facilitator contract address")
        if payload.token_address.lower() != ledger.token_address.lower():
            return _error(400, "InvalidRequest", "Invalid token address")
        return None

    # =========================================================================
    # Routes
    # =========================================================================

    def _setup_routes(self, prefix: str) -> None:

        @self.post(f"{prefix}/execute-permit-transfer")
        async def execute_permit_transfer(payload: PermitTransferPayload):
            """Validate and execute a single-recipient permit transfer."""
            logger.info("Received permit transfer request from %s", payload.owner)
            rejected = self._check_context(payload)
            if rejected is not None:
                return rejected

            result = await self.facilitator.execute(payload.to_request())
            return TransferResponse(
                tx_hash=result.tx_reference,
                status=result.status.value,
                fingerprint=result.fingerprint,
                recipient_count=result.recipient_count,
                total_paid_out=result.total_paid_out,
                fee_amount=result.fee_amount,
            ).model_dump(mode="json", by_alias=True)

        @self.post(f"{prefix}/execute-bulk-permit-transfer")
        async def execute_bulk_permit_transfer(payload: BulkPermitTransferPayload):
            """Validate and execute a bulk permit transfer."""
            logger.info(
                "Received bulk permit transfer request from %s (%d recipients)",
                payload.owner, len(payload.recipients),
            )
            rejected = self._check_context(payload)
            if rejected is not None:
                return rejected

            result = await self.facilitator.execute(payload.to_request())
            return TransferResponse(
                tx_hash=result.tx_reference,
                status=result.status.value,
                fingerprint=result.fingerprint,
                recipient_count=result.recipient_count,
                total_paid_out=result.total_paid_out,
                fee_amount=result.fee_amount,
            ).model_dump(mode="json", by_alias=True)

        @self.get(f"{prefix}/health")
        async def health():
            ledger = self.facilitator.ledger
            return HealthResponse(
                relayer_address=getattr(ledger, "wallet_address", None),
                facilitator_address=ledger.facilitator_address,
                token_address=ledger.token_address,
                chain_id=ledger.chain_id,
            ).model_dump(mode="json", by_alias=True)

        @self.get(f"{prefix}/transaction/{{tx_hash}}")
        async def transaction_status(tx_hash: str):
            receipt = await self.facilitator.ledger.get_transaction_status(tx_hash)
            if receipt is None:
                return JSONResponse(
                    status_code=404,
                    content=TransactionStatusResponse(
                        success=False,
                        tx_hash=tx_hash,
                        status="unknown",
                        error="Transaction not found",
                    ).model_dump(mode="json", by_alias=True),
                )

            if receipt.status == TransactionStatus.PENDING:
                status = "pending"
            elif receipt.is_success():
                status = "confirmed"
            else:
                status = "failed"
            return TransactionStatusResponse(
                success=status != "failed",
                tx_hash=receipt.tx_reference,
                status=status,
                block_number=receipt.block_number,
                gas_used=str(receipt.gas_used) if receipt.gas_used is not None else None,
                error=receipt.error_message,
            ).model_dump(mode="json", by_alias=True)

        @self.get(f"{prefix}/permits/{{fingerprint}}")
        async def permit_status(fingerprint: str):
            try:
                used = self.facilitator.is_permit_used(fingerprint)
            except ValueError as exc:
                return _error(400, "InvalidRequest", str(exc))
            return PermitStatusResponse(fingerprint=fingerprint.lower(), used=used).model_dump(mode="json")


def create_app(settings: Optional[RelayerSettings] = None) -> RelayerServer:
    """Build a ``RelayerServer`` from ``settings`` (default: environment)."""
    return RelayerServer.from_settings(settings or RelayerSettings.from_env())
