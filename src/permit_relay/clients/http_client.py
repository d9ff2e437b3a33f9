"""
Relayer HTTP Client

An ``httpx.AsyncClient`` subclass that talks to a permit relayer server. It can
post already-signed permits or sign a prepared ``PermitTypedData`` locally
with the holder's key and submit it in one step.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import httpx

from ..engine.exceptions import RelayerError
from ..permits.signatures import PermitSignature, sign_permit
from ..permits.standards import PermitTypedData
from ..schemas.https import (
    BulkPermitTransferPayload,
    BulkRecipientPayload,
    HealthResponse,
    PermitStatusResponse,
    PermitTransferPayload,
    TransactionStatusResponse,
    TransferResponse,
)


class RelayerResponseError(RelayerError):
    """
    Error response returned by the relayer.

    Attributes:
        code: Error code reported by the server (e.g. ``PermitAlreadyUsed``)
        status_code: HTTP status of the response
    """

    def __init__(self, message: str, *, code: str, status_code: int):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class RelayerClient(httpx.AsyncClient):
    """
    Extended httpx.AsyncClient for the relayer API.

    Fully compatible with httpx.AsyncClient and usable as an async context
    manager.

    Usage:
        ```python
        async with RelayerClient(base_url="http://localhost:3001/api") as client:
            response = await client.sign_and_execute_transfer(
                holder_key, typed_data, recipient="0x...", fee_amount=10_000,
            )
            print(response.tx_hash)
        ```
    """

    def __init__(self, base_url: str = "http://localhost:3001/api", **kwargs):
        """
        Args:
            base_url: Relayer API root, including the ``/api`` prefix.
            **kwargs: All standard httpx.AsyncClient arguments (timeout, headers, transport, etc.)
        """
        super().__init__(base_url=base_url, **kwargs)

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def execute_permit_transfer(
        self,
        payload: Union[PermitTransferPayload, Dict[str, Any]],
    ) -> TransferResponse:
        """POST a signed single-recipient permit."""
        if isinstance(payload, PermitTransferPayload):
            payload = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        response = await self.post("/execute-permit-transfer", json=payload)
        return TransferResponse.model_validate(self._json_or_raise(response))

    async def execute_bulk_permit_transfer(
        self,
        payload: Union[BulkPermitTransferPayload, Dict[str, Any]],
    ) -> TransferResponse:
        """POST a signed bulk permit."""
        if isinstance(payload, BulkPermitTransferPayload):
            payload = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        response = await self.post("/execute-bulk-permit-transfer", json=payload)
        return TransferResponse.model_validate(self._json_or_raise(response))

    async def get_transaction_status(self, tx_hash: str) -> TransactionStatusResponse:
        """Fetch ledger status; an unknown hash is returned with ``success=False``."""
        response = await self.get(f"/transaction/{tx_hash}")
        if response.status_code == 404:
            return TransactionStatusResponse.model_validate(response.json())
        return TransactionStatusResponse.model_validate(self._json_or_raise(response))

    async def is_permit_used(self, fingerprint: str) -> bool:
        response = await self.get(f"/permits/{fingerprint}")
        return PermitStatusResponse.model_validate(self._json_or_raise(response)).used

    async def health(self) -> HealthResponse:
        response = await self.get("/health")
        return HealthResponse.model_validate(self._json_or_raise(response))

    # =========================================================================
    # Holder-side helpers
    # =========================================================================

    async def sign_and_execute_transfer(
        self,
        private_key: str,
        typed_data: PermitTypedData,
        recipient: str,
        fee_amount: int = 0,
    ) -> TransferResponse:
        """
        Sign ``typed_data`` with the holder key and submit it as a single transfer.

        ``typed_data`` should come from ``prepare_permit`` so that domain and
        nonce match the token. The key never leaves this process.
        """
        signature = sign_permit(private_key, typed_data)
        payload = PermitTransferPayload(
            to=recipient,
            value=typed_data.message.value,
            fee_amount=fee_amount,
            **self._signed_fields(typed_data, signature),
        )
        return await self.execute_permit_transfer(payload)

    async def sign_and_execute_bulk_transfer(
        self,
        private_key: str,
        typed_data: PermitTypedData,
        recipients: Sequence[Tuple[str, int]],
        fee_amount: int = 0,
    ) -> TransferResponse:
        """Sign ``typed_data`` (for the batch total) and submit it as a bulk transfer."""
        signature = sign_permit(private_key, typed_data)
        entries: List[BulkRecipientPayload] = [
            BulkRecipientPayload(to=recipient, amount=amount) for recipient, amount in recipients
        ]
        payload = BulkPermitTransferPayload(
            recipients=entries,
            total_value=typed_data.message.value,
            fee_amount=fee_amount,
            **self._signed_fields(typed_data, signature),
        )
        return await self.execute_bulk_permit_transfer(payload)

    # =========================================================================
    # Utility Methods
    # =========================================================================

    @staticmethod
    def _signed_fields(typed_data: PermitTypedData, signature: PermitSignature) -> Dict[str, Any]:
        message = typed_data.message
        domain = typed_data.domain
        return {
            "owner": message.owner,
            "deadline": message.deadline,
            "nonce": message.nonce,
            "v": signature.v,
            "r": signature.r,
            "s": signature.s,
            "chain_id": domain.chainId,
            "facilitator_address": message.spender,
            "token_address": domain.verifyingContract,
        }

    @staticmethod
    def _json_or_raise(response: httpx.Response) -> Dict[str, Any]:
        """
        Return the JSON body of a successful response.

        Raises:
            RelayerResponseError: For any non-2xx response.
        """
        if response.is_success:
            return response.json()
        try:
            body = response.json()
        except ValueError:
            body = {}
        raise RelayerResponseError(
            body.get("message") or body.get("error") or f"Relayer returned HTTP {response.status_code}",
            code=body.get("error") or "RelayerError",
            status_code=response.status_code,
        )
