"""
EVM Ledger over a Facilitator Contract

Submits validated permits to the facilitator contract, which calls the
token's EIP-2612 ``permit`` and then ``transferFrom`` for the fee and every
recipient in a single transaction. Token state is read from the token
contract directly.

Key Features:
    - Single and bulk facilitator calls with a 20% gas buffer
    - Revert classification: a rejected permit signature is reported as
      ``SIGNATURE_REJECTED``, never as a transport failure
    - Receipt polling with no internal timeout

Dependencies:
    - web3.py: For blockchain RPC interaction
    - eth_account: For transaction signing
"""

import asyncio
import logging
import time
from typing import Any, List, Optional

from eth_account import Account
from eth_utils import keccak
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TransactionNotFound

from ..permits.signatures import PermitSignature
from ..schemas.bases import TransactionStatus
from .abi import get_facilitator_abi, get_token_abi
from .bases import Ledger, LedgerReceipt, TransferLeg

logger = logging.getLogger(__name__)

#: Multiplier applied to the gas estimate.
GAS_BUFFER = 1.2

#: Revert fragments that mean the token's ``permit`` refused the signature.
SIGNATURE_REVERT_MARKERS = (
    "InvalidPermitSignature",
    "ERC2612InvalidSigner",
    "invalid signature",
    "Permit: invalid signature",
    keccak(text="InvalidPermitSignature()")[:4].hex(),
    keccak(text="ERC2612InvalidSigner(address,address)")[:4].hex(),
)


def classify_revert(message: str) -> TransactionStatus:
    """Map a contract revert message to ``SIGNATURE_REJECTED`` or ``FAILED``."""
    lowered = message.lower()
    for marker in SIGNATURE_REVERT_MARKERS:
        if marker.lower() in lowered:
            return TransactionStatus.SIGNATURE_REJECTED
    return TransactionStatus.FAILED


class Web3Ledger(Ledger):
    """
    Ledger implementation backed by a deployed facilitator contract.

    The facilitator contract is the permit ``spender``; the relayer account
    only pays gas. The fee leg is paid by the contract to its configured
    fee collector, which should match ``fee_beneficiary``.

    Attributes:
        account: Relayer account that signs and pays for transactions
        wallet_address: Checksum address of ``account``

    Example:
        ledger = Web3Ledger(
            private_key="0x...",
            rpc_url="https://sepolia.infura.io/v3/KEY",
            token_address="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
            facilitator_address="0x...",
            chain_id=11155111,
        )
        balance = await ledger.balance_of("0x...")
    """

    def __init__(
        self,
        private_key: str,
        rpc_url: str,
        token_address: str,
        facilitator_address: str,
        chain_id: int,
        fee_beneficiary: Optional[str] = None,
        request_timeout: int = 60,
        poll_interval: float = 2.0,
        web3: Optional[AsyncWeb3] = None,
    ):
        """
        Initialize the ledger.

        Args:
            private_key: Relayer key (0x-prefixed hex). Never logged.
            rpc_url: JSON-RPC endpoint.
            token_address: Permit-capable ERC-20 token.
            facilitator_address: Facilitator contract (the permit spender).
            chain_id: Expected chain ID.
            fee_beneficiary: Fee recipient; defaults to the relayer account.
            request_timeout: Per-RPC HTTP timeout in seconds.
            poll_interval: Seconds between receipt polls.
            web3: Pre-built AsyncWeb3 instance (mainly for tests).
        """
        self.account = Account.from_key(private_key)
        self.wallet_address = AsyncWeb3.to_checksum_address(self.account.address)

        self._token_address = AsyncWeb3.to_checksum_address(token_address)
        self._facilitator_address = AsyncWeb3.to_checksum_address(facilitator_address)
        self._chain_id = int(chain_id)
        self._fee_beneficiary = AsyncWeb3.to_checksum_address(fee_beneficiary or self.wallet_address)
        self._poll_interval = poll_interval

        self.web3 = web3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": request_timeout}
        ))
        self._token = self.web3.eth.contract(address=self._token_address, abi=get_token_abi())
        self._facilitator = self.web3.eth.contract(
            address=self._facilitator_address,
            abi=get_facilitator_abi(),
        )

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
    # Token reads
    # ------------------------------------------------------------------

    async def balance_of(self, owner: str) -> int:
        owner = AsyncWeb3.to_checksum_address(owner)
        return int(await self._token.functions.balanceOf(owner).call())

    async def decimals(self) -> int:
        return int(await self._token.functions.decimals().call())

    async def nonces(self, owner: str) -> int:
        owner = AsyncWeb3.to_checksum_address(owner)
        return int(await self._token.functions.nonces(owner).call())

    async def name(self) -> str:
        return await self._token.functions.name().call()

    async def version(self) -> str:
        return await self._token.functions.version().call()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

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
        Submit the facilitator call and wait for its receipt.

        Never raises: every failure is captured in the returned receipt.
        """
        if AsyncWeb3.to_checksum_address(spender) != self._facilitator_address:
            return LedgerReceipt(
                confirmation_type="evm",
                status=TransactionStatus.INVALID_TRANSACTION,
                error_message="Permit spender is not the facilitator contract",
            )
        if AsyncWeb3.to_checksum_address(fee_beneficiary) != self._fee_beneficiary:
            logger.warning("Fee beneficiary %s differs from configured %s", fee_beneficiary, self._fee_beneficiary)

        try:
            tx_fn = self._build_call(owner, value, deadline, signature, transfers, fee_amount)
        except Exception as e:
            return LedgerReceipt(
                confirmation_type="evm",
                status=TransactionStatus.INVALID_TRANSACTION,
                error_message=f"Failed to build facilitator call: {e}",
            )

        try:
            raw_transaction = await self._sign_call(tx_fn)
        except ContractLogicError as e:
            reason = str(getattr(e, "message", None) or e)
            data = getattr(e, "data", None) or ""
            status = classify_revert(f"{reason} {data}")
            logger.info("Facilitator call reverted during estimation: %s", status.value)
            return LedgerReceipt(
                confirmation_type="evm",
                status=status,
                error_message=reason,
            )
        except Exception as e:
            return LedgerReceipt(
                confirmation_type="evm",
                status=TransactionStatus.NETWORK_ERROR,
                error_message=f"Failed to prepare transaction: {e}",
            )

        return await self._send_and_confirm(raw_transaction)

    def _build_call(
        self,
        owner: str,
        value: int,
        deadline: int,
        signature: PermitSignature,
        transfers: List[TransferLeg],
        fee_amount: int,
    ) -> Any:
        owner = AsyncWeb3.to_checksum_address(owner)
        r_bytes = signature.r_bytes()
        s_bytes = signature.s_bytes()

        if len(transfers) == 1 and transfers[0].amount + fee_amount == value:
            return self._facilitator.functions.facilitateTransferWithPermit(
                owner,
                AsyncWeb3.to_checksum_address(transfers[0].recipient),
                value,
                deadline,
                signature.v,
                r_bytes,
                s_bytes,
                fee_amount,
            )

        return self._facilitator.functions.facilitateBulkTransferWithPermit(
            owner,
            [AsyncWeb3.to_checksum_address(leg.recipient) for leg in transfers],
            [leg.amount for leg in transfers],
            value,
            deadline,
            signature.v,
            r_bytes,
            s_bytes,
            fee_amount,
        )

    async def _sign_call(self, tx_fn: Any) -> bytes:
        gas_estimate = await tx_fn.estimate_gas({"from": self.wallet_address})
        gas_price = await self.web3.eth.gas_price
        tx_nonce = await self.web3.eth.get_transaction_count(self.wallet_address)

        tx_dict = await tx_fn.build_transaction({
            "from": self.wallet_address,
            "chainId": self._chain_id,
            "gas": int(gas_estimate * GAS_BUFFER),
            "gasPrice": gas_price,
            "nonce": tx_nonce,
        })

        signed_tx = self.account.sign_transaction(tx_dict)
        return signed_tx.raw_transaction

    async def _send_and_confirm(self, raw_transaction: bytes) -> LedgerReceipt:
        """
        Broadcast a signed transaction and poll until its receipt exists.

        There is no attempt limit; cancellation belongs to the caller.
        """
        started = time.monotonic()
        try:
            tx_hash = await self.web3.eth.send_raw_transaction(raw_transaction)
            tx_hash_hex = AsyncWeb3.to_hex(tx_hash)
        except ContractLogicError as e:
            return LedgerReceipt(
                confirmation_type="evm",
                status=classify_revert(str(getattr(e, "message", None) or e)),
                error_message=str(getattr(e, "message", None) or e),
            )
        except Exception as e:
            return LedgerReceipt(
                confirmation_type="evm",
                status=TransactionStatus.NETWORK_ERROR,
                error_message=f"Failed to broadcast transaction: {e}",
            )

        logger.info("Transaction sent: %s", tx_hash_hex)

        receipt = None
        while receipt is None:
            try:
                receipt = await self.web3.eth.get_transaction_receipt(tx_hash_hex)
            except TransactionNotFound:
                receipt = None
            except Exception as e:
                return LedgerReceipt(
                    confirmation_type="evm",
                    status=TransactionStatus.NETWORK_ERROR,
                    tx_reference=tx_hash_hex,
                    error_message=f"Failed to fetch receipt: {e}",
                )
            if receipt is None:
                await asyncio.sleep(self._poll_interval)

        return await self._receipt_to_confirmation(tx_hash_hex, receipt, time.monotonic() - started)

    async def _receipt_to_confirmation(
        self,
        tx_hash_hex: str,
        receipt: Any,
        execution_time: Optional[float] = None,
    ) -> LedgerReceipt:
        try:
            current_block = await self.web3.eth.block_number
            confirmations = max(current_block - receipt["blockNumber"], 0)
        except Exception:
            confirmations = 0

        if receipt.get("status") == 1:
            return LedgerReceipt(
                confirmation_type="evm",
                status=TransactionStatus.SUCCESS,
                tx_reference=tx_hash_hex,
                block_number=receipt["blockNumber"],
                gas_used=receipt["gasUsed"],
                confirmations=confirmations,
                execution_time=execution_time,
                from_address=receipt.get("from"),
                to_address=receipt.get("to"),
            )
        return LedgerReceipt(
            confirmation_type="evm",
            status=TransactionStatus.FAILED,
            tx_reference=tx_hash_hex,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            confirmations=confirmations,
            execution_time=execution_time,
            error_message="Transaction reverted on-chain",
        )

    async def get_transaction_status(self, tx_reference: str) -> Optional[LedgerReceipt]:
        try:
            receipt = await self.web3.eth.get_transaction_receipt(tx_reference)
        except TransactionNotFound:
            receipt = None

        if receipt is not None:
            return await self._receipt_to_confirmation(tx_reference, receipt)

        try:
            await self.web3.eth.get_transaction(tx_reference)
        except TransactionNotFound:
            return None
        return LedgerReceipt(
            confirmation_type="evm",
            status=TransactionStatus.PENDING,
            tx_reference=tx_reference,
        )
