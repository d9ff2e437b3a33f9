"""
Tests for Web3Ledger with a mocked AsyncWeb3.

No RPC endpoint is contacted; contract function objects are MagicMocks whose
awaited methods are AsyncMocks.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from web3.exceptions import ContractLogicError, TransactionNotFound

from permit_relay.ledgers.bases import TransferLeg
from permit_relay.ledgers.onchain import Web3Ledger, classify_revert
from permit_relay.permits.signatures import PermitSignature
from permit_relay.schemas.bases import TransactionStatus

from conftest import (
    CHAIN_ID,
    DEADLINE,
    FACILITATOR_ADDRESS,
    HOLDER_ADDRESS,
    OTHER_ADDRESS,
    RECIPIENT_A,
    RECIPIENT_B,
    TOKEN_ADDRESS,
)

RELAYER_KEY = "0x" + "11" * 32
TX_HASH = b"\x12" * 32
SIGNATURE = PermitSignature(v=27, r="0x" + "01" * 32, s="0x" + "02" * 32)


@pytest.fixture
def onchain():
    ledger = Web3Ledger(
        private_key=RELAYER_KEY,
        rpc_url="http://localhost:8545",
        token_address=TOKEN_ADDRESS,
        facilitator_address=FACILITATOR_ADDRESS,
        chain_id=CHAIN_ID,
        poll_interval=0,
        web3=MagicMock(),
    )
    ledger._token = MagicMock()
    ledger._facilitator = MagicMock()
    return ledger


async def submit(ledger, transfers, value=1_000_000, fee_amount=10_000, spender=FACILITATOR_ADDRESS):
    return await ledger.permit_and_transfer(
        owner=HOLDER_ADDRESS,
        spender=spender,
        value=value,
        deadline=DEADLINE,
        signature=SIGNATURE,
        transfers=transfers,
        fee_beneficiary=FACILITATOR_ADDRESS,
        fee_amount=fee_amount,
    )


class TestClassifyRevert:

    @pytest.mark.parametrize("message", [
        "execution reverted: ERC2612InvalidSigner",
        "execution reverted: Permit: invalid signature",
        "execution reverted: custom error InvalidPermitSignature()",
    ])
    def test_signature_markers(self, message):
        assert classify_revert(message) == TransactionStatus.SIGNATURE_REJECTED

    def test_other_reverts_are_failures(self):
        assert classify_revert("execution reverted: ERC20InsufficientBalance") == TransactionStatus.FAILED


class TestReads:

    @pytest.mark.asyncio
    async def test_balance_and_nonce(self, onchain):
        onchain._token.functions.balanceOf.return_value.call = AsyncMock(return_value=42)
        onchain._token.functions.nonces.return_value.call = AsyncMock(return_value=3)

        assert await onchain.balance_of(HOLDER_ADDRESS.lower()) == 42
        assert await onchain.nonces(HOLDER_ADDRESS) == 3
        onchain._token.functions.balanceOf.assert_called_with(HOLDER_ADDRESS)

    def test_fee_beneficiary_defaults_to_relayer(self, onchain):
        assert onchain.fee_beneficiary == onchain.wallet_address


class TestSubmission:

    @pytest.mark.asyncio
    async def test_wrong_spender_is_invalid_transaction(self, onchain):
        receipt = await submit(onchain, [TransferLeg(recipient=RECIPIENT_A, amount=990_000)], spender=OTHER_ADDRESS)
        assert receipt.status == TransactionStatus.INVALID_TRANSACTION

    def test_single_leg_uses_single_call(self, onchain):
        onchain._build_call(HOLDER_ADDRESS, 1_000_000, DEADLINE, SIGNATURE,
                            [TransferLeg(recipient=RECIPIENT_A, amount=990_000)], 10_000)
        onchain._facilitator.functions.facilitateTransferWithPermit.assert_called_once()
        onchain._facilitator.functions.facilitateBulkTransferWithPermit.assert_not_called()

    def test_multiple_legs_use_bulk_call(self, onchain):
        onchain._build_call(
            HOLDER_ADDRESS, 1_000_000, DEADLINE, SIGNATURE,
            [TransferLeg(recipient=RECIPIENT_A, amount=600_000), TransferLeg(recipient=RECIPIENT_B, amount=390_000)],
            10_000,
        )
        args = onchain._facilitator.functions.facilitateBulkTransferWithPermit.call_args.args
        assert args[1] == [RECIPIENT_A, RECIPIENT_B]
        assert args[2] == [600_000, 390_000]
        assert args[3] == 1_000_000

    @pytest.mark.asyncio
    async def test_signature_revert_during_estimation(self, onchain):
        tx_fn = onchain._facilitator.functions.facilitateTransferWithPermit.return_value
        tx_fn.estimate_gas = AsyncMock(side_effect=ContractLogicError("execution reverted: ERC2612InvalidSigner"))

        receipt = await submit(onchain, [TransferLeg(recipient=RECIPIENT_A, amount=990_000)])
        assert receipt.status == TransactionStatus.SIGNATURE_REJECTED

    @pytest.mark.asyncio
    async def test_other_revert_during_estimation(self, onchain):
        tx_fn = onchain._facilitator.functions.facilitateTransferWithPermit.return_value
        tx_fn.estimate_gas = AsyncMock(side_effect=ContractLogicError("execution reverted: ERC20InsufficientBalance"))

        receipt = await submit(onchain, [TransferLeg(recipient=RECIPIENT_A, amount=990_000)])
        assert receipt.status == TransactionStatus.FAILED

    @pytest.mark.asyncio
    async def test_rpc_failure_is_network_error(self, onchain):
        tx_fn = onchain._facilitator.functions.facilitateTransferWithPermit.return_value
        tx_fn.estimate_gas = AsyncMock(side_effect=ConnectionError("connection refused"))

        receipt = await submit(onchain, [TransferLeg(recipient=RECIPIENT_A, amount=990_000)])
        assert receipt.status == TransactionStatus.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_receipt_polled_until_mined(self, onchain):
        onchain._sign_call = AsyncMock(return_value=b"raw")
        onchain.web3.eth.send_raw_transaction = AsyncMock(return_value=TX_HASH)
        onchain.web3.eth.get_transaction_receipt = AsyncMock(side_effect=[
            TransactionNotFound("not yet"),
            None,
            {"status": 1, "blockNumber": 10, "gasUsed": 90_000, "from": onchain.wallet_address, "to": FACILITATOR_ADDRESS},
        ])

        receipt = await submit(onchain, [TransferLeg(recipient=RECIPIENT_A, amount=990_000)])

        assert receipt.status == TransactionStatus.SUCCESS
        assert receipt.tx_reference == "0x" + "12" * 32
        assert receipt.block_number == 10
        assert receipt.gas_used == 90_000
        assert onchain.web3.eth.get_transaction_receipt.await_count == 3

    @pytest.mark.asyncio
    async def test_reverted_receipt_is_failure(self, onchain):
        onchain._sign_call = AsyncMock(return_value=b"raw")
        onchain.web3.eth.send_raw_transaction = AsyncMock(return_value=TX_HASH)
        onchain.web3.eth.get_transaction_receipt = AsyncMock(
            return_value={"status": 0, "blockNumber": 10, "gasUsed": 50_000},
        )

        receipt = await submit(onchain, [TransferLeg(recipient=RECIPIENT_A, amount=990_000)])
        assert receipt.status == TransactionStatus.FAILED


class TestTransactionStatus:

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, onchain):
        onchain.web3.eth.get_transaction_receipt = AsyncMock(side_effect=TransactionNotFound("missing"))
        onchain.web3.eth.get_transaction = AsyncMock(side_effect=TransactionNotFound("missing"))
        assert await onchain.get_transaction_status("0x" + "12" * 32) is None

    @pytest.mark.asyncio
    async def test_pending_transaction(self, onchain):
        onchain.web3.eth.get_transaction_receipt = AsyncMock(side_effect=TransactionNotFound("missing"))
        onchain.web3.eth.get_transaction = AsyncMock(return_value={"hash": TX_HASH})
        receipt = await onchain.get_transaction_status("0x" + "12" * 32)
        assert receipt.status == TransactionStatus.PENDING
